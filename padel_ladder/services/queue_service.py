"""
Queue service: joining, leaving and inspecting the matchmaking queue.
"""

import logging
from typing import Dict, Optional
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import Gender, Player, QueueEntry, QueueStatus, Side
from padel_ladder.services.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    storage_errors,
)
from padel_ladder.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

VALID_GENDERS = {g.value for g in Gender}
VALID_SIDES = {s.value for s in Side}


def queue_entry_to_dict(entry: QueueEntry) -> Dict:
    """Convert a QueueEntry ORM object to a response dict."""
    return {
        "id": entry.id,
        "player_id": entry.player_id,
        "partner_id": entry.partner_id,
        "gender": entry.gender,
        "preferred_side": entry.preferred_side,
        "average_rating": entry.average_rating,
        "status": entry.status,
        "match_id": entry.match_id,
        "created_at": isoformat_or_none(entry.created_at),
    }


async def _get_active_entry(session: AsyncSession, player_id: int) -> Optional[QueueEntry]:
    result = await session.execute(
        select(QueueEntry).where(
            QueueEntry.player_id == player_id,
            QueueEntry.status == QueueStatus.ACTIVE.value,
        )
    )
    return result.scalar_one_or_none()


@storage_errors
async def join_queue(
    session: AsyncSession,
    player_id: int,
    gender: str,
    partner_id: Optional[int] = None,
    preferred_side: Optional[str] = None,
) -> Dict:
    """
    Put a player in the queue, alone or as half of a duo.

    A duo only becomes matchable once the partner joins naming this player
    back. The stored average rating is the player's own rating, or the mean
    of both players' ratings for a duo.

    Raises:
        NotFoundError: Player or partner does not exist
        InvalidInputError: Bad gender/side, or the player names themselves
        ConflictError: The player already has an active entry
    """
    if gender not in VALID_GENDERS:
        raise InvalidInputError(f"Invalid gender: {gender}")
    if preferred_side is not None and preferred_side not in VALID_SIDES:
        raise InvalidInputError(f"Invalid preferred side: {preferred_side}")

    player = await session.get(Player, player_id)
    if not player:
        raise NotFoundError(f"Player {player_id} not found")

    average = float(player.ranking_points)
    if partner_id is not None:
        if partner_id == player_id:
            raise InvalidInputError("You cannot be your own partner")
        partner = await session.get(Player, partner_id)
        if not partner:
            raise NotFoundError(f"Partner {partner_id} not found")
        average = (player.ranking_points + partner.ranking_points) / 2

    if await _get_active_entry(session, player_id):
        raise ConflictError("Already in queue")

    entry = QueueEntry(
        player_id=player_id,
        partner_id=partner_id,
        gender=gender,
        preferred_side=preferred_side if preferred_side is not None else player.preferred_side,
        average_rating=average,
        status=QueueStatus.ACTIVE.value,
        created_at=utcnow(),
        updated_at=utcnow(),
    )
    session.add(entry)
    try:
        # The partial unique index settles races the check above cannot see
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Already in queue")

    logger.info(
        f"Player {player_id} joined the {gender} queue"
        + (f" with partner {partner_id}" if partner_id else "")
    )
    return queue_entry_to_dict(entry)


@storage_errors
async def leave_queue(session: AsyncSession, player_id: int) -> Dict:
    """
    Cancel the player's active entry, if any.

    A duo entry naming this player as partner is cancelled too, so the
    partner is not left waiting on a duo that can never form.

    Always succeeds. Entries already claimed by a proposal are left alone;
    the match's approval flow is the only way out of those.
    """
    result = await session.execute(
        update(QueueEntry)
        .where(
            or_(QueueEntry.player_id == player_id, QueueEntry.partner_id == player_id),
            QueueEntry.status == QueueStatus.ACTIVE.value,
        )
        .values(status=QueueStatus.CANCELLED.value, updated_at=utcnow())
        .returning(QueueEntry.id)
        .execution_options(synchronize_session="fetch")
    )
    cancelled = result.scalars().all()
    if cancelled:
        logger.info(f"Player {player_id} left the queue")
    return {"status": "success", "cancelled": len(cancelled)}


@storage_errors
async def get_queue_status(session: AsyncSession, player_id: int) -> Optional[Dict]:
    """The player's active queue entry, or None."""
    entry = await _get_active_entry(session, player_id)
    if not entry:
        return None
    return queue_entry_to_dict(entry)


@storage_errors
async def get_queue_entry(session: AsyncSession, entry_id: int) -> Dict:
    """A queue entry by id, whatever its status."""
    entry = await session.get(QueueEntry, entry_id)
    if not entry:
        raise NotFoundError(f"Queue entry {entry_id} not found")
    return queue_entry_to_dict(entry)
