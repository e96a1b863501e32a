"""
Scheduling service: captain choice, time proposals and the final booking.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import Match, MatchStatus, SchedulingStatus
from padel_ladder.services import availability_service
from padel_ladder.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    storage_errors,
)
from padel_ladder.services.match_service import get_match_for_update, match_to_dict
from padel_ladder.utils.constants import NEGOTIATION_WINDOW_HOURS
from padel_ladder.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

TieBreak = Callable[[Sequence[int]], int]


def pick_captain(
    player_ids: Sequence[int],
    last_captained: Dict[int, Optional[datetime]],
    tie_break: Optional[TieBreak] = None,
) -> int:
    """
    Least-recently-captained player among player_ids.

    Players who were never captain come first. Ties go to tie_break, which
    receives the tied ids in ascending order (random.choice by default).
    """
    tie_break = tie_break or random.choice
    never = sorted(pid for pid in player_ids if last_captained.get(pid) is None)
    if never:
        candidates = never
    else:
        oldest = min(ensure_utc(last_captained[pid]) for pid in player_ids)
        candidates = sorted(
            pid for pid in player_ids if ensure_utc(last_captained[pid]) == oldest
        )
    if len(candidates) == 1:
        return candidates[0]
    return tie_break(candidates)


async def get_last_captained(
    session: AsyncSession, player_ids: Sequence[int]
) -> Dict[int, Optional[datetime]]:
    """When each player was last made captain (None if never)."""
    result = await session.execute(
        select(Match.captain_id, func.max(Match.captain_assigned_at))
        .where(Match.captain_id.in_(player_ids))
        .group_by(Match.captain_id)
    )
    last = {pid: None for pid in player_ids}
    for captain_id, assigned_at in result.all():
        last[captain_id] = assigned_at
    return last


async def begin_scheduling(
    session: AsyncSession,
    match: Match,
    now: Optional[datetime] = None,
    tie_break: Optional[TieBreak] = None,
) -> Match:
    """
    Move an approved match into scheduling.

    Assigns a captain, stores three candidate start times and opens the
    negotiation window. The caller holds the match row lock.
    """
    now = now or utcnow()
    last_captained = await get_last_captained(session, match.participant_ids)
    captain_id = pick_captain(match.participant_ids, last_captained, tie_break)
    proposals: List[datetime] = availability_service.generate_time_proposals(
        match.common_availability, now
    )

    match.status = MatchStatus.SCHEDULING.value
    match.scheduling_status = SchedulingStatus.CAPTAIN_ASSIGNED.value
    match.captain_id = captain_id
    match.captain_assigned_at = now
    match.time_proposals = [p.isoformat() for p in proposals]
    match.negotiation_deadline = now + timedelta(hours=NEGOTIATION_WINDOW_HOURS)
    await session.flush()

    logger.info(f"Match {match.id} approved; captain {captain_id}, scheduling until {match.negotiation_deadline}")
    return match


@storage_errors
async def schedule_match(
    session: AsyncSession,
    match_id: int,
    player_id: int,
    scheduled_at: datetime,
    location: Optional[str] = None,
) -> Dict:
    """
    Book the agreed time for a match. Only the captain can do this.

    Raises:
        NotFoundError: Unknown match
        ForbiddenError: Caller is not a participant, or not the captain
        ConflictError: Match is not in scheduling
        InvalidInputError: scheduled_at is not in the future
    """
    match = await get_match_for_update(session, match_id)
    if player_id not in match.participant_ids:
        raise ForbiddenError("You are not a participant of this match")
    if match.status != MatchStatus.SCHEDULING.value:
        raise ConflictError(f"Match is {match.status}, not scheduling")
    if match.captain_id != player_id:
        raise ForbiddenError("Only the captain can schedule this match")

    scheduled_at = ensure_utc(scheduled_at)
    if scheduled_at <= utcnow():
        raise InvalidInputError("Scheduled time must be in the future")

    match.scheduled_at = scheduled_at
    match.location = location
    match.status = MatchStatus.SCHEDULED.value
    match.scheduling_status = SchedulingStatus.SCHEDULED.value
    await session.flush()

    logger.info(f"Match {match_id} scheduled for {scheduled_at.isoformat()} by captain {player_id}")
    return match_to_dict(match)
