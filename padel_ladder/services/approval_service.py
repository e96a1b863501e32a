"""
Approval state machine for proposed matches.

Each of the four participants approves or rejects. Nothing happens until all
four have voted; then a single rejection cancels the match and any unanimous
approval moves it to scheduling. Every vote runs under the match row lock so
the "all four resolved" check always sees a consistent set of votes.
"""

import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import (
    Match,
    MatchApproval,
    MatchStatus,
    QueueEntry,
    QueueStatus,
)
from padel_ladder.services import scheduling_service
from padel_ladder.services.errors import ConflictError, ForbiddenError, storage_errors
from padel_ladder.services.match_service import get_match_for_update, get_votes
from padel_ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def cancel_match(session: AsyncSession, match: Match) -> None:
    """Cancel a rejected proposal and release its queue entries as cancelled."""
    match.status = MatchStatus.CANCELLED.value
    await session.execute(
        update(QueueEntry)
        .where(
            QueueEntry.match_id == match.id,
            QueueEntry.status == QueueStatus.MATCHED.value,
        )
        .values(status=QueueStatus.CANCELLED.value, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    await session.flush()
    logger.info(f"Match {match.id} cancelled after a rejection")


@storage_errors
async def cast_vote(
    session: AsyncSession,
    match_id: int,
    player_id: int,
    approved: bool,
    tie_break: Optional[scheduling_service.TieBreak] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Record a participant's vote and resolve the match once all four are in.

    Votes can be changed freely while the match is pending approval.

    Args:
        session: Database session
        match_id: Match being voted on
        player_id: Voting player (from the caller's identity)
        approved: True to approve, False to reject
        tie_break: Captain tie-break among equally rested players
        now: Clock override for captain/time proposal timestamps

    Returns:
        {"status": "waiting"} while votes are missing, {"status": "cancelled"}
        after a rejection, or {"status": "scheduling", "captain_id": ...,
        "time_proposals": [...]} after unanimous approval

    Raises:
        NotFoundError: Unknown match
        ForbiddenError: Caller is not one of the four participants
        ConflictError: The match already left pending approval
    """
    match = await get_match_for_update(session, match_id)
    if player_id not in match.participant_ids:
        raise ForbiddenError("You are not a participant of this match")
    if match.status != MatchStatus.PENDING_APPROVAL.value:
        raise ConflictError(f"Voting is closed: match is {match.status}")

    votes = {v.player_id: v for v in await get_votes(session, match_id)}
    vote = votes.get(player_id)
    if vote is None:
        vote = MatchApproval(match_id=match_id, player_id=player_id)
        session.add(vote)
        votes[player_id] = vote
    vote.approved = approved
    vote.voted_at = utcnow()
    await session.flush()

    logger.debug(f"Player {player_id} {'approved' if approved else 'rejected'} match {match_id}")

    resolved = [votes[pid].approved for pid in match.participant_ids if pid in votes]
    if len(resolved) < len(match.participant_ids) or any(v is None for v in resolved):
        return {"status": "waiting", "match_id": match_id}

    if not all(resolved):
        await cancel_match(session, match)
        return {"status": MatchStatus.CANCELLED.value, "match_id": match_id}

    await scheduling_service.begin_scheduling(session, match, now=now, tie_break=tie_break)
    return {
        "status": MatchStatus.SCHEDULING.value,
        "match_id": match_id,
        "captain_id": match.captain_id,
        "time_proposals": match.time_proposals,
    }
