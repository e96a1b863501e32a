"""
Match lookups and serialization shared by the lifecycle services.
"""

from typing import Dict, List, Optional
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import Match, MatchApproval
from padel_ladder.services.errors import ForbiddenError, NotFoundError, storage_errors
from padel_ladder.utils.datetime_utils import isoformat_or_none


def vote_to_str(approved: Optional[bool]) -> str:
    """Tri-state vote label."""
    if approved is None:
        return "unset"
    return "approved" if approved else "rejected"


def match_to_dict(match: Match, votes: Optional[List[MatchApproval]] = None) -> Dict:
    """Convert a Match ORM object (and optionally its votes) to a response dict."""
    data = {
        "id": match.id,
        "league_id": match.league_id,
        "gender": match.gender,
        "state": match.state,
        "city": match.city,
        "status": match.status,
        "scheduling_status": match.scheduling_status,
        "team_a": [
            {"player_id": match.team_a_player1_id, "side": match.team_a_player1_side},
            {"player_id": match.team_a_player2_id, "side": match.team_a_player2_side},
        ],
        "team_b": [
            {"player_id": match.team_b_player1_id, "side": match.team_b_player1_side},
            {"player_id": match.team_b_player2_id, "side": match.team_b_player2_side},
        ],
        "team_a_was_duo": match.team_a_was_duo,
        "team_b_was_duo": match.team_b_was_duo,
        "captain_id": match.captain_id,
        "common_availability": match.common_availability or {},
        "time_proposals": match.time_proposals or [],
        "negotiation_deadline": isoformat_or_none(match.negotiation_deadline),
        "scheduled_at": isoformat_or_none(match.scheduled_at),
        "location": match.location,
        "sets": match.sets or [],
        "team_a_score": match.team_a_score,
        "team_b_score": match.team_b_score,
        "winner_team": match.winner_team,
        "team_a_points": match.team_a_points,
        "team_b_points": match.team_b_points,
        "is_inter_regional": match.is_inter_regional,
        "created_at": isoformat_or_none(match.created_at),
        "completed_at": isoformat_or_none(match.completed_at),
    }
    if votes is not None:
        data["votes"] = [
            {"player_id": v.player_id, "vote": vote_to_str(v.approved)}
            for v in sorted(votes, key=lambda v: match.participant_ids.index(v.player_id))
        ]
    return data


async def get_match_for_update(session: AsyncSession, match_id: int) -> Match:
    """
    Load a match and lock its row for the rest of the transaction.

    Raises:
        NotFoundError: If the match does not exist
    """
    result = await session.execute(
        select(Match).where(Match.id == match_id).with_for_update()
    )
    match = result.scalar_one_or_none()
    if not match:
        raise NotFoundError(f"Match {match_id} not found")
    return match


async def get_votes(session: AsyncSession, match_id: int) -> List[MatchApproval]:
    """All approval rows for a match."""
    result = await session.execute(
        select(MatchApproval).where(MatchApproval.match_id == match_id)
    )
    return list(result.scalars().all())


@storage_errors
async def get_match(session: AsyncSession, match_id: int, player_id: int) -> Dict:
    """
    Get one match, visible only to its four participants.

    Raises:
        NotFoundError: Unknown match
        ForbiddenError: Caller is not a participant
    """
    match = await session.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")
    if player_id not in match.participant_ids:
        raise ForbiddenError("You are not a participant of this match")
    votes = await get_votes(session, match_id)
    return match_to_dict(match, votes)


@storage_errors
async def list_matches(
    session: AsyncSession, player_id: int, status: Optional[str] = None
) -> List[Dict]:
    """List the caller's matches, newest first, optionally filtered by status."""
    query = select(Match).where(
        or_(
            Match.team_a_player1_id == player_id,
            Match.team_a_player2_id == player_id,
            Match.team_b_player1_id == player_id,
            Match.team_b_player2_id == player_id,
        )
    )
    if status:
        query = query.where(Match.status == status)
    query = query.order_by(Match.created_at.desc(), Match.id.desc())

    result = await session.execute(query)
    return [match_to_dict(m) for m in result.scalars().all()]
