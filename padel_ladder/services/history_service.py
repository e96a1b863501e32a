"""
Read access to a player's ranking history.
"""

from typing import Dict, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import RankingHistory
from padel_ladder.services.errors import storage_errors
from padel_ladder.utils.datetime_utils import isoformat_or_none


@storage_errors
async def get_ranking_history(session: AsyncSession, player_id: int, limit: int = 50) -> List[Dict]:
    """Rating changes for a player, newest first."""
    result = await session.execute(
        select(RankingHistory)
        .where(RankingHistory.player_id == player_id)
        .order_by(RankingHistory.created_at.desc(), RankingHistory.id.desc())
        .limit(limit)
    )
    return [
        {
            "match_id": h.match_id,
            "points_before": h.points_before,
            "points_after": h.points_after,
            "points_change": h.points_change,
            "category": h.category,
            "created_at": isoformat_or_none(h.created_at),
        }
        for h in result.scalars().all()
    ]
