"""Ranking history and health route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from padel_ladder.api.routes import to_http_exception
from padel_ladder.api.auth_dependencies import get_current_player_id
from padel_ladder.database.db import get_db_session
from padel_ladder.models.schemas import HealthResponse, RankingHistoryResponse
from padel_ladder.services import history_service
from padel_ladder.services.errors import MatchEngineError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/rankings/history", response_model=List[RankingHistoryResponse])
async def get_ranking_history(
    limit: int = Query(50, ge=1, le=500),
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """The caller's rating changes, newest first."""
    try:
        return await history_service.get_ranking_history(session, player_id, limit=limit)
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting ranking history for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error getting ranking history: {str(e)}")


@router.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}
