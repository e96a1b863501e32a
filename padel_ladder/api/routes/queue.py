"""Queue and matchmaking route handlers."""

import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from padel_ladder.api.routes import limiter, to_http_exception
from padel_ladder.api.auth_dependencies import get_current_player_id
from padel_ladder.database.db import get_db_session
from padel_ladder.models.schemas import (
    QueueJoinRequest,
    QueueJoinResponse,
    QueueLeaveResponse,
    QueueStatusResponse,
    SweepResponse,
)
from padel_ladder.services import matchmaking_service, queue_service
from padel_ladder.services.errors import MatchEngineError

logger = logging.getLogger(__name__)
router = APIRouter()

# Run a sweep right after every successful join
SWEEP_ON_JOIN = os.getenv("MATCHMAKING_SWEEP_ON_JOIN", "true").lower() == "true"


@router.get("/api/queue", response_model=QueueStatusResponse)
async def get_queue_status(
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the caller's active queue entry, if any."""
    try:
        entry = await queue_service.get_queue_status(session, player_id)
        return {"in_queue": entry is not None, "entry": entry}
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting queue status for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error getting queue status: {str(e)}")


@router.post("/api/queue", response_model=QueueJoinResponse, status_code=201)
@limiter.limit("30/minute")
async def join_queue(
    request: Request,
    payload: QueueJoinRequest,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Join the matchmaking queue, alone or with a partner.

    When SWEEP_ON_JOIN is on, a matchmaking sweep runs in the same request.
    """
    try:
        entry = await queue_service.join_queue(
            session,
            player_id=player_id,
            gender=payload.gender,
            partner_id=payload.partner_id,
            preferred_side=payload.preferred_side,
        )
        matches = []
        if SWEEP_ON_JOIN:
            matches = await matchmaking_service.run_matchmaking_sweep(session)
            # The new entry may already be consumed by one of the proposals
            entry = await queue_service.get_queue_entry(session, entry["id"])
        return {"entry": entry, "matches_created": len(matches)}
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error joining queue for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error joining queue: {str(e)}")


@router.delete("/api/queue", response_model=QueueLeaveResponse)
@limiter.limit("30/minute")
async def leave_queue(
    request: Request,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave the queue. Always succeeds; matched entries are left alone."""
    try:
        return await queue_service.leave_queue(session, player_id)
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error leaving queue for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error leaving queue: {str(e)}")


@router.post("/api/matchmaking/sweep", response_model=SweepResponse)
@limiter.limit("10/minute")
async def run_sweep(
    request: Request,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Run one matchmaking sweep over the active queue."""
    try:
        matches = await matchmaking_service.run_matchmaking_sweep(session)
        return {"found": len(matches), "matches": matches}
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error running matchmaking sweep: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error running matchmaking sweep: {str(e)}")
