"""Match lifecycle route handlers: views, approval votes, scheduling, results and contests."""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from padel_ladder.api.routes import limiter, to_http_exception
from padel_ladder.api.auth_dependencies import get_current_player_id
from padel_ladder.database.db import get_db_session
from padel_ladder.models.schemas import (
    ApprovalVoteRequest,
    ApprovalVoteResponse,
    MatchContestRequest,
    MatchContestResponse,
    MatchResponse,
    MatchResultRequest,
    MatchResultResponse,
    ScheduleMatchRequest,
)
from padel_ladder.services import (
    approval_service,
    completion_service,
    match_service,
    scheduling_service,
)
from padel_ladder.services.errors import MatchEngineError

logger = logging.getLogger(__name__)
router = APIRouter()

MatchStatusFilter = Literal["pending_approval", "scheduling", "scheduled", "cancelled", "completed"]


@router.get("/api/matches", response_model=List[MatchResponse])
async def list_matches(
    status: Optional[MatchStatusFilter] = None,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """List the caller's matches, newest first."""
    try:
        return await match_service.list_matches(session, player_id, status=status)
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error listing matches for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing matches: {str(e)}")


@router.get("/api/matches/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: int,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Get one match with its votes. Participants only."""
    try:
        return await match_service.get_match(session, match_id, player_id)
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error getting match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error getting match: {str(e)}")


@router.post("/api/matches/{match_id}/approval", response_model=ApprovalVoteResponse)
@limiter.limit("30/minute")
async def cast_approval_vote(
    request: Request,
    match_id: int,
    payload: ApprovalVoteRequest,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Approve or reject a proposed match.

    Returns "waiting" until all four participants have voted.
    """
    try:
        return await approval_service.cast_vote(session, match_id, player_id, payload.approved)
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error casting vote on match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error casting vote: {str(e)}")


@router.post("/api/matches/{match_id}/schedule", response_model=MatchResponse)
@limiter.limit("30/minute")
async def schedule_match(
    request: Request,
    match_id: int,
    payload: ScheduleMatchRequest,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Book the agreed date/time for a match. Captain only."""
    try:
        return await scheduling_service.schedule_match(
            session, match_id, player_id, payload.scheduled_at, payload.location
        )
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error scheduling match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error scheduling match: {str(e)}")


@router.post("/api/matches/{match_id}/result", response_model=MatchResultResponse)
@limiter.limit("20/minute")
async def submit_match_result(
    request: Request,
    match_id: int,
    payload: MatchResultRequest,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Report the final result; applies rating changes and closes the match."""
    try:
        return await completion_service.submit_match_result(
            session,
            match_id,
            player_id,
            sets=[s.model_dump() for s in payload.sets],
            winner_team=payload.winner_team,
            team_a_score=payload.team_a_score,
            team_b_score=payload.team_b_score,
        )
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error submitting result for match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error submitting match result: {str(e)}")


@router.post("/api/matches/{match_id}/contest", response_model=MatchContestResponse, status_code=201)
@limiter.limit("10/minute")
async def contest_match_result(
    request: Request,
    match_id: int,
    payload: MatchContestRequest,
    player_id: int = Depends(get_current_player_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Contest the result of a completed match."""
    try:
        return await completion_service.contest_match_result(session, match_id, player_id, payload.reason)
    except MatchEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error contesting result for match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error contesting match result: {str(e)}")
