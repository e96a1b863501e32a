"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    message: str


# ----------------------------------------------------------------------------
# Queue
# ----------------------------------------------------------------------------

class QueueJoinRequest(BaseModel):
    """Request to join the matchmaking queue."""

    gender: Literal["male", "female"]
    partner_id: Optional[int] = None  # Queue as a duo with this player
    preferred_side: Optional[Literal["left", "right", "both"]] = None  # Defaults to profile


class QueueEntryResponse(BaseModel):
    """A queue entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    player_id: int
    partner_id: Optional[int] = None
    gender: str
    preferred_side: Optional[str] = None
    average_rating: float
    status: str
    match_id: Optional[int] = None
    created_at: Optional[str] = None


class QueueJoinResponse(BaseModel):
    """Response from joining the queue, with any matches the join produced."""

    entry: QueueEntryResponse
    matches_created: int = 0


class QueueStatusResponse(BaseModel):
    """Current queue status of the caller."""

    in_queue: bool
    entry: Optional[QueueEntryResponse] = None


class QueueLeaveResponse(BaseModel):
    """Response from leaving the queue."""

    status: str
    cancelled: int


# ----------------------------------------------------------------------------
# Matches
# ----------------------------------------------------------------------------

class TeamSlot(BaseModel):
    """One player slot of a team."""

    player_id: int
    side: Optional[str] = None


class VoteRecord(BaseModel):
    """One participant's approval vote."""

    player_id: int
    vote: Literal["unset", "approved", "rejected"]


class MatchSetScore(BaseModel):
    """Games won by each team in one set."""

    team_a_score: int = Field(ge=0)
    team_b_score: int = Field(ge=0)


class StoredSetScore(MatchSetScore):
    """A recorded set, numbered from 1."""

    set_number: int


class MatchResponse(BaseModel):
    """A match and where it is in its lifecycle."""

    id: int
    league_id: Optional[int] = None
    gender: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    status: str
    scheduling_status: str
    team_a: List[TeamSlot]
    team_b: List[TeamSlot]
    team_a_was_duo: bool
    team_b_was_duo: bool
    captain_id: Optional[int] = None
    common_availability: Dict[str, List[str]] = {}
    time_proposals: List[str] = []
    negotiation_deadline: Optional[str] = None
    scheduled_at: Optional[str] = None
    location: Optional[str] = None
    sets: List[StoredSetScore] = []
    team_a_score: Optional[int] = None
    team_b_score: Optional[int] = None
    winner_team: Optional[str] = None
    team_a_points: Optional[int] = None
    team_b_points: Optional[int] = None
    is_inter_regional: bool = False
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    votes: Optional[List[VoteRecord]] = None


class SweepResponse(BaseModel):
    """Result of a matchmaking sweep."""

    found: int
    matches: List[MatchResponse]


class ApprovalVoteRequest(BaseModel):
    """Approve or reject a proposed match."""

    approved: bool


class ApprovalVoteResponse(BaseModel):
    """Outcome of a vote: waiting, cancelled or scheduling."""

    status: Literal["waiting", "cancelled", "scheduling"]
    match_id: int
    captain_id: Optional[int] = None
    time_proposals: Optional[List[str]] = None


class ScheduleMatchRequest(BaseModel):
    """Captain's booking of the agreed time."""

    scheduled_at: datetime
    location: Optional[str] = None


class MatchResultRequest(BaseModel):
    """Final result of a match."""

    sets: List[MatchSetScore] = Field(min_length=1)
    winner_team: Literal["team_a", "team_b"]
    team_a_score: Optional[int] = Field(default=None, ge=0)  # Sets won, optional cross-check
    team_b_score: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_final_score_pair(self):
        """Final score is all-or-nothing."""
        if (self.team_a_score is None) != (self.team_b_score is None):
            raise ValueError("Provide both team_a_score and team_b_score, or neither")
        return self


class MatchResultResponse(BaseModel):
    """Rating deltas applied by a completed match."""

    match_id: int
    team_a_delta: int
    team_b_delta: int
    ranking_applied: bool


class MatchContestRequest(BaseModel):
    """Dispute of a completed result."""

    reason: str = Field(min_length=1, max_length=1000)


class MatchContestResponse(BaseModel):
    """A recorded result contest."""

    id: int
    match_id: int
    contested_by: int
    reason: str
    created_at: Optional[str] = None


# ----------------------------------------------------------------------------
# Rankings
# ----------------------------------------------------------------------------

class RankingHistoryResponse(BaseModel):
    """One rating change."""

    match_id: int
    points_before: int
    points_after: int
    points_change: int
    category: Optional[str] = None
    created_at: Optional[str] = None
