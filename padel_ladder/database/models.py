"""
SQLAlchemy ORM models for the padel matchmaking and ranking system.
"""

from typing import List
import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    JSON,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from padel_ladder.database.db import Base
from padel_ladder.utils.constants import INITIAL_RATING, INITIAL_CATEGORY
from padel_ladder.utils.datetime_utils import utcnow


class Gender(str, enum.Enum):
    """Queue/match gender enum."""

    MALE = "male"
    FEMALE = "female"


class Side(str, enum.Enum):
    """Court side preference. A missing value means no preference."""

    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


class QueueStatus(str, enum.Enum):
    """Queue entry status enum."""

    ACTIVE = "active"
    MATCHED = "matched"
    CANCELLED = "cancelled"


class MatchStatus(str, enum.Enum):
    """Match lifecycle status enum."""

    PENDING_APPROVAL = "pending_approval"
    SCHEDULING = "scheduling"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SchedulingStatus(str, enum.Enum):
    """Scheduling sub-status of a match."""

    PENDING = "pending"
    CAPTAIN_ASSIGNED = "captain_assigned"
    SCHEDULED = "scheduled"


class Team(str, enum.Enum):
    """Team identifier."""

    TEAM_A = "team_a"
    TEAM_B = "team_b"


class Player(Base):
    """Player profiles. Rating fields are written only by the completion service."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String, nullable=False)
    gender = Column(String, nullable=True)  # 'male', 'female'
    state = Column(String, nullable=True)
    city = Column(String, nullable=True)
    preferred_side = Column(String, nullable=True)  # 'left', 'right', 'both' or NULL
    ranking_points = Column(Integer, default=INITIAL_RATING, nullable=False)
    category = Column(String, default=INITIAL_CATEGORY, nullable=False)
    total_matches = Column(Integer, default=0, nullable=False)
    total_wins = Column(Integer, default=0, nullable=False)
    provisional_games_played = Column(Integer, default=0, nullable=False)
    is_provisional = Column(Boolean, default=True, nullable=False)
    availability = Column(JSON, nullable=True)  # {"monday": ["morning", "evening"], ...}
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    ranking_history = relationship("RankingHistory", back_populates="player")

    __table_args__ = (
        Index("idx_players_region", "state", "city"),
        Index("idx_players_ranking", "ranking_points"),
    )


class League(Base):
    """League groups. Administration lives outside this service."""

    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    gender = Column(String, nullable=True)
    affects_regional_ranking = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    # Relationships
    rankings = relationship("LeagueRanking", back_populates="league", cascade="all, delete-orphan")


class LeagueRanking(Base):
    """League-local standings, one row per (league, player)."""

    __tablename__ = "league_rankings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    points = Column(Integer, default=0, nullable=False)
    matches_played = Column(Integer, default=0, nullable=False)
    wins = Column(Integer, default=0, nullable=False)
    losses = Column(Integer, default=0, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    league = relationship("League", back_populates="rankings")

    __table_args__ = (
        UniqueConstraint("league_id", "player_id", name="uq_league_rankings_league_player"),
        Index("idx_league_rankings_league_points", "league_id", "points"),
    )


class QueueEntry(Base):
    """A player (or half of a duo) waiting for a match."""

    __tablename__ = "queue_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    partner_id = Column(Integer, ForeignKey("players.id"), nullable=True)
    gender = Column(String, nullable=False)
    preferred_side = Column(String, nullable=True)
    average_rating = Column(Float, nullable=False)  # Own rating, or mean of the duo
    status = Column(String(20), default=QueueStatus.ACTIVE.value, nullable=False)
    match_id = Column(
        Integer, ForeignKey("matches.id"), nullable=True
    )  # Proposal that consumed this entry
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'matched', 'cancelled')", name="ck_queue_entries_status"
        ),
        # At most one active entry per player, enforced by the database
        Index(
            "uq_queue_entries_active_player",
            "player_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_queue_entries_status_created", "status", "created_at"),
        Index("idx_queue_entries_match", "match_id"),
    )


class Match(Base):
    """A four-player match moving through the approval/scheduling/completion lifecycle."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=True)
    gender = Column(String, nullable=True)
    state = Column(String, nullable=True)
    city = Column(String, nullable=True)

    team_a_player1_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    team_a_player2_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    team_b_player1_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    team_b_player2_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    team_a_player1_side = Column(String, nullable=True)
    team_a_player2_side = Column(String, nullable=True)
    team_b_player1_side = Column(String, nullable=True)
    team_b_player2_side = Column(String, nullable=True)
    team_a_was_duo = Column(Boolean, default=False, nullable=False)
    team_b_was_duo = Column(Boolean, default=False, nullable=False)

    status = Column(String(20), default=MatchStatus.PENDING_APPROVAL.value, nullable=False)
    scheduling_status = Column(String(30), default=SchedulingStatus.PENDING.value, nullable=False)
    captain_id = Column(Integer, ForeignKey("players.id"), nullable=True)
    captain_assigned_at = Column(DateTime(timezone=True), nullable=True)
    common_availability = Column(JSON, nullable=True)
    time_proposals = Column(JSON, nullable=True)  # ISO timestamps offered to the captain
    negotiation_deadline = Column(DateTime(timezone=True), nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    location = Column(String, nullable=True)

    sets = Column(JSON, nullable=True)  # [{"set_number": 1, "team_a_score": 6, "team_b_score": 3}]
    team_a_score = Column(Integer, nullable=True)  # Sets won
    team_b_score = Column(Integer, nullable=True)
    winner_team = Column(String(10), nullable=True)
    team_a_points = Column(Integer, nullable=True)  # Rating delta applied to team A
    team_b_points = Column(Integer, nullable=True)
    is_inter_regional = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    approvals = relationship("MatchApproval", back_populates="match", cascade="all, delete-orphan")

    @property
    def team_a_ids(self) -> List[int]:
        """Team A player ids in slot order."""
        return [self.team_a_player1_id, self.team_a_player2_id]

    @property
    def team_b_ids(self) -> List[int]:
        """Team B player ids in slot order."""
        return [self.team_b_player1_id, self.team_b_player2_id]

    @property
    def participant_ids(self) -> List[int]:
        """All four player ids (team A first)."""
        return self.team_a_ids + self.team_b_ids

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_approval', 'scheduling', 'scheduled', 'cancelled', 'completed')",
            name="ck_matches_status",
        ),
        Index("idx_matches_status", "status"),
        Index("idx_matches_team_a_p1", "team_a_player1_id"),
        Index("idx_matches_team_a_p2", "team_a_player2_id"),
        Index("idx_matches_team_b_p1", "team_b_player1_id"),
        Index("idx_matches_team_b_p2", "team_b_player2_id"),
        Index("idx_matches_captain", "captain_id", "captain_assigned_at"),
    )


class MatchApproval(Base):
    """One approval vote per (match, player). approved NULL means the vote is unset."""

    __tablename__ = "match_approvals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    approved = Column(Boolean, nullable=True)
    voted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    match = relationship("Match", back_populates="approvals")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_approvals_match_player"),
    )


class ResultContest(Base):
    """A participant's dispute of a completed match's result. One per player per match."""

    __tablename__ = "match_result_contests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    contested_by = Column(Integer, ForeignKey("players.id"), nullable=False)
    reason = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("match_id", "contested_by", name="uq_match_result_contests_match_player"),
    )


class RankingHistory(Base):
    """Append-only log of rating changes, one row per player per counted match."""

    __tablename__ = "ranking_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    points_before = Column(Integer, nullable=False)
    points_after = Column(Integer, nullable=False)
    points_change = Column(Integer, nullable=False)
    category = Column(String, nullable=True)  # Category after the change
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    # Relationships
    player = relationship("Player", back_populates="ranking_history")

    __table_args__ = (
        UniqueConstraint("player_id", "match_id", name="uq_ranking_history_player_match"),
        Index("idx_ranking_history_player_created", "player_id", "created_at"),
    )


class RegionStats(Base):
    """Inter-regional results per (state, city). Informational only."""

    __tablename__ = "region_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    state = Column(String, nullable=False)
    city = Column(String, nullable=False)
    inter_regional_matches = Column(Integer, default=0, nullable=False)
    inter_regional_wins = Column(Integer, default=0, nullable=False)

    __table_args__ = (UniqueConstraint("state", "city", name="uq_region_stats_state_city"),)
