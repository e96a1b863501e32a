"""
Shared pytest configuration for padel_ladder tests.

Service tests run against a fresh in-memory SQLite database per test
(sqlite+aiosqlite), built from the ORM metadata. The app engine is pointed
at SQLite too so importing the API never needs a PostgreSQL server.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MATCHMAKING_SWEEP_INTERVAL_SECONDS", "0")

from datetime import timedelta  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from padel_ladder.database.db import Base  # noqa: E402
from padel_ladder.database.models import Player  # noqa: E402
from padel_ladder.utils.datetime_utils import utcnow  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

EVERY_EVENING = {
    day: ["evening"]
    for day in ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
}


@pytest_asyncio.fixture
async def db_session():
    """Fresh database and session for one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def make_player(db_session):
    """
    Factory for players. Defaults: established (not provisional) player in
    Sao Paulo / SP, free every evening.
    """
    counter = {"n": 0}

    async def _make(
        ranking_points: int = 1000,
        gender: str = "male",
        state: str = "SP",
        city: str = "Sao Paulo",
        preferred_side=None,
        availability=None,
        provisional_games_played: int = 10,
    ) -> Player:
        counter["n"] += 1
        player = Player(
            full_name=f"Player {counter['n']}",
            gender=gender,
            state=state,
            city=city,
            preferred_side=preferred_side,
            ranking_points=ranking_points,
            provisional_games_played=provisional_games_played,
            is_provisional=provisional_games_played < 5,
            availability=EVERY_EVENING if availability is None else availability,
            created_at=utcnow() - timedelta(days=30),
        )
        db_session.add(player)
        await db_session.flush()
        return player

    return _make


@pytest_asyncio.fixture
async def make_pending_match(db_session, make_player):
    """
    Factory for a proposed match: four equally rated solos join the queue and
    one sweep pairs them. Returns the match dict and its participant ids in
    slot order (team A first).
    """
    from padel_ladder.services import matchmaking_service, queue_service

    async def _make(**player_kwargs):
        players = [await make_player(**player_kwargs) for _ in range(4)]
        for player in players:
            await queue_service.join_queue(db_session, player.id, player.gender)
        created = await matchmaking_service.run_matchmaking_sweep(db_session)
        match = created[0]
        participant_ids = [s["player_id"] for s in match["team_a"] + match["team_b"]]
        return match, participant_ids

    return _make
