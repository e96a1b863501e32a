"""
Tests for result submission, rating updates and the ranking history.
"""

import pytest
from sqlalchemy import select

from padel_ladder.database.models import (
    League,
    LeagueRanking,
    Match,
    Player,
    RankingHistory,
    RegionStats,
    ResultContest,
)
from padel_ladder.services import approval_service, completion_service, history_service
from padel_ladder.services.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError

CONVINCING_A_WIN = [{"team_a_score": 6, "team_b_score": 1}, {"team_a_score": 3, "team_b_score": 1}]


async def approved_match(db_session, make_pending_match, **player_kwargs):
    match, ids = await make_pending_match(**player_kwargs)
    for pid in ids:
        await approval_service.cast_vote(db_session, match["id"], pid, True, tie_break=min)
    return match["id"], ids[:2], ids[2:]


async def ratings(db_session, ids):
    result = await db_session.execute(select(Player).where(Player.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}


# ============================================================================
# Validation
# ============================================================================

class TestValidateResult:
    def test_valid_result_is_numbered(self):
        numbered, a_sets, b_sets = completion_service.validate_result(
            [{"team_a_score": 6, "team_b_score": 4}, {"team_a_score": 3, "team_b_score": 6},
             {"team_a_score": 7, "team_b_score": 5}],
            "team_a",
            team_a_score=2,
            team_b_score=1,
        )
        assert [s["set_number"] for s in numbered] == [1, 2, 3]
        assert (a_sets, b_sets) == (2, 1)

    @pytest.mark.parametrize(
        "sets,winner,a_score,b_score",
        [
            ([], "team_a", None, None),
            ([{"team_a_score": 6, "team_b_score": 6}], "team_a", None, None),
            ([{"team_a_score": -1, "team_b_score": 6}], "team_b", None, None),
            ([{"team_a_score": "6", "team_b_score": 2}], "team_a", None, None),
            ([{"team_a_score": 6, "team_b_score": 2}], "team_b", None, None),
            ([{"team_a_score": 6, "team_b_score": 2}, {"team_a_score": 2, "team_b_score": 6}], "team_a", None, None),
            ([{"team_a_score": 6, "team_b_score": 2}], "team_a", 2, 0),
            ([{"team_a_score": 6, "team_b_score": 2}], "team_a", 1, None),
            ([{"team_a_score": 6, "team_b_score": 2}], "team_c", None, None),
        ],
        ids=[
            "no-sets",
            "tied-set",
            "negative-games",
            "non-integer-games",
            "wrong-winner",
            "tied-on-sets",
            "final-score-mismatch",
            "half-final-score",
            "unknown-team",
        ],
    )
    def test_inconsistent_results_are_rejected(self, sets, winner, a_score, b_score):
        with pytest.raises(InvalidInputError):
            completion_service.validate_result(sets, winner, a_score, b_score)


# ============================================================================
# Completion
# ============================================================================

@pytest.mark.asyncio
async def test_completion_updates_ratings_and_history(db_session, make_pending_match):
    match_id, team_a, team_b = await approved_match(db_session, make_pending_match)

    result = await completion_service.submit_match_result(
        db_session, match_id, team_b[0], CONVINCING_A_WIN, "team_a"
    )

    assert result == {"match_id": match_id, "team_a_delta": 29, "team_b_delta": -17, "ranking_applied": True}

    players = await ratings(db_session, team_a + team_b)
    for pid in team_a:
        assert players[pid].ranking_points == 1029
        assert players[pid].total_wins == 1
        assert players[pid].category == "3ª"
    for pid in team_b:
        assert players[pid].ranking_points == 983
        assert players[pid].total_wins == 0
        assert players[pid].category == "4ª"
    assert all(p.total_matches == 1 for p in players.values())

    stored = await db_session.get(Match, match_id)
    assert stored.status == "completed"
    assert (stored.team_a_score, stored.team_b_score) == (2, 0)
    assert stored.winner_team == "team_a"
    assert (stored.team_a_points, stored.team_b_points) == (29, -17)
    assert stored.sets[0] == {"set_number": 1, "team_a_score": 6, "team_b_score": 1}
    assert stored.completed_at is not None
    assert stored.is_inter_regional is False

    rows = (await db_session.execute(
        select(RankingHistory).where(RankingHistory.match_id == match_id)
    )).scalars().all()
    assert len(rows) == 4
    assert all(r.points_after - r.points_before == r.points_change for r in rows)

    history = await history_service.get_ranking_history(db_session, team_a[0])
    assert history[0]["match_id"] == match_id
    assert history[0]["points_before"] == 1000
    assert history[0]["points_after"] == 1029


@pytest.mark.asyncio
async def test_scheduled_match_can_be_completed(db_session, make_pending_match):
    from padel_ladder.services import scheduling_service
    from padel_ladder.utils.datetime_utils import utcnow
    from datetime import timedelta

    match_id, team_a, team_b = await approved_match(db_session, make_pending_match)
    captain = (await db_session.get(Match, match_id)).captain_id
    await scheduling_service.schedule_match(db_session, match_id, captain, utcnow() + timedelta(days=2))

    result = await completion_service.submit_match_result(
        db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a", team_a_score=2, team_b_score=0
    )
    assert result["team_a_delta"] == 29


@pytest.mark.asyncio
async def test_provisional_players_move_faster(db_session, make_pending_match):
    match_id, team_a, team_b = await approved_match(
        db_session, make_pending_match, provisional_games_played=0
    )

    result = await completion_service.submit_match_result(
        db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a"
    )

    # 28.75 x 1.8 and 17.25 x 1.8
    assert (result["team_a_delta"], result["team_b_delta"]) == (52, -31)
    players = await ratings(db_session, team_a + team_b)
    assert all(p.provisional_games_played == 1 and p.is_provisional for p in players.values())


@pytest.mark.asyncio
async def test_rating_never_drops_below_zero(db_session, make_pending_match):
    match_id, team_a, team_b = await approved_match(db_session, make_pending_match, ranking_points=10)

    await completion_service.submit_match_result(db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a")

    players = await ratings(db_session, team_b)
    assert all(p.ranking_points == 0 for p in players.values())
    rows = (await db_session.execute(
        select(RankingHistory).where(RankingHistory.player_id == team_b[0])
    )).scalars().all()
    assert rows[0].points_change == -10


@pytest.mark.asyncio
async def test_league_that_ignores_the_ranking(db_session, make_pending_match):
    match_id, team_a, team_b = await approved_match(db_session, make_pending_match)
    league = League(name="Friday Social", affects_regional_ranking=False)
    db_session.add(league)
    await db_session.flush()
    (await db_session.get(Match, match_id)).league_id = league.id

    result = await completion_service.submit_match_result(
        db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a"
    )

    assert result == {"match_id": match_id, "team_a_delta": 0, "team_b_delta": 0, "ranking_applied": False}
    players = await ratings(db_session, team_a + team_b)
    assert all(p.ranking_points == 1000 for p in players.values())
    assert (await db_session.execute(select(RankingHistory))).scalars().all() == []

    standings = {
        r.player_id: r for r in (await db_session.execute(
            select(LeagueRanking).where(LeagueRanking.league_id == league.id)
        )).scalars().all()
    }
    assert {pid: standings[pid].points for pid in team_a} == {pid: 3 for pid in team_a}
    assert {pid: standings[pid].points for pid in team_b} == {pid: 1 for pid in team_b}
    assert all(standings[pid].wins == 1 for pid in team_a)
    assert all(standings[pid].losses == 1 for pid in team_b)


@pytest.mark.asyncio
async def test_ranked_league_updates_both(db_session, make_pending_match):
    match_id, team_a, team_b = await approved_match(db_session, make_pending_match)
    league = League(name="City League", affects_regional_ranking=True)
    db_session.add(league)
    await db_session.flush()
    (await db_session.get(Match, match_id)).league_id = league.id

    result = await completion_service.submit_match_result(
        db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a"
    )

    assert result["ranking_applied"] is True
    assert result["team_a_delta"] == 29
    count = len((await db_session.execute(select(LeagueRanking))).scalars().all())
    assert count == 4


@pytest.mark.asyncio
async def test_inter_regional_result_is_recorded(db_session, make_player):
    home = [await make_player(state="SP", city="Sao Paulo") for _ in range(2)]
    away = [await make_player(state="RJ", city="Rio de Janeiro") for _ in range(2)]
    match = Match(
        team_a_player1_id=home[0].id,
        team_a_player2_id=home[1].id,
        team_b_player1_id=away[0].id,
        team_b_player2_id=away[1].id,
        status="scheduled",
    )
    db_session.add(match)
    await db_session.flush()

    await completion_service.submit_match_result(db_session, match.id, home[0].id, CONVINCING_A_WIN, "team_a")

    assert match.is_inter_regional is True
    stats = {
        (s.state, s.city): s for s in (await db_session.execute(select(RegionStats))).scalars().all()
    }
    assert stats[("SP", "Sao Paulo")].inter_regional_matches == 1
    assert stats[("SP", "Sao Paulo")].inter_regional_wins == 1
    assert stats[("RJ", "Rio de Janeiro")].inter_regional_matches == 1
    assert stats[("RJ", "Rio de Janeiro")].inter_regional_wins == 0


@pytest.mark.asyncio
async def test_pending_match_cannot_be_completed(db_session, make_pending_match):
    match, ids = await make_pending_match()
    with pytest.raises(ConflictError):
        await completion_service.submit_match_result(db_session, match["id"], ids[0], CONVINCING_A_WIN, "team_a")


@pytest.mark.asyncio
async def test_result_is_accepted_only_once(db_session, make_pending_match):
    match_id, team_a, _ = await approved_match(db_session, make_pending_match)
    await completion_service.submit_match_result(db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a")

    with pytest.raises(ConflictError):
        await completion_service.submit_match_result(db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a")


@pytest.mark.asyncio
async def test_outsider_and_unknown_match(db_session, make_pending_match, make_player):
    match_id, _, _ = await approved_match(db_session, make_pending_match)
    outsider = await make_player()

    with pytest.raises(ForbiddenError):
        await completion_service.submit_match_result(db_session, match_id, outsider.id, CONVINCING_A_WIN, "team_a")
    with pytest.raises(NotFoundError):
        await completion_service.submit_match_result(db_session, 9999, outsider.id, CONVINCING_A_WIN, "team_a")


@pytest.mark.asyncio
async def test_invalid_result_leaves_the_match_open(db_session, make_pending_match):
    match_id, team_a, _ = await approved_match(db_session, make_pending_match)

    with pytest.raises(InvalidInputError):
        await completion_service.submit_match_result(
            db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_b"
        )

    stored = await db_session.get(Match, match_id)
    assert stored.status == "scheduling"
    assert (await db_session.execute(select(RankingHistory))).scalars().all() == []


# ============================================================================
# Contests
# ============================================================================

async def completed_match(db_session, make_pending_match):
    match_id, team_a, team_b = await approved_match(db_session, make_pending_match)
    await completion_service.submit_match_result(db_session, match_id, team_a[0], CONVINCING_A_WIN, "team_a")
    return match_id, team_a, team_b


@pytest.mark.asyncio
async def test_participant_contests_a_completed_result(db_session, make_pending_match):
    match_id, _, team_b = await completed_match(db_session, make_pending_match)

    contest = await completion_service.contest_match_result(db_session, match_id, team_b[0], "  Second set was 6-4  ")

    assert contest["match_id"] == match_id
    assert contest["contested_by"] == team_b[0]
    assert contest["reason"] == "Second set was 6-4"
    stored = (await db_session.execute(select(ResultContest))).scalars().all()
    assert [(c.match_id, c.contested_by) for c in stored] == [(match_id, team_b[0])]
    # The result itself stands
    assert (await db_session.get(Match, match_id)).status == "completed"


@pytest.mark.asyncio
async def test_each_player_contests_once(db_session, make_pending_match):
    match_id, team_a, team_b = await completed_match(db_session, make_pending_match)
    await completion_service.contest_match_result(db_session, match_id, team_b[0], "Wrong score")

    with pytest.raises(ConflictError, match="already contested"):
        await completion_service.contest_match_result(db_session, match_id, team_b[0], "Still wrong")
    # Teammates and opponents keep their own contest
    await completion_service.contest_match_result(db_session, match_id, team_b[1], "Wrong score")
    await completion_service.contest_match_result(db_session, match_id, team_a[1], "We lost the third set")


@pytest.mark.asyncio
async def test_only_participants_contest(db_session, make_pending_match, make_player):
    match_id, _, _ = await completed_match(db_session, make_pending_match)
    outsider = await make_player()

    with pytest.raises(ForbiddenError):
        await completion_service.contest_match_result(db_session, match_id, outsider.id, "I saw it")
    with pytest.raises(NotFoundError):
        await completion_service.contest_match_result(db_session, 9999, outsider.id, "I saw it")


@pytest.mark.asyncio
async def test_open_match_cannot_be_contested(db_session, make_pending_match):
    match_id, team_a, _ = await approved_match(db_session, make_pending_match)

    with pytest.raises(ConflictError, match="completed"):
        await completion_service.contest_match_result(db_session, match_id, team_a[0], "Too early")


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", ["", "   ", None])
async def test_contest_needs_a_reason(db_session, make_pending_match, reason):
    match_id, _, team_b = await completed_match(db_session, make_pending_match)

    with pytest.raises(InvalidInputError):
        await completion_service.contest_match_result(db_session, match_id, team_b[0], reason)
    assert (await db_session.execute(select(ResultContest))).scalars().all() == []
