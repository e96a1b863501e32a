"""
Completion service: validates a reported result, applies rating changes and
closes the match. Participants can contest a completed result afterwards.

Everything for one result (four players, history rows, league standings,
region stats and the match itself) is written in the caller's transaction,
so a failure anywhere leaves nothing half-applied.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import (
    League,
    LeagueRanking,
    Match,
    MatchStatus,
    Player,
    RankingHistory,
    RegionStats,
    ResultContest,
    Team,
)
from padel_ladder.services import rating_service
from padel_ladder.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    storage_errors,
)
from padel_ladder.services.match_service import get_match_for_update
from padel_ladder.utils.constants import LEAGUE_WIN_POINTS, LEAGUE_LOSS_POINTS
from padel_ladder.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = {MatchStatus.SCHEDULING.value, MatchStatus.SCHEDULED.value}
VALID_TEAMS = {t.value for t in Team}


# ============================================================================
# Validation
# ============================================================================

def _is_score(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_result(
    sets: List[Dict],
    winner_team: str,
    team_a_score: Optional[int] = None,
    team_b_score: Optional[int] = None,
) -> Tuple[List[Dict], int, int]:
    """
    Check a reported result for internal consistency.

    Args:
        sets: Per-set games, each {"team_a_score": int, "team_b_score": int}
        winner_team: 'team_a' or 'team_b'
        team_a_score: Optional sets won by team A, as reported
        team_b_score: Optional sets won by team B, as reported

    Returns:
        (numbered sets, sets won by A, sets won by B)

    Raises:
        InvalidInputError: On any inconsistency
    """
    if winner_team not in VALID_TEAMS:
        raise InvalidInputError(f"Invalid winner team: {winner_team}")
    if not sets:
        raise InvalidInputError("At least one set is required")

    numbered = []
    a_sets = b_sets = 0
    for number, s in enumerate(sets, start=1):
        a_games = s.get("team_a_score")
        b_games = s.get("team_b_score")
        if not _is_score(a_games) or not _is_score(b_games):
            raise InvalidInputError(f"Set {number}: scores must be non-negative integers")
        if a_games == b_games:
            raise InvalidInputError(f"Set {number} cannot end in a tie")
        if a_games > b_games:
            a_sets += 1
        else:
            b_sets += 1
        numbered.append({"set_number": number, "team_a_score": a_games, "team_b_score": b_games})

    if a_sets == b_sets:
        raise InvalidInputError("Sets are tied; the match has no winner")
    actual_winner = Team.TEAM_A.value if a_sets > b_sets else Team.TEAM_B.value
    if winner_team != actual_winner:
        raise InvalidInputError("Declared winner did not win more sets")

    if team_a_score is not None or team_b_score is not None:
        if team_a_score is None or team_b_score is None:
            raise InvalidInputError("Both final scores are required when one is given")
        if (team_a_score, team_b_score) != (a_sets, b_sets):
            raise InvalidInputError(
                f"Final score {team_a_score}-{team_b_score} does not match the sets ({a_sets}-{b_sets})"
            )
        if len(numbered) != team_a_score + team_b_score:
            raise InvalidInputError("Number of sets does not match the final score")

    return numbered, a_sets, b_sets


# ============================================================================
# Bookkeeping helpers
# ============================================================================

async def _load_players_for_update(session: AsyncSession, match: Match) -> Dict[int, Player]:
    ids = match.participant_ids
    result = await session.execute(
        select(Player).where(Player.id.in_(ids)).order_by(Player.id).with_for_update()
    )
    players = {p.id: p for p in result.scalars().all()}
    missing = [pid for pid in ids if pid not in players]
    if missing:
        raise NotFoundError(f"Player profile(s) not found: {missing}")
    return players


def _apply_rating(player: Player, delta: int, won: bool, match_id: int) -> RankingHistory:
    """Apply a delta to one player and return the history row for it."""
    before = player.ranking_points
    after = rating_service.apply_delta(before, delta)

    player.ranking_points = after
    player.total_matches = (player.total_matches or 0) + 1
    if won:
        player.total_wins = (player.total_wins or 0) + 1
    player.provisional_games_played = (player.provisional_games_played or 0) + 1
    player.is_provisional = rating_service.is_provisional(player.provisional_games_played)
    player.category = rating_service.category_for_rating(after)

    return RankingHistory(
        player_id=player.id,
        match_id=match_id,
        points_before=before,
        points_after=after,
        points_change=after - before,
        category=player.category,
        created_at=utcnow(),
    )


async def update_league_rankings(
    session: AsyncSession, league_id: int, winners: List[int], losers: List[int]
) -> None:
    """League-local standings: +3 points for a win, +1 for a loss."""
    player_ids = winners + losers
    result = await session.execute(
        select(LeagueRanking).where(
            LeagueRanking.league_id == league_id,
            LeagueRanking.player_id.in_(player_ids),
        )
    )
    rows = {r.player_id: r for r in result.scalars().all()}

    for player_id in player_ids:
        row = rows.get(player_id)
        if row is None:
            row = LeagueRanking(
                league_id=league_id, player_id=player_id, points=0, matches_played=0, wins=0, losses=0
            )
            session.add(row)
        row.matches_played += 1
        if player_id in winners:
            row.wins += 1
            row.points += LEAGUE_WIN_POINTS
        else:
            row.losses += 1
            row.points += LEAGUE_LOSS_POINTS


async def record_inter_regional(
    session: AsyncSession,
    team_regions: Dict[str, set],
    winner_team: str,
) -> None:
    """
    Count an inter-regional result for each team that comes from one known region.

    Informational only; never feeds back into points.
    """
    for team, regions in team_regions.items():
        if len(regions) != 1:
            continue
        state, city = next(iter(regions))
        if not state or not city:
            continue
        result = await session.execute(
            select(RegionStats).where(RegionStats.state == state, RegionStats.city == city)
        )
        stats = result.scalar_one_or_none()
        if stats is None:
            stats = RegionStats(state=state, city=city, inter_regional_matches=0, inter_regional_wins=0)
            session.add(stats)
        stats.inter_regional_matches += 1
        if team == winner_team:
            stats.inter_regional_wins += 1


# ============================================================================
# Completion
# ============================================================================

@storage_errors
async def submit_match_result(
    session: AsyncSession,
    match_id: int,
    player_id: int,
    sets: List[Dict],
    winner_team: str,
    team_a_score: Optional[int] = None,
    team_b_score: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Complete a match with its result and update ratings.

    Matches in a league that does not affect the regional ranking only update
    the league standings; player ratings and history are left untouched and
    the returned deltas are zero.

    Returns:
        {"match_id", "team_a_delta", "team_b_delta", "ranking_applied"}

    Raises:
        NotFoundError: Unknown match or missing player profile
        ForbiddenError: Caller is not a participant
        ConflictError: Match is not awaiting a result
        InvalidInputError: Inconsistent sets/scores
    """
    match = await get_match_for_update(session, match_id)
    if player_id not in match.participant_ids:
        raise ForbiddenError("You are not a participant of this match")
    if match.status not in COMPLETABLE_STATUSES:
        raise ConflictError(f"Match is {match.status}; results can only be reported once it is approved")

    numbered_sets, a_sets, b_sets = validate_result(sets, winner_team, team_a_score, team_b_score)
    players = await _load_players_for_update(session, match)

    league = await session.get(League, match.league_id) if match.league_id else None
    ranking_applied = league is None or league.affects_regional_ranking

    team_a = [players[pid] for pid in match.team_a_ids]
    team_b = [players[pid] for pid in match.team_b_ids]
    deltas = rating_service.calculate_match_deltas(
        numbered_sets,
        winner_team,
        [p.ranking_points for p in team_a],
        [p.ranking_points for p in team_b],
        team_a_was_duo=match.team_a_was_duo,
        team_b_was_duo=match.team_b_was_duo,
        provisional_involved=any(
            rating_service.is_provisional(p.provisional_games_played or 0) for p in team_a + team_b
        ),
    )
    team_a_delta, team_b_delta = (deltas["team_a"], deltas["team_b"]) if ranking_applied else (0, 0)

    if ranking_applied:
        for team, delta, roster in (
            (Team.TEAM_A.value, team_a_delta, team_a),
            (Team.TEAM_B.value, team_b_delta, team_b),
        ):
            for player in roster:
                session.add(_apply_rating(player, delta, team == winner_team, match.id))
    else:
        logger.info(f"Match {match_id} is in league {league.id}, which does not affect the regional ranking")

    winners = match.team_a_ids if winner_team == Team.TEAM_A.value else match.team_b_ids
    losers = match.team_b_ids if winner_team == Team.TEAM_A.value else match.team_a_ids
    if league is not None:
        await update_league_rankings(session, league.id, winners, losers)

    team_regions = {
        Team.TEAM_A.value: {(p.state, p.city) for p in team_a},
        Team.TEAM_B.value: {(p.state, p.city) for p in team_b},
    }
    inter_regional = rating_service.is_inter_regional(
        list(team_regions[Team.TEAM_A.value]), list(team_regions[Team.TEAM_B.value])
    )
    if inter_regional:
        await record_inter_regional(session, team_regions, winner_team)

    match.status = MatchStatus.COMPLETED.value
    match.sets = numbered_sets
    match.team_a_score = a_sets
    match.team_b_score = b_sets
    match.winner_team = winner_team
    match.team_a_points = team_a_delta
    match.team_b_points = team_b_delta
    match.is_inter_regional = inter_regional
    match.completed_at = now or utcnow()
    await session.flush()

    logger.info(
        f"Match {match_id} completed: {winner_team} won {a_sets}-{b_sets}, "
        f"deltas A {team_a_delta:+d} / B {team_b_delta:+d}"
    )
    return {
        "match_id": match_id,
        "team_a_delta": team_a_delta,
        "team_b_delta": team_b_delta,
        "ranking_applied": ranking_applied,
    }


# ============================================================================
# Contests
# ============================================================================

@storage_errors
async def contest_match_result(session: AsyncSession, match_id: int, player_id: int, reason: str) -> Dict:
    """
    Record a participant's dispute of a completed match's result.

    The result, ratings and history stay as they are; the contest is kept
    for review. Each participant can contest a match once.

    Raises:
        InvalidInputError: Blank reason
        NotFoundError: Unknown match
        ForbiddenError: Caller is not a participant
        ConflictError: Match is not completed, or the caller already contested it
    """
    reason = (reason or "").strip()
    if not reason:
        raise InvalidInputError("A reason is required to contest a result")

    match = await get_match_for_update(session, match_id)
    if player_id not in match.participant_ids:
        raise ForbiddenError("You are not a participant of this match")
    if match.status != MatchStatus.COMPLETED.value:
        raise ConflictError(f"Match is {match.status}; only completed results can be contested")

    existing = await session.execute(
        select(ResultContest.id).where(
            ResultContest.match_id == match_id,
            ResultContest.contested_by == player_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("You already contested this result")

    contest = ResultContest(match_id=match_id, contested_by=player_id, reason=reason, created_at=utcnow())
    session.add(contest)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("You already contested this result")

    logger.info(f"Player {player_id} contested the result of match {match_id}")
    return {
        "id": contest.id,
        "match_id": match_id,
        "contested_by": player_id,
        "reason": reason,
        "created_at": isoformat_or_none(contest.created_at),
    }
