"""
Rating calculation service.
Turns a completed match into symmetric ranking point deltas.

Everything here is pure: no database access, no clock.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple
from padel_ladder.utils.constants import (
    BASE_POINTS,
    LOSER_POINTS_RATIO,
    SCORE_MARGIN_PIVOT,
    SCORE_MARGIN_STEP,
    SCORE_MULTIPLIER_MIN,
    SCORE_MULTIPLIER_MAX,
    RATING_DIFF_SCALE,
    RATING_DIFF_WEIGHT,
    RATING_MULTIPLIER_MIN,
    RATING_MULTIPLIER_MAX,
    DUO_WINNER_FACTOR,
    PROVISIONAL_GAMES,
    PROVISIONAL_BONUS_HIGH_MARGIN,
    PROVISIONAL_BONUS_MID_MARGIN,
    PROVISIONAL_BONUS_HIGH,
    PROVISIONAL_BONUS_MID,
    PROVISIONAL_BONUS_LOW,
    WINNER_POINTS_RANGE,
    WINNER_POINTS_RANGE_PROVISIONAL,
    LOSER_POINTS_RANGE,
    LOSER_POINTS_RANGE_PROVISIONAL,
    MIN_RATING,
    CATEGORY_BANDS,
    TOP_CATEGORY,
)


# ============================================================================
# Helper Functions
# ============================================================================

def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (21.5 -> 22)."""
    return int(math.floor(value + 0.5))


def team_average(ratings: Sequence[float]) -> float:
    """Average rating of a team."""
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def games_totals(sets: List[Dict]) -> Tuple[int, int]:
    """Total games won by team A and team B across all sets."""
    team_a_games = sum(int(s["team_a_score"]) for s in sets)
    team_b_games = sum(int(s["team_b_score"]) for s in sets)
    return team_a_games, team_b_games


def score_margin(sets: List[Dict], winner_team: str) -> int:
    """
    Winner's total games minus loser's total games.

    Args:
        sets: Per-set scores, each {"team_a_score": int, "team_b_score": int}
        winner_team: 'team_a' or 'team_b'
    """
    team_a_games, team_b_games = games_totals(sets)
    if winner_team == "team_a":
        return team_a_games - team_b_games
    return team_b_games - team_a_games


# ============================================================================
# Multipliers
# ============================================================================

def score_multiplier(margin: int) -> float:
    """
    Reward convincing wins: 1.0 at a four-game margin, +/-5% per game away from it.

    Clamped to [0.7, 1.5].
    """
    raw = 1 + (margin - SCORE_MARGIN_PIVOT) * SCORE_MARGIN_STEP
    return clamp(raw, SCORE_MULTIPLIER_MIN, SCORE_MULTIPLIER_MAX)


def rating_multiplier(winner_rating: float, loser_rating: float) -> float:
    """
    Scale points by the strength gap between the teams.

    Upsets (weaker team wins) push the multiplier above 1.0, expected
    results pull it below. Clamped to [0.6, 1.6].
    """
    raw = 1 + ((loser_rating - winner_rating) / RATING_DIFF_SCALE) * RATING_DIFF_WEIGHT
    return clamp(raw, RATING_MULTIPLIER_MIN, RATING_MULTIPLIER_MAX)


def loser_rating_multiplier(winner_rating: float, loser_rating: float) -> float:
    """
    Loser-side mirror of rating_multiplier.

    Taken from the loser's point of view the gap has the opposite sign, and it
    is applied with the opposite sign: a stronger team losing to a weaker one
    gives up more points, a weaker team losing to a stronger one gives up fewer.
    """
    raw = 1 - ((winner_rating - loser_rating) / RATING_DIFF_SCALE) * RATING_DIFF_WEIGHT
    return clamp(raw, RATING_MULTIPLIER_MIN, RATING_MULTIPLIER_MAX)


def provisional_bonus(margin: int) -> float:
    """Amplification applied when any of the four players is still provisional."""
    if margin >= PROVISIONAL_BONUS_HIGH_MARGIN:
        return PROVISIONAL_BONUS_HIGH
    if margin >= PROVISIONAL_BONUS_MID_MARGIN:
        return PROVISIONAL_BONUS_MID
    return PROVISIONAL_BONUS_LOW


# ============================================================================
# Points
# ============================================================================

def calculate_points_change(
    margin: int,
    winner_rating: float,
    loser_rating: float,
    winner_was_duo: bool = False,
    provisional_involved: bool = False,
) -> Tuple[int, int]:
    """
    Calculate the ranking point deltas for one match.

    Args:
        margin: Winner's total games minus loser's total games
        winner_rating: Average rating of the winning team
        loser_rating: Average rating of the losing team
        winner_was_duo: Whether the winning team queued as a pre-formed duo
        provisional_involved: Whether any of the four players is provisional

    Returns:
        (winner_delta, loser_delta); winner_delta > 0 and loser_delta < 0
    """
    s_mult = score_multiplier(margin)

    winner_raw = BASE_POINTS * s_mult * rating_multiplier(winner_rating, loser_rating)
    if winner_was_duo:
        winner_raw *= DUO_WINNER_FACTOR

    loser_raw = (
        BASE_POINTS
        * LOSER_POINTS_RATIO
        * s_mult
        * loser_rating_multiplier(winner_rating, loser_rating)
    )

    if provisional_involved:
        bonus = provisional_bonus(margin)
        winner_raw *= bonus
        loser_raw *= bonus
        winner_range = WINNER_POINTS_RANGE_PROVISIONAL
        loser_range = LOSER_POINTS_RANGE_PROVISIONAL
    else:
        winner_range = WINNER_POINTS_RANGE
        loser_range = LOSER_POINTS_RANGE

    winner_points = int(clamp(round_half_up(winner_raw), *winner_range))
    loser_points = int(clamp(round_half_up(loser_raw), *loser_range))
    return winner_points, -loser_points


def calculate_match_deltas(
    sets: List[Dict],
    winner_team: str,
    team_a_ratings: Sequence[float],
    team_b_ratings: Sequence[float],
    team_a_was_duo: bool = False,
    team_b_was_duo: bool = False,
    provisional_involved: bool = False,
) -> Dict[str, int]:
    """
    Per-team deltas for a completed match.

    Returns:
        {"team_a": delta, "team_b": delta, "margin": games margin}
    """
    margin = score_margin(sets, winner_team)
    team_a_avg = team_average(team_a_ratings)
    team_b_avg = team_average(team_b_ratings)

    if winner_team == "team_a":
        winner_delta, loser_delta = calculate_points_change(
            margin, team_a_avg, team_b_avg, team_a_was_duo, provisional_involved
        )
        return {"team_a": winner_delta, "team_b": loser_delta, "margin": margin}

    winner_delta, loser_delta = calculate_points_change(
        margin, team_b_avg, team_a_avg, team_b_was_duo, provisional_involved
    )
    return {"team_a": loser_delta, "team_b": winner_delta, "margin": margin}


def apply_delta(rating: int, delta: int) -> int:
    """New rating after a delta, floored at zero."""
    return max(MIN_RATING, rating + delta)


# ============================================================================
# Player standing
# ============================================================================

def category_for_rating(rating: float) -> str:
    """Category band label for a rating."""
    for upper_bound, label in CATEGORY_BANDS:
        if rating < upper_bound:
            return label
    return TOP_CATEGORY


def is_provisional(provisional_games_played: int) -> bool:
    """Players stay provisional until they have PROVISIONAL_GAMES counted matches."""
    return provisional_games_played < PROVISIONAL_GAMES


def is_inter_regional(
    team_a_regions: Sequence[Tuple[Optional[str], Optional[str]]],
    team_b_regions: Sequence[Tuple[Optional[str], Optional[str]]],
) -> bool:
    """
    True when the two teams come from different (state, city) regions.

    Used only for region-strength bookkeeping; never affects points.
    """
    return set(team_a_regions) != set(team_b_regions)
