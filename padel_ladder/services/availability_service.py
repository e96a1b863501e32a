"""
Availability helpers.

merge_availability intersects weekly availability maps; generate_time_proposals
turns a merged map into concrete candidate start times for a match.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
import pytz
from padel_ladder.utils.constants import (
    WEEKDAYS,
    PERIODS,
    PERIOD_START_HOURS,
    DEFAULT_PROPOSAL_HOUR,
    TIME_PROPOSAL_COUNT,
    TIME_PROPOSAL_MIN_DAYS_AHEAD,
    TIME_PROPOSAL_SEARCH_DAYS,
)
from padel_ladder.utils.datetime_utils import ensure_utc


def normalize_availability(availability: Optional[Dict]) -> Dict[str, List[str]]:
    """
    Clean a stored availability map.

    Unknown weekdays/periods are dropped, periods are de-duplicated and put in
    canonical order, and days without periods are omitted.
    """
    if not availability:
        return {}
    normalized = {}
    for day in WEEKDAYS:
        periods = availability.get(day) or []
        kept = [p for p in PERIODS if p in periods]
        if kept:
            normalized[day] = kept
    return normalized


def merge_availability(availabilities: Iterable[Optional[Dict]]) -> Dict[str, List[str]]:
    """
    Intersect the availability of several players.

    For each weekday the result holds the periods every player has free; days
    with an empty intersection are left out. A player with no availability
    makes the result empty, as does an empty input.

    Args:
        availabilities: Weekly maps like {"monday": ["morning", "evening"]}

    Returns:
        Common availability in canonical weekday/period order
    """
    maps = [normalize_availability(a) for a in availabilities]
    if not maps:
        return {}

    merged = {}
    for day in WEEKDAYS:
        common = set(PERIODS)
        for availability in maps:
            common &= set(availability.get(day, []))
            if not common:
                break
        if common:
            merged[day] = [p for p in PERIODS if p in common]
    return merged


def generate_time_proposals(
    common_availability: Optional[Dict],
    now: datetime,
    count: int = TIME_PROPOSAL_COUNT,
) -> List[datetime]:
    """
    Candidate start times for a match, earliest first.

    Slots come from the common availability and start no earlier than
    TIME_PROPOSAL_MIN_DAYS_AHEAD days (elapsed time) after now; the search
    covers TIME_PROPOSAL_SEARCH_DAYS days from there. Each period starts at its
    PERIOD_START_HOURS hour (UTC). With no common availability the
    next `count` calendar days at DEFAULT_PROPOSAL_HOUR are proposed instead.
    """
    now = ensure_utc(now)
    today = now.date()
    earliest = now + timedelta(days=TIME_PROPOSAL_MIN_DAYS_AHEAD)
    availability = normalize_availability(common_availability)

    proposals: List[datetime] = []
    if availability:
        for offset in range(TIME_PROPOSAL_SEARCH_DAYS):
            day = earliest.date() + timedelta(days=offset)
            for period in availability.get(WEEKDAYS[day.weekday()], []):
                slot = _at_hour(day, PERIOD_START_HOURS[period])
                if slot < earliest:
                    continue
                proposals.append(slot)
                if len(proposals) == count:
                    return proposals

    if proposals:
        return proposals

    return [
        _at_hour(today + timedelta(days=offset), DEFAULT_PROPOSAL_HOUR)
        for offset in range(1, count + 1)
    ]


def _at_hour(day, hour: int) -> datetime:
    return pytz.UTC.localize(datetime(day.year, day.month, day.day, hour, 0, 0))
