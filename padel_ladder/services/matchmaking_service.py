"""
Matchmaking engine.

Turns the pool of active queue entries into balanced four-player match
proposals. Planning is pure and works on PoolEntry snapshots; persisting a
proposal claims its four queue entries with one conditional UPDATE so two
concurrent sweeps can never consume the same entry.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from padel_ladder.database.models import (
    Match,
    MatchApproval,
    MatchStatus,
    Player,
    QueueEntry,
    QueueStatus,
    SchedulingStatus,
)
from padel_ladder.services import availability_service, side_service
from padel_ladder.services.errors import storage_errors
from padel_ladder.services.match_service import match_to_dict
from padel_ladder.utils.constants import (
    DUO_VS_DUO_MAX_DIFF,
    SOLO_MAX_SPREAD,
    SOLO_TEAM_MAX_DIFF,
    DUO_VS_SOLO_PAIR_MAX_DIFF,
)
from padel_ladder.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Ways to split four rating-sorted solos into two teams, in list order
SOLO_SPLITS = [
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
]


@dataclass
class PoolEntry:
    """Snapshot of an active queue entry joined with its player's profile."""

    entry_id: int
    player_id: int
    gender: str
    average_rating: float
    created_at: datetime
    partner_id: Optional[int] = None
    preferred_side: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    availability: Dict = field(default_factory=dict)


@dataclass
class Proposal:
    """A planned match: two teams of two entries, team order = slot order."""

    gender: str
    state: Optional[str]
    city: Optional[str]
    team_a: List[PoolEntry]
    team_b: List[PoolEntry]
    team_a_was_duo: bool
    team_b_was_duo: bool

    @property
    def entries(self) -> List[PoolEntry]:
        return self.team_a + self.team_b

    @property
    def team_a_average(self) -> float:
        return average_rating(self.team_a)

    @property
    def team_b_average(self) -> float:
        return average_rating(self.team_b)


# ============================================================================
# Planning (pure)
# ============================================================================

def average_rating(entries: List[PoolEntry]) -> float:
    """Mean rating of a group of entries."""
    return sum(e.average_rating for e in entries) / len(entries)


def bucket_key(entry: PoolEntry) -> Tuple:
    """Only entries sharing region and gender can meet."""
    return (entry.state or "", entry.city or "", entry.gender)


def split_duos_and_solos(
    entries: List[PoolEntry],
) -> Tuple[List[List[PoolEntry]], List[PoolEntry]]:
    """
    Separate mutually-confirmed duos from solos.

    Entries are expected in queue order (oldest first); duos keep the order of
    their earlier half. An entry naming a partner who has not named it back
    (or is not queued) is neither: it waits for the partner.
    """
    by_player = {e.player_id: e for e in entries}
    duos = []
    solos = []
    paired = set()

    for entry in entries:
        if entry.partner_id is None:
            solos.append(entry)
            continue
        if entry.player_id in paired:
            continue
        partner = by_player.get(entry.partner_id)
        if partner and partner.partner_id == entry.player_id and partner.player_id not in paired:
            duos.append([entry, partner])
            paired.update((entry.player_id, partner.player_id))

    return duos, solos


def pair_duos(
    duos: List[List[PoolEntry]],
) -> Tuple[List[Tuple[List[PoolEntry], List[PoolEntry]]], List[List[PoolEntry]]]:
    """
    Pair duos in queue order, two at a time.

    A pair whose averages differ by more than DUO_VS_DUO_MAX_DIFF is not
    forced; both duos sit out this pass. Returns (pairs, unpaired odd duo).
    """
    pending = list(duos)
    pairs = []
    while len(pending) >= 2:
        first = pending.pop(0)
        second = pending.pop(0)
        diff = abs(average_rating(first) - average_rating(second))
        if diff <= DUO_VS_DUO_MAX_DIFF:
            pairs.append((first, second))
        else:
            logger.debug(
                f"Duos {[e.player_id for e in first]} and {[e.player_id for e in second]} "
                f"set aside: rating difference {diff:.0f}"
            )
    return pairs, pending


def best_solo_split(four: List[PoolEntry]) -> Tuple[List[PoolEntry], List[PoolEntry]]:
    """
    Split four rating-sorted solos into two teams.

    Prefers splits where no team has two players insisting on the same side,
    then the highest side compatibility, then the smallest gap between team
    averages. Falls back to list order when no split is clean.
    """
    best = None
    best_rank = None
    for index, (team_a_idx, team_b_idx) in enumerate(SOLO_SPLITS):
        team_a = [four[i] for i in team_a_idx]
        team_b = [four[i] for i in team_b_idx]
        score_a = side_service.side_compatibility(team_a[0].preferred_side, team_a[1].preferred_side)
        score_b = side_service.side_compatibility(team_b[0].preferred_side, team_b[1].preferred_side)
        if score_a == 0 or score_b == 0:
            continue
        gap = abs(average_rating(team_a) - average_rating(team_b))
        rank = (-(score_a + score_b), gap, index)
        if best_rank is None or rank < best_rank:
            best, best_rank = (team_a, team_b), rank

    if best is None:
        return [four[0], four[1]], [four[2], four[3]]
    return best


def pair_solos(
    solos: List[PoolEntry],
) -> Tuple[List[Tuple[List[PoolEntry], List[PoolEntry]]], List[PoolEntry]]:
    """
    Form solo-vs-solo matches from the lowest-rated four, repeatedly.

    Stops for this pass at the first group that fails the spread or team
    balance threshold. Returns (team pairs, remaining solos sorted by rating).
    """
    remaining = sorted(solos, key=lambda e: (e.average_rating, e.created_at))
    pairs = []
    while len(remaining) >= 4:
        four = remaining[:4]
        spread = four[-1].average_rating - four[0].average_rating
        if spread > SOLO_MAX_SPREAD:
            logger.debug(f"Solo group {[e.player_id for e in four]} rejected: spread {spread:.0f}")
            break

        team_a, team_b = best_solo_split(four)
        gap = abs(average_rating(team_a) - average_rating(team_b))
        if gap > SOLO_TEAM_MAX_DIFF:
            logger.debug(f"Solo group {[e.player_id for e in four]} rejected: team gap {gap:.0f}")
            break

        pairs.append((team_a, team_b))
        remaining = remaining[4:]
    return pairs, remaining


def pair_duo_with_solos(
    duo: List[PoolEntry], solos: List[PoolEntry]
) -> Optional[List[PoolEntry]]:
    """
    Find the adjacent pair of rating-sorted solos closest to the duo's average.

    Returns the pair, or None if the closest one is more than
    DUO_VS_SOLO_PAIR_MAX_DIFF away.
    """
    ordered = sorted(solos, key=lambda e: (e.average_rating, e.created_at))
    duo_avg = average_rating(duo)
    best_pair = None
    best_diff = None
    for i in range(len(ordered) - 1):
        pair = [ordered[i], ordered[i + 1]]
        diff = abs(duo_avg - average_rating(pair))
        if best_diff is None or diff < best_diff:
            best_pair, best_diff = pair, diff

    if best_pair is None or best_diff > DUO_VS_SOLO_PAIR_MAX_DIFF:
        return None
    return best_pair


def plan_bucket(entries: List[PoolEntry]) -> List[Proposal]:
    """
    Plan all proposals for one (region, gender) bucket.

    Order of precedence: duo vs duo, then four solos, then one duo against a
    pair of solos.
    """
    if not entries:
        return []
    entries = sorted(entries, key=lambda e: (e.created_at, e.entry_id))
    sample = entries[0]

    def proposal(team_a, team_b, a_duo, b_duo):
        return Proposal(
            gender=sample.gender,
            state=sample.state,
            city=sample.city,
            team_a=team_a,
            team_b=team_b,
            team_a_was_duo=a_duo,
            team_b_was_duo=b_duo,
        )

    duos, solos = split_duos_and_solos(entries)
    proposals = []

    duo_pairs, leftover_duos = pair_duos(duos)
    for first, second in duo_pairs:
        proposals.append(proposal(first, second, True, True))

    solo_pairs, solos = pair_solos(solos)
    for team_a, team_b in solo_pairs:
        proposals.append(proposal(team_a, team_b, False, False))

    if leftover_duos and len(solos) >= 2:
        duo = leftover_duos[0]
        pair = pair_duo_with_solos(duo, solos)
        if pair:
            proposals.append(proposal(duo, pair, True, False))

    return proposals


def plan_matches(entries: List[PoolEntry]) -> List[Proposal]:
    """Plan proposals for the whole pool, bucket by bucket."""
    buckets = defaultdict(list)
    for entry in entries:
        buckets[bucket_key(entry)].append(entry)

    proposals = []
    for key in sorted(buckets):
        proposals.extend(plan_bucket(buckets[key]))
    return proposals


# ============================================================================
# Persistence
# ============================================================================

async def load_active_pool(session: AsyncSession) -> List[PoolEntry]:
    """Read active queue entries with the region and availability of their player."""
    result = await session.execute(
        select(
            QueueEntry.id,
            QueueEntry.player_id,
            QueueEntry.partner_id,
            QueueEntry.gender,
            QueueEntry.preferred_side,
            QueueEntry.average_rating,
            QueueEntry.created_at,
            Player.state,
            Player.city,
            Player.availability,
        )
        .join(Player, Player.id == QueueEntry.player_id)
        .where(QueueEntry.status == QueueStatus.ACTIVE.value)
        .order_by(QueueEntry.created_at, QueueEntry.id)
    )
    return [
        PoolEntry(
            entry_id=row.id,
            player_id=row.player_id,
            partner_id=row.partner_id,
            gender=row.gender,
            preferred_side=row.preferred_side,
            average_rating=row.average_rating,
            created_at=row.created_at,
            state=row.state,
            city=row.city,
            availability=row.availability or {},
        )
        for row in result.all()
    ]


def build_match(proposal: Proposal) -> Match:
    """Create the (unsaved) Match for a proposal, with sides and common availability."""
    a1, a2 = proposal.team_a
    b1, b2 = proposal.team_b
    a1_side, a2_side = side_service.assign_sides(a1.preferred_side, a2.preferred_side)
    b1_side, b2_side = side_service.assign_sides(b1.preferred_side, b2.preferred_side)
    common = availability_service.merge_availability(e.availability for e in proposal.entries)

    return Match(
        gender=proposal.gender,
        state=proposal.state,
        city=proposal.city,
        team_a_player1_id=a1.player_id,
        team_a_player2_id=a2.player_id,
        team_b_player1_id=b1.player_id,
        team_b_player2_id=b2.player_id,
        team_a_player1_side=a1_side,
        team_a_player2_side=a2_side,
        team_b_player1_side=b1_side,
        team_b_player2_side=b2_side,
        team_a_was_duo=proposal.team_a_was_duo,
        team_b_was_duo=proposal.team_b_was_duo,
        status=MatchStatus.PENDING_APPROVAL.value,
        scheduling_status=SchedulingStatus.PENDING.value,
        common_availability=common,
        created_at=utcnow(),
    )


async def persist_proposal(session: AsyncSession, proposal: Proposal) -> Optional[Match]:
    """
    Save one proposal.

    The match row is inserted first, then its four entries are claimed with a
    single UPDATE conditioned on status = 'active'. If another sweep got to any
    of them first, the claimed rows go back to active, the match row is removed
    and None is returned.
    """
    match = build_match(proposal)
    session.add(match)
    await session.flush()

    entry_ids = [e.entry_id for e in proposal.entries]
    result = await session.execute(
        update(QueueEntry)
        .where(
            QueueEntry.id.in_(entry_ids),
            QueueEntry.status == QueueStatus.ACTIVE.value,
        )
        .values(status=QueueStatus.MATCHED.value, match_id=match.id, updated_at=utcnow())
        .returning(QueueEntry.id)
        .execution_options(synchronize_session="fetch")
    )
    claimed = result.scalars().all()

    if len(claimed) != len(entry_ids):
        logger.warning(
            f"Proposal for entries {entry_ids} lost a race ({len(claimed)} claimed); discarding"
        )
        await session.execute(
            update(QueueEntry)
            .where(QueueEntry.match_id == match.id)
            .values(status=QueueStatus.ACTIVE.value, match_id=None, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await session.delete(match)
        await session.flush()
        return None

    session.add_all(
        [MatchApproval(match_id=match.id, player_id=pid, approved=None) for pid in match.participant_ids]
    )
    await session.flush()

    logger.info(
        f"Match {match.id} proposed ({proposal.gender}, {proposal.city or '-'}): "
        f"{match.team_a_ids} vs {match.team_b_ids}, "
        f"averages {proposal.team_a_average:.0f} / {proposal.team_b_average:.0f}"
    )
    return match


@storage_errors
async def run_matchmaking_sweep(session: AsyncSession) -> List[Dict]:
    """
    Run one matchmaking pass over the active queue.

    Returns:
        The created match proposals as dicts (possibly empty)
    """
    pool = await load_active_pool(session)
    proposals = plan_matches(pool)

    created = []
    for proposal in proposals:
        match = await persist_proposal(session, proposal)
        if match is not None:
            created.append(match_to_dict(match))

    if created:
        logger.info(f"Matchmaking sweep created {len(created)} match(es) from {len(pool)} active entries")
    return created
