"""
Court side assignment for a team of two.
"""

from typing import Optional, Tuple
from padel_ladder.database.models import Side

EXCLUSIVE_SIDES = (Side.LEFT.value, Side.RIGHT.value)


def is_exclusive(preference: Optional[str]) -> bool:
    """True for an explicit 'left' or 'right' preference."""
    return preference in EXCLUSIVE_SIDES


def opposite_side(side: str) -> str:
    """The other exclusive side."""
    return Side.RIGHT.value if side == Side.LEFT.value else Side.LEFT.value


def assign_sides(first: Optional[str], second: Optional[str]) -> Tuple[str, str]:
    """
    Assign left/right to two teammates.

    An exclusive preference is honoured unless both players want the same
    side, in which case the first player keeps it. A 'both' (or missing)
    preference yields to the partner's exclusive one. Two flexible players
    get left then right.

    Returns:
        (first_side, second_side)
    """
    if is_exclusive(first):
        return first, opposite_side(first)
    if is_exclusive(second):
        return opposite_side(second), second
    return Side.LEFT.value, Side.RIGHT.value


def side_compatibility(first: Optional[str], second: Optional[str]) -> int:
    """
    Score how well two preferences fit on one team.

    2 for opposite explicit preferences, 1 when at least one player is
    flexible, 0 when both insist on the same side.
    """
    if is_exclusive(first) and is_exclusive(second):
        return 2 if first != second else 0
    return 1
