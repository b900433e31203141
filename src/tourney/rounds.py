"""
Round naming for single elimination brackets.

A round is identified by its bracket line and its 1-based number within the
draw; names are derived from that pair, never parsed back with patterns.
"""
import math
from typing import List, Optional

from .models import MAIN, CONSOLATION


# Indexed by rounds remaining before the final (0 = Final)
MAIN_ROUND_NAMES = ('Final', 'Semi-Final', 'Quarter-Final', 'Round of 16', 'Round of 32', 'Round of 64')
CONSOLATION_ROUND_NAMES = ('Consolation Final', 'Consolation Semi-Final')
CONSOLATION_PREFIX = 'Consolation'


def total_rounds(draw_size: int) -> int:
    """Number of rounds needed to reduce ``draw_size`` slots to one winner."""
    if draw_size < 2:
        return 0
    return int(math.log2(draw_size))


def get_round_name(draw_size: int, round_number: int, bracket_type: str = MAIN) -> str:
    """Name of round ``round_number`` (1-based) in a draw of ``draw_size`` slots."""
    rounds_from_final = total_rounds(draw_size) - round_number
    if bracket_type == CONSOLATION:
        if 0 <= rounds_from_final < len(CONSOLATION_ROUND_NAMES):
            return CONSOLATION_ROUND_NAMES[rounds_from_final]
        return f"{CONSOLATION_PREFIX} Round {round_number}"
    if 0 <= rounds_from_final < len(MAIN_ROUND_NAMES):
        return MAIN_ROUND_NAMES[rounds_from_final]
    return f"Round {round_number}"


def round_names(draw_size: int, bracket_type: str = MAIN) -> List[str]:
    """All round names of a draw, first round first."""
    return [get_round_name(draw_size, n, bracket_type) for n in range(1, total_rounds(draw_size) + 1)]


def bracket_type_of(round_name: str) -> str:
    """Which bracket line a round name belongs to."""
    if round_name.startswith(CONSOLATION_PREFIX):
        return CONSOLATION
    return MAIN


def round_number(draw_size: int, round_name: str) -> Optional[int]:
    """Inverse of ``get_round_name``; None when the name is not a round of this draw."""
    names = round_names(draw_size, bracket_type_of(round_name))
    if round_name in names:
        return names.index(round_name) + 1
    return None


def next_round_name(draw_size: int, round_name: str) -> Optional[str]:
    """Round that follows ``round_name``; None once the final has been played."""
    number = round_number(draw_size, round_name)
    if number is None:
        raise ValueError(f"{round_name!r} is not a round of a {draw_size}-slot draw")
    if number >= total_rounds(draw_size):
        return None
    return get_round_name(draw_size, number + 1, bracket_type_of(round_name))


def matches_in_round(draw_size: int, round_number: int) -> int:
    """Width of a round: the number of bracket positions it holds."""
    return draw_size // (2 ** round_number)
