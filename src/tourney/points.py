"""
Points awarded per round reached, and the ranking figures derived from them.

Two ranking figures exist and are kept apart:

- ``ranking_points``: average points per event played, stored on the player.
- ``rank_points``: total points divided by countable days
  (CD = 1.5 + 0.5 x events played), used to order the leaderboard.
"""
import re
from typing import Dict, List, Optional

from .models import DOUBLES, SINGLES, CONSOLATION, MAIN, Match, EventResult

POINTS_SYSTEM = {
    SINGLES: {
        MAIN: {
            'winner': 45,
            'runner_up': 30,
            'semi_final': 20,
            'quarter_final': 14,
            'round_16': 8,
            'round_32': 5,
        },
        CONSOLATION: {
            'winner': 14,
            'runner_up': 12,
            'semi_final': 8,
            'quarter_final': 5,
            'round_16': 3,
            'round_32': 2,
        },
    },
    DOUBLES: {
        MAIN: {
            'winner': 30,
            'runner_up': 20,
            'semi_final': 14,
            'quarter_final': 10,
            'round_16': 5,
            'round_32': 3,
        },
        CONSOLATION: {
            'winner': 14,
            'runner_up': 12,
            'semi_final': 8,
            'quarter_final': 5,
            'round_16': 3,
            'round_32': 2,
        },
    },
}

DEFAULT_ROUND_KEY = 'round_32'

# Furthest-round ladder, weakest first. round_64 has no points of its own.
ROUND_KEY_ORDER = ('round_64', 'round_32', 'round_16', 'quarter_final', 'semi_final', 'runner_up', 'winner')

_ROUND_KEYS = {
    'semi_final': 'semi_final',
    'quarter_final': 'quarter_final',
    'round_of_16': 'round_16',
    'round_of_32': 'round_32',
    'round_of_64': 'round_64',
    # generic labels of draws outside the named window
    'round_1': 'round_32',
    'round_2': 'round_16',
    'round_3': 'quarter_final',
    'round_4': 'semi_final',
}


def normalize_round(round_name: str) -> str:
    """'Semi-Final' -> 'semi_final'; the consolation prefix is dropped."""
    key = re.sub(r'[^a-z0-9]', '_', round_name.lower())
    if key.startswith('consolation_'):
        key = key[len('consolation_'):]
    return key


def round_key(round_name: str, is_winner: bool = False) -> str:
    """Map a round name (or an existing key) onto a points-table key."""
    key = normalize_round(round_name)
    if key in ('final', 'round_5'):
        return 'winner' if is_winner else 'runner_up'
    if key in ROUND_KEY_ORDER:
        return key
    return _ROUND_KEYS.get(key, DEFAULT_ROUND_KEY)


def points_for(event_type: str, round_reached: str, bracket_type: str, is_winner: bool = False) -> int:
    """Points for reaching ``round_reached`` in one bracket of an event."""
    points_table = POINTS_SYSTEM.get(event_type, {}).get(bracket_type)
    if not points_table:
        return 0
    key = round_key(round_reached, is_winner)
    return points_table.get(key, points_table[DEFAULT_ROUND_KEY])


def _promote(key: str) -> str:
    index = ROUND_KEY_ORDER.index(key)
    return ROUND_KEY_ORDER[min(index + 1, len(ROUND_KEY_ORDER) - 1)]


def furthest_round_reached(matches: List[Match], player_id: str) -> str:
    """
    Furthest round a player reached across ``matches``.

    Playing a round means reaching it; winning it means reaching the next
    one, so the Semi-Final winner is at least ``runner_up`` and the Final
    winner is ``winner``. A player without a win is credited with the round
    they lost in (a Quarter-Final loser gets ``quarter_final``), not the
    ``round_32`` default, matching per-match loser points.
    """
    best = ROUND_KEY_ORDER.index(DEFAULT_ROUND_KEY)
    for match in matches:
        if not match.involves(player_id):
            continue
        reached = round_key(match.round_name)
        if match.winner_id and match.side_of(player_id) == match.side_of(match.winner_id):
            if reached == 'runner_up':
                reached = 'winner'
            else:
                reached = _promote(reached)
        best = max(best, ROUND_KEY_ORDER.index(reached))
    return ROUND_KEY_ORDER[best]


def ranking_points(event_results: List[EventResult]) -> float:
    """Average points per distinct event."""
    if not event_results:
        return 0.0
    total = sum(r.points for r in event_results)
    events = len({r.event_id for r in event_results})
    return total / events if events else 0.0


def countable_days(events_played: int) -> float:
    if events_played <= 0:
        return 0.0
    return 1.5 + 0.5 * events_played


def rank_points(total_points: float, events_played: int) -> float:
    cd = countable_days(events_played)
    return total_points / cd if cd > 0 else 0.0


def player_aggregates(event_results: List[EventResult]) -> Dict:
    """Totals and ranking points per event type, as stored on a player."""
    fields = {}
    for event_type in (SINGLES, DOUBLES):
        results = [r for r in event_results if r.event_type == event_type]
        fields[f'total_{event_type}_points'] = sum(r.points for r in results)
        fields[f'{event_type}_events_played'] = len({r.event_id for r in results})
        fields[f'{event_type}_ranking_points'] = ranking_points(results)
    return fields


def build_leaderboard(players: List[Dict], event_type: str) -> List[Dict]:
    """
    Order players by rank points for one event type.

    Players without events are left out. Equal rank points share a rank and
    the following rank is skipped (1, 1, 3).
    """
    rows = []
    for player in players:
        events_played = player.get(f'{event_type}_events_played') or 0
        if events_played <= 0:
            continue
        total = player.get(f'total_{event_type}_points') or 0
        rows.append({
            'player_id': player.get('id'),
            'name': player.get('name'),
            'events_played': events_played,
            'total_points': total,
            'cd': countable_days(events_played),
            'rank_points': rank_points(total, events_played),
        })

    rows.sort(key=lambda row: -row['rank_points'])
    previous: Optional[float] = None
    for i, row in enumerate(rows):
        if previous is None or row['rank_points'] < previous:
            row['rank'] = i + 1
        else:
            row['rank'] = rows[i - 1]['rank']
        previous = row['rank_points']
    return rows
