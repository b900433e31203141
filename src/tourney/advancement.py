"""
Round-by-round bracket progression.

Rounds after the first are created lazily: once every match of a round has
a winner, the winners (and any entrants advancing on a bye) are paired into
the next round. Bracket positions carry the topology from one round to the
next - the entrants at positions 2j and 2j+1 meet at position j.
"""
import logging
from typing import Dict, List, Optional

from .exceptions import InvalidDrawState
from .models import Draw, Match, Participant, SCHEDULED
from .rounds import bracket_type_of, get_round_name, matches_in_round, round_number, total_rounds

logger = logging.getLogger(__name__)

ADVANCED = 'advanced'
NOT_READY = 'not_ready'
ALREADY_ADVANCED = 'already_advanced'
TERMINAL_REACHED = 'terminal_reached'

_PENDING = object()


class AdvanceResult:
    def __init__(self, status, round_name=None, matches=None):
        self.status = status
        self.round_name = round_name
        self.matches = matches or []

    @property
    def advanced(self) -> bool:
        return self.status == ADVANCED

    def to_dict(self) -> Dict:
        return {
            'status': self.status,
            'round_name': self.round_name,
            'matches': [m.to_dict() for m in self.matches],
        }

    def __repr__(self):
        return f"AdvanceResult(status={self.status}, round={self.round_name}, created={len(self.matches)})"


def _check_positions(round_name: str, round_matches: List[Match], width: int):
    seen = set()
    for match in round_matches:
        position = match.bracket_position
        if position < 0 or position >= width:
            raise InvalidDrawState(f"{round_name} match {match.match_number} has position {position}, "
                                   f"round holds {width}")
        if position in seen:
            raise InvalidDrawState(f"{round_name} has two matches at position {position}")
        seen.add(position)


def _same_entrants(match: Match, top: Participant, bottom: Participant) -> bool:
    return {match.player1_id, match.player2_id} == {top.player_id, bottom.player_id}


def entrants_after_round(draw: Draw, matches: List[Match], upto_round: int) -> Dict[int, object]:
    """
    Rebuild who holds each bracket position after ``upto_round`` rounds.

    Round 0 is the draw itself. Each later position takes the winner of the
    match between its two feeders, the lone feeder when the other side is
    empty (a bye), or nothing. Positions whose match is still undecided hold
    ``_PENDING``.
    """
    entrants = {i: slot for i, slot in enumerate(draw.slots)}

    for number in range(1, upto_round + 1):
        name = get_round_name(draw.draw_size, number, draw.bracket_type)
        width = matches_in_round(draw.draw_size, number)
        round_matches = [m for m in matches if m.round_name == name and m.bracket_type == draw.bracket_type]
        _check_positions(name, round_matches, width)
        by_position = {m.bracket_position: m for m in round_matches}

        advanced = {}
        for position in range(width):
            top = entrants.get(2 * position)
            bottom = entrants.get(2 * position + 1)
            match = by_position.pop(position, None)

            if top is _PENDING or bottom is _PENDING:
                advanced[position] = _PENDING
            elif top is not None and bottom is not None:
                if match is None:
                    advanced[position] = _PENDING
                elif not _same_entrants(match, top, bottom):
                    raise InvalidDrawState(f"{name} match {match.match_number} does not match the bracket "
                                           f"({top.player_id} vs {bottom.player_id} expected)")
                else:
                    advanced[position] = match.winner() if match.is_decided else _PENDING
            else:
                advanced[position] = top if top is not None else bottom

        if by_position:
            stray = sorted(m.match_number for m in by_position.values())
            raise InvalidDrawState(f"{name} has matches at positions with no opponents: {stray}")
        entrants = advanced

    return entrants


def _pair_round(event_id: str, draw: Draw, number: int, entrants: Dict[int, object], next_match_number: int):
    """Pair ``entrants`` into round ``number``. Returns (matches, carried)."""
    name = get_round_name(draw.draw_size, number, draw.bracket_type)
    matches = []
    carried = {}
    for position in range(matches_in_round(draw.draw_size, number)):
        top = entrants.get(2 * position)
        bottom = entrants.get(2 * position + 1)
        if top is not None and bottom is not None:
            matches.append(Match(
                event_id=event_id,
                round_name=name,
                bracket_type=draw.bracket_type,
                match_number=next_match_number,
                bracket_position=position,
                player1_id=top.player_id,
                player1_partner_id=top.partner_id,
                player2_id=bottom.player_id,
                player2_partner_id=bottom.partner_id,
                status=SCHEDULED,
            ))
            next_match_number += 1
        elif top is not None or bottom is not None:
            carried[position] = top if top is not None else bottom
    return matches, carried


def try_advance_round(store, event_id: str, completed_round_name: str) -> AdvanceResult:
    """
    Create the round after ``completed_round_name`` when it is complete.

    Returns an ``AdvanceResult`` whose status is one of ``advanced``,
    ``not_ready`` (a match of the round has no winner yet),
    ``already_advanced`` (the next round exists, nothing is written) or
    ``terminal_reached`` (the round was the final of its line).
    Raises ``InvalidDrawState`` when the round or its draw is missing or its
    bracket positions are inconsistent.
    """
    bracket_type = bracket_type_of(completed_round_name)
    matches = store.get_matches(event_id)
    round_matches = [m for m in matches
                     if m.round_name == completed_round_name and m.bracket_type == bracket_type]
    if not round_matches:
        raise InvalidDrawState(f"No {completed_round_name} matches for event {event_id}")

    undecided = [m for m in round_matches if not m.is_decided]
    if undecided:
        logger.debug("%s of event %s not ready: %d undecided", completed_round_name, event_id, len(undecided))
        return AdvanceResult(NOT_READY, completed_round_name)

    draw = store.get_draw(event_id, bracket_type)
    if draw is None:
        raise InvalidDrawState(f"Event {event_id} has no {bracket_type} draw")
    number = round_number(draw.draw_size, completed_round_name)
    if number is None:
        raise InvalidDrawState(f"{completed_round_name!r} is not a round of a {draw.draw_size}-slot draw")
    _check_positions(completed_round_name, round_matches, matches_in_round(draw.draw_size, number))

    last_round = total_rounds(draw.draw_size)
    if number >= last_round:
        return AdvanceResult(TERMINAL_REACHED, completed_round_name)

    later = sorted(
        (round_number(draw.draw_size, m.round_name) or 0, m.round_name)
        for m in matches if m.bracket_type == bracket_type
    )
    later = [name for n, name in later if n > number]
    if later:
        return AdvanceResult(ALREADY_ADVANCED, later[0])

    entrants = entrants_after_round(draw, matches, number)
    pending = [p for p, e in entrants.items() if e is _PENDING]
    if pending:
        raise InvalidDrawState(f"{completed_round_name} of event {event_id} is missing matches "
                               f"at positions {pending}")

    next_match_number = max((m.match_number for m in matches), default=0) + 1
    target = number + 1
    created, carried = _pair_round(event_id, draw, target, entrants, next_match_number)
    # A round made only of byes is played through to the next one
    while not created and len(carried) > 1 and target < last_round:
        target += 1
        created, carried = _pair_round(event_id, draw, target, carried, next_match_number)

    if not created:
        return AdvanceResult(TERMINAL_REACHED, completed_round_name)

    created = store.create_matches(created)
    round_name = created[0].round_name
    logger.info("Event %s advanced from %s to %s: %d matches",
                event_id, completed_round_name, round_name, len(created))
    return AdvanceResult(ADVANCED, round_name, created)


def champion(draw: Draw, matches: List[Match]) -> Optional[Participant]:
    """Winner of the draw's final, or None while it is undecided."""
    entrants = entrants_after_round(draw, matches, total_rounds(draw.draw_size))
    winner = entrants.get(0)
    return None if winner is _PENDING else winner
