"""
Single elimination draw generation.

Builds the slot layout of a draw (seeds on their canonical lines, the rest
drawn at random) and turns it into first-round matches.
"""
import logging
import math
import random
from typing import List, Optional, Tuple

from .exceptions import InsufficientParticipants
from .models import Draw, Match, Participant, SINGLES, DOUBLES, MAIN, SCHEDULED
from .rounds import get_round_name

logger = logging.getLogger(__name__)


def calculate_draw_size(num_entrants: int) -> int:
    """Calculate the draw size (next power of 2)."""
    if num_entrants <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_entrants))


def calculate_byes(num_entrants: int) -> int:
    """Calculate number of byes needed."""
    return calculate_draw_size(num_entrants) - num_entrants


def get_seed_positions(draw_size: int, seed_count: int) -> List[int]:
    """
    Slot index for seeds 1..seed_count.

    Seed 1 opens the draw and seed 2 closes it. Seeds 3-4 sit on either side
    of the halfway line, seeds 5-8 on either side of the quarter lines, seeds
    9-16 on either side of the eighth lines, and so on.

    For 16 slots and 8 seeds: [0, 15, 7, 8, 3, 4, 11, 12]
    """
    positions = []
    if seed_count >= 1:
        positions.append(0)
    if seed_count >= 2:
        positions.append(draw_size - 1)

    sections = 2
    while len(positions) < seed_count:
        section_size = draw_size // sections
        if section_size < 2:
            break
        for boundary in range(section_size, draw_size, 2 * section_size):
            positions.extend([boundary - 1, boundary])
        sections *= 2

    return positions[:seed_count]


def select_seeds(participants: List[Participant], max_seeds: int) -> Tuple[List[Participant], List[Participant]]:
    """
    Split entrants into (seeded, unseeded).

    Explicit seed positions win when any participant carries one; players
    seeded beyond ``max_seeds`` drop into the unseeded pool. Without explicit
    seeds the top ``max_seeds`` by ranking are seeded 1..max_seeds, equal
    rankings keeping their input order.
    """
    pre_seeded = [p for p in participants if p.seed is not None]
    if pre_seeded:
        pre_seeded.sort(key=lambda p: p.seed)
        seeded = pre_seeded[:max_seeds]
        chosen = {id(p) for p in seeded}
        unseeded = [p.with_seed(None) if p.seed is not None else p
                    for p in participants if id(p) not in chosen]
        return seeded, unseeded

    ranked = sorted(participants, key=lambda p: -p.ranking)
    seeded = [p.with_seed(i + 1) for i, p in enumerate(ranked[:max_seeds])]
    return seeded, ranked[max_seeds:]


def place_entrants(seeded: List[Participant], unseeded: List[Participant], draw_size: int) -> List[Optional[Participant]]:
    """Put seeds on their lines, then fill free slots in order with ``unseeded``."""
    slots = [None] * draw_size
    for entrant, position in zip(seeded, get_seed_positions(draw_size, len(seeded))):
        slots[position] = entrant

    remaining = iter(unseeded)
    for i in range(draw_size):
        if slots[i] is None:
            entrant = next(remaining, None)
            if entrant is None:
                break
            slots[i] = entrant
    return slots


def build_singles_draw(participants: List[Participant], rng: Optional[random.Random] = None) -> Draw:
    """
    Build a singles draw.

    A quarter of the field (rounded down) is seeded; everyone else is
    shuffled into the free slots. Unfilled slots are byes.
    """
    rng = rng or random.Random()
    num_players = len(participants)
    if num_players < 2:
        raise InsufficientParticipants(num_players, 2)

    draw_size = calculate_draw_size(num_players)
    seeded, unseeded = select_seeds(participants, num_players // 4)
    unseeded = list(unseeded)
    rng.shuffle(unseeded)

    slots = place_entrants(seeded, unseeded, draw_size)
    draw = Draw(SINGLES, slots, seeded_count=len(seeded))
    logger.info("Built singles draw: %d players, size %d, %d seeds, %d byes",
                num_players, draw_size, draw.seeded_count, draw.bye_count)
    return draw


def pair_doubles_teams(participants: List[Participant], rng: random.Random) -> Tuple[List[Participant], List[Participant], List[str]]:
    """
    Form doubles teams from individual entrants.

    Entrants registered with a partner keep that team and are entered
    unseeded; a partner who also registered alone is not drawn again. Up to
    half of the remaining players are seeded; each seeded player is partnered
    with a randomly drawn unseeded player. Leftover players pair up in drawn
    order. Returns (seeded_teams, unseeded_teams, unpaired_player_ids).
    """
    formed = []
    partnered = set()
    for entrant in participants:
        if not entrant.partner_id:
            continue
        clash = partnered.intersection(entrant.player_ids)
        if clash:
            raise ValueError(f"Player {clash.pop()} is on more than one doubles team")
        partnered.update(entrant.player_ids)
        formed.append(entrant.with_seed(None))
    individuals = [p for p in participants if not p.partner_id and p.player_id not in partnered]

    seeded_players, unseeded_players = select_seeds(individuals, len(individuals) // 2)
    pool = list(unseeded_players)
    rng.shuffle(pool)

    seeded_teams = []
    leftover = []
    for player in seeded_players:
        if pool:
            partner = pool.pop(0)
            seeded_teams.append(Participant(player.player_id, partner.player_id,
                                            seed=len(seeded_teams) + 1,
                                            ranking=player.ranking + partner.ranking))
        else:
            leftover.append(player.with_seed(None))
    pool = leftover + pool

    unseeded_teams = list(formed)
    for i in range(0, len(pool) - 1, 2):
        unseeded_teams.append(Participant(pool[i].player_id, pool[i + 1].player_id,
                                          ranking=pool[i].ranking + pool[i + 1].ranking))

    unpaired = [pool[-1].player_id] if len(pool) % 2 else []
    return seeded_teams, unseeded_teams, unpaired


def build_doubles_draw(participants: List[Participant], rng: Optional[random.Random] = None) -> Draw:
    """Build a doubles draw from registered players and pre-formed teams."""
    rng = rng or random.Random()
    seeded_teams, unseeded_teams, unpaired = pair_doubles_teams(participants, rng)
    num_teams = len(seeded_teams) + len(unseeded_teams)
    if num_teams < 2:
        raise InsufficientParticipants(num_teams, 2)
    if unpaired:
        logger.warning("Odd number of doubles players, left out: %s", ', '.join(unpaired))

    draw_size = calculate_draw_size(num_teams)
    rng.shuffle(unseeded_teams)
    slots = place_entrants(seeded_teams, unseeded_teams, draw_size)
    draw = Draw(DOUBLES, slots, seeded_count=len(seeded_teams), unpaired=unpaired)
    logger.info("Built doubles draw: %d teams, size %d, %d seeded teams, %d byes",
                num_teams, draw_size, draw.seeded_count, draw.bye_count)
    return draw


def build_draw(event_type: str, participants: List[Participant], rng: Optional[random.Random] = None) -> Draw:
    if event_type == DOUBLES:
        return build_doubles_draw(participants, rng)
    return build_singles_draw(participants, rng)


def generate_first_round_matches(event_id: str, draw: Draw, start_number: int = 1) -> List[Match]:
    """
    Create the first-round matches of a draw.

    Slots (0, 1), (2, 3), ... meet each other. A pair with a single occupant
    is a bye and produces no match; the occupant is advanced from the draw
    layout when the round completes.
    """
    round_name = get_round_name(draw.draw_size, 1, draw.bracket_type)
    matches = []
    match_number = start_number

    for position in range(draw.draw_size // 2):
        top = draw.slots[2 * position]
        bottom = draw.slots[2 * position + 1]
        if top is None or bottom is None:
            continue
        matches.append(Match(
            event_id=event_id,
            round_name=round_name,
            bracket_type=draw.bracket_type,
            match_number=match_number,
            bracket_position=position,
            player1_id=top.player_id,
            player1_partner_id=top.partner_id,
            player2_id=bottom.player_id,
            player2_partner_id=bottom.partner_id,
            status=SCHEDULED,
        ))
        match_number += 1

    return matches
