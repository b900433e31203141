"""
Records shared by the draw builder, the round engine and the store.

Every record is built from the plain dicts kept by the store through
``from_dict``, which validates the fields the bracket arithmetic depends on.
"""
from typing import Dict, List, Optional


SINGLES = 'singles'
DOUBLES = 'doubles'
EVENT_TYPES = (SINGLES, DOUBLES)

MAIN = 'main'
CONSOLATION = 'consolation'
BRACKET_TYPES = (MAIN, CONSOLATION)

SCHEDULED = 'scheduled'
IN_PROGRESS = 'in_progress'
COMPLETED = 'completed'
WALKOVER = 'walkover'
CANCELLED = 'cancelled'
MATCH_STATUSES = (SCHEDULED, IN_PROGRESS, COMPLETED, WALKOVER, CANCELLED)
RESOLVED_STATUSES = (COMPLETED, WALKOVER, CANCELLED)

# Event lifecycle
REGISTRATION = 'registration'
DRAW_CREATED = 'draw_created'
EVENT_IN_PROGRESS = 'in_progress'
EVENT_COMPLETED = 'completed'


def _require_id(value, field: str) -> str:
    if value is None or str(value).strip() == '':
        raise ValueError(f"{field} is required")
    return str(value)


def _optional_id(value) -> Optional[str]:
    if value is None or str(value).strip() == '':
        return None
    return str(value)


class Participant:
    """A player, or a player and partner, entered into one event."""

    def __init__(self, player_id, partner_id=None, seed=None, ranking=0.0):
        self.player_id = _require_id(player_id, 'player_id')
        self.partner_id = _optional_id(partner_id)
        if seed is not None:
            seed = int(seed)
            if seed < 1:
                raise ValueError(f"seed must be positive, got {seed}")
        self.seed = seed
        try:
            self.ranking = float(ranking or 0.0)
        except (TypeError, ValueError):
            raise ValueError(f"ranking must be numeric, got {ranking!r}")

    @property
    def player_ids(self) -> List[str]:
        """Every player represented by this entrant."""
        if self.partner_id:
            return [self.player_id, self.partner_id]
        return [self.player_id]

    def with_seed(self, seed: Optional[int]) -> 'Participant':
        return Participant(self.player_id, self.partner_id, seed, self.ranking)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Participant':
        return cls(
            player_id=data.get('player_id'),
            partner_id=data.get('partner_id'),
            seed=data.get('seed_position'),
            ranking=data.get('ranking', 0.0),
        )

    def to_dict(self) -> Dict:
        return {
            'player_id': self.player_id,
            'partner_id': self.partner_id,
            'seed_position': self.seed,
            'ranking': self.ranking,
        }

    def __eq__(self, other):
        if not isinstance(other, Participant):
            return NotImplemented
        return (self.player_id, self.partner_id, self.seed) == (other.player_id, other.partner_id, other.seed)

    def __hash__(self):
        return hash((self.player_id, self.partner_id, self.seed))

    def __repr__(self):
        return f"Participant(player_id={self.player_id}, partner_id={self.partner_id}, seed={self.seed})"


class Draw:
    """Bracket layout of one event: ``draw_size`` slots, ``None`` marks a bye."""

    def __init__(self, event_type, slots, seeded_count=0, bracket_type=MAIN, unpaired=None):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        if bracket_type not in BRACKET_TYPES:
            raise ValueError(f"Unknown bracket type: {bracket_type}")
        size = len(slots)
        if size < 1 or size & (size - 1):
            raise ValueError(f"Draw size must be a power of two, got {size}")
        occupied = [slot for slot in slots if slot is not None]
        if len({slot.player_id for slot in occupied}) != len(occupied):
            raise ValueError("A participant occupies more than one slot")
        self.event_type = event_type
        self.bracket_type = bracket_type
        self.slots = list(slots)
        self.seeded_count = seeded_count
        self.unpaired = list(unpaired or [])

    @property
    def draw_size(self) -> int:
        return len(self.slots)

    @property
    def entrants(self) -> List[Participant]:
        return [slot for slot in self.slots if slot is not None]

    @property
    def bye_count(self) -> int:
        return self.draw_size - len(self.entrants)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Draw':
        slots = [Participant.from_dict(s) if s else None for s in data.get('slots', [])]
        return cls(
            event_type=data.get('event_type'),
            slots=slots,
            seeded_count=int(data.get('seeded_count', 0)),
            bracket_type=data.get('bracket_type', MAIN),
            unpaired=data.get('unpaired'),
        )

    def to_dict(self) -> Dict:
        return {
            'event_type': self.event_type,
            'bracket_type': self.bracket_type,
            'draw_size': self.draw_size,
            'seeded_count': self.seeded_count,
            'bye_count': self.bye_count,
            'slots': [s.to_dict() if s else None for s in self.slots],
            'unpaired': list(self.unpaired),
        }

    def __repr__(self):
        return (f"Draw(event_type={self.event_type}, bracket_type={self.bracket_type}, "
                f"draw_size={self.draw_size}, seeded={self.seeded_count}, byes={self.bye_count})")


class Match:
    def __init__(self, event_id, round_name, match_number, bracket_position,
                 player1_id, player2_id, player1_partner_id=None, player2_partner_id=None,
                 bracket_type=MAIN, status=SCHEDULED, winner_id=None, score=None,
                 completed_at=None, id=None):
        self.id = _optional_id(id)
        self.event_id = _require_id(event_id, 'event_id')
        if not round_name:
            raise ValueError("round_name is required")
        self.round_name = round_name
        if bracket_type not in BRACKET_TYPES:
            raise ValueError(f"Unknown bracket type: {bracket_type}")
        self.bracket_type = bracket_type
        self.match_number = int(match_number)
        self.bracket_position = int(bracket_position)
        self.player1_id = _require_id(player1_id, 'player1_id')
        self.player2_id = _require_id(player2_id, 'player2_id')
        self.player1_partner_id = _optional_id(player1_partner_id)
        self.player2_partner_id = _optional_id(player2_partner_id)
        if status not in MATCH_STATUSES:
            raise ValueError(f"Unknown match status: {status}")
        self.status = status
        self.winner_id = _optional_id(winner_id)
        if self.winner_id and self.winner_id not in (self.player1_id, self.player2_id):
            raise ValueError(f"Winner {self.winner_id} did not play match {self.match_number}")
        if status in (COMPLETED, WALKOVER) and not self.winner_id:
            raise ValueError(f"Match {self.match_number} is {status} without a winner")
        self.score = score
        self.completed_at = completed_at

    @property
    def is_decided(self) -> bool:
        """True when the match has produced a winner that can advance."""
        return self.status in RESOLVED_STATUSES and self.winner_id is not None

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_STATUSES

    def involves(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id,
                             self.player1_partner_id, self.player2_partner_id)

    def side_of(self, player_id: str) -> Optional[int]:
        """Return 1 or 2 for the side ``player_id`` played on, else None."""
        if player_id in (self.player1_id, self.player1_partner_id):
            return 1
        if player_id in (self.player2_id, self.player2_partner_id):
            return 2
        return None

    def winner(self) -> Optional[Participant]:
        """The winning side as an entrant, partner included."""
        if not self.winner_id:
            return None
        if self.winner_id == self.player1_id:
            return Participant(self.player1_id, self.player1_partner_id)
        return Participant(self.player2_id, self.player2_partner_id)

    def loser(self) -> Optional[Participant]:
        if not self.winner_id:
            return None
        if self.winner_id == self.player1_id:
            return Participant(self.player2_id, self.player2_partner_id)
        return Participant(self.player1_id, self.player1_partner_id)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        return cls(
            id=data.get('id'),
            event_id=data.get('event_id'),
            round_name=data.get('round_name'),
            bracket_type=data.get('bracket_type', MAIN),
            match_number=data.get('match_number'),
            bracket_position=data.get('bracket_position'),
            player1_id=data.get('player1_id'),
            player2_id=data.get('player2_id'),
            player1_partner_id=data.get('player1_partner_id'),
            player2_partner_id=data.get('player2_partner_id'),
            status=data.get('status', SCHEDULED),
            winner_id=data.get('winner_id'),
            score=data.get('score'),
            completed_at=data.get('completed_at'),
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'round_name': self.round_name,
            'bracket_type': self.bracket_type,
            'match_number': self.match_number,
            'bracket_position': self.bracket_position,
            'player1_id': self.player1_id,
            'player1_partner_id': self.player1_partner_id,
            'player2_id': self.player2_id,
            'player2_partner_id': self.player2_partner_id,
            'status': self.status,
            'winner_id': self.winner_id,
            'score': self.score,
            'completed_at': self.completed_at,
        }

    def __repr__(self):
        return (f"Match(number={self.match_number}, round={self.round_name}, "
                f"position={self.bracket_position}, {self.player1_id} vs {self.player2_id}, "
                f"status={self.status})")


class EventResult:
    """Points one player earned in one bracket of one event."""

    def __init__(self, player_id, event_id, event_type, bracket_type, round_reached, points):
        self.player_id = _require_id(player_id, 'player_id')
        self.event_id = _require_id(event_id, 'event_id')
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        self.event_type = event_type
        self.bracket_type = bracket_type
        self.round_reached = round_reached
        self.points = int(points)

    @classmethod
    def from_dict(cls, data: Dict) -> 'EventResult':
        return cls(
            player_id=data.get('player_id'),
            event_id=data.get('event_id'),
            event_type=data.get('event_type'),
            bracket_type=data.get('bracket_type', MAIN),
            round_reached=data.get('round_reached'),
            points=data.get('points_earned', 0),
        )

    def to_dict(self) -> Dict:
        return {
            'player_id': self.player_id,
            'event_id': self.event_id,
            'event_type': self.event_type,
            'bracket_type': self.bracket_type,
            'round_reached': self.round_reached,
            'points_earned': self.points,
        }

    def __repr__(self):
        return (f"EventResult(player_id={self.player_id}, event_id={self.event_id}, "
                f"{self.bracket_type}:{self.round_reached}={self.points})")
