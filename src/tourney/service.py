"""
Entry points used by the web layer.

``TournamentService`` holds no state of its own between calls: every
operation reads what it needs from the store it was given and writes its
outcome back.
"""
import logging
import random
from datetime import datetime
from typing import List, Optional, Tuple

from .advancement import AdvanceResult, champion, try_advance_round
from .elimination import build_draw, calculate_draw_size, generate_first_round_matches, place_entrants
from .exceptions import InsufficientParticipants, InvalidDrawState
from .models import (Draw, EventResult, Match, MAIN, CONSOLATION, COMPLETED, WALKOVER, CANCELLED,
                     DRAW_CREATED, EVENT_IN_PROGRESS, EVENT_COMPLETED)
from .points import build_leaderboard, furthest_round_reached, player_aggregates, points_for
from .rounds import get_round_name

logger = logging.getLogger(__name__)

MIN_DRAW_PARTICIPANTS = 4


class TournamentService:
    def __init__(self, store, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    def generate_draw(self, event_id: str, event_type: Optional[str] = None) -> Draw:
        """Build and persist the main draw and its first-round matches."""
        event = self.store.get_event(event_id)
        event_type = event_type or event['event_type']
        participants = self.store.get_participants(event_id)
        players = sum(len(p.player_ids) for p in participants)
        if players < MIN_DRAW_PARTICIPANTS:
            raise InsufficientParticipants(players, MIN_DRAW_PARTICIPANTS)
        if self.store.get_matches(event_id):
            raise InvalidDrawState(f"Event {event_id} already has a draw")

        draw = build_draw(event_type, participants, self.rng)
        self.store.save_draw(event_id, draw)
        matches = self.store.create_matches(generate_first_round_matches(event_id, draw))
        self.store.update_event(event_id, {'status': DRAW_CREATED, 'draw_size': draw.draw_size})
        logger.info("Generated %s draw for event %s: %d first-round matches",
                    event_type, event_id, len(matches))
        return draw

    def record_result(self, match_id: str, winner_id: str, score: Optional[str] = None,
                      status: str = COMPLETED) -> Tuple[Match, AdvanceResult]:
        """Store a match result and advance the bracket if its round is done."""
        if status not in (COMPLETED, WALKOVER, CANCELLED):
            raise ValueError(f"Cannot record a result with status {status}")
        if status in (COMPLETED, WALKOVER) and not winner_id:
            raise ValueError(f"A {status} result needs a winner")
        match = self.store.get_match(match_id)
        if match.is_resolved:
            raise InvalidDrawState(f"Match {match.match_number} already has a result")

        side = match.side_of(winner_id) if winner_id else None
        if winner_id and side is None:
            raise ValueError(f"{winner_id} did not play match {match.match_number}")
        if side == 1:
            winner_id = match.player1_id
        elif side == 2:
            winner_id = match.player2_id

        updated = self.store.update_match(match_id, {
            'status': status,
            'winner_id': winner_id,
            'score': score,
            'completed_at': datetime.now().isoformat(),
        })
        return updated, self.on_match_completed(match.event_id, match.round_name)

    def on_match_completed(self, event_id: str, round_name: str) -> AdvanceResult:
        event = self.store.get_event(event_id)
        if event.get('status') == DRAW_CREATED:
            self.store.update_event(event_id, {'status': EVENT_IN_PROGRESS})
        return try_advance_round(self.store, event_id, round_name)

    def generate_consolation_draw(self, event_id: str) -> Draw:
        """Draw the main first-round losers into a consolation bracket."""
        if self.store.get_draw(event_id, CONSOLATION) is not None:
            raise InvalidDrawState(f"Event {event_id} already has a consolation draw")
        main_draw = self.store.get_draw(event_id, MAIN)
        if main_draw is None:
            raise InvalidDrawState(f"Event {event_id} has no draw")

        matches = self.store.get_matches(event_id)
        first_round = get_round_name(main_draw.draw_size, 1)
        first_matches = [m for m in matches if m.round_name == first_round and m.bracket_type == MAIN]
        if any(not m.is_resolved for m in first_matches):
            raise InvalidDrawState(f"{first_round} of event {event_id} is not finished")

        losers = [m.loser() for m in first_matches if m.winner_id]
        if len(losers) < 2:
            raise InsufficientParticipants(len(losers), 2)
        self.rng.shuffle(losers)
        slots = place_entrants([], losers, calculate_draw_size(len(losers)))
        draw = Draw(main_draw.event_type, slots, bracket_type=CONSOLATION)
        self.store.save_draw(event_id, draw)

        start = max((m.match_number for m in matches), default=0) + 1
        created = self.store.create_matches(generate_first_round_matches(event_id, draw, start_number=start))
        logger.info("Generated consolation draw for event %s: %d entrants, %d matches",
                    event_id, len(losers), len(created))
        return draw

    def complete_event(self, event_id: str) -> List[EventResult]:
        """Award points for a finished event and refresh player aggregates."""
        event = self.store.get_event(event_id)
        if event.get('status') == EVENT_COMPLETED:
            raise InvalidDrawState(f"Event {event_id} is already completed")
        event_type = event['event_type']
        matches = self.store.get_matches(event_id)
        if not matches:
            raise InvalidDrawState(f"Event {event_id} has no matches")
        unresolved = [m.match_number for m in matches if not m.is_resolved]
        if unresolved:
            raise InvalidDrawState(f"Event {event_id} has unresolved matches: {unresolved}")

        results = []
        champion_id = None
        for bracket_type in (MAIN, CONSOLATION):
            draw = self.store.get_draw(event_id, bracket_type)
            if draw is None:
                continue
            bracket_matches = [m for m in matches if m.bracket_type == bracket_type]
            if bracket_type == MAIN:
                # None when a match cancelled without a winner stopped the line
                winner = champion(draw, bracket_matches)
                champion_id = winner.player_id if winner else None

            for entrant in draw.entrants:
                for player_id in entrant.player_ids:
                    reached = furthest_round_reached(bracket_matches, player_id)
                    results.append(EventResult(
                        player_id=player_id,
                        event_id=event_id,
                        event_type=event_type,
                        bracket_type=bracket_type,
                        round_reached=reached,
                        points=points_for(event_type, reached, bracket_type),
                    ))

        self.store.record_results(results)
        for player_id in sorted({r.player_id for r in results}):
            history = self.store.get_player_ranking_history(player_id)
            self.store.update_player_aggregates(player_id, player_aggregates(history))
        self.store.update_event(event_id, {'status': EVENT_COMPLETED, 'champion_id': champion_id})
        logger.info("Completed event %s: %d results recorded", event_id, len(results))
        return results

    def leaderboard(self, event_type: str):
        return build_leaderboard(self.store.list_players(), event_type)
