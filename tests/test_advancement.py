"""
Tests for round-by-round bracket progression.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import make_event
from tourney.advancement import (
    try_advance_round,
    entrants_after_round,
    champion,
    ADVANCED,
    NOT_READY,
    ALREADY_ADVANCED,
    TERMINAL_REACHED,
)
from tourney.exceptions import InvalidDrawState
from tourney.models import Draw, Match, Participant


def decide(store, match, side=1, status='completed'):
    winner = match.player1_id if side == 1 else match.player2_id
    return store.update_match(match.id, {'status': status, 'winner_id': winner, 'score': '6-3 6-2'})


def round_matches(store, event_id, round_name):
    return [m for m in store.get_matches(event_id) if m.round_name == round_name]


class TestFivePlayerDraw:
    """End-to-end progression of a five player draw with three byes."""

    @pytest.fixture
    def event_id(self, store, service):
        event, _ = make_event(store, 'singles', 5, rankings=[5.0, 4.0, 3.0, 2.0, 1.0])
        service.generate_draw(event['id'])
        return event['id']

    def test_first_round_has_two_matches(self, store, event_id):
        draw = store.get_draw(event_id)
        assert draw.draw_size == 8
        assert draw.bye_count == 3
        assert draw.seeded_count == 1
        assert len(round_matches(store, event_id, 'Quarter-Final')) == 2

    def test_not_ready_until_every_match_decided(self, store, event_id):
        first, _ = round_matches(store, event_id, 'Quarter-Final')
        decide(store, first)

        result = try_advance_round(store, event_id, 'Quarter-Final')

        assert result.status == NOT_READY
        assert result.matches == []
        assert round_matches(store, event_id, 'Semi-Final') == []

    def test_bye_player_joins_later_round(self, store, event_id):
        draw = store.get_draw(event_id)
        bye_player = draw.slots[4].player_id
        first, second = round_matches(store, event_id, 'Quarter-Final')
        decide(store, first, side=1)
        decide(store, second, side=2)

        result = try_advance_round(store, event_id, 'Quarter-Final')

        assert result.status == ADVANCED
        assert result.round_name == 'Semi-Final'
        assert len(result.matches) == 1
        semi = result.matches[0]
        assert (semi.player1_id, semi.player2_id) == (first.player1_id, second.player2_id)
        assert semi.bracket_position == 0
        assert semi.match_number == 3

        decide(store, semi, side=1)
        result = try_advance_round(store, event_id, 'Semi-Final')

        assert result.status == ADVANCED
        assert result.round_name == 'Final'
        final = result.matches[0]
        assert (final.player1_id, final.player2_id) == (first.player1_id, bye_player)
        assert final.match_number == 4

        decide(store, final, side=2)
        assert try_advance_round(store, event_id, 'Final').status == TERMINAL_REACHED
        assert champion(draw, store.get_matches(event_id)).player_id == bye_player

    def test_second_call_creates_nothing(self, store, event_id):
        for match in round_matches(store, event_id, 'Quarter-Final'):
            decide(store, match)

        first = try_advance_round(store, event_id, 'Quarter-Final')
        count = len(store.get_matches(event_id))
        second = try_advance_round(store, event_id, 'Quarter-Final')

        assert first.status == ADVANCED
        assert second.status == ALREADY_ADVANCED
        assert second.round_name == 'Semi-Final'
        assert second.matches == []
        assert len(store.get_matches(event_id)) == count


class TestFullDraw:
    """Progression of an eight player draw without byes."""

    @pytest.fixture
    def event_id(self, store, service, singles_event):
        event, _ = singles_event
        service.generate_draw(event['id'])
        return event['id']

    def test_winners_keep_bracket_order(self, store, event_id):
        quarters = round_matches(store, event_id, 'Quarter-Final')
        for match, side in zip(quarters, [2, 1, 1, 2]):
            decide(store, match, side)

        result = try_advance_round(store, event_id, 'Quarter-Final')

        assert result.status == ADVANCED
        top, bottom = sorted(result.matches, key=lambda m: m.bracket_position)
        assert (top.player1_id, top.player2_id) == (quarters[0].player2_id, quarters[1].player1_id)
        assert (bottom.player1_id, bottom.player2_id) == (quarters[2].player1_id, quarters[3].player2_id)
        assert [top.match_number, bottom.match_number] == [5, 6]
        assert all(m.status == 'scheduled' for m in result.matches)

    def test_walkover_counts_as_decided(self, store, event_id):
        quarters = round_matches(store, event_id, 'Quarter-Final')
        decide(store, quarters[0], status='walkover')
        for match in quarters[1:]:
            decide(store, match)
        assert try_advance_round(store, event_id, 'Quarter-Final').status == ADVANCED

    def test_cancelled_without_winner_blocks(self, store, event_id):
        quarters = round_matches(store, event_id, 'Quarter-Final')
        store.update_match(quarters[0].id, {'status': 'cancelled'})
        for match in quarters[1:]:
            decide(store, match)
        assert try_advance_round(store, event_id, 'Quarter-Final').status == NOT_READY

    def test_round_without_matches_is_invalid(self, store, event_id):
        with pytest.raises(InvalidDrawState):
            try_advance_round(store, event_id, 'Semi-Final')

    def test_duplicate_positions_are_invalid(self, store, event_id):
        quarters = round_matches(store, event_id, 'Quarter-Final')
        for match in quarters:
            decide(store, match)
        store.update_match(quarters[1].id, {'bracket_position': 0})
        with pytest.raises(InvalidDrawState):
            try_advance_round(store, event_id, 'Quarter-Final')

    def test_position_outside_round_is_invalid(self, store, event_id):
        quarters = round_matches(store, event_id, 'Quarter-Final')
        for match in quarters:
            decide(store, match)
        store.update_match(quarters[3].id, {'bracket_position': 9})
        with pytest.raises(InvalidDrawState):
            try_advance_round(store, event_id, 'Quarter-Final')


class TestDoublesProgression:
    """Partners travel with their team from round to round."""

    def test_partner_follows_winner(self, store, service):
        event, _ = make_event(store, 'doubles', 8, rankings=[float(8 - i) for i in range(8)])
        service.generate_draw(event['id'])
        semis = round_matches(store, event['id'], 'Semi-Final')
        assert len(semis) == 2
        decide(store, semis[0], side=2)
        decide(store, semis[1], side=1)

        result = try_advance_round(store, event['id'], 'Semi-Final')

        final = result.matches[0]
        assert final.player1_id == semis[0].player2_id
        assert final.player1_partner_id == semis[0].player2_partner_id
        assert final.player2_id == semis[1].player1_id
        assert final.player2_partner_id == semis[1].player1_partner_id


class TestHandBuiltDraws:
    """Bracket shapes built directly in the store."""

    def test_round_of_only_byes_is_skipped(self, store):
        draw = Draw('singles', [Participant('a'), Participant('b'), None, None,
                                None, None, None, Participant('c')])
        store.save_draw('e1', draw)
        store.create_matches([Match('e1', 'Quarter-Final', 1, 0, 'a', 'b')])
        decide(store, store.get_matches('e1')[0], side=2)

        result = try_advance_round(store, 'e1', 'Quarter-Final')

        assert result.status == ADVANCED
        assert result.round_name == 'Final'
        final = result.matches[0]
        assert (final.player1_id, final.player2_id) == ('b', 'c')
        assert final.match_number == 2
        assert try_advance_round(store, 'e1', 'Quarter-Final').status == ALREADY_ADVANCED

    def test_missing_draw_is_invalid(self, store):
        store.create_matches([Match('e2', 'Final', 1, 0, 'a', 'b', status='completed', winner_id='a')])
        with pytest.raises(InvalidDrawState):
            try_advance_round(store, 'e2', 'Final')

    def test_match_with_wrong_players_is_invalid(self, store):
        draw = Draw('singles', [Participant('a'), Participant('b'), Participant('c'), Participant('d')])
        store.save_draw('e3', draw)
        store.create_matches([
            Match('e3', 'Semi-Final', 1, 0, 'a', 'c', status='completed', winner_id='a'),
            Match('e3', 'Semi-Final', 2, 1, 'b', 'd', status='completed', winner_id='d'),
        ])
        with pytest.raises(InvalidDrawState):
            try_advance_round(store, 'e3', 'Semi-Final')

    def test_entrants_after_round_marks_undecided(self, store):
        draw = Draw('singles', [Participant('a'), Participant('b'), Participant('c'), None])
        matches = [Match('e4', 'Semi-Final', 1, 0, 'a', 'b')]
        entrants = entrants_after_round(draw, matches, 1)
        assert entrants[1] == Participant('c')
        assert entrants[0] is not None and not isinstance(entrants[0], Participant)
        assert champion(draw, matches) is None
