"""
Unit tests for the Flask web application.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))


def create_event(client, event_type='singles', num_players=4):
    """Create a tournament with one event and register ``num_players`` players through the API."""
    response = client.post('/api/tournaments', json={
        'name': 'Club Championship',
        'date': '2026-06-01',
        f'include_{event_type}': True,
    })
    assert response.status_code == 201
    event = response.get_json()['events'][0]

    players = []
    for i in range(num_players):
        player = client.post('/api/players', json={'name': f'Player {i + 1}'}).get_json()
        response = client.post(f"/api/events/{event['id']}/participants", json={'player_id': player['id']})
        assert response.status_code == 201
        players.append(player)
    return event, players


def play_round(client, event_id, round_name):
    """Player 1 wins every open match of a round; returns the last response body."""
    rounds = client.get(f'/api/events/{event_id}/matches').get_json()['rounds']
    body = None
    for match in rounds[round_name]:
        if match['status'] != 'scheduled':
            continue
        response = client.post(f"/api/matches/{match['id']}/result", json={
            'winner_id': match['player1_id'],
            'score': '6-3 6-2',
        })
        assert response.status_code == 200
        body = response.get_json()
    return body


class TestRegistrationRoutes:
    """Tests for tournaments, players and participants."""

    def test_create_tournament_with_events(self, client):
        response = client.post('/api/tournaments', json={
            'name': 'Spring Open',
            'include_singles': True,
            'include_doubles': True,
            'max_doubles_participants': 16,
        })
        assert response.status_code == 201
        events = response.get_json()['events']
        assert [e['event_type'] for e in events] == ['singles', 'doubles']
        assert events[1]['max_participants'] == 16

        tournaments = client.get('/api/tournaments').get_json()['tournaments']
        assert len(tournaments) == 1
        assert len(tournaments[0]['events']) == 2

    def test_create_event_for_tournament(self, client):
        tournament = client.post('/api/tournaments', json={'name': 'Spring Open'}).get_json()
        response = client.post(f"/api/tournaments/{tournament['id']}/events", json={'event_type': 'doubles'})
        assert response.status_code == 201
        assert response.get_json()['status'] == 'registration'

    def test_unknown_event_type(self, client):
        tournament = client.post('/api/tournaments', json={'name': 'Spring Open'}).get_json()
        response = client.post(f"/api/tournaments/{tournament['id']}/events", json={'event_type': 'mixed'})
        assert response.status_code == 400

    def test_missing_json_body(self, client):
        response = client.post('/api/players', data='name=Ann')
        assert response.status_code == 400
        assert 'error' in response.get_json()

    def test_player_name_required(self, client):
        response = client.post('/api/players', json={'name': ''})
        assert response.status_code == 400

    def test_register_unknown_player(self, client):
        event, _ = create_event(client, num_players=0)
        response = client.post(f"/api/events/{event['id']}/participants", json={'player_id': 'missing'})
        assert response.status_code == 404

    def test_register_twice(self, client):
        event, players = create_event(client, num_players=1)
        response = client.post(f"/api/events/{event['id']}/participants", json={'player_id': players[0]['id']})
        assert response.status_code == 400

    def test_doubles_team_registration(self, client):
        event, players = create_event(client, event_type='doubles', num_players=1)
        partner = client.post('/api/players', json={'name': 'Partner'}).get_json()
        other = client.post('/api/players', json={'name': 'Other'}).get_json()
        response = client.post(f"/api/events/{event['id']}/participants", json={
            'player_id': other['id'],
            'partner_id': partner['id'],
        })
        assert response.status_code == 201
        assert response.get_json()['partner_id'] == partner['id']

        again = client.post(f"/api/events/{event['id']}/participants", json={'player_id': partner['id']})
        assert again.status_code == 400

    def test_partner_only_in_doubles(self, client):
        event, players = create_event(client, event_type='singles', num_players=1)
        other = client.post('/api/players', json={'name': 'Other'}).get_json()
        response = client.post(f"/api/events/{event['id']}/participants", json={
            'player_id': other['id'],
            'partner_id': players[0]['id'],
        })
        assert response.status_code == 400

    def test_registration_closes_with_draw(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")
        late = client.post('/api/players', json={'name': 'Late'}).get_json()
        response = client.post(f"/api/events/{event['id']}/participants", json={'player_id': late['id']})
        assert response.status_code == 400
        assert 'closed' in response.get_json()['error']


class TestDrawRoutes:
    """Tests for draw generation and result entry."""

    def test_generate_draw(self, client):
        event, _ = create_event(client, num_players=5)
        response = client.post(f"/api/events/{event['id']}/draw")
        assert response.status_code == 201
        draw = response.get_json()
        assert draw['draw_size'] == 8
        assert draw['bye_count'] == 3

        rounds = client.get(f"/api/events/{event['id']}/matches").get_json()['rounds']
        assert list(rounds) == ['Quarter-Final']
        assert len(rounds['Quarter-Final']) == 2

    def test_draw_needs_four_players(self, client):
        event, _ = create_event(client, num_players=3)
        response = client.post(f"/api/events/{event['id']}/draw")
        assert response.status_code == 400
        assert 'at least 4' in response.get_json()['error']

    def test_draw_for_unknown_event(self, client):
        response = client.post('/api/events/missing/draw')
        assert response.status_code == 404

    def test_result_needs_winner_and_score(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")
        match = client.get(f"/api/events/{event['id']}/matches").get_json()['rounds']['Semi-Final'][0]
        response = client.post(f"/api/matches/{match['id']}/result", json={'winner_id': match['player1_id']})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Please select a winner and enter a score'

    def test_walkover_without_score(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")
        match = client.get(f"/api/events/{event['id']}/matches").get_json()['rounds']['Semi-Final'][0]
        response = client.post(f"/api/matches/{match['id']}/result", json={
            'winner_id': match['player2_id'],
            'status': 'walkover',
        })
        assert response.status_code == 200
        body = response.get_json()
        assert body['match']['status'] == 'walkover'
        assert body['advance']['status'] == 'not_ready'

    def test_walkover_needs_winner(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")
        match = client.get(f"/api/events/{event['id']}/matches").get_json()['rounds']['Semi-Final'][0]
        response = client.post(f"/api/matches/{match['id']}/result", json={'status': 'walkover'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Please select who wins the walkover'

    def test_round_advances_after_last_result(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")

        body = play_round(client, event['id'], 'Semi-Final')

        assert body['advance']['status'] == 'advanced'
        assert body['advance']['round_name'] == 'Final'
        rounds = client.get(f"/api/events/{event['id']}/matches").get_json()['rounds']
        assert len(rounds['Final']) == 1

    def test_result_for_unknown_match(self, client):
        response = client.post('/api/matches/missing/result', json={'winner_id': 'a', 'score': '6-0 6-0'})
        assert response.status_code == 404


class TestCompletionRoutes:
    """Tests for event completion and the leaderboard."""

    def test_complete_event_and_leaderboard(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")
        play_round(client, event['id'], 'Semi-Final')
        final = play_round(client, event['id'], 'Final')
        assert final['advance']['status'] == 'terminal_reached'

        response = client.post(f"/api/events/{event['id']}/complete")
        assert response.status_code == 200
        results = response.get_json()['results']
        assert sorted(r['points_earned'] for r in results) == [20, 20, 30, 45]

        board = client.get('/api/leaderboard/singles').get_json()['players']
        assert [row['rank'] for row in board] == [1, 2, 3, 3]
        assert board[0]['rank_points'] == pytest.approx(22.5)
        assert board[0]['cd'] == pytest.approx(2.0)

    def test_complete_unfinished_event(self, client):
        event, _ = create_event(client, num_players=4)
        client.post(f"/api/events/{event['id']}/draw")
        response = client.post(f"/api/events/{event['id']}/complete")
        assert response.status_code == 400

    def test_empty_leaderboard(self, client):
        response = client.get('/api/leaderboard/doubles')
        assert response.status_code == 200
        assert response.get_json()['players'] == []

    def test_unknown_leaderboard(self, client):
        response = client.get('/api/leaderboard/mixed')
        assert response.status_code == 404


def test_app_keeps_no_secret_key(client, tmp_path):
    import app as app_module
    assert app_module.app.secret_key is None
    client.get('/api/players')
    assert not (tmp_path / "data" / ".secret_key").exists()
