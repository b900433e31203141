"""
Flask web application for the tennis draw manager.

JSON endpoints over the tournament service: registration, draw generation,
result entry, event completion and the leaderboard.
"""
import os
from functools import wraps

from flask import Flask, jsonify, request, g
from tourney.exceptions import InsufficientParticipants, InvalidDrawState, NotFound, PersistenceFailure
from tourney.models import Participant, EVENT_TYPES, DOUBLES, REGISTRATION, COMPLETED, WALKOVER
from tourney.service import TournamentService
from tourney.storage import YamlStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT_SECONDS = float(os.environ.get('LOCK_TIMEOUT_SECONDS', '10'))


def get_service() -> TournamentService:
    """Service bound to the current data directory, one per request."""
    if 'service' not in g:
        g.service = TournamentService(YamlStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT_SECONDS))
    return g.service


def json_body(f):
    """Reject requests without a JSON object body."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'Expected a JSON object'}), 400
        return f(data, *args, **kwargs)
    return decorated_function


@app.errorhandler(InsufficientParticipants)
@app.errorhandler(InvalidDrawState)
@app.errorhandler(ValueError)
def handle_bad_request(error):
    return jsonify({'error': str(error)}), 400


@app.errorhandler(NotFound)
def handle_not_found(error):
    return jsonify({'error': str(error)}), 404


@app.errorhandler(PersistenceFailure)
def handle_persistence_failure(error):
    app.logger.error(f'Storage failure: {error}')
    return jsonify({'error': 'Storage failure, please retry'}), 500


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    return jsonify({'tournaments': get_service().store.list_tournaments()})


@app.route('/api/tournaments', methods=['POST'])
@json_body
def api_create_tournament(data):
    """Create a tournament, optionally with its singles and doubles events."""
    store = get_service().store
    tournament = store.create_tournament(
        data.get('name', ''),
        tournament_date=data.get('date'),
        description=data.get('description'),
    )
    for event_type in EVENT_TYPES:
        if data.get(f'include_{event_type}'):
            event = store.create_event(tournament['id'], event_type,
                                       data.get(f'max_{event_type}_participants', 32))
            tournament['events'].append(event)
    app.logger.info(f"Created tournament {tournament['name']} ({tournament['id']})")
    return jsonify(tournament), 201


@app.route('/api/tournaments/<tournament_id>/events', methods=['POST'])
@json_body
def api_create_event(data, tournament_id):
    event = get_service().store.create_event(tournament_id, data.get('event_type'),
                                             data.get('max_participants', 32))
    return jsonify(event), 201


@app.route('/api/players', methods=['GET'])
def api_list_players():
    return jsonify({'players': get_service().store.list_players()})


@app.route('/api/players', methods=['POST'])
@json_body
def api_create_player(data):
    player = get_service().store.create_player(data.get('name', ''), email=data.get('email'))
    return jsonify(player), 201


@app.route('/api/events/<event_id>/participants', methods=['POST'])
@json_body
def api_register_participant(data, event_id):
    """Register a player into an event still open for registration."""
    store = get_service().store
    event = store.get_event(event_id)
    if event.get('status') != REGISTRATION:
        return jsonify({'error': 'Registration is closed for this event'}), 400

    player = store.get_player(data.get('player_id', ''))
    ranking_field = f"{event['event_type']}_ranking_points"
    ranking = player.get(ranking_field) or 0.0
    partner_id = data.get('partner_id')
    if partner_id:
        if event['event_type'] != DOUBLES:
            return jsonify({'error': 'Partners can only be entered in doubles'}), 400
        if partner_id == player['id']:
            return jsonify({'error': 'A player cannot partner themselves'}), 400
        ranking += store.get_player(partner_id).get(ranking_field) or 0.0
    participant = store.add_participant(event_id, Participant(
        player['id'], partner_id, seed=data.get('seed_position'), ranking=ranking))
    return jsonify(participant.to_dict()), 201


@app.route('/api/events/<event_id>/draw', methods=['POST'])
def api_generate_draw(event_id):
    draw = get_service().generate_draw(event_id)
    app.logger.info(f'Draw generated for event {event_id}')
    return jsonify(draw.to_dict()), 201


@app.route('/api/events/<event_id>/consolation', methods=['POST'])
def api_generate_consolation(event_id):
    draw = get_service().generate_consolation_draw(event_id)
    return jsonify(draw.to_dict()), 201


@app.route('/api/events/<event_id>/matches', methods=['GET'])
def api_event_matches(event_id):
    """Matches of an event grouped by round, in play order."""
    service = get_service()
    service.store.get_event(event_id)
    rounds = {}
    for match in service.store.get_matches(event_id):
        rounds.setdefault(match.round_name, []).append(match.to_dict())
    return jsonify({'event_id': event_id, 'rounds': rounds})


@app.route('/api/matches/<match_id>/result', methods=['POST'])
@json_body
def api_record_result(data, match_id):
    """Record a result; the bracket advances once the round is complete."""
    winner_id = data.get('winner_id')
    score = (data.get('score') or '').strip() or None
    status = data.get('status', COMPLETED)
    if status == COMPLETED and (not winner_id or not score):
        return jsonify({'error': 'Please select a winner and enter a score'}), 400
    if status == WALKOVER and not winner_id:
        return jsonify({'error': 'Please select who wins the walkover'}), 400

    match, advance = get_service().record_result(match_id, winner_id, score=score, status=status)
    return jsonify({
        'success': True,
        'match': match.to_dict(),
        'advance': advance.to_dict(),
    })


@app.route('/api/events/<event_id>/complete', methods=['POST'])
def api_complete_event(event_id):
    results = get_service().complete_event(event_id)
    return jsonify({
        'success': True,
        'results': [r.to_dict() for r in results],
    })


@app.route('/api/leaderboard/<event_type>', methods=['GET'])
def api_leaderboard(event_type):
    if event_type not in EVENT_TYPES:
        return jsonify({'error': f'Unknown event type: {event_type}'}), 404
    return jsonify({'event_type': event_type, 'players': get_service().leaderboard(event_type)})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
