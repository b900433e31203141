"""
Shared pytest fixtures for the tennis draw manager tests.

Running tests:
    pytest tests/
"""
import pytest
import random
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.models import Participant
from tourney.service import TournamentService
from tourney.storage import YamlStore


@pytest.fixture
def store(tmp_path):
    """Empty YAML store in a temporary directory."""
    return YamlStore(str(tmp_path / "data"))


@pytest.fixture
def service(store):
    """Service with a fixed random seed so draws are reproducible."""
    return TournamentService(store, rng=random.Random(7))


def make_event(store, event_type='singles', num_players=8, rankings=None):
    """Create a tournament with one event and ``num_players`` registered players."""
    tournament = store.create_tournament('Club Championship', tournament_date='2026-06-01')
    event = store.create_event(tournament['id'], event_type)
    players = []
    for i in range(num_players):
        player = store.create_player(f'Player {i + 1}')
        ranking = rankings[i] if rankings else 0.0
        store.add_participant(event['id'], Participant(player['id'], ranking=ranking))
        players.append(player)
    return event, players


@pytest.fixture
def singles_event(store):
    """A singles event with 8 registered players ranked 8..1."""
    return make_event(store, 'singles', 8, rankings=[float(8 - i) for i in range(8)])


def play_round(service, event_id, round_name, winner_side=1):
    """Record a result for every scheduled match of a round; returns the last advance result."""
    result = None
    for match in service.store.get_matches(event_id):
        if match.round_name != round_name or match.is_resolved:
            continue
        winner = match.player1_id if winner_side == 1 else match.player2_id
        _, result = service.record_result(match.id, winner, score='6-4 6-4')
    return result


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Flask test client writing to a temporary data directory."""
    import app as app_module
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path / "data"))
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client
