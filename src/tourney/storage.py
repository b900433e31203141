"""
Persistence for tournaments, players, draws, matches and results.

``TournamentStore`` is the interface the service talks to. ``YamlStore``
keeps everything as YAML documents under one data directory, with writes
serialised through a file lock:

    data/
        tournaments.yaml          tournaments and their events
        players.yaml
        results.yaml
        events/<event_id>/
            participants.yaml
            draws.yaml
            matches.yaml
"""
import logging
import os
import uuid
from datetime import datetime
from typing import Dict, List, Optional

import yaml
from filelock import FileLock, Timeout

from .exceptions import NotFound, PersistenceFailure
from .models import Draw, EventResult, Match, Participant, EVENT_TYPES, MAIN, REGISTRATION

logger = logging.getLogger(__name__)


class TournamentStore:
    """Data access used by the tournament service."""

    # Draw engine
    def get_event(self, event_id: str) -> Dict:
        raise NotImplementedError

    def update_event(self, event_id: str, fields: Dict) -> Dict:
        raise NotImplementedError

    def get_participants(self, event_id: str) -> List[Participant]:
        raise NotImplementedError

    def save_draw(self, event_id: str, draw: Draw) -> Draw:
        raise NotImplementedError

    def get_draw(self, event_id: str, bracket_type: str = MAIN) -> Optional[Draw]:
        raise NotImplementedError

    def create_matches(self, matches: List[Match]) -> List[Match]:
        raise NotImplementedError

    def get_matches(self, event_id: str) -> List[Match]:
        raise NotImplementedError

    def get_match(self, match_id: str) -> Match:
        raise NotImplementedError

    def update_match(self, match_id: str, fields: Dict) -> Match:
        raise NotImplementedError

    # Rankings
    def record_results(self, results: List[EventResult]) -> None:
        raise NotImplementedError

    def get_player_ranking_history(self, player_id: str) -> List[EventResult]:
        raise NotImplementedError

    def update_player_aggregates(self, player_id: str, fields: Dict) -> None:
        raise NotImplementedError

    # Registration
    def create_tournament(self, name: str, tournament_date=None, description=None) -> Dict:
        raise NotImplementedError

    def list_tournaments(self) -> List[Dict]:
        raise NotImplementedError

    def create_event(self, tournament_id: str, event_type: str, max_participants: int = 32) -> Dict:
        raise NotImplementedError

    def create_player(self, name: str, email=None) -> Dict:
        raise NotImplementedError

    def get_player(self, player_id: str) -> Dict:
        raise NotImplementedError

    def list_players(self) -> List[Dict]:
        raise NotImplementedError

    def add_participant(self, event_id: str, participant: Participant) -> Participant:
        raise NotImplementedError


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class YamlStore(TournamentStore):
    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    # --- file helpers -------------------------------------------------

    def _path(self, *parts) -> str:
        return os.path.join(self.data_dir, *parts)

    def _event_path(self, event_id: str, filename: str) -> str:
        if not event_id or '/' in event_id or '\\' in event_id or '..' in event_id:
            raise NotFound(f"Invalid event id: {event_id!r}")
        return self._path('events', event_id, filename)

    def _load(self, path: str, default):
        if not os.path.exists(path):
            return default
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to parse %s: %s", path, e)
            raise PersistenceFailure(f"Failed to read {path}: {e}") from e
        return data if data is not None else default

    def _save(self, path: str, data):
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False, allow_unicode=True)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceFailure(f"Failed to write {path}: {e}") from e

    def _locked(self):
        return _StoreLock(self._lock)

    def _load_tournaments(self) -> Dict:
        data = self._load(self._path('tournaments.yaml'), {})
        data.setdefault('tournaments', [])
        return data

    def _load_players(self) -> List[Dict]:
        return self._load(self._path('players.yaml'), {}).get('players', [])

    def _load_matches(self, event_id: str) -> List[Dict]:
        return self._load(self._event_path(event_id, 'matches.yaml'), {}).get('matches', [])

    def _find_event(self, data: Dict, event_id: str) -> Dict:
        for tournament in data['tournaments']:
            for event in tournament.get('events', []):
                if event['id'] == event_id:
                    return event
        raise NotFound(f"Event {event_id} not found")

    # --- events and draws ---------------------------------------------

    def get_event(self, event_id: str) -> Dict:
        return self._find_event(self._load_tournaments(), event_id)

    def update_event(self, event_id: str, fields: Dict) -> Dict:
        with self._locked():
            data = self._load_tournaments()
            event = self._find_event(data, event_id)
            event.update(fields)
            self._save(self._path('tournaments.yaml'), data)
        return event

    def get_participants(self, event_id: str) -> List[Participant]:
        self.get_event(event_id)
        records = self._load(self._event_path(event_id, 'participants.yaml'), {}).get('participants', [])
        try:
            return [Participant.from_dict(r) for r in records]
        except (ValueError, TypeError, AttributeError) as e:
            raise PersistenceFailure(f"Malformed participant for event {event_id}: {e}") from e

    def save_draw(self, event_id: str, draw: Draw) -> Draw:
        path = self._event_path(event_id, 'draws.yaml')
        with self._locked():
            draws = self._load(path, {})
            draws[draw.bracket_type] = draw.to_dict()
            self._save(path, draws)
        return draw

    def get_draw(self, event_id: str, bracket_type: str = MAIN) -> Optional[Draw]:
        draws = self._load(self._event_path(event_id, 'draws.yaml'), {})
        record = draws.get(bracket_type)
        if not record:
            return None
        try:
            return Draw.from_dict(record)
        except (ValueError, TypeError, AttributeError) as e:
            raise PersistenceFailure(f"Malformed {bracket_type} draw for event {event_id}: {e}") from e

    # --- matches ------------------------------------------------------

    def create_matches(self, matches: List[Match]) -> List[Match]:
        created = []
        with self._locked():
            by_event = {}
            for match in matches:
                by_event.setdefault(match.event_id, []).append(match)
            for event_id, event_matches in by_event.items():
                path = self._event_path(event_id, 'matches.yaml')
                records = self._load_matches(event_id)
                for match in event_matches:
                    match.id = match.id or _new_id()
                    records.append(match.to_dict())
                    created.append(match)
                self._save(path, {'matches': records})
        return created

    def get_matches(self, event_id: str) -> List[Match]:
        try:
            matches = [Match.from_dict(r) for r in self._load_matches(event_id)]
        except (ValueError, TypeError, AttributeError) as e:
            raise PersistenceFailure(f"Malformed match for event {event_id}: {e}") from e
        return sorted(matches, key=lambda m: m.match_number)

    def _match_event(self, match_id: str) -> str:
        events_dir = self._path('events')
        if os.path.isdir(events_dir):
            for event_id in sorted(os.listdir(events_dir)):
                if any(r.get('id') == match_id for r in self._load_matches(event_id)):
                    return event_id
        raise NotFound(f"Match {match_id} not found")

    def get_match(self, match_id: str) -> Match:
        event_id = self._match_event(match_id)
        for match in self.get_matches(event_id):
            if match.id == match_id:
                return match
        raise NotFound(f"Match {match_id} not found")

    def update_match(self, match_id: str, fields: Dict) -> Match:
        with self._locked():
            event_id = self._match_event(match_id)
            records = self._load_matches(event_id)
            record = next(r for r in records if r.get('id') == match_id)
            updated = dict(record)
            updated.update(fields)
            try:
                match = Match.from_dict(updated)
            except (ValueError, TypeError) as e:
                raise PersistenceFailure(f"Invalid update for match {match_id}: {e}") from e
            record.clear()
            record.update(match.to_dict())
            self._save(self._event_path(event_id, 'matches.yaml'), {'matches': records})
        return match

    # --- results and players ------------------------------------------

    def record_results(self, results: List[EventResult]) -> None:
        path = self._path('results.yaml')
        with self._locked():
            records = self._load(path, {}).get('results', [])
            records.extend(r.to_dict() for r in results)
            self._save(path, {'results': records})

    def get_player_ranking_history(self, player_id: str) -> List[EventResult]:
        records = self._load(self._path('results.yaml'), {}).get('results', [])
        return [EventResult.from_dict(r) for r in records if r.get('player_id') == player_id]

    def update_player_aggregates(self, player_id: str, fields: Dict) -> None:
        path = self._path('players.yaml')
        with self._locked():
            players = self._load_players()
            player = next((p for p in players if p['id'] == player_id), None)
            if player is None:
                raise NotFound(f"Player {player_id} not found")
            player.update(fields)
            self._save(path, {'players': players})

    def create_player(self, name: str, email=None) -> Dict:
        name = (name or '').strip()
        if not name:
            raise ValueError("Player name is required")
        player = {
            'id': _new_id(),
            'name': name,
            'email': email,
            'created': datetime.now().isoformat(),
        }
        with self._locked():
            players = self._load_players()
            players.append(player)
            self._save(self._path('players.yaml'), {'players': players})
        return player

    def get_player(self, player_id: str) -> Dict:
        for player in self._load_players():
            if player['id'] == player_id:
                return player
        raise NotFound(f"Player {player_id} not found")

    def list_players(self) -> List[Dict]:
        return sorted(self._load_players(), key=lambda p: p.get('name', ''))

    # --- tournaments and registration ---------------------------------

    def create_tournament(self, name: str, tournament_date=None, description=None) -> Dict:
        name = (name or '').strip()
        if not name:
            raise ValueError("Tournament name is required")
        tournament = {
            'id': _new_id(),
            'name': name,
            'tournament_date': tournament_date,
            'description': description,
            'status': 'upcoming',
            'events': [],
            'created': datetime.now().isoformat(),
        }
        with self._locked():
            data = self._load_tournaments()
            data['tournaments'].append(tournament)
            self._save(self._path('tournaments.yaml'), data)
        return tournament

    def list_tournaments(self) -> List[Dict]:
        return self._load_tournaments()['tournaments']

    def create_event(self, tournament_id: str, event_type: str, max_participants: int = 32) -> Dict:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        event = {
            'id': _new_id(),
            'tournament_id': tournament_id,
            'event_type': event_type,
            'max_participants': int(max_participants),
            'status': REGISTRATION,
        }
        with self._locked():
            data = self._load_tournaments()
            tournament = next((t for t in data['tournaments'] if t['id'] == tournament_id), None)
            if tournament is None:
                raise NotFound(f"Tournament {tournament_id} not found")
            tournament.setdefault('events', []).append(event)
            self._save(self._path('tournaments.yaml'), data)
        return event

    def add_participant(self, event_id: str, participant: Participant) -> Participant:
        event = self.get_event(event_id)
        path = self._event_path(event_id, 'participants.yaml')
        with self._locked():
            records = self._load(path, {}).get('participants', [])
            registered = {pid for r in records for pid in (r.get('player_id'), r.get('partner_id')) if pid}
            for player_id in participant.player_ids:
                if player_id in registered:
                    raise ValueError(f"Player {player_id} is already registered")
            if len(records) >= event.get('max_participants', 32):
                raise ValueError("Event is full")
            records.append(participant.to_dict())
            self._save(path, {'participants': records})
        return participant


class _StoreLock:
    """Context manager that reports lock timeouts as persistence failures."""

    def __init__(self, lock: FileLock):
        self.lock = lock

    def __enter__(self):
        try:
            self.lock.acquire()
        except Timeout as e:
            raise PersistenceFailure(f"Timed out waiting for {self.lock.lock_file}") from e
        return self

    def __exit__(self, exc_type, exc, tb):
        self.lock.release()
        return False
