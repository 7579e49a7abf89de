import copy
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure the project root (containing the `hoopboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from hoopboard import create_app, db, socketio
from hoopboard.config import Config
from hoopboard.errors import NotFoundError, PersistenceError
from hoopboard.live.rows import QuarterRow, ScoreboardRow


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4


T0 = datetime(2026, 3, 14, 19, 30, tzinfo=timezone.utc)


class FakeClock:
    """Controllable ``now`` for clock math."""

    def __init__(self, start=T0):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current = self.current + timedelta(seconds=seconds)


class FakeGateway:
    """In-memory ScoreboardGateway with failure injection."""

    def __init__(self):
        self.scoreboards = {}
        self.quarters = {}
        self.fail_updates = 0
        self.fail_upserts = 0
        self.fail_reads = 0
        self.update_calls = []
        self.upsert_calls = 0
        self.quarter_fetches = 0
        self._next_quarter_id = 1

    def add_scoreboard(self, scoreboard_id=1, owner_id=10, duration=600,
                       teams=((100, 'home', 'Hawks'), (200, 'away', 'Owls')), share_code=None):
        self.scoreboards[scoreboard_id] = {
            'id': scoreboard_id,
            'owner_id': owner_id,
            'share_code': share_code,
            'current_quarter': 1,
            'timer_duration': duration,
            'timer_state': 'stopped',
            'timer_started_at': None,
            'timer_paused_duration': 0,
            'teams': [
                {'id': tid, 'scoreboard_id': scoreboard_id, 'name': name, 'position': pos}
                for tid, pos, name in teams
            ],
        }
        return self.scoreboards[scoreboard_id]

    def _check_read(self):
        if self.fail_reads:
            self.fail_reads -= 1
            raise PersistenceError('read failed')

    def fetch_by_id(self, scoreboard_id):
        self._check_read()
        if scoreboard_id not in self.scoreboards:
            raise NotFoundError('Scoreboard not found')
        return ScoreboardRow.from_dict(copy.deepcopy(self.scoreboards[scoreboard_id]))

    def fetch_by_share_code(self, code):
        self._check_read()
        for data in self.scoreboards.values():
            if data['share_code'] == code:
                return ScoreboardRow.from_dict(copy.deepcopy(data))
        raise NotFoundError('Scoreboard not found or not shared')

    def update_scoreboard(self, scoreboard_id, **fields):
        self.update_calls.append(fields)
        if self.fail_updates:
            self.fail_updates -= 1
            raise PersistenceError('update failed')
        self.scoreboards[scoreboard_id].update(fields)
        return ScoreboardRow.from_dict(copy.deepcopy(self.scoreboards[scoreboard_id]))

    def upsert_quarters(self, rows):
        self.upsert_calls += 1
        if self.fail_upserts:
            self.fail_upserts -= 1
            raise PersistenceError('upsert failed')
        written = []
        for row in rows:
            existing = self.quarters.get(row.key)
            row_id = existing.id if existing else self._next_quarter_id
            if not existing:
                self._next_quarter_id += 1
            stored = QuarterRow(team_id=row.team_id, quarter_number=row.quarter_number,
                                points=row.points, fouls=row.fouls, timeouts=row.timeouts, id=row_id)
            self.quarters[row.key] = stored
            written.append(stored)
        return written

    def fetch_quarters(self, team_ids, quarter_number=None):
        self._check_read()
        self.quarter_fetches += 1
        return sorted(
            (q for q in self.quarters.values()
             if q.team_id in team_ids and (quarter_number is None or q.quarter_number == quarter_number)),
            key=lambda q: (q.quarter_number, q.team_id),
        )


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def gateway():
    gw = FakeGateway()
    gw.add_scoreboard()
    return gw


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import hoopboard.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def owner_client(client):
    client.post('/users/add', json={'username': 'coach', 'password': 'pw'})
    res = client.post('/login', json={'username': 'coach', 'password': 'pw'})
    assert res.status_code == 200
    return client


@pytest.fixture()
def scoreboard(owner_client):
    res = owner_client.post('/api/scoreboards', json={
        'home_name': 'Hawks', 'away_name': 'Owls', 'timer_duration': 600,
    })
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def sio_client(flask_app, client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=client,
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
