import logging
import os
import random
import sys
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `royale` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from royale import create_app, socketio
from royale.services.games.lobby import Lobby
from royale.services.games.registry import RoomRegistry
from royale.services.games.scheduler import RoundScheduler
from royale.services.games.timers import TimerHandle


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    HOST_PASSWORD = 'letmein'
    RESULT_SINK_ENABLED = True
    GAME_START_DELAY_MS = 2000
    REFLEX_TOTAL_ROUNDS = 4
    REFLEX_VOLUME_ROUND_MS = 10000
    CONQUEST_TOTAL_ROUNDS = 12
    CONQUEST_ROUND_MS = 12000
    CONQUEST_CLOSE_GRACE_MS = 2000
    CONQUEST_AUTO_ADVANCE_MS = 5000
    CONQUEST_ACTION_POINTS = 3
    LEADERBOARD_THROTTLE_MS = 1000
    AGGREGATE_THROTTLE_MS = 100
    AGGREGATE_CAPACITY_PER_PLAYER = 100
    CONNECT_RATE_WINDOW_SEC = 60
    CONNECT_RATE_MAX = 1000
    MAX_PLAYERS_PER_ROOM = 0
    TRUSTED_PROXY_HOPS = 0
    # Bcrypt cost kept low so the suite stays fast
    BCRYPT_LOG_ROUNDS = 4


class ManualTimers:
    """Timer queue that only fires when a test says so."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay_sec, fn, *args):
        handle = TimerHandle(delay_sec, fn, args)
        self.handles.append(handle)
        return handle

    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def fire_next(self):
        pending = self.pending()
        assert pending, 'no timer is pending'
        pending[0].fire()
        return pending[0]

    def fire_all(self):
        for handle in self.pending():
            handle.fire()


class RecordingSink:
    def __init__(self, fail=False):
        self.fail = fail
        self.results = []
        self.activity = []

    def record_game_result(self, room_code, mode, standings):
        if self.fail:
            raise RuntimeError('sink is down')
        self.results.append((room_code, mode, standings))

    def record_player_activity(self, nickname, score_gained):
        if self.fail:
            raise RuntimeError('sink is down')
        self.activity.append((nickname, score_gained))


class RecordingBroadcaster:
    def __init__(self):
        self.sent = []
        self.channels = {}

    def to_room(self, code, event, payload=None):
        self.sent.append(('room', code, event, payload or {}))

    def to_connection(self, connection_id, event, payload=None):
        self.sent.append(('conn', connection_id, event, payload or {}))

    def subscribe(self, connection_id, code):
        self.channels.setdefault(code, set()).add(connection_id)

    def unsubscribe(self, connection_id, code):
        self.channels.get(code, set()).discard(connection_id)

    def close_channel(self, code):
        self.channels.pop(code, None)

    def events(self, name, target=None):
        return [p for kind, to, event, p in self.sent if event == name and (target is None or to == target)]


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _settings():
    return {k: v for k, v in vars(TestConfig).items() if k.isupper()}


@pytest.fixture()
def game():
    """An isolated registry, lobby and scheduler with recording collaborators."""
    registry = RoomRegistry(rng=random.Random(1234))
    out = RecordingBroadcaster()
    timers = ManualTimers()
    sink = RecordingSink()
    clock = FakeClock()
    settings = _settings()
    logger = logging.getLogger('royale.tests')
    lobby = Lobby(registry, out, logger, settings)
    scheduler = RoundScheduler(registry, out, timers, sink, logger, settings, clock=clock)
    return SimpleNamespace(
        registry=registry, out=out, timers=timers, sink=sink, clock=clock,
        settings=settings, lobby=lobby, scheduler=scheduler,
    )


@pytest.fixture()
def manual_timers():
    return ManualTimers()


@pytest.fixture()
def recording_sink():
    return RecordingSink()


@pytest.fixture()
def flask_app(manual_timers, recording_sink):
    application = create_app(TestConfig, timers=manual_timers, result_sink=recording_sink)
    with application.app_context():
        yield application
        from royale import db
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass
