import os
import sys
import pytest

# Ensure the backend root (containing the `clickbattle` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from clickbattle import create_app, socketio
from clickbattle.services.arena import Arena, ArenaSettings, RoomTimers
from fakes import NAMESPACE, ManualTasks, RecordingNotifier, StubEscrow


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SOCKETIO_NAMESPACE = NAMESPACE
    CORS_ORIGINS = ['http://localhost:3000']
    COUNTDOWN_SEC = 10
    MATCH_DURATION_SEC = 30
    FINISHED_GRACE_SEC = 30
    FEE_FRACTION = 0.05
    STAKING_ENABLED = True
    ESCROW_BACKEND = 'trusting'


@pytest.fixture()
def tasks():
    return ManualTasks()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def escrow():
    return StubEscrow(rejected={'bad-proof'})


@pytest.fixture()
def arena(notifier, escrow, tasks):
    timers = RoomTimers(spawn=tasks.spawn, sleep=tasks.sleep)
    return Arena(notifier=notifier, escrow=escrow, timers=timers, spawn=tasks.spawn, settings=ArenaSettings())


@pytest.fixture()
def flask_app(tasks, escrow):
    application = create_app(TestConfig)
    # Drive timers and escrow calls by hand instead of background threads
    app_arena = application.extensions['arena']
    app_arena.timers = RoomTimers(spawn=tasks.spawn, sleep=tasks.sleep)
    app_arena.spawn = tasks.spawn
    app_arena.escrow = escrow
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio_client(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=NAMESPACE,
        )
        clients.append(test_client)
        return test_client

    yield _make
    for c in clients:
        try:
            if c.is_connected(NAMESPACE):
                c.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


@pytest.fixture()
def sio_client(make_sio_client):
    return make_sio_client()
