import os
import random
import sys
import pytest

# Ensure the backend root (containing the `app` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from app import create_app, socketio
from app.models import CatalogItem
from app.services.games.catalog import StaticCatalog
from app.services.games.engine import SessionEngine


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    FRONTEND_ORIGINS = ['http://localhost:5173']
    MIN_PLAYERS = 2
    MAX_PLAYERS = 4
    WINNING_TIMELINE_LENGTH = 10
    MAX_ACTIVE_SESSIONS = 1
    CATALOG_PROVIDER = 'static'
    LOG_LEVEL = 'DEBUG'


class OrderedRandom(random.Random):
    """Random source whose shuffle keeps order, so decks deal predictably."""

    def shuffle(self, x, *args, **kwargs):
        return None


def songs(*years):
    return [CatalogItem(f'Song {i}', f'Artist {i}', year, catalog_id=str(i)) for i, year in enumerate(years)]


@pytest.fixture()
def engine():
    return SessionEngine(rng=OrderedRandom(7))


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    # deterministic deck order for socket flows
    application.extensions['session_engine'] = SessionEngine(
        max_sessions=TestConfig.MAX_ACTIVE_SESSIONS,
        min_players=TestConfig.MIN_PLAYERS,
        max_players=TestConfig.MAX_PLAYERS,
        winning_length=TestConfig.WINNING_TIMELINE_LENGTH,
        rng=OrderedRandom(3),
    )
    application.extensions['catalog'] = StaticCatalog(songs(2000, 1990, 2010, 1980, 2020))
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def sio_factory(flask_app):
    """Open extra Socket.IO clients; all are disconnected at teardown."""
    opened = []

    def _open():
        c = socketio.test_client(flask_app, namespace='/ws')
        opened.append(c)
        return c

    yield _open
    for c in opened:
        if c.is_connected('/ws'):
            c.disconnect(namespace='/ws')
