import random

import pytest

from memorybreakout.config import Config
from memorybreakout.game.models import GameSettings, ThemeTemplate
from memorybreakout.game.registry import RoomRegistry
from memorybreakout.game.service import GameService
from memorybreakout.game.themes import ThemeCatalog
from memorybreakout.game.timers import ManualTimerDriver
from memorybreakout.server import create_app

LETTERS = tuple("ABCDEFGHI")


class RecordingDispatcher:
    """In-memory stand-in for the Socket.IO transport."""

    def __init__(self):
        self.channels = {}
        self.sent = []

    def send_to_connection(self, connection_id, event, payload):
        self.sent.append((connection_id, event, payload))

    def send_to_room(self, room_id, event, payload):
        for conn in sorted(self.channels.get(room_id, set())):
            self.sent.append((conn, event, payload))

    def join_room_channel(self, connection_id, room_id):
        self.channels.setdefault(room_id, set()).add(connection_id)

    def leave_room_channel(self, connection_id, room_id):
        self.channels.get(room_id, set()).discard(connection_id)

    def received(self, connection_id, event=None):
        return [
            payload for conn, name, payload in self.sent
            if conn == connection_id and (event is None or name == event)
        ]

    def last(self, connection_id, event):
        got = self.received(connection_id, event)
        return got[-1] if got else None

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def catalog():
    return ThemeCatalog(
        [
            ThemeTemplate(id="STUDIO", display_name="Studio", max_players=3, board_size=9, symbols=LETTERS),
            ThemeTemplate(id="DUO", display_name="Duo", max_players=2, board_size=4, symbols=LETTERS),
            ThemeTemplate(
                id="ENGINE",
                display_name="Engine",
                max_players=4,
                mode="alternating",
                symbols=tuple(f"S{i}" for i in range(16)),
            ),
            ThemeTemplate(id="EMPTY", display_name="Empty", max_players=2),
        ],
        default_symbols=[],
    )


@pytest.fixture()
def settings():
    return GameSettings()


@pytest.fixture()
def timers():
    return ManualTimerDriver()


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
def registry(catalog, settings):
    return RoomRegistry(catalog, settings, rng=random.Random(3))


@pytest.fixture()
def service(registry, dispatcher, timers, settings):
    svc = GameService(registry, dispatcher, timers, settings, rng=random.Random(7))
    yield svc
    svc.shutdown()


def join_all(service, room_id, conns):
    """Join every connection and return their persistent ids, in order."""
    ids = []
    for conn in conns:
        reply = service.join(room_id, conn, name=conn)
        assert reply["ok"], reply
        ids.append(reply["playerId"])
    return ids


def start_game(service, timers, room_id, conns):
    """Join, ready up, run the countdown and report assets; returns player ids."""
    ids = join_all(service, room_id, conns)
    for conn in conns:
        assert service.set_ready(conn, True)["ok"]
    timers.advance(service.settings.countdown_sec)
    for conn in conns:
        assert service.assets_loaded(conn)["ok"]
    return ids


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    ADMIN_TOKEN = "op-secret"
    TRUST_PROXY_HEADERS = False
    RANDOM_SEED = 11
    START_POLICY = "all_ready"


@pytest.fixture()
def app_and_socketio():
    app, socketio = create_app(TestConfig)
    yield app, socketio
    app.extensions["memorybreakout"].shutdown()


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()
