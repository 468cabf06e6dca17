from __future__ import annotations

import os
import random
import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.models import GameSettings
from .game.registry import RoomRegistry
from .game.service import GameService
from .game.themes import ThemeCatalog
from .game.timers import BackgroundTimerDriver, ManualTimerDriver
from .realtime.dispatcher import SocketIODispatcher
from .realtime.handlers import register_socketio_handlers
from .routes.admin import bp as admin_bp
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .routes.themes import bp as themes_bp


def _async_mode() -> str:
    env_async_mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if env_async_mode:
        return env_async_mode
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(config_class=Config) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    testing = bool(app.config.get("TESTING", False))
    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode="threading" if testing else _async_mode(),
    )

    settings = GameSettings.from_mapping(app.config)
    catalog = ThemeCatalog.from_file(app.config["THEMES_FILE"], themes_dir=app.config.get("THEMES_DIR"))
    seed = app.config.get("RANDOM_SEED")
    rng = random.Random(seed) if seed is not None else random.Random()

    if testing:
        timers = ManualTimerDriver()
    else:
        timers = BackgroundTimerDriver.for_socketio(socketio)

    registry = RoomRegistry(catalog, settings, rng=rng)
    service = GameService(registry, SocketIODispatcher(socketio), timers, settings, rng=rng)
    app.extensions["memorybreakout"] = service

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")
    app.register_blueprint(themes_bp, url_prefix="/api")
    app.register_blueprint(admin_bp, url_prefix="/api")

    register_socketio_handlers(socketio, service, admin_token=app.config.get("ADMIN_TOKEN", ""))

    return app, socketio
