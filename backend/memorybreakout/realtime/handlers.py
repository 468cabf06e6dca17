from __future__ import annotations

import hmac
import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit

from ..game.errors import Forbidden, GameError, InvalidPayload
from ..game.service import GameService
from ..game.themes import template_payload
from . import events as ev

logger = logging.getLogger(__name__)


def _validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return True
    if len(n) > 16:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def _error(exc: GameError) -> dict[str, Any]:
    payload = exc.to_payload()
    emit(ev.ROOM_ERROR, payload)
    return {"ok": False, **payload}


def register_socketio_handlers(socketio: SocketIO, service: GameService, admin_token: str = "") -> None:
    def _authorized(payload: dict) -> bool:
        if not admin_token:
            return False
        return hmac.compare_digest(str(payload.get("token", "")), admin_token)

    @socketio.on(ev.THEMES_LIST)
    def themes_list(data=None):
        templates = [template_payload(t) for t in service.registry.catalog.list_templates()]
        emit(ev.THEMES_DATA, {"rooms": templates})
        return {"ok": True, "rooms": templates}

    @socketio.on(ev.ROOM_CREATE)
    def room_create(data):
        payload = data or {}
        theme_id = str(payload.get("themeId", "")).strip()
        if not theme_id:
            return _error(InvalidPayload("themeId is required."))
        return service.create_hosted_room(request.sid, theme_id)

    @socketio.on(ev.ROOM_QUICK_JOIN)
    def room_quick_join(data):
        payload = data or {}
        theme_id = str(payload.get("themeId", "")).strip()
        name = str(payload.get("name", "")).strip()
        player_id = str(payload.get("playerId", "")).strip() or None

        if not theme_id or not _validate_name(name):
            return _error(InvalidPayload())
        return service.quick_join(request.sid, theme_id, name=name, persistent_id=player_id)

    @socketio.on(ev.ROOM_JOIN)
    def room_join(data):
        payload = data or {}
        room_id = str(payload.get("roomId", "")).strip()
        name = str(payload.get("name", "")).strip()
        player_id = str(payload.get("playerId", "")).strip() or None

        if not room_id or not _validate_name(name):
            return _error(InvalidPayload())
        return service.join(room_id, request.sid, name=name, persistent_id=player_id)

    @socketio.on(ev.ROOM_LEAVE)
    def room_leave(data=None):
        return service.leave(request.sid)

    @socketio.on(ev.HOST_START)
    def host_start(data=None):
        return service.host_start(request.sid)

    @socketio.on(ev.HOST_CANCEL)
    def host_cancel(data=None):
        return service.host_cancel(request.sid)

    @socketio.on(ev.LOBBY_SET_READY)
    def lobby_set_ready(data):
        payload = data or {}
        ready = payload.get("ready")
        if not isinstance(ready, bool):
            return _error(InvalidPayload("ready must be a boolean."))
        return service.set_ready(request.sid, ready)

    @socketio.on(ev.GAME_ASSETS_LOADED)
    def game_assets_loaded(data=None):
        return service.assets_loaded(request.sid)

    def _select(data):
        payload = data or {}
        symbol = str(payload.get("symbol", payload.get("pressedSymbol", ""))).strip()
        if not symbol:
            return _error(InvalidPayload("symbol is required."))
        return service.select(request.sid, symbol)

    socketio.on_event(ev.GAME_SELECT, _select)
    socketio.on_event(ev.GAME_PRESS, _select)

    @socketio.on(ev.ADMIN_FORCE_ACTIVATE)
    def admin_force_activate(data):
        payload = data or {}
        if not _authorized(payload):
            return _error(Forbidden())
        room_id = str(payload.get("roomId", "")).strip()
        logger.info("[admin] force_activate room=%s by %s", room_id, request.sid)
        return service.force_activate(room_id)

    @socketio.on(ev.ADMIN_FORCE_RESET)
    def admin_force_reset(data):
        payload = data or {}
        if not _authorized(payload):
            return _error(Forbidden())
        room_id = str(payload.get("roomId", "")).strip()
        logger.info("[admin] force_reset room=%s by %s", room_id, request.sid)
        return service.force_reset(room_id)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        service.disconnect(request.sid)
