from __future__ import annotations

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from . import get_service

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)


def _authorized() -> bool:
    token = current_app.config.get("ADMIN_TOKEN", "")
    if not token:
        return False
    return hmac.compare_digest(request.headers.get("X-Admin-Token", ""), token)


def _reply(result: dict):
    if result.get("ok"):
        return jsonify(result)
    status = 404 if result.get("error") == "room_not_found" else 409
    return jsonify(result), status


@bp.get("/admin/rooms")
def admin_rooms():
    if not _authorized():
        return jsonify({"error": "unauthorized"}), 401
    return jsonify({"rooms": get_service().list_public_states()})


@bp.post("/admin/rooms/<room_id>/activate")
def admin_activate(room_id: str):
    if not _authorized():
        return jsonify({"error": "unauthorized"}), 401
    logger.info("[admin] activate room=%s from %s", room_id, request.remote_addr)
    return _reply(get_service().force_activate(room_id))


@bp.post("/admin/rooms/<room_id>/reset")
def admin_reset(room_id: str):
    if not _authorized():
        return jsonify({"error": "unauthorized"}), 401
    logger.info("[admin] reset room=%s from %s", room_id, request.remote_addr)
    return _reply(get_service().force_reset(room_id))
