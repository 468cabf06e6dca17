from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..game.errors import TemplateNotFound
from . import get_service

bp = Blueprint("rooms", __name__)


@bp.post("/rooms")
def create_room():
    data = request.get_json(silent=True) or {}
    theme_id = str(data.get("themeId", "")).strip()
    if not theme_id:
        return jsonify({"error": "invalid_payload"}), 400

    try:
        room = get_service().create_room(theme_id)
    except TemplateNotFound:
        return jsonify({"error": "template_not_found"}), 404
    return jsonify({"roomId": room.id, "themeId": room.theme_id, "maxPlayers": room.max_players}), 201


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    state = get_service().public_state(room_id)
    if state is None:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(state)
