from __future__ import annotations

from flask import Blueprint, jsonify

from ..game.themes import template_payload
from . import get_service

bp = Blueprint("themes", __name__)


@bp.get("/themes")
def list_themes():
    catalog = get_service().registry.catalog
    return jsonify({"rooms": [template_payload(t) for t in catalog.list_templates()]})
