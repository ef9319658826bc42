"""
Kanban Blueprint — card lifecycle.

Endpoints:
    GET    /api/v1/kanbans                       — list (product_id, kanban_chain_id, include_retired)
    GET    /api/v1/kanbans/<id>                  — single card
    POST   /api/v1/kanbans/<id>/advance          — move to next status
    DELETE /api/v1/kanbans/<id>                  — retire card
    GET    /api/v1/kanbans/<id>/history          — transitions, newest first

Layer contract:
    - No ORM calls here — all DB work delegated to kanban_lifecycle.
    - No db.session.commit() here.
"""

import logging

from flask import Blueprint, jsonify, request

from ekanban.blueprints import json_body, paginate, register_error_handlers
from ekanban.services import kanban_lifecycle

logger = logging.getLogger(__name__)

kanban_bp = Blueprint("kanban", __name__, url_prefix="/api/v1")
register_error_handlers(kanban_bp)


@kanban_bp.route("/kanbans", methods=["GET"])
def list_kanbans():
    include_retired = request.args.get("include_retired", "false").lower() in ("1", "true", "yes")
    cards = kanban_lifecycle.list_cards(
        product_id=request.args.get("product_id") or None,
        chain_id=request.args.get("kanban_chain_id", type=int),
        include_retired=include_retired,
    )
    items, total = paginate(cards)
    return jsonify({"items": items, "total": total}), 200


@kanban_bp.route("/kanbans/<int:kanban_id>", methods=["GET"])
def get_kanban(kanban_id: int):
    return jsonify(kanban_lifecycle.get_card(kanban_id)), 200


@kanban_bp.route("/kanbans/<int:kanban_id>/advance", methods=["POST"])
def advance_kanban(kanban_id: int):
    """Body (JSON): requesting_role (1|2|"supplier"|"customer")."""
    data = json_body()
    view = kanban_lifecycle.advance(kanban_id, data.get("requesting_role"))
    return jsonify(view.to_dict()), 200


@kanban_bp.route("/kanbans/<int:kanban_id>", methods=["DELETE"])
def retire_kanban(kanban_id: int):
    return jsonify(kanban_lifecycle.retire(kanban_id)), 200


@kanban_bp.route("/kanbans/<int:kanban_id>/history", methods=["GET"])
def kanban_history(kanban_id: int):
    return jsonify(kanban_lifecycle.history(kanban_id)), 200
