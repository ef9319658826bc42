"""
Status Chain Blueprint.

Endpoints:
    GET    /api/v1/status-chains                               — list chains
    POST   /api/v1/status-chains                               — create (optional entries)
    GET    /api/v1/status-chains/<id>                          — chain with entries
    PUT    /api/v1/status-chains/<id>                          — rename
    DELETE /api/v1/status-chains/<id>                          — delete (unused only)
    GET    /api/v1/status-chains/<id>/entries                  — ordered entries
    POST   /api/v1/status-chains/<id>/entries                  — add entry
    PUT    /api/v1/status-chains/<id>/entries                  — bulk re-order / re-role
    PATCH  /api/v1/status-chains/<id>/entries/<status_id>      — reorder one entry
    DELETE /api/v1/status-chains/<id>/entries/<status_id>      — remove entry

Layer contract:
    - No ORM calls here — all DB work delegated to status_chain_service.
    - No db.session.commit() here.
"""

import logging

from flask import Blueprint, jsonify, request

from ekanban.blueprints import json_body, register_error_handlers
from ekanban.core.exceptions import ValidationError
from ekanban.services import status_chain_service as scs

logger = logging.getLogger(__name__)

status_chain_bp = Blueprint("status_chain", __name__, url_prefix="/api/v1")
register_error_handlers(status_chain_bp)


# ── Chains ────────────────────────────────────────────────────────────────────


@status_chain_bp.route("/status-chains", methods=["GET"])
def list_status_chains():
    return jsonify(scs.list_chains()), 200


@status_chain_bp.route("/status-chains", methods=["POST"])
def create_status_chain():
    """Create a status chain.

    Body (JSON):
        name (str, required)
        entries (list, optional): [{status_id, order, actor_role}]
    """
    data = json_body()
    entries = data.get("entries")
    if entries is not None and not isinstance(entries, list):
        raise ValidationError("entries must be a list", details={"entries": "invalid"})
    return jsonify(scs.create_chain(data.get("name"), entries)), 201


@status_chain_bp.route("/status-chains/<int:chain_id>", methods=["GET"])
def get_status_chain(chain_id: int):
    return jsonify(scs.get_chain(chain_id)), 200


@status_chain_bp.route("/status-chains/<int:chain_id>", methods=["PUT"])
def rename_status_chain(chain_id: int):
    data = json_body()
    return jsonify(scs.rename_chain(chain_id, data.get("name"))), 200


@status_chain_bp.route("/status-chains/<int:chain_id>", methods=["DELETE"])
def delete_status_chain(chain_id: int):
    scs.delete_chain(chain_id)
    return jsonify({"message": "Status chain deleted"}), 200


# ── Entries ───────────────────────────────────────────────────────────────────


@status_chain_bp.route("/status-chains/<int:chain_id>/entries", methods=["GET"])
def list_status_chain_entries(chain_id: int):
    return jsonify([e.to_dict() for e in scs.list_entries(chain_id)]), 200


@status_chain_bp.route("/status-chains/<int:chain_id>/entries", methods=["POST"])
def add_status_chain_entry(chain_id: int):
    """Body (JSON): status_id, order, actor_role (1|2|"supplier"|"customer")."""
    data = json_body()
    entry = scs.add_entry(chain_id, data.get("status_id"), data.get("order"), data.get("actor_role"))
    return jsonify(entry), 201


@status_chain_bp.route("/status-chains/<int:chain_id>/entries", methods=["PUT"])
def update_status_chain_entries(chain_id: int):
    """Body (JSON): list of {status_id, order?, actor_role?} or {"entries": [...]}."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get("entries")
    return jsonify(scs.update_entries(chain_id, data)), 200


@status_chain_bp.route("/status-chains/<int:chain_id>/entries/<int:status_id>", methods=["PATCH"])
def reorder_status_chain_entry(chain_id: int, status_id: int):
    data = json_body()
    return jsonify(scs.reorder_entry(chain_id, status_id, data.get("order"))), 200


@status_chain_bp.route("/status-chains/<int:chain_id>/entries/<int:status_id>", methods=["DELETE"])
def remove_status_chain_entry(chain_id: int, status_id: int):
    """Query params: policy=block|cascade (defaults to CHAIN_ENTRY_REMOVAL_POLICY)."""
    policy = request.args.get("policy") or None
    return jsonify(scs.remove_entry(chain_id, status_id, policy=policy)), 200
