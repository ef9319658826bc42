"""
Kanban Chain Blueprint.

Endpoints:
    GET    /api/v1/kanban-chains          — list (filters: customer_id, supplier_id, product_id)
    POST   /api/v1/kanban-chains          — create agreement + initial kanbans
    GET    /api/v1/kanban-chains/<id>     — single chain
    PUT    /api/v1/kanban-chains/<id>     — edit mutable fields / grow active count
    DELETE /api/v1/kanban-chains/<id>     — delete (no active kanbans only)

Layer contract:
    - No ORM calls here — all DB work delegated to kanban_chain_service.
    - No db.session.commit() here.
"""

import logging

from flask import Blueprint, jsonify, request

from ekanban.blueprints import json_body, paginate, register_error_handlers
from ekanban.core.exceptions import NotFoundError
from ekanban.models import db
from ekanban.services import kanban_chain_service as kcs
from ekanban.utils.errors import E, api_error

logger = logging.getLogger(__name__)

kanban_chain_bp = Blueprint("kanban_chain", __name__, url_prefix="/api/v1")
register_error_handlers(kanban_chain_bp)


@kanban_chain_bp.route("/kanban-chains", methods=["GET"])
def list_kanban_chains():
    chains = kcs.list_chains(
        customer_id=request.args.get("customer_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
        product_id=request.args.get("product_id") or None,
    )
    items, total = paginate(chains)
    return jsonify({"items": items, "total": total}), 200


@kanban_chain_bp.route("/kanban-chains", methods=["POST"])
def create_kanban_chain():
    """Create a kanban chain.

    Body (JSON):
        customer_id, supplier_id, product_id, status_chain_id (required)
        lead_time_days, quantity, container_type (optional)
        initial_active_count (int, optional, default 0)
    """
    data = json_body()
    try:
        chain = kcs.create_chain(
            customer_id=data.get("customer_id"),
            supplier_id=data.get("supplier_id"),
            product_id=data.get("product_id"),
            status_chain_id=data.get("status_chain_id"),
            lead_time_days=data.get("lead_time_days", 0),
            quantity=data.get("quantity", 0),
            container_type=data.get("container_type", ""),
            initial_active_count=data.get("initial_active_count", 0),
        )
    except NotFoundError as exc:
        # An unknown reference in the payload is a bad request, not a missing resource
        db.session.rollback()
        return api_error(
            E.VALIDATION_INVALID, str(exc),
            details={"resource": exc.resource, "resource_id": exc.resource_id},
        )
    return jsonify(chain), 201


@kanban_chain_bp.route("/kanban-chains/<int:chain_id>", methods=["GET"])
def get_kanban_chain(chain_id: int):
    return jsonify(kcs.get_chain(chain_id)), 200


@kanban_chain_bp.route("/kanban-chains/<int:chain_id>", methods=["PUT"])
def update_kanban_chain(chain_id: int):
    """Update a kanban chain.

    Body (JSON):
        lead_time_days, quantity, container_type (optional)
        active_card_count (int, optional): new total; may only grow
        customer_id, supplier_id, product_id, status_chain_id: must equal stored values
    """
    data = json_body()
    requested = data.pop("requested_active_count", None)
    if requested is None:
        requested = data.pop("active_card_count", None)
    return jsonify(kcs.update_chain(chain_id, data, requested_active_count=requested)), 200


@kanban_chain_bp.route("/kanban-chains/<int:chain_id>", methods=["DELETE"])
def delete_kanban_chain(chain_id: int):
    kcs.delete_chain(chain_id)
    return jsonify({"message": "Kanban chain deleted"}), 200
