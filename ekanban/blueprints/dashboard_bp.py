"""
Dashboard Blueprint — per-viewer kanban boards.

Endpoints:
    GET /api/v1/dashboards/customer/<id>  — cards of chains where the account is customer
    GET /api/v1/dashboards/supplier/<id>  — cards of chains where the account is supplier

Both return ``{"<role>_id": id, "kanbans_by_product": {product_name: [CardView]}}``;
an account without chains gets an empty mapping.
"""

import logging

from flask import Blueprint, jsonify

from ekanban.blueprints import register_error_handlers
from ekanban.services import dashboard_service

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboards")
register_error_handlers(dashboard_bp)


@dashboard_bp.route("/customer/<int:customer_id>", methods=["GET"])
def customer_dashboard(customer_id: int):
    groups = dashboard_service.for_customer(customer_id)
    return jsonify({
        "customer_id": customer_id,
        "kanbans_by_product": dashboard_service.to_wire(groups),
    }), 200


@dashboard_bp.route("/supplier/<int:supplier_id>", methods=["GET"])
def supplier_dashboard(supplier_id: int):
    groups = dashboard_service.for_supplier(supplier_id)
    return jsonify({
        "supplier_id": supplier_id,
        "kanbans_by_product": dashboard_service.to_wire(groups),
    }), 200
