"""
Reference Data Blueprint — accounts, products, statuses.

Endpoints (each resource):
    GET    /api/v1/<resource>         — list
    POST   /api/v1/<resource>         — create
    GET    /api/v1/<resource>/<id>    — single record
    PUT    /api/v1/<resource>/<id>    — update
    DELETE /api/v1/<resource>/<id>    — delete (unreferenced only)

Layer contract:
    - No ORM calls here — all DB work delegated to reference_service.
    - No db.session.commit() here.
"""

import logging

from flask import Blueprint, jsonify

from ekanban.blueprints import json_body, register_error_handlers
from ekanban.services import reference_service as refs

logger = logging.getLogger(__name__)

reference_bp = Blueprint("reference", __name__, url_prefix="/api/v1")
register_error_handlers(reference_bp)


# ═════════════════════════════════════════════════════════════════════════
# Accounts
# ═════════════════════════════════════════════════════════════════════════


@reference_bp.route("/accounts", methods=["GET"])
def list_accounts():
    return jsonify(refs.list_accounts()), 200


@reference_bp.route("/accounts", methods=["POST"])
def create_account():
    return jsonify(refs.create_account(json_body())), 201


@reference_bp.route("/accounts/<int:account_id>", methods=["GET"])
def get_account(account_id: int):
    return jsonify(refs.get_account(account_id)), 200


@reference_bp.route("/accounts/<int:account_id>", methods=["PUT"])
def update_account(account_id: int):
    return jsonify(refs.update_account(account_id, json_body())), 200


@reference_bp.route("/accounts/<int:account_id>", methods=["DELETE"])
def delete_account(account_id: int):
    refs.delete_account(account_id)
    return jsonify({"message": "Account deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════
# Products
# ═════════════════════════════════════════════════════════════════════════


@reference_bp.route("/products", methods=["GET"])
def list_products():
    return jsonify(refs.list_products()), 200


@reference_bp.route("/products", methods=["POST"])
def create_product():
    return jsonify(refs.create_product(json_body())), 201


@reference_bp.route("/products/<string:product_id>", methods=["GET"])
def get_product(product_id: str):
    return jsonify(refs.get_product(product_id)), 200


@reference_bp.route("/products/<string:product_id>", methods=["PUT"])
def update_product(product_id: str):
    return jsonify(refs.update_product(product_id, json_body())), 200


@reference_bp.route("/products/<string:product_id>", methods=["DELETE"])
def delete_product(product_id: str):
    refs.delete_product(product_id)
    return jsonify({"message": "Product deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════
# Statuses
# ═════════════════════════════════════════════════════════════════════════


@reference_bp.route("/statuses", methods=["GET"])
def list_statuses():
    return jsonify(refs.list_statuses()), 200


@reference_bp.route("/statuses", methods=["POST"])
def create_status():
    return jsonify(refs.create_status(json_body())), 201


@reference_bp.route("/statuses/<int:status_id>", methods=["GET"])
def get_status(status_id: int):
    return jsonify(refs.get_status(status_id)), 200


@reference_bp.route("/statuses/<int:status_id>", methods=["PUT"])
def update_status(status_id: int):
    return jsonify(refs.update_status(status_id, json_body())), 200


@reference_bp.route("/statuses/<int:status_id>", methods=["DELETE"])
def delete_status(status_id: int):
    refs.delete_status(status_id)
    return jsonify({"message": "Status deleted"}), 200
