"""
Electronic Kanban Platform
Blueprint registry and shared helpers.
"""

import logging

from flask import request

from ekanban.core.exceptions import (
    CannotAutoShrinkError,
    ConflictError,
    ForbiddenError,
    InconsistentStateError,
    NotFoundError,
    ValidationError,
)
from ekanban.models import db
from ekanban.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def paginate(items, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to an already-built list.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_page, total_count)
    """
    total = len(items)
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return items[offset:offset + max(limit, 0)], total


def json_body() -> dict:
    """Request JSON object, or ValidationError for anything else."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


def register_error_handlers(bp):
    """Map the domain exceptions onto standard error bodies for ``bp``.

    Every handler rolls the session back first: a service that raised may
    have left pending changes behind.
    """

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        db.session.rollback()
        details = {}
        if error.required_role is not None:
            details["required_role"] = int(error.required_role)
        if error.requesting_role is not None:
            details["requesting_role"] = int(error.requesting_role)
        return api_error(E.FORBIDDEN, str(error), details=details)

    @bp.errorhandler(CannotAutoShrinkError)
    def _handle_shrink(error: CannotAutoShrinkError):
        db.session.rollback()
        return api_error(E.CONFLICT_SHRINK, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @bp.errorhandler(InconsistentStateError)
    def _handle_inconsistent(error: InconsistentStateError):
        db.session.rollback()
        logger.error("Inconsistent state endpoint=%s: %s", request.endpoint, error)
        return api_error(E.INCONSISTENT_STATE, str(error), details=error.details)

    return bp
