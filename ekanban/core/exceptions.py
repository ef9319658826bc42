"""
Platform-wide exception hierarchy.

Every service raises these types and nothing else for business-rule
failures. Blueprints register handlers against them once and get the same
HTTP status codes everywhere (see ``ekanban.utils.errors``).

Usage:
    from ekanban.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="KanbanChain", resource_id=42)
    raise ValidationError("name is required", details={"name": "empty"})

None of these are retried by the service layer. ``advance`` is not
idempotent: calling it twice legitimately moves a card twice.
"""


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist.

    Args:
        resource: Human-readable model name (e.g. "Kanban", "Status").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or missing. Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a stored invariant.

    Examples: removing a status entry while cards sit on it, deleting a
    kanban chain that still has active cards, duplicate entry order.
    Maps to HTTP 409.
    """

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.resource = resource
        self.details = details or {}
        super().__init__(message)


class CannotAutoShrinkError(ConflictError):
    """Raised when an update asks for fewer active cards than exist.

    Active cards are physical inventory; they must be retired one by one
    through ``DELETE /kanbans/<id>`` before the count can go down.
    """

    def __init__(self, chain_id: int, current: int, requested: int) -> None:
        self.chain_id = chain_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"KanbanChain id={chain_id} has {current} active kanbans; "
            f"cannot reduce to {requested}. Retire kanbans individually first.",
            resource="KanbanChain",
            details={"current_active": current, "requested_active": requested},
        )


class ForbiddenError(Exception):
    """Raised when the requesting role may not perform a transition.

    Maps to HTTP 403.
    """

    def __init__(self, message: str, required_role=None, requesting_role=None) -> None:
        self.required_role = required_role
        self.requesting_role = requesting_role
        super().__init__(message)


class InconsistentStateError(Exception):
    """Raised when stored data breaks a structural invariant.

    The canonical case is a card whose current status is not part of its
    own status chain. Not user-recoverable; maps to HTTP 500 and is logged
    at ERROR level.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)
