"""
Order service exceptions.

Every rejection carries a stable ``code`` so callers can tell "not your
order" apart from "status already locked" or "malformed input".
"""

from typing import Any


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    code = "order_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class InvalidWorkerCodeError(OrderServiceError):
    """Raised when a worker code is missing or not letters followed by digits."""

    code = "invalid_worker_code"


class NotFoundError(OrderServiceError):
    """Raised when a referenced record does not exist."""

    code = "not_found"


class OrderNotFoundError(NotFoundError):
    """Raised when order is not found."""

    pass


class WorkerNotFoundError(NotFoundError):
    """Raised when worker is not found."""

    pass


class ForbiddenError(OrderServiceError):
    """Raised when the acting worker's role or ownership does not allow the call."""

    code = "forbidden"


class InvalidStatusError(OrderServiceError):
    """Raised when a requested status is not a known order status."""

    code = "invalid_status"


class InvalidTransitionError(OrderServiceError):
    """Raised when the acting role may not make the requested status change."""

    code = "invalid_transition"


class EditNotAllowedError(OrderServiceError):
    """Raised when a worker edits fields of an order that is no longer editable."""

    code = "edit_not_allowed"


class OrderNumberConflictError(OrderServiceError):
    """Raised when allocation keeps colliding with existing order numbers."""

    code = "order_number_conflict"


class PersistenceError(OrderServiceError):
    """Raised when the row store fails; the surrounding operation is aborted."""

    code = "persistence_failure"
