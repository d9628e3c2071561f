"""Order status and history action enums for the order lifecycle.

``received_package`` is the only initial status. ``delivered`` and
``cancelled`` end the lifecycle for workers; executives may still move an
order out of them to correct mistakes.
"""

from enum import Enum
from typing import Dict


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    RECEIVED_PACKAGE = "received_package"
    PAYMENT_PAID = "payment_paid"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Older clients used ``canceled`` and ``payment_feed``; both are read
        as their canonical status.

        Raises:
            ValueError: If value is not a valid status
        """
        normalized = str(value).strip().lower()
        normalized = STATUS_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid_values = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Invalid order status: {value}. "
                f"Valid values are: {valid_values}"
            )


STATUS_ALIASES: Dict[str, str] = {
    "canceled": OrderStatus.CANCELLED.value,
    "payment_feed": OrderStatus.PAYMENT_PAID.value,
}


class HistoryAction(str, Enum):
    """Kind of mutation a history entry records."""

    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    UPDATED = "updated"
