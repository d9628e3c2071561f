"""Order status transition rules.

The rule set is plain data: ``STATUS_TRANSITIONS`` maps ``(role, current
status)`` to the statuses that role may move the order to, and
``EDITABLE_STATUSES`` lists the statuses in which each role may edit order
fields. ``OrderStateMachine`` enforces both with the service's error types.
"""

from typing import Dict, FrozenSet, Tuple

from cargo_api.core.logging import get_logger
from cargo_api.database.models.worker import WorkerRole
from cargo_api.services.orders.enums import OrderStatus
from cargo_api.services.orders.errors import InvalidTransitionError

logger = get_logger(__name__)

_ALL_STATUSES: FrozenSet[OrderStatus] = frozenset(OrderStatus)

STATUS_TRANSITIONS: Dict[Tuple[WorkerRole, OrderStatus], FrozenSet[OrderStatus]] = {
    (WorkerRole.WORKER, OrderStatus.RECEIVED_PACKAGE): frozenset(
        {OrderStatus.PAYMENT_PAID}
    ),
    (WorkerRole.WORKER, OrderStatus.PAYMENT_PAID): frozenset(),
    (WorkerRole.WORKER, OrderStatus.DELIVERED): frozenset(),
    (WorkerRole.WORKER, OrderStatus.CANCELLED): frozenset(),
    # Executives may correct any status to any other
    **{
        (WorkerRole.EXECUTIVE, status): _ALL_STATUSES - {status}
        for status in OrderStatus
    },
}

EDITABLE_STATUSES: Dict[WorkerRole, FrozenSet[OrderStatus]] = {
    WorkerRole.WORKER: frozenset({OrderStatus.RECEIVED_PACKAGE}),
    WorkerRole.EXECUTIVE: _ALL_STATUSES,
}


def get_allowed_transitions(
    role: WorkerRole, current: OrderStatus
) -> FrozenSet[OrderStatus]:
    """Get the statuses ``role`` may move an order in ``current`` to."""
    return STATUS_TRANSITIONS.get((role, current), frozenset())


def validate_status_transition(
    role: WorkerRole, current: OrderStatus, target: OrderStatus
) -> bool:
    return target in get_allowed_transitions(role, current)


def can_edit_fields(role: WorkerRole, status: OrderStatus) -> bool:
    return status in EDITABLE_STATUSES.get(role, frozenset())


class OrderStateMachine:
    """Enforces the transition and edit tables for an acting role."""

    def ensure_transition(
        self, role: WorkerRole, current: OrderStatus, target: OrderStatus
    ) -> None:
        """
        Check that ``role`` may move an order from ``current`` to ``target``.

        Raises:
            InvalidTransitionError: If the transition is not in the table
        """
        if validate_status_transition(role, current, target):
            logger.debug(
                "Status transition allowed",
                role=role.value,
                transition=f"{current.value}->{target.value}",
            )
            return

        allowed = sorted(s.value for s in get_allowed_transitions(role, current))
        logger.info(
            "Status transition rejected",
            role=role.value,
            transition=f"{current.value}->{target.value}",
            allowed_transitions=allowed,
        )
        raise InvalidTransitionError(
            f"Role {role.value} cannot change status from {current.value} "
            f"to {target.value}",
            current_status=current.value,
            target_status=target.value,
            allowed_transitions=allowed,
        )

    def can_edit(self, role: WorkerRole, status: OrderStatus) -> bool:
        return can_edit_fields(role, status)
