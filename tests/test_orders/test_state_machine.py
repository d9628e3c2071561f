"""
Tests for the order status transition table and edit rules.
"""

import itertools

import pytest

from cargo_api.database.models.worker import WorkerRole
from cargo_api.services.orders.enums import OrderStatus
from cargo_api.services.orders.errors import InvalidTransitionError
from cargo_api.services.orders.state_machine import (
    STATUS_TRANSITIONS,
    OrderStateMachine,
    can_edit_fields,
    get_allowed_transitions,
    validate_status_transition,
)

ALL_PAIRS = list(itertools.product(OrderStatus, OrderStatus))


@pytest.fixture
def state_machine() -> OrderStateMachine:
    return OrderStateMachine()


class TestTransitionTable:
    """Tests for the (role, status) -> targets table."""

    def test_table_covers_every_role_and_status(self):
        for role, status in itertools.product(WorkerRole, OrderStatus):
            assert (role, status) in STATUS_TRANSITIONS

    def test_worker_single_edge(self):
        allowed = [
            (current, target)
            for current, target in ALL_PAIRS
            if validate_status_transition(WorkerRole.WORKER, current, target)
        ]

        assert allowed == [(OrderStatus.RECEIVED_PACKAGE, OrderStatus.PAYMENT_PAID)]

    @pytest.mark.parametrize("current, target", ALL_PAIRS)
    def test_executive_any_distinct_status(self, current, target):
        expected = current != target

        assert (
            validate_status_transition(WorkerRole.EXECUTIVE, current, target)
            is expected
        )

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PAYMENT_PAID, OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    )
    def test_worker_has_no_way_out_once_left_initial(self, status):
        assert get_allowed_transitions(WorkerRole.WORKER, status) == frozenset()

    def test_executive_can_reopen_terminal_orders(self):
        allowed = get_allowed_transitions(WorkerRole.EXECUTIVE, OrderStatus.DELIVERED)

        assert OrderStatus.RECEIVED_PACKAGE in allowed
        assert OrderStatus.DELIVERED not in allowed


class TestEditRules:
    """Tests for can_edit_fields."""

    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_executive_can_always_edit(self, status):
        assert can_edit_fields(WorkerRole.EXECUTIVE, status)

    @pytest.mark.parametrize(
        "status, expected",
        [
            (OrderStatus.RECEIVED_PACKAGE, True),
            (OrderStatus.PAYMENT_PAID, False),
            (OrderStatus.DELIVERED, False),
            (OrderStatus.CANCELLED, False),
        ],
    )
    def test_worker_edits_only_before_payment(self, status, expected):
        assert can_edit_fields(WorkerRole.WORKER, status) is expected


class TestOrderStateMachine:
    """Tests for OrderStateMachine enforcement."""

    def test_allowed_transition_passes(self, state_machine):
        state_machine.ensure_transition(
            WorkerRole.WORKER,
            OrderStatus.RECEIVED_PACKAGE,
            OrderStatus.PAYMENT_PAID,
        )

    def test_rejected_transition_carries_context(self, state_machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.ensure_transition(
                WorkerRole.WORKER,
                OrderStatus.PAYMENT_PAID,
                OrderStatus.DELIVERED,
            )

        error = exc_info.value
        assert error.code == "invalid_transition"
        assert error.context["current_status"] == "payment_paid"
        assert error.context["target_status"] == "delivered"
        assert error.context["allowed_transitions"] == []

    def test_worker_cannot_skip_to_delivered(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.ensure_transition(
                WorkerRole.WORKER,
                OrderStatus.RECEIVED_PACKAGE,
                OrderStatus.DELIVERED,
            )


class TestOrderStatusParsing:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("received_package", OrderStatus.RECEIVED_PACKAGE),
            (" Delivered ", OrderStatus.DELIVERED),
            ("canceled", OrderStatus.CANCELLED),
            ("payment_feed", OrderStatus.PAYMENT_PAID),
        ],
    )
    def test_from_string(self, raw, expected):
        assert OrderStatus.from_string(raw) is expected

    def test_unknown_status(self):
        with pytest.raises(ValueError, match="Valid values are"):
            OrderStatus.from_string("shipped")
