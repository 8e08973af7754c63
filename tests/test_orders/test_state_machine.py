"""
Test suite for the order and quote status state machine.

Tests cover the full transition tables, every illegal (status, action) pair,
the mark-paid guard, and the single audit entry recorded per transition.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock
from uuid import uuid4

import pytest

from bakery_orders.core.exceptions import IllegalTransitionError, PaymentIncompleteError
from bakery_orders.services.orders.enums import (
    ORDER_STATUS_TRANSITIONS,
    QUOTE_STATUS_TRANSITIONS,
    AuditAction,
    DocumentKind,
    OrderStatus,
    QuoteStatus,
    StatusAction,
    get_allowed_actions,
    initial_status,
    parse_status,
)
from bakery_orders.services.orders.state_machine import (
    StatusStateMachine,
    get_state_machine,
    transition,
)
from bakery_orders.services.pricing.engine import Totals

ZERO = Decimal("0.00")


def make_totals(total: str, paid: str) -> Totals:
    total_value = Decimal(total)
    paid_value = Decimal(paid)
    return Totals(
        subtotal=total_value,
        discount_amount=ZERO,
        taxable_base=total_value,
        tax_amount=ZERO,
        total=total_value,
        amount_paid=paid_value,
        outstanding=max(ZERO, total_value - paid_value),
    )


def make_order(kind: DocumentKind, status, totals: Totals | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        kind=kind,
        status=status,
        totals=totals or make_totals("0.00", "0.00"),
    )


ORDER_LEGAL = [
    (status, action, target)
    for status, actions in ORDER_STATUS_TRANSITIONS.items()
    for action, target in actions.items()
]
ORDER_ILLEGAL = [
    (status, action)
    for status in OrderStatus
    for action in StatusAction
    if action not in ORDER_STATUS_TRANSITIONS[status]
]
QUOTE_LEGAL = [
    (status, action, target)
    for status, actions in QUOTE_STATUS_TRANSITIONS.items()
    for action, target in actions.items()
]
QUOTE_ILLEGAL = [
    (status, action)
    for status in QuoteStatus
    for action in StatusAction
    if action not in QUOTE_STATUS_TRANSITIONS[status]
]


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def audit_log() -> Mock:
    log = Mock()
    log.record = Mock(side_effect=lambda order, action, details, actor: SimpleNamespace(
        order_id=order.id, action=action.value, details=details, actor=actor
    ))
    return log


@pytest.fixture
def state_machine(audit_log: Mock) -> StatusStateMachine:
    return StatusStateMachine(audit_log)


# ============================================================================
# Transition Table Tests
# ============================================================================


class TestTransitionTables:
    """Test the fixed transition tables."""

    def test_order_happy_path(self):
        status = initial_status(DocumentKind.ORDER)
        for action in (
            StatusAction.CONFIRM,
            StatusAction.MARK_PAID,
            StatusAction.MARK_READY,
            StatusAction.DELIVER,
        ):
            status = transition(DocumentKind.ORDER, status, action)

        assert status == OrderStatus.DELIVERED

    def test_quote_happy_path(self):
        status = initial_status(DocumentKind.QUOTE)
        status = transition(DocumentKind.QUOTE, status, StatusAction.SEND)
        status = transition(DocumentKind.QUOTE, status, StatusAction.ACCEPT)

        assert status == QuoteStatus.ACCEPTED

    @pytest.mark.parametrize("status,action,target", ORDER_LEGAL)
    def test_legal_order_transitions(self, status, action, target):
        assert transition(DocumentKind.ORDER, status, action) == target

    @pytest.mark.parametrize("status,action,target", QUOTE_LEGAL)
    def test_legal_quote_transitions(self, status, action, target):
        assert transition(DocumentKind.QUOTE, status, action) == target

    @pytest.mark.parametrize("status,action", ORDER_ILLEGAL)
    def test_illegal_order_transitions(self, status, action):
        with pytest.raises(IllegalTransitionError):
            transition(DocumentKind.ORDER, status, action)

    @pytest.mark.parametrize("status,action", QUOTE_ILLEGAL)
    def test_illegal_quote_transitions(self, status, action):
        with pytest.raises(IllegalTransitionError):
            transition(DocumentKind.QUOTE, status, action)

    def test_cancel_delivered_order_fails(self):
        """Delivered is terminal, so cancel is not allowed."""
        with pytest.raises(IllegalTransitionError) as exc_info:
            transition(DocumentKind.ORDER, OrderStatus.DELIVERED, StatusAction.CANCEL)

        assert exc_info.value.context["current_status"] == "Delivered"
        assert exc_info.value.context["allowed_actions"] == "none"

    @pytest.mark.parametrize("status", [s for s in OrderStatus if not s.is_terminal()])
    def test_every_open_order_can_be_cancelled(self, status):
        assert transition(DocumentKind.ORDER, status, StatusAction.CANCEL) == OrderStatus.CANCELLED

    def test_terminal_statuses_have_no_actions(self):
        for status in OrderStatus:
            assert bool(get_allowed_actions(DocumentKind.ORDER, status)) != status.is_terminal()
        for status in QuoteStatus:
            assert bool(get_allowed_actions(DocumentKind.QUOTE, status)) != status.is_terminal()

    def test_status_is_parsed_per_kind(self):
        assert parse_status(DocumentKind.QUOTE, "sent") == QuoteStatus.SENT
        assert isinstance(parse_status(DocumentKind.ORDER, "Draft"), OrderStatus)
        with pytest.raises(ValueError):
            parse_status(DocumentKind.ORDER, "Sent")

    def test_quote_statuses_are_not_order_statuses(self):
        with pytest.raises(IllegalTransitionError):
            transition(DocumentKind.QUOTE, "Draft", StatusAction.CONFIRM)


# ============================================================================
# State Machine Tests
# ============================================================================


class TestStatusStateMachine:
    """Test applying transitions to aggregates."""

    def test_factory_returns_machine(self, audit_log):
        machine = get_state_machine(audit_log)

        assert isinstance(machine, StatusStateMachine)
        assert machine.audit_log is audit_log

    @pytest.mark.parametrize("status,action,target", ORDER_LEGAL)
    def test_apply_records_exactly_one_entry(
        self, state_machine, audit_log, status, action, target
    ):
        order = make_order(DocumentKind.ORDER, status)
        actor = uuid4()

        entry = state_machine.apply_transition(order, action, actor)

        assert order.status == target
        audit_log.record.assert_called_once_with(
            order,
            AuditAction.STATUS_CHANGED,
            f"{status.value} -> {target.value}",
            actor,
        )
        assert entry.details == f"{status.value} -> {target.value}"

    @pytest.mark.parametrize("status,action,target", QUOTE_LEGAL)
    def test_apply_quote_transition(self, state_machine, audit_log, status, action, target):
        quote = make_order(DocumentKind.QUOTE, status)

        state_machine.apply_transition(quote, action, uuid4())

        assert quote.status == target
        assert audit_log.record.call_count == 1

    def test_illegal_action_changes_nothing(self, state_machine, audit_log):
        order = make_order(DocumentKind.ORDER, OrderStatus.DELIVERED)

        with pytest.raises(IllegalTransitionError):
            state_machine.apply_transition(order, StatusAction.CANCEL, uuid4())

        assert order.status == OrderStatus.DELIVERED
        audit_log.record.assert_not_called()

    def test_mark_paid_requires_full_payment(self, state_machine, audit_log):
        order = make_order(
            DocumentKind.ORDER, OrderStatus.CONFIRMED, make_totals("34.70", "20.00")
        )

        with pytest.raises(PaymentIncompleteError) as exc_info:
            state_machine.apply_transition(order, StatusAction.MARK_PAID, uuid4())

        assert exc_info.value.context["outstanding"] == Decimal("14.70")
        assert order.status == OrderStatus.CONFIRMED
        audit_log.record.assert_not_called()

    def test_mark_paid_when_settled(self, state_machine):
        order = make_order(
            DocumentKind.ORDER, OrderStatus.CONFIRMED, make_totals("34.70", "34.70")
        )

        state_machine.apply_transition(order, StatusAction.MARK_PAID, uuid4())

        assert order.status == OrderStatus.PAID

    def test_explicit_totals_override_order_totals(self, state_machine):
        order = make_order(
            DocumentKind.ORDER, OrderStatus.CONFIRMED, make_totals("10.00", "0.00")
        )

        target = state_machine.validate_transition(
            order, StatusAction.MARK_PAID, totals=make_totals("10.00", "10.00")
        )

        assert target == OrderStatus.PAID
        assert order.status == OrderStatus.CONFIRMED

    def test_get_allowed_actions(self, state_machine):
        quote = make_order(DocumentKind.QUOTE, QuoteStatus.SENT)

        assert state_machine.get_allowed_actions(quote) == {
            StatusAction.ACCEPT,
            StatusAction.DECLINE,
            StatusAction.EXPIRE,
            StatusAction.CANCEL,
        }
