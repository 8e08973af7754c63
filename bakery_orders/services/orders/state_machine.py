"""Order and quote state machine with transition validation.

This module implements the StatusStateMachine that moves an order or quote
between statuses. Transitions come from the fixed tables in ``enums``;
guards add business preconditions on top (an order cannot be marked paid
while a balance is outstanding). Every applied transition records exactly
one ``StatusChanged`` audit entry.
"""

from typing import Any, Callable, Dict, Optional, Set, Tuple
from uuid import UUID

from bakery_orders.core.exceptions import IllegalTransitionError, PaymentIncompleteError
from bakery_orders.core.logging import get_logger
from bakery_orders.services.orders.enums import (
    AuditAction,
    DocumentKind,
    Status,
    StatusAction,
    get_allowed_actions,
    next_status,
    parse_status,
)
from bakery_orders.services.pricing.engine import Totals

logger = get_logger(__name__)

Guard = Callable[[Any, Totals], None]


def transition(kind: DocumentKind, current: Status, action: StatusAction) -> Status:
    """Resolve the status ``action`` leads to from ``current``.

    Args:
        kind: Order or quote
        current: Current status
        action: Requested action

    Returns:
        The next status

    Raises:
        IllegalTransitionError: If the pair is not in the transition table
    """
    current = parse_status(kind, current)
    target = next_status(kind, current, action)
    if target is None:
        allowed = sorted(a.value for a in get_allowed_actions(kind, current))
        raise IllegalTransitionError(
            f"Cannot {action.value} a {kind.value} in status {current.value}",
            kind=kind.value,
            current_status=current.value,
            action=action.value,
            allowed_actions=", ".join(allowed) or "none",
        )
    return target


class StatusStateMachine:
    """State machine for order and quote lifecycle transitions.

    Attributes:
        audit_log: Recorder used for the ``StatusChanged`` entry, anything
            with ``record(order, action, details, actor)``
    """

    def __init__(self, audit_log: Any):
        self.audit_log = audit_log
        self._transition_guards: Dict[
            Tuple[DocumentKind, StatusAction], Guard
        ] = self._initialize_guards()

    def _initialize_guards(self) -> Dict[Tuple[DocumentKind, StatusAction], Guard]:
        return {
            (DocumentKind.ORDER, StatusAction.MARK_PAID): self._guard_fully_paid,
        }

    def validate_transition(
        self,
        order: Any,
        action: StatusAction,
        totals: Optional[Totals] = None,
    ) -> Status:
        """Validate ``action`` against the order's status and guards.

        Args:
            order: Order or quote
            action: Requested action
            totals: Current totals; computed from the order when omitted

        Returns:
            The status the order would move to

        Raises:
            IllegalTransitionError: If the action is not allowed
            PaymentIncompleteError: If marking paid with a balance outstanding
        """
        target = transition(order.kind, order.status, action)

        guard = self._transition_guards.get((order.kind, action))
        if guard is not None:
            guard(order, totals if totals is not None else order.totals)

        return target

    def apply_transition(
        self,
        order: Any,
        action: StatusAction,
        actor: UUID,
        totals: Optional[Totals] = None,
    ) -> Any:
        """Apply ``action`` to the order and record the audit entry.

        The caller persists the order; the audit entry is staged in the same
        unit of work.

        Returns:
            The recorded audit entry
        """
        old_status = order.status
        new_status = self.validate_transition(order, action, totals)

        order.status = new_status
        entry = self.audit_log.record(
            order,
            AuditAction.STATUS_CHANGED,
            f"{old_status.value} -> {new_status.value}",
            actor,
        )

        logger.info(
            "Status transition applied",
            order_id=str(order.id),
            kind=order.kind.value,
            transition=f"{old_status.value}->{new_status.value}",
            actor=str(actor),
        )

        return entry

    def get_allowed_actions(self, order: Any) -> Set[StatusAction]:
        return get_allowed_actions(order.kind, order.status)

    # Transition Guards

    def _guard_fully_paid(self, order: Any, totals: Totals) -> None:
        if not totals.is_settled:
            raise PaymentIncompleteError(
                "Order cannot be marked paid while a balance is outstanding",
                order_id=order.id,
                total=totals.total,
                amount_paid=totals.amount_paid,
                outstanding=totals.outstanding,
            )


def get_state_machine(audit_log: Any) -> StatusStateMachine:
    """Factory function to create a StatusStateMachine."""
    return StatusStateMachine(audit_log)
