"""Order and quote status enums with the fixed transition tables.

Orders and quotes share one aggregate shape and differ by ``DocumentKind``.
Each kind has its own status set and its own table mapping
``(status, action) -> next status``; any pair missing from the table is an
illegal transition.
"""

from enum import Enum
from typing import Dict, Optional, Set, Type, Union


class DocumentKind(str, Enum):
    """Type tag distinguishing orders from quotes."""

    ORDER = "order"
    QUOTE = "quote"


class OrderStatus(str, Enum):
    """Order lifecycle status.

    Valid transitions:
    - DRAFT -> CONFIRMED, CANCELLED
    - CONFIRMED -> PAID, CANCELLED
    - PAID -> READY, CANCELLED
    - READY -> DELIVERED, CANCELLED
    - DELIVERED -> (terminal state)
    - CANCELLED -> (terminal state)
    """

    DRAFT = "Draft"
    CONFIRMED = "Confirmed"
    PAID = "Paid"
    READY = "Ready"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum, case-insensitively.

        Raises:
            ValueError: If value is not a valid status
        """
        for status in cls:
            if status.value.lower() == value.lower():
                return status
        valid_values = ", ".join(s.value for s in cls)
        raise ValueError(
            f"Invalid order status: {value}. Valid values are: {valid_values}"
        )

    def is_terminal(self) -> bool:
        """Check if status is a terminal state."""
        return self in {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


class QuoteStatus(str, Enum):
    """Quote lifecycle status.

    Valid transitions:
    - DRAFT -> SENT, CANCELLED
    - SENT -> ACCEPTED, DECLINED, EXPIRED, CANCELLED
    - ACCEPTED -> (terminal; may be converted into a new order)
    - DECLINED, EXPIRED, CANCELLED -> (terminal state)
    """

    DRAFT = "Draft"
    SENT = "Sent"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"

    @classmethod
    def from_string(cls, value: str) -> "QuoteStatus":
        """Convert string to QuoteStatus enum, case-insensitively.

        Raises:
            ValueError: If value is not a valid status
        """
        for status in cls:
            if status.value.lower() == value.lower():
                return status
        valid_values = ", ".join(s.value for s in cls)
        raise ValueError(
            f"Invalid quote status: {value}. Valid values are: {valid_values}"
        )

    def is_terminal(self) -> bool:
        """Check if status is a terminal state."""
        return self in {
            QuoteStatus.ACCEPTED,
            QuoteStatus.DECLINED,
            QuoteStatus.EXPIRED,
            QuoteStatus.CANCELLED,
        }


Status = Union[OrderStatus, QuoteStatus]


class StatusAction(str, Enum):
    """Status-changing actions a caller can request."""

    CONFIRM = "confirm"
    MARK_PAID = "mark_paid"
    MARK_READY = "mark_ready"
    DELIVER = "deliver"
    SEND = "send"
    ACCEPT = "accept"
    DECLINE = "decline"
    EXPIRE = "expire"
    CANCEL = "cancel"


class AuditAction(str, Enum):
    """Tags recorded on audit log entries."""

    CREATED = "Created"
    STATUS_CHANGED = "StatusChanged"
    PAYMENT_RECORDED = "PaymentRecorded"
    NOTE_ADDED = "NoteAdded"
    ITEMS_REVISED = "ItemsRevised"
    CONVERTED_TO_ORDER = "ConvertedToOrder"


class EventType(str, Enum):
    """Occasion an order or quote is for."""

    BIRTHDAY = "Birthday"
    WEDDING = "Wedding"
    CORPORATE = "Corporate"
    ANNIVERSARY = "Anniversary"
    BABY_SHOWER = "Baby Shower"
    GENDER_REVEAL = "Gender Reveal"
    OTHER = "Other"


class DeliveryType(str, Enum):
    """How the finished order reaches the customer."""

    PICKUP = "Pickup"
    DELIVERY = "Delivery"


ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Dict[StatusAction, OrderStatus]] = {
    OrderStatus.DRAFT: {
        StatusAction.CONFIRM: OrderStatus.CONFIRMED,
        StatusAction.CANCEL: OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {
        StatusAction.MARK_PAID: OrderStatus.PAID,
        StatusAction.CANCEL: OrderStatus.CANCELLED,
    },
    OrderStatus.PAID: {
        StatusAction.MARK_READY: OrderStatus.READY,
        StatusAction.CANCEL: OrderStatus.CANCELLED,
    },
    OrderStatus.READY: {
        StatusAction.DELIVER: OrderStatus.DELIVERED,
        StatusAction.CANCEL: OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: {},  # Terminal
    OrderStatus.CANCELLED: {},  # Terminal
}

QUOTE_STATUS_TRANSITIONS: Dict[QuoteStatus, Dict[StatusAction, QuoteStatus]] = {
    QuoteStatus.DRAFT: {
        StatusAction.SEND: QuoteStatus.SENT,
        StatusAction.CANCEL: QuoteStatus.CANCELLED,
    },
    QuoteStatus.SENT: {
        StatusAction.ACCEPT: QuoteStatus.ACCEPTED,
        StatusAction.DECLINE: QuoteStatus.DECLINED,
        StatusAction.EXPIRE: QuoteStatus.EXPIRED,
        StatusAction.CANCEL: QuoteStatus.CANCELLED,
    },
    QuoteStatus.ACCEPTED: {},  # Terminal; conversion creates a separate order
    QuoteStatus.DECLINED: {},  # Terminal
    QuoteStatus.EXPIRED: {},  # Terminal
    QuoteStatus.CANCELLED: {},  # Terminal
}

_TRANSITIONS = {
    DocumentKind.ORDER: ORDER_STATUS_TRANSITIONS,
    DocumentKind.QUOTE: QUOTE_STATUS_TRANSITIONS,
}

_STATUS_TYPES: Dict[DocumentKind, Type[Enum]] = {
    DocumentKind.ORDER: OrderStatus,
    DocumentKind.QUOTE: QuoteStatus,
}


def status_type_for(kind: DocumentKind) -> Type[Enum]:
    """Return the status enum used by ``kind``."""
    return _STATUS_TYPES[kind]


def initial_status(kind: DocumentKind) -> Status:
    """Status every new order or quote starts in."""
    return OrderStatus.DRAFT if kind == DocumentKind.ORDER else QuoteStatus.DRAFT


def parse_status(kind: DocumentKind, value: Union[str, Status]) -> Status:
    """Parse a stored or requested status value for ``kind``.

    Raises:
        ValueError: If value is not in the status set of ``kind``
    """
    status_cls = status_type_for(kind)
    if isinstance(value, status_cls):
        return value
    return status_cls.from_string(str(getattr(value, "value", value)))


def next_status(
    kind: DocumentKind, current: Status, action: StatusAction
) -> Optional[Status]:
    """Look up the target of ``action`` from ``current``.

    Returns:
        The next status, or None when the pair is not in the table
    """
    return _TRANSITIONS[kind].get(current, {}).get(action)


def get_allowed_actions(kind: DocumentKind, current: Status) -> Set[StatusAction]:
    """Get all actions allowed from ``current``."""
    return set(_TRANSITIONS[kind].get(current, {}))
