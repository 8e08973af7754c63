"""
Customer notifications for order and quote lifecycle events.

Notifications are sent after the change that triggered them has been
committed. A failed notification is logged by the caller and never undoes
the change.
"""

from enum import Enum
from typing import Any, Optional, Protocol

from bakery_orders.core.logging import get_logger
from bakery_orders.services.orders.enums import DocumentKind, StatusAction

logger = get_logger(__name__)


class NotificationEvent(str, Enum):
    """Lifecycle events customers are notified about."""

    QUOTE_SENT = "quote_sent"
    ORDER_CONFIRMED = "order_confirmed"
    PAYMENT_RECEIVED = "payment_received"
    ORDER_READY = "order_ready"
    ORDER_CANCELLED = "order_cancelled"


_ACTION_EVENTS: dict[tuple[DocumentKind, StatusAction], NotificationEvent] = {
    (DocumentKind.QUOTE, StatusAction.SEND): NotificationEvent.QUOTE_SENT,
    (DocumentKind.ORDER, StatusAction.CONFIRM): NotificationEvent.ORDER_CONFIRMED,
    (DocumentKind.ORDER, StatusAction.MARK_READY): NotificationEvent.ORDER_READY,
    (DocumentKind.ORDER, StatusAction.CANCEL): NotificationEvent.ORDER_CANCELLED,
}

_SUBJECTS: dict[NotificationEvent, str] = {
    NotificationEvent.QUOTE_SENT: "Your quote {number} is ready",
    NotificationEvent.ORDER_CONFIRMED: "Order {number} confirmed",
    NotificationEvent.PAYMENT_RECEIVED: "Payment received for order {number}",
    NotificationEvent.ORDER_READY: "Order {number} is ready",
    NotificationEvent.ORDER_CANCELLED: "Order {number} cancelled",
}


def event_for_action(kind: DocumentKind, action: StatusAction) -> Optional[NotificationEvent]:
    """Notification event triggered by a status action, if any."""
    return _ACTION_EVENTS.get((kind, action))


def render_subject(event: NotificationEvent, order: Any) -> str:
    return _SUBJECTS[event].format(number=order.number)


class NotificationSender(Protocol):
    """Anything able to deliver a lifecycle notification to a contact."""

    async def send(self, event: NotificationEvent, order: Any, contact: Any) -> None:
        ...


class LoggingNotificationSender:
    """
    Sender that writes notifications to the log instead of delivering them.

    Used when no delivery channel is configured.
    """

    async def send(self, event: NotificationEvent, order: Any, contact: Any) -> None:
        logger.info(
            "Notification sent",
            event=event.value,
            order_id=str(order.id),
            number=order.number,
            recipient=getattr(contact, "email", None),
            subject=render_subject(event, order),
        )


def get_notification_sender() -> NotificationSender:
    """Return the default notification sender."""
    return LoggingNotificationSender()
