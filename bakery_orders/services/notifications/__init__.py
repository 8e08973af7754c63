"""Lifecycle notifications."""

from bakery_orders.services.notifications.service import (
    LoggingNotificationSender,
    NotificationEvent,
    NotificationSender,
    event_for_action,
    get_notification_sender,
    render_subject,
)

__all__ = [
    "LoggingNotificationSender",
    "NotificationEvent",
    "NotificationSender",
    "event_for_action",
    "get_notification_sender",
    "render_subject",
]
