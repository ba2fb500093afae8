"""Notification services for Scorewatch."""

from scorewatch.notifications.dispatcher import (
    Delivery,
    DeliveryFailure,
    DispatchResult,
    NotificationDispatcher,
    NotificationSink,
)
from scorewatch.notifications.in_app import InAppNotificationSink
from scorewatch.notifications.telegram import send_telegram
from scorewatch.notifications.templates import (
    NotificationContext,
    NotificationKind,
    RenderedNotification,
    select_template,
)

__all__ = [
    "Delivery",
    "DeliveryFailure",
    "DispatchResult",
    "InAppNotificationSink",
    "NotificationContext",
    "NotificationDispatcher",
    "NotificationKind",
    "NotificationSink",
    "RenderedNotification",
    "select_template",
    "send_telegram",
]
