"""Push delivery of workflow events to subscribed actors."""

from translation_marketplace.notifications.gateway import (
    NotificationGateway,
    Subscription,
    get_notification_gateway,
)

__all__ = ["NotificationGateway", "Subscription", "get_notification_gateway"]
