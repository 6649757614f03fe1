# pricewatch/notifications/dispatcher.py

"""Turns change and tracking events into user notifications."""

import logging

from pricewatch.config.settings import Settings
from pricewatch.models.tracked_item import PriceSnapshot, TrackedItem
from pricewatch.notifications.events import (
    NotificationEvent,
    PriceChanged,
    TrackingStarted,
    TrackingStopped,
    notification_id,
)
from pricewatch.notifications.notifiers import (
    ConsoleNotifier,
    Notification,
    Notifier,
    WebhookNotifier,
)

logger = logging.getLogger("pricewatch.dispatcher")


def _fmt(price: PriceSnapshot) -> str:
    return f"{price.value:g} {price.currency}"


class NotificationDispatcher:
    """Fans each event out to every configured notifier.

    Delivery is fire-and-forget: a notifier that raises or reports
    failure is logged and the remaining notifiers still run.
    """

    def __init__(self, notifiers: list[Notifier] | None = None) -> None:
        self.notifiers: list[Notifier] = (
            notifiers if notifiers is not None else [ConsoleNotifier()]
        )

    @classmethod
    def from_settings(cls) -> "NotificationDispatcher":
        """Console output, plus the webhook when one is configured."""
        notifiers: list[Notifier] = [ConsoleNotifier()]
        if Settings.WEBHOOK_URL:
            notifiers.append(WebhookNotifier(Settings.WEBHOOK_URL))
        return cls(notifiers)

    # ── Event entry points ───────────────────────────────

    def notify_change(
        self, old: TrackedItem, new: TrackedItem,
    ) -> Notification:
        return self.dispatch(PriceChanged(old=old, new=new))

    def notify_tracking_started(self, item: TrackedItem) -> Notification:
        return self.dispatch(TrackingStarted(item=item))

    def notify_tracking_stopped(self, item: TrackedItem) -> Notification:
        return self.dispatch(TrackingStopped(item=item))

    def dispatch(self, event: NotificationEvent) -> Notification:
        """Render ``event`` and hand it to every notifier."""
        notification = self.render(event)
        for notifier in self.notifiers:
            try:
                delivered = notifier.send(notification)
            except Exception:
                logger.exception(
                    "%s failed to send %s",
                    type(notifier).__name__,
                    notification.id,
                )
                continue
            if not delivered:
                logger.warning(
                    "%s did not deliver %s",
                    type(notifier).__name__,
                    notification.id,
                )
        logger.info("Dispatched notification %s", notification.id)
        return notification

    @staticmethod
    def render(event: NotificationEvent) -> Notification:
        """Build the user-facing notification for ``event``."""
        nid = notification_id(event)
        if isinstance(event, PriceChanged):
            return Notification(
                id=nid,
                title=Settings.NOTIFICATION_TITLE,
                message=(
                    f'The price of "{event.new.name}" changed:\n'
                    f"was - {_fmt(event.old.price_now)}\n"
                    f"now - {_fmt(event.new.price_now)}"
                ),
                url=event.new.url,
                buttons=("View", "Dismiss"),
                require_interaction=True,
            )
        if isinstance(event, TrackingStopped):
            verb = "removed from"
        else:
            verb = "added to"
        return Notification(
            id=nid,
            title=Settings.NOTIFICATION_TITLE,
            message=f'"{event.item.name}" was {verb} price monitoring',
            url=event.item.url,
            buttons=("View",),
        )
