# pricewatch/notifications/events.py

"""Notification events and their routing identifiers."""

import enum
from dataclasses import dataclass

from pricewatch.models.tracked_item import TrackedItem


class EventCode(str, enum.Enum):
    """Prefix of a notification id; tells the router what to do."""

    PRICE_CHANGED = "product-price-changed-notify"
    TRACKING = "product-price-detecting-notify"


@dataclass
class PriceChanged:
    """A tracked item's price value or currency changed."""

    old: TrackedItem
    new: TrackedItem

    code = EventCode.PRICE_CHANGED

    @property
    def item_id(self) -> str:
        return self.new.id


@dataclass
class TrackingStarted:
    """The user added an item to the watch list."""

    item: TrackedItem

    code = EventCode.TRACKING

    @property
    def item_id(self) -> str:
        return self.item.id


@dataclass
class TrackingStopped:
    """The user removed an item from the watch list."""

    item: TrackedItem

    code = EventCode.TRACKING

    @property
    def item_id(self) -> str:
        return self.item.id


NotificationEvent = PriceChanged | TrackingStarted | TrackingStopped


def notification_id(event: NotificationEvent) -> str:
    """Encode an event as ``"<eventCode>:<itemId>"``."""
    return f"{event.code.value}:{event.item_id}"


def parse_notification_id(nid: str) -> tuple[EventCode, str]:
    """Split a notification id on its first ``:``.

    Raises ``ValueError`` for a missing separator or an unknown code.
    """
    code, sep, item_id = nid.partition(":")
    if not sep or not item_id:
        raise ValueError(f"Malformed notification id: {nid!r}")
    return EventCode(code), item_id
