# pricewatch/models/tracked_item.py

"""Tracked item and price snapshot models."""

import time
from dataclasses import dataclass, field
from typing import Any


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class PriceSnapshot:
    """A single price observation at one instant."""

    value: float
    currency: str
    timestamp: int = 0

    def same_price(self, other: "PriceSnapshot") -> bool:
        """True when value and currency match (timestamp ignored)."""
        return (
            self.value == other.value
            and self.currency == other.currency
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "currency": self.currency,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PriceSnapshot":
        return cls(
            value=float(data.get("value") or 0),
            currency=str(data.get("currency", "")),
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass
class TrackedItem:
    """A monitored catalog item with its price change log.

    ``price_history`` holds superseded snapshots, most recent first.
    It only grows when the value or currency of ``price_now`` changes.
    """

    id: str
    name: str
    url: str
    price_now: PriceSnapshot
    images: list[str] = field(default_factory=lambda: list[str]())
    price_history: list[PriceSnapshot] = field(
        default_factory=lambda: list[PriceSnapshot]()
    )

    @property
    def previous_price(self) -> PriceSnapshot | None:
        """The snapshot superseded by ``price_now``, if any."""
        return self.price_history[0] if self.price_history else None

    @property
    def price_delta(self) -> float | None:
        """Current minus previous value, or None without history."""
        prev = self.previous_price
        if prev is None:
            return None
        return self.price_now.value - prev.value

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the on-disk JSON shape."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "images": list(self.images),
            "priceNow": self.price_now.to_dict(),
            "priceHistory": [
                s.to_dict() for s in self.price_history
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackedItem":
        """Build an item from its on-disk JSON shape."""
        history: list[dict[str, Any]] = data.get("priceHistory") or []
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            url=str(data.get("url", "")),
            images=[str(i) for i in data.get("images") or []],
            price_now=PriceSnapshot.from_dict(data.get("priceNow") or {}),
            price_history=[PriceSnapshot.from_dict(s) for s in history],
        )
