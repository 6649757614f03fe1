# pricewatch/services/price_monitor.py

"""Poll cycle: fetch every tracked item, diff, persist and notify."""

import asyncio
import logging
from dataclasses import dataclass, field

from pricewatch.fetchers.base_fetcher import BaseFetcher
from pricewatch.models.tracked_item import TrackedItem
from pricewatch.notifications.dispatcher import NotificationDispatcher
from pricewatch.storage.product_repository import ProductRepository

logger = logging.getLogger("pricewatch.monitor")


@dataclass
class PriceChange:
    """A saved snapshot whose price differs from the stored one."""

    old: TrackedItem
    new: TrackedItem


@dataclass
class CycleResult:
    """Outcome of one poll cycle."""

    checked: int = 0
    fetched: int = 0
    changes: list[PriceChange] = field(
        default_factory=lambda: list[PriceChange]()
    )
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


class PriceMonitor:
    """Coordinates the fetcher, repository and dispatcher."""

    def __init__(
        self,
        repository: ProductRepository,
        fetcher: BaseFetcher,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.repository = repository
        self.fetcher = fetcher
        self.dispatcher = dispatcher

    # ── Private helpers ──────────────────────────────────

    async def _fetch_all(
        self, items: list[TrackedItem],
    ) -> tuple[list[TrackedItem], list[str]]:
        """Fetch every item concurrently, dropping failures.

        Returns the fetched snapshots in input order and a list of
        error messages for items that raised.
        """
        tasks = [
            asyncio.to_thread(self.fetcher.fetch, item.url)
            for item in items
        ]
        results = await asyncio.gather(
            *tasks, return_exceptions=True
        )

        snapshots: list[TrackedItem] = []
        errors: list[str] = []
        for item, result in zip(items, results):
            if isinstance(result, TrackedItem):
                snapshots.append(result)
            elif isinstance(result, BaseException):
                errors.append(f"{item.id}: {result}")
                logger.error(
                    "Fetch error for %s: %s",
                    item.id,
                    result,
                    exc_info=result,
                )
            else:
                logger.warning(
                    "No snapshot for %s this cycle (%s)",
                    item.id,
                    item.url,
                )
        return snapshots, errors

    # ── Poll cycle ───────────────────────────────────────

    async def poll_once(self) -> CycleResult:
        """Run one fetch -> diff -> persist -> notify cycle.

        Storage errors propagate to the caller (the scheduler).
        """
        before = await self.repository.all()
        result = CycleResult(checked=len(before))

        snapshots, result.errors = await self._fetch_all(
            list(before.values())
        )
        result.fetched = len(snapshots)

        # One save at a time, in fetch order
        for snapshot in snapshots:
            changed = await self.repository.save(snapshot)
            old = before.get(snapshot.id)
            if changed and old is not None:
                result.changes.append(PriceChange(old=old, new=snapshot))

        if result.changes:
            for change in result.changes:
                self.dispatcher.notify_change(change.old, change.new)
        else:
            logger.info(
                "No price changes detected (%d/%d fetched)",
                result.fetched,
                result.checked,
            )
        return result

    # ── User actions ─────────────────────────────────────

    async def is_tracked(self, url: str) -> bool:
        """True if the page at ``url`` maps to an already tracked id."""
        item_id = self.fetcher.item_id_for(url)
        return item_id is not None and await self.repository.has(item_id)

    async def track(self, url: str) -> TrackedItem | None:
        """Start tracking the product at ``url``.

        Returns the stored item, or None if the URL is not a supported
        product page or its snapshot could not be fetched.
        """
        if not self.fetcher.matches(url):
            logger.warning("Unsupported product URL: %s", url)
            return None
        snapshot = await asyncio.to_thread(self.fetcher.fetch, url)
        if snapshot is None:
            logger.warning("Could not fetch a snapshot for %s", url)
            return None

        await self.repository.save(snapshot)
        stored = await self.repository.get(snapshot.id)
        if stored is not None:
            self.dispatcher.notify_tracking_started(stored)
        return stored

    async def untrack(self, item_id: str) -> TrackedItem | None:
        """Stop tracking ``item_id``; returns the removed item."""
        item = await self.repository.get(item_id)
        await self.repository.remove(item_id)
        if item is None:
            logger.info("Remove requested for untracked id %s", item_id)
            return None
        self.dispatcher.notify_tracking_stopped(item)
        return item
