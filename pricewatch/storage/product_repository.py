# pricewatch/storage/product_repository.py

"""Tracked-item repository with change detection and history append.

The backing :class:`JsonStore` persists the whole id -> item mapping as a
single value, so every mutation is a read-modify-write of the entire
aggregate. Two such cycles running at the same time both start from the
same old mapping and the later write discards the earlier one.

``ProductRepository`` therefore funnels every ``save`` and ``remove``
through one ``asyncio.Queue`` consumed by a single worker task. Callers
may fire saves concurrently (e.g. via ``asyncio.gather``); they are still
applied one at a time, each fully written before the next one reads.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any

from pricewatch.models.tracked_item import TrackedItem
from pricewatch.storage.json_store import JsonStore

logger = logging.getLogger("pricewatch.repository")


@dataclass
class _Command:
    """A queued mutation and the future its caller awaits."""

    kind: str  # "save" or "remove"
    payload: Any
    future: "asyncio.Future[Any]"


class ProductRepository:
    """Single-writer store of tracked items keyed by id."""

    def __init__(self, store: JsonStore | None = None) -> None:
        self._store = store or JsonStore()
        self._queue: asyncio.Queue[_Command | None] | None = None
        self._worker: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "ProductRepository":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Reads ────────────────────────────────────────────

    async def all(self) -> dict[str, TrackedItem]:
        """Return copies of every tracked item, keyed by id."""
        data = await asyncio.to_thread(self._store.load)
        return {
            item_id: TrackedItem.from_dict(raw)
            for item_id, raw in data.items()
        }

    async def get(self, item_id: str) -> TrackedItem | None:
        """Return a copy of one item, or None if it is not tracked."""
        return (await self.all()).get(item_id)

    async def has(self, item_id: str) -> bool:
        return await self.get(item_id) is not None

    # ── Writes (serialised) ──────────────────────────────

    async def save(self, item: TrackedItem) -> bool:
        """Persist a fresh snapshot of ``item``.

        Returns True only when an existing record's price value or
        currency changed; the superseded ``price_now`` is then prepended
        to the history. A first save inserts the item with an empty
        history and returns False. A save with an unchanged price leaves
        the stored record untouched, including name and images.
        """
        result: bool = await self._submit("save", item)
        return result

    async def remove(self, item_id: str) -> None:
        """Stop tracking ``item_id``. Unknown ids are ignored."""
        await self._submit("remove", item_id)

    async def close(self) -> None:
        """Apply any queued commands, then stop the worker."""
        if self._worker is None or self._worker.done():
            return
        assert self._queue is not None
        await self._queue.put(None)
        await self._worker
        self._worker = None

    # ── Worker ───────────────────────────────────────────

    async def _submit(self, kind: str, payload: Any) -> Any:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(
                self._consume(), name="product-repository-writer"
            )
        await self._queue.put(_Command(kind, payload, future))
        return await future

    async def _consume(self) -> None:
        """Apply queued commands strictly one at a time."""
        assert self._queue is not None
        while True:
            command = await self._queue.get()
            try:
                if command is None:
                    return
                if command.future.cancelled():
                    continue
                try:
                    result = await asyncio.to_thread(
                        self._apply, command
                    )
                except Exception as exc:
                    if not command.future.cancelled():
                        command.future.set_exception(exc)
                else:
                    if not command.future.cancelled():
                        command.future.set_result(result)
            finally:
                self._queue.task_done()

    def _apply(self, command: _Command) -> bool | None:
        if command.kind == "save":
            return self._apply_save(command.payload)
        if command.kind == "remove":
            self._apply_remove(command.payload)
            return None
        raise ValueError(f"Unknown repository command: {command.kind}")

    def _apply_save(self, item: TrackedItem) -> bool:
        products = self._store.load()
        stored = products.get(item.id)

        if stored is None:
            # Re-adding a removed item starts a fresh history
            inserted = replace(item, price_history=[])
            products[item.id] = inserted.to_dict()
            self._store.dump(products)
            logger.info(
                "Tracking new product %s (%s %s)",
                item.id,
                item.price_now.value,
                item.price_now.currency,
            )
            return False

        old = TrackedItem.from_dict(stored)
        if item.price_now.same_price(old.price_now):
            logger.debug("Price unchanged for %s", item.id)
            return False

        updated = replace(
            item,
            price_history=[old.price_now, *old.price_history],
        )
        products[item.id] = updated.to_dict()
        self._store.dump(products)
        logger.info(
            "Price changed for %s: %s %s -> %s %s",
            item.id,
            old.price_now.value,
            old.price_now.currency,
            item.price_now.value,
            item.price_now.currency,
        )
        return True

    def _apply_remove(self, item_id: str) -> None:
        products = self._store.load()
        if item_id not in products:
            logger.debug("Remove of untracked id %s ignored", item_id)
            return
        del products[item_id]
        self._store.dump(products)
        logger.info("Stopped tracking %s", item_id)
