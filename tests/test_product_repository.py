# tests/test_product_repository.py

"""Tests for ProductRepository change detection and write serialisation."""

import asyncio
import tempfile
import unittest
from pathlib import Path
from typing import Any

from pricewatch.models.tracked_item import PriceSnapshot, TrackedItem
from pricewatch.storage.json_store import JsonStore, StorageError
from pricewatch.storage.product_repository import ProductRepository


def _item(
    item_id: str = "n100",
    value: float = 100.0,
    currency: str = "SAR",
    name: str = "Kettle",
    timestamp: int = 1,
) -> TrackedItem:
    """Create a minimal fetched snapshot."""
    return TrackedItem(
        id=item_id,
        name=name,
        url=f"https://www.noon.com/saudi-en/x/{item_id}/p/",
        images=[f"https://f.nooncdn.com/p/{item_id}.jpg"],
        price_now=PriceSnapshot(value, currency, timestamp),
    )


class _FlakyStore(JsonStore):
    """JsonStore whose next ``dump`` can be told to fail."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.fail_next_dump = False

    def dump(self, products: dict[str, dict[str, Any]]) -> None:
        if self.fail_next_dump:
            self.fail_next_dump = False
            raise StorageError("disk full")
        super().dump(products)


class TestProductRepository(unittest.IsolatedAsyncioTestCase):
    """Repository contract: all / get / has / save / remove."""

    async def asyncSetUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.store = _FlakyStore(Path(self.tmp_dir) / "products.json")
        self.repo = ProductRepository(self.store)

    async def asyncTearDown(self) -> None:
        await self.repo.close()

    # ── Reads ────────────────────────────────────────────

    async def test_all_empty_when_uninitialised(self) -> None:
        self.assertEqual(await self.repo.all(), {})

    async def test_get_missing_is_none(self) -> None:
        self.assertIsNone(await self.repo.get("nope"))
        self.assertFalse(await self.repo.has("nope"))

    async def test_reads_return_copies(self) -> None:
        """Mutating a returned item does not touch stored state."""
        await self.repo.save(_item())
        copy = await self.repo.get("n100")
        assert copy is not None
        copy.price_history.append(PriceSnapshot(1.0, "SAR"))
        stored = await self.repo.get("n100")
        assert stored is not None
        self.assertEqual(stored.price_history, [])

    # ── save: insert ─────────────────────────────────────

    async def test_save_new_item_returns_false(self) -> None:
        """Insertion is not a change event."""
        self.assertFalse(await self.repo.save(_item()))
        self.assertTrue(await self.repo.has("n100"))

    async def test_save_new_item_starts_empty_history(self) -> None:
        """Incoming history is discarded on insert."""
        incoming = _item()
        incoming.price_history = [PriceSnapshot(5.0, "SAR")]
        await self.repo.save(incoming)
        stored = await self.repo.get("n100")
        assert stored is not None
        self.assertEqual(stored.price_history, [])

    # ── save: unchanged ──────────────────────────────────

    async def test_save_same_price_returns_false(self) -> None:
        await self.repo.save(_item(timestamp=1))
        changed = await self.repo.save(_item(timestamp=2))
        self.assertFalse(changed)

    async def test_save_same_price_leaves_record_untouched(self) -> None:
        """Name, images and timestamp are not refreshed without a change."""
        await self.repo.save(_item(name="Old name", timestamp=1))
        before = await self.repo.get("n100")
        await self.repo.save(_item(name="New name", timestamp=2))
        after = await self.repo.get("n100")
        self.assertEqual(before, after)
        assert after is not None
        self.assertEqual(after.name, "Old name")
        self.assertEqual(after.price_now.timestamp, 1)

    # ── save: changed ────────────────────────────────────

    async def test_value_change_returns_true_and_prepends(self) -> None:
        await self.repo.save(_item(value=100.0, timestamp=1))
        changed = await self.repo.save(_item(value=120.0, timestamp=2))
        self.assertTrue(changed)
        stored = await self.repo.get("n100")
        assert stored is not None
        self.assertEqual(stored.price_now, PriceSnapshot(120.0, "SAR", 2))
        self.assertEqual(stored.price_history, [PriceSnapshot(100.0, "SAR", 1)])

    async def test_currency_change_is_a_change(self) -> None:
        await self.repo.save(_item(value=100.0, currency="SAR"))
        self.assertTrue(
            await self.repo.save(_item(value=100.0, currency="AED"))
        )

    async def test_history_is_most_recent_first(self) -> None:
        """Each change grows history by exactly one, newest first."""
        for ts, value in enumerate([100.0, 90.0, 95.0, 80.0], start=1):
            await self.repo.save(_item(value=value, timestamp=ts))
        stored = await self.repo.get("n100")
        assert stored is not None
        self.assertEqual(stored.price_now.value, 80.0)
        self.assertEqual(
            [s.value for s in stored.price_history], [95.0, 90.0, 100.0]
        )

    async def test_change_refreshes_metadata(self) -> None:
        """On a change the stored record becomes the incoming item."""
        await self.repo.save(_item(name="Old", value=100.0))
        await self.repo.save(_item(name="New", value=50.0))
        stored = await self.repo.get("n100")
        assert stored is not None
        self.assertEqual(stored.name, "New")

    # ── remove ───────────────────────────────────────────

    async def test_remove_then_get_is_none(self) -> None:
        await self.repo.save(_item())
        await self.repo.remove("n100")
        self.assertIsNone(await self.repo.get("n100"))

    async def test_remove_missing_is_noop(self) -> None:
        await self.repo.save(_item("a"))
        await self.repo.remove("does-not-exist")
        self.assertEqual(set(await self.repo.all()), {"a"})

    async def test_readd_after_remove_resets_history(self) -> None:
        """A removed-then-re-added item starts from a clean slate."""
        await self.repo.save(_item(value=100.0))
        await self.repo.save(_item(value=110.0))
        await self.repo.remove("n100")
        self.assertFalse(await self.repo.save(_item(value=130.0)))
        stored = await self.repo.get("n100")
        assert stored is not None
        self.assertEqual(stored.price_history, [])

    # ── Serialisation ────────────────────────────────────

    async def test_concurrent_inserts_are_all_kept(self) -> None:
        """N overlapping saves for distinct ids lose no update."""
        items = [_item(f"sku{i}", 10.0 + i) for i in range(25)]
        results = await asyncio.gather(
            *(self.repo.save(i) for i in items)
        )
        self.assertEqual(results, [False] * 25)
        stored = await self.repo.all()
        self.assertEqual(set(stored), {f"sku{i}" for i in range(25)})

    async def test_concurrent_changes_are_all_kept(self) -> None:
        """Concurrent price changes each land with their history."""
        ids = [f"sku{i}" for i in range(10)]
        for item_id in ids:
            await self.repo.save(_item(item_id, 100.0))

        results = await asyncio.gather(
            *(self.repo.save(_item(item_id, 80.0)) for item_id in ids)
        )
        self.assertTrue(all(results))
        stored = await self.repo.all()
        for item_id in ids:
            with self.subTest(item_id=item_id):
                self.assertEqual(stored[item_id].price_now.value, 80.0)
                self.assertEqual(len(stored[item_id].price_history), 1)

    async def test_concurrent_save_and_remove(self) -> None:
        """Saves and removes interleave without clobbering each other."""
        await self.repo.save(_item("gone"))
        await asyncio.gather(
            self.repo.save(_item("a")),
            self.repo.remove("gone"),
            self.repo.save(_item("b")),
        )
        self.assertEqual(set(await self.repo.all()), {"a", "b"})

    # ── Failures ─────────────────────────────────────────

    async def test_storage_error_reaches_caller(self) -> None:
        self.store.fail_next_dump = True
        with self.assertRaises(StorageError):
            await self.repo.save(_item())

    async def test_worker_survives_storage_error(self) -> None:
        """A failed command does not stop later commands."""
        self.store.fail_next_dump = True
        with self.assertRaises(StorageError):
            await self.repo.save(_item("a"))
        await self.repo.save(_item("b"))
        self.assertEqual(set(await self.repo.all()), {"b"})

    async def test_close_is_idempotent(self) -> None:
        await self.repo.save(_item())
        await self.repo.close()
        await self.repo.close()
        # Writes after close restart the worker
        await self.repo.save(_item("later"))
        self.assertTrue(await self.repo.has("later"))


if __name__ == "__main__":
    unittest.main()
