# pricewatch/storage/json_store.py

"""Single-file JSON store holding the tracked-item aggregate."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.store")

STORAGE_KEY_PRODUCTS = "products"


class StorageError(Exception):
    """The backing store could not be read or written."""


class JsonStore:
    """Reads and writes the whole ``products`` mapping as one value.

    The file layout is ``{"products": {<id>: <item dict>, ...}}``.
    Writes go to a temp file in the same directory and are swapped in
    with :func:`os.replace`, so a reader never sees a half-written file.
    This class does not serialise concurrent read-modify-write cycles;
    see :class:`~pricewatch.storage.product_repository.ProductRepository`.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path: Path = path or Settings.STORE_PATH

    def load(self) -> dict[str, dict[str, Any]]:
        """Return the stored mapping, or ``{}`` if nothing is stored yet."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise StorageError(
                f"Failed to read {self.path}: {exc}"
            ) from exc

        if not isinstance(data, dict):
            raise StorageError(
                f"Unexpected top-level value in {self.path}"
            )
        products: dict[str, dict[str, Any]] = (
            data.get(STORAGE_KEY_PRODUCTS) or {}
        )
        return products

    def dump(self, products: dict[str, dict[str, Any]]) -> None:
        """Replace the stored mapping with ``products``."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(
                        {STORAGE_KEY_PRODUCTS: products},
                        f,
                        ensure_ascii=False,
                        indent=2,
                    )
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(
                f"Failed to write {self.path}: {exc}"
            ) from exc
        logger.debug(
            "Wrote %d products to %s", len(products), self.path,
        )
