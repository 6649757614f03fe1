# pricewatch/fetchers/noon_fetcher.py

"""Snapshot fetcher for noon.com product pages."""

import json
import logging
import re
import time
from typing import Any

from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings
from pricewatch.fetchers.base_fetcher import BaseFetcher
from pricewatch.models.tracked_item import (
    PriceSnapshot,
    TrackedItem,
    now_millis,
)

_PAGE_URL_RE = re.compile(r"^https://[^/]+\.noon\.com/.+$")
_PRODUCT_ID_RE = re.compile(r"^.+/([^/]+)/p/.*$")
# First path segment (the locale, e.g. /saudi-en) after the host
_LOCALE_SEGMENT_RE = re.compile(r"(//[^/]+)/[^/]+")


def is_matched_url(url: str) -> bool:
    """True for https URLs on any noon.com subdomain with a path."""
    return bool(_PAGE_URL_RE.match(url or ""))


def product_id_from_url(url: str) -> str | None:
    """Lowercase path segment preceding ``/p/``, or None."""
    if not is_matched_url(url):
        return None
    match = _PRODUCT_ID_RE.match(url)
    return match.group(1).lower() if match else None


def api_url_for(page_url: str) -> str:
    """Map a product page URL onto the catalog API on the same host."""
    return _LOCALE_SEGMENT_RE.sub(
        rf"\1{Settings.NOON_API_PATH}", page_url, count=1
    )


class NoonFetcher(BaseFetcher):
    """Fetches noon product snapshots via the internal catalog API.

    Noon pages are a Next.js SPA; the JSON behind a product page lives
    under ``/_svc/catalog/api/v3/u/<path>``. The ``x-locale`` header is
    required for the API to return the price shown on the page.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger("pricewatch.noon")
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def matches(self, url: str) -> bool:
        return is_matched_url(url)

    def item_id_for(self, url: str) -> str | None:
        return product_id_from_url(url)

    def _fetch_json(self, url: str) -> dict[str, Any] | None:
        """GET a JSON document with retries."""
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "x-locale": self.settings.NOON_LOCALE,
        }
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
                if resp.status_code == 200:
                    data: Any = json.loads(resp.text)
                    return data if isinstance(data, dict) else None
                self.logger.warning(
                    "[noon] HTTP %d on attempt %d for %s",
                    resp.status_code,
                    attempt + 1,
                    url,
                )
                if resp.status_code == 404:
                    return None
            except json.JSONDecodeError as e:
                self.logger.warning(
                    "[noon] Malformed JSON from %s: %s", url, e,
                )
                return None
            except Exception as e:
                self.logger.warning(
                    "[noon] Request error on attempt %d: %s",
                    attempt + 1,
                    e,
                    exc_info=True,
                )
            if attempt < self.settings.MAX_RETRIES - 1:
                time.sleep(
                    self.settings.REQUEST_DELAY * (attempt + 1)
                )
        return None

    def _parse_product(
        self, page_url: str, api: dict[str, Any],
    ) -> TrackedItem | None:
        """Build a snapshot from the catalog API payload."""
        product: dict[str, Any] = api.get("product") or {}
        context: dict[str, Any] = product.get("context") or {}
        if not product or not context:
            self.logger.info(
                "[noon] No product context for %s", page_url,
            )
            return None

        sku = str(context.get("skuConfig") or "")
        if not sku:
            self.logger.info("[noon] No SKU for %s", page_url)
            return None
        image_keys: list[str] = product.get("image_keys") or []
        return TrackedItem(
            id=sku.lower(),
            name=str(product.get("product_title", "")),
            url=page_url,
            images=[
                self.settings.NOON_IMAGE_URL.format(key=key)
                for key in image_keys
            ],
            price_now=PriceSnapshot(
                value=float(context.get("price") or 0),
                currency=self.settings.NOON_CURRENCY,
                timestamp=now_millis(),
            ),
        )

    def fetch(self, url: str) -> TrackedItem | None:
        """Fetch the current snapshot for a noon product page."""
        if not is_matched_url(url):
            return None
        try:
            api = self._fetch_json(api_url_for(url))
            if api is None:
                return None
            return self._parse_product(url, api)
        except Exception as e:
            self.logger.error(
                "[noon] Fetch failed for %s: %s", url, e, exc_info=True,
            )
            return None
