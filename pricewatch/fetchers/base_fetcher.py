# pricewatch/fetchers/base_fetcher.py

"""Abstract snapshot fetcher used by the poll cycle."""

from abc import ABC, abstractmethod

from pricewatch.models.tracked_item import TrackedItem


class BaseFetcher(ABC):
    """Fetches the current snapshot of one catalog item by URL."""

    @abstractmethod
    def matches(self, url: str) -> bool:
        """Return True if ``url`` belongs to this fetcher's source."""
        ...

    @abstractmethod
    def fetch(self, url: str) -> TrackedItem | None:
        """Return a fresh snapshot, or None when unavailable.

        None covers non-matching URLs, failed requests and payloads
        missing required fields. Implementations should not raise for
        those cases.
        """
        ...

    def item_id_for(self, url: str) -> str | None:
        """Id the item at ``url`` will be stored under, if known offline.

        Lets callers check whether a page is already tracked without a
        request. The default cannot tell and returns None.
        """
        return None
