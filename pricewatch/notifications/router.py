# pricewatch/notifications/router.py

"""Routes notification button clicks back to the item they refer to."""

import logging
import webbrowser
from collections.abc import Awaitable, Callable

from pricewatch.notifications.events import EventCode, parse_notification_id
from pricewatch.storage.product_repository import ProductRepository

logger = logging.getLogger("pricewatch.router")

ActionHandler = Callable[[str], Awaitable[bool]]

PRIMARY_BUTTON = 0


class NotificationRouter:
    """Maps event codes to action handlers.

    A handler receives the item id recovered from the notification id
    and returns True if it performed an action.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventCode, ActionHandler] = {}

    @classmethod
    def with_defaults(
        cls,
        repository: ProductRepository,
        open_url: Callable[[str], object] | None = None,
        open_overview: Callable[[], Awaitable[object]] | None = None,
    ) -> "NotificationRouter":
        """Router that opens the item page or the tracked-item overview."""
        router = cls()

        async def open_item(item_id: str) -> bool:
            item = await repository.get(item_id)
            if item is None:
                logger.info(
                    "Item %s no longer tracked; action dropped", item_id,
                )
                return False
            (open_url or webbrowser.open)(item.url)
            return True

        async def show_overview(item_id: str) -> bool:
            if open_overview is None:
                return False
            await open_overview()
            return True

        router.register(EventCode.PRICE_CHANGED, open_item)
        router.register(EventCode.TRACKING, show_overview)
        return router

    def register(self, code: EventCode, handler: ActionHandler) -> None:
        self._handlers[code] = handler

    async def handle_action(
        self, nid: str, button_index: int = PRIMARY_BUTTON,
    ) -> bool:
        """Act on a click of ``button_index`` on notification ``nid``.

        Only the primary button acts; other buttons just dismiss.
        Raises ``ValueError`` for a malformed notification id.
        """
        if button_index != PRIMARY_BUTTON:
            return False
        code, item_id = parse_notification_id(nid)
        handler = self._handlers.get(code)
        if handler is None:
            logger.warning("No handler registered for %s", code.value)
            return False
        return await handler(item_id)
