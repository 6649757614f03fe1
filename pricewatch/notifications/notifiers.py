# pricewatch/notifications/notifiers.py

"""Notification sinks: console and webhook."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from curl_cffi import requests as curl_requests
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.notifiers")


@dataclass
class Notification:
    """A rendered, user-facing notification."""

    id: str
    title: str
    message: str
    url: str = ""
    buttons: tuple[str, ...] = field(default_factory=tuple)
    require_interaction: bool = False


class Notifier(ABC):
    """Base class for delivering notifications to the user."""

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """Deliver one notification. Returns True on success."""
        ...


class ConsoleNotifier(Notifier):
    """Prints notifications as Rich panels on stderr."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def send(self, notification: Notification) -> bool:
        body = escape(notification.message)
        if notification.url:
            body += f"\n[dim]{escape(notification.url)}[/dim]"
        footer = (
            f"[dim]{notification.id}[/dim]"
            if notification.buttons
            else None
        )
        self.console.print(
            Panel(
                body,
                title=f"[bold]{notification.title}[/bold]",
                subtitle=footer,
                border_style=(
                    "yellow" if notification.require_interaction else "cyan"
                ),
            )
        )
        return True


class WebhookNotifier(Notifier):
    """Posts notifications to a Discord/Slack-style webhook."""

    def __init__(
        self,
        webhook_url: str,
        session: curl_requests.Session | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.session = session or curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER
        )

    def send(self, notification: Notification) -> bool:
        content = f"**{notification.title}**\n{notification.message}"
        if notification.url:
            content += f"\n{notification.url}"
        try:
            resp = self.session.post(
                self.webhook_url,
                json={"content": content},
                timeout=Settings.WEBHOOK_TIMEOUT,
            )
            if resp.status_code >= 400:
                logger.error(
                    "Webhook returned HTTP %d for %s",
                    resp.status_code,
                    notification.id,
                )
                return False
        except Exception as exc:
            logger.error(
                "Webhook delivery failed for %s: %s",
                notification.id,
                exc,
                exc_info=True,
            )
            return False
        logger.debug("Webhook delivered %s", notification.id)
        return True
