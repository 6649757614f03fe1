# pricewatch/cli/runner.py

"""Command implementations for the pricewatch CLI."""

import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from pricewatch.fetchers.noon_fetcher import NoonFetcher
from pricewatch.models.tracked_item import PriceSnapshot, TrackedItem
from pricewatch.notifications.dispatcher import NotificationDispatcher
from pricewatch.notifications.router import NotificationRouter
from pricewatch.services.price_monitor import PriceMonitor
from pricewatch.services.scheduler import AlarmScheduler
from pricewatch.storage.json_store import JsonStore, StorageError
from pricewatch.storage.product_repository import ProductRepository

logger = logging.getLogger("pricewatch.cli")

# Stderr console for status messages so stdout stays clean
_err = Console(stderr=True)


def build_monitor(store_path: Path | None = None) -> PriceMonitor:
    """Wire the production repository, fetcher and dispatcher."""
    return PriceMonitor(
        repository=ProductRepository(JsonStore(store_path)),
        fetcher=NoonFetcher(),
        dispatcher=NotificationDispatcher.from_settings(),
    )


def _fmt_price(price: PriceSnapshot | None) -> str:
    if price is None or price.value == 0:
        return "—"
    return f"{price.currency} {price.value:,.2f}"


def _fmt_delta(item: TrackedItem) -> str:
    delta = item.price_delta
    if delta is None:
        return "—"
    if delta > 0:
        return f"[red]▲ {delta:,.2f}[/red]"
    if delta < 0:
        return f"[green]▼ {abs(delta):,.2f}[/green]"
    return "0.00"


def print_items_table(
    items: dict[str, TrackedItem], console: Console | None = None,
) -> None:
    """Render the tracked items as a Rich table."""
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim")
    table.add_column("Name", max_width=50)
    table.add_column("Previous", justify="right")
    table.add_column("Current", justify="right", style="bold")
    table.add_column("Change", justify="right")
    table.add_column("Changes", justify="right", style="dim")

    for item in items.values():
        table.add_row(
            item.id,
            item.name[:50],
            _fmt_price(item.previous_price),
            _fmt_price(item.price_now),
            _fmt_delta(item),
            str(len(item.price_history)),
        )

    (console or Console()).print(table)


async def run_monitor(monitor: PriceMonitor | None = None) -> int:
    """Start the alarm loop and block until it is stopped."""
    monitor = monitor or build_monitor()
    scheduler = AlarmScheduler(monitor.poll_once)
    _err.print("[bold]Price monitor running[/bold] [dim](Ctrl+C to stop)[/dim]")
    try:
        scheduler.start()
        await scheduler.wait_stopped()
    finally:
        scheduler.stop()
        await monitor.repository.close()

    if scheduler.gave_up:
        _err.print(
            "[red]Polling stopped: the next check could not be "
            "scheduled. See the log file for details.[/red]"
        )
        return 1
    return 0


def _storage_failed(action: str, exc: StorageError) -> int:
    logger.error("%s failed: %s", action, exc, exc_info=True)
    _err.print(f"[red]{action} failed: {exc}[/red]")
    return 1


async def run_check(monitor: PriceMonitor | None = None) -> int:
    """Run a single poll cycle and report the outcome."""
    monitor = monitor or build_monitor()
    try:
        result = await monitor.poll_once()
    except StorageError as exc:
        return _storage_failed("Check", exc)
    finally:
        await monitor.repository.close()

    for error_msg in result.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    _err.print(
        f"[green]✓ {result.fetched} of {result.checked} products "
        f"checked, {len(result.changes)} price change(s)[/green]"
    )
    return 0


async def run_add(url: str, monitor: PriceMonitor | None = None) -> int:
    """Start tracking the product at ``url``."""
    monitor = monitor or build_monitor()
    try:
        if await monitor.is_tracked(url):
            _err.print(f"[yellow]Already tracked: {url}[/yellow]")
            return 0
        item = await monitor.track(url)
    except StorageError as exc:
        return _storage_failed("Add", exc)
    finally:
        await monitor.repository.close()
    if item is None:
        _err.print(f"[red]Not a trackable noon product page: {url}[/red]")
        return 1
    _err.print(f"[green]✓ Tracking {item.id}[/green] {item.name}")
    return 0


async def run_remove(
    item_id: str, monitor: PriceMonitor | None = None,
) -> int:
    """Stop tracking ``item_id``."""
    monitor = monitor or build_monitor()
    try:
        item = await monitor.untrack(item_id.lower())
    except StorageError as exc:
        return _storage_failed("Remove", exc)
    finally:
        await monitor.repository.close()
    if item is None:
        _err.print(f"[yellow]Not tracked: {item_id}[/yellow]")
        return 1
    _err.print(f"[green]✓ Stopped tracking {item.id}[/green]")
    return 0


async def run_list(monitor: PriceMonitor | None = None) -> int:
    """Print every tracked product."""
    monitor = monitor or build_monitor()
    try:
        items = await monitor.repository.all()
    except StorageError as exc:
        return _storage_failed("List", exc)
    if not items:
        _err.print("[yellow]No products tracked.[/yellow]")
        return 0
    print_items_table(items)
    return 0


async def run_open(
    nid: str,
    button: int = 0,
    monitor: PriceMonitor | None = None,
) -> int:
    """Perform the action behind a notification button."""
    repository = (monitor or build_monitor()).repository

    async def show_overview() -> None:
        print_items_table(await repository.all())

    router = NotificationRouter.with_defaults(
        repository, open_overview=show_overview,
    )
    try:
        acted = await router.handle_action(nid, button)
    except StorageError as exc:
        return _storage_failed("Open", exc)
    except ValueError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    if not acted:
        _err.print("[dim]Nothing to do.[/dim]")
    return 0
