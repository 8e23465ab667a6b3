# src/cli/runner.py

"""Headless CLI commands: search, list scouting, list edits, stats."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from src.models.errors import GroceryScoutError, InputRejectedError
from src.models.price_history import normalize_product_key
from src.models.price_quote import PriceQuote
from src.models.shopping_list import ShoppingList
from src.services.history_stats import HistoryStats, compute_stats
from src.services.price_scout import PriceScout
from src.services.search_provider import (
    GeminiSearchProvider,
    GeoLocation,
    SearchProvider,
)
from src.services.shopping_lists import (
    add_item,
    create_list,
    delete_list,
    find_item,
    find_list,
    remove_item,
    toggle_item,
)
from src.storage.chart_exporter import export_price_chart
from src.storage.snapshot_store import SqliteSnapshotStore

logger = logging.getLogger("grocery_scout.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_REJECTED = 2


def _open_store(db_path: str | None) -> SqliteSnapshotStore:
    return SqliteSnapshotStore(Path(db_path) if db_path else None)


def _report_error(exc: GroceryScoutError) -> int:
    """Print a domain error and map it to an exit code."""
    if isinstance(exc, InputRejectedError):
        _err.print(f"[red]Rejected {exc.field}: {escape(exc.reason)}[/red]")
        return EXIT_REJECTED
    logger.error("Command failed: %s", exc)
    _err.print(f"[red]{escape(str(exc))}[/red]")
    return EXIT_FAILED


# ── Rendering ────────────────────────────────────────────


def _quotes_to_dicts(quotes: list[PriceQuote]) -> list[dict[str, Any]]:
    return [
        {
            "store": q.store,
            "price": q.price,
            "productName": q.resolved_product_name,
            "originalQuery": q.originating_query,
        }
        for q in quotes
    ]


def _stats_to_dict(stats: HistoryStats | None) -> dict[str, Any] | None:
    if stats is None:
        return None
    return {
        "min": stats.min,
        "max": stats.max,
        "avg": round(stats.avg, 2),
        "median": stats.median,
        "points": stats.point_count,
        "stores": stats.store_count,
        "bestDeal": {
            "store": stats.best_deal.store,
            "date": stats.best_deal.date,
            "price": stats.best_deal.price,
        },
    }


def _print_json(data: object) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _print_quotes_table(title: str, quotes: list[PriceQuote]) -> None:
    """Render quotes cheapest-first to stdout."""
    table = Table(
        title=Text(title), show_lines=True, title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Store", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Product", max_width=50)
    table.add_column("List item", style="dim")

    for idx, q in enumerate(sorted(quotes, key=lambda q: q.price), 1):
        table.add_row(
            str(idx),
            Text(q.store),
            f"${q.price:,.2f}",
            Text(q.resolved_product_name or "—"),
            Text(q.originating_query or "—"),
        )
    Console().print(table)


def _print_stats_table(product: str, stats: HistoryStats) -> None:
    table = Table(
        title=Text(f"Price history: {product}"),
        show_header=False,
        title_style="bold cyan",
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Lowest", f"${stats.min:,.2f}")
    table.add_row("Highest", f"${stats.max:,.2f}")
    table.add_row("Average", f"${stats.avg:,.2f}")
    table.add_row("Median", f"${stats.median:,.2f}")
    table.add_row(
        "Best deal",
        Text(
            f"${stats.best_deal.price:,.2f} at {stats.best_deal.store} "
            f"({stats.best_deal.date})"
        ),
    )
    table.add_row(
        "Observations",
        f"{stats.point_count} across {stats.store_count} stores",
    )
    Console().print(table)


def _print_list_table(shopping_list: ShoppingList) -> None:
    table = Table(
        title=Text(shopping_list.name),
        caption=f"Estimated total: ${shopping_list.total:,.2f}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("", width=3)
    table.add_column("Item", max_width=50)
    table.add_column("Best price", justify="right", style="green")
    table.add_column("Store", style="magenta")
    for item in shopping_list.items:
        table.add_row(
            "✓" if item.checked else "",
            Text(item.name),
            (
                f"${item.best_price:,.2f}"
                if item.best_price is not None
                else "—"
            ),
            Text(item.best_store or "—"),
        )
    Console().print(table)


# ── Commands ─────────────────────────────────────────────


async def cli_search(
    query: str | None,
    account_id: str,
    output_format: str,
    barcode: str | None = None,
    location: GeoLocation | None = None,
    near: str | None = None,
    db_path: str | None = None,
    provider: SearchProvider | None = None,
) -> int:
    """Search one product (by name or barcode) and save its history."""
    store = _open_store(db_path)
    try:
        scout = PriceScout(provider or GeminiSearchProvider())
        snapshot = store.get(account_id)
        if barcode is not None:
            _err.print(
                f"[bold]Identifying barcode:[/bold] {escape(barcode)}"
            )
            outcome = await scout.search_barcode(
                snapshot, barcode, location,
            )
        else:
            _err.print(f"[bold]Searching:[/bold] {escape(query or '')}")
            outcome = await scout.search(
                snapshot, query or "", location, near,
            )
        store.put(account_id, outcome.snapshot)
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    if not outcome.quotes:
        _err.print("[yellow]No price data found.[/yellow]")

    if output_format == "table":
        if outcome.display_text:
            _err.print(outcome.display_text, markup=False)
        if outcome.quotes:
            _print_quotes_table(outcome.query, outcome.quotes)
        if outcome.stats is not None:
            _print_stats_table(outcome.query, outcome.stats)
    else:
        _print_json({
            "query": outcome.query,
            "summary": outcome.display_text,
            "quotes": _quotes_to_dicts(outcome.quotes),
            "stats": _stats_to_dict(outcome.stats),
        })
    return EXIT_OK


async def cli_scout(
    list_ref: str,
    account_id: str,
    output_format: str,
    location: GeoLocation | None = None,
    db_path: str | None = None,
    provider: SearchProvider | None = None,
) -> int:
    """Price every unchecked item on a list and save the result."""
    store = _open_store(db_path)
    try:
        scout = PriceScout(provider or GeminiSearchProvider())
        _err.print(f"[bold]Scouting list:[/bold] {escape(list_ref)}")
        outcome = await scout.scout_list(
            store.get(account_id), list_ref, location,
        )
        store.put(account_id, outcome.snapshot)
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    _err.print(
        f"[green]✓ {outcome.matched_count} of "
        f"{len(outcome.shopping_list.items)} items priced[/green]"
    )
    if output_format == "table":
        _print_list_table(outcome.shopping_list)
    else:
        _print_json({
            "list": outcome.shopping_list.to_dict(),
            "quotes": _quotes_to_dicts(outcome.quotes),
        })
    return EXIT_OK


def run_create_list(
    name: str,
    items_csv: str | None,
    account_id: str,
    db_path: str | None = None,
) -> int:
    """Create a shopping list, optionally with comma-separated items."""
    items = (
        [i.strip() for i in items_csv.split(",") if i.strip()]
        if items_csv
        else []
    )
    store = _open_store(db_path)
    try:
        snapshot, created = create_list(store.get(account_id), name, items)
        store.put(account_id, snapshot)
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    _err.print(
        f"[green]✓ Created '{escape(created.name)}' "
        f"with {len(created.items)} items[/green]"
    )
    return EXIT_OK


def run_add_item(
    list_ref: str,
    item_name: str,
    account_id: str,
    db_path: str | None = None,
) -> int:
    """Append one item to an existing list."""
    store = _open_store(db_path)
    try:
        snapshot = add_item(store.get(account_id), list_ref, item_name)
        store.put(account_id, snapshot)
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    _err.print(
        f"[green]✓ Added '{escape(item_name)}' "
        f"to {escape(list_ref)}[/green]"
    )
    return EXIT_OK


def run_toggle_item(
    list_ref: str,
    item_ref: str,
    account_id: str,
    db_path: str | None = None,
) -> int:
    """Check or uncheck one item (by id or name)."""
    store = _open_store(db_path)
    try:
        snapshot = store.get(account_id)
        target = find_list(snapshot, list_ref)
        item = find_item(target, item_ref)
        store.put(account_id, toggle_item(snapshot, target.id, item.id))
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    state = "unchecked" if item.checked else "checked"
    _err.print(f"[green]✓ {escape(item.name)} {state}[/green]")
    return EXIT_OK


def run_remove_item(
    list_ref: str,
    item_ref: str,
    account_id: str,
    db_path: str | None = None,
) -> int:
    """Drop one item (by id or name) from a list."""
    store = _open_store(db_path)
    try:
        snapshot = store.get(account_id)
        target = find_list(snapshot, list_ref)
        item = find_item(target, item_ref)
        store.put(account_id, remove_item(snapshot, target.id, item.id))
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    _err.print(
        f"[green]✓ Removed '{escape(item.name)}' "
        f"from {escape(target.name)}[/green]"
    )
    return EXIT_OK


def run_delete_list(
    list_ref: str,
    account_id: str,
    db_path: str | None = None,
) -> int:
    """Delete a whole shopping list."""
    store = _open_store(db_path)
    try:
        snapshot = store.get(account_id)
        target = find_list(snapshot, list_ref)
        store.put(account_id, delete_list(snapshot, target.id))
    except GroceryScoutError as exc:
        return _report_error(exc)
    finally:
        store.close()

    _err.print(f"[green]✓ Deleted '{escape(target.name)}'[/green]")
    return EXIT_OK


def run_show_lists(
    account_id: str,
    output_format: str,
    db_path: str | None = None,
) -> int:
    """Print every shopping list for the account."""
    store = _open_store(db_path)
    try:
        snapshot = store.get(account_id)
    finally:
        store.close()

    if not snapshot.lists:
        _err.print("[yellow]No shopping lists yet.[/yellow]")
        return EXIT_OK
    if output_format == "table":
        for shopping_list in snapshot.lists:
            _print_list_table(shopping_list)
    else:
        _print_json(snapshot.lists_document())
    return EXIT_OK


def run_stats(
    product: str,
    account_id: str,
    output_format: str,
    db_path: str | None = None,
) -> int:
    """Print history statistics for one product key."""
    store = _open_store(db_path)
    try:
        snapshot = store.get(account_id)
    finally:
        store.close()

    stats = compute_stats(
        snapshot.history.get(normalize_product_key(product))
    )
    if stats is None:
        _err.print(
            f"[yellow]Not enough price history for '{escape(product)}' yet. "
            "Search for it to start tracking.[/yellow]"
        )
        return EXIT_FAILED

    if output_format == "table":
        _print_stats_table(product, stats)
    else:
        _print_json(_stats_to_dict(stats))
    return EXIT_OK


def run_chart(
    product: str,
    account_id: str,
    open_browser: bool = True,
    db_path: str | None = None,
) -> int:
    """Export a product's price history chart to HTML."""
    store = _open_store(db_path)
    try:
        snapshot = store.get(account_id)
    finally:
        store.close()

    path = export_price_chart(
        snapshot.history.get(normalize_product_key(product)),
        product,
        open_browser=open_browser,
    )
    if path is None:
        _err.print(
            f"[yellow]No price history for '{escape(product)}'.[/yellow]"
        )
        return EXIT_FAILED
    _err.print(f"[green]✓ Chart saved → {escape(str(path))}[/green]")
    return EXIT_OK
