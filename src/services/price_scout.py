# src/services/price_scout.py

"""Orchestrates validated provider searches into history and lists.

Every entry point follows the same shape:

1. validate what the user typed (nothing unvalidated reaches the
   provider),
2. call the provider off the event loop,
3. parse the response into quotes,
4. fold the quotes into the history (and, for list scouting, the list),
5. hand back a new AccountSnapshot.

If the provider fails, the error propagates before step 3 and no new
snapshot exists, so nothing partial can be committed.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field

from src.filters.input_validator import (
    FieldKind,
    ValidationResult,
    sanitize_ai_response,
    validate,
    validate_batch,
)
from src.filters.list_matcher import (
    MATCH_TIERS,
    find_best_quote,
    match_quotes_to_list_items,
)
from src.filters.quote_parser import parse_price_data, strip_price_data
from src.models.errors import InputRejectedError
from src.models.price_history import HistoryIndex, normalize_product_key
from src.models.price_quote import PriceQuote
from src.models.shopping_list import AccountSnapshot, ShoppingList
from src.services.history_stats import HistoryStats, compute_stats
from src.services.search_provider import GeoLocation, SearchProvider
from src.services.shopping_lists import find_list, replace_list
from src.storage.history_accumulator import HistoryAccumulator

logger = logging.getLogger("grocery_scout.scout")


@dataclass
class SearchOutcome:
    """Result of a single-product search."""

    query: str
    display_text: str
    snapshot: AccountSnapshot
    quotes: list[PriceQuote] = field(
        default_factory=list
    )
    stats: HistoryStats | None = None


@dataclass
class ScoutOutcome:
    """Result of scouting prices for a whole shopping list."""

    shopping_list: ShoppingList
    snapshot: AccountSnapshot
    quotes: list[PriceQuote] = field(
        default_factory=list
    )
    matched_count: int = 0


def _require(result: ValidationResult, field_kind: FieldKind) -> str:
    """Return the sanitised value or raise InputRejectedError."""
    if not result.valid:
        reason = result.error or f"{field_kind.value} rejected"
        logger.warning("Rejected %s: %s", field_kind.value, reason)
        raise InputRejectedError(field_kind.value, reason)
    return result.sanitized or ""


class PriceScout:
    """Runs searches against a provider and folds results into snapshots."""

    def __init__(
        self,
        provider: SearchProvider,
        accumulator: HistoryAccumulator | None = None,
    ) -> None:
        self.provider = provider
        self.accumulator = accumulator or HistoryAccumulator()

    def _commit_history(
        self,
        history: HistoryIndex,
        groups: dict[str, list[PriceQuote]],
    ) -> HistoryIndex:
        """Record each key's quotes, then trim to the byte ceiling."""
        for query_key, quotes in groups.items():
            history = self.accumulator.record_observations(
                history, query_key, quotes,
            )
        return self.accumulator.trim_to_byte_ceiling(history)

    # ── Single product ───────────────────────────────────

    async def search(
        self,
        snapshot: AccountSnapshot,
        query: str,
        location: GeoLocation | None = None,
        near: str | None = None,
    ) -> SearchOutcome:
        """Search one product and record its quotes under the query.

        Raises:
            InputRejectedError: the query (or place) failed validation.
            ProviderUnavailableError: the provider call failed.
        """
        clean_query = _require(
            validate(query, FieldKind.SEARCH_QUERY),
            FieldKind.SEARCH_QUERY,
        )
        clean_near = (
            _require(validate(near, FieldKind.LOCATION), FieldKind.LOCATION)
            if near
            else None
        )

        raw = await asyncio.to_thread(
            self.provider.search, clean_query, location, clean_near,
        )
        quotes = parse_price_data(raw)
        if not quotes:
            logger.info("No price data found for '%s'", clean_query)

        history = self._commit_history(
            snapshot.history, {clean_query: quotes},
        )
        new_snapshot = dataclasses.replace(snapshot, history=history)
        return SearchOutcome(
            query=clean_query,
            display_text=strip_price_data(raw),
            snapshot=new_snapshot,
            quotes=quotes,
            stats=compute_stats(
                history.get(normalize_product_key(clean_query))
            ),
        )

    async def search_barcode(
        self,
        snapshot: AccountSnapshot,
        barcode: str,
        location: GeoLocation | None = None,
    ) -> SearchOutcome:
        """Identify a barcode's product, then search it by name.

        The identified name is provider output, so it is sanitised and
        then held to the same search-phrase rules as typed input.
        """
        clean_code = _require(
            validate(barcode, FieldKind.BARCODE), FieldKind.BARCODE,
        )
        name = await asyncio.to_thread(
            self.provider.identify_product, clean_code,
        )
        logger.info("Barcode %s identified as '%s'", clean_code, name)
        return await self.search(
            snapshot, sanitize_ai_response(name), location,
        )

    # ── Shopping list ────────────────────────────────────

    async def scout_list(
        self,
        snapshot: AccountSnapshot,
        list_ref: str,
        location: GeoLocation | None = None,
    ) -> ScoutOutcome:
        """Price every unchecked item on a list in one provider call.

        Matched items get their best price/store and are renamed to
        the resolved product.  Each quote is recorded under the list
        item it matched (falling back to its originating query).

        Raises:
            ListNotFoundError: no list matches *list_ref*.
            InputRejectedError: an item name failed validation.
            ProviderUnavailableError: the provider call failed.
        """
        target = find_list(snapshot, list_ref)
        pending = [item for item in target.items if not item.checked]
        names = [item.name for item in pending]
        if not names:
            logger.info("Nothing to scout on list '%s'", target.name)
            return ScoutOutcome(shopping_list=target, snapshot=snapshot)

        _require(
            validate_batch(names, FieldKind.ITEM_NAME),
            FieldKind.ITEM_NAME,
        )

        raw = await asyncio.to_thread(
            self.provider.search_batch, names, location,
        )
        quotes = parse_price_data(raw)

        # Checked items are passed through untouched
        pending_ids = {item.id for item in pending}
        matched_pending = match_quotes_to_list_items(pending, quotes)
        by_id = {item.id: item for item in matched_pending}
        items = tuple(
            by_id[item.id] if item.id in pending_ids else item
            for item in target.items
        )
        matched_count = sum(
            1 for old, new in zip(pending, matched_pending)
            if old is not new
        )
        updated_list = dataclasses.replace(target, items=items)

        groups: dict[str, list[PriceQuote]] = {}
        for quote in quotes:
            key = self._history_key_for(quote, names)
            if key:
                groups.setdefault(key, []).append(quote)

        history = self._commit_history(snapshot.history, groups)
        new_snapshot = dataclasses.replace(
            replace_list(snapshot, updated_list), history=history,
        )
        logger.info(
            "Scouted list '%s': %d quotes, %d of %d items matched",
            target.name,
            len(quotes),
            matched_count,
            len(names),
        )
        return ScoutOutcome(
            shopping_list=updated_list,
            snapshot=new_snapshot,
            quotes=quotes,
            matched_count=matched_count,
        )

    @staticmethod
    def _history_key_for(
        quote: PriceQuote, item_names: list[str],
    ) -> str | None:
        """The list item a quote belongs to, as a history key.

        The item matched at the strongest tier wins; list order breaks
        ties.
        """
        tier_rank = {
            tier: rank for rank, (tier, _) in enumerate(MATCH_TIERS)
        }
        best: tuple[int, str] | None = None
        for name in item_names:
            found = find_best_quote(name, [quote])
            if found is None:
                continue
            rank = tier_rank[found[0]]
            if best is None or rank < best[0]:
                best = (rank, name)
        if best is not None:
            return best[1]
        return quote.originating_query or quote.resolved_product_name
