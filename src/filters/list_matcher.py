# src/filters/list_matcher.py

"""Reconcile free-text shopping list items with parsed price quotes.

Quotes carry no stable product id, so matching is textual and tiered.
Tiers are tried in order and the first quote (in input order) that
satisfies a tier wins:

1. ``exact_query``: item name equals the quote's originating query.
2. ``query_containment``: one of item name / originating query
   contains the other (truncation and plural drift).
3. ``resolved_containment``: the resolved product name contains the
   item name (no originating query was recorded).

Matching is case-insensitive.  A lower price in a later tier never
beats an earlier tier.
"""

import dataclasses
import logging
from collections.abc import Callable, Sequence

from src.filters.input_validator import FieldKind, validate
from src.models.price_quote import PriceQuote
from src.models.shopping_list import ShoppingListItem

logger = logging.getLogger("grocery_scout.matcher")

# (normalised item name, quote) -> does the quote describe the item?
MatchPredicate = Callable[[str, PriceQuote], bool]


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def _exact_query(item: str, quote: PriceQuote) -> bool:
    query = _norm(quote.originating_query)
    return bool(query) and item == query


def _query_containment(item: str, quote: PriceQuote) -> bool:
    query = _norm(quote.originating_query)
    return bool(query) and (query in item or item in query)


def _resolved_containment(item: str, quote: PriceQuote) -> bool:
    resolved = _norm(quote.resolved_product_name)
    return bool(resolved) and item in resolved


MATCH_TIERS: tuple[tuple[str, MatchPredicate], ...] = (
    ("exact_query", _exact_query),
    ("query_containment", _query_containment),
    ("resolved_containment", _resolved_containment),
)


def find_best_quote(
    item_name: str,
    quotes: Sequence[PriceQuote],
) -> tuple[str, PriceQuote] | None:
    """Return ``(tier_name, quote)`` for the best match, or None."""
    item = _norm(item_name)
    if not item:
        return None
    for tier_name, predicate in MATCH_TIERS:
        for quote in quotes:
            if predicate(item, quote):
                return tier_name, quote
    return None


def _display_name(item: ShoppingListItem, quote: PriceQuote) -> str:
    """Resolved product name if it is a valid item name, else the old one.

    Renamed items are validated again on the next scout, so a provider
    name with ``%`` or ``/`` (or one that is too long) is not adopted.
    """
    resolved = quote.resolved_product_name
    if not resolved:
        return item.name
    result = validate(resolved, FieldKind.ITEM_NAME)
    if not result.valid or result.sanitized is None:
        logger.debug(
            "Keeping '%s'; resolved name '%s' rejected: %s",
            item.name,
            resolved,
            result.error,
        )
        return item.name
    return result.sanitized


def match_quotes_to_list_items(
    items: Sequence[ShoppingListItem],
    quotes: Sequence[PriceQuote],
) -> list[ShoppingListItem]:
    """Annotate list items with their best matching quote.

    Returns a new list.  Matched items are replaced by updated copies
    (best price/store set, renamed to the resolved product when it
    would pass as a user-typed item name); unmatched items are passed
    through as the very same objects.
    """
    if not quotes:
        return list(items)

    updated: list[ShoppingListItem] = []
    matched = 0
    for item in items:
        found = find_best_quote(item.name, quotes)
        if found is None:
            updated.append(item)
            continue

        tier_name, quote = found
        new_name = _display_name(item, quote)
        logger.debug(
            "Matched '%s' -> %s @ %.2f via %s",
            item.name,
            quote.store,
            quote.price,
            tier_name,
        )
        updated.append(
            dataclasses.replace(
                item,
                name=new_name,
                best_price=quote.price,
                best_store=quote.store,
            )
        )
        matched += 1

    logger.info(
        "Matched %d of %d list items against %d quotes",
        matched,
        len(items),
        len(quotes),
    )
    return updated
