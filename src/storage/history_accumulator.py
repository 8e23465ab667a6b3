# src/storage/history_accumulator.py

"""Fold parsed quotes into the hour-bucketed price history.

The history is a plain ``HistoryIndex`` value.  Nothing here mutates
the index it is given: touched products and store sequences are copied
on first write and everything else is shared with the input, so the
caller can keep the old snapshot until it decides to commit.
"""

import json
import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from src.config.settings import Settings
from src.filters.input_validator import check_price_history_limits
from src.models.price_history import (
    HistoryIndex,
    PricePoint,
    history_to_dict,
    normalize_product_key,
    time_bucket,
)
from src.models.price_quote import PriceQuote

logger = logging.getLogger("grocery_scout.history")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _keep_latest(
    points: list[PricePoint], cap: int,
) -> list[PricePoint]:
    """Sort by bucket and keep the newest *cap* points."""
    ordered = sorted(points, key=lambda p: p.date)
    return ordered[-cap:] if cap > 0 else []


def serialized_size(history: HistoryIndex) -> int:
    """Byte size of the history as it would be persisted."""
    return len(
        json.dumps(history_to_dict(history), ensure_ascii=False)
        .encode("utf-8")
    )


class _CopyOnWriteIndex:
    """Working copy of a HistoryIndex that copies nodes on first touch."""

    def __init__(self, source: HistoryIndex) -> None:
        self.index: HistoryIndex = dict(source)
        self._owned_products: set[str] = set()
        self.touched: set[tuple[str, str]] = set()

    def upsert(self, key: str, store: str, point: PricePoint) -> None:
        """Insert *point* or overwrite the price in its bucket."""
        if key not in self._owned_products:
            self.index[key] = dict(self.index.get(key, {}))
            self._owned_products.add(key)
        product = self.index[key]

        if (key, store) not in self.touched:
            product[store] = list(product.get(store, []))
            self.touched.add((key, store))
        points = product[store]

        for idx, existing in enumerate(points):
            if existing.date == point.date:
                points[idx] = point
                return
        points.append(point)


class HistoryAccumulator:
    """Record quotes under their query key and resolved product key."""

    def __init__(
        self,
        max_entries_per_store: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.max_entries_per_store = (
            Settings.MAX_HISTORY_ENTRIES_PER_STORE
            if max_entries_per_store is None
            else max_entries_per_store
        )
        self._clock = clock or _utc_now

    @staticmethod
    def _keys_for(query_key: str, quote: PriceQuote) -> list[str]:
        """Product keys a quote is written under (query key first)."""
        keys: list[str] = []
        primary = normalize_product_key(query_key)
        if primary:
            keys.append(primary)
        if quote.resolved_product_name:
            resolved = normalize_product_key(
                quote.resolved_product_name
            )
            if resolved and resolved not in keys:
                keys.append(resolved)
        return keys

    @staticmethod
    def _is_usable(quote: PriceQuote) -> bool:
        if not quote.store or not quote.store.strip():
            return False
        price = quote.price
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            return False
        return math.isfinite(price) and price > 0

    def record_observations(
        self,
        history: HistoryIndex,
        query_key: str,
        quotes: Iterable[PriceQuote],
    ) -> HistoryIndex:
        """Return a new index with every usable quote recorded.

        Quotes are applied in order, so a later line for the same store
        in the same hour overwrites an earlier one.  Each quote builds a
        single PricePoint that is written under every applicable key,
        which keeps the query view and the resolved-product view
        identical.
        """
        working = _CopyOnWriteIndex(history)
        recorded = 0
        skipped = 0

        for quote in quotes:
            if not self._is_usable(quote):
                logger.debug("Skipping unusable quote: %r", quote)
                skipped += 1
                continue
            keys = self._keys_for(query_key, quote)
            if not keys:
                skipped += 1
                continue

            point = PricePoint(
                date=time_bucket(self._clock()),
                price=round(float(quote.price), 2),
            )
            store = quote.store.strip()
            for key in keys:
                working.upsert(key, store, point)
            recorded += 1

        self._trim_overflow(working)

        if recorded:
            logger.info(
                "Recorded %d quotes for '%s' (%d skipped)",
                recorded,
                normalize_product_key(query_key),
                skipped,
            )
        return working.index

    def _trim_overflow(self, working: _CopyOnWriteIndex) -> None:
        """Cap every sequence touched in this batch, newest kept."""
        cap = self.max_entries_per_store
        for key, store in sorted(working.touched):
            points = working.index[key][store]
            limit = check_price_history_limits(len(points), cap)
            if limit.valid:
                continue
            logger.warning(
                "History for '%s' at %s: %s, trimming oldest",
                key,
                store,
                limit.error,
            )
            working.index[key][store] = _keep_latest(points, cap)

    def trim_to_byte_ceiling(
        self,
        history: HistoryIndex,
        max_bytes: int | None = None,
    ) -> HistoryIndex:
        """Trim every store sequence until the document fits.

        The target is ``HISTORY_TRIM_THRESHOLD`` of the byte ceiling so
        trimming happens before a write can fail.  The per-store cap is
        halved until the serialised index is small enough.
        """
        ceiling = (
            Settings.MAX_HISTORY_BYTES if max_bytes is None else max_bytes
        )
        target = int(ceiling * Settings.HISTORY_TRIM_THRESHOLD)
        size = serialized_size(history)
        if size <= target:
            return history

        longest = max(
            (
                len(points)
                for product in history.values()
                for points in product.values()
            ),
            default=0,
        )
        cap = min(longest, self.max_entries_per_store)
        trimmed = history
        while cap > 1:
            cap //= 2
            trimmed = {
                key: {
                    store: (
                        _keep_latest(points, cap)
                        if len(points) > cap
                        else points
                    )
                    for store, points in product.items()
                }
                for key, product in history.items()
            }
            size = serialized_size(trimmed)
            if size <= target:
                break

        if size > target:
            logger.error(
                "Price history still %d bytes after trimming "
                "to one entry per store (target %d)",
                size,
                target,
            )
        else:
            logger.warning(
                "Price history exceeded %d bytes, trimmed to "
                "%d entries per store (%d bytes)",
                target,
                cap,
                size,
            )
        return trimmed
