# src/services/history_stats.py

"""Read-side statistics over one product's accumulated price history."""

import statistics
from dataclasses import dataclass

from src.models.price_history import PricePoint, ProductHistory


@dataclass(frozen=True)
class BestDeal:
    """The globally cheapest observation for a product."""

    store: str
    date: str
    price: float


@dataclass(frozen=True)
class HistoryStats:
    """Aggregates across every store and every bucket."""

    min: float
    max: float
    avg: float
    median: float
    best_deal: BestDeal
    point_count: int
    store_count: int


def compute_stats(history: ProductHistory | None) -> HistoryStats | None:
    """Summarise a product's history, or None when it has no points.

    Ranges describe the whole history, not the latest prices.  Ties for
    the best deal go to the first point in store/insertion order.
    """
    if not history:
        return None

    flattened: list[tuple[str, PricePoint]] = [
        (store, point)
        for store, points in history.items()
        for point in points
    ]
    if not flattened:
        return None

    prices = [point.price for _, point in flattened]

    best_store, best_point = flattened[0]
    for store, point in flattened[1:]:
        if point.price < best_point.price:
            best_store, best_point = store, point

    return HistoryStats(
        min=min(prices),
        max=max(prices),
        avg=sum(prices) / len(prices),
        median=statistics.median(prices),
        best_deal=BestDeal(
            store=best_store,
            date=best_point.date,
            price=best_point.price,
        ),
        point_count=len(prices),
        store_count=sum(1 for points in history.values() if points),
    )


def sorted_trend(history: ProductHistory) -> dict[str, list[PricePoint]]:
    """Return each store's points in bucket order for charting."""
    return {
        store: sorted(points, key=lambda p: p.date)
        for store, points in history.items()
        if points
    }
