# src/models/price_history.py

"""Time-bucketed price history types and their JSON document form."""

from dataclasses import dataclass
from datetime import datetime, timezone

# Hour-granularity bucket key, e.g. "2026-10-18T14:00"
TIME_BUCKET_FORMAT = "%Y-%m-%dT%H:00"


@dataclass(frozen=True)
class PricePoint:
    """A single price observation for one store in one hour bucket."""

    date: str
    price: float


# store name -> points (not assumed sorted)
ProductHistory = dict[str, list[PricePoint]]

# normalised product key -> per-store history
HistoryIndex = dict[str, ProductHistory]


def time_bucket(moment: datetime) -> str:
    """Return the hour bucket key for *moment* (naive values are UTC)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIME_BUCKET_FORMAT)


def normalize_product_key(name: str) -> str:
    """Lower-case and trim a search phrase or product name."""
    return name.strip().lower()


def history_to_dict(
    history: HistoryIndex,
) -> dict[str, dict[str, list[dict[str, object]]]]:
    """Serialise a HistoryIndex to the persisted document shape."""
    return {
        key: {
            store: [
                {"date": p.date, "price": p.price}
                for p in points
            ]
            for store, points in product.items()
        }
        for key, product in history.items()
    }


def history_from_dict(data: object) -> HistoryIndex:
    """Rebuild a HistoryIndex from a persisted document.

    Entries that are not shaped like ``{"date": str, "price": number}``
    are dropped rather than failing the whole load.
    """
    history: HistoryIndex = {}
    if not isinstance(data, dict):
        return history

    for key, product in data.items():
        if not isinstance(product, dict):
            continue
        stores: ProductHistory = {}
        for store, points in product.items():
            if not isinstance(points, list):
                continue
            parsed: list[PricePoint] = []
            for raw in points:
                if not isinstance(raw, dict):
                    continue
                date = raw.get("date")
                price = raw.get("price")
                if not isinstance(date, str):
                    continue
                if isinstance(price, bool) or not isinstance(
                    price, (int, float)
                ):
                    continue
                parsed.append(PricePoint(date=date, price=float(price)))
            if parsed:
                stores[str(store)] = parsed
        if stores:
            history[str(key)] = stores
    return history
