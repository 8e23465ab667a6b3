# src/models/price_quote.py

"""Store/price observation extracted from provider text."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceQuote:
    """One store/price observation from a provider response.

    ``resolved_product_name`` is the concrete item the provider matched
    and ``originating_query`` the list item that produced it (batch mode
    only).  Either may be absent.
    """

    store: str
    price: float
    resolved_product_name: str | None = None
    originating_query: str | None = None
