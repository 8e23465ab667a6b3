# src/filters/quote_parser.py

"""Extract structured price quotes from free-form provider text.

The provider is asked to finish its answer with a marker line followed
by one pipe-separated record per store::

    ---PRICE_DATA---
    Safeway|5.99|Lucerne Large Eggs 12ct|Eggs
    Trader Joe's|$4.49 approx|TJ Eggs

Fields are store, price, resolved product name (optional) and
originating list item (optional, batch mode).  Everything in the
response is untrusted: each line is validated on its own and dropped
if it fails, so one bad line never costs the rest of the batch.
"""

import logging

from src.config.settings import Settings
from src.filters.input_validator import (
    FieldKind,
    extract_price_number,
    sanitize_ai_response,
    validate,
)
from src.models.price_quote import PriceQuote

logger = logging.getLogger("grocery_scout.parser")

_MAX_FIELDS = 4


def _optional_field(fields: list[str], index: int) -> str | None:
    """Return the sanitised field at *index*, or None if blank/absent."""
    if index >= len(fields):
        return None
    value = sanitize_ai_response(fields[index])
    return value or None


def _parse_line(line: str) -> PriceQuote | None:
    """Turn one record line into a quote, or None if it is unusable."""
    # Extra pipes beyond the fourth field are ignored
    fields = [f.strip() for f in line.split("|")][:_MAX_FIELDS]

    store = fields[0]
    price_text = fields[1] if len(fields) > 1 else ""
    if not store or not price_text:
        logger.debug("Skipping line without store/price: %r", line)
        return None

    number_text = extract_price_number(price_text)
    if number_text is None:
        logger.debug("Skipping line with non-numeric price: %r", line)
        return None

    store_check = validate(store, FieldKind.STORE_NAME)
    if not store_check.valid:
        logger.debug(
            "Skipping line with invalid store (%s): %r",
            store_check.error,
            line,
        )
        return None

    price_check = validate(number_text, FieldKind.PRICE)
    if not price_check.valid or price_check.sanitized is None:
        logger.debug(
            "Skipping line with invalid price (%s): %r",
            price_check.error,
            line,
        )
        return None

    clean_store = sanitize_ai_response(store_check.sanitized or store)
    if not clean_store:
        return None

    return PriceQuote(
        store=clean_store,
        price=round(float(price_check.sanitized), 2),
        resolved_product_name=_optional_field(fields, 2),
        originating_query=_optional_field(fields, 3),
    )


def parse_price_data(raw_text: str) -> list[PriceQuote]:
    """Parse every usable quote after the price-data marker.

    Returns an empty list when the marker is missing.  Duplicate
    store lines are kept; the history accumulator coalesces them.
    """
    marker = Settings.PRICE_DATA_MARKER
    _, found, block = raw_text.partition(marker)
    if not found:
        logger.debug("No %s block in provider response", marker)
        return []

    quotes: list[PriceQuote] = []
    lines = [ln.strip() for ln in block.strip().splitlines()]
    for line in lines:
        if not line:
            continue
        quote = _parse_line(line)
        if quote is not None:
            quotes.append(quote)

    dropped = sum(1 for ln in lines if ln) - len(quotes)
    if dropped:
        logger.info(
            "Parsed %d quotes, dropped %d malformed lines",
            len(quotes),
            dropped,
        )
    return quotes


def strip_price_data(raw_text: str) -> str:
    """Return the human-readable part of a response, sanitised."""
    display, _, _ = raw_text.partition(Settings.PRICE_DATA_MARKER)
    return sanitize_ai_response(display)
