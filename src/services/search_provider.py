# src/services/search_provider.py

"""Client for the natural-language price search provider.

The provider is a grounded LLM endpoint: we send a prompt and get back
free text that ends with a ``---PRICE_DATA---`` block.  Parsing and
validation of that text happen elsewhere; this module only moves
bytes and turns transport failures into ``ProviderUnavailableError``.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.errors import (
    ProductNotIdentifiedError,
    ProviderUnavailableError,
)

logger = logging.getLogger("grocery_scout.provider")


@dataclass(frozen=True)
class GeoLocation:
    """Coordinates used to ground a search to nearby stores."""

    latitude: float
    longitude: float


class SearchProvider(Protocol):
    """The three calls the price scout needs from a provider."""

    def search(
        self,
        query: str,
        location: GeoLocation | None = None,
        near: str | None = None,
    ) -> str:
        """Return raw text for a single-product price search."""
        ...

    def search_batch(
        self,
        items: list[str],
        location: GeoLocation | None = None,
    ) -> str:
        """Return raw text with one best quote per list item."""
        ...

    def identify_product(self, barcode: str) -> str:
        """Return a product name for a UPC/EAN barcode."""
        ...


def build_search_prompt(query: str, near: str | None = None) -> str:
    """Prompt for a single-product search (Store|Price|Product lines)."""
    where = f"near {near}" if near else "near me"
    marker = Settings.PRICE_DATA_MARKER
    return (
        f'I am looking for "{query}" at grocery stores {where}.\n\n'
        "Please perform the following actions:\n"
        "1. Find nearby grocery stores that likely carry this item.\n"
        "2. Find recent pricing information or weekly ads for these "
        "stores if available.\n"
        "3. List the stores found.\n"
        "4. For each store, provide an estimated price for the item.\n"
        "5. CLEARLY identify which store has the lowest price.\n\n"
        "At the end, write a short summary recommendation.\n\n"
        "CRITICAL INSTRUCTION:\n"
        f'After your summary, output a separator line "{marker}" '
        "followed by one line per store with its SINGLE best numeric "
        "price (no ranges) and the specific product name for that "
        'price. Format each line as: "Store Name|Price|Product Name".\n'
        "Example:\n"
        f"{marker}\n"
        "Safeway|5.99|Lucerne Large Eggs 12ct\n"
        "Trader Joe's|4.49|Trader Joe's Large White Eggs\n"
    )


def build_batch_prompt(items: list[str]) -> str:
    """Prompt for a whole shopping list (adds the list item column)."""
    marker = Settings.PRICE_DATA_MARKER
    return (
        f"I have a shopping list with these items: {', '.join(items)}.\n"
        "Find the current best prices for each of these items at "
        "nearby grocery stores.\n\n"
        "CRITICAL OUTPUT FORMAT:\n"
        f'Return ONLY a separator line "{marker}" followed by the best '
        "price found for each item. Format each line as: "
        '"Store Name|Price|Specific Product Found|Original List Item Name".'
        "\n\nExample:\n"
        f"{marker}\n"
        "Safeway|5.99|Lucerne Large Eggs 12ct|Eggs\n"
        "Walmart|2.49|Great Value White Bread|Bread\n"
    )


def build_barcode_prompt(barcode: str) -> str:
    """Prompt asking only for the product name behind a barcode."""
    return (
        f"I have a barcode number: {barcode}.\n"
        "Search the web to identify the exact product name and brand.\n"
        "Return ONLY the product name.\n"
        "If you cannot identify the product with high certainty, "
        'return "UNKNOWN".\n'
        "Do not provide any introductory text or explanation."
    )


class GeminiSearchProvider:
    """Grounded ``generateContent`` client with retries and a breaker."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        self.settings = Settings()
        self._api_key = api_key or self.settings.GEMINI_API_KEY
        self._model = model or self.settings.GEMINI_MODEL
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0

    # ── Resilience ───────────────────────────────────────

    def _check_circuit(self) -> bool:
        """Return True while the breaker blocks calls.

        After CIRCUIT_BREAKER_COOLDOWN seconds a single trial call is
        let through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            logger.info("Provider circuit half-open after %.0fs", elapsed)
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        self._circuit_open = False
        self._current_delay = self.settings.REQUEST_DELAY

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        if (
            self._consecutive_failures
            >= self.settings.CIRCUIT_BREAKER_THRESHOLD
        ):
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            logger.error(
                "Provider circuit opened after %d consecutive failures",
                self._consecutive_failures,
            )

    def _escalate_delay(self) -> None:
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(self._current_delay * 2, max_delay)
        logger.warning(
            "Provider rate-limited, delay escalated to %.1fs",
            self._current_delay,
        )

    # ── Transport ────────────────────────────────────────

    def _request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request, retrying transient failures.

        Raises:
            ProviderUnavailableError: when the breaker is open or every
                attempt failed.
        """
        if self._check_circuit():
            raise ProviderUnavailableError(
                "Search provider temporarily disabled after repeated "
                "failures"
            )
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.request(
                    method,
                    url,
                    json=payload,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
                if resp.status_code == 200:
                    data = resp.json()
                    if isinstance(data, dict):
                        self._record_success()
                        return data
                    logger.warning(
                        "Non-object JSON from provider on attempt %d",
                        attempt + 1,
                    )
                else:
                    logger.warning(
                        "Provider HTTP %d on attempt %d",
                        resp.status_code,
                        attempt + 1,
                    )
                    if resp.status_code in (429, 503):
                        self._escalate_delay()
                    elif 400 <= resp.status_code < 500:
                        # Client errors will not fix themselves
                        break
            except (curl_requests.RequestsError, ValueError) as exc:
                logger.warning(
                    "Provider request error on attempt %d: %s",
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
            time.sleep(self._current_delay * (attempt + 1))

        self._record_failure()
        raise ProviderUnavailableError(
            f"Search provider request failed: {method} {url.split('?')[0]}"
        )

    def _generate(
        self,
        prompt: str,
        location: GeoLocation | None = None,
        grounded_maps: bool = True,
    ) -> str:
        """Run one prompt and return the concatenated text parts."""
        if not self._api_key:
            raise ProviderUnavailableError("GEMINI_API_KEY is not set")

        tools: list[dict[str, Any]] = [{"google_search": {}}]
        if grounded_maps:
            tools.insert(0, {"google_maps": {}})
        payload: dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "tools": tools,
        }
        if location is not None:
            payload["toolConfig"] = {
                "retrievalConfig": {
                    "latLng": {
                        "latitude": location.latitude,
                        "longitude": location.longitude,
                    },
                },
            }

        url = (
            f"{self.settings.GEMINI_API_BASE}/models/"
            f"{self._model}:generateContent?key={self._api_key}"
        )
        data = self._request("POST", url, payload)
        return extract_response_text(data)

    # ── SearchProvider API ───────────────────────────────

    def search(
        self,
        query: str,
        location: GeoLocation | None = None,
        near: str | None = None,
    ) -> str:
        """Single-product search; text ends with a price-data block."""
        logger.info("Provider search for '%s'", query)
        return self._generate(build_search_prompt(query, near), location)

    def search_batch(
        self,
        items: list[str],
        location: GeoLocation | None = None,
    ) -> str:
        """One best quote per list item, tagged with the item name."""
        if not items:
            return ""
        logger.info("Provider batch search for %d items", len(items))
        return self._generate(build_batch_prompt(items), location)

    def identify_product(self, barcode: str) -> str:
        """Resolve a barcode via Open Food Facts, then the provider.

        Raises:
            ProductNotIdentifiedError: when neither source gives a
                usable product name.
        """
        name = self._lookup_open_food_facts(barcode)
        if name:
            return name

        text = self._generate(
            build_barcode_prompt(barcode), grounded_maps=False,
        ).strip()
        lowered = text.lower()
        if (
            not text
            or len(text) > self.settings.MAX_IDENTIFIED_NAME_LENGTH
            or "unknown" in lowered
            or "unable to" in lowered
        ):
            raise ProductNotIdentifiedError(
                "Product could not be identified from barcode."
            )
        return text.rstrip(".")

    def _lookup_open_food_facts(self, barcode: str) -> str | None:
        """Return ``"<brand> <name>"`` from Open Food Facts, if known."""
        url = self.settings.OPEN_FOOD_FACTS_URL.format(barcode=barcode)
        try:
            resp = self.session.get(
                url, timeout=self.settings.REQUEST_TIMEOUT,
            )
            if resp.status_code != 200:
                return None
            data = resp.json()
        except (curl_requests.RequestsError, ValueError) as exc:
            logger.warning("Open Food Facts lookup failed: %s", exc)
            return None

        if not isinstance(data, dict) or data.get("status") != 1:
            return None
        product = data.get("product") or {}
        name = str(product.get("product_name") or "").strip()
        if not name:
            return None
        brand = str(product.get("brands") or "").strip()
        return f"{brand} {name}".strip() if brand else name


def extract_response_text(data: dict[str, Any]) -> str:
    """Join the text parts of the first candidate in a response."""
    candidates = data.get("candidates") or []
    if not candidates:
        raise ProviderUnavailableError("No response candidates returned.")
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    return "".join(
        str(part.get("text", ""))
        for part in parts
        if isinstance(part, dict)
    )
