# src/filters/input_validator.py

"""Allowlist validation for user input and sanitisation of provider output.

Every value that crosses an external boundary passes through here:
search phrases and barcodes before they are put into a provider
prompt, and store names / prices parsed from provider text before they
reach the price history.

Fields are ranked by risk:

* CRITICAL: goes straight into a provider prompt.  Also checked
  against the blocked prompt-injection and markup patterns.
* HIGH: stored and displayed back to the user.
* MEDIUM: provider output or auxiliary search hints.
* LOW: consistency only.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from src.config.settings import Settings

logger = logging.getLogger("grocery_scout.validation")


class RiskLevel(Enum):
    """How much damage an unchecked value of a field could do."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class FieldKind(Enum):
    """Semantic field names with a validation rule."""

    SEARCH_QUERY = "searchQuery"
    BARCODE = "barcode"
    ITEM_NAME = "itemName"
    LIST_NAME = "listName"
    DISPLAY_NAME = "displayName"
    PRICE = "price"
    STORE_NAME = "storeName"
    LOCATION = "location"


@dataclass(frozen=True)
class ValidationRule:
    """Constraints for one field kind."""

    description: str
    risk_level: RiskLevel
    pattern: re.Pattern[str] | None = None
    min_length: int = 0
    max_length: int | None = None
    min_value: float | None = None
    max_value: float | None = None

    @property
    def numeric(self) -> bool:
        """True when the rule carries a numeric range."""
        return self.min_value is not None or self.max_value is not None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    error: str | None = None
    sanitized: str | None = None


_TEXT_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-&'().,]+$")

ALLOWLISTS: dict[FieldKind, ValidationRule] = {
    FieldKind.SEARCH_QUERY: ValidationRule(
        description=(
            "Search queries: alphanumeric, spaces, and basic "
            "punctuation only"
        ),
        risk_level=RiskLevel.CRITICAL,
        pattern=_TEXT_PATTERN,
        min_length=1,
        max_length=100,
    ),
    FieldKind.BARCODE: ValidationRule(
        description="UPC/EAN barcodes: 8-14 digits only",
        risk_level=RiskLevel.CRITICAL,
        pattern=re.compile(r"^\d{8,14}$"),
        min_length=8,
        max_length=14,
    ),
    FieldKind.ITEM_NAME: ValidationRule(
        description=(
            "Shopping list items: alphanumeric and basic punctuation"
        ),
        risk_level=RiskLevel.HIGH,
        pattern=_TEXT_PATTERN,
        min_length=1,
        max_length=100,
    ),
    FieldKind.LIST_NAME: ValidationRule(
        description="Shopping list titles",
        risk_level=RiskLevel.HIGH,
        pattern=_TEXT_PATTERN,
        min_length=1,
        max_length=50,
    ),
    FieldKind.DISPLAY_NAME: ValidationRule(
        description=(
            "User display names: alphanumeric, spaces, hyphens, "
            "apostrophes, periods"
        ),
        risk_level=RiskLevel.HIGH,
        pattern=re.compile(r"^[a-zA-Z0-9\s\-'.]+$"),
        min_length=1,
        max_length=50,
    ),
    FieldKind.PRICE: ValidationRule(
        description="Valid prices: 0.01 to 9999.99",
        risk_level=RiskLevel.HIGH,
        pattern=re.compile(r"^\d+(\.\d{1,2})?$"),
        min_value=0.01,
        max_value=9999.99,
    ),
    FieldKind.STORE_NAME: ValidationRule(
        description="Store names: alphanumeric and basic punctuation",
        risk_level=RiskLevel.MEDIUM,
        pattern=_TEXT_PATTERN,
        min_length=1,
        max_length=100,
    ),
    FieldKind.LOCATION: ValidationRule(
        description="Location strings: city, state, zip",
        risk_level=RiskLevel.MEDIUM,
        pattern=re.compile(r"^[a-zA-Z0-9\s\-,.']+$"),
        min_length=2,
        max_length=100,
    ),
}

# Prompt injection, markup injection and destructive query fragments
BLOCKED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"ignore\s+(previous|prior|all)\s+instructions?", re.I),
    re.compile(r"disregard\s+(previous|prior|all)", re.I),
    re.compile(r"forget\s+(previous|prior|all)", re.I),
    re.compile(r"new\s+instructions?:", re.I),
    re.compile(r"system\s*:", re.I),
    re.compile(r"you\s+are\s+now", re.I),
    re.compile(r"act\s+as", re.I),
    re.compile(r"pretend\s+(you\s+are|to\s+be)", re.I),
    re.compile(r"<script\b", re.I),
    re.compile(r"javascript:", re.I),
    re.compile(r"on(load|error|click)\s*=", re.I),
    re.compile(r"eval\s*\(", re.I),
    re.compile(r"DROP\s+TABLE", re.I),
    re.compile(r"DELETE\s+FROM", re.I),
    re.compile(r"INSERT\s+INTO", re.I),
    re.compile(r"UPDATE\s+.*SET", re.I),
)

_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
_LEADING_NUMBER_RE = re.compile(r"\d*\.?\d+")

_SCRIPT_TAG_RE = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I
)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.I)
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.I)


def extract_price_number(text: str) -> str | None:
    """Reduce *text* to digits and a single decimal point.

    ``"$5.99 approx."`` becomes ``"5.99"``.  Returns ``None`` when no
    number survives the stripping.
    """
    stripped = _NON_NUMERIC_RE.sub("", text)
    match = _LEADING_NUMBER_RE.match(stripped)
    if match is None:
        return None
    return match.group(0)


def _as_text(value: str | float) -> str:
    # Fixed-point, never exponent form
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        text = format(value, "f")
        return text.rstrip("0").rstrip(".") if "." in text else text
    return str(value).strip()


def _fail(field: FieldKind, error: str) -> ValidationResult:
    logger.debug("Rejected %s: %s", field.value, error)
    return ValidationResult(valid=False, error=error)


def validate(value: str | float, field: FieldKind) -> ValidationResult:
    """Check *value* against the allowlist rule for *field*.

    Returns a result whose ``sanitized`` value is the trimmed input
    (or, for numeric fields, the bare number) when valid.
    """
    rule = ALLOWLISTS[field]
    name = field.value
    text = _as_text(value)

    if rule.numeric:
        number_text = extract_price_number(text)
        if number_text is None:
            return _fail(field, f"{name} must be a number")
        text = number_text

    if not text and rule.min_length > 0:
        return _fail(field, f"{name} cannot be empty")

    if len(text) < rule.min_length:
        return _fail(
            field,
            f"{name} must be at least {rule.min_length} characters",
        )

    if rule.max_length is not None and len(text) > rule.max_length:
        return _fail(
            field,
            f"{name} must be at most {rule.max_length} characters",
        )

    if rule.risk_level is RiskLevel.CRITICAL:
        for pattern in BLOCKED_PATTERNS:
            if pattern.search(text):
                logger.warning(
                    "Blocked %s matching %r", name, pattern.pattern,
                )
                return ValidationResult(
                    valid=False,
                    error=(
                        f"{name} contains blocked pattern "
                        "(potential security risk)"
                    ),
                )

    if rule.pattern is not None and not rule.pattern.match(text):
        return _fail(
            field,
            f"{name} contains invalid characters. {rule.description}",
        )

    if rule.numeric:
        number = float(text)
        if rule.min_value is not None and number < rule.min_value:
            return _fail(field, f"{name} must be at least {rule.min_value}")
        if rule.max_value is not None and number > rule.max_value:
            return _fail(field, f"{name} must be at most {rule.max_value}")

    return ValidationResult(valid=True, sanitized=text)


def validate_batch(
    items: list[str], field: FieldKind,
) -> ValidationResult:
    """Validate every item, stopping at the first failure."""
    for position, item in enumerate(items, 1):
        result = validate(item, field)
        if not result.valid:
            return ValidationResult(
                valid=False, error=f"Item {position}: {result.error}",
            )
    return ValidationResult(valid=True)


# ── Limits ───────────────────────────────────────────────


def check_shopping_list_limits(
    current_list_count: int,
    items_in_new_list: int | None = None,
) -> ValidationResult:
    """Reject creating a list past the list or item caps."""
    if current_list_count >= Settings.MAX_SHOPPING_LISTS:
        return ValidationResult(
            valid=False,
            error=(
                f"Maximum {Settings.MAX_SHOPPING_LISTS} "
                "shopping lists allowed"
            ),
        )
    if (
        items_in_new_list is not None
        and items_in_new_list > Settings.MAX_ITEMS_PER_LIST
    ):
        return ValidationResult(
            valid=False,
            error=(
                f"Maximum {Settings.MAX_ITEMS_PER_LIST} "
                "items per list allowed"
            ),
        )
    return ValidationResult(valid=True)


def check_items_per_list(current_item_count: int) -> ValidationResult:
    """Reject adding an item to a list that is already full."""
    if current_item_count >= Settings.MAX_ITEMS_PER_LIST:
        return ValidationResult(
            valid=False,
            error=(
                f"Maximum {Settings.MAX_ITEMS_PER_LIST} "
                "items per list allowed"
            ),
        )
    return ValidationResult(valid=True)


def check_price_history_limits(
    entry_count: int, cap: int | None = None,
) -> ValidationResult:
    """Report whether a store's history holds more entries than *cap*."""
    if cap is None:
        cap = Settings.MAX_HISTORY_ENTRIES_PER_STORE
    if entry_count > cap:
        return ValidationResult(
            valid=False,
            error=f"Maximum {cap} price history entries per store",
        )
    return ValidationResult(valid=True)


# ── Provider output ──────────────────────────────────────


def sanitize_ai_response(response: str) -> str:
    """Strip script blocks, inline handlers and ``javascript:`` URLs.

    Provider output is never rejected, only defanged.
    """
    sanitized = _SCRIPT_TAG_RE.sub("", response)
    sanitized = _EVENT_HANDLER_RE.sub("", sanitized)
    sanitized = _JS_PROTOCOL_RE.sub("", sanitized)
    return sanitized.strip()

