# src/config/settings.py

"""Central configuration for the grocery_scout engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the grocery_scout engine."""

    # --- HTTP ---
    REQUEST_DELAY: float = 1.0          # Base backoff between retries (secs)
    REQUEST_TIMEOUT: int = 60           # Provider calls are slow (grounded search)
    MAX_RETRIES: int = 3                # Retry count on transient failures
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 120.0
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"

    # --- Search provider ---
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_API_BASE: str = (
        "https://generativelanguage.googleapis.com/v1beta"
    )
    OPEN_FOOD_FACTS_URL: str = (
        "https://world.openfoodfacts.org/api/v0/product/{barcode}.json"
    )
    MAX_IDENTIFIED_NAME_LENGTH: int = 80

    # --- Parsing ---
    PRICE_DATA_MARKER: str = "---PRICE_DATA---"

    # --- Limits ---
    MAX_SHOPPING_LISTS: int = 20
    MAX_ITEMS_PER_LIST: int = 100
    MAX_HISTORY_ENTRIES_PER_STORE: int = 1000
    MAX_HISTORY_BYTES: int = 1_048_576  # Document store ceiling (1 MB)
    HISTORY_TRIM_THRESHOLD: float = 0.9  # Trim before the ceiling

    # --- Accounts ---
    DEFAULT_ACCOUNT_ID: str = "guest"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    SNAPSHOT_DB_PATH: Path = DATA_DIR / "grocery_scout.db"
    CHARTS_DIR: Path = DATA_DIR / "charts"
    LOGS_DIR: Path = BASE_DIR / "logs"
