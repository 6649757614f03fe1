# pricewatch/config/settings.py

"""Central configuration for the pricewatch monitor."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the pricewatch monitor."""

    # --- Alarm timing (in ALARM_UNIT_SECONDS units) ---
    ALARM_UNIT_SECONDS: float = 60.0    # One unit = one minute
    INITIAL_DELAY: float = 1.0          # First firing after start
    MIN_DELAY: float = 1.0              # Jitter range lower bound
    MAX_DELAY: float = 5.0              # Jitter range upper bound
    REARM_ATTEMPTS: int = 3             # Tries before giving up on re-arm

    # --- HTTP ---
    REQUEST_DELAY: float = 2.0          # Base back-off between retries
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
    }

    # --- Noon catalog ---
    # Any value works, but without it the API skips the final page price
    NOON_LOCALE: str = "en-sa"
    NOON_CURRENCY: str = "SAR"
    NOON_API_PATH: str = "/_svc/catalog/api/v3/u"
    NOON_IMAGE_URL: str = "https://f.nooncdn.com/p/{key}.jpg"

    # --- Notifications ---
    NOTIFICATION_TITLE: str = "Noon price monitor"
    WEBHOOK_URL: str | None = (
        os.getenv("PRICEWATCH_WEBHOOK_URL") or None
    )
    WEBHOOK_TIMEOUT: int = 10

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("PRICEWATCH_DATA_DIR", str(BASE_DIR / "data"))
    )
    STORE_PATH: Path = DATA_DIR / "products.json"
    LOGS_DIR: Path = BASE_DIR / "logs"
