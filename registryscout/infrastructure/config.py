"""
Configuration — reads all settings from environment variables.
Every variable is optional; uses python-dotenv for local dev.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")
BROWSER_ENGINES = ("chromium", "camoufox")


def _bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise EnvironmentError(f"{key} must be a boolean (true/false), got {raw!r}")


def _int(key: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise EnvironmentError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise EnvironmentError(f"{key} must be >= {minimum}, got {value}")
    return value


def _float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise EnvironmentError(f"{key} must be a number, got {raw!r}") from None
    if value < 0:
        raise EnvironmentError(f"{key} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class Config:
    # Browser
    enable_web_scraping: bool = True
    browser_engine: str = "chromium"
    browser_headless: bool = True
    browser_idle_timeout_seconds: float = 300.0
    page_timeout_ms: int = 60_000
    source_timeout_seconds: float = 120.0

    # HTTP
    http_timeout_seconds: float = 30.0
    http_max_pages: int = 3
    http_max_attempts: int = 3
    http_retry_base_delay: float = 2.0

    # CAPTCHA rotation
    captcha_max_attempts: int = 3
    captcha_base_delay: float = 2.0

    # Source protection
    rate_limit_enabled: bool = True
    circuit_failure_threshold: int = 3
    circuit_reset_seconds: float = 300.0

    # Search defaults
    default_search_limit: int = 20

    # Open data portals (optional, raise the anonymous rate limit)
    colorado_app_token: Optional[str] = None
    ny_app_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Config":
        engine = (os.getenv("BROWSER_ENGINE") or "chromium").strip().lower()
        if engine not in BROWSER_ENGINES:
            raise EnvironmentError(
                f"BROWSER_ENGINE must be one of {', '.join(BROWSER_ENGINES)}, got {engine!r}"
            )

        return cls(
            enable_web_scraping=_bool("ENABLE_WEB_SCRAPING", True),
            browser_engine=engine,
            browser_headless=_bool("BROWSER_HEADLESS", True),
            browser_idle_timeout_seconds=_float("BROWSER_IDLE_TIMEOUT_SECONDS", 300.0),
            page_timeout_ms=_int("PAGE_TIMEOUT_MS", 60_000),
            source_timeout_seconds=_float("SOURCE_TIMEOUT_SECONDS", 120.0),
            http_timeout_seconds=_float("HTTP_TIMEOUT_SECONDS", 30.0),
            http_max_pages=_int("HTTP_MAX_PAGES", 3),
            http_max_attempts=_int("HTTP_MAX_ATTEMPTS", 3),
            http_retry_base_delay=_float("HTTP_RETRY_BASE_DELAY", 2.0),
            captcha_max_attempts=_int("CAPTCHA_MAX_ATTEMPTS", 3),
            captcha_base_delay=_float("CAPTCHA_BASE_DELAY", 2.0),
            rate_limit_enabled=_bool("RATE_LIMIT_ENABLED", True),
            circuit_failure_threshold=_int("CIRCUIT_FAILURE_THRESHOLD", 3),
            circuit_reset_seconds=_float("CIRCUIT_RESET_SECONDS", 300.0),
            default_search_limit=_int("DEFAULT_SEARCH_LIMIT", 20),
            colorado_app_token=os.getenv("COLORADO_SOCRATA_APP_TOKEN") or None,
            ny_app_token=os.getenv("NY_SOCRATA_APP_TOKEN") or None,
        )
