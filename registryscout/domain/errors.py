"""
Error taxonomy for registry acquisition.

Adapters raise these internally; the strategy pipeline converts them into
failed ScraperResults so that failures never escape a single source.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    CAPTCHA_DETECTED = "CAPTCHA_DETECTED"
    RATE_LIMITED = "RATE_LIMITED"
    PARSE_FAILURE = "PARSE_FAILURE"
    BROWSER_UNAVAILABLE = "BROWSER_UNAVAILABLE"
    NAVIGATION_TIMEOUT = "NAVIGATION_TIMEOUT"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    UNKNOWN = "UNKNOWN"


class ScraperError(Exception):
    """Base class for all acquisition failures that carry an ErrorCode."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str = "", url: Optional[str] = None):
        super().__init__(message or self.code.value)
        self.url = url


class CaptchaDetectedError(ScraperError):
    code = ErrorCode.CAPTCHA_DETECTED


class RateLimitedError(ScraperError):
    code = ErrorCode.RATE_LIMITED


class ParseFailureError(ScraperError):
    code = ErrorCode.PARSE_FAILURE


class BrowserUnavailableError(ScraperError):
    code = ErrorCode.BROWSER_UNAVAILABLE


class NavigationTimeoutError(ScraperError):
    code = ErrorCode.NAVIGATION_TIMEOUT


class RetryExhaustedError(ScraperError):
    """Raised by with_retry once every attempt has failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        # Keep the taxonomy of the underlying failure
        if isinstance(last_error, ScraperError):
            self.code = last_error.code
            self.url = last_error.url


def error_code_of(exc: BaseException) -> ErrorCode:
    if isinstance(exc, ScraperError):
        return exc.code
    return ErrorCode.UNKNOWN
