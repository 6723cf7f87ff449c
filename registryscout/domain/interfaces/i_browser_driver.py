"""
IBrowserDriver - Port: headless browser automation.
Two implementations are wired by the container at startup: a real
Playwright-backed driver and a stub used when the browser is unavailable.
"""

from abc import ABC, abstractmethod
from typing import Any, Tuple, Type

from ..entities.fingerprint import Fingerprint


class IBrowserContext(ABC):
    """An isolated browsing context (cookies, fingerprint) holding one page."""

    page: Any

    @abstractmethod
    async def close(self) -> None:
        pass


class IBrowserSession(ABC):
    """Owned handle on a running browser process."""

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    async def new_context(self, fingerprint: Fingerprint, init_script: str) -> IBrowserContext:
        """
        Opens a fresh context configured with the fingerprint and returns it
        with one page ready. init_script must run before any page script.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class IBrowserDriver(ABC):
    """Launches browser sessions."""

    name: str = "browser"

    @property
    @abstractmethod
    def available(self) -> bool:
        pass

    @property
    def unavailable_reason(self) -> str:
        return ""

    @property
    def timeout_errors(self) -> Tuple[Type[BaseException], ...]:
        """Exception types that signal a navigation or wait timeout."""
        return (TimeoutError,)

    @abstractmethod
    async def launch(self) -> IBrowserSession:
        """Starts a new browser process. Raises BrowserUnavailableError on failure."""
        pass
