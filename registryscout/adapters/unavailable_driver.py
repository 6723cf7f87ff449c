"""
UnavailableBrowserDriver - Implements IBrowserDriver.
Wired in when browser scraping is disabled or no browser library is
installed. Every launch fails with BrowserUnavailableError so that sources
degrade to their API / HTTP strategies.
"""

from ..domain.errors import BrowserUnavailableError
from ..domain.interfaces.i_browser_driver import IBrowserDriver, IBrowserSession


class UnavailableBrowserDriver(IBrowserDriver):
    name = "unavailable"

    def __init__(self, reason: str):
        self._reason = reason

    @property
    def available(self) -> bool:
        return False

    @property
    def unavailable_reason(self) -> str:
        return self._reason

    async def launch(self) -> IBrowserSession:
        raise BrowserUnavailableError(self._reason)
