"""
BrowserSessionPool — the one browser process shared by every stealth page.

Owned by the container. The session is created lazily on first demand,
health-checked before every reuse, replaced when it disconnects and closed
once it has been idle (and unleased) longer than the idle window.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from ..domain.errors import BrowserUnavailableError
from ..domain.interfaces.i_browser_driver import IBrowserDriver, IBrowserSession

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT_SECONDS = 300.0


class BrowserSessionPool:
    def __init__(
        self,
        driver: IBrowserDriver,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._driver = driver
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._session: Optional[IBrowserSession] = None
        self._last_used = 0.0
        self._leases = 0
        self._creating: Optional[asyncio.Task] = None
        self._idle_timer: Optional[asyncio.TimerHandle] = None
        self._reaper: Optional[asyncio.Task] = None

    @property
    def available(self) -> bool:
        return self._driver.available

    @property
    def unavailable_reason(self) -> str:
        return self._driver.unavailable_reason

    @property
    def has_session(self) -> bool:
        return self._session is not None

    # ── Public API ────────────────────────────────────────────────────────

    async def acquire(self) -> IBrowserSession:
        """
        Returns a connected session. Concurrent callers that arrive while the
        first launch is in flight all await that same launch.
        """
        if not self._driver.available:
            raise BrowserUnavailableError(self._driver.unavailable_reason or "Browser unavailable")

        session = self._session
        if session is not None:
            if self._leases == 0 and self._idle_expired():
                logger.info("[BrowserPool] Session idle past window — closing before reuse")
                await self._discard(session)
            elif session.is_connected():
                self._lease()
                return session
            else:
                logger.warning("[BrowserPool] Session disconnected — replacing")
                await self._discard(session)

        if self._creating is None:
            self._creating = asyncio.ensure_future(self._launch())
        creating = self._creating
        try:
            session = await asyncio.shield(creating)
        finally:
            if self._creating is creating and creating.done():
                self._creating = None

        self._lease()
        return session

    def release(self, session: IBrowserSession) -> None:
        if session is not self._session:
            return
        self._leases = max(0, self._leases - 1)
        self._last_used = self._clock()
        if self._leases == 0:
            self._arm_idle_timer()

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[IBrowserSession]:
        session = await self.acquire()
        try:
            yield session
        finally:
            self.release(session)

    async def reap_idle(self) -> bool:
        """Closes the session if it is unleased and past the idle window."""
        session = self._session
        if session is None or self._leases > 0 or not self._idle_expired():
            return False
        logger.info("[BrowserPool] Reaping idle browser session")
        await self._discard(session)
        return True

    async def close(self) -> None:
        self._cancel_idle_timer()
        if self._creating is not None and not self._creating.done():
            try:
                await self._creating
            except Exception as e:
                logger.warning(f"[BrowserPool] In-flight launch failed during close: {e}")
        session = self._session
        if session is not None:
            await self._discard(session)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _launch(self) -> IBrowserSession:
        logger.info(f"[BrowserPool] Launching browser via {self._driver.name}")
        session = await self._driver.launch()
        self._session = session
        self._leases = 0
        self._last_used = self._clock()
        return session

    async def _discard(self, session: IBrowserSession) -> None:
        if self._session is session:
            self._session = None
            self._leases = 0
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"[BrowserPool] Error closing session: {e}")

    def _lease(self) -> None:
        self._cancel_idle_timer()
        self._leases += 1
        self._last_used = self._clock()

    def _idle_expired(self) -> bool:
        return (self._clock() - self._last_used) > self._idle_timeout

    def _arm_idle_timer(self) -> None:
        # Closes an unleased session once the idle window has passed with no new acquire
        self._cancel_idle_timer()
        if self._session is None:
            return
        loop = asyncio.get_running_loop()
        self._idle_timer = loop.call_later(self._idle_timeout, self._on_idle_timer)

    def _cancel_idle_timer(self) -> None:
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _on_idle_timer(self) -> None:
        self._idle_timer = None
        self._reaper = asyncio.ensure_future(self._reap_or_rearm())

    async def _reap_or_rearm(self) -> None:
        if not await self.reap_idle() and self._leases == 0:
            self._arm_idle_timer()
