"""
Stealth Page Factory — one isolated, fingerprint-spoofed page per call.

The masking itself is data: masked_signals() lists (signal, masked value)
pairs for a fingerprint, and build_init_script() serializes them into a
single call of a fixed runtime that the browser evaluates before any page
script runs.
"""

import asyncio
import json
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Tuple

from ..domain.entities.fingerprint import Fingerprint, MaskedSignal
from ..domain.errors import NavigationTimeoutError, RetryExhaustedError
from ..domain.interfaces.i_browser_driver import IBrowserContext, IBrowserDriver, IBrowserSession
from .fingerprints import random_fingerprint
from .retry import with_retry

logger = logging.getLogger(__name__)

WEBGL_UNMASKED_VENDOR = 37445
WEBGL_UNMASKED_RENDERER = 37446
CANVAS_NOISE = 1  # max per-channel shift, invisible to the eye

PLUGINS = [
    {"name": "Chrome PDF Plugin", "filename": "internal-pdf-viewer", "description": "Portable Document Format"},
    {"name": "Chrome PDF Viewer", "filename": "mhjfbmdgcfjbbpaeojofohoefgiehjai", "description": ""},
    {"name": "Native Client", "filename": "internal-nacl-plugin", "description": ""},
]

# Evaluated once per context with the JSON list of signals as its argument.
STEALTH_RUNTIME = """
(signals) => {
  const webgl = {};
  let canvasNoise = 0;
  const define = (obj, prop, value) => {
    try {
      Object.defineProperty(obj, prop, { get: () => value, configurable: true });
    } catch (e) {}
  };
  for (const s of signals) {
    if (s.target === "navigator") {
      define(Navigator.prototype, s.prop, s.value === null ? undefined : s.value);
    } else if (s.target === "window") {
      if (!(s.prop in window)) window[s.prop] = s.value;
    } else if (s.target === "webgl") {
      webgl[Number(s.prop)] = s.value;
    } else if (s.target === "canvas") {
      canvasNoise = Number(s.value) || 0;
    }
  }
  for (const ctx of [window.WebGLRenderingContext, window.WebGL2RenderingContext]) {
    if (!ctx) continue;
    const getParameter = ctx.prototype.getParameter;
    ctx.prototype.getParameter = function (param) {
      if (Object.prototype.hasOwnProperty.call(webgl, param)) return webgl[param];
      return getParameter.call(this, param);
    };
  }
  if (canvasNoise > 0) {
    const toDataURL = HTMLCanvasElement.prototype.toDataURL;
    HTMLCanvasElement.prototype.toDataURL = function (...args) {
      const ctx = this.getContext("2d");
      if (ctx && this.width && this.height) {
        const image = ctx.getImageData(0, 0, this.width, this.height);
        for (let i = 0; i < image.data.length; i += 4) {
          for (let c = 0; c < 3; c++) {
            const shift = Math.floor(Math.random() * (2 * canvasNoise + 1)) - canvasNoise;
            image.data[i + c] = Math.min(255, Math.max(0, image.data[i + c] + shift));
          }
        }
        ctx.putImageData(image, 0, 0);
      }
      return toDataURL.apply(this, args);
    };
  }
}
"""


def masked_signals(fingerprint: Fingerprint) -> List[MaskedSignal]:
    return [
        MaskedSignal("navigator", "webdriver", None),
        MaskedSignal("navigator", "plugins", PLUGINS),
        MaskedSignal("navigator", "languages", list(fingerprint.languages)),
        MaskedSignal("navigator", "platform", fingerprint.platform),
        MaskedSignal("navigator", "hardwareConcurrency", fingerprint.hardware_concurrency),
        MaskedSignal("navigator", "deviceMemory", fingerprint.device_memory),
        MaskedSignal("window", "chrome", {"runtime": {}}),
        MaskedSignal("webgl", str(WEBGL_UNMASKED_VENDOR), fingerprint.webgl_vendor),
        MaskedSignal("webgl", str(WEBGL_UNMASKED_RENDERER), fingerprint.webgl_renderer),
        MaskedSignal("canvas", "noise", CANVAS_NOISE),
    ]


def build_init_script(signals: Sequence[MaskedSignal]) -> str:
    payload = json.dumps([asdict(s) for s in signals])
    return f"({STEALTH_RUNTIME.strip()})({payload});"


class StealthPage:
    """
    One page inside its own browser context. Owned by exactly one call and
    released on every exit path; release() may be called any number of times.
    """

    def __init__(
        self,
        context: IBrowserContext,
        fingerprint: Fingerprint,
        timeout_errors: Tuple[type, ...] = (asyncio.TimeoutError,),
        page_timeout_ms: int = 60_000,
        navigation_attempts: int = 3,
        navigation_base_delay: float = 2.0,
        human_delay_range: Tuple[float, float] = (1.0, 3.0),
        typing_delay_ms: int = 50,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._context = context
        self.fingerprint = fingerprint
        self._timeout_errors = timeout_errors
        self._page_timeout_ms = page_timeout_ms
        self._navigation_attempts = navigation_attempts
        self._navigation_base_delay = navigation_base_delay
        self._human_delay_range = human_delay_range
        self._typing_delay_ms = typing_delay_ms
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self._released = False

    @property
    def page(self):
        return self._context.page

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            await self._context.close()
        except Exception as e:
            # The browser may already be gone; nothing left to free
            logger.warning(f"[StealthPage] Context close failed: {e}")

    async def __aenter__(self) -> "StealthPage":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    # ── Navigation & interaction ──────────────────────────────────────────

    async def goto(self, url: str, wait_until: str = "domcontentloaded") -> None:
        """Navigates with backoff on timeouts; raises NavigationTimeoutError when exhausted."""

        async def _navigate():
            return await self.page.goto(url, wait_until=wait_until, timeout=self._page_timeout_ms)

        try:
            await with_retry(
                _navigate,
                max_attempts=self._navigation_attempts,
                base_delay=self._navigation_base_delay,
                retry_on=self._timeout_errors,
                label=f"navigate {url}",
                sleep=self._sleep,
            )
        except RetryExhaustedError as e:
            raise NavigationTimeoutError(
                f"Navigation to {url} timed out after {e.attempts} attempt(s)", url=url
            ) from e

    async def content(self) -> str:
        return await self.page.content()

    async def human_delay(self) -> None:
        low, high = self._human_delay_range
        await self._sleep(self._rng.uniform(low, high))

    async def human_type(self, selector: str, text: str) -> None:
        await self.page.click(selector)
        await self.page.keyboard.type(text, delay=self._typing_delay_ms)

    async def first_present(self, selectors: Sequence[str], timeout_ms: int = 5_000) -> Optional[str]:
        """Returns the first selector that appears within timeout_ms, trying them in order."""
        for selector in selectors:
            try:
                await self.page.wait_for_selector(selector, timeout=timeout_ms)
                return selector
            except self._timeout_errors:
                continue
        return None

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_selector(", ".join(selectors), timeout=timeout_ms)
            return True
        except self._timeout_errors:
            return False


class StealthPageFactory:
    """Creates StealthPages with a freshly drawn fingerprint each time."""

    def __init__(
        self,
        driver: IBrowserDriver,
        page_timeout_ms: int = 60_000,
        navigation_attempts: int = 3,
        navigation_base_delay: float = 2.0,
        human_delay_range: Tuple[float, float] = (1.0, 3.0),
        typing_delay_ms: int = 50,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._driver = driver
        self._page_timeout_ms = page_timeout_ms
        self._navigation_attempts = navigation_attempts
        self._navigation_base_delay = navigation_base_delay
        self._human_delay_range = human_delay_range
        self._typing_delay_ms = typing_delay_ms
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def create_page(self, session: IBrowserSession) -> StealthPage:
        fingerprint = random_fingerprint(self._rng)
        script = build_init_script(masked_signals(fingerprint))
        context = await session.new_context(fingerprint, script)
        logger.debug(
            f"[StealthPage] New page {fingerprint.viewport_width}x{fingerprint.viewport_height}"
            f"@{fingerprint.device_scale_factor} tz={fingerprint.timezone}"
        )
        return StealthPage(
            context,
            fingerprint,
            timeout_errors=self._driver.timeout_errors,
            page_timeout_ms=self._page_timeout_ms,
            navigation_attempts=self._navigation_attempts,
            navigation_base_delay=self._navigation_base_delay,
            human_delay_range=self._human_delay_range,
            typing_delay_ms=self._typing_delay_ms,
            rng=self._rng,
            sleep=self._sleep,
        )

    @asynccontextmanager
    async def open(self, session: IBrowserSession) -> AsyncIterator[StealthPage]:
        page = await self.create_page(session)
        try:
            yield page
        finally:
            await page.release()
