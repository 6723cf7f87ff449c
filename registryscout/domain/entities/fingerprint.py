"""
Fingerprint - the browser-observable identity presented by one stealth page.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class MaskedSignal:
    """One (signal, masked value) pair applied before any page script runs."""

    target: str  # navigator, window, webgl or canvas
    prop: str
    value: Any


@dataclass(frozen=True)
class Fingerprint:
    viewport_width: int
    viewport_height: int
    device_scale_factor: float
    user_agent: str
    timezone: str
    platform: str
    webgl_vendor: str
    webgl_renderer: str
    locale: str = "en-US"
    languages: List[str] = field(default_factory=lambda: ["en-US", "en"])
    hardware_concurrency: int = 8
    device_memory: int = 8

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}
