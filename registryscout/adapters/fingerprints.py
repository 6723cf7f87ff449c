"""
Pools of realistic browser identities and helpers to draw from them.
Shared by the stealth page factory and the plain HTTP fetcher so both
present the same family of user agents.
"""

import random
from typing import Dict, Optional

from ..domain.entities.fingerprint import Fingerprint

VIEWPORTS = [
    (1920, 1080),
    (1680, 1050),
    (1440, 900),
    (1366, 768),
    (1536, 864),
    (1600, 900),
    (2560, 1440),
]

DEVICE_SCALE_FACTORS = [1, 1.25, 1.5, 2]

TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Los_Angeles",
    "America/Denver",
    "America/Phoenix",
]

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
]

# (vendor, renderer) pairs that agree with the platform of the user agent
WEBGL_PROFILES = {
    "MacIntel": [
        ("Google Inc. (Apple)", "ANGLE (Apple, Apple M1 Pro, OpenGL 4.1)"),
        ("Google Inc. (Apple)", "ANGLE (Apple, Apple M2, OpenGL 4.1)"),
        ("Google Inc. (Intel Inc.)", "ANGLE (Intel Inc., Intel(R) Iris(TM) Plus Graphics 655, OpenGL 4.1)"),
    ],
    "Win32": [
        ("Google Inc. (NVIDIA)", "ANGLE (NVIDIA, NVIDIA GeForce GTX 1660 SUPER Direct3D11 vs_5_0 ps_5_0, D3D11)"),
        ("Google Inc. (Intel)", "ANGLE (Intel, Intel(R) UHD Graphics 630 Direct3D11 vs_5_0 ps_5_0, D3D11)"),
        ("Google Inc. (AMD)", "ANGLE (AMD, AMD Radeon RX 580 Direct3D11 vs_5_0 ps_5_0, D3D11)"),
    ],
    "Linux x86_64": [
        ("Google Inc. (Intel)", "ANGLE (Intel, Mesa Intel(R) UHD Graphics 620 (KBL GT2), OpenGL 4.6)"),
    ],
}

HARDWARE_CONCURRENCY = [4, 8, 12, 16]
DEVICE_MEMORY = [4, 8]


def platform_for(user_agent: str) -> str:
    if "Windows" in user_agent:
        return "Win32"
    if "Macintosh" in user_agent:
        return "MacIntel"
    return "Linux x86_64"


def _client_hint_platform(platform: str) -> str:
    return {"Win32": '"Windows"', "MacIntel": '"macOS"'}.get(platform, '"Linux"')


def random_user_agent(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(USER_AGENTS)


def random_fingerprint(rng: Optional[random.Random] = None) -> Fingerprint:
    """Draws one coherent identity; all randomness happens here, once per page."""
    rng = rng or random.Random()
    width, height = rng.choice(VIEWPORTS)
    user_agent = rng.choice(USER_AGENTS)
    platform = platform_for(user_agent)
    vendor, renderer = rng.choice(WEBGL_PROFILES[platform])
    return Fingerprint(
        viewport_width=width,
        viewport_height=height,
        device_scale_factor=rng.choice(DEVICE_SCALE_FACTORS),
        user_agent=user_agent,
        timezone=rng.choice(TIMEZONES),
        platform=platform,
        webgl_vendor=vendor,
        webgl_renderer=renderer,
        hardware_concurrency=rng.choice(HARDWARE_CONCURRENCY),
        device_memory=rng.choice(DEVICE_MEMORY),
    )


def browser_headers(user_agent: str) -> Dict[str, str]:
    """Request headers a real Chrome with this user agent would send."""
    platform = platform_for(user_agent)
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Sec-Ch-Ua": '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": _client_hint_platform(platform),
        "Upgrade-Insecure-Requests": "1",
    }
