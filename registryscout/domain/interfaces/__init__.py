from .i_registry_source import IRegistrySource, ScraperResult, SearchOptions, SearchType
from .i_browser_driver import IBrowserContext, IBrowserDriver, IBrowserSession

__all__ = [
    "IRegistrySource",
    "ScraperResult",
    "SearchOptions",
    "SearchType",
    "IBrowserDriver",
    "IBrowserSession",
    "IBrowserContext",
]
