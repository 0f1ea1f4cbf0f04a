"""Browsing capability and its Playwright implementation."""

from .capability import BrowserSession, BrowsingContext, ElementTimeoutError
from .playwright_session import PlaywrightSession, PlaywrightTab

__all__ = [
    "BrowserSession",
    "BrowsingContext",
    "ElementTimeoutError",
    "PlaywrightSession",
    "PlaywrightTab",
]
