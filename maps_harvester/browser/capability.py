"""Abstract browsing capability consumed by the harvesting pipeline.

The pipeline never talks to a browser library directly. It drives a
:class:`BrowserSession` that hands out :class:`BrowsingContext` objects (one
per tab); selectors are plain strings that may use the ``role=<name>``
syntax for accessibility roles.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class ElementTimeoutError(TimeoutError):
    """Waiting for an element (or a navigation) exceeded its timeout."""


@runtime_checkable
class BrowsingContext(Protocol):
    """One independent execution context (a browser tab)."""

    @property
    def url(self) -> str:
        """Current document URL."""

    async def navigate(self, url: str, timeout_ms: int) -> None:
        """Load ``url``; raise on timeout or network failure."""

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        """Wait until ``selector`` is visible; raise :class:`ElementTimeoutError`."""

    async def read_text(self, scope: str | None = None) -> str:
        """Visible text of ``scope`` (the whole document when ``None``)."""

    async def read_html(self, scope: str | None = None) -> str:
        """Markup of ``scope`` (the whole document when ``None``)."""

    async def read_attribute(self, selector: str, name: str) -> str | None:
        """Attribute ``name`` of the first element matching ``selector``."""

    async def evaluate(self, script: str, arg: Any = None, scope: str | None = None) -> Any:
        """Run ``script`` in the page (or against the ``scope`` element)."""

    async def scroll_by(self, selector: str, delta: int) -> None:
        """Scroll the element matching ``selector`` vertically by ``delta`` pixels."""

    async def is_text_visible(self, text: str, timeout_ms: int) -> bool:
        """Whether an element containing ``text`` is currently visible."""

    async def fill(self, selector: str, value: str, submit: bool = True) -> None:
        """Type ``value`` into ``selector`` and optionally press Enter."""

    async def pause(self, ms: int) -> None:
        """Let the page settle for ``ms`` milliseconds."""

    async def close(self) -> None:
        """Close the context."""


@runtime_checkable
class BrowserSession(Protocol):
    """Top-level browsing session owning the primary context."""

    @property
    def primary(self) -> BrowsingContext:
        """Context created by :meth:`start`."""

    async def start(self) -> None:
        """Launch the browser and open the primary context."""

    async def open_additional_context(self) -> BrowsingContext:
        """Open one more independent context."""

    async def close(self) -> None:
        """Close everything, abandoning outstanding work."""


__all__ = ["BrowserSession", "BrowsingContext", "ElementTimeoutError"]
