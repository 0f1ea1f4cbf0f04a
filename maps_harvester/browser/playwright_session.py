"""Playwright implementation of the browsing capability."""

from __future__ import annotations

from typing import Any

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import HarvesterSettings
from ..errors import BrowserInitError
from .capability import ElementTimeoutError

_HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"

_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


class PlaywrightTab:
    """A single Playwright page exposed as a :class:`BrowsingContext`."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise ElementTimeoutError(f"Navigation timeout for {url}: {exc}") from exc

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        try:
            await self._page.locator(selector).first.wait_for(state="visible", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise ElementTimeoutError(f"Selector wait timeout for '{selector}': {exc}") from exc

    async def read_text(self, scope: str | None = None) -> str:
        if scope is None:
            return await self._page.evaluate("() => document.body ? document.body.innerText : ''")
        return await self._page.locator(scope).first.inner_text()

    async def read_html(self, scope: str | None = None) -> str:
        if scope is None:
            return await self._page.content()
        return await self._page.locator(scope).first.evaluate("el => el.outerHTML")

    async def read_attribute(self, selector: str, name: str) -> str | None:
        locator = self._page.locator(selector)
        if await locator.count() == 0:
            return None
        return await locator.first.get_attribute(name)

    async def evaluate(self, script: str, arg: Any = None, scope: str | None = None) -> Any:
        if scope is None:
            return await self._page.evaluate(script, arg)
        return await self._page.locator(scope).first.evaluate(script, arg)

    async def scroll_by(self, selector: str, delta: int) -> None:
        await self._page.locator(selector).first.evaluate(
            "(el, delta) => el.scrollBy(0, delta)", delta
        )

    async def is_text_visible(self, text: str, timeout_ms: int) -> bool:
        locator = self._page.get_by_text(text).first
        try:
            await locator.wait_for(state="visible", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    async def fill(self, selector: str, value: str, submit: bool = True) -> None:
        field = self._page.locator(selector).first
        await field.click()
        await self._page.wait_for_timeout(500)
        await field.fill(value)
        await self._page.wait_for_timeout(500)
        if submit:
            await field.press("Enter")

    async def pause(self, ms: int) -> None:
        await self._page.wait_for_timeout(max(0, int(ms)))

    async def close(self) -> None:
        await self._page.close()


class PlaywrightSession:
    """Chromium session sharing one browser context across tabs."""

    def __init__(
        self,
        settings: HarvesterSettings,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("maps_harvester.browser")
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._primary: PlaywrightTab | None = None

    @property
    def primary(self) -> PlaywrightTab:
        if self._primary is None:
            raise RuntimeError("PlaywrightSession.start must be called before use")
        return self._primary

    async def start(self) -> None:
        if self._primary is not None:
            return
        self.logger.info("browser_starting", headless=self.settings.headless)
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.headless,
                timeout=self.settings.navigation_timeout_ms,
                args=_LAUNCH_ARGS,
            )
            width, height = self.settings.viewport_size
            self._context = await self._browser.new_context(
                locale=self.settings.locale,
                user_agent=self.settings.user_agent,
                viewport={"width": width, "height": height},
                device_scale_factor=1,
            )
            await self._context.add_init_script(_HIDE_WEBDRIVER)
            self._primary = PlaywrightTab(await self._new_page())
        except Exception as exc:
            self.logger.error("browser_start_failed", error=str(exc))
            await self.close()
            raise BrowserInitError(f"Browser initialisation failed: {exc}") from exc
        self.logger.info("browser_started")

    async def open_additional_context(self) -> PlaywrightTab:
        if self._context is None:
            raise RuntimeError("PlaywrightSession.start must be called before use")
        return PlaywrightTab(await self._new_page())

    async def _new_page(self) -> Page:
        assert self._context is not None
        page = await self._context.new_page()
        page.set_default_timeout(self.settings.element_timeout_ms)
        page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        return page

    async def close(self) -> None:
        self._primary = None
        try:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
            if self._playwright is not None:
                await self._playwright.stop()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("browser_close_failed", error=str(exc))
        finally:
            self._context = None
            self._browser = None
            self._playwright = None


__all__ = ["PlaywrightSession", "PlaywrightTab"]
