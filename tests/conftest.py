"""Shared fixtures: in-memory browser fakes and model builders."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from maps_harvester.browser import ElementTimeoutError
from maps_harvester.config import (
    ConfigLocator,
    ConfigRepository,
    HarvesterSettings,
    ScrollSettings,
    SearchRequest,
)
from maps_harvester.engine import Candidate, MergedResult

FEED_SELECTOR = "role=feed"
BASE_URL = "https://www.google.co.jp/maps/search/ramen"


class FakeTab:
    """Scriptable stand-in for a browser tab."""

    def __init__(
        self,
        *,
        url: str = BASE_URL,
        feed_html: str = "",
        feed_present: bool = True,
        present_selectors: Iterable[str] | None = None,
        navigate_failures: int = 0,
        heights: Sequence[int] | None = None,
        end_marker_after: int | None = None,
        scroll_errors: int = 0,
        details: dict[str, dict] | None = None,
        failing_urls: Iterable[str] = (),
        broken_snapshots: set[str] | None = None,
        journal: list | None = None,
    ) -> None:
        self.url = url
        self.feed_html = feed_html
        self.feed_present = feed_present
        self.present_selectors = set(present_selectors) if present_selectors is not None else None
        self.navigate_failures = navigate_failures
        self.heights = list(heights or [1000])
        self.end_marker_after = end_marker_after
        self.scroll_errors = scroll_errors
        self.details = details if details is not None else {}
        self.failing_urls = set(failing_urls)
        self.broken_snapshots = broken_snapshots if broken_snapshots is not None else set()
        self.journal = journal if journal is not None else []
        self.navigations: list[str] = []
        self.filled: list[tuple[str, str, bool]] = []
        self.pauses: list[int] = []
        self.scrolls = 0
        self.closed = False
        self._current = url

    async def navigate(self, url: str, timeout_ms: int) -> None:
        self.navigations.append(url)
        await asyncio.sleep(0)
        if self.navigate_failures > 0:
            self.navigate_failures -= 1
            raise ElementTimeoutError(f"navigation timeout: {url}")
        if url in self.failing_urls:
            raise RuntimeError(f"page crashed: {url}")
        self._current = url
        self.journal.append(("start", url))

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        if selector == FEED_SELECTOR:
            if not self.feed_present:
                raise ElementTimeoutError("feed not found")
            return
        if self.present_selectors is not None and selector not in self.present_selectors:
            raise ElementTimeoutError(f"missing {selector}")

    async def read_text(self, scope: str | None = None) -> str:
        return ""

    async def read_html(self, scope: str | None = None) -> str:
        return self.feed_html

    async def read_attribute(self, selector: str, name: str) -> str | None:
        return None

    async def evaluate(self, script: str, arg: Any = None, scope: str | None = None) -> Any:
        if "scrollHeight" in script:
            if len(self.heights) > 1:
                return self.heights.pop(0)
            return self.heights[0]
        if isinstance(arg, dict) and "address" in arg:
            await asyncio.sleep(0)
            self.journal.append(("end", self._current))
            if self._current in self.broken_snapshots:
                raise RuntimeError("Execution context was destroyed")
            return self.details.get(self._current, {})
        return None

    async def scroll_by(self, selector: str, delta: int) -> None:
        self.scrolls += 1
        if self.scroll_errors > 0:
            self.scroll_errors -= 1
            raise RuntimeError("scroll failed")

    async def is_text_visible(self, text: str, timeout_ms: int) -> bool:
        return self.end_marker_after is not None and self.scrolls >= self.end_marker_after

    async def fill(self, selector: str, value: str, submit: bool = True) -> None:
        self.filled.append((selector, value, submit))

    async def pause(self, ms: int) -> None:
        self.pauses.append(ms)
        await asyncio.sleep(0)

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    """Browser session handing out :class:`FakeTab` instances."""

    def __init__(
        self,
        primary: FakeTab | None = None,
        *,
        fail_start: bool = False,
    ) -> None:
        self._primary = primary or FakeTab()
        self.fail_start = fail_start
        self.extra_tabs: list[FakeTab] = []
        self.started = False
        self.closed = False

    @property
    def primary(self) -> FakeTab:
        return self._primary

    async def start(self) -> None:
        if self.fail_start:
            raise OSError("chromium executable not found")
        self.started = True

    async def open_additional_context(self) -> FakeTab:
        tab = FakeTab(
            details=self._primary.details,
            failing_urls=self._primary.failing_urls,
            broken_snapshots=self._primary.broken_snapshots,
            journal=self._primary.journal,
        )
        self.extra_tabs.append(tab)
        return tab

    async def close(self) -> None:
        self.closed = True


async def no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


def listing_html(items: Iterable[tuple[str, str, Sequence[str]]]) -> str:
    """Feed markup with one ``role=article`` item per ``(href, label, lines)``."""

    parts = []
    for href, label, lines in items:
        aria = f' aria-label="{label}"' if label else ""
        body = "".join(f"<div>{line}</div>" for line in lines)
        parts.append(f'<div role="article"><a href="{href}"{aria}></a>{body}</div>')
    return f'<div role="feed">{"".join(parts)}</div>'


@pytest.fixture
def fake_tab() -> Callable[..., FakeTab]:
    return FakeTab


@pytest.fixture
def fake_session() -> Callable[..., FakeSession]:
    return FakeSession


@pytest.fixture
def sample_settings() -> Callable[..., HarvesterSettings]:
    def _builder(**overrides: Any) -> HarvesterSettings:
        base: dict[str, Any] = {
            "open_settle_ms": 0,
            "search_settle_ms": 0,
            "detail_settle_ms": 0,
            "round_delay_ms": 0,
            "retry_base_delay_ms": 0,
            "scroll": ScrollSettings(max_iterations=10, settle_ms=0, end_marker_timeout_ms=0),
        }
        base.update(overrides)
        return HarvesterSettings(**base)

    return _builder


@pytest.fixture
def sample_request() -> Callable[..., SearchRequest]:
    def _builder(**overrides: Any) -> SearchRequest:
        base: dict[str, Any] = {"address_query": "渋谷", "keyword": "ラーメン"}
        base.update(overrides)
        return SearchRequest(**base)

    return _builder


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    def _builder(**overrides: Any) -> Candidate:
        base: dict[str, Any] = {
            "url": "https://www.google.co.jp/maps/place/a",
            "name": "らーめん太郎",
            "rating": 4.2,
            "review_count": 120,
            "category": "ラーメン",
            "budget_text": "￥1,000～2,000",
            "raw_list_text": "らーめん太郎\n4.2(120)\n￥1,000～2,000\n· ラーメン ·",
        }
        base.update(overrides)
        return Candidate(**base)

    return _builder


@pytest.fixture
def make_result() -> Callable[..., MergedResult]:
    def _builder(**overrides: Any) -> MergedResult:
        base: dict[str, Any] = {
            "url": "https://www.google.co.jp/maps/place/a",
            "name": "らーめん太郎",
            "category": "ラーメン",
            "rating": 4.2,
            "review_count": 120,
            "budget_text": "￥1,000～2,000",
            "business_hours_text": "月火水木金: 11時00分～22時00分 / 土日: 定休日",
            "address": "東京都渋谷区道玄坂1-2-3",
            "review_snippet": "",
        }
        base.update(overrides)
        return MergedResult(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("MAPS_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def feed_markup() -> Callable[[Iterable[tuple[str, str, Sequence[str]]]], str]:
    return listing_html


@pytest.fixture
def instant_sleep() -> Callable[[float], Any]:
    return no_sleep
