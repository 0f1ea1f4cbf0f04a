"""Progressive loading of the result feed."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ..browser import BrowsingContext
from ..config import ScrollSettings

_HEIGHT_SCRIPT = "el => el.scrollHeight"


@dataclass(frozen=True, slots=True)
class ScrollReport:
    iterations: int
    final_height: int
    reason: str


class ScrollCollector:
    """Scroll a feed until the end marker shows up or its height stops growing."""

    def __init__(
        self,
        tab: BrowsingContext,
        settings: ScrollSettings,
        end_marker_text: str,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.tab = tab
        self.settings = settings
        self.end_marker_text = end_marker_text
        self.logger = logger or structlog.get_logger("maps_harvester.scroll")

    async def collect(self, feed_selector: str) -> ScrollReport:
        previous_height = 0
        stalled = 0
        iterations = 0
        reason = "max_iterations"
        for index in range(self.settings.max_iterations):
            iterations = index + 1
            try:
                height = await self._height(feed_selector)
                if iterations <= 3 or iterations % 5 == 1:
                    self.logger.debug("scroll_iteration", iteration=iterations, height=height)
                await self.tab.scroll_by(feed_selector, self.settings.scroll_delta)
                await self.tab.pause(self.settings.settle_ms)

                if self.end_marker_text and await self._end_marker_visible():
                    reason = "end_marker"
                    break

                new_height = await self._height(feed_selector)
                if new_height == previous_height:
                    stalled += 1
                    if stalled >= self.settings.stall_limit:
                        reason = "stalled"
                        break
                else:
                    stalled = 0
                previous_height = new_height
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("scroll_error", iteration=iterations, error=str(exc))

        report = ScrollReport(iterations=iterations, final_height=previous_height, reason=reason)
        self.logger.info(
            "scroll_finished",
            iterations=report.iterations,
            height=report.final_height,
            reason=report.reason,
        )
        return report

    async def _height(self, feed_selector: str) -> int:
        value = await self.tab.evaluate(_HEIGHT_SCRIPT, scope=feed_selector)
        return int(value or 0)

    async def _end_marker_visible(self) -> bool:
        try:
            return await self.tab.is_text_visible(
                self.end_marker_text, self.settings.end_marker_timeout_ms
            )
        except Exception:  # noqa: BLE001
            return False


__all__ = ["ScrollCollector", "ScrollReport"]
