"""Bounded pool of browser tabs used for detail enrichment."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from ..browser import BrowserSession, BrowsingContext


class WorkerPool:
    """Hand out tabs to concurrent workers; the primary tab is always slot one."""

    def __init__(
        self,
        session: BrowserSession,
        max_workers: int = 5,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.session = session
        self.max_workers = max_workers
        self.logger = logger or structlog.get_logger("maps_harvester.workers")
        self._tabs: list[BrowsingContext] = []
        self._idle: asyncio.Queue[BrowsingContext] = asyncio.Queue()

    @property
    def size(self) -> int:
        return len(self._tabs)

    async def ensure(self, count: int) -> int:
        """Grow the pool to ``count`` tabs (capped) and return its size."""

        target = max(1, min(count, self.max_workers))
        if not self._tabs:
            self._add(self.session.primary)
        while len(self._tabs) < target:
            self._add(await self.session.open_additional_context())
        self.logger.debug("worker_pool_ready", size=len(self._tabs))
        return len(self._tabs)

    def _add(self, tab: BrowsingContext) -> None:
        self._tabs.append(tab)
        self._idle.put_nowait(tab)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[BrowsingContext]:
        if not self._tabs:
            await self.ensure(1)
        tab = await self._idle.get()
        try:
            yield tab
        finally:
            self._idle.put_nowait(tab)

    async def release_extra(self) -> None:
        """Close every tab except the primary one."""

        if not self._tabs:
            return
        primary, extra = self._tabs[0], self._tabs[1:]
        for tab in extra:
            try:
                await tab.close()
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("worker_close_failed", error=str(exc))
        self._tabs = [primary]
        self._idle = asyncio.Queue()
        self._idle.put_nowait(primary)
        if extra:
            self.logger.debug("worker_pool_released", closed=len(extra))


__all__ = ["WorkerPool"]
