"""Search pipeline wiring the browser session to the harvesting engine."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable

import structlog

from .browser import BrowserSession, BrowsingContext, ElementTimeoutError, PlaywrightSession
from .config import FilterConfig, HarvesterSettings, SearchRequest
from .engine import (
    CandidateExtractor,
    DetailFetchScheduler,
    DetailFetcher,
    FilterEngine,
    MergedResult,
    RetryExecutor,
    ScrollCollector,
    WorkerPool,
    rank,
)
from .errors import BrowserInitError, ElementNotFoundError, SearchError
from .ui.progress import ProgressListener, ProgressReporter, ProgressStage


class SearchPipeline:
    """Run one search on an already started browser session."""

    def __init__(
        self,
        session: BrowserSession,
        settings: HarvesterSettings,
        reporter: ProgressReporter | None = None,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.settings = settings
        self.reporter = reporter or ProgressReporter()
        self.logger = logger or structlog.get_logger("maps_harvester.pipeline")
        self._sleep = sleep
        self.retry = RetryExecutor(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_ms / 1000,
            logger=self.logger,
            sleep=sleep,
        )
        self.summary: dict[str, int] = {}

    async def run(self, request: SearchRequest) -> list[MergedResult]:
        config = request.filter_config()
        self.summary = {
            "links": 0,
            "candidates": 0,
            "prefiltered": 0,
            "matched": 0,
            "filtered": 0,
            "failed": 0,
        }
        log = self.logger.bind(query=request.query())
        if config.max_items:
            log.info("max_items_not_enforced", max_items=config.max_items)
        try:
            return await self._run(request, config, log)
        except SearchError:
            raise
        except Exception as exc:  # noqa: BLE001
            log.error("search_failed", error=str(exc))
            raise SearchError(f"Search failed: {exc}") from exc

    async def _run(
        self, request: SearchRequest, config: FilterConfig, log: structlog.BoundLogger
    ) -> list[MergedResult]:
        settings = self.settings
        selectors = settings.selectors
        tab = self.session.primary

        self.reporter.emit(ProgressStage.OPENING, "opening map search")
        await self.retry.run(
            lambda: tab.navigate(settings.start_url, settings.navigation_timeout_ms),
            "open_start_page",
        )
        await tab.pause(settings.open_settle_ms)

        query = request.query()
        self.reporter.emit(ProgressStage.SEARCHING, f"searching for {query}")
        await self.retry.run(lambda: self._submit_query(tab, query), "submit_query")
        await tab.pause(settings.search_settle_ms)

        self.reporter.emit(ProgressStage.WAITING, "waiting for results")
        try:
            await tab.wait_for_element(selectors.feed, settings.element_timeout_ms)
        except ElementTimeoutError as exc:
            log.warning("feed_not_found", error=str(exc))
            self.reporter.emit(ProgressStage.COMPLETED, "no results", total=0)
            return []

        self.reporter.emit(ProgressStage.SCROLLING, "loading all results")
        collector = ScrollCollector(tab, settings.scroll, selectors.end_of_results_text, logger=log)
        await collector.collect(selectors.feed)

        self.reporter.emit(ProgressStage.EXTRACTING, "reading listings")
        feed_html = await tab.read_html(selectors.feed)
        extraction = CandidateExtractor(selectors, settings.list_text_limit, logger=log).extract(
            feed_html, tab.url
        )
        candidates = extraction.candidates
        self.summary["links"] = extraction.link_count
        self.summary["candidates"] = len(candidates)
        self.reporter.emit(
            ProgressStage.EXTRACTED,
            f"{len(candidates)} listings found",
            total=len(candidates),
            errors=extraction.error_count,
        )
        if not candidates:
            log.warning("no_candidates")
            self.reporter.emit(ProgressStage.COMPLETED, "no results", total=0)
            return []

        self.reporter.emit(ProgressStage.PREFILTERING, "filtering listings", total=len(candidates))
        engine = FilterEngine(config, logger=log)
        targets = engine.pre_filter_all(candidates)
        self.summary["prefiltered"] = len(targets)
        self.reporter.emit(
            ProgressStage.PREFILTERED,
            f"{len(candidates)} → {len(targets)} listings",
            total=len(targets),
            rejected=dict(engine.pre_rejections),
        )
        if not targets:
            log.warning("all_candidates_filtered", rejected=dict(engine.pre_rejections))
            self.reporter.emit(ProgressStage.COMPLETED, "no results", total=0)
            return []

        scheduler = DetailFetchScheduler(
            pool=WorkerPool(self.session, settings.max_workers, logger=log),
            fetcher=DetailFetcher(settings, logger=log),
            filters=engine,
            reporter=self.reporter,
            items_per_worker=settings.items_per_worker,
            max_workers=settings.max_workers,
            round_delay_ms=settings.round_delay_ms,
            logger=log,
            sleep=self._sleep,
        )
        report = await scheduler.run(targets)
        self.summary.update(matched=report.matched, filtered=report.filtered, failed=report.failed)

        results = rank(report.results)
        self.reporter.emit(
            ProgressStage.COMPLETED,
            f"{len(results)} results",
            total=len(results),
            filtered=report.filtered,
            failed=report.failed,
        )
        log.info("search_completed", **self.summary)
        return results

    async def _submit_query(self, tab: BrowsingContext, query: str) -> None:
        for selector in self.settings.selectors.search_inputs:
            try:
                await tab.wait_for_element(selector, self.settings.search_input_timeout_ms)
            except ElementTimeoutError:
                self.logger.debug("search_input_missing", selector=selector)
                continue
            await tab.fill(selector, query, submit=True)
            self.logger.info("query_submitted", selector=selector)
            return
        raise ElementNotFoundError("No search input matched the configured selectors")


async def run_search(
    request: SearchRequest,
    settings: HarvesterSettings,
    listeners: Iterable[ProgressListener] = (),
    session: BrowserSession | None = None,
    logger: structlog.BoundLogger | None = None,
) -> list[MergedResult]:
    """Start a browser session, run the pipeline and always close the session."""

    session = session or PlaywrightSession(settings, logger=logger)
    try:
        try:
            await session.start()
        except BrowserInitError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise BrowserInitError(f"Browser initialisation failed: {exc}") from exc
        pipeline = SearchPipeline(session, settings, ProgressReporter(listeners, logger=logger), logger=logger)
        return await pipeline.run(request)
    finally:
        await session.close()


__all__ = ["SearchPipeline", "run_search"]
