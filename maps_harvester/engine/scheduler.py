"""Round-based concurrent detail enrichment."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Sequence

import structlog

from ..ui.progress import ProgressReporter, ProgressStage
from .detail import DetailFetcher
from .filters import FilterEngine
from .models import Candidate, MergedResult, merge
from .worker_pool import WorkerPool


@dataclass(frozen=True, slots=True)
class SchedulePlan:
    worker_count: int
    chunk_sizes: tuple[int, ...]
    rounds: int


def plan_schedule(total: int, items_per_worker: int = 3, max_workers: int = 5) -> SchedulePlan:
    """Split ``total`` items into ordered chunks and group them into rounds."""

    if items_per_worker < 1 or max_workers < 1:
        raise ValueError("items_per_worker and max_workers must be >= 1")
    if total <= 0:
        return SchedulePlan(worker_count=0, chunk_sizes=(), rounds=0)
    worker_count = min(math.ceil(total / items_per_worker), max_workers)
    sizes = tuple(
        min(items_per_worker, total - start) for start in range(0, total, items_per_worker)
    )
    return SchedulePlan(
        worker_count=worker_count,
        chunk_sizes=sizes,
        rounds=math.ceil(len(sizes) / worker_count),
    )


def round_percent(processed: int, total: int) -> int:
    """Completion percentage rounded half up."""

    if total <= 0:
        return 100
    return math.floor(processed * 100 / total + 0.5)


class ItemStatus(str, Enum):
    MATCHED = "matched"
    FILTERED = "filtered"
    FAILED = "failed"


@dataclass(slots=True)
class ItemOutcome:
    candidate: Candidate
    status: ItemStatus
    result: MergedResult | None = None
    reason: str = ""

    def __post_init__(self) -> None:
        if self.status is ItemStatus.MATCHED and self.result is None:
            raise ValueError("a matched outcome needs a result")


@dataclass(slots=True)
class ScheduleReport:
    results: list[MergedResult] = field(default_factory=list)
    processed: int = 0
    matched: int = 0
    filtered: int = 0
    failed: int = 0
    rounds: int = 0


class DetailFetchScheduler:
    """Enrich candidates chunk by chunk; every round is a barrier."""

    def __init__(
        self,
        pool: WorkerPool,
        fetcher: DetailFetcher,
        filters: FilterEngine,
        reporter: ProgressReporter | None = None,
        items_per_worker: int = 3,
        max_workers: int = 5,
        round_delay_ms: int = 300,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.pool = pool
        self.fetcher = fetcher
        self.filters = filters
        self.reporter = reporter or ProgressReporter()
        self.items_per_worker = items_per_worker
        self.max_workers = max_workers
        self.round_delay_ms = round_delay_ms
        self.logger = logger or structlog.get_logger("maps_harvester.scheduler")
        self._sleep = sleep

    async def run(self, candidates: Sequence[Candidate]) -> ScheduleReport:
        report = ScheduleReport()
        total = len(candidates)
        plan = plan_schedule(total, self.items_per_worker, self.max_workers)
        if plan.worker_count == 0:
            return report

        chunks: list[Sequence[Candidate]] = []
        start = 0
        for size in plan.chunk_sizes:
            chunks.append(candidates[start : start + size])
            start += size

        self.logger.info(
            "details_started",
            total=total,
            workers=plan.worker_count,
            chunks=len(chunks),
            rounds=plan.rounds,
        )
        try:
            await self.pool.ensure(plan.worker_count)
            for round_start in range(0, len(chunks), plan.worker_count):
                batch = chunks[round_start : round_start + plan.worker_count]
                outcomes = await asyncio.gather(*(self._process_chunk(chunk) for chunk in batch))
                report.rounds += 1
                for chunk_outcomes in outcomes:
                    for outcome in chunk_outcomes:
                        self._tally(report, outcome)
                self.reporter.emit(
                    ProgressStage.DETAILS,
                    "fetching details",
                    current=report.processed,
                    total=total,
                    percent=round_percent(report.processed, total),
                    matched=report.matched,
                    filtered=report.filtered,
                    failed=report.failed,
                )
                if round_start + plan.worker_count < len(chunks):
                    await self._sleep(self.round_delay_ms / 1000)
        finally:
            await self.pool.release_extra()

        self.logger.info(
            "details_finished",
            matched=report.matched,
            filtered=report.filtered,
            failed=report.failed,
        )
        return report

    async def _process_chunk(self, chunk: Sequence[Candidate]) -> list[ItemOutcome]:
        outcomes: list[ItemOutcome] = []
        async with self.pool.acquire() as tab:
            for candidate in chunk:
                try:
                    detail = await self.fetcher.fetch(tab, candidate.url)
                    merged = merge(candidate, detail)
                    verdict = self.filters.post_filter(merged)
                except Exception as exc:  # noqa: BLE001
                    outcomes.append(ItemOutcome(candidate, ItemStatus.FAILED, reason=str(exc)))
                    continue
                status = ItemStatus.MATCHED if verdict.passed else ItemStatus.FILTERED
                outcomes.append(ItemOutcome(candidate, status, merged, verdict.reason))
        return outcomes

    def _tally(self, report: ScheduleReport, outcome: ItemOutcome) -> None:
        report.processed += 1
        name = outcome.candidate.name
        if outcome.status is ItemStatus.FAILED:
            report.failed += 1
            self.logger.warning("detail_failed", name=name, url=outcome.candidate.url, error=outcome.reason)
        elif outcome.status is ItemStatus.MATCHED:
            report.matched += 1
            report.results.append(outcome.result)  # type: ignore[arg-type]
            self.logger.info("detail_matched", name=name)
        else:
            report.filtered += 1
            self.logger.info("detail_filtered", name=name, reason=outcome.reason)


__all__ = [
    "DetailFetchScheduler",
    "ItemOutcome",
    "ItemStatus",
    "SchedulePlan",
    "ScheduleReport",
    "plan_schedule",
    "round_percent",
]
