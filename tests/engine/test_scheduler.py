from __future__ import annotations

import asyncio

import pytest

from maps_harvester.config import FilterConfig
from maps_harvester.engine import DetailFetcher, FilterEngine, WorkerPool
from maps_harvester.engine.scheduler import (
    DetailFetchScheduler,
    ItemOutcome,
    ItemStatus,
    plan_schedule,
    round_percent,
)
from maps_harvester.ui import ProgressReporter, ProgressStage


def test_plan_schedule_thirteen_items() -> None:
    plan = plan_schedule(13, items_per_worker=3, max_workers=5)
    assert plan.worker_count == 5
    assert plan.chunk_sizes == (3, 3, 3, 3, 1)
    assert plan.rounds == 1


@pytest.mark.parametrize(
    ("total", "workers", "chunks", "rounds"),
    [
        (1, 1, (1,), 1),
        (6, 2, (3, 3), 1),
        (16, 5, (3, 3, 3, 3, 3, 1), 2),
        (40, 5, (3,) * 13 + (1,), 3),
    ],
)
def test_plan_schedule_shapes(total, workers, chunks, rounds) -> None:
    plan = plan_schedule(total, 3, 5)
    assert plan.worker_count == workers
    assert plan.chunk_sizes == chunks
    assert plan.rounds == rounds


def test_plan_schedule_empty() -> None:
    plan = plan_schedule(0)
    assert plan.worker_count == 0
    assert plan.rounds == 0


def test_round_percent_rounds_half_up() -> None:
    assert round_percent(1, 8) == 13
    assert round_percent(1, 3) == 33
    assert round_percent(2, 3) == 67
    assert round_percent(5, 5) == 100


def _build(session, settings, events, make_candidate, count, config=None):
    candidates = [make_candidate(url=f"https://maps.test/place/{i}", name=f"shop-{i}") for i in range(count)]
    details = session.primary.details
    for index, candidate in enumerate(candidates):
        details[candidate.url] = {"text": f"{4.0 + (index % 5) / 10:.1f} つ星\n{100 + index} 件のクチコミ"}
    scheduler = DetailFetchScheduler(
        pool=WorkerPool(session, settings.max_workers),
        fetcher=DetailFetcher(settings),
        filters=FilterEngine(config or FilterConfig()),
        reporter=ProgressReporter([events.append]),
        items_per_worker=settings.items_per_worker,
        max_workers=settings.max_workers,
        round_delay_ms=0,
    )
    return scheduler, candidates


def test_scheduler_rounds_are_barriers(fake_session, sample_settings, make_candidate) -> None:
    session = fake_session()
    settings = sample_settings(items_per_worker=3, max_workers=2)
    events: list = []
    scheduler, candidates = _build(session, settings, events, make_candidate, 8)

    report = asyncio.run(scheduler.run(candidates))

    assert report.rounds == 2
    assert report.matched == 8
    journal = session.primary.journal
    first_round = {c.url for c in candidates[:6]}
    last_end = max(i for i, (kind, url) in enumerate(journal) if kind == "end" and url in first_round)
    first_start = min(
        i for i, (kind, url) in enumerate(journal) if kind == "start" and url not in first_round
    )
    assert last_end < first_start

    started = [url for kind, url in journal if kind == "start"]
    for chunk in (candidates[0:3], candidates[3:6], candidates[6:8]):
        urls = [c.url for c in chunk]
        assert [url for url in started if url in urls] == urls

    details_events = [e for e in events if e.stage is ProgressStage.DETAILS]
    assert [e.current for e in details_events] == [6, 8]
    assert [e.percent for e in details_events] == [75, 100]
    assert details_events[-1].extra == {"matched": 8, "filtered": 0, "failed": 0}


def test_scheduler_counts_failures_and_filtered(fake_session, sample_settings, make_candidate) -> None:
    session = fake_session()
    settings = sample_settings()
    events: list = []
    scheduler, candidates = _build(
        session, settings, events, make_candidate, 5, config=FilterConfig(review_count_min=102)
    )
    session.primary.failing_urls.add(candidates[4].url)

    report = asyncio.run(scheduler.run(candidates))

    assert report.processed == 5
    assert report.failed == 1
    assert report.filtered == 2
    assert report.matched == 2
    assert {r.url for r in report.results} == {candidates[2].url, candidates[3].url}


def test_scheduler_releases_extra_workers(fake_session, sample_settings, make_candidate) -> None:
    session = fake_session()
    settings = sample_settings()
    scheduler, candidates = _build(session, settings, [], make_candidate, 13)

    report = asyncio.run(scheduler.run(candidates))

    assert report.rounds == 1
    assert len(session.extra_tabs) == 4
    assert all(tab.closed for tab in session.extra_tabs)
    assert not session.primary.closed


def test_scheduler_with_no_candidates(fake_session, sample_settings) -> None:
    session = fake_session()
    scheduler = DetailFetchScheduler(
        pool=WorkerPool(session),
        fetcher=DetailFetcher(sample_settings()),
        filters=FilterEngine(FilterConfig()),
    )
    report = asyncio.run(scheduler.run([]))
    assert report.processed == 0
    assert session.extra_tabs == []


def test_scheduler_keeps_item_when_snapshot_fails(fake_session, sample_settings, make_candidate) -> None:
    session = fake_session()
    settings = sample_settings()
    events: list = []
    scheduler, candidates = _build(session, settings, events, make_candidate, 1)
    session.primary.broken_snapshots.add(candidates[0].url)

    report = asyncio.run(scheduler.run(candidates))

    assert report.failed == 0
    assert report.matched == 1
    result = report.results[0]
    assert result.url == candidates[0].url
    assert result.rating == candidates[0].rating
    assert result.review_count == candidates[0].review_count
    assert result.address == ""
    assert result.business_hours_text == ""


def test_matched_outcome_requires_result(make_candidate, make_result) -> None:
    with pytest.raises(ValueError):
        ItemOutcome(make_candidate(), ItemStatus.MATCHED)
    assert ItemOutcome(make_candidate(), ItemStatus.MATCHED, make_result()).result is not None
    assert ItemOutcome(make_candidate(), ItemStatus.FAILED, reason="timeout").result is None
