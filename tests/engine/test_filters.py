from __future__ import annotations

import pytest

from maps_harvester.config import FilterConfig
from maps_harvester.engine import DetailRecord, merge
from maps_harvester.engine.filters import (
    FilterEngine,
    lower_price,
    open_at_time,
    open_on_days,
    post_filter,
    pre_check,
    pre_filter,
    within_window,
)

WEEKDAY_HOURS = "月火水木金: 11時00分～22時00分 / 土日: 定休日"


def test_pre_filter_rating_bounds(make_candidate) -> None:
    config = FilterConfig(rating_min=4.0, rating_max=4.5)
    assert pre_filter(make_candidate(rating=4.2), 4.0, 0, config)
    assert not pre_filter(make_candidate(rating=3.9), 4.0, 0, config)
    assert not pre_filter(make_candidate(rating=4.8), 4.0, 0, config)
    # unknown rating is left for the detail stage
    assert pre_filter(make_candidate(rating=0.0), 4.0, 0, config)


def test_pre_filter_review_count_bounds(make_candidate) -> None:
    config = FilterConfig(review_count_min=100, review_count_max=500)
    assert pre_filter(make_candidate(review_count=0), 0, 100, config)
    assert not pre_filter(make_candidate(review_count=50), 0, 100, config)
    assert not pre_filter(make_candidate(review_count=900), 0, 100, config)


def test_pre_filter_category_uses_list_text(make_candidate) -> None:
    config = FilterConfig(category_terms=("CAFE", "喫茶"))
    by_text = make_candidate(category="Unknown", raw_list_text="Blue Bottle Cafe\n4.4(320)")
    assert pre_filter(by_text, 0, 0, config)
    by_category = make_candidate(category="喫茶店", raw_list_text="")
    assert pre_filter(by_category, 0, 0, config)
    outcome = pre_check(make_candidate(), 0, 0, config)
    assert not outcome.passed
    assert outcome.reason == "category"


def test_pre_filter_budget_lower_bound(make_candidate) -> None:
    config = FilterConfig(budget_min=1500, budget_max=2500)
    assert pre_filter(make_candidate(budget_text="￥2,000～3,000"), 0, 0, config)
    assert pre_check(make_candidate(budget_text="￥1,000～2,000"), 0, 0, config).reason == "budget"
    assert pre_check(make_candidate(budget_text="¥3,000～4,000"), 0, 0, config).reason == "budget"
    assert pre_filter(make_candidate(budget_text=""), 0, 0, config)


def test_lower_price() -> None:
    assert lower_price("￥1,000～2,000") == 1000
    assert lower_price("¥800") == 800
    assert lower_price("$10-20") is None


@pytest.mark.parametrize(
    "config, candidate_overrides",
    [
        (FilterConfig(rating_min=4.5), {"rating": 4.0}),
        (FilterConfig(review_count_min=500), {"review_count": 120}),
        (FilterConfig(category_terms=("寿司",)), {}),
        (FilterConfig(budget_max=500), {"budget_text": "￥1,000～2,000"}),
    ],
)
def test_pre_rejections_hold_after_enrichment(make_candidate, config, candidate_overrides) -> None:
    candidate = make_candidate(**candidate_overrides)
    assert not pre_filter(candidate, config.rating_min, config.review_count_min, config)
    enriched = merge(candidate, DetailRecord())
    assert not post_filter(enriched, config.review_count_min, config).passed


def test_post_filter_unknown_reviews_fail_with_minimum(make_result) -> None:
    config = FilterConfig(review_count_min=10)
    outcome = post_filter(make_result(review_count=0), 10, config)
    assert not outcome.passed
    assert outcome.reason
    assert post_filter(make_result(review_count=0), 0, FilterConfig()).passed


def test_post_filter_address_terms_any_match(make_result) -> None:
    config = FilterConfig(address_terms=("新宿", "渋谷"))
    assert post_filter(make_result(), 0, config).passed
    outcome = post_filter(make_result(address="大阪府大阪市北区"), 0, config)
    assert not outcome.passed
    assert "address" in outcome.reason


def test_post_filter_category_and_budget(make_result) -> None:
    assert not post_filter(make_result(), 0, FilterConfig(category_terms=("カフェ",))).passed
    assert post_filter(make_result(), 0, FilterConfig(category_terms=("らーめん", "ラーメン"))).passed
    outcome = post_filter(make_result(), 0, FilterConfig(budget_max=800))
    assert not outcome.passed
    assert "budget" in outcome.reason


def test_post_filter_days(make_result) -> None:
    assert post_filter(make_result(), 0, FilterConfig(days=("月",))).passed
    assert post_filter(make_result(), 0, FilterConfig(days=("土", "水"))).passed
    outcome = post_filter(make_result(), 0, FilterConfig(days=("土", "日")))
    assert not outcome.passed
    assert outcome.reason


def test_post_filter_skips_schedule_checks_without_hours(make_result) -> None:
    config = FilterConfig(days=("日",), time_of_day="03:00")
    assert post_filter(make_result(business_hours_text=""), 0, config).passed


def test_post_filter_time_of_day(make_result) -> None:
    assert post_filter(make_result(), 0, FilterConfig(time_of_day="12:30")).passed
    outcome = post_filter(make_result(), 0, FilterConfig(time_of_day="22:00"))
    assert not outcome.passed
    assert "22:00" in outcome.reason


def test_open_on_days_closed_markers() -> None:
    assert not open_on_days("月: Closed / 火: 9:00～18:00", ["月"])
    assert open_on_days("月: Closed / 火: 9:00～18:00", ["火"])
    assert not open_on_days("水: 休み", ["水"])
    assert not open_on_days(WEEKDAY_HOURS, ["祝"])


@pytest.mark.parametrize(
    ("target", "expected"),
    [("23:30", True), ("02:00", True), ("18:00", True), ("05:00", False), ("12:00", False)],
)
def test_open_at_time_wraps_midnight(target, expected) -> None:
    assert open_at_time("金土: 18時00分～5時00分", target) is expected


def test_open_at_time_respects_configured_days() -> None:
    hours = "月火: 9時00分～12時00分 / 土日: 18時00分～23時00分"
    assert open_at_time(hours, "20:00", ["土"])
    assert not open_at_time(hours, "20:00", ["月"])
    assert open_at_time(hours, "10:00")


def test_open_at_time_colon_clock_and_invalid_target() -> None:
    assert open_at_time("月: 9:00～21:00", "09:00")
    assert not open_at_time("月: 9:00～21:00", "21:00")
    assert open_at_time("月: 9:00～21:00", "not-a-time")
    assert not open_at_time("営業時間の情報なし", "10:00")


def test_within_window() -> None:
    assert within_window(600, 540, 1260)
    assert not within_window(1260, 540, 1260)
    assert within_window(30, 1080, 300)
    assert not within_window(600, 1080, 300)


def test_filter_engine_tallies_rejections(make_candidate, sample_request) -> None:
    request = sample_request(rating_min=4.0, filters={"categoryTerms": "ラーメン"})
    engine = FilterEngine(request.filter_config())
    candidates = [
        make_candidate(url="u1"),
        make_candidate(url="u2", rating=3.5),
        make_candidate(url="u3", category="カフェ", raw_list_text="カフェ"),
        make_candidate(url="u4", rating=3.0),
    ]
    kept = engine.pre_filter_all(candidates)
    assert [c.url for c in kept] == ["u1"]
    assert engine.pre_rejections == {"rating": 2, "category": 1}
    assert engine.post_filter(merge(kept[0], DetailRecord())).passed


def test_open_on_days_reads_fallback_hours_line(make_result) -> None:
    line = "営業時間: 月～金 11:00～22:00"
    assert open_on_days(line, ["月"])
    assert not open_on_days(line, ["土"])
    assert post_filter(make_result(business_hours_text=line), 0, FilterConfig(days=("金",))).passed


@pytest.mark.parametrize(("hours", "expected"), [("23:00", True), ("02:30", True), ("10:00", False)])
def test_post_filter_overnight_hours_on_configured_day(make_result, sample_request, hours, expected) -> None:
    config = sample_request(filters={"days": ["月曜日"], "hours": hours}).filter_config()
    result = make_result(business_hours_text="月: 18時00分～5時00分")
    assert post_filter(result, config.review_count_min, config).passed is expected
