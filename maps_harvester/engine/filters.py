"""Candidate filtering before and after detail enrichment.

Two stages share the same criteria. ``pre_filter`` works on list data only and
lets unknown values through; ``post_filter`` runs on enriched results and also
checks address, opening days and opening time. Neither stage raises.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, Sequence

import structlog

from ..config import FilterConfig
from .models import Candidate, FilterOutcome, MergedResult

CLOSED_MARKERS = ("定休", "休み", "closed")

_PRICE_PATTERN = re.compile(r"[￥¥]([0-9,]+)")
_TARGET_TIME = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_CLOCK = re.compile(r"(\d{1,2})(?:時|:)(\d{2})分?")
_SEGMENT = re.compile(r"^(?P<days>[^\d:：]*?)\s*[:：]\s*(?P<body>.+)$")


def _contains_any(haystack: str, terms: Iterable[str]) -> bool:
    text = (haystack or "").casefold()
    return any(term.casefold() in text for term in terms)


def lower_price(budget_text: str) -> int | None:
    """First yen amount of a budget text such as ``￥1,000～2,000``."""

    match = _PRICE_PATTERN.search(budget_text or "")
    if not match:
        return None
    digits = match.group(1).replace(",", "")
    return int(digits) if digits else None


def _budget_violation(budget_text: str, config: FilterConfig) -> str:
    if not config.has_budget_bounds or not budget_text:
        return ""
    price = lower_price(budget_text)
    if price is None:
        return ""
    if config.budget_min is not None and price < config.budget_min:
        return f"budget below minimum ({budget_text} < ¥{config.budget_min:,})"
    if config.budget_max is not None and price > config.budget_max:
        return f"budget above maximum ({budget_text} > ¥{config.budget_max:,})"
    return ""


def _segments(hours_text: str) -> list[tuple[str, str]]:
    """Split hours text into ``(day_prefix, body)`` pairs."""

    pairs: list[tuple[str, str]] = []
    for raw in hours_text.split("/"):
        segment = raw.strip()
        if not segment:
            continue
        match = _SEGMENT.match(segment)
        if match:
            pairs.append((match.group("days").strip(), match.group("body").strip()))
        else:
            pairs.append(("", segment))
    return pairs


def _is_closed(segment: str) -> bool:
    lowered = segment.casefold()
    return any(marker in lowered for marker in CLOSED_MARKERS)


def open_on_days(hours_text: str, days: Sequence[str]) -> bool:
    """Whether at least one of ``days`` (tokens like ``月``) is an opening day."""

    segments = _segments(hours_text)
    for day in days:
        matching = [
            (prefix, body) for prefix, body in segments if day in f"{prefix} {body}"
        ]
        if not matching:
            continue
        if any(_is_closed(f"{prefix} {body}") for prefix, body in matching):
            continue
        return True
    return False


def to_minutes(hour: str, minute: str) -> int:
    return int(hour) * 60 + int(minute)


def opening_window(body: str) -> tuple[int, int] | None:
    clocks = _CLOCK.findall(body)
    if len(clocks) < 2:
        return None
    return to_minutes(*clocks[0]), to_minutes(*clocks[1])


def within_window(target: int, open_at: int, close_at: int) -> bool:
    if close_at > open_at:
        return open_at <= target < close_at
    # window spans midnight, e.g. 18:00 to 05:00
    return target >= open_at or target < close_at


def open_at_time(hours_text: str, time_of_day: str, days: Sequence[str] = ()) -> bool:
    match = _TARGET_TIME.match(time_of_day or "")
    if not match:
        return True
    target = to_minutes(match.group(1), match.group(2))
    for prefix, body in _segments(hours_text):
        if days and not any(day in prefix for day in days):
            continue
        window = opening_window(body)
        if window and within_window(target, *window):
            return True
    return False


def pre_check(
    candidate: Candidate,
    rating_min: float,
    review_count_min: int,
    config: FilterConfig,
) -> FilterOutcome:
    """List-stage check; a failing outcome carries the tally key as reason."""

    rating = candidate.rating
    if rating > 0:
        if rating_min > 0 and rating < rating_min:
            return FilterOutcome.reject("rating")
        if config.rating_max is not None and rating > config.rating_max:
            return FilterOutcome.reject("rating")

    reviews = candidate.review_count
    if reviews > 0:
        if review_count_min > 0 and reviews < review_count_min:
            return FilterOutcome.reject("reviews")
        if config.review_count_max is not None and reviews > config.review_count_max:
            return FilterOutcome.reject("reviews")

    if config.category_terms and not (
        _contains_any(candidate.category, config.category_terms)
        or _contains_any(candidate.raw_list_text, config.category_terms)
    ):
        return FilterOutcome.reject("category")

    if _budget_violation(candidate.budget_text, config):
        return FilterOutcome.reject("budget")

    return FilterOutcome.ok()


def pre_filter(
    candidate: Candidate,
    rating_min: float,
    review_count_min: int,
    config: FilterConfig,
) -> bool:
    return pre_check(candidate, rating_min, review_count_min, config).passed


def post_filter(result: MergedResult, review_count_min: int, config: FilterConfig) -> FilterOutcome:
    if review_count_min > 0 and result.review_count < review_count_min:
        return FilterOutcome.reject(
            f"too few reviews ({result.review_count} < {review_count_min})"
        )
    if result.rating > 0:
        if config.rating_min > 0 and result.rating < config.rating_min:
            return FilterOutcome.reject(f"rating below minimum ({result.rating} < {config.rating_min})")
        if config.rating_max is not None and result.rating > config.rating_max:
            return FilterOutcome.reject(f"rating above maximum ({result.rating} > {config.rating_max})")
    if config.review_count_max is not None and result.review_count > config.review_count_max:
        return FilterOutcome.reject(
            f"too many reviews ({result.review_count} > {config.review_count_max})"
        )

    if config.address_terms and not _contains_any(result.address, config.address_terms):
        return FilterOutcome.reject(f"address mismatch ({result.address[:20] or 'unknown'})")

    if config.category_terms and not _contains_any(result.category, config.category_terms):
        return FilterOutcome.reject(f"category mismatch ({result.category or 'unknown'})")

    budget_reason = _budget_violation(result.budget_text, config)
    if budget_reason:
        return FilterOutcome.reject(budget_reason)

    hours = result.business_hours_text
    if hours:
        if config.days and not open_on_days(hours, config.days):
            return FilterOutcome.reject(f"closed on {'/'.join(config.days)}")
        if config.time_of_day and not open_at_time(hours, config.time_of_day, config.days):
            return FilterOutcome.reject(f"not open at {config.time_of_day}")

    return FilterOutcome.ok()


class FilterEngine:
    """Bundle a run's criteria and tally list-stage rejections."""

    def __init__(self, config: FilterConfig, logger: structlog.BoundLogger | None = None) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("maps_harvester.filters")
        self.pre_rejections: Counter[str] = Counter()

    def pre_filter_all(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        kept: list[Candidate] = []
        for candidate in candidates:
            outcome = pre_check(
                candidate, self.config.rating_min, self.config.review_count_min, self.config
            )
            if outcome.passed:
                kept.append(candidate)
            else:
                self.pre_rejections[outcome.reason] += 1
        self.logger.info(
            "prefilter_finished",
            kept=len(kept),
            rejected=dict(self.pre_rejections),
        )
        return kept

    def post_filter(self, result: MergedResult) -> FilterOutcome:
        return post_filter(result, self.config.review_count_min, self.config)


__all__ = [
    "CLOSED_MARKERS",
    "FilterEngine",
    "lower_price",
    "open_at_time",
    "open_on_days",
    "opening_window",
    "post_filter",
    "pre_check",
    "pre_filter",
    "within_window",
]
