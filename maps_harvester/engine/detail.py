"""Detail page enrichment."""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

import structlog

from ..browser import BrowsingContext
from ..config import HarvesterSettings
from .models import DetailRecord
from .retry import RetryExecutor

WEEKDAYS = ("月曜日", "火曜日", "水曜日", "木曜日", "金曜日", "土曜日", "日曜日")

# Collects one snapshot of the detail page; selectors are passed in as the argument.
DETAIL_SCRIPT = """
(sel) => {
  const first = (selector) => {
    try { return document.querySelector(selector); } catch (e) { return null; }
  };
  const all = (selector) => {
    try { return Array.from(document.querySelectorAll(selector)); } catch (e) { return []; }
  };
  const address = first(sel.address);
  const rating = first(sel.rating);
  const category = first(sel.category);
  return {
    text: document.body ? document.body.innerText : '',
    addressLabel: address ? address.getAttribute('aria-label') : null,
    ratingLabel: rating ? rating.getAttribute('aria-label') : null,
    categoryText: category ? category.innerText : null,
    dayLabels: all(sel.hours).map((el) => el.getAttribute('aria-label') || ''),
  };
}
"""

_LABEL_RATING = re.compile(r"(\d\.\d)")
_TEXT_RATING = re.compile(r"([1-5]\.\d)\s*(?:つ星|★)")
_REVIEWS = re.compile(r"([\d,]+)\s*件のクチコミ")
_BUDGET = re.compile(r"[￥¥][\d,]+～[\d,]+")
_DAY_HOURS = re.compile(r"(\d+時\d+分)～(\d+時\d+分)")


def _clamp_rating(value: float) -> float:
    return min(max(value, 0.0), 5.0)


def parse_address(label: str | None, prefixes: Sequence[str]) -> str:
    if not label:
        return ""
    address = label
    for prefix in prefixes:
        if address.startswith(prefix):
            address = address[len(prefix):]
            break
    return address.strip()


def parse_rating(label: str | None, text: str) -> float:
    match = _LABEL_RATING.search(label or "")
    if not match:
        match = _TEXT_RATING.search(text)
    return _clamp_rating(float(match.group(1))) if match else 0.0


def parse_review_count(lines: Sequence[str]) -> int:
    for line in lines:
        if "件のクチコミ" not in line or "ローカルガイド" in line:
            continue
        match = _REVIEWS.search(line)
        if match:
            digits = match.group(1).replace(",", "")
            if digits:
                return int(digits)
    return 0


def parse_budget(lines: Sequence[str]) -> str:
    fallback = ""
    for line in lines:
        if "￥" not in line and "¥" not in line:
            continue
        match = _BUDGET.search(line)
        if not match:
            continue
        if "1 人あたり" in line:
            return match.group(0)
        fallback = fallback or match.group(0)
    return fallback


def group_hours(day_labels: Sequence[str]) -> str:
    """Fold weekday labels into ``月火: 9時00分～21時00分 / 土日: ...``."""

    grouped: dict[str, list[str]] = {}
    for day in WEEKDAYS:
        label = next((item for item in day_labels if day in item), "")
        if "時" not in label:
            continue
        match = _DAY_HOURS.search(label)
        if match:
            hours = f"{match.group(1)}～{match.group(2)}"
            grouped.setdefault(hours, []).append(day.replace("曜日", ""))
    return " / ".join(f"{''.join(days)}: {hours}" for hours, days in grouped.items())


def parse_hours(day_labels: Sequence[str], lines: Sequence[str]) -> str:
    grouped = group_hours(day_labels)
    if grouped:
        return grouped
    for line in lines:
        if "営業" in line and (":00" in line or "時" in line):
            return line[:100]
    return ""


def parse_detail_payload(
    payload: Mapping[str, Any] | None,
    address_prefixes: Sequence[str] = ("住所: ", "Address: "),
) -> DetailRecord:
    """Build a :class:`DetailRecord` from a detail page snapshot."""

    payload = payload or {}
    text = str(payload.get("text") or "")
    lines = text.split("\n")
    return DetailRecord(
        address=parse_address(payload.get("addressLabel"), address_prefixes),
        category=str(payload.get("categoryText") or "").strip(),
        budget_text=parse_budget(lines),
        business_hours_text=parse_hours(list(payload.get("dayLabels") or []), lines),
        detail_rating=parse_rating(payload.get("ratingLabel"), text),
        detail_review_count=parse_review_count(lines),
    )


class DetailFetcher:
    """Open a listing's detail page and read its fields."""

    def __init__(
        self,
        settings: HarvesterSettings,
        retry: RetryExecutor | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("maps_harvester.detail")
        self.retry = retry or RetryExecutor(
            max_attempts=settings.detail_max_attempts,
            base_delay=settings.retry_base_delay_ms / 1000,
            logger=self.logger,
        )
        selectors = settings.selectors
        self._script_arg = {
            "address": selectors.detail_address,
            "rating": selectors.detail_rating,
            "category": selectors.detail_category,
            "hours": selectors.detail_hours,
        }

    async def fetch(self, tab: BrowsingContext, url: str) -> DetailRecord:
        await self.retry.run(
            lambda: tab.navigate(url, self.settings.navigation_timeout_ms),
            "detail_navigation",
            max_attempts=self.settings.detail_max_attempts,
        )
        await tab.pause(self.settings.detail_settle_ms)
        try:
            payload = await tab.evaluate(DETAIL_SCRIPT, arg=self._script_arg)
        except Exception as exc:  # noqa: BLE001
            # the listing is kept with default detail fields
            self.logger.warning("detail_snapshot_failed", url=url, error=str(exc))
            payload = None
        record = parse_detail_payload(payload, self.settings.selectors.address_label_prefixes)
        self.logger.debug(
            "detail_parsed",
            url=url,
            rating=record.detail_rating,
            reviews=record.detail_review_count,
            has_address=bool(record.address),
        )
        return record


__all__ = [
    "DETAIL_SCRIPT",
    "DetailFetcher",
    "group_hours",
    "parse_detail_payload",
]
