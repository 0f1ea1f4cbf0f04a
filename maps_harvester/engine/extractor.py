"""Turn the loaded result feed into listing candidates.

Each field is read by a small pure function that walks an ordered tuple of
regular expressions and returns the first acceptable match, or a fixed
default when nothing matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence
from urllib.parse import urljoin

import structlog
from selectolax.parser import HTMLParser, Node

from ..config import SelectorConfig
from .models import UNKNOWN, Candidate

_CURRENCY = "[￥¥$€£]"
_RANGE_SEP = "[～~〜-]"
_BUDGET = rf"{_CURRENCY}[\d,]+(?:\s*{_RANGE_SEP}\s*{_CURRENCY}?[\d,]+)?"
_WORD = r"[ぁ-んァ-ヶー一-龠a-zA-Z]+(?:店|屋|館|院|室|所|場)?"

RATING_PATTERN = re.compile(r"(?<!\d)([1-5]\.\d)(?!\d)")

NAME_CUTOFFS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[1-5]\.\d"),
    re.compile(r"·"),
    re.compile(_CURRENCY),
)

REVIEW_COUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[1-5]\.\d\s*\(([\d,\.]+)\)"),
    re.compile(r"([\d,]+)\s*件"),
    re.compile(r"([\d,]+)\s*reviews?", re.IGNORECASE),
    re.compile(r"\(([\d,\.]+)\)"),
)

BUDGET_PATTERN = re.compile(_BUDGET)

CATEGORY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"{_BUDGET}\s*({_WORD})"),
    re.compile(rf"·\s*({_WORD})\s*·"),
    re.compile(rf"·\s*({_WORD})\s*$", re.MULTILINE),
)

SNIPPET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'"([^"]+)"'),
    re.compile(r"“([^”]+)”"),
)

STAR_PATTERN = re.compile(r"★(\d)")


def extract_name(lines: Sequence[str], label: str | None = None) -> str:
    if label and label.strip():
        return label.strip()
    if not lines:
        return UNKNOWN
    name = lines[0]
    for pattern in NAME_CUTOFFS:
        match = pattern.search(name)
        if match and match.start() > 0:
            name = name[: match.start()]
    return name.strip() or UNKNOWN


def extract_rating(text: str) -> float:
    for match in RATING_PATTERN.finditer(text):
        value = float(match.group(1))
        if 1.0 <= value <= 5.0:
            return value
    return 0.0


def _parse_count(raw: str) -> int:
    digits = re.sub(r"[,\.]", "", raw)
    return int(digits) if digits.isdigit() else 0


def extract_review_count(text: str) -> int:
    for pattern in REVIEW_COUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            count = _parse_count(match.group(1))
            if count > 0:
                return count
    return 0


def extract_budget(text: str) -> str:
    match = BUDGET_PATTERN.search(text)
    return match.group(0).strip() if match else ""


def extract_category(text: str) -> str:
    for pattern in CATEGORY_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        value = match.group(1).strip()
        if 2 <= len(value) <= 20 and any(ch.isalpha() for ch in value):
            return value
    return UNKNOWN


def extract_review_snippet(text: str) -> str:
    for pattern in SNIPPET_PATTERNS:
        match = pattern.search(text)
        if not match or not match.group(1).strip():
            continue
        snippet = match.group(1).strip()
        star = STAR_PATTERN.search(text[: match.start()])
        if star:
            return f"★{star.group(1)} {snippet}"
        return snippet
    return ""


@dataclass(slots=True)
class ExtractionResult:
    candidates: list[Candidate] = field(default_factory=list)
    error_count: int = 0
    link_count: int = 0


class CandidateExtractor:
    """Parse listing links out of the feed markup."""

    def __init__(
        self,
        selectors: SelectorConfig,
        text_limit: int = 300,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.selectors = selectors
        self.text_limit = text_limit
        self.logger = logger or structlog.get_logger("maps_harvester.extractor")

    def extract(self, feed_html: str, base_url: str) -> ExtractionResult:
        result = ExtractionResult()
        if not feed_html or not feed_html.strip():
            return result
        links = HTMLParser(feed_html).css(self.selectors.listing_link)
        result.link_count = len(links)
        seen: set[str] = set()
        for index, link in enumerate(links):
            href = (link.attributes.get("href") or "").strip()
            if not href:
                result.error_count += 1
                continue
            url = urljoin(base_url, href)
            if url in seen:
                continue
            seen.add(url)
            try:
                candidate = self._parse_item(link, url)
            except Exception as exc:  # noqa: BLE001
                result.error_count += 1
                if index < 5:
                    self.logger.warning("extract_item_failed", url=url, error=str(exc))
                continue
            if candidate is None:
                result.error_count += 1
                continue
            result.candidates.append(candidate)
        self.logger.info(
            "extract_finished",
            links=result.link_count,
            candidates=len(result.candidates),
            errors=result.error_count,
        )
        return result

    def _parse_item(self, link: Node, url: str) -> Candidate | None:
        container = self._container(link)
        label = (link.attributes.get("aria-label") or "").strip()
        text = container.text(separator="\n", strip=True)
        if label:
            text = f"{text}\n{label}" if text else label
        lines = [line.strip() for line in text.split("\n") if line.strip()]
        if not lines:
            return None
        text = "\n".join(lines)
        return Candidate(
            url=url,
            name=extract_name(lines, label),
            rating=extract_rating(text),
            review_count=extract_review_count(text),
            category=extract_category(text),
            budget_text=extract_budget(text),
            review_snippet=extract_review_snippet(text),
            raw_list_text=text[: self.text_limit],
        )

    def _container(self, link: Node) -> Node:
        node = link.parent
        while node is not None:
            if node.attributes.get("role") == self.selectors.item_role:
                return node
            node = node.parent
        node = link
        for _ in range(3):
            if node.parent is None:
                return link
            node = node.parent
        return node


__all__ = [
    "CandidateExtractor",
    "ExtractionResult",
    "extract_budget",
    "extract_category",
    "extract_name",
    "extract_rating",
    "extract_review_count",
    "extract_review_snippet",
]
