"""Pydantic models used across the Maps Harvester configuration flow."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

# English aliases accepted for the Japanese weekday tokens used on the detail page.
DAY_ALIASES: dict[str, str] = {
    "monday": "月",
    "mon": "月",
    "tuesday": "火",
    "tue": "火",
    "wednesday": "水",
    "wed": "水",
    "thursday": "木",
    "thu": "木",
    "friday": "金",
    "fri": "金",
    "saturday": "土",
    "sat": "土",
    "sunday": "日",
    "sun": "日",
}


def day_token(day: str) -> str:
    """Reduce a day name (``月曜日``, ``月`` or ``monday``) to its token."""

    text = day.strip()
    alias = DAY_ALIASES.get(text.lower())
    if alias:
        return alias
    if text.endswith("曜日"):
        return text[: -len("曜日")]
    if text.endswith("曜"):
        return text[: -len("曜")]
    return text


def split_terms(raw: str | None) -> tuple[str, ...]:
    """Split a comma separated term list, dropping blanks."""

    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilterSpec(_CamelModel):
    """Optional filters supplied together with a search request."""

    address_terms: str = ""
    category_terms: str = ""
    budget_min: int | None = Field(default=None, ge=0)
    budget_max: int | None = Field(default=None, ge=0)
    days: list[str] = Field(default_factory=list)
    hours: str = ""
    max_items: int = Field(default=0, ge=0)

    @field_validator("address_terms", "category_terms", "hours", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return ",".join(str(item) for item in value)
        return str(value).strip()

    @field_validator("budget_min", "budget_max", mode="before")
    @classmethod
    def _coerce_budget(cls, value: Any) -> Any:
        # Empty form fields arrive as "" or 0 and mean "no bound".
        if value in (None, "", 0, "0"):
            return None
        return value

    @field_validator("days", mode="before")
    @classmethod
    def _coerce_days(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("hours")
    @classmethod
    def _validate_hours(cls, value: str) -> str:
        if value and not _TIME_PATTERN.match(value):
            raise ValueError("hours must use HH:MM format")
        return value

    @model_validator(mode="after")
    def _validate_budget(self) -> "FilterSpec":
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_max < self.budget_min
        ):
            raise ValueError("budget_max must be >= budget_min")
        return self


class SearchRequest(_CamelModel):
    """Input of a single harvesting run."""

    address_query: str = ""
    keyword: str
    rating_min: float = Field(default=0.0, ge=0, le=5)
    rating_max: float | None = Field(default=None, ge=0, le=5)
    review_count_min: int = Field(default=0, ge=0)
    review_count_max: int | None = Field(default=None, ge=0)
    filters: FilterSpec = Field(default_factory=FilterSpec)

    @field_validator("keyword")
    @classmethod
    def _validate_keyword(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("keyword is required")
        return value.strip()

    @field_validator("address_query", mode="before")
    @classmethod
    def _coerce_address(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("rating_max", "review_count_max", mode="before")
    @classmethod
    def _coerce_upper_bounds(cls, value: Any) -> Any:
        return None if value in ("", 0, "0") else value

    @model_validator(mode="after")
    def _validate_ranges(self) -> "SearchRequest":
        if self.rating_max is not None and self.rating_max < self.rating_min:
            raise ValueError("rating_max must be >= rating_min")
        if self.review_count_max is not None and self.review_count_max < self.review_count_min:
            raise ValueError("review_count_max must be >= review_count_min")
        return self

    def query(self) -> str:
        """Search box text: address and keyword, skipping blanks."""

        return " ".join(part for part in (self.address_query, self.keyword) if part)

    def filter_config(self) -> "FilterConfig":
        return FilterConfig.from_request(self)


class FilterConfig(BaseModel):
    """Normalised, read-only filter criteria for one run."""

    model_config = ConfigDict(frozen=True)

    rating_min: float = 0.0
    rating_max: float | None = None
    review_count_min: int = 0
    review_count_max: int | None = None
    address_terms: tuple[str, ...] = ()
    category_terms: tuple[str, ...] = ()
    budget_min: int | None = None
    budget_max: int | None = None
    days: tuple[str, ...] = ()
    time_of_day: str | None = None
    max_items: int = 0

    @classmethod
    def from_request(cls, request: SearchRequest) -> "FilterConfig":
        filters = request.filters
        days: list[str] = []
        for day in filters.days:
            token = day_token(day)
            if token and token not in days:
                days.append(token)
        return cls(
            rating_min=request.rating_min,
            rating_max=request.rating_max,
            review_count_min=request.review_count_min,
            review_count_max=request.review_count_max,
            address_terms=split_terms(filters.address_terms),
            category_terms=split_terms(filters.category_terms),
            budget_min=filters.budget_min,
            budget_max=filters.budget_max,
            days=tuple(days),
            time_of_day=filters.hours or None,
            max_items=filters.max_items,
        )

    @property
    def has_budget_bounds(self) -> bool:
        return self.budget_min is not None or self.budget_max is not None


class SelectorConfig(BaseModel):
    """Selectors and labels describing the map-search interface."""

    search_inputs: list[str] = Field(
        default_factory=lambda: [
            "#searchboxinput",
            'input[name="q"]',
            'input[aria-label*="検索"]',
            'input[placeholder*="検索"]',
            'input[type="text"]',
        ]
    )
    feed: str = "role=feed"
    listing_link: str = 'a[href*="/maps/place/"]'
    item_role: str = "article"
    end_of_results_text: str = "すべて表示しました"
    detail_address: str = 'button[data-item-id="address"]'
    detail_rating: str = '[role="img"][aria-label*="つ星"]'
    detail_category: str = 'button[jsaction*="category"]'
    detail_hours: str = '[aria-label*="曜日"]'
    address_label_prefixes: list[str] = Field(default_factory=lambda: ["住所: ", "Address: "])

    @field_validator("search_inputs")
    @classmethod
    def _require_inputs(cls, value: list[str]) -> list[str]:
        cleaned = [item for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("search_inputs needs at least one selector")
        return cleaned


class ScrollSettings(BaseModel):
    """Progressive feed loading parameters."""

    max_iterations: int = Field(default=100, ge=1)
    scroll_delta: int = Field(default=5000, gt=0)
    settle_ms: int = Field(default=1500, ge=0)
    stall_limit: int = Field(default=3, ge=1)
    end_marker_timeout_ms: int = Field(default=500, ge=0)


class HarvesterSettings(BaseModel):
    """Global controls shared by every run."""

    headless: bool = True
    start_url: str = "https://www.google.co.jp/maps?hl=ja"
    locale: str = "ja-JP"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    viewport_size: tuple[int, int] = (1920, 1080)
    navigation_timeout_ms: int = Field(default=60000, gt=0)
    element_timeout_ms: int = Field(default=20000, gt=0)
    search_input_timeout_ms: int = Field(default=3000, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_ms: int = Field(default=2000, ge=0)
    detail_max_attempts: int = Field(default=2, ge=1)
    open_settle_ms: int = Field(default=5000, ge=0)
    search_settle_ms: int = Field(default=5000, ge=0)
    detail_settle_ms: int = Field(default=1500, ge=0)
    items_per_worker: int = Field(default=3, ge=1)
    max_workers: int = Field(default=5, ge=1)
    round_delay_ms: int = Field(default=300, ge=0)
    list_text_limit: int = Field(default=300, ge=0)
    output_format: Literal["csv", "json"] = "csv"
    outputs_dir: Path = Field(default=Path("data/outputs"))
    scroll: ScrollSettings = Field(default_factory=ScrollSettings)
    selectors: SelectorConfig = Field(default_factory=SelectorConfig)

    @field_validator("viewport_size", mode="before")
    @classmethod
    def _coerce_viewport(cls, value: Any) -> tuple[int, int]:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            width, height = int(value[0]), int(value[1])
            if width <= 0 or height <= 0:
                raise ValueError("viewport_size values must be positive")
            return (width, height)
        raise ValueError("viewport_size expects two items [width, height]")

    @field_validator("outputs_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)


__all__ = [
    "DAY_ALIASES",
    "FilterConfig",
    "FilterSpec",
    "HarvesterSettings",
    "ScrollSettings",
    "SearchRequest",
    "SelectorConfig",
    "day_token",
    "split_terms",
]
