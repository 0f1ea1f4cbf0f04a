"""Records flowing through the harvesting engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass

UNKNOWN = "Unknown"


@dataclass(frozen=True, slots=True)
class Candidate:
    """Listing summary collected from the search feed."""

    url: str
    name: str = UNKNOWN
    rating: float = 0.0
    review_count: int = 0
    category: str = UNKNOWN
    budget_text: str = ""
    review_snippet: str = ""
    raw_list_text: str = ""


@dataclass(frozen=True, slots=True)
class DetailRecord:
    """Fields read from a listing's detail page."""

    address: str = ""
    category: str = ""
    budget_text: str = ""
    business_hours_text: str = ""
    detail_rating: float = 0.0
    detail_review_count: int = 0


@dataclass(frozen=True, slots=True)
class MergedResult:
    """Candidate enriched with its detail page."""

    url: str
    name: str
    category: str
    rating: float
    review_count: int
    budget_text: str
    business_hours_text: str
    address: str
    review_snippet: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class FilterOutcome:
    passed: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> "FilterOutcome":
        return cls(True, "")

    @classmethod
    def reject(cls, reason: str) -> "FilterOutcome":
        return cls(False, reason or "rejected")


def _known(text: str) -> bool:
    return bool(text) and text != UNKNOWN


def merge(candidate: Candidate, detail: DetailRecord) -> MergedResult:
    """Combine list and detail values; detail wins for positive counts."""

    if _known(candidate.category):
        category = candidate.category
    elif detail.category:
        category = detail.category
    else:
        category = UNKNOWN
    return MergedResult(
        url=candidate.url,
        name=candidate.name,
        category=category,
        rating=detail.detail_rating if detail.detail_rating > 0 else candidate.rating,
        review_count=(
            detail.detail_review_count if detail.detail_review_count > 0 else candidate.review_count
        ),
        budget_text=candidate.budget_text or detail.budget_text or "",
        business_hours_text=detail.business_hours_text,
        address=detail.address,
        review_snippet=candidate.review_snippet,
    )


__all__ = [
    "Candidate",
    "DetailRecord",
    "FilterOutcome",
    "MergedResult",
    "UNKNOWN",
    "merge",
]
