"""Final ordering of matched results."""

from __future__ import annotations

from typing import Iterable

from .models import MergedResult


def rank(results: Iterable[MergedResult]) -> list[MergedResult]:
    """Rating descending, then review count descending; ties keep their order."""

    return sorted(results, key=lambda item: (-item.rating, -item.review_count))


__all__ = ["rank"]
