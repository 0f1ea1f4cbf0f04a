"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    FilterConfig,
    FilterSpec,
    HarvesterSettings,
    ScrollSettings,
    SearchRequest,
    SelectorConfig,
    day_token,
    split_terms,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "FilterConfig",
    "FilterSpec",
    "HarvesterSettings",
    "ScrollSettings",
    "SearchRequest",
    "SelectorConfig",
    "day_token",
    "split_terms",
]
