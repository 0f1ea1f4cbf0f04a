"""Engine components: scroll → extract → filter → enrich → rank."""

from .detail import DetailFetcher, parse_detail_payload
from .extractor import CandidateExtractor, ExtractionResult
from .filters import FilterEngine, post_filter, pre_check, pre_filter
from .models import Candidate, DetailRecord, FilterOutcome, MergedResult, merge
from .ranking import rank
from .retry import RetryExecutor
from .scheduler import DetailFetchScheduler, SchedulePlan, ScheduleReport, plan_schedule
from .scroll import ScrollCollector, ScrollReport
from .worker_pool import WorkerPool

__all__ = [
    "Candidate",
    "CandidateExtractor",
    "DetailFetchScheduler",
    "DetailFetcher",
    "DetailRecord",
    "ExtractionResult",
    "FilterEngine",
    "FilterOutcome",
    "MergedResult",
    "RetryExecutor",
    "SchedulePlan",
    "ScheduleReport",
    "ScrollCollector",
    "ScrollReport",
    "WorkerPool",
    "merge",
    "parse_detail_payload",
    "plan_schedule",
    "post_filter",
    "pre_check",
    "pre_filter",
    "rank",
]
