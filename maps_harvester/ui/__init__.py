"""Progress reporting."""

from .progress import (
    ProgressEvent,
    ProgressReporter,
    ProgressStage,
    RichProgressListener,
    overall_percent,
)

__all__ = [
    "ProgressEvent",
    "ProgressReporter",
    "ProgressStage",
    "RichProgressListener",
    "overall_percent",
]
