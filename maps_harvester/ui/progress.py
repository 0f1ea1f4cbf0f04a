"""Pipeline progress events and a Rich-based terminal consumer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

import structlog
from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)


class ProgressStage(str, Enum):
    OPENING = "opening"
    SEARCHING = "searching"
    WAITING = "waiting"
    SCROLLING = "scrolling"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    PREFILTERING = "prefiltering"
    PREFILTERED = "prefiltered"
    DETAILS = "details"
    SAVING = "saving"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProgressEvent:
    stage: ProgressStage
    message: str = ""
    current: int | None = None
    total: int | None = None
    percent: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


ProgressListener = Callable[[ProgressEvent], None]

_STAGE_PERCENT: dict[ProgressStage, float] = {
    ProgressStage.OPENING: 5,
    ProgressStage.SEARCHING: 10,
    ProgressStage.WAITING: 15,
    ProgressStage.SCROLLING: 15,
    ProgressStage.EXTRACTING: 15,
    ProgressStage.EXTRACTED: 20,
    ProgressStage.PREFILTERING: 20,
    ProgressStage.PREFILTERED: 30,
    ProgressStage.SAVING: 100,
    ProgressStage.COMPLETED: 100,
}


def overall_percent(event: ProgressEvent) -> int:
    """Map an event onto a 0-100 run-wide scale."""

    if event.stage is ProgressStage.DETAILS:
        within = min(max(event.percent or 0, 0), 100)
        return int(30 + within * 0.65)
    return int(_STAGE_PERCENT.get(event.stage, 0))


class ProgressReporter:
    """Fan events out to listeners; a failing listener never stops the run."""

    def __init__(
        self,
        listeners: Iterable[ProgressListener] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._listeners: list[ProgressListener] = list(listeners or [])
        self.logger = logger or structlog.get_logger("maps_harvester.progress")

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def emit(
        self,
        stage: ProgressStage | str,
        message: str = "",
        current: int | None = None,
        total: int | None = None,
        percent: int | None = None,
        **extra: Any,
    ) -> ProgressEvent:
        event = ProgressEvent(
            stage=ProgressStage(stage),
            message=message,
            current=current,
            total=total,
            percent=percent,
            extra=extra,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("progress_listener_failed", stage=event.stage.value, error=str(exc))
        return event


class RichProgressListener:
    """Single progress bar driven by :func:`overall_percent`."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.last_percent = 0

    def start(self, label: str = "search") -> None:
        if not self.enabled or self._progress is not None:
            return
        if not self.console.is_terminal:
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<12}"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            TextColumn("[dim]{task.description}"),
            console=self.console,
            transient=True,
            expand=True,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            # another live display owns the console
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task("waiting…", total=100, label=label)

    def __call__(self, event: ProgressEvent) -> None:
        self.last_percent = max(self.last_percent, overall_percent(event))
        if self._progress is None or self._task_id is None:
            return
        self._progress.update(
            self._task_id,
            completed=self.last_percent,
            description=event.message or event.stage.value,
        )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.__exit__(None, None, None)
            self._progress = None
            self._task_id = None


__all__ = [
    "ProgressEvent",
    "ProgressListener",
    "ProgressReporter",
    "ProgressStage",
    "RichProgressListener",
    "overall_percent",
]
