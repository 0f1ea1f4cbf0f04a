"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Callable, Iterable, MutableMapping

import structlog

_LOGGING_INITIALISED = False

LogSink = Callable[[str, str, dict[str, Any]], None]
"""Callable receiving ``(level, event, fields)`` for every forwarded log event."""


def _default_log_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "logs"


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = log_dir or _default_log_dir()
    error_log = log_dir / "error.log"
    harvester_log = log_dir / "harvester.log"
    log_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    harvester_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.json.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "harvester_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(harvester_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    "maps_harvester": {
                        "handlers": ["console", "harvester_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                *_shared_processors(),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("maps_harvester")


class SinkForwarder:
    """structlog processor handing a copy of each event to a sink."""

    def __init__(self, sink: LogSink) -> None:
        self.sink = sink

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        fields = {
            key: value
            for key, value in event_dict.items()
            if key not in {"event", "level", "timestamp"}
        }
        level = str(event_dict.get("level") or method_name)
        try:
            self.sink(level, str(event_dict.get("event", "")), fields)
        except Exception:  # noqa: BLE001
            # sink errors are logged and dropped
            logging.getLogger("maps_harvester").debug("log_sink_failed", exc_info=True)
        return event_dict


def bind_sink(sink: LogSink, name: str = "maps_harvester.pipeline") -> structlog.BoundLogger:
    """Return a logger that also forwards every event to ``sink``.

    The forwarding chain is private to the returned logger; the global
    structlog configuration is left untouched.
    """

    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=[
            *_shared_processors(),
            SinkForwarder(sink),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_logs(log_dir: Path | None = None) -> Iterable[Path]:
    """Yield available log file paths."""

    directory = log_dir or _default_log_dir()
    if not directory.exists():
        return []
    return sorted(p for p in directory.glob("*.log"))


__all__ = [
    "LogSink",
    "SinkForwarder",
    "available_logs",
    "bind_sink",
    "configure_logging",
    "tail_log",
]
