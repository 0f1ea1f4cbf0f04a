"""Exception hierarchy shared by the harvesting pipeline."""

from __future__ import annotations


class HarvesterError(RuntimeError):
    """Base class for errors raised by Maps Harvester."""


class BrowserInitError(HarvesterError):
    """The browsing session could not be started."""


class SearchError(HarvesterError):
    """A pipeline-critical step failed and the run was aborted."""


class ElementNotFoundError(HarvesterError):
    """None of the candidate selectors matched a visible element."""


class RetryExhaustedError(HarvesterError):
    """An operation kept failing until its attempt budget was spent."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException | None) -> None:
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"{operation} failed after {attempts} attempts{detail}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "BrowserInitError",
    "ElementNotFoundError",
    "HarvesterError",
    "RetryExhaustedError",
    "SearchError",
]
