"""Exporter interface for harvested listings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from ..models import MergedResult


class BaseExporter(ABC):
    """Uniform contract shared by every output writer."""

    @abstractmethod
    def export(self, record: MergedResult) -> None:
        """Persist a single result."""

    def export_many(self, records: Iterable[MergedResult]) -> int:
        count = 0
        for record in records:
            self.export(record)
            count += 1
        return count

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "BaseExporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["BaseExporter"]
