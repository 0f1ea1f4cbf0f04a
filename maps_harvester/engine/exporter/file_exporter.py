"""File based exporter writing CSV or JSON lines."""

from __future__ import annotations

import csv
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..models import MergedResult
from .base import BaseExporter

# (column header, MergedResult attribute)
CSV_COLUMNS: tuple[tuple[str, str], ...] = (
    ("name", "name"),
    ("category", "category"),
    ("rating", "rating"),
    ("review_count", "review_count"),
    ("budget", "budget_text"),
    ("business_hours", "business_hours_text"),
    ("address", "address"),
    ("review", "review_snippet"),
    ("url", "url"),
)


def slugify(text: str) -> str:
    # \w also matches CJK characters
    slug = re.sub(r"[^\w-]+", "_", text.strip(), flags=re.UNICODE).strip("_")
    return slug or "search"


class FileExporter(BaseExporter):
    """Write results to ``<slug>-<run_tag>.<ext>`` inside ``output_dir``."""

    def __init__(self, output_dir: Path, label: str, fmt: str = "csv", run_tag: str | None = None) -> None:
        if fmt not in ("csv", "json"):
            raise ValueError(f"Unsupported export format: {fmt}")
        self.output_dir = Path(output_dir)
        self.format = fmt
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        self.path = self.output_dir / f"{slugify(label)}-{self.run_tag}.{self._extension}"
        # CSV output carries a BOM
        encoding = "utf-8-sig" if fmt == "csv" else "utf-8"
        self._file = self.path.open("w", encoding=encoding, newline="")
        self._csv_writer: Optional[Any] = None
        self.count = 0

    @property
    def _extension(self) -> str:
        return "jsonl" if self.format == "json" else "csv"

    def export(self, record: MergedResult) -> None:
        if self.format == "json":
            json.dump(record.as_dict(), self._file, ensure_ascii=False)
            self._file.write("\n")
        else:
            self._ensure_header()
            self._csv_writer.writerow([getattr(record, attr) for _, attr in CSV_COLUMNS])
        self.count += 1

    def _ensure_header(self) -> None:
        if self._csv_writer is None:
            self._csv_writer = csv.writer(self._file)
            self._csv_writer.writerow([header for header, _ in CSV_COLUMNS])

    def flush(self) -> None:
        if self.format == "csv":
            self._ensure_header()
        self._file.flush()

    def close(self) -> None:
        if self._file.closed:
            return
        self.flush()
        self._file.close()


__all__ = ["CSV_COLUMNS", "FileExporter", "slugify"]
