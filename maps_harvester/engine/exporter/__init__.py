"""Result exporters."""

from .base import BaseExporter
from .file_exporter import CSV_COLUMNS, FileExporter

__all__ = ["BaseExporter", "CSV_COLUMNS", "FileExporter"]
