"""CSV exporter writing the fixed row schema."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Sequence

from ..models import CSV_HEADERS
from .base import BaseExporter


class CsvRowExporter(BaseExporter):
    """Write records to a UTF-8 CSV file with a stable column order.

    The header is written as soon as the file is opened so that an export
    with zero records still yields a readable file.
    """

    def __init__(self, path: Path, fieldnames: Sequence[str] = CSV_HEADERS) -> None:
        self.path = path
        self.fieldnames = list(fieldnames)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.DictWriter(
            self._file, fieldnames=self.fieldnames, extrasaction="ignore", restval=""
        )
        self._writer.writeheader()
        self.count = 0

    def export(self, record: dict) -> None:
        self._writer.writerow(record)
        self.count += 1

    def flush(self) -> None:
        if not self._file.closed:
            self._file.flush()

    def close(self) -> None:
        self._file.close()


__all__ = ["CsvRowExporter"]
