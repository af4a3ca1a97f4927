"""Merge partial result sets into the canonical dataset."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import structlog

from ..errors import NoInputData
from .exporter import CsvRowExporter
from .models import CanonicalDataset, PartialResultSet, Row, make_unique_id

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class ConsolidationResult:
    dataset: CanonicalDataset
    partials: int
    input_rows: int

    @property
    def output_rows(self) -> int:
        return len(self.dataset)

    @property
    def duplicates_removed(self) -> int:
        return self.input_rows - self.output_rows


def _fold_key(partial: PartialResultSet) -> tuple:
    created = partial.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    sequence = partial.chunk_sequence if partial.chunk_sequence is not None else -1
    return (created is not None, created or _EPOCH, sequence, partial.name)


def row_key(row: Row) -> str:
    return row.unique_id or make_unique_id(row.rank, row.domain)


class Consolidator:
    """Last-writer-wins reduction keyed by ``unique_id``.

    Partials are folded oldest first, so the row from the newest partial
    survives. Partials without a timestamp sort before every stamped one;
    ties fall back to chunk sequence then file name, which keeps reruns
    deterministic. Output keeps the order in which identities were first seen.
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("quota_harvester.consolidator")

    def consolidate(self, partials: Sequence[PartialResultSet]) -> ConsolidationResult:
        if not partials:
            raise NoInputData("No partial result sets to consolidate")

        merged: dict[str, Row] = {}
        input_rows = 0
        for partial in sorted(partials, key=_fold_key):
            for row in partial.rows:
                input_rows += 1
                merged[row_key(row)] = row

        result = ConsolidationResult(
            dataset=CanonicalDataset(rows=list(merged.values())),
            partials=len(partials),
            input_rows=input_rows,
        )
        self.logger.info(
            "consolidation_completed",
            partials=result.partials,
            input_rows=result.input_rows,
            output_rows=result.output_rows,
            duplicates_removed=result.duplicates_removed,
        )
        return result

    def write(self, dataset: CanonicalDataset, path: Path) -> Path:
        with CsvRowExporter(path) as exporter:
            exporter.export_many(row.to_record() for row in dataset.rows)
        self.logger.info("dataset_written", path=str(path), rows=len(dataset))
        return path


__all__ = ["ConsolidationResult", "Consolidator", "row_key"]
