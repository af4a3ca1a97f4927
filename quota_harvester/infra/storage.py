"""File-backed storage for chunk definitions and partial result sets.

Chunks live as ``chunk_NNNN.txt`` (one URL per line) next to a
``manifest.json``. Every chunk run writes its own
``data_chunk_NNNN_<timestamp>.csv``; nothing here ever rewrites a partial
file, so stores are safe to share between independent worker processes.
"""

from __future__ import annotations

import csv
import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from ..engine.exporter import CsvRowExporter
from ..engine.models import ChunkManifest, PartialResultSet, Row, WorkChunk
from ..errors import ChunkNotFound, EmptyChunk

CHUNK_PREFIX = "chunk_"
MANIFEST_FILENAME = "manifest.json"
PARTIAL_PREFIX = "data_chunk_"
TEMP_SUFFIX = ".tmp"

_CHUNK_ID = re.compile(r"^(?:chunk_)?0*(\d+)(?:\.txt)?$")
_PARTIAL_NAME = re.compile(
    r"^data_chunk_(?P<chunk>\d+)_(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2})(?:-(?P<millis>\d{3}))?Z?\.csv$"
)
_TIMESTAMP = re.compile(r"(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2})")


def parse_chunk_id(identifier: str | int) -> int:
    """Accept ``7``, ``"0007"``, ``"chunk_0007"`` or ``"chunk_0007.txt"``."""

    match = _CHUNK_ID.match(str(identifier).strip())
    if not match or int(match.group(1)) < 1:
        raise ChunkNotFound(f"Invalid chunk identifier: {identifier!r}")
    return int(match.group(1))


def format_stamp(moment: datetime) -> str:
    """ISO timestamp with ``:`` and ``.`` replaced so it is safe in file names."""

    moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def parse_partial_name(name: str) -> tuple[int | None, datetime | None]:
    """Recover (chunk sequence, creation time) from a partial file name."""

    match = _PARTIAL_NAME.match(name)
    if match:
        stamp = datetime.strptime(match.group("stamp"), "%Y-%m-%dT%H-%M-%S")
        millis = int(match.group("millis") or 0)
        created = stamp.replace(microsecond=millis * 1000, tzinfo=timezone.utc)
        return int(match.group("chunk")), created
    loose = _TIMESTAMP.search(name)
    if loose:
        created = datetime.strptime(loose.group(1), "%Y-%m-%dT%H-%M-%S").replace(tzinfo=timezone.utc)
        return None, created
    return None, None


class ChunkStore:
    """Read and write chunk definition files plus the manifest."""

    def __init__(self, chunks_dir: Path) -> None:
        self.chunks_dir = chunks_dir

    def chunk_path(self, sequence: int) -> Path:
        return self.chunks_dir / f"{CHUNK_PREFIX}{sequence:04d}.txt"

    def manifest_path(self) -> Path:
        return self.chunks_dir / MANIFEST_FILENAME

    def write(self, chunks: Sequence[WorkChunk], manifest: ChunkManifest) -> list[Path]:
        self.chunks_dir.mkdir(parents=True, exist_ok=True)
        for stale in self.chunks_dir.glob(f"{CHUNK_PREFIX}*.txt"):
            stale.unlink()
        paths: list[Path] = []
        for chunk in chunks:
            path = self.chunk_path(chunk.sequence)
            path.write_text("\n".join(chunk.urls), encoding="utf-8")
            paths.append(path)
        self.manifest_path().write_text(
            json.dumps(manifest.to_json(), indent=2), encoding="utf-8"
        )
        return paths

    def load(self, identifier: str | int) -> WorkChunk:
        sequence = parse_chunk_id(identifier)
        path = self.chunk_path(sequence)
        if not path.exists():
            raise ChunkNotFound(f"Chunk file not found: {path}")
        lines = path.read_text(encoding="utf-8").splitlines()
        urls = tuple(line.strip() for line in lines if line.strip())
        if not urls:
            raise EmptyChunk(f"No URLs found in chunk file: {path}")
        return WorkChunk(sequence=sequence, urls=urls)

    def read_manifest(self) -> ChunkManifest | None:
        path = self.manifest_path()
        if not path.exists():
            return None
        return ChunkManifest.from_json(json.loads(path.read_text(encoding="utf-8")))

    def list_sequences(self) -> list[int]:
        if not self.chunks_dir.exists():
            return []
        sequences = []
        for path in self.chunks_dir.glob(f"{CHUNK_PREFIX}*.txt"):
            match = _CHUNK_ID.match(path.name)
            if match:
                sequences.append(int(match.group(1)))
        return sorted(sequences)


class PartialStore:
    """Persist partial result sets and read them back for consolidation."""

    def __init__(self, partials_dir: Path, logger: structlog.BoundLogger | None = None) -> None:
        self.partials_dir = partials_dir
        self.logger = logger or structlog.get_logger("quota_harvester.storage")

    def path_for(self, chunk_sequence: int, created_at: datetime) -> Path:
        name = f"{PARTIAL_PREFIX}{chunk_sequence:04d}_{format_stamp(created_at)}.csv"
        return self.partials_dir / name

    def write(self, partial: PartialResultSet) -> Path:
        created = partial.created_at or datetime.now(timezone.utc)
        sequence = partial.chunk_sequence if partial.chunk_sequence is not None else 0
        path = self.path_for(sequence, created)
        # staged outside the *.csv glob so a failed write never looks like a partial
        staging = path.with_name(path.name + TEMP_SUFFIX)
        try:
            with CsvRowExporter(staging) as exporter:
                exporter.export_many(row.to_record() for row in partial.rows)
            os.replace(staging, path)
        except BaseException:
            staging.unlink(missing_ok=True)
            raise
        partial.name = path.name
        return path

    def list_paths(self) -> list[Path]:
        if not self.partials_dir.exists():
            return []
        return sorted(p for p in self.partials_dir.glob("*.csv") if p.is_file())

    def read(self, path: Path) -> PartialResultSet:
        chunk_sequence, created_at = parse_partial_name(path.name)
        with path.open("r", encoding="utf-8", newline="") as stream:
            rows = [Row.from_record(record) for record in csv.DictReader(stream)]
        return PartialResultSet(
            chunk_sequence=chunk_sequence, created_at=created_at, rows=rows, name=path.name
        )

    def read_all(self, paths: Iterable[Path] | None = None) -> list[PartialResultSet]:
        partials: list[PartialResultSet] = []
        for path in self.list_paths() if paths is None else paths:
            try:
                partials.append(self.read(path))
            except (OSError, UnicodeDecodeError, csv.Error) as exc:
                self.logger.warning("partial_unreadable", path=str(path), error=str(exc))
        return partials


__all__ = [
    "ChunkStore",
    "PartialStore",
    "format_stamp",
    "parse_chunk_id",
    "parse_partial_name",
]
