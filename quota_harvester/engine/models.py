"""Records flowing between partitioner, runner and consolidator."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping

from ..errors import FailureKind

_WHITESPACE_RUN = re.compile(r"\s+")

# (attribute, CSV header) in on-disk column order
ROW_COLUMNS: tuple[tuple[str, str], ...] = (
    ("rank", "Rank"),
    ("domain", "Domain"),
    ("domain_url", "Domain_URL"),
    ("ip_address", "IP_Address"),
    ("ip_address_url", "IP_Address_URL"),
    ("location", "Location"),
    ("owner", "Owner"),
    ("owner_url", "Owner_URL"),
    ("last_update", "Last_Update"),
    ("source_url", "Source_URL"),
    ("scraped_at", "Scraped_At"),
    ("unique_id", "Unique_ID"),
)
CSV_HEADERS: list[str] = [header for _, header in ROW_COLUMNS]


def make_unique_id(rank: str, domain: str) -> str:
    """Identity of a row: ``rank-domain`` with whitespace runs folded to ``-``."""

    return _WHITESPACE_RUN.sub("-", f"{rank}-{domain}")


@dataclass(slots=True)
class Row:
    """One scraped table record. Missing values are empty strings, never None."""

    rank: str = ""
    domain: str = ""
    domain_url: str = ""
    ip_address: str = ""
    ip_address_url: str = ""
    location: str = ""
    owner: str = ""
    owner_url: str = ""
    last_update: str = ""
    source_url: str = ""
    scraped_at: str = ""
    unique_id: str = ""

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                setattr(self, item.name, "")
            elif not isinstance(value, str):
                setattr(self, item.name, str(value))
        if not self.unique_id:
            self.unique_id = make_unique_id(self.rank, self.domain)

    @property
    def is_valid(self) -> bool:
        return bool(self.domain or self.ip_address)

    def to_record(self) -> dict[str, str]:
        return {header: getattr(self, attr) for attr, header in ROW_COLUMNS}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Row":
        """Build a row from a CSV record, tolerating absent columns."""

        values: dict[str, str] = {}
        for attr, header in ROW_COLUMNS:
            raw = record.get(header)
            values[attr] = raw.strip() if isinstance(raw, str) else ("" if raw is None else str(raw))
        return cls(**values)


@dataclass(frozen=True, slots=True)
class WorkChunk:
    """Ordered URLs assigned to one scheduling slot, 1-based sequence."""

    sequence: int
    urls: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.urls)

    @property
    def label(self) -> str:
        return f"{self.sequence:04d}"


@dataclass(frozen=True, slots=True)
class ChunkManifest:
    total_pages: int
    quota: int
    total_chunks: int
    generated_at: str

    def to_json(self) -> dict[str, Any]:
        return {
            "totalPages": self.total_pages,
            "quota": self.quota,
            "totalChunks": self.total_chunks,
            "generatedAt": self.generated_at,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ChunkManifest":
        return cls(
            total_pages=int(payload["totalPages"]),
            quota=int(payload.get("quota", payload.get("chunkSize", 0))),
            total_chunks=int(payload["totalChunks"]),
            generated_at=str(payload.get("generatedAt", "")),
        )


@dataclass(slots=True)
class PartialResultSet:
    """Rows from one chunk run plus the provenance carried in its file name."""

    chunk_sequence: int | None
    created_at: datetime | None
    rows: list[Row] = field(default_factory=list)
    name: str = ""

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(slots=True)
class CanonicalDataset:
    """Deduplicated union of all partial rows, keyed by ``unique_id``."""

    rows: list[Row] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def unique_ids(self) -> set[str]:
        return {row.unique_id for row in self.rows}


@dataclass(frozen=True, slots=True)
class FetchFailure:
    kind: FailureKind
    url: str
    message: str = ""


@dataclass(slots=True)
class FetchOutcome:
    """Either the rows of a page or the reason there are none."""

    url: str
    rows: list[Row] = field(default_factory=list)
    failure: FetchFailure | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None and not self.cancelled

    @classmethod
    def failed(cls, kind: FailureKind, url: str, message: str = "") -> "FetchOutcome":
        return cls(url=url, failure=FetchFailure(kind=kind, url=url, message=message))


__all__ = [
    "CSV_HEADERS",
    "CanonicalDataset",
    "ChunkManifest",
    "FetchFailure",
    "FetchOutcome",
    "PartialResultSet",
    "ROW_COLUMNS",
    "Row",
    "WorkChunk",
    "make_unique_id",
]
