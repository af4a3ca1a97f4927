"""Engine components: partition → fetch → run chunk → consolidate."""

from .models import CanonicalDataset, FetchOutcome, PartialResultSet, Row, WorkChunk
from .partitioner import build_urls, partition, partition_from_config
from .session import SessionHandle
from .driver import Fingerprint, PageDriver, PlaywrightDriver
from .extractor import FieldRule, TableExtractor
from .fetcher import FetchEngine
from .runner import ChunkRunner, ChunkRunResult, Pacer
from .consolidator import ConsolidationResult, Consolidator

__all__ = [
    "CanonicalDataset",
    "ChunkRunResult",
    "ChunkRunner",
    "ConsolidationResult",
    "Consolidator",
    "FetchEngine",
    "FetchOutcome",
    "FieldRule",
    "Fingerprint",
    "PageDriver",
    "PartialResultSet",
    "Pacer",
    "PlaywrightDriver",
    "Row",
    "SessionHandle",
    "TableExtractor",
    "WorkChunk",
    "build_urls",
    "partition",
    "partition_from_config",
]
