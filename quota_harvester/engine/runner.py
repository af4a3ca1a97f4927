"""Sequential chunk execution with randomized, cancellable pacing."""

from __future__ import annotations

import random
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Protocol

import structlog

from ..errors import FailureKind
from .driver import PageDriver
from .fetcher import FetchEngine
from .models import FetchFailure, PartialResultSet, Row, WorkChunk
from .session import SessionHandle


class PartialSink(Protocol):
    def write(self, partial: PartialResultSet) -> Path:
        """Persist a partial result set and return where it went."""


class ProgressSink(Protocol):
    def start(self, total: int) -> None: ...

    def advance(self, success: bool = False, failed: bool = False, skipped: bool = False, current_url: str | None = None) -> None: ...

    def close(self) -> None: ...


class Pacer:
    """Randomized pause between consecutive fetches.

    The wait returns early when ``stop_event`` is set, so a shutdown signal
    never has to sit out a full interval.
    """

    def __init__(
        self,
        delay_range: tuple[float, float],
        rng: random.Random | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.delay_range = delay_range
        self.rng = rng or random.Random()
        self.stop_event = stop_event or threading.Event()

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def next_delay(self) -> float:
        low, high = self.delay_range
        if high <= 0:
            return 0.0
        return self.rng.uniform(low, high)

    def wait(self) -> bool:
        """Sleep for one drawn interval; False when cancelled."""

        delay = self.next_delay()
        if delay <= 0:
            return not self.cancelled
        return not self.stop_event.wait(delay)

    def cancel(self) -> None:
        self.stop_event.set()


@dataclass(slots=True)
class ChunkRunResult:
    partial: PartialResultSet
    path: Path | None = None
    success: int = 0
    failed: int = 0
    failures: list[FetchFailure] = field(default_factory=list)
    cancelled: bool = False
    not_attempted: int = 0

    @property
    def rows(self) -> int:
        return len(self.partial.rows)

    def failures_by_kind(self) -> dict[FailureKind, int]:
        return dict(Counter(failure.kind for failure in self.failures))


class ChunkRunner:
    """Fetch every URL of one chunk in order, then persist the rows."""

    def __init__(
        self,
        engine: FetchEngine,
        driver: PageDriver,
        pacer: Pacer,
        sink: PartialSink | None = None,
        logger: structlog.BoundLogger | None = None,
        progress: ProgressSink | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.engine = engine
        self.driver = driver
        self.pacer = pacer
        self.sink = sink
        self.logger = logger or structlog.get_logger("quota_harvester.runner")
        self.progress = progress
        self._now = now

    def run(self, chunk: WorkChunk, session: SessionHandle) -> ChunkRunResult:
        rows: list[Row] = []
        failures: list[FetchFailure] = []
        success = 0
        attempted = 0
        cancelled = False

        self.logger.info("chunk_started", chunk=chunk.label, urls=len(chunk))
        if self.progress:
            self.progress.start(len(chunk))
        try:
            for index, url in enumerate(chunk.urls):
                if index > 0 and not self.pacer.wait():
                    cancelled = True
                    break
                if self.pacer.cancelled:
                    cancelled = True
                    break
                outcome = self.engine.fetch(self.driver, session, url)
                if outcome.cancelled:
                    cancelled = True
                    break
                attempted += 1
                if outcome.ok:
                    success += 1
                    rows.extend(outcome.rows)
                else:
                    failures.append(outcome.failure)
                if self.progress:
                    self.progress.advance(success=outcome.ok, failed=not outcome.ok, current_url=url)
        finally:
            if self.progress:
                self.progress.close()

        partial = PartialResultSet(chunk_sequence=chunk.sequence, created_at=self._now(), rows=rows)
        path = self.sink.write(partial) if self.sink else None
        result = ChunkRunResult(
            partial=partial,
            path=path,
            success=success,
            failed=len(failures),
            failures=failures,
            cancelled=cancelled,
            not_attempted=len(chunk) - attempted,
        )
        if cancelled:
            self.logger.warning("chunk_cancelled", chunk=chunk.label, not_attempted=result.not_attempted)
        self.logger.info(
            "chunk_completed",
            chunk=chunk.label,
            success=success,
            failed=result.failed,
            rows=len(rows),
            output=str(path) if path else None,
        )
        return result


__all__ = ["ChunkRunResult", "ChunkRunner", "Pacer"]
