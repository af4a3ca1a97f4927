"""Orchestrator wiring config, storage, driver, engine, runner and consolidator."""

from __future__ import annotations

import os
import random
import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Mapping

from .config import ConfigRepository, HarvestConfig
from .engine import (
    ChunkRunner,
    ChunkRunResult,
    ConsolidationResult,
    Consolidator,
    FetchEngine,
    Pacer,
    PageDriver,
    PlaywrightDriver,
    SessionHandle,
    partition_from_config,
)
from .engine.models import ChunkManifest
from .infra import ChunkStore, PartialStore
from .logging_conf import chunk_logger, configure_logging
from .ui import ProgressReporter

DriverFactory = Callable[[HarvestConfig], PageDriver]


def _playwright_factory(config: HarvestConfig) -> PageDriver:
    return PlaywrightDriver(config.anti_scraping_strategies)


@dataclass(slots=True)
class GenerationResult:
    manifest: ChunkManifest
    chunks_dir: Path
    paths: list[Path]


@dataclass(slots=True)
class ConsolidationReport:
    result: ConsolidationResult
    output: Path


@contextmanager
def stop_on_signals(stop_event: threading.Event) -> Iterator[None]:
    """Set ``stop_event`` on SIGINT/SIGTERM while the block runs.

    Handlers can only be installed from the main thread; elsewhere the block
    runs without them.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, _frame) -> None:
        stop_event.set()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class Orchestrator:
    """Central coordinator for the three CLI workflows."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        driver_factory: DriverFactory | None = None,
        environ: Mapping[str, str] | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.config: HarvestConfig = config_repository.load_config()
        self.driver_factory = driver_factory or _playwright_factory
        self.environ = os.environ if environ is None else environ
        self.stop_event = stop_event or threading.Event()
        self.logger = configure_logging().bind(component="orchestrator")
        self.chunk_store = ChunkStore(config_repository.chunks_dir(self.config))
        self.partial_store = PartialStore(config_repository.partials_dir(self.config), logger=self.logger)

    # ------------------------------------------------------------------
    def generate_chunks(self, total_pages: int | None = None, quota: int | None = None) -> GenerationResult:
        chunks, manifest = partition_from_config(self.config, total_pages=total_pages, quota=quota)
        paths = self.chunk_store.write(chunks, manifest)
        self.logger.info(
            "chunks_generated",
            total_pages=manifest.total_pages,
            quota=manifest.quota,
            total_chunks=manifest.total_chunks,
            directory=str(self.chunk_store.chunks_dir),
        )
        return GenerationResult(manifest=manifest, chunks_dir=self.chunk_store.chunks_dir, paths=paths)

    def chunk_manifest(self) -> ChunkManifest | None:
        return self.chunk_store.read_manifest()

    def chunk_sequences(self) -> list[int]:
        return self.chunk_store.list_sequences()

    def load_session(self) -> SessionHandle:
        session = SessionHandle.from_env(self.config.session.env_var, self.environ)
        if session.empty:
            self.logger.warning("session_empty", env_var=self.config.session.env_var)
        return session

    def run_chunk(
        self,
        identifier: str | int,
        progress_enabled: bool | None = None,
        rng: random.Random | None = None,
    ) -> ChunkRunResult:
        """Run one chunk end to end. Setup errors propagate before any fetch."""

        chunk = self.chunk_store.load(identifier)
        session = self.load_session()

        log = chunk_logger(chunk.label)
        strategies = self.config.anti_scraping_strategies
        rng = rng or random.Random(strategies.random_seed)
        progress_flag = self.config.enable_progress_bar if progress_enabled is None else progress_enabled
        progress = ProgressReporter(enabled=progress_flag, label=f"chunk {chunk.label}")

        driver = self.driver_factory(self.config)
        engine = FetchEngine(self.config, rng=rng, logger=log, stop_event=self.stop_event)
        runner = ChunkRunner(
            engine,
            driver,
            Pacer(strategies.delay_range, rng=rng, stop_event=self.stop_event),
            sink=self.partial_store,
            logger=log,
            progress=progress,
        )
        try:
            with stop_on_signals(self.stop_event):
                return runner.run(chunk, session)
        finally:
            driver.close()

    def consolidate(self, output: Path | None = None) -> ConsolidationReport:
        """Merge every partial on disk; raises ``NoInputData`` when there are none."""

        partials = self.partial_store.read_all()
        consolidator = Consolidator(logger=self.logger)
        result = consolidator.consolidate(partials)
        target = output or self.config_repository.master_output(self.config)
        consolidator.write(result.dataset, target)
        return ConsolidationReport(result=result, output=target)


__all__ = [
    "ConsolidationReport",
    "DriverFactory",
    "GenerationResult",
    "Orchestrator",
    "stop_on_signals",
]
