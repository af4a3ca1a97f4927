"""Logging configuration built around structlog JSON logging.

Every process logs to ``<home>/logs/harvester.log``; ERROR events (challenges,
expired sessions, crashed pages) are duplicated into ``error.log`` so an
operator can spot runs that need a fresh session. Each chunk run also gets
``logs/chunks/chunk_NNNN.log``.
"""

from __future__ import annotations

import logging
import logging.config
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import structlog

from .config.loader import default_home

ROOT_LOGGER = "quota_harvester"

# (log directory, verbose) the stdlib handlers were last built for
_configured_for: tuple[Path, bool] | None = None


@dataclass(frozen=True, slots=True)
class LogLayout:
    log_dir: Path

    @classmethod
    def current(cls) -> "LogLayout":
        return cls(default_home() / "logs")

    @property
    def harvester_log(self) -> Path:
        return self.log_dir / "harvester.log"

    @property
    def error_log(self) -> Path:
        return self.log_dir / "error.log"

    @property
    def chunks_dir(self) -> Path:
        return self.log_dir / "chunks"

    def chunk_log(self, chunk_label: str) -> Path:
        return self.chunks_dir / f"chunk_{chunk_label}.log"

    def ensure(self) -> None:
        self.chunks_dir.mkdir(parents=True, exist_ok=True)
        self.harvester_log.touch(exist_ok=True)
        self.error_log.touch(exist_ok=True)


def _file_handler(path: Path, level: str) -> dict:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def configure_logging(verbose: bool | None = None) -> structlog.BoundLogger:
    """Route structlog through stdlib JSON handlers and return the app logger.

    Handlers are rebuilt only when the log directory or verbosity changes;
    ``verbose=None`` keeps whatever verbosity is already in effect.
    """

    global _configured_for
    layout = LogLayout.current()
    layout.ensure()
    if verbose is None:
        verbose = _configured_for[1] if _configured_for else False

    if _configured_for != (layout.log_dir, verbose):
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
                    "harvester_file": _file_handler(layout.harvester_log, "INFO"),
                    "error_file": _file_handler(layout.error_log, "ERROR"),
                },
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console", "harvester_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )
        if _configured_for is None:
            structlog.configure(
                processors=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.stdlib.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                    # JSON rendering happens in the stdlib formatter
                    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
                ],
                logger_factory=structlog.stdlib.LoggerFactory(),
                cache_logger_on_first_use=True,
            )
        _configured_for = (layout.log_dir, verbose)
    return structlog.get_logger(ROOT_LOGGER)


def chunk_logger(chunk_label: str, verbose: bool | None = None) -> structlog.BoundLogger:
    """Logger bound to one chunk; its records also land in the chunk's own file."""

    configure_logging(verbose)
    path = LogLayout.current().chunk_log(chunk_label)

    py_logger = logging.getLogger(f"{ROOT_LOGGER}.chunk.{chunk_label}")
    # one file handler per chunk, pointing at the current home
    for handler in list(py_logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename != str(path):
            py_logger.removeHandler(handler)
            handler.close()
    if not py_logger.handlers:
        file_handler = logging.FileHandler(path, encoding="utf-8")
        root_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if root_handlers:
            file_handler.setFormatter(root_handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(py_logger.name).bind(chunk=chunk_label)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_chunk_logs() -> Iterable[Path]:
    chunks_dir = LogLayout.current().chunks_dir
    if not chunks_dir.exists():
        return []
    return sorted(chunks_dir.glob("chunk_*.log"))


def log_path(chunk_label: str | None = None) -> Path:
    """Chunk log path, or the global log when no chunk is given."""

    layout = LogLayout.current()
    return layout.chunk_log(chunk_label) if chunk_label else layout.harvester_log


__all__ = [
    "LogLayout",
    "available_chunk_logs",
    "chunk_logger",
    "configure_logging",
    "log_path",
    "tail_log",
]
