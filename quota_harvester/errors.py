"""Error taxonomy shared by the harvester components.

Setup errors abort a whole invocation before any page is fetched. Per-page
problems are never raised: the fetch engine reports them as a ``FailureKind``
inside a ``FetchFailure`` value so the chunk runner can count them and move on.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Why a single page fetch produced no rows."""

    TIMEOUT = "timeout"
    CHALLENGE_DETECTED = "challenge_detected"
    SESSION_EXPIRED = "session_expired"
    TABLE_NOT_FOUND = "table_not_found"
    UNKNOWN = "unknown"

    @property
    def needs_operator(self) -> bool:
        """True when the condition cannot be fixed by the process itself."""

        return self in (FailureKind.CHALLENGE_DETECTED, FailureKind.SESSION_EXPIRED)


class HarvestError(Exception):
    """Base class for every harvester exception."""


class SetupError(HarvestError):
    """Raised before any network activity when a run cannot start."""


class InvalidConfiguration(SetupError):
    """Partition parameters or configuration values are unusable."""


class InvalidSession(SetupError):
    """The encoded credential bundle is missing or malformed."""


class ChunkNotFound(SetupError):
    """No chunk file exists for the requested identifier."""


class EmptyChunk(SetupError):
    """The chunk file exists but lists no URLs."""


class NoInputData(HarvestError):
    """Consolidation was asked to merge zero partial result sets."""


class DriverTimeout(HarvestError):
    """A bounded wait inside a page driver elapsed."""


__all__ = [
    "ChunkNotFound",
    "DriverTimeout",
    "EmptyChunk",
    "FailureKind",
    "HarvestError",
    "InvalidConfiguration",
    "InvalidSession",
    "NoInputData",
    "SetupError",
]
