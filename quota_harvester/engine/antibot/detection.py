"""Classify loaded pages that are not the data page."""

from __future__ import annotations

from dataclasses import dataclass

from ...config import DetectionConfig
from ...errors import FailureKind


def _contains_any(haystack: str, markers: list[str], fold_case: bool = False) -> str | None:
    if fold_case:
        haystack = haystack.lower()
    for marker in markers:
        needle = marker.lower() if fold_case else marker
        if needle and needle in haystack:
            return marker
    return None


@dataclass(slots=True)
class PageVerdict:
    kind: FailureKind
    marker: str

    @property
    def message(self) -> str:
        return f"{self.kind.value}: matched {self.marker!r}"


class PageInspector:
    """Match title and resolved URL against challenge and login markers.

    Title markers are matched case-sensitively, URL markers
    case-insensitively. Challenges are checked first: a verification page
    reached through a login redirect is still a challenge.
    """

    def __init__(self, config: DetectionConfig | None = None) -> None:
        self.config = config or DetectionConfig()

    def inspect(self, title: str, url: str) -> PageVerdict | None:
        title = title or ""
        url = url or ""
        marker = _contains_any(title, self.config.challenge_title_markers) or _contains_any(
            url, self.config.challenge_url_markers, fold_case=True
        )
        if marker:
            return PageVerdict(FailureKind.CHALLENGE_DETECTED, marker)
        marker = _contains_any(url, self.config.login_url_markers, fold_case=True) or _contains_any(
            title, self.config.login_title_markers
        )
        if marker:
            return PageVerdict(FailureKind.SESSION_EXPIRED, marker)
        return None


__all__ = ["PageInspector", "PageVerdict"]
