"""Shared fixtures: config builders, temp repositories and a scripted page driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from quota_harvester.config import (
    AntiScrapingStrategies,
    ConfigLocator,
    ConfigRepository,
    HarvestConfig,
    TargetConfig,
)
from quota_harvester.engine.driver import Fingerprint
from quota_harvester.errors import DriverTimeout

TEMPLATE = "https://example.test/browse/{page}"


def table_html(rows: Iterable[Sequence[str]], table_id: str = "sites_tbl") -> str:
    """Render a sites table: header row plus one ``<tr>`` per cell sequence.

    A cell value of the form ``"text|href"`` becomes an anchor.
    """

    body = []
    for cells in rows:
        rendered = []
        for cell in cells:
            if "|" in cell:
                text, href = cell.split("|", 1)
                rendered.append(f'<td><a href="{href}">{text}</a></td>')
            else:
                rendered.append(f"<td>{cell}</td>")
        body.append("<tr>" + "".join(rendered) + "</tr>")
    header = "<tr><th>#</th><th>Domain</th><th>IP</th><th>Location</th><th>Owner</th><th>Updated</th></tr>"
    return f'<html><body><table id="{table_id}">{header}{"".join(body)}</table></body></html>'


@dataclass
class FakePage:
    html: str = ""
    title: str = "Sites"
    resolved_url: str | None = None
    navigation_timeout: bool = False
    table_missing: bool = False
    error: Exception | None = None


@dataclass
class FakePageDriver:
    """In-memory driver serving scripted pages; unknown URLs time out."""

    pages: dict[str, FakePage] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    fingerprint: Fingerprint | None = None
    cookies: list[dict[str, Any]] = field(default_factory=list)
    closed: bool = False
    _current: str | None = None

    def apply_credentials(self, cookies) -> None:
        self.calls.append(("apply_credentials", len(cookies)))
        self.cookies = list(cookies)

    def set_fingerprint(self, fingerprint: Fingerprint) -> None:
        self.calls.append(("set_fingerprint", fingerprint))
        self.fingerprint = fingerprint

    def navigate(self, url: str, timeout_ms: int) -> None:
        self.calls.append(("navigate", url))
        page = self.pages.get(url)
        if page is None or page.navigation_timeout:
            raise DriverTimeout(f"navigation timeout for {url}")
        if page.error is not None:
            raise page.error
        self._current = url

    def _page(self) -> FakePage:
        return self.pages[self._current]

    def current_url(self) -> str:
        page = self._page()
        return page.resolved_url or self._current

    def title(self) -> str:
        return self._page().title

    def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        self.calls.append(("wait_for_element", timeout_ms))
        if self._page().table_missing:
            raise DriverTimeout(f"selector {selector} missing")

    def evaluate(self, script: str) -> Any:
        self.calls.append(("evaluate", script))
        return None

    def content(self) -> str:
        return self._page().html

    def move_mouse(self, x: float, y: float) -> None:
        self.calls.append(("move_mouse", (x, y)))

    def close(self) -> None:
        self.closed = True

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


@pytest.fixture
def sample_config() -> Callable[..., HarvestConfig]:
    def _builder(**overrides: Any) -> HarvestConfig:
        base: dict[str, Any] = {
            "target": TargetConfig(url_template=TEMPLATE, total_pages=120),
            "quota": 50,
            "anti_scraping_strategies": AntiScrapingStrategies(
                delay_range=(0.0, 0.0),
                pre_navigation_delay=(0.0, 0.0),
                settle_delay=(0.0, 0.0),
                random_seed=7,
            ),
            "enable_progress_bar": False,
        }
        base.update(overrides)
        return HarvestConfig(**base)

    return _builder


@pytest.fixture
def fake_driver() -> FakePageDriver:
    return FakePageDriver()


@pytest.fixture
def cookie_payload() -> list[dict[str, Any]]:
    return [
        {"name": "sid", "value": "abc123", "domain": ".example.test", "path": "/", "expires": -1},
        {"name": "pref", "value": "1", "domain": "example.test", "sameSite": "lax", "secure": True},
    ]


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("QUOTA_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def sites_table() -> Callable[..., str]:
    return table_html
