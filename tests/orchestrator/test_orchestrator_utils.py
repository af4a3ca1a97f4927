from __future__ import annotations

import csv
import threading
import time

import pytest

from quota_harvester.config import AntiScrapingStrategies
from quota_harvester.engine.session import SessionHandle
from quota_harvester.errors import ChunkNotFound, FailureKind, InvalidSession, NoInputData
from quota_harvester.orchestrator import Orchestrator, stop_on_signals

from conftest import TEMPLATE, FakePage, FakePageDriver, table_html


def scripted_pages(total: int) -> dict[str, FakePage]:
    pages = {}
    for page in range(1, total + 1):
        url = TEMPLATE.replace("{page}", str(page))
        pages[url] = FakePage(html=table_html([[str(page), f"site{page}.example", f"10.0.0.{page % 250}"]]))
    return pages


class DriverFactory:
    def __init__(self, pages: dict[str, FakePage]) -> None:
        self.pages = pages
        self.drivers: list[FakePageDriver] = []

    def __call__(self, config) -> FakePageDriver:
        driver = FakePageDriver(dict(self.pages))
        self.drivers.append(driver)
        return driver


@pytest.fixture
def session_env(cookie_payload) -> dict[str, str]:
    return {"SESSION_DATA": SessionHandle.from_cookies(cookie_payload).encode()}


@pytest.fixture
def make_orchestrator(temp_config_repository, sample_config):
    def _builder(factory=None, environ=None, **overrides) -> Orchestrator:
        temp_config_repository.save_config(sample_config(**overrides))
        return Orchestrator(
            config_repository=temp_config_repository,
            driver_factory=factory or DriverFactory(scripted_pages(120)),
            environ=environ if environ is not None else {},
        )

    return _builder


def test_generate_chunks_writes_files_and_manifest(make_orchestrator) -> None:
    orchestrator = make_orchestrator()
    generated = orchestrator.generate_chunks()
    assert generated.manifest.total_chunks == 3
    assert [path.name for path in generated.paths] == ["chunk_0001.txt", "chunk_0002.txt", "chunk_0003.txt"]
    assert orchestrator.chunk_manifest() == generated.manifest
    last = orchestrator.chunk_store.load("chunk_0003")
    assert last.urls[0] == "https://example.test/browse/101"
    assert len(last) == 20


def test_generate_chunks_overrides(make_orchestrator) -> None:
    generated = make_orchestrator().generate_chunks(total_pages=10, quota=4)
    assert generated.manifest.total_chunks == 3
    assert generated.manifest.quota == 4


def test_run_chunk_writes_partial(make_orchestrator, session_env) -> None:
    factory = DriverFactory(scripted_pages(120))
    orchestrator = make_orchestrator(factory=factory, environ=session_env)
    orchestrator.generate_chunks()
    result = orchestrator.run_chunk("3", progress_enabled=False)
    assert result.success == 20
    assert result.failed == 0
    assert result.path.parent == orchestrator.partial_store.partials_dir
    assert result.path.name.startswith("data_chunk_0003_")
    (driver,) = factory.drivers
    assert driver.closed
    assert driver.count("apply_credentials") == 1


def test_run_chunk_counts_page_failures(make_orchestrator, session_env) -> None:
    pages = scripted_pages(10)
    pages[TEMPLATE.replace("{page}", "2")] = FakePage(title="Security Check")
    orchestrator = make_orchestrator(factory=DriverFactory(pages), environ=session_env)
    orchestrator.generate_chunks(total_pages=12, quota=12)
    result = orchestrator.run_chunk(1)
    assert result.success == 9
    assert result.failures_by_kind() == {FailureKind.CHALLENGE_DETECTED: 1, FailureKind.TIMEOUT: 2}


def test_run_chunk_without_session_fails_before_browser(make_orchestrator) -> None:
    factory = DriverFactory({})
    orchestrator = make_orchestrator(factory=factory)
    orchestrator.generate_chunks()
    with pytest.raises(InvalidSession):
        orchestrator.run_chunk("0001")
    assert factory.drivers == []


def test_run_unknown_chunk_fails_before_browser(make_orchestrator, session_env) -> None:
    factory = DriverFactory({})
    orchestrator = make_orchestrator(factory=factory, environ=session_env)
    orchestrator.generate_chunks()
    with pytest.raises(ChunkNotFound):
        orchestrator.run_chunk("0009")
    assert factory.drivers == []


def test_consolidate_end_to_end(make_orchestrator, session_env, tmp_path) -> None:
    orchestrator = make_orchestrator(environ=session_env)
    orchestrator.generate_chunks()
    for label in ("0001", "0002", "0003"):
        orchestrator.run_chunk(label, progress_enabled=False)
    output = tmp_path / "exports" / "master.csv"
    report = orchestrator.consolidate(output=output)
    assert report.output == output
    assert report.result.partials == 3
    assert report.result.output_rows == 120
    assert report.result.duplicates_removed == 0
    with output.open(encoding="utf-8", newline="") as stream:
        records = list(csv.DictReader(stream))
    assert len({record["Unique_ID"] for record in records}) == 120


def test_consolidate_without_partials(make_orchestrator) -> None:
    with pytest.raises(NoInputData):
        make_orchestrator().consolidate()


def test_stop_on_signals_outside_main_thread_is_noop() -> None:
    event = threading.Event()
    errors: list[BaseException] = []

    def _worker() -> None:
        try:
            with stop_on_signals(event):
                pass
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    thread = threading.Thread(target=_worker)
    thread.start()
    thread.join()
    assert errors == []
    assert not event.is_set()


def test_stop_signal_interrupts_page_pauses(make_orchestrator, session_env) -> None:
    holder: dict[str, Orchestrator] = {}

    class StopOnFirstPage(FakePageDriver):
        def navigate(self, url: str, timeout_ms: int) -> None:
            super().navigate(url, timeout_ms)
            holder["orchestrator"].stop_event.set()

    orchestrator = make_orchestrator(
        factory=lambda config: StopOnFirstPage(scripted_pages(120)),
        environ=session_env,
        anti_scraping_strategies=AntiScrapingStrategies(
            delay_range=(0, 0), pre_navigation_delay=(0, 0), settle_delay=(30, 30), random_seed=3
        ),
    )
    holder["orchestrator"] = orchestrator
    orchestrator.generate_chunks()
    started = time.monotonic()
    result = orchestrator.run_chunk("0001", progress_enabled=False)
    assert time.monotonic() - started < 5
    assert result.cancelled
    assert result.success == 1
    assert result.not_attempted == 49
    assert result.path.exists()
