from __future__ import annotations

import json
import random
from datetime import datetime, timezone

import pytest

from quota_harvester.engine.consolidator import Consolidator
from quota_harvester.engine.exporter import CsvRowExporter
from quota_harvester.engine.models import ChunkManifest, PartialResultSet, Row, WorkChunk
from quota_harvester.errors import ChunkNotFound, EmptyChunk
from quota_harvester.infra import ChunkStore, PartialStore, UserAgentPool
from quota_harvester.infra.storage import format_stamp, parse_chunk_id, parse_partial_name

CREATED = datetime(2024, 5, 1, 10, 30, 15, 123000, tzinfo=timezone.utc)


class RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def warning(self, event: str, **kwargs) -> None:
        self.events.append((event, kwargs))


def manifest(total_chunks: int) -> ChunkManifest:
    return ChunkManifest(total_pages=10, quota=5, total_chunks=total_chunks, generated_at="now")


@pytest.mark.parametrize("identifier", [7, "7", "0007", "chunk_0007", "chunk_0007.txt"])
def test_parse_chunk_id_accepts_common_forms(identifier) -> None:
    assert parse_chunk_id(identifier) == 7


@pytest.mark.parametrize("identifier", ["0", "chunk_", "abc", "-3"])
def test_parse_chunk_id_rejects_garbage(identifier) -> None:
    with pytest.raises(ChunkNotFound):
        parse_chunk_id(identifier)


def test_chunk_store_round_trip(tmp_path) -> None:
    store = ChunkStore(tmp_path / "chunks")
    chunks = [
        WorkChunk(1, ("https://a.test/1", "https://a.test/2")),
        WorkChunk(2, ("https://a.test/3",)),
    ]
    paths = store.write(chunks, manifest(2))
    assert [path.name for path in paths] == ["chunk_0001.txt", "chunk_0002.txt"]
    assert store.load("chunk_0002") == chunks[1]
    assert store.load(1).urls == chunks[0].urls
    assert store.list_sequences() == [1, 2]
    payload = json.loads(store.manifest_path().read_text(encoding="utf-8"))
    assert payload["totalChunks"] == 2
    assert store.read_manifest() == manifest(2)


def test_chunk_store_removes_stale_chunks(tmp_path) -> None:
    store = ChunkStore(tmp_path)
    store.write([WorkChunk(i, (f"https://a.test/{i}",)) for i in range(1, 4)], manifest(3))
    store.write([WorkChunk(1, ("https://a.test/9",))], manifest(1))
    assert store.list_sequences() == [1]
    with pytest.raises(ChunkNotFound):
        store.load(3)


def test_chunk_store_missing_and_empty(tmp_path) -> None:
    store = ChunkStore(tmp_path)
    assert store.read_manifest() is None
    with pytest.raises(ChunkNotFound):
        store.load("0005")
    store.chunk_path(5).write_text("\n  \n", encoding="utf-8")
    with pytest.raises(EmptyChunk):
        store.load("0005")


def test_chunk_store_skips_blank_lines(tmp_path) -> None:
    store = ChunkStore(tmp_path)
    store.chunk_path(2).write_text("https://a.test/1\n\n  https://a.test/2  \n", encoding="utf-8")
    assert store.load("2").urls == ("https://a.test/1", "https://a.test/2")


def test_partial_names_carry_chunk_and_timestamp(tmp_path) -> None:
    store = PartialStore(tmp_path)
    partial = PartialResultSet(3, CREATED, [Row(rank="1", domain="a.example")])
    path = store.write(partial)
    assert path.name == "data_chunk_0003_2024-05-01T10-30-15-123Z.csv"
    assert partial.name == path.name
    assert format_stamp(CREATED) == "2024-05-01T10-30-15-123Z"
    assert parse_partial_name(path.name) == (3, CREATED)


def test_parse_partial_name_tolerates_foreign_files() -> None:
    sequence, created = parse_partial_name("export_2024-01-02T03-04-05.csv")
    assert sequence is None
    assert created == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert parse_partial_name("notes.csv") == (None, None)


def test_partial_store_read_all(tmp_path) -> None:
    store = PartialStore(tmp_path)
    store.write(PartialResultSet(1, CREATED, [Row(rank="1", domain="a.example", owner="Acme")]))
    store.write(PartialResultSet(2, CREATED, []))
    partials = store.read_all()
    assert [partial.chunk_sequence for partial in partials] == [1, 2]
    assert partials[0].rows[0].owner == "Acme"
    assert partials[0].rows[0].unique_id == "1-a.example"
    assert partials[1].rows == []


def test_partial_store_skips_unreadable_files(tmp_path) -> None:
    logger = RecordingLogger()
    store = PartialStore(tmp_path, logger=logger)
    store.write(PartialResultSet(1, CREATED, [Row(rank="1", domain="a.example")]))
    (tmp_path / "data_chunk_0002_broken.csv").write_bytes(b"Rank,Domain\n\xff\xfe\xfa,x\n")
    partials = store.read_all()
    assert len(partials) == 1
    assert [event for event, _ in logger.events] == ["partial_unreadable"]


def test_partial_store_empty_directory(tmp_path) -> None:
    assert PartialStore(tmp_path / "missing").read_all() == []


def test_user_agent_pool_choice_and_refresh(tmp_path) -> None:
    extra = tmp_path / "agents.txt"
    extra.write_text("UA-file\n\n", encoding="utf-8")
    pool = UserAgentPool(["UA-1", " ", "UA-2"], file_path=extra, rng=random.Random(3))
    assert pool.agents == ("UA-1", "UA-2", "UA-file")
    assert pool.get() in pool.agents
    pool.refresh(["only"])
    assert pool.get() == "only"
    assert UserAgentPool().get() is None


def test_failed_partial_write_leaves_no_partial_behind(tmp_path, monkeypatch) -> None:
    store = PartialStore(tmp_path)
    store.write(PartialResultSet(1, CREATED, [Row(rank="1", domain="a.example", owner="Good Owner")]))

    original_export = CsvRowExporter.export

    def export_then_fail(self, record) -> None:
        if self.count:
            raise OSError("No space left on device")
        original_export(self, record)

    monkeypatch.setattr(CsvRowExporter, "export", export_then_fail)
    later = CREATED.replace(day=2)
    rows = [Row(rank="1", domain="a.example"), Row(rank="2", domain="b.example")]
    with pytest.raises(OSError):
        store.write(PartialResultSet(1, later, rows))

    assert [path.name for path in tmp_path.iterdir()] == ["data_chunk_0001_2024-05-01T10-30-15-123Z.csv"]
    (row,) = Consolidator().consolidate(store.read_all()).dataset.rows
    assert row.owner == "Good Owner"


def test_partial_write_is_staged_then_renamed(tmp_path, monkeypatch) -> None:
    seen: list[str] = []
    original_init = CsvRowExporter.__init__

    def recording_init(self, path, *args, **kwargs) -> None:
        seen.append(path.name)
        original_init(self, path, *args, **kwargs)

    monkeypatch.setattr(CsvRowExporter, "__init__", recording_init)
    path = PartialStore(tmp_path).write(PartialResultSet(4, CREATED, []))
    assert seen == [path.name + ".tmp"]
    assert sorted(p.name for p in tmp_path.iterdir()) == [path.name]
