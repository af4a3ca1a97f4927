import csv

from quota_harvester.engine.exporter import CsvRowExporter
from quota_harvester.engine.models import CSV_HEADERS, Row


def test_csv_exporter_writes_header_without_records(tmp_path):
    path = tmp_path / "nested" / "empty.csv"
    with CsvRowExporter(path) as exporter:
        pass
    assert exporter.count == 0
    assert path.read_text(encoding="utf-8").splitlines() == [",".join(CSV_HEADERS)]


def test_csv_exporter_keeps_column_order(tmp_path):
    path = tmp_path / "rows.csv"
    with CsvRowExporter(path) as exporter:
        exporter.export(Row(rank="1", domain="a.example", owner="Acme").to_record())
        exporter.export({"Domain": "b.example", "Rank": "2", "Extra": "ignored"})
    with path.open(encoding="utf-8", newline="") as stream:
        rows = list(csv.reader(stream))
    assert rows[0] == CSV_HEADERS
    assert rows[1][:2] == ["1", "a.example"]
    assert rows[2][:2] == ["2", "b.example"]
    assert len(rows[2]) == len(CSV_HEADERS)
    assert exporter.count == 2


def test_csv_exporter_quotes_special_characters(tmp_path):
    path = tmp_path / "quoted.csv"
    owner = 'Big, "Quoted"\nOwner'
    with CsvRowExporter(path) as exporter:
        exporter.export(Row(rank="1", domain="a.example", owner=owner).to_record())
    with path.open(encoding="utf-8", newline="") as stream:
        (record,) = list(csv.DictReader(stream))
    assert record["Owner"] == owner
