from __future__ import annotations

from quota_harvester.engine.extractor import DEFAULT_FIELD_RULES, FieldRule, TableExtractor
from quota_harvester.engine.models import CSV_HEADERS, Row, make_unique_id

PAGE = "https://example.test/browse/3"
STAMP = "2024-05-01T10:00:00.000Z"


def test_extracts_fixed_position_cells_with_links(sites_table) -> None:
    html = sites_table(
        [
            [
                "12",
                "example.com|/site/example.com",
                "23.227.38.1|https://example.test/ip/23.227.38.1",
                "United States",
                "Shopify Inc|/owner/shopify",
                "01 May 2024",
            ]
        ]
    )
    rows = TableExtractor().extract(html, "#sites_tbl", PAGE, STAMP)
    assert len(rows) == 1
    row = rows[0]
    assert row.rank == "12"
    assert row.domain == "example.com"
    assert row.domain_url == "https://example.test/site/example.com"
    assert row.ip_address == "23.227.38.1"
    assert row.ip_address_url == "https://example.test/ip/23.227.38.1"
    assert row.location == "United States"
    assert row.owner == "Shopify Inc"
    assert row.owner_url == "https://example.test/owner/shopify"
    assert row.last_update == "01 May 2024"
    assert row.source_url == PAGE
    assert row.scraped_at == STAMP
    assert row.unique_id == "12-example.com"


def test_row_with_only_ip_is_kept_and_empty_row_dropped(sites_table) -> None:
    html = sites_table(
        [
            ["1", "", "10.0.0.1", "", "", ""],
            ["2", "", "", "Nowhere", "Nobody", ""],
        ]
    )
    rows = TableExtractor().extract(html, "#sites_tbl", PAGE, STAMP)
    assert [row.ip_address for row in rows] == ["10.0.0.1"]
    assert rows[0].domain == ""


def test_missing_cells_resolve_to_empty_strings(sites_table) -> None:
    rows = TableExtractor().extract(sites_table([["5", "short.example"]]), "#sites_tbl", PAGE, STAMP)
    record = rows[0].to_record()
    assert list(record) == CSV_HEADERS
    assert record["Location"] == ""
    assert record["Owner_URL"] == ""
    assert None not in record.values()


def test_empty_rank_gets_row_placeholder(sites_table) -> None:
    html = sites_table([["1", "a.example"], ["", "b.example"]])
    rows = TableExtractor().extract(html, "#sites_tbl", PAGE, STAMP)
    assert rows[1].rank == "row-2"
    assert rows[1].unique_id == "row-2-b.example"


def test_unique_id_folds_whitespace() -> None:
    assert make_unique_id("12", "example.com") == "12-example.com"
    assert make_unique_id("7", "my  site\t.com") == "7-my-site-.com"
    assert " " not in Row(rank="3", domain="two words").unique_id


def test_missing_table_yields_no_rows(sites_table) -> None:
    extractor = TableExtractor()
    html = "<html><body><p>nothing</p></body></html>"
    assert extractor.extract(html, "#sites_tbl", PAGE, STAMP) == []
    assert extractor.extract(sites_table([]), "#sites_tbl", PAGE, STAMP) == []


def test_rules_are_data_so_columns_can_move(sites_table) -> None:
    rules = dict(DEFAULT_FIELD_RULES)
    rules["domain"] = (FieldRule(2),)
    rules["ip_address"] = (FieldRule(1),)
    html = sites_table([["9", "10.1.1.1", "moved.example"]])
    row = TableExtractor(rules).extract(html, "#sites_tbl", PAGE, STAMP)[0]
    assert row.domain == "moved.example"
    assert row.ip_address == "10.1.1.1"


def test_link_text_fallback_when_cell_text_is_empty(sites_table) -> None:
    rule_chain = (FieldRule(0, "span.hidden"), FieldRule(0, "a"))
    html = sites_table([["anchor.example|/x"]])
    extractor = TableExtractor({"domain": rule_chain})
    assert extractor.extract(html, "#sites_tbl", PAGE, STAMP)[0].domain == "anchor.example"
