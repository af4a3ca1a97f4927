"""Table extraction driven by ordered per-field rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from .models import Row


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Read one value from a cell of the row.

    ``selector`` narrows to a descendant of the cell (``None`` means the cell
    itself). ``mode`` is ``"text"`` or ``"attr:<name>"``; ``href`` attributes
    are resolved against the page URL.
    """

    cell: int
    selector: str | None = None
    mode: str = "text"

    def read(self, cells: Sequence[Node], base_url: str) -> str:
        if self.cell >= len(cells):
            return ""
        node = cells[self.cell]
        if self.selector:
            node = node.css_first(self.selector)
            if node is None:
                return ""
        if self.mode.startswith("attr:"):
            attr = self.mode.split(":", 1)[1]
            value = (node.attributes.get(attr) or "").strip()
            if value and attr == "href":
                return urljoin(base_url, value)
            return value
        return node.text(separator=" ", strip=True)


# Column order of the sites table: rank, domain, ip, location, owner, last update
DEFAULT_FIELD_RULES: dict[str, tuple[FieldRule, ...]] = {
    "rank": (FieldRule(0),),
    "domain": (FieldRule(1), FieldRule(1, "a")),
    "domain_url": (FieldRule(1, "a", "attr:href"),),
    "ip_address": (FieldRule(2), FieldRule(2, "a")),
    "ip_address_url": (FieldRule(2, "a", "attr:href"),),
    "location": (FieldRule(3),),
    "owner": (FieldRule(4), FieldRule(4, "a")),
    "owner_url": (FieldRule(4, "a", "attr:href"),),
    "last_update": (FieldRule(5),),
}


class TableExtractor:
    """Turn the rendered data table into validated rows."""

    def __init__(self, rules: Mapping[str, Sequence[FieldRule]] | None = None) -> None:
        self.rules = dict(rules or DEFAULT_FIELD_RULES)

    def extract(self, html: str, selector: str, page_url: str, scraped_at: str) -> list[Row]:
        """Rows after the header of the first ``selector`` match.

        Rows with neither domain nor IP address are dropped.
        """

        table = HTMLParser(html).css_first(selector)
        if table is None:
            return []
        rows: list[Row] = []
        for index, tr in enumerate(table.css("tr")[1:], start=1):
            cells = tr.css("td, th")
            values = {name: self._resolve(rules, cells, page_url) for name, rules in self.rules.items()}
            if not values.get("rank"):
                values["rank"] = f"row-{index}"
            row = Row(source_url=page_url, scraped_at=scraped_at, **values)
            if row.is_valid:
                rows.append(row)
        return rows

    @staticmethod
    def _resolve(rules: Sequence[FieldRule], cells: Sequence[Node], base_url: str) -> str:
        for rule in rules:
            value = rule.read(cells, base_url)
            if value:
                return value
        return ""


__all__ = ["DEFAULT_FIELD_RULES", "FieldRule", "TableExtractor"]
