"""Split the page space of the target table into quota-sized chunks."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from ..config import HarvestConfig
from ..errors import InvalidConfiguration
from .models import ChunkManifest, WorkChunk

PAGE_PLACEHOLDER = "{page}"


def build_urls(url_template: str, total_pages: int) -> list[str]:
    """Expand ``{page}`` in the template for pages 1..total_pages."""

    if PAGE_PLACEHOLDER not in url_template:
        raise InvalidConfiguration("url_template must contain a {page} placeholder")
    if total_pages < 1:
        raise InvalidConfiguration(f"total_pages must be >= 1, got {total_pages}")
    return [url_template.replace(PAGE_PLACEHOLDER, str(page)) for page in range(1, total_pages + 1)]


def partition_urls(urls: Sequence[str], quota: int) -> list[WorkChunk]:
    """Cut an ordered URL list into consecutive chunks of at most ``quota``."""

    if quota < 1:
        raise InvalidConfiguration(f"quota must be >= 1, got {quota}")
    if not urls:
        raise InvalidConfiguration("cannot partition an empty URL list")
    return [
        WorkChunk(sequence=index // quota + 1, urls=tuple(urls[index : index + quota]))
        for index in range(0, len(urls), quota)
    ]


def partition(
    total_pages: int,
    quota: int,
    url_template: str = PAGE_PLACEHOLDER,
) -> list[WorkChunk]:
    """Partition pages 1..total_pages into chunks of ``quota`` URLs.

    Page ``i`` lands at position ``(i - 1) % quota`` of chunk
    ``(i - 1) // quota + 1``; only the final chunk may be shorter. With the
    default template each URL is simply the page number.
    """

    if total_pages < 1 or quota < 1:
        raise InvalidConfiguration(
            f"total_pages and quota must both be >= 1 (got {total_pages}, {quota})"
        )
    return partition_urls(build_urls(url_template, total_pages), quota)


def partition_from_config(
    config: HarvestConfig,
    total_pages: int | None = None,
    quota: int | None = None,
) -> tuple[list[WorkChunk], ChunkManifest]:
    """Partition using configured values, optionally overridden, plus a manifest."""

    pages = config.target.total_pages if total_pages is None else total_pages
    size = config.quota if quota is None else quota
    chunks = partition(pages, size, config.target.url_template)
    manifest = ChunkManifest(
        total_pages=pages,
        quota=size,
        total_chunks=len(chunks),
        generated_at=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    )
    return chunks, manifest


__all__ = ["build_urls", "partition", "partition_from_config", "partition_urls"]
