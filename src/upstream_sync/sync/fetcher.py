"""Concurrent blob retrieval on top of a content source.

``ContentSource`` is the interface the engine consumes; ``GitHubClient``
implements it, and tests substitute in-memory fakes.  ``fetch_blobs`` runs
the blocking ``fetch_blob`` calls in worker threads bounded by a semaphore.
Rate limiting is coordinated by the source itself (``GitHubClient`` shares
one ``BackoffGate`` across threads), so concurrent fetches never back off
independently.

A failure of one blob is recorded in ``BlobBatch.failures`` and does not
affect the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from pydantic import BaseModel

from ..core.async_utils import gather_limited, run_sync_limited
from .errors import FetchError
from .models import InventoryItem, Source

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Remote content interface consumed by the check engine."""

    def fetch_inventory(self, source: Source) -> list[InventoryItem]: ...

    def fetch_blob(
        self, source: Source, path: str, ref: str | None = None
    ) -> str | None: ...


class BlobBatch(BaseModel):
    """Result of fetching a set of blobs.

    Attributes:
        contents: Path to decoded content for every blob found.
        not_found: Paths the source reported as absent.
        failures: Path to error message for fetches that failed.
    """

    contents: dict[str, str] = {}
    not_found: list[str] = []
    failures: dict[str, str] = {}

    model_config = {"frozen": True}


async def fetch_blobs_async(
    client: ContentSource,
    source: Source,
    paths: list[str],
    max_parallel: int = 5,
    ref: str | None = None,
) -> BlobBatch:
    """Fetch *paths* concurrently, at most *max_parallel* at a time."""
    semaphore = asyncio.Semaphore(max_parallel)

    async def _one(path: str) -> tuple[str, str | None, str | None]:
        try:
            content = await run_sync_limited(
                semaphore, client.fetch_blob, source, path, ref
            )
        except FetchError as exc:
            logger.error("Fetch failed for %s: %s", path, exc)
            return path, None, str(exc)
        return path, content, None

    results = await gather_limited([_one(p) for p in paths])

    contents: dict[str, str] = {}
    not_found: list[str] = []
    failures: dict[str, str] = {}
    for path, content, error in results:
        if error is not None:
            failures[path] = error
        elif content is None:
            not_found.append(path)
        else:
            contents[path] = content

    return BlobBatch(
        contents=contents, not_found=sorted(not_found), failures=failures
    )


def fetch_blobs(
    client: ContentSource,
    source: Source,
    paths: list[str],
    max_parallel: int = 5,
    ref: str | None = None,
) -> BlobBatch:
    """Blocking wrapper around ``fetch_blobs_async``.

    Must not be called from a thread that is already running an event
    loop; async callers should use ``fetch_blobs_async`` or run the
    whole check via ``run_sync``.
    """
    if not paths:
        return BlobBatch()
    return asyncio.run(
        fetch_blobs_async(client, source, paths, max_parallel, ref)
    )


def inventory_paths(items: list[InventoryItem]) -> list[str]:
    """Return the blob paths of an inventory, in listing order."""
    return [item.path for item in items if item.kind == "blob"]
