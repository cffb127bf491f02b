import base64
import logging
import threading
import time
from typing import Any, Callable
from urllib.parse import quote

import requests

from ..config import Config
from ..sync.errors import FetchError
from ..sync.models import InventoryItem, Source
from .backoff import (
    BackoffGate,
    compute_delay,
    is_retryable_status,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

NOT_FOUND = 404


class GitHubClient:
    """Read-only client for the GitHub git-trees and contents APIs.

    Every request of one client (and every thread using it) shares a single
    ``BackoffGate``, so a rate-limited response pauses all in-flight work
    instead of letting each request retry on its own schedule.
    """

    def __init__(
        self,
        config: Config,
        gate: BackoffGate | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._thread_local = threading.local()
        self.gate = gate or BackoffGate(sleep=sleep)

    @property
    def session(self) -> requests.Session:
        """Accessor for the current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(self._auth_headers())
        return session

    def _auth_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _get(self, url: str, path: str | None = None) -> requests.Response:
        """
        GET *url* with retry and shared backoff.

        Returns the final response, which is either successful or carries
        a non-retryable status (404 included).  Raises ``FetchError`` when
        the retry budget is exhausted.
        """
        max_attempts = self.config.max_attempts
        last_status: int | None = None
        last_error = ""

        for attempt in range(1, max_attempts + 1):
            self.gate.wait()
            try:
                response = self._get_session().get(
                    url,
                    timeout=(
                        self.config.connect_timeout,
                        self.config.read_timeout,
                    ),
                )
            except requests.RequestException as exc:
                last_status = None
                last_error = str(exc)
                retry_after = None
            else:
                if response.ok or not is_retryable_status(
                    response.status_code
                ):
                    return response
                last_status = response.status_code
                last_error = f"HTTP {response.status_code}"
                retry_after = parse_retry_after(
                    response.headers.get("Retry-After")
                )

            if attempt == max_attempts:
                break

            delay = compute_delay(
                attempt,
                retry_after,
                base_delay=self.config.base_delay,
                max_delay=self.config.max_delay,
            )
            logger.warning(
                "Request to %s failed (%s); retry %d/%d in %.1fs",
                url,
                last_error,
                attempt,
                max_attempts - 1,
                delay,
            )
            self.gate.pause(delay)

        raise FetchError(
            f"Giving up on {url} after {max_attempts} attempts: {last_error}",
            status=last_status,
            path=path,
        )

    def _repo_url(self, source: Source) -> str:
        return f"{self.config.api_url.rstrip('/')}/repos/{source.repo}"

    def fetch_inventory(self, source: Source) -> list[InventoryItem]:
        """
        Fetch the full recursive tree listing of *source*'s branch.

        Returns:
            List of InventoryItem (``kind`` is ``blob`` or ``tree``).  A
            malformed payload yields an empty list.

        Raises:
            FetchError: If the listing cannot be fetched or the server
                truncated it.
        """
        url = (
            f"{self._repo_url(source)}/git/trees/"
            f"{quote(source.branch, safe='')}?recursive=1"
        )
        response = self._get(url)
        if not response.ok:
            raise FetchError(
                f"Tree listing for {source.repo}@{source.branch} failed: "
                f"HTTP {response.status_code}",
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Tree listing for %s is not JSON", source.repo)
            return []
        if isinstance(payload, dict) and payload.get("truncated"):
            raise FetchError(
                f"Tree listing for {source.repo}@{source.branch} was "
                "truncated by the server; inventory would be partial"
            )
        return parse_tree(payload)

    def fetch_blob(
        self, source: Source, path: str, ref: str | None = None
    ) -> str | None:
        """
        Fetch the decoded content of one file.

        Args:
            source: Source to fetch from.
            path: Repository path of the file.
            ref: Commit, tag or branch (default: the source branch).

        Returns:
            The UTF-8 content, or ``None`` if the file does not exist.

        Raises:
            FetchError: If retries are exhausted, a non-retryable error
                occurs, or the payload carries no content.
        """
        url = (
            f"{self._repo_url(source)}/contents/{quote(path)}"
            f"?ref={quote(ref or source.branch, safe='')}"
        )
        response = self._get(url, path=path)
        if response.status_code == NOT_FOUND:
            logger.debug("Not found upstream: %s", path)
            return None
        if not response.ok:
            raise FetchError(
                f"Fetching {path} failed: HTTP {response.status_code}",
                status=response.status_code,
                path=path,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        content = decode_content(payload)
        if content is None:
            raise FetchError(
                f"Unexpected contents payload for {path}", path=path
            )
        return content


def parse_tree(payload: Any) -> list[InventoryItem]:
    """Extract ``{path, kind}`` items from a git-trees API payload."""
    if not isinstance(payload, dict):
        return []
    tree = payload.get("tree")
    if not isinstance(tree, list):
        return []

    items: list[InventoryItem] = []
    for item in tree:
        if not isinstance(item, dict):
            continue
        path = item.get("path")
        kind = item.get("type")
        if isinstance(path, str) and isinstance(kind, str):
            items.append(InventoryItem(path=path, kind=kind))
    return items


def decode_content(payload: Any) -> str | None:
    """Decode the base64 ``content`` field of a contents API payload.

    Files over 1 MB come back with ``encoding: "none"`` and empty content;
    those, like any other non-base64 payload, yield ``None``.
    """
    if not isinstance(payload, dict):
        return None
    if payload.get("encoding") != "base64":
        return None
    content = payload.get("content")
    if not isinstance(content, str):
        return None
    try:
        return base64.b64decode(content).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return None
