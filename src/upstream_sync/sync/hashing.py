"""Content fingerprints for tracked definitions.

Hashes are SHA-256 over the raw UTF-8 content with no normalisation, so
they stay comparable with hashes already persisted in manifests.

Multi-file definitions hash their declared files in sorted order joined by
a NUL separator.  The order in which files were listed or fetched never
affects the result.  If any declared file has no content, no hash is
produced: a hash over a partial file set would misclassify drift.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping

from .errors import MissingContentError
from .keys import join_upstream_path
from .models import DefinitionError, Manifest, ManifestEntry

FILE_SEPARATOR = "\0"


def hash_content(content: str) -> str:
    """Return the SHA-256 hex digest of *content*."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def entry_content_paths(entry: ManifestEntry) -> list[str]:
    """Return the upstream paths whose content makes up *entry*."""
    if entry.declared_files:
        return [
            join_upstream_path(entry.upstream_path, f)
            for f in sorted(entry.declared_files)
        ]
    return [entry.upstream_path]


def compute_entry_hash(
    entry: ManifestEntry,
    contents: Mapping[str, str],
    errors: list[DefinitionError],
    key: str | None = None,
    failures: Mapping[str, str] | None = None,
) -> str | None:
    """Compute the upstream fingerprint of one definition.

    Args:
        entry: Manifest entry of the definition.
        contents: Upstream path to content for every fetched blob.
        errors: Receives one ``DefinitionError`` per missing path.
        key: Definition key, used to attribute errors.
        failures: Paths whose fetch failed, mapped to the failure message;
            these are reported as ``fetch`` errors rather than
            ``missing_content``.

    Returns:
        The hex digest, or ``None`` if any required content is missing.
    """
    failed = failures or {}
    parts: list[str] = []
    missing = False

    for path in entry_content_paths(entry):
        content = contents.get(path)
        if content is None:
            missing = True
            if path in failed:
                errors.append(
                    DefinitionError(
                        kind="fetch",
                        key=key,
                        path=path,
                        message=failed[path],
                    )
                )
            else:
                errors.append(
                    DefinitionError(
                        kind=MissingContentError.kind,
                        key=key,
                        path=path,
                        message=str(MissingContentError(path)),
                    )
                )
            continue
        parts.append(content)

    if missing:
        return None
    return hash_content(FILE_SEPARATOR.join(parts))


def required_content_paths(
    manifest: Manifest, upstream_keys: Iterable[str]
) -> list[str]:
    """List the blob paths needed to hash tracked upstream definitions.

    Definitions absent from the manifest, and wildcard-overridden ones,
    need no content.

    Returns:
        Sorted, de-duplicated list of repository paths.
    """
    paths: set[str] = set()
    for key in upstream_keys:
        entry = manifest.definitions.get(key)
        if entry is None or entry.has_wildcard_override():
            continue
        paths.update(entry_content_paths(entry))
    return sorted(paths)
