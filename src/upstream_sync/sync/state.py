"""Manifest persistence layer.

Reads and writes the JSON manifest that records where each imported
definition came from, its upstream fingerprint, and the rewrites and
manual overrides applied to it.

Key design choices:

* **Fail-closed reads** -- ``read()`` returns ``None`` for a missing file,
  invalid JSON, or any schema violation.  A partially valid manifest is
  never returned; callers treat ``None`` as "cannot proceed", not as an
  empty manifest.
* **Schema in the models** -- validation is the Pydantic models in
  ``models.py``.  Legacy shapes (for example overrides stored as bare
  field-name strings) are rejected rather than coerced.
* **Atomic writes** -- ``write()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.  Writes do not
  re-validate; validation is the read-time gate.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import ManifestValidationError
from .models import Manifest

logger = logging.getLogger(__name__)


class ManifestStore:
    """Load, validate, and save the sync manifest."""

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate(data: Any) -> Manifest:
        """Validate parsed JSON against the manifest schema.

        Raises:
            ManifestValidationError: If *data* is not a valid manifest.
        """
        if not isinstance(data, dict):
            raise ManifestValidationError(
                f"manifest root must be an object, got {type(data).__name__}"
            )
        try:
            return Manifest.model_validate(data)
        except ValidationError as exc:
            raise ManifestValidationError(
                f"manifest failed schema validation: {exc}"
            ) from exc

    @staticmethod
    def is_valid(data: Any) -> bool:
        """Return ``True`` if *data* is a valid manifest."""
        try:
            ManifestStore.validate(data)
        except ManifestValidationError:
            return False
        return True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def read(self, path: Path | str) -> Manifest | None:
        """Load and validate the manifest at *path*.

        Returns:
            The manifest, or ``None`` if the file is missing, is not JSON,
            or fails validation.
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot read manifest %s: %s", path, exc)
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Manifest %s: invalid JSON (%s)", path, exc)
            return None

        try:
            return self.validate(data)
        except ManifestValidationError as exc:
            logger.warning(
                "Manifest %s: schema validation failed: %s", path, exc
            )
            return None

    def write(self, path: Path | str, manifest: Manifest) -> None:
        """Persist *manifest* to *path* atomically.

        Output is two-space indented JSON with a trailing newline, using the
        persisted key names.  Fields that were never set are omitted so a
        read/write round trip preserves the file's shape.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = (
            json.dumps(
                manifest.model_dump(by_alias=True, exclude_unset=True),
                indent=2,
                ensure_ascii=False,
            )
            + "\n"
        )

        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp_path, path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


# ----------------------------------------------------------------------
# Manifest queries
# ----------------------------------------------------------------------


def find_stale_entries(
    manifest: Manifest, existing_keys: list[str]
) -> list[str]:
    """Return manifest keys not present in *existing_keys*."""
    existing = set(existing_keys)
    return [key for key in manifest.definitions if key not in existing]


def list_definitions_by_source(
    manifest: Manifest, source_id: str
) -> list[str]:
    """Return the sorted keys of definitions imported from *source_id*."""
    return sorted(
        key
        for key, entry in manifest.definitions.items()
        if entry.source == source_id
    )


def get_upstream_hashes(
    manifest: Manifest, source_id: str
) -> dict[str, str]:
    """Return ``{key: upstream_content_hash}`` for *source_id*.

    Definitions without a recorded hash are omitted.
    """
    return {
        key: manifest.definitions[key].upstream_content_hash
        for key in list_definitions_by_source(manifest, source_id)
        if manifest.definitions[key].upstream_content_hash is not None
    }  # type: ignore[misc]
