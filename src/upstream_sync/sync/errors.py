"""Exception taxonomy for upstream drift detection.

Global failures (``FetchError`` on the inventory, ``ManifestValidationError``,
``UnknownSourceError``) abort a check run.  Per-definition failures are not
raised out of the engine; they are recorded as ``DefinitionError`` entries in
the change summary instead.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all upstream sync errors."""

    kind = "error"


class FetchError(SyncError):
    """A remote request failed after exhausting its retry budget.

    Attributes:
        status: Last HTTP status seen, or ``None`` for transport errors.
        path: Repository path being fetched, when applicable.
    """

    kind = "fetch"

    def __init__(
        self,
        message: str,
        status: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.path = path


class MissingContentError(SyncError):
    """A declared file of a tracked definition has no upstream content."""

    kind = "missing_content"

    def __init__(self, path: str) -> None:
        super().__init__(
            "Missing upstream content for sub-file (may be a transient "
            f"fetch failure or the file was removed upstream): {path}"
        )
        self.path = path


class ManifestValidationError(SyncError):
    """The persisted manifest failed to parse or validate."""

    kind = "manifest"


class UnknownSourceError(SyncError):
    """A source id is not present in the source registry."""

    kind = "source"
