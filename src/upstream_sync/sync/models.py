"""Pydantic models for upstream drift detection.

Defines the data contracts shared by all sync modules:

- ``ManifestSource``, ``Rewrite``, ``ManualOverride``, ``ManifestEntry``,
  ``Manifest``: the persisted manifest (validated on read).
- ``Source``, ``InventoryItem``: remote origin and tree listing.
- ``DefinitionError``, ``ChangeSummary``: classifier output.
- ``FieldConflict``, ``ReconcileAction``, ``ReconcileOutcome``:
  reconciler output.
- ``CheckStatus``, ``CheckReport``: aggregate result of one check run.

All models are frozen (immutable).  Persisted models use the on-disk key
names as aliases (``upstream_commit``, ``synced_at``, ``files``,
``converter_version``, ``original``) and accept either name on input.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from pydantic import BaseModel, Field, StrictInt, StrictStr

WILDCARD_FIELD = "*"

# ---------------------------------------------------------------------------
# Persisted manifest
# ---------------------------------------------------------------------------


class ManifestSource(BaseModel):
    """A named upstream repository as recorded in the manifest."""

    repo: StrictStr
    branch: StrictStr
    url: StrictStr

    model_config = {"frozen": True, "extra": "allow"}


class Rewrite(BaseModel):
    """An automated transformation applied to one field during import.

    Attributes:
        field: Field name the rewrite touched.
        reason: Why the rewrite was applied.
        original_value: Value before the rewrite, if recorded.
    """

    field: StrictStr
    reason: StrictStr
    original_value: StrictStr | None = Field(default=None, alias="original")

    model_config = {
        "frozen": True,
        "extra": "forbid",
        "populate_by_name": True,
    }


class ManualOverride(BaseModel):
    """A human customisation that must survive re-synchronisation.

    ``field == "*"`` means the whole definition is locally owned.

    Attributes:
        field: Overridden field name, or ``"*"``.
        reason: Why the override exists.
        original_value: Upstream value at the time of the first override.
        overridden_at: ISO 8601 timestamp of the override.
    """

    field: StrictStr
    reason: StrictStr
    original_value: StrictStr | None = Field(default=None, alias="original")
    overridden_at: StrictStr

    model_config = {
        "frozen": True,
        "extra": "forbid",
        "populate_by_name": True,
    }

    @property
    def is_wildcard(self) -> bool:
        return self.field == WILDCARD_FIELD


class ManifestEntry(BaseModel):
    """Provenance of one imported definition.

    Attributes:
        source: Source id (key into ``Manifest.sources``).
        upstream_path: Remote path of the file, or of the directory for
            directory-based definitions.
        upstream_commit_ref: Commit the definition was last imported from.
        last_synced_at: ISO 8601 timestamp of the last import.
        notes: Free-form notes.
        declared_files: Files of a directory-based definition, relative to
            ``upstream_path``.
        upstream_content_hash: Fingerprint of the upstream content at the
            last import.
        rewrites: Automated rewrites applied on import.
        manual_overrides: Recorded human customisations.
    """

    source: StrictStr
    upstream_path: StrictStr
    upstream_commit_ref: StrictStr = Field(alias="upstream_commit")
    last_synced_at: StrictStr = Field(alias="synced_at")
    notes: StrictStr
    declared_files: list[StrictStr] | None = Field(
        default=None, alias="files"
    )
    upstream_content_hash: StrictStr | None = None
    rewrites: list[Rewrite] = []
    manual_overrides: list[ManualOverride] = []

    model_config = {
        "frozen": True,
        "extra": "allow",
        "populate_by_name": True,
    }

    @property
    def is_multi_file(self) -> bool:
        return bool(self.declared_files)

    def has_wildcard_override(self) -> bool:
        """Return ``True`` if the definition is wholly locally owned."""
        return any(o.is_wildcard for o in self.manual_overrides)

    def override_for(self, field: str) -> ManualOverride | None:
        """Return the override recorded for *field*, or ``None``."""
        for override in self.manual_overrides:
            if override.field == field:
                return override
        return None

    def with_rewrite(self, rewrite: Rewrite) -> ManifestEntry:
        """Return a copy with *rewrite* recorded.

        Rewrites are keyed by field: re-inserting a field that already has
        a rewrite returns the entry unchanged.
        """
        if any(r.field == rewrite.field for r in self.rewrites):
            return self
        return self.model_copy(
            update={"rewrites": [*self.rewrites, rewrite]}
        )

    def with_override(self, override: ManualOverride) -> ManifestEntry:
        """Return a copy with *override* recorded.

        At most one override exists per field.  When the field is already
        overridden, reason and timestamp are updated but the first
        ``original_value`` ever recorded is kept.
        """
        existing = self.override_for(override.field)
        if existing is None:
            overrides = [*self.manual_overrides, override]
        else:
            merged = override.model_copy(
                update={
                    "original_value": existing.original_value
                    if existing.original_value is not None
                    else override.original_value
                }
            )
            overrides = [
                merged if o.field == override.field else o
                for o in self.manual_overrides
            ]
        return self.model_copy(update={"manual_overrides": overrides})


class Manifest(BaseModel):
    """The persisted manifest of imported definitions."""

    schema_ref: StrictStr | None = Field(default=None, alias="$schema")
    pipeline_version: StrictInt | None = Field(
        default=None, alias="converter_version"
    )
    sources: dict[str, ManifestSource]
    definitions: dict[str, ManifestEntry]

    model_config = {
        "frozen": True,
        "extra": "allow",
        "populate_by_name": True,
    }


# ---------------------------------------------------------------------------
# Remote side
# ---------------------------------------------------------------------------


class Source(BaseModel):
    """One remote content origin."""

    id: str
    repo: str
    branch: str
    url: str = ""

    model_config = {"frozen": True}


class InventoryItem(BaseModel):
    """One entry of a recursive tree listing (``blob`` or ``tree``)."""

    path: str
    kind: str

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class DefinitionError(BaseModel):
    """An error attributed to a definition key and/or upstream path.

    Attributes:
        kind: ``fetch``, ``missing_content``, ``manifest`` or ``source``.
        key: Affected definition key, when known.
        path: Affected upstream path, when known.
        message: Human-readable description.
    """

    kind: str
    key: str | None = None
    path: str | None = None
    message: str

    model_config = {"frozen": True}


class ChangeSummary(BaseModel):
    """Drift between the manifest and the current upstream state."""

    hash_changes: list[str] = []
    new_upstream: list[str] = []
    new_upstream_files: dict[str, list[str]] = {}
    deletions: list[str] = []
    skipped: list[str] = []
    errors: list[DefinitionError] = []
    pipeline_version_changed: bool = False

    model_config = {"frozen": True}

    @property
    def has_changes(self) -> bool:
        return bool(
            self.hash_changes
            or self.new_upstream
            or self.deletions
            or self.pipeline_version_changed
        )


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class ReconcileAction(str, Enum):
    """Outcome of reconciling one definition against its overrides."""

    NO_OP = "no_op"
    APPLY = "apply"
    PARTIAL_APPLY = "partial_apply"
    CONFLICT = "conflict"
    SKIP = "skip"


class FieldConflict(BaseModel):
    """An upstream change that touches a manually overridden field.

    Attributes:
        field: The overridden field.
        override_reason: Reason recorded with the override.
        override_value: ``original_value`` recorded with the override.
        upstream_value: The new upstream value.
        base_value: The upstream value at the last import, if known.
    """

    field: str
    override_reason: str
    override_value: str | None = None
    upstream_value: str | None = None
    base_value: str | None = None

    model_config = {"frozen": True}


class ReconcileOutcome(BaseModel):
    """Reconciliation decision for one definition key."""

    key: str
    action: ReconcileAction
    changed_fields: list[str] = []
    applied_fields: list[str] = []
    preserved_fields: list[str] = []
    conflicts: list[FieldConflict] = []
    rewrites: list[Rewrite] = []
    base_available: bool = True

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------


class CheckStatus(IntEnum):
    """Process status of a check run."""

    NO_CHANGES = 0
    CHANGES_DETECTED = 1
    ERROR = 2


class CheckReport(BaseModel):
    """Aggregate result of one check run.

    Attributes:
        source_id: Source that was checked (empty if it never resolved).
        summary: Change summary; ``None`` when the run aborted.
        outcomes: Reconciliation outcomes for changed definitions.
        fatal_error: Global error that aborted the run.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
    """

    source_id: str = ""
    summary: ChangeSummary | None = None
    outcomes: list[ReconcileOutcome] = []
    fatal_error: DefinitionError | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def conflicts(self) -> list[ReconcileOutcome]:
        return [
            o for o in self.outcomes if o.action == ReconcileAction.CONFLICT
        ]

    @property
    def status(self) -> CheckStatus:
        if self.fatal_error is not None or self.summary is None:
            return CheckStatus.ERROR
        if self.summary.errors:
            return CheckStatus.ERROR
        if self.summary.has_changes:
            return CheckStatus.CHANGES_DETECTED
        return CheckStatus.NO_CHANGES
