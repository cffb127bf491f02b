"""Override reconciliation for definitions with upstream drift.

Decides, per changed definition, which upstream field changes may be
applied and which collide with recorded manual overrides.

Decision matrix (per definition):

==================  =========================  ====================
Upstream            Overrides                  Action
==================  =========================  ====================
unchanged           any                        NO_OP
changed             none                       APPLY
changed             overridden field changed   CONFLICT
changed             disjoint from changes      PARTIAL_APPLY
any                 wildcard ``*``             SKIP
==================  =========================  ====================

Field names are hierarchical: ``body:usage`` lies inside ``body``.  A
changed field overlaps an override when either one contains the other.
Only changes *at or inside* an overridden field are conflicts; a change to
the containing field (``body`` when ``body:usage`` is overridden) is merely
withheld, since applying it would overwrite the override.

When the base content (upstream at the last import) cannot be obtained,
every upstream field is treated as changed.  That turns any existing
override into a conflict instead of silently overwriting it.

Conflicts are values, never exceptions: resolving them needs a human.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .fields import extract_fields, render_value
from .models import (
    ChangeSummary,
    FieldConflict,
    Manifest,
    ManifestEntry,
    ReconcileAction,
    ReconcileOutcome,
    Rewrite,
    WILDCARD_FIELD,
)

logger = logging.getLogger(__name__)

UPSTREAM_CHANGE_REASON = "upstream change"
FIELD_SEPARATOR = ":"


# ---------------------------------------------------------------------------
# Field comparison
# ---------------------------------------------------------------------------


def is_within(field: str, container: str) -> bool:
    """Return ``True`` if *field* equals or is nested inside *container*."""
    return field == container or field.startswith(container + FIELD_SEPARATOR)


def overlaps(field: str, other: str) -> bool:
    return is_within(field, other) or is_within(other, field)


def changed_fields(
    base: Mapping[str, Any] | None, upstream: Mapping[str, Any]
) -> list[str]:
    """Return the sorted fields whose value differs between two snapshots.

    Fields present on only one side count as changed.  With no *base*,
    every upstream field is changed.
    """
    if base is None:
        return sorted(upstream)
    names = set(base) | set(upstream)
    return sorted(
        name
        for name in names
        if name not in base
        or name not in upstream
        or base[name] != upstream[name]
    )


# ---------------------------------------------------------------------------
# Per-definition decision
# ---------------------------------------------------------------------------


def reconcile_definition(
    key: str,
    entry: ManifestEntry,
    base_fields: Mapping[str, Any] | None,
    upstream_fields: Mapping[str, Any],
) -> ReconcileOutcome:
    """Reconcile one definition's upstream change against its overrides.

    Args:
        key: Definition key.
        entry: Manifest entry holding the overrides.
        base_fields: Fields of the upstream content at the last import, or
            ``None`` if it could not be obtained.
        upstream_fields: Fields of the current upstream content.

    Returns:
        The ``ReconcileOutcome`` for *key*.
    """
    if entry.has_wildcard_override():
        return ReconcileOutcome(
            key=key,
            action=ReconcileAction.SKIP,
            preserved_fields=[WILDCARD_FIELD],
            base_available=base_fields is not None,
        )

    overrides = sorted(entry.manual_overrides, key=lambda o: o.field)
    preserved = [o.field for o in overrides]
    changed = changed_fields(base_fields, upstream_fields)
    base = base_fields or {}

    if not changed:
        return ReconcileOutcome(
            key=key,
            action=ReconcileAction.NO_OP,
            preserved_fields=preserved,
            base_available=base_fields is not None,
        )

    conflicts: list[FieldConflict] = []
    for override in overrides:
        if any(is_within(f, override.field) for f in changed):
            conflicts.append(
                FieldConflict(
                    field=override.field,
                    override_reason=override.reason,
                    override_value=override.original_value,
                    upstream_value=render_value(
                        upstream_fields.get(override.field)
                    ),
                    base_value=render_value(base.get(override.field)),
                )
            )

    applied = [
        f for f in changed if not any(overlaps(f, p) for p in preserved)
    ]
    rewrites = [
        Rewrite(
            field=f,
            reason=UPSTREAM_CHANGE_REASON,
            original_value=render_value(base.get(f)),
        )
        for f in applied
    ]

    if conflicts:
        action = ReconcileAction.CONFLICT
    elif preserved:
        action = ReconcileAction.PARTIAL_APPLY
    else:
        action = ReconcileAction.APPLY

    logger.debug(
        "%s: %s (changed=%s, applied=%s, conflicts=%s)",
        key,
        action.value,
        changed,
        applied,
        [c.field for c in conflicts],
    )
    return ReconcileOutcome(
        key=key,
        action=action,
        changed_fields=changed,
        applied_fields=applied,
        preserved_fields=preserved,
        conflicts=conflicts,
        rewrites=rewrites,
        base_available=base_fields is not None,
    )


# ---------------------------------------------------------------------------
# Whole summary
# ---------------------------------------------------------------------------


def reconcile(
    summary: ChangeSummary,
    manifest: Manifest,
    base_contents: Mapping[str, str],
    upstream_contents: Mapping[str, str],
) -> list[ReconcileOutcome]:
    """Reconcile every hash-changed and skipped definition of *summary*.

    Args:
        summary: Classifier output.
        manifest: The manifest the summary was computed against.
        base_contents: Upstream path to content at each definition's
            recorded ``upstream_commit_ref``.  Missing paths mean the base
            is unavailable for that definition.
        upstream_contents: Upstream path to current content.

    Returns:
        Outcomes sorted by key.
    """
    outcomes: list[ReconcileOutcome] = []

    for key in summary.skipped:
        entry = manifest.definitions.get(key)
        if entry is None:
            continue
        outcomes.append(
            ReconcileOutcome(
                key=key,
                action=ReconcileAction.SKIP,
                preserved_fields=[WILDCARD_FIELD],
                base_available=False,
            )
        )

    for key in summary.hash_changes:
        entry = manifest.definitions.get(key)
        if entry is None:
            continue
        upstream_fields = extract_fields(entry, upstream_contents)
        if upstream_fields is None:
            logger.warning(
                "%s: upstream content incomplete, not reconciled", key
            )
            continue
        base_fields = extract_fields(entry, base_contents)
        if base_fields is None:
            logger.info(
                "%s: base content at %s unavailable, treating all fields "
                "as changed",
                key,
                entry.upstream_commit_ref,
            )
        outcomes.append(
            reconcile_definition(key, entry, base_fields, upstream_fields)
        )

    return sorted(outcomes, key=lambda o: o.key)
