"""Decompose definition content into named fields.

Overrides and rewrites are recorded per field, so reconciliation compares
definitions field by field rather than as opaque blobs.  Field names:

* every top-level key of the primary file's YAML frontmatter
  (``description``, ``model``, ...);
* ``body`` -- the Markdown body after the frontmatter;
* ``body:<slug>`` -- one per heading section of the body;
* ``file:<relative path>`` -- one per non-primary file of a directory-based
  definition;
* ``frontmatter`` -- the raw frontmatter text, only when it is not valid
  YAML mapping syntax.

Frontmatter is parsed with ``yaml.safe_load``; values are kept as parsed so
that re-formatting a scalar upstream is not mistaken for a change of a list.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

import yaml

from .keys import PRIMARY_FILE, join_upstream_path
from .models import ManifestEntry

FRONTMATTER_RE = re.compile(
    r"\A---\r?\n(?:(?P<yaml>.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)(?P<body>.*)\Z",
    re.DOTALL,
)
HEADING_RE = re.compile(r"^(#{1,6})\s+(?P<title>.+?)\s*#*\s*$")
FENCE_RE = re.compile(r"^\s*(```|~~~)")

BODY_FIELD = "body"
SECTION_PREFIX = "body:"
FILE_PREFIX = "file:"
RAW_FRONTMATTER_FIELD = "frontmatter"


def slugify(title: str) -> str:
    """Lowercase *title* and collapse non-alphanumerics into ``-``."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def split_frontmatter(content: str) -> tuple[dict[str, Any] | None, str, str]:
    """Split Markdown into ``(frontmatter, raw_yaml, body)``.

    ``frontmatter`` is ``None`` when there is no frontmatter block or it
    does not parse to a mapping; ``raw_yaml`` is ``""`` when there is no
    block at all.
    """
    match = FRONTMATTER_RE.match(content)
    if match is None:
        return None, "", content

    raw = match.group("yaml") or ""
    body = match.group("body")
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError:
        return None, raw, body
    if data is None:
        return {}, raw, body
    if not isinstance(data, dict):
        return None, raw, body
    return {str(k): v for k, v in data.items()}, raw, body


def body_sections(body: str) -> dict[str, str]:
    """Split *body* into heading sections keyed by slug.

    Headings inside fenced code blocks are ignored.  Text before the first
    heading is not a section.  Repeated slugs get ``-2``, ``-3`` suffixes.
    """
    sections: dict[str, list[str]] = {}
    current: str | None = None
    in_fence = False

    for line in body.splitlines():
        if FENCE_RE.match(line):
            in_fence = not in_fence
        heading = None if in_fence else HEADING_RE.match(line)
        if heading is not None:
            base = slugify(heading.group("title")) or "section"
            slug = base
            n = 2
            while slug in sections:
                slug = f"{base}-{n}"
                n += 1
            sections[slug] = []
            current = slug
        if current is not None:
            sections[current].append(line)

    return {slug: "\n".join(lines) for slug, lines in sections.items()}


def extract_document_fields(content: str) -> dict[str, Any]:
    """Return the fields of one Markdown document."""
    frontmatter, raw, body = split_frontmatter(content)
    fields: dict[str, Any] = {}

    if frontmatter is not None:
        fields.update(frontmatter)
    elif raw:
        fields[RAW_FRONTMATTER_FIELD] = raw

    fields[BODY_FIELD] = body
    for slug, text in body_sections(body).items():
        fields[f"{SECTION_PREFIX}{slug}"] = text
    return fields


def primary_file(entry: ManifestEntry) -> str | None:
    """Return the primary file of a multi-file entry, else ``None``."""
    if not entry.declared_files:
        return None
    if PRIMARY_FILE in entry.declared_files:
        return PRIMARY_FILE
    return sorted(entry.declared_files)[0]


def extract_fields(
    entry: ManifestEntry, contents: Mapping[str, str]
) -> dict[str, Any] | None:
    """Return the fields of a definition from fetched *contents*.

    Returns:
        The field mapping, or ``None`` if any required file is absent.
    """
    if not entry.declared_files:
        content = contents.get(entry.upstream_path)
        if content is None:
            return None
        return extract_document_fields(content)

    primary = primary_file(entry)
    fields: dict[str, Any] = {}
    for relative in sorted(entry.declared_files):
        content = contents.get(join_upstream_path(entry.upstream_path, relative))
        if content is None:
            return None
        if relative == primary:
            fields.update(extract_document_fields(content))
        else:
            fields[f"{FILE_PREFIX}{relative}"] = content
    return fields


def render_value(value: Any) -> str | None:
    """Render a field value as text for reports and rewrite logs."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str, ensure_ascii=False)
