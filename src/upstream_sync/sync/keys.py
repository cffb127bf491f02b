"""Definition key resolution for upstream repository paths.

Maps remote paths to canonical definition keys and back.  All paths are
relative to a *content root* inside the repository (for example
``plugins/compound-engineering/``).

Conventions:

1. **Agents** -- ``agents/**/<name>.md`` is a single-file definition keyed
   ``agents/**/<name>``.
2. **Commands** -- ``commands/**/<name>.md``, keyed the same way.
3. **Skills** -- a directory ``skills/<name>/`` whose primary file is
   ``SKILL.md``.  Only the primary file yields the key ``skills/<name>``;
   every other file in the directory is a member of that key and resolves
   to ``None``.

Any other path resolves to ``None``.  Such paths still take part in file
collection for new directory-based definitions.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..config import DEFAULT_CONTENT_ROOT

SINGLE_FILE_KINDS = ("agents", "commands")
DIRECTORY_KIND = "skills"
PRIMARY_FILE = "SKILL.md"
DEFINITION_SUFFIX = ".md"


class DefinitionLayout:
    """Resolve keys and collect files under one content root.

    Args:
        content_root: Repository prefix under which definitions live.  A
            trailing slash is added when missing; an empty string means the
            repository root.
    """

    def __init__(self, content_root: str = DEFAULT_CONTENT_ROOT) -> None:
        root = content_root.strip("/")
        self.content_root = f"{root}/" if root else ""

    # ------------------------------------------------------------------
    # Path -> key
    # ------------------------------------------------------------------

    def to_definition_key(self, path: str) -> str | None:
        """Map a repository path to its definition key.

        Args:
            path: Full repository path (e.g.
                ``"plugins/compound-engineering/skills/foo/SKILL.md"``).

        Returns:
            The key, or ``None`` if the path is not the primary file of a
            definition.
        """
        if not path.startswith(self.content_root):
            return None
        rest = path[len(self.content_root) :]
        parts = rest.split("/")

        if parts[0] in SINGLE_FILE_KINDS:
            if len(parts) >= 2 and rest.endswith(DEFINITION_SUFFIX):
                return rest[: -len(DEFINITION_SUFFIX)]
            return None

        if parts[0] == DIRECTORY_KIND:
            if len(parts) == 3 and parts[2] == PRIMARY_FILE and parts[1]:
                return f"{parts[0]}/{parts[1]}"
            return None

        return None

    def upstream_keys(self, paths: Iterable[str]) -> list[str]:
        """Return the sorted, de-duplicated keys found among *paths*."""
        keys = {self.to_definition_key(p) for p in paths}
        keys.discard(None)
        return sorted(keys)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Key -> paths
    # ------------------------------------------------------------------

    @staticmethod
    def is_directory_key(key: str) -> bool:
        return key.startswith(f"{DIRECTORY_KIND}/")

    def key_path(self, key: str) -> str:
        """Return the repository path of *key*'s file or directory."""
        if self.is_directory_key(key):
            return f"{self.content_root}{key}"
        return f"{self.content_root}{key}{DEFINITION_SUFFIX}"

    def collect_new_upstream_files(
        self, paths: Iterable[str], new_keys: Iterable[str]
    ) -> dict[str, list[str]]:
        """Enumerate the files of definitions not yet in the manifest.

        Operates only on the already-fetched inventory.

        Args:
            paths: Blob paths from the inventory.
            new_keys: Keys present upstream but absent from the manifest.

        Returns:
            ``{key: [relative file, ...]}`` with files sorted.  Keys with
            no matching file are omitted.
        """
        path_list = list(paths)
        path_set = set(path_list)
        result: dict[str, list[str]] = {}

        for key in new_keys:
            if self.is_directory_key(key):
                prefix = f"{self.key_path(key)}/"
                files = sorted(
                    p[len(prefix) :]
                    for p in path_list
                    if p.startswith(prefix)
                )
                if files:
                    result[key] = files
            else:
                file_path = self.key_path(key)
                if file_path in path_set:
                    result[key] = [file_path.rsplit("/", 1)[-1]]

        return result


def join_upstream_path(base: str, relative: str) -> str:
    """Join a definition's base path and one of its relative files."""
    return f"{base.rstrip('/')}/{relative}"
