"""Source registry: static lookup of remote content origins by id."""

from __future__ import annotations

from .errors import UnknownSourceError
from .models import Manifest, ManifestSource, Source


class SourceRegistry:
    """Immutable ``id -> Source`` table.

    Args:
        sources: Mapping of source id to its manifest record.
    """

    def __init__(self, sources: dict[str, ManifestSource]) -> None:
        self._sources = {
            source_id: Source(
                id=source_id,
                repo=record.repo,
                branch=record.branch,
                url=record.url,
            )
            for source_id, record in sources.items()
        }

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> SourceRegistry:
        return cls(manifest.sources)

    def ids(self) -> list[str]:
        return sorted(self._sources)

    def get(self, source_id: str) -> Source:
        """Return the source registered under *source_id*.

        Raises:
            UnknownSourceError: If no such source exists.
        """
        try:
            return self._sources[source_id]
        except KeyError:
            raise UnknownSourceError(
                f"Unknown source '{source_id}'. Known sources: {self.ids()}"
            ) from None

    def resolve(self, source_id: str | None) -> Source:
        """Return *source_id*'s source, or the only source when ``None``.

        Raises:
            UnknownSourceError: If the id is unknown, or no id was given and
                the registry does not hold exactly one source.
        """
        if source_id is not None:
            return self.get(source_id)
        if len(self._sources) != 1:
            raise UnknownSourceError(
                "No source id given and the manifest defines "
                f"{len(self._sources)} sources: {self.ids()}"
            )
        return next(iter(self._sources.values()))
