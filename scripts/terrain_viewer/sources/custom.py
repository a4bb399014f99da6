"""
User-defined terrain and basemap sources.

Custom sources are created, edited and deleted by the user. Persistence
lives outside this module; the collection only guarantees unique ids and
validates bulk JSON edits before replacing its contents.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Iterator, Optional


logger = logging.getLogger(__name__)


class SourceValidationError(ValueError):
    """Raised when user-supplied source data cannot be accepted."""


class SourceType(str, Enum):
    """Kinds of custom terrain sources."""

    COG = "cog"
    TERRAINRGB = "terrainrgb"
    TERRARIUM = "terrarium"
    VRT = "vrt"
    STAC = "stac"
    MOSAICJSON = "mosaicjson"


class BasemapType(str, Enum):
    """Kinds of custom basemap sources."""

    COG = "cog"
    TMS = "tms"
    WMS = "wms"
    WMTS = "wmts"


REQUIRED_FIELDS = ("id", "name", "url", "type")


@dataclass(frozen=True)
class CustomTerrainSource:
    """A terrain source added by the user."""

    id: str
    name: str
    url: str
    type: SourceType
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        if self.description is None:
            del data["description"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomTerrainSource":
        try:
            source_type = SourceType(data["type"])
        except ValueError:
            raise SourceValidationError(
                f"Unknown source type: {data['type']}. "
                f"Supported: {', '.join(t.value for t in SourceType)}"
            ) from None
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            url=str(data["url"]),
            type=source_type,
            description=data.get("description"),
        )


@dataclass(frozen=True)
class CustomBasemapSource:
    """A raster basemap added by the user."""

    id: str
    name: str
    url: str
    type: BasemapType
    description: Optional[str] = None


def new_source_id() -> str:
    """Id for a freshly created source: custom-<epoch ms>."""
    return f"custom-{int(time.time() * 1000)}"


def parse_sources_json(text: str) -> list[CustomTerrainSource]:
    """Parse and validate a bulk-edit JSON payload.

    Raises:
        SourceValidationError: If the text is not a JSON array of sources
            each carrying id, name, url and type.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise SourceValidationError(f"Invalid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise SourceValidationError("Input must be a valid JSON array")

    for item in parsed:
        if not isinstance(item, dict) or not all(item.get(f) for f in REQUIRED_FIELDS):
            raise SourceValidationError("Each source must have id, name, url, and type fields")

    sources = [CustomTerrainSource.from_dict(item) for item in parsed]

    ids = [s.id for s in sources]
    if len(set(ids)) != len(ids):
        raise SourceValidationError("Source ids must be unique")

    return sources


class CustomSourceCollection:
    """Ordered collection of custom terrain sources keyed by id."""

    def __init__(self, sources: Optional[list[CustomTerrainSource]] = None):
        self._sources: list[CustomTerrainSource] = []
        for source in sources or []:
            self.add(source)

    def __iter__(self) -> Iterator[CustomTerrainSource]:
        return iter(list(self._sources))

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source_id: object) -> bool:
        return self.find(source_id) is not None  # type: ignore[arg-type]

    def find(self, source_id: str) -> Optional[CustomTerrainSource]:
        """Return the source with the given id, or None."""
        for source in self._sources:
            if source.id == source_id:
                return source
        return None

    def add(self, source: CustomTerrainSource) -> CustomTerrainSource:
        """Append a source. Raises SourceValidationError on duplicate id."""
        if self.find(source.id) is not None:
            raise SourceValidationError(f"Duplicate source id: {source.id}")
        self._sources.append(source)
        return source

    def create(
        self,
        name: str,
        url: str,
        source_type: SourceType,
        description: Optional[str] = None,
    ) -> CustomTerrainSource:
        """Create a source with a generated id and add it."""
        source_id = new_source_id()
        while self.find(source_id) is not None:
            source_id = f"{source_id}-1"
        return self.add(CustomTerrainSource(source_id, name, url, SourceType(source_type), description))

    def update(self, source_id: str, **changes: Any) -> CustomTerrainSource:
        """Replace fields of an existing source.

        Raises:
            KeyError: If no source has the given id
        """
        for index, source in enumerate(self._sources):
            if source.id == source_id:
                if "type" in changes:
                    changes["type"] = SourceType(changes["type"])
                changes.pop("id", None)
                updated = replace(source, **changes)
                self._sources[index] = updated
                return updated
        raise KeyError(source_id)

    def delete(self, source_id: str) -> bool:
        """Remove a source. Returns False when it did not exist."""
        before = len(self._sources)
        self._sources = [s for s in self._sources if s.id != source_id]
        return len(self._sources) != before

    def to_json(self) -> str:
        """Serialize for bulk editing (two-space indent)."""
        return json.dumps([s.to_dict() for s in self._sources], indent=2)

    def replace_from_json(self, text: str) -> None:
        """Replace all sources from a bulk-edit payload.

        The collection is left untouched when validation fails.
        """
        sources = parse_sources_json(text)
        self._sources = sources
        logger.info(f"Replaced custom sources ({len(sources)} entries)")

    @classmethod
    def from_json(cls, text: str) -> "CustomSourceCollection":
        return cls(parse_sources_json(text))
