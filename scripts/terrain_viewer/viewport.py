"""
Viewport value types and the rendering-engine handle contract.

The map-rendering engine itself is an external collaborator. Components
receive a ``MapHandle`` at construction instead of discovering the engine
on their own.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class Bounds:
    """Geographic extent in degrees (WGS84)."""

    west: float
    south: float
    east: float
    north: float

    @property
    def width(self) -> float:
        return self.east - self.west

    @property
    def height(self) -> float:
        return self.north - self.south

    def as_tuple(self) -> tuple[float, float, float, float]:
        """Return (west, south, east, north)."""
        return (self.west, self.south, self.east, self.north)

    @classmethod
    def from_sequence(cls, values) -> "Bounds":
        """Build from a [west, south, east, north] sequence."""
        west, south, east, north = (float(v) for v in values)
        return cls(west, south, east, north)

    @classmethod
    def parse(cls, text: str) -> "Bounds":
        """Parse a "west,south,east,north" string."""
        parts = [p for p in text.replace(" ", "").split(",") if p]
        if len(parts) != 4:
            raise ValueError(f"Expected west,south,east,north, got: {text!r}")
        return cls.from_sequence(parts)


WORLD_BOUNDS = Bounds(-180.0, -90.0, 180.0, 90.0)


@dataclass(frozen=True)
class Camera:
    """Camera pose of a map view."""

    lng: float
    lat: float
    zoom: float
    bearing: float = 0.0
    pitch: float = 0.0

    def rounded(self) -> "Camera":
        """Round to the precision stored in the shareable view state."""
        return Camera(
            lng=round(self.lng, 4),
            lat=round(self.lat, 4),
            zoom=round(self.zoom, 2),
            bearing=round(self.bearing, 1),
            pitch=round(self.pitch, 1),
        )


class MapHandle(Protocol):
    """Primitives the core needs from a rendering engine instance."""

    def jump_to(self, camera: Camera) -> None:
        """Move the camera immediately, without animation."""

    def get_camera(self) -> Camera:
        """Return the current camera pose."""

    def get_bounds(self) -> Bounds:
        """Return the visible geographic extent."""

    def get_canvas_size(self) -> tuple[int, int]:
        """Return the canvas (width, height) in CSS pixels."""

    def add_source(self, source_id: str, spec: dict[str, Any]) -> None:
        """Add or replace a named data source."""

    def add_layer(self, layer: dict[str, Any], before_id: Optional[str] = None) -> None:
        """Add or replace a named layer."""

    def set_terrain(self, spec: Optional[dict[str, Any]]) -> None:
        """Set the terrain elevation source, or clear it with None."""


def view_bounds(handle: Optional[MapHandle]) -> Bounds:
    """Bounds of a map view, or the whole world when no view exists."""
    if handle is None:
        return WORLD_BOUNDS
    return handle.get_bounds()
