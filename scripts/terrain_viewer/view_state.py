"""
Shareable view state.

Everything needed to reproduce a view lives in the URL query string of a
shared link. Field names are snake_case here and camelCase in the query
(``source_a`` <-> ``sourceA``). Only values that differ from the defaults
are written, so links stay short.
"""

import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlencode

from .config import DEFAULT_TITILER_ENDPOINT, ViewerConfig
from .gdal import format_number
from .hillshade import HillshadeMethod, HillshadeParams, parse_method
from .sources.custom import CustomSourceCollection
from .viewport import Camera


logger = logging.getLogger(__name__)

# Sources selected after the selected custom source is deleted
FALLBACK_SOURCE_A = "aws"
FALLBACK_SOURCE_B = "mapterhorn"


@dataclass
class ViewState:
    """URL-persisted viewer state with its defaults."""

    view_mode: str = "3d"
    split_screen: bool = False
    source_a: str = "mapterhorn"
    source_b: str = "maptiler"
    show_hillshade: bool = True
    hillshade_opacity: float = 1.0
    show_color_relief: bool = False
    color_relief_opacity: float = 0.35
    show_contours_and_graticules: bool = False
    show_contours: bool = True
    show_contour_labels: bool = True
    show_graticules: bool = False
    color_ramp: str = "mby"
    show_raster_basemap: bool = False
    show_background: bool = False
    raster_basemap_opacity: float = 1.0
    basemap_source: str = "esri"
    exaggeration: float = 1.0
    lat: float = 45.9763
    lng: float = 7.6586
    zoom: float = 12.5
    pitch: float = 60.0
    bearing: float = 0.0
    illumination_dir: float = 315.0
    illumination_alt: float = 45.0
    shadow_color: str = "#000000"
    highlight_color: str = "#FFFFFF"
    accent_color: str = "#808080"
    hillshade_exag: float = 1.0
    hillshade_method: str = "combined"
    contour_minor: float = 50.0
    contour_major: float = 200.0
    custom_hypso_min_max: bool = False
    min_elevation: float = 0.0
    max_elevation: float = 8100.0
    hypso_slider_min_bound: float = 0.0
    hypso_slider_max_bound: float = 8100.0
    graticule_color: str = "#cccccc"
    graticule_width: float = 1.0
    show_graticule_labels: bool = False
    graticule_density: float = 0.0
    mapbox_key: str = ""
    google_key: str = ""
    maptiler_key: str = ""
    titiler_endpoint: str = DEFAULT_TITILER_ENDPOINT
    max_resolution: float = 4096.0

    def camera(self) -> Camera:
        return Camera(lng=self.lng, lat=self.lat, zoom=self.zoom,
                      bearing=self.bearing, pitch=self.pitch)

    def apply_camera(self, camera: Camera) -> None:
        """Store a camera pose at share-link precision."""
        camera = camera.rounded()
        self.lat = camera.lat
        self.lng = camera.lng
        self.zoom = camera.zoom
        self.pitch = camera.pitch
        self.bearing = camera.bearing

    def method(self) -> HillshadeMethod:
        return parse_method(self.hillshade_method)

    def hillshade_params(self) -> HillshadeParams:
        return HillshadeParams(
            illumination_direction=self.illumination_dir,
            illumination_altitude=self.illumination_alt,
            opacity=self.hillshade_opacity,
            shadow_color=self.shadow_color,
            highlight_color=self.highlight_color,
            accent_color=self.accent_color,
            exaggeration=self.hillshade_exag,
        )

    def custom_min_max(self) -> Optional[tuple[float, float]]:
        if not self.custom_hypso_min_max:
            return None
        return (self.min_elevation, self.max_elevation)

    def to_query(self, include_defaults: bool = False) -> str:
        """Encode as a URL query string (without the leading "?")."""
        return urlencode(self.to_params(include_defaults))

    def to_params(self, include_defaults: bool = False) -> dict[str, str]:
        defaults = ViewState()
        params = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if not include_defaults and value == getattr(defaults, f.name):
                continue
            params[query_key(f.name)] = _format_value(value)
        return params

    @classmethod
    def from_query(cls, query: Union[str, Mapping[str, Any]]) -> "ViewState":
        """Decode a query string or mapping.

        Unknown keys are ignored; unparsable values keep their default.
        """
        if isinstance(query, str):
            params = dict(parse_qsl(query.lstrip("?"), keep_blank_values=True))
        else:
            params = dict(query)

        state = cls()
        by_key = {query_key(f.name): f.name for f in fields(cls)}
        for key, raw in params.items():
            name = by_key.get(key)
            if name is None:
                continue
            default = getattr(state, name)
            try:
                value = _parse_value(raw, default)
                if name in _VALIDATORS:
                    value = _VALIDATORS[name](value)
                setattr(state, name, value)
            except ValueError as e:
                logger.warning(f"Ignoring invalid value for {key}: {e}")
        return state

    def copy(self, **changes: Any) -> "ViewState":
        return replace(self, **changes)

    def apply_to_config(self, config: ViewerConfig) -> ViewerConfig:
        """Overlay link-carried credentials and export settings onto a config.

        Values equal to the link defaults leave the config untouched, so
        environment settings survive links that do not mention them.
        """
        if self.mapbox_key:
            config.credentials.mapbox = self.mapbox_key
        if self.google_key:
            config.credentials.google = self.google_key
        if self.maptiler_key:
            config.credentials.maptiler = self.maptiler_key
        if self.titiler_endpoint and self.titiler_endpoint != DEFAULT_TITILER_ENDPOINT:
            config.service.titiler_endpoint = self.titiler_endpoint
        if self.max_resolution != ViewState.max_resolution and self.max_resolution > 0:
            config.export.max_resolution = int(self.max_resolution)
        return config

    @classmethod
    def from_config(cls, config: ViewerConfig, **changes: Any) -> "ViewState":
        """View state carrying the credentials and export settings of a config."""
        return cls(
            mapbox_key=config.credentials.mapbox,
            google_key=config.credentials.google,
            maptiler_key=config.credentials.maptiler,
            titiler_endpoint=config.service.titiler_endpoint,
            max_resolution=float(config.export.max_resolution),
            **changes,
        )


# Fields whose strings must name a known value
_VALIDATORS = {
    "hillshade_method": lambda value: parse_method(value).value,
}


def query_key(name: str) -> str:
    """snake_case field name to the camelCase query key."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    return str(value)


def _parse_value(raw: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text not in ("true", "false"):
            raise ValueError(f"expected true or false, got {raw!r}")
        return text == "true"
    if isinstance(default, float):
        value = float(raw)
        if value != value:
            raise ValueError(f"not a number: {raw!r}")
        return value
    return str(raw)


def remove_source(collection: CustomSourceCollection, state: ViewState, source_id: str) -> bool:
    """Delete a custom source and move selections off it.

    Returns:
        True if the source existed
    """
    removed = collection.delete(source_id)
    if state.source_a == source_id:
        state.source_a = FALLBACK_SOURCE_A
    if state.source_b == source_id:
        state.source_b = FALLBACK_SOURCE_B
    return removed
