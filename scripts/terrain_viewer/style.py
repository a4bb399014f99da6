"""
MapLibre style fragments for the terrain viewer.

Builds the layer stack the viewer renders, bottom to top:

- Background (theme colored, optional)
- Raster basemap
- Color relief (hypsometric tint)
- Hillshade
- Contour lines and labels

Invisible "slot" layers are inserted once and every real layer is added
before its slot, so toggling layers never changes the stacking order.
"""

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Optional

from .color_ramps import ColorRamp, color_relief_paint
from .config import Credentials, DEFAULT_TITILER_ENDPOINT, SkyConfig
from .hillshade import HillshadeMethod, HillshadeParams, build_paint
from .sources.custom import CustomBasemapSource, CustomTerrainSource
from .sources.resolver import raster_dem_source, resolve_basemap
from .viewport import MapHandle


TERRAIN_SOURCE_ID = "terrainSource"
HILLSHADE_SOURCE_ID = "hillshadeSource"
BASEMAP_SOURCE_ID = "raster-basemap-source"
CONTOUR_SOURCE_ID = "contour-source"
CONTOUR_SOURCE_LAYER = "contours"

LAYER_SLOTS = {
    "background": "slot-background",
    "basemap": "slot-basemap",
    "color_relief": "slot-color-relief",
    "hillshade": "slot-hillshade",
    "contours": "slot-contours",
}

THEME_COLORS = {
    "light": "#ffffff",
    "dark": "#000000",
}

# Slot each real layer is inserted below
SLOT_FOR_LAYER = {
    "background": LAYER_SLOTS["background"],
    "raster-basemap": LAYER_SLOTS["basemap"],
    "color-relief": LAYER_SLOTS["color_relief"],
    "hillshade": LAYER_SLOTS["hillshade"],
    "contour-lines": LAYER_SLOTS["contours"],
    "contour-labels": LAYER_SLOTS["contours"],
}

GLYPHS_URL = "https://demotiles.maplibre.org/font/{fontstack}/{range}.pbf"


def theme_color(theme: str) -> str:
    return THEME_COLORS.get(theme, THEME_COLORS["light"])


def theme_anti_color(theme: str) -> str:
    return THEME_COLORS["dark"] if theme == "light" else THEME_COLORS["light"]


def _visibility(visible: bool) -> dict[str, str]:
    return {"visibility": "visible" if visible else "none"}


def create_slot_layers() -> list[dict[str, Any]]:
    """Transparent placeholder layers fixing the stacking order."""
    return [
        {
            "id": slot,
            "type": "background",
            "paint": {"background-opacity": 0},
        }
        for slot in LAYER_SLOTS.values()
    ]


def create_background_layer(theme: str) -> dict[str, Any]:
    """Solid theme-colored background below everything else."""
    return {
        "id": "background",
        "type": "background",
        "paint": {"background-color": theme_color(theme)},
    }


def create_raster_basemap_layer(visible: bool, opacity: float = 1.0) -> dict[str, Any]:
    return {
        "id": "raster-basemap",
        "type": "raster",
        "source": BASEMAP_SOURCE_ID,
        "paint": {"raster-opacity": opacity},
        "layout": _visibility(visible),
    }


def create_color_relief_layer(ramp: ColorRamp, opacity: float = 1.0,
                              custom_min_max: Optional[tuple[float, float]] = None) -> dict[str, Any]:
    """Hypsometric tint driven by the hillshade DEM source."""
    return {
        "id": "color-relief",
        "type": "color-relief",
        "source": HILLSHADE_SOURCE_ID,
        "paint": color_relief_paint(ramp, opacity, custom_min_max),
        "layout": _visibility(True),
    }


def create_hillshade_layer(
    method: HillshadeMethod,
    params: Optional[HillshadeParams] = None,
    visible: bool = True,
) -> dict[str, Any]:
    """Hillshade layer; the illumination anchor is only set when chosen."""
    params = params or HillshadeParams()
    paint = build_paint(method, params)
    if params.illumination_anchor:
        paint["hillshade-illumination-anchor"] = params.illumination_anchor
    return {
        "id": "hillshade",
        "type": "hillshade",
        "source": HILLSHADE_SOURCE_ID,
        "paint": paint,
        "layout": _visibility(visible),
    }


def contour_thresholds(minor: float, major: float) -> dict[int, list[float]]:
    """Contour intervals per zoom: majors only at low zoom, both from z10."""
    return {
        2: [major],
        10: [minor, major],
    }


def create_contour_layers(visible: bool, show_labels: bool, theme: str) -> list[dict[str, Any]]:
    """Contour lines (major lines thicker) and elevation labels."""
    light = theme == "light"
    lines = {
        "id": "contour-lines",
        "type": "line",
        "source": CONTOUR_SOURCE_ID,
        "source-layer": CONTOUR_SOURCE_LAYER,
        "paint": {
            "line-color": "rgba(0,0,0, 50%)" if light else "rgba(255,255,255, 50%)",
            "line-width": ["match", ["get", "level"], 1, 1, 0.5],
        },
        "layout": _visibility(visible),
    }
    labels = {
        "id": "contour-labels",
        "type": "symbol",
        "source": CONTOUR_SOURCE_ID,
        "source-layer": CONTOUR_SOURCE_LAYER,
        "filter": [">", ["get", "level"], 0],
        "paint": {
            "text-halo-color": theme_color(theme),
            "text-halo-width": 1,
            "text-color": theme_anti_color(theme),
        },
        "layout": {
            "symbol-placement": "line",
            "text-size": 10,
            "text-field": ["concat", ["number-format", ["get", "ele"], {}], "m"],
            "text-font": ["Noto Sans Bold"],
            **_visibility(visible and show_labels),
        },
    }
    return [lines, labels]


def terrain_spec(exaggeration: float = 1.0) -> dict[str, Any]:
    """3D terrain binding; a zero/None exaggeration falls back to 1."""
    return {
        "source": TERRAIN_SOURCE_ID,
        "exaggeration": exaggeration or 1,
    }


def match_theme(sky: SkyConfig, theme: str) -> SkyConfig:
    """Copy of sky with sky, horizon and fog colors set to the theme color."""
    color = theme_color(theme)
    return replace(sky, match_theme_colors=True, sky_color=color,
                   horizon_color=color, fog_color=color)


def sky_spec(sky: SkyConfig, show_background: bool, theme: str) -> dict[str, Any]:
    """Sky/fog settings for the 3D view.

    Without a background the sky is flattened to the theme color.
    """
    if not show_background:
        return {
            "sky-color": "#fff" if theme == "light" else "#000",
            "sky-horizon-blend": 0,
            "horizon-fog-blend": 1,
            "fog-ground-blend": 1,
        }
    return {
        "sky-color": sky.sky_color,
        "sky-horizon-blend": sky.sky_horizon_blend,
        "horizon-color": sky.horizon_color,
        "horizon-fog-blend": sky.horizon_fog_blend,
        "fog-color": sky.fog_color,
        "fog-ground-blend": sky.fog_ground_blend,
    }


def create_sources(
    source_key: str,
    basemap_key: str,
    credentials: Optional[Credentials] = None,
    custom_sources: Optional[Iterable[CustomTerrainSource]] = None,
    custom_basemaps: Optional[Iterable[CustomBasemapSource]] = None,
    endpoint: str = DEFAULT_TITILER_ENDPOINT,
    contour_tiles: Optional[str] = None,
) -> dict[str, Any]:
    """Source definitions for a terrain source and basemap.

    The DEM is registered twice (terrain and hillshade) so the engine can
    mesh and shade independently. Unknown terrain keys yield no DEM sources.
    """
    custom_sources = list(custom_sources or [])
    sources: dict[str, Any] = {}

    dem = raster_dem_source(source_key, credentials, custom_sources, endpoint)
    if dem is not None:
        sources[TERRAIN_SOURCE_ID] = dict(dem)
        sources[HILLSHADE_SOURCE_ID] = dict(dem)

    basemap = resolve_basemap(basemap_key, credentials, custom_basemaps, endpoint)
    sources[BASEMAP_SOURCE_ID] = {
        "type": "raster",
        "tiles": [basemap.tile_url],
        "tileSize": basemap.tile_size,
    }

    if contour_tiles:
        sources[CONTOUR_SOURCE_ID] = {
            "type": "vector",
            "tiles": [contour_tiles],
            "maxzoom": 15,
        }
    return sources


def order_layers(layers: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten slots and layers into a static bottom-to-top layer list.

    Each layer is placed directly below its slot, as if it had been added
    with ``before_id`` set to that slot.
    """
    ordered: list[dict[str, Any]] = []
    for slot_layer in create_slot_layers():
        slot = slot_layer["id"]
        ordered.extend(layer for layer in layers if SLOT_FOR_LAYER.get(layer["id"]) == slot)
        ordered.append(slot_layer)
    ordered.extend(layer for layer in layers if layer["id"] not in SLOT_FOR_LAYER)
    return ordered


def apply_layers(handle: MapHandle, sources: dict[str, Any], layers: list[dict[str, Any]],
                 terrain: Optional[dict[str, Any]] = None) -> None:
    """Push sources, slots and layers into a live map."""
    for source_id, spec in sources.items():
        handle.add_source(source_id, spec)
    for slot_layer in create_slot_layers():
        handle.add_layer(slot_layer)
    for layer in layers:
        handle.add_layer(layer, before_id=SLOT_FOR_LAYER.get(layer["id"]))
    handle.set_terrain(terrain if TERRAIN_SOURCE_ID in sources else None)


def create_style(
    source_key: str,
    ramp: ColorRamp,
    method: HillshadeMethod = HillshadeMethod.COMBINED,
    params: Optional[HillshadeParams] = None,
    basemap_key: str = "google",
    theme: str = "light",
    sky: Optional[SkyConfig] = None,
    credentials: Optional[Credentials] = None,
    custom_sources: Optional[Iterable[CustomTerrainSource]] = None,
    endpoint: str = DEFAULT_TITILER_ENDPOINT,
    show_hillshade: bool = True,
    show_color_relief: bool = False,
    show_raster_basemap: bool = False,
    show_contours: bool = False,
    contour_tiles: Optional[str] = None,
    show_background: bool = True,
    exaggeration: float = 1.0,
    color_relief_opacity: float = 1.0,
    custom_min_max: Optional[tuple[float, float]] = None,
    raster_basemap_opacity: float = 1.0,
    output_path: Optional[Path] = None,
) -> dict[str, Any]:
    """Assemble a complete style document for one viewport.

    Args:
        source_key: Terrain source key or custom id
        ramp: Color ramp for the hypsometric tint
        method: Hillshade method
        params: Hillshade parameters
        basemap_key: Raster basemap key
        theme: "light" or "dark"
        sky: Sky/fog colors
        custom_min_max: Elevation range the ramp stops are remapped onto
        contour_tiles: Contour vector tile URL; contour layers are only
            added when given
        output_path: Optional path to write the style as JSON

    Returns:
        Complete style dictionary
    """
    sky = sky or SkyConfig()
    sources = create_sources(source_key, basemap_key, credentials, custom_sources,
                             endpoint=endpoint, contour_tiles=contour_tiles)
    has_dem = HILLSHADE_SOURCE_ID in sources

    layers = []
    if sky.background_layer_active:
        layers.append(create_background_layer(theme))
    layers.append(create_raster_basemap_layer(show_raster_basemap, raster_basemap_opacity))
    if has_dem and show_color_relief:
        layers.append(create_color_relief_layer(ramp, color_relief_opacity, custom_min_max))
    if has_dem:
        layers.append(create_hillshade_layer(method, params, show_hillshade))
    if contour_tiles:
        layers.extend(create_contour_layers(show_contours, show_contours, theme))

    style = {
        "version": 8,
        "name": f"Terrain {source_key}",
        "sources": sources,
        "glyphs": GLYPHS_URL,
        "layers": order_layers(layers),
        "sky": sky_spec(sky, show_background, theme),
    }
    if has_dem:
        style["terrain"] = terrain_spec(exaggeration)

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(style, f, indent=2)

    return style
