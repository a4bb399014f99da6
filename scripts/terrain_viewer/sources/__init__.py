"""
Terrain source catalog and resolution.

Provides unified access to:
- Built-in raster-dem tile services (Mapterhorn, Mapbox, MapTiler, AWS)
- User-defined sources (COG, TerrainRGB/Terrarium tiles, VRT, ...)
- Raster basemaps
"""

from .catalog import (
    TERRAIN_SOURCES,
    RASTER_BASEMAPS,
    TerrainSourceDescriptor,
    BasemapDescriptor,
    template_link,
    list_sources,
)
from .custom import (
    SourceType,
    BasemapType,
    CustomTerrainSource,
    CustomBasemapSource,
    CustomSourceCollection,
    SourceValidationError,
    parse_sources_json,
)
from .resolver import (
    ResolvedSourceConfig,
    resolve,
    resolve_basemap,
    raster_dem_source,
    tile_url,
    cog_tile_url,
    fetch_cog_bounds,
    read_cog_bounds,
    lookup_cog_bounds,
)

__all__ = [
    "TERRAIN_SOURCES",
    "RASTER_BASEMAPS",
    "TerrainSourceDescriptor",
    "BasemapDescriptor",
    "template_link",
    "list_sources",
    "SourceType",
    "BasemapType",
    "CustomTerrainSource",
    "CustomBasemapSource",
    "CustomSourceCollection",
    "SourceValidationError",
    "parse_sources_json",
    "ResolvedSourceConfig",
    "resolve",
    "resolve_basemap",
    "raster_dem_source",
    "tile_url",
    "cog_tile_url",
    "fetch_cog_bounds",
    "read_cog_bounds",
    "lookup_cog_bounds",
]
