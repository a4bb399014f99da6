"""
Resolve source keys into concrete tile access descriptors.

A source key is either a built-in catalog key (``mapterhorn``, ``aws``, ...)
or the id of a user-defined source. Resolution substitutes provider
credentials and routes cloud-optimized GeoTIFFs through the TiTiler tile
endpoint. Unknown keys resolve to None rather than raising, so callers can
disable elevation-dependent features.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional
from urllib.parse import quote

import rasterio
import rasterio.errors
import requests
from rasterio.warp import transform_bounds

from ..config import Credentials, DEFAULT_TITILER_ENDPOINT, ServiceConfig
from ..viewport import Bounds
from .catalog import (
    API_KEY_PLACEHOLDER,
    DEFAULT_BASEMAP,
    KEYED_PROVIDERS,
    RASTER_BASEMAPS,
    TERRAIN_SOURCES,
)
from .custom import (
    BasemapType,
    CustomBasemapSource,
    CustomTerrainSource,
    SourceType,
)


logger = logging.getLogger(__name__)

CUSTOM_TILE_SIZE = 256
TILE_MATRIX_SET = "WebMercatorQuad"

# Encoding names understood by the rendering engine's raster-dem sources
ENGINE_ENCODINGS = {
    "terrainrgb": "mapbox",
    "terrarium": "terrarium",
}


@dataclass(frozen=True)
class ResolvedSourceConfig:
    """Concrete tile access for one source, derived on demand."""

    encoding: str
    tile_url: str
    tile_size: int


def encode_url_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe="-_.!~*'()")


def tile_url(key: str, credentials: Optional[Credentials] = None) -> str:
    """Credential-substituted tile template of a built-in source.

    Returns an empty string for unknown keys.
    """
    source = TERRAIN_SOURCES.get(key)
    if source is None:
        return ""
    template = source.tile_url_template
    if key in KEYED_PROVIDERS:
        api_key = credentials.for_provider(key) if credentials else ""
        template = template.replace(API_KEY_PLACEHOLDER, api_key)
    return template


def cog_tile_url(url: str, endpoint: str = DEFAULT_TITILER_ENDPOINT) -> str:
    """TiTiler tile template serving a COG as Terrarium PNG tiles."""
    return (
        f"{endpoint.rstrip('/')}/cog/tiles/{TILE_MATRIX_SET}/{{z}}/{{x}}/{{y}}.png"
        f"?url={encode_url_component(url)}&algorithm=terrarium"
    )


def custom_source_url(source: CustomTerrainSource, endpoint: str = DEFAULT_TITILER_ENDPOINT) -> str:
    """Tile URL for a custom source; only COGs are rewritten."""
    if source.type == SourceType.COG:
        return cog_tile_url(source.url, endpoint)
    return source.url


def custom_source_encoding(source: CustomTerrainSource) -> str:
    """COGs are served as Terrarium; TerrainRGB stays TerrainRGB; the rest default to Terrarium."""
    if source.type == SourceType.TERRAINRGB:
        return "terrainrgb"
    return "terrarium"


def find_custom(
    source_key: str,
    custom_sources: Optional[Iterable[CustomTerrainSource]],
) -> Optional[CustomTerrainSource]:
    for source in custom_sources or ():
        if source.id == source_key:
            return source
    return None


def resolve(
    source_key: str,
    credentials: Optional[Credentials] = None,
    custom_sources: Optional[Iterable[CustomTerrainSource]] = None,
    endpoint: str = DEFAULT_TITILER_ENDPOINT,
) -> Optional[ResolvedSourceConfig]:
    """Resolve a source key to its tile access descriptor.

    Args:
        source_key: Built-in catalog key or custom source id
        credentials: Provider API keys
        custom_sources: User-defined sources, searched by id
        endpoint: TiTiler endpoint used for COG sources

    Returns:
        ResolvedSourceConfig, or None when the key is unknown
    """
    source = TERRAIN_SOURCES.get(source_key)
    if source is not None:
        return ResolvedSourceConfig(
            encoding=source.encoding,
            tile_url=tile_url(source_key, credentials),
            tile_size=source.tile_size or CUSTOM_TILE_SIZE,
        )

    custom = find_custom(source_key, custom_sources)
    if custom is not None:
        return ResolvedSourceConfig(
            encoding=custom_source_encoding(custom),
            tile_url=custom_source_url(custom, endpoint),
            tile_size=CUSTOM_TILE_SIZE,
        )

    logger.debug(f"Source not found: {source_key}")
    return None


def raster_dem_source(
    source_key: str,
    credentials: Optional[Credentials] = None,
    custom_sources: Optional[Iterable[CustomTerrainSource]] = None,
    endpoint: str = DEFAULT_TITILER_ENDPOINT,
) -> Optional[dict[str, Any]]:
    """Build the renderer's raster-dem source spec for a source key."""
    resolved = resolve(source_key, credentials, custom_sources, endpoint)
    if resolved is None or resolved.encoding not in ENGINE_ENCODINGS:
        return None

    builtin = TERRAIN_SOURCES.get(source_key)
    return {
        "type": "raster-dem",
        "tiles": [resolved.tile_url],
        "tileSize": resolved.tile_size,
        "maxzoom": builtin.max_zoom if builtin else 14,
        "encoding": ENGINE_ENCODINGS[resolved.encoding],
    }


def resolve_basemap(
    basemap_key: str,
    credentials: Optional[Credentials] = None,
    custom_basemaps: Optional[Iterable[CustomBasemapSource]] = None,
    endpoint: str = DEFAULT_TITILER_ENDPOINT,
) -> ResolvedSourceConfig:
    """Resolve a raster basemap key.

    Custom basemaps take precedence; unknown built-in keys fall back to
    the default basemap.
    """
    for custom in custom_basemaps or ():
        if custom.id == basemap_key:
            if custom.type == BasemapType.COG:
                url = (
                    f"{endpoint.rstrip('/')}/cog/tiles/{TILE_MATRIX_SET}/{{z}}/{{x}}/{{y}}.png"
                    f"?url={encode_url_component(custom.url)}"
                )
                return ResolvedSourceConfig("cog", url, CUSTOM_TILE_SIZE)
            return ResolvedSourceConfig(BasemapType(custom.type).value, custom.url, CUSTOM_TILE_SIZE)

    basemap = RASTER_BASEMAPS.get(basemap_key) or RASTER_BASEMAPS[DEFAULT_BASEMAP]
    url = basemap.url
    if basemap.key == "mapbox":
        api_key = credentials.for_provider("mapbox") if credentials else ""
        url = url.replace(API_KEY_PLACEHOLDER, api_key)
    return ResolvedSourceConfig("tms", url, basemap.tile_size)


def cog_info_url(source: CustomTerrainSource, endpoint: str = DEFAULT_TITILER_ENDPOINT) -> Optional[str]:
    """TiTiler info endpoint for COG and VRT sources, None for other types."""
    base = f"{endpoint.rstrip('/')}/cog/info.geojson"
    if source.type == SourceType.COG:
        return f"{base}?url={encode_url_component(source.url)}"
    if source.type == SourceType.VRT:
        return f"{base}?url=vrt:///vsicurl/{encode_url_component(source.url)}"
    return None


def fetch_cog_bounds(
    source: CustomTerrainSource,
    endpoint: str = DEFAULT_TITILER_ENDPOINT,
    session: Optional[requests.Session] = None,
    timeout: float = 10.0,
) -> Optional[Bounds]:
    """Look up the geographic extent of a COG/VRT source through TiTiler.

    Reads ``bbox`` from the info GeoJSON, falling back to
    ``properties.bounds``. Network and parse failures are logged and
    return None.
    """
    info_url = cog_info_url(source, endpoint)
    if info_url is None:
        return None

    http = session or requests.Session()
    try:
        response = http.get(info_url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
        bbox = data.get("bbox") or data.get("properties", {}).get("bounds")
        if not bbox:
            logger.warning(f"No bounds in COG info for {source.url}")
            return None
        return Bounds.from_sequence(bbox)
    except (requests.RequestException, ValueError, TypeError, AttributeError) as e:
        logger.error(f"Failed to fetch COG bounds for {source.url}: {e}")
        return None


def read_cog_bounds(source: CustomTerrainSource) -> Optional[Bounds]:
    """Read the geographic extent of a COG/VRT source from its own header.

    Remote URLs are opened through GDAL's HTTP range reads, so only the
    header is fetched. Returns None for other source types, rasters
    without a CRS, and unreadable files.
    """
    if source.type not in (SourceType.COG, SourceType.VRT):
        return None

    try:
        with rasterio.open(source.url) as src:
            if src.crs is None:
                logger.warning(f"No CRS in COG header for {source.url}")
                return None
            west, south, east, north = transform_bounds(src.crs, "EPSG:4326", *src.bounds)
    except (rasterio.errors.RasterioError, ValueError) as e:
        logger.error(f"Failed to read COG header for {source.url}: {e}")
        return None
    return Bounds(west, south, east, north)


def lookup_cog_bounds(
    source: CustomTerrainSource,
    service: Optional[ServiceConfig] = None,
    session: Optional[requests.Session] = None,
) -> Optional[Bounds]:
    """Extent of a COG/VRT source, read directly or through TiTiler.

    ``service.use_cog_protocol`` selects the direct header read; otherwise
    the TiTiler info endpoint is queried.
    """
    service = service or ServiceConfig()
    if service.use_cog_protocol:
        return read_cog_bounds(source)
    return fetch_cog_bounds(source, service.endpoint, session, service.timeout)
