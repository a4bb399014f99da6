"""
Built-in terrain and basemap catalogs.

Each terrain entry describes a public raster-dem tile service and the
encoding its tiles use. Templates containing ``{API_KEY}`` need a
provider credential substituted before use.
"""

from dataclasses import dataclass


API_KEY_PLACEHOLDER = "{API_KEY}"

# Providers whose templates carry the {API_KEY} placeholder
KEYED_PROVIDERS = ("mapbox", "maptiler", "google3dtiles")


@dataclass(frozen=True)
class TerrainSourceDescriptor:
    """Immutable catalog entry for a built-in terrain source."""

    key: str
    name: str
    description: str
    link: str
    encoding: str  # "terrainrgb", "terrarium" or "3dtiles"
    tile_url_template: str
    tile_size: int = 256
    max_zoom: int = 14

    @property
    def is_elevation_raster(self) -> bool:
        return self.encoding in ("terrainrgb", "terrarium")


@dataclass(frozen=True)
class BasemapDescriptor:
    """Built-in raster basemap."""

    key: str
    url: str
    tile_size: int = 256
    max_zoom: int = 19


TERRAIN_SOURCES: dict[str, TerrainSourceDescriptor] = {
    "mapterhorn": TerrainSourceDescriptor(
        key="mapterhorn",
        name="Mapterhorn Terrarium",
        description="Mapterhorn terrain tiles with Terrarium encoding",
        link="https://mapterhorn.com/",
        encoding="terrarium",
        tile_url_template="https://tiles.mapterhorn.com/{z}/{x}/{y}.webp",
        tile_size=512,
        max_zoom=14,
    ),
    "mapbox": TerrainSourceDescriptor(
        key="mapbox",
        name="Mapbox TerrainRGB",
        description="Mapbox Terrain DEM v1 with TerrainRGB encoding",
        link="https://docs.mapbox.com/data/tilesets/reference/mapbox-terrain-dem-v1/",
        encoding="terrainrgb",
        tile_url_template=(
            "https://api.mapbox.com/v4/mapbox.terrain-rgb/{z}/{x}/{y}.png"
            "?access_token={API_KEY}"
        ),
        tile_size=256,
        max_zoom=14,
    ),
    "maptiler": TerrainSourceDescriptor(
        key="maptiler",
        name="MapTiler TerrainRGB",
        description="MapTiler terrain tiles with TerrainRGB encoding",
        link="https://www.maptiler.com/terrain/",
        encoding="terrainrgb",
        tile_url_template="https://api.maptiler.com/tiles/terrain-rgb-v2/{z}/{x}/{y}.webp?key={API_KEY}",
        tile_size=512,
        max_zoom=12,
    ),
    "aws": TerrainSourceDescriptor(
        key="aws",
        name="AWS Elevation Tiles (Mapzen Terrarium)",
        description="AWS Terrain Tiles - Open Data Registry (Mapzen Terrarium encoding)",
        link="https://registry.opendata.aws/terrain-tiles/",
        encoding="terrarium",
        tile_url_template="https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png",
        tile_size=256,
        max_zoom=15,
    ),
    "google3dtiles": TerrainSourceDescriptor(
        key="google3dtiles",
        name="Google 3D Tiles (via DeckGL only)",
        description=(
            "Google 3D Cities, 3D-tiles tilesets are not compatible with "
            "raster-dem rendering"
        ),
        link=(
            "https://goo.gle/3d-area-explorer-admin#camera.orbitType=fixed-orbit"
            "&location.coordinates.lat={LAT}&location.coordinates.lng={LNG}"
        ),
        encoding="3dtiles",
        tile_url_template="https://tile.googleapis.com/v1/3dtiles/root.json?key={API_KEY}",
        tile_size=256,
        max_zoom=14,
    ),
}


RASTER_BASEMAPS: dict[str, BasemapDescriptor] = {
    "osm": BasemapDescriptor("osm", "https://a.tile.openstreetmap.org/{z}/{x}/{y}.png", 256, 19),
    "googlesat": BasemapDescriptor("googlesat", "https://mt1.google.com/vt/lyrs=s&x={x}&y={y}&z={z}", 256, 20),
    "google": BasemapDescriptor("google", "https://mt1.google.com/vt/lyrs=y&x={x}&y={y}&z={z}", 256, 20),
    "esri": BasemapDescriptor(
        "esri",
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        256,
        19,
    ),
    "mapbox": BasemapDescriptor(
        "mapbox",
        "https://api.mapbox.com/v4/mapbox.satellite/{z}/{x}/{y}.jpg?access_token={API_KEY}",
        256,
        22,
    ),
    "bing": BasemapDescriptor(
        "bing",
        "https://t0.tiles.virtualearth.net/tiles/a{quadkey}.jpeg?g=854&mkt=en-US",
        256,
        19,
    ),
}

DEFAULT_BASEMAP = "google"


def template_link(link: str, lat: str, lng: str) -> str:
    """Fill {LAT}/{LNG} placeholders of a catalog link."""
    return link.replace("{LAT}", str(lat)).replace("{LNG}", str(lng))


def list_sources() -> list[str]:
    """Return built-in terrain source keys."""
    return list(TERRAIN_SOURCES.keys())
