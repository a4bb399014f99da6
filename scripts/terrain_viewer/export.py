"""
DTM export: fetch, decode and re-georeference the current viewport.

The export asks TiTiler to render the selected terrain source (wrapped in a
GDAL_WMS descriptor) for the viewport bbox, decodes the returned RGB
bands into float32 heights and writes a single-band GeoTIFF in EPSG:4326.

Any failure after the request is built falls back to handing the TiTiler
URL to the browser, which lets the service stream the raw download itself.
"""

import logging
import time
import webbrowser
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

import numpy as np
from numpy.typing import NDArray
from affine import Affine
from rasterio.io import MemoryFile
from rasterio.transform import from_origin
import requests

from .codec import TERRAINRGB, TERRARIUM, decode_array
from .config import Credentials, ViewerConfig
from .gdal import build_bbox_download_url, build_wms_xml
from .sources.custom import CustomTerrainSource
from .sources.resolver import resolve
from .viewport import Bounds


logger = logging.getLogger(__name__)

USER_AGENT = "TerrainViewer/1.0"


@dataclass
class ElevationGrid:
    """Row-major float32 height samples."""

    width: int
    height: int
    values: NDArray[np.float32]  # shape (height, width)


@dataclass(frozen=True)
class GeoTransform:
    """North-up geotransform: top-left tie-point plus pixel sizes in degrees."""

    west: float
    north: float
    pixel_size_x: float
    pixel_size_y: float

    @property
    def tie_point(self) -> tuple[float, float]:
        return (self.west, self.north)

    def to_affine(self) -> Affine:
        return from_origin(self.west, self.north, self.pixel_size_x, self.pixel_size_y)

    def to_gdal(self) -> tuple[float, float, float, float, float, float]:
        """GDAL-ordered coefficients (x0, dx, 0, y0, 0, -dy)."""
        return (self.west, self.pixel_size_x, 0.0, self.north, 0.0, -self.pixel_size_y)


class ExportStatus(str, Enum):
    SAVED = "saved"
    REDIRECTED = "redirected"
    NOT_FOUND = "not_found"
    UNSUPPORTED = "unsupported"
    BUSY = "busy"


@dataclass
class ExportResult:
    """Outcome of one export call."""

    status: ExportStatus
    url: str = ""
    path: Optional[Path] = None
    width: int = 0
    height: int = 0


def compute_geotransform(bounds: Bounds, width: int, height: int) -> GeoTransform:
    """Geotransform mapping an image of width × height onto bounds."""
    return GeoTransform(
        west=bounds.west,
        north=bounds.north,
        pixel_size_x=(bounds.east - bounds.west) / width,
        pixel_size_y=(bounds.north - bounds.south) / height,
    )


def read_rgb_bands(data: bytes) -> NDArray[np.uint8]:
    """Read the first three bands of an in-memory raster.

    Returns:
        Array of shape (3, height, width)

    Raises:
        ValueError: If the raster has fewer than three bands
    """
    with MemoryFile(data) as memfile:
        with memfile.open() as dataset:
            if dataset.count < 3:
                raise ValueError(f"Expected at least 3 bands, got {dataset.count}")
            return dataset.read([1, 2, 3])


def decode_elevation(bands: NDArray, encoding: str) -> ElevationGrid:
    """Decode RGB bands of shape (3, H, W) into an elevation grid."""
    r, g, b = bands[0], bands[1], bands[2]
    values = decode_array(encoding, r, g, b)
    height, width = values.shape
    return ElevationGrid(width=width, height=height, values=values)


def write_geotiff(grid: ElevationGrid, transform: GeoTransform) -> bytes:
    """Serialize an elevation grid as a single-band float32 GeoTIFF.

    The file carries EPSG:4326 georeferencing (ModelPixelScale and
    ModelTiepoint are derived from the affine transform by GDAL).
    """
    profile = {
        "driver": "GTiff",
        "width": grid.width,
        "height": grid.height,
        "count": 1,
        "dtype": "float32",
        "crs": "EPSG:4326",
        "transform": transform.to_affine(),
        "photometric": "MINISBLACK",
    }
    with MemoryFile() as memfile:
        with memfile.open(**profile) as dst:
            dst.write(grid.values.astype(np.float32), 1)
        return memfile.read()


def save_bytes(data: bytes, path: Path) -> Path:
    """Write bytes to path, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class DtmExporter:
    """Exports the viewport of a terrain source as a float32 GeoTIFF."""

    def __init__(
        self,
        config: Optional[ViewerConfig] = None,
        session: Optional[requests.Session] = None,
        redirect: Optional[Callable[[str], object]] = None,
        save: Optional[Callable[[bytes, Path], Path]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the exporter.

        Args:
            config: Viewer configuration (uses defaults if None)
            session: HTTP session used for the raster fetch
            redirect: Opens a URL for direct download (browser by default)
            save: Persists the serialized GeoTIFF
            clock: Time source for file name timestamps
        """
        self.config = config or ViewerConfig()
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self.redirect = redirect or webbrowser.open
        self.save = save or save_bytes
        self.clock = clock
        self.exporting = False

    def download_url(
        self,
        source_key: str,
        bounds: Bounds,
        credentials: Optional[Credentials] = None,
        custom_sources: Optional[Iterable[CustomTerrainSource]] = None,
    ) -> str:
        """TiTiler bbox URL for a source, or "" when the source is unknown."""
        resolved = resolve(
            source_key,
            credentials or self.config.credentials,
            custom_sources,
            self.config.service.endpoint,
        )
        if resolved is None:
            return ""
        resolution = self.config.export.max_resolution
        xml = build_wms_xml(resolved.tile_url, resolved.tile_size)
        return build_bbox_download_url(self.config.service.endpoint, xml, bounds, resolution, resolution)

    def export(
        self,
        source_key: str,
        bounds: Bounds,
        credentials: Optional[Credentials] = None,
        custom_sources: Optional[Iterable[CustomTerrainSource]] = None,
    ) -> ExportResult:
        """Export the bounds of a terrain source as a GeoTIFF file.

        Returns:
            ExportResult; ``busy`` when another export is still running
        """
        if self.exporting:
            logger.info("Export already in progress")
            return ExportResult(ExportStatus.BUSY)

        self.exporting = True
        try:
            return self._export(source_key, bounds, credentials, custom_sources)
        finally:
            self.exporting = False

    def _export(
        self,
        source_key: str,
        bounds: Bounds,
        credentials: Optional[Credentials],
        custom_sources: Optional[Iterable[CustomTerrainSource]],
    ) -> ExportResult:
        custom_sources = list(custom_sources or [])
        resolved = resolve(
            source_key,
            credentials or self.config.credentials,
            custom_sources,
            self.config.service.endpoint,
        )
        if resolved is None:
            logger.error(f"Source config not found: {source_key}")
            return ExportResult(ExportStatus.NOT_FOUND)
        if resolved.encoding not in (TERRAINRGB, TERRARIUM):
            logger.error(f"Source {source_key} is not an elevation raster ({resolved.encoding})")
            return ExportResult(ExportStatus.UNSUPPORTED)

        url = self.download_url(source_key, bounds, credentials, custom_sources)

        try:
            response = self.session.get(url, timeout=self.config.service.timeout)
            if not 200 <= response.status_code < 300:
                logger.warning(f"TiTiler returned HTTP {response.status_code}, opening direct download")
                return self._fallback(url)

            bands = read_rgb_bands(response.content)
            grid = decode_elevation(bands, resolved.encoding)
            transform = compute_geotransform(bounds, grid.width, grid.height)
            data = write_geotiff(grid, transform)

            filename = f"terrain-dtm-{int(self.clock() * 1000)}.tif"
            path = self.save(data, self.config.export.output_dir / filename)
            logger.info(f"Exported DTM {grid.width}x{grid.height} to {path}")
            return ExportResult(ExportStatus.SAVED, url, path, grid.width, grid.height)

        except Exception as e:
            logger.error(f"Failed to export DTM: {e}")
            return self._fallback(url)

    def _fallback(self, url: str) -> ExportResult:
        self.redirect(url)
        return ExportResult(ExportStatus.REDIRECTED, url)
