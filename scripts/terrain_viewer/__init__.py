"""
Terrain viewer core.

Data and logic layer of an interactive elevation viewer:
- Terrain source catalog and resolution (built-in and custom sources)
- TerrainRGB / Terrarium elevation codec
- GDAL_WMS descriptors and gdal_translate commands
- Float32 GeoTIFF DTM export through TiTiler
- Hillshade, color relief and style assembly for MapLibre
- Split-screen camera synchronization
- Screenshots with world files
- Shareable URL view state
"""

__version__ = "0.1.0"

from .codec import decode, decode_array
from .config import Credentials, ExportConfig, ServiceConfig, SkyConfig, ViewerConfig
from .export import DtmExporter, ExportResult, ExportStatus
from .gdal import build_translate_command, build_wms_xml
from .hillshade import HillshadeMethod, HillshadeParams, build_paint, support_flags
from .sources import CustomSourceCollection, ResolvedSourceConfig, resolve
from .sync import ViewportSynchronizer
from .view_state import ViewState
from .viewport import Bounds, Camera, MapHandle

__all__ = [
    "decode",
    "decode_array",
    "Credentials",
    "ExportConfig",
    "ServiceConfig",
    "SkyConfig",
    "ViewerConfig",
    "DtmExporter",
    "ExportResult",
    "ExportStatus",
    "build_translate_command",
    "build_wms_xml",
    "HillshadeMethod",
    "HillshadeParams",
    "build_paint",
    "support_flags",
    "CustomSourceCollection",
    "ResolvedSourceConfig",
    "resolve",
    "ViewportSynchronizer",
    "ViewState",
    "Bounds",
    "Camera",
    "MapHandle",
]
