"""
GDAL interop artifacts for a tiled terrain source.

Builds a GDAL_WMS (TMS flavour) virtual raster descriptor from a tile
template, the equivalent ``gdal_translate`` command for the current
viewport, and the TiTiler bbox download URL used by the DTM export.
Everything here is plain string building; nothing touches the network.
"""

import math
import re
from xml.sax.saxutils import escape

from .sources.resolver import encode_url_component
from .viewport import Bounds


# Full Web Mercator extent in meters
WEB_MERCATOR_EXTENT = 20037508.34
TILE_LEVEL = 18
OUTPUT_FILENAME = "output.tif"

_WHITESPACE = re.compile(r"\s+")


def format_number(value: float) -> str:
    """Render a number the way a JavaScript template literal would.

    Integral values drop the trailing ``.0``; everything else uses the
    shortest round-trip representation.
    """
    if isinstance(value, float) and math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def build_wms_xml(tile_url_template: str, tile_size: int = 256) -> str:
    """Build a GDAL_WMS descriptor for an XYZ tile template.

    The {x}/{y}/{z} placeholders are kept as-is; only XML special
    characters (``&`` in query strings) are escaped.

    Args:
        tile_url_template: Tile URL with {z}, {x}, {y} placeholders
        tile_size: Tile edge length in pixels

    Returns:
        XML document as a string
    """
    server_url = escape(tile_url_template)
    extent = format_number(WEB_MERCATOR_EXTENT)
    return (
        "<GDAL_WMS>\n"
        "  <Service name='TMS'>\n"
        f"    <ServerUrl>{server_url}</ServerUrl>\n"
        "  </Service>\n"
        "  <DataWindow>\n"
        f"    <UpperLeftX>-{extent}</UpperLeftX>\n"
        f"    <UpperLeftY>{extent}</UpperLeftY>\n"
        f"    <LowerRightX>{extent}</LowerRightX>\n"
        f"    <LowerRightY>-{extent}</LowerRightY>\n"
        f"    <TileLevel>{TILE_LEVEL}</TileLevel>\n"
        "    <TileCountX>1</TileCountX>\n"
        "    <TileCountY>1</TileCountY>\n"
        "    <YOrigin>top</YOrigin>\n"
        "  </DataWindow>\n"
        "  <Projection>EPSG:3857</Projection>\n"
        f"  <BlockSizeX>{tile_size}</BlockSizeX>\n"
        f"  <BlockSizeY>{tile_size}</BlockSizeY>\n"
        "  <BandsCount>3</BandsCount>\n"
        "  <ZeroBlockHttpCodes>204,404</ZeroBlockHttpCodes>\n"
        "  <Cache />\n"
        "</GDAL_WMS>"
    )


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs (newlines included) into single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def build_translate_command(xml: str, bounds: Bounds, max_output_pixels: int) -> str:
    """Build a single-line gdal_translate invocation for the viewport.

    ``-outsize N 0`` lets GDAL derive the second dimension from the
    aspect ratio. The projection window is given as west north east south
    in EPSG:4326.
    """
    projwin = " ".join(
        format_number(v) for v in (bounds.west, bounds.north, bounds.east, bounds.south)
    )
    return (
        f"gdal_translate -outsize {max_output_pixels} 0 "
        f"-projwin {projwin} -projwin_srs EPSG:4326 "
        f'"{collapse_whitespace(xml)}" {OUTPUT_FILENAME}'
    )


def build_bbox_download_url(
    endpoint: str,
    xml: str,
    bounds: Bounds,
    width: int,
    height: int,
) -> str:
    """TiTiler URL returning the bbox of a virtual raster as a GeoTIFF."""
    bbox = ",".join(format_number(v) for v in bounds.as_tuple())
    return (
        f"{endpoint.rstrip('/')}/cog/bbox/{bbox}/{width}x{height}.tif"
        f"?url={encode_url_component(xml)}"
    )
