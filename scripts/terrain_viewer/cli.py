#!/usr/bin/env python3
"""
Command-line interface for the terrain viewer core.

Usage:
    # List built-in terrain sources and basemaps
    python -m terrain_viewer.cli sources

    # Show the resolved tile access for a source
    python -m terrain_viewer.cli resolve mapterhorn

    # Print the GDAL_WMS descriptor and gdal_translate command for a bbox
    python -m terrain_viewer.cli gdal aws --bounds "7.0,45.9,7.1,46.0"

    # Export a float32 GeoTIFF DTM of a bbox
    python -m terrain_viewer.cli --output-dir exports export aws --bounds "7.0,45.9,7.1,46.0"

    # Hillshade paint for a method
    python -m terrain_viewer.cli paint igor --direction 270

    # Color ramps passing a license filter
    python -m terrain_viewer.cli ramps --license-filter open-distribute

    # Build or decode a share link query
    python -m terrain_viewer.cli share --set sourceA=aws --set zoom=9
    python -m terrain_viewer.cli share --decode "sourceA=aws&zoom=9"

Credentials are read from MAPBOX_KEY, MAPTILER_KEY, GOOGLE_KEY and the
TiTiler endpoint from TITILER_ENDPOINT.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional


def _load_custom_sources(path: Optional[str]):
    from .sources import CustomSourceCollection

    if not path:
        return CustomSourceCollection()
    return CustomSourceCollection.from_json(Path(path).read_text())


def cmd_sources(args: argparse.Namespace) -> int:
    """List terrain sources and raster basemaps."""
    from .sources import RASTER_BASEMAPS, TERRAIN_SOURCES

    print("Terrain sources:\n")
    for source in TERRAIN_SOURCES.values():
        print(f"  {source.key:15s} {source.encoding:11s} {source.tile_size:4d}px  z{source.max_zoom:<3d} {source.name}")
        print(f"    {source.description}")

    custom = _load_custom_sources(args.custom_sources)
    if len(custom):
        print("\nCustom sources:\n")
        for source in custom:
            print(f"  {source.id:20s} {source.type.value:11s} {source.name}")

    print("\nRaster basemaps:\n")
    for key, basemap in RASTER_BASEMAPS.items():
        print(f"  {key:15s} {basemap.url}")

    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve a source key."""
    from .config import ViewerConfig
    from .sources import lookup_cog_bounds, raster_dem_source, resolve
    from .sources.resolver import find_custom

    config = ViewerConfig.from_env(output_dir=Path(args.output_dir))
    custom = _load_custom_sources(args.custom_sources)

    resolved = resolve(args.source, config.credentials, custom, config.service.endpoint)
    if resolved is None:
        print(f"Source not found: {args.source}")
        return 1

    extent = None
    if args.extent:
        source = find_custom(args.source, custom)
        if source is not None:
            extent = lookup_cog_bounds(source, config.service)

    if args.json:
        spec = raster_dem_source(args.source, config.credentials, custom, config.service.endpoint)
        data = {"resolved": asdict(resolved), "raster_dem": spec}
        if args.extent:
            data["bounds"] = list(extent.as_tuple()) if extent else None
        print(json.dumps(data, indent=2))
        return 0

    print(f"Source: {args.source}")
    print(f"  Encoding:  {resolved.encoding}")
    print(f"  Tile size: {resolved.tile_size}")
    print(f"  Tile URL:  {resolved.tile_url}")
    if args.extent:
        bbox = ",".join(f"{v:g}" for v in extent.as_tuple()) if extent else "unknown"
        print(f"  Bounds:    {bbox}")
    return 0


def cmd_gdal(args: argparse.Namespace) -> int:
    """Print the GDAL_WMS descriptor and gdal_translate command."""
    from .config import ViewerConfig
    from .gdal import build_translate_command, build_wms_xml
    from .sources import resolve
    from .viewport import Bounds

    config = ViewerConfig.from_env(output_dir=Path(args.output_dir))
    custom = _load_custom_sources(args.custom_sources)

    resolved = resolve(args.source, config.credentials, custom, config.service.endpoint)
    if resolved is None:
        print(f"Source not found: {args.source}")
        return 1

    xml = build_wms_xml(resolved.tile_url, resolved.tile_size)
    if args.xml_only:
        print(xml)
        return 0

    bounds = Bounds.parse(args.bounds)
    print("GDAL_WMS descriptor:\n")
    print(xml)
    print("\ngdal_translate command:\n")
    print(build_translate_command(xml, bounds, args.max_pixels))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Export a DTM GeoTIFF for a bbox."""
    from .config import ViewerConfig
    from .export import DtmExporter, ExportStatus
    from .viewport import Bounds

    config = ViewerConfig.from_env(output_dir=Path(args.output_dir))
    config.export.max_resolution = args.resolution
    custom = _load_custom_sources(args.custom_sources)

    redirect = None
    if args.no_browser:
        redirect = lambda url: print(f"Direct download: {url}")

    exporter = DtmExporter(config, redirect=redirect)
    bounds = Bounds.parse(args.bounds)

    print(f"Exporting {args.source} for {args.bounds} at {args.resolution}px")
    result = exporter.export(args.source, bounds, custom_sources=custom)

    if result.status == ExportStatus.SAVED:
        print(f"✓ Saved {result.width}x{result.height} DTM to {result.path}")
        return 0
    if result.status == ExportStatus.REDIRECTED:
        print("Raster fetch failed, opened TiTiler download instead")
        return 0
    print(f"✗ Export failed: {result.status.value}")
    return 1


def cmd_paint(args: argparse.Namespace) -> int:
    """Print the hillshade paint for a method."""
    from .hillshade import HillshadeParams, build_paint, parse_method, support_flags

    try:
        method = parse_method(args.method)
    except ValueError as e:
        print(str(e))
        return 1

    params = HillshadeParams(
        illumination_direction=args.direction,
        illumination_altitude=args.altitude,
        opacity=args.opacity,
        shadow_color=args.shadow_color,
        highlight_color=args.highlight_color,
        accent_color=args.accent_color,
        exaggeration=args.exaggeration,
    )
    flags = support_flags(method)
    supported = [name for name, on in asdict(flags).items() if on]

    print(f"Method: {method.value}")
    print(f"Adjustable: {', '.join(supported) or 'none'}")
    print(json.dumps(build_paint(method, params), indent=2))
    return 0


def cmd_ramps(args: argparse.Namespace) -> int:
    """List color ramps."""
    from .color_ramps import filter_ramps, load_cpt_dir, ramp_groups, ramp_range
    from .config import ViewerConfig

    config = ViewerConfig.from_env(output_dir=Path(args.output_dir))
    extra = {}
    if args.cpt_dir:
        cpt_dir = Path(args.cpt_dir)
        extra[cpt_dir.name] = load_cpt_dir(cpt_dir)
    groups = ramp_groups(extra)

    ramp_type = args.type or config.color_ramp_type
    license_filter = args.license_filter or config.license_filter
    if ramp_type not in groups:
        print(f"Unknown ramp type: {ramp_type}. Available: {', '.join(groups)}")
        return 1

    ramps = filter_ramps(groups, ramp_type, license_filter)
    print(f"Color ramps ({ramp_type}, {license_filter}):\n")
    for key, ramp in ramps.items():
        low, high = ramp_range(ramp.colors)
        print(f"  {key:20s} {ramp.name:25s} {low:g} .. {high:g} m")
    return 0


def cmd_share(args: argparse.Namespace) -> int:
    """Build or decode a share link query string."""
    from .view_state import ViewState

    if args.decode is not None:
        state = ViewState.from_query(args.decode)
        for key, value in state.to_params(include_defaults=True).items():
            print(f"  {key:28s} {value}")
        return 0

    updates = {}
    for item in args.set or []:
        key, sep, value = item.partition("=")
        if not sep:
            print(f"Expected key=value, got: {item}")
            return 1
        updates[key] = value

    state = ViewState.from_query(updates)
    print(f"?{state.to_query(include_defaults=args.all)}")
    return 0


def cmd_style(args: argparse.Namespace) -> int:
    """Write a complete MapLibre style for a source."""
    from .color_ramps import load_cpt_dir, ramp_groups, select_ramp
    from .config import ViewerConfig
    from .style import create_style
    from .view_state import ViewState

    config = ViewerConfig.from_env(output_dir=Path(args.output_dir))
    custom = _load_custom_sources(args.custom_sources)
    state = ViewState.from_query(args.query or "")
    state.apply_to_config(config)

    extra = {}
    if args.cpt_dir:
        cpt_dir = Path(args.cpt_dir)
        extra[cpt_dir.name] = load_cpt_dir(cpt_dir)
    ramp = select_ramp(state.color_ramp, ramp_groups(extra))
    output = Path(args.output)
    style = create_style(
        state.source_a,
        ramp,
        method=state.method(),
        params=state.hillshade_params(),
        basemap_key=state.basemap_source,
        theme=config.theme,
        sky=config.sky,
        credentials=config.credentials,
        custom_sources=custom,
        endpoint=config.service.endpoint,
        show_hillshade=state.show_hillshade,
        show_color_relief=state.show_color_relief,
        show_raster_basemap=state.show_raster_basemap,
        show_contours=state.show_contours_and_graticules and state.show_contours,
        contour_tiles=args.contour_tiles,
        show_background=state.show_background,
        exaggeration=state.exaggeration,
        color_relief_opacity=state.color_relief_opacity,
        custom_min_max=state.custom_min_max(),
        raster_basemap_opacity=state.raster_basemap_opacity,
        output_path=output,
    )
    print(f"✓ Wrote style with {len(style['layers'])} layers to {output}")
    return 0


def main() -> int:
    """Main entry point."""
    from .color_ramps import LICENSE_FILTERS

    parser = argparse.ArgumentParser(
        description="Terrain viewer core: sources, exports and styling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--custom-sources", help="JSON file with custom terrain sources")
    parser.add_argument("--output-dir", default="exports", help="Output directory")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("sources", help="List terrain sources and basemaps")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a source key")
    resolve_parser.add_argument("source", help="Built-in key or custom source id")
    resolve_parser.add_argument("--json", action="store_true", help="Output as JSON")
    resolve_parser.add_argument("--extent", action="store_true",
                                help="Look up the extent of a custom COG/VRT source")

    gdal_parser = subparsers.add_parser("gdal", help="GDAL descriptor and gdal_translate command")
    gdal_parser.add_argument("source", help="Built-in key or custom source id")
    gdal_parser.add_argument("--bounds", default="-180,-90,180,90",
                             help="Bounds as west,south,east,north")
    gdal_parser.add_argument("--max-pixels", type=int, default=1024,
                             help="Output width passed to -outsize")
    gdal_parser.add_argument("--xml-only", action="store_true", help="Print only the descriptor")

    export_parser = subparsers.add_parser("export", help="Export a DTM GeoTIFF")
    export_parser.add_argument("source", help="Built-in key or custom source id")
    export_parser.add_argument("--bounds", required=True, help="Bounds as west,south,east,north")
    export_parser.add_argument("--resolution", type=int, default=1024,
                               help="Requested raster width and height")
    export_parser.add_argument("--no-browser", action="store_true",
                               help="Print the fallback download URL instead of opening it")

    paint_parser = subparsers.add_parser("paint", help="Hillshade paint for a method")
    paint_parser.add_argument("method", help="standard, combined, igor, basic, multidirectional, ...")
    paint_parser.add_argument("--direction", type=float, default=315.0, help="Illumination direction")
    paint_parser.add_argument("--altitude", type=float, default=45.0, help="Illumination altitude")
    paint_parser.add_argument("--opacity", type=float, default=1.0, help="Shadow/highlight opacity")
    paint_parser.add_argument("--shadow-color", default="#000000")
    paint_parser.add_argument("--highlight-color", default="#FFFFFF")
    paint_parser.add_argument("--accent-color", default="#808080")
    paint_parser.add_argument("--exaggeration", type=float, default=1.0)

    ramps_parser = subparsers.add_parser("ramps", help="List color ramps")
    ramps_parser.add_argument("--type", help="Ramp group (default from config)")
    ramps_parser.add_argument("--license-filter", default=None,
                              choices=LICENSE_FILTERS)
    ramps_parser.add_argument("--cpt-dir", help="Directory of .cpt palettes loaded as a group")

    share_parser = subparsers.add_parser("share", help="Build or decode a share link query")
    share_parser.add_argument("--set", action="append", metavar="KEY=VALUE",
                              help="Query key to set (repeatable)")
    share_parser.add_argument("--decode", help="Query string to decode")
    share_parser.add_argument("--all", action="store_true", help="Include default values")

    style_parser = subparsers.add_parser("style", help="Write a MapLibre style.json")
    style_parser.add_argument("--query", help="Share link query describing the view")
    style_parser.add_argument("--output", "-o", default="style.json", help="Output file path")
    style_parser.add_argument("--cpt-dir", help="Directory of .cpt palettes to pick the ramp from")
    style_parser.add_argument("--contour-tiles", help="Contour vector tile URL template")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    if args.command == "sources":
        return cmd_sources(args)
    elif args.command == "resolve":
        return cmd_resolve(args)
    elif args.command == "gdal":
        return cmd_gdal(args)
    elif args.command == "export":
        return cmd_export(args)
    elif args.command == "paint":
        return cmd_paint(args)
    elif args.command == "ramps":
        return cmd_ramps(args)
    elif args.command == "share":
        return cmd_share(args)
    elif args.command == "style":
        return cmd_style(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
