#!/usr/bin/env python3
"""Tests for terrain source catalog, custom sources and resolution."""
import pytest
import json
from pathlib import Path
from unittest.mock import MagicMock
from urllib.parse import unquote
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import rasterio
import requests
from rasterio.transform import from_bounds

from terrain_viewer.config import Credentials, ServiceConfig
from terrain_viewer.sources import (
    TERRAIN_SOURCES,
    CustomSourceCollection,
    CustomTerrainSource,
    SourceType,
    SourceValidationError,
    fetch_cog_bounds,
    lookup_cog_bounds,
    list_sources,
    raster_dem_source,
    read_cog_bounds,
    resolve,
    resolve_basemap,
    template_link,
    tile_url,
)
from terrain_viewer.sources.custom import CustomBasemapSource, BasemapType
from terrain_viewer.viewport import Bounds


ENDPOINT = "https://titiler.example.com"


class TestBuiltinResolution:
    """Tests for built-in catalog keys."""

    def test_mapterhorn_is_terrarium_512(self):
        """Mapterhorn resolves to its Terrarium template unchanged."""
        resolved = resolve("mapterhorn")
        assert resolved.encoding == "terrarium"
        assert resolved.tile_size == 512
        assert resolved.tile_url == TERRAIN_SOURCES["mapterhorn"].tile_url_template

    def test_mapbox_key_substituted(self):
        """The Mapbox token replaces the {API_KEY} placeholder."""
        resolved = resolve("mapbox", Credentials(mapbox="pk.test"))
        assert resolved.encoding == "terrainrgb"
        assert "access_token=pk.test" in resolved.tile_url
        assert "{API_KEY}" not in resolved.tile_url

    def test_maptiler_key_substituted(self):
        """The MapTiler key replaces the {API_KEY} placeholder."""
        resolved = resolve("maptiler", Credentials(maptiler="abc123"))
        assert resolved.tile_url.endswith("key=abc123")

    def test_missing_credential_substitutes_empty_string(self):
        """Without a key the placeholder becomes empty."""
        resolved = resolve("maptiler")
        assert resolved.tile_url.endswith("key=")

    def test_aws_template_passes_through(self):
        """Keyless providers keep their template even with credentials set."""
        resolved = resolve("aws", Credentials(mapbox="pk.test"))
        assert resolved.tile_url == TERRAIN_SOURCES["aws"].tile_url_template
        assert resolved.tile_size == 256

    def test_google3dtiles_uses_google_key(self):
        """Google 3D tiles take the Google key."""
        assert tile_url("google3dtiles", Credentials(google="g-key")).endswith("key=g-key")

    def test_unknown_key_returns_none(self):
        """Unknown keys resolve to None instead of raising."""
        assert resolve("does-not-exist") is None
        assert tile_url("does-not-exist") == ""

    def test_catalog_keys(self):
        assert list_sources() == ["mapterhorn", "mapbox", "maptiler", "aws", "google3dtiles"]

    def test_resolution_does_not_mutate_catalog(self):
        """Substitution never writes into the catalog."""
        resolve("mapbox", Credentials(mapbox="secret"))
        assert "{API_KEY}" in TERRAIN_SOURCES["mapbox"].tile_url_template


class TestCustomResolution:
    """Tests for user-defined sources."""

    def test_cog_routed_through_titiler(self):
        """COG sources become TiTiler terrarium tiles with the URL encoded."""
        cog = CustomTerrainSource("custom-1", "DEM", "https://example.com/a dem.tif?x=1&y=2", SourceType.COG)
        resolved = resolve("custom-1", custom_sources=[cog], endpoint=ENDPOINT)

        assert resolved.encoding == "terrarium"
        assert resolved.tile_size == 256
        assert resolved.tile_url.startswith(
            f"{ENDPOINT}/cog/tiles/WebMercatorQuad/{{z}}/{{x}}/{{y}}.png?url="
        )
        assert resolved.tile_url.endswith("&algorithm=terrarium")
        encoded = resolved.tile_url.split("?url=")[1].split("&algorithm")[0]
        assert "/" not in encoded and "&" not in encoded
        assert unquote(encoded) == cog.url

    def test_terrainrgb_custom_passes_through(self):
        """Custom TerrainRGB tiles keep their URL and encoding."""
        source = CustomTerrainSource("c", "RGB", "https://t.example.com/{z}/{x}/{y}.png", SourceType.TERRAINRGB)
        resolved = resolve("c", custom_sources=[source])
        assert resolved.encoding == "terrainrgb"
        assert resolved.tile_url == source.url

    @pytest.mark.parametrize("source_type", [SourceType.TERRARIUM, SourceType.VRT,
                                             SourceType.STAC, SourceType.MOSAICJSON])
    def test_other_types_default_to_terrarium(self, source_type):
        """All other types resolve as Terrarium with the URL untouched."""
        source = CustomTerrainSource("c", "X", "https://x.example.com/src", source_type)
        resolved = resolve("c", custom_sources=[source])
        assert resolved.encoding == "terrarium"
        assert resolved.tile_url == source.url

    def test_builtin_key_wins_over_custom_id(self):
        """Built-in keys are checked first."""
        shadow = CustomTerrainSource("aws", "Shadow", "https://evil.example.com", SourceType.TERRAINRGB)
        assert resolve("aws", custom_sources=[shadow]).encoding == "terrarium"


class TestRasterDemSource:
    """Tests for renderer raster-dem source specs."""

    def test_terrainrgb_maps_to_mapbox_encoding(self):
        """The engine calls TerrainRGB 'mapbox'."""
        spec = raster_dem_source("maptiler", Credentials(maptiler="k"))
        assert spec["type"] == "raster-dem"
        assert spec["encoding"] == "mapbox"
        assert spec["tileSize"] == 512
        assert spec["maxzoom"] == 12

    def test_3dtiles_has_no_raster_dem(self):
        """Google 3D tiles cannot back a raster-dem source."""
        assert raster_dem_source("google3dtiles") is None

    def test_unknown_key_has_no_raster_dem(self):
        assert raster_dem_source("nope") is None


class TestBasemaps:
    """Tests for raster basemap resolution."""

    def test_unknown_basemap_falls_back_to_google(self):
        """Unknown keys use the default basemap."""
        assert resolve_basemap("nope").tile_url == resolve_basemap("google").tile_url

    def test_custom_cog_basemap(self):
        """COG basemaps are rendered through TiTiler."""
        basemap = CustomBasemapSource("b1", "Ortho", "https://example.com/ortho.tif", BasemapType.COG)
        resolved = resolve_basemap("b1", custom_basemaps=[basemap], endpoint=ENDPOINT)
        assert resolved.tile_url.startswith(f"{ENDPOINT}/cog/tiles/WebMercatorQuad/")

    @pytest.mark.parametrize("basemap_type", [BasemapType.TMS, BasemapType.WMS, BasemapType.WMTS])
    def test_custom_basemap_reports_its_kind(self, basemap_type):
        """Non-COG basemaps pass through and keep their type as encoding."""
        basemap = CustomBasemapSource("b2", "Layer", "https://example.com/{z}/{x}/{y}", basemap_type)
        resolved = resolve_basemap("b2", custom_basemaps=[basemap])
        assert resolved.encoding == basemap_type.value
        assert resolved.tile_url == "https://example.com/{z}/{x}/{y}"

    def test_template_link(self):
        """Catalog links get coordinates filled in."""
        link = TERRAIN_SOURCES["google3dtiles"].link
        filled = template_link(link, "45.97", "7.65")
        assert "lat=45.97" in filled and "lng=7.65" in filled


class TestCustomSourceCollection:
    """Tests for custom source CRUD and bulk editing."""

    def test_from_json(self, sample_sources_json):
        """Valid payloads load in order."""
        collection = CustomSourceCollection.from_json(sample_sources_json)
        assert [s.id for s in collection] == ["custom-1", "custom-2"]
        assert collection.find("custom-2").type == SourceType.TERRAINRGB

    def test_create_generates_custom_id(self):
        """New sources get a custom-<ms> id."""
        collection = CustomSourceCollection()
        source = collection.create("DEM", "https://example.com/dem.tif", SourceType.COG)
        assert source.id.startswith("custom-")
        assert source.id[len("custom-"):].isdigit()
        assert source.id in collection

    def test_duplicate_add_rejected(self, sample_sources_json):
        collection = CustomSourceCollection.from_json(sample_sources_json)
        with pytest.raises(SourceValidationError):
            collection.add(CustomTerrainSource("custom-1", "Dup", "u", SourceType.COG))

    def test_update_and_delete(self, sample_sources_json):
        """Update replaces fields; delete reports whether it removed anything."""
        collection = CustomSourceCollection.from_json(sample_sources_json)
        updated = collection.update("custom-1", name="Renamed", type="vrt")
        assert updated.name == "Renamed"
        assert updated.type == SourceType.VRT
        assert collection.delete("custom-1") is True
        assert collection.delete("custom-1") is False
        with pytest.raises(KeyError):
            collection.update("custom-1", name="Gone")

    def test_to_json_round_trip(self, sample_sources_json):
        """to_json output is accepted back by the bulk editor."""
        collection = CustomSourceCollection.from_json(sample_sources_json)
        text = collection.to_json()
        assert text.startswith("[\n  {")
        assert json.loads(text) == json.loads(sample_sources_json)

    @pytest.mark.parametrize("payload,message", [
        ("{not json", "Invalid JSON"),
        ('{"id": "a"}', "Input must be a valid JSON array"),
        ('[{"id": "a", "name": "A", "url": "u"}]', "Each source must have id, name, url, and type fields"),
    ])
    def test_invalid_bulk_edit_leaves_collection_unchanged(self, sample_sources_json, payload, message):
        """Rejected payloads raise with a user-facing message and change nothing."""
        collection = CustomSourceCollection.from_json(sample_sources_json)
        before = collection.to_json()
        with pytest.raises(SourceValidationError, match=message):
            collection.replace_from_json(payload)
        assert collection.to_json() == before

    def test_unknown_type_rejected(self):
        with pytest.raises(SourceValidationError, match="Unknown source type"):
            CustomSourceCollection.from_json('[{"id": "a", "name": "A", "url": "u", "type": "laz"}]')


class TestFetchCogBounds:
    """Tests for COG extent lookup through TiTiler."""

    def _session(self, payload=None, error=None):
        session = MagicMock()
        if error is not None:
            session.get.side_effect = error
        else:
            response = MagicMock()
            response.json.return_value = payload
            response.raise_for_status.return_value = None
            session.get.return_value = response
        return session

    def test_reads_bbox(self):
        """bbox from the info GeoJSON becomes Bounds."""
        source = CustomTerrainSource("c", "DEM", "https://example.com/dem.tif", SourceType.COG)
        session = self._session({"bbox": [7.0, 45.9, 7.1, 46.0]})
        bounds = fetch_cog_bounds(source, ENDPOINT, session=session)

        assert bounds == Bounds(7.0, 45.9, 7.1, 46.0)
        url = session.get.call_args[0][0]
        assert url.startswith(f"{ENDPOINT}/cog/info.geojson?url=https%3A%2F%2F")
        assert session.get.call_args[1]["timeout"] == 10.0

    def test_falls_back_to_properties_bounds(self):
        source = CustomTerrainSource("c", "DEM", "https://example.com/dem.tif", SourceType.COG)
        session = self._session({"properties": {"bounds": [1, 2, 3, 4]}})
        assert fetch_cog_bounds(source, ENDPOINT, session=session) == Bounds(1, 2, 3, 4)

    def test_vrt_uses_vsicurl(self):
        """VRT sources are opened through GDAL's vsicurl."""
        source = CustomTerrainSource("v", "VRT", "https://example.com/x.vrt", SourceType.VRT)
        session = self._session({"bbox": [0, 0, 1, 1]})
        fetch_cog_bounds(source, ENDPOINT, session=session)
        assert "?url=vrt:///vsicurl/https%3A%2F%2F" in session.get.call_args[0][0]

    def test_network_error_returns_none(self):
        """Connection failures are logged, not raised."""
        source = CustomTerrainSource("c", "DEM", "https://example.com/dem.tif", SourceType.COG)
        session = self._session(error=requests.ConnectionError("down"))
        assert fetch_cog_bounds(source, ENDPOINT, session=session) is None

    def test_tile_sources_not_eligible(self):
        """Only COG and VRT sources have an info endpoint."""
        source = CustomTerrainSource("t", "Tiles", "https://t/{z}/{x}/{y}.png", SourceType.TERRARIUM)
        session = self._session({"bbox": [0, 0, 1, 1]})
        assert fetch_cog_bounds(source, ENDPOINT, session=session) is None
        session.get.assert_not_called()


def _write_dem(path, bounds, crs="EPSG:4326", size=8):
    """Write a small float32 DEM GeoTIFF covering bounds."""
    transform = from_bounds(bounds.west, bounds.south, bounds.east, bounds.north, size, size)
    profile = {
        "driver": "GTiff",
        "width": size,
        "height": size,
        "count": 1,
        "dtype": "float32",
        "crs": crs,
        "transform": transform,
    }
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(np.full((size, size), 1000.0, dtype=np.float32), 1)
    return path


class TestReadCogBounds:
    """Tests for reading a COG extent from its own header."""

    def test_reads_geographic_bounds(self, temp_dir, matterhorn_bounds):
        path = _write_dem(temp_dir / "dem.tif", matterhorn_bounds)
        source = CustomTerrainSource("c", "DEM", str(path), SourceType.COG)
        bounds = read_cog_bounds(source)

        assert bounds.as_tuple() == pytest.approx(matterhorn_bounds.as_tuple())

    def test_projected_header_is_reprojected(self, temp_dir):
        """Web Mercator extents come back in degrees."""
        mercator = Bounds(0.0, 0.0, 111319.49079327357, 111325.14286638486)
        path = _write_dem(temp_dir / "merc.tif", mercator, crs="EPSG:3857")
        source = CustomTerrainSource("c", "DEM", str(path), SourceType.COG)
        bounds = read_cog_bounds(source)

        assert bounds.as_tuple() == pytest.approx((0.0, 0.0, 1.0, 1.0), abs=1e-5)

    def test_unreadable_file_returns_none(self, temp_dir):
        path = temp_dir / "broken.tif"
        path.write_bytes(b"not a tiff")
        source = CustomTerrainSource("c", "DEM", str(path), SourceType.COG)
        assert read_cog_bounds(source) is None

    def test_tile_sources_not_eligible(self):
        source = CustomTerrainSource("t", "Tiles", "https://t/{z}/{x}/{y}.png", SourceType.TERRARIUM)
        assert read_cog_bounds(source) is None


class TestLookupCogBounds:
    """Tests for choosing between the header read and TiTiler."""

    def test_direct_read_when_cog_protocol_enabled(self, temp_dir, matterhorn_bounds):
        path = _write_dem(temp_dir / "dem.tif", matterhorn_bounds)
        source = CustomTerrainSource("c", "DEM", str(path), SourceType.COG)
        session = MagicMock()

        bounds = lookup_cog_bounds(source, ServiceConfig(use_cog_protocol=True), session)

        assert bounds.as_tuple() == pytest.approx(matterhorn_bounds.as_tuple())
        session.get.assert_not_called()

    def test_titiler_when_cog_protocol_disabled(self):
        source = CustomTerrainSource("c", "DEM", "https://example.com/dem.tif", SourceType.COG)
        response = MagicMock()
        response.json.return_value = {"bbox": [1, 2, 3, 4]}
        session = MagicMock()
        session.get.return_value = response
        service = ServiceConfig(titiler_endpoint=ENDPOINT + "/", use_cog_protocol=False, timeout=3.0)

        assert lookup_cog_bounds(source, service, session) == Bounds(1, 2, 3, 4)
        assert session.get.call_args[0][0].startswith(f"{ENDPOINT}/cog/info.geojson?url=")
        assert session.get.call_args[1]["timeout"] == 3.0
