#!/usr/bin/env python3
"""Tests for the shareable view state."""
import pytest
from pathlib import Path
from urllib.parse import parse_qs
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from terrain_viewer.hillshade import HillshadeMethod
from terrain_viewer.sources import CustomSourceCollection
from terrain_viewer.view_state import (
    FALLBACK_SOURCE_A,
    FALLBACK_SOURCE_B,
    ViewState,
    query_key,
    remove_source,
)
from terrain_viewer.viewport import Camera


class TestQueryEncoding:
    """Tests for query string encoding."""

    def test_defaults_encode_to_empty(self):
        assert ViewState().to_query() == ""

    def test_only_changes_written(self):
        state = ViewState(source_a="aws", split_screen=True, zoom=10.0)
        assert parse_qs(state.to_query()) == {
            "sourceA": ["aws"],
            "splitScreen": ["true"],
            "zoom": ["10"],
        }

    def test_include_defaults(self):
        params = ViewState().to_params(include_defaults=True)
        assert params["viewMode"] == "3d"
        assert params["lat"] == "45.9763"
        assert params["showHillshade"] == "true"

    @pytest.mark.parametrize("name,key", [
        ("source_a", "sourceA"),
        ("show_contours_and_graticules", "showContoursAndGraticules"),
        ("lat", "lat"),
    ])
    def test_query_key(self, name, key):
        assert query_key(name) == key

    def test_round_trip(self):
        state = ViewState(view_mode="2d", hillshade_method="igor", shadow_color="#112233",
                          lat=46.5, show_background=True, color_relief_opacity=0.8)
        assert ViewState.from_query(state.to_query()) == state


class TestQueryDecoding:
    """Tests for decoding shared links."""

    def test_leading_question_mark(self):
        assert ViewState.from_query("?sourceB=aws").source_b == "aws"

    def test_unknown_keys_ignored(self):
        assert ViewState.from_query("foo=bar&zoom=3") == ViewState(zoom=3.0)

    @pytest.mark.parametrize("query", ["zoom=abc", "zoom=nan", "splitScreen=yes"])
    def test_invalid_value_keeps_default(self, query):
        assert ViewState.from_query(query) == ViewState()

    def test_mapping_input(self):
        state = ViewState.from_query({"customHypsoMinMax": "true", "minElevation": "500"})
        assert state.custom_min_max() == (500.0, 8100.0)

    def test_unknown_hillshade_method_keeps_default(self):
        assert ViewState.from_query("hillshadeMethod=bogus").hillshade_method == "combined"

    def test_known_hillshade_method_accepted(self):
        state = ViewState.from_query("hillshadeMethod=multidirectional")
        assert state.method() is HillshadeMethod.MULTIDIRECTIONAL


class TestDerivedValues:
    """Tests for values derived from the state."""

    def test_apply_camera_rounds(self):
        state = ViewState()
        state.apply_camera(Camera(lng=7.123456, lat=46.000049, zoom=9.876, bearing=-12.34, pitch=45.05))
        assert (state.lng, state.lat, state.zoom, state.bearing) == (7.1235, 46.0, 9.88, -12.3)

    def test_camera(self):
        assert ViewState().camera() == Camera(lng=7.6586, lat=45.9763, zoom=12.5, bearing=0.0, pitch=60.0)

    def test_hillshade_params(self):
        state = ViewState(illumination_dir=270.0, hillshade_exag=0.5, hillshade_method="igor")
        params = state.hillshade_params()
        assert params.illumination_direction == 270.0
        assert params.exaggeration == 0.5
        assert state.method() is HillshadeMethod.IGOR

    def test_custom_min_max_disabled(self):
        assert ViewState(min_elevation=100.0).custom_min_max() is None


class TestRemoveSource:
    """Tests for deleting the selected custom source."""

    @pytest.fixture
    def collection(self, sample_sources_json):
        return CustomSourceCollection.from_json(sample_sources_json)

    def test_selected_sources_fall_back(self, collection):
        state = ViewState(source_a="custom-1", source_b="custom-1")
        assert remove_source(collection, state, "custom-1") is True
        assert (state.source_a, state.source_b) == (FALLBACK_SOURCE_A, FALLBACK_SOURCE_B)
        assert "custom-1" not in collection

    def test_other_selection_untouched(self, collection):
        state = ViewState(source_a="custom-2", source_b="mapbox")
        remove_source(collection, state, "custom-1")
        assert (state.source_a, state.source_b) == ("custom-2", "mapbox")

    def test_missing_source(self, collection):
        state = ViewState()
        assert remove_source(collection, state, "custom-9") is False
        assert len(collection) == 2


class TestConfigBridge:
    """Tests for credentials and export settings carried by links."""

    def test_round_trip_with_credentials(self):
        state = ViewState(mapbox_key="pk.test", titiler_endpoint="https://titiler.example.com",
                          max_resolution=2048.0)
        query = state.to_query()
        params = parse_qs(query)

        assert params["mapboxKey"] == ["pk.test"]
        assert params["titilerEndpoint"] == ["https://titiler.example.com"]
        assert params["maxResolution"] == ["2048"]
        assert ViewState.from_query(query) == state

    def test_defaults_match_viewer(self):
        state = ViewState()
        assert (state.mapbox_key, state.google_key, state.maptiler_key) == ("", "", "")
        assert state.titiler_endpoint == "https://titiler.xyz"
        assert state.max_resolution == 4096.0

    def test_apply_to_config(self, viewer_config):
        state = ViewState.from_query(
            "mapboxKey=pk.test&maptilerKey=mt&titilerEndpoint=https://titiler.example.com/&maxResolution=2048"
        )
        config = state.apply_to_config(viewer_config)

        assert config is viewer_config
        assert config.credentials.mapbox == "pk.test"
        assert config.credentials.maptiler == "mt"
        assert config.credentials.google == ""
        assert config.service.endpoint == "https://titiler.example.com"
        assert config.export.max_resolution == 2048
        assert isinstance(config.export.max_resolution, int)

    def test_defaults_leave_config_untouched(self, viewer_config):
        viewer_config.credentials.mapbox = "from-env"
        viewer_config.service.titiler_endpoint = "https://tiles.internal"
        ViewState().apply_to_config(viewer_config)

        assert viewer_config.credentials.mapbox == "from-env"
        assert viewer_config.service.titiler_endpoint == "https://tiles.internal"
        assert viewer_config.export.max_resolution == 64

    def test_from_config(self, viewer_config):
        viewer_config.credentials.google = "g-key"
        state = ViewState.from_config(viewer_config, zoom=9.0)

        assert state.google_key == "g-key"
        assert state.max_resolution == 64.0
        assert state.zoom == 9.0
        assert state.apply_to_config(viewer_config).credentials.google == "g-key"
