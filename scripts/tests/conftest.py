#!/usr/bin/env python3
"""Pytest configuration and shared fixtures."""
import pytest
import tempfile
import sys
from pathlib import Path

import numpy as np
from rasterio.io import MemoryFile

sys.path.insert(0, str(Path(__file__).parent.parent))

from terrain_viewer.config import ExportConfig, ViewerConfig
from terrain_viewer.viewport import Bounds, Camera


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def viewer_config(temp_dir):
    """Viewer config writing exports into the temp directory."""
    return ViewerConfig(export=ExportConfig(max_resolution=64, output_dir=temp_dir / "exports"))


@pytest.fixture
def matterhorn_bounds():
    """Small bbox near Zermatt."""
    return Bounds(west=7.0, south=45.9, east=7.1, north=46.0)


@pytest.fixture
def sample_sources_json():
    """Bulk-edit payload with two custom sources."""
    return """[
  {"id": "custom-1", "name": "Swiss COG", "url": "https://example.com/dem.tif", "type": "cog"},
  {"id": "custom-2", "name": "My RGB", "url": "https://tiles.example.com/{z}/{x}/{y}.png", "type": "terrainrgb"}
]"""


def make_rgb_geotiff(rgb: np.ndarray) -> bytes:
    """Serialize an (H, W, 3) uint8 array as a 3-band GeoTIFF."""
    height, width, _ = rgb.shape
    profile = {
        "driver": "GTiff",
        "width": width,
        "height": height,
        "count": 3,
        "dtype": "uint8",
    }
    with MemoryFile() as memfile:
        with memfile.open(**profile) as dst:
            for band in range(3):
                dst.write(rgb[..., band], band + 1)
        return memfile.read()


@pytest.fixture
def rgb_geotiff_factory():
    """Build 3-band GeoTIFF bytes from an RGB array."""
    return make_rgb_geotiff


class FakeMap:
    """In-memory stand-in for a rendering engine view."""

    def __init__(self, camera=None, bounds=None, canvas_size=(800, 600)):
        self.camera = camera or Camera(lng=7.6586, lat=45.9763, zoom=12.5)
        self.bounds = bounds or Bounds(7.6, 45.9, 7.7, 46.0)
        self.canvas_size = canvas_size
        self.jumps = []
        self.sources = {}
        self.layers = []
        self.terrain = None

    def jump_to(self, camera):
        self.jumps.append(camera)
        self.camera = camera

    def get_camera(self):
        return self.camera

    def get_bounds(self):
        return self.bounds

    def get_canvas_size(self):
        return self.canvas_size

    def add_source(self, source_id, spec):
        self.sources[source_id] = spec

    def add_layer(self, layer, before_id=None):
        self.layers.append((layer["id"], before_id))

    def set_terrain(self, spec):
        self.terrain = spec


class ManualScheduler:
    """Scheduler whose timers only fire when the test advances time."""

    class Timer:
        def __init__(self, due, callback):
            self.due = due
            self.callback = callback
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def __call__(self, delay, callback):
        timer = self.Timer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        self.now += seconds
        due = [t for t in self.timers if t.due <= self.now and not t.cancelled]
        self.timers = [t for t in self.timers if t not in due and not t.cancelled]
        for timer in sorted(due, key=lambda t: t.due):
            timer.callback()

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture
def fake_map_factory():
    return FakeMap


@pytest.fixture
def scheduler():
    return ManualScheduler()
