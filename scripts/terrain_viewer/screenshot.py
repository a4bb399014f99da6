"""
Map screenshots with optional world-file georeferencing.

In the flat 2D (north-up, unpitched) view the canvas maps linearly onto
the visible bounds, so a six-line world file is written next to the image.
"""

import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from .viewport import Bounds


logger = logging.getLogger(__name__)

WORLD_FILE_EXTENSIONS = {
    "png": ".pgw",
    "jpeg": ".jgw",
}
IMAGE_EXTENSIONS = {
    "png": ".png",
    "jpeg": ".jpg",
}


def world_file_lines(bounds: Bounds, width: int, height: int) -> list[str]:
    """Six world-file lines for an image covering bounds.

    Order: pixel size x, rotation, rotation, negative pixel size y,
    west, north. Numbers use 10 decimals.
    """
    pixel_size_x = (bounds.east - bounds.west) / width
    pixel_size_y = (bounds.north - bounds.south) / height
    return [
        f"{pixel_size_x:.10f}",
        "0.0",
        "0.0",
        f"{-pixel_size_y:.10f}",
        f"{bounds.west:.10f}",
        f"{bounds.north:.10f}",
    ]


def world_file_content(bounds: Bounds, width: int, height: int) -> str:
    return "\n".join(world_file_lines(bounds, width, height))


def screenshot_basename(view_mode: str, now: Optional[datetime] = None) -> str:
    """File stem: terrain-composited-<iso timestamp>[-epsg4326]."""
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    name = f"terrain-composited-{stamp}"
    if view_mode == "2d":
        name += "-epsg4326"
    return name


def save_screenshot(
    capture: Callable[[], Image.Image],
    bounds: Bounds,
    view_mode: str,
    output_dir: Path,
    fmt: str = "png",
    canvas_size: Optional[tuple[int, int]] = None,
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """Capture the map canvas and save it, plus a world file in 2D mode.

    Args:
        capture: Returns the rendered canvas as a PIL image
        bounds: Visible bounds of the map
        view_mode: "2d", "3d" or "globe"
        output_dir: Destination directory
        fmt: "png" or "jpeg"
        canvas_size: Canvas size in CSS pixels used for the world file
            (defaults to the captured image size)
        now: Timestamp for the file name

    Returns:
        Path of the saved image, or None when capture failed
    """
    if fmt not in IMAGE_EXTENSIONS:
        raise ValueError(f"Unsupported screenshot format: {fmt}")

    try:
        image = capture()
    except Exception as e:
        logger.error(f"Failed to capture map screenshot: {e}")
        return None
    if image is None:
        logger.error("Failed to capture screenshot")
        return None

    output_dir.mkdir(parents=True, exist_ok=True)
    stem = screenshot_basename(view_mode, now)
    image_path = output_dir / f"{stem}{IMAGE_EXTENSIONS[fmt]}"

    if fmt == "jpeg":
        image.convert("RGB").save(image_path, format="JPEG", quality=95)
    else:
        image.save(image_path, format="PNG")

    if view_mode == "2d":
        width, height = canvas_size or image.size
        world_path = output_dir / f"{stem}{WORLD_FILE_EXTENSIONS[fmt]}"
        world_path.write_text(world_file_content(bounds, width, height))
        logger.info(f"Wrote world file {world_path}")

    return image_path


def snapshot_png_bytes(capture: Callable[[], Image.Image]) -> Optional[bytes]:
    """Capture the canvas as PNG bytes for clipboard-style consumers."""
    try:
        image = capture()
    except Exception as e:
        logger.error(f"Failed to copy map screenshot: {e}")
        return None
    if image is None:
        return None
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
