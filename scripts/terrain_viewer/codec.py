"""
Elevation decoding for RGB-packed terrain tiles.

Two conventions pack a height value into the three 8-bit channels of an
ordinary image tile:

    terrainrgb (Mapbox):  elevation = -10000 + (R × 65536 + G × 256 + B) × 0.1
    terrarium (Mapzen):   elevation = (R × 256 + G + B / 256) - 32768

Decoding is total over byte inputs: every (r, g, b) triple yields a height.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray


TERRAINRGB = "terrainrgb"
TERRARIUM = "terrarium"


def decode(encoding: str, r: int, g: int, b: int) -> float:
    """Decode a single RGB sample to elevation in meters.

    Any encoding other than ``terrainrgb`` is treated as terrarium.
    """
    if encoding == TERRAINRGB:
        return -10000 + (r * 65536 + g * 256 + b) * 0.1
    return r * 256 + g + b / 256 - 32768


def decode_array(
    encoding: str,
    r: ArrayLike,
    g: ArrayLike,
    b: ArrayLike,
) -> NDArray[np.float32]:
    """Decode RGB sample arrays to a float32 elevation array.

    Args:
        encoding: ``terrainrgb`` or ``terrarium``
        r: Red channel samples (any integer dtype, 0-255)
        g: Green channel samples
        b: Blue channel samples

    Returns:
        Elevation array with the broadcast shape of the inputs
    """
    # float64 intermediates keep terrainrgb exact before the final cast
    r = np.asarray(r, dtype=np.float64)
    g = np.asarray(g, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if encoding == TERRAINRGB:
        elevation = -10000.0 + (r * 65536.0 + g * 256.0 + b) * 0.1
    else:
        elevation = r * 256.0 + g + b / 256.0 - 32768.0
    return elevation.astype(np.float32)


def decode_terrarium(rgb: NDArray[np.uint8]) -> NDArray[np.float32]:
    """Decode a Terrarium RGB image of shape (H, W, 3) to elevation."""
    return decode_array(TERRARIUM, rgb[..., 0], rgb[..., 1], rgb[..., 2])


def decode_terrainrgb(rgb: NDArray[np.uint8]) -> NDArray[np.float32]:
    """Decode a TerrainRGB image of shape (H, W, 3) to elevation."""
    return decode_array(TERRAINRGB, rgb[..., 0], rgb[..., 1], rgb[..., 2])


def encode_terrarium(elevation: NDArray[np.float32]) -> NDArray[np.uint8]:
    """Encode elevation to Terrarium RGB format.

    Used for sample data and for COG color functions.

    Args:
        elevation: Elevation array in meters

    Returns:
        RGB image of shape (H, W, 3)
    """
    value = np.clip(np.asarray(elevation, dtype=np.float64) + 32768.0, 0, 65535.99609375)

    r = np.floor(value / 256).astype(np.uint8)
    g = np.floor(value % 256).astype(np.uint8)
    b = np.floor((value - np.floor(value)) * 256).astype(np.uint8)

    return np.stack([r, g, b], axis=-1)


def encode_terrainrgb(elevation: NDArray[np.float32]) -> NDArray[np.uint8]:
    """Encode elevation to Mapbox TerrainRGB format (0.1 m steps)."""
    value = np.round((np.asarray(elevation, dtype=np.float64) + 10000.0) / 0.1)
    value = np.clip(value, 0, 256 ** 3 - 1).astype(np.int64)

    r = (value // 65536).astype(np.uint8)
    g = ((value // 256) % 256).astype(np.uint8)
    b = (value % 256).astype(np.uint8)

    return np.stack([r, g, b], axis=-1)
