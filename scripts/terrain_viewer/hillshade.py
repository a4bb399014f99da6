"""
Hillshade paint properties for the rendering engine.

Each shading method accepts a different subset of the hillshade paint
properties. ``support_flags`` encodes that matrix and ``build_paint``
assembles the paint object for the hillshade layer, including the
multi-light forms where colors and light directions are arrays matched
index-wise.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class HillshadeMethod(str, Enum):
    """Shading algorithms offered by the hillshade layer."""

    STANDARD = "standard"
    COMBINED = "combined"
    IGOR = "igor"
    BASIC = "basic"
    MULTIDIRECTIONAL = "multidirectional"
    MULTIDIR_COLORS = "multidir-colors"
    ASPECT_MULTIDIR = "aspect-multidir"


DEFAULT_METHOD = HillshadeMethod.STANDARD


@dataclass(frozen=True)
class SupportFlags:
    """Which paint parameters a method accepts."""

    direction: bool = False
    altitude: bool = False
    shadow_color: bool = False
    highlight_color: bool = False
    accent_color: bool = False
    exaggeration: bool = False


@dataclass
class HillshadeParams:
    """User-adjustable hillshade parameters."""

    illumination_direction: float = 315.0
    illumination_altitude: float = 45.0
    opacity: float = 1.0
    shadow_color: str = "#000000"
    highlight_color: str = "#FFFFFF"
    accent_color: str = "#808080"
    exaggeration: float = 1.0
    illumination_anchor: Optional[str] = None  # "map" or "viewport"


@dataclass(frozen=True)
class MultiLight:
    """Fixed light rig for the multi-directional color methods."""

    highlight_colors: tuple[str, ...]
    shadow_colors: tuple[str, ...]
    directions: tuple[float, ...]
    altitudes: tuple[float, ...]


MULTI_LIGHTS = {
    HillshadeMethod.MULTIDIR_COLORS: MultiLight(
        highlight_colors=("#FF4000", "#FFFF00", "#40ff00", "#00FF80"),
        shadow_colors=("#00bfff", "#0000ff", "#bf00ff", "#FF0080"),
        directions=(270, 315, 0, 45),
        altitudes=(30, 30, 30, 30),
    ),
    # Two opposing lights tint slopes by aspect
    HillshadeMethod.ASPECT_MULTIDIR: MultiLight(
        highlight_colors=("#CC0000", "#0000CC"),
        shadow_colors=("#00CCCC", "#CCCC00"),
        directions=(0, 270),
        altitudes=(30, 30),
    ),
}

_HEX_COLOR = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def parse_method(value: Union[str, HillshadeMethod]) -> HillshadeMethod:
    """Convert a method name to HillshadeMethod.

    Raises:
        ValueError: If the name is not a known method
    """
    if isinstance(value, HillshadeMethod):
        return value
    try:
        return HillshadeMethod(value)
    except ValueError:
        raise ValueError(
            f"Unknown hillshade method: {value}. "
            f"Supported: {', '.join(m.value for m in HillshadeMethod)}"
        ) from None


def support_flags(method: Union[str, HillshadeMethod]) -> SupportFlags:
    """Parameters accepted by a hillshade method."""
    method = parse_method(method)
    if method == HillshadeMethod.STANDARD:
        return SupportFlags(direction=True, shadow_color=True, highlight_color=True,
                            accent_color=True, exaggeration=True)
    if method == HillshadeMethod.COMBINED:
        return SupportFlags(direction=True, altitude=True, shadow_color=True,
                            highlight_color=True, exaggeration=True)
    if method == HillshadeMethod.IGOR:
        return SupportFlags(direction=True, shadow_color=True, highlight_color=True)
    if method == HillshadeMethod.BASIC:
        return SupportFlags(direction=True, altitude=True, shadow_color=True, highlight_color=True)
    if method == HillshadeMethod.MULTIDIRECTIONAL:
        return SupportFlags(exaggeration=True)
    if method in (HillshadeMethod.MULTIDIR_COLORS, HillshadeMethod.ASPECT_MULTIDIR):
        return SupportFlags()
    raise AssertionError(f"Unhandled hillshade method: {method}")


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Parse #rrggbb; anything unparsable maps to black."""
    match = _HEX_COLOR.match(hex_color or "")
    if not match:
        return (0, 0, 0)
    return tuple(int(part, 16) for part in match.groups())  # type: ignore[return-value]


def rgba(hex_color: str, opacity: float) -> str:
    r, g, b = hex_to_rgb(hex_color)
    return f"rgba({r}, {g}, {b}, {opacity:g})"


def _multi_light_paint(light: MultiLight) -> dict[str, Any]:
    return {
        "hillshade-method": HillshadeMethod.MULTIDIRECTIONAL.value,
        "hillshade-highlight-color": list(light.highlight_colors),
        "hillshade-shadow-color": list(light.shadow_colors),
        "hillshade-illumination-direction": list(light.directions),
        "hillshade-illumination-altitude": list(light.altitudes),
    }


def build_paint(
    method: Union[str, HillshadeMethod],
    params: Optional[HillshadeParams] = None,
) -> dict[str, Any]:
    """Assemble the hillshade layer paint for a method.

    Args:
        method: Hillshade method
        params: Current parameter values (defaults if None)

    Returns:
        Paint dictionary keyed by engine property names
    """
    method = parse_method(method)
    params = params or HillshadeParams()
    flags = support_flags(method)

    if method in MULTI_LIGHTS:
        return _multi_light_paint(MULTI_LIGHTS[method])

    paint: dict[str, Any] = {}

    if method == HillshadeMethod.MULTIDIRECTIONAL:
        paint["hillshade-method"] = method.value
        if flags.exaggeration:
            paint["hillshade-exaggeration"] = params.exaggeration
        return paint

    if flags.direction:
        paint["hillshade-illumination-direction"] = params.illumination_direction
    if flags.shadow_color:
        paint["hillshade-shadow-color"] = rgba(params.shadow_color, params.opacity)
    if flags.highlight_color:
        paint["hillshade-highlight-color"] = rgba(params.highlight_color, params.opacity)
    if flags.altitude:
        paint["hillshade-illumination-altitude"] = params.illumination_altitude
    if flags.exaggeration:
        paint["hillshade-exaggeration"] = params.exaggeration
    if flags.accent_color:
        paint["hillshade-accent-color"] = params.accent_color
    if method != DEFAULT_METHOD:
        paint["hillshade-method"] = method.value

    return paint
