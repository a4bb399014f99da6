"""
Hypsometric tint color ramps.

Ramps are stored as MapLibre ``interpolate`` expressions over elevation:

    ["interpolate", ["linear"], ["elevation"], stop0, color0, stop1, color1, ...]

so stops sit at indices 3, 5, 7, ... and colors right after them. Extra
ramps can be loaded from GMT ``.cpt`` palettes (cpt-city format).
"""

import colorsys
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union


logger = logging.getLogger(__name__)

CLASSIC = "classic"
OPEN_LICENSES = ("gpl", "gplv2", "cc3", "ccnc")
LICENSE_FILTERS = ("all", "open-license-only", "distribute-ok", "open-distribute")

_EXPRESSION_HEAD = ["interpolate", ["linear"], ["elevation"]]


@dataclass
class ColorRamp:
    """A named elevation color ramp."""

    name: str
    colors: list[Any]
    license: Optional[str] = None
    distribute: Optional[str] = None

    @property
    def stops(self) -> list[float]:
        return extract_stops(self.colors)


def _ramp(name: str, *pairs: Any) -> ColorRamp:
    return ColorRamp(name=name, colors=[*_EXPRESSION_HEAD, *pairs])


CLASSIC_RAMPS: dict[str, ColorRamp] = {
    "dem": _ramp(
        "DEM",
        400, "rgb(112, 209, 255)",
        494.1176471, "rgb(113, 211, 247)",
        588.2352941, "rgb(114, 212, 234)",
        682.3529412, "rgb(117, 213, 222)",
        776.4705882, "rgb(120, 214, 209)",
        870.5882353, "rgb(124, 215, 196)",
        964.7058824, "rgb(130, 215, 183)",
        1058.823529, "rgb(138, 215, 169)",
        1152.941176, "rgb(149, 214, 155)",
        1247.058824, "rgb(163, 212, 143)",
        1341.176471, "rgb(178, 209, 134)",
        1435.294118, "rgb(193, 205, 127)",
        1529.411765, "rgb(207, 202, 121)",
        1623.529412, "rgb(220, 197, 118)",
        1717.647059, "rgb(233, 193, 118)",
        1811.764706, "rgb(244, 188, 120)",
        1905.882353, "rgb(255, 183, 124)",
        2000, "rgb(255, 178, 129)",
    ),
    "hypsometric": _ramp(
        "Hypsometric",
        0, "rgb(112, 209, 255)",
        12.88581315, "rgb(113, 211, 247)",
        51.5432526, "rgb(114, 212, 234)",
        115.9723183, "rgb(117, 213, 222)",
        206.1730104, "rgb(120, 214, 209)",
        322.1453287, "rgb(124, 215, 196)",
        463.8892734, "rgb(130, 215, 183)",
        631.4048443, "rgb(138, 215, 169)",
        824.6920415, "rgb(149, 214, 155)",
        1043.750865, "rgb(163, 212, 143)",
        1288.581315, "rgb(178, 209, 134)",
        1559.183391, "rgb(193, 205, 127)",
        1855.557093, "rgb(207, 202, 121)",
        2177.702422, "rgb(220, 197, 118)",
        2525.619377, "rgb(233, 193, 118)",
        2899.307958, "rgb(244, 188, 120)",
        3298.768166, "rgb(255, 183, 124)",
        3724, "rgb(255, 178, 129)",
    ),
    "hypsometric-simple": _ramp(
        "Hypsometric Simple",
        0, "rgb(112, 209, 255)",
        3724, "rgb(255, 178, 129)",
    ),
    "rainbow": _ramp(
        "Rainbow",
        400, "#F00",
        800, "#AA0",
        1000, "#AF0",
        1200, "#0F0",
        1400, "#0AA",
        1600, "#00F",
        2000, "#C0C",
    ),
    "transparent": _ramp(
        "Transparent Rainbow",
        400, "#F00C",
        800, "#AA0A",
        1000, "#AF09",
        1200, "#0F08",
        1400, "#0AA7",
        1600, "#00F6",
        2000, "#C0C4",
    ),
    "wiki": _ramp(
        "Wiki",
        400, "rgb(4, 0, 108)",
        582.35, "rgb(5, 1, 154)",
        764.71, "rgb(10, 21, 189)",
        947.06, "rgb(16, 44, 218)",
        1129.41, "rgb(24, 69, 240)",
        1311.76, "rgb(20, 112, 193)",
        1494.12, "rgb(39, 144, 116)",
        1676.47, "rgb(57, 169, 29)",
        1858.82, "rgb(111, 186, 5)",
        2041.18, "rgb(160, 201, 4)",
        2223.53, "rgb(205, 216, 2)",
        2405.88, "rgb(244, 221, 4)",
        2588.24, "rgb(251, 194, 14)",
        2770.59, "rgb(252, 163, 21)",
        2952.94, "rgb(253, 128, 20)",
        3135.29, "rgb(254, 85, 14)",
        3317.65, "rgb(243, 36, 13)",
        3500, "rgb(215, 5, 13)",
    ),
    "gmt-globe": _ramp(
        "GMT Globe",
        -10000, "rgb(153, 0, 255)",
        -9500, "rgb(153, 0, 255)",
        -9000, "rgb(136, 13, 242)",
        -8500, "rgb(119, 25, 229)",
        -8000, "rgb(102, 38, 217)",
        -7500, "rgb(85, 51, 204)",
        -7000, "rgb(68, 64, 191)",
        -6500, "rgb(51, 76, 179)",
        -6000, "rgb(34, 89, 166)",
        -5500, "rgb(17, 102, 153)",
        -5000, "rgb(0, 115, 140)",
        -4500, "rgb(0, 128, 128)",
        -4000, "rgb(0, 140, 115)",
        -3500, "rgb(0, 153, 102)",
        -3000, "rgb(10, 165, 90)",
        -2500, "rgb(26, 178, 77)",
        -2000, "rgb(42, 191, 64)",
        -1500, "rgb(58, 204, 51)",
        -1000, "rgb(74, 217, 38)",
        -500, "rgb(90, 229, 26)",
        -200, "rgb(106, 242, 13)",
        -20, "rgb(241, 252, 255)",
        -0.1, "rgb(241, 252, 255)",
        0.1, "rgb(51, 102, 0)",
        10, "rgb(51, 204, 102)",
        200, "rgb(85, 255, 0)",
        500, "rgb(120, 255, 0)",
        1000, "rgb(187, 255, 0)",
        1500, "rgb(255, 255, 0)",
        2000, "rgb(255, 234, 0)",
        2500, "rgb(255, 213, 0)",
        3000, "rgb(255, 191, 0)",
        3500, "rgb(255, 170, 0)",
        4000, "rgb(255, 149, 0)",
        4500, "rgb(255, 128, 0)",
        5000, "rgb(255, 106, 0)",
        5500, "rgb(255, 85, 0)",
        6000, "rgb(255, 64, 0)",
        6500, "rgb(255, 42, 0)",
        7000, "rgb(255, 21, 0)",
        7500, "rgb(255, 0, 0)",
        8000, "rgb(229, 0, 0)",
        8500, "rgb(204, 0, 0)",
        9000, "rgb(178, 0, 0)",
        9500, "rgb(153, 0, 0)",
        10000, "rgb(255, 255, 255)",
    ),
    "gmt-relief": _ramp(
        "GMT Relief",
        -10000, "rgb(0, 0, 0)",
        -8000, "rgb(0, 5, 25)",
        -6000, "rgb(0, 10, 50)",
        -4000, "rgb(0, 25, 100)",
        -2000, "rgb(0, 50, 150)",
        -200, "rgb(86, 197, 184)",
        -0.1, "rgb(172, 245, 168)",
        0.1, "rgb(51, 102, 0)",
        200, "rgb(90, 140, 34)",
        1000, "rgb(160, 190, 80)",
        2000, "rgb(220, 220, 110)",
        3000, "rgb(250, 234, 126)",
        4000, "rgb(252, 210, 126)",
        5000, "rgb(250, 189, 126)",
        6000, "rgb(247, 168, 126)",
        7000, "rgb(244, 146, 126)",
        8000, "rgb(242, 125, 126)",
        9000, "rgb(240, 104, 126)",
        10000, "rgb(255, 255, 255)",
    ),
    "gmt-sealand": _ramp(
        "GMT Sealand",
        -11000, "rgb(0, 0, 0)",
        -10000, "rgb(0, 5, 10)",
        -9000, "rgb(0, 10, 20)",
        -8000, "rgb(0, 15, 30)",
        -7000, "rgb(0, 20, 40)",
        -6000, "rgb(0, 30, 60)",
        -5000, "rgb(0, 40, 80)",
        -4000, "rgb(0, 50, 100)",
        -3000, "rgb(0, 70, 140)",
        -2000, "rgb(0, 90, 180)",
        -1000, "rgb(0, 120, 240)",
        -200, "rgb(51, 153, 255)",
        -0.1, "rgb(102, 204, 255)",
        0.1, "rgb(0, 128, 0)",
        200, "rgb(51, 153, 0)",
        1000, "rgb(102, 178, 0)",
        2000, "rgb(178, 204, 0)",
        3000, "rgb(229, 229, 0)",
        4000, "rgb(255, 204, 0)",
        5000, "rgb(255, 153, 0)",
        6000, "rgb(255, 102, 0)",
        7000, "rgb(255, 51, 0)",
        8000, "rgb(204, 0, 0)",
        9000, "rgb(153, 0, 0)",
        10000, "rgb(255, 255, 255)",
    ),
    "gmt-topo": _ramp(
        "GMT Topo",
        -10000, "rgb(153, 0, 255)",
        -8000, "rgb(102, 51, 204)",
        -6000, "rgb(51, 102, 153)",
        -4000, "rgb(0, 153, 102)",
        -2000, "rgb(51, 204, 102)",
        -200, "rgb(153, 255, 204)",
        -0.1, "rgb(204, 255, 204)",
        0.1, "rgb(0, 128, 0)",
        200, "rgb(102, 153, 0)",
        1000, "rgb(204, 204, 0)",
        2000, "rgb(255, 255, 0)",
        3000, "rgb(255, 204, 0)",
        4000, "rgb(255, 153, 0)",
        5000, "rgb(255, 102, 0)",
        6000, "rgb(255, 51, 0)",
        7000, "rgb(204, 0, 0)",
        8000, "rgb(153, 0, 0)",
        9000, "rgb(102, 0, 0)",
        10000, "rgb(255, 255, 255)",
    ),
    "topo-15lev": _ramp(
        "Topo 15lev",
        -8000, "rgb(0, 0, 128)",
        -6000, "rgb(0, 64, 192)",
        -4000, "rgb(0, 128, 255)",
        -2000, "rgb(64, 192, 255)",
        -1000, "rgb(128, 224, 255)",
        -200, "rgb(170, 240, 255)",
        -0.1, "rgb(204, 255, 255)",
        0.1, "rgb(0, 128, 0)",
        200, "rgb(128, 192, 64)",
        500, "rgb(192, 224, 128)",
        1000, "rgb(224, 240, 192)",
        2000, "rgb(255, 255, 224)",
        3000, "rgb(255, 224, 192)",
        4000, "rgb(255, 192, 128)",
        5000, "rgb(255, 160, 64)",
        6000, "rgb(224, 128, 32)",
        7000, "rgb(192, 96, 0)",
    ),
}

DEFAULT_RAMP = "hypsometric"


def extract_stops(colors: list[Any]) -> list[float]:
    """Elevation stops of an interpolate expression (indices 3, 5, 7, ...)."""
    return [colors[i] for i in range(3, len(colors), 2)]


def ramp_range(colors: list[Any]) -> tuple[float, float]:
    """Lowest and highest stop of a ramp."""
    stops = extract_stops(colors)
    return min(stops), max(stops)


def remap_color_ramp_stops(colors: list[Any], custom_min: float, custom_max: float) -> list[Any]:
    """Linearly remap ramp stops onto [custom_min, custom_max].

    Returns a new list; a ramp whose stops are all equal is returned
    unchanged (as a copy).
    """
    new_colors = list(colors)
    stops = extract_stops(colors)
    ramp_min, ramp_max = min(stops), max(stops)
    if ramp_max == ramp_min:
        return new_colors

    for index, stop in zip(range(3, len(new_colors), 2), stops):
        t = (stop - ramp_min) / (ramp_max - ramp_min)
        new_colors[index] = custom_min + t * (custom_max - custom_min)
    return new_colors


def is_open_license(ramp: ColorRamp) -> bool:
    return ramp.license in OPEN_LICENSES


def filter_ramps(
    ramp_groups: dict[str, dict[str, ColorRamp]],
    ramp_type: str,
    license_filter: str,
) -> dict[str, ColorRamp]:
    """Select the ramps of one group that pass the license filter.

    Args:
        ramp_groups: Ramp groups keyed by type ("classic", cpt-city views, ...)
        ramp_type: Group to select
        license_filter: One of LICENSE_FILTERS

    Returns:
        Mapping of ramp key to ramp, in group order
    """
    ramps = ramp_groups.get(ramp_type, {})
    if ramp_type == CLASSIC or license_filter == "all":
        return dict(ramps)

    def keep(ramp: ColorRamp) -> bool:
        if license_filter == "open-license-only":
            return is_open_license(ramp)
        if license_filter == "distribute-ok":
            return ramp.distribute == "yes"
        if license_filter == "open-distribute":
            return is_open_license(ramp) or ramp.distribute == "yes"
        return True

    return {key: ramp for key, ramp in ramps.items() if keep(ramp)}


def color_relief_paint(
    ramp: ColorRamp,
    opacity: float = 1.0,
    custom_min_max: Optional[tuple[float, float]] = None,
) -> dict[str, Any]:
    """Paint for the color-relief layer, optionally remapped to a custom range."""
    colors = ramp.colors
    if custom_min_max is not None:
        colors = remap_color_ramp_stops(colors, *custom_min_max)
    return {
        "color-relief-opacity": opacity,
        "color-relief-color": colors,
    }


# GMT palettes (.cpt)

_FIELD_SEPARATOR = re.compile(r"[ ,\t:]+")
_COLOR_SEPARATOR = re.compile(r"[-/]")
_GMT5_COLOR = re.compile(r"\d+-\d+-\d+|\d+/\d+/\d+")
_COLOR_MODEL = re.compile(r"COLOR_MODEL = ([a-zA-Z+]+)")

# Keys that carry no stop: B/F are background/foreground, the rest are nodata
_IGNORED_KEYS = {"B", "F", "N", "nv", "default", "null", "nodata"}


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _is_gmt4(lines: list[str]) -> bool:
    return any(
        len(_FIELD_SEPARATOR.split(line)) >= 8
        for line in lines
        if not line.startswith("#")
    )


def _is_gmt5(lines: list[str]) -> bool:
    return any(_GMT5_COLOR.search(line) for line in lines if not line.startswith("#"))


def _color_model(lines: list[str]) -> str:
    for line in lines:
        if line.startswith("#"):
            match = _COLOR_MODEL.search(line)
            if match:
                return match.group(1).lower()
    return "rgb"


def _split_color(text: str) -> Union[str, list[str]]:
    parts = _COLOR_SEPARATOR.split(text)
    return parts[0] if len(parts) == 1 else parts


def _parse_value(text: str, bounds: tuple[float, float]) -> Optional[float]:
    text = text.strip()
    if text in _IGNORED_KEYS:
        return None
    if text.endswith("%"):
        fraction = float(text[:-1]) / 100
        if not 0 <= fraction <= 1:
            raise ValueError(f"Invalid value for a percentage {text}")
        return bounds[0] + (bounds[1] - bounds[0]) * fraction
    return float(text)


def _css_color(color: Union[str, list[str]], model: str) -> str:
    if isinstance(color, str):
        if color.isdigit():
            return f"rgb({color}, {color}, {color})"
        return color

    channels = [float(c) for c in color]
    if len(channels) not in (3, 4):
        raise ValueError(f"Invalid color {color}")

    if model == "hsv":
        h, s, v = channels[:3]
        rgb = [round(c * 255) for c in colorsys.hsv_to_rgb(h / 360, s, v)]
    else:
        rgb = channels[:3]

    r, g, b = (_fmt(c) for c in rgb)
    if len(channels) == 4:
        return f"rgba({r}, {g}, {b}, {_fmt(channels[3] / 255)})"
    return f"rgb({r}, {g}, {b})"


def parse_cpt(
    text: str,
    bounds: tuple[float, float] = (0.0, 1.0),
) -> tuple[list[float], list[str]]:
    """Parse a GMT color palette table.

    Handles GMT4 (``z0 r g b z1 r g b``) and GMT5 (``z0 r/g/b z1 r/g/b``)
    line forms, ``#`` comments and the ``COLOR_MODEL`` header. B/F/N rows
    are skipped. Percent stops are resolved against ``bounds``.

    Returns:
        (domain, colors) with one CSS color per stop
    """
    lines = [line.strip() for line in text.splitlines()]
    gmt4 = _is_gmt4(lines)
    gmt5 = _is_gmt5(lines)
    model = _color_model(lines)

    entries: list[tuple[str, Union[str, list[str]]]] = []
    for line in lines:
        if not line or line.startswith("#"):
            continue
        fields = _FIELD_SEPARATOR.split(line)
        if gmt4:
            if len(fields) in (8, 9):
                entries.append((fields[0], fields[1:4]))
                entries.append((fields[4], fields[5:8]))
            elif len(fields) in (4, 5):
                entries.append((fields[0], fields[1:4]))
        elif gmt5:
            if len(fields) in (4, 5):
                entries.append((fields[0], _split_color(fields[1])))
                entries.append((fields[2], _split_color(fields[3])))
            elif len(fields) in (2, 3):
                entries.append((fields[0], _split_color(fields[1])))
        else:
            if len(fields) in (4, 5):
                entries.append((fields[0], fields[1:]))
            elif len(fields) == 2:
                entries.append((fields[0], fields[1]))

    domain: list[float] = []
    colors: list[str] = []
    for value, color in entries:
        stop = _parse_value(value, bounds)
        if stop is None:
            continue
        domain.append(stop)
        colors.append(_css_color(color, model))
    return domain, colors


def fix_domain(domain: list[float]) -> list[float]:
    """Nudge equal consecutive interior stops apart so they stay ascending."""
    fixed = list(domain)
    for i in range(1, len(domain) - 1):
        if domain[i] == domain[i - 1]:
            fixed[i] = domain[i - 1] + 0.01 * (domain[i + 1] - domain[i - 1])
    return fixed


def ramp_from_cpt(
    name: str,
    text: str,
    license: Optional[str] = None,
    distribute: Optional[str] = None,
) -> ColorRamp:
    """Build a ColorRamp from .cpt text.

    Raises:
        ValueError: If the palette has fewer than two stops
    """
    domain, colors = parse_cpt(text)
    if len(domain) < 2:
        raise ValueError(f"Palette {name} has fewer than two stops")
    expression: list[Any] = list(_EXPRESSION_HEAD)
    for stop, color in zip(fix_domain(domain), colors):
        expression.extend([stop, color])
    return ColorRamp(name=name, colors=expression, license=license, distribute=distribute)


def load_cpt_dir(directory: Path) -> dict[str, ColorRamp]:
    """Load every *.cpt file in a directory as a ramp group.

    Unreadable palettes are logged and skipped.
    """
    ramps: dict[str, ColorRamp] = {}
    for path in sorted(directory.glob("*.cpt"), key=lambda p: p.stem.lower()):
        try:
            ramps[path.stem.lower()] = ramp_from_cpt(path.stem, path.read_text())
        except ValueError as e:
            logger.warning(f"Skipping palette {path.name}: {e}")
    return ramps


def ramp_groups(extra: Optional[dict[str, dict[str, ColorRamp]]] = None) -> dict[str, dict[str, ColorRamp]]:
    """All ramp groups with the classic group always present."""
    groups = dict(extra or {})
    groups[CLASSIC] = CLASSIC_RAMPS
    return groups


def flatten_groups(groups: dict[str, dict[str, ColorRamp]]) -> dict[str, ColorRamp]:
    """Merge groups into one key -> ramp mapping (later groups win)."""
    flat: dict[str, ColorRamp] = {}
    for ramps in groups.values():
        flat.update(ramps)
    return flat


def select_ramp(key: str, groups: Optional[dict[str, dict[str, ColorRamp]]] = None) -> ColorRamp:
    """Look a ramp up by key across all groups.

    Keys missing from every loaded group (for example cpt-city palettes
    that were not loaded) fall back to DEFAULT_RAMP with a warning.
    """
    ramps = flatten_groups(groups if groups is not None else ramp_groups())
    ramp = ramps.get(key)
    if ramp is None:
        logger.warning(f"Color ramp {key!r} is not loaded, using {DEFAULT_RAMP!r}")
        return CLASSIC_RAMPS[DEFAULT_RAMP]
    return ramp
