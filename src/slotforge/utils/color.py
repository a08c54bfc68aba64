"""Color conversion and similarity helpers for SlotForge."""

import re
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

HEX_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
_LOOSE_HEX_PATTERN = re.compile(r"^#?([0-9A-Fa-f]{2})([0-9A-Fa-f]{2})([0-9A-Fa-f]{2})$")


def is_valid_hex(hex_color: str) -> bool:
    """Check that a string is a ``#RRGGBB`` color."""
    return bool(HEX_PATTERN.match(hex_color))


def hex_to_rgb(hex_color: str) -> Optional[Tuple[int, int, int]]:
    """Convert hex color string to RGB tuple, or None if malformed."""
    match = _LOOSE_HEX_PATTERN.match(hex_color)
    if not match:
        return None
    return (int(match.group(1), 16), int(match.group(2), 16), int(match.group(3), 16))


def rgb_to_hsl(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """Convert 0-255 RGB to HSL with hue in degrees and s/l in [0, 1]."""
    rn, gn, bn = r / 255.0, g / 255.0, b / 255.0
    c_max = max(rn, gn, bn)
    c_min = min(rn, gn, bn)
    lightness = (c_max + c_min) / 2

    if c_max == c_min:
        return 0.0, 0.0, lightness

    delta = c_max - c_min
    if lightness > 0.5:
        saturation = delta / (2 - c_max - c_min)
    else:
        saturation = delta / (c_max + c_min)

    if c_max == rn:
        hue = (gn - bn) / delta + (6 if gn < bn else 0)
    elif c_max == gn:
        hue = (bn - rn) / delta + 2
    else:
        hue = (rn - gn) / delta + 4

    return hue / 6 * 360, saturation, lightness


@dataclass(frozen=True)
class ColorSimilarity:
    """Similarity between two hex colors."""

    rgb_distance: float
    hsl_similarity: float
    visually_similar: bool

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return asdict(self)


UNRELATED = ColorSimilarity(rgb_distance=999.0, hsl_similarity=0.0, visually_similar=False)


def color_similarity(hex1: str, hex2: str) -> ColorSimilarity:
    """Compare two hex colors.

    Colors count as visually similar when their RGB distance is under 100,
    or when hue differs by less than 30 degrees and both saturation and
    lightness differ by less than 0.3.
    """
    rgb1 = hex_to_rgb(hex1)
    rgb2 = hex_to_rgb(hex2)
    if rgb1 is None or rgb2 is None:
        return UNRELATED

    rgb_distance = float(np.linalg.norm(np.subtract(rgb1, rgb2, dtype=float)))

    h1, s1, l1 = rgb_to_hsl(*rgb1)
    h2, s2, l2 = rgb_to_hsl(*rgb2)
    hue_diff = min(abs(h1 - h2), 360 - abs(h1 - h2))
    sat_diff = abs(s1 - s2)
    light_diff = abs(l1 - l2)

    hsl_similarity = 100 - ((hue_diff / 180) * 50 + sat_diff * 25 + light_diff * 25)
    visually_similar = rgb_distance < 100 or (
        hue_diff < 30 and sat_diff < 0.3 and light_diff < 0.3
    )

    return ColorSimilarity(
        rgb_distance=rgb_distance,
        hsl_similarity=hsl_similarity,
        visually_similar=visually_similar,
    )


def rgb_distance_matrix(hex_colors: Sequence[str]) -> np.ndarray:
    """Pairwise Euclidean RGB distances.

    Malformed entries get a distance of 999 to everything else.
    """
    n = len(hex_colors)
    rgb = np.zeros((n, 3), dtype=float)
    valid = np.ones(n, dtype=bool)
    for i, hex_color in enumerate(hex_colors):
        parsed = hex_to_rgb(hex_color) if hex_color else None
        if parsed is None:
            valid[i] = False
        else:
            rgb[i] = parsed

    diff = rgb[:, None, :] - rgb[None, :, :]
    distances = np.sqrt(np.sum(diff**2, axis=-1))
    invalid_pair = ~(valid[:, None] & valid[None, :])
    distances[invalid_pair] = UNRELATED.rgb_distance
    np.fill_diagonal(distances, 0.0)
    return distances
