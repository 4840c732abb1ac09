"""Color parsing and interpolation for particle colors."""
from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from .errors import InvalidParameterError


def parse_color(value: Any, field: str = "color") -> np.ndarray:
    """
    Convert a color value to an RGB float array with channels in [0, 1].

    Accepted forms:
    - "#rrggbb", "rrggbb" or the short "#rgb"
    - an int 0xRRGGBB
    - a sequence of three floats already in [0, 1]

    Raises:
        InvalidParameterError: if the value cannot be read as a color
    """
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) == 3:
            text = "".join(c * 2 for c in text)
        if len(text) != 6:
            raise InvalidParameterError(field, value, reason="is not a hex color")
        try:
            packed = int(text, 16)
        except ValueError:
            raise InvalidParameterError(field, value, reason="is not a hex color") from None
        return _unpack(packed)

    if isinstance(value, bool):
        raise InvalidParameterError(field, value, reason="is not a color")

    if isinstance(value, (int, np.integer)):
        if not 0 <= value <= 0xFFFFFF:
            raise InvalidParameterError(field, value, reason="must be within [0x000000, 0xffffff]")
        return _unpack(int(value))

    if isinstance(value, Sequence) and len(value) == 3:
        try:
            rgb = np.array([float(c) for c in value], dtype=np.float64)
        except (TypeError, ValueError):
            raise InvalidParameterError(field, value, reason="is not a color") from None
        if not all(math.isfinite(c) and 0.0 <= c <= 1.0 for c in rgb):
            raise InvalidParameterError(field, value, reason="channels must be within [0, 1]")
        return rgb

    raise InvalidParameterError(field, value, reason="is not a color")


def _unpack(packed: int) -> np.ndarray:
    return np.array(
        [(packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF],
        dtype=np.float64,
    ) / 255.0


def to_hex(rgb: Sequence[float]) -> str:
    """Format an RGB float triple as "#rrggbb"."""
    channels = [int(round(min(max(float(c), 0.0), 1.0) * 255)) for c in rgb]
    return "#{:02x}{:02x}{:02x}".format(*channels)


def lerp_colors(inside: np.ndarray, outside: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Blend ``inside`` towards ``outside`` by each factor in ``t``.

    Returns an array of shape (len(t), 3). Factors of exactly 0 and 1 give
    ``inside`` and ``outside`` unchanged.
    """
    t = np.asarray(t, dtype=np.float64)[:, np.newaxis]
    blended = inside + (outside - inside) * t
    # inside + (outside - inside) * 1 can round off by one ulp
    return np.where(t >= 1.0, outside, blended)
