"""Sort keys — maps a pixel's RGB channels to the scalar a line is sorted by.

Two forms are provided: ``sort_key`` for a single pixel, and ``compute_keys``
which evaluates a whole (N, >=3) channel array in one vectorized pass. Both
must produce identical values.

Key ranges per mode:
    brightness  0 .. 255
    hue         0 .. <360 (degrees, achromatic -> 0)
    saturation  0 .. 100
    color       0 .. <196608 (see ``_color_key``)
"""

import numpy as np

from effects.sort.config import SortMode


def _brightness_key(r: float, g: float, b: float) -> float:
    return (r + g + b) / 3


def _hue_key(r: float, g: float, b: float) -> float:
    mx = max(r, g, b)
    mn = min(r, g, b)
    if mx == mn:
        return 0.0
    d = mx - mn
    if mx == r:
        hue = (g - b) / d + (6 if g < b else 0)
    elif mx == g:
        hue = (b - r) / d + 2
    else:
        hue = (r - g) / d + 4
    return hue * 60


def _saturation_key(r: float, g: float, b: float) -> float:
    mx = max(r, g, b) / 255
    mn = min(r, g, b) / 255
    if mx == mn:
        return 0.0
    d = mx - mn
    lightness = (mx + mn) / 2
    if lightness > 0.5:
        sat = d / (2 - mx - mn)
    else:
        sat = d / (mx + mn)
    return sat * 100


def _color_key(r: float, g: float, b: float) -> float:
    """Ad hoc color ordering, not a colorimetric measure.

    Grayscale pixels sort by their red value. Chromatic pixels are banded by
    dominant channel (R=0, G=1, B=2, 256 apart), offset by a secondary
    channel, then pushed up by ``delta * 768`` so higher-contrast pixels land
    after every band of lower-contrast ones. Keep the formula as is: existing
    presets depend on its exact ordering.
    """
    mx = max(r, g, b)
    mn = min(r, g, b)
    delta = mx - mn
    if delta == 0:
        return float(r)
    if mx == r:
        value = 256 * 0 + g
    elif mx == g:
        value = 256 * 1 + b
    else:
        value = 256 * 2 + r
    return float(value + delta * 256 * 3)


_SCALAR_KEYS = {
    SortMode.BRIGHTNESS: _brightness_key,
    SortMode.HUE: _hue_key,
    SortMode.SATURATION: _saturation_key,
    SortMode.COLOR: _color_key,
}


def sort_key(mode: SortMode, r: int, g: int, b: int) -> float:
    """Return the sort key of one pixel."""
    return float(_SCALAR_KEYS[mode](float(r), float(g), float(b)))


def compute_keys(pixels: np.ndarray, mode: SortMode) -> np.ndarray:
    """Vectorized sort keys for an (N, C) uint8 array (C >= 3). Returns float64 (N,)."""
    rgb = pixels[:, :3].astype(np.float64)
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    mx = rgb.max(axis=1)
    mn = rgb.min(axis=1)
    d = mx - mn
    chromatic = d > 0
    # Division guard; achromatic lanes are overwritten below.
    safe_d = np.where(chromatic, d, 1.0)

    if mode is SortMode.BRIGHTNESS:
        return (r + g + b) / 3

    if mode is SortMode.HUE:
        hue = np.where(
            mx == r,
            (g - b) / safe_d + np.where(g < b, 6.0, 0.0),
            np.where(mx == g, (b - r) / safe_d + 2, (r - g) / safe_d + 4),
        )
        return np.where(chromatic, hue * 60, 0.0)

    if mode is SortMode.SATURATION:
        mxn = mx / 255
        mnn = mn / 255
        dn = mxn - mnn
        lightness = (mxn + mnn) / 2
        denom = np.where(lightness > 0.5, 2 - mxn - mnn, mxn + mnn)
        denom = np.where(chromatic, denom, 1.0)
        return np.where(chromatic, dn / denom * 100, 0.0)

    if mode is SortMode.COLOR:
        banded = np.where(
            mx == r, 256 * 0 + g, np.where(mx == g, 256 * 1 + b, 256 * 2 + r)
        )
        return np.where(chromatic, banded + d * 256 * 3, r)

    raise ValueError(f"unknown sort mode: {mode!r}")
