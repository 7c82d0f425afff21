"""Threshold partitioning — splits a scan line into active and inactive samples."""

import numpy as np

from effects.sort.config import SortMode

# Hue and saturation keys are compared against the 0-255 threshold rescaled
# by this factor (255 / 2.55 == 100).
NATIVE_RANGE_DIVISOR = 2.55


def threshold_value(strength: float) -> float:
    """Map 0-100 strength onto the 0-255 activation threshold."""
    return strength / 100 * 255


def mode_threshold(mode: SortMode, strength: float) -> float:
    """Activation threshold expressed in the key range of ``mode``."""
    value = threshold_value(strength)
    if mode in (SortMode.HUE, SortMode.SATURATION):
        return value / NATIVE_RANGE_DIVISOR
    return value


def active_mask(keys: np.ndarray, mode: SortMode, strength: float) -> np.ndarray:
    return np.asarray(keys) >= mode_threshold(mode, strength)


def partition(
    samples: np.ndarray, mode: SortMode, strength: float
) -> tuple[np.ndarray, np.ndarray]:
    """Return (active, inactive), each in the line's original order.

    Boolean-mask selection keeps relative order, so the split is stable, and
    re-partitioning either half reproduces it unchanged.
    """
    mask = active_mask(samples["key"], mode, strength)
    return samples[mask], samples[~mask]
