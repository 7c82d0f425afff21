"""Noise smoothing — flattens sort keys that barely differ from both neighbors."""

import numpy as np


def smooth_keys(keys: np.ndarray, threshold: float) -> np.ndarray:
    """Single-pass 3-tap mean over near-identical neighborhoods.

    An interior key is replaced by the mean of itself and its two neighbors
    when it differs from each by less than ``threshold``. Comparisons and
    means use the pre-smoothing values, so replacements never cascade along
    the line. ``threshold <= 0`` returns the keys unchanged.
    """
    keys = np.asarray(keys, dtype=np.float64)
    if threshold <= 0 or keys.shape[0] < 3:
        return keys.copy()

    prev_k = keys[:-2]
    cur_k = keys[1:-1]
    next_k = keys[2:]
    flat = (np.abs(cur_k - prev_k) < threshold) & (np.abs(cur_k - next_k) < threshold)

    out = keys.copy()
    out[1:-1] = np.where(flat, (prev_k + cur_k + next_k) / 3, cur_k)
    return out
