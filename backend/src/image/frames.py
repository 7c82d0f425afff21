"""Frame helpers shared by the engine and the effect wrapper."""

import numpy as np


def ensure_rgba(frame: np.ndarray) -> np.ndarray:
    """Return ``frame`` as (H, W, 4) uint8. RGB input gets an opaque alpha plane.

    Raises:
        ValueError: If the array is not (H, W, 3) or (H, W, 4).
    """
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise ValueError(f"expected (H, W, 3|4) frame, got shape {frame.shape}")
    if frame.dtype != np.uint8:
        frame = np.clip(frame, 0, 255).astype(np.uint8)
    if frame.shape[2] == 3:
        alpha = np.full(frame.shape[:2] + (1,), 255, dtype=np.uint8)
        frame = np.concatenate([frame, alpha], axis=2)
    return frame


def rotate_clockwise(frame: np.ndarray) -> np.ndarray:
    """Rotate an (H, W, C) plane 90° clockwise into a new (W, H, C) plane.

    Source pixel (row y, col x) lands on (row x, col H-1-y). Four rotations
    give back the original frame.
    """
    return np.ascontiguousarray(np.rot90(frame, k=-1, axes=(0, 1)))
