"""Pixel Sort effect — one-shot, synchronous sort of a whole frame.

Runs the same per-line sort the chunked engine uses, but over every scan
line in a single call. Intended for the effect registry and batch use; the
interactive path goes through ``engine.sorter.SortEngine`` instead.
"""

import numpy as np

from effects.sort.config import PARAMS as SORT_PARAMS
from effects.sort.config import SortConfig
from effects.sort.lines import line_count
from effects.sort.process import sort_lines
from image.frames import ensure_rgba

EFFECT_ID = "fx.pixelsort"
EFFECT_NAME = "Pixel Sort"
EFFECT_CATEGORY = "glitch"

# chunk_lines only matters for the incremental engine.
PARAMS: dict = {k: v for k, v in SORT_PARAMS.items() if k != "chunk_lines"}


def apply(
    frame: np.ndarray,
    params: dict,
    state_in: dict | None = None,
    *,
    frame_index: int,
    seed: int,
    resolution: tuple[int, int],
) -> tuple[np.ndarray, dict | None]:
    """Pixel-sort every scan line of ``frame``.

    Raises:
        SortConfigError: If ``params`` holds an invalid or unknown value.
    """
    config = SortConfig.from_params(params)
    output = ensure_rgba(frame).copy()
    sort_lines(output, 0, line_count(output.shape, config.orientation), config)
    return output, None
