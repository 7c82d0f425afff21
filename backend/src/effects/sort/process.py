"""Per-line sort: key -> smooth -> partition -> sections -> write back."""

import numpy as np

from effects.sort.config import SortConfig
from effects.sort.lines import line_count, line_length, read_line, write_line
from effects.sort.metrics import compute_keys
from effects.sort.noise import smooth_keys
from effects.sort.partition import partition
from effects.sort.sections import sort_sections


def sort_line(buffer: np.ndarray, index: int, config: SortConfig) -> None:
    """Sort scan line ``index`` of ``buffer`` in place.

    The line is read from ``buffer`` itself, so lines must be processed on a
    buffer that still holds the source pixels for that line.
    """
    samples = read_line(buffer, index, config.orientation)
    pixels = np.stack(
        [samples["r"], samples["g"], samples["b"]], axis=1
    )
    samples["key"] = smooth_keys(
        compute_keys(pixels, config.mode), config.noise_threshold
    )

    active, inactive = partition(samples, config.mode, config.strength)
    sorted_active = sort_sections(
        active,
        line_length(buffer.shape, config.orientation),
        config.section_length,
        config.gap_width,
        config.strength,
        reverse=config.reverse,
    )
    write_line(
        buffer,
        index,
        config.orientation,
        np.concatenate([inactive, sorted_active]),
    )


def sort_lines(buffer: np.ndarray, start: int, stop: int, config: SortConfig) -> int:
    """Sort lines ``[start, stop)`` (clipped to the image). Returns the new stop."""
    stop = min(stop, line_count(buffer.shape, config.orientation))
    for index in range(start, stop):
        sort_line(buffer, index, config)
    return stop
