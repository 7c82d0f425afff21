"""Section sorting — windowed partial sort of a line's active samples.

The line is walked in steps of ``section_length + gap_width``. Each step
opens a window ``[x, x + section_length)`` followed by a gap
``[x + section_length, x + section_length + gap_width)``. Inside a window
only the leading ``floor(count * strength / 100)`` samples (in line order)
are sorted by key; the rest follow untouched. Active samples that fall in a
gap are emitted as they are, which leaves the unsorted stripes between
sections. Windows are emitted in ascending coordinate order.

Instead of looping over windows in Python, every sample gets a composite key
(window, group, directional key, original index) and one ``np.lexsort``
produces the whole permutation:

    group 0  sorted head of the window  (ordered by key, ties by index)
    group 1  unsorted tail of the window
    group 2  gap samples
"""

import numpy as np

from effects.sort.lines import BYTES_PER_PIXEL

GROUP_SORTED = 0
GROUP_TAIL = 1
GROUP_GAP = 2


def sorted_counts(counts: np.ndarray, strength: float) -> np.ndarray:
    """Per-window number of samples that get sorted."""
    return np.floor(counts * strength / 100).astype(np.int64)


def _ranks_within(groups: np.ndarray) -> np.ndarray:
    """0-based position of each element among equal group ids, in sequence order."""
    order = np.argsort(groups, kind="stable")
    grouped = groups[order]
    starts = np.searchsorted(grouped, grouped, side="left")
    ranks = np.empty(groups.shape[0], dtype=np.int64)
    ranks[order] = np.arange(groups.shape[0]) - starts
    return ranks


def sort_sections(
    active: np.ndarray,
    line_length: int,
    section_length: int,
    gap_width: int,
    strength: float,
    reverse: bool = False,
) -> np.ndarray:
    """Return the active samples reordered section by section.

    Args:
        active:         Active samples of one line, in line order.
        line_length:    Pixels in the scan line.
        section_length: Window size along the line (>= 1).
        gap_width:      Unsorted slice after each window (>= 0).
        strength:       0-100, share of each window that is sorted.
        reverse:        Sort descending instead of ascending.

    Raises:
        ValueError: If ``section_length`` < 1, ``gap_width`` < 0, or a sample
            lies outside the line.
    """
    if section_length < 1:
        raise ValueError(f"section_length must be >= 1, got {section_length}")
    if gap_width < 0:
        raise ValueError(f"gap_width must be >= 0, got {gap_width}")

    n = active.shape[0]
    if n == 0:
        return active.copy()

    coords = active["offset"] // BYTES_PER_PIXEL
    if coords.min() < 0 or coords.max() >= line_length:
        raise ValueError(
            f"sample coordinate outside line of length {line_length}"
        )

    period = section_length + gap_width
    window = coords // period
    in_gap = (coords % period) >= section_length

    group = np.full(n, GROUP_GAP, dtype=np.int64)
    in_window = ~in_gap
    if in_window.any():
        window_ids = window[in_window]
        counts = np.bincount(window_ids)
        head = _ranks_within(window_ids) < sorted_counts(counts, strength)[window_ids]
        group[in_window] = np.where(head, GROUP_SORTED, GROUP_TAIL)

    keys = active["key"]
    directional = np.where(group == GROUP_SORTED, -keys if reverse else keys, 0.0)
    original = np.arange(n)

    # np.lexsort treats the LAST key as primary.
    order = np.lexsort((original, directional, group, window))
    return active[order]
