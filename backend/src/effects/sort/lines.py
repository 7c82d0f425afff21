"""Scan lines — sampling a row/column into fixed-shape records and writing it back.

A sample is one record of ``SAMPLE_DTYPE``. ``offset`` is the byte index of
the pixel within its own scan line (``4 * position``), so a sample can only
ever be written back onto the line it was read from.
"""

import logging

import numpy as np

from effects.sort.config import Orientation

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = 4

SAMPLE_DTYPE = np.dtype(
    [
        ("r", np.uint8),
        ("g", np.uint8),
        ("b", np.uint8),
        ("a", np.uint8),
        ("offset", np.int64),
        ("key", np.float64),
    ]
)

_CHANNELS = ("r", "g", "b", "a")


def line_count(shape: tuple[int, ...], orientation: Orientation) -> int:
    """Number of scan lines: rows when horizontal, columns when vertical."""
    height, width = shape[:2]
    return height if orientation is Orientation.HORIZONTAL else width


def line_length(shape: tuple[int, ...], orientation: Orientation) -> int:
    height, width = shape[:2]
    return width if orientation is Orientation.HORIZONTAL else height


def line_view(buffer: np.ndarray, index: int, orientation: Orientation) -> np.ndarray:
    """(length, 4) view of one row or column, in traversal order."""
    if orientation is Orientation.HORIZONTAL:
        return buffer[index, :, :]
    return buffer[:, index, :]


def samples_from_pixels(pixels: np.ndarray) -> np.ndarray:
    """Pack an (N, 4) RGBA array into N samples with line-local offsets and zero keys."""
    samples = np.zeros(pixels.shape[0], dtype=SAMPLE_DTYPE)
    for channel, name in enumerate(_CHANNELS):
        samples[name] = pixels[:, channel]
    samples["offset"] = np.arange(pixels.shape[0], dtype=np.int64) * BYTES_PER_PIXEL
    return samples


def read_line(buffer: np.ndarray, index: int, orientation: Orientation) -> np.ndarray:
    """Sample scan line ``index`` of an (H, W, 4) buffer."""
    return samples_from_pixels(line_view(buffer, index, orientation))


def samples_to_pixels(samples: np.ndarray) -> np.ndarray:
    """Unpack samples back into an (N, 4) uint8 RGBA array."""
    pixels = np.empty((samples.shape[0], BYTES_PER_PIXEL), dtype=np.uint8)
    for channel, name in enumerate(_CHANNELS):
        pixels[:, channel] = samples[name]
    return pixels


def write_line(
    buffer: np.ndarray, index: int, orientation: Orientation, sequence: np.ndarray
) -> int:
    """Write ``sequence`` onto scan line ``index`` by rank.

    The i-th sample's color lands on the i-th position along the line. A
    sequence shorter than the line leaves the trailing positions with
    whatever the buffer already held; a longer one is cut at the line end.
    Returns the number of pixels written.
    """
    target = line_view(buffer, index, orientation)
    length = target.shape[0]
    count = min(length, sequence.shape[0])
    if sequence.shape[0] != length:
        logger.debug(
            "Line %d: sequence of %d samples for line of %d pixels",
            index,
            sequence.shape[0],
            length,
        )
    target[:count] = samples_to_pixels(sequence[:count])
    return count
