"""Still-image decoding via Pillow."""

import logging

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """The file could not be decoded into an RGBA plane."""


def load_image(path: str) -> np.ndarray:
    """Decode ``path`` to an (H, W, 4) uint8 RGBA array.

    Raises:
        ImageDecodeError: If the file is missing, truncated or not an image.
    """
    try:
        with Image.open(path) as img:
            img.load()
            rgba = img.convert("RGBA")
    except (OSError, Image.DecompressionBombError) as e:
        logger.warning("Could not decode image: %s", type(e).__name__)
        raise ImageDecodeError(f"could not decode image: {type(e).__name__}") from e
    return np.array(rgba, dtype=np.uint8)
