"""Preview encoding — published sort buffers to image bytes for transport."""

import io

import numpy as np
from PIL import Image

DEFAULT_MAX_BYTES = 4 * 1024 * 1024  # 4MB
QUALITY_FALLBACK_CHAIN = (95, 85, 75, 65, 50)
PREVIEW_FORMATS = ("jpeg", "png")


def encode_preview(frame: np.ndarray, fmt: str = "jpeg", quality: int = 95) -> bytes:
    """Encode an RGBA frame. JPEG drops alpha; PNG keeps it and ignores quality.

    Raises:
        ValueError: If ``fmt`` is not a supported preview format.
    """
    fmt = fmt.lower()
    if fmt not in PREVIEW_FORMATS:
        raise ValueError(f"unsupported preview format: {fmt}")
    buf = io.BytesIO()
    if fmt == "png":
        Image.fromarray(np.ascontiguousarray(frame)).save(buf, format="PNG")
    else:
        Image.fromarray(np.ascontiguousarray(frame[:, :, :3])).save(
            buf, format="JPEG", quality=quality
        )
    return buf.getvalue()


def encode_preview_fit(
    frame: np.ndarray,
    max_bytes: int = DEFAULT_MAX_BYTES,
    quality_chain: tuple[int, ...] = QUALITY_FALLBACK_CHAIN,
) -> tuple[bytes, int]:
    """JPEG-encode a frame, lowering quality until it fits in max_bytes.

    Returns (jpeg_bytes, quality_used).
    Raises ValueError if the frame exceeds max_bytes at the lowest quality.
    """
    if not quality_chain:
        raise ValueError("quality_chain must not be empty")
    data = b""
    for q in quality_chain:
        data = encode_preview(frame, "jpeg", quality=q)
        if len(data) <= max_bytes:
            return data, q
    raise ValueError(
        f"Preview ({len(data)} bytes) exceeds {max_bytes} bytes "
        f"even at quality {quality_chain[-1]}"
    )


def decode_preview(data: bytes) -> np.ndarray:
    """Decode preview bytes back to a numpy array (RGB for JPEG, RGBA for PNG)."""
    with Image.open(io.BytesIO(data)) as img:
        return np.array(img)
