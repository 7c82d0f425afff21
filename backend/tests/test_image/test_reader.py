"""Tests for image.reader — Pillow decode to RGBA."""

import numpy as np
import pytest
from PIL import Image

from image.reader import ImageDecodeError, load_image

pytestmark = pytest.mark.smoke


def test_loads_rgba_png(tmp_path):
    frame = np.random.default_rng(0).integers(0, 256, (6, 9, 4), dtype=np.uint8)
    path = tmp_path / "img.png"
    Image.fromarray(frame).save(path)
    out = load_image(str(path))
    assert out.dtype == np.uint8
    np.testing.assert_array_equal(out, frame)


def test_rgb_gets_opaque_alpha(tmp_path):
    frame = np.full((3, 4, 3), 120, dtype=np.uint8)
    path = tmp_path / "img.bmp"
    Image.fromarray(frame).save(path)
    out = load_image(str(path))
    assert out.shape == (3, 4, 4)
    assert np.all(out[:, :, 3] == 255)


def test_grayscale_expanded(tmp_path):
    path = tmp_path / "gray.png"
    Image.fromarray(np.full((5, 5), 40, dtype=np.uint8)).save(path)
    out = load_image(str(path))
    assert out.shape == (5, 5, 4)
    assert np.all(out[:, :, :3] == 40)


def test_garbage_raises(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"definitely not a png")
    with pytest.raises(ImageDecodeError):
        load_image(str(path))


def test_missing_file_raises(tmp_path):
    with pytest.raises(ImageDecodeError):
        load_image(str(tmp_path / "nope.png"))
