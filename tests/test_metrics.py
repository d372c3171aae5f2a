"""Tests for reconstruction quality metrics."""

import numpy as np
import pytest

from patchflow.codec import encode_image, write_image
from patchflow.core import Image
from patchflow.examples import generate_gradient_image, invert_tile
from patchflow.metrics import LOSSLESS_THRESHOLD, is_lossless, mean_absolute_error
from patchflow.model import Patchify


class TestMeanAbsoluteError:
    """Test the RGB mean absolute error."""

    def test_identical(self):
        """Test identical images have zero error."""
        image = generate_gradient_image(10, 10)
        assert mean_absolute_error(image, image) == 0.0
        assert is_lossless(image, image)

    def test_alpha_ignored(self):
        """Test only RGB channels are compared."""
        pixels = np.zeros((2, 2, 4), dtype=np.uint8)
        transparent = Image(pixels)
        opaque = Image.from_array(pixels[..., :3])
        assert mean_absolute_error(transparent, opaque) == 0.0

    def test_known_value(self):
        """Test the mean over all RGB channels."""
        a = np.zeros((2, 2, 4), dtype=np.uint8)
        b = a.copy()
        b[0, 0, 0] = 120
        assert mean_absolute_error(Image(a), Image(b)) == pytest.approx(10.0)

    def test_no_wraparound(self):
        """Test differences are absolute, not modulo 256."""
        a = np.zeros((1, 1, 4), dtype=np.uint8)
        b = np.full((1, 1, 4), 255, dtype=np.uint8)
        assert mean_absolute_error(Image(a), Image(b)) == 255.0

    def test_dimension_mismatch(self):
        """Test differently sized images are rejected."""
        with pytest.raises(ValueError, match="Expected: 4x3, Actual: 3x4"):
            mean_absolute_error(Image.blank(3, 4), Image.blank(4, 3))

    def test_empty(self):
        """Test zero-pixel images are rejected."""
        with pytest.raises(ValueError, match="no pixels"):
            mean_absolute_error(Image.blank(0, 0), Image.blank(0, 0))

    def test_reconstruction_quality(self):
        """Test tiled identity is lossless and inversion is not."""
        image = generate_gradient_image(50, 30)
        patchify = Patchify(image, 16, 6)
        assert mean_absolute_error(patchify.run(lambda tile: tile), image) < LOSSLESS_THRESHOLD
        assert not is_lossless(patchify.run(invert_tile), image)

    def test_encoded_sources(self, tmp_path):
        """Test encoded bytes and file paths are decoded before comparing."""
        image = generate_gradient_image(12, 9)
        path = write_image(image, tmp_path / "golden.png")

        assert mean_absolute_error(encode_image(image), path) == 0.0
        assert mean_absolute_error(image, str(path)) == 0.0
        assert is_lossless(encode_image(image), image)

    def test_unsupported_source(self):
        """Test other argument types are rejected."""
        with pytest.raises(TypeError, match="expected an Image"):
            mean_absolute_error(np.zeros((2, 2, 4), dtype=np.uint8), Image.blank(2, 2))
