"""Tests for image encoding, decoding and file IO."""

import cv2
import numpy as np
import pytest
import tifffile

from patchflow.codec import decode_image, encode_image, read_image, write_image
from patchflow.core import Image
from patchflow.examples import generate_gradient_image, generate_noise_image


class TestEncoding:
    """Test in-memory codecs."""

    def test_png_is_lossless(self):
        """Test PNG preserves every RGBA value."""
        image = generate_noise_image(33, 17)
        data = encode_image(image)
        assert data[:8] == b"\x89PNG\r\n\x1a\n"
        decoded = decode_image(data, name="noise.png")
        assert np.array_equal(decoded.pixels, image.pixels)
        assert decoded.name == "noise.png"

    def test_channel_order(self):
        """Test the red channel stays red through OpenCV's BGR order."""
        pixels = np.zeros((2, 2, 4), dtype=np.uint8)
        pixels[..., 0] = 200
        pixels[..., 3] = 255
        data = encode_image(Image(pixels))
        decoded = decode_image(data)
        assert decoded.pixels[0, 0].tolist() == [200, 0, 0, 255]

    def test_decode_rgb_gains_alpha(self):
        """Test three-channel files decode as opaque RGBA."""
        bgr = np.zeros((4, 4, 3), dtype=np.uint8)
        bgr[..., 2] = 120
        ok, buffer = cv2.imencode(".png", bgr)
        assert ok
        decoded = decode_image(buffer.tobytes())
        assert decoded.pixels[0, 0].tolist() == [120, 0, 0, 255]

    def test_decode_grayscale(self):
        """Test single-channel files expand to RGBA."""
        ok, buffer = cv2.imencode(".png", np.full((3, 5), 77, dtype=np.uint8))
        assert ok
        decoded = decode_image(buffer.tobytes())
        assert decoded.width == 5
        assert decoded.height == 3
        assert decoded.pixels[1, 1].tolist() == [77, 77, 77, 255]

    def test_decode_invalid(self):
        """Test garbage input raises."""
        with pytest.raises(ValueError, match="Could not decode image data for bad.png"):
            decode_image(b"not an image", name="bad.png")


class TestFiles:
    """Test reading and writing files."""

    @pytest.mark.parametrize("suffix", [".png", ".tif", ".tiff"])
    def test_round_trip(self, tmp_path, suffix):
        """Test lossless formats read back identically."""
        image = generate_gradient_image(24, 18)
        path = write_image(image, tmp_path / f"out{suffix}")
        assert path.exists()

        loaded = read_image(path)
        assert loaded.name == f"out{suffix}"
        assert np.array_equal(loaded.pixels, image.pixels)

    def test_read_missing(self, tmp_path):
        """Test missing files raise."""
        with pytest.raises(FileNotFoundError):
            read_image(tmp_path / "missing.png")

    def test_read_16bit_tiff(self, tmp_path):
        """Test 16-bit TIFF samples are scaled to 8 bits like 16-bit PNGs."""
        samples = np.full((4, 4, 4), 32768, dtype=np.uint16)
        samples[0, 0, 0] = 65535
        tiff_path = tmp_path / "deep.tif"
        tifffile.imwrite(tiff_path, samples, photometric="rgb", extrasamples=[2])
        png_path = tmp_path / "deep.png"
        ok, buffer = cv2.imencode(".png", cv2.cvtColor(samples, cv2.COLOR_RGBA2BGRA))
        assert ok
        png_path.write_bytes(buffer.tobytes())

        from_tiff = read_image(tiff_path)
        from_png = read_image(png_path)

        assert from_tiff.pixels[1, 1].tolist() == [128, 128, 128, 128]
        assert from_tiff.pixels[0, 0, 0] == 255
        assert np.array_equal(from_tiff.pixels, from_png.pixels)
