"""Tests for validation and memory helpers."""

import warnings

import pytest

from patchflow.errors import InvalidConfiguration
from patchflow.utils import estimate_memory_usage, validate_overlap, validate_tile_size


class TestValidation:
    """Test parameter validation."""

    def test_valid(self):
        """Test accepted parameters."""
        validate_overlap(0, 1)
        validate_overlap(15, 16)
        validate_tile_size(16, (16, 16))

    def test_overlap_message(self):
        """Test the message names both values."""
        with pytest.raises(InvalidConfiguration, match=r"min_overlap \(20\) must be less than tile size \(16\)\."):
            validate_overlap(20, 16)

    def test_bool_is_not_an_integer(self):
        """Test booleans are rejected as tile sizes."""
        with pytest.raises(InvalidConfiguration, match="integer"):
            validate_overlap(0, True)

    def test_small_tile_warning(self):
        """Test tiny tiles on large images warn."""
        with pytest.warns(UserWarning, match="may impact performance"):
            validate_tile_size(8, (512, 512))

    def test_no_warning_for_small_images(self):
        """Test small images accept small tiles quietly."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            validate_tile_size(8, (64, 64))


class TestEstimateMemoryUsage:
    """Test the memory estimate."""

    def test_basic(self):
        """Test the estimate for a 1024x1024 RGBA image."""
        estimate = estimate_memory_usage((1024, 1024), 512)
        assert estimate["original_image_mb"] == pytest.approx(4.0)
        assert estimate["output_image_mb"] == pytest.approx(4.0)
        assert estimate["tile_mb"] == pytest.approx(1.0)
        assert estimate["total_tiles"] == 4
        assert estimate["peak_memory_mb"] == pytest.approx(10.0)
        assert estimate["processed_pixels_ratio"] == pytest.approx(1.0)

    def test_overlap_and_workers(self):
        """Test overlap adds tiles and workers add tile buffers."""
        single = estimate_memory_usage((1024, 1024), 512, min_overlap=64)
        pooled = estimate_memory_usage((1024, 1024), 512, min_overlap=64, workers=4)
        assert single["total_tiles"] == 9
        assert single["processed_pixels_ratio"] > 1.0
        assert pooled["peak_memory_mb"] - single["peak_memory_mb"] == pytest.approx(6.0)

    def test_invalid(self):
        """Test invalid layouts are rejected."""
        with pytest.raises(InvalidConfiguration):
            estimate_memory_usage((100, 100), 32, min_overlap=32)
