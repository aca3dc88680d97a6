"""
Unit tests for image validation, grayscale conversion and binarization.
"""

import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

from symbolmatch import load_image, to_binary_mask, to_grayscale
from symbolmatch.preprocessing import validate_image


class TestValidateImage:
    """Test that malformed image handles fail fast."""

    def test_none_rejected(self):
        """Test that a missing image raises."""
        with pytest.raises(ValueError, match="None"):
            validate_image(None)

    def test_non_array_rejected(self):
        """Test that non-array inputs raise."""
        with pytest.raises(ValueError, match="numpy array"):
            validate_image([[0, 255], [255, 0]])

    def test_zero_area_rejected(self):
        """Test that zero-width or zero-height images raise."""
        with pytest.raises(ValueError, match="zero area"):
            validate_image(np.zeros((0, 10), dtype=np.uint8))
        with pytest.raises(ValueError, match="zero area"):
            validate_image(np.zeros((10, 0, 3), dtype=np.uint8))

    def test_bad_rank_rejected(self):
        """Test that 1-D and 4-D arrays raise."""
        with pytest.raises(ValueError, match="dimensions"):
            validate_image(np.zeros(10, dtype=np.uint8))
        with pytest.raises(ValueError, match="dimensions"):
            validate_image(np.zeros((2, 4, 4, 3), dtype=np.uint8))

    def test_bad_channel_count_rejected(self):
        """Test that 2 or 5 channel images raise."""
        with pytest.raises(ValueError, match="channel"):
            validate_image(np.zeros((8, 8, 2), dtype=np.uint8))
        with pytest.raises(ValueError, match="channel"):
            validate_image(np.zeros((8, 8, 5), dtype=np.uint8))


class TestToGrayscale:
    """Test grayscale conversion for every supported layout."""

    def test_grayscale_passthrough(self):
        """Test that 2-D uint8 input is returned unchanged."""
        img = np.random.randint(0, 255, (20, 30), dtype=np.uint8)
        gray = to_grayscale(img)

        assert gray.shape == (20, 30)
        assert np.array_equal(gray, img)

    def test_single_channel_squeezed(self):
        """Test that (H, W, 1) collapses to (H, W)."""
        img = np.random.randint(0, 255, (20, 30, 1), dtype=np.uint8)
        gray = to_grayscale(img)

        assert gray.shape == (20, 30)
        assert np.array_equal(gray, img[:, :, 0])

    def test_bgr_conversion(self):
        """Test that BGR images use OpenCV luminance weights."""
        img = np.random.randint(0, 255, (20, 30, 3), dtype=np.uint8)
        gray = to_grayscale(img)

        assert gray.shape == (20, 30)
        assert np.array_equal(gray, cv2.cvtColor(img, cv2.COLOR_BGR2GRAY))

    def test_bgra_conversion(self):
        """Test that the alpha channel is dropped for BGRA images."""
        img = np.full((10, 10, 4), 255, dtype=np.uint8)
        img[:, :, 3] = 0
        gray = to_grayscale(img)

        assert gray.shape == (10, 10)
        assert np.all(gray == 255)

    def test_float_input_clipped(self):
        """Test that non-uint8 input is clipped into the 0-255 range."""
        img = np.array([[-10.0, 300.0], [127.0, 0.0]])
        gray = to_grayscale(img)

        assert gray.dtype == np.uint8
        assert gray.tolist() == [[0, 255], [127, 0]]


class TestToBinaryMask:
    """Test inverted binary thresholding."""

    def test_dark_pixels_become_foreground(self):
        """Test that intensities strictly below the cutoff map to 255."""
        gray = np.array([[0, 126, 127, 128, 255]], dtype=np.uint8)
        mask = to_binary_mask(gray)

        assert mask.tolist() == [[255, 255, 0, 0, 0]]

    def test_custom_cutoff(self):
        """Test a non-default cutoff."""
        gray = np.array([[49, 50, 51]], dtype=np.uint8)
        mask = to_binary_mask(gray, cutoff=50)

        assert mask.tolist() == [[255, 0, 0]]

    def test_mask_values_binary(self):
        """Test that masks only contain 0 and 255."""
        img = np.random.randint(0, 255, (40, 40, 3), dtype=np.uint8)
        mask = to_binary_mask(img)

        assert mask.shape == (40, 40)
        assert set(np.unique(mask)) <= {0, 255}

    def test_zero_area_rejected(self):
        """Test that thresholding an empty image fails."""
        with pytest.raises(ValueError):
            to_binary_mask(np.zeros((0, 0), dtype=np.uint8))


class TestLoadImage:
    """Test reading images from disk."""

    def test_load_png(self):
        """Test that a written grayscale PNG reads back identically."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "symbol.png"
            img = np.full((32, 32), 255, dtype=np.uint8)
            cv2.circle(img, (16, 16), 8, 0, -1)
            cv2.imwrite(str(path), img)

            loaded = load_image(path)

            assert np.array_equal(loaded, img)

    def test_missing_file(self):
        """Test that a missing file raises FileNotFoundError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(FileNotFoundError):
                load_image(Path(tmpdir) / "missing.png")

    def test_undecodable_file(self):
        """Test that a non-image file raises ValueError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "broken.png"
            path.write_bytes(b"not an image")

            with pytest.raises(ValueError, match="decode"):
                load_image(path)
