"""
Unit tests for moments, Hu invariants and the contour shape distance.
"""

import cv2
import numpy as np
import pytest

from symbolmatch.moments import (
    CentralMoments,
    contour_moments,
    hu_invariants,
    image_moments,
    log_transform,
    match_shapes,
)

SQUARE = np.array([[0, 0], [0, 10], [10, 10], [10, 0]], dtype=np.int32)
RECTANGLE = np.array([[0, 0], [0, 10], [30, 10], [30, 0]], dtype=np.int32)
QUAD = np.array([[3, 2], [40, 8], [35, 30], [10, 25]], dtype=np.int32)


def triangle_mask(size: int = 64) -> np.ndarray:
    """Scalene triangle mask without any mirror symmetry."""
    mask = np.zeros((size, size), dtype=np.uint8)
    pts = np.array([[10, 10], [50, 18], [22, 46]], dtype=np.int32)
    cv2.fillPoly(mask, [pts], 255)
    return mask


class TestContourMoments:
    """Test polygon moments computed from vertices."""

    def test_square_first_invariant(self):
        """Test that a square has h0 = 1/6 and no higher invariants."""
        hu = hu_invariants(contour_moments(SQUARE))

        assert hu[0] == pytest.approx(1.0 / 6.0)
        assert np.allclose(hu[1:], 0.0, atol=1e-12)

    def test_mass_is_polygon_area(self):
        """Test that m00 equals the enclosed area."""
        assert contour_moments(SQUARE).m00 == pytest.approx(100.0)
        assert contour_moments(QUAD).m00 == pytest.approx(cv2.contourArea(QUAD))

    def test_orientation_independent(self):
        """Test that reversing vertex order gives the same moments."""
        forward = contour_moments(QUAD)
        backward = contour_moments(QUAD[::-1])

        assert forward.m00 > 0
        assert forward.m00 == pytest.approx(backward.m00)
        assert forward.nu21 == pytest.approx(backward.nu21)

    def test_degenerate_polygon(self):
        """Test that points, segments and collinear vertices give zero moments."""
        assert contour_moments(np.array([[1, 1]])) == CentralMoments.zero()
        assert contour_moments(np.array([[1, 1], [4, 4]])) == CentralMoments.zero()
        assert contour_moments(np.array([[0, 0], [5, 0], [10, 0]])) == CentralMoments.zero()

    def test_matches_opencv(self):
        """Test agreement with OpenCV polygon moments and Hu invariants."""
        ours = hu_invariants(contour_moments(QUAD))
        theirs = cv2.HuMoments(cv2.moments(QUAD)).flatten()

        assert np.allclose(ours, theirs, rtol=1e-6, atol=1e-15)

    def test_scale_invariance(self):
        """Test that scaling the polygon keeps its invariants."""
        small = hu_invariants(contour_moments(QUAD))
        large = hu_invariants(contour_moments(QUAD * 3))

        assert np.allclose(small, large, rtol=1e-9, atol=1e-15)


class TestImageMoments:
    """Test pixel-weighted moments."""

    def test_blank_image(self):
        """Test that an image without mass has zero moments."""
        moments = image_moments(np.zeros((16, 16), dtype=np.uint8))

        assert moments == CentralMoments.zero()
        assert np.all(hu_invariants(moments) == 0.0)

    def test_mask_weighted_by_intensity(self):
        """Test that each 255 pixel contributes 255 to m00."""
        mask = np.zeros((16, 16), dtype=np.uint8)
        mask[4:8, 4:8] = 255

        assert image_moments(mask).m00 == pytest.approx(16 * 255.0)

    def test_matches_opencv(self):
        """Test agreement with OpenCV raster moments."""
        mask = triangle_mask()
        ours = image_moments(mask)
        theirs = cv2.moments(mask)

        assert ours.m00 == pytest.approx(theirs["m00"])
        for key in ("nu20", "nu11", "nu02", "nu30", "nu21", "nu12", "nu03"):
            assert getattr(ours, key) == pytest.approx(theirs[key], rel=1e-6, abs=1e-12)

    def test_translation_invariance(self):
        """Test that shifting the shape keeps its invariants."""
        mask = triangle_mask()
        shifted = np.roll(mask, shift=(5, -3), axis=(0, 1))

        assert np.allclose(
            hu_invariants(image_moments(mask)),
            hu_invariants(image_moments(shifted)),
            rtol=1e-9, atol=1e-18,
        )

    def test_rotation_invariance(self):
        """Test that a 90 degree rotation keeps the invariants."""
        mask = triangle_mask()
        rotated = np.rot90(mask)

        original = log_transform(hu_invariants(image_moments(mask)))
        turned = log_transform(hu_invariants(image_moments(rotated)))

        assert np.allclose(original, turned, atol=1e-6)

    def test_scale_invariance(self):
        """Test that doubling the mask size keeps the invariants."""
        mask = triangle_mask()
        # Each pixel becomes a 2x2 block
        doubled = np.kron(mask, np.ones((2, 2), dtype=np.uint8))

        small = log_transform(hu_invariants(image_moments(mask)))
        large = log_transform(hu_invariants(image_moments(doubled)))

        assert image_moments(doubled).m00 == pytest.approx(4 * image_moments(mask).m00)
        assert np.allclose(small, large, atol=1e-4)


class TestLogTransform:
    """Test the signed log scaling of invariants."""

    def test_values(self):
        """Test magnitude and sign handling."""
        out = log_transform(np.array([1e-3, -1e-3, 0.0]))

        assert out[0] == pytest.approx(3.0, rel=1e-6)
        assert out[1] == pytest.approx(-3.0, rel=1e-6)
        assert out[2] == 0.0

    def test_epsilon_bounds_tiny_values(self):
        """Test that values far below epsilon saturate at -log10(epsilon)."""
        out = log_transform(np.array([1e-30]), epsilon=1e-10)

        assert out[0] == pytest.approx(10.0)


class TestMatchShapes:
    """Test the I2 contour shape distance."""

    def test_identical_contours(self):
        """Test that a contour has zero distance to itself."""
        assert match_shapes(QUAD, QUAD) == 0.0

    def test_scaled_contour(self):
        """Test that scale does not change the distance."""
        assert match_shapes(QUAD, QUAD * 4) == pytest.approx(0.0, abs=1e-9)

    def test_different_shapes(self):
        """Test that a square and an elongated rectangle differ."""
        assert match_shapes(SQUARE, RECTANGLE) > 0.1

    def test_symmetric(self):
        """Test that the distance does not depend on argument order."""
        assert match_shapes(SQUARE, QUAD) == pytest.approx(match_shapes(QUAD, SQUARE))

    def test_matches_opencv(self):
        """Test agreement with OpenCV's CONTOURS_MATCH_I2."""
        ours = match_shapes(RECTANGLE, QUAD)
        theirs = cv2.matchShapes(RECTANGLE, QUAD, cv2.CONTOURS_MATCH_I2, 0)

        assert ours == pytest.approx(theirs, rel=1e-6)

    def test_degenerate_contour(self):
        """Test that a contour without area contributes no invariants."""
        assert match_shapes(np.array([[2, 2]]), SQUARE) == 0.0
