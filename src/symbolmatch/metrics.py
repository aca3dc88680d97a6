#!/usr/bin/env python3
"""Pairwise similarity metrics for symbol images."""

from __future__ import annotations

import logging
from typing import Any

import cv2
import numpy as np
import numpy.typing as npt

from .contours import (
    BorderFollowingExtractor,
    ContourExtractor,
    arc_length,
    contour_area,
)
from .features import (
    CornerDetector,
    DescriptorExtractor,
    DescriptorMatcher,
    FastDetector,
    HammingMatcher,
    OrientedBriefExtractor,
    ratio_test,
)
from .moments import hu_invariants, image_moments, log_transform, match_shapes
from .preprocessing import DEFAULT_CUTOFF, to_binary_mask, to_grayscale, validate_image

logger = logging.getLogger(__name__)

_HIST_BINS = 256
_DEFAULT_EXTRACTOR = BorderFollowingExtractor()
_DEFAULT_DESCRIPTOR = OrientedBriefExtractor()
_DEFAULT_MATCHER = HammingMatcher()


def template_match(test: npt.NDArray[Any], template: npt.NDArray[Any]) -> float:
    """Best normalized cross-correlation of a template over an image.

    Only meaningful for near-identical geometry; there is no rotation or
    scale tolerance.

    Args:
        test: Image searched over.
        template: Image slid across ``test``; must not be larger.

    Returns:
        Maximum correlation coefficient in [-1, 1].

    Raises:
        ValueError: If either image is malformed or the template is larger.
    """
    validate_image(test)
    validate_image(template)

    local_test, local_template = test, template
    if test.ndim != template.ndim or test.shape[2:] != template.shape[2:]:
        local_test = to_grayscale(test)
        local_template = to_grayscale(template)
    local_test = np.clip(local_test, 0, 255).astype(np.uint8)
    local_template = np.clip(local_template, 0, 255).astype(np.uint8)

    th, tw = local_template.shape[:2]
    ih, iw = local_test.shape[:2]
    if th > ih or tw > iw:
        msg = f"Template {tw}x{th} is larger than image {iw}x{ih}"
        raise ValueError(msg)

    result = cv2.matchTemplate(local_test, local_template, cv2.TM_CCOEFF_NORMED)
    _, max_val, _, _ = cv2.minMaxLoc(result)
    return float(max_val)


def hu_descriptor(img: npt.NDArray[Any], cutoff: int = DEFAULT_CUTOFF,
                  epsilon: float = 1e-10) -> npt.NDArray[np.float64]:
    """Log-scaled Hu invariants of an image's binary mask.

    Args:
        img: Input image.
        cutoff: Binarization cutoff.
        epsilon: Offset keeping log10 finite for zero invariants.

    Returns:
        Vector of 7 transformed invariants.
    """
    mask = to_binary_mask(img, cutoff)
    return log_transform(hu_invariants(image_moments(mask)), epsilon)


def hu_moments_match(img1: npt.NDArray[Any], img2: npt.NDArray[Any],
                     cutoff: int = DEFAULT_CUTOFF, epsilon: float = 1e-10) -> float:
    """Similarity of Hu moment signatures (translation/scale/rotation invariant).

    Args:
        img1: First image.
        img2: Second image.
        cutoff: Binarization cutoff.
        epsilon: Log transform offset.

    Returns:
        1 / (1 + euclidean distance), in (0, 1].
    """
    hu1 = hu_descriptor(img1, cutoff, epsilon)
    hu2 = hu_descriptor(img2, cutoff, epsilon)
    distance = float(np.linalg.norm(hu1 - hu2))
    return 1.0 / (1.0 + distance)


def compute_histogram(img: npt.NDArray[Any]) -> npt.NDArray[np.float32]:
    """Min-max normalized 256-bin histogram of the first channel.

    Args:
        img: Input image (any channel count).

    Returns:
        float32 column (256, 1) scaled to [0, 1].
    """
    validate_image(img)
    planes = cv2.split(np.clip(img, 0, 255).astype(np.uint8))
    hist = cv2.calcHist([planes[0]], [0], None, [_HIST_BINS], [0, 256])
    return cv2.normalize(hist, hist, 0, 1, cv2.NORM_MINMAX)


def histogram_match(img1: npt.NDArray[Any], img2: npt.NDArray[Any]) -> float:
    """Correlation of intensity distributions.

    Sensitive to how much ink there is, blind to where it is.

    Args:
        img1: First image.
        img2: Second image.

    Returns:
        Pearson correlation of the normalized histograms, in [-1, 1].
    """
    hist1 = compute_histogram(img1)
    hist2 = compute_histogram(img2)
    return float(cv2.compareHist(hist1, hist2, cv2.HISTCMP_CORREL))


def _relative_difference(a: float, b: float) -> float:
    denominator = max(a, b)
    if denominator <= 0:
        return 0.0
    return abs(a - b) / denominator


def contour_area_match(img1: npt.NDArray[Any], img2: npt.NDArray[Any],
                       cutoff: int = DEFAULT_CUTOFF,
                       extractor: ContourExtractor = _DEFAULT_EXTRACTOR) -> float:
    """Compare area and perimeter of each image's largest outer contour.

    Args:
        img1: First image.
        img2: Second image.
        cutoff: Binarization cutoff.
        extractor: Contour extractor to use.

    Returns:
        1 - mean(relative area difference, relative perimeter difference),
        clamped to [0, 1]; 0.0 if either image has no contour.
    """
    contours1 = extractor.extract(to_binary_mask(img1, cutoff))
    contours2 = extractor.extract(to_binary_mask(img2, cutoff))
    if not contours1 or not contours2:
        logger.debug("Contour area match: no contours in one of the images")
        return 0.0

    largest1 = max(contours1, key=contour_area)
    largest2 = max(contours2, key=contour_area)

    area_diff = _relative_difference(contour_area(largest1), contour_area(largest2))
    perimeter_diff = _relative_difference(arc_length(largest1), arc_length(largest2))

    similarity = 1.0 - (area_diff + perimeter_diff) / 2
    return max(0.0, similarity)


def shape_match(img1: npt.NDArray[Any], img2: npt.NDArray[Any],
                cutoff: int = DEFAULT_CUTOFF,
                extractor: ContourExtractor = _DEFAULT_EXTRACTOR) -> float:
    """Contour shape similarity using the I2 Hu-moment distance.

    Images with a different number of outer contours are rejected outright:
    this is a strict count gate, not a graded penalty.

    Args:
        img1: First image.
        img2: Second image.
        cutoff: Binarization cutoff.
        extractor: Contour extractor to use.

    Returns:
        1 / (1 + mean best-match distance) in (0, 1]; 0.0 on a count
        mismatch or when neither image has contours.
    """
    contours1 = extractor.extract(to_binary_mask(img1, cutoff))
    contours2 = extractor.extract(to_binary_mask(img2, cutoff))

    if len(contours1) != len(contours2):
        logger.debug(f"Shape match: contour count mismatch "
                     f"({len(contours1)} vs {len(contours2)})")
        return 0.0
    if not contours2:
        logger.debug("Shape match: no contours in either image")
        return 0.0

    # Best match in image 1 for every contour of image 2
    distances = [
        min(match_shapes(c1, c2) for c1 in contours1)
        for c2 in contours2
    ]
    mean_distance = float(np.mean(distances))
    return 1.0 / (1.0 + mean_distance)


def feature_match(  # noqa: PLR0913
    img1: npt.NDArray[Any],
    img2: npt.NDArray[Any],
    ratio: float = 0.7,
    fast_threshold: int = 10,
    max_keypoints: int | None = None,
    detector: CornerDetector | None = None,
    extractor: DescriptorExtractor = _DEFAULT_DESCRIPTOR,
    matcher: DescriptorMatcher = _DEFAULT_MATCHER,
) -> float:
    """Fraction of image 1 corners with an unambiguous match in image 2.

    Not symmetric: the denominator is the keypoint count of ``img1``.

    Args:
        img1: First (query) image.
        img2: Second (train) image.
        ratio: Ratio test threshold.
        fast_threshold: FAST intensity threshold (ignored if detector given).
        max_keypoints: Keypoint cap per image (ignored if detector given).
        detector: Corner detector; defaults to FastDetector.
        extractor: Descriptor extractor.
        matcher: k-NN descriptor matcher.

    Returns:
        Accepted matches / keypoints in img1, in [0, 1]; 0.0 if either
        image has no keypoints.
    """
    gray1 = to_grayscale(img1)
    gray2 = to_grayscale(img2)
    local_detector = detector or FastDetector(fast_threshold, max_keypoints)

    kp1 = local_detector.detect(gray1)
    kp2 = local_detector.detect(gray2)
    if not kp1 or not kp2:
        logger.debug(f"Feature match: no keypoints ({len(kp1)} vs {len(kp2)})")
        return 0.0

    des1 = extractor.describe(gray1, kp1)
    des2 = extractor.describe(gray2, kp2)

    good_matches = ratio_test(matcher.knn_match(des1, des2, k=2), ratio)
    return len(good_matches) / len(kp1)
