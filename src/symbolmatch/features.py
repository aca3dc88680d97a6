"""Corner keypoints, oriented binary descriptors and Hamming matching.

The detector is the FAST-9 segment test (Rosten & Drummond, 2006) with 3x3
non-maximum suppression. Descriptors follow the ORB recipe (Rublee et al.,
2011): intensity-centroid orientation and a fixed set of Gaussian-sampled
point pairs steered by that orientation, packed into 256 bits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import cv2
import numpy as np
import numpy.typing as npt
from scipy import ndimage

# Bresenham circle of radius 3 as (dx, dy), starting at 12 o'clock, clockwise
_CIRCLE = (
    (0, -3), (1, -3), (2, -2), (3, -1), (3, 0), (3, 1), (2, 2), (1, 3),
    (0, 3), (-1, 3), (-2, 2), (-3, 1), (-3, 0), (-3, -1), (-2, -2), (-1, -3),
)
_ARC_LENGTH = 9
_FAST_BORDER = 3
# Neighbours preceding a pixel in raster order, as (dy, dx)
_EARLIER_NEIGHBOURS = ((-1, -1), (-1, 0), (-1, 1), (0, -1))

DESCRIPTOR_BITS = 256
DESCRIPTOR_BYTES = DESCRIPTOR_BITS // 8
_PATCH_SIZE = 31
_HALF_PATCH = _PATCH_SIZE // 2
_SAMPLE_RADIUS = 13  # sampling offsets are clipped to this box before rotation
_PATTERN_SEED = 0x5EED
# Rotated samples reach 13 * sqrt(2); the orientation disc reaches 15
_PAD = _HALF_PATCH + 5

_POPCOUNT = np.array([bin(i).count("1") for i in range(256)], dtype=np.uint8)


@dataclass(frozen=True)
class Keypoint:
    """Detected corner location and response strength."""

    x: int
    y: int
    response: float


@dataclass(frozen=True)
class DescriptorMatch:
    """Candidate correspondence between a query and a train descriptor."""

    query_idx: int
    train_idx: int
    distance: int


class CornerDetector(Protocol):
    """Protocol for keypoint detectors."""

    def detect(self, gray: npt.NDArray[Any]) -> list[Keypoint]:
        """Detect keypoints in a grayscale image."""
        ...


class DescriptorExtractor(Protocol):
    """Protocol for binary descriptor extractors."""

    def describe(
        self, gray: npt.NDArray[Any], keypoints: list[Keypoint]
    ) -> npt.NDArray[np.uint8]:
        """Compute one packed binary descriptor per keypoint (N x bytes)."""
        ...


class DescriptorMatcher(Protocol):
    """Protocol for k-nearest-neighbour descriptor matchers."""

    def knn_match(
        self, query: npt.NDArray[np.uint8], train: npt.NDArray[np.uint8], k: int = 2
    ) -> list[list[DescriptorMatch]]:
        """Return up to k nearest train descriptors for every query descriptor."""
        ...


def _has_contiguous_arc(flags: npt.NDArray[np.bool_], arc: int = _ARC_LENGTH) -> npt.NDArray[np.bool_]:
    """True where at least ``arc`` consecutive circle pixels (with wrap) are set.

    Args:
        flags: Boolean stack (16, H, W), one layer per circle position.
        arc: Required run length.

    Returns:
        Boolean map (H, W).
    """
    n = flags.shape[0]
    wrapped = np.concatenate([flags, flags[:arc - 1]], axis=0)
    found = np.zeros(flags.shape[1:], dtype=bool)
    for start in range(n):
        found |= wrapped[start:start + arc].all(axis=0)
    return found


def non_max_suppression(scores: npt.NDArray[Any]) -> tuple[npt.NDArray[np.intp], npt.NDArray[np.intp]]:
    """Local maxima of a response map over 3x3 windows.

    Ties are broken in raster order: a candidate is dropped when an equal
    candidate precedes it inside its 3x3 window, so adjacent pixels of a
    plateau collapse to the earliest one.

    Args:
        scores: Response map (H, W), 0 where there is no corner.

    Returns:
        Row and column indices of the kept maxima, in raster order.
    """
    local_max = ndimage.maximum_filter(scores, size=3, mode="constant", cval=0.0)
    candidate = (scores > 0) & (scores >= local_max)

    h, w = scores.shape
    padded_scores = np.pad(scores, 1)
    padded_candidate = np.pad(candidate, 1)
    keep = candidate.copy()
    for dy, dx in _EARLIER_NEIGHBOURS:
        neighbour = padded_candidate[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
        same = padded_scores[1 + dy:1 + dy + h, 1 + dx:1 + dx + w] == scores
        keep &= ~(neighbour & same)
    return np.nonzero(keep)


class FastDetector:
    """FAST-9 corner detector without orientation or scale pyramid."""

    def __init__(self, threshold: int = 10, max_keypoints: int | None = None):
        """Initialize detector.

        Args:
            threshold: Minimum intensity difference between the centre and an
                arc pixel for it to count as brighter/darker.
            max_keypoints: Keep only the strongest N corners (None = all).
        """
        self.threshold = threshold
        self.max_keypoints = max_keypoints

    def corner_scores(self, gray: npt.NDArray[Any]) -> npt.NDArray[np.float32]:
        """Segment-test response for every pixel (0 where the test fails).

        The response is the larger of the summed excess brightness and the
        summed excess darkness over the circle.

        Args:
            gray: Grayscale uint8 image.

        Returns:
            float32 map with the same shape as ``gray``.
        """
        img = np.asarray(gray).astype(np.int16)
        h, w = img.shape
        scores = np.zeros((h, w), dtype=np.float32)
        b = _FAST_BORDER
        if h <= 2 * b or w <= 2 * b:
            return scores

        center = img[b:h - b, b:w - b]
        ring = np.stack([img[b + dy:h - b + dy, b + dx:w - b + dx] for dx, dy in _CIRCLE])

        t = self.threshold
        brighter = ring > center + t
        darker = ring < center - t
        is_corner = _has_contiguous_arc(brighter) | _has_contiguous_arc(darker)

        excess = np.abs(ring - center) - t
        bright_score = np.where(brighter, excess, 0).sum(axis=0)
        dark_score = np.where(darker, excess, 0).sum(axis=0)
        response = np.maximum(bright_score, dark_score).astype(np.float32)

        scores[b:h - b, b:w - b] = np.where(is_corner, response, 0.0)
        return scores

    def detect(self, gray: npt.NDArray[Any]) -> list[Keypoint]:
        """Detect corners with 3x3 non-maximum suppression.

        Plateaus of equal response yield a single keypoint.

        Args:
            gray: Grayscale uint8 image.

        Returns:
            Keypoints sorted by descending response.
        """
        scores = self.corner_scores(gray)
        ys, xs = non_max_suppression(scores)

        responses = scores[ys, xs]
        order = np.argsort(-responses, kind="stable")
        if self.max_keypoints is not None:
            order = order[:self.max_keypoints]

        return [Keypoint(int(xs[i]), int(ys[i]), float(responses[i])) for i in order]


def _sampling_pattern(bits: int = DESCRIPTOR_BITS, seed: int = _PATTERN_SEED) -> npt.NDArray[np.float64]:
    """Fixed point-pair pattern, isotropic Gaussian around the keypoint.

    Returns:
        Array (bits, 4) of (x1, y1, x2, y2) offsets.
    """
    rng = np.random.default_rng(seed)
    pattern = rng.normal(0.0, _PATCH_SIZE / 5.0, size=(bits, 4))
    return np.clip(np.round(pattern), -_SAMPLE_RADIUS, _SAMPLE_RADIUS)


def _orientation_disc() -> tuple[npt.NDArray[np.int64], npt.NDArray[np.int64]]:
    ys, xs = np.mgrid[-_HALF_PATCH:_HALF_PATCH + 1, -_HALF_PATCH:_HALF_PATCH + 1]
    inside = xs * xs + ys * ys <= _HALF_PATCH * _HALF_PATCH
    return xs[inside], ys[inside]


class OrientedBriefExtractor:
    """Rotation-aware binary descriptor (ORB-style steered BRIEF)."""

    def __init__(self, bits: int = DESCRIPTOR_BITS, seed: int = _PATTERN_SEED):
        """Initialize extractor.

        Args:
            bits: Descriptor length in bits (multiple of 8).
            seed: Seed of the sampling pattern; descriptors are only comparable
                between extractors sharing it.
        """
        if bits % 8:
            msg = f"bits must be a multiple of 8, got {bits}"
            raise ValueError(msg)
        self.bits = bits
        self.pattern = _sampling_pattern(bits, seed)
        self._disc_x, self._disc_y = _orientation_disc()

    def orientations(
        self, padded: npt.NDArray[Any], kx: npt.NDArray[np.int64], ky: npt.NDArray[np.int64]
    ) -> npt.NDArray[np.float64]:
        """Intensity-centroid angle of each keypoint (radians).

        Args:
            padded: Image padded by the module border.
            kx: Keypoint x coordinates in the padded frame.
            ky: Keypoint y coordinates in the padded frame.

        Returns:
            Angles, one per keypoint.
        """
        values = padded[ky[:, None] + self._disc_y[None, :], kx[:, None] + self._disc_x[None, :]]
        values = values.astype(np.float64)
        m10 = values @ self._disc_x.astype(np.float64)
        m01 = values @ self._disc_y.astype(np.float64)
        return np.arctan2(m01, m10)

    def describe(
        self, gray: npt.NDArray[Any], keypoints: list[Keypoint]
    ) -> npt.NDArray[np.uint8]:
        """Compute packed descriptors.

        Args:
            gray: Grayscale uint8 image.
            keypoints: Keypoints to describe.

        Returns:
            uint8 array (len(keypoints), bits // 8).
        """
        if not keypoints:
            return np.zeros((0, self.bits // 8), dtype=np.uint8)

        smoothed = cv2.GaussianBlur(gray, (7, 7), 2)
        padded_raw = cv2.copyMakeBorder(gray, _PAD, _PAD, _PAD, _PAD, cv2.BORDER_REFLECT_101)
        padded = cv2.copyMakeBorder(smoothed, _PAD, _PAD, _PAD, _PAD, cv2.BORDER_REFLECT_101)

        kx = np.array([kp.x for kp in keypoints], dtype=np.int64) + _PAD
        ky = np.array([kp.y for kp in keypoints], dtype=np.int64) + _PAD
        angles = self.orientations(padded_raw, kx, ky)
        cos_a = np.cos(angles)[:, None]
        sin_a = np.sin(angles)[:, None]

        def sample(px: npt.NDArray[Any], py: npt.NDArray[Any]) -> npt.NDArray[Any]:
            # Steer pattern offsets by each keypoint's angle
            rx = np.rint(px[None, :] * cos_a - py[None, :] * sin_a).astype(np.int64)
            ry = np.rint(px[None, :] * sin_a + py[None, :] * cos_a).astype(np.int64)
            return padded[ky[:, None] + ry, kx[:, None] + rx]

        first = sample(self.pattern[:, 0], self.pattern[:, 1])
        second = sample(self.pattern[:, 2], self.pattern[:, 3])
        return np.packbits(first < second, axis=1)


def hamming_distances(
    query: npt.NDArray[np.uint8], train: npt.NDArray[np.uint8]
) -> npt.NDArray[np.int64]:
    """Pairwise Hamming distances between packed descriptors.

    Args:
        query: (N, bytes) descriptors.
        train: (M, bytes) descriptors.

    Returns:
        int64 matrix (N, M).
    """
    xor = np.bitwise_xor(query[:, None, :], train[None, :, :])
    return _POPCOUNT[xor].sum(axis=2, dtype=np.int64)


class HammingMatcher:
    """Brute-force k-nearest-neighbour matcher under the Hamming norm.

    Query rows are processed in blocks, so peak memory is proportional to
    ``block_size * len(train)`` rather than to the full distance matrix.
    """

    def __init__(self, block_size: int = 128):
        """Initialize matcher.

        Args:
            block_size: Number of query descriptors compared per step.
        """
        if block_size < 1:
            msg = f"block_size must be >= 1, got {block_size}"
            raise ValueError(msg)
        self.block_size = block_size

    def knn_match(
        self, query: npt.NDArray[np.uint8], train: npt.NDArray[np.uint8], k: int = 2
    ) -> list[list[DescriptorMatch]]:
        """Find the k closest train descriptors for each query descriptor.

        Equal distances are ordered by train index.

        Args:
            query: (N, bytes) descriptors.
            train: (M, bytes) descriptors.
            k: Number of neighbours.

        Returns:
            One list per query row with min(k, M) matches, nearest first.
        """
        if len(query) == 0:
            return []
        if len(train) == 0:
            return [[] for _ in range(len(query))]

        k = min(k, len(train))
        train_idx = np.arange(len(train), dtype=np.int64)
        matches = []
        for start in range(0, len(query), self.block_size):
            distances = hamming_distances(query[start:start + self.block_size], train)
            # Unique sort keys: distance first, train index breaks ties
            keys = distances * len(train) + train_idx
            if k < len(train):
                nearest = np.argpartition(keys, k - 1, axis=1)[:, :k]
            else:
                nearest = np.broadcast_to(train_idx, keys.shape)
            nearest_keys = np.take_along_axis(keys, nearest, axis=1)
            nearest = np.take_along_axis(nearest, np.argsort(nearest_keys, axis=1), axis=1)

            for row, cols in enumerate(nearest):
                matches.append([
                    DescriptorMatch(start + row, int(t), int(distances[row, t])) for t in cols
                ])
        return matches


def ratio_test(knn: list[list[DescriptorMatch]], ratio: float = 0.7) -> list[DescriptorMatch]:
    """Keep matches whose best distance beats ratio * second-best distance.

    Queries with fewer than two candidates are rejected.

    Args:
        knn: Output of a k-NN matcher with k >= 2.
        ratio: Acceptance threshold; lower is stricter.

    Returns:
        Accepted best matches.
    """
    good = []
    for candidates in knn:
        if len(candidates) < 2:
            continue
        best, second = candidates[0], candidates[1]
        if best.distance < ratio * second.distance:
            good.append(best)
    return good
