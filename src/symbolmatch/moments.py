"""Image and contour moments, Hu invariants and contour shape distance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt

# Invariants at or below this magnitude are ignored by the shape distance
SHAPE_EPSILON = 1e-5


@dataclass(frozen=True)
class CentralMoments:
    """Mass plus normalized central moments up to order 3."""

    m00: float
    nu20: float
    nu11: float
    nu02: float
    nu30: float
    nu21: float
    nu12: float
    nu03: float

    @classmethod
    def zero(cls) -> CentralMoments:
        """Moments of an empty image or degenerate polygon."""
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


def _normalize(
    m00: float, mu20: float, mu11: float, mu02: float,
    mu30: float, mu21: float, mu12: float, mu03: float,
) -> CentralMoments:
    """Scale central moments by m00^(1 + (p+q)/2)."""
    s2 = 1.0 / (m00 * m00)
    s3 = s2 / np.sqrt(m00)
    return CentralMoments(
        m00=m00,
        nu20=mu20 * s2, nu11=mu11 * s2, nu02=mu02 * s2,
        nu30=mu30 * s3, nu21=mu21 * s3, nu12=mu12 * s3, nu03=mu03 * s3,
    )


def image_moments(img: npt.NDArray[Any]) -> CentralMoments:
    """Compute moments from pixel-weighted sums.

    Every pixel contributes its intensity as mass, so a 0/255 mask is weighted
    by 255 per foreground pixel.

    Args:
        img: Single-channel image or mask (H, W).

    Returns:
        Central moments; all zero when the image has no mass.
    """
    ys, xs = np.nonzero(img)
    if len(xs) == 0:
        return CentralMoments.zero()

    weights = np.asarray(img)[ys, xs].astype(np.float64)
    m00 = float(weights.sum())
    dx = xs - float(np.dot(xs, weights)) / m00
    dy = ys - float(np.dot(ys, weights)) / m00

    dx2 = dx * dx
    dy2 = dy * dy
    return _normalize(
        m00,
        float(np.dot(dx2, weights)),
        float(np.dot(dx * dy, weights)),
        float(np.dot(dy2, weights)),
        float(np.dot(dx2 * dx, weights)),
        float(np.dot(dx2 * dy, weights)),
        float(np.dot(dx * dy2, weights)),
        float(np.dot(dy2 * dy, weights)),
    )


def contour_moments(contour: npt.NDArray[Any]) -> CentralMoments:
    """Compute moments of the polygon enclosed by a contour (Green's theorem).

    Args:
        contour: (N, 2) array of (x, y) vertices.

    Returns:
        Central moments of the filled polygon; all zero for a polygon without area.
    """
    pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 3:
        return CentralMoments.zero()

    # Shift to the vertex mean for conditioning; central moments do not change
    pts = pts - pts.mean(axis=0)
    x1, y1 = pts[:, 0], pts[:, 1]
    x0, y0 = np.roll(x1, 1), np.roll(y1, 1)

    cross = x0 * y1 - x1 * y0
    xs = x0 + x1
    ys = y0 + y1
    a00 = cross.sum()
    if abs(a00) < np.finfo(np.float32).eps:
        return CentralMoments.zero()

    a10 = np.dot(cross, xs)
    a01 = np.dot(cross, ys)
    a20 = np.dot(cross, x0 * xs + x1 * x1)
    a11 = np.dot(cross, x0 * (ys + y0) + x1 * (ys + y1))
    a02 = np.dot(cross, y0 * ys + y1 * y1)
    a30 = np.dot(cross, xs * (x0 * x0 + x1 * x1))
    a03 = np.dot(cross, ys * (y0 * y0 + y1 * y1))
    a21 = np.dot(cross, x0 * x0 * (3 * y0 + y1) + 2 * x1 * x0 * ys + x1 * x1 * (y0 + 3 * y1))
    a12 = np.dot(cross, y0 * y0 * (3 * x0 + x1) + 2 * y1 * y0 * xs + y1 * y1 * (x0 + 3 * x1))

    # Clockwise traversal gives negative sums; flip so mass is positive
    sign = 1.0 if a00 > 0 else -1.0
    m00 = sign * a00 / 2.0
    m10, m01 = sign * a10 / 6.0, sign * a01 / 6.0
    m20, m11, m02 = sign * a20 / 12.0, sign * a11 / 24.0, sign * a02 / 12.0
    m30, m03 = sign * a30 / 20.0, sign * a03 / 20.0
    m21, m12 = sign * a21 / 60.0, sign * a12 / 60.0

    cx, cy = m10 / m00, m01 / m00
    mu20 = m20 - m10 * cx
    mu11 = m11 - m10 * cy
    mu02 = m02 - m01 * cy
    mu30 = m30 - cx * (3 * mu20 + cx * m10)
    mu21 = m21 - cx * (2 * mu11 + cx * m01) - cy * mu20
    mu12 = m12 - cy * (2 * mu11 + cy * m10) - cx * mu02
    mu03 = m03 - cy * (3 * mu02 + cy * m01)

    return _normalize(float(m00), float(mu20), float(mu11), float(mu02),
                      float(mu30), float(mu21), float(mu12), float(mu03))


def hu_invariants(m: CentralMoments) -> npt.NDArray[np.float64]:
    """Seven Hu invariants (Hu, 1962).

    Args:
        m: Normalized central moments.

    Returns:
        Array of 7 invariants; the last one changes sign under reflection.
    """
    t0 = m.nu30 + m.nu12
    t1 = m.nu21 + m.nu03
    q0 = t0 * t0
    q1 = t1 * t1
    n4 = 4 * m.nu11
    s = m.nu20 + m.nu02
    d = m.nu20 - m.nu02
    p0 = m.nu30 - 3 * m.nu12  # (nu30 - 3 nu12)
    p1 = 3 * m.nu21 - m.nu03  # (3 nu21 - nu03)

    return np.array([
        s,
        d * d + n4 * m.nu11,
        p0 * p0 + p1 * p1,
        q0 + q1,
        p0 * t0 * (q0 - 3 * q1) + p1 * t1 * (3 * q0 - q1),
        d * (q0 - q1) + n4 * t0 * t1,
        p1 * t0 * (q0 - 3 * q1) - p0 * t1 * (3 * q0 - q1),
    ], dtype=np.float64)


def log_transform(hu: npt.NDArray[Any], epsilon: float = 1e-10) -> npt.NDArray[np.float64]:
    """Compress invariants to comparable magnitudes: -sign(v) * log10(|v| + eps)."""
    values = np.asarray(hu, dtype=np.float64)
    return -np.sign(values) * np.log10(np.abs(values) + epsilon)


def match_shapes(
    contour1: npt.NDArray[Any], contour2: npt.NDArray[Any], epsilon: float = SHAPE_EPSILON
) -> float:
    """I2 shape distance between two contours.

    Sum over Hu invariants of |sign(a) log10|a| - sign(b) log10|b||, skipping
    invariants that are near zero in either contour.

    Args:
        contour1: First contour (N, 2).
        contour2: Second contour (M, 2).
        epsilon: Magnitude below which an invariant is ignored.

    Returns:
        Non-negative distance; 0.0 for identical shapes.
    """
    hu1 = hu_invariants(contour_moments(contour1))
    hu2 = hu_invariants(contour_moments(contour2))

    abs1 = np.abs(hu1)
    abs2 = np.abs(hu2)
    valid = (abs1 > epsilon) & (abs2 > epsilon)
    if not valid.any():
        return 0.0

    log1 = np.sign(hu1[valid]) * np.log10(abs1[valid])
    log2 = np.sign(hu2[valid]) * np.log10(abs2[valid])
    return float(np.sum(np.abs(log2 - log1)))
