"""External contour extraction by border following.

Implements the outer-border part of Suzuki & Abe, "Topological structural
analysis of digitized binary images by border following" (1985). Only the
outermost border of each connected component is reported; holes, and anything
drawn inside a hole, are filled before tracing. Traced borders are reduced to
the points where the chain direction changes.
"""

from __future__ import annotations

from typing import Any, Protocol

import numpy as np
import numpy.typing as npt
from scipy import ndimage

# 8-neighbourhood as (drow, dcol), clockwise on screen starting east
_NEIGHBOURS = ((0, 1), (1, 1), (1, 0), (1, -1), (0, -1), (-1, -1), (-1, 0), (-1, 1))
_DIRECTION = {offset: idx for idx, offset in enumerate(_NEIGHBOURS)}
_WEST = 4

# Foreground components are 8-connected, so background must be 4-connected
_EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)

Contour = npt.NDArray[np.int32]


class ContourExtractor(Protocol):
    """Protocol for anything that turns a binary mask into outer contours."""

    def extract(self, mask: npt.NDArray[Any]) -> list[Contour]:
        """Extract external contours.

        Args:
            mask: Binary mask (nonzero = foreground).

        Returns:
            List of (N, 2) int32 arrays of (x, y) vertices.
        """
        ...


def _trace_outer_border(
    region: npt.NDArray[np.bool_], start: tuple[int, int]
) -> list[tuple[int, int]]:
    """Follow the outer border of the component containing ``start``.

    ``region`` must have a zero frame so neighbour lookups never leave the
    array, and ``start`` must be the first foreground pixel in raster order.
    Returns (row, col) points in tracing order.
    """
    row, col = start

    # Find the first foreground neighbour clockwise, starting from the west
    first = None
    for step in range(8):
        dr, dc = _NEIGHBOURS[(_WEST + step) % 8]
        if region[row + dr, col + dc]:
            first = (row + dr, col + dc)
            break
    if first is None:
        return [start]

    points = []
    previous, current = first, start
    while True:
        back = _DIRECTION[(previous[0] - current[0], previous[1] - current[1])]
        nxt = current
        # Counter-clockwise sweep starting just after the pixel we came from
        for step in range(1, 9):
            dr, dc = _NEIGHBOURS[(back - step) % 8]
            if region[current[0] + dr, current[1] + dc]:
                nxt = (current[0] + dr, current[1] + dc)
                break
        points.append(current)
        if nxt == start and current == first:
            return points
        previous, current = current, nxt


def approximate_simple(points: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Drop points that continue the previous horizontal, vertical or diagonal run.

    Args:
        points: Closed chain of 8-connected points.

    Returns:
        Only the points where the chain changes direction.
    """
    n = len(points)
    if n < 3:
        return list(points)

    kept = []
    for k in range(n):
        prev_pt, pt, next_pt = points[k - 1], points[k], points[(k + 1) % n]
        incoming = (pt[0] - prev_pt[0], pt[1] - prev_pt[1])
        outgoing = (next_pt[0] - pt[0], next_pt[1] - pt[1])
        if incoming != outgoing:
            kept.append(pt)
    return kept or [points[0]]


def extract_external_contours(mask: npt.NDArray[Any]) -> list[Contour]:
    """Trace the outer boundary of every top-level foreground component.

    Args:
        mask: Binary mask (H, W); any nonzero pixel is foreground.

    Returns:
        One (N, 2) int32 array of (x, y) vertices per component, in raster
        order of the components' first pixel. Empty if there is no foreground.
    """
    foreground = np.asarray(mask) != 0
    if not foreground.any():
        return []

    filled = ndimage.binary_fill_holes(foreground)
    labels, _ = ndimage.label(filled, structure=_EIGHT_CONNECTED)

    contours: list[Contour] = []
    for label, bbox in enumerate(ndimage.find_objects(labels), start=1):
        if bbox is None:
            continue
        # Work on the bounding box only, with a zero frame around it
        region = np.pad(labels[bbox] == label, 1)
        first_row = int(np.argmax(region.any(axis=1)))
        first_col = int(np.argmax(region[first_row]))

        chain = approximate_simple(_trace_outer_border(region, (first_row, first_col)))
        row_offset = bbox[0].start - 1
        col_offset = bbox[1].start - 1
        contour = np.array(
            [(c + col_offset, r + row_offset) for r, c in chain], dtype=np.int32
        )
        contours.append(contour)

    return contours


class BorderFollowingExtractor:
    """ContourExtractor backed by extract_external_contours."""

    def extract(self, mask: npt.NDArray[Any]) -> list[Contour]:
        """Extract external contours from a binary mask."""
        return extract_external_contours(mask)


def contour_area(contour: npt.NDArray[Any]) -> float:
    """Enclosed polygon area (shoelace formula, orientation independent).

    Args:
        contour: (N, 2) array of (x, y) vertices.

    Returns:
        Absolute area; 0.0 for fewer than three vertices.
    """
    pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 3:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)) / 2.0)


def arc_length(contour: npt.NDArray[Any], closed: bool = True) -> float:
    """Polyline length of a contour.

    Args:
        contour: (N, 2) array of (x, y) vertices.
        closed: Include the segment from the last vertex back to the first.

    Returns:
        Total segment length.
    """
    pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 2:
        return 0.0
    if closed:
        pts = np.vstack([pts, pts[:1]])
    return float(np.sum(np.hypot(np.diff(pts[:, 0]), np.diff(pts[:, 1]))))
