# core/geometry.py
"""
Orthogonal geometry helpers.

Every function here works on plain ``(x, y)`` tuples so the store, the routing
engine and the net extractor can share them without converting types.
"""

import math
from enum import Enum
from typing import Dict, List, Optional, Tuple

from PySide6.QtCore import QPointF

Point = Tuple[float, float]

EPSILON = 0.001


class Orientation(Enum):
    """Axis of a wire segment."""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


def same_point(a: Point, b: Point, eps: float = EPSILON) -> bool:
    return abs(a[0] - b[0]) < eps and abs(a[1] - b[1]) < eps


def point_key(x: float, y: float, eps: float = EPSILON) -> Tuple[int, int]:
    """Cell of side ``eps`` holding the coordinate."""
    return (math.floor(x / eps), math.floor(y / eps))


class PointTable:
    """
    Groups coordinates that lie within ``eps`` of each other.

    A coordinate maps to the first representative already recorded within
    eps of it, searched in its own cell and the eight around it. Otherwise it
    becomes a new representative.
    """

    def __init__(self, eps: float = EPSILON):
        self.eps = eps
        self._cells: Dict[Tuple[int, int], List[Point]] = {}

    def key(self, x: float, y: float) -> Point:
        cx, cy = point_key(x, y, self.eps)
        for i in (-1, 0, 1):
            for j in (-1, 0, 1):
                for rep in self._cells.get((cx + i, cy + j), ()):
                    if same_point(rep, (x, y), self.eps):
                        return rep
        rep = (x + 0.0, y + 0.0)
        self._cells.setdefault((cx, cy), []).append(rep)
        return rep

    def __len__(self) -> int:
        return sum(len(reps) for reps in self._cells.values())


def orientation(a: Point, b: Point, eps: float = EPSILON) -> Optional[Orientation]:
    """
    Returns the axis of the segment a-b, or None when it is diagonal
    or has zero length.
    """
    same_x = abs(a[0] - b[0]) < eps
    same_y = abs(a[1] - b[1]) < eps
    if same_x and same_y:
        return None
    if same_y:
        return Orientation.HORIZONTAL
    if same_x:
        return Orientation.VERTICAL
    return None


def is_diagonal(a: Point, b: Point, eps: float = EPSILON) -> bool:
    return abs(a[0] - b[0]) > eps and abs(a[1] - b[1]) > eps


def is_aligned(a: Point, b: Point, eps: float = EPSILON) -> bool:
    """True when the two points share an x or a y coordinate."""
    return abs(a[0] - b[0]) < eps or abs(a[1] - b[1]) < eps


def manhattan(a: Point, b: Point) -> float:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def snap_value(value: float, grid: float) -> float:
    if grid <= 0:
        return value
    return round(value / grid) * grid


def snap_point(pt: QPointF, grid: float) -> Point:
    """Calculates the nearest grid intersection for a scene position."""
    return (snap_value(pt.x(), grid), snap_value(pt.y(), grid))


def point_to_segment_distance(p: Point, a: Point, b: Point) -> float:
    """Distance from p to the segment a-b (clamped to the segment)."""
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(p[0] - a[0], p[1] - a[1])

    t = ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    proj_x = a[0] + t * dx
    proj_y = a[1] + t * dy
    return math.hypot(p[0] - proj_x, p[1] - proj_y)


def between(value: float, start: float, end: float, eps: float = EPSILON) -> bool:
    lo, hi = min(start, end), max(start, end)
    return lo - eps <= value <= hi + eps


def is_point_on_segment(p: Point, a: Point, b: Point, eps: float = EPSILON) -> bool:
    """Exact (epsilon) containment test for an axis-aligned segment."""
    axis = orientation(a, b, eps)
    if axis is Orientation.HORIZONTAL:
        return abs(p[1] - a[1]) < eps and between(p[0], a[0], b[0], eps)
    if axis is Orientation.VERTICAL:
        return abs(p[0] - a[0]) < eps and between(p[1], a[1], b[1], eps)
    return False


def l_path_bend(start: Point, end: Point, eps: float = EPSILON) -> Optional[Point]:
    """
    Bend point of the L-shaped route from start to end.

    The longer leg goes first: horizontal-then-vertical when |dx| >= |dy|,
    vertical-then-horizontal otherwise. Returns None when the two points are
    already aligned and no bend is needed.
    """
    dx = abs(end[0] - start[0])
    dy = abs(end[1] - start[1])
    if dx < eps or dy < eps:
        return None
    if dx >= dy:
        return (end[0], start[1])
    return (start[0], end[1])


def l_path(start: Point, end: Point, eps: float = EPSILON) -> List[Point]:
    """Vertices of the L-route, start and end included."""
    bend = l_path_bend(start, end, eps)
    if bend is None:
        return [start, end]
    return [start, bend, end]


def polyline_path(points: List[Point], eps: float = EPSILON) -> List[Point]:
    """
    Chains L-routes through every point and drops duplicate and
    collinear interior vertices.
    """
    if not points:
        return []
    path = [points[0]]
    for nxt in points[1:]:
        path.extend(l_path(path[-1], nxt, eps)[1:])
    return merge_collinear_vertices(path, eps)


def merge_collinear_vertices(vertices: List[Point], eps: float = EPSILON) -> List[Point]:
    merged: List[Point] = []
    for pt in vertices:
        if merged and same_point(merged[-1], pt, eps):
            continue
        merged.append(pt)
        if len(merged) >= 3:
            a, b, c = merged[-3], merged[-2], merged[-1]
            if (abs(a[0] - b[0]) < eps and abs(b[0] - c[0]) < eps) or \
                    (abs(a[1] - b[1]) < eps and abs(b[1] - c[1]) < eps):
                del merged[-2]
    return merged


def _overlap_points(a1: float, a2: float, b1: float, b2: float,
                    constant: float, horizontal: bool, eps: float) -> List[Point]:
    start = max(min(a1, a2), min(b1, b2))
    end = min(max(a1, a2), max(b1, b2))
    if end < start - eps:
        return []

    def make(v: float) -> Point:
        return (v, constant) if horizontal else (constant, v)

    if abs(end - start) < eps:
        return [make(start)]
    return [make(start), make(end)]


def segment_intersections(a1: Point, a2: Point, b1: Point, b2: Point,
                          eps: float = EPSILON) -> List[Point]:
    """
    Classifies two axis-aligned segments and returns their shared points.

    * parallel and collinear with an overlap: the 1-2 boundary points of the
      overlap;
    * perpendicular: the crossing point, when it lies within both extents;
    * anything else (parallel apart, diagonal input): no points.
    """
    axis_a = orientation(a1, a2, eps)
    axis_b = orientation(b1, b2, eps)
    if axis_a is None or axis_b is None:
        return []

    if axis_a is axis_b:
        if axis_a is Orientation.HORIZONTAL and abs(a1[1] - b1[1]) < eps:
            return _overlap_points(a1[0], a2[0], b1[0], b2[0], a1[1], True, eps)
        if axis_a is Orientation.VERTICAL and abs(a1[0] - b1[0]) < eps:
            return _overlap_points(a1[1], a2[1], b1[1], b2[1], a1[0], False, eps)
        return []

    if axis_a is Orientation.HORIZONTAL:
        h1, h2, v1, v2 = a1, a2, b1, b2
    else:
        h1, h2, v1, v2 = b1, b2, a1, a2

    cross = (v1[0], h1[1])
    if between(cross[0], h1[0], h2[0], eps) and between(cross[1], v1[1], v2[1], eps):
        return [cross]
    return []
