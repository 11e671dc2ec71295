# connectivity/spatial_index.py
import math
from typing import Dict, Hashable, List, Set, Tuple

from core.geometry import Point, EPSILON

Cell = Tuple[int, int]


class SpatialIndex:
    """
    Uniform bucket grid over axis-aligned segments.

    Each segment is stored in every cell its bounding box overlaps, so two
    segments that touch always share at least one bucket.
    """

    def __init__(self, cell_size: float):
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        self.cell_size = cell_size
        self.buckets: Dict[Cell, Set[Hashable]] = {}

    def cell_for_point(self, x: float, y: float) -> Cell:
        return (math.floor(x / self.cell_size), math.floor(y / self.cell_size))

    def cells_for_bounds(self, min_x: float, min_y: float,
                         max_x: float, max_y: float) -> List[Cell]:
        start_x, start_y = self.cell_for_point(min_x, min_y)
        end_x, end_y = self.cell_for_point(max_x, max_y)
        return [(cx, cy)
                for cx in range(start_x, end_x + 1)
                for cy in range(start_y, end_y + 1)]

    @staticmethod
    def _bounds(a: Point, b: Point) -> Tuple[float, float, float, float]:
        return min(a[0], b[0]), min(a[1], b[1]), max(a[0], b[0]), max(a[1], b[1])

    def insert(self, item: Hashable, a: Point, b: Point) -> None:
        for cell in self.cells_for_bounds(*self._bounds(a, b)):
            self.buckets.setdefault(cell, set()).add(item)

    def query_segment(self, a: Point, b: Point) -> Set[Hashable]:
        """Items sharing a bucket with the segment a-b."""
        found: Set[Hashable] = set()
        for cell in self.cells_for_bounds(*self._bounds(a, b)):
            found.update(self.buckets.get(cell, ()))
        return found

    def query_point(self, p: Point, eps: float = EPSILON) -> Set[Hashable]:
        """Items whose bucket holds ``p``, tolerant to points on a cell edge."""
        found: Set[Hashable] = set()
        for cell in self.cells_for_bounds(p[0] - eps, p[1] - eps, p[0] + eps, p[1] + eps):
            found.update(self.buckets.get(cell, ()))
        return found

    def clear(self) -> None:
        self.buckets.clear()

    def __len__(self) -> int:
        return len(self.buckets)
