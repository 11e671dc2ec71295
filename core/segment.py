# core/segment.py
from typing import NamedTuple, Tuple

SegmentId = Tuple[int, int]


def segment_id(node_a: int, node_b: int) -> SegmentId:
    """Normalized id of the segment between two nodes (order independent)."""
    return (node_a, node_b) if node_a < node_b else (node_b, node_a)


class Segment(NamedTuple):
    """
    An axis-aligned edge between two nodes. ``node_a`` is always the lower id,
    so two segments over the same node pair compare equal.
    """
    node_a: int
    node_b: int

    @property
    def id(self) -> SegmentId:
        return (self.node_a, self.node_b)

    def other(self, node_id: int) -> int:
        return self.node_b if node_id == self.node_a else self.node_a

    def touches(self, node_id: int) -> bool:
        return node_id == self.node_a or node_id == self.node_b

    @property
    def label(self) -> str:
        """String form used in snapshots."""
        return f"{self.node_a}-{self.node_b}"
