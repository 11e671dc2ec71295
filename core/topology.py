# core/topology.py
"""
Topology Store - the owned, mutable wire graph.

Nodes and segments live in flat id-keyed tables. Adjacency is computed by
scanning the segment table; nodes never hold references to their segments.

Every primitive is total: a failed precondition is a silent no-op that returns
a sentinel (None / False). The routing engine relies on this when it calls the
primitives speculatively inside repair loops.
"""

import json
import logging
from typing import Dict, List, Optional, Tuple, Iterator, Any

from core.config import EngineConfig
from core.geometry import Point, point_to_segment_distance
from core.node import Node, NodeKind
from core.segment import Segment, SegmentId, segment_id

log = logging.getLogger(__name__)


class TopologyError(Exception):
    """Base exception for topology store errors."""
    pass


class SnapshotFormatError(TopologyError):
    """Raised when a serialized snapshot cannot be read."""
    pass


class TopologyStore:
    """Nodes (points) and axis-aligned segments forming the wire graph."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._nodes: Dict[int, Node] = {}
        self._segments: Dict[SegmentId, Segment] = {}
        self._next_node_id = 1

        # Set by every successful mutation, cleared by whoever consumed it
        self.dirty = False
        self.version = 0

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _touch(self) -> None:
        self.dirty = True
        self.version += 1

    def mark_clean(self) -> None:
        self.dirty = False

    @property
    def epsilon(self) -> float:
        return self.config.epsilon

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, x: float, y: float, kind: NodeKind = NodeKind.FREE,
                 component_id: Optional[str] = None, pin_id: Optional[str] = None) -> int:
        """
        Adds a node at (x, y). If a node already occupies that point, its id is
        returned instead and its kind is promoted when ``kind`` is stronger.
        """
        existing = self.find_coincident_node(x, y)
        if existing is not None:
            if kind.rank > existing.kind.rank:
                existing.promote(kind, component_id, pin_id)
                self._touch()
            return existing.id

        node_id = self._next_node_id
        self._next_node_id += 1
        self._nodes[node_id] = Node(node_id, x, y, kind, component_id, pin_id)
        self._touch()
        return node_id

    def bind_pin(self, x: float, y: float, component_id: str, pin_id: str) -> int:
        """
        Returns the node for a component pin at (x, y).

        A coincident wire node is promoted and reused. Another pin at the same
        point is not: every pin owns its own node.
        """
        bound = self.find_pin_node(component_id, pin_id)
        if bound is not None:
            self.update_node(bound.id, x, y)
            return bound.id

        existing = self.find_coincident_node(x, y, include_pins=False)
        if existing is not None:
            existing.promote(NodeKind.PIN, component_id, pin_id)
            self._touch()
            return existing.id

        node_id = self._next_node_id
        self._next_node_id += 1
        self._nodes[node_id] = Node(node_id, x, y, NodeKind.PIN, component_id, pin_id)
        self._touch()
        return node_id

    def find_pin_node(self, component_id: str, pin_id: str) -> Optional[Node]:
        for node in self._nodes.values():
            if node.is_pin and node.component_id == component_id and node.pin_id == pin_id:
                return node
        return None

    def find_coincident_node(self, x: float, y: float, include_pins: bool = True) -> Optional[Node]:
        eps = self.epsilon
        for node in self._nodes.values():
            if not include_pins and node.is_pin:
                continue
            if abs(node.x - x) < eps and abs(node.y - y) < eps:
                return node
        return None

    def get_node(self, node_id: Optional[int]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def has_node(self, node_id: int) -> bool:
        return node_id in self._nodes

    def update_node(self, node_id: int, x: float, y: float) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        if node.x != x or node.y != y:
            node.x = x
            node.y = y
            self._touch()
        return True

    def remove_node(self, node_id: int) -> bool:
        """Removes a node together with every segment incident to it."""
        if node_id not in self._nodes:
            return False
        for seg in self.segments_for_node(node_id):
            del self._segments[seg.id]
        del self._nodes[node_id]
        self._touch()
        return True

    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def node_ids(self) -> List[int]:
        return list(self._nodes.keys())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    def add_segment(self, node_a: int, node_b: int) -> Optional[SegmentId]:
        """
        Adds a segment between two existing nodes.

        Returns None without changing anything when the nodes are equal,
        either node is unknown, or the segment already exists.
        """
        if node_a == node_b:
            return None
        if node_a not in self._nodes or node_b not in self._nodes:
            return None

        seg_id = segment_id(node_a, node_b)
        if seg_id in self._segments:
            return None

        self._segments[seg_id] = Segment(*seg_id)
        self._touch()
        return seg_id

    def remove_segment(self, node_a: int, node_b: int) -> bool:
        seg_id = segment_id(node_a, node_b)
        if seg_id not in self._segments:
            return False
        del self._segments[seg_id]
        self._touch()
        return True

    def get_segment(self, seg_id: SegmentId) -> Optional[Segment]:
        return self._segments.get(seg_id)

    def has_segment(self, node_a: int, node_b: int) -> bool:
        return segment_id(node_a, node_b) in self._segments

    def segments(self) -> List[Segment]:
        return list(self._segments.values())

    @property
    def segment_count(self) -> int:
        return len(self._segments)

    def segment_endpoints(self, seg: Segment) -> Optional[Tuple[Point, Point]]:
        a = self._nodes.get(seg.node_a)
        b = self._nodes.get(seg.node_b)
        if a is None or b is None:
            return None
        return (a.x, a.y), (b.x, b.y)

    def iter_segment_geometry(self) -> Iterator[Tuple[Segment, Point, Point]]:
        for seg in self._segments.values():
            ends = self.segment_endpoints(seg)
            if ends is not None:
                yield seg, ends[0], ends[1]

    # ------------------------------------------------------------------
    # Adjacency queries
    # ------------------------------------------------------------------

    def segments_for_node(self, node_id: int) -> List[Segment]:
        return [s for s in self._segments.values() if s.touches(node_id)]

    def connected_nodes(self, node_id: int) -> List[int]:
        return [s.other(node_id) for s in self._segments.values() if s.touches(node_id)]

    def connection_count(self, node_id: int) -> int:
        return sum(1 for s in self._segments.values() if s.touches(node_id))

    # ------------------------------------------------------------------
    # Spatial queries
    # ------------------------------------------------------------------

    def node_at(self, x: float, y: float, tolerance: float = 5) -> Optional[Node]:
        """Nearest node within ``tolerance`` of (x, y)."""
        best: Optional[Node] = None
        best_dist = tolerance
        for node in self._nodes.values():
            dist = ((node.x - x) ** 2 + (node.y - y) ** 2) ** 0.5
            if dist <= best_dist:
                best = node
                best_dist = dist
        return best

    def segment_at(self, x: float, y: float,
                   tolerance: float = 5) -> Optional[Tuple[Segment, float]]:
        """Nearest segment within ``tolerance`` of (x, y), with its distance."""
        closest: Optional[Tuple[Segment, float]] = None
        closest_dist = tolerance
        for seg, a, b in self.iter_segment_geometry():
            dist = point_to_segment_distance((x, y), a, b)
            if dist <= closest_dist:
                closest_dist = dist
                closest = (seg, dist)
        return closest

    def hit_test_node(self, x: float, y: float, tolerance: Optional[float] = None) -> Optional[int]:
        if tolerance is None:
            tolerance = self.config.node_hit_tolerance
        node = self.node_at(x, y, tolerance)
        return node.id if node else None

    def hit_test_segment(self, x: float, y: float,
                         tolerance: Optional[float] = None) -> Optional[SegmentId]:
        if tolerance is None:
            tolerance = self.config.segment_hit_tolerance
        hit = self.segment_at(x, y, tolerance)
        return hit[0].id if hit else None

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def split_segment(self, seg_id: SegmentId, x: float, y: float,
                      kind: NodeKind = NodeKind.FREE) -> Optional[int]:
        """
        Splits a segment at (x, y) and returns the new node id.

        The split point is snapped onto the segment's constant axis so both
        halves stay orthogonal.
        """
        seg = self._segments.get(seg_id)
        if seg is None:
            return None
        a = self._nodes.get(seg.node_a)
        b = self._nodes.get(seg.node_b)
        if a is None or b is None:
            return None

        eps = self.epsilon
        if abs(a.x - b.x) < eps:
            x = a.x
        elif abs(a.y - b.y) < eps:
            y = a.y

        new_id = self.add_node(x, y, kind)
        if new_id in (seg.node_a, seg.node_b):
            return new_id

        del self._segments[seg_id]
        self.add_segment(seg.node_a, new_id)
        self.add_segment(new_id, seg.node_b)
        self._touch()
        log.debug("split segment %s at (%s, %s) -> node %d", seg.label, x, y, new_id)
        return new_id

    def clear(self) -> None:
        self._nodes.clear()
        self._segments.clear()
        self._next_node_id = 1
        self._touch()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def serialize(self) -> Dict[str, Any]:
        """
        Plain-data snapshot: ``{nodes: [...], segments: [...]}``, both sorted
        by id so equal topologies give equal snapshots.
        """
        return {
            "nodes": [
                {"id": n.id, "x": n.x, "y": n.y, "flags": n.flags()}
                for _, n in sorted(self._nodes.items())
            ],
            "segments": [
                {"id": s.label, "nodeA": s.node_a, "nodeB": s.node_b}
                for _, s in sorted(self._segments.items())
            ],
        }

    @classmethod
    def deserialize(cls, data: Dict[str, Any],
                    config: Optional[EngineConfig] = None) -> "TopologyStore":
        store = cls(config)
        store.restore(data)
        store.mark_clean()
        return store

    def restore(self, data: Dict[str, Any]) -> None:
        """Replaces the whole content with a snapshot, in place."""
        nodes, segments = _parse_snapshot(data)

        self._nodes.clear()
        self._segments.clear()
        max_id = 0
        for node in nodes:
            self._nodes[node.id] = node
            max_id = max(max_id, node.id)
        self._next_node_id = max_id + 1

        for node_a, node_b in segments:
            if self.add_segment(node_a, node_b) is None:
                log.debug("snapshot segment %s-%s skipped", node_a, node_b)
        self._touch()

    def save_json(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump(self.serialize(), f, indent=2)

    @classmethod
    def load_json(cls, path: str, config: Optional[EngineConfig] = None) -> "TopologyStore":
        with open(path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise SnapshotFormatError(f"Invalid snapshot file {path}: {e}") from e
        return cls.deserialize(data, config)

    def __repr__(self) -> str:
        return f"TopologyStore(nodes={len(self._nodes)}, segments={len(self._segments)})"


def _parse_snapshot(data: Any) -> Tuple[List[Node], List[Tuple[int, int]]]:
    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot must be a mapping")

    raw_nodes = data.get("nodes", [])
    raw_segments = data.get("segments", [])
    if not isinstance(raw_nodes, list) or not isinstance(raw_segments, list):
        raise SnapshotFormatError("Snapshot 'nodes' and 'segments' must be lists")

    nodes: List[Node] = []
    seen = set()
    for entry in raw_nodes:
        try:
            node_id = int(entry["id"])
            x = entry["x"]
            y = entry["y"]
            flags = entry.get("flags") or {}
            kind = NodeKind[str(flags.get("kind", "free")).upper()]
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotFormatError(f"Invalid node entry {entry!r}") from e
        if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            raise SnapshotFormatError(f"Node {node_id} has non-numeric coordinates")
        if node_id in seen:
            raise SnapshotFormatError(f"Duplicate node id {node_id}")
        seen.add(node_id)
        nodes.append(Node(node_id, x, y, kind,
                          flags.get("component_id"), flags.get("pin_id")))

    segments: List[Tuple[int, int]] = []
    for entry in raw_segments:
        try:
            segments.append((int(entry["nodeA"]), int(entry["nodeB"])))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotFormatError(f"Invalid segment entry {entry!r}") from e

    return nodes, segments
