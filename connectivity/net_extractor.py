# connectivity/net_extractor.py
"""
Net Extractor - derives electrical connectivity from wire geometry.

Connectivity is geometric: two segments are connected when they share a
point, whether that point is a common node, a T where one segment ends on
another, a perpendicular crossing or a collinear overlap. Pins join a net when
they sit on a wire point or on a segment's body.

Steps:
1. bucket every segment into a uniform grid;
2. classify each bucket-sharing pair and record the shared points;
3. record segment ends lying on other segments and pins lying on segments;
4. union the points of every segment;
5. name the resulting classes ("0" for ground, N001, N002, ... otherwise).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from core.config import EngineConfig
from core.geometry import Point, PointTable, segment_intersections, is_point_on_segment, same_point
from core.net import Net, Junction, ConnectivityResult, GROUND_NET
from core.placement import PinPosition
from core.segment import SegmentId
from core.topology import TopologyStore
from connectivity.spatial_index import SpatialIndex
from connectivity.union_find import UnionFind

log = logging.getLogger(__name__)

PointKey = Tuple[float, float]


class ConnectivityError(Exception):
    """Raised when the extractor is given input it cannot interpret."""
    pass


@dataclass
class PointInfo:
    """Everything that meets at one coordinate."""
    x: float
    y: float
    segments: Set[SegmentId] = field(default_factory=set)
    ends: Set[SegmentId] = field(default_factory=set)  # segments ending here
    pins: List[str] = field(default_factory=list)

    @property
    def interior(self) -> int:
        """Number of segments passing through this point."""
        return len(self.segments - self.ends)

    @property
    def is_junction(self) -> bool:
        touching = len(self.segments)
        return touching >= 3 or (self.interior >= 1 and touching >= 2)


class NetExtractor:
    """Full recomputation of nets from a cleaned store and pin positions."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def extract(self, store: TopologyStore, pins: Iterable[PinPosition]) -> ConnectivityResult:
        pins = list(pins)
        for pin in pins:
            if not isinstance(pin, PinPosition):
                raise ConnectivityError(f"Expected a PinPosition, got {type(pin).__name__}")

        eps = self.config.epsilon
        result = ConnectivityResult()

        table = PointTable(eps)
        points: Dict[PointKey, PointInfo] = {}
        segment_points: Dict[SegmentId, Set[PointKey]] = {}
        geometry: Dict[SegmentId, Tuple[Point, Point]] = {}

        def record(pt: Point, seg_id: Optional[SegmentId] = None, is_end: bool = False,
                   pin: Optional[str] = None) -> PointKey:
            key = table.key(pt[0], pt[1])
            info = points.get(key)
            if info is None:
                info = PointInfo(pt[0], pt[1])
                points[key] = info
            if seg_id is not None:
                info.segments.add(seg_id)
                if is_end:
                    info.ends.add(seg_id)
                segment_points[seg_id].add(key)
            if pin is not None and pin not in info.pins:
                info.pins.append(pin)
            return key

        # 1. Index segments and their ends
        index = SpatialIndex(self.config.net_cell_size)
        order: List[SegmentId] = []
        for seg, a, b in store.iter_segment_geometry():
            if same_point(a, b, eps):
                continue
            order.append(seg.id)
            geometry[seg.id] = (a, b)
            segment_points[seg.id] = set()
            index.insert(seg.id, a, b)
            record(a, seg.id, is_end=True)
            record(b, seg.id, is_end=True)

        # 2. Pairwise overlaps and crossings
        position = {seg_id: i for i, seg_id in enumerate(order)}
        for seg_id in order:
            a1, a2 = geometry[seg_id]
            for other_id in index.query_segment(a1, a2):
                if position[other_id] <= position[seg_id]:
                    continue
                b1, b2 = geometry[other_id]
                for pt in segment_intersections(a1, a2, b1, b2, eps):
                    record(pt, seg_id, is_end=_is_end(pt, a1, a2, eps))
                    record(pt, other_id, is_end=_is_end(pt, b1, b2, eps))

        # 3. Segment ends lying on another segment's body
        for seg_id in order:
            for pt in geometry[seg_id]:
                for other_id in index.query_point(pt, eps):
                    if other_id == seg_id:
                        continue
                    b1, b2 = geometry[other_id]
                    if is_point_on_segment(pt, b1, b2, eps):
                        record(pt, other_id, is_end=_is_end(pt, b1, b2, eps))

        # Pins
        for pin in pins:
            record(pin.pos, pin=pin.key)
            for other_id in index.query_point(pin.pos, eps):
                b1, b2 = geometry[other_id]
                if is_point_on_segment(pin.pos, b1, b2, eps):
                    record(pin.pos, other_id, is_end=_is_end(pin.pos, b1, b2, eps))

        # Pins that touch nothing stay out of the union-find
        connected_pins = {}
        for pin in pins:
            key = table.key(pin.x, pin.y)
            info = points[key]
            if info.segments or len(info.pins) > 1 or pin.is_ground:
                connected_pins[pin.key] = key
        live = [key for key, info in points.items()
                if info.segments or any(p in connected_pins for p in info.pins)]

        # 4. Union the points of every segment
        uf = UnionFind()
        for key in live:
            uf.add(key)
        for seg_id in order:
            keys = list(segment_points[seg_id])
            for key in keys[1:]:
                uf.union(keys[0], key)

        # 5. Name the classes
        ground_roots: Set[PointKey] = set()
        for pin in pins:
            if pin.is_ground and pin.key in connected_pins:
                ground_roots.add(uf.find(connected_pins[pin.key]))

        root_names: Dict[PointKey, str] = {}
        next_index = 1
        for key in live:
            root = uf.find(key)
            if root in root_names:
                continue
            if root in ground_roots:
                root_names[root] = GROUND_NET
            else:
                root_names[root] = f"N{next_index:03d}"
                next_index += 1

        for key in live:
            info = points[key]
            name = root_names[uf.find(key)]
            net = result.nets.get(name)
            if net is None:
                net = Net(name)
                result.nets[name] = net
                result.net_names.append(name)
            net.points.append((info.x, info.y))
            for pin_id in info.pins:
                if pin_id in connected_pins:
                    net.connect(pin_id)
            if info.is_junction:
                result.junctions.append(Junction(info.x, info.y, name))

        for pin_id, key in connected_pins.items():
            result.net_of_pin[pin_id] = root_names[uf.find(key)]

        for seg_id in order:
            a, _ = geometry[seg_id]
            name = root_names[uf.find(table.key(a[0], a[1]))]
            result.net_of_segment[seg_id] = name
            result.nets[name].segments.append(seg_id)

        self._check_grounds(ground_roots, uf, points, live, result)
        log.debug("extracted %d net(s), %d junction(s) from %d segment(s) and %d pin(s)",
                  len(result.nets), len(result.junctions), len(order), len(pins))
        return result

    @staticmethod
    def _check_grounds(ground_roots: Set[PointKey], uf: UnionFind,
                       points: Dict[PointKey, PointInfo], live: List[PointKey],
                       result: ConnectivityResult) -> None:
        """Warns when ground pins sit on separate wire clusters."""
        wired = set()
        for key in live:
            root = uf.find(key)
            if root in ground_roots and points[key].segments:
                wired.add(root)
        if len(wired) > 1:
            log.warning("%d disconnected wire clusters are tied to ground", len(wired))
            result.warnings.append(
                f"{len(wired)} disconnected wire clusters are tied to ground; all named '{GROUND_NET}'")


def _is_end(pt: Point, a: Point, b: Point, eps: float) -> bool:
    return same_point(pt, a, eps) or same_point(pt, b, eps)
