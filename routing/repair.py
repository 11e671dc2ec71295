# routing/repair.py
"""
Orthogonality repair shared by the drag engine and the pin registry.

When a node moves, the segments incident to it can turn diagonal. The helpers
here bring them back to horizontal/vertical by, in order of preference:
sliding an adjacent junction, moving an adjacent pure bend, or inserting a
fresh bend node.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from core.geometry import (
    Point,
    is_aligned,
    is_diagonal,
    manhattan,
    orientation,
    same_point,
    segment_intersections,
)
from core.node import NodeKind
from core.segment import Segment, SegmentId
from core.topology import TopologyStore

log = logging.getLogger(__name__)


@dataclass
class RepairLog:
    """Records the store objects a repair created or removed, for rollback."""
    created_nodes: Set[int] = field(default_factory=set)
    created_segments: Set[SegmentId] = field(default_factory=set)
    bends: List[int] = field(default_factory=list)

    def clear(self) -> None:
        self.created_nodes.clear()
        self.created_segments.clear()
        self.bends.clear()


def choose_bend_position(a: Point, b: Point, existing: Optional[Point] = None) -> Point:
    """
    Picks the corner of the L between ``a`` and ``b``.

    With an ``existing`` bend the corner closest to it wins. Otherwise the
    corner is ``(a.x, b.y)`` when |dx| >= |dy| and ``(b.x, a.y)`` otherwise.
    """
    first = (a[0], b[1])
    second = (b[0], a[1])

    if existing is not None:
        d1 = math.hypot(existing[0] - first[0], existing[1] - first[1])
        d2 = math.hypot(existing[0] - second[0], existing[1] - second[1])
        return first if d1 <= d2 else second

    dx = abs(b[0] - a[0])
    dy = abs(b[1] - a[1])
    return first if dx >= dy else second


def insert_bend(store: TopologyStore, node_a: int, node_b: int, pos: Point,
                repair_log: Optional[RepairLog] = None) -> Optional[int]:
    """
    Replaces the segment a-b by a-bend-b with the bend at ``pos``.

    An existing node at ``pos`` is reused as the bend. Returns the bend node
    id, or None when there is no such segment or ``pos`` is one of its ends.
    """
    a = store.get_node(node_a)
    b = store.get_node(node_b)
    if a is None or b is None or not store.has_segment(node_a, node_b):
        return None
    if same_point(a.pos, pos, store.epsilon) or same_point(b.pos, pos, store.epsilon):
        return None

    existing = store.find_coincident_node(pos[0], pos[1])
    if existing is not None:
        bend_id = existing.id
    else:
        bend_id = store.add_node(pos[0], pos[1], NodeKind.BEND)
        if repair_log is not None:
            repair_log.created_nodes.add(bend_id)

    store.remove_segment(node_a, node_b)
    if repair_log is not None:
        repair_log.bends.append(bend_id)

    for end in (node_a, node_b):
        added = store.add_segment(end, bend_id)
        if added is not None and repair_log is not None:
            repair_log.created_segments.add(added)

    log.debug("bend %d inserted between %d and %d at %s", bend_id, node_a, node_b, pos)
    return bend_id


def is_junction_position_valid(store: TopologyStore, neighbour_ids: Iterable[int],
                               candidate: Point) -> bool:
    """True when every neighbour shares an x or a y with ``candidate``."""
    eps = store.epsilon
    for nid in neighbour_ids:
        node = store.get_node(nid)
        if node is None:
            return False
        if not is_aligned(node.pos, candidate, eps):
            return False
    return True


def junction_total_manhattan(store: TopologyStore, neighbour_ids: Iterable[int],
                             candidate: Point) -> float:
    total = 0.0
    for nid in neighbour_ids:
        node = store.get_node(nid)
        if node is not None:
            total += manhattan(node.pos, candidate)
    return total


def slide_candidate(store: TopologyStore, junction_id: int, mover_id: int,
                    neighbour_ids: Optional[List[int]] = None) -> Optional[Point]:
    """
    Where a junction could slide so that it lines up with a moved neighbour
    and still lines up with every other neighbour. None when it can't.
    """
    junction = store.get_node(junction_id)
    mover = store.get_node(mover_id)
    if junction is None or mover is None or junction.is_pin:
        return None

    if neighbour_ids is None:
        neighbour_ids = store.connected_nodes(junction_id)
    if len(neighbour_ids) < 3:
        return None

    cand_a = (mover.x, junction.y)
    cand_b = (junction.x, mover.y)
    valid_a = is_junction_position_valid(store, neighbour_ids, cand_a)
    valid_b = is_junction_position_valid(store, neighbour_ids, cand_b)

    if valid_a and valid_b:
        score_a = junction_total_manhattan(store, neighbour_ids, cand_a)
        score_b = junction_total_manhattan(store, neighbour_ids, cand_b)
        return cand_a if score_a <= score_b else cand_b
    if valid_a:
        return cand_a
    if valid_b:
        return cand_b
    return None


def try_slide_junction(store: TopologyStore, junction_id: int, mover_id: int) -> bool:
    target = slide_candidate(store, junction_id, mover_id)
    if target is None:
        return False
    store.update_node(junction_id, target[0], target[1])
    log.debug("junction %d slid to %s", junction_id, target)
    return True


def is_pure_bend(store: TopologyStore, node_id: int) -> bool:
    node = store.get_node(node_id)
    return node is not None and not node.is_pin and store.connection_count(node_id) == 2


def reroute_node(store: TopologyStore, node_id: int) -> int:
    """
    Restores orthogonality around a node that was moved programmatically
    (a pin following its placement). Returns the number of repaired segments.
    """
    node = store.get_node(node_id)
    if node is None:
        return 0

    repaired = 0
    for other_id in store.connected_nodes(node_id):
        other = store.get_node(other_id)
        if other is None or not is_diagonal(node.pos, other.pos, store.epsilon):
            continue

        if not other.is_pin and store.connection_count(other_id) >= 3:
            if try_slide_junction(store, other_id, node_id):
                repaired += 1
                continue

        if is_pure_bend(store, other_id):
            far_id = [n for n in store.connected_nodes(other_id) if n != node_id][0]
            far = store.get_node(far_id)
            if far is not None:
                pos = choose_bend_position(node.pos, far.pos, other.pos)
                store.update_node(other_id, pos[0], pos[1])
                repaired += 1
                continue

        pos = choose_bend_position(node.pos, other.pos)
        if insert_bend(store, node_id, other_id, pos) is not None:
            repaired += 1
    return repaired


def repair_diagonals(store: TopologyStore, moved: Set[int],
                     repair_log: Optional[RepairLog] = None) -> List[int]:
    """
    Inserts a bend into every diagonal segment incident to a moved node.

    The bend keeps the static end's axis: ``(moved.x, static.y)``. When both
    ends moved the route goes horizontal first from the lower-id end.
    Returns the ids of the bends.
    """
    diagonal: List[Tuple[int, int]] = []
    seen: Set[SegmentId] = set()
    for nid in moved:
        for seg in store.segments_for_node(nid):
            if seg.id in seen:
                continue
            ends = store.segment_endpoints(seg)
            if ends is None or not is_diagonal(ends[0], ends[1], store.epsilon):
                continue
            seen.add(seg.id)
            diagonal.append(seg.id)

    bends = []
    for node_a, node_b in diagonal:
        a = store.get_node(node_a)
        b = store.get_node(node_b)
        a_moved = node_a in moved
        b_moved = node_b in moved
        if a_moved and not b_moved:
            pos = (a.x, b.y)
        else:
            pos = (b.x, a.y)
        bend_id = insert_bend(store, node_a, node_b, pos, repair_log)
        if bend_id is not None:
            bends.append(bend_id)
    return bends


def _join_at(store: TopologyStore, hits: List[Tuple[Segment, Point, Point]],
             pos: Point) -> Optional[int]:
    """
    Makes the segments in ``hits`` meet at a node on ``pos``, splitting each
    one that runs through ``pos`` rather than ending there. Returns the node,
    or None when every segment already ends at ``pos``.
    """
    eps = store.epsilon
    node_id = None
    through = []
    for seg, a, b in hits:
        if same_point(a, pos, eps):
            node_id = seg.node_a
        elif same_point(b, pos, eps):
            node_id = seg.node_b
        else:
            through.append(seg)
    if not through:
        return None

    if node_id is None:
        existing = store.find_coincident_node(pos[0], pos[1])
        node_id = existing.id if existing is not None else store.add_node(pos[0], pos[1])

    for seg in through:
        store.remove_segment(seg.node_a, seg.node_b)
        store.add_segment(seg.node_a, node_id)
        store.add_segment(node_id, seg.node_b)
    return node_id


def split_crossings(store: TopologyStore, node_ids: Iterable[int]) -> List[int]:
    """
    Puts a node on every point where a segment touching ``node_ids`` crosses
    a perpendicular segment it shares no node with, or where its end lands on
    such a segment. Returns the ids of those junction nodes.
    """
    watched = set(node_ids)
    eps = store.epsilon
    junctions: List[int] = []

    found = True
    while found:
        found = False
        geometry = list(store.iter_segment_geometry())
        for i, (seg_a, a1, a2) in enumerate(geometry):
            for seg_b, b1, b2 in geometry[i + 1:]:
                if not watched.intersection(seg_a + seg_b):
                    continue
                if set(seg_a).intersection(seg_b):
                    continue
                if orientation(a1, a2, eps) is orientation(b1, b2, eps):
                    continue
                points = segment_intersections(a1, a2, b1, b2, eps)
                if not points:
                    continue
                node_id = _join_at(store, [(seg_a, a1, a2), (seg_b, b1, b2)], points[0])
                if node_id is None:
                    continue
                log.debug("crossing of %s and %s joined at node %d",
                          seg_a.label, seg_b.label, node_id)
                junctions.append(node_id)
                watched.add(node_id)
                found = True
                break
            if found:
                break
    return junctions
