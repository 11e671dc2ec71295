# routing/drag.py
from enum import Enum, auto
from typing import Dict, Iterable, List, Optional, Set, Any

from core.geometry import Point, Orientation, orientation, snap_value
from core.segment import SegmentId
from core.topology import TopologyStore
from routing.repair import RepairLog, repair_diagonals, slide_candidate


class DragKind(Enum):
    NODE = auto()
    SEGMENT = auto()
    GROUP = auto()


class DragSession:
    """
    State of one node, segment or selection drag.

    The session freezes the start positions of the dragged nodes and the
    segments incident to them. Every pointer move rolls the store back to
    that frozen state before re-applying the total offset, so repairs never
    pile up and a cancel is exact.
    """

    def __init__(self, store: TopologyStore, kind: DragKind, target: Any,
                 anchor: Point, node_ids: List[int], moved: Set[int]):
        self.store = store
        self.kind = kind
        self.target = target
        self.anchor = anchor
        self.moved = moved
        self.grid = store.config.grid_size

        self.start_positions: Dict[int, Point] = {}
        for nid in node_ids:
            node = store.get_node(nid)
            if node is not None:
                self.start_positions[nid] = node.pos

        self.original_segments: List[SegmentId] = []
        for nid in node_ids:
            for seg in store.segments_for_node(nid):
                if seg.id not in self.original_segments:
                    self.original_segments.append(seg.id)

        self.repair_log = RepairLog()
        self.before = store.serialize()

    @classmethod
    def for_node(cls, store: TopologyStore, node_id: int, anchor: Point) -> Optional["DragSession"]:
        node = store.get_node(node_id)
        if node is None or node.is_pin:
            return None
        return cls(store, DragKind.NODE, node_id, anchor, [node_id], {node_id})

    @classmethod
    def for_segment(cls, store: TopologyStore, seg_id: SegmentId,
                    anchor: Point) -> Optional["DragSession"]:
        seg = store.get_segment(seg_id)
        if seg is None:
            return None
        moved = set()
        for nid in (seg.node_a, seg.node_b):
            node = store.get_node(nid)
            if node is not None and not node.is_pin:
                moved.add(nid)
        if not moved:
            return None
        return cls(store, DragKind.SEGMENT, seg_id, anchor, [seg.node_a, seg.node_b], moved)

    @classmethod
    def for_group(cls, store: TopologyStore, seg_ids: Iterable[SegmentId],
                  anchor: Point) -> Optional["DragSession"]:
        """Translates every wire node of the selected segments; pins stay."""
        node_ids: List[int] = []
        moved = set()
        for seg_id in seg_ids:
            seg = store.get_segment(seg_id)
            if seg is None:
                continue
            for nid in seg:
                if nid in node_ids:
                    continue
                node_ids.append(nid)
                node = store.get_node(nid)
                if node is not None and not node.is_pin:
                    moved.add(nid)
        if not moved:
            return None
        return cls(store, DragKind.GROUP, sorted(moved), anchor, node_ids, moved)

    # ------------------------------------------------------------------

    def restore(self) -> None:
        """Rolls the store back to the state captured when the drag began."""
        store = self.store
        for seg_id in self.repair_log.created_segments:
            store.remove_segment(*seg_id)
        for nid in self.repair_log.created_nodes:
            store.remove_node(nid)
        self.repair_log.clear()

        for node_a, node_b in self.original_segments:
            if not store.has_segment(node_a, node_b):
                store.add_segment(node_a, node_b)

        for nid, (x, y) in self.start_positions.items():
            store.update_node(nid, x, y)

    def apply(self, pos: Point) -> None:
        """Moves the dragged geometry so it follows the pointer at ``pos``."""
        dx = pos[0] - self.anchor[0]
        dy = pos[1] - self.anchor[1]

        self.restore()
        if self.kind is DragKind.NODE:
            self._move_node(self.target, dx, dy)
        elif self.kind is DragKind.SEGMENT:
            self._move_segment(self.target, dx, dy)
        else:
            for nid in self.target:
                self._move_node(nid, dx, dy)
        repair_diagonals(self.store, self.moved, self.repair_log)

    def _move_node(self, node_id: int, dx: float, dy: float) -> None:
        start = self.start_positions.get(node_id)
        if start is None or node_id not in self.moved:
            return
        self.store.update_node(node_id,
                               snap_value(start[0] + dx, self.grid),
                               snap_value(start[1] + dy, self.grid))

    def _move_segment(self, seg_id: SegmentId, dx: float, dy: float) -> None:
        node_a, node_b = seg_id
        pos_a = self.start_positions.get(node_a)
        pos_b = self.start_positions.get(node_b)
        if pos_a is None or pos_b is None:
            return

        # Only the normal axis moves
        axis = orientation(pos_a, pos_b, self.store.epsilon)
        if axis is Orientation.HORIZONTAL:
            new_y = snap_value(pos_a[1] + dy, self.grid)
            targets = {node_a: (pos_a[0], new_y), node_b: (pos_b[0], new_y)}
        elif axis is Orientation.VERTICAL:
            new_x = snap_value(pos_a[0] + dx, self.grid)
            targets = {node_a: (new_x, pos_a[1]), node_b: (new_x, pos_b[1])}
        else:
            return

        for nid, (x, y) in targets.items():
            if nid in self.moved:
                self.store.update_node(nid, x, y)

    # ------------------------------------------------------------------

    def slide_junctions(self) -> int:
        """
        Straightens repair bends that sit next to a junction by sliding the
        junction onto the moved node's axis instead. Returns the slide count.
        """
        store = self.store
        slid = 0
        for bend_id in list(self.repair_log.bends):
            if bend_id not in self.repair_log.created_nodes or not store.has_node(bend_id):
                continue
            neighbours = store.connected_nodes(bend_id)
            if len(neighbours) != 2:
                continue

            movers = [n for n in neighbours if n in self.moved]
            statics = [n for n in neighbours if n not in self.moved]
            if len(movers) != 1 or len(statics) != 1:
                continue
            mover_id, junction_id = movers[0], statics[0]

            junction = store.get_node(junction_id)
            if junction is None or junction.is_pin:
                continue
            others = [n for n in store.connected_nodes(junction_id) if n != bend_id]
            if len(others) < 2:
                continue

            target = slide_candidate(store, junction_id, mover_id, others + [mover_id])
            if target is None:
                continue

            store.remove_node(bend_id)
            self.repair_log.created_nodes.discard(bend_id)
            store.add_segment(junction_id, mover_id)
            store.update_node(junction_id, target[0], target[1])
            slid += 1
        return slid
