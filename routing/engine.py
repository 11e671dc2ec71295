# routing/engine.py
"""
Routing Engine - turns pointer input into wire graph edits.

The engine is a three-state machine:

* IDLE: a click starts a wire, a press-and-move on a wire node or segment
  starts a drag;
* DRAWING: every click extends the wire with an L-shaped route, landing on
  existing geometry connects and finishes;
* DRAGGING: the dragged node, segment or selected group follows the pointer
  and incident wires are kept orthogonal with temporary bends; on release
  new crossings get a junction node.

Every committed gesture runs the cleanup pass and pushes an undo command
holding full before/after snapshots.
"""

import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set, Tuple, Union, Dict, Any

from PySide6.QtCore import QObject, QPointF, Signal

from core.cleanup import cleanup
from core.config import EngineConfig
from core.endpoint import Endpoint, FreePoint, resolve_endpoint
from core.geometry import (
    Point,
    is_point_on_segment,
    l_path,
    l_path_bend,
    polyline_path,
    snap_point,
    snap_value,
)
from core.node import Node, NodeKind
from core.segment import SegmentId, segment_id
from core.topology import TopologyStore
from routing.drag import DragSession
from routing.repair import split_crossings
from routing.undo_commands import UndoStack, TopologyEditCommand

log = logging.getLogger(__name__)

PinLookup = Callable[[str, str], Optional[int]]


class RoutingError(Exception):
    """Base exception for routing engine errors."""
    pass


class RoutingStateError(RoutingError):
    """Raised when an operation is not allowed in the current mode."""

    def __init__(self, operation: str, mode: "RoutingMode"):
        self.operation = operation
        self.mode = mode
        super().__init__(f"Cannot {operation} while {mode.value}")


class RoutingMode(Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    DRAGGING = "dragging"


STATUS_READY = "Ready - Click to start drawing wire"
STATUS_DRAWING = "Drawing wire - Click to add points, double-click or Escape to finish"


class RoutingEngine(QObject):
    """Interactive wire drawing and dragging on top of a TopologyStore."""

    modeChanged = Signal(str)
    statusChanged = Signal(str)
    selectionChanged = Signal(int)

    def __init__(self, store: TopologyStore, config: Optional[EngineConfig] = None,
                 pin_lookup: Optional[PinLookup] = None,
                 undo_stack: Optional[UndoStack] = None, parent=None):
        super().__init__(parent)
        self.store = store
        self.config = config or store.config
        self.pin_lookup = pin_lookup
        self.undo_stack = undo_stack if undo_stack is not None else UndoStack(self.config.undo_limit)

        self._mode = RoutingMode.IDLE
        self.status = STATUS_READY

        # Drawing state
        self._draw_start: Optional[int] = None
        self._last_node: Optional[int] = None
        self._draw_before: Optional[Dict[str, Any]] = None

        # Pointer / drag state
        self._press_raw: Optional[Point] = None
        self._press_snapped: Optional[Point] = None
        self._press_moved = False
        self._drag: Optional[DragSession] = None

        self._selected: Set[SegmentId] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> RoutingMode:
        return self._mode

    @property
    def is_idle(self) -> bool:
        return self._mode is RoutingMode.IDLE

    @property
    def last_node(self) -> Optional[int]:
        """Node the wire being drawn currently ends at."""
        return self._last_node

    @property
    def drag_session(self) -> Optional[DragSession]:
        return self._drag

    def _set_mode(self, mode: RoutingMode) -> None:
        if mode is self._mode:
            return
        self._mode = mode
        log.debug("routing mode -> %s", mode.value)
        self.modeChanged.emit(mode.value)

    def _set_status(self, message: str) -> None:
        self.status = message
        self.statusChanged.emit(message)

    def _require(self, mode: RoutingMode, operation: str) -> None:
        if self._mode is not mode:
            raise RoutingStateError(operation, self._mode)

    def ensure_idle(self, operation: str) -> None:
        self._require(RoutingMode.IDLE, operation)

    def _snap(self, x: float, y: float) -> Point:
        grid = self.config.grid_size
        return (snap_value(x, grid), snap_value(y, grid))

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selection(self) -> List[SegmentId]:
        """Selected segments that still exist, sorted."""
        self._selected = {s for s in self._selected if self.store.get_segment(s) is not None}
        return sorted(self._selected)

    def select_segments(self, seg_ids: Iterable[SegmentId], add: bool = False) -> None:
        if not add:
            self._selected.clear()
        for node_a, node_b in seg_ids:
            seg_id = segment_id(node_a, node_b)
            if self.store.get_segment(seg_id) is not None:
                self._selected.add(seg_id)
        self.selectionChanged.emit(len(self._selected))

    def clear_selection(self) -> None:
        if self._selected:
            self._selected.clear()
            self.selectionChanged.emit(0)

    def _selection_hit(self, node: Optional[Node], seg_id: Optional[SegmentId]) -> bool:
        selected = self.selection
        if seg_id is not None:
            return seg_id in selected
        if node is not None:
            return any(node.id in s for s in selected)
        return False

    # ------------------------------------------------------------------
    # Hit testing
    # ------------------------------------------------------------------

    def pin_at(self, x: float, y: float) -> Optional[Node]:
        """Nearest pin node within the pin hit radius."""
        best = None
        best_dist = self.config.pin_hit_radius
        for node in self.store.nodes():
            if not node.is_pin:
                continue
            dist = ((node.x - x) ** 2 + (node.y - y) ** 2) ** 0.5
            if dist <= best_dist:
                best = node
                best_dist = dist
        return best

    def node_at(self, x: float, y: float) -> Optional[Node]:
        """Pins take priority over wire nodes."""
        pin = self.pin_at(x, y)
        if pin is not None:
            return pin
        return self.store.node_at(x, y, self.config.node_hit_tolerance)

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def pointer_down(self, pos: QPointF) -> None:
        self._press_raw = (pos.x(), pos.y())
        self._press_snapped = snap_point(pos, self.config.grid_size)
        self._press_moved = False

    def pointer_move(self, pos: QPointF) -> None:
        snapped = snap_point(pos, self.config.grid_size)

        if self._press_raw is not None and not self._press_moved and self._mode is not RoutingMode.DRAWING:
            dx = pos.x() - self._press_raw[0]
            dy = pos.y() - self._press_raw[1]
            if (dx * dx + dy * dy) ** 0.5 > self.config.drag_threshold:
                self._press_moved = True
                if self._mode is RoutingMode.IDLE:
                    self.begin_drag(*self._press_snapped)

        if self._mode is RoutingMode.DRAGGING:
            self.drag_to(*snapped)

    def pointer_up(self, pos: QPointF) -> None:
        snapped = snap_point(pos, self.config.grid_size)
        clicked = self._press_raw is not None and not self._press_moved

        if self._mode is RoutingMode.DRAGGING:
            self.end_drag()
        elif clicked:
            self.click(*snapped)

        self._press_raw = None
        self._press_snapped = None
        self._press_moved = False

    def double_click(self, pos: QPointF) -> None:
        if self._mode is RoutingMode.DRAWING:
            self.finish_drawing()

    def cancel(self) -> None:
        """Escape: finishes a wire being drawn, or reverts a drag."""
        if self._mode is RoutingMode.DRAWING:
            self.finish_drawing()
        elif self._mode is RoutingMode.DRAGGING:
            self.cancel_drag()
        self._press_raw = None
        self._press_snapped = None
        self._press_moved = False

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def click(self, x: float, y: float) -> None:
        x, y = self._snap(x, y)
        if self._mode is RoutingMode.IDLE:
            self._idle_click(x, y)
        elif self._mode is RoutingMode.DRAWING:
            self._drawing_click(x, y)

    def _idle_click(self, x: float, y: float) -> None:
        self._draw_before = self.store.serialize()

        hit = self.node_at(x, y)
        if hit is not None:
            self._start_drawing(hit.id)
            return

        seg_hit = self.store.segment_at(x, y, self.config.segment_hit_tolerance)
        if seg_hit is not None:
            new_id = self.store.split_segment(seg_hit[0].id, x, y)
            if new_id is not None:
                self._start_drawing(new_id)
            return

        self._start_drawing(self.store.add_node(x, y))

    def _start_drawing(self, node_id: int) -> None:
        self._draw_start = node_id
        self._last_node = node_id
        self._set_mode(RoutingMode.DRAWING)
        self._set_status(STATUS_DRAWING)

    def _drawing_click(self, x: float, y: float) -> None:
        last = self.store.get_node(self._last_node)
        if last is None:
            self.finish_drawing()
            return

        hit = self.node_at(x, y)
        if hit is not None and hit.id != last.id:
            self._place_wire_to((hit.x, hit.y), hit.id)
            self.finish_drawing()
            return

        seg_hit = self.store.segment_at(x, y, self.config.segment_hit_tolerance)
        if seg_hit is not None:
            new_id = self.store.split_segment(seg_hit[0].id, x, y)
            if new_id is not None and new_id != last.id:
                node = self.store.get_node(new_id)
                self._place_wire_to((node.x, node.y), new_id)
                self.finish_drawing()
                return

        self._place_wire_to((x, y))

    def _place_wire_to(self, target: Point, existing_id: Optional[int] = None) -> None:
        last = self.store.get_node(self._last_node)
        if last is None:
            return

        current = last.id
        bend = l_path_bend(last.pos, target, self.store.epsilon)
        if bend is not None:
            bend_id = self._node_for_point(bend, NodeKind.BEND)
            if bend_id != current:
                self.store.add_segment(current, bend_id)
                current = bend_id

        final_id = existing_id if existing_id is not None else self.store.add_node(*target)
        if final_id != current:
            self.store.add_segment(current, final_id)
        self._last_node = final_id

        report = cleanup(self.store)
        self._last_node = report.resolve(self._last_node)
        if self._draw_start is not None:
            self._draw_start = report.resolve(self._draw_start)

    def preview_path(self, x: float, y: float) -> List[Point]:
        """L-route the next click at (x, y) would add; empty when not drawing."""
        last = self.store.get_node(self._last_node)
        if self._mode is not RoutingMode.DRAWING or last is None:
            return []
        return l_path(last.pos, self._snap(x, y), self.store.epsilon)

    def finish_drawing(self) -> None:
        if self._mode is not RoutingMode.DRAWING:
            return

        start = self.store.get_node(self._draw_start)
        if start is not None and not start.is_pin and self.store.connection_count(start.id) == 0:
            self.store.remove_node(start.id)
        cleanup(self.store)

        self._commit(self._draw_before, "Draw wire")
        self._reset_drawing()

    def abort_drawing(self) -> bool:
        """Discards the wire being drawn, restoring the store exactly."""
        if self._mode is not RoutingMode.DRAWING:
            return False
        if self._draw_before is not None:
            self.store.restore(self._draw_before)
        self._reset_drawing()
        return True

    def _reset_drawing(self) -> None:
        self._draw_start = None
        self._last_node = None
        self._draw_before = None
        self._set_mode(RoutingMode.IDLE)
        self._set_status(STATUS_READY)

    # ------------------------------------------------------------------
    # Dragging
    # ------------------------------------------------------------------

    def begin_drag(self, x: float, y: float) -> bool:
        """
        Starts dragging the wire node or segment under (x, y).
        Pins are never dragged. Returns False when there is nothing to drag.
        """
        self._require(RoutingMode.IDLE, "begin a drag")

        if self.pin_at(x, y) is not None:
            return False

        anchor = (x, y)
        seg_id = None
        node = self.store.node_at(x, y, self.config.node_hit_tolerance)
        if node is None:
            seg_hit = self.store.segment_at(x, y, self.config.segment_hit_tolerance)
            if seg_hit is not None:
                seg_id = seg_hit[0].id

        if self._selection_hit(node, seg_id):
            session = DragSession.for_group(self.store, self.selection, anchor)
        elif node is not None:
            session = DragSession.for_node(self.store, node.id, anchor)
        elif seg_id is not None:
            session = DragSession.for_segment(self.store, seg_id, anchor)
        else:
            session = None

        if session is None:
            return False

        self._drag = session
        self._set_mode(RoutingMode.DRAGGING)
        self._set_status(f"Dragging {session.kind.name.lower()}...")
        return True

    def drag_to(self, x: float, y: float) -> None:
        self._require(RoutingMode.DRAGGING, "drag")
        self._drag.apply(self._snap(x, y))

    def end_drag(self) -> None:
        self._require(RoutingMode.DRAGGING, "end a drag")
        session = self._drag
        slid = session.slide_junctions()
        if slid:
            log.debug("drag commit slid %d junction(s)", slid)
        touched = session.moved | {n for n in session.repair_log.created_nodes
                                   if self.store.has_node(n)}
        split_crossings(self.store, touched)
        cleanup(self.store)

        self._commit(session.before, f"Move {session.kind.name.lower()}")
        self._drag = None
        self._set_mode(RoutingMode.IDLE)
        self._set_status(STATUS_READY)

    def cancel_drag(self) -> None:
        self._require(RoutingMode.DRAGGING, "cancel a drag")
        self._drag.restore()
        self._drag = None
        self._set_mode(RoutingMode.IDLE)
        self._set_status(STATUS_READY)

    # ------------------------------------------------------------------
    # Programmatic edits
    # ------------------------------------------------------------------

    def _node_for_point(self, pos: Point, kind: NodeKind = NodeKind.FREE) -> int:
        """
        Node at ``pos``: an existing node, a split of the segment running
        through it, or a new node of ``kind``.
        """
        existing = self.store.find_coincident_node(*pos)
        if existing is not None:
            return existing.id
        for seg, a, b in self.store.iter_segment_geometry():
            if is_point_on_segment(pos, a, b, self.store.epsilon):
                return self.store.split_segment(seg.id, pos[0], pos[1])
        return self.store.add_node(pos[0], pos[1], kind)

    def route_wire(self, start: Endpoint, end: Endpoint,
                   waypoints: Iterable[Union[Point, FreePoint]] = ()) -> Optional[Tuple[int, int]]:
        """
        Builds a committed wire from ``start`` to ``end`` through optional
        waypoints, chaining L-routes. Returns the (start, end) node ids, or
        None when an endpoint can't be resolved or the wire is degenerate.
        """
        self._require(RoutingMode.IDLE, "route a wire")

        start_res = resolve_endpoint(start, self.store, self.pin_lookup)
        end_res = resolve_endpoint(end, self.store, self.pin_lookup)
        if start_res is None or end_res is None:
            return None

        points = [start_res[0]]
        for wp in waypoints:
            points.append((wp.x, wp.y) if isinstance(wp, FreePoint) else (wp[0], wp[1]))
        points.append(end_res[0])

        path = polyline_path(points, self.store.epsilon)
        if len(path) < 2:
            return None

        before = self.store.serialize()
        ids = []
        for i, pos in enumerate(path):
            if i == 0 and start_res[1] is not None:
                ids.append(start_res[1])
            elif i == len(path) - 1 and end_res[1] is not None:
                ids.append(end_res[1])
            else:
                kind = NodeKind.FREE if i in (0, len(path) - 1) else NodeKind.BEND
                ids.append(self._node_for_point(pos, kind))

        for a, b in zip(ids, ids[1:]):
            self.store.add_segment(a, b)

        report = cleanup(self.store)
        self._commit(before, "Route wire")
        return report.resolve(ids[0]), report.resolve(ids[-1])

    def delete_at(self, x: float, y: float) -> bool:
        """
        Deletes the wire node (with its segments) or the segment under
        (x, y). Pins are never deleted. Returns True when something went.
        """
        self._require(RoutingMode.IDLE, "delete")
        before = self.store.serialize()

        node = self.store.node_at(x, y, self.config.node_hit_tolerance)
        if node is not None and not node.is_pin:
            self.store.remove_node(node.id)
        else:
            seg_hit = self.store.segment_at(x, y, self.config.segment_hit_tolerance)
            if seg_hit is None:
                return False
            self._remove_segments([seg_hit[0].id])

        cleanup(self.store)
        self._commit(before, "Delete wire")
        return True

    def delete_segments(self, seg_ids: Iterable[SegmentId]) -> int:
        """
        Deletes the given segments in one undoable edit. Wire nodes left
        without segments go too; unknown ids are ignored. Returns the number
        of segments deleted.
        """
        self._require(RoutingMode.IDLE, "delete")
        before = self.store.serialize()
        removed = self._remove_segments(seg_ids)
        if removed:
            cleanup(self.store)
            self._commit(before, "Delete wires")
        return removed

    def delete_selected(self) -> int:
        removed = self.delete_segments(self.selection)
        self.clear_selection()
        return removed

    def _remove_segments(self, seg_ids: Iterable[SegmentId]) -> int:
        removed = 0
        ends = set()
        for node_a, node_b in list(seg_ids):
            if self.store.remove_segment(node_a, node_b):
                removed += 1
                ends.update((node_a, node_b))
        for nid in ends:
            end = self.store.get_node(nid)
            if end is not None and not end.is_pin and self.store.connection_count(nid) == 0:
                self.store.remove_node(nid)
        return removed

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def _commit(self, before: Optional[Dict[str, Any]], text: str) -> None:
        if before is None:
            return
        after = self.store.serialize()
        if after == before:
            return
        self.undo_stack.push(TopologyEditCommand(self.store, before, after, text))
        log.debug("committed %r", text)

    def undo(self) -> bool:
        self._require(RoutingMode.IDLE, "undo")
        return self.undo_stack.undo()

    def redo(self) -> bool:
        self._require(RoutingMode.IDLE, "redo")
        return self.undo_stack.redo()
