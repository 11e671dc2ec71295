# tests/test_routing_engine.py
"""
Unit tests for the RoutingEngine state machine: drawing, dragging,
deleting and programmatic routing.
"""

import unittest

from PySide6.QtCore import QCoreApplication, QPointF

from core.endpoint import FreePoint, NodeRef
from core.geometry import is_diagonal
from core.node import NodeKind
from core.topology import TopologyStore
from routing.drag import DragKind
from routing.engine import RoutingEngine, RoutingMode, RoutingStateError
from routing.repair import split_crossings

app = None


def setUpModule():
    global app
    if not QCoreApplication.instance():
        app = QCoreApplication([])


def positions(store):
    return sorted((n.x, n.y) for n in store.nodes())


def assert_orthogonal(test, store):
    for seg, a, b in store.iter_segment_geometry():
        test.assertFalse(is_diagonal(a, b), f"segment {seg.label} is diagonal")


class TestDrawing(unittest.TestCase):
    """Tests for click-driven wire drawing."""

    def setUp(self):
        self.store = TopologyStore()
        self.engine = RoutingEngine(self.store)
        self.modes = []
        self.engine.modeChanged.connect(self.modes.append)

    def test_click_draws_l_route(self):
        """Test a second click adds a horizontal-first L-route."""
        self.engine.click(0, 0)
        self.assertIs(self.engine.mode, RoutingMode.DRAWING)

        self.engine.click(30, 10)
        self.engine.double_click(QPointF(30, 10))

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        self.assertEqual(positions(self.store), [(0, 0), (30, 0), (30, 10)])
        self.assertEqual(self.store.segment_count, 2)
        bend = self.store.node_at(30, 0, 1)
        self.assertIs(bend.kind, NodeKind.BEND)
        self.assertEqual(self.modes, ["drawing", "idle"])
        self.assertEqual(len(self.engine.undo_stack), 1)

    def test_vertical_first_route(self):
        self.engine.click(0, 0)
        self.engine.click(10, 30)
        self.engine.cancel()
        self.assertEqual(positions(self.store), [(0, 0), (0, 30), (10, 30)])

    def test_clicks_snap_to_grid(self):
        self.engine.click(2, 3)
        self.engine.click(38, 1)
        self.engine.cancel()
        self.assertEqual(positions(self.store), [(0, 0), (40, 0)])

    def test_orphan_start_node_is_removed(self):
        """Test finishing right after the first click leaves nothing behind."""
        self.engine.click(0, 0)
        self.engine.cancel()
        self.assertEqual(self.store.node_count, 0)
        self.assertEqual(len(self.engine.undo_stack), 0)

    def test_landing_on_node_connects_and_finishes(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(50, 0)
        self.store.add_segment(a, b)

        self.engine.click(0, 40)
        self.engine.click(50, 0)

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        self.assertEqual(self.store.connection_count(b), 2)
        self.assertIsNotNone(self.store.node_at(50, 40, 1))
        assert_orthogonal(self, self.store)

    def test_start_on_segment_splits_it(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(40, 0)
        self.store.add_segment(a, b)

        self.engine.click(20, 3)
        self.engine.click(20, 30)
        self.engine.cancel()

        tee = self.store.node_at(20, 0, 1)
        self.assertIsNotNone(tee)
        self.assertEqual(self.store.connection_count(tee.id), 3)
        self.assertEqual(self.store.segment_count, 3)

    def test_landing_on_segment_splits_and_finishes(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(0, 40)
        self.store.add_segment(a, b)

        self.engine.click(30, 20)
        self.engine.click(0, 20)

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        tee = self.store.node_at(0, 20, 1)
        self.assertEqual(self.store.connection_count(tee.id), 3)

    def test_straight_run_is_simplified(self):
        """Test intermediate clicks on a straight line leave no extra nodes."""
        self.engine.click(0, 0)
        self.engine.click(10, 0)
        self.engine.click(20, 0)
        self.engine.click(30, 0)
        self.engine.cancel()
        self.assertEqual(positions(self.store), [(0, 0), (30, 0)])

    def test_abort_drawing_restores_store_exactly(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(40, 0)
        self.store.add_segment(a, b)
        before = self.store.serialize()

        self.engine.click(20, 0)
        self.engine.click(20, 40)
        self.engine.click(60, 50)
        self.assertTrue(self.engine.abort_drawing())

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        self.assertEqual(self.store.serialize(), before)
        self.assertFalse(self.engine.abort_drawing())

    def test_preview_path(self):
        self.assertEqual(self.engine.preview_path(10, 10), [])
        self.engine.click(0, 0)
        self.assertEqual(self.engine.preview_path(30, 10), [(0, 0), (30, 0), (30, 10)])

    def test_pointer_press_release_is_a_click(self):
        """Test a release without travel behaves like a click."""
        self.engine.pointer_down(QPointF(0, 0))
        self.engine.pointer_up(QPointF(1, 1))
        self.assertIs(self.engine.mode, RoutingMode.DRAWING)

        self.engine.pointer_down(QPointF(40, 0))
        self.engine.pointer_move(QPointF(45, 0))
        self.engine.pointer_up(QPointF(40, 0))
        self.engine.cancel()
        self.assertEqual(positions(self.store), [(0, 0), (40, 0)])


class TestDragging(unittest.TestCase):
    """Tests for node and segment drags."""

    def setUp(self):
        self.store = TopologyStore()
        self.engine = RoutingEngine(self.store)

    def _press_and_move(self, start, end):
        self.engine.pointer_down(QPointF(*start))
        self.engine.pointer_move(QPointF(*end))

    def test_node_drag_inserts_bend(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(20, 0)
        self.store.add_segment(a, b)

        self._press_and_move((20, 0), (20, 30))
        self.assertIs(self.engine.mode, RoutingMode.DRAGGING)
        self.engine.pointer_up(QPointF(20, 30))

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        self.assertEqual(self.store.get_node(b).pos, (20, 30))
        bend = self.store.node_at(20, 0, 1)
        self.assertIs(bend.kind, NodeKind.BEND)
        assert_orthogonal(self, self.store)

    def test_repeated_moves_do_not_pile_up_bends(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(20, 0)
        self.store.add_segment(a, b)

        self._press_and_move((20, 0), (20, 30))
        for y in (40, 50, 60, 70):
            self.engine.pointer_move(QPointF(20, y))
        self.engine.pointer_up(QPointF(20, 70))

        self.assertEqual(self.store.node_count, 3)
        self.assertEqual(self.store.segment_count, 2)

    def test_cancel_drag_restores_store_exactly(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(20, 0)
        c = self.store.add_node(20, 40)
        self.store.add_segment(a, b)
        self.store.add_segment(b, c)
        before = self.store.serialize()

        self._press_and_move((20, 0), (30, 10))
        self.engine.pointer_move(QPointF(50, 20))
        self.engine.cancel()

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        self.assertEqual(self.store.serialize(), before)
        self.assertEqual(len(self.engine.undo_stack), 0)

    def test_segment_drag_moves_along_normal_only(self):
        """Test a vertical segment only moves sideways."""
        a = self.store.add_node(0, 0)
        b = self.store.add_node(20, 0)
        c = self.store.add_node(20, 20)
        d = self.store.add_node(40, 20)
        for pair in ((a, b), (b, c), (c, d)):
            self.store.add_segment(*pair)

        self._press_and_move((20, 10), (30, 17))
        self.engine.pointer_up(QPointF(30, 17))

        self.assertEqual(self.store.get_node(b).pos, (30, 0))
        self.assertEqual(self.store.get_node(c).pos, (30, 20))
        self.assertEqual(self.store.node_count, 4)
        assert_orthogonal(self, self.store)

    def test_junction_slides_on_commit(self):
        """Test a bend next to a junction is replaced by sliding the junction."""
        j = self.store.add_node(0, 0)
        up = self.store.add_node(0, -20)
        down = self.store.add_node(0, 20)
        m = self.store.add_node(20, 0)
        for other in (up, down, m):
            self.store.add_segment(j, other)

        self.assertTrue(self.engine.begin_drag(20, 0))
        self.engine.drag_to(20, 10)
        self.assertEqual(self.store.node_count, 5)
        self.engine.end_drag()

        self.assertEqual(self.store.get_node(j).pos, (0, 10))
        self.assertTrue(self.store.has_segment(j, m))
        self.assertEqual(self.store.node_count, 4)
        assert_orthogonal(self, self.store)

    def test_drag_across_wire_adds_junction(self):
        """Test a wire dragged across another one is joined to it on release."""
        a = self.store.add_node(0, 0)
        b = self.store.add_node(100, 0)
        c = self.store.add_node(50, 20)
        d = self.store.add_node(50, 60)
        self.store.add_segment(a, b)
        self.store.add_segment(c, d)

        self.assertTrue(self.engine.begin_drag(50, 20))
        self.engine.drag_to(50, -20)
        self.assertIsNone(self.store.node_at(50, 0, 1))
        self.engine.end_drag()

        junction = self.store.node_at(50, 0, 1)
        self.assertIsNotNone(junction)
        self.assertEqual(self.store.connection_count(junction.id), 4)
        self.assertEqual(self.store.segment_count, 4)
        self.assertEqual(len(self.engine.undo_stack), 1)

    def test_drag_end_onto_wire_makes_tee(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(100, 0)
        c = self.store.add_node(50, 20)
        d = self.store.add_node(50, 60)
        self.store.add_segment(a, b)
        self.store.add_segment(c, d)

        self.engine.begin_drag(50, 20)
        self.engine.drag_to(50, 0)
        self.engine.end_drag()

        self.assertEqual(self.store.connection_count(c), 3)
        self.assertTrue(self.store.has_segment(a, c))
        self.assertTrue(self.store.has_segment(c, b))
        self.assertFalse(self.store.has_segment(a, b))

    def test_pins_are_not_draggable(self):
        pin = self.store.bind_pin(0, 0, "R1", "1")
        end = self.store.add_node(40, 0)
        self.store.add_segment(pin, end)

        self.assertFalse(self.engine.begin_drag(0, 0))
        self._press_and_move((0, 0), (0, 30))
        self.engine.pointer_up(QPointF(0, 30))

        self.assertIs(self.engine.mode, RoutingMode.IDLE)
        self.assertEqual(self.store.get_node(pin).pos, (0, 0))

    def test_drag_commit_is_undoable(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(20, 0)
        self.store.add_segment(a, b)
        before = self.store.serialize()

        self.engine.begin_drag(20, 0)
        self.engine.drag_to(20, 30)
        self.engine.end_drag()
        after = self.store.serialize()

        self.assertTrue(self.engine.undo())
        self.assertEqual(self.store.serialize(), before)
        self.assertTrue(self.engine.redo())
        self.assertEqual(self.store.serialize(), after)

    def test_state_errors(self):
        with self.assertRaises(RoutingStateError):
            self.engine.drag_to(10, 10)
        with self.assertRaises(RoutingStateError):
            self.engine.end_drag()

        self.engine.click(0, 0)
        with self.assertRaises(RoutingStateError):
            self.engine.begin_drag(0, 0)
        with self.assertRaises(RoutingStateError):
            self.engine.undo()


class TestSelection(unittest.TestCase):
    """Tests for moving and deleting several segments at once."""

    def setUp(self):
        self.store = TopologyStore()
        self.engine = RoutingEngine(self.store)
        self.a = self.store.add_node(0, 0)
        self.b = self.store.add_node(40, 0)
        self.c = self.store.add_node(0, 20)
        self.d = self.store.add_node(40, 20)
        self.e = self.store.add_node(80, 0)
        self.store.add_segment(self.a, self.b)
        self.store.add_segment(self.c, self.d)
        self.store.add_segment(self.b, self.e)

    def test_select_ignores_unknown_segments(self):
        counts = []
        self.engine.selectionChanged.connect(counts.append)

        self.engine.select_segments([(self.b, self.a), (self.a, self.d)])

        self.assertEqual(self.engine.selection, [(self.a, self.b)])
        self.assertEqual(counts, [1])

    def test_group_drag_moves_whole_selection(self):
        """Test dragging a selected segment carries the rest of the selection."""
        self.engine.select_segments([(self.a, self.b), (self.c, self.d)])

        self.assertTrue(self.engine.begin_drag(20, 0))
        self.engine.drag_to(20, 10)
        self.engine.end_drag()

        self.assertEqual(self.store.get_node(self.a).pos, (0, 10))
        self.assertEqual(self.store.get_node(self.b).pos, (40, 10))
        self.assertEqual(self.store.get_node(self.c).pos, (0, 30))
        self.assertEqual(self.store.get_node(self.d).pos, (40, 30))
        bend = self.store.node_at(40, 0, 1)
        self.assertTrue(self.store.has_segment(self.b, bend.id))
        self.assertTrue(self.store.has_segment(bend.id, self.e))
        assert_orthogonal(self, self.store)

    def test_group_drag_from_selected_node(self):
        self.engine.select_segments([(self.a, self.b), (self.c, self.d)])

        self.assertTrue(self.engine.begin_drag(0, 20))
        self.assertIs(self.engine.drag_session.kind, DragKind.GROUP)
        self.engine.drag_to(20, 20)
        self.engine.end_drag()

        self.assertEqual(self.store.get_node(self.a).pos, (20, 0))
        self.assertEqual(self.store.get_node(self.d).pos, (60, 20))

    def test_unselected_segment_drags_alone(self):
        self.engine.select_segments([(self.c, self.d)])

        self.engine.begin_drag(20, 0)

        self.assertIs(self.engine.drag_session.kind, DragKind.SEGMENT)
        self.engine.cancel_drag()

    def test_group_drag_cancel_restores_store(self):
        before = self.store.serialize()
        self.engine.select_segments([(self.a, self.b), (self.c, self.d)])

        self.engine.begin_drag(20, 0)
        self.engine.drag_to(30, 50)
        self.engine.cancel_drag()

        self.assertEqual(self.store.serialize(), before)

    def test_delete_selected(self):
        self.engine.select_segments([(self.a, self.b), (self.c, self.d)])

        self.assertEqual(self.engine.delete_selected(), 2)

        self.assertEqual(self.engine.selection, [])
        self.assertEqual(self.store.segment_count, 1)
        self.assertFalse(self.store.has_node(self.a))
        self.assertFalse(self.store.has_node(self.c))
        self.assertTrue(self.store.has_node(self.b))
        self.assertEqual(len(self.engine.undo_stack), 1)

        self.assertTrue(self.engine.undo())
        self.assertEqual(self.store.segment_count, 3)

    def test_delete_segments_keeps_pins(self):
        pin = self.store.bind_pin(0, 50, "R1", "1")
        end = self.store.add_node(40, 50)
        self.store.add_segment(pin, end)

        self.assertEqual(self.engine.delete_segments([(pin, end), (98, 99)]), 1)

        self.assertTrue(self.store.has_node(pin))
        self.assertFalse(self.store.has_node(end))

    def test_delete_with_empty_selection(self):
        self.assertEqual(self.engine.delete_selected(), 0)
        self.assertEqual(len(self.engine.undo_stack), 0)


class TestSplitCrossings(unittest.TestCase):
    """Tests for joining crossing wires at a node."""

    def test_only_crossings_of_given_nodes_are_split(self):
        store = TopologyStore()
        a, b = store.add_node(0, 0), store.add_node(100, 0)
        c, d = store.add_node(50, -20), store.add_node(50, 20)
        e, f = store.add_node(0, 50), store.add_node(100, 50)
        g, h = store.add_node(20, 30), store.add_node(20, 70)
        for pair in ((a, b), (c, d), (e, f), (g, h)):
            store.add_segment(*pair)

        junctions = split_crossings(store, [c])

        self.assertEqual(len(junctions), 1)
        self.assertEqual(store.get_node(junctions[0]).pos, (50, 0))
        self.assertTrue(store.has_segment(e, f))
        self.assertTrue(store.has_segment(g, h))

    def test_parallel_overlap_is_left_alone(self):
        store = TopologyStore()
        a, b = store.add_node(0, 0), store.add_node(40, 0)
        c, d = store.add_node(20, 0), store.add_node(60, 0)
        store.add_segment(a, b)
        store.add_segment(c, d)

        self.assertEqual(split_crossings(store, [a, b, c, d]), [])
        self.assertEqual(store.segment_count, 2)


class TestProgrammaticEdits(unittest.TestCase):
    """Tests for route_wire and delete_at."""

    def setUp(self):
        self.store = TopologyStore()
        self.engine = RoutingEngine(self.store)

    def test_route_between_free_points(self):
        ends = self.engine.route_wire(FreePoint(0, 0), FreePoint(30, 10))
        self.assertIsNotNone(ends)
        self.assertEqual(positions(self.store), [(0, 0), (30, 0), (30, 10)])
        self.assertEqual(self.store.get_node(ends[0]).pos, (0, 0))
        self.assertEqual(self.store.get_node(ends[1]).pos, (30, 10))

    def test_route_through_waypoints(self):
        self.engine.route_wire(FreePoint(0, 0), FreePoint(40, 40), waypoints=[(0, 20)])
        self.assertEqual(positions(self.store), [(0, 0), (0, 20), (40, 20), (40, 40)])
        assert_orthogonal(self, self.store)

    def test_route_from_node_ref_onto_segment(self):
        """Test a free end landing on a segment body splits it into a tee."""
        a = self.store.add_node(0, 0)
        b = self.store.add_node(0, 40)
        self.store.add_segment(a, b)
        start = self.store.add_node(30, 20)

        self.engine.route_wire(NodeRef(start), FreePoint(0, 20))

        tee = self.store.node_at(0, 20, 1)
        self.assertEqual(self.store.connection_count(tee.id), 3)

    def test_route_with_unknown_endpoint(self):
        self.assertIsNone(self.engine.route_wire(NodeRef(42), FreePoint(0, 0)))
        self.assertEqual(self.store.node_count, 0)

    def test_delete_segment_is_local(self):
        """Test deleting one wire leaves unrelated wires untouched."""
        a = self.store.add_node(0, 0)
        b = self.store.add_node(40, 0)
        c = self.store.add_node(0, 50)
        d = self.store.add_node(40, 50)
        self.store.add_segment(a, b)
        self.store.add_segment(c, d)

        self.assertTrue(self.engine.delete_at(20, 0))

        self.assertEqual(self.store.segment_count, 1)
        self.assertTrue(self.store.has_segment(c, d))
        self.assertEqual(self.store.get_node(c).pos, (0, 50))
        self.assertEqual(self.store.get_node(d).pos, (40, 50))
        self.assertFalse(self.store.has_node(a))

    def test_delete_node_removes_incident_segments(self):
        a = self.store.add_node(0, 0)
        b = self.store.add_node(40, 0)
        c = self.store.add_node(40, 40)
        self.store.add_segment(a, b)
        self.store.add_segment(b, c)

        self.assertTrue(self.engine.delete_at(40, 0))
        self.assertEqual(self.store.segment_count, 0)
        self.assertFalse(self.store.has_node(b))

    def test_delete_nothing(self):
        self.assertFalse(self.engine.delete_at(100, 100))

    def test_undo_route(self):
        self.engine.route_wire(FreePoint(0, 0), FreePoint(50, 0))
        self.assertTrue(self.engine.undo())
        self.assertEqual(self.store.node_count, 0)
        self.assertTrue(self.engine.redo())
        self.assertEqual(self.store.segment_count, 1)


if __name__ == "__main__":
    unittest.main()
