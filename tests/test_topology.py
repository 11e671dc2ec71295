# tests/test_topology.py
"""
Unit tests for the TopologyStore.
"""

import json
import os
import tempfile
import unittest

from core.node import NodeKind
from core.topology import TopologyStore, SnapshotFormatError


class TestNodes(unittest.TestCase):
    """Tests for node primitives."""

    def setUp(self):
        self.store = TopologyStore()

    def test_add_node_reuses_coincident_node(self):
        """Test adding a node on top of another returns the existing id."""
        first = self.store.add_node(10, 20)
        second = self.store.add_node(10.0004, 20)
        self.assertEqual(first, second)
        self.assertEqual(self.store.node_count, 1)

    def test_add_node_promotes_kind(self):
        """Test a stronger kind promotes an existing node, a weaker one doesn't demote."""
        node_id = self.store.add_node(0, 0)
        self.store.add_node(0, 0, NodeKind.BEND)
        self.assertIs(self.store.get_node(node_id).kind, NodeKind.BEND)
        self.store.add_node(0, 0, NodeKind.FREE)
        self.assertIs(self.store.get_node(node_id).kind, NodeKind.BEND)

    def test_update_unknown_node_is_noop(self):
        self.assertFalse(self.store.update_node(99, 1, 1))

    def test_remove_node_cascades_to_segments_only(self):
        """Test removing a node removes its segments and nothing else."""
        a = self.store.add_node(0, 0)
        b = self.store.add_node(10, 0)
        c = self.store.add_node(10, 10)
        d = self.store.add_node(50, 50)
        self.store.add_segment(a, b)
        self.store.add_segment(b, c)

        self.assertTrue(self.store.remove_node(b))
        self.assertEqual(self.store.segment_count, 0)
        self.assertEqual(sorted(self.store.node_ids()), sorted([a, c, d]))
        self.assertFalse(self.store.remove_node(b))

    def test_bind_pin_never_shares_a_pin_node(self):
        """Test two pins at the same point get their own nodes."""
        first = self.store.bind_pin(0, 0, "R1", "1")
        second = self.store.bind_pin(0, 0, "R2", "1")
        self.assertNotEqual(first, second)
        self.assertEqual(self.store.bind_pin(0, 0, "R1", "1"), first)

    def test_bind_pin_adopts_wire_node(self):
        """Test a pin placed on a wire node takes that node over."""
        wire = self.store.add_node(30, 30)
        pin = self.store.bind_pin(30, 30, "R1", "2")
        self.assertEqual(wire, pin)
        node = self.store.get_node(pin)
        self.assertTrue(node.is_pin)
        self.assertEqual((node.component_id, node.pin_id), ("R1", "2"))


class TestSegments(unittest.TestCase):
    """Tests for segment primitives and queries."""

    def setUp(self):
        self.store = TopologyStore()
        self.a = self.store.add_node(0, 0)
        self.b = self.store.add_node(40, 0)
        self.c = self.store.add_node(40, 30)

    def test_add_segment_sentinels(self):
        """Test self loops, unknown nodes and duplicates are silent no-ops."""
        self.assertEqual(self.store.add_segment(self.a, self.b), (self.a, self.b))
        self.assertIsNone(self.store.add_segment(self.a, self.a))
        self.assertIsNone(self.store.add_segment(self.a, 99))
        self.assertIsNone(self.store.add_segment(self.b, self.a))
        self.assertEqual(self.store.segment_count, 1)

    def test_segment_id_is_order_independent(self):
        self.store.add_segment(self.b, self.a)
        self.assertTrue(self.store.has_segment(self.a, self.b))
        self.assertTrue(self.store.remove_segment(self.a, self.b))
        self.assertFalse(self.store.remove_segment(self.a, self.b))

    def test_adjacency_queries(self):
        self.store.add_segment(self.a, self.b)
        self.store.add_segment(self.b, self.c)
        self.assertEqual(sorted(self.store.connected_nodes(self.b)), sorted([self.a, self.c]))
        self.assertEqual(self.store.connection_count(self.b), 2)
        self.assertEqual(len(self.store.segments_for_node(self.a)), 1)

    def test_nearest_node_within_tolerance(self):
        self.assertEqual(self.store.node_at(38, 2, tolerance=5).id, self.b)
        self.assertIsNone(self.store.node_at(20, 20, tolerance=5))
        self.assertEqual(self.store.hit_test_node(41, 29), self.c)

    def test_nearest_segment_within_tolerance(self):
        self.store.add_segment(self.a, self.b)
        hit = self.store.segment_at(20, 3, tolerance=5)
        self.assertIsNotNone(hit)
        self.assertEqual(hit[0].id, (self.a, self.b))
        self.assertEqual(hit[1], 3)
        self.assertIsNone(self.store.hit_test_segment(20, 10))

    def test_split_segment_snaps_to_axis(self):
        """Test the split point is projected onto the segment line."""
        self.store.add_segment(self.a, self.b)
        mid = self.store.split_segment((self.a, self.b), 20, 4)
        node = self.store.get_node(mid)
        self.assertEqual((node.x, node.y), (20, 0))
        self.assertFalse(self.store.has_segment(self.a, self.b))
        self.assertTrue(self.store.has_segment(self.a, mid))
        self.assertTrue(self.store.has_segment(mid, self.b))

    def test_split_unknown_segment(self):
        self.assertIsNone(self.store.split_segment((self.a, self.c), 10, 10))


class TestDirtyFlag(unittest.TestCase):
    """Tests for the dirty flag and version counter."""

    def test_mutations_set_dirty(self):
        store = TopologyStore()
        self.assertFalse(store.dirty)
        a = store.add_node(0, 0)
        self.assertTrue(store.dirty)
        store.mark_clean()
        version = store.version

        store.add_node(0, 0)  # Existing node, nothing changes
        self.assertFalse(store.dirty)
        self.assertIsNone(store.add_segment(a, a))
        self.assertFalse(store.dirty)

        store.update_node(a, 10, 0)
        self.assertTrue(store.dirty)
        self.assertGreater(store.version, version)


class TestSnapshots(unittest.TestCase):
    """Tests for serialize / deserialize."""

    def setUp(self):
        self.store = TopologyStore()
        pin = self.store.bind_pin(0, 0, "R1", "1")
        bend = self.store.add_node(30, 0, NodeKind.BEND)
        end = self.store.add_node(30, 20)
        self.store.add_segment(pin, bend)
        self.store.add_segment(bend, end)

    def test_snapshot_format(self):
        data = self.store.serialize()
        self.assertEqual(len(data["nodes"]), 3)
        self.assertEqual(data["nodes"][0]["flags"],
                         {"kind": "pin", "component_id": "R1", "pin_id": "1"})
        self.assertEqual(data["segments"][0], {"id": "1-2", "nodeA": 1, "nodeB": 2})

    def test_round_trip_is_isomorphic(self):
        """Test deserialize(serialize(T)) reproduces T exactly."""
        data = self.store.serialize()
        copy = TopologyStore.deserialize(json.loads(json.dumps(data)))
        self.assertEqual(copy.serialize(), data)
        self.assertEqual(copy.get_node(2).kind, NodeKind.BEND)

    def test_restored_store_keeps_allocating_fresh_ids(self):
        copy = TopologyStore.deserialize(self.store.serialize())
        new_id = copy.add_node(100, 100)
        self.assertNotIn(new_id, [1, 2, 3])

    def test_malformed_snapshots_raise(self):
        with self.assertRaises(SnapshotFormatError):
            TopologyStore.deserialize([])
        with self.assertRaises(SnapshotFormatError):
            TopologyStore.deserialize({"nodes": [{"id": 1, "x": "a", "y": 0}], "segments": []})
        with self.assertRaises(SnapshotFormatError):
            TopologyStore.deserialize({"nodes": [{"id": 1, "x": 0, "y": 0, "flags": {"kind": "blob"}}]})
        with self.assertRaises(SnapshotFormatError):
            TopologyStore.deserialize({"nodes": [], "segments": [{"nodeA": 1}]})

    def test_segments_to_missing_nodes_are_dropped(self):
        data = {"nodes": [{"id": 1, "x": 0, "y": 0}], "segments": [{"nodeA": 1, "nodeB": 2}]}
        store = TopologyStore.deserialize(data)
        self.assertEqual(store.segment_count, 0)

    def test_json_file_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "wires.json")
            self.store.save_json(path)
            loaded = TopologyStore.load_json(path)
        self.assertEqual(loaded.serialize(), self.store.serialize())

    def test_invalid_json_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "broken.json")
            with open(path, "w") as f:
                f.write("{not json")
            with self.assertRaises(SnapshotFormatError):
                TopologyStore.load_json(path)


if __name__ == "__main__":
    unittest.main()
