# core/cleanup.py
"""
Cleanup Pass - normalises the topology after a structural edit.

Three rules run in order until none of them changes anything:

1. coincident nodes merge (pins survive, two pins never merge);
2. zero-length segments are dropped;
3. a non-pin node that just passes a straight wire through is collapsed.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Set

from core.geometry import PointTable, between
from core.node import Node
from core.topology import TopologyStore

log = logging.getLogger(__name__)

# Upper bound on outer passes; every pass strictly shrinks the graph, so this
# is only reached on corrupted input.
MAX_PASSES = 100


@dataclass
class CleanupReport:
    """What a cleanup run changed."""
    remap: Dict[int, int] = field(default_factory=dict)  # merged id -> surviving id
    collapsed: List[int] = field(default_factory=list)
    removed_segments: int = 0
    passes: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.remap or self.collapsed or self.removed_segments)

    def resolve(self, node_id: int) -> int:
        """Follows merges to the node that now stands for ``node_id``."""
        seen = set()
        while node_id in self.remap and node_id not in seen:
            seen.add(node_id)
            node_id = self.remap[node_id]
        return node_id


def cleanup(store: TopologyStore) -> CleanupReport:
    report = CleanupReport()
    for _ in range(MAX_PASSES):
        report.passes += 1
        changed = merge_coincident_nodes(store, report)
        changed = remove_zero_length_segments(store, report) or changed
        changed = collapse_collinear_nodes(store, report) or changed
        if not changed:
            break
    else:
        log.warning("cleanup did not reach a fixpoint after %d passes", MAX_PASSES)

    if report.changed:
        log.debug("cleanup: merged=%d collapsed=%d removed_segments=%d",
                  len(report.remap), len(report.collapsed), report.removed_segments)
    return report


def _pick_survivors(group: List[Node]) -> Dict[int, int]:
    """
    Returns loser -> survivor for one group of coincident nodes.

    All non-pin nodes fold into the lowest-id pin when there is one, otherwise
    into the lowest-id node. Pins are left alone.
    """
    group = sorted(group, key=lambda n: n.id)
    pins = [n for n in group if n.is_pin]
    survivor = pins[0] if pins else group[0]
    return {n.id: survivor.id for n in group if not n.is_pin and n.id != survivor.id}


def merge_coincident_nodes(store: TopologyStore, report: CleanupReport) -> bool:
    table = PointTable(store.epsilon)
    groups: Dict[tuple, List[Node]] = {}
    for node in store.nodes():
        groups.setdefault(table.key(node.x, node.y), []).append(node)

    changed = False
    for group in groups.values():
        if len(group) < 2:
            continue
        for loser_id, survivor_id in _pick_survivors(group).items():
            _merge_into(store, loser_id, survivor_id)
            report.remap[loser_id] = survivor_id
            changed = True
    return changed


def _merge_into(store: TopologyStore, loser_id: int, survivor_id: int) -> None:
    loser = store.get_node(loser_id)
    survivor = store.get_node(survivor_id)
    if loser is None or survivor is None:
        return

    survivor.promote(loser.kind, loser.component_id, loser.pin_id)
    for other in store.connected_nodes(loser_id):
        store.remove_segment(loser_id, other)
        if other != survivor_id:
            store.add_segment(survivor_id, other)
    store.remove_node(loser_id)


def remove_zero_length_segments(store: TopologyStore, report: CleanupReport) -> bool:
    eps = store.epsilon
    doomed = []
    for seg, a, b in store.iter_segment_geometry():
        if abs(a[0] - b[0]) < eps and abs(a[1] - b[1]) < eps:
            doomed.append(seg)

    for seg in doomed:
        store.remove_segment(seg.node_a, seg.node_b)
    report.removed_segments += len(doomed)
    return bool(doomed)


def collapse_node(store: TopologyStore, node_id: int) -> bool:
    """
    Replaces a straight pass-through node by one direct segment.

    The node must be a non-pin with exactly two neighbours on the same axis,
    one on each side of it.
    """
    node = store.get_node(node_id)
    if node is None or node.is_pin:
        return False

    neighbours = store.connected_nodes(node_id)
    if len(neighbours) != 2:
        return False
    a = store.get_node(neighbours[0])
    b = store.get_node(neighbours[1])
    if a is None or b is None:
        return False

    eps = store.epsilon
    vertical = abs(a.x - node.x) < eps and abs(b.x - node.x) < eps
    horizontal = abs(a.y - node.y) < eps and abs(b.y - node.y) < eps
    if vertical:
        if not between(node.y, a.y, b.y, eps):
            return False
    elif horizontal:
        if not between(node.x, a.x, b.x, eps):
            return False
    else:
        return False

    store.remove_node(node_id)
    store.add_segment(a.id, b.id)
    return True


def collapse_collinear_nodes(store: TopologyStore, report: CleanupReport) -> bool:
    queue = deque(n.id for n in store.nodes() if not n.is_pin)
    queued: Set[int] = set(queue)
    changed = False

    # Each collapse removes a node, so the queue drains in O(nodes) pops
    budget = 3 * len(queue) + 1
    while queue and budget > 0:
        budget -= 1
        node_id = queue.popleft()
        queued.discard(node_id)

        neighbours = store.connected_nodes(node_id)
        if not collapse_node(store, node_id):
            continue

        report.collapsed.append(node_id)
        changed = True
        for other in neighbours:
            if other not in queued and store.has_node(other):
                queue.append(other)
                queued.add(other)
    return changed
