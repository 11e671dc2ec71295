# routing/pin_registry.py
import logging
from typing import Dict, Iterable, List, Optional

from core.cleanup import cleanup, CleanupReport
from core.node import NodeKind
from core.placement import Placement, PinPosition
from core.topology import TopologyStore
from routing.repair import reroute_node

log = logging.getLogger(__name__)


class PinRegistry:
    """
    Binds component pins to topology nodes and keeps those nodes on top of
    the pins when a placement moves or rotates.
    """

    def __init__(self, store: TopologyStore):
        self.store = store
        self._placements: Dict[str, Placement] = {}
        self._pin_nodes: Dict[str, Dict[str, int]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_placement(self, placement: Placement) -> Dict[str, int]:
        """Creates (or adopts) one Pin node per pin. Returns pin id -> node id."""
        self._placements[placement.id] = placement
        mapping = {}
        for pin in placement.pins:
            x, y = placement.pin_world_position(pin)
            mapping[pin.id] = self.store.bind_pin(x, y, placement.id, pin.id)
        self._pin_nodes[placement.id] = mapping
        log.debug("registered %s with %d pin(s)", placement.id, len(mapping))
        return dict(mapping)

    def unregister_placement(self, placement_id: str) -> bool:
        """Removes the placement's pin nodes together with their segments."""
        if placement_id not in self._placements:
            return False
        placement = self._placements.pop(placement_id)
        node_ids = [self.pin_node_id(placement_id, pin.id) for pin in placement.pins]
        self._pin_nodes.pop(placement_id, None)
        self._remove_pin_nodes(nid for nid in node_ids if nid is not None)
        cleanup(self.store)
        log.debug("unregistered %s", placement_id)
        return True

    def _remove_pin_nodes(self, node_ids: Iterable[int]) -> int:
        """
        Deletes pin nodes with their segments, then any wire node those
        segments leave without connections. Returns the number of pins removed.
        """
        store = self.store
        removed = 0
        loose = set()
        for node_id in node_ids:
            loose.update(store.connected_nodes(node_id))
            if store.remove_node(node_id):
                removed += 1
        for node_id in loose:
            node = store.get_node(node_id)
            if node is not None and not node.is_pin and store.connection_count(node_id) == 0:
                store.remove_node(node_id)
        return removed

    def is_registered(self, placement_id: str) -> bool:
        return placement_id in self._placements

    def placements(self) -> List[Placement]:
        return list(self._placements.values())

    # ------------------------------------------------------------------
    # Synchronisation
    # ------------------------------------------------------------------

    def on_placement_moved(self, placement_id: str) -> Optional[CleanupReport]:
        placement = self._placements.get(placement_id)
        if placement is None:
            return None
        return self.sync_placement(placement)

    def sync_placement(self, placement: Placement) -> CleanupReport:
        """
        Moves every pin node to its pin's world position, repairs the wires
        attached to it and runs one cleanup pass.
        """
        moved = []
        for pin in placement.pins:
            x, y = placement.pin_world_position(pin)
            node_id = self.pin_node_id(placement.id, pin.id)
            if node_id is None:
                node_id = self.store.bind_pin(x, y, placement.id, pin.id)
                self._pin_nodes.setdefault(placement.id, {})[pin.id] = node_id
            else:
                self.store.update_node(node_id, x, y)
            moved.append(node_id)

        repaired = sum(reroute_node(self.store, nid) for nid in moved)
        report = cleanup(self.store)
        log.debug("synced %s: %d segment(s) rerouted", placement.id, repaired)
        return report

    def resync_all(self) -> None:
        """
        Re-binds every pin after the store content was replaced wholesale.

        Pin nodes of placements that are no longer registered are removed
        with their wires.
        """
        known = {(placement.id, pin.id)
                 for placement in self._placements.values() for pin in placement.pins}
        stale = [node.id for node in self.store.nodes()
                 if node.is_pin and (node.component_id, node.pin_id) not in known]
        if stale:
            removed = self._remove_pin_nodes(stale)
            cleanup(self.store)
            log.debug("removed %d stale pin node(s)", removed)

        for placement in self._placements.values():
            self._pin_nodes[placement.id] = {}
            self.sync_placement(placement)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pin_node_id(self, placement_id: str, pin_id: str) -> Optional[int]:
        node_id = self._pin_nodes.get(placement_id, {}).get(pin_id)
        node = self.store.get_node(node_id)
        if node is not None and node.kind is NodeKind.PIN \
                and node.component_id == placement_id and node.pin_id == pin_id:
            return node_id

        # The store was restored from a snapshot; find the node by its flags
        node = self.store.find_pin_node(placement_id, pin_id)
        if node is None:
            return None
        self._pin_nodes.setdefault(placement_id, {})[pin_id] = node.id
        return node.id

    def pin_positions(self) -> List[PinPosition]:
        positions = []
        for placement in self._placements.values():
            positions.extend(placement.pin_positions())
        return positions
