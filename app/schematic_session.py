# app/schematic_session.py
import json
import logging
from typing import List, Optional, Tuple, Dict, Any

from PySide6.QtCore import QObject

from core.config import EngineConfig
from core.net import ConnectivityResult, Junction
from core.node import Node
from core.placement import Placement, PlacementBoard, PlacementError
from core.segment import Segment, SegmentId
from core.topology import TopologyStore, SnapshotFormatError
from connectivity.net_extractor import NetExtractor
from routing.engine import RoutingEngine, RoutingMode
from routing.pin_registry import PinRegistry
from routing.undo_commands import UndoStack

log = logging.getLogger(__name__)


class SchematicSession(QObject):
    """
    Owns one wire graph and everything that reads or writes it.

    The routing engine and the pin registry are the only writers. Placement
    notifications that arrive while a wire is being drawn or dragged are
    queued and replayed once the engine is idle again, so the two writers
    never interleave. Net extraction is cached until the store or a pin
    position changes.
    """

    def __init__(self, board: Optional[PlacementBoard] = None,
                 config: Optional[EngineConfig] = None, parent=None):
        super().__init__(parent)
        self.config = config or EngineConfig()
        self.store = TopologyStore(self.config)
        self.registry = PinRegistry(self.store)
        self.undo_stack = UndoStack(self.config.undo_limit)
        self.engine = RoutingEngine(self.store, self.config,
                                    pin_lookup=self.registry.pin_node_id,
                                    undo_stack=self.undo_stack, parent=self)
        self.extractor = NetExtractor(self.config)

        self._cached: Optional[ConnectivityResult] = None
        self._pins_dirty = True
        self._pending: List[Tuple[str, str]] = []

        self.board = board if board is not None else PlacementBoard(self)
        for placement in self.board.list_placements():
            self.registry.register_placement(placement)

        self.board.placementMoved.connect(self._on_placement_moved)
        self.board.placementAdded.connect(self._on_placement_added)
        self.board.placementRemoved.connect(self._on_placement_removed)
        self.engine.modeChanged.connect(self._on_mode_changed)

    # ------------------------------------------------------------------
    # Placement notifications
    # ------------------------------------------------------------------

    def _on_placement_moved(self, placement_id: str) -> None:
        self._dispatch("moved", placement_id)

    def _on_placement_added(self, placement_id: str) -> None:
        self._dispatch("added", placement_id)

    def _on_placement_removed(self, placement_id: str) -> None:
        self._dispatch("removed", placement_id)

    def _dispatch(self, event: str, placement_id: str) -> None:
        if not self.engine.is_idle:
            if not self._pending or self._pending[-1] != (event, placement_id):
                self._pending.append((event, placement_id))
            log.debug("deferred %s of %s while %s", event, placement_id, self.engine.mode.value)
            return
        self._apply(event, placement_id)

    def _apply(self, event: str, placement_id: str) -> None:
        if event == "moved":
            self.registry.on_placement_moved(placement_id)
        elif event == "added":
            placement = self.board.get(placement_id)
            if placement is not None:
                self.registry.register_placement(placement)
        elif event == "removed":
            self.registry.unregister_placement(placement_id)
        self._pins_dirty = True

    def _on_mode_changed(self, mode: str) -> None:
        if mode == RoutingMode.IDLE.value:
            self.flush_pending()

    def flush_pending(self) -> int:
        """Replays queued placement notifications. Returns how many ran."""
        pending, self._pending = self._pending, []
        for event, placement_id in pending:
            self._apply(event, placement_id)
        return len(pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def extract_nets(self) -> ConnectivityResult:
        if self._cached is not None and not self.store.dirty and not self._pins_dirty:
            return self._cached

        result = self.extractor.extract(self.store, self.registry.pin_positions())
        self.store.mark_clean()
        self._pins_dirty = False
        self._cached = result
        return result

    @property
    def junctions(self) -> List[Junction]:
        return self.extract_nets().junctions

    # ------------------------------------------------------------------
    # Read-only view for the renderer
    # ------------------------------------------------------------------

    def nodes(self) -> List[Node]:
        return self.store.nodes()

    def segments(self) -> List[Segment]:
        return self.store.segments()

    def hit_test_node(self, x: float, y: float, tolerance: Optional[float] = None) -> Optional[int]:
        return self.store.hit_test_node(x, y, tolerance)

    def hit_test_segment(self, x: float, y: float,
                         tolerance: Optional[float] = None) -> Optional[SegmentId]:
        return self.store.hit_test_segment(x, y, tolerance)

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        if not self.engine.undo():
            return False
        self.registry.resync_all()
        return True

    def redo(self) -> bool:
        if not self.engine.redo():
            return False
        self.registry.resync_all()
        return True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "placements": [p.to_dict() for p in self.board.list_placements()],
            "topology": self.store.serialize(),
        }

    def save_json(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def load_dict(self, data: Dict[str, Any]) -> None:
        """
        Replaces placements and wires with a saved schematic.

        The data is fully checked before anything changes, so a failed load
        leaves the session as it was.
        """
        self.engine.ensure_idle("load a schematic")
        if not isinstance(data, dict) or "topology" not in data:
            raise SnapshotFormatError("Schematic data must contain a 'topology' entry")

        TopologyStore.deserialize(data["topology"], self.config)
        try:
            placements = [Placement.from_dict(p) for p in data.get("placements", [])]
        except (KeyError, TypeError, AttributeError, PlacementError) as e:
            raise SnapshotFormatError(f"Invalid placement entry: {e}") from e
        ids = [p.id for p in placements]
        if len(set(ids)) != len(ids):
            raise SnapshotFormatError("Schematic data has duplicate placement ids")

        for placement in self.board.list_placements():
            self.board.remove(placement.id)
        self.store.restore(data["topology"])
        for placement in placements:
            self.board.add(placement)

        self.undo_stack.clear()
        self._pins_dirty = True

    def load_json(self, path: str) -> None:
        with open(path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise SnapshotFormatError(f"Invalid schematic file {path}: {e}") from e
        self.load_dict(data)
