"""
Routing package.

Interactive wire drawing and dragging, pin binding and the orthogonality
repair both of them share.
"""

from routing.engine import (
    RoutingEngine,
    RoutingMode,
    RoutingError,
    RoutingStateError
)

from routing.drag import DragSession, DragKind

from routing.pin_registry import PinRegistry

from routing.repair import (
    RepairLog,
    choose_bend_position,
    insert_bend,
    try_slide_junction,
    reroute_node,
    repair_diagonals,
    split_crossings
)

from routing.undo_commands import UndoStack, TopologyEditCommand

__all__ = [
    # Engine
    "RoutingEngine",
    "RoutingMode",
    "RoutingError",
    "RoutingStateError",
    "DragSession",
    "DragKind",
    # Pins
    "PinRegistry",
    # Repair
    "RepairLog",
    "choose_bend_position",
    "insert_bend",
    "try_slide_junction",
    "reroute_node",
    "repair_diagonals",
    "split_crossings",
    # Undo
    "UndoStack",
    "TopologyEditCommand"
]
