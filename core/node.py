# core/node.py
from enum import Enum, auto
from typing import Optional, Dict, Any


class NodeKind(Enum):
    """Role of a topology node."""
    FREE = auto()
    BEND = auto()
    PIN = auto()

    @property
    def rank(self) -> int:
        # Merging keeps the stronger kind: a pin is never demoted
        return {NodeKind.FREE: 0, NodeKind.BEND: 1, NodeKind.PIN: 2}[self]


class Node:
    """
    A point of the wire graph.

    Pin nodes carry the (component_id, pin_id) they are slaved to; their
    position is owned by the placement, never by the user.
    """

    __slots__ = ("id", "x", "y", "kind", "component_id", "pin_id")

    def __init__(self, node_id: int, x: float, y: float, kind: NodeKind = NodeKind.FREE,
                 component_id: Optional[str] = None, pin_id: Optional[str] = None):
        self.id = node_id
        self.x = x
        self.y = y
        self.kind = kind
        self.component_id = component_id
        self.pin_id = pin_id

    @property
    def is_pin(self) -> bool:
        return self.kind is NodeKind.PIN

    @property
    def pos(self):
        return (self.x, self.y)

    def promote(self, kind: NodeKind, component_id: Optional[str] = None,
                pin_id: Optional[str] = None) -> None:
        """Raises the node kind; lower kinds are ignored."""
        if kind.rank <= self.kind.rank:
            return
        self.kind = kind
        if kind is NodeKind.PIN:
            self.component_id = component_id
            self.pin_id = pin_id

    def flags(self) -> Dict[str, Any]:
        flags: Dict[str, Any] = {"kind": self.kind.name.lower()}
        if self.is_pin:
            flags["component_id"] = self.component_id
            flags["pin_id"] = self.pin_id
        return flags

    def __repr__(self) -> str:
        return f"Node({self.id}, {self.x}, {self.y}, {self.kind.name})"
