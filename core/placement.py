# core/placement.py
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Tuple

from PySide6.QtCore import QObject, Signal


class PlacementError(Exception):
    """Raised for invalid placement data."""
    pass


VALID_ROTATIONS = (0, 90, 180, 270)


def rotate_offset(rel_x: float, rel_y: float, rotation: int) -> Tuple[float, float]:
    """
    Rotates a pin offset about the placement origin.

    Only quarter turns exist, so this is an exact integer mapping (screen
    coordinates, y pointing down, clockwise rotation).
    """
    rotation %= 360
    if rotation == 0:
        return rel_x, rel_y
    if rotation == 90:
        return -rel_y, rel_x
    if rotation == 180:
        return -rel_x, -rel_y
    if rotation == 270:
        return rel_y, -rel_x
    raise PlacementError(f"Unsupported rotation: {rotation}")


class PlacementPin:
    """
    A connection point on a placed component, at an offset from its origin.
    """

    def __init__(self, pin_id: str, rel_x: float = 0, rel_y: float = 0, name: Optional[str] = None):
        self.id: str = pin_id
        self.name: str = name or pin_id
        self.rel_x = rel_x
        self.rel_y = rel_y

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "relX": self.rel_x, "relY": self.rel_y}


@dataclass(frozen=True)
class PinPosition:
    """World position of one pin, as consumed by the net extractor."""
    component_id: str
    pin_id: str
    x: float
    y: float
    is_ground: bool = False

    @property
    def key(self) -> str:
        return pin_key(self.component_id, self.pin_id)

    @property
    def pos(self) -> Tuple[float, float]:
        return (self.x, self.y)


def pin_key(component_id: str, pin_id: str) -> str:
    return f"{component_id}:{pin_id}"


class Placement:
    """
    A component instance on the schematic: an origin, a quarter-turn rotation
    and a list of pins given relative to the origin.
    """

    def __init__(self, placement_id: str, x: float = 0, y: float = 0, rotation: int = 0,
                 pins: Optional[List[PlacementPin]] = None, is_ground: bool = False):
        if rotation % 360 not in VALID_ROTATIONS:
            raise PlacementError(f"Placement {placement_id}: rotation must be a multiple of 90")
        self.id = placement_id
        self.x = x
        self.y = y
        self.rotation = rotation % 360
        self.pins: List[PlacementPin] = list(pins or [])
        self.is_ground = is_ground

    def add_pin(self, pin: PlacementPin) -> None:
        self.pins.append(pin)

    def get_pin(self, pin_id: str) -> Optional[PlacementPin]:
        for pin in self.pins:
            if pin.id == pin_id:
                return pin
        return None

    def pin_world_position(self, pin: PlacementPin) -> Tuple[float, float]:
        dx, dy = rotate_offset(pin.rel_x, pin.rel_y, self.rotation)
        return (self.x + dx, self.y + dy)

    def pin_positions(self) -> List[PinPosition]:
        positions = []
        for pin in self.pins:
            x, y = self.pin_world_position(pin)
            positions.append(PinPosition(self.id, pin.id, x, y, self.is_ground))
        return positions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "isGround": self.is_ground,
            "pins": [p.to_dict() for p in self.pins],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Placement":
        pins = [PlacementPin(p["id"], p.get("relX", 0), p.get("relY", 0), p.get("name"))
                for p in data.get("pins", [])]
        return cls(data["id"], data.get("x", 0), data.get("y", 0), data.get("rotation", 0),
                   pins, data.get("isGround", False))

    def __repr__(self) -> str:
        return f"Placement({self.id!r}, {self.x}, {self.y}, rot={self.rotation})"


class PlacementBoard(QObject):
    """
    In-memory placement provider.

    Emits ``placementMoved`` after a move or rotation, ``placementAdded`` and
    ``placementRemoved`` when the set of placements changes.
    """

    placementMoved = Signal(str)
    placementAdded = Signal(str)
    placementRemoved = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._placements: Dict[str, Placement] = {}

    def list_placements(self) -> List[Placement]:
        return list(self._placements.values())

    def get(self, placement_id: str) -> Optional[Placement]:
        return self._placements.get(placement_id)

    def add(self, placement: Placement) -> Placement:
        if placement.id in self._placements:
            raise PlacementError(f"Duplicate placement id: {placement.id}")
        self._placements[placement.id] = placement
        self.placementAdded.emit(placement.id)
        return placement

    def remove(self, placement_id: str) -> bool:
        if self._placements.pop(placement_id, None) is None:
            return False
        self.placementRemoved.emit(placement_id)
        return True

    def move_placement(self, placement_id: str, x: float, y: float) -> bool:
        placement = self._placements.get(placement_id)
        if placement is None:
            return False
        placement.x = x
        placement.y = y
        self.placementMoved.emit(placement_id)
        return True

    def rotate_placement(self, placement_id: str, rotation: Optional[int] = None) -> bool:
        """Sets the rotation, or turns by 90 degrees when none is given."""
        placement = self._placements.get(placement_id)
        if placement is None:
            return False
        if rotation is None:
            rotation = placement.rotation + 90
        if rotation % 360 not in VALID_ROTATIONS:
            raise PlacementError(f"Placement {placement_id}: rotation must be a multiple of 90")
        placement.rotation = rotation % 360
        self.placementMoved.emit(placement_id)
        return True
