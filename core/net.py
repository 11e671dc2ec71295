# core/net.py
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple

from core.segment import SegmentId


GROUND_NET = "0"


class Net:
    """
    An electrical equivalence class: the wire segments, pins and points that
    are connected to each other.
    """

    def __init__(self, name: str):
        self.name = name
        self.segments: List[SegmentId] = []
        self.pins: List[str] = []  # "component:pin" keys
        self.points: List[Tuple[float, float]] = []

    @property
    def is_ground(self) -> bool:
        return self.name == GROUND_NET

    def connect(self, pin_key: str) -> None:
        """Adds a pin to this net."""
        if pin_key not in self.pins:
            self.pins.append(pin_key)

    def __repr__(self) -> str:
        return f"Net({self.name!r}, segments={len(self.segments)}, pins={len(self.pins)})"


@dataclass(frozen=True)
class Junction:
    """A point where three or more wire ends meet or a wire tees into another."""
    x: float
    y: float
    net: str


@dataclass
class ConnectivityResult:
    """Output of a net extraction run."""
    net_of_pin: Dict[str, str] = field(default_factory=dict)
    net_of_segment: Dict[SegmentId, str] = field(default_factory=dict)
    net_names: List[str] = field(default_factory=list)
    junctions: List[Junction] = field(default_factory=list)
    nets: Dict[str, Net] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def pin_net(self, component_id: str, pin_id: str) -> Optional[str]:
        return self.net_of_pin.get(f"{component_id}:{pin_id}")

    def get_net(self, name: str) -> Optional[Net]:
        return self.nets.get(name)

    @property
    def has_ground(self) -> bool:
        return GROUND_NET in self.nets
