# core/config.py
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any


@dataclass
class EngineConfig:
    """
    Tunables shared by the store, the routing engine and the net extractor.
    All distances are in world (scene) units.
    """
    grid_size: int = 10  # Snapping unit for wire vertices
    epsilon: float = 0.001  # Two coordinates closer than this are the same point

    # Hit testing
    node_hit_tolerance: float = 8
    segment_hit_tolerance: float = 5
    pin_hit_radius: float = 10

    # Pointer travel before a press turns into a drag
    drag_threshold: float = 3

    # Net extraction buckets are net_cell_factor * grid_size wide
    net_cell_factor: int = 2

    undo_limit: int = 50

    @property
    def net_cell_size(self) -> float:
        return self.grid_size * self.net_cell_factor

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Builds a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
