# core package
# Expose main classes for convenience

from .config import EngineConfig
from .node import Node, NodeKind
from .segment import Segment, SegmentId, segment_id
from .endpoint import Endpoint, PinEndpoint, FreePoint, NodeRef, resolve_endpoint
from .topology import TopologyStore, TopologyError, SnapshotFormatError
from .cleanup import cleanup, CleanupReport
from .placement import (
    Placement,
    PlacementPin,
    PlacementBoard,
    PlacementError,
    PinPosition,
    pin_key,
    rotate_offset,
)
from .net import Net, Junction, ConnectivityResult, GROUND_NET

__all__ = [
    "EngineConfig",
    "Node",
    "NodeKind",
    "Segment",
    "SegmentId",
    "segment_id",
    "Endpoint",
    "PinEndpoint",
    "FreePoint",
    "NodeRef",
    "resolve_endpoint",
    "TopologyStore",
    "TopologyError",
    "SnapshotFormatError",
    "cleanup",
    "CleanupReport",
    "Placement",
    "PlacementPin",
    "PlacementBoard",
    "PlacementError",
    "PinPosition",
    "pin_key",
    "rotate_offset",
    "Net",
    "Junction",
    "ConnectivityResult",
    "GROUND_NET",
]
