"""
Connectivity package.

Derives nets, the pin-to-net map and junction points from the wire graph,
for the netlist formatter and the junction renderer.
"""

from connectivity.net_extractor import (
    NetExtractor,
    ConnectivityError,
    PointInfo
)

from connectivity.spatial_index import SpatialIndex

from connectivity.union_find import UnionFind

__all__ = [
    "NetExtractor",
    "ConnectivityError",
    "PointInfo",
    "SpatialIndex",
    "UnionFind"
]
