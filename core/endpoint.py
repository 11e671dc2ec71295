# core/endpoint.py
"""
Wire endpoints.

A wire can start or end on a component pin, a free grid point or an existing
topology node. The three shapes are one tagged union, resolved to a concrete
position only when a route is built.
"""

from dataclasses import dataclass
from typing import Union, Optional, Callable, Tuple


@dataclass(frozen=True)
class PinEndpoint:
    component_id: str
    pin_id: str


@dataclass(frozen=True)
class FreePoint:
    x: float
    y: float


@dataclass(frozen=True)
class NodeRef:
    node_id: int


Endpoint = Union[PinEndpoint, FreePoint, NodeRef]


def resolve_endpoint(endpoint: Endpoint, store,
                     pin_lookup: Optional[Callable[[str, str], Optional[int]]] = None
                     ) -> Optional[Tuple[Tuple[float, float], Optional[int]]]:
    """
    Resolves an endpoint to ``((x, y), node_id)``.

    ``node_id`` is None for free points that have no node yet. Returns None when
    the endpoint refers to something that does not exist.
    """
    if isinstance(endpoint, FreePoint):
        return (endpoint.x, endpoint.y), None

    if isinstance(endpoint, NodeRef):
        node = store.get_node(endpoint.node_id)
        if node is None:
            return None
        return (node.x, node.y), node.id

    if isinstance(endpoint, PinEndpoint):
        if pin_lookup is None:
            return None
        node_id = pin_lookup(endpoint.component_id, endpoint.pin_id)
        node = store.get_node(node_id) if node_id is not None else None
        if node is None:
            return None
        return (node.x, node.y), node.id

    return None
