"""
Application package.

The schematic session ties the wire graph, the routing engine, the pin
registry and the net extractor together.
"""

from app.schematic_session import SchematicSession

__all__ = [
    "SchematicSession"
]
