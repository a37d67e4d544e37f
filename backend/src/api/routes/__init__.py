"""HTTP API route handlers."""

from . import diagrams, graph, migration, navigation, system

__all__ = ["diagrams", "graph", "migration", "navigation", "system"]
