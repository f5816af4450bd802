"""Dependency graph: construction, traversal and statistics."""

from compatify.graph.dependency_graph import (
    ROOT,
    DependencyEdge,
    DependencyGraph,
    GraphBuildError,
    GraphStats,
    PackageNode,
)

__all__ = [
    "ROOT",
    "DependencyEdge",
    "DependencyGraph",
    "GraphBuildError",
    "GraphStats",
    "PackageNode",
]
