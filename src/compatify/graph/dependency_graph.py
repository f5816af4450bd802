"""In-memory dependency graph: installed packages and declared version ranges."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from compatify.parser import ProjectData

ROOT = "__root__"


class GraphBuildError(ValueError):
    """Raised when project data is too malformed to build a graph from."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class PackageNode:
    """One installed package (or the synthetic project root)."""

    name: str
    version: str | None = None
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    engines: dict[str, str] = field(default_factory=dict)
    module_type: str = "commonjs"  # "commonjs" | "module"
    deprecated: bool = False
    optional: bool = False
    dev: bool = False


@dataclass(frozen=True)
class DependencyEdge:
    """``source`` requires ``target`` within ``version_range``."""

    source: str
    target: str
    version_range: str


@dataclass(frozen=True)
class GraphStats:
    """Counts describing a graph.

    ``transitive_dependencies`` is ``total_packages - direct_dependencies``:
    a package that is both a direct and a transitive dependency is counted
    as direct only.
    """

    total_packages: int
    direct_dependencies: int
    transitive_dependencies: int
    dev_dependencies: int
    optional_dependencies: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get(obj: object, key: str, attr: str | None = None) -> Any:
    """Read *key* from a mapping or *attr* (default: *key*) from an object."""
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, attr or key, None)


def _module_type(metadata: object) -> str:
    """Project module type; package.json calls the field ``type``."""
    if isinstance(metadata, Mapping):
        value = metadata.get("module_type") or metadata.get("type")
    else:
        value = getattr(metadata, "module_type", None)
    return str(value or "commonjs")


def _as_ranges(value: object, context: str) -> dict[str, str]:
    """Validate a ``name -> range`` section; None means empty."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = f"{context} must be a mapping, got {type(value).__name__}"
        raise GraphBuildError(msg)
    ranges: dict[str, str] = {}
    for name, version_range in value.items():
        if not isinstance(version_range, str):
            msg = f"{context}: range for '{name}' must be a string"
            raise GraphBuildError(msg)
        ranges[str(name)] = version_range
    return ranges


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class DependencyGraph:
    """Directed graph of packages keyed by name.

    Edges are stored per source in insertion order.  Edge targets do not
    have to exist as nodes: an edge to a missing package records a
    requirement nothing satisfies.
    """

    def __init__(self) -> None:
        self.nodes: dict[str, PackageNode] = {}
        self.edges: dict[str, list[DependencyEdge]] = {}

    # -- construction -------------------------------------------------------

    def add_node(self, name: str, metadata: Mapping[str, Any] | None = None) -> PackageNode:
        """Insert or overwrite the node *name* (last write wins, never merged)."""
        meta = dict(metadata or {})
        module_type = meta.get("module_type") or meta.get("type") or "commonjs"
        node = PackageNode(
            name=name,
            version=meta.get("version"),
            peer_dependencies=dict(
                meta.get("peer_dependencies") or meta.get("peerDependencies") or {}
            ),
            engines=dict(meta.get("engines") or {}),
            module_type=str(module_type),
            deprecated=bool(meta.get("deprecated", False)),
            optional=bool(meta.get("optional", False)),
            dev=bool(meta.get("dev", False)),
        )
        self.nodes[name] = node
        return node

    def add_edge(self, source: str, target: str, version_range: str) -> DependencyEdge:
        """Append an edge; duplicates are kept as separate requirements."""
        edge = DependencyEdge(source=source, target=target, version_range=version_range)
        self.edges.setdefault(source, []).append(edge)
        return edge

    @classmethod
    def build_from_project(cls, project_data: ProjectData | Mapping[str, Any]) -> DependencyGraph:
        """Build a graph from parsed project data.

        1. Root node from project metadata.
        2. One node per installed package.
        3. Root edges for every direct, dev and optional declaration.
        4. Edges for every dependency recorded on an installed package.

        Raises
        ------
        GraphBuildError
            If a section has the wrong shape.
        """
        metadata = _get(project_data, "metadata")
        dependencies = _get(project_data, "dependencies")
        installed = _get(project_data, "installed") or {}

        if metadata is None or dependencies is None:
            msg = "Project data must provide 'metadata' and 'dependencies'"
            raise GraphBuildError(msg)
        if not isinstance(installed, Mapping):
            msg = f"'installed' must be a mapping, got {type(installed).__name__}"
            raise GraphBuildError(msg)

        graph = cls()

        graph.add_node(
            ROOT,
            {
                "version": _get(metadata, "version"),
                "engines": _as_ranges(_get(metadata, "engines"), "metadata.engines"),
                "module_type": _module_type(metadata),
            },
        )

        for name, package in installed.items():
            if not isinstance(package, Mapping) and not hasattr(package, "version"):
                msg = (
                    f"installed['{name}'] must be a mapping or package record, "
                    f"got {type(package).__name__}"
                )
                raise GraphBuildError(msg)
            graph.add_node(
                name,
                {
                    "version": _get(package, "version"),
                    "peer_dependencies": _as_ranges(
                        _get(package, "peerDependencies", "peer_dependencies"),
                        f"installed['{name}'].peerDependencies",
                    ),
                    "engines": _as_ranges(
                        _get(package, "engines"), f"installed['{name}'].engines"
                    ),
                    "deprecated": _get(package, "deprecated"),
                    "optional": _get(package, "optional"),
                    "dev": _get(package, "dev"),
                },
            )

        all_declared = _get(dependencies, "all")
        for name, version_range in _as_ranges(all_declared, "dependencies.all").items():
            graph.add_edge(ROOT, name, version_range)

        for name, package in installed.items():
            declared = _as_ranges(
                _get(package, "dependencies"), f"installed['{name}'].dependencies"
            )
            for dep_name, version_range in declared.items():
                graph.add_edge(name, dep_name, version_range)

        return graph

    # -- queries ------------------------------------------------------------

    def get_node(self, name: str) -> PackageNode | None:
        return self.nodes.get(name)

    def has_node(self, name: str) -> bool:
        return name in self.nodes

    def get_dependencies(self, name: str) -> list[DependencyEdge]:
        """Outgoing edges of *name*, direct only."""
        return list(self.edges.get(name, []))

    def get_dependents(self, name: str) -> list[str]:
        """Every source with at least one edge targeting *name*."""
        return [
            source
            for source, edges in self.edges.items()
            if any(edge.target == name for edge in edges)
        ]

    def get_all_packages(self) -> list[str]:
        """All node names except the synthetic root."""
        return [name for name in self.nodes if name != ROOT]

    def find_paths(self, source: str, target: str, max_depth: int = 10) -> list[list[str]]:
        """Enumerate every simple path from *source* to *target*.

        Depth-first in edge order, at most *max_depth* hops.  The visited
        set holds the current path only, so a node may appear on several
        paths but never twice on one.
        """
        if source not in self.nodes or target not in self.nodes:
            return []

        paths: list[list[str]] = []
        on_path: set[str] = set()

        def _dfs(current: str, path: list[str]) -> None:
            if current == target:
                paths.append([*path, current])
                return
            if len(path) >= max_depth:
                return

            on_path.add(current)
            for edge in self.edges.get(current, []):
                if edge.target not in on_path:
                    _dfs(edge.target, [*path, current])
            on_path.discard(current)

        _dfs(source, [])
        return paths

    def get_stats(self) -> GraphStats:
        packages = self.get_all_packages()
        total = len(packages)
        direct = len(self.edges.get(ROOT, []))
        dev = sum(1 for name in packages if self.nodes[name].dev)
        optional = sum(1 for name in packages if self.nodes[name].optional)
        return GraphStats(
            total_packages=total,
            direct_dependencies=direct,
            transitive_dependencies=total - direct,
            dev_dependencies=dev,
            optional_dependencies=optional,
        )
