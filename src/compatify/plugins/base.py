"""Ecosystem plugin capability and the report a plugin check produces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

    from compatify.checker import CheckResult
    from compatify.graph import DependencyGraph, GraphStats
    from compatify.parser import ProjectData, ProjectMetadata
    from compatify.rules import RulesStore


class PluginError(Exception):
    """Raised for plugin registration and selection failures."""


@runtime_checkable
class EcosystemPlugin(Protocol):
    """What the manager needs from one package ecosystem."""

    name: str
    language: str
    manifest_files: tuple[str, ...]
    lock_files: tuple[str, ...]
    priority: int  # higher wins when several plugins detect a project

    def detect(self, project: Path) -> bool: ...

    def parse_manifest(self, project: Path) -> ProjectData: ...

    def fetch_registry_entry(self, name: str, version: str = "latest") -> dict[str, Any]: ...

    def load_rules(self, rules_path: Path | None = None) -> RulesStore: ...

    def build_graph(self, project_data: ProjectData) -> DependencyGraph: ...

    def info(self) -> dict[str, Any]: ...


def validate_plugin(plugin: object) -> bool:
    """Return True if *plugin* provides the capability and names itself."""
    if not isinstance(plugin, EcosystemPlugin):
        return False
    if not plugin.name or not plugin.language:
        return False
    return bool(plugin.manifest_files)


@dataclass(frozen=True)
class ProjectReport:
    """Result of checking one project through a plugin."""

    project: str
    language: str
    plugin_name: str
    metadata: ProjectMetadata
    result: CheckResult
    stats: GraphStats
    packages: tuple[str, ...]
    node_version: str | None
    has_lock_file: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "project_name": self.metadata.name,
            "language": self.language,
            "plugin": self.plugin_name,
            "node_version": self.node_version,
            "has_lock_file": self.has_lock_file,
            "issues": [issue.to_dict() for issue in self.result.issues],
            "summary": self.result.summary().to_dict(),
            "stats": {
                "total_packages": self.stats.total_packages,
                "direct_dependencies": self.stats.direct_dependencies,
                "transitive_dependencies": self.stats.transitive_dependencies,
                "dev_dependencies": self.stats.dev_dependencies,
                "optional_dependencies": self.stats.optional_dependencies,
            },
        }
