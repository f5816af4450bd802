"""npm ecosystem plugin: package.json, package-lock.json and registry.npmjs.org."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from compatify.graph import DependencyGraph
from compatify.parser import PackageParser
from compatify.registry import DEFAULT_REGISTRY_URL, NpmRegistry
from compatify.rules import load_rules

if TYPE_CHECKING:
    from pathlib import Path

    from compatify.parser import ProjectData
    from compatify.rules import RulesStore


class NodePlugin:
    """Compatibility checks for Node.js projects."""

    name = "node"
    language = "nodejs"
    manifest_files: tuple[str, ...] = ("package.json",)
    lock_files: tuple[str, ...] = ("package-lock.json", "yarn.lock", "pnpm-lock.yaml")
    priority = 70

    def __init__(
        self,
        *,
        parser: PackageParser | None = None,
        registry: NpmRegistry | None = None,
    ) -> None:
        self.parser = parser or PackageParser()
        self.registry = registry or NpmRegistry()

    def detect(self, project: Path) -> bool:
        return (project / "package.json").is_file()

    def parse_manifest(self, project: Path) -> ProjectData:
        return self.parser.parse_project(project)

    def fetch_registry_entry(self, name: str, version: str = "latest") -> dict[str, Any]:
        return self.registry.fetch_manifest(name, version)

    def load_rules(self, rules_path: Path | None = None) -> RulesStore:
        return load_rules(rules_path)

    def build_graph(self, project_data: ProjectData) -> DependencyGraph:
        return DependencyGraph.build_from_project(project_data)

    def info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "language": self.language,
            "description": "Node.js/npm dependency compatibility checker",
            "manifest_files": list(self.manifest_files),
            "lock_files": list(self.lock_files),
            "registry": DEFAULT_REGISTRY_URL,
        }
