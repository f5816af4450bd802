"""Manifest parser: read package.json and package-lock.json into ProjectData."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

_NODE_MODULES_PREFIX = "node_modules/"


class ManifestError(Exception):
    """Raised when a manifest or lockfile cannot be read or decoded."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectMetadata:
    """Project-level fields of package.json."""

    name: str = "unknown"
    version: str = "0.0.0"
    engines: dict[str, str] = field(default_factory=dict)
    module_type: str = "commonjs"  # "commonjs" | "module"
    workspaces: list[str] | dict[str, Any] | None = None


@dataclass(frozen=True)
class DeclaredDependencies:
    """Dependency sections declared in package.json."""

    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    optional_dependencies: dict[str, str] = field(default_factory=dict)

    @property
    def all(self) -> dict[str, str]:
        """Merged direct declarations; peers are requirements on the consumer."""
        return {
            **self.dependencies,
            **self.dev_dependencies,
            **self.optional_dependencies,
        }


@dataclass(frozen=True)
class InstalledPackage:
    """One resolved package entry from the lockfile."""

    version: str | None = None
    resolved: str | None = None
    integrity: str | None = None
    dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    engines: dict[str, str] = field(default_factory=dict)
    optional: bool = False
    dev: bool = False


@dataclass(frozen=True)
class ProjectData:
    """Everything the graph builder needs from one project."""

    metadata: ProjectMetadata
    dependencies: DeclaredDependencies
    installed: dict[str, InstalledPackage]
    has_lock_file: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mapping(value: object) -> dict[str, str]:
    """Coerce a manifest section into a ``str -> str`` dict (empty if absent)."""
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def _engines(value: object) -> dict[str, str]:
    # Old manifests sometimes declare engines as a list of strings.
    if isinstance(value, list):
        return {}
    return _mapping(value)


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Failed to parse {label}: {exc}"
        raise ManifestError(msg) from exc
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        msg = f"Failed to parse {label}: {exc}"
        raise ManifestError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Failed to parse {label}: top-level value must be an object"
        raise ManifestError(msg)
    return data


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class PackageParser:
    """Parses package.json and package-lock.json from a project directory."""

    def parse_package_json(self, project: Path) -> dict[str, Any]:
        """Read ``package.json``; raise ManifestError if missing or invalid."""
        return _read_json(project / "package.json", "package.json")

    def parse_package_lock(self, project: Path) -> dict[str, Any] | None:
        """Read ``package-lock.json``; None when the project has no lockfile."""
        lock_path = project / "package-lock.json"
        if not lock_path.is_file():
            return None
        return _read_json(lock_path, "package-lock.json")

    def extract_dependencies(self, package_json: dict[str, Any]) -> DeclaredDependencies:
        return DeclaredDependencies(
            dependencies=_mapping(package_json.get("dependencies")),
            dev_dependencies=_mapping(package_json.get("devDependencies")),
            peer_dependencies=_mapping(package_json.get("peerDependencies")),
            optional_dependencies=_mapping(package_json.get("optionalDependencies")),
        )

    def extract_metadata(self, package_json: dict[str, Any]) -> ProjectMetadata:
        workspaces = package_json.get("workspaces")
        if not isinstance(workspaces, (list, dict)):
            workspaces = None
        return ProjectMetadata(
            name=str(package_json.get("name") or "unknown"),
            version=str(package_json.get("version") or "0.0.0"),
            engines=_engines(package_json.get("engines")),
            module_type=str(package_json.get("type") or "commonjs"),
            workspaces=workspaces,
        )

    def extract_installed(self, package_lock: dict[str, Any] | None) -> dict[str, InstalledPackage]:
        """Map installed package names to their lockfile metadata.

        Lockfile v2/v3 use the flat ``packages`` map keyed by install path;
        v1 uses a nested ``dependencies`` tree.
        """
        installed: dict[str, InstalledPackage] = {}
        if not package_lock:
            return installed

        packages = package_lock.get("packages")
        if isinstance(packages, dict):
            for pkg_path, meta in packages.items():
                if pkg_path == "" or not isinstance(meta, dict):
                    continue
                name = pkg_path
                if name.startswith(_NODE_MODULES_PREFIX):
                    name = name[len(_NODE_MODULES_PREFIX):]
                installed[name] = InstalledPackage(
                    version=meta.get("version"),
                    resolved=meta.get("resolved"),
                    integrity=meta.get("integrity"),
                    dependencies=_mapping(meta.get("dependencies")),
                    peer_dependencies=_mapping(meta.get("peerDependencies")),
                    engines=_engines(meta.get("engines")),
                    optional=bool(meta.get("optional", False)),
                    dev=bool(meta.get("dev", False)),
                )
        elif isinstance(package_lock.get("dependencies"), dict):
            self._extract_legacy(package_lock["dependencies"], installed)

        return installed

    def _extract_legacy(
        self,
        dependencies: dict[str, Any],
        installed: dict[str, InstalledPackage],
        prefix: str = "",
    ) -> None:
        """Walk a lockfile v1 tree; nested entries are keyed ``a/node_modules/b``."""
        for name, meta in dependencies.items():
            if not isinstance(meta, dict):
                continue
            full_name = f"{prefix}/node_modules/{name}" if prefix else name
            installed[full_name] = InstalledPackage(
                version=meta.get("version"),
                resolved=meta.get("resolved"),
                integrity=meta.get("integrity"),
                optional=bool(meta.get("optional", False)),
                dev=bool(meta.get("dev", False)),
            )
            nested = meta.get("dependencies")
            if isinstance(nested, dict):
                self._extract_legacy(nested, installed, full_name)

    def parse_project(self, project: Path) -> ProjectData:
        """Parse a project directory into ProjectData."""
        package_json = self.parse_package_json(project)
        package_lock = self.parse_package_lock(project)

        return ProjectData(
            metadata=self.extract_metadata(package_json),
            dependencies=self.extract_dependencies(package_json),
            installed=self.extract_installed(package_lock),
            has_lock_file=package_lock is not None,
        )
