"""Compatibility checker: run the rule passes over a dependency graph."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Any

from compatify.rules import load_rules
from compatify.versions import detect_node_version, evaluate_condition, major, satisfies

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from compatify.graph import DependencyGraph
    from compatify.parser import ProjectMetadata
    from compatify.rules import RulesStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Issue types
# ---------------------------------------------------------------------------

MISSING_PEER = "missing-peer-dependency"
PEER_MISMATCH = "peer-dependency-mismatch"
VERSION_INCOMPATIBILITY = "version-incompatibility"
COMPATIBILITY_WARNING = "compatibility-warning"
DEPRECATED_PACKAGE = "deprecated-package"
ESM_CONFLICT = "esm-commonjs-conflict"
ENGINE_MISMATCH = "engine-mismatch"
NODE_VERSION_EOL = "node-version-eol"

SEVERITIES: tuple[str, ...] = ("error", "warning", "info")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Issue:
    """A single compatibility problem found by a check pass."""

    type: str
    severity: str | None
    package: str | None
    message: str
    version: str | None = None
    peer_package: str | None = None
    required_version: str | None = None
    installed_version: str | None = None
    incompatible_package: str | None = None
    incompatible_version: str | None = None
    replacement: str | None = None
    compatible_version: str | None = None
    required_node_version: str | None = None
    current_node_version: str | None = None
    eol_date: str | None = None
    fix: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting fields that do not apply to this issue type."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                data[f.name] = value
        return data


@dataclass(frozen=True)
class TypeCounts:
    """Issue counts per family of issue types."""

    peer_dependency: int = 0
    version_incompatibility: int = 0
    deprecated: int = 0
    esm: int = 0
    engine: int = 0


@dataclass(frozen=True)
class Summary:
    total: int
    errors: int
    warnings: int
    info: int
    types: TypeCounts

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CheckResult:
    """Issues from one check run, in pass order then discovery order."""

    issues: tuple[Issue, ...] = ()

    def __len__(self) -> int:
        return len(self.issues)

    def issues_by_severity(self) -> dict[str, list[Issue]]:
        """Group issues by severity; unset or unknown severities count as warnings."""
        grouped: dict[str, list[Issue]] = {severity: [] for severity in SEVERITIES}
        for issue in self.issues:
            severity = issue.severity if issue.severity in grouped else "warning"
            grouped[severity].append(issue)
        return grouped

    def summary(self) -> Summary:
        by_severity = self.issues_by_severity()
        types = [issue.type for issue in self.issues]
        return Summary(
            total=len(self.issues),
            errors=len(by_severity["error"]),
            warnings=len(by_severity["warning"]),
            info=len(by_severity["info"]),
            types=TypeCounts(
                peer_dependency=sum(1 for t in types if "peer-dependency" in t),
                version_incompatibility=types.count(VERSION_INCOMPATIBILITY),
                deprecated=types.count(DEPRECATED_PACKAGE),
                esm=types.count(ESM_CONFLICT),
                engine=sum(1 for t in types if "engine" in t or "node-version" in t),
            ),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _meta(metadata: ProjectMetadata | Mapping[str, Any] | None, key: str) -> Any:
    if metadata is None:
        return None
    if isinstance(metadata, Mapping):
        if key == "module_type":
            return metadata.get("module_type") or metadata.get("type")
        return metadata.get(key)
    return getattr(metadata, key, None)


def _installed(graph: DependencyGraph, name: str) -> str | None:
    node = graph.get_node(name)
    return node.version if node is not None else None


# ---------------------------------------------------------------------------
# Check passes
# ---------------------------------------------------------------------------


def check_peer_dependencies(graph: DependencyGraph) -> list[Issue]:
    """Missing or out-of-range peer dependencies of every installed package."""
    issues: list[Issue] = []
    for name in graph.get_all_packages():
        node = graph.nodes[name]
        for peer_name, peer_range in node.peer_dependencies.items():
            peer = graph.get_node(peer_name)
            if peer is None:
                issues.append(
                    Issue(
                        type=MISSING_PEER,
                        severity="error",
                        package=name,
                        version=node.version,
                        peer_package=peer_name,
                        required_version=peer_range,
                        message=(
                            f"{name}@{node.version} requires peer dependency "
                            f"{peer_name}@{peer_range} but it is not installed"
                        ),
                        fix=f"npm install {peer_name}@{peer_range}",
                    )
                )
            elif not satisfies(peer.version, peer_range):
                issues.append(
                    Issue(
                        type=PEER_MISMATCH,
                        severity="error",
                        package=name,
                        version=node.version,
                        peer_package=peer_name,
                        required_version=peer_range,
                        installed_version=peer.version,
                        message=(
                            f"{name}@{node.version} requires {peer_name}@{peer_range} "
                            f"but found {peer_name}@{peer.version}"
                        ),
                        fix=f"npm install {peer_name}@{peer_range}",
                    )
                )
    return issues


def check_version_incompatibilities(
    graph: DependencyGraph, rules: RulesStore, node_version: str | None
) -> list[Issue]:
    """Known-bad version combinations and engine-conditional warnings."""
    issues: list[Issue] = []
    for rule in rules.rules:
        version = _installed(graph, rule.package)
        if version is None or not satisfies(version, rule.version):
            continue

        for incompatibility in rule.incompatible_with:
            other_version = _installed(graph, incompatibility.package)
            if other_version is None:
                continue
            if satisfies(other_version, incompatibility.version_range):
                issues.append(
                    Issue(
                        type=VERSION_INCOMPATIBILITY,
                        severity=incompatibility.severity,
                        package=rule.package,
                        version=version,
                        incompatible_package=incompatibility.package,
                        incompatible_version=other_version,
                        message=incompatibility.reason,
                        fix=incompatibility.fix,
                    )
                )

        for warning in rule.warnings:
            if evaluate_condition(warning.condition, node_version):
                issues.append(
                    Issue(
                        type=COMPATIBILITY_WARNING,
                        severity=warning.severity,
                        package=rule.package,
                        version=version,
                        current_node_version=node_version,
                        message=warning.message,
                    )
                )
    return issues


def check_deprecated_packages(graph: DependencyGraph, rules: RulesStore) -> list[Issue]:
    """Deprecated packages, at whatever version is installed."""
    issues: list[Issue] = []
    for deprecation in rules.deprecated:
        node = graph.get_node(deprecation.package)
        if node is None:
            continue
        issues.append(
            Issue(
                type=DEPRECATED_PACKAGE,
                severity=deprecation.severity,
                package=deprecation.package,
                version=node.version,
                message=deprecation.reason,
                replacement=deprecation.replacement,
                fix=deprecation.fix,
            )
        )
    return issues


def check_esm_compatibility(
    graph: DependencyGraph,
    rules: RulesStore,
    metadata: ProjectMetadata | Mapping[str, Any] | None,
) -> list[Issue]:
    """ESM-only packages installed into a CommonJS project."""
    module_type = _meta(metadata, "module_type") or "commonjs"
    if module_type == "module":
        return []

    issues: list[Issue] = []
    for esm_rule in rules.esm:
        version = _installed(graph, esm_rule.package)
        if version is None or not satisfies(version, esm_rule.version):
            continue
        issues.append(
            Issue(
                type=ESM_CONFLICT,
                severity=esm_rule.severity,
                package=esm_rule.package,
                version=version,
                compatible_version=esm_rule.compatible_version,
                message=esm_rule.message,
                fix=f"npm install {esm_rule.package}@{esm_rule.compatible_version}",
            )
        )
    return issues


def check_engine_requirements(
    graph: DependencyGraph,
    rules: RulesStore,
    metadata: ProjectMetadata | Mapping[str, Any] | None,
    node_version: str | None,
) -> list[Issue]:
    """Project and package ``engines.node`` ranges, plus end-of-life engines."""
    if node_version is None:
        logger.debug("Node.js version unknown, skipping engine checks")
        return []

    issues: list[Issue] = []

    engines = _meta(metadata, "engines") or {}
    project_range = engines.get("node")
    if project_range and not satisfies(node_version, project_range):
        project_name = _meta(metadata, "name") or "unknown"
        issues.append(
            Issue(
                type=ENGINE_MISMATCH,
                severity="error",
                package=project_name,
                required_node_version=project_range,
                current_node_version=node_version,
                message=(
                    f"Project requires Node.js {project_range} "
                    f"but current version is {node_version}"
                ),
            )
        )

    for name in graph.get_all_packages():
        node = graph.nodes[name]
        package_range = node.engines.get("node")
        if not package_range or satisfies(node_version, package_range):
            continue
        issues.append(
            Issue(
                type=ENGINE_MISMATCH,
                severity="warning",
                package=name,
                version=node.version,
                required_node_version=package_range,
                current_node_version=node_version,
                message=(
                    f"{name}@{node.version} requires Node.js {package_range} "
                    f"but current version is {node_version}"
                ),
            )
        )

    try:
        status = rules.engine_status(major(node_version))
    except ValueError:
        logger.debug("Cannot parse Node.js version %r for EOL lookup", node_version)
        status = None
    if status is not None and status.is_eol:
        issues.append(
            Issue(
                type=NODE_VERSION_EOL,
                severity=status.severity,
                package=None,
                current_node_version=node_version,
                eol_date=status.eol_date,
                message=status.message,
            )
        )

    return issues


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def check(
    rules: RulesStore,
    graph: DependencyGraph,
    metadata: ProjectMetadata | Mapping[str, Any] | None,
    *,
    node_version: str | None = None,
) -> CheckResult:
    """Run all five passes in fixed order and return a fresh result.

    Passes are independent; the order only determines issue order.
    *node_version* is the running Node.js version (None disables the
    engine pass and engine-conditional warnings).
    """
    passes: Iterable[list[Issue]] = (
        check_peer_dependencies(graph),
        check_version_incompatibilities(graph, rules, node_version),
        check_deprecated_packages(graph, rules),
        check_esm_compatibility(graph, rules, metadata),
        check_engine_requirements(graph, rules, metadata, node_version),
    )
    issues = tuple(issue for found in passes for issue in found)
    logger.debug("Compatibility check produced %d issue(s)", len(issues))
    return CheckResult(issues=issues)


class CompatibilityChecker:
    """Holds a lazily loaded rules store and runs checks against it.

    Rules are read once, on the first :meth:`check` (or an explicit
    :meth:`load_rules`), then reused for the lifetime of the instance.
    Every :meth:`check` returns its own :class:`CheckResult`, so one
    checker may serve concurrent checks.
    """

    def __init__(
        self,
        rules_path: Path | None = None,
        *,
        rules: RulesStore | None = None,
        node_version: str | None = None,
    ) -> None:
        self.rules_path = rules_path
        self._rules = rules
        self._node_version = node_version
        self._node_version_resolved = node_version is not None
        self._lock = threading.Lock()

    def load_rules(self) -> RulesStore:
        """Load the rules file now; raises RulesError on failure."""
        with self._lock:
            if self._rules is None:
                self._rules = load_rules(self.rules_path)
                logger.debug(
                    "Loaded %d rule(s), %d deprecation(s), %d ESM rule(s) from %s",
                    len(self._rules.rules),
                    len(self._rules.deprecated),
                    len(self._rules.esm),
                    self._rules.source,
                )
            return self._rules

    @property
    def rules(self) -> RulesStore:
        if self._rules is None:
            return self.load_rules()
        return self._rules

    @property
    def node_version(self) -> str | None:
        if not self._node_version_resolved:
            self._node_version = detect_node_version()
            self._node_version_resolved = True
        return self._node_version

    def check(
        self,
        graph: DependencyGraph,
        metadata: ProjectMetadata | Mapping[str, Any] | None,
    ) -> CheckResult:
        return check(self.rules, graph, metadata, node_version=self.node_version)
