"""Compatify: dependency compatibility checks for package-managed projects."""

from __future__ import annotations

from typing import TYPE_CHECKING

from compatify.checker import CheckResult, CompatibilityChecker, Issue, check
from compatify.graph import DependencyGraph
from compatify.plugins import PluginManager, ProjectReport, default_manager
from compatify.rules import RulesStore, load_rules

if TYPE_CHECKING:
    from pathlib import Path

__version__ = "0.3.0"

__all__ = [
    "CheckResult",
    "CompatibilityChecker",
    "DependencyGraph",
    "Issue",
    "PluginManager",
    "ProjectReport",
    "RulesStore",
    "__version__",
    "check",
    "check_compatibility",
    "load_rules",
]


def check_compatibility(
    project: Path,
    *,
    language: str | None = None,
    rules_path: Path | None = None,
    node_version: str | None = None,
) -> ProjectReport:
    """Check the project at *project* with the built-in ecosystem plugins."""
    return default_manager().check_project(
        project,
        language=language,
        rules_path=rules_path,
        node_version=node_version,
    )
