"""Plugin manager: register ecosystems, detect the project type, run checks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from compatify.checker import check
from compatify.plugins.base import PluginError, ProjectReport, validate_plugin
from compatify.versions import detect_node_version

if TYPE_CHECKING:
    from pathlib import Path

    from compatify.plugins.base import EcosystemPlugin

logger = logging.getLogger(__name__)


class PluginManager:
    """Registry of ecosystem plugins keyed by language."""

    def __init__(self) -> None:
        self._plugins: dict[str, EcosystemPlugin] = {}

    def register(self, plugin: EcosystemPlugin) -> None:
        """Add *plugin*; raises PluginError if invalid or its language is taken."""
        if not validate_plugin(plugin):
            msg = f"Invalid plugin: {getattr(plugin, 'name', plugin)!r}"
            raise PluginError(msg)
        if plugin.language in self._plugins:
            msg = f"Plugin for '{plugin.language}' is already registered"
            raise PluginError(msg)
        self._plugins[plugin.language] = plugin

    def get(self, language: str) -> EcosystemPlugin | None:
        return self._plugins.get(language)

    @property
    def plugins(self) -> list[EcosystemPlugin]:
        return list(self._plugins.values())

    @property
    def languages(self) -> list[str]:
        return list(self._plugins)

    def detect(self, project: Path) -> list[EcosystemPlugin]:
        """Plugins that recognise *project*, highest priority first.

        A plugin whose detection raises is skipped.
        """
        matches: list[EcosystemPlugin] = []
        for plugin in self._plugins.values():
            try:
                if plugin.detect(project):
                    matches.append(plugin)
            except OSError as exc:
                logger.debug("Plugin %s failed to detect %s: %s", plugin.name, project, exc)
        matches.sort(key=lambda p: p.priority, reverse=True)
        return matches

    def best(self, project: Path, preferred: str | None = None) -> EcosystemPlugin | None:
        """Pick the plugin for *project*.

        With *preferred*, that plugin must exist and must detect the
        project, otherwise PluginError.  Without it, the highest-priority
        match wins; None when nothing matches.
        """
        if preferred:
            plugin = self.get(preferred)
            if plugin is None:
                msg = f"No plugin registered for language: {preferred}"
                raise PluginError(msg)
            if not plugin.detect(project):
                msg = f"Project at '{project}' does not appear to be a {preferred} project"
                raise PluginError(msg)
            return plugin

        matches = self.detect(project)
        return matches[0] if matches else None

    def check_project(
        self,
        project: Path,
        *,
        language: str | None = None,
        rules_path: Path | None = None,
        node_version: str | None = None,
    ) -> ProjectReport:
        """Parse, build the graph, and run every check for *project*.

        Raises
        ------
        PluginError
            If no plugin handles the project.
        ManifestError, GraphBuildError, RulesError
            From the stage that failed; no partial report is returned.
        """
        plugin = self.best(project, language)
        if plugin is None:
            supported = ", ".join(self.languages)
            msg = (
                f"Could not detect project type. Supported languages: {supported}. "
                "Use --language to specify explicitly."
            )
            raise PluginError(msg)

        logger.info("Checking %s project at %s", plugin.language, project)
        rules = plugin.load_rules(rules_path)
        project_data = plugin.parse_manifest(project)
        graph = plugin.build_graph(project_data)

        engine_version = node_version or detect_node_version()
        if engine_version is None:
            logger.warning("Node.js not found on PATH; engine checks are skipped")

        result = check(rules, graph, project_data.metadata, node_version=engine_version)

        return ProjectReport(
            project=str(project),
            language=plugin.language,
            plugin_name=plugin.name,
            metadata=project_data.metadata,
            result=result,
            stats=graph.get_stats(),
            packages=tuple(graph.get_all_packages()),
            node_version=engine_version,
            has_lock_file=project_data.has_lock_file,
        )

    def plugins_info(self) -> list[dict[str, Any]]:
        return [plugin.info() for plugin in self._plugins.values()]


def default_manager() -> PluginManager:
    """A manager with every built-in ecosystem registered."""
    from compatify.plugins.node import NodePlugin

    manager = PluginManager()
    manager.register(NodePlugin())
    return manager
