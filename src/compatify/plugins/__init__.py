"""Ecosystem plugins: capability protocol, npm plugin and plugin manager."""

from compatify.plugins.base import EcosystemPlugin, PluginError, ProjectReport, validate_plugin
from compatify.plugins.manager import PluginManager, default_manager
from compatify.plugins.node import NodePlugin

__all__ = [
    "EcosystemPlugin",
    "NodePlugin",
    "PluginError",
    "PluginManager",
    "ProjectReport",
    "default_manager",
    "validate_plugin",
]
