"""Project configuration: ``.compatify.yml`` in the project root."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from compatify.registry import DEFAULT_CACHE_DIR, DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".compatify.yml"


@dataclass(frozen=True)
class CompatifyConfig:
    """Settings for a check run.

    Every field is optional in the file; CLI flags override file values.
    """

    rules_path: Path | None = None
    node_version: str | None = None
    language: str | None = None
    use_cache: bool = True
    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_ttl: float = DEFAULT_CACHE_TTL

    def merged(self, **overrides: Any) -> CompatifyConfig:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def load_config(project_root: Path) -> CompatifyConfig:
    """Load ``.compatify.yml`` from *project_root*.

    Falls back to defaults for a missing file, unreadable YAML, or
    values of the wrong type.  Relative paths resolve against the project.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.is_file():
        return CompatifyConfig()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using defaults", CONFIG_FILENAME)
        return CompatifyConfig()

    if data is None:
        return CompatifyConfig()
    if not isinstance(data, dict):
        logger.warning("%s must be a mapping, using defaults", CONFIG_FILENAME)
        return CompatifyConfig()

    kwargs: dict[str, Any] = {}

    rules = data.get("rules")
    if isinstance(rules, str) and rules.strip():
        rules_path = Path(rules).expanduser()
        kwargs["rules_path"] = rules_path if rules_path.is_absolute() else project_root / rules_path

    node_version = data.get("node_version")
    if node_version is not None:
        kwargs["node_version"] = str(node_version).lstrip("v")

    language = data.get("language")
    if isinstance(language, str) and language.strip():
        kwargs["language"] = language.strip()

    cache = data.get("cache")
    if isinstance(cache, dict):
        if "enabled" in cache:
            kwargs["use_cache"] = bool(cache["enabled"])
        cache_dir = cache.get("dir")
        if isinstance(cache_dir, str) and cache_dir.strip():
            path = Path(cache_dir).expanduser()
            kwargs["cache_dir"] = path if path.is_absolute() else project_root / path
        if "ttl" in cache:
            try:
                kwargs["cache_ttl"] = float(cache["ttl"])
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid cache.ttl in %s", CONFIG_FILENAME)

    return CompatifyConfig(**kwargs)
