"""npm registry client with an on-disk JSON cache."""

from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_CACHE_DIR = Path.home() / ".compatify-cache"
DEFAULT_CACHE_TTL = 86400.0  # seconds

# Manifest fields kept in the cache; everything else the registry returns is dropped.
_MAPPING_FIELDS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "peerDependenciesMeta",
    "optionalDependencies",
    "engines",
)


class RegistryError(Exception):
    """Raised when the registry cannot answer a request."""


def _normalize_manifest(manifest: dict[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": manifest.get("name"),
        "version": manifest.get("version"),
    }
    for key in _MAPPING_FIELDS:
        value = manifest.get(key)
        data[key] = value if isinstance(value, dict) else {}
    data["deprecated"] = manifest.get("deprecated") or False
    data["type"] = manifest.get("type")
    data["exports"] = manifest.get("exports")
    data["main"] = manifest.get("main")
    data["module"] = manifest.get("module")
    return data


class NpmRegistry:
    """Fetches package manifests from an npm registry.

    Manifests are cached as ``<cache_dir>/<name>-<version>.json`` and reused
    while younger than ``cache_ttl`` seconds.  Cache failures only disable
    or skip the cache, they never fail a lookup.
    """

    def __init__(
        self,
        *,
        cache_dir: Path | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        use_cache: bool = True,
        registry_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = 30.0,
    ) -> None:
        self.cache_dir = cache_dir or DEFAULT_CACHE_DIR
        self.cache_ttl = cache_ttl
        self.use_cache = use_cache
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout

    # -- cache --------------------------------------------------------------

    def _init_cache(self) -> None:
        if not self.use_cache:
            return
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Could not create cache directory %s: %s", self.cache_dir, exc)
            self.use_cache = False

    def _cache_path(self, name: str, version: str = "latest") -> Path:
        safe_name = name.replace("/", "-")
        return self.cache_dir / f"{safe_name}-{version}.json"

    def _read_cache(self, path: Path) -> dict[str, Any] | None:
        """Return cached data if present and fresh, else None."""
        if not self.use_cache:
            return None
        try:
            age = time.time() - path.stat().st_mtime
        except OSError:
            return None
        if age >= self.cache_ttl:
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.debug("Ignoring unreadable cache entry %s", path)
            return None
        return data if isinstance(data, dict) else None

    def _write_cache(self, path: Path, data: dict[str, Any]) -> None:
        if not self.use_cache:
            return
        try:
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write to cache %s: %s", path, exc)

    # -- registry -----------------------------------------------------------

    def _get(self, path: str) -> dict[str, Any]:
        url = f"{self.registry_url}/{path}"
        try:
            response = httpx.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            msg = f"Request to {url} failed: {exc}"
            raise RegistryError(msg) from exc

        if response.status_code != 200:
            msg = f"Registry error {response.status_code} for {url}"
            raise RegistryError(msg)

        try:
            data = response.json()
        except ValueError as exc:
            msg = f"Registry returned invalid JSON for {url}"
            raise RegistryError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Registry returned unexpected payload for {url}"
            raise RegistryError(msg)
        return data

    def fetch_manifest(self, name: str, version: str = "latest") -> dict[str, Any]:
        """Return the manifest of ``name@version`` (a version or dist-tag).

        Raises
        ------
        RegistryError
            On network errors, non-200 responses, or invalid payloads.
        """
        self._init_cache()
        cache_path = self._cache_path(name, version)

        cached = self._read_cache(cache_path)
        if cached is not None:
            return cached

        try:
            manifest = self._get(f"{quote(name, safe='@')}/{quote(version, safe='')}")
        except RegistryError as exc:
            msg = f"Failed to fetch {name}@{version}: {exc}"
            raise RegistryError(msg) from exc

        data = _normalize_manifest(manifest)
        self._write_cache(cache_path, data)
        return data

    def fetch_versions(self, name: str) -> list[str]:
        """Return every published version of *name*."""
        try:
            packument = self._get(quote(name, safe="@"))
        except RegistryError as exc:
            msg = f"Failed to fetch versions for {name}: {exc}"
            raise RegistryError(msg) from exc
        versions = packument.get("versions")
        return list(versions) if isinstance(versions, dict) else []

    def fetch_latest_version(self, name: str) -> str:
        manifest = self.fetch_manifest(name, "latest")
        return str(manifest["version"])

    def fetch_many(self, specs: Iterable[tuple[str, str]]) -> dict[str, dict[str, Any]]:
        """Fetch several ``(name, version)`` manifests; failures are logged and skipped."""
        results: dict[str, dict[str, Any]] = {}
        for name, version in specs:
            try:
                results[name] = self.fetch_manifest(name, version)
            except RegistryError as exc:
                logger.warning("Failed to fetch %s@%s: %s", name, version, exc)
        return results

    # -- maintenance --------------------------------------------------------

    def clear_cache(self, name: str | None = None) -> int:
        """Delete cache entries for *name*, or the whole cache; returns files removed."""
        if not self.use_cache or not self.cache_dir.is_dir():
            return 0

        if name is None:
            count = sum(1 for p in self.cache_dir.iterdir() if p.is_file())
            shutil.rmtree(self.cache_dir, ignore_errors=True)
            self._init_cache()
            return count

        prefix = f"{name.replace('/', '-')}-"
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            if path.name.startswith(prefix):
                try:
                    path.unlink()
                    removed += 1
                except OSError as exc:
                    logger.warning("Failed to remove cache entry %s: %s", path, exc)
        return removed

    def cache_stats(self) -> dict[str, Any]:
        if not self.use_cache:
            return {"enabled": False}
        if not self.cache_dir.is_dir():
            return {"enabled": True, "files": 0, "total_size": 0, "path": str(self.cache_dir)}

        files = [p for p in self.cache_dir.iterdir() if p.is_file()]
        total_size = sum(p.stat().st_size for p in files)
        return {
            "enabled": True,
            "files": len(files),
            "total_size": total_size,
            "total_size_mb": round(total_size / 1024 / 1024, 2),
            "path": str(self.cache_dir),
        }
