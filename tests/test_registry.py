"""Tests for compatify.registry: npm registry client and disk cache."""

from __future__ import annotations

import json
import os
import time
import unittest.mock
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from compatify.registry import NpmRegistry, RegistryError

if TYPE_CHECKING:
    from pathlib import Path


def _response(payload: Any, status_code: int = 200) -> unittest.mock.MagicMock:
    """Create a mock httpx response."""
    resp = unittest.mock.MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


REACT_MANIFEST = {
    "name": "react",
    "version": "18.2.0",
    "dependencies": {"loose-envify": "^1.1.0"},
    "engines": {"node": ">=0.10.0"},
    "readme": "dropped",
}


@pytest.fixture()
def registry(tmp_path: Path) -> NpmRegistry:
    return NpmRegistry(cache_dir=tmp_path / "cache")


class TestFetchManifest:
    def test_normalizes(self, registry: NpmRegistry) -> None:
        with unittest.mock.patch(
            "compatify.registry.httpx.get", return_value=_response(REACT_MANIFEST)
        ) as mock_get:
            data = registry.fetch_manifest("react", "18.2.0")

        assert mock_get.call_args[0][0] == "https://registry.npmjs.org/react/18.2.0"
        assert data["name"] == "react"
        assert data["dependencies"] == {"loose-envify": "^1.1.0"}
        assert data["peerDependencies"] == {}
        assert data["deprecated"] is False
        assert "readme" not in data

    def test_scoped_name_url(self, registry: NpmRegistry) -> None:
        with unittest.mock.patch(
            "compatify.registry.httpx.get",
            return_value=_response({"name": "@babel/core", "version": "7.24.0"}),
        ) as mock_get:
            registry.fetch_manifest("@babel/core")
        assert mock_get.call_args[0][0] == "https://registry.npmjs.org/@babel%2Fcore/latest"

    def test_cache_hit(self, registry: NpmRegistry) -> None:
        with unittest.mock.patch(
            "compatify.registry.httpx.get", return_value=_response(REACT_MANIFEST)
        ) as mock_get:
            first = registry.fetch_manifest("react", "18.2.0")
            second = registry.fetch_manifest("react", "18.2.0")
        assert first == second
        assert mock_get.call_count == 1
        assert (registry.cache_dir / "react-18.2.0.json").is_file()

    def test_scoped_cache_file_name(self, registry: NpmRegistry) -> None:
        with unittest.mock.patch(
            "compatify.registry.httpx.get",
            return_value=_response({"name": "@types/node", "version": "20.0.0"}),
        ):
            registry.fetch_manifest("@types/node", "20.0.0")
        assert (registry.cache_dir / "@types-node-20.0.0.json").is_file()

    def test_expired_cache_refetches(self, tmp_path: Path) -> None:
        registry = NpmRegistry(cache_dir=tmp_path / "cache", cache_ttl=60)
        registry.cache_dir.mkdir()
        stale = registry.cache_dir / "react-18.2.0.json"
        stale.write_text(json.dumps({"name": "react", "version": "stale"}), encoding="utf-8")
        old = time.time() - 3600
        os.utime(stale, (old, old))

        with unittest.mock.patch(
            "compatify.registry.httpx.get", return_value=_response(REACT_MANIFEST)
        ) as mock_get:
            data = registry.fetch_manifest("react", "18.2.0")
        assert mock_get.call_count == 1
        assert data["version"] == "18.2.0"

    def test_cache_disabled(self, tmp_path: Path) -> None:
        registry = NpmRegistry(cache_dir=tmp_path / "cache", use_cache=False)
        with unittest.mock.patch(
            "compatify.registry.httpx.get", return_value=_response(REACT_MANIFEST)
        ) as mock_get:
            registry.fetch_manifest("react", "18.2.0")
            registry.fetch_manifest("react", "18.2.0")
        assert mock_get.call_count == 2
        assert not registry.cache_dir.exists()

    def test_not_found(self, registry: NpmRegistry) -> None:
        with (
            unittest.mock.patch(
                "compatify.registry.httpx.get", return_value=_response({}, status_code=404)
            ),
            pytest.raises(RegistryError, match="404"),
        ):
            registry.fetch_manifest("no-such-package")

    def test_network_error(self, registry: NpmRegistry) -> None:
        with (
            unittest.mock.patch(
                "compatify.registry.httpx.get", side_effect=httpx.ConnectError("offline")
            ),
            pytest.raises(RegistryError, match="Failed to fetch react@latest"),
        ):
            registry.fetch_manifest("react")

    def test_invalid_json(self, registry: NpmRegistry) -> None:
        resp = _response(None)
        resp.json.side_effect = ValueError("bad json")
        with (
            unittest.mock.patch("compatify.registry.httpx.get", return_value=resp),
            pytest.raises(RegistryError, match="invalid JSON"),
        ):
            registry.fetch_manifest("react")


class TestVersions:
    def test_fetch_versions(self, registry: NpmRegistry) -> None:
        packument = {"name": "react", "versions": {"17.0.2": {}, "18.2.0": {}}}
        with unittest.mock.patch(
            "compatify.registry.httpx.get", return_value=_response(packument)
        ) as mock_get:
            assert registry.fetch_versions("react") == ["17.0.2", "18.2.0"]
        assert mock_get.call_args[0][0] == "https://registry.npmjs.org/react"

    def test_fetch_latest_version(self, registry: NpmRegistry) -> None:
        with unittest.mock.patch(
            "compatify.registry.httpx.get", return_value=_response(REACT_MANIFEST)
        ):
            assert registry.fetch_latest_version("react") == "18.2.0"

    def test_fetch_many_skips_failures(self, registry: NpmRegistry) -> None:
        def _fake_get(url: str, **kwargs: Any) -> unittest.mock.MagicMock:
            if "missing" in url:
                return _response({}, status_code=404)
            return _response(REACT_MANIFEST)

        with unittest.mock.patch("compatify.registry.httpx.get", side_effect=_fake_get):
            results = registry.fetch_many([("react", "18.2.0"), ("missing", "1.0.0")])
        assert list(results) == ["react"]


class TestCacheMaintenance:
    def _seed(self, registry: NpmRegistry) -> None:
        registry.cache_dir.mkdir(parents=True, exist_ok=True)
        for name in ("react-18.2.0.json", "react-latest.json", "chalk-5.3.0.json"):
            (registry.cache_dir / name).write_text("{}", encoding="utf-8")

    def test_stats(self, registry: NpmRegistry) -> None:
        self._seed(registry)
        stats = registry.cache_stats()
        assert stats["enabled"] is True
        assert stats["files"] == 3
        assert stats["total_size"] == 6
        assert stats["path"] == str(registry.cache_dir)

    def test_stats_disabled(self, tmp_path: Path) -> None:
        assert NpmRegistry(cache_dir=tmp_path, use_cache=False).cache_stats() == {
            "enabled": False
        }

    def test_clear_one_package(self, registry: NpmRegistry) -> None:
        self._seed(registry)
        assert registry.clear_cache("react") == 2
        assert [p.name for p in registry.cache_dir.iterdir()] == ["chalk-5.3.0.json"]

    def test_clear_all(self, registry: NpmRegistry) -> None:
        self._seed(registry)
        assert registry.clear_cache() == 3
        assert registry.cache_dir.is_dir()
        assert list(registry.cache_dir.iterdir()) == []

    def test_clear_missing_cache(self, registry: NpmRegistry) -> None:
        assert registry.clear_cache() == 0
