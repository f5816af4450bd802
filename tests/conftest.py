"""Shared test fixtures for Compatify."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def write_project(
    root: Path,
    package_json: dict[str, Any],
    package_lock: dict[str, Any] | None = None,
) -> Path:
    """Write package.json (and optionally package-lock.json) into *root*."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps(package_json), encoding="utf-8")
    if package_lock is not None:
        (root / "package-lock.json").write_text(json.dumps(package_lock), encoding="utf-8")
    return root


@pytest.fixture()
def make_project() -> Callable[..., Path]:
    """Factory fixture: ``make_project(root, package_json, package_lock=None)``."""
    return write_project


@pytest.fixture(autouse=True)
def _no_node_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    """Never shell out to ``node``; tests pass engine versions explicitly."""
    monkeypatch.setattr("compatify.plugins.manager.detect_node_version", lambda: None)


@pytest.fixture()
def npm_project(tmp_path: Path) -> Path:
    """A CommonJS project with a peer mismatch, a deprecated package and an ESM-only package."""
    return write_project(
        tmp_path / "app",
        {
            "name": "demo-app",
            "version": "1.0.0",
            "engines": {"node": ">=18.0.0"},
            "dependencies": {
                "react": "^18.2.0",
                "react-dom": "^17.0.0",
                "chalk": "^5.0.0",
            },
            "devDependencies": {"node-sass": "^7.0.0"},
        },
        {
            "name": "demo-app",
            "lockfileVersion": 3,
            "packages": {
                "": {"name": "demo-app", "version": "1.0.0"},
                "node_modules/react": {"version": "18.2.0"},
                "node_modules/react-dom": {
                    "version": "17.0.2",
                    "peerDependencies": {"react": "17.0.2"},
                },
                "node_modules/chalk": {"version": "5.3.0"},
                "node_modules/node-sass": {"version": "7.0.3", "dev": True},
            },
        },
    )


@pytest.fixture()
def clean_project(tmp_path: Path) -> Path:
    """A project whose installed packages raise no issues."""
    return write_project(
        tmp_path / "clean",
        {"name": "clean-app", "version": "2.0.0", "dependencies": {"lodash": "^4.17.0"}},
        {
            "lockfileVersion": 3,
            "packages": {
                "": {"name": "clean-app"},
                "node_modules/lodash": {"version": "4.17.21"},
            },
        },
    )


@pytest.fixture()
def rules_file(tmp_path: Path) -> Path:
    """A small rules database in YAML."""
    path = tmp_path / "rules.yml"
    path.write_text(
        "rules:\n"
        "  - package: react\n"
        '    version: ">=18.0.0"\n'
        "    incompatible_with:\n"
        "      - package: react-dom\n"
        '        version_range: "<18.0.0"\n'
        "        severity: error\n"
        '        reason: "react 18 requires react-dom 18"\n'
        '        fix: "npm install react-dom@^18.0.0"\n'
        "    warnings:\n"
        '      - condition: "node<16.0.0"\n'
        '        message: "react 18 tooling needs Node.js 16"\n'
        "deprecated:\n"
        "  - package: node-sass\n"
        '    reason: "node-sass is deprecated"\n'
        "    replacement: sass\n"
        '    fix: "npm uninstall node-sass && npm install sass"\n'
        "esm:\n"
        "  - package: chalk\n"
        '    version: ">=5.0.0"\n'
        '    message: "chalk 5 is ESM-only"\n'
        '    compatible_version: "^4.1.2"\n'
        "engine_requirements:\n"
        "  node:\n"
        "    16:\n"
        "      status: end-of-life\n"
        '      eol_date: "2023-09-11"\n'
        '      message: "Node.js 16 is end-of-life"\n'
        "    22:\n"
        "      status: active\n",
        encoding="utf-8",
    )
    return path
