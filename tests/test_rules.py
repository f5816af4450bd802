"""Tests for compatify.rules: parsing and loading the rules database."""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING

import pytest

from compatify.rules import (
    RulesError,
    RulesStore,
    default_rules_path,
    load_rules,
    parse_rules,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestBundledRules:
    def test_default_path_exists(self) -> None:
        assert default_rules_path().is_file()

    def test_bundled_rules_load(self) -> None:
        store = load_rules()
        assert store.source == default_rules_path()
        assert any(rule.package == "react" for rule in store.rules)
        assert any(dep.package == "node-sass" for dep in store.deprecated)
        assert any(esm.package == "chalk" for esm in store.esm)

    def test_bundled_engine_table(self) -> None:
        store = load_rules()
        status = store.engine_status(16)
        assert status is not None
        assert status.is_eol
        active = store.engine_status(24)
        assert active is not None
        assert not active.is_eol


class TestParseRules:
    def test_snake_case(self, rules_file: Path) -> None:
        store = load_rules(rules_file)
        rule = store.rules[0]
        assert rule.package == "react"
        assert rule.version == ">=18.0.0"
        assert rule.incompatible_with[0].version_range == "<18.0.0"
        assert rule.incompatible_with[0].fix == "npm install react-dom@^18.0.0"
        assert rule.warnings[0].condition == "node<16.0.0"

    def test_camel_case(self) -> None:
        store = parse_rules(
            {
                "rules": [
                    {
                        "package": "webpack",
                        "version": ">=5.0.0",
                        "incompatibleWith": [
                            {
                                "package": "webpack-cli",
                                "versionRange": "<4.0.0",
                                "reason": "too old",
                            }
                        ],
                    }
                ],
                "esm": [
                    {
                        "package": "chalk",
                        "version": ">=5.0.0",
                        "message": "ESM only",
                        "compatibleVersion": "^4.1.2",
                    }
                ],
                "engineRequirements": {
                    "node": {"14": {"status": "end-of-life", "eolDate": "2023-04-30"}}
                },
            }
        )
        assert store.rules[0].incompatible_with[0].version_range == "<4.0.0"
        assert store.esm[0].compatible_version == "^4.1.2"
        status = store.engine_status(14)
        assert status is not None
        assert status.eol_date == "2023-04-30"

    def test_default_severities(self) -> None:
        store = parse_rules(
            {
                "rules": [
                    {
                        "package": "a",
                        "version": "*",
                        "incompatible_with": [
                            {"package": "b", "version_range": "*", "reason": "r"}
                        ],
                        "warnings": [{"condition": "node<10.0.0", "message": "m"}],
                    }
                ],
                "deprecated": [{"package": "c", "reason": "old"}],
                "esm": [
                    {"package": "d", "version": "*", "message": "m", "compatible_version": "1"}
                ],
                "engine_requirements": {"node": {12: {"status": "end-of-life"}}},
            }
        )
        assert store.rules[0].incompatible_with[0].severity == "error"
        assert store.rules[0].warnings[0].severity == "warning"
        assert store.deprecated[0].severity == "warning"
        assert store.esm[0].severity == "error"
        status = store.engine_status(12)
        assert status is not None
        assert status.severity == "warning"

    def test_empty_document(self) -> None:
        store = parse_rules({})
        assert store == RulesStore(node_engines=store.node_engines)
        assert store.engine_status(18) is None

    def test_invalid_severity(self) -> None:
        with pytest.raises(ValueError, match="invalid severity 'fatal'"):
            parse_rules({"deprecated": [{"package": "x", "reason": "r", "severity": "fatal"}]})

    def test_missing_required_field(self) -> None:
        with pytest.raises(ValueError, match="reason"):
            parse_rules({"deprecated": [{"package": "x"}]})

    def test_section_must_be_list(self) -> None:
        with pytest.raises(ValueError, match="esm must be a list"):
            parse_rules({"esm": {"package": "chalk"}})

    def test_invalid_engine_status(self) -> None:
        with pytest.raises(ValueError, match="invalid status"):
            parse_rules({"engine_requirements": {"node": {18: {"status": "retired"}}}})

    def test_non_numeric_engine_key(self) -> None:
        with pytest.raises(ValueError, match="major version"):
            parse_rules({"engine_requirements": {"node": {"lts": {"status": "active"}}}})

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ValueError):
            parse_rules(["rules"])


class TestImmutability:
    def test_store_is_frozen(self, rules_file: Path) -> None:
        store = load_rules(rules_file)
        with pytest.raises(dataclasses.FrozenInstanceError):
            store.rules = ()  # type: ignore[misc]

    def test_engine_table_is_read_only(self, rules_file: Path) -> None:
        store = load_rules(rules_file)
        with pytest.raises(TypeError):
            store.node_engines[99] = store.node_engines[16]  # type: ignore[index]


class TestLoadRules:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RulesError, match="Failed to load compatibility rules"):
            load_rules(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("rules: [unclosed\n", encoding="utf-8")
        with pytest.raises(RulesError):
            load_rules(path)

    def test_undecodable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "latin1.yml"
        path.write_bytes(b"rules:\n  - package: \xff\n")
        with pytest.raises(RulesError, match="Failed to load compatibility rules"):
            load_rules(path)

    def test_shape_error_is_rules_error(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("rules: 42\n", encoding="utf-8")
        with pytest.raises(RulesError, match="Invalid compatibility rules"):
            load_rules(path)

    def test_json_rules_file(self, tmp_path: Path) -> None:
        path = tmp_path / "compatibility-rules.json"
        path.write_text(
            json.dumps(
                {
                    "deprecated": [
                        {"package": "request", "reason": "deprecated", "replacement": "axios"}
                    ]
                }
            ),
            encoding="utf-8",
        )
        store = load_rules(path)
        assert store.deprecated[0].replacement == "axios"
        assert store.source == path
