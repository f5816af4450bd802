"""Rules store: parse and validate the compatibility rules database."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from collections.abc import Mapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_SEVERITIES: frozenset[str] = frozenset({"error", "warning", "info"})
VALID_ENGINE_STATUSES: frozenset[str] = frozenset({"active", "maintenance", "end-of-life"})

_DATA_DIR = Path(__file__).parent / "data"


class RulesError(Exception):
    """Raised when the rules database is missing or malformed."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Incompatibility:
    """A counterpart package range that conflicts with the gated package."""

    package: str
    version_range: str
    reason: str
    fix: str | None = None
    severity: str = "error"


@dataclass(frozen=True)
class RuleWarning:
    """A warning raised when an engine predicate such as ``node<16.0.0`` holds."""

    condition: str
    message: str
    severity: str = "warning"


@dataclass(frozen=True)
class IncompatibilityRule:
    """Known conflicts for ``package`` versions inside ``version``."""

    package: str
    version: str
    incompatible_with: tuple[Incompatibility, ...] = ()
    warnings: tuple[RuleWarning, ...] = ()


@dataclass(frozen=True)
class DeprecationRule:
    """A package that is deprecated regardless of version."""

    package: str
    reason: str
    replacement: str | None = None
    fix: str | None = None
    severity: str = "warning"


@dataclass(frozen=True)
class EsmRule:
    """``package`` versions inside ``version`` ship as ES modules only."""

    package: str
    version: str
    message: str
    compatible_version: str
    severity: str = "error"


@dataclass(frozen=True)
class EngineStatus:
    """Lifecycle status of one Node.js major version."""

    major: int
    status: str  # "active" | "maintenance" | "end-of-life"
    eol_date: str | None = None
    message: str = ""
    severity: str = "warning"

    @property
    def is_eol(self) -> bool:
        return self.status == "end-of-life"


@dataclass(frozen=True)
class RulesStore:
    """Immutable, fully validated rules database."""

    rules: tuple[IncompatibilityRule, ...] = ()
    deprecated: tuple[DeprecationRule, ...] = ()
    esm: tuple[EsmRule, ...] = ()
    node_engines: Mapping[int, EngineStatus] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source: Path | None = None

    def engine_status(self, major_version: int) -> EngineStatus | None:
        return self.node_engines.get(major_version)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _pick(data: Mapping[str, object], *keys: str) -> object:
    """Return the first present key; rules files may use camelCase or snake_case."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _require_str(data: Mapping[str, object], context: str, *keys: str) -> str:
    value = _pick(data, *keys)
    if value is None or not isinstance(value, (str, int, float)) or not str(value).strip():
        msg = f"{context}: '{keys[0]}' is required and must be a non-empty string"
        raise ValueError(msg)
    return str(value)


def _optional_str(data: Mapping[str, object], *keys: str) -> str | None:
    value = _pick(data, *keys)
    return str(value) if value is not None else None


def _parse_severity(data: Mapping[str, object], context: str, default: str) -> str:
    raw = data.get("severity")
    if raw is None:
        return default
    severity = str(raw)
    if severity not in VALID_SEVERITIES:
        msg = f"{context}: invalid severity '{severity}', must be one of {sorted(VALID_SEVERITIES)}"
        raise ValueError(msg)
    return severity


def _as_list(value: object, context: str) -> list[Mapping[str, object]]:
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"{context} must be a list"
        raise ValueError(msg)
    for idx, item in enumerate(value):
        if not isinstance(item, dict):
            msg = f"{context}[{idx}] must be a mapping"
            raise ValueError(msg)
    return value


def _parse_incompatibility_rule(data: Mapping[str, object], context: str) -> IncompatibilityRule:
    package = _require_str(data, context, "package")
    context = f"{context} ({package})"
    version = _optional_str(data, "version") or "*"

    incompatible: list[Incompatibility] = []
    for idx, item in enumerate(
        _as_list(_pick(data, "incompatible_with", "incompatibleWith"), f"{context}.incompatible_with")
    ):
        item_ctx = f"{context}.incompatible_with[{idx}]"
        incompatible.append(
            Incompatibility(
                package=_require_str(item, item_ctx, "package"),
                version_range=_require_str(item, item_ctx, "version_range", "versionRange"),
                reason=_require_str(item, item_ctx, "reason"),
                fix=_optional_str(item, "fix"),
                severity=_parse_severity(item, item_ctx, "error"),
            )
        )

    warnings: list[RuleWarning] = []
    for idx, item in enumerate(_as_list(data.get("warnings"), f"{context}.warnings")):
        item_ctx = f"{context}.warnings[{idx}]"
        warnings.append(
            RuleWarning(
                condition=_require_str(item, item_ctx, "condition"),
                message=_require_str(item, item_ctx, "message"),
                severity=_parse_severity(item, item_ctx, "warning"),
            )
        )

    return IncompatibilityRule(
        package=package,
        version=version,
        incompatible_with=tuple(incompatible),
        warnings=tuple(warnings),
    )


def _parse_deprecation_rule(data: Mapping[str, object], context: str) -> DeprecationRule:
    package = _require_str(data, context, "package")
    context = f"{context} ({package})"
    return DeprecationRule(
        package=package,
        reason=_require_str(data, context, "reason"),
        replacement=_optional_str(data, "replacement"),
        fix=_optional_str(data, "fix"),
        severity=_parse_severity(data, context, "warning"),
    )


def _parse_esm_rule(data: Mapping[str, object], context: str) -> EsmRule:
    package = _require_str(data, context, "package")
    context = f"{context} ({package})"
    return EsmRule(
        package=package,
        version=_require_str(data, context, "version"),
        message=_require_str(data, context, "message"),
        compatible_version=_require_str(
            data, context, "compatible_version", "compatibleVersion"
        ),
        severity=_parse_severity(data, context, "error"),
    )


def _parse_engine_table(data: object, context: str) -> dict[int, EngineStatus]:
    """Parse the ``major -> status`` table of Node.js releases."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{context} must be a mapping of major version to status"
        raise ValueError(msg)

    table: dict[int, EngineStatus] = {}
    for key, entry in data.items():
        entry_ctx = f"{context}[{key}]"
        try:
            major_version = int(str(key))
        except ValueError:
            msg = f"{entry_ctx}: key must be a major version number"
            raise ValueError(msg) from None
        if not isinstance(entry, dict):
            msg = f"{entry_ctx} must be a mapping"
            raise ValueError(msg)
        status = _require_str(entry, entry_ctx, "status")
        if status not in VALID_ENGINE_STATUSES:
            msg = (
                f"{entry_ctx}: invalid status '{status}', "
                f"must be one of {sorted(VALID_ENGINE_STATUSES)}"
            )
            raise ValueError(msg)
        table[major_version] = EngineStatus(
            major=major_version,
            status=status,
            eol_date=_optional_str(entry, "eol_date", "eolDate"),
            message=_optional_str(entry, "message") or "",
            severity=_parse_severity(entry, entry_ctx, "warning"),
        )
    return table


def parse_rules(data: object, *, source: Path | None = None) -> RulesStore:
    """Validate raw rules data and build a RulesStore.

    Raises
    ------
    ValueError
        On any shape or value error, with the offending location in the message.
    """
    if not isinstance(data, dict):
        msg = "rules database must be a mapping"
        raise ValueError(msg)

    rules = tuple(
        _parse_incompatibility_rule(item, f"rules[{idx}]")
        for idx, item in enumerate(_as_list(data.get("rules"), "rules"))
    )
    deprecated = tuple(
        _parse_deprecation_rule(item, f"deprecated[{idx}]")
        for idx, item in enumerate(_as_list(data.get("deprecated"), "deprecated"))
    )
    esm = tuple(
        _parse_esm_rule(item, f"esm[{idx}]")
        for idx, item in enumerate(_as_list(data.get("esm"), "esm"))
    )

    engines_block = _pick(data, "engine_requirements", "engineRequirements")
    if engines_block is not None and not isinstance(engines_block, dict):
        msg = "engine_requirements must be a mapping"
        raise ValueError(msg)
    node_table = _parse_engine_table(
        (engines_block or {}).get("node"), "engine_requirements.node"
    )

    return RulesStore(
        rules=rules,
        deprecated=deprecated,
        esm=esm,
        node_engines=MappingProxyType(node_table),
        source=source,
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def default_rules_path() -> Path:
    """Path of the rules database bundled with the package."""
    return _DATA_DIR / "rules.yml"


def load_rules(rules_path: Path | None = None) -> RulesStore:
    """Load and validate a rules file (YAML or JSON).

    Raises
    ------
    RulesError
        If the file is missing, unreadable, not valid YAML/JSON, or malformed.
    """
    path = rules_path or default_rules_path()
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Failed to load compatibility rules from {path}: {exc}"
        raise RulesError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Failed to load compatibility rules from {path}: {exc}"
        raise RulesError(msg) from exc

    try:
        return parse_rules(data, source=path)
    except ValueError as exc:
        msg = f"Invalid compatibility rules in {path}: {exc}"
        raise RulesError(msg) from exc
