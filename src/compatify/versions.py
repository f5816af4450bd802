"""Version matching: npm range satisfaction, majors, and engine conditions."""

from __future__ import annotations

import logging
import re
import subprocess

from semantic_version import NpmSpec, Version

logger = logging.getLogger(__name__)

# Matches engine predicates such as ``node<16.0.0`` or ``node>=18``.
_CONDITION_RE = re.compile(r"^node([<>=!]+)(.+)$")

# npm allows whitespace after an operator (``>= 10``); NpmSpec does not.
_OPERATOR_SPACE_RE = re.compile(r"(<=|>=|<|>|=|~|\^)\s+")


def _normalize_range(version_range: str) -> str:
    return _OPERATOR_SPACE_RE.sub(r"\1", version_range.strip()) or "*"


def _parse_version(version: str) -> Version:
    """Parse a version string, tolerating a leading ``v`` or ``=``."""
    cleaned = version.strip().lstrip("=v").strip()
    return Version(cleaned)


def satisfies(version: str | None, version_range: str | None) -> bool:
    """Return True if *version* falls inside the npm *version_range*.

    Invalid versions and invalid ranges never raise: they simply do not
    satisfy anything.
    """
    if not version or version_range is None:
        return False
    try:
        spec = NpmSpec(_normalize_range(version_range))
        return spec.match(_parse_version(version))
    except ValueError:
        logger.debug("Cannot match %r against range %r", version, version_range)
        return False


def major(version: str) -> int:
    """Return the major component of *version*.

    Raises
    ------
    ValueError
        If *version* is not a valid semantic version.
    """
    return int(_parse_version(version).major)


def parse_condition(condition: str) -> tuple[str, str] | None:
    """Split ``node<16.0.0`` into ``("<", "16.0.0")``; None if malformed."""
    match = _CONDITION_RE.match(condition.strip())
    if match is None:
        return None
    return match.group(1), match.group(2).strip()


def evaluate_condition(condition: str, engine_version: str | None) -> bool:
    """Evaluate an engine predicate against the running engine version.

    Fail-open: a malformed condition, an unknown engine version, or a
    range that cannot be parsed all evaluate to False.
    """
    if engine_version is None:
        return False
    parsed = parse_condition(condition)
    if parsed is None:
        logger.debug("Ignoring malformed condition %r", condition)
        return False
    operator, version = parsed
    return satisfies(engine_version, f"{operator}{version}")


def detect_node_version() -> str | None:
    """Return the version of the ``node`` binary on PATH (without ``v``).

    Returns None when Node.js is not installed or does not answer.
    """
    try:
        result = subprocess.run(
            ["node", "--version"],  # noqa: S607
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None

    if result.returncode != 0:
        return None

    version = result.stdout.strip().lstrip("v")
    return version or None
