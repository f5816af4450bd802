"""Compatify CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from compatify import __version__
from compatify.config import load_config
from compatify.graph import GraphBuildError
from compatify.parser import ManifestError
from compatify.plugins import PluginError, default_manager
from compatify.registry import NpmRegistry, RegistryError
from compatify.rules import RulesError


@click.group()
@click.version_option(version=__version__, prog_name="compatify")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Compatify - detect dependency compatibility issues before they break your build."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _run_check(
    ctx: click.Context,
    project_root: Path,
    *,
    language: str | None,
    rules: Path | None,
    node_version: str | None,
    fmt: str | None,
) -> None:
    """Shared body of ``check`` and ``scan``."""
    from compatify.reporters import format_json, format_porcelain, format_rich

    config = load_config(project_root).merged(
        language=language,
        rules_path=rules,
        node_version=node_version.lstrip("v") if node_version else None,
    )

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    manager = default_manager()
    try:
        report = manager.check_project(
            project_root,
            language=config.language,
            rules_path=config.rules_path,
            node_version=config.node_version,
        )
    except (PluginError, ManifestError, GraphBuildError, RulesError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "json":
        output = format_json(report)
    elif fmt == "porcelain":
        output = format_porcelain(report)
    else:
        output = format_rich(report, verbose=ctx.obj.get("verbose", False))
    if output:
        click.echo(output)

    if report.result.summary().errors > 0:
        sys.exit(1)


_check_options = [
    click.option(
        "--language", "-l", default=None, help="Ecosystem to use (e.g. nodejs); auto-detected."
    ),
    click.option(
        "--rules",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Rules database (YAML or JSON). Default: bundled rules.",
    ),
    click.option(
        "--node-version",
        default=None,
        help="Node.js version to check against (default: `node --version`).",
    ),
    click.option(
        "--format",
        "fmt",
        type=click.Choice(["rich", "json", "porcelain"]),
        default=None,
        help="Output format (default: rich if TTY, porcelain if piped).",
    ),
    click.option("--json", "-j", "as_json", is_flag=True, help="Shortcut for --format json."),
]


def _with_check_options(func):  # type: ignore[no-untyped-def]
    for option in reversed(_check_options):
        func = option(func)
    return func


@main.command()
@_with_check_options
@click.pass_context
def check(
    ctx: click.Context,
    *,
    language: str | None,
    rules: Path | None,
    node_version: str | None,
    fmt: str | None,
    as_json: bool,
) -> None:
    """Check the project in the current directory.

    Exit codes: 0 = no errors, 1 = compatibility errors found,
    2 = configuration or parse error.
    """
    _run_check(
        ctx,
        Path.cwd(),
        language=language,
        rules=rules,
        node_version=node_version,
        fmt="json" if as_json else fmt,
    )


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@_with_check_options
@click.pass_context
def scan(
    ctx: click.Context,
    path: Path,
    *,
    language: str | None,
    rules: Path | None,
    node_version: str | None,
    fmt: str | None,
    as_json: bool,
) -> None:
    """Check the project at PATH."""
    _run_check(
        ctx,
        path.resolve(),
        language=language,
        rules=rules,
        node_version=node_version,
        fmt="json" if as_json else fmt,
    )


@main.command()
def languages() -> None:
    """List supported ecosystems."""
    manager = default_manager()
    for info in manager.plugins_info():
        click.echo(f"{info['language']}")
        click.echo(f"  {info.get('description') or info['name']}")
        click.echo(f"  Manifest files: {', '.join(info['manifest_files'])}")


def _registry(project_root: Path) -> NpmRegistry:
    config = load_config(project_root)
    return NpmRegistry(
        cache_dir=config.cache_dir,
        cache_ttl=config.cache_ttl,
        use_cache=config.use_cache,
    )


@main.command()
@click.argument("name")
@click.option("--version", "version", default="latest", help="Version or dist-tag.")
@click.option("--versions", "list_versions", is_flag=True, help="List all published versions.")
def show(*, name: str, version: str, list_versions: bool) -> None:
    """Show registry metadata for package NAME as JSON."""
    registry = _registry(Path.cwd())
    try:
        data: object = (
            registry.fetch_versions(name) if list_versions else registry.fetch_manifest(name, version)
        )
    except RegistryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@main.command("clear-cache")
@click.argument("name", required=False, default=None)
def clear_cache(*, name: str | None) -> None:
    """Remove cached registry manifests (all, or only NAME's)."""
    removed = _registry(Path.cwd()).clear_cache(name)
    click.echo(f"Removed {removed} cached manifest(s)")


@main.command("cache-stats")
def cache_stats() -> None:
    """Show registry cache statistics as JSON."""
    click.echo(json.dumps(_registry(Path.cwd()).cache_stats(), indent=2))
