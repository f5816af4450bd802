"""Report formatters: rich console table, JSON, and porcelain lines."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from compatify.plugins.base import ProjectReport

_SEVERITY_STYLES: dict[str, str] = {
    "error": "red",
    "warning": "yellow",
    "info": "blue",
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_rich(report: ProjectReport, *, verbose: bool = False, width: int = 100) -> str:
    """Render a report as a colored issue table with suggested fixes.

    With *verbose*, a summary and a per-type breakdown follow the table.
    """
    from io import StringIO

    from rich.console import Console
    from rich.table import Table

    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=width)

    issues = report.result.issues
    summary = report.result.summary()

    console.print()
    console.print(
        f"[bold]Analyzing [cyan]{report.language}[/cyan] project:[/bold] {report.project}"
    )
    console.print()

    if not issues:
        console.print("[green]✓ No compatibility issues found![/green]")
    else:
        if summary.errors:
            console.print(f"[red]✖ Found {_plural(summary.errors, 'error')}[/red]")
        if summary.warnings:
            console.print(f"[yellow]⚠ Found {_plural(summary.warnings, 'warning')}[/yellow]")
        console.print()

        table = Table(show_lines=False, header_style="bold cyan")
        table.add_column("Package", width=25, overflow="fold")
        table.add_column("Severity", width=10)
        table.add_column("Issue", overflow="fold")
        for issue in issues:
            package = issue.package or "node"
            if issue.version:
                package += f"@{issue.version}"
            severity = issue.severity or "warning"
            style = _SEVERITY_STYLES.get(severity, "white")
            table.add_row(package, f"[{style}]{severity}[/{style}]", issue.message)
        console.print(table)

        fixes = list(dict.fromkeys(issue.fix for issue in issues if issue.fix))
        if fixes:
            console.print()
            console.print("[bold]Suggested fixes:[/bold]")
            for fix in fixes:
                console.print(f"  [cyan]•[/cyan] {fix}")

    if verbose:
        console.print()
        console.print(f"[bold]Summary for {report.project}:[/bold]")
        console.print(f"  Node.js: {report.node_version or 'not detected'}")
        console.print(
            f"  Packages: {report.stats.total_packages} "
            f"({report.stats.direct_dependencies} direct, "
            f"{report.stats.transitive_dependencies} transitive)"
        )
        if not report.has_lock_file:
            console.print("  [yellow]No lockfile found; installed versions are unknown[/yellow]")
        console.print(f"  Total issues: {summary.total}")
        console.print(f"  [red]Errors[/red]: {summary.errors}")
        console.print(f"  [yellow]Warnings[/yellow]: {summary.warnings}")
        if summary.info:
            console.print(f"  [blue]Info[/blue]: {summary.info}")
        console.print()
        console.print("  [bold]Issue breakdown:[/bold]")
        console.print(f"  • Peer dependencies: {summary.types.peer_dependency}")
        console.print(
            f"  • Version incompatibilities: {summary.types.version_incompatibility}"
        )
        console.print(f"  • Deprecated packages: {summary.types.deprecated}")
        console.print(f"  • ESM/CommonJS conflicts: {summary.types.esm}")
        console.print(f"  • Engine mismatches: {summary.types.engine}")

    console.print()
    return buf.getvalue()


def format_json(report: ProjectReport) -> str:
    """Format a report as structured JSON (issues, summary, graph stats)."""
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def format_porcelain(report: ProjectReport) -> str:
    """One line per issue: ``severity:type:package:version:message``.

    Missing fields are empty strings.  Returns an empty string when there
    are no issues.
    """
    lines: list[str] = []
    for issue in report.result.issues:
        lines.append(
            ":".join(
                [
                    issue.severity or "warning",
                    issue.type,
                    issue.package or "",
                    issue.version or "",
                    issue.message,
                ]
            )
        )
    return "\n".join(lines)
