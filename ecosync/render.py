"""
Rendering functions for ecosync output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .domain.port import PortAllocation
from .services.git_ops_service import RepoStatus, SyncHealth

console = Console()


def _table(title: str) -> Table:
    return Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold magenta")


def _changes(status: RepoStatus) -> str:
    if status.error:
        return f"[red]{status.error}[/red]"
    if status.clean:
        return "[green]clean[/green]"
    parts = []
    if status.modified:
        parts.append(f"{status.modified} modified")
    if status.untracked:
        parts.append(f"{status.untracked} untracked")
    return f"[yellow]{', '.join(parts)}[/yellow]"


def render_status_table(statuses: List[RepoStatus], verbose: bool = False) -> None:
    """Render repository status as a pretty table."""
    if not statuses:
        console.print("[yellow]No repositories found.[/yellow]")
        return

    table = _table("Ecosystem Status")
    table.add_column("Repository", style="cyan")
    table.add_column("Group", style="dim")
    table.add_column("Branch", style="green")
    table.add_column("Commit")
    table.add_column("Changes")
    table.add_column("Sync", style="blue")
    if verbose:
        table.add_column("Path", style="dim")
        table.add_column("Last commit", style="dim")

    for status in statuses:
        branch = status.branch or "-"
        if not status.on_required_branch:
            branch = f"[red]{branch}[/red] (≠ {status.required_branch})"
        row = [
            status.identifier,
            status.group.value,
            branch,
            status.commit or "-",
            _changes(status),
            status.sync_display,
        ]
        if verbose:
            row += [status.path, status.last_commit_date or "-"]
        table.add_row(*row)

    console.print(table)


def render_status_short(statuses: List[RepoStatus]) -> None:
    for status in statuses:
        if status.error:
            console.print(f"{status.identifier}: {status.error}", highlight=False)
            continue
        marks = "clean" if status.clean else f"M{status.modified} ?{status.untracked}"
        console.print(f"{status.identifier} [{status.branch}] {marks} {status.sync_display}",
                      highlight=False, markup=False)


def render_sync_health(health: SyncHealth) -> None:
    engine = health.engine_reference.short() if health.engine_reference else "unknown"
    lines = [
        f"Engine state:   {engine}",
        f"Synced:         {health.synced}/{health.total}",
        f"Manual commits: {health.manual}",
        f"Sync errors:    {health.errors}",
        f"Uninitialized:  {health.uninitialized}",
    ]
    style = "green" if health.healthy else "yellow"
    console.print(Panel("\n".join(lines), title="Sync Health", border_style=style))
    for tip in health.recommendations():
        console.print(f"  • {tip}")


def render_branches(branches: List[Dict[str, Any]]) -> None:
    if not branches:
        console.print("[yellow]No branches found.[/yellow]")
        return
    table = _table("Branches")
    table.add_column("Branch", style="cyan")
    table.add_column("Protected")
    table.add_column("Repositories")
    table.add_column("Checked out in", style="green")
    for entry in branches:
        table.add_row(
            entry['name'],
            "[red]yes[/red]" if entry['protected'] else "",
            str(len(entry['repos'])),
            ", ".join(entry['current']),
        )
    console.print(table)


def render_site_branches(rows: List[Dict[str, Any]]) -> None:
    if not rows:
        console.print("[yellow]No projects found.[/yellow]")
        return
    table = _table("Project Site Branches")
    table.add_column("Project", style="cyan")
    table.add_column("Current branch")
    table.add_column("Site branch")
    for row in rows:
        current = row['error'] or row['branch'] or "-"
        if row['on_site']:
            current = f"[green]* {current}[/green]"
        table.add_row(row['identifier'], current, "✓" if row['site_exists'] else "[red]missing[/red]")
    console.print(table)


def render_ports_table(allocations: List[PortAllocation]) -> None:
    if not allocations:
        console.print("[yellow]No active servers.[/yellow]")
        return
    table = _table("Active Servers")
    table.add_column("Domain", style="cyan")
    table.add_column("Port", style="green")
    table.add_column("PID")
    table.add_column("Started")
    table.add_column("Command", style="dim")
    for allocation in allocations:
        table.add_row(allocation.domain, str(allocation.port), str(allocation.owner_pid),
                      allocation.started_at, allocation.command)
    console.print(table)


def render_debug(info: Dict[str, Any]) -> None:
    header = "\n".join(
        f"{label}: {info.get(key) or '-'}"
        for label, key in (
            ("Version", "version"), ("Root", "root"), ("Engine", "engine_dir"),
            ("Mode", "mode"), ("Date", "date"), ("User", "user"), ("Shell", "shell"),
            ("Git", "git_version"),
        )
    )
    console.print(Panel(header, title="ecosync debug"))

    table = _table("Repositories")
    table.add_column("Repository", style="cyan")
    table.add_column("Entry")
    table.add_column("Resolved", style="dim")
    table.add_column("Branch", style="green")
    table.add_column("Commits")
    table.add_column("Files")
    for repo in info['repositories']:
        entry = "symlink" if repo['symlink'] else "dir"
        table.add_row(repo['identifier'], entry, repo['resolved'], repo.get('branch') or "-",
                      str(repo.get('commits', "-")), str(repo.get('files', "-")))
    console.print(table)

    if info['integrity']:
        console.print("[red]Symlink problems:[/red]")
        for issue in info['integrity']:
            console.print(f"  ✗ {issue['path']} -> {issue['target'] or '?'} ({issue['problem']})")
    else:
        console.print("[green]All symlinks resolve.[/green]")

    for warning in info['warnings']:
        console.print(f"[yellow]! {warning}[/yellow]")
    for reminder in info['safety']:
        console.print(f"[dim]• {reminder}[/dim]")
