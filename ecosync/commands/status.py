"""
Status reporting commands: status, sync-health, sync-check.
"""

import click

from ..cli_utils import console, group_option, handle_errors, parse_groups, print_json
from ..exit_codes import SyncIssueError
from ..render import render_status_short, render_status_table, render_sync_health
from ..services.git_ops_service import GitOrchestrator


@click.command('status')
@click.option('--short', '-s', is_flag=True, help='One line per repository')
@click.option('--verbose', '-v', is_flag=True, help='Include paths and last commit dates')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSONL')
@group_option
@click.pass_obj
@handle_errors
def status_cmd(ctx, short, verbose, json_output, groups):
    """Show branch, commit, changes and sync state of every repository.

    Untracked files count as changes: a repository with only new files
    is not clean.

    \b
    Examples:
        ecosync status
        ecosync status --short --group output
    """
    orchestrator = GitOrchestrator(ctx)
    statuses = orchestrator.status(parse_groups(groups))

    if json_output:
        for status in statuses:
            print_json(status.to_dict())
    elif short:
        render_status_short(statuses)
    else:
        render_status_table(statuses, verbose=verbose)


@click.command('sync-health')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_obj
@handle_errors
def sync_health_cmd(ctx, json_output):
    """Count output repositories by sync state.

    Synced commits carry a reference to the engine state that built them;
    manual commits were made outside ecosync.
    """
    health = GitOrchestrator(ctx).sync_health()
    if json_output:
        data = health.to_dict()
        data['recommendations'] = health.recommendations()
        print_json(data)
    else:
        render_sync_health(health)


@click.command('sync-check')
@click.pass_obj
@handle_errors
def sync_check_cmd(ctx):
    """Verify the engine repositories share a branch and outputs are on theirs.

    Exits with status 3 when anything is out of place.
    """
    check = GitOrchestrator(ctx).sync_check()
    for name, branch in check.engine_branches.items():
        console.print(f"{name}: {branch}", highlight=False, markup=False)
    if not check.in_sync:
        for issue in check.issues:
            console.print(f"  ✗ {issue}", highlight=False, markup=False)
        raise SyncIssueError(f"{len(check.issues)} synchronization issue(s)")
    console.print("[green]All repositories are in sync.[/green]")
