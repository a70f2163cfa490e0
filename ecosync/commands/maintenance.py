"""
Maintenance commands: init-repo, reset, debug.
"""

import click

from ..cli_utils import (
    group_option, handle_errors, parse_groups, print_json, print_summary,
    raise_for_summary, run_operation, yes_option,
)
from ..render import render_debug
from ..services.git_ops_service import GitOrchestrator


@click.command('init-repo')
@click.argument('name')
@click.pass_obj
@handle_errors
def init_repo_cmd(ctx, name):
    """Initialize NAME as a git repository on main.

    Domains, blogs and projects also get a .gitignore covering local
    output and OS artifacts.
    """
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(orchestrator.init_repo(name), orchestrator)
    print_summary(summary)
    raise_for_summary(summary)


@click.command('reset')
@click.option('--hard', is_flag=True, help='Discard all local changes and untracked files')
@yes_option
@group_option
@click.pass_obj
@handle_errors
def reset_cmd(ctx, hard, yes, groups):
    """Unstage changes in every repository, or discard them with --hard.

    A hard reset cleans untracked files with 'git clean -fd'; ignored
    files and symlinks are never removed.
    """
    if hard and not yes:
        click.confirm("Discard ALL uncommitted changes in every repository?", abort=True)
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(orchestrator.reset(hard=hard, groups=parse_groups(groups)), orchestrator)
    print_summary(summary)
    raise_for_summary(summary)


@click.command('debug')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_obj
@handle_errors
def debug_cmd(ctx, json_output):
    """Show environment, symlink resolution and repository facts."""
    info = GitOrchestrator(ctx).debug_info()
    if json_output:
        print_json(info)
    else:
        render_debug(info)
