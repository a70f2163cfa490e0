"""
Grouped commit, push and pull.
"""

import click

from ..cli_utils import (
    group_option, handle_errors, parse_groups, print_summary, raise_for_summary, run_operation,
)
from ..services.git_ops_service import GitOrchestrator


@click.command('commit')
@click.option('--message', '-m', required=True, help='Commit message')
@click.option('--amend', is_flag=True, help='Amend the previous commit in each changed repository')
@group_option
@click.pass_obj
@handle_errors
def commit_cmd(ctx, message, amend, groups):
    """Commit changes group by group: engine, output, content.

    Output repositories are switched to their required branch first
    (projects: site, everything else: main), and their commit messages
    record the engine state. Symlinks are never staged.

    \b
    Examples:
        ecosync commit -m "Update navigation"
        ecosync commit -m "Fix typo" --group content
    """
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(
        orchestrator.commit(message, groups=parse_groups(groups), amend=amend), orchestrator
    )
    print_summary(summary)
    raise_for_summary(summary)


@click.command('push')
@click.argument('branch', required=False)
@click.option('--force', '-f', is_flag=True, help='Force push (never allowed for protected branches)')
@click.option('--set-upstream', '-u', is_flag=True, help='Set upstream tracking')
@group_option
@click.pass_obj
@handle_errors
def push_cmd(ctx, branch, force, set_upstream, groups):
    """Push every repository to its own branch.

    BRANCH applies to the engine group (default: its current branch).
    Domains and blogs always push main; projects always push site.
    """
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(
        orchestrator.push(branch, groups=parse_groups(groups), force=force, set_upstream=set_upstream),
        orchestrator,
    )
    print_summary(summary)
    raise_for_summary(summary)


@click.command('pull')
@click.argument('branch', required=False)
@click.option('--rebase', is_flag=True, help='Rebase instead of merge')
@group_option
@click.pass_obj
@handle_errors
def pull_cmd(ctx, branch, rebase, groups):
    """Pull every repository that is on the branch it tracks.

    BRANCH applies to the engine group (default: its current branch).
    """
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(
        orchestrator.pull(branch, groups=parse_groups(groups), rebase=rebase), orchestrator
    )
    print_summary(summary)
    raise_for_summary(summary)
