"""
Project site branches.

Projects publish from a ``site`` branch whose history is disjoint from
development, so these commands create, inspect and switch it.
"""

import click

from ..cli_utils import (
    handle_errors, print_json, print_summary, raise_for_summary, run_operation,
)
from ..render import render_site_branches
from ..services.git_ops_service import GitOrchestrator


@click.group('site-branch')
def site_branch_cmd():
    """Manage project site branches."""
    pass


@site_branch_cmd.command('status')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSONL')
@click.pass_obj
@handle_errors
def site_branch_status(ctx, json_output):
    """Show each project's branch and whether it has a site branch."""
    rows = GitOrchestrator(ctx).site_branch_status()
    if json_output:
        for row in rows:
            print_json(row)
    else:
        render_site_branches(rows)


@site_branch_cmd.command('create')
@click.pass_obj
@handle_errors
def site_branch_create(ctx):
    """Create an orphan site branch with a starter config.yml in every project."""
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(orchestrator.create_site_branches(), orchestrator)
    print_summary(summary)
    raise_for_summary(summary)


@site_branch_cmd.command('switch')
@click.argument('branch', required=False)
@click.pass_obj
@handle_errors
def site_branch_switch(ctx, branch):
    """Check out BRANCH (default: site) in every project."""
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(orchestrator.switch_site_branches(branch), orchestrator)
    print_summary(summary)
    raise_for_summary(summary)
