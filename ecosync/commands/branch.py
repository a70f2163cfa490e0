"""
Branch management for the engine group.
"""

import click

from ..cli_utils import (
    handle_errors, print_json, print_summary, raise_for_summary, run_operation, yes_option,
)
from ..render import render_branches
from ..services.git_ops_service import GitOrchestrator


@click.command('branch')
@click.argument('name', required=False)
@click.option('--create', '-c', is_flag=True, help='Create the branch if it does not exist')
@click.option('--delete', '-d', is_flag=True, help='Delete the branch (must be merged)')
@click.option('--force-delete', '-D', is_flag=True, help='Delete the branch even if unmerged')
@click.option('--list', '-l', 'list_all', is_flag=True, help='List branches across all repositories')
@click.option('--json', 'json_output', is_flag=True, help='Output the listing as JSONL')
@yes_option
@click.pass_obj
@handle_errors
def branch_cmd(ctx, name, create, delete, force_delete, list_all, json_output, yes):
    """Switch, create, delete or list branches.

    Switching and creating only affect the engine group (orchestration
    root and engine). Domains, blogs and projects stay on their own
    branches. Branch names must start with an allowed prefix.

    \b
    Examples:
        ecosync branch engine/navbar --create
        ecosync branch review
        ecosync branch engine/navbar -d
        ecosync branch --list
    """
    orchestrator = GitOrchestrator(ctx)

    if list_all or not name:
        branches = orchestrator.list_branches()
        if json_output:
            for entry in branches:
                print_json(entry)
        else:
            render_branches(branches)
        return

    if delete or force_delete:
        orchestrator.check_deletable(name)
        if not yes:
            click.confirm(f"Delete branch '{name}' from the engine repositories?", abort=True)
        summary = run_operation(orchestrator.delete_branch(name, force=force_delete), orchestrator)
    else:
        summary = run_operation(orchestrator.branch(name, create=create), orchestrator)

    print_summary(summary)
    raise_for_summary(summary)
