"""
History operations on the engine group: merge-to-main and rebase.
"""

import click

from ..cli_utils import (
    handle_errors, print_summary, raise_for_summary, run_operation, yes_option,
)
from ..services.git_ops_service import GitOrchestrator


@click.command('merge-to-main')
@click.option('--fasttrack', is_flag=True, help='Merge from any branch, skipping review')
@yes_option
@click.pass_obj
@handle_errors
def merge_to_main_cmd(ctx, fasttrack, yes):
    """Merge the engine group's branch into main.

    Runs from the review branch unless --fasttrack is given. Conflicts
    are left for manual resolution (exit status 4).
    """
    orchestrator = GitOrchestrator(ctx)
    _, source = orchestrator.check_merge_to_main(fasttrack)
    if not yes:
        click.confirm(f"Merge '{source}' into '{ctx.layout.main_branch}' in the engine repositories?",
                      abort=True)
    summary = run_operation(orchestrator.merge_to_main(fasttrack), orchestrator)
    print_summary(summary)
    raise_for_summary(summary)


@click.command('rebase')
@click.argument('target', default='main')
@click.pass_obj
@handle_errors
def rebase_cmd(ctx, target):
    """Rebase the engine group onto TARGET (default: main).

    Stops at the first repository that needs manual resolution.
    Interactive rebases are not supported; use git directly.
    """
    orchestrator = GitOrchestrator(ctx)
    summary = run_operation(orchestrator.rebase(target), orchestrator)
    print_summary(summary)
    raise_for_summary(summary)
