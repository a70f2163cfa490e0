#!/usr/bin/env python3

import click

from ecosync import __version__
from ecosync.cli_utils import ensure_context, handle_errors, install_signal_handlers

from ecosync.commands.status import status_cmd, sync_health_cmd, sync_check_cmd
from ecosync.commands.branch import branch_cmd
from ecosync.commands.sync import commit_cmd, push_cmd, pull_cmd
from ecosync.commands.engine import merge_to_main_cmd, rebase_cmd
from ecosync.commands.maintenance import init_repo_cmd, reset_cmd, debug_cmd

# Command groups
from ecosync.commands.site_branch import site_branch_cmd
from ecosync.commands.ports import ports_cmd
from ecosync.commands.paths import paths_cmd


@click.group()
@click.version_option(version=__version__)
@click.option('--mode', type=click.Choice(['local', 'production']), default=None,
              help='Override mode detection (WEBSITE_MODE, CI)')
@click.option('--root', type=click.Path(file_okay=False, path_type=str), default=None,
              help='Ecosystem root (default: search upward from the current directory)')
@click.option('--debug', is_flag=True, help='Debug logging on stderr')
@click.pass_context
@handle_errors
def cli(click_ctx, mode, root, debug):
    """ecosync - Git orchestration for a multi-repository site ecosystem.

    Repositories are operated on in sync groups: engine (root + engine),
    output (domains, blogs, projects) and content.
    """
    ensure_context(click_ctx, mode=mode, root=root, debug=debug)


# Repository state
cli.add_command(status_cmd)
cli.add_command(sync_health_cmd)
cli.add_command(sync_check_cmd)

# Synchronized git operations
cli.add_command(branch_cmd)
cli.add_command(commit_cmd)
cli.add_command(push_cmd)
cli.add_command(pull_cmd)
cli.add_command(merge_to_main_cmd)
cli.add_command(rebase_cmd)

# Maintenance
cli.add_command(init_repo_cmd)
cli.add_command(reset_cmd)
cli.add_command(debug_cmd)

# Command groups
cli.add_command(site_branch_cmd)
cli.add_command(ports_cmd)
cli.add_command(paths_cmd)


def main():
    install_signal_handlers()
    cli()


if __name__ == "__main__":
    main()
