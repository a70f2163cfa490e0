"""
Resolver queries for build scripts.

Each subcommand prints a single value so it can be used in shell
substitutions, e.g. ``cd "$(ecosync paths output-dir causality.in)"``.
"""

from pathlib import Path

import click

from ..cli_utils import console, handle_errors
from ..paths import ensure_gitignore, project_url


@click.group('paths')
def paths_cmd():
    """Mode-aware URLs, ports and directories."""
    pass


@paths_cmd.command('url')
@click.argument('domain')
@click.option('--project', '-p', default=None, help='Project under the domain')
@click.pass_obj
@handle_errors
def url_cmd(ctx, domain, project):
    """Site URL for DOMAIN in the current mode."""
    if project:
        click.echo(project_url(domain, project, ctx.mode,
                               base_port=ctx.base_port, port_range=ctx.port_range))
    else:
        click.echo(ctx.url_for(domain))


@paths_cmd.command('output-dir')
@click.argument('domain')
@click.pass_obj
@handle_errors
def output_dir_cmd(ctx, domain):
    """Directory the generator writes DOMAIN's site to."""
    click.echo(ctx.output_dir_for(domain))


@paths_cmd.command('config-dir')
@click.argument('domain')
@click.pass_obj
@handle_errors
def config_dir_cmd(ctx, domain):
    """Generated config directory for DOMAIN (created if missing)."""
    click.echo(ctx.config_dir_for(domain))


@paths_cmd.command('port')
@click.argument('domain')
@click.pass_obj
@handle_errors
def port_cmd(ctx, domain):
    """Preferred preview port for DOMAIN."""
    click.echo(ctx.port_for(domain))


@paths_cmd.command('mode')
@click.option('--verbose', '-v', is_flag=True, help='Describe the mode')
@click.pass_obj
@handle_errors
def mode_cmd(ctx, verbose):
    """Print the active mode."""
    click.echo(ctx.mode.value)
    if verbose:
        console.print(f"[dim]{ctx.mode.description}[/dim]")


@paths_cmd.command('gitignore')
@click.argument('directory', required=False,
                type=click.Path(exists=True, file_okay=False, path_type=Path))
@handle_errors
def gitignore_cmd(directory):
    """Ensure DIRECTORY (default: current) ignores local output and OS files."""
    added = ensure_gitignore(directory or Path.cwd())
    if added:
        console.print(f"Added to .gitignore: {', '.join(added)}")
    else:
        console.print("[dim].gitignore already up to date[/dim]")
