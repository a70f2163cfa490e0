"""
Port manager CLI.

Available as ``ecosync ports ...`` and as the standalone ``ecosync-ports``
script. ``allocate`` prints only the port so shell scripts can capture it:

    PORT=$(ecosync-ports allocate causality.in)
"""

import os
import subprocess
import sys

import click

from ..cli_utils import console, ensure_context, handle_errors, install_signal_handlers, print_json
from ..render import render_ports_table
from ..services.port_service import PortManager


@click.group('ports')
@click.option('--mode', type=click.Choice(['local', 'production']), default=None,
              help='Override mode detection')
@click.option('--root', type=click.Path(file_okay=False, path_type=str), default=None,
              help='Ecosystem root directory')
@click.pass_context
@handle_errors
def ports_cmd(click_ctx, mode, root):
    """Allocate and track local preview-server ports."""
    ensure_context(click_ctx, mode=mode, root=root)


@ports_cmd.command('allocate')
@click.argument('domain')
@click.argument('force_word', metavar='[force]', required=False, type=click.Choice(['force']))
@click.option('--force', '-f', is_flag=True, help='Replace an allocation held by a running server')
@click.option('--pid', type=int, default=None,
              help='Owning process (default: the calling shell)')
@click.pass_obj
@handle_errors
def allocate_cmd(ctx, domain, force_word, force, pid):
    """Allocate a port for DOMAIN and print it."""
    allocation = PortManager(ctx).allocate(
        domain,
        force=force or force_word == 'force',
        pid=pid if pid is not None else os.getppid(),
    )
    click.echo(allocation.port)


@ports_cmd.command('release')
@click.argument('domain')
@click.argument('kill_word', metavar='[kill]', required=False, type=click.Choice(['kill']))
@click.option('--kill', '-k', is_flag=True, help='Stop the server process as well')
@click.pass_obj
@handle_errors
def release_cmd(ctx, domain, kill_word, kill):
    """Release the port held by DOMAIN."""
    allocation = PortManager(ctx).release(domain, kill=kill or kill_word == 'kill')
    if allocation is None:
        console.print(f"[yellow]No allocation for {domain}[/yellow]")
    else:
        console.print(f"[green]Released port {allocation.port} ({domain})[/green]")


@ports_cmd.command('list')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSONL')
@click.pass_obj
@handle_errors
def list_cmd(ctx, json_output):
    """List live allocations (stale entries are removed first)."""
    allocations = PortManager(ctx).list()
    if json_output:
        for allocation in allocations:
            print_json({'domain': allocation.domain, **allocation.to_dict()})
    else:
        render_ports_table(allocations)


@ports_cmd.command('status')
@click.argument('domain', required=False)
@click.pass_obj
@handle_errors
def status_cmd(ctx, domain):
    """Show DOMAIN's allocation, or every allocation."""
    manager = PortManager(ctx)
    if domain is None:
        render_ports_table(manager.list())
        return
    allocation = manager.status(domain)
    if allocation is None:
        console.print(f"{domain}: [dim]not running[/dim] (preferred port {ctx.port_for(domain)})")
    else:
        console.print(f"{domain}: [green]running[/green] on port {allocation.port} "
                      f"(PID {allocation.owner_pid}, since {allocation.started_at})")


@ports_cmd.command('killall')
@click.pass_obj
@handle_errors
def killall_cmd(ctx):
    """Stop every registered server and clear the registry."""
    stopped = PortManager(ctx).killall()
    for allocation in stopped:
        console.print(f"Stopped {allocation.domain} (port {allocation.port}, PID {allocation.owner_pid})")
    console.print(f"[green]{len(stopped)} server(s) stopped[/green]")


@ports_cmd.command('cleanup')
@click.pass_obj
@handle_errors
def cleanup_cmd(ctx):
    """Remove registry entries whose process has exited."""
    removed = PortManager(ctx).cleanup()
    if removed:
        console.print(f"Removed stale entries: {', '.join(removed)}")
    else:
        console.print("[dim]No stale entries[/dim]")


@ports_cmd.command('serve', context_settings={'ignore_unknown_options': True})
@click.argument('domain')
@click.argument('command', nargs=-1, required=True, type=click.UNPROCESSED)
@click.option('--force', '-f', is_flag=True, help='Replace an existing allocation')
@click.pass_obj
@handle_errors
def serve_cmd(ctx, domain, command, force):
    """Run COMMAND with a port allocated for DOMAIN.

    Occurrences of {port} in COMMAND are replaced and PORT is exported.
    The port is released when the command exits or is interrupted.

    \b
    Example:
        ecosync ports serve causality.in -- bundle exec jekyll serve --port {port}
    """
    manager = PortManager(ctx)
    with manager.serving(domain, force=force, command=" ".join(command)) as allocation:
        port = str(allocation.port)
        argv = [part.replace('{port}', port) for part in command]
        console.print(f"[cyan]{domain}[/cyan] on http://localhost:{port}", highlight=False)
        process = subprocess.Popen(argv, env=dict(os.environ, PORT=port))
        try:
            code = process.wait()
        except KeyboardInterrupt:
            process.terminate()
            try:
                process.wait(timeout=ctx.kill_grace_seconds * 5)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
            raise
    sys.exit(code)


def main():
    install_signal_handlers()
    ports_cmd()


if __name__ == "__main__":
    main()
