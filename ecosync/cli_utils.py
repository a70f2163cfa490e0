"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import signal
import sys
from functools import wraps
from typing import Any, Generator, Iterable, List, Optional

import click
from rich.console import Console
from rich.markup import escape

from .config import configure_logging, load_config
from .context import Context, build_context
from .domain.operation import OperationSummary
from .domain.sync import SyncGroup
from .exit_codes import (
    INTERRUPTED,
    CommandError,
    MergeConflictError,
    PartialFailureError,
    get_exit_code_for_exception,
)

console = Console()
err_console = Console(stderr=True)


def handle_errors(func):
    """
    Decorator that maps exceptions to exit codes:
    - CommandError and subclasses exit with their own code
    - KeyboardInterrupt (Ctrl+C or SIGTERM) exits 130
    - anything else exits with the code for its exception type
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            err_console.print("[yellow]Interrupted[/yellow]")
            sys.exit(INTERRUPTED)
        except (click.ClickException, click.Abort):
            raise
        except CommandError as e:
            err_console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(e.exit_code)
        except Exception as e:
            err_console.print(f"[red]Command failed:[/red] {escape(str(e))}")
            sys.exit(get_exit_code_for_exception(e))
    return wrapper


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


def install_signal_handlers() -> None:
    """Make SIGTERM unwind like Ctrl+C so branch restores and port releases run."""
    signal.signal(signal.SIGTERM, _raise_interrupt)


def ensure_context(click_ctx: click.Context, mode: Optional[str] = None,
                   root: Optional[str] = None, debug: bool = False) -> Context:
    """Build the runtime Context once per invocation and store it on click's object."""
    root_ctx = click_ctx.find_root()
    if isinstance(root_ctx.obj, Context):
        return root_ctx.obj
    config = load_config()
    configure_logging(config, debug)
    ctx = build_context(config, args=[f"--mode={mode}"] if mode else (), root=root)
    root_ctx.obj = ctx
    return ctx


def parse_groups(values: Iterable[str]) -> Optional[List[SyncGroup]]:
    """Convert --group options to SyncGroups; None selects every group."""
    groups = [SyncGroup.parse(value) for value in values]
    return groups or None


def run_operation(operation: Generator[str, None, Any], owner: Any) -> OperationSummary:
    """Print every progress line, then return the owner's last_result."""
    for line in operation:
        console.print(line, highlight=False, markup=False)
    return owner.last_result


def print_summary(summary: OperationSummary) -> None:
    colour = {"failed": "red", "completed": "green"}.get(summary.outcome, "yellow")
    console.print(
        f"[{colour}]{summary.operation}: {summary.outcome}[/{colour}] "
        f"({summary.successful} done, {summary.skipped} skipped, {summary.failed} failed)"
    )


def raise_for_summary(summary: OperationSummary) -> None:
    """Turn failed repositories into the matching exit code."""
    if summary.failed == 0:
        return
    conflicts = [d.identifier for d in summary.details if d.metadata.get('conflict')]
    if conflicts:
        raise MergeConflictError(f"Resolve conflicts manually in: {', '.join(conflicts)}")
    raise PartialFailureError(
        "; ".join(summary.errors) or f"{summary.failed} repositories failed",
        succeeded=summary.successful,
        failed=summary.failed,
    )


def print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, default=str), flush=True)


group_option = click.option(
    '--group', '-g', 'groups', multiple=True,
    type=click.Choice([g.value for g in SyncGroup]),
    help='Limit to a sync group (repeatable; default: all)',
)

yes_option = click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
