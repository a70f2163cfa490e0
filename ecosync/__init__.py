"""
ecosync - Orchestration for a multi-repository static-site ecosystem.

Domains, blogs and projects live in separate git repositories linked into
one ecosystem root through symlinks. ecosync discovers them, runs git
operations across them as synchronized groups, resolves mode-aware URLs
and paths, and hands out local preview ports without collisions.

Quick Start:
    from ecosync import load_config, build_context, GitOrchestrator

    ctx = build_context(load_config())
    orchestrator = GitOrchestrator(ctx)
    for line in orchestrator.commit("Update navigation"):
        print(line)
    print(orchestrator.last_result.outcome)

Sync Groups:
    engine  - orchestration root + engine repository
    output  - every domain, blog and project
    content - the independent content repository
"""

__version__ = "2.2.0"

from .config import load_config, save_config
from .context import Context, Mode, build_context, detect_mode, resolve_root
from .domain import (
    RepoKind,
    RepositoryRef,
    EcosystemLayout,
    classify,
    SyncGroup,
    SyncReference,
    SyncState,
    PortAllocation,
    OperationSummary,
)
from .services import discover, GitOrchestrator, PortManager

__all__ = [
    "__version__",
    "load_config",
    "save_config",
    "Context",
    "Mode",
    "build_context",
    "detect_mode",
    "resolve_root",
    "RepoKind",
    "RepositoryRef",
    "EcosystemLayout",
    "classify",
    "SyncGroup",
    "SyncReference",
    "SyncState",
    "PortAllocation",
    "OperationSummary",
    "discover",
    "GitOrchestrator",
    "PortManager",
]
