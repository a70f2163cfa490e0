"""
Service layer for ecosync.

Contains the logic that coordinates domain objects and infrastructure:
- discover(): Repository discovery and symlink resolution
- GitOrchestrator: Grouped git operations
- PortManager: Preview-server port allocation

Services are the primary API for commands to use.
"""

from .discovery_service import discover, root_repository, check_symlink_integrity
from .git_ops_service import GitOrchestrator, RepoStatus, SyncHealth
from .port_service import PortManager

__all__ = [
    'discover',
    'root_repository',
    'check_symlink_integrity',
    'GitOrchestrator',
    'RepoStatus',
    'SyncHealth',
    'PortManager',
]
