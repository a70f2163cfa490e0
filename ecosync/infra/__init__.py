"""
Infrastructure layer for ecosync.

Contains abstractions for external systems:
- GitClient: Git command execution, scoped per repository
- FileStore: Atomic JSON file persistence
- DirectoryLock: Cross-process lock built on mkdir

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitResult, GitStatus
from .file_store import FileStore
from .dir_lock import DirectoryLock

__all__ = [
    'GitClient',
    'GitResult',
    'GitStatus',
    'FileStore',
    'DirectoryLock',
]
