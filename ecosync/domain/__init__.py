"""
Domain layer for ecosync.

Contains pure domain objects with no I/O or side effects:
- RepositoryRef: One managed repository and its kind
- SyncGroup / SyncReference: Grouping and engine traceability
- PortAllocation: One registry entry
- OperationSummary: Per-repository outcomes of grouped operations
"""

from .repository import RepoKind, RepositoryRef, EcosystemLayout, classify
from .sync import SyncGroup, SyncReference, SyncState, GROUP_ORDER, classify_message
from .port import PortAllocation
from .operation import OperationStatus, OperationDetail, OperationSummary

__all__ = [
    'RepoKind',
    'RepositoryRef',
    'EcosystemLayout',
    'classify',
    'SyncGroup',
    'SyncReference',
    'SyncState',
    'GROUP_ORDER',
    'classify_message',
    'PortAllocation',
    'OperationStatus',
    'OperationDetail',
    'OperationSummary',
]
