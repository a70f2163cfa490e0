"""
Operation result domain objects for ecosync.

Provides standardized result types for multi-repository operations
(commit, push, pull, branch, reset) so that every command can print a
per-repository outcome line and an aggregate summary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class OperationDetail:
    """
    Details of a single operation on one repository.

    Used to track what happened to each repo during grouped operations.
    """
    identifier: str
    repo_path: str
    status: OperationStatus
    action: str  # e.g., "committed", "pushed", "switched", "no_changes"
    group: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'identifier': self.identifier,
            'path': self.repo_path,
            'status': self.status.value,
            'action': self.action,
        }
        if self.group:
            result['group'] = self.group
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class GitCommitResult(OperationDetail):
    """Result of committing one repository."""
    commit: Optional[str] = None
    branch: Optional[str] = None
    sync_reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.commit:
            result['commit'] = self.commit
        if self.branch:
            result['branch'] = self.branch
        if self.sync_reference:
            result['sync_reference'] = self.sync_reference
        return result


@dataclass
class GitPushResult(OperationDetail):
    """Result of a git push operation."""
    remote: str = "origin"
    branch: Optional[str] = None
    up_to_date: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['remote'] = self.remote
        result['up_to_date'] = self.up_to_date
        if self.branch:
            result['branch'] = self.branch
        return result


@dataclass
class GitPullResult(OperationDetail):
    """Result of a git pull operation."""
    remote: str = "origin"
    branch: Optional[str] = None
    rebase: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['remote'] = self.remote
        result['rebase'] = self.rebase
        if self.branch:
            result['branch'] = self.branch
        return result


@dataclass
class OperationSummary:
    """
    Summary of a grouped operation across multiple repositories.

    ``outcome`` distinguishes "nothing to do" from "completed" from
    "failed" so aggregate commands never report a no-op as success.
    """
    operation: str  # e.g., "commit", "push", "pull"
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[OperationDetail] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    @property
    def outcome(self) -> str:
        if self.failed:
            return "failed"
        if self.successful:
            return "completed"
        return "nothing to do"

    def add_detail(self, detail: OperationDetail) -> None:
        """Add an operation detail and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.identifier}: {detail.error}")

    def for_identifier(self, identifier: str) -> List[OperationDetail]:
        return [d for d in self.details if d.identifier == identifier]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'operation': self.operation,
            'outcome': self.outcome,
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': list(self.errors),
        }
