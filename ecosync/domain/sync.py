"""
Sync groups and sync references.

Output repositories record, in each commit message, which engine commits
produced them. Git history is the only store for this link: the reference
is written into the message on commit and parsed back out for status.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .repository import RepoKind


class SyncGroup(Enum):
    """Repositories that are committed and pushed as one unit, in this order."""
    ENGINE = "engine"
    OUTPUT = "output"
    CONTENT = "content"

    @classmethod
    def for_kind(cls, kind: RepoKind) -> 'SyncGroup':
        if kind == RepoKind.ENGINE:
            return cls.ENGINE
        if kind == RepoKind.CONTENT:
            return cls.CONTENT
        return cls.OUTPUT

    @classmethod
    def parse(cls, value: str) -> 'SyncGroup':
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(g.value for g in cls)
            raise ValueError(f"Unknown sync group '{value}' (expected one of: {valid})")


GROUP_ORDER = (SyncGroup.ENGINE, SyncGroup.OUTPUT, SyncGroup.CONTENT)


class SyncState(Enum):
    """How an output repository's latest commit relates to the engine."""
    SYNCED = "synced"
    MANUAL = "manual"
    SYNC_ERROR = "sync_error"
    UNINITIALIZED = "uninitialized"
    NOT_APPLICABLE = "not_applicable"


SYNC_MARKER = "[Sync Reference]"
_STATE_RE = re.compile(r"^Engine state:\s*(?P<repos>.+?)\s+on branch '(?P<branch>[^']+)'\s*$")


@dataclass(frozen=True)
class SyncReference:
    """Engine repository hashes and branch at the time of an output commit."""
    engine_hashes: Tuple[Tuple[str, str], ...]
    engine_branch: str

    def to_message_block(self) -> str:
        """Block appended to an output commit message."""
        repos = " + ".join(f"{name}@{commit}" for name, commit in self.engine_hashes)
        return f"{SYNC_MARKER}\nEngine state: {repos} on branch '{self.engine_branch}'"

    def annotate(self, message: str) -> str:
        return f"{message.rstrip()}\n\n{self.to_message_block()}"

    def short(self) -> str:
        """Compact form, e.g. ``W@abc1234+G@def5678:main``."""
        repos = "+".join(f"{name[:1]}@{commit}" for name, commit in self.engine_hashes)
        return f"{repos}:{self.engine_branch}"

    @classmethod
    def parse(cls, message: str) -> Optional['SyncReference']:
        """Extract a reference from a commit message, or None if absent or malformed."""
        _, found, tail = message.partition(SYNC_MARKER)
        if not found:
            return None
        for line in tail.splitlines():
            match = _STATE_RE.match(line.strip())
            if not match:
                continue
            hashes = []
            for part in match.group('repos').split(" + "):
                name, sep, commit = part.strip().rpartition("@")
                if not sep or not name or not commit:
                    return None
                hashes.append((name, commit))
            return cls(engine_hashes=tuple(hashes), engine_branch=match.group('branch'))
        return None


def classify_message(message: Optional[str]) -> Tuple[SyncState, Optional[SyncReference]]:
    """Sync state of an output repository given its latest commit message."""
    if message is None:
        return SyncState.UNINITIALIZED, None
    reference = SyncReference.parse(message)
    if reference is not None:
        return SyncState.SYNCED, reference
    if SYNC_MARKER in message:
        return SyncState.SYNC_ERROR, None
    return SyncState.MANUAL, None
