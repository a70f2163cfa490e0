"""Port allocation records stored in the registry file."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """RFC3339 UTC timestamp with a trailing Z."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class PortAllocation:
    """One live preview server: which domain holds which port for which process."""
    domain: str
    port: int
    owner_pid: int
    started_at: str
    command: str = "jekyll serve"

    def to_dict(self) -> Dict[str, Any]:
        """Registry entry; the domain is the key, not part of the value."""
        return {
            'port': self.port,
            'pid': self.owner_pid,
            'started_at': self.started_at,
            'command': self.command,
        }

    @classmethod
    def from_dict(cls, domain: str, data: Dict[str, Any]) -> 'PortAllocation':
        return cls(
            domain=domain,
            port=int(data['port']),
            owner_pid=int(data['pid']),
            started_at=str(data.get('started_at', '')),
            command=str(data.get('command', 'jekyll serve')),
        )
