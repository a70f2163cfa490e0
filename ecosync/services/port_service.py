"""
Port lifecycle management for local preview servers.

Each domain gets a deterministic preferred port. Live allocations are
tracked in one JSON registry shared by every ecosync process; all
read-modify-write cycles on it happen inside a DirectoryLock. Entries
whose owning process has died are reclaimed before any allocation or
listing, so a crashed server never keeps its port.
"""

import logging
import os
import signal
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from ..context import Context
from ..domain.port import PortAllocation, utc_timestamp
from ..domain.repository import RepositoryRef
from ..exit_codes import AlreadyRunningError, InvalidDomainError, NoPortsAvailableError
from ..infra.dir_lock import DirectoryLock
from ..infra.file_store import FileStore
from ..paths import is_port_available
from .discovery_service import discover, is_ecosystem_domain

logger = logging.getLogger(__name__)


def pid_alive(pid: int) -> bool:
    """True if a process with ``pid`` exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


class PortManager:
    """
    Allocate, release and reclaim preview-server ports.

    Example:
        manager = PortManager(ctx)
        with manager.serving("causality.in") as allocation:
            run_server(port=allocation.port)
    """

    def __init__(
        self,
        ctx: Context,
        repos: Optional[Mapping[str, RepositoryRef]] = None,
        store: Optional[FileStore] = None,
        port_probe: Callable[[int], bool] = is_port_available,
        pid_probe: Callable[[int], bool] = pid_alive,
    ):
        self.ctx = ctx
        self._repos = repos
        self.store = store or FileStore(ctx.registry_path, auto_create=False)
        self.port_probe = port_probe
        self.pid_probe = pid_probe

    @property
    def repos(self) -> Mapping[str, RepositoryRef]:
        if self._repos is None:
            self._repos = discover(self.ctx.root, self.ctx.layout)
        return self._repos

    def _lock(self) -> DirectoryLock:
        return DirectoryLock(
            self.store.path.with_name(self.store.path.stem + ".lock"),
            timeout=self.ctx.lock_timeout,
            stale_after=self.ctx.stale_lock_seconds,
        )

    def _validate(self, domain: str) -> None:
        if not is_ecosystem_domain(domain, self.repos):
            known = ", ".join(sorted(
                name for name in self.repos if is_ecosystem_domain(name, self.repos)
            )) or "none"
            raise InvalidDomainError(f"'{domain}' is not an ecosystem domain (known: {known})")

    def _parse(self, data: Dict) -> Dict[str, PortAllocation]:
        allocations = {}
        for domain, entry in data.items():
            try:
                allocations[domain] = PortAllocation.from_dict(domain, entry)
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Ignoring malformed registry entry for {domain}: {entry!r}")
        return allocations

    def _drop_stale(self, data: Dict) -> List[str]:
        """Remove entries with dead owners (or unreadable content) from ``data`` in place."""
        allocations = self._parse(data)
        removed = []
        for domain in list(data):
            allocation = allocations.get(domain)
            if allocation is None or not self.pid_probe(allocation.owner_pid):
                del data[domain]
                removed.append(domain)
                logger.info(f"Reclaimed stale allocation for {domain}")
        return removed

    def _find_port(self, domain: str, taken: set) -> int:
        preferred = self.ctx.port_for(domain)
        offset = preferred - self.ctx.base_port
        for attempt in range(self.ctx.max_port_attempts):
            port = self.ctx.base_port + (offset + attempt) % self.ctx.port_range
            if port in taken:
                continue
            if self.port_probe(port):
                if port != preferred:
                    logger.info(f"Port {preferred} busy, using {port} for {domain}")
                return port
        raise NoPortsAvailableError(
            f"No available ports found for {domain} after {self.ctx.max_port_attempts} attempts"
        )

    def _terminate(self, allocation: PortAllocation) -> None:
        """SIGTERM, wait the grace period, then SIGKILL."""
        pid = allocation.owner_pid
        if pid == os.getpid():
            logger.warning(f"Not signalling own process for {allocation.domain}")
            return
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        except PermissionError as e:
            logger.warning(f"Cannot stop PID {pid} for {allocation.domain}: {e}")
            return

        deadline = time.monotonic() + self.ctx.kill_grace_seconds
        while time.monotonic() < deadline:
            if not self.pid_probe(pid):
                return
            time.sleep(0.1)

        logger.info(f"PID {pid} ignored SIGTERM, sending SIGKILL")
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    def allocate(
        self,
        domain: str,
        force: bool = False,
        pid: Optional[int] = None,
        command: str = "jekyll serve",
    ) -> PortAllocation:
        """
        Allocate a port for ``domain``.

        Raises AlreadyRunningError if a live process already holds an
        allocation for the domain, unless ``force`` is given.
        """
        self._validate(domain)

        with self._lock():
            data = self.store.read()
            self._drop_stale(data)

            if domain in data:
                existing = PortAllocation.from_dict(domain, data[domain])
                if not force:
                    raise AlreadyRunningError(
                        f"{domain} is already running on port {existing.port} "
                        f"(PID {existing.owner_pid})"
                    )
                logger.warning(f"Replacing allocation of {domain} held by PID {existing.owner_pid}")
                del data[domain]

            taken = {allocation.port for allocation in self._parse(data).values()}
            allocation = PortAllocation(
                domain=domain,
                port=self._find_port(domain, taken),
                owner_pid=pid if pid is not None else os.getpid(),
                started_at=utc_timestamp(),
                command=command,
            )
            data[domain] = allocation.to_dict()
            self.store.write(data)

        logger.debug(f"Allocated port {allocation.port} for {domain}")
        return allocation

    def release(
        self,
        domain: str,
        kill: bool = False,
        owner_pid: Optional[int] = None,
    ) -> Optional[PortAllocation]:
        """
        Remove the allocation for ``domain``, optionally stopping its process.

        With ``owner_pid`` the entry is only removed if it still belongs to
        that process. Returns the removed allocation, or None.
        """
        with self._lock():
            data = self.store.read()
            if domain not in data:
                logger.info(f"No allocation for {domain}")
                return None
            allocation = self._parse({domain: data[domain]}).get(domain)
            if allocation is not None and owner_pid is not None and allocation.owner_pid != owner_pid:
                logger.debug(f"{domain} now belongs to PID {allocation.owner_pid}, leaving it")
                return None
            if kill and allocation is not None:
                self._terminate(allocation)
            del data[domain]
            self.store.write(data)
        return allocation

    def reclaim(self) -> List[str]:
        """Remove every entry whose owning process no longer exists."""
        with self._lock():
            data = self.store.read()
            removed = self._drop_stale(data)
            if removed:
                self.store.write(data)
        return removed

    cleanup = reclaim

    def list(self) -> List[PortAllocation]:
        """Live allocations, sorted by port."""
        with self._lock():
            data = self.store.read()
            if self._drop_stale(data):
                self.store.write(data)
        return sorted(self._parse(data).values(), key=lambda a: a.port)

    def status(self, domain: str) -> Optional[PortAllocation]:
        """The live allocation for ``domain``, if any."""
        allocation = self._parse(self.store.read()).get(domain)
        if allocation is None or not self.pid_probe(allocation.owner_pid):
            return None
        return allocation

    def killall(self) -> List[PortAllocation]:
        """Stop every registered server and empty the registry."""
        with self._lock():
            allocations = list(self._parse(self.store.read()).values())
            for allocation in allocations:
                if self.pid_probe(allocation.owner_pid):
                    self._terminate(allocation)
            self.store.write({})
        return allocations

    @contextmanager
    def serving(
        self,
        domain: str,
        force: bool = False,
        pid: Optional[int] = None,
        command: str = "jekyll serve",
    ) -> Iterator[PortAllocation]:
        """Hold an allocation for the duration of a with-block, releasing it on any exit."""
        allocation = self.allocate(domain, force=force, pid=pid, command=command)
        try:
            yield allocation
        finally:
            self.release(domain, owner_pid=allocation.owner_pid)
