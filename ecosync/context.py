"""
Runtime context for ecosync.

Everything that used to be process-wide state (ecosystem root, mode,
naming conventions, git and port settings) is resolved once at startup
into an immutable Context that is passed to every service.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .domain.repository import EcosystemLayout
from .exit_codes import ConfigError

logger = logging.getLogger(__name__)

MODE_ENV_VAR = "WEBSITE_MODE"
DEV_HINT_ENV_VAR = "NODE_ENV"
CI_ENV_VARS = ("CI", "GITHUB_ACTIONS")


class Mode(Enum):
    """Local development vs deployed production."""
    LOCAL = "local"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: str) -> 'Mode':
        normalized = value.strip().lower()
        if normalized in ("local", "development", "dev"):
            return cls.LOCAL
        if normalized in ("production", "prod"):
            return cls.PRODUCTION
        raise ConfigError(f"Invalid mode '{value}' (expected 'local' or 'production')")

    @property
    def scheme(self) -> str:
        return "http" if self is Mode.LOCAL else "https"

    @property
    def output_suffix(self) -> str:
        return "site_local" if self is Mode.LOCAL else "site"

    @property
    def config_suffix(self) -> str:
        return "local" if self is Mode.LOCAL else "production"

    @property
    def jekyll_env(self) -> str:
        return "development" if self is Mode.LOCAL else "production"

    @property
    def emits_cname(self) -> bool:
        return self is Mode.PRODUCTION

    @property
    def description(self) -> str:
        if self is Mode.LOCAL:
            return "Local development (localhost URLs, drafts and livereload enabled)"
        return "Production (domain URLs, optimized output, CNAME emitted)"


def _mode_from_args(args: Sequence[str]) -> Optional[str]:
    for i, arg in enumerate(args):
        if arg.startswith("--mode="):
            return arg.split("=", 1)[1]
        if arg == "--mode" and i + 1 < len(args):
            return args[i + 1]
    return None


def detect_mode(args: Sequence[str] = (), env: Optional[Mapping[str, str]] = None) -> Mode:
    """
    Derive the mode from, in order: an explicit ``--mode`` argument, the
    WEBSITE_MODE variable, CI detection, the NODE_ENV development hint.
    Defaults to production.
    """
    env = os.environ if env is None else env

    explicit = _mode_from_args(args)
    if explicit:
        return Mode.parse(explicit)

    if env.get(MODE_ENV_VAR):
        return Mode.parse(env[MODE_ENV_VAR])

    # CI never gets local-mode heuristics
    if any(env.get(name) for name in CI_ENV_VARS):
        return Mode.PRODUCTION

    hint = env.get(DEV_HINT_ENV_VAR, "").strip().lower()
    if hint in ("development", "dev"):
        return Mode.LOCAL
    if hint in ("production", "prod"):
        return Mode.PRODUCTION

    return Mode.PRODUCTION


def _has_domain_entries(directory: Path, suffix: str) -> bool:
    try:
        return any(entry.name.endswith(suffix) for entry in directory.iterdir())
    except OSError:
        return False


def resolve_root(start: Optional[Path] = None, max_levels: int = 6,
                 domain_suffix: str = ".in") -> Path:
    """
    Find the ecosystem root by walking upward from ``start``.

    The root is the first directory containing an entry named ``*<suffix>``.
    Falls back to ``start``; never raises.
    """
    try:
        start = Path(start or Path.cwd()).absolute()
    except OSError:
        return Path(".").absolute()

    candidate = start
    for _ in range(max_levels):
        if _has_domain_entries(candidate, domain_suffix):
            return candidate
        if candidate.parent == candidate:
            break
        candidate = candidate.parent

    logger.debug(f"No ecosystem root found above {start}, using it as root")
    return start


@dataclass(frozen=True)
class Context:
    """Immutable per-invocation settings shared by all services."""
    root: Path
    mode: Mode
    layout: EcosystemLayout = field(default_factory=EcosystemLayout)
    remote: str = "origin"
    git_timeout: int = 120
    review_branch: str = "review"
    protected_branches: Tuple[str, ...] = ("main", "master")
    branch_prefixes: Tuple[str, ...] = (
        "config/data", "config/schema", "engine/", "seo/", "site", "review", "main",
    )
    base_port: int = 4000
    port_range: int = 1000
    max_port_attempts: int = 100
    registry_override: Optional[Path] = None
    lock_timeout: float = 10.0
    stale_lock_seconds: float = 120.0
    kill_grace_seconds: float = 1.0

    @property
    def engine_dir(self) -> Path:
        """Real location of the engine repository."""
        return (self.root / self.layout.engine).resolve()

    @property
    def build_dir(self) -> Path:
        return self.engine_dir / "build"

    @property
    def registry_path(self) -> Path:
        if self.registry_override is not None:
            return self.registry_override
        return self.build_dir / "temp" / "jekyll-ports.json"

    # Convenience wrappers around the pure resolver functions

    def port_for(self, domain: str) -> int:
        from .paths import port_for
        return port_for(domain, self.base_port, self.port_range)

    def url_for(self, domain: str) -> str:
        from .paths import url_for
        return url_for(domain, self.mode, self.base_port, self.port_range)

    def output_dir_for(self, domain: str) -> Path:
        from .paths import output_dir_for
        return output_dir_for(self.root, domain, self.mode)

    def config_dir_for(self, domain: str) -> Path:
        from .paths import config_dir_for
        return config_dir_for(self.build_dir, domain, self.mode)


def build_context(
    config: Dict[str, Any],
    args: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    mode: Optional[Mode] = None,
    root: Optional[Path] = None,
) -> Context:
    """Construct the Context once at startup from config, arguments and environment."""
    eco = config.get('ecosystem', {})
    git = config.get('git', {})
    ports = config.get('ports', {})
    layout = EcosystemLayout.from_config(config)

    if root is None and eco.get('root'):
        root = Path(eco['root']).expanduser()
    if root is None:
        root = resolve_root(cwd, int(eco.get('search_depth', 6)), layout.domain_suffix)
    else:
        root = Path(root).expanduser().absolute()

    if mode is None:
        mode = detect_mode(args, env)

    registry = ports.get('registry')

    base_port = int(ports.get('base_port', 4000))
    port_range = int(ports.get('range', 1000))
    if port_range <= 0 or base_port <= 0 or base_port + port_range > 65536:
        raise ConfigError(f"Invalid port range {base_port}+{port_range}")

    return Context(
        root=root,
        mode=mode,
        layout=layout,
        remote=git.get('remote', 'origin'),
        git_timeout=int(git.get('timeout', 120)),
        review_branch=git.get('review_branch', 'review'),
        protected_branches=tuple(git.get('protected_branches', ('main', 'master'))),
        branch_prefixes=tuple(git.get('branch_prefixes', Context.branch_prefixes)),
        base_port=base_port,
        port_range=port_range,
        max_port_attempts=int(ports.get('max_attempts', 100)),
        registry_override=Path(registry).expanduser() if registry else None,
        lock_timeout=float(ports.get('lock_timeout_seconds', 10)),
        stale_lock_seconds=float(ports.get('stale_lock_seconds', 120)),
        kill_grace_seconds=float(ports.get('kill_grace_seconds', 1)),
    )
