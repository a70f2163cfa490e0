"""
Mode-aware URL and path resolution.

All functions here are pure functions of their arguments. The only I/O is
directory creation in config_dir_for and the .gitignore upkeep helper.
"""

import logging
import socket
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .context import Mode

logger = logging.getLogger(__name__)

BASE_PORT = 4000
PORT_RANGE = 1000

GITIGNORE_ENTRIES = ("site_local/", "*.bak", ".DS_Store", "Thumbs.db", "*.tmp")


def port_for(domain: str, base_port: int = BASE_PORT, port_range: int = PORT_RANGE) -> int:
    """Preferred port for a domain: byte sum of its name folded into the range."""
    return base_port + sum(domain.encode("utf-8")) % port_range


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """OS-level check that nothing is bound to ``port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def url_for(domain: str, mode: Mode, base_port: int = BASE_PORT,
            port_range: int = PORT_RANGE) -> str:
    """Site root URL. Local URLs use the domain's preferred port."""
    if mode is Mode.LOCAL:
        return f"http://localhost:{port_for(domain, base_port, port_range)}"
    return f"https://{domain}"


def manifest_url(domain: str, mode: Mode, **kwargs) -> str:
    return f"{url_for(domain, mode, **kwargs)}/manifest.json"


def feed_url(domain: str, mode: Mode, **kwargs) -> str:
    return f"{url_for(domain, mode, **kwargs)}/feed.xml"


def sitemap_url(domain: str, mode: Mode, **kwargs) -> str:
    return f"{url_for(domain, mode, **kwargs)}/sitemap.xml"


def project_url(domain: str, project: str, mode: Mode, **kwargs) -> str:
    return f"{url_for(domain, mode, **kwargs)}/{project}/"


def project_docs_url(domain: str, project: str, mode: Mode, **kwargs) -> str:
    return f"{project_url(domain, project, mode, **kwargs)}docs/"


def cname_content(domain: str, mode: Mode) -> Optional[str]:
    """Contents of the CNAME file, or None when no CNAME should exist."""
    return domain if mode.emits_cname else None


def output_dir_for(root: Path, domain: str, mode: Mode) -> Path:
    """Where the generator writes the site for ``domain``."""
    return Path(root) / domain / mode.output_suffix


def project_site_dir(root: Path, domain: str, project: str, mode: Mode,
                     projects_dir: str = "PROJECTS") -> Path:
    return output_dir_for(root, f"{domain}/{projects_dir}/{project}", mode)


def config_dir_for(build_dir: Path, domain: str, mode: Mode) -> Path:
    """Generated config directory for ``domain``, created on first request."""
    path = Path(build_dir) / "configs" / domain / mode.config_suffix
    path.mkdir(parents=True, exist_ok=True)
    return path


def _artifact_path(build_dir: Path, kind: str, filename: str, domain: str,
                   mode: Mode, project: Optional[str], projects_dir: str) -> Path:
    target = f"{domain}/{projects_dir}/{project}" if project else domain
    return Path(build_dir) / kind / target / mode.config_suffix / filename


def build_manifest_path(build_dir: Path, domain: str, mode: Mode,
                        project: Optional[str] = None, projects_dir: str = "PROJECTS") -> Path:
    return _artifact_path(build_dir, "manifests", "manifest.json", domain, mode,
                          project, projects_dir)


def build_config_path(build_dir: Path, domain: str, mode: Mode,
                      project: Optional[str] = None, projects_dir: str = "PROJECTS") -> Path:
    return _artifact_path(build_dir, "configs", "config.json", domain, mode,
                          project, projects_dir)


def content_path(root: Path, engine: str, content: str, entity: str) -> Path:
    """Page sources for an entity inside the content repository."""
    return Path(root) / engine / content / "pages" / entity


def ecosystem_refs(current: str, sites: Iterable[str], mode: Mode, **kwargs) -> List[Dict[str, str]]:
    """Links to every other domain and blog, for cross-site navigation."""
    refs = []
    for name in sorted(sites):
        if name == current:
            continue
        refs.append({
            'name': name,
            'url': url_for(name, mode, **kwargs),
            'manifest': manifest_url(name, mode, **kwargs),
        })
    return refs


def ensure_gitignore(directory: Path, entries: Iterable[str] = GITIGNORE_ENTRIES) -> List[str]:
    """
    Make sure ``directory/.gitignore`` ignores local output and OS artifacts.

    Returns the entries that were added; an up-to-date file is not touched.
    """
    gitignore = Path(directory) / ".gitignore"
    existing = gitignore.read_text().splitlines() if gitignore.exists() else []
    present = {line.strip() for line in existing}
    missing = [entry for entry in entries if entry not in present]
    if not missing:
        return []

    lines = list(existing)
    if lines and lines[-1].strip():
        lines.append("")
    lines.append("# Added by ecosync")
    lines.extend(missing)
    gitignore.write_text("\n".join(lines) + "\n")
    logger.debug(f"Added {', '.join(missing)} to {gitignore}")
    return missing
