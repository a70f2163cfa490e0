"""
Repository discovery for ecosync.

Walks the ecosystem root, classifies entries by name, and resolves every
symlink chain to the real directory that holds the files. A dangling or
missing entry is skipped with a warning: partial ecosystems, where some
domains have not been synced to this machine yet, are the normal case.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..context import Context
from ..domain.repository import EcosystemLayout, RepoKind, RepositoryRef, classify

logger = logging.getLogger(__name__)

SITE_KINDS = (RepoKind.DOMAIN, RepoKind.BLOG)


def resolve_directory(entry: Path) -> Optional[Path]:
    """
    Follow every symlink in ``entry`` and return the real directory.

    Returns None for dangling links, loops, and non-directories.
    """
    try:
        resolved = Path(entry).resolve(strict=True)
    except (OSError, RuntimeError):
        return None
    return resolved if resolved.is_dir() else None


def _sorted_entries(directory: Path) -> List[Path]:
    try:
        return sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.warning(f"Cannot read {directory}: {e}")
        return []


def discover(root: Path, layout: Optional[EcosystemLayout] = None) -> Dict[str, RepositoryRef]:
    """
    Discover every domain, blog, project, engine and content repository.

    Returns a map from identifier to RepositoryRef. The orchestration
    root itself is not included; see root_repository().
    """
    layout = layout or EcosystemLayout()
    root = Path(root)
    repos: Dict[str, RepositoryRef] = {}

    def add(identifier: str, entry: Path) -> Optional[RepositoryRef]:
        resolved = resolve_directory(entry)
        if resolved is None:
            if os.path.islink(entry):
                logger.warning(f"Skipping {identifier}: dangling symlink -> {os.readlink(entry)}")
            else:
                logger.warning(f"Skipping {identifier}: {entry} is not a directory")
            return None
        ref = RepositoryRef.create(identifier, resolved, layout)
        repos[identifier] = ref
        return ref

    for entry in _sorted_entries(root):
        if classify(entry.name, layout) not in SITE_KINDS:
            continue
        site = add(entry.name, entry)
        if site is None:
            continue

        projects_dir = site.resolved_path / layout.projects_dir
        if not projects_dir.is_dir():
            continue
        for project in _sorted_entries(projects_dir):
            if project.name.startswith("."):
                continue
            add(layout.project_identifier(entry.name, project.name), project)

    engine_entry = root / layout.engine
    engine = add(layout.engine, engine_entry) if os.path.lexists(engine_entry) else None
    if engine is None:
        logger.warning(f"Engine repository '{layout.engine}' not found under {root}")

    # The content repository is a symlink nested inside the engine
    content_parent = engine.resolved_path if engine else engine_entry
    content_entry = content_parent / layout.content
    if os.path.lexists(content_entry):
        add(layout.content, content_entry)
    else:
        logger.warning(f"Content repository '{layout.content}' not found under {content_parent}")

    logger.debug(f"Discovered {len(repos)} repositories under {root}")
    return repos


def root_repository(ctx: Context) -> RepositoryRef:
    """The orchestration root, which belongs to the engine group."""
    return RepositoryRef.create(ctx.layout.root_name, ctx.root.resolve(), ctx.layout)


def is_ecosystem_domain(name: str, repos: Mapping[str, RepositoryRef]) -> bool:
    """True if ``name`` is a discovered domain or blog."""
    ref = repos.get(name)
    return ref is not None and ref.kind in SITE_KINDS


@dataclass
class SymlinkIssue:
    """A link or expected directory that does not resolve."""
    path: str
    target: Optional[str]
    problem: str

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {'path': self.path, 'target': self.target, 'problem': self.problem}


def check_symlink_integrity(root: Path, layout: Optional[EcosystemLayout] = None) -> List[SymlinkIssue]:
    """List broken links among the root entries, project entries and the engine/content pair."""
    layout = layout or EcosystemLayout()
    root = Path(root)
    issues: List[SymlinkIssue] = []

    def inspect(entry: Path) -> None:
        if entry.is_symlink() and resolve_directory(entry) is None:
            issues.append(SymlinkIssue(str(entry), os.readlink(entry), "dangling symlink"))

    for entry in _sorted_entries(root):
        if classify(entry.name, layout) not in SITE_KINDS:
            continue
        inspect(entry)
        projects_dir = entry / layout.projects_dir
        if resolve_directory(entry) is not None and projects_dir.is_dir():
            for project in _sorted_entries(projects_dir):
                inspect(project)

    engine_entry = root / layout.engine
    if not os.path.lexists(engine_entry):
        issues.append(SymlinkIssue(str(engine_entry), None, "missing"))
    else:
        inspect(engine_entry)
        content_entry = engine_entry / layout.content
        if not os.path.lexists(content_entry):
            issues.append(SymlinkIssue(str(content_entry), None, "missing"))
        else:
            inspect(content_entry)

    return issues
