"""
Repository identity for ecosync.

A RepositoryRef names one managed repository. Its kind is derived purely
from the shape of the identifier string, never from where the directory
resolves on disk: resolved paths live on external storage and do not keep
the PROJECTS/ marker.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional


class RepoKind(Enum):
    """The five repository kinds."""
    ENGINE = "engine"
    DOMAIN = "domain"
    BLOG = "blog"
    PROJECT = "project"
    CONTENT = "content"


# Operations that touch published web content. Projects must be on their
# site branch for these; everything else keeps the main branch.
WEB_OPERATIONS = frozenset({"status", "commit", "push", "pull", "site"})


@dataclass(frozen=True)
class EcosystemLayout:
    """Naming conventions of an ecosystem root."""
    root_name: str = "Website"
    engine: str = "getHarsh"
    content: str = "master_posts"
    domain_suffix: str = ".in"
    blog_prefix: str = "blog."
    projects_dir: str = "PROJECTS"
    main_branch: str = "main"
    site_branch: str = "site"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'EcosystemLayout':
        eco = config.get('ecosystem', {})
        git = config.get('git', {})
        return cls(
            root_name=eco.get('root_name', cls.root_name),
            engine=eco.get('engine', cls.engine),
            content=eco.get('content', cls.content),
            domain_suffix=eco.get('domain_suffix', cls.domain_suffix),
            blog_prefix=eco.get('blog_prefix', cls.blog_prefix),
            projects_dir=eco.get('projects_dir', cls.projects_dir),
            main_branch=git.get('main_branch', cls.main_branch),
            site_branch=git.get('site_branch', cls.site_branch),
        )

    def project_identifier(self, parent: str, name: str) -> str:
        return f"{parent}/{self.projects_dir}/{name}"


def is_blog_name(name: str, layout: EcosystemLayout) -> bool:
    """True for ``blog.<label>.in`` where label has no further dots."""
    if "/" in name:
        return False
    if not (name.startswith(layout.blog_prefix) and name.endswith(layout.domain_suffix)):
        return False
    label = name[len(layout.blog_prefix):len(name) - len(layout.domain_suffix)]
    return bool(label) and "." not in label


def is_domain_name(name: str, layout: EcosystemLayout) -> bool:
    """True for ``<name>.in`` that is not a blog."""
    if "/" in name or name.startswith(layout.blog_prefix):
        return False
    return name.endswith(layout.domain_suffix) and len(name) > len(layout.domain_suffix)


def classify(identifier: str, layout: Optional[EcosystemLayout] = None) -> Optional[RepoKind]:
    """
    Classify an identifier by its shape.

    Returns None for identifiers that are not part of the ecosystem.
    """
    layout = layout or EcosystemLayout()

    if identifier in (layout.root_name, layout.engine):
        return RepoKind.ENGINE
    if identifier == layout.content:
        return RepoKind.CONTENT

    marker = f"/{layout.projects_dir}/"
    if marker in identifier:
        parent, _, name = identifier.partition(marker)
        if parent and name and "/" not in name:
            return RepoKind.PROJECT
        return None

    if is_blog_name(identifier, layout):
        return RepoKind.BLOG
    if is_domain_name(identifier, layout):
        return RepoKind.DOMAIN
    return None


@dataclass(frozen=True)
class RepositoryRef:
    """
    One managed repository.

    Constructed fresh on every discovery pass and never mutated.
    """
    identifier: str
    kind: RepoKind
    resolved_path: Path
    main_branch: str = field(default="main", compare=False)
    site_branch: str = field(default="site", compare=False)

    @classmethod
    def create(cls, identifier: str, resolved_path: Path,
               layout: Optional[EcosystemLayout] = None) -> 'RepositoryRef':
        """Build a ref, deriving kind from the identifier."""
        layout = layout or EcosystemLayout()
        kind = classify(identifier, layout)
        if kind is None:
            raise ValueError(f"'{identifier}' is not an ecosystem identifier")
        return cls(
            identifier=identifier,
            kind=kind,
            resolved_path=Path(resolved_path),
            main_branch=layout.main_branch,
            site_branch=layout.site_branch,
        )

    @property
    def name(self) -> str:
        """Last path component of the identifier."""
        return self.identifier.rsplit("/", 1)[-1]

    @property
    def parent_domain(self) -> Optional[str]:
        """For a project, the domain or blog it lives under."""
        if self.kind != RepoKind.PROJECT:
            return None
        return self.identifier.split("/", 1)[0]

    def required_branch(self, operation: str = "commit") -> Optional[str]:
        """
        Branch this repository must be on for an operation.

        Projects keep development on any branch; only web-content
        operations pin them to the site branch. None means "any branch".
        """
        if self.kind == RepoKind.PROJECT:
            return self.site_branch if operation in WEB_OPERATIONS else None
        return self.main_branch

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identifier': self.identifier,
            'kind': self.kind.value,
            'path': str(self.resolved_path),
        }
