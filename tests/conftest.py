"""
Shared fixtures: real git repositories linked into an ecosystem root.

Layout built by ``ecosystem``::

    storage/                  repositories live outside the root
      alpha/                  alpha.in (with PROJECTS/tool -> storage/tool)
      blog/                   blog.alpha.in
      engine/                 getHarsh (with master_posts -> storage/content)
      content/                master_posts
      tool/                   alpha.in/PROJECTS/tool
    root/                     Website, a git repo of its own
      alpha.in -> storage/alpha
      blog.alpha.in -> storage/blog
      getHarsh -> storage/engine
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from ecosync.context import Context, Mode
from ecosync.domain.repository import EcosystemLayout
from ecosync.services.discovery_service import discover


@pytest.fixture(autouse=True)
def git_identity(monkeypatch, tmp_path):
    """Commit identity and an empty global config for every git subprocess."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.delenv("WEBSITE_MODE", raising=False)
    monkeypatch.delenv("ECOSYNC_CONFIG", raising=False)


def git(path, *args):
    """Run git in ``path`` and return stripped stdout, failing the test on error."""
    result = subprocess.run(["git", *args], cwd=path, capture_output=True, text=True)
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result.stdout.strip()


def make_repo(path: Path, files=None, branch="main") -> Path:
    """Create a git repository at ``path`` with one commit of ``files``."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    for name, content in (files or {"README.md": f"# {path.name}\n"}).items():
        target = path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    git(path, "add", "-A")
    git(path, "commit", "-q", "-m", "Initial commit")
    return path


class Ecosystem:
    """Paths of the fixture ecosystem plus a ready Context."""

    def __init__(self, tmp_path: Path):
        self.storage = tmp_path / "storage"
        self.root = tmp_path / "root"
        self.layout = EcosystemLayout()

        self.alpha = make_repo(self.storage / "alpha", {
            "index.md": "alpha\n",
            ".gitignore": "PROJECTS/\n",
        })
        self.blog = make_repo(self.storage / "blog", {"index.md": "blog\n"})
        self.engine = make_repo(self.storage / "engine", {
            "build.sh": "echo build\n",
            ".gitignore": "master_posts\n",
        })
        self.content = make_repo(self.storage / "content", {"pages/alpha/intro.md": "intro\n"})
        self.tool = make_repo(self.storage / "tool", {"tool.py": "print('tool')\n"})

        (self.alpha / "PROJECTS").mkdir()
        (self.alpha / "PROJECTS" / "tool").symlink_to(self.tool)
        (self.engine / "master_posts").symlink_to(self.content)

        make_repo(self.root, {".gitignore": "*.in\ngetHarsh\n"})
        (self.root / "alpha.in").symlink_to(self.alpha)
        (self.root / "blog.alpha.in").symlink_to(self.blog)
        (self.root / "getHarsh").symlink_to(self.engine)

        self.ctx = Context(
            root=self.root,
            mode=Mode.LOCAL,
            registry_override=tmp_path / "ports.json",
            lock_timeout=0.5,
        )

    def repos(self):
        return discover(self.root, self.layout)


@pytest.fixture
def ecosystem(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    return Ecosystem(tmp_path)
