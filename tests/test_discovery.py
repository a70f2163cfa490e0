"""Tests for repository discovery and symlink integrity checks."""

import os
from pathlib import Path

from ecosync.domain.repository import EcosystemLayout, RepoKind
from ecosync.services.discovery_service import (
    check_symlink_integrity,
    discover,
    is_ecosystem_domain,
    resolve_directory,
    root_repository,
)


def test_discovers_every_repository(ecosystem):
    repos = ecosystem.repos()

    assert set(repos) == {
        "alpha.in",
        "blog.alpha.in",
        "alpha.in/PROJECTS/tool",
        "getHarsh",
        "master_posts",
    }
    assert repos["alpha.in"].kind == RepoKind.DOMAIN
    assert repos["blog.alpha.in"].kind == RepoKind.BLOG
    assert repos["alpha.in/PROJECTS/tool"].kind == RepoKind.PROJECT
    assert repos["getHarsh"].kind == RepoKind.ENGINE
    assert repos["master_posts"].kind == RepoKind.CONTENT


def test_resolved_paths_follow_symlinks(ecosystem):
    repos = ecosystem.repos()
    assert repos["alpha.in"].resolved_path == ecosystem.alpha.resolve()
    assert repos["alpha.in/PROJECTS/tool"].resolved_path == ecosystem.tool.resolve()
    assert repos["master_posts"].resolved_path == ecosystem.content.resolve()


def test_root_is_not_discovered(ecosystem):
    repos = ecosystem.repos()
    assert "Website" not in repos
    root = root_repository(ecosystem.ctx)
    assert root.kind == RepoKind.ENGINE
    assert root.resolved_path == ecosystem.root.resolve()


def test_scenario_domain_blog_project_and_stray_directory(tmp_path):
    """Two domains' worth of entries plus an unrelated directory."""
    (tmp_path / "a.in" / "PROJECTS" / "p").mkdir(parents=True)
    (tmp_path / "blog.x.in").mkdir()
    (tmp_path / "random").mkdir()
    (tmp_path / "getHarsh" / "master_posts").mkdir(parents=True)

    repos = discover(tmp_path)

    assert set(repos) == {"a.in", "blog.x.in", "a.in/PROJECTS/p", "getHarsh", "master_posts"}
    sites = [ref for ref in repos.values() if ref.kind in (RepoKind.DOMAIN, RepoKind.BLOG, RepoKind.PROJECT)]
    assert len(sites) == 3


def test_dangling_symlink_is_skipped_with_warning(tmp_path, caplog):
    (tmp_path / "a.in").mkdir()
    (tmp_path / "gone.in").symlink_to(tmp_path / "missing")

    with caplog.at_level("WARNING", logger="ecosync"):
        repos = discover(tmp_path)

    assert "a.in" in repos
    assert "gone.in" not in repos
    assert any("dangling symlink" in record.message for record in caplog.records)


def test_chained_symlinks_resolve_to_final_target(tmp_path):
    real = tmp_path / "storage" / "real"
    real.mkdir(parents=True)
    (tmp_path / "hop").symlink_to(real)
    root = tmp_path / "root"
    root.mkdir()
    (root / "a.in").symlink_to(tmp_path / "hop")

    repos = discover(root)
    assert repos["a.in"].resolved_path == real.resolve()


def test_files_named_like_domains_are_skipped(tmp_path):
    (tmp_path / "notes.in").write_text("not a directory")
    assert "notes.in" not in discover(tmp_path)


def test_hidden_project_entries_are_ignored(tmp_path):
    (tmp_path / "a.in" / "PROJECTS" / ".cache").mkdir(parents=True)
    assert discover(tmp_path).keys() == {"a.in"}


def test_missing_engine_still_discovers_sites(tmp_path):
    (tmp_path / "a.in").mkdir()
    repos = discover(tmp_path)
    assert set(repos) == {"a.in"}


def test_custom_layout(tmp_path):
    layout = EcosystemLayout(engine="engine", content="posts", domain_suffix=".org")
    (tmp_path / "site.org").mkdir()
    (tmp_path / "site.in").mkdir()
    (tmp_path / "engine" / "posts").mkdir(parents=True)

    assert set(discover(tmp_path, layout)) == {"site.org", "engine", "posts"}


def test_resolve_directory(tmp_path):
    assert resolve_directory(tmp_path) == tmp_path.resolve()
    assert resolve_directory(tmp_path / "nope") is None
    loop = tmp_path / "loop"
    os.symlink(loop, loop)
    assert resolve_directory(loop) is None


def test_is_ecosystem_domain(ecosystem):
    repos = ecosystem.repos()
    assert is_ecosystem_domain("alpha.in", repos)
    assert is_ecosystem_domain("blog.alpha.in", repos)
    assert not is_ecosystem_domain("getHarsh", repos)
    assert not is_ecosystem_domain("alpha.in/PROJECTS/tool", repos)
    assert not is_ecosystem_domain("other.in", repos)


class TestSymlinkIntegrity:
    """Tests for check_symlink_integrity."""

    def test_healthy_ecosystem(self, ecosystem):
        assert check_symlink_integrity(ecosystem.root) == []

    def test_reports_dangling_links(self, ecosystem, tmp_path):
        (ecosystem.root / "gone.in").symlink_to(tmp_path / "missing")
        issues = check_symlink_integrity(ecosystem.root)
        assert [issue.problem for issue in issues] == ["dangling symlink"]
        assert issues[0].path == str(ecosystem.root / "gone.in")
        assert issues[0].target == str(tmp_path / "missing")

    def test_reports_missing_engine(self, tmp_path):
        (tmp_path / "a.in").mkdir()
        issues = check_symlink_integrity(tmp_path)
        assert issues[0].problem == "missing"
        assert issues[0].to_dict()['path'] == str(Path(tmp_path) / "getHarsh")
