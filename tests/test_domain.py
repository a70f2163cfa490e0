"""Tests for domain objects: repository identity, sync references, operation summaries."""

from pathlib import Path

import pytest

from ecosync.domain.operation import (
    GitCommitResult,
    OperationDetail,
    OperationStatus,
    OperationSummary,
)
from ecosync.domain.port import PortAllocation, utc_timestamp
from ecosync.domain.repository import EcosystemLayout, RepoKind, RepositoryRef, classify
from ecosync.domain.sync import SyncGroup, SyncReference, SyncState, classify_message


class TestClassify:
    """Tests for identifier classification."""

    @pytest.mark.parametrize("identifier,kind", [
        ("Website", RepoKind.ENGINE),
        ("getHarsh", RepoKind.ENGINE),
        ("master_posts", RepoKind.CONTENT),
        ("causality.in", RepoKind.DOMAIN),
        ("blog.metapology.in", RepoKind.BLOG),
        ("causality.in/PROJECTS/tool", RepoKind.PROJECT),
        ("blog.metapology.in/PROJECTS/notes", RepoKind.PROJECT),
    ])
    def test_known_shapes(self, identifier, kind):
        assert classify(identifier) == kind

    @pytest.mark.parametrize("identifier", [
        "random",
        ".in",
        "causality.com",
        "blog.a.b.in",
        "causality.in/PROJECTS/",
        "causality.in/PROJECTS/a/b",
        "/PROJECTS/tool",
    ])
    def test_unclassifiable(self, identifier):
        assert classify(identifier) is None

    def test_projects_marker_wins_over_domain_suffix(self):
        """A project named like a domain is still a project."""
        assert classify("a.in/PROJECTS/b.in") == RepoKind.PROJECT

    def test_custom_layout(self):
        layout = EcosystemLayout(engine="engine", domain_suffix=".org", projects_dir="apps")
        assert classify("engine", layout) == RepoKind.ENGINE
        assert classify("example.org", layout) == RepoKind.DOMAIN
        assert classify("example.org/apps/x", layout) == RepoKind.PROJECT
        assert classify("example.in", layout) is None


class TestRepositoryRef:
    """Tests for RepositoryRef."""

    def test_create_derives_kind(self):
        ref = RepositoryRef.create("causality.in", Path("/data/causality"))
        assert ref.kind == RepoKind.DOMAIN
        assert ref.resolved_path == Path("/data/causality")

    def test_create_rejects_unknown(self):
        with pytest.raises(ValueError):
            RepositoryRef.create("unknown", Path("/tmp"))

    def test_project_required_branch(self):
        ref = RepositoryRef.create("causality.in/PROJECTS/tool", Path("/data/tool"))
        assert ref.required_branch("commit") == "site"
        assert ref.required_branch("push") == "site"
        assert ref.required_branch("status") == "site"
        # Development on projects may happen on any branch
        assert ref.required_branch("rebase") is None

    def test_non_project_required_branch(self):
        for identifier in ("causality.in", "blog.metapology.in", "getHarsh", "master_posts"):
            ref = RepositoryRef.create(identifier, Path("/data"))
            assert ref.required_branch("commit") == "main"
            assert ref.required_branch("rebase") == "main"

    def test_layout_branches(self):
        layout = EcosystemLayout(main_branch="trunk", site_branch="gh-pages")
        project = RepositoryRef.create("a.in/PROJECTS/x", Path("/x"), layout)
        domain = RepositoryRef.create("a.in", Path("/a"), layout)
        assert project.required_branch("commit") == "gh-pages"
        assert domain.required_branch("commit") == "trunk"

    def test_name_and_parent(self):
        ref = RepositoryRef.create("causality.in/PROJECTS/tool", Path("/data/tool"))
        assert ref.name == "tool"
        assert ref.parent_domain == "causality.in"
        assert RepositoryRef.create("causality.in", Path("/d")).parent_domain is None

    def test_equality_ignores_branch_names(self):
        a = RepositoryRef.create("a.in", Path("/a"))
        b = RepositoryRef.create("a.in", Path("/a"), EcosystemLayout(main_branch="trunk"))
        assert a == b

    def test_to_dict(self):
        d = RepositoryRef.create("a.in", Path("/a")).to_dict()
        assert d == {'identifier': 'a.in', 'kind': 'domain', 'path': '/a'}


class TestSyncGroup:

    def test_for_kind(self):
        assert SyncGroup.for_kind(RepoKind.ENGINE) == SyncGroup.ENGINE
        assert SyncGroup.for_kind(RepoKind.CONTENT) == SyncGroup.CONTENT
        for kind in (RepoKind.DOMAIN, RepoKind.BLOG, RepoKind.PROJECT):
            assert SyncGroup.for_kind(kind) == SyncGroup.OUTPUT

    def test_parse(self):
        assert SyncGroup.parse("Output") == SyncGroup.OUTPUT
        with pytest.raises(ValueError):
            SyncGroup.parse("everything")


class TestSyncReference:
    """Tests for the commit-message sync reference block."""

    def reference(self):
        return SyncReference(
            engine_hashes=(("Website", "abc1234"), ("getHarsh", "def5678")),
            engine_branch="main",
        )

    def test_message_block(self):
        block = self.reference().to_message_block()
        assert block == (
            "[Sync Reference]\n"
            "Engine state: Website@abc1234 + getHarsh@def5678 on branch 'main'"
        )

    def test_annotate_and_parse(self):
        message = self.reference().annotate("Update navigation\n")
        assert message.startswith("Update navigation\n\n[Sync Reference]")
        assert SyncReference.parse(message) == self.reference()

    def test_short(self):
        assert self.reference().short() == "W@abc1234+G@def5678:main"

    def test_parse_branch_with_slash(self):
        message = "x\n\n[Sync Reference]\nEngine state: Website@a1 + getHarsh@b2 on branch 'seo/meta'"
        assert SyncReference.parse(message).engine_branch == "seo/meta"

    def test_parse_absent(self):
        assert SyncReference.parse("Just a message") is None

    def test_parse_malformed(self):
        assert SyncReference.parse("x\n\n[Sync Reference]\nEngine state: garbage") is None

    def test_classify_message(self):
        good = self.reference().annotate("msg")
        assert classify_message(good) == (SyncState.SYNCED, self.reference())
        assert classify_message("manual edit") == (SyncState.MANUAL, None)
        assert classify_message("x\n[Sync Reference]\nbroken") == (SyncState.SYNC_ERROR, None)
        assert classify_message(None) == (SyncState.UNINITIALIZED, None)


class TestOperationSummary:
    """Tests for OperationSummary outcomes."""

    def detail(self, status, error=None):
        return OperationDetail(identifier="a.in", repo_path="/a", status=status,
                               action="x", error=error)

    def test_nothing_to_do(self):
        summary = OperationSummary(operation="commit")
        summary.add_detail(self.detail(OperationStatus.SKIPPED))
        assert summary.outcome == "nothing to do"
        assert summary.success

    def test_completed(self):
        summary = OperationSummary(operation="commit")
        summary.add_detail(self.detail(OperationStatus.SKIPPED))
        summary.add_detail(self.detail(OperationStatus.SUCCESS))
        assert summary.outcome == "completed"
        assert summary.successful == 1
        assert summary.skipped == 1

    def test_failed_records_error(self):
        summary = OperationSummary(operation="push")
        summary.add_detail(self.detail(OperationStatus.SUCCESS))
        summary.add_detail(self.detail(OperationStatus.FAILED, error="rejected"))
        assert summary.outcome == "failed"
        assert not summary.success
        assert summary.errors == ["a.in: rejected"]
        assert summary.to_dict()['outcome'] == "failed"

    def test_commit_result_to_dict(self):
        result = GitCommitResult(identifier="a.in", repo_path="/a", status=OperationStatus.SUCCESS,
                                 action="committed", commit="abc1234", branch="main",
                                 sync_reference="W@1+G@2:main")
        d = result.to_dict()
        assert d['commit'] == "abc1234"
        assert d['sync_reference'] == "W@1+G@2:main"


class TestPortAllocation:

    def test_registry_entry_round_trip(self):
        allocation = PortAllocation(domain="a.in", port=4358, owner_pid=42,
                                    started_at="2024-01-01T00:00:00Z")
        entry = allocation.to_dict()
        assert entry == {'port': 4358, 'pid': 42, 'started_at': "2024-01-01T00:00:00Z",
                         'command': "jekyll serve"}
        assert PortAllocation.from_dict("a.in", entry) == allocation

    def test_from_dict_missing_port(self):
        with pytest.raises(KeyError):
            PortAllocation.from_dict("a.in", {'pid': 1})

    def test_timestamp_format(self):
        stamp = utc_timestamp()
        assert stamp.endswith("Z")
        assert len(stamp) == len("2024-01-01T00:00:00Z")
