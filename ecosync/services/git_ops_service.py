"""
Git orchestration across the ecosystem's sync groups.

Repositories are processed one at a time, each through its own working
directory; the process never changes directory. Operations that mutate
repositories are generators that yield one progress line per step and
return an OperationSummary, which is also kept in ``last_result``:

    orchestrator = GitOrchestrator(ctx)
    for line in orchestrator.commit("Update navigation"):
        print(line)
    summary = orchestrator.last_result

Hard refusals (invalid branch names, force-pushing a protected branch,
merging from the wrong branch) raise before any repository is touched.
Per-repository git failures are recorded and the batch continues.
"""

import getpass
import logging
import os
import platform
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, Generator, Iterable, List, Mapping, Optional, Sequence, Tuple

import yaml

from .. import __version__
from ..context import Context
from ..domain.operation import (
    GitCommitResult,
    GitPullResult,
    GitPushResult,
    OperationDetail,
    OperationStatus,
    OperationSummary,
)
from ..domain.repository import RepoKind, RepositoryRef, classify
from ..domain.sync import GROUP_ORDER, SyncGroup, SyncReference, SyncState, classify_message
from ..exit_codes import (
    ConfigError,
    InvalidBranchError,
    ProtectedBranchError,
    SyncIssueError,
)
from ..infra.git_client import GitClient
from ..paths import ensure_gitignore
from .discovery_service import check_symlink_integrity, discover, root_repository

logger = logging.getLogger(__name__)

_BRANCH_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]*$")

SAFETY_REMINDERS = (
    "Never run 'git clean -dfx' in the ecosystem root: it deletes ignored, symlinked repositories",
    "Hard resets clean with 'git clean -fd' and never remove symlinks",
    "Force pushes to protected branches are always refused",
)

SITE_EXCLUDES = ["README.md", "Gemfile", "Gemfile.lock", "node_modules", "vendor"]

# git commit output when there was nothing staged
NOTHING_TO_COMMIT = ("nothing to commit", "nothing added to commit", "no changes added")


def is_valid_ref_name(name: str) -> bool:
    """Conservative subset of git's ref-name rules."""
    if not name or not _BRANCH_RE.match(name):
        return False
    if ".." in name or "//" in name or "@{" in name:
        return False
    return not name.endswith(("/", ".", ".lock"))


def validate_branch_name(name: str, prefixes: Sequence[str]) -> None:
    """Raise InvalidBranchError unless ``name`` starts with an allowed prefix."""
    if not is_valid_ref_name(name):
        raise InvalidBranchError(f"Invalid branch name: {name!r}")
    if not any(name.startswith(prefix) for prefix in prefixes):
        allowed = ", ".join(f"{prefix}*" for prefix in prefixes)
        raise InvalidBranchError(f"Invalid branch name: {name} (allowed: {allowed})")


def _is_conflict(output: str) -> bool:
    return "CONFLICT" in output or "Automatic merge failed" in output or "could not apply" in output


@dataclass
class RepoStatus:
    """Status of one repository."""
    identifier: str
    kind: RepoKind
    group: SyncGroup
    path: str
    branch: Optional[str] = None
    commit: Optional[str] = None
    modified: int = 0
    untracked: int = 0
    required_branch: Optional[str] = None
    sync_state: SyncState = SyncState.NOT_APPLICABLE
    sync_reference: Optional[SyncReference] = None
    last_commit_date: Optional[str] = None
    error: Optional[str] = None

    @property
    def clean(self) -> bool:
        return self.modified == 0 and self.untracked == 0

    @property
    def on_required_branch(self) -> bool:
        return self.required_branch is None or self.branch == self.required_branch

    @property
    def sync_display(self) -> str:
        if self.error:
            return "(not initialized)"
        if self.sync_state == SyncState.NOT_APPLICABLE:
            return "N/A (engine)" if self.group == SyncGroup.ENGINE else "N/A (independent)"
        if self.sync_state == SyncState.SYNCED and self.sync_reference:
            return self.sync_reference.short()
        if self.sync_state == SyncState.MANUAL:
            return f"(manual: {self.commit} @ {self.last_commit_date})"
        if self.sync_state == SyncState.SYNC_ERROR:
            return "(sync error)"
        return "(no commits)"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'identifier': self.identifier,
            'kind': self.kind.value,
            'group': self.group.value,
            'path': self.path,
            'branch': self.branch,
            'commit': self.commit,
            'modified': self.modified,
            'untracked': self.untracked,
            'clean': self.clean,
            'sync_state': self.sync_state.value,
            'sync': self.sync_display,
        }
        if self.error:
            result['error'] = self.error
        return result


@dataclass
class SyncHealth:
    """How many output repositories carry a valid engine reference."""
    total: int = 0
    synced: int = 0
    manual: int = 0
    errors: int = 0
    uninitialized: int = 0
    engine_reference: Optional[SyncReference] = None
    details: List[RepoStatus] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.manual == 0 and self.errors == 0 and self.uninitialized == 0

    def recommendations(self) -> List[str]:
        tips = []
        if self.manual:
            tips.append(f"{self.manual} repositories have manual commits; "
                        "commit through ecosync to record the engine state")
        if self.errors:
            tips.append(f"{self.errors} repositories have a malformed sync reference; "
                        "the next ecosync commit will replace it")
        if self.uninitialized:
            tips.append(f"{self.uninitialized} repositories are not initialized; "
                        "run 'ecosync init-repo <name>' and commit")
        return tips

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'synced': self.synced,
            'manual': self.manual,
            'errors': self.errors,
            'uninitialized': self.uninitialized,
            'healthy': self.healthy,
            'engine': self.engine_reference.short() if self.engine_reference else None,
        }


@dataclass
class SyncCheck:
    """Whether engine repositories share a branch and outputs sit on theirs."""
    engine_branches: Dict[str, Optional[str]] = field(default_factory=dict)
    issues: List[str] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.issues


class GitOrchestrator:
    """
    Grouped git operations over every discovered repository.

    Groups are processed in a fixed order: engine, output, content.
    """

    def __init__(
        self,
        ctx: Context,
        repos: Optional[Mapping[str, RepositoryRef]] = None,
        git_client: Optional[GitClient] = None,
    ):
        """
        Initialize GitOrchestrator.

        Args:
            ctx: Runtime context
            repos: Discovered repositories (discovers from ctx.root if None)
            git_client: GitClient instance (creates new if None)
        """
        self.ctx = ctx
        self._repos = repos
        self.git = git_client or GitClient(timeout=ctx.git_timeout)
        self.last_result: Optional[OperationSummary] = None

    # Membership

    @property
    def repos(self) -> Mapping[str, RepositoryRef]:
        if self._repos is None:
            self._repos = discover(self.ctx.root, self.ctx.layout)
        return self._repos

    def members(self, group: SyncGroup) -> List[RepositoryRef]:
        """Repositories in ``group``, in processing order."""
        if group == SyncGroup.ENGINE:
            members = [root_repository(self.ctx)]
            engine = self.repos.get(self.ctx.layout.engine)
            if engine is not None and engine.resolved_path != members[0].resolved_path:
                members.append(engine)
            return members
        refs = [ref for ref in self.repos.values() if SyncGroup.for_kind(ref.kind) == group]
        return sorted(refs, key=lambda ref: ref.identifier)

    def select(self, groups: Optional[Iterable[SyncGroup]] = None) -> List[Tuple[SyncGroup, List[RepositoryRef]]]:
        wanted = set(groups) if groups else set(GROUP_ORDER)
        return [(group, self.members(group)) for group in GROUP_ORDER if group in wanted]

    def projects(self) -> List[RepositoryRef]:
        return [ref for ref in self.members(SyncGroup.OUTPUT) if ref.kind == RepoKind.PROJECT]

    def _skip_reason(self, ref: RepositoryRef) -> Optional[str]:
        if not ref.resolved_path.is_dir():
            return "directory missing"
        if not self.git.is_git_repo(ref.resolved_path):
            return "not a git repository"
        return None

    def _usable(self, refs: Iterable[RepositoryRef]) -> Generator[str, None, List[RepositoryRef]]:
        usable = []
        for ref in refs:
            reason = self._skip_reason(ref)
            if reason:
                logger.warning(f"Skipping {ref.identifier}: {reason}")
                yield f"  - {ref.identifier}: skipped ({reason})"
            else:
                usable.append(ref)
        return usable

    # Status

    def repo_status(self, ref: RepositoryRef) -> RepoStatus:
        group = SyncGroup.for_kind(ref.kind)
        status = RepoStatus(
            identifier=ref.identifier,
            kind=ref.kind,
            group=group,
            path=str(ref.resolved_path),
            required_branch=ref.required_branch("status") if group == SyncGroup.OUTPUT else None,
        )
        reason = self._skip_reason(ref)
        if reason:
            status.error = reason
            if group == SyncGroup.OUTPUT:
                status.sync_state = SyncState.UNINITIALIZED
            return status

        git_status = self.git.status(ref.resolved_path)
        status.branch = git_status.branch
        status.modified = git_status.modified_files
        status.untracked = git_status.untracked_files
        status.commit = self.git.head_hash(ref.resolved_path)
        if status.commit:
            status.last_commit_date = self.git.last_commit_date(ref.resolved_path)

        if group == SyncGroup.OUTPUT:
            message = self.git.last_commit_message(ref.resolved_path) if status.commit else None
            status.sync_state, status.sync_reference = classify_message(message)
        return status

    def status(self, groups: Optional[Iterable[SyncGroup]] = None) -> List[RepoStatus]:
        """Status of every repository in ``groups``, in group order."""
        report = []
        for _, refs in self.select(groups):
            report.extend(self.repo_status(ref) for ref in refs)
        return report

    def engine_reference(self) -> Optional[SyncReference]:
        """Current engine hashes and branch, as recorded in output commits."""
        hashes = []
        branch = None
        for ref in self.members(SyncGroup.ENGINE):
            if self._skip_reason(ref):
                continue
            commit = self.git.head_hash(ref.resolved_path)
            if not commit:
                continue
            hashes.append((ref.identifier, commit))
            if branch is None:
                branch = self.git.current_branch(ref.resolved_path)
        if not hashes or not branch:
            return None
        return SyncReference(engine_hashes=tuple(hashes), engine_branch=branch)

    def sync_health(self) -> SyncHealth:
        health = SyncHealth(engine_reference=self.engine_reference())
        for ref in self.members(SyncGroup.OUTPUT):
            status = self.repo_status(ref)
            health.details.append(status)
            health.total += 1
            if status.sync_state == SyncState.SYNCED:
                health.synced += 1
            elif status.sync_state == SyncState.MANUAL:
                health.manual += 1
            elif status.sync_state == SyncState.SYNC_ERROR:
                health.errors += 1
            else:
                health.uninitialized += 1
        return health

    def sync_check(self) -> SyncCheck:
        check = SyncCheck()
        for ref in self.members(SyncGroup.ENGINE):
            if self._skip_reason(ref):
                continue
            check.engine_branches[ref.identifier] = self.git.current_branch(ref.resolved_path)
        if len(set(check.engine_branches.values())) > 1:
            listing = ", ".join(f"{name}={branch}" for name, branch in check.engine_branches.items())
            check.issues.append(f"Engine repositories are on different branches ({listing})")

        for group in (SyncGroup.OUTPUT, SyncGroup.CONTENT):
            for ref in self.members(group):
                # Projects may sit on a development branch between publishes
                if ref.kind == RepoKind.PROJECT or self._skip_reason(ref):
                    continue
                required = ref.required_branch("status")
                current = self.git.current_branch(ref.resolved_path)
                if required and current != required:
                    check.issues.append(f"{ref.identifier} is on '{current}', expected '{required}'")
        return check

    # Atomic branch-scoped read

    def atomic_read(self, repo: RepositoryRef, branch: str, path: str) -> Optional[bytes]:
        """
        Read ``path`` as it exists on ``branch``.

        The repository is left on the branch it was on before the call,
        whatever happens during the read. Returns None if the file does
        not exist on that branch.
        """
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Path must be relative to the repository: {path}")
        if not is_valid_ref_name(branch):
            raise InvalidBranchError(f"Invalid branch name: {branch!r}")

        repo_path = repo.resolved_path
        original = self.git.current_branch(repo_path)
        if original is None:
            raise SyncIssueError(f"{repo.identifier}: HEAD is detached, refusing to switch branches")

        if original == branch:
            return self._read_file(repo, relative)

        try:
            result = self.git.checkout(repo_path, branch)
            if not result.ok:
                raise SyncIssueError(
                    f"{repo.identifier}: cannot check out '{branch}': {result.output}"
                )
            return self._read_file(repo, relative)
        finally:
            if self.git.current_branch(repo_path) != original:
                restore = self.git.checkout(repo_path, original)
                if not restore.ok:
                    logger.error(f"{repo.identifier}: failed to restore branch '{original}': {restore.output}")

    def _read_file(self, repo: RepositoryRef, relative: PurePosixPath) -> Optional[bytes]:
        # Committed content only: untracked or ignored files are not part of the branch
        data = self.git.show_file(repo.resolved_path, "HEAD", relative.as_posix())
        if data is None:
            logger.warning(f"{repo.identifier}: {relative} not found")
        return data

    # Staging and commit

    def stage(self, repo: RepositoryRef) -> Tuple[bool, List[str], str]:
        """
        Stage tracked modifications plus new regular files.

        Symlinks are never staged: they point at other managed repositories.
        Untracked nested repositories are left alone for the same reason.

        Returns:
            Tuple of (success, newly added paths, error output)
        """
        path = repo.resolved_path
        result = self.git.stage_tracked(path)
        if not result.ok:
            return False, [], result.output

        new_files = self.stageable_untracked(repo)
        result = self.git.add(path, new_files)
        if not result.ok:
            return False, [], result.output
        return True, new_files, ""

    def stageable_untracked(self, repo: RepositoryRef) -> List[str]:
        """Untracked regular files, leaving out symlinks and nested repositories."""
        path = repo.resolved_path
        entries = []
        for entry in self.git.untracked_files(path):
            if entry.endswith("/"):
                logger.debug(f"{repo.identifier}: not staging nested repository {entry}")
                continue
            full = path / entry
            if full.is_symlink():
                logger.debug(f"{repo.identifier}: not staging symlink {entry}")
                continue
            if full.exists():
                entries.append(entry)
        return entries

    def has_stageable_changes(self, repo: RepositoryRef) -> bool:
        """True if staging would pick anything up."""
        if self.git.status(repo.resolved_path).modified_files:
            return True
        return bool(self.stageable_untracked(repo))

    def _switch_to_required(self, ref: RepositoryRef, operation: str) -> Tuple[bool, Optional[str], str]:
        """Put an output repository on its required branch. Returns (ok, previous branch, error)."""
        required = ref.required_branch(operation)
        current = self.git.current_branch(ref.resolved_path)
        if not required or current == required:
            return True, None, ""
        if not self.git.branch_exists(ref.resolved_path, required):
            return False, current, f"branch '{required}' does not exist (run 'ecosync site-branch create')"
        result = self.git.checkout(ref.resolved_path, required)
        if not result.ok:
            return False, current, f"could not switch to '{required}': {result.output}"
        return True, current, ""

    def _commit_one(
        self,
        ref: RepositoryRef,
        group: SyncGroup,
        message: str,
        amend: bool,
    ) -> Generator[str, None, OperationDetail]:
        path = ref.resolved_path

        def detail(status, action, **kwargs):
            return GitCommitResult(
                identifier=ref.identifier,
                repo_path=str(path),
                status=status,
                action=action,
                group=group.value,
                **kwargs,
            )

        if group == SyncGroup.OUTPUT:
            ok, previous, error = self._switch_to_required(ref, "commit")
            if not ok:
                yield f"  ✗ {ref.identifier}: {error}"
                return detail(OperationStatus.FAILED, "switch_failed", error=error)
            if previous:
                yield f"  ↪ {ref.identifier}: switched '{previous}' → '{ref.required_branch('commit')}'"

        ok, new_files, error = self.stage(ref)
        if not ok:
            yield f"  ✗ {ref.identifier}: staging failed: {error}"
            return detail(OperationStatus.FAILED, "stage_failed", error=error)

        result = self.git.commit(path, message, amend=amend)
        branch = self.git.current_branch(path)
        if result.ok:
            commit = self.git.head_hash(path)
            yield f"  ✓ {ref.identifier}: committed {commit} on '{branch}'"
            return detail(OperationStatus.SUCCESS, "amended" if amend else "committed",
                          commit=commit, branch=branch,
                          metadata={'new_files': len(new_files)})
        if any(marker in result.output for marker in NOTHING_TO_COMMIT):
            yield f"  - {ref.identifier}: nothing to commit"
            return detail(OperationStatus.SKIPPED, "nothing_to_commit", branch=branch)
        yield f"  ✗ {ref.identifier}: commit failed: {result.output}"
        return detail(OperationStatus.FAILED, "commit_failed", error=result.output, branch=branch)

    def commit(
        self,
        message: str,
        groups: Optional[Iterable[SyncGroup]] = None,
        amend: bool = False,
    ) -> Generator[str, None, OperationSummary]:
        """
        Commit every group that has changes, in group order.

        Output commits carry a sync reference to the engine state as it
        stands after the engine group has been committed. Groups without
        changes are skipped entirely.
        """
        if not message or not message.strip():
            raise ConfigError("A commit message is required")

        result = OperationSummary(operation="commit")
        self.last_result = result

        for group, refs in self.select(groups):
            refs = yield from self._usable(refs)
            changed = [ref for ref in refs if self.has_stageable_changes(ref)]
            if not changed:
                yield f"{group.value}: no changes"
                for ref in refs:
                    result.add_detail(OperationDetail(
                        identifier=ref.identifier, repo_path=str(ref.resolved_path),
                        status=OperationStatus.SKIPPED, action="no_changes", group=group.value,
                    ))
                continue

            group_message = message
            reference = None
            if group == SyncGroup.OUTPUT:
                reference = self.engine_reference()
                if reference is None:
                    logger.warning("Engine state unavailable; output commits will not carry a sync reference")
                else:
                    group_message = reference.annotate(message)

            yield f"{group.value}: committing {len(changed)} of {len(refs)} repositories"
            for ref in refs:
                if ref not in changed:
                    result.add_detail(OperationDetail(
                        identifier=ref.identifier, repo_path=str(ref.resolved_path),
                        status=OperationStatus.SKIPPED, action="no_changes", group=group.value,
                    ))
                    continue
                detail = yield from self._commit_one(ref, group, group_message, amend)
                if reference is not None and isinstance(detail, GitCommitResult):
                    detail.sync_reference = reference.short()
                result.add_detail(detail)

        return result

    # Push / pull

    def _push_branch(self, ref: RepositoryRef, group: SyncGroup, branch: Optional[str]) -> Optional[str]:
        if group == SyncGroup.ENGINE:
            return branch or self.git.current_branch(ref.resolved_path)
        return ref.required_branch("push")

    def push(
        self,
        branch: Optional[str] = None,
        groups: Optional[Iterable[SyncGroup]] = None,
        force: bool = False,
        set_upstream: bool = False,
    ) -> Generator[str, None, OperationSummary]:
        """
        Push every selected repository to its own branch.

        Engine repositories push ``branch`` (default: their current branch);
        output and content repositories always push their required branch.
        """
        if branch is not None and not is_valid_ref_name(branch):
            raise InvalidBranchError(f"Invalid branch name: {branch!r}")

        plan = []
        for group, refs in self.select(groups):
            for ref in refs:
                target = None if self._skip_reason(ref) else self._push_branch(ref, group, branch)
                plan.append((group, ref, target))

        if force:
            protected = sorted({
                target for _, _, target in plan
                if target in self.ctx.protected_branches
            } | ({branch} if branch in self.ctx.protected_branches else set()))
            if protected:
                raise ProtectedBranchError(
                    f"Refusing to force-push protected branch(es): {', '.join(protected)}"
                )

        result = OperationSummary(operation="push")
        self.last_result = result
        remote = self.ctx.remote

        current_group = None
        for group, ref, target in plan:
            if group != current_group:
                current_group = group
                yield f"{group.value}:"
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return GitPushResult(identifier=ref.identifier, repo_path=str(path), status=status,
                                     action=action, group=group.value, remote=remote,
                                     branch=target, **kwargs)

            reason = self._skip_reason(ref)
            if reason:
                yield f"  - {ref.identifier}: skipped ({reason})"
                result.add_detail(detail(OperationStatus.SKIPPED, "skipped", message=reason))
                continue
            if not target:
                yield f"  - {ref.identifier}: skipped (detached HEAD)"
                result.add_detail(detail(OperationStatus.SKIPPED, "skipped", message="detached HEAD"))
                continue
            if group == SyncGroup.OUTPUT and branch and branch != target:
                logger.info(f"{ref.identifier}: pushing '{target}' instead of '{branch}'")
            if not self.git.remote_url(path, remote):
                yield f"  - {ref.identifier}: skipped (no remote)"
                result.add_detail(detail(OperationStatus.SKIPPED, "no_remote"))
                continue
            if not self.git.branch_exists(path, target):
                yield f"  - {ref.identifier}: skipped (no local branch '{target}')"
                result.add_detail(detail(OperationStatus.SKIPPED, "no_branch"))
                continue

            ok, output = self.git.push(path, remote=remote, branch=target,
                                       force=force, set_upstream=set_upstream)
            if ok and "Everything up-to-date" in output:
                yield f"  - {ref.identifier}: '{target}' up to date"
                result.add_detail(detail(OperationStatus.SKIPPED, "up_to_date", up_to_date=True))
            elif ok:
                yield f"  ✓ {ref.identifier}: pushed '{target}'"
                result.add_detail(detail(OperationStatus.SUCCESS, "pushed", message=output))
            else:
                yield f"  ✗ {ref.identifier}: push of '{target}' failed: {output}"
                result.add_detail(detail(OperationStatus.FAILED, "push_failed",
                                         error=output or "push failed"))
        return result

    def pull(
        self,
        branch: Optional[str] = None,
        groups: Optional[Iterable[SyncGroup]] = None,
        rebase: bool = False,
    ) -> Generator[str, None, OperationSummary]:
        """
        Pull every selected repository.

        A repository is only pulled while it is on the branch it pulls, so
        a remote branch is never merged into an unrelated local one.
        """
        if branch is not None and not is_valid_ref_name(branch):
            raise InvalidBranchError(f"Invalid branch name: {branch!r}")

        result = OperationSummary(operation="pull")
        self.last_result = result
        remote = self.ctx.remote

        for group, refs in self.select(groups):
            yield f"{group.value}:"
            refs = yield from self._usable(refs)
            for ref in refs:
                path = ref.resolved_path
                current = self.git.current_branch(path)
                if group == SyncGroup.ENGINE:
                    target = branch or current
                else:
                    target = ref.required_branch("pull")

                def detail(status, action, **kwargs):
                    return GitPullResult(identifier=ref.identifier, repo_path=str(path), status=status,
                                         action=action, group=group.value, remote=remote,
                                         branch=target, rebase=rebase, **kwargs)

                if not self.git.remote_url(path, remote):
                    yield f"  - {ref.identifier}: skipped (no remote)"
                    result.add_detail(detail(OperationStatus.SKIPPED, "no_remote"))
                    continue
                if not target or current != target:
                    message = f"on '{current}', expected '{target}'"
                    yield f"  - {ref.identifier}: skipped ({message})"
                    result.add_detail(detail(OperationStatus.SKIPPED, "wrong_branch", message=message))
                    continue

                ok, output = self.git.pull(path, remote=remote, branch=target, rebase=rebase)
                if ok and ("Already up to date" in output or "Already up-to-date" in output):
                    yield f"  - {ref.identifier}: up to date"
                    result.add_detail(detail(OperationStatus.SKIPPED, "up_to_date"))
                elif ok:
                    yield f"  ✓ {ref.identifier}: pulled '{target}'"
                    result.add_detail(detail(OperationStatus.SUCCESS, "pulled", message=output))
                else:
                    conflict = _is_conflict(output)
                    yield f"  ✗ {ref.identifier}: pull failed: {output}"
                    result.add_detail(detail(OperationStatus.FAILED, "conflict" if conflict else "pull_failed",
                                             error=output or "pull failed",
                                             metadata={'conflict': conflict}))
        return result

    # Branches (engine group only)

    def branch(self, name: str, create: bool = False) -> Generator[str, None, OperationSummary]:
        """
        Switch the engine group to ``name``, creating it if asked.

        Output repositories stay pinned to their required branches.
        """
        validate_branch_name(name, self.ctx.branch_prefixes)

        result = OperationSummary(operation="branch")
        self.last_result = result

        refs = yield from self._usable(self.members(SyncGroup.ENGINE))
        for ref in refs:
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                       status=status, action=action,
                                       group=SyncGroup.ENGINE.value, **kwargs)

            if self.git.current_branch(path) == name:
                yield f"  - {ref.identifier}: already on '{name}'"
                result.add_detail(detail(OperationStatus.SKIPPED, "already_on_branch"))
                continue

            exists = self.git.branch_exists(path, name)
            if not exists and not create:
                error = f"branch '{name}' does not exist (use --create)"
                yield f"  ✗ {ref.identifier}: {error}"
                result.add_detail(detail(OperationStatus.FAILED, "missing_branch", error=error))
                continue

            outcome = self.git.checkout(path, name) if exists else self.git.create_branch(path, name)
            if outcome.ok:
                action = "switched" if exists else "created"
                yield f"  ✓ {ref.identifier}: {action} '{name}'"
                result.add_detail(detail(OperationStatus.SUCCESS, action))
            else:
                yield f"  ✗ {ref.identifier}: {outcome.output}"
                result.add_detail(detail(OperationStatus.FAILED, "checkout_failed", error=outcome.output))
        return result

    def check_deletable(self, name: str) -> None:
        if name in self.ctx.protected_branches:
            raise ProtectedBranchError(f"Refusing to delete protected branch '{name}'")
        if not is_valid_ref_name(name):
            raise InvalidBranchError(f"Invalid branch name: {name!r}")

    def delete_branch(self, name: str, force: bool = False) -> Generator[str, None, OperationSummary]:
        """Delete ``name`` from the engine group. Protected branches are refused."""
        self.check_deletable(name)

        result = OperationSummary(operation="delete_branch")
        self.last_result = result

        refs = yield from self._usable(self.members(SyncGroup.ENGINE))
        for ref in refs:
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                       status=status, action=action,
                                       group=SyncGroup.ENGINE.value, **kwargs)

            if not self.git.branch_exists(path, name):
                yield f"  - {ref.identifier}: no branch '{name}'"
                result.add_detail(detail(OperationStatus.SKIPPED, "missing_branch"))
                continue
            if self.git.current_branch(path) == name:
                error = f"'{name}' is checked out; switch away first"
                yield f"  ✗ {ref.identifier}: {error}"
                result.add_detail(detail(OperationStatus.FAILED, "current_branch", error=error))
                continue

            outcome = self.git.delete_branch(path, name, force=force)
            if outcome.ok:
                yield f"  ✓ {ref.identifier}: deleted '{name}'"
                result.add_detail(detail(OperationStatus.SUCCESS, "deleted"))
            else:
                yield f"  ✗ {ref.identifier}: {outcome.output}"
                result.add_detail(detail(OperationStatus.FAILED, "delete_failed", error=outcome.output))
        return result

    def list_branches(self) -> List[Dict[str, Any]]:
        """Every local and remote branch across all repositories."""
        branches: Dict[str, Dict[str, Any]] = {}
        for _, refs in self.select():
            for ref in refs:
                if self._skip_reason(ref):
                    continue
                path = ref.resolved_path
                current = self.git.current_branch(path)
                local = self.git.local_branches(path)
                remote = self.git.remote_branches(path, self.ctx.remote)
                for name in sorted(set(local) | set(remote)):
                    entry = branches.setdefault(name, {
                        'name': name,
                        'protected': name in self.ctx.protected_branches,
                        'repos': [],
                        'current': [],
                        'remote': [],
                    })
                    entry['repos'].append(ref.identifier)
                    if name in remote:
                        entry['remote'].append(ref.identifier)
                    if name == current:
                        entry['current'].append(ref.identifier)
        return [branches[name] for name in sorted(branches)]

    # Engine-only history operations

    def _engine_branches(self) -> Tuple[List[RepositoryRef], Dict[str, Optional[str]]]:
        refs = [ref for ref in self.members(SyncGroup.ENGINE) if not self._skip_reason(ref)]
        if not refs:
            raise SyncIssueError("No engine repositories found")
        return refs, {ref.identifier: self.git.current_branch(ref.resolved_path) for ref in refs}

    def check_merge_to_main(self, fasttrack: bool = False) -> Tuple[List[RepositoryRef], str]:
        """Refuse a merge that cannot run; returns the engine refs and the source branch."""
        refs, branches = self._engine_branches()
        sources = set(branches.values())
        if len(sources) != 1 or None in sources:
            listing = ", ".join(f"{name}={branch}" for name, branch in branches.items())
            raise SyncIssueError(f"Engine repositories are not on the same branch ({listing})")
        source = sources.pop()
        main = self.ctx.layout.main_branch
        if source == main:
            raise InvalidBranchError(f"Already on '{main}'; nothing to merge")
        if not fasttrack and source != self.ctx.review_branch:
            raise InvalidBranchError(
                f"merge-to-main runs from '{self.ctx.review_branch}' (currently '{source}'); "
                "use --fasttrack to skip review"
            )
        dirty = [ref.identifier for ref in refs if self.git.has_changes(ref.resolved_path)]
        if dirty:
            raise SyncIssueError(f"Uncommitted changes in: {', '.join(dirty)}")
        return refs, source

    def merge_to_main(self, fasttrack: bool = False) -> Generator[str, None, OperationSummary]:
        """
        Merge the engine group's current branch into main.

        Requires the review branch unless ``fasttrack``; both engine
        repositories must be on the same branch and clean.
        """
        refs, source = self.check_merge_to_main(fasttrack)
        main = self.ctx.layout.main_branch

        result = OperationSummary(operation="merge_to_main")
        self.last_result = result
        yield f"Merging '{source}' into '{main}'"

        for ref in refs:
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                       status=status, action=action,
                                       group=SyncGroup.ENGINE.value, **kwargs)

            checkout = self.git.checkout(path, main)
            if not checkout.ok:
                yield f"  ✗ {ref.identifier}: cannot switch to '{main}': {checkout.output}"
                result.add_detail(detail(OperationStatus.FAILED, "checkout_failed", error=checkout.output))
                continue
            merge = self.git.merge(path, source)
            if merge.ok:
                yield f"  ✓ {ref.identifier}: merged '{source}'"
                result.add_detail(detail(OperationStatus.SUCCESS, "merged"))
            else:
                conflict = _is_conflict(merge.output)
                yield f"  ✗ {ref.identifier}: merge failed, resolve manually: {merge.output}"
                result.add_detail(detail(OperationStatus.FAILED, "conflict" if conflict else "merge_failed",
                                         error=merge.output, metadata={'conflict': conflict}))
        return result

    def rebase(self, target: str = "main") -> Generator[str, None, OperationSummary]:
        """Rebase the engine group onto ``target``, stopping at the first failure."""
        if target.startswith("-") or not is_valid_ref_name(target):
            raise InvalidBranchError(f"Invalid rebase target: {target!r}")
        refs, branches = self._engine_branches()
        dirty = [ref.identifier for ref in refs if self.git.has_changes(ref.resolved_path)]
        if dirty:
            raise SyncIssueError(f"Uncommitted changes in: {', '.join(dirty)}")

        result = OperationSummary(operation="rebase")
        self.last_result = result

        for ref in refs:
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                       status=status, action=action,
                                       group=SyncGroup.ENGINE.value, **kwargs)

            if branches[ref.identifier] == target:
                yield f"  - {ref.identifier}: already on '{target}'"
                result.add_detail(detail(OperationStatus.SKIPPED, "on_target"))
                continue
            outcome = self.git.rebase(path, target)
            if outcome.ok:
                yield f"  ✓ {ref.identifier}: rebased onto '{target}'"
                result.add_detail(detail(OperationStatus.SUCCESS, "rebased"))
                continue
            conflict = _is_conflict(outcome.output)
            yield f"  ✗ {ref.identifier}: rebase stopped; resolve, then 'git rebase --continue' or '--abort'"
            result.add_detail(detail(OperationStatus.FAILED, "conflict" if conflict else "rebase_failed",
                                     error=outcome.output, metadata={'conflict': conflict}))
            break
        return result

    # Project site branches

    def site_branch_status(self) -> List[Dict[str, Any]]:
        rows = []
        site = self.ctx.layout.site_branch
        for ref in self.projects():
            reason = self._skip_reason(ref)
            current = None if reason else self.git.current_branch(ref.resolved_path)
            rows.append({
                'identifier': ref.identifier,
                'branch': current,
                'on_site': current == site,
                'site_exists': False if reason else self.git.branch_exists(ref.resolved_path, site),
                'error': reason,
            })
        return rows

    def _site_config(self, ref: RepositoryRef) -> str:
        domain = ref.parent_domain
        config = {
            'title': ref.name,
            'project': ref.name,
            'domain': domain,
            'baseurl': f"/{ref.name}",
            'url': f"https://{domain}",
            'theme': 'minima',
            'exclude': list(SITE_EXCLUDES),
        }
        return yaml.safe_dump(config, default_flow_style=False, sort_keys=False)

    def create_site_branches(self) -> Generator[str, None, OperationSummary]:
        """
        Give every project an orphan site branch holding a starter config.yml.

        The project is returned to its original branch afterwards, even on failure.
        """
        site = self.ctx.layout.site_branch
        result = OperationSummary(operation="site_branch_create")
        self.last_result = result

        refs = yield from self._usable(self.projects())
        for ref in refs:
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                       status=status, action=action,
                                       group=SyncGroup.OUTPUT.value, **kwargs)

            if self.git.branch_exists(path, site):
                yield f"  - {ref.identifier}: '{site}' already exists"
                result.add_detail(detail(OperationStatus.SKIPPED, "exists"))
                continue
            original = self.git.current_branch(path)
            if original is None or not self.git.head_hash(path):
                yield f"  - {ref.identifier}: skipped (no commits on a named branch)"
                result.add_detail(detail(OperationStatus.SKIPPED, "no_commits"))
                continue
            if self.git.has_changes(path):
                error = "uncommitted changes; commit or stash first"
                yield f"  ✗ {ref.identifier}: {error}"
                result.add_detail(detail(OperationStatus.FAILED, "dirty", error=error))
                continue

            error = None
            try:
                steps = (
                    lambda: self.git.checkout_orphan(path, site),
                    lambda: self.git.remove_all_tracked(path),
                )
                for step in steps:
                    outcome = step()
                    if not outcome.ok:
                        error = outcome.output
                        break
                if error is None:
                    (path / "config.yml").write_text(self._site_config(ref))
                    for outcome in (self.git.add(path, ["config.yml"]),
                                    self.git.commit(path, "Initial site branch with Jekyll config")):
                        if not outcome.ok:
                            error = outcome.output
                            break
            finally:
                if self.git.current_branch(path) != original:
                    restore = self.git.checkout(path, original)
                    if not restore.ok:
                        # An orphan branch without a commit blocks checkout; discard it
                        self.git.reset(path, hard=True)
                        restore = self.git.checkout(path, original)
                    if not restore.ok:
                        logger.error(f"{ref.identifier}: could not return to '{original}': {restore.output}")

            if error is None:
                yield f"  ✓ {ref.identifier}: created '{site}'"
                result.add_detail(detail(OperationStatus.SUCCESS, "created"))
            else:
                yield f"  ✗ {ref.identifier}: {error}"
                result.add_detail(detail(OperationStatus.FAILED, "create_failed", error=error))
        return result

    def switch_site_branches(self, target: Optional[str] = None) -> Generator[str, None, OperationSummary]:
        """Check out ``target`` (default: the site branch) in every project."""
        target = target or self.ctx.layout.site_branch
        if not is_valid_ref_name(target):
            raise InvalidBranchError(f"Invalid branch name: {target!r}")

        result = OperationSummary(operation="site_branch_switch")
        self.last_result = result

        refs = yield from self._usable(self.projects())
        for ref in refs:
            path = ref.resolved_path

            def detail(status, action, **kwargs):
                return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                       status=status, action=action,
                                       group=SyncGroup.OUTPUT.value, **kwargs)

            if self.git.current_branch(path) == target:
                yield f"  - {ref.identifier}: already on '{target}'"
                result.add_detail(detail(OperationStatus.SKIPPED, "already_on_branch"))
                continue
            if not self.git.branch_exists(path, target):
                error = f"no branch '{target}'"
                yield f"  ✗ {ref.identifier}: {error}"
                result.add_detail(detail(OperationStatus.FAILED, "missing_branch", error=error))
                continue
            outcome = self.git.checkout(path, target)
            if outcome.ok:
                yield f"  ✓ {ref.identifier}: switched to '{target}'"
                result.add_detail(detail(OperationStatus.SUCCESS, "switched"))
            else:
                yield f"  ✗ {ref.identifier}: {outcome.output}"
                result.add_detail(detail(OperationStatus.FAILED, "checkout_failed", error=outcome.output))
        return result

    # Maintenance

    def init_repo(self, identifier: str) -> Generator[str, None, OperationSummary]:
        """Initialize the repository for ``identifier`` with a main branch and .gitignore."""
        kind = classify(identifier, self.ctx.layout)
        if kind is None:
            raise ConfigError(f"'{identifier}' is not an ecosystem repository name")
        if identifier == self.ctx.layout.root_name:
            path = self.ctx.root
        elif identifier == self.ctx.layout.content:
            path = self.ctx.engine_dir / identifier
        else:
            path = self.ctx.root / identifier
        if not path.is_dir():
            raise ConfigError(f"{path} does not exist")
        path = path.resolve()

        result = OperationSummary(operation="init_repo")
        self.last_result = result

        def detail(status, action, **kwargs):
            return OperationDetail(identifier=identifier, repo_path=str(path), status=status,
                                   action=action, group=SyncGroup.for_kind(kind).value, **kwargs)

        if self.git.is_git_repo(path):
            yield f"  - {identifier}: already a git repository"
            result.add_detail(detail(OperationStatus.SKIPPED, "exists"))
            return result

        outcome = self.git.init(path, self.ctx.layout.main_branch)
        if not outcome.ok:
            yield f"  ✗ {identifier}: {outcome.output}"
            result.add_detail(detail(OperationStatus.FAILED, "init_failed", error=outcome.output))
            return result

        yield f"  ✓ {identifier}: initialized on '{self.ctx.layout.main_branch}'"
        if kind in (RepoKind.DOMAIN, RepoKind.BLOG, RepoKind.PROJECT):
            added = ensure_gitignore(path)
            if added:
                yield f"  ✓ {identifier}: .gitignore now ignores {', '.join(added)}"
        elif not (path / ".gitignore").exists():
            yield f"  ! {identifier}: no .gitignore; add one before committing"
        result.add_detail(detail(OperationStatus.SUCCESS, "initialized"))
        return result

    def reset(self, hard: bool = False,
              groups: Optional[Iterable[SyncGroup]] = None) -> Generator[str, None, OperationSummary]:
        """
        Unstage everything, or with ``hard`` discard all local changes.

        Hard resets remove untracked files but never symlinks or ignored files.
        """
        result = OperationSummary(operation="reset_hard" if hard else "reset")
        self.last_result = result

        for group, refs in self.select(groups):
            yield f"{group.value}:"
            refs = yield from self._usable(refs)
            for ref in refs:
                path = ref.resolved_path

                def detail(status, action, **kwargs):
                    return OperationDetail(identifier=ref.identifier, repo_path=str(path),
                                           status=status, action=action, group=group.value, **kwargs)

                if not self.git.head_hash(path):
                    yield f"  - {ref.identifier}: no commits"
                    result.add_detail(detail(OperationStatus.SKIPPED, "no_commits"))
                    continue
                if not self.git.has_changes(path):
                    yield f"  - {ref.identifier}: clean"
                    result.add_detail(detail(OperationStatus.SKIPPED, "clean"))
                    continue

                outcome = self.git.reset(path, hard=hard)
                if outcome.ok and hard:
                    removable = [
                        entry for entry in self.git.untracked_files(path, directories=True)
                        if not (path / entry.rstrip("/")).is_symlink()
                    ]
                    outcome = self.git.clean(path, removable)
                if outcome.ok:
                    yield f"  ✓ {ref.identifier}: reset{' (hard)' if hard else ''}"
                    result.add_detail(detail(OperationStatus.SUCCESS, "reset"))
                else:
                    yield f"  ✗ {ref.identifier}: {outcome.output}"
                    result.add_detail(detail(OperationStatus.FAILED, "reset_failed", error=outcome.output))
        return result

    def debug_info(self) -> Dict[str, Any]:
        """Environment, symlink resolution and per-repository facts for troubleshooting."""
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "unknown"

        repos = []
        for group, refs in self.select():
            for ref in refs:
                if ref.identifier == self.ctx.layout.root_name:
                    entry = self.ctx.root
                elif ref.identifier == self.ctx.layout.content:
                    entry = self.ctx.root / self.ctx.layout.engine / ref.identifier
                else:
                    entry = self.ctx.root / ref.identifier
                info = {
                    'identifier': ref.identifier,
                    'group': group.value,
                    'entry': str(entry),
                    'symlink': entry.is_symlink(),
                    'resolved': str(ref.resolved_path),
                    'git': self._skip_reason(ref) is None,
                }
                if info['git']:
                    info.update({
                        'branch': self.git.current_branch(ref.resolved_path),
                        'commits': self.git.commit_count(ref.resolved_path),
                        'files': self.git.tracked_file_count(ref.resolved_path),
                    })
                repos.append(info)

        warnings = []
        for status in self.status():
            if status.error:
                continue
            if status.group == SyncGroup.ENGINE and status.branch in self.ctx.protected_branches:
                warnings.append(f"{status.identifier} is on protected branch '{status.branch}'")
            if not status.on_required_branch:
                warnings.append(f"{status.identifier} is on '{status.branch}', "
                                f"expected '{status.required_branch}'")

        return {
            'version': __version__,
            'root': str(self.ctx.root),
            'engine_dir': str(self.ctx.engine_dir),
            'mode': self.ctx.mode.value,
            'date': datetime.now().isoformat(timespec='seconds'),
            'user': user,
            'shell': os.environ.get('SHELL', ''),
            'platform': platform.platform(),
            'git_version': self.git.version(),
            'repositories': repos,
            'integrity': [issue.to_dict() for issue in check_symlink_integrity(self.ctx.root, self.ctx.layout)],
            'warnings': warnings,
            'safety': list(SAFETY_REMINDERS),
        }
