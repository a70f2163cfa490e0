"""
Git client infrastructure for ecosync.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Scoped to one repository via the working directory (the process never cds)
- Consistent in error handling
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union
import logging

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class GitResult:
    """Outcome of one git invocation."""
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, stripped."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@dataclass
class GitStatus:
    """Result of git status command."""
    branch: Optional[str] = None
    modified_files: int = 0
    untracked_files: int = 0
    staged_files: int = 0

    @property
    def clean(self) -> bool:
        # Untracked files count: a repo with only new files is not clean
        return self.modified_files == 0 and self.untracked_files == 0


class GitClient:
    """
    Abstraction over git commands.

    Example:
        client = GitClient()
        status = client.status("/path/to/repo")
        if status.clean:
            print("Repository is clean")
    """

    def __init__(self, timeout: int = 120):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds (default: 120)
        """
        self.timeout = timeout

    def _run(self, args: Sequence[str], cwd: Optional[PathLike] = None) -> GitResult:
        """
        Run ``git <args>`` in ``cwd``.

        Never raises for git failures; callers inspect the returned GitResult.
        """
        cmd = ["git", *args]
        logger.debug(f"[{cwd}] {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out after {self.timeout}s: {' '.join(cmd)}")
            return GitResult(stderr=f"timed out after {self.timeout}s", returncode=-1)
        except OSError as e:
            logger.error(f"Git command failed: {' '.join(cmd)} - {e}")
            return GitResult(stderr=str(e), returncode=-1)

        return GitResult(result.stdout or "", result.stderr or "", result.returncode)

    def _value(self, args: Sequence[str], cwd: PathLike) -> Optional[str]:
        result = self._run(args, cwd)
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
        return None

    # Inspection

    def version(self) -> Optional[str]:
        return self._value(["--version"], None)

    def is_git_repo(self, path: PathLike) -> bool:
        """Check if path is a git repository."""
        return (Path(path) / ".git").exists()

    def current_branch(self, path: PathLike) -> Optional[str]:
        """Current branch name, None when HEAD is detached. Works before the first commit."""
        return self._value(["symbolic-ref", "--quiet", "--short", "HEAD"], path)

    def head_hash(self, path: PathLike, short: bool = True) -> Optional[str]:
        """Commit hash of HEAD, None if there are no commits yet."""
        args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
        return self._value(args, path)

    def status(self, path: PathLike) -> GitStatus:
        """
        Get repository status.

        Modified counts every tracked path with staged or unstaged changes;
        untracked counts ``??`` entries.
        """
        branch = self.current_branch(path)
        result = self._run(["status", "--porcelain"], path)
        if not result.ok:
            return GitStatus(branch=branch)

        lines = [line for line in result.stdout.splitlines() if line.strip()]
        untracked = sum(1 for line in lines if line.startswith("??"))
        tracked = [line for line in lines if not line.startswith("??") and not line.startswith("!!")]
        return GitStatus(
            branch=branch,
            modified_files=len(tracked),
            untracked_files=untracked,
            staged_files=sum(1 for line in tracked if line[0] in "MADRCU"),
        )

    def has_changes(self, path: PathLike) -> bool:
        """True if there are modified or untracked files."""
        return not self.status(path).clean

    def last_commit_message(self, path: PathLike) -> Optional[str]:
        """Full message of HEAD, None if there are no commits."""
        result = self._run(["log", "-1", "--format=%B"], path)
        if not result.ok:
            return None
        return result.stdout.strip()

    def last_commit_date(self, path: PathLike) -> Optional[str]:
        return self._value(["log", "-1", "--format=%ci"], path)

    def commit_count(self, path: PathLike) -> int:
        value = self._value(["rev-list", "--count", "HEAD"], path)
        return int(value) if value and value.isdigit() else 0

    def tracked_file_count(self, path: PathLike) -> int:
        result = self._run(["ls-files", "-z"], path)
        if not result.ok:
            return 0
        return sum(1 for entry in result.stdout.split("\0") if entry)

    def remote_url(self, path: PathLike, remote: str = "origin") -> Optional[str]:
        """Remote URL or None if the remote is not configured."""
        return self._value(["config", "--get", f"remote.{remote}.url"], path)

    def branch_exists(self, path: PathLike, branch: str) -> bool:
        return self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], path).ok

    def local_branches(self, path: PathLike) -> List[str]:
        result = self._run(["for-each-ref", "--format=%(refname:short)", "refs/heads"], path)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()] if result.ok else []

    def remote_branches(self, path: PathLike, remote: str = "origin") -> List[str]:
        """Remote branch names without the ``<remote>/`` prefix."""
        result = self._run(["for-each-ref", "--format=%(refname:short)", f"refs/remotes/{remote}"], path)
        if not result.ok:
            return []
        prefix = f"{remote}/"
        branches = []
        for line in result.stdout.splitlines():
            name = line.strip()
            if name.startswith(prefix):
                name = name[len(prefix):]
            if name and name != "HEAD" and name != remote:
                branches.append(name)
        return branches

    def show_file(self, path: PathLike, revision: str, file_path: str) -> Optional[bytes]:
        """
        Raw contents of ``file_path`` as committed at ``revision``.

        Returns None when the path is not a file at that revision.
        """
        cmd = ["git", "cat-file", "blob", f"{revision}:{file_path}"]
        logger.debug(f"[{path}] {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, cwd=str(path), capture_output=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out after {self.timeout}s: {' '.join(cmd)}")
            return None
        if result.returncode != 0:
            return None
        return result.stdout

    def untracked_files(self, path: PathLike, directories: bool = False) -> List[str]:
        """
        Untracked paths not excluded by the repository's ignore rules.

        With ``directories`` a wholly untracked directory is listed once,
        with a trailing slash, instead of file by file.
        """
        args = ["ls-files", "--others", "--exclude-standard", "-z"]
        if directories:
            args.append("--directory")
        result = self._run(args, path)
        if not result.ok:
            return []
        return [entry for entry in result.stdout.split("\0") if entry]

    # Mutation

    def checkout(self, path: PathLike, branch: str) -> GitResult:
        return self._run(["checkout", branch], path)

    def create_branch(self, path: PathLike, branch: str) -> GitResult:
        return self._run(["checkout", "-b", branch], path)

    def checkout_orphan(self, path: PathLike, branch: str) -> GitResult:
        return self._run(["checkout", "--orphan", branch], path)

    def delete_branch(self, path: PathLike, branch: str, force: bool = False) -> GitResult:
        return self._run(["branch", "-D" if force else "-d", branch], path)

    def stage_tracked(self, path: PathLike) -> GitResult:
        """Stage modifications and deletions of already tracked files."""
        return self._run(["add", "-u"], path)

    def add(self, path: PathLike, files: Sequence[str]) -> GitResult:
        if not files:
            return GitResult()
        return self._run(["add", "--", *files], path)

    def remove_all_tracked(self, path: PathLike) -> GitResult:
        return self._run(["rm", "-rf", "--quiet", "."], path)

    def commit(self, path: PathLike, message: str, amend: bool = False,
               allow_empty: bool = False) -> GitResult:
        args = ["commit", "-m", message]
        if amend:
            args.append("--amend")
        if allow_empty:
            args.append("--allow-empty")
        return self._run(args, path)

    def push(
        self,
        path: PathLike,
        remote: str = "origin",
        branch: Optional[str] = None,
        force: bool = False,
        set_upstream: bool = False,
    ) -> Tuple[bool, str]:
        """
        Push to remote.

        Returns:
            Tuple of (success, combined output)
        """
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        if force:
            args.append("--force")
        args.append(remote)
        if branch:
            args.append(branch)
        result = self._run(args, path)
        return result.ok, result.output

    def pull(
        self,
        path: PathLike,
        remote: str = "origin",
        branch: Optional[str] = None,
        rebase: bool = False,
    ) -> Tuple[bool, str]:
        """
        Pull from remote.

        Returns:
            Tuple of (success, combined output)
        """
        args = ["pull"]
        if rebase:
            args.append("--rebase")
        args.append(remote)
        if branch:
            args.append(branch)
        result = self._run(args, path)
        return result.ok, result.output

    def merge(self, path: PathLike, branch: str) -> GitResult:
        return self._run(["merge", branch, "--no-edit"], path)

    def rebase(self, path: PathLike, target: str) -> GitResult:
        return self._run(["rebase", target], path)

    def reset(self, path: PathLike, hard: bool = False) -> GitResult:
        return self._run(["reset", "--hard", "HEAD"] if hard else ["reset"], path)

    def clean(self, path: PathLike, paths: Optional[Sequence[str]] = None) -> GitResult:
        """Remove untracked files and directories; ignored files (-x) are kept."""
        args = ["clean", "-fd"]
        if paths is not None:
            if not paths:
                return GitResult()
            args += ["--", *paths]
        return self._run(args, path)

    def init(self, path: PathLike, initial_branch: str = "main") -> GitResult:
        result = self._run(["init"], path)
        if not result.ok:
            return result
        return self._run(["symbolic-ref", "HEAD", f"refs/heads/{initial_branch}"], path)
