"""Git wrapper for the target repository.

Thin synchronous helpers around the ``git`` executable. Queries that only
need a yes/no answer (is this a repository, is there a HEAD, is there a
remote) return a bool; everything else raises GitCommandError on a non-zero
exit, carrying git's own message (stderr, or stdout when stderr is empty).
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from dripfeed.foundation.errors import GitCommandError

logger = logging.getLogger(__name__)


def git_available() -> bool:
    """True if a ``git`` executable is on PATH."""
    return shutil.which("git") is not None


def run_git(root: Path, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
    """Run a git command in ``root``.

    Args:
        root: Working directory for the command
        args: Git command arguments (e.g., ["status", "--porcelain"])
        check: Raise on non-zero exit

    Returns:
        The completed process with text stdout/stderr

    Raises:
        GitCommandError: If ``check`` and the command fails
    """
    logger.debug("git %s (in %s)", " ".join(args), root)
    proc = subprocess.run(
        ["git", *args],
        cwd=root,
        capture_output=True,
        text=True,
    )
    if check and proc.returncode != 0:
        # git commit reports "nothing to commit" on stdout
        raise GitCommandError(list(args), proc.returncode, proc.stderr.strip() or proc.stdout.strip())
    return proc


class GitRepository:
    """The target working tree."""

    def __init__(self, root: Path):
        self.root = root

    def run(self, args: Sequence[str]) -> str:
        return run_git(self.root, args).stdout

    def is_repository(self) -> bool:
        if not self.root.is_dir():
            return False
        proc = run_git(self.root, ["rev-parse", "--show-toplevel"], check=False)
        if proc.returncode != 0:
            return False
        # a subdirectory of some other work tree is not a target repository
        return Path(proc.stdout.strip()).resolve() == self.root.resolve()

    def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.run(["init", "-q"])

    def git_dir(self) -> Path:
        """Absolute path of the repository's private ``.git`` directory."""
        return Path(self.run(["rev-parse", "--absolute-git-dir"]).strip())

    def status(self) -> list[str]:
        """Porcelain status lines, untracked files listed individually."""
        output = self.run(["status", "--porcelain", "--untracked-files=all"])
        return [line for line in output.splitlines() if line.strip()]

    def is_clean(self) -> bool:
        return not self.status()

    def has_head(self) -> bool:
        proc = run_git(self.root, ["rev-parse", "--verify", "-q", "HEAD"], check=False)
        return proc.returncode == 0

    def head_sha(self) -> str:
        return self.run(["rev-parse", "HEAD"]).strip()

    def head_message(self) -> str:
        return self.run(["log", "-1", "--format=%B"]).strip()

    def has_staged_changes(self) -> bool:
        """True if the index differs from HEAD (or holds anything, before the first commit)."""
        if not self.has_head():
            return bool(self.run(["ls-files"]).strip())
        proc = run_git(self.root, ["diff", "--cached", "--quiet"], check=False)
        return proc.returncode != 0

    def add(self, paths: Sequence[str]) -> None:
        self.run(["add", "--", *paths])

    def unstage(self, paths: Sequence[str]) -> None:
        """Remove ``paths`` from the index, back to HEAD where there is one."""
        if self.has_head():
            self.run(["reset", "-q", "HEAD", "--", *paths])
        else:
            self.run(["rm", "-q", "--cached", "--ignore-unmatch", "--", *paths])

    def is_tracked(self, path: str) -> bool:
        return bool(self.run(["ls-files", "--", path]).strip())

    def restore(self, paths: Sequence[str]) -> None:
        """Check tracked ``paths`` out from HEAD, discarding working-tree edits."""
        if paths:
            self.run(["checkout", "-q", "HEAD", "--", *paths])

    def commit(self, message: str, author: str | None = None) -> str:
        """Create a commit from the index and return its sha."""
        args = ["commit", "-q", "-m", message]
        if author:
            args.append(f"--author={author}")
        self.run(args)
        return self.head_sha()

    def commit_count(self) -> int:
        if not self.has_head():
            return 0
        return int(self.run(["rev-list", "--count", "HEAD"]).strip())

    def log_messages(self) -> list[str]:
        """Commit subjects, oldest first."""
        if not self.has_head():
            return []
        return self.run(["log", "--reverse", "--format=%s"]).splitlines()

    def has_remote(self) -> bool:
        return bool(self.run(["remote"]).strip())

    def push(self) -> None:
        self.run(["push", "-q"])
