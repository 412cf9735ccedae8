"""Run git as a child process and interpret its output."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

__all__ = ["GitError", "Repo", "changed_files", "git_in_dir"]

_log = logging.getLogger(__name__)

_NO_UPSTREAM = "fatal: no upstream configured for branch"
_NO_COMMITS = (
    "fatal: ambiguous argument 'HEAD': unknown revision or path not in the working tree."
)


class GitError(Exception):
    """Raised when a git command fails or its output cannot be understood."""


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise GitError("cannot extract git output") from exc


def git_in_dir(directory: str | os.PathLike[str], args: Sequence[str]) -> str:
    """Run ``git -C directory args`` and return its trimmed standard output.

    Raises GitError if git cannot be started or exits with a failure.
    """
    trimmed = [arg.strip() for arg in args]
    try:
        completed = subprocess.run(
            ["git", "-C", os.fspath(directory), *trimmed],
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        raise GitError(
            f"error while running git in directory `{os.fspath(directory)!r}` "
            f"with args `{trimmed!r}`"
        ) from exc
    _log.debug("git %r: exit status %s", trimmed, completed.returncode)
    stdout = _decode(completed.stdout)
    if completed.returncode == 0:
        return stdout
    stderr = _decode(completed.stderr)
    error = f"error while running git with args `{trimmed!r}"
    if stdout or stderr:
        error += ":"
    if stdout:
        error += f"\n- stdout: {stdout}"
    if stderr:
        error += f"\n- stderr: {stderr}"
    raise GitError(error)


def changed_files(output: str) -> list[str]:
    """Files listed by ``git status --porcelain``, ignoring type changes."""
    return [
        line.rsplit(" ", 1)[-1]
        for line in (raw.strip() for raw in output.splitlines())
        if not line.startswith("T ")
    ]


class Repo:
    """A git repository, remembering the branch and remote it started on."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        """Open the repository; raise GitError if it has no commit."""
        self._directory = Path(directory)
        _log.debug("initializing directory %s", self._directory)
        try:
            remote, branch = self._current_remote_and_branch()
        except GitError as exc:
            raise GitError(f"cannot determine current branch: {exc}") from exc
        self._original_remote = remote
        self._original_branch = branch

    @property
    def directory(self) -> Path:
        """Directory where git operations run."""
        return self._directory

    @property
    def original_branch(self) -> str:
        """Branch name when the repository was opened."""
        return self._original_branch

    @property
    def original_remote(self) -> str:
        """Remote name when the repository was opened."""
        return self._original_remote

    def _current_remote_and_branch(self) -> tuple[str, str]:
        try:
            output = self.git(
                ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"]
            )
        except GitError as exc:
            message = str(exc)
            if _NO_UPSTREAM in message:
                branch = self._current_branch()
                _log.warning("no upstream configured for branch %s", branch)
                return "origin", branch
            if _NO_COMMITS in message:
                raise GitError("git repository does not contain any commit.") from exc
            raise
        remote, sep, branch = output.partition("/")
        if not sep:
            raise GitError("cannot determine current remote and branch")
        return remote, branch

    def _current_branch(self) -> str:
        try:
            return self.git(["rev-parse", "--abbrev-ref", "HEAD"])
        except GitError as exc:
            if _NO_COMMITS in str(exc):
                raise GitError("git repository does not contain any commit.") from exc
            raise

    def git(self, args: Sequence[str]) -> str:
        """Run a git command in the repository directory."""
        return git_in_dir(self._directory, args)

    def is_clean(self) -> None:
        """Raise GitError if there are uncommitted changes."""
        changes = self.changes_except_typechanges()
        if changes:
            raise GitError(
                "the working directory of this project has uncommitted changes. "
                f"Please commit or stash these changes:\n{changes!r}"
            )

    def checkout_new_branch(self, branch: str) -> None:
        self.git(["checkout", "-b", branch])

    def add_all_and_commit(self, message: str) -> None:
        self.git(["add", "."])
        self.git(["commit", "-m", message])

    def changes_except_typechanges(self) -> list[str]:
        return changed_files(self.git(["status", "--porcelain"]))

    def add(self, paths: Iterable[str]) -> None:
        self.git(["add", *paths])

    def commit(self, message: str) -> None:
        self.git(["commit", "-m", message])

    def push(self, obj: str) -> None:
        self.git(["push", self._original_remote, obj])

    def fetch(self, obj: str) -> None:
        self.git(["fetch", self._original_remote, obj])

    def force_push(self, obj: str) -> None:
        self.git(["push", self._original_remote, obj, "--force"])

    def checkout_head(self) -> None:
        """Go back to the branch the repository was opened on."""
        self.git(["checkout", self._original_branch])

    def checkout(self, obj: str) -> None:
        self.git(["checkout", obj])

    def stash_pop(self) -> None:
        self.git(["stash", "pop"])

    def _nth_commit_at_path(self, nth: int, path: str | os.PathLike[str]) -> str:
        output = self.git(["log", "--format=%H", "-n", str(nth), "--", os.fspath(path)])
        commits = output.splitlines()
        if len(commits) < nth:
            raise GitError("not enough commits")
        commit = commits[nth - 1]
        _log.debug("nth_commit found: %s", commit)
        return commit

    def checkout_last_commit_at_path(self, path: str | os.PathLike[str]) -> None:
        """Check out the latest commit touching ``path``."""
        self.checkout(self._nth_commit_at_path(1, path))

    def checkout_previous_commit_at_path(self, path: str | os.PathLike[str]) -> None:
        """Check out the second latest commit touching ``path``."""
        self.checkout(self._nth_commit_at_path(2, path))

    def current_commit_message(self) -> str:
        return self.git(["log", "-1", "--pretty=format:%B"])

    def current_commit_hash(self) -> str:
        return self.git(["log", "-1", "--pretty=format:%H"])

    def tag(self, name: str) -> str:
        """Create a lightweight tag."""
        return self.git(["tag", name])

    def get_tag_commit(self, tag: str) -> str | None:
        """Commit hash the tag points to, or None if it cannot be resolved."""
        try:
            return self.git(["rev-list", "-n", "1", tag])
        except GitError:
            return None

    def is_ancestor(self, maybe_ancestor_commit: str, descendant_commit: str) -> bool:
        """True if the first commit comes before the second one."""
        try:
            self.git(["merge-base", "--is-ancestor", maybe_ancestor_commit, descendant_commit])
        except GitError:
            return False
        return True

    def original_remote_url(self) -> str:
        return self.git(["config", "--get", f"remote.{self._original_remote}.url"])

    def tag_exists(self, tag: str) -> bool:
        try:
            output = self.git(["tag", "-l", tag])
        except GitError as exc:
            raise GitError(f"cannot determine if git tag exists: {exc}") from exc
        return len(output.splitlines()) >= 1