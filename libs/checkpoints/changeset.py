"""
Git change-set detection for checkpoints.

Provides the two git queries a checkpoint is built from:
- Modified files relative to HEAD (staged and unstaged, deletions excluded)
- Untracked files not matched by the standard ignore rules

Paths are reported relative to the working directory, modified first,
then untracked, and only for entries a restore can reproduce. Files inside
the checkpoint storage directory are never part of a change set.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path, PurePosixPath

from libs.checkpoints.archive import link_stays_inside
from libs.checkpoints.exceptions import RepositoryEnvironmentError

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 30.0


def _run_git(
    args: list[str],
    cwd: Path,
    timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS,
) -> subprocess.CompletedProcess[bytes]:
    """Run a git command and return the raw result (never raises on exit code).

    Raises:
        RepositoryEnvironmentError: If git is not installed or times out
    """
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=timeout,  # Prevent hanging on stalled git processes
        )
    except FileNotFoundError as e:
        raise RepositoryEnvironmentError("git executable not found on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise RepositoryEnvironmentError(
            f"git {' '.join(args)} timed out after {timeout}s"
        ) from e


def _split_nul(output: bytes) -> list[str]:
    """Split ``-z`` output into paths, filtering empty entries."""
    return [
        raw.decode("utf-8", errors="surrogateescape")
        for raw in output.split(b"\x00")
        if raw
    ]


def ensure_repository(working_dir: Path, timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> None:
    """
    Verify that working_dir is inside a git work tree.

    Called once at process start, before any command runs.

    Raises:
        RepositoryEnvironmentError: If git is missing or this is not a work tree
    """
    result = _run_git(["rev-parse", "--is-inside-work-tree"], working_dir, timeout)
    if result.returncode != 0 or result.stdout.strip() != b"true":
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise RepositoryEnvironmentError(
            f"Not inside a git work tree: {working_dir}" + (f" ({stderr})" if stderr else "")
        )


class ChangeSetProvider:
    """
    Computes the ordered change set of a git working directory.

    Example:
        >>> provider = ChangeSetProvider(Path.cwd(), Path.cwd() / ".checkpoints")
        >>> provider.compute_change_set()
        ['src/app.py', 'notes.txt']
    """

    def __init__(
        self,
        working_dir: Path,
        storage_dir: Path | None = None,
        timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS,
    ) -> None:
        self.working_dir = Path(working_dir)
        self.storage_dir = Path(storage_dir) if storage_dir else None
        self.timeout = timeout

    def compute_change_set(self) -> list[str]:
        """
        Modified paths followed by untracked paths, without duplicates.

        Directory entries (an untracked nested repository, a submodule) are
        expanded to the files beneath them. Paths a restore could not
        reproduce are left out with a warning: non-UTF-8 names, vanished
        files, special files and symlinks pointing outside the tree.

        Returns:
            Working-directory-relative POSIX paths. Empty list if clean.

        Raises:
            RepositoryEnvironmentError: If a git query fails
        """
        modified = self.modified_files()
        untracked = self.untracked_files()

        seen: set[str] = set()
        change_set: list[str] = []
        for entry in [*modified, *untracked]:
            for path in self._expand(entry):
                if path in seen or self._in_storage(path):
                    continue
                seen.add(path)
                if self._is_restorable(path):
                    change_set.append(path)

        logger.debug(
            "Computed change set",
            extra={
                "event": "checkpoint.changeset.computed",
                "modified": len(modified),
                "untracked": len(untracked),
                "total": len(change_set),
            },
        )
        return change_set

    def modified_files(self) -> list[str]:
        """Paths changed relative to HEAD, staged or not, excluding deletions."""
        diff_args = ["diff", "--name-only", "-z", "--relative", "--diff-filter=d"]
        if self._has_head():
            return self._git_paths([*diff_args, "HEAD"])

        # Unborn branch: nothing to diff against, so take index then worktree
        staged = self._git_paths([*diff_args, "--cached"])
        unstaged = self._git_paths(diff_args)
        return list(dict.fromkeys([*staged, *unstaged]))

    def untracked_files(self) -> list[str]:
        """Untracked paths honouring .gitignore and the standard excludes."""
        return self._git_paths(["ls-files", "--others", "--exclude-standard", "-z"])

    def _has_head(self) -> bool:
        result = _run_git(
            ["rev-parse", "--verify", "--quiet", "HEAD"], self.working_dir, self.timeout
        )
        return result.returncode == 0

    def _git_paths(self, args: list[str]) -> list[str]:
        result = _run_git(args, self.working_dir, self.timeout)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise RepositoryEnvironmentError(f"git {args[0]} failed: {stderr}")
        return _split_nul(result.stdout)

    def _in_storage(self, path: str) -> bool:
        if self.storage_dir is None:
            return False
        try:
            relative_storage = self.storage_dir.relative_to(self.working_dir)
        except ValueError:
            return False
        storage_parts = PurePosixPath(relative_storage.as_posix()).parts
        return PurePosixPath(path).parts[: len(storage_parts)] == storage_parts

    def _expand(self, entry: str) -> list[str]:
        relative = entry.rstrip("/")
        full = self.working_dir / relative
        if full.is_symlink() or not full.is_dir() or self._in_storage(relative):
            return [relative]

        paths: list[str] = []
        for dirpath, dirnames, filenames in os.walk(full):
            base = Path(dirpath).relative_to(self.working_dir).as_posix()
            # Symlinked directories are captured as links, not descended into
            links = [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]
            dirnames[:] = sorted(d for d in dirnames if d != ".git" and d not in links)
            for name in sorted([*filenames, *links]):
                if name != ".git":
                    paths.append(f"{base}/{name}")
        return paths

    def _is_restorable(self, path: str) -> bool:
        reason = self._unrestorable_reason(path)
        if reason is None:
            return True
        logger.warning(
            "Leaving path out of checkpoint",
            extra={"event": "checkpoint.changeset.skipped", "path": ascii(path), "reason": reason},
        )
        return False

    def _unrestorable_reason(self, path: str) -> str | None:
        try:
            path.encode("utf-8")
        except UnicodeEncodeError:
            return "file name is not valid UTF-8"

        full = self.working_dir / path
        if full.is_symlink():
            if not link_stays_inside(path, os.readlink(full)):
                return "symlink points outside the working directory"
            return None
        if not full.exists():
            return "file no longer exists"
        if not full.is_file():
            return "not a regular file"
        return None
