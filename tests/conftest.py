"""
Root conftest for tests.

Provides throw-away git repositories, a deterministic clock and a
CheckpointContext factory so checkpoint orchestrators can be exercised
without a terminal or the real system time.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from config.settings import get_settings
from libs.checkpoints.context import CheckpointContext
from libs.common.logging.context import clear_invocation_id


def git(repo: Path, *args: str) -> str:
    """Run a git command in repo and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def write_non_utf8_file(directory: Path) -> None:
    """Create ``bad\\xff.txt`` in directory, skipping where the filesystem refuses."""
    try:
        with open(os.path.join(os.fsencode(directory), b"bad\xff.txt"), "wb") as f:
            f.write(b"latin-1 name\n")
    except OSError:
        pytest.skip("filesystem rejects non-UTF-8 file names")


class FakeClock:
    """Clock that advances by ``step`` on every call."""

    def __init__(
        self,
        start: datetime = datetime(2025, 1, 15, 10, 30, 0),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    """Create a git repository with one commit containing a.txt and .gitignore."""
    repo = tmp_path / "repo"
    repo.mkdir()

    git(repo, "init", "-q")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")

    (repo / "a.txt").write_text("original a\n")
    (repo / "tracked.txt").write_text("tracked and clean\n")
    (repo / ".gitignore").write_text("*.log\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "Initial commit")

    return repo


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_context(fake_clock: FakeClock) -> Callable[..., CheckpointContext]:
    """Factory for contexts rooted at a given working directory."""

    def _make(working_dir: Path, **overrides: Any) -> CheckpointContext:
        values: dict[str, Any] = {
            "working_dir": working_dir,
            "storage_dir": working_dir / ".checkpoints",
            "user": "tester",
            "clock": fake_clock,
            "message_source": lambda: "prompted message",
            "lock_timeout_seconds": 1.0,
        }
        values.update(overrides)
        return CheckpointContext(**values)

    return _make


@pytest.fixture()
def context(git_repo: Path, make_context: Callable[..., CheckpointContext]) -> CheckpointContext:
    return make_context(git_repo)


@pytest.fixture(autouse=True)
def _reset_global_state() -> Iterator[None]:
    """Clear cached settings, invocation ID and root handlers around each test."""
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    get_settings.cache_clear()
    clear_invocation_id()
    yield
    get_settings.cache_clear()
    clear_invocation_id()
    root_logger.handlers[:] = saved_handlers
    root_logger.setLevel(saved_level)
