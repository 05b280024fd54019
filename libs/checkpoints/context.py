"""
Explicit process context for checkpoint orchestrators.

Working directory, user identity, clock and the interactive message prompt
are bundled into a CheckpointContext built once at CLI startup, so that the
writer, lister and restorer never consult ambient process state and tests
can inject a fake clock, a fake identity and a scripted message source.
"""

from __future__ import annotations

import getpass
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TextIO

from config.settings import Settings

MessageSource = Callable[[], str]

MESSAGE_PROMPT = "Checkpoint message: "


def prompt_for_message(
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> str:
    """Block until the user types a checkpoint message.

    Reads one line from the controlling input stream; there is no timeout.
    End-of-input yields an empty message.

    Args:
        stdin: Input stream (default: sys.stdin)
        stdout: Stream for the prompt (default: sys.stdout)

    Returns:
        The entered line without its trailing newline
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stdout.write(MESSAGE_PROMPT)
    stdout.flush()
    line = stdin.readline()
    return line.rstrip("\r\n")


def current_user() -> str:
    """Identity of the invoking user from the OS environment."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No USER/LOGNAME and no passwd entry (e.g. bare containers)
        return "unknown"


@dataclass(frozen=True)
class CheckpointContext:
    """Everything an orchestrator needs from the outside world.

    Attributes:
        working_dir: Directory checkpoints are taken from and restored into.
        storage_dir: Directory holding archive/metadata pairs.
        user: Value recorded as ``created_by``.
        clock: Returns the current local time.
        message_source: Called when ``commit`` has no ``-m`` message.
        lock_timeout_seconds: Wait limit for the storage lock.
        git_timeout_seconds: Timeout for each git call.
    """

    working_dir: Path
    storage_dir: Path
    user: str
    clock: Callable[[], datetime] = datetime.now
    message_source: MessageSource = field(default=prompt_for_message)
    lock_timeout_seconds: float = 10.0
    git_timeout_seconds: float = 30.0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        working_dir: Path | None = None,
        message_source: MessageSource | None = None,
    ) -> CheckpointContext:
        """Build the context for a CLI invocation.

        Args:
            settings: Loaded tool settings
            working_dir: Override for the current directory
            message_source: Override for the interactive prompt

        Returns:
            CheckpointContext rooted at the working directory
        """
        root = Path(working_dir) if working_dir else Path.cwd()
        return cls(
            working_dir=root,
            storage_dir=root / settings.storage_dir,
            user=current_user(),
            message_source=message_source or prompt_for_message,
            lock_timeout_seconds=settings.lock_timeout_seconds,
            git_timeout_seconds=settings.git_timeout_seconds,
        )
