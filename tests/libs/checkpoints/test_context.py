"""Tests for CheckpointContext construction and the message prompt."""

from __future__ import annotations

from io import StringIO
from pathlib import Path
from unittest.mock import patch

from config.settings import Settings
from libs.checkpoints.context import (
    MESSAGE_PROMPT,
    CheckpointContext,
    current_user,
    prompt_for_message,
)


class TestPromptForMessage:
    """Tests for prompt_for_message()."""

    def test_reads_one_line(self) -> None:
        stdout = StringIO()

        message = prompt_for_message(stdin=StringIO("before refactor\nignored\n"), stdout=stdout)

        assert message == "before refactor"
        assert stdout.getvalue() == MESSAGE_PROMPT

    def test_empty_line_gives_empty_message(self) -> None:
        assert prompt_for_message(stdin=StringIO("\n"), stdout=StringIO()) == ""

    def test_end_of_input_gives_empty_message(self) -> None:
        assert prompt_for_message(stdin=StringIO(""), stdout=StringIO()) == ""

    def test_windows_line_ending_stripped(self) -> None:
        assert prompt_for_message(stdin=StringIO("wip\r\n"), stdout=StringIO()) == "wip"


class TestCurrentUser:
    """Tests for current_user()."""

    def test_uses_login_name(self) -> None:
        with patch("libs.checkpoints.context.getpass.getuser", return_value="alice"):
            assert current_user() == "alice"

    def test_falls_back_when_unknown(self) -> None:
        with patch("libs.checkpoints.context.getpass.getuser", side_effect=OSError("no user")):
            assert current_user() == "unknown"


class TestFromSettings:
    """Tests for CheckpointContext.from_settings()."""

    def test_storage_is_relative_to_working_dir(self, tmp_path: Path) -> None:
        settings = Settings(storage_dir=".snapshots", lock_timeout_seconds=3, git_timeout_seconds=5)

        with patch("libs.checkpoints.context.getpass.getuser", return_value="alice"):
            context = CheckpointContext.from_settings(settings, working_dir=tmp_path)

        assert context.working_dir == tmp_path
        assert context.storage_dir == tmp_path / ".snapshots"
        assert context.user == "alice"
        assert context.lock_timeout_seconds == 3
        assert context.git_timeout_seconds == 5
        assert context.message_source is prompt_for_message

    def test_defaults_to_current_directory(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)

        context = CheckpointContext.from_settings(Settings(), message_source=lambda: "scripted")

        assert context.working_dir == Path.cwd()
        assert context.storage_dir == Path.cwd() / ".checkpoints"
        assert context.message_source() == "scripted"
