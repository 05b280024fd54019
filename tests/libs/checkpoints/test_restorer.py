"""Tests for CheckpointRestorer and checkpoint name validation."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from libs.checkpoints.context import CheckpointContext
from libs.checkpoints.exceptions import (
    CheckpointNotFoundError,
    InvalidCheckpointNameError,
    LockAcquisitionError,
)
from libs.checkpoints.locking import LOCK_FILE_NAME
from libs.checkpoints.metadata import MetadataStore
from libs.checkpoints.restorer import CheckpointRestorer, normalize_checkpoint_name
from libs.checkpoints.types import CheckpointCreated
from libs.checkpoints.writer import CheckpointWriter
from tests.conftest import git


@pytest.fixture()
def checkpoint(git_repo: Path, context: CheckpointContext) -> CheckpointCreated:
    """Checkpoint of modified a.txt and untracked dir/b.txt."""
    (git_repo / "a.txt").write_text("checkpointed a\n")
    (git_repo / "dir").mkdir()
    (git_repo / "dir" / "b.txt").write_text("checkpointed b\n")
    result = CheckpointWriter(context).create_checkpoint("first")
    assert isinstance(result, CheckpointCreated)
    return result


class TestNormalizeCheckpointName:
    """Tests for normalize_checkpoint_name()."""

    def test_archive_name_kept(self) -> None:
        assert normalize_checkpoint_name("2025-01-15_10-30-00.tar.gz") == "2025-01-15_10-30-00.tar.gz"

    def test_bare_identifier_gets_suffix(self) -> None:
        assert normalize_checkpoint_name("2025-01-15_10-30-00") == "2025-01-15_10-30-00.tar.gz"

    @pytest.mark.parametrize(
        "name",
        ["", "   ", "../x.tar.gz", "sub/x.tar.gz", "..\\x.tar.gz", ".", "..", ".lock", "a\x00b"],
    )
    def test_rejects_non_plain_names(self, name: str) -> None:
        with pytest.raises(InvalidCheckpointNameError):
            normalize_checkpoint_name(name)


class TestRestoreCheckpoint:
    """Tests for CheckpointRestorer.restore_checkpoint()."""

    def test_restores_modified_and_deleted_files(
        self, git_repo: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        (git_repo / "a.txt").write_text("later edit\n")
        (git_repo / "dir" / "b.txt").unlink()
        (git_repo / "dir").rmdir()

        restored = CheckpointRestorer(context).restore_checkpoint(f"{checkpoint.timestamp}.tar.gz")

        assert restored.name == f"{checkpoint.timestamp}.tar.gz"
        assert restored.files == ["a.txt", "dir/b.txt"]
        assert restored.file_count == 2
        assert (git_repo / "a.txt").read_text() == "checkpointed a\n"
        assert (git_repo / "dir" / "b.txt").read_text() == "checkpointed b\n"

    def test_bare_identifier_accepted(
        self, git_repo: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        (git_repo / "a.txt").write_text("later edit\n")

        restored = CheckpointRestorer(context).restore_checkpoint(checkpoint.timestamp)

        assert restored.name == f"{checkpoint.timestamp}.tar.gz"
        assert (git_repo / "a.txt").read_text() == "checkpointed a\n"

    def test_files_outside_archive_untouched(
        self, git_repo: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        (git_repo / "c.txt").write_text("created after checkpoint\n")
        (git_repo / "tracked.txt").write_text("edited after checkpoint\n")

        CheckpointRestorer(context).restore_checkpoint(checkpoint.timestamp)

        assert (git_repo / "c.txt").read_text() == "created after checkpoint\n"
        assert (git_repo / "tracked.txt").read_text() == "edited after checkpoint\n"

    def test_metadata_unchanged_and_lock_released(
        self, git_repo: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        metadata = context.storage_dir / f"{checkpoint.timestamp}.json"
        before = metadata.read_bytes()

        CheckpointRestorer(context).restore_checkpoint(checkpoint.timestamp)

        assert metadata.read_bytes() == before
        assert not (context.storage_dir / LOCK_FILE_NAME).exists()

    def test_restore_does_not_touch_git_index(
        self, git_repo: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        status_before = git(git_repo, "status", "--porcelain")
        (git_repo / "a.txt").write_text("later edit\n")

        CheckpointRestorer(context).restore_checkpoint(checkpoint.timestamp)

        assert git(git_repo, "status", "--porcelain") == status_before

    def test_missing_checkpoint_has_no_side_effects(
        self, git_repo: Path, context: CheckpointContext
    ) -> None:
        with pytest.raises(CheckpointNotFoundError, match="nonexistent.tar.gz"):
            CheckpointRestorer(context).restore_checkpoint("nonexistent.tar.gz")

        assert not context.storage_dir.exists()
        assert (git_repo / "a.txt").read_text() == "original a\n"

    def test_metadata_file_is_not_an_archive(
        self, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        with pytest.raises(CheckpointNotFoundError):
            CheckpointRestorer(context).restore_checkpoint(f"{checkpoint.timestamp}.json")

    def test_symlink_escaping_storage_rejected(
        self, tmp_path: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        outside = tmp_path / "elsewhere.tar.gz"
        outside.write_bytes(b"")
        (context.storage_dir / "sneaky.tar.gz").symlink_to(outside)

        with pytest.raises(InvalidCheckpointNameError):
            CheckpointRestorer(context).restore_checkpoint("sneaky.tar.gz")

    def test_lock_contention_raises(
        self, git_repo: Path, context: CheckpointContext, checkpoint: CheckpointCreated
    ) -> None:
        (git_repo / "a.txt").write_text("later edit\n")

        with patch(
            "libs.checkpoints.restorer.storage_lock",
            side_effect=LockAcquisitionError("locked"),
        ):
            with pytest.raises(LockAcquisitionError):
                CheckpointRestorer(context).restore_checkpoint(checkpoint.timestamp)

        assert (git_repo / "a.txt").read_text() == "later edit\n"


class TestRestoreRoundTrip:
    """Every file recorded in a checkpoint comes back on restore."""

    def test_untracked_symlink_restored(self, git_repo: Path, context: CheckpointContext) -> None:
        (git_repo / "link").symlink_to("a.txt")
        result = CheckpointWriter(context).create_checkpoint("with link")
        (git_repo / "link").unlink()

        restored = CheckpointRestorer(context).restore_checkpoint(result.timestamp)

        assert restored.files == ["link"]
        assert (git_repo / "link").is_symlink()
        assert os.readlink(git_repo / "link") == "a.txt"

    def test_untracked_nested_repository_restored(
        self, git_repo: Path, context: CheckpointContext
    ) -> None:
        nested = git_repo / "nested"
        nested.mkdir()
        git(nested, "init", "-q")
        (nested / "inner.txt").write_text("inner\n")
        result = CheckpointWriter(context).create_checkpoint("with nested repo")
        (nested / "inner.txt").unlink()

        restored = CheckpointRestorer(context).restore_checkpoint(result.timestamp)

        assert restored.files == ["nested/inner.txt"]
        assert (nested / "inner.txt").read_text() == "inner\n"

    def test_restored_files_match_metadata(self, git_repo: Path, context: CheckpointContext) -> None:
        (git_repo / "a.txt").write_text("edited\n")
        (git_repo / "link").symlink_to("a.txt")
        (git_repo / "outside_link").symlink_to("/etc/hostname")
        nested = git_repo / "nested"
        nested.mkdir()
        git(nested, "init", "-q")
        (nested / "inner.txt").write_text("inner\n")
        result = CheckpointWriter(context).create_checkpoint("mixed")
        record = MetadataStore(context.storage_dir).latest()

        restored = CheckpointRestorer(context).restore_checkpoint(result.timestamp)

        assert record is not None
        assert "outside_link" not in record.files
        assert restored.files == record.files
