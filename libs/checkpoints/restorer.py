"""
Checkpoint restoration.

Restore unpacks a checkpoint archive over the working directory. It only
ever writes the files recorded in the archive: existing files are
overwritten, deleted ones are recreated, and anything else on disk is left
untouched. Metadata is never modified.
"""

from __future__ import annotations

import logging
from pathlib import Path

from libs.checkpoints.archive import ArchiveCodec
from libs.checkpoints.context import CheckpointContext
from libs.checkpoints.exceptions import CheckpointNotFoundError, InvalidCheckpointNameError
from libs.checkpoints.locking import storage_lock
from libs.checkpoints.types import ARCHIVE_SUFFIX, Restored

logger = logging.getLogger(__name__)


def normalize_checkpoint_name(name: str) -> str:
    """
    Validate a restore target and return its archive file name.

    Accepts ``2025-01-15_10-30-00.tar.gz`` or the bare ``2025-01-15_10-30-00``.

    Raises:
        InvalidCheckpointNameError: If the name is empty, contains a path
            separator, or is a relative path component
    """
    cleaned = name.strip() if name else ""
    if not cleaned:
        raise InvalidCheckpointNameError("Checkpoint name must not be empty")
    if "/" in cleaned or "\\" in cleaned or "\x00" in cleaned:
        raise InvalidCheckpointNameError(
            f"Checkpoint name must be a file name, not a path: {name!r}"
        )
    if cleaned in (".", "..") or cleaned.startswith("."):
        raise InvalidCheckpointNameError(f"Invalid checkpoint name: {name!r}")
    if not cleaned.endswith(ARCHIVE_SUFFIX):
        cleaned = f"{cleaned}{ARCHIVE_SUFFIX}"
    return cleaned


class CheckpointRestorer:
    """Restores checkpoint archives into the working directory."""

    def __init__(
        self,
        context: CheckpointContext,
        archive_codec: ArchiveCodec | None = None,
    ) -> None:
        self.context = context
        self.archive_codec = archive_codec or ArchiveCodec()

    def locate(self, name: str) -> Path:
        """
        Resolve a checkpoint name to its archive inside storage.

        Raises:
            InvalidCheckpointNameError: If the name escapes the storage directory
            CheckpointNotFoundError: If no such archive exists
        """
        archive_name = normalize_checkpoint_name(name)
        storage_root = self.context.storage_dir.resolve()
        archive_path = (storage_root / archive_name).resolve()
        if archive_path.parent != storage_root:
            raise InvalidCheckpointNameError(
                f"Checkpoint name resolves outside checkpoint storage: {name!r}"
            )
        if not archive_path.is_file():
            raise CheckpointNotFoundError(archive_name, self.context.storage_dir)
        return archive_path

    def restore_checkpoint(self, name: str) -> Restored:
        """
        Unpack the named checkpoint over the working directory.

        Args:
            name: Archive name or bare timestamp identifier

        Returns:
            Restored with the list of written files

        Raises:
            InvalidCheckpointNameError: If the name is not a plain storage entry
            CheckpointNotFoundError: If the archive does not exist (nothing is
                touched on disk)
            StorageWriteError: If extraction fails or the archive is unsafe
            LockAcquisitionError: If another process holds the storage lock
        """
        archive_path = self.locate(name)

        with storage_lock(self.context.storage_dir, self.context.lock_timeout_seconds):
            files = self.archive_codec.unpack(archive_path, self.context.working_dir)

        logger.info(
            "Checkpoint restored",
            extra={
                "event": "checkpoint.restored",
                "archive": archive_path.name,
                "file_count": len(files),
            },
        )
        return Restored(name=archive_path.name, files=files)
