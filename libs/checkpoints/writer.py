"""
Checkpoint creation.

Creation order matters for crash safety: the archive is written before
its metadata record, so an interrupted run can leave an orphan archive but
never a metadata record pointing at a missing archive.
"""

from __future__ import annotations

import logging

from libs.checkpoints.archive import ArchiveCodec
from libs.checkpoints.changeset import ChangeSetProvider
from libs.checkpoints.context import CheckpointContext
from libs.checkpoints.exceptions import StorageWriteError
from libs.checkpoints.locking import storage_lock
from libs.checkpoints.metadata import MetadataStore
from libs.checkpoints.types import (
    CREATED_AT_FORMAT,
    TIMESTAMP_FORMAT,
    Checkpoint,
    CheckpointCreated,
    CreateResult,
    NoChanges,
)

logger = logging.getLogger(__name__)

MAX_COLLISION_SUFFIX = 99


class CheckpointWriter:
    """
    Creates checkpoints of the working directory's change set.

    Example:
        >>> writer = CheckpointWriter(context)
        >>> writer.create_checkpoint("before refactor")
        CheckpointCreated(timestamp='2025-01-15_10-30-00', file_count=2)
        >>> writer.create_checkpoint("again")
        NoChanges(reason='duplicate', previous='2025-01-15_10-30-00')
    """

    def __init__(
        self,
        context: CheckpointContext,
        change_set_provider: ChangeSetProvider | None = None,
        archive_codec: ArchiveCodec | None = None,
        metadata_store: MetadataStore | None = None,
    ) -> None:
        self.context = context
        self.change_set_provider = change_set_provider or ChangeSetProvider(
            context.working_dir,
            context.storage_dir,
            timeout=context.git_timeout_seconds,
        )
        self.archive_codec = archive_codec or ArchiveCodec()
        self.metadata_store = metadata_store or MetadataStore(context.storage_dir)

    def create_checkpoint(self, message: str | None = None) -> CreateResult:
        """
        Create a checkpoint unless there is nothing new to capture.

        Args:
            message: Checkpoint description. If None, the context's message
                source is asked (interactive prompt by default).

        Returns:
            CheckpointCreated, or NoChanges when the change set is empty or
            has the same files as the most recent checkpoint

        Raises:
            RepositoryEnvironmentError: If git cannot be queried
            StorageWriteError: If the archive or metadata write fails
            LockAcquisitionError: If another process holds the storage lock
        """
        if message is None:
            message = self.context.message_source()

        files = self.change_set_provider.compute_change_set()
        if not files:
            logger.info(
                "No files to include in checkpoint",
                extra={"event": "checkpoint.empty"},
            )
            return NoChanges(reason="empty")

        # Read-only check first so a duplicate never touches storage
        duplicate = self._duplicate_of(files)
        if duplicate is not None:
            return duplicate

        with storage_lock(self.context.storage_dir, self.context.lock_timeout_seconds):
            # Another process may have committed while we waited
            duplicate = self._duplicate_of(files)
            if duplicate is not None:
                return duplicate

            now = self.context.clock()
            timestamp = self._unique_timestamp(now.strftime(TIMESTAMP_FORMAT))

            # Archive first: a crash here leaves an orphan archive, never orphan metadata
            self.archive_codec.pack(
                self.context.working_dir,
                files,
                self.metadata_store.archive_path(timestamp),
            )

            checkpoint = Checkpoint(
                timestamp=timestamp,
                message=message,
                created_by=self.context.user,
                created_at=now.strftime(CREATED_AT_FORMAT),
                file_count=len(files),
                files=files,
            )
            self.metadata_store.write(checkpoint)

        logger.info(
            "Checkpoint created",
            extra={
                "event": "checkpoint.created",
                "timestamp": timestamp,
                "file_count": len(files),
            },
        )
        return CheckpointCreated(timestamp=timestamp, file_count=len(files))

    def _duplicate_of(self, files: list[str]) -> NoChanges | None:
        latest = self.metadata_store.latest()
        if latest is None or latest.file_set != frozenset(files):
            return None
        logger.info(
            "Change set matches latest checkpoint, skipping",
            extra={"event": "checkpoint.duplicate", "previous": latest.timestamp},
        )
        return NoChanges(reason="duplicate", previous=latest.timestamp)

    def _unique_timestamp(self, base: str) -> str:
        """Append ``_NN`` when a checkpoint with this second already exists.

        The two-digit suffix keeps identifiers lexicographically ordered by
        creation time.
        """
        if not self.metadata_store.exists(base):
            return base
        for n in range(1, MAX_COLLISION_SUFFIX + 1):
            candidate = f"{base}_{n:02d}"
            if not self.metadata_store.exists(candidate):
                logger.debug(
                    "Timestamp collision, using suffix",
                    extra={"event": "checkpoint.timestamp.collision", "timestamp": candidate},
                )
                return candidate
        raise StorageWriteError(
            self.metadata_store.archive_path(base),
            "Too many checkpoints created within one second",
        )
