"""
Checkpoint enumeration and table rendering.
"""

from __future__ import annotations

import logging

from libs.checkpoints.context import CheckpointContext
from libs.checkpoints.metadata import MetadataStore
from libs.checkpoints.types import CheckpointSummary

logger = logging.getLogger(__name__)

MESSAGE_DISPLAY_WIDTH = 50
NAME_COLUMN_WIDTH = 30
FILES_COLUMN_WIDTH = 6


def truncate_message(message: str, width: int = MESSAGE_DISPLAY_WIDTH) -> str:
    """Display-only truncation to ``width`` characters, first line only."""
    first_line = message.splitlines()[0] if message else ""
    return first_line[:width]


class CheckpointLister:
    """Lists checkpoints newest first.

    Works without the storage lock and never fails on a corrupt record:
    unparsable metadata is skipped so the remaining checkpoints still show.
    """

    def __init__(
        self,
        context: CheckpointContext,
        metadata_store: MetadataStore | None = None,
    ) -> None:
        self.context = context
        self.metadata_store = metadata_store or MetadataStore(context.storage_dir)

    def list_checkpoints(self) -> list[CheckpointSummary]:
        """
        Summaries of every valid checkpoint, newest first.

        Returns:
            Empty list if the storage directory is missing or holds no records
        """
        summaries = [
            CheckpointSummary(
                display_name=MetadataStore.display_name(path),
                file_count=checkpoint.file_count,
                message=truncate_message(checkpoint.message),
            )
            for path, checkpoint in self.metadata_store.iter_records()
        ]
        logger.debug(
            "Listed checkpoints",
            extra={"event": "checkpoint.listed", "count": len(summaries)},
        )
        return summaries


def render_table(summaries: list[CheckpointSummary]) -> str:
    """Fixed-width table: name, file count, message."""
    header = f"{'Name':<{NAME_COLUMN_WIDTH}}  {'Files':>{FILES_COLUMN_WIDTH}}  Message"
    lines = [header, "-" * (NAME_COLUMN_WIDTH + FILES_COLUMN_WIDTH + MESSAGE_DISPLAY_WIDTH + 4)]
    for summary in summaries:
        lines.append(
            f"{summary.display_name:<{NAME_COLUMN_WIDTH}}  "
            f"{summary.file_count:>{FILES_COLUMN_WIDTH}}  "
            f"{summary.message}".rstrip()
        )
    return "\n".join(lines)
