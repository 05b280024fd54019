"""
Checkpoint metadata storage.

One JSON record per checkpoint, named ``<timestamp>.json`` and stored next to
``<timestamp>.tar.gz``. Records are immutable once written.

Storage layout:
    .checkpoints/
    ├── 2025-01-15_10-30-00.tar.gz
    ├── 2025-01-15_10-30-00.json
    ├── 2025-01-15_11-02-41.tar.gz
    └── 2025-01-15_11-02-41.json
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from libs.checkpoints.exceptions import MetadataParseError, StorageWriteError
from libs.checkpoints.types import ARCHIVE_SUFFIX, METADATA_SUFFIX, Checkpoint

logger = logging.getLogger(__name__)


class MetadataStore:
    """Reads, writes and enumerates checkpoint metadata records.

    Attributes:
        storage_dir: Directory holding archive/metadata pairs. It is only
            created when a record (or archive) is first written.
    """

    def __init__(self, storage_dir: Path) -> None:
        self.storage_dir = Path(storage_dir)

    def metadata_path(self, timestamp: str) -> Path:
        return self.storage_dir / f"{timestamp}{METADATA_SUFFIX}"

    def archive_path(self, timestamp: str) -> Path:
        return self.storage_dir / f"{timestamp}{ARCHIVE_SUFFIX}"

    @staticmethod
    def display_name(metadata_path: Path) -> str:
        """Archive name paired with a metadata file (same stem, archive suffix)."""
        return f"{metadata_path.name[: -len(METADATA_SUFFIX)]}{ARCHIVE_SUFFIX}"

    def exists(self, timestamp: str) -> bool:
        """True if either half of the pair already uses this timestamp."""
        return self.metadata_path(timestamp).exists() or self.archive_path(timestamp).exists()

    def write(self, checkpoint: Checkpoint) -> Path:
        """
        Persist a metadata record atomically (temp file then rename).

        Returns:
            Path of the written record

        Raises:
            StorageWriteError: If the record cannot be written
        """
        target = self.metadata_path(checkpoint.timestamp)
        try:
            payload = checkpoint.to_json()
        except PydanticSerializationError as e:
            raise StorageWriteError(target, f"Failed to serialize metadata ({e})") from e

        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_name = tempfile.mkstemp(
                dir=self.storage_dir, prefix=".metadata-", suffix=".tmp"
            )
        except OSError as e:
            raise StorageWriteError(target, f"Failed to write metadata ({e})") from e

        temp_path = Path(temp_name)
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            temp_path.replace(target)
        except OSError as e:
            raise StorageWriteError(target, f"Failed to write metadata ({e})") from e
        finally:
            # No-op after a successful replace
            temp_path.unlink(missing_ok=True)

        return target

    def read(self, path: Path) -> Checkpoint:
        """
        Load and validate one metadata record.

        Raises:
            MetadataParseError: If the file is unreadable, not JSON, or
                fails schema validation
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MetadataParseError(path, str(e)) from e

        if not isinstance(data, dict):
            raise MetadataParseError(path, f"expected object, got {type(data).__name__}")

        try:
            return Checkpoint.model_validate(data)
        except ValidationError as e:
            raise MetadataParseError(path, str(e)) from e

    def record_paths(self) -> list[Path]:
        """Metadata files, newest first (reverse lexicographic by timestamp)."""
        if not self.storage_dir.is_dir():
            return []
        return sorted(
            (
                p
                for p in self.storage_dir.glob(f"*{METADATA_SUFFIX}")
                if p.is_file() and not p.name.startswith(".")
            ),
            key=lambda p: p.name,
            reverse=True,
        )

    def iter_records(self) -> Iterator[tuple[Path, Checkpoint]]:
        """
        Yield valid records newest first, skipping ones that fail to parse.

        A corrupt record is logged and skipped so it never hides the others.
        """
        for path in self.record_paths():
            try:
                yield path, self.read(path)
            except MetadataParseError as e:
                logger.warning(
                    "Skipping corrupted checkpoint metadata",
                    extra={
                        "event": "checkpoint.metadata.skipped",
                        "path": str(path),
                        "reason": e.reason,
                    },
                )

    def latest(self) -> Checkpoint | None:
        """Most recent valid record, or None if there is none."""
        for _, checkpoint in self.iter_records():
            return checkpoint
        return None
