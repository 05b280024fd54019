"""
Shared types for checkpoint operations.

This module defines:
- Checkpoint: Pydantic model of the on-disk metadata record
- CheckpointCreated / NoChanges: Outcomes of CheckpointWriter.create()
- CheckpointSummary: One row of CheckpointLister output
- Restored: Outcome of CheckpointRestorer.restore()
- LockToken: Token proving storage lock ownership
"""

from __future__ import annotations

import datetime
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

ARCHIVE_SUFFIX = ".tar.gz"
METADATA_SUFFIX = ".json"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


class Checkpoint(BaseModel):
    """Metadata record stored next to every checkpoint archive.

    The JSON field names are a durable on-disk contract shared with other
    implementations: ``timestamp``, ``message``, ``created_by``, ``date``,
    ``file_count``, ``files``. ``date`` is exposed as ``created_at``.

    Attributes:
        timestamp: Sortable identifier, ``YYYY-MM-DD_HH-MM-SS`` (optionally
            followed by a ``_NN`` collision suffix).
        message: Free-text description.
        created_by: User who created the checkpoint.
        created_at: Human-readable creation time.
        file_count: Number of captured files, always ``len(files)``.
        files: Working-directory-relative paths, in change-set order.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timestamp: str = Field(min_length=1)
    message: str = ""
    created_by: str = ""
    created_at: str = Field(default="", alias="date")
    file_count: int
    files: list[str]

    @model_validator(mode="after")
    def validate_files(self) -> Checkpoint:
        """Reject empty file lists and inconsistent counts."""
        if not self.files:
            raise ValueError("files must not be empty")
        if self.file_count != len(self.files):
            raise ValueError(
                f"file_count {self.file_count} does not match {len(self.files)} files"
            )
        return self

    @property
    def archive_name(self) -> str:
        return f"{self.timestamp}{ARCHIVE_SUFFIX}"

    @property
    def file_set(self) -> frozenset[str]:
        return frozenset(self.files)

    def to_json(self) -> str:
        """Serialize using the on-disk field names."""
        return self.model_dump_json(by_alias=True, indent=2)


@dataclass(frozen=True)
class CheckpointCreated:
    """A new checkpoint was written."""

    timestamp: str
    file_count: int


@dataclass(frozen=True)
class NoChanges:
    """Create was a recognized no-op.

    ``reason`` is ``"empty"`` when the change set was empty and
    ``"duplicate"`` when it matched the most recent checkpoint.
    """

    reason: Literal["empty", "duplicate"]
    previous: str | None = None


CreateResult = Union[CheckpointCreated, NoChanges]


@dataclass(frozen=True)
class CheckpointSummary:
    """Listing row: archive display name, file count, truncated message."""

    display_name: str
    file_count: int
    message: str


@dataclass(frozen=True)
class Restored:
    """A checkpoint archive was unpacked over the working directory."""

    name: str
    files: list[str] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)


@dataclass
class LockToken:
    """
    Token proving exclusive ownership of the storage lock.

    Lock file format (JSON at <storage>/.lock):
    {
        "pid": 12345,
        "hostname": "dev-laptop",
        "writer_id": "1f0c...",
        "acquired_at": "2025-01-15T10:30:00+00:00",
        "expires_at": "2025-01-15T10:40:00+00:00"
    }
    """

    pid: int
    hostname: str
    writer_id: str
    acquired_at: datetime.datetime
    expires_at: datetime.datetime
    lock_path: Path

    def is_expired(self) -> bool:
        return datetime.datetime.now(datetime.UTC) > self.expires_at

    def to_dict(self) -> dict[str, str | int]:
        return {
            "pid": self.pid,
            "hostname": self.hostname,
            "writer_id": self.writer_id,
            "acquired_at": self.acquired_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, str | int], lock_path: Path) -> LockToken:
        return cls(
            pid=int(data["pid"]),
            hostname=str(data["hostname"]),
            writer_id=str(data["writer_id"]),
            acquired_at=datetime.datetime.fromisoformat(str(data["acquired_at"])),
            expires_at=datetime.datetime.fromisoformat(str(data["expires_at"])),
            lock_path=lock_path,
        )
