"""
Exception hierarchy for checkpoint operations.

All errors raised by the checkpoint libraries derive from CheckpointError so
the CLI can report them uniformly. "No changes" is not an error and is
returned as a NoChanges result instead.
"""

from __future__ import annotations

from pathlib import Path


class CheckpointError(Exception):
    """
    Base exception for all checkpoint errors.

    Example:
        >>> try:
        ...     restorer.restore("missing.tar.gz")
        ... except CheckpointError as e:
        ...     print(f"Error: {e}")
    """

    pass


class RepositoryEnvironmentError(CheckpointError):
    """
    Raised when the host version-control environment is unusable.

    Covers a missing git executable, an invocation outside a work tree,
    and git commands that fail or time out.
    """

    pass


class CheckpointNotFoundError(CheckpointError):
    """Raised when a restore target does not exist in checkpoint storage."""

    def __init__(self, name: str, storage_dir: Path) -> None:
        self.name = name
        self.storage_dir = storage_dir
        super().__init__(f"Checkpoint not found: {name} (in {storage_dir})")


class InvalidCheckpointNameError(CheckpointError):
    """Raised when a restore target is not a plain name inside storage."""

    pass


class StorageWriteError(CheckpointError):
    """
    Raised when writing or extracting checkpoint data fails.

    Attributes:
        path: File that could not be written.
    """

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")


class MetadataParseError(CheckpointError):
    """
    Raised when a metadata record cannot be read or validated.

    Listing catches this and skips the record.

    Attributes:
        path: Metadata file that failed to parse.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse checkpoint metadata {path.name}: {reason}")


class LockAcquisitionError(CheckpointError):
    """Failed to acquire the storage lock within timeout."""

    pass
