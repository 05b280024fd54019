"""
Local working-tree checkpoints on top of git.

A checkpoint is a gzip tarball of the modified and untracked files of a git
working directory plus a JSON metadata record, stored side by side under
``.checkpoints/`` and named by creation time. No git commits are made.

Modules:
- context: CheckpointContext (working dir, user, clock, message source)
- types: Checkpoint metadata model and operation results
- changeset: ChangeSetProvider (git diff + untracked files)
- archive: ArchiveCodec (tar.gz pack/unpack)
- metadata: MetadataStore (JSON records, newest-first enumeration)
- locking: StorageLock (exclusive lock around commit/restore)
- writer / lister / restorer: the three orchestrators

Usage:
    from libs.checkpoints import CheckpointContext, CheckpointWriter
    context = CheckpointContext.from_settings(get_settings())
    CheckpointWriter(context).create_checkpoint("before refactor")
"""

from libs.checkpoints.archive import ArchiveCodec
from libs.checkpoints.changeset import ChangeSetProvider, ensure_repository
from libs.checkpoints.context import CheckpointContext, prompt_for_message
from libs.checkpoints.exceptions import (
    CheckpointError,
    CheckpointNotFoundError,
    InvalidCheckpointNameError,
    LockAcquisitionError,
    MetadataParseError,
    RepositoryEnvironmentError,
    StorageWriteError,
)
from libs.checkpoints.lister import CheckpointLister, render_table
from libs.checkpoints.locking import StorageLock, storage_lock
from libs.checkpoints.metadata import MetadataStore
from libs.checkpoints.restorer import CheckpointRestorer
from libs.checkpoints.types import (
    Checkpoint,
    CheckpointCreated,
    CheckpointSummary,
    NoChanges,
    Restored,
)
from libs.checkpoints.writer import CheckpointWriter

__all__ = [
    # Context
    "CheckpointContext",
    "prompt_for_message",
    # Types
    "Checkpoint",
    "CheckpointCreated",
    "CheckpointSummary",
    "NoChanges",
    "Restored",
    # Components
    "ArchiveCodec",
    "ChangeSetProvider",
    "ensure_repository",
    "MetadataStore",
    "StorageLock",
    "storage_lock",
    # Orchestrators
    "CheckpointWriter",
    "CheckpointLister",
    "CheckpointRestorer",
    "render_table",
    # Exceptions
    "CheckpointError",
    "CheckpointNotFoundError",
    "InvalidCheckpointNameError",
    "LockAcquisitionError",
    "MetadataParseError",
    "RepositoryEnvironmentError",
    "StorageWriteError",
]
