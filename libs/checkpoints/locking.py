"""
OS-atomic lock on a checkpoint storage directory.

Serializes commit and restore across processes sharing one storage
directory. Listing does not lock.

This module implements:
- StorageLock: Lock using O_CREAT|O_EXCL with stale recovery
- storage_lock: Context manager for scoped locking
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import socket
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from libs.checkpoints.exceptions import LockAcquisitionError
from libs.checkpoints.types import LockToken

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".lock"

_LOCK_FIELDS = {"pid", "hostname", "writer_id", "acquired_at", "expires_at"}


class StorageLock:
    """Exclusive lock file inside the storage directory.

    A lock is stale (and recovered) when it is malformed, past its expiry,
    or held by a dead process on this host.

    Attributes:
        LOCK_TIMEOUT_MINUTES: Lock lifetime before it is considered stale.
    """

    LOCK_TIMEOUT_MINUTES = 10
    RETRY_BACKOFF_SECONDS = [0.05, 0.1, 0.25, 0.5, 1.0]

    def __init__(self, storage_dir: Path, writer_id: str | None = None) -> None:
        self.storage_dir = Path(storage_dir)
        self.writer_id = writer_id or str(uuid.uuid4())
        self.lock_path = self.storage_dir / LOCK_FILE_NAME
        self._current_token: LockToken | None = None

    def acquire(self, timeout_seconds: float = 10.0) -> LockToken:
        """Acquire the lock, retrying with backoff until timeout.

        Raises:
            LockAcquisitionError: If the lock cannot be acquired in time.
        """
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        start_time = time.monotonic()
        attempt = 0

        while True:
            try:
                token = self._try_acquire()
                self._current_token = token
                logger.debug(
                    "Storage lock acquired",
                    extra={"event": "checkpoint.lock.acquired", "writer_id": self.writer_id},
                )
                return token
            except FileExistsError:
                is_stale, reason = self._is_lock_stale()
                if is_stale:
                    logger.warning(
                        "Stale storage lock detected",
                        extra={"event": "checkpoint.lock.stale", "reason": reason},
                    )
                    if self._recover_stale_lock():
                        continue

            if time.monotonic() - start_time >= timeout_seconds:
                break
            backoff = self.RETRY_BACKOFF_SECONDS[min(attempt, len(self.RETRY_BACKOFF_SECONDS) - 1)]
            time.sleep(backoff)
            attempt += 1

        raise LockAcquisitionError(
            f"Checkpoint storage {self.storage_dir} is locked by another process "
            f"(waited {timeout_seconds}s)"
        )

    def release(self, token: LockToken) -> None:
        """Release the lock if the on-disk file still belongs to ``token``."""
        try:
            data = json.loads(self.lock_path.read_text())
            if data.get("writer_id") != token.writer_id or data.get("pid") != token.pid:
                logger.warning(
                    "Storage lock was taken over, not releasing",
                    extra={"event": "checkpoint.lock.release_skipped"},
                )
                return
            self.lock_path.unlink()
            logger.debug(
                "Storage lock released",
                extra={"event": "checkpoint.lock.released", "writer_id": self.writer_id},
            )
        except FileNotFoundError:
            pass
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(
                "Cannot verify storage lock ownership, not releasing",
                extra={"event": "checkpoint.lock.release_failed", "error": str(e)},
            )
        finally:
            self._current_token = None

    def _try_acquire(self) -> LockToken:
        """Atomically create the lock file.

        Raises:
            FileExistsError: If the lock file already exists.
        """
        now = datetime.datetime.now(datetime.UTC)
        token = LockToken(
            pid=os.getpid(),
            hostname=socket.gethostname(),
            writer_id=self.writer_id,
            acquired_at=now,
            expires_at=now + datetime.timedelta(minutes=self.LOCK_TIMEOUT_MINUTES),
            lock_path=self.lock_path,
        )

        fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        try:
            os.write(fd, token.to_json().encode())
            os.fsync(fd)
        finally:
            os.close(fd)

        return token

    def _is_lock_stale(self) -> tuple[bool, str]:
        """Check whether the existing lock file can be recovered."""
        try:
            data = json.loads(self.lock_path.read_text())
        except FileNotFoundError:
            # Released between our create attempt and this check
            return False, ""
        except (json.JSONDecodeError, OSError) as e:
            return True, f"Malformed lock file: {e}"

        if not isinstance(data, dict) or set(data.keys()) != _LOCK_FIELDS:
            return True, "Invalid lock schema"

        try:
            token = LockToken.from_dict(data, self.lock_path)
        except (KeyError, ValueError) as e:
            return True, f"Invalid lock data: {e}"

        if token.is_expired():
            return True, "Lock expired"

        if token.hostname == socket.gethostname() and not self._is_pid_alive(token.pid):
            return True, f"Holder PID {token.pid} is dead"

        return False, ""

    def _is_pid_alive(self, pid: int) -> bool:
        try:
            os.kill(pid, 0)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            # Process exists but belongs to another user
            return True

    def _recover_stale_lock(self) -> bool:
        """Claim a stale lock via atomic rename; first process to rename wins."""
        recovery_path = self.lock_path.with_name(f"{LOCK_FILE_NAME}.recovery.{os.getpid()}")
        try:
            os.rename(str(self.lock_path), str(recovery_path))
        except OSError:
            # Another process recovered it first
            return False
        recovery_path.unlink(missing_ok=True)
        logger.info(
            "Recovered stale storage lock",
            extra={"event": "checkpoint.lock.recovered"},
        )
        return True


@contextmanager
def storage_lock(
    storage_dir: Path,
    timeout_seconds: float = 10.0,
    writer_id: str | None = None,
) -> Iterator[LockToken]:
    """Hold the storage lock for the duration of the block.

    Example:
        with storage_lock(Path(".checkpoints")):
            write_checkpoint()

    Raises:
        LockAcquisitionError: If the lock cannot be acquired.
    """
    lock = StorageLock(storage_dir, writer_id)
    token = lock.acquire(timeout_seconds)
    try:
        yield token
    finally:
        lock.release(token)
