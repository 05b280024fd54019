"""
Tar archive codec for checkpoint contents.

Packs a list of working-directory-relative files into a gzip tarball and
unpacks such a tarball back over the working directory.

Writes go to a temp file in the destination directory and are renamed into
place, so an interrupted pack never leaves a truncated archive under the
final name. Extraction validates every member before touching the working
tree.
"""

from __future__ import annotations

import logging
import os
import posixpath
import tarfile
import tempfile
from pathlib import Path, PurePosixPath

from libs.checkpoints.exceptions import StorageWriteError

logger = logging.getLogger(__name__)


def link_stays_inside(member_name: str, link_target: str) -> bool:
    """
    True if a symlink at member_name pointing to link_target stays in the tree.

    Only relative targets are accepted. The check is lexical: the target is
    joined to the link's directory and normalized, and must not climb above
    the root.

    Example:
        >>> link_stays_inside("docs/latest", "v2/index.md")
        True
        >>> link_stays_inside("docs/latest", "../../etc/passwd")
        False
    """
    if not link_target or PurePosixPath(link_target).is_absolute():
        return False
    parent = PurePosixPath(member_name).parent.as_posix()
    normalized = posixpath.normpath(posixpath.join(parent, link_target))
    return normalized != ".." and not normalized.startswith("../")


class ArchiveCodec:
    """Create and extract checkpoint archives.

    Example:
        >>> codec = ArchiveCodec()
        >>> codec.pack(Path("/repo"), ["a.txt", "src/b.py"], Path("/repo/.checkpoints/x.tar.gz"))
        >>> codec.unpack(Path("/repo/.checkpoints/x.tar.gz"), Path("/repo"))
        ['a.txt', 'src/b.py']
    """

    def pack(self, source_dir: Path, files: list[str], archive_path: Path) -> None:
        """
        Write ``files`` (relative to source_dir) into a new archive.

        Args:
            source_dir: Directory the relative paths are resolved against
            files: Relative paths, stored under exactly these member names
            archive_path: Final archive location

        Raises:
            StorageWriteError: If a file cannot be read or the archive written
        """
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_name = tempfile.mkstemp(
            dir=archive_path.parent, prefix=".archive-", suffix=".tmp"
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(temp_fd, "wb") as raw, tarfile.open(fileobj=raw, mode="w:gz") as tf:
                for relative in files:
                    tf.add(str(source_dir / relative), arcname=relative, recursive=False)
            temp_path.replace(archive_path)
        except (OSError, tarfile.TarError) as e:
            temp_path.unlink(missing_ok=True)
            raise StorageWriteError(archive_path, f"Failed to write archive ({e})") from e

        logger.debug(
            "Archive written",
            extra={
                "event": "checkpoint.archive.packed",
                "archive": archive_path.name,
                "file_count": len(files),
            },
        )

    def unpack(self, archive_path: Path, destination: Path) -> list[str]:
        """
        Extract every regular file and symlink in the archive into destination.

        Existing files are overwritten, missing directories are created and
        files not present in the archive are left alone. Members that would
        land outside destination, and symlinks pointing outside it, abort the
        restore before anything is written.

        Args:
            archive_path: Archive to extract
            destination: Working directory to restore into

        Returns:
            Member names that were written, in archive order

        Raises:
            StorageWriteError: If the archive is unreadable, unsafe, or a
                file cannot be written
        """
        root = destination.resolve()
        restored: list[str] = []
        try:
            with tarfile.open(archive_path, "r:*") as tf:
                members = [m for m in tf.getmembers() if m.isfile() or m.issym()]
                targets = [self._safe_target(root, m, archive_path) for m in members]

                for member, target in zip(members, targets):
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if member.issym():
                        if os.path.lexists(target):
                            target.unlink()
                        os.symlink(member.linkname, target)
                        restored.append(member.name)
                        continue

                    source = tf.extractfile(member)
                    if source is None:
                        continue
                    # Replace symlinks instead of writing through them
                    if target.is_symlink():
                        target.unlink()
                    with source, open(target, "wb") as out:
                        out.write(source.read())
                    os.chmod(target, (member.mode & 0o777) or 0o644)
                    restored.append(member.name)
        except (OSError, tarfile.TarError) as e:
            raise StorageWriteError(archive_path, f"Failed to extract archive ({e})") from e

        logger.debug(
            "Archive extracted",
            extra={
                "event": "checkpoint.archive.unpacked",
                "archive": archive_path.name,
                "file_count": len(restored),
            },
        )
        return restored

    def _safe_target(self, root: Path, member: tarfile.TarInfo, archive_path: Path) -> Path:
        member_name = member.name
        member_path = PurePosixPath(member_name)
        if member_path.is_absolute() or ".." in member_path.parts:
            raise StorageWriteError(
                archive_path, f"Refusing to extract unsafe member {member_name!r}"
            )
        candidate = root / member_path
        # Resolve the directory only, so the final component may be a symlink we replace
        target = candidate.parent.resolve() / candidate.name
        if target == root or not target.is_relative_to(root):
            raise StorageWriteError(
                archive_path, f"Refusing to extract member outside working tree {member_name!r}"
            )
        if member.issym() and not link_stays_inside(member_name, member.linkname):
            raise StorageWriteError(
                archive_path,
                f"Refusing to extract symlink {member_name!r} pointing outside working tree",
            )
        return target
