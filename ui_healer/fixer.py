"""
File Mutation Module for the UI Test Healer
===========================================

This module owns every change the healer makes on disk. A candidate is
never written straight over a test file: the original is copied to a
timestamped backup first, the candidate goes to a temp file in the same
directory, the temp file is read back and compared, and only then is it
moved over the target. Rollback restores the backup's exact bytes through
the same path.

Safety Features:
---------------
- Backup before every first write of an attempt
- Write verification by byte comparison
- Atomic replace (the target is either the original or the candidate)
- Age and count based backup retention
"""

import logging
import os
import re
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .config import BackupConfig
from .errors import RollbackError, WriteFailure
from .logger import AuditAction, AuditLogger

logger = logging.getLogger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class BackupRecord:
    """
    A backup copy of a file taken before mutation.

    Attributes:
        original_path: File that was backed up
        backup_path: Location of the copy
        timestamp_ms: Creation time (also encoded in the file name)
        size_bytes: Size of the copied content
    """
    original_path: str
    backup_path: str
    timestamp_ms: int
    size_bytes: int


class BackupStore:
    """
    Creates, retains and prunes timestamped backups.

    Backups are named ``{basename}.{timestamp_ms}.bak``. After each new
    backup, copies older than the retention window are deleted and only the
    newest ``max_backups_per_file`` copies of that file are kept.
    """

    def __init__(
        self,
        config: BackupConfig,
        audit: AuditLogger,
        clock: Callable[[], float] = time.time
    ):
        self.backup_dir = Path(config.backup_dir)
        self.retention_days = config.retention_days
        self.max_backups_per_file = config.max_backups_per_file
        self.audit = audit
        self._clock = clock
        self._lock = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def create(self, file_path: Path) -> BackupRecord:
        """
        Copy a file's current bytes into the backup directory.

        Args:
            file_path: File about to be modified

        Returns:
            The BackupRecord describing the copy
        """
        file_path = Path(file_path)
        content = file_path.read_bytes()

        with self._lock:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            timestamp = self._now_ms()
            # Timestamps stay unique and increasing per file, even within one millisecond
            existing = self.list_backups(file_path.name)
            if existing and timestamp <= existing[0][0]:
                timestamp = existing[0][0] + 1
            backup_path = self.backup_dir / f"{file_path.name}.{timestamp}.bak"

            with open(backup_path, "xb") as f:
                f.write(content)

        record = BackupRecord(
            original_path=str(file_path),
            backup_path=str(backup_path),
            timestamp_ms=timestamp,
            size_bytes=len(content)
        )
        self.audit.log(
            AuditAction.BACKUP_CREATED,
            record.original_path,
            f"Backup created at {record.backup_path} ({record.size_bytes} bytes)"
        )

        self.prune(file_path.name, keep=record.backup_path)
        return record

    def list_backups(self, basename: str) -> List[Tuple[int, Path]]:
        """
        List backups of one file, newest first.

        Returns:
            (timestamp_ms, path) pairs
        """
        if not self.backup_dir.exists():
            return []

        pattern = re.compile(re.escape(basename) + r"\.(\d+)\.bak$")
        found = []
        for path in self.backup_dir.iterdir():
            match = pattern.match(path.name)
            if match and path.is_file():
                found.append((int(match.group(1)), path))
        found.sort(reverse=True)
        return found

    def prune(self, basename: str, keep: Optional[str] = None) -> List[str]:
        """
        Apply the retention policy to the backups of one file.

        Args:
            basename: File name whose backups are swept
            keep: Backup path that must survive the sweep

        Returns:
            Paths of deleted backups
        """
        deleted = []
        with self._lock:
            cutoff = self._now_ms() - self.retention_days * MS_PER_DAY
            for index, (timestamp, path) in enumerate(self.list_backups(basename)):
                if keep and str(path) == keep:
                    continue
                too_many = index >= self.max_backups_per_file
                too_old = timestamp < cutoff
                if not (too_many or too_old):
                    continue
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                deleted.append(str(path))
                reason = "count limit" if too_many else "retention window"
                self.audit.log(
                    AuditAction.BACKUP_DELETED,
                    str(path),
                    f"Backup pruned ({reason})"
                )
        return deleted

    def delete(self, record: BackupRecord) -> bool:
        """
        Delete one backup explicitly (after a verified fix).

        Returns False if the backup is already gone or cannot be removed;
        a leftover backup is swept later by the retention policy.
        """
        with self._lock:
            try:
                Path(record.backup_path).unlink()
            except FileNotFoundError:
                return False
            except OSError as e:
                logger.warning("⚠️ Could not delete backup %s: %s", record.backup_path, e)
                return False
        self.audit.log(
            AuditAction.BACKUP_DELETED,
            record.backup_path,
            f"Backup of {record.original_path} removed after verified fix"
        )
        return True


class FileMutator:
    """
    Atomic write-with-backup and rollback-from-backup primitives.

    Usage:
        mutator = FileMutator(backups, audit)
        record = mutator.apply(path, candidate)
        if not verified:
            mutator.rollback(record)
    """

    def __init__(self, backups: BackupStore, audit: AuditLogger):
        self.backups = backups
        self.audit = audit

    def apply(self, file_path: Path, content: str) -> BackupRecord:
        """
        Back up a file, then atomically replace it with new content.

        Args:
            file_path: Target test file
            content: Candidate file body

        Returns:
            The backup taken before the write

        Raises:
            WriteFailure: If the backup or the write fails; the original
                file is left unchanged
        """
        file_path = Path(file_path)
        try:
            record = self.backups.create(file_path)
        except OSError as e:
            raise WriteFailure(f"Could not back up {file_path}: {e}")

        try:
            self._atomic_write(file_path, content.encode("utf-8"))
        except (OSError, WriteFailure) as e:
            logger.error("Write to %s failed, backup kept at %s", file_path, record.backup_path)
            raise WriteFailure(f"Failed to write fix to {file_path}: {e}", backup=record)

        self.audit.log(
            AuditAction.FILE_MODIFIED,
            str(file_path),
            f"Applied candidate fix (backup: {record.backup_path})",
            metadata={"backup_path": record.backup_path, "size_bytes": len(content.encode("utf-8"))}
        )
        return record

    def rollback(self, record: BackupRecord) -> None:
        """
        Restore the exact bytes of a backup over its original file.

        Raises:
            RollbackError: If the backup cannot be read or written back
        """
        target = Path(record.original_path)
        try:
            original = Path(record.backup_path).read_bytes()
            self._atomic_write(target, original)
        except (OSError, WriteFailure) as e:
            raise RollbackError(f"Rollback of {target} from {record.backup_path} failed: {e}")

        self.audit.log(
            AuditAction.ROLLBACK_PERFORMED,
            str(target),
            f"Restored from {record.backup_path}"
        )

    def _atomic_write(self, target: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

            if self._read_back(tmp_path) != data:
                raise WriteFailure(f"Write verification failed for {target}")

            # mkstemp creates 0600; the replaced file keeps the target's mode
            if target.exists():
                shutil.copymode(target, tmp_path)
            os.replace(tmp_path, target)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def _read_back(self, path: Path) -> bytes:
        return path.read_bytes()
