"""
Backup Service - point-in-time copies of the live database and safe restore.

This service provides:
- Atomic backups (SQLite online backup into a temp file, then rename)
- Integrity verification of a backup before it is trusted
- Restore with a pre-restore safety copy and rollback on failure
- Retention pruning of automatic backups (manual and pre-restore backups
  are never pruned)

Restore ordering:
    verify backup -> close store connections -> move live file to
    pre_restore/ -> copy backup into place (temp file + rename) -> verify
    live file. If the copy-in fails, the safety copy is moved back. If that
    move fails too, the failure is logged at CRITICAL and raised as
    RestoreRollbackFailed.
"""

import logging
import os
import shutil
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from rocafe.services.database import Database
from rocafe.services.exceptions import (
    BackupError,
    BackupFileNotFound,
    BackupInvalid,
    PreRestoreBackupFailed,
    RestoreFailed,
    RestoreRollbackFailed,
    SourceNotFound,
)
from rocafe.services.logging_utils import get_service_logger, log_operation
from rocafe.utils.backup_validator import validate_database_file, verify_database_file
from rocafe.utils.config import Config, get_config
from rocafe.utils.constants import (
    AUTOMATIC_BACKUP_PREFIX,
    BACKUP_EXTENSION,
    MANUAL_BACKUP_PREFIX,
    PRE_RESTORE_BACKUP_PREFIX,
    PRE_RESTORE_DIR_NAME,
    SQLITE_SIDECAR_SUFFIXES,
)
from rocafe.utils.datetime_utils import backup_timestamp

logger = get_service_logger(__name__)

PathLike = Union[str, Path]


class BackupState(Enum):
    """Backup service state machine."""

    IDLE = "idle"
    BACKING_UP = "backing_up"
    RESTORING = "restoring"
    ROLLED_BACK = "rolled_back"


class BackupKind(Enum):
    """Backup origin; only AUTOMATIC backups are pruned."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"
    PRE_RESTORE = "pre_restore"


_PREFIXES = {
    BackupKind.AUTOMATIC: AUTOMATIC_BACKUP_PREFIX,
    BackupKind.MANUAL: MANUAL_BACKUP_PREFIX,
    BackupKind.PRE_RESTORE: PRE_RESTORE_BACKUP_PREFIX,
}


@dataclass
class BackupInfo:
    """A backup file found on disk."""

    path: Path
    kind: BackupKind
    size: int
    created: datetime

    def to_dict(self) -> Dict:
        return {
            "path": str(self.path),
            "filename": self.path.name,
            "kind": self.kind.value,
            "size": self.size,
            "created": self.created.isoformat(),
        }


def backup_filename(kind: BackupKind, moment: Optional[datetime] = None) -> str:
    """File name for a new backup, e.g. rocafe-backup-2025-01-31-18-04-59-123456.sqlite."""
    return f"{_PREFIXES[kind]}-{backup_timestamp(moment)}{BACKUP_EXTENSION}"


def classify_backup(path: PathLike) -> Optional[BackupKind]:
    """Backup kind from a file name, or None if the name is not a backup name."""
    name = Path(path).name
    if not name.endswith(BACKUP_EXTENSION):
        return None
    # Longest prefix first so "rocafe-pre-restore" isn't mistaken for another kind
    for kind, prefix in sorted(_PREFIXES.items(), key=lambda item: -len(item[1])):
        if name.startswith(f"{prefix}-"):
            return kind
    return None


def _creation_time(path: Path) -> float:
    """File creation time where the platform records it, else modification time."""
    stat = path.stat()
    return getattr(stat, "st_birthtime", stat.st_mtime)


def _sidecar(path: Path, suffix: str) -> Path:
    return path.with_name(path.name + suffix)


class BackupService:
    """
    Backup/restore coordinator for the live SQLite database file.

    Example:
        service = BackupService.from_config(database=database)
        backup_path = service.backup()
        service.restore(backup_path)
    """

    def __init__(
        self,
        database_path: PathLike,
        backup_dir: PathLike,
        retention_count: int,
        database: Optional[Database] = None,
        pre_restore_dir: Optional[PathLike] = None,
    ):
        self.database_path = Path(database_path)
        self.backup_dir = Path(backup_dir)
        self.pre_restore_dir = (
            Path(pre_restore_dir)
            if pre_restore_dir is not None
            else self.backup_dir / PRE_RESTORE_DIR_NAME
        )
        self.retention_count = retention_count
        self.database = database
        self.state = BackupState.IDLE

    @classmethod
    def from_config(
        cls, config: Optional[Config] = None, database: Optional[Database] = None
    ) -> "BackupService":
        """Build a service from application configuration."""
        if config is None:
            config = get_config()
        return cls(
            database_path=config.database_path,
            backup_dir=config.backup_dir,
            retention_count=config.backup_retention_count,
            database=database,
            pre_restore_dir=config.pre_restore_dir,
        )

    # ========================================================================
    # Backup
    # ========================================================================

    def backup(
        self, destination: Optional[PathLike] = None, kind: BackupKind = BackupKind.AUTOMATIC
    ) -> Path:
        """
        Create a point-in-time copy of the live database.

        The copy is written to a temporary file in the destination directory
        and renamed into place, so a partially written backup is never visible
        under the final name.

        Args:
            destination: Target file or directory (default: backup_dir with a
                generated name)
            kind: AUTOMATIC backups trigger retention pruning afterwards

        Returns:
            Path of the new backup file

        Raises:
            SourceNotFound: If the live database file doesn't exist
            BackupError: If the copy or rename fails
        """
        if not self.database_path.is_file():
            raise SourceNotFound(self.database_path)

        target = self._resolve_destination(destination, kind)
        temp_path = target.with_name(f".{target.name}.tmp")

        self.state = BackupState.BACKING_UP
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._snapshot(temp_path)
            os.replace(temp_path, target)
        except (OSError, sqlite3.Error) as e:
            self._discard(temp_path)
            log_operation(
                logger,
                operation="backup",
                outcome="failed",
                level=logging.ERROR,
                backup_path=str(target),
                error=str(e),
            )
            raise BackupError(f"Failed to create backup at {target}: {e}") from e
        finally:
            self.state = BackupState.IDLE

        log_operation(
            logger,
            operation="backup",
            outcome="success",
            backup_path=str(target),
            kind=kind.value,
            size=target.stat().st_size,
        )

        if kind is BackupKind.AUTOMATIC:
            self.prune_automatic_backups()

        return target

    def _resolve_destination(self, destination: Optional[PathLike], kind: BackupKind) -> Path:
        if destination is None:
            if kind is BackupKind.PRE_RESTORE:
                return self.pre_restore_dir / backup_filename(kind)
            return self.backup_dir / backup_filename(kind)
        destination = Path(destination)
        if destination.is_dir():
            return destination / backup_filename(kind)
        return destination

    def _snapshot(self, temp_path: Path) -> None:
        """Copy the live database into temp_path with the SQLite online backup API."""
        source = sqlite3.connect(str(self.database_path))
        try:
            target = sqlite3.connect(str(temp_path))
            try:
                source.backup(target)
                # Self-contained single file, no -wal/-shm next to the backup
                target.execute("PRAGMA journal_mode=DELETE")
            finally:
                target.close()
        finally:
            source.close()

    def _discard(self, path: Path) -> None:
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove temporary file {path}: {e}")

    # ========================================================================
    # Verify
    # ========================================================================

    def verify(self, backup_path: PathLike) -> bool:
        """
        Run the full integrity check on a backup file (opened read-only).

        Returns:
            True if the file passes

        Raises:
            BackupFileNotFound: If the file doesn't exist
            BackupInvalid: If the file is not a sound SQLite database
        """
        result = validate_database_file(backup_path)
        if not result["file_exists"]:
            raise BackupFileNotFound(backup_path)
        if not result["is_valid"]:
            raise BackupInvalid(backup_path, result["error_message"])
        return True

    # ========================================================================
    # Restore
    # ========================================================================

    def restore(self, backup_path: PathLike) -> Optional[Path]:
        """
        Replace the live database with a verified backup.

        Args:
            backup_path: Backup file to restore

        Returns:
            Path of the pre-restore safety copy, or None if there was no live
            database to preserve

        Raises:
            BackupFileNotFound: If the backup file doesn't exist
            BackupInvalid: If the backup fails verification (nothing touched)
            PreRestoreBackupFailed: If the live file could not be moved to
                safety (live database untouched)
            RestoreFailed: If the copy-in failed and the previous database
                was put back
            RestoreRollbackFailed: If the copy-in failed, or the move to safety
                failed partway, and the previous database could not be put
                back (no live database)
        """
        backup_path = Path(backup_path)
        if not backup_path.is_file():
            raise BackupFileNotFound(backup_path)

        self.verify(backup_path)

        self.state = BackupState.RESTORING
        if self.database is not None:
            self.database.dispose()

        try:
            safety_path = self._move_live_to_safety(backup_path)
        except PreRestoreBackupFailed:
            self.state = BackupState.IDLE
            raise

        try:
            self._copy_into_place(backup_path)
            if not verify_database_file(self.database_path):
                raise BackupInvalid(self.database_path, "restored file failed integrity check")
        except (OSError, sqlite3.Error, BackupError) as e:
            self._roll_back(backup_path, safety_path, e)

        self.state = BackupState.IDLE
        log_operation(
            logger,
            operation="restore",
            outcome="success",
            backup_path=str(backup_path),
            safety_path=str(safety_path) if safety_path else None,
        )
        return safety_path

    def _move_live_to_safety(self, backup_path: Path) -> Optional[Path]:
        """Move the live file and its WAL sidecars to a timestamped pre-restore path."""
        if not self.database_path.exists():
            logger.warning(
                f"No live database at {self.database_path}; restoring without a safety copy"
            )
            return None

        safety_path = self.pre_restore_dir / backup_filename(BackupKind.PRE_RESTORE)
        moved = []
        try:
            self.pre_restore_dir.mkdir(parents=True, exist_ok=True)
            self._move(self.database_path, safety_path)
            moved.append((self.database_path, safety_path))
            for suffix in SQLITE_SIDECAR_SUFFIXES:
                live_sidecar = _sidecar(self.database_path, suffix)
                if live_sidecar.exists():
                    self._move(live_sidecar, _sidecar(safety_path, suffix))
                    moved.append((live_sidecar, _sidecar(safety_path, suffix)))
        except OSError as e:
            self._put_back(backup_path, safety_path, moved, e)
            log_operation(
                logger,
                operation="restore",
                outcome="pre_restore_backup_failed",
                level=logging.ERROR,
                safety_path=str(safety_path),
                error=str(e),
            )
            raise PreRestoreBackupFailed(safety_path, e) from e

        log_operation(
            logger,
            operation="restore",
            outcome="pre_restore_backup_created",
            safety_path=str(safety_path),
        )
        return safety_path

    def _put_back(
        self,
        backup_path: Path,
        safety_path: Path,
        moved: List[Tuple[Path, Path]],
        error: OSError,
    ) -> None:
        """Undo a partial move to safety so the live database is intact."""
        try:
            for original, moved_to in reversed(moved):
                self._move(moved_to, original)
        except OSError as put_back_error:
            self.state = BackupState.ROLLED_BACK
            log_operation(
                logger,
                operation="restore",
                outcome="put_back_failed",
                level=logging.CRITICAL,
                backup_path=str(backup_path),
                safety_path=str(safety_path),
                error=str(error),
                rollback_error=str(put_back_error),
            )
            raise RestoreRollbackFailed(
                backup_path, safety_path, error, put_back_error
            ) from put_back_error

    def _copy_into_place(self, backup_path: Path) -> None:
        """Copy backup_path to the live path through a temp file and rename."""
        temp_path = self.database_path.with_name(f".{self.database_path.name}.restore.tmp")
        try:
            shutil.copy2(backup_path, temp_path)
            os.replace(temp_path, self.database_path)
        except OSError:
            self._discard(temp_path)
            raise

    def _move(self, source: Path, destination: Path) -> None:
        shutil.move(str(source), str(destination))

    def _roll_back(self, backup_path: Path, safety_path: Optional[Path], error: Exception):
        """Put the pre-restore copy back in place, then raise."""
        self.state = BackupState.ROLLED_BACK
        logger.error(f"Restore from {backup_path} failed: {error}; rolling back")

        try:
            # Drop whatever was half-copied, including sidecars it produced
            for path in [self.database_path] + [
                _sidecar(self.database_path, s) for s in SQLITE_SIDECAR_SUFFIXES
            ]:
                if path.exists():
                    path.unlink()

            if safety_path is not None:
                self._move(safety_path, self.database_path)
                for suffix in SQLITE_SIDECAR_SUFFIXES:
                    safety_sidecar = _sidecar(safety_path, suffix)
                    if safety_sidecar.exists():
                        self._move(safety_sidecar, _sidecar(self.database_path, suffix))
        except OSError as rollback_error:
            log_operation(
                logger,
                operation="restore",
                outcome="rollback_failed",
                level=logging.CRITICAL,
                backup_path=str(backup_path),
                safety_path=str(safety_path),
                error=str(error),
                rollback_error=str(rollback_error),
            )
            raise RestoreRollbackFailed(
                backup_path, safety_path, error, rollback_error
            ) from rollback_error

        log_operation(
            logger,
            operation="restore",
            outcome="rolled_back",
            level=logging.WARNING,
            backup_path=str(backup_path),
            error=str(error),
        )
        raise RestoreFailed(backup_path, safety_path, error) from error

    # ========================================================================
    # Listing and retention
    # ========================================================================

    def list_backups(self) -> List[BackupInfo]:
        """
        List backup files of every kind, newest first.

        Returns:
            List of BackupInfo
        """
        candidates = []
        if self.backup_dir.is_dir():
            candidates.extend(self.backup_dir.glob(f"*{BACKUP_EXTENSION}"))
        if self.pre_restore_dir.is_dir():
            candidates.extend(self.pre_restore_dir.glob(f"*{BACKUP_EXTENSION}"))

        backups = []
        for path in candidates:
            kind = classify_backup(path)
            if kind is None or not path.is_file():
                continue
            backups.append(
                BackupInfo(
                    path=path,
                    kind=kind,
                    size=path.stat().st_size,
                    created=datetime.fromtimestamp(_creation_time(path)),
                )
            )

        backups.sort(key=lambda info: (info.created, info.path.name), reverse=True)
        return backups

    def prune_automatic_backups(self) -> int:
        """
        Delete automatic backups beyond the retention count, oldest first.

        Deletion failures are logged and skipped.

        Returns:
            Number of backups deleted
        """
        if not self.backup_dir.is_dir():
            return 0

        automatic = sorted(
            self.backup_dir.glob(f"{AUTOMATIC_BACKUP_PREFIX}-*{BACKUP_EXTENSION}"),
            key=lambda path: (_creation_time(path), path.name),
            reverse=True,
        )

        deleted = 0
        for path in automatic[self.retention_count:]:
            try:
                path.unlink()
                deleted += 1
            except OSError as e:
                log_operation(
                    logger,
                    operation="prune_automatic_backups",
                    outcome="delete_failed",
                    level=logging.WARNING,
                    backup_path=str(path),
                    error=str(e),
                )

        if deleted:
            log_operation(
                logger,
                operation="prune_automatic_backups",
                outcome="success",
                deleted=deleted,
                kept=min(len(automatic), self.retention_count),
            )
        return deleted
