"""
Database file validation utilities.

This module provides the store-specific integrity check used by the backup
service before any backup file is trusted for a restore:
- SQLite header check
- Read-only ``PRAGMA integrity_check``
- SHA-256 checksum for display and audit
"""

import hashlib
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Union

from .constants import SQLITE_HEADER

logger = logging.getLogger(__name__)


def file_checksum(path: Union[str, Path]) -> str:
    """Return the SHA-256 hex digest of a file."""
    file_hash = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(8192):
            file_hash.update(chunk)
    return file_hash.hexdigest()


def _read_only_uri(path: Path) -> str:
    """
    Build a read-only SQLite URI for a database file.

    ``immutable=1`` keeps SQLite from creating -wal/-shm files next to
    the candidate, which a plain ``mode=ro`` open of a WAL database would do.
    """
    return f"{path.resolve().as_uri()}?mode=ro&immutable=1"


def validate_database_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Validate the integrity of a SQLite database file.

    Args:
        path: Path to the database file to validate

    Returns:
        Dictionary with validation results including:
        - is_valid: bool
        - file_exists: bool
        - file_size: int
        - checksum: str
        - sqlite_valid: bool
        - table_count: int
        - error_message: Optional[str]
    """
    result = {
        "is_valid": False,
        "file_exists": False,
        "file_size": 0,
        "checksum": "",
        "sqlite_valid": False,
        "table_count": 0,
        "error_message": None,
    }

    db_file = Path(path)

    if not db_file.is_file():
        result["error_message"] = f"Database file does not exist: {path}"
        return result

    result["file_exists"] = True
    result["file_size"] = db_file.stat().st_size

    try:
        result["checksum"] = file_checksum(db_file)
        with open(db_file, "rb") as f:
            header = f.read(len(SQLITE_HEADER))
    except OSError as e:
        result["error_message"] = f"Could not read database file: {e}"
        return result

    if header != SQLITE_HEADER:
        result["error_message"] = "File is not a SQLite 3 database (bad header)"
        return result

    conn = None
    try:
        conn = sqlite3.connect(_read_only_uri(db_file), uri=True)
        rows = conn.execute("PRAGMA integrity_check").fetchall()
        if rows and rows[0][0] == "ok":
            result["sqlite_valid"] = True
            result["table_count"] = conn.execute(
                "SELECT COUNT(*) FROM sqlite_master WHERE type='table'"
            ).fetchone()[0]
            result["is_valid"] = True
        else:
            problems = "; ".join(str(row[0]) for row in rows[:5])
            result["error_message"] = f"SQLite integrity check failed: {problems}"
    except sqlite3.Error as e:
        result["error_message"] = f"SQLite validation error: {e}"
    finally:
        if conn is not None:
            conn.close()

    if result["is_valid"]:
        logger.debug(f"Database file validated: {db_file}")
    else:
        logger.warning(f"Database file failed validation: {db_file}: {result['error_message']}")

    return result


def verify_database_file(path: Union[str, Path]) -> bool:
    """
    Run the full integrity check on a database file.

    Returns:
        True if the file is a structurally sound SQLite database
    """
    return validate_database_file(path)["is_valid"]
