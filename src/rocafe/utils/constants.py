"""
Constants for the Rocafe business management core.

This module defines system-wide constants including:
- Application metadata
- Database and backup file naming
- Cost precision and traversal limits
"""

from decimal import Decimal

# ============================================================================
# Application Metadata
# ============================================================================

APP_VERSION = "0.1.0"

# ============================================================================
# Storage
# ============================================================================

DATABASE_FILENAME = "rocafe.sqlite"
DATA_DIR_NAME = "Rocafe"
BACKUP_DIR_NAME = "Backups"
PRE_RESTORE_DIR_NAME = "pre_restore"

# Backup file naming: <prefix>-<timestamp>.sqlite
AUTOMATIC_BACKUP_PREFIX = "rocafe-backup"
MANUAL_BACKUP_PREFIX = "rocafe-manual"
PRE_RESTORE_BACKUP_PREFIX = "rocafe-pre-restore"
BACKUP_EXTENSION = ".sqlite"
BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S-%f"

# SQLite WAL sidecar suffixes
SQLITE_SIDECAR_SUFFIXES = ("-wal", "-shm")

# First 16 bytes of every SQLite 3 database file
SQLITE_HEADER = b"SQLite format 3\x00"

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_BACKUP_RETENTION = 30
DEFAULT_MAX_RECIPE_DEPTH = 50
DEFAULT_DB_TIMEOUT = 30

# ============================================================================
# Money
# ============================================================================

ZERO_COST = Decimal("0")
DISPLAY_COST_QUANTUM = Decimal("0.01")
