"""Utilities package for the Rocafe application."""

from .backup_validator import (
    file_checksum,
    validate_database_file,
    verify_database_file,
)

__all__ = [
    "file_checksum",
    "validate_database_file",
    "verify_database_file",
]
