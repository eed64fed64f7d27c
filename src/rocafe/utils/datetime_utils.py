"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from rocafe.utils.datetime_utils import utc_now

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import datetime, timezone

from .constants import BACKUP_TIMESTAMP_FORMAT


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def backup_timestamp(moment: datetime = None) -> str:
    """
    Format a timestamp for use in backup file names.

    Microseconds are included so two backups taken within the same
    second never collide.

    Args:
        moment: Datetime to format (default: current local time)

    Returns:
        Timestamp string like "2025-01-31-18-04-59-123456"
    """
    if moment is None:
        moment = datetime.now()
    return moment.strftime(BACKUP_TIMESTAMP_FORMAT)
