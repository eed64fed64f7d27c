"""
Configuration management for the Rocafe application.

This module handles:
- Database and backup directory configuration
- Environment-specific configuration (development vs. production)
- Tunables read from environment variables (retention, traversal depth)
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    BACKUP_DIR_NAME,
    DATA_DIR_NAME,
    DATABASE_FILENAME,
    DEFAULT_BACKUP_RETENTION,
    DEFAULT_DB_TIMEOUT,
    DEFAULT_MAX_RECIPE_DEPTH,
    PRE_RESTORE_DIR_NAME,
)

logger = logging.getLogger(__name__)

ENV_VAR_ENVIRONMENT = "ROCAFE_ENV"
ENV_VAR_DATA_DIR = "ROCAFE_DATA_DIR"
ENV_VAR_BACKUP_RETENTION = "ROCAFE_BACKUP_RETENTION"
ENV_VAR_MAX_RECIPE_DEPTH = "ROCAFE_MAX_RECIPE_DEPTH"
ENV_VAR_DB_TIMEOUT = "ROCAFE_DB_TIMEOUT"


def _read_positive_int(env_var: str, default: int) -> int:
    """
    Read a positive integer from the environment.

    Invalid or non-positive values fall back to the default with a warning.
    """
    raw = os.environ.get(env_var)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {env_var}={raw!r}; using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Invalid {env_var}={raw!r} (must be positive); using default {default}")
        return default
    return value


class Config:
    """
    Application configuration manager.

    Handles database and backup paths plus the tunables consumed by the
    cost engine and the backup service.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment

        override = os.environ.get(ENV_VAR_DATA_DIR)
        if override:
            self._base_dir = Path(override)
        elif environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_documents_dir()

        self._database_path = self._base_dir / DATABASE_FILENAME
        self._backup_dir = self._base_dir / BACKUP_DIR_NAME
        self._pre_restore_dir = self._backup_dir / PRE_RESTORE_DIR_NAME

        self._backup_retention_count = _read_positive_int(
            ENV_VAR_BACKUP_RETENTION, DEFAULT_BACKUP_RETENTION
        )
        self._max_recipe_depth = _read_positive_int(
            ENV_VAR_MAX_RECIPE_DEPTH, DEFAULT_MAX_RECIPE_DEPTH
        )
        self._db_timeout = _read_positive_int(ENV_VAR_DB_TIMEOUT, DEFAULT_DB_TIMEOUT)

        self._ensure_directories()

    def _get_project_data_dir(self) -> Path:
        """Get the project's data/ directory for development."""
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_documents_dir(self) -> Path:
        """Get the app subdirectory of the user's Documents folder."""
        return Path.home() / "Documents" / DATA_DIR_NAME

    def _ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._backup_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        """Directory holding the database and its backups."""
        return self._base_dir

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def backup_dir(self) -> Path:
        """Directory for automatic and manual backups."""
        return self._backup_dir

    @property
    def pre_restore_dir(self) -> Path:
        """Directory for pre-restore safety copies (never auto-pruned)."""
        return self._pre_restore_dir

    @property
    def backup_retention_count(self) -> int:
        """Number of automatic backups kept by pruning."""
        return self._backup_retention_count

    @property
    def max_recipe_depth(self) -> int:
        """Maximum sub-recipe nesting depth accepted by the cost engine."""
        return self._max_recipe_depth

    @property
    def db_timeout(self) -> int:
        """SQLite busy timeout in seconds."""
        return self._db_timeout

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """Check if database file exists."""
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', " f"database_path='{self._database_path}')"
        )


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents accidental database
    switching mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    ROCAFE_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
