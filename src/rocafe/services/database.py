"""
Database connection and session management for Rocafe.

This module provides:
- Database engine creation and configuration
- The Database store handle (session factory + transactional scope)
- Database initialization (create tables)
- WAL mode, full synchronous writes and foreign key enforcement

Components receive a Database instance explicitly; there is no process-wide
engine, so tests can run against independent in-memory stores.
"""

from contextlib import contextmanager
from typing import Iterator, Optional
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from rocafe.models.base import Base
from rocafe.utils.config import Config, get_config

logger = logging.getLogger(__name__)

EXPECTED_TABLES = ("products", "recipes", "recipe_ingredients", "recipe_versions")


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on connection.

    Enables foreign key constraints, WAL journaling and full fsync on commit.
    """
    cursor = dbapi_connection.cursor()

    # Referential integrity (RESTRICT on ingredient products, CASCADE on recipes)
    cursor.execute("PRAGMA foreign_keys=ON")

    cursor.execute("PRAGMA journal_mode=WAL")

    # Committed cost updates must survive a crash
    cursor.execute("PRAGMA synchronous=FULL")

    cursor.close()


def create_database_engine(
    database_url: Optional[str] = None, echo: bool = False, timeout: Optional[int] = None
) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements (useful for debugging)
        timeout: SQLite busy timeout in seconds. If None, uses config default.

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        # In-memory databases (testing) share one connection
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        if timeout is None:
            timeout = get_config().db_timeout
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

    return engine


def init_database(engine: Engine) -> None:
    """
    Initialize the database by creating all tables.

    Safe to call multiple times - existing tables won't be recreated.

    Args:
        engine: Engine to create tables on
    """
    logger.info("Initializing database tables")

    # Import all models to ensure they're registered with Base
    from rocafe.models import product, recipe, recipe_version  # noqa: F401

    Base.metadata.create_all(engine)

    logger.info("Database tables initialized successfully")


class Database:
    """
    Transactional record store handle.

    Wraps an engine and its session factory. ``session_scope()`` is the
    transaction primitive: everything done with the yielded session commits
    together or rolls back together.

    Example:
        database = Database.from_url("sqlite:///:memory:")
        database.create_tables()
        with database.session_scope() as session:
            session.add(RawMaterial(name="Flour", purchase_cost=Decimal("1.50")))
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(
        cls, database_url: str, echo: bool = False, timeout: Optional[int] = None
    ) -> "Database":
        """Create a store for a database URL."""
        return cls(create_database_engine(database_url, echo=echo, timeout=timeout))

    def get_session(self) -> Session:
        """
        Create a new database session.

        Callers own the session and must commit/rollback and close it.
        """
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope for database operations.

        - Creates a new session
        - Commits on success
        - Rolls back on exception
        - Always closes the session

        Yields:
            Database session
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all tables that don't exist yet."""
        init_database(self.engine)

    def drop_tables(self) -> None:
        """Drop all tables. Intended for tests."""
        Base.metadata.drop_all(self.engine)

    def verify(self) -> bool:
        """
        Verify that the database is accessible and has the expected tables.

        Returns:
            True if database is valid, False otherwise
        """
        try:
            tables = inspect(self.engine).get_table_names()
        except Exception as e:
            logger.error(f"Database verification failed: {e}")
            return False
        return all(table in tables for table in EXPECTED_TABLES)

    def dispose(self) -> None:
        """
        Close all pooled connections.

        Required before the database file is moved or replaced. The engine
        reconnects lazily on the next session.
        """
        self.engine.dispose()
        logger.info("Database connections closed")


def initialize_app_database(config: Optional[Config] = None) -> Database:
    """
    Initialize the application database.

    Creates the database file and tables if they don't exist.

    Args:
        config: Configuration to use (default: global config)

    Returns:
        Ready-to-use Database handle
    """
    if config is None:
        config = get_config()

    if not config.database_exists():
        logger.info(f"Creating new database at: {config.database_path}")
    else:
        logger.info(f"Using existing database at: {config.database_path}")

    database = Database.from_url(config.database_url, timeout=config.db_timeout)
    database.create_tables()

    if database.verify():
        logger.info("Database initialized and verified successfully")
    else:
        logger.warning("Database verification failed - tables may not exist")

    return database
