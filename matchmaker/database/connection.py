"""Database connection management.

Simple SQLite connection handling with schema initialization.
"""

import logging
import os
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "matchmaker.db"

# Schema file location
SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Tables every initialized database must have
REQUIRED_TABLES = {"schema_meta", "players", "queue_entries", "matches", "leases", "events"}


def _get_timeout() -> float:
    """Busy timeout in seconds (DB_TIMEOUT_SECONDS, default 30)."""
    try:
        return float(os.getenv("DB_TIMEOUT_SECONDS", "30"))
    except ValueError:
        return 30.0


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """Get a database connection.

    Args:
        db_path: Path to database file. Uses DB_PATH env var, then
            DEFAULT_DB_PATH if not specified.

    Returns:
        SQLite connection with row factory set to sqlite3.Row
    """
    path = Path(db_path or os.getenv("DB_PATH") or DEFAULT_DB_PATH)
    timeout = _get_timeout()

    # check_same_thread=False: scheduler and lease renewer threads share factories
    conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    # WAL lets pool readers proceed while a pass commits
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")

    return conn


@contextmanager
def get_db(db_path: Path | str | None = None) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database connections.

    Usage:
        with get_db() as conn:
            cursor = conn.execute("SELECT * FROM queue_entries")
            entries = cursor.fetchall()
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def db_factory_for(db_path: Path | str | None = None):
    """Bind get_db to a specific path.

    Services take a zero-argument factory; this builds one.
    """

    def factory():
        return get_db(db_path)

    return factory


def init_db(db_path: Path | str | None = None) -> None:
    """Initialize database with schema.

    Creates tables if they don't exist. Safe to call multiple times.

    Args:
        db_path: Path to database file. Uses DEFAULT_DB_PATH if not specified.

    Raises:
        RuntimeError: If the file exists but is not a usable database
    """
    path = Path(db_path or os.getenv("DB_PATH") or DEFAULT_DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    schema_sql = SCHEMA_PATH.read_text()

    try:
        with get_db(path) as conn:
            conn.executescript(schema_sql)
            _verify_schema(conn)
    except sqlite3.DatabaseError as e:
        if "file is not a database" in str(e):
            logger.error("[STARTUP] Database file '%s' is not a SQLite database", path)
            raise RuntimeError(
                f"Incompatible database file at '{path}'. "
                "Please use a fresh data directory or delete the existing file."
            ) from e
        raise

    logger.info("[STARTUP] Database ready at %s", path)


def _verify_schema(conn: sqlite3.Connection) -> None:
    """Ensure every required table exists after applying schema.sql."""
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing = {row["name"] for row in cursor.fetchall()}
    missing = REQUIRED_TABLES - existing
    if missing:
        raise RuntimeError(f"Database schema incomplete, missing tables: {sorted(missing)}")


def reset_db(db_path: Path | str | None = None) -> None:
    """Drop all matchmaker tables and recreate them.

    WARNING: This deletes all data!
    """
    with get_db(db_path) as conn:
        for table in ("events", "leases", "matches", "queue_entries", "players", "schema_meta"):
            conn.execute(f"DROP TABLE IF EXISTS {table}")
    logger.warning("[STARTUP] Database reset")
    init_db(db_path)
