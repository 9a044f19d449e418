"""
Base database connection and initialization.

This module handles database connection management and schema initialization.
Optimized for SQLite concurrency with WAL mode and busy_timeout.

IMPORTANT: Database instantiation should be done through the DI layer.
Use core.dependencies.get_database() instead of instantiating directly.
"""
import sqlite3
import logging
from typing import Optional
from pathlib import Path

from core.config import DATABASE_PATH, DATABASE_BUSY_TIMEOUT

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite database connection manager with concurrency optimizations.

    Features:
    - WAL mode for better concurrent read/write performance
    - Busy timeout to handle lock contention gracefully
    - Foreign key constraints enabled by default

    Usage:
        # Via dependency injection (recommended):
        from core.dependencies import get_database
        db = get_database()

        # Direct instantiation (for testing):
        db = Database(db_path="/tmp/test.db")
    """

    def __init__(self, db_path: Optional[str] = None, busy_timeout: Optional[int] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. Defaults to config DATABASE_PATH.
            busy_timeout: SQLite busy timeout in milliseconds. Defaults to config value.
        """
        self.db_path = db_path or DATABASE_PATH
        self.busy_timeout = busy_timeout if busy_timeout is not None else DATABASE_BUSY_TIMEOUT

        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _configure_connection(self, conn: sqlite3.Connection, busy_timeout: Optional[int] = None) -> None:
        """
        Configure connection with optimal settings for concurrency.

        Args:
            conn: SQLite connection to configure.
            busy_timeout: Override of the busy timeout in milliseconds.
        """
        timeout = busy_timeout if busy_timeout is not None else self.busy_timeout
        conn.execute(f"PRAGMA busy_timeout = {int(timeout)}")
        conn.execute("PRAGMA foreign_keys = ON")

    def _init_db(self) -> None:
        """Initialize database schema and enable WAL mode if not already enabled."""
        conn = sqlite3.connect(self.db_path)
        self._configure_connection(conn)
        cursor = conn.cursor()

        # WAL mode persists in the database file, so this only needs to run once
        cursor.execute("PRAGMA journal_mode = WAL")
        result = cursor.fetchone()
        if result and result[0].lower() == 'wal':
            logger.info(f"SQLite WAL mode enabled for {self.db_path}")
        else:
            logger.warning(f"Failed to enable WAL mode, current mode: {result}")

        # Users are owned by the user directory; this table mirrors id and role
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                role TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS appointments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                clinician_id INTEGER NOT NULL,
                patient_id INTEGER NOT NULL,
                status TEXT NOT NULL,
                FOREIGN KEY (clinician_id) REFERENCES users(id),
                FOREIGN KEY (patient_id) REFERENCES users(id)
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_appointments_pair
            ON appointments (clinician_id, patient_id, status)
        """)

        # body and abnormal_values are JSON documents; version backs optimistic locking
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS health_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                patient_id INTEGER NOT NULL,
                recorded_by_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                source TEXT NOT NULL DEFAULT 'manual',
                body TEXT NOT NULL,
                is_abnormal INTEGER NOT NULL DEFAULT 0,
                abnormal_values TEXT NOT NULL DEFAULT '[]',
                version INTEGER NOT NULL DEFAULT 1,
                FOREIGN KEY (patient_id) REFERENCES users(id),
                FOREIGN KEY (recorded_by_id) REFERENCES users(id)
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_health_records_patient_created
            ON health_records (patient_id, created_at DESC, id DESC)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_health_records_abnormal
            ON health_records (patient_id, is_abnormal)
        """)

        conn.commit()
        conn.close()

        logger.info(
            f"Database initialized: {self.db_path} "
            f"(busy_timeout={self.busy_timeout}ms)"
        )

    def get_connection(self, busy_timeout: Optional[int] = None) -> sqlite3.Connection:
        """
        Get a new database connection with concurrency settings.

        Args:
            busy_timeout: Optional per-connection busy timeout in milliseconds,
                used by lookups that must give up sooner than regular queries.

        Returns:
            sqlite3.Connection: A new database connection configured for
                concurrent access with foreign keys enabled and busy timeout set.
        """
        timeout = busy_timeout if busy_timeout is not None else self.busy_timeout
        conn = sqlite3.connect(self.db_path, timeout=timeout / 1000)
        self._configure_connection(conn, busy_timeout=timeout)
        return conn
