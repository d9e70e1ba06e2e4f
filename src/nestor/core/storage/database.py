"""SQLite database for the check-in history.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One completed check-in per user per day
CREATE TABLE IF NOT EXISTS assessments (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    date            TEXT NOT NULL,              -- YYYY-MM-DD
    responses_enc   TEXT NOT NULL,              -- encrypted JSON list of responses
    readiness_score REAL,
    completed_at    TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    is_synced       INTEGER NOT NULL DEFAULT 0,
    UNIQUE (user_id, date)
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_assessments_user_date ON assessments(user_id, date);
CREATE INDEX IF NOT EXISTS idx_assessments_updated   ON assessments(updated_at);
"""

# ---------------------------------------------------------------------------
# V2: detected health patterns
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS health_patterns (
    id             TEXT NOT NULL,
    user_id        TEXT NOT NULL,
    type           TEXT NOT NULL,
    description    TEXT NOT NULL,
    risk_level     TEXT NOT NULL,
    recommendation TEXT NOT NULL,
    detected_date  TEXT NOT NULL,
    created_at     TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, id)
);

CREATE INDEX IF NOT EXISTS idx_patterns_detected ON health_patterns(user_id, detected_date);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class AssessmentDatabase:
    """SQLite manager for assessments and detected patterns.

    ``":memory:"`` gives a throwaway database for tests.

    Usage::

        with AssessmentDatabase("~/.nestor/assessments.db") as db:
            db.connection.execute("SELECT COUNT(*) FROM assessments")
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If ``initialize()`` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        try:
            if self._db_path != ":memory:":
                db_file = Path(self._db_path).expanduser()
                db_file.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(db_file))
            else:
                self._conn = sqlite3.connect(":memory:")
        except (OSError, sqlite3.Error) as exc:
            raise DatabaseError(f"Cannot open database {self._db_path!r}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Assessment database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: health_patterns table")

        if current_version < SCHEMA_VERSION:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            conn.commit()
            logger.info("Schema updated from version %d to %d", current_version, SCHEMA_VERSION)

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Assessment database closed")

    def __enter__(self) -> AssessmentDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
