"""Assessment repository — CRUD for encrypted daily check-ins and patterns.

The repository maps ``Assessment`` and ``HealthPattern`` objects to SQLite
rows, encrypting question responses with ``FieldEncryptor``. There is at most
one assessment per user per day: saving a second one for the same date
updates the existing row.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Iterable

from nestor.core.storage.database import AssessmentDatabase
from nestor.core.storage.encryption import FieldEncryptor
from nestor.domains.health.domain_logic.insight_models import Assessment, AssessmentResponse
from nestor.domains.health.domain_logic.patterns import HealthPattern

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class AssessmentRepository:
    """Persistence for check-ins and detected patterns.

    Usage::

        db = AssessmentDatabase(":memory:")
        db.initialize()
        repo = AssessmentRepository(db, FieldEncryptor(key="..."))

        saved = repo.save_assessment(assessment, user_id="local")
        week = repo.get_recent_assessments("local", limit=7)
    """

    def __init__(self, database: AssessmentDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _row_to_assessment(self, row: sqlite3.Row) -> Assessment:
        responses = self._enc.decrypt(row["responses_enc"]) or []
        return Assessment(
            id=row["id"],
            user_id=row["user_id"],
            date=row["date"],
            responses=[AssessmentResponse.from_dict(r) for r in responses],
            readiness_score=row["readiness_score"],
            completed_at=row["completed_at"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            is_synced=bool(row["is_synced"]),
        )

    def _select(self, where: str, params: Iterable, suffix: str = "") -> list[Assessment]:
        rows = self._db.connection.execute(
            f"SELECT * FROM assessments WHERE {where} {suffix}", tuple(params)
        ).fetchall()
        return [self._row_to_assessment(row) for row in rows]

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def save_assessment(self, assessment: Assessment, user_id: str) -> Assessment:
        """Insert a check-in, or update the user's existing one for that date.

        Returns:
            The stored assessment with id and timestamps filled in.
        """
        existing = self.get_assessment_for_date(user_id, assessment.date)
        if existing is not None:
            assessment.id = existing.id
            assessment.user_id = user_id
            assessment.created_at = existing.created_at
            return self.update_assessment(assessment)

        now = self._now_iso()
        aid = assessment.id or self._new_id()
        try:
            self._db.connection.execute(
                """INSERT INTO assessments (
                    id, user_id, date, responses_enc, readiness_score,
                    completed_at, created_at, updated_at, is_synced
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0)""",
                (
                    aid,
                    user_id,
                    assessment.date,
                    self._enc.encrypt([r.to_dict() for r in assessment.responses]),
                    assessment.readiness_score,
                    assessment.completed_at or now,
                    now,
                    now,
                ),
            )
            self._db.connection.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to save assessment for {assessment.date}: {exc}") from exc

        logger.info("Saved assessment %s (user=%s, date=%s)", aid, user_id, assessment.date)
        stored = self.get_assessment(aid)
        if stored is None:
            raise RepositoryError(f"Assessment {aid} vanished after insert")
        return stored

    def update_assessment(self, assessment: Assessment) -> Assessment:
        """Overwrite responses and score of an existing check-in; clears the sync flag.

        Raises:
            RepositoryError: If no assessment with ``assessment.id`` exists.
        """
        now = self._now_iso()
        cursor = self._db.connection.execute(
            """UPDATE assessments
               SET responses_enc = ?, readiness_score = ?, completed_at = ?,
                   updated_at = ?, is_synced = 0
               WHERE id = ?""",
            (
                self._enc.encrypt([r.to_dict() for r in assessment.responses]),
                assessment.readiness_score,
                assessment.completed_at or now,
                now,
                assessment.id,
            ),
        )
        if cursor.rowcount == 0:
            raise RepositoryError(f"Assessment not found: {assessment.id!r}")
        self._db.connection.commit()
        logger.info("Updated assessment %s (date=%s)", assessment.id, assessment.date)

        stored = self.get_assessment(assessment.id)
        if stored is None:
            raise RepositoryError(f"Assessment {assessment.id} vanished after update")
        return stored

    def update_readiness_score(self, assessment_id: str, score: float) -> bool:
        """Set the readiness score. Returns False if the assessment does not exist."""
        cursor = self._db.connection.execute(
            "UPDATE assessments SET readiness_score = ?, updated_at = ?, is_synced = 0 WHERE id = ?",
            (score, self._now_iso(), assessment_id),
        )
        self._db.connection.commit()
        return cursor.rowcount > 0

    def get_assessment(self, assessment_id: str) -> Assessment | None:
        results = self._select("id = ?", (assessment_id,))
        return results[0] if results else None

    def get_assessment_for_date(self, user_id: str, date: str) -> Assessment | None:
        results = self._select("user_id = ? AND date = ?", (user_id, date))
        return results[0] if results else None

    def has_assessment_for_date(self, user_id: str, date: str) -> bool:
        row = self._db.connection.execute(
            "SELECT 1 FROM assessments WHERE user_id = ? AND date = ?", (user_id, date)
        ).fetchone()
        return row is not None

    def get_assessments_in_range(self, user_id: str, start_date: str, end_date: str) -> list[Assessment]:
        """Assessments with ``start_date <= date <= end_date``, oldest first."""
        return self._select(
            "user_id = ? AND date >= ? AND date <= ?",
            (user_id, start_date, end_date),
            "ORDER BY date ASC",
        )

    def get_recent_assessments(self, user_id: str, limit: int = 7) -> list[Assessment]:
        """The latest ``limit`` assessments, newest first."""
        return self._select("user_id = ?", (user_id, limit), "ORDER BY date DESC LIMIT ?")

    def count_assessments(self, user_id: str) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM assessments WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row[0]

    def get_unsynced_assessments(self, user_id: str) -> list[Assessment]:
        return self._select("user_id = ? AND is_synced = 0", (user_id,), "ORDER BY date ASC")

    def get_assessments_updated_since(self, user_id: str, since: str) -> list[Assessment]:
        """Assessments whose ``updated_at`` is after the ISO timestamp ``since``."""
        return self._select(
            "user_id = ? AND updated_at > ?", (user_id, since), "ORDER BY updated_at ASC"
        )

    def mark_as_synced(self, assessment_ids: Iterable[str]) -> int:
        """Flag assessments as synced. Returns the number of rows updated."""
        ids = list(assessment_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        cursor = self._db.connection.execute(
            f"UPDATE assessments SET is_synced = 1 WHERE id IN ({placeholders})", ids
        )
        self._db.connection.commit()
        return cursor.rowcount

    def delete_assessment(self, assessment_id: str) -> bool:
        """Delete one assessment. Returns False if it did not exist."""
        cursor = self._db.connection.execute("DELETE FROM assessments WHERE id = ?", (assessment_id,))
        self._db.connection.commit()
        if cursor.rowcount:
            logger.info("Deleted assessment %s", assessment_id)
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def merge_patterns(self, user_id: str, patterns: Iterable[HealthPattern]) -> int:
        """Store patterns whose id is new for the user; existing rows are untouched.

        Returns:
            Number of patterns inserted.
        """
        conn = self._db.connection
        inserted = 0
        for pattern in patterns:
            cursor = conn.execute(
                """INSERT OR IGNORE INTO health_patterns
                   (id, user_id, type, description, risk_level, recommendation, detected_date)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    pattern.id,
                    user_id,
                    pattern.type,
                    pattern.description,
                    pattern.risk_level,
                    pattern.recommendation,
                    pattern.detected_date,
                ),
            )
            inserted += cursor.rowcount
        conn.commit()
        if inserted:
            logger.info("Stored %d new health patterns (user=%s)", inserted, user_id)
        return inserted

    def get_patterns(self, user_id: str, *, since: str | None = None) -> list[HealthPattern]:
        """Stored patterns, newest detection first, optionally from ``since`` on."""
        query = "SELECT * FROM health_patterns WHERE user_id = ?"
        params: list[str] = [user_id]
        if since:
            query += " AND detected_date >= ?"
            params.append(since)
        query += " ORDER BY detected_date DESC, id ASC"
        rows = self._db.connection.execute(query, params).fetchall()
        return [
            HealthPattern(
                id=row["id"],
                type=row["type"],
                description=row["description"],
                risk_level=row["risk_level"],
                recommendation=row["recommendation"],
                detected_date=row["detected_date"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_all_data(self, user_id: str | None = None) -> int:
        """Delete every assessment and pattern, or only those of ``user_id``.

        Returns:
            Number of assessment rows deleted.
        """
        conn = self._db.connection
        if user_id is None:
            count = conn.execute("SELECT COUNT(*) FROM assessments").fetchone()[0]
            conn.execute("DELETE FROM assessments")
            conn.execute("DELETE FROM health_patterns")
        else:
            count = conn.execute(
                "SELECT COUNT(*) FROM assessments WHERE user_id = ?", (user_id,)
            ).fetchone()[0]
            conn.execute("DELETE FROM assessments WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM health_patterns WHERE user_id = ?", (user_id,))
        conn.commit()
        logger.warning("Deleted ALL assessment data (user=%s): %d assessments removed", user_id or "*", count)
        return count
