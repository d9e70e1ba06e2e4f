"""Shared test fixtures for Nestor tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # Never pick up a developer's key or database from the environment / .env
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "assessments.db"))
    monkeypatch.setenv("RECOMMENDATION_POLICY", "static")
    monkeypatch.setenv("INSIGHTS_TIME_FRAME", "week")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from nestor.domains.health.domain_logic.insight_models import Assessment  # noqa: E402


def _make_assessment(date: str, **selected: list[str] | str) -> Assessment:
    """Build an assessment from keyword answers: ``q2=["poorly_rested"]``, ``q2_1="insomnia"``.

    Keyword names map to question ids by dropping the ``q`` prefix and turning
    ``_`` into ``.``.
    """
    options = {key[1:].replace("_", "."): value for key, value in selected.items()}
    return Assessment.from_dict({"date": date, "selected_options": options})


@pytest.fixture
def make_assessment():
    """Factory fixture for assessments; see ``_make_assessment``."""
    return _make_assessment


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def assessment_db():
    """Create an in-memory AssessmentDatabase for testing."""
    from nestor.core.storage.database import AssessmentDatabase

    db = AssessmentDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from nestor.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def assessment_repository(assessment_db, field_encryptor):
    """Create an AssessmentRepository backed by in-memory SQLite."""
    from nestor.core.storage.repository import AssessmentRepository

    return AssessmentRepository(assessment_db, field_encryptor)
