"""Tests for AssessmentRepository — CRUD with in-memory SQLite."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from nestor.core.storage.repository import RepositoryError
from nestor.domains.health.domain_logic.insight_models import Assessment
from nestor.domains.health.domain_logic.patterns import HealthPattern

USER = "user-1"


def _pattern(pid: str, detected: str = "2026-03-09T08:00:00+00:00") -> HealthPattern:
    return HealthPattern(
        id=pid,
        type="Sleep Disruption",
        description="Multiple days with reported poor sleep quality",
        risk_level="moderate",
        recommendation="Consider reviewing your sleep habits and environment",
        detected_date=detected,
    )


class TestSaveAndGet:
    def test_save_assigns_id_and_encrypts(self, assessment_repository, assessment_db, make_assessment):
        stored = assessment_repository.save_assessment(
            make_assessment("2026-03-01", q2=["poorly_rested"]), USER
        )
        assert stored.id
        assert stored.user_id == USER
        assert stored.selected_options == {"2": ["poorly_rested"]}
        assert stored.is_synced is False

        raw = assessment_db.connection.execute(
            "SELECT responses_enc FROM assessments WHERE id = ?", (stored.id,)
        ).fetchone()[0]
        assert "poorly_rested" not in raw

    def test_same_day_is_updated_not_duplicated(self, assessment_repository, make_assessment):
        first = assessment_repository.save_assessment(make_assessment("2026-03-01", q4=["no"]), USER)
        second = assessment_repository.save_assessment(make_assessment("2026-03-01", q4=["yes"]), USER)

        assert second.id == first.id
        assert second.selected_options == {"4": ["yes"]}
        assert assessment_repository.count_assessments(USER) == 1

    def test_same_day_different_users(self, assessment_repository, make_assessment):
        assessment_repository.save_assessment(make_assessment("2026-03-01"), "a")
        assessment_repository.save_assessment(make_assessment("2026-03-01"), "b")
        assert assessment_repository.count_assessments("a") == 1
        assert assessment_repository.count_assessments("b") == 1

    def test_get_for_date(self, assessment_repository, make_assessment):
        assessment_repository.save_assessment(make_assessment("2026-03-01"), USER)
        assert assessment_repository.has_assessment_for_date(USER, "2026-03-01")
        assert not assessment_repository.has_assessment_for_date(USER, "2026-03-02")
        assert assessment_repository.get_assessment_for_date(USER, "2026-03-02") is None

    def test_missing_id(self, assessment_repository):
        assert assessment_repository.get_assessment("nope") is None


class TestQueries:
    @pytest.fixture
    def week(self, assessment_repository, make_assessment):
        for day in range(1, 10):
            assessment_repository.save_assessment(make_assessment(f"2026-03-0{day}"), USER)
        return assessment_repository

    def test_recent_newest_first(self, week):
        recent = week.get_recent_assessments(USER)
        assert len(recent) == 7
        assert recent[0].date == "2026-03-09"
        assert recent[-1].date == "2026-03-03"

    def test_range_inclusive_oldest_first(self, week):
        dates = [a.date for a in week.get_assessments_in_range(USER, "2026-03-02", "2026-03-04")]
        assert dates == ["2026-03-02", "2026-03-03", "2026-03-04"]

    def test_sync_flags(self, week):
        unsynced = week.get_unsynced_assessments(USER)
        assert len(unsynced) == 9

        assert week.mark_as_synced([a.id for a in unsynced[:4]]) == 4
        assert len(week.get_unsynced_assessments(USER)) == 5
        assert week.mark_as_synced([]) == 0

    def test_updated_since(self, week):
        cutoff = datetime.now(timezone.utc).isoformat()
        assert week.get_assessments_updated_since(USER, cutoff) == []
        target = week.get_assessment_for_date(USER, "2026-03-05")
        week.update_readiness_score(target.id, 77)
        changed = week.get_assessments_updated_since(USER, cutoff)
        assert [a.date for a in changed] == ["2026-03-05"]
        assert changed[0].readiness_score == 77


class TestUpdateAndDelete:
    def test_update_clears_sync_flag(self, assessment_repository, make_assessment):
        stored = assessment_repository.save_assessment(make_assessment("2026-03-01"), USER)
        assessment_repository.mark_as_synced([stored.id])

        stored.readiness_score = 88
        updated = assessment_repository.update_assessment(stored)
        assert updated.readiness_score == 88
        assert updated.is_synced is False

    def test_update_unknown_raises(self, assessment_repository):
        with pytest.raises(RepositoryError, match="not found"):
            assessment_repository.update_assessment(Assessment(date="2026-03-01", id="ghost"))

    def test_update_score_unknown(self, assessment_repository):
        assert assessment_repository.update_readiness_score("ghost", 50) is False

    def test_delete(self, assessment_repository, make_assessment):
        stored = assessment_repository.save_assessment(make_assessment("2026-03-01"), USER)
        assert assessment_repository.delete_assessment(stored.id) is True
        assert assessment_repository.delete_assessment(stored.id) is False

    def test_delete_all_for_user(self, assessment_repository, make_assessment):
        assessment_repository.save_assessment(make_assessment("2026-03-01"), "a")
        assessment_repository.save_assessment(make_assessment("2026-03-02"), "a")
        assessment_repository.save_assessment(make_assessment("2026-03-01"), "b")
        assessment_repository.merge_patterns("a", [_pattern("p1")])

        assert assessment_repository.delete_all_data("a") == 2
        assert assessment_repository.count_assessments("b") == 1
        assert assessment_repository.get_patterns("a") == []

    def test_delete_everything(self, assessment_repository, make_assessment):
        assessment_repository.save_assessment(make_assessment("2026-03-01"), "a")
        assessment_repository.save_assessment(make_assessment("2026-03-01"), "b")
        assert assessment_repository.delete_all_data() == 2


class TestPatterns:
    def test_merge_inserts_only_new_ids(self, assessment_repository):
        assert assessment_repository.merge_patterns(USER, [_pattern("p1"), _pattern("p2")]) == 2

        changed = replace(_pattern("p1"), risk_level="high")
        assert assessment_repository.merge_patterns(USER, [changed, _pattern("p3")]) == 1

        stored = {p.id: p for p in assessment_repository.get_patterns(USER)}
        assert set(stored) == {"p1", "p2", "p3"}
        assert stored["p1"].risk_level == "moderate"

    def test_same_id_for_different_users(self, assessment_repository):
        assert assessment_repository.merge_patterns("a", [_pattern("p1")]) == 1
        assert assessment_repository.merge_patterns("b", [_pattern("p1")]) == 1

    def test_get_patterns_since(self, assessment_repository):
        assessment_repository.merge_patterns(USER, [
            _pattern("old", "2026-02-01T08:00:00+00:00"),
            _pattern("new", "2026-03-09T08:00:00+00:00"),
        ])
        recent = assessment_repository.get_patterns(USER, since="2026-03-01")
        assert [p.id for p in recent] == ["new"]
