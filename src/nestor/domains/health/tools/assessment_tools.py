"""MCP tools for daily check-ins: readiness, insights and recurring patterns.

``register_assessment_tools`` works on check-ins passed in by the caller.
``register_assessment_storage_tools`` adds tools that persist check-ins and
detected patterns, and is only registered when storage is configured.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from nestor.core.storage.repository import AssessmentRepository

from nestor.core.storage.repository import RepositoryError
from nestor.domains.health.domain_logic.insight_models import (
    Assessment,
    AssessmentData,
    ValidationError,
)
from nestor.domains.health.domain_logic.patterns import detect_all_patterns, get_recent_patterns
from nestor.domains.health.domain_logic.readiness import (
    calculate_readiness_score,
    get_contributing_factors,
    get_readiness_grade,
)
from nestor.domains.health.domain_logic.readiness_insights import (
    generate_readiness_insights,
    get_top_contributing_categories,
)

logger = logging.getLogger(__name__)


def _error(exc: Exception) -> str:
    return json.dumps({"status": "error", "message": str(exc)})


def _parse_history(assessments: list[dict[str, Any]]) -> list[Assessment]:
    """Parse check-ins and order them newest first."""
    parsed = [Assessment.from_dict(raw) for raw in assessments]
    return sorted(parsed, key=lambda a: a.date, reverse=True)


def _readiness_payload(data: AssessmentData) -> dict[str, Any]:
    score = calculate_readiness_score(data)
    return {
        "readinessScore": score,
        "grade": get_readiness_grade(score),
        "contributingFactors": get_contributing_factors(data),
        "topCategories": get_top_contributing_categories(data),
    }


def register_assessment_tools(mcp: FastMCP) -> None:
    """Register stateless readiness and pattern tools on the MCP server."""

    @mcp.tool
    async def calculate_readiness(
        ctx: Context,
        selected_options: dict[str, Any],
    ) -> str:
        """Compute today's readiness score (0-100) from check-in answers.

        Args:
            selected_options: Question id -> selected option(s), e.g.
                {"2": ["poorly_rested"], "4": ["yes"], "4.2": ["intense"]}.
        """
        try:
            data = AssessmentData.from_dict({"selected_options": selected_options})
        except ValidationError as exc:
            return _error(exc)
        payload = _readiness_payload(data)
        payload["status"] = "ok"
        return json.dumps(payload)

    @mcp.tool
    async def readiness_insights(
        ctx: Context,
        assessments: list[dict[str, Any]],
        current_score: float | None = None,
        previous_score: float | None = None,
    ) -> str:
        """Explain what drove the latest readiness score.

        Args:
            assessments: Check-in history (any order), each with a date and
                either responses or selected_options.
            current_score: Today's score; computed from the latest check-in when omitted.
            previous_score: Yesterday's score, for the day-over-day comparison.
        """
        try:
            history = _parse_history(assessments)
        except ValidationError as exc:
            return _error(exc)

        if current_score is None:
            current_score = (
                calculate_readiness_score(history[0].to_assessment_data()) if history else 0
            )
        insights = generate_readiness_insights(history, current_score, previous_score)
        payload = insights.to_dict()
        payload["status"] = "ok"
        payload["readinessScore"] = current_score
        return json.dumps(payload)

    @mcp.tool
    async def detect_health_patterns(
        ctx: Context,
        assessments: list[dict[str, Any]],
    ) -> str:
        """Detect recurring sleep, lifestyle, pain and stress patterns in check-ins.

        Args:
            assessments: Check-in history (any order).
        """
        try:
            history = _parse_history(assessments)
        except ValidationError as exc:
            return _error(exc)

        patterns = detect_all_patterns(history)
        return json.dumps({
            "status": "ok",
            "assessments_analyzed": len(history),
            "patterns": [p.to_dict() for p in patterns],
        })


def register_assessment_storage_tools(
    mcp: FastMCP,
    repository: AssessmentRepository,
    *,
    user_id: str,
    lookback_days: int = 7,
) -> None:
    """Register tools that persist check-ins and detected patterns."""

    @mcp.tool
    async def record_assessment(
        ctx: Context,
        date: str,
        selected_options: dict[str, Any],
        completed_at: str | None = None,
    ) -> str:
        """Score and store a daily check-in, then update detected patterns.

        A second check-in for the same date replaces the first.

        Args:
            date: Check-in date (YYYY-MM-DD).
            selected_options: Question id -> selected option(s).
            completed_at: Optional ISO 8601 completion time.
        """
        try:
            assessment = Assessment.from_dict({
                "date": date,
                "selected_options": selected_options,
                "completed_at": completed_at or "",
            })
            assessment.readiness_score = calculate_readiness_score(assessment.to_assessment_data())
            stored = repository.save_assessment(assessment, user_id)
            history = repository.get_recent_assessments(user_id, limit=7)
            new_patterns = detect_all_patterns(history)
            inserted = repository.merge_patterns(user_id, new_patterns)
        except (ValidationError, RepositoryError) as exc:
            logger.warning("record_assessment failed: %s", exc)
            return _error(exc)

        logger.info("Recorded assessment for %s (score=%s)", stored.date, stored.readiness_score)
        return json.dumps({
            "status": "recorded",
            "assessment": stored.to_dict(),
            "grade": get_readiness_grade(stored.readiness_score or 0),
            "patterns_detected": [p.to_dict() for p in new_patterns],
            "patterns_added": inserted,
        })

    @mcp.tool
    async def recent_assessments(ctx: Context, limit: int = 7) -> str:
        """Return the most recent stored check-ins, newest first.

        Args:
            limit: Maximum number of check-ins (default: 7).
        """
        history = repository.get_recent_assessments(user_id, limit=limit)
        return json.dumps({
            "status": "ok",
            "count": len(history),
            "assessments": [a.to_dict() for a in history],
        })

    @mcp.tool
    async def list_health_patterns(ctx: Context, days: int | None = None) -> str:
        """List stored health patterns detected within the last N days.

        Args:
            days: Look-back window in days (default: server setting).
        """
        window = days if days is not None else lookback_days
        patterns = get_recent_patterns(repository.get_patterns(user_id), days=window)
        return json.dumps({
            "status": "ok",
            "days": window,
            "patterns": [p.to_dict() for p in patterns],
        })
