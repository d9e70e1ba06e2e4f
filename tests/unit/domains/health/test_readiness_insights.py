"""Tests for plain-language readiness insights."""

from __future__ import annotations

from nestor.domains.health.domain_logic.insight_models import AssessmentData
from nestor.domains.health.domain_logic.readiness_insights import (
    generate_readiness_insights,
    get_top_contributing_categories,
)


def test_no_history_asks_for_first_assessment():
    insights = generate_readiness_insights([], 0)
    assert insights.summary.startswith("Complete your daily assessment")
    assert insights.recommended_actions == ["Take your first assessment to establish a baseline"]
    assert insights.factors == []


def test_excellent_band_lists_positive_factors(make_assessment):
    latest = make_assessment("2026-03-05", q2=["well_rested"], q4=["yes"], q11=["balanced"])
    insights = generate_readiness_insights([latest], 92)

    assert insights.summary == (
        "Your readiness is excellent! Contributing factors include good sleep quality "
        "and regular physical activity and balanced nutrition."
    )
    assert all(f.impact == "positive" for f in insights.factors)
    assert insights.recommended_actions == ["Keep up your current routine to maintain readiness"]


def test_good_band_mixes_positive_and_negative(make_assessment):
    latest = make_assessment("2026-03-05", q2=["well_rested"], q4=["no"])
    insights = generate_readiness_insights([latest], 75)
    assert insights.summary == (
        "Your readiness is good. Good sleep quality is supporting your recovery, "
        "but limited physical activity may be limiting your potential."
    )


def test_low_band_and_actions(make_assessment):
    latest = make_assessment(
        "2026-03-05",
        q2=["poorly_rested"],
        q12=["stressed"],
        q3=["yes"],
        q3_2=["evening"],
        q4=["no"],
    )
    insights = generate_readiness_insights([latest], 40)

    assert insights.summary.startswith("Your readiness needs attention. Focus on improving poor sleep quality")
    assert "Consider going to bed 30 minutes earlier tonight" in insights.recommended_actions
    assert "Avoid caffeine after 2pm for better sleep" in insights.recommended_actions
    categories = [f.category for f in insights.factors]
    assert categories == ["Sleep", "Mental Health", "Caffeine", "Physical Activity"]


def test_day_over_day_delta(make_assessment):
    latest = make_assessment("2026-03-05", q4=["yes"])
    improved = generate_readiness_insights([latest], 80, previous_score=70)
    assert improved.summary.endswith("Your readiness has improved 10% from yesterday.")

    dropped = generate_readiness_insights([latest], 60, previous_score=70)
    assert dropped.summary.endswith("Your readiness has decreased 10% from yesterday.")

    stable = generate_readiness_insights([latest], 72, previous_score=70)
    assert stable.summary.endswith("Your readiness has remained stable compared to yesterday.")


def test_to_dict_uses_camel_case(make_assessment):
    latest = make_assessment("2026-03-05", q4=["no"])
    payload = generate_readiness_insights([latest], 60).to_dict()
    assert set(payload) == {"summary", "factors", "recommendedActions"}
    assert payload["factors"][0] == {
        "category": "Physical Activity",
        "impact": "negative",
        "description": "Limited physical activity",
    }


class TestTopContributingCategories:
    def test_sorted_by_distance_from_seventy(self):
        data = AssessmentData(selected_options={"4": ["no"], "11": ["balanced"]})
        categories = get_top_contributing_categories(data)

        assert len(categories) == 6
        distances = [abs(c["score"] - 70) for c in categories]
        assert distances == sorted(distances, reverse=True)

    def test_activity_scores(self):
        data = AssessmentData(selected_options={"4": ["no"]})
        by_name = {c["category"]: c for c in get_top_contributing_categories(data)}
        assert by_name["Physical Activity"]["score"] == 40
        assert by_name["Physical Activity"]["impact"] == "negative"
        assert by_name["Sleep Quality"]["score"] == 100
        assert by_name["Sleep Quality"]["impact"] == "positive"
