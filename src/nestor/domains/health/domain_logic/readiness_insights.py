"""Plain-language readiness insights for the latest daily check-in."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Sequence

from nestor.domains.health.domain_logic.insight_models import Assessment, AssessmentData

Impact = Literal["positive", "negative", "neutral"]


@dataclass(frozen=True)
class InsightFactor:
    category: str
    impact: Impact
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category, "impact": self.impact, "description": self.description}


@dataclass
class ReadinessInsights:
    summary: str
    factors: list[InsightFactor] = field(default_factory=list)
    recommended_actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "factors": [f.to_dict() for f in self.factors],
            "recommendedActions": list(self.recommended_actions),
        }


def _analyze(data: AssessmentData) -> tuple[list[InsightFactor], list[str]]:
    factors: list[InsightFactor] = []
    actions: list[str] = []

    if data.has("2", "poorly_rested"):
        factors.append(InsightFactor("Sleep", "negative", "Poor sleep quality"))
        actions.append("Consider going to bed 30 minutes earlier tonight")
    elif data.has("2", "well_rested"):
        factors.append(InsightFactor("Sleep", "positive", "Good sleep quality"))

    if data.has("12", "stressed"):
        factors.append(InsightFactor("Mental Health", "negative", "Elevated stress levels"))
        actions.append("Try a 5-minute breathing exercise to reduce stress")

    if data.has("3", "yes"):
        if data.has("3.1", "3_plus_cups"):
            factors.append(InsightFactor("Caffeine", "negative", "High caffeine intake"))
            actions.append("Consider reducing caffeine consumption")
        if data.has("3.2", "evening"):
            factors.append(InsightFactor("Caffeine", "negative", "Evening caffeine consumption"))
            actions.append("Avoid caffeine after 2pm for better sleep")

    if data.has("4", "yes"):
        factors.append(InsightFactor("Physical Activity", "positive", "Regular physical activity"))
    else:
        factors.append(InsightFactor("Physical Activity", "negative", "Limited physical activity"))
        actions.append("Try to include a short walk in your day")

    if data.has("9", "yes") and data.has("9.2", "more_than_three", "binge"):
        factors.append(InsightFactor("Alcohol", "negative", "Elevated alcohol consumption"))
        actions.append("Consider reducing alcohol intake to improve recovery")

    if data.has("11", "poor"):
        factors.append(InsightFactor("Nutrition", "negative", "Poor nutrition quality"))
        actions.append("Try to include more whole foods in your meals")
    elif data.has("11", "balanced"):
        factors.append(InsightFactor("Nutrition", "positive", "Balanced nutrition"))

    return factors, actions


def _lower_join(factors: Sequence[InsightFactor]) -> str:
    return " and ".join(f.description.lower() for f in factors)


def generate_readiness_insights(
    recent_assessments: Sequence[Assessment],
    current_score: float,
    previous_score: float | None = None,
) -> ReadinessInsights:
    """Summarize what drove today's readiness score.

    Args:
        recent_assessments: Check-in history, newest first.
        current_score: Today's readiness score.
        previous_score: Yesterday's score, for the day-over-day sentence.
    """
    if not recent_assessments:
        return ReadinessInsights(
            summary="Complete your daily assessment to receive personalized insights.",
            recommended_actions=["Take your first assessment to establish a baseline"],
        )

    factors, actions = _analyze(recent_assessments[0].to_assessment_data())
    positive = [f for f in factors if f.impact == "positive"]
    negative = [f for f in factors if f.impact == "negative"]

    if current_score >= 85:
        summary = "Your readiness is excellent! "
        if positive:
            summary += f"Contributing factors include {_lower_join(positive)}."
    elif current_score >= 70:
        summary = "Your readiness is good. "
        if positive and negative:
            summary += (
                f"{positive[0].description} is supporting your recovery, but "
                f"{negative[0].description.lower()} may be limiting your potential."
            )
        elif positive:
            summary += f"{' and '.join(f.description for f in positive)} are supporting your recovery."
    elif current_score >= 50:
        summary = "Your readiness is moderate. "
        if negative:
            summary += f"Consider addressing {_lower_join(negative)} to improve recovery."
    else:
        summary = "Your readiness needs attention. "
        if negative:
            summary += f"Focus on improving {_lower_join(negative)} to enhance recovery."

    if previous_score is not None:
        diff = current_score - previous_score
        if diff > 5:
            summary += f" Your readiness has improved {abs(diff):.0f}% from yesterday."
        elif diff < -5:
            summary += f" Your readiness has decreased {abs(diff):.0f}% from yesterday."
        else:
            summary += " Your readiness has remained stable compared to yesterday."

    return ReadinessInsights(
        summary=summary,
        factors=factors,
        recommended_actions=actions or ["Keep up your current routine to maintain readiness"],
    )


# ---------------------------------------------------------------------------
# Sub-category scores
# ---------------------------------------------------------------------------

def _sleep_score(data: AssessmentData) -> int:
    score = 100
    if data.has("2", "poorly_rested"):
        score -= 30
    for reason, points in (("insomnia", 10), ("nightmares", 5), ("sleep_apnea", 15), ("restless_leg", 10)):
        if data.has("2.1", reason):
            score -= points
    return max(0, score)


def _mental_health_score(data: AssessmentData) -> int:
    score = 100
    if data.has("12", "stressed"):
        score -= 20
        if data.has("12.2", "racing_thoughts"):
            score -= 10
        if data.has("12.2", "mood_swings"):
            score -= 15
    return max(0, score)


def _activity_score(data: AssessmentData) -> int:
    score = 70
    if data.has("4", "yes"):
        score += 30
        if data.has("4.2", "light"):
            score -= 10
        elif data.has("4.2", "intense"):
            score += 5
    else:
        score -= 30
    return max(0, min(100, score))


def _nutrition_score(data: AssessmentData) -> int:
    score = 70
    if data.has("11", "balanced"):
        score += 30
    elif data.has("11", "poor"):
        score -= 30
    elif data.has("11", "skipped"):
        score -= 20
    return max(0, min(100, score))


def _substance_score(data: AssessmentData) -> int:
    score = 100
    if data.has("3", "yes"):
        if data.has("3.1", "3_plus_cups"):
            score -= 15
        if data.has("3.2", "evening"):
            score -= 20
    if data.has("9", "yes"):
        score -= 15
        if data.has("9.2", "more_than_three"):
            score -= 15
        if data.has("9.2", "binge"):
            score -= 30
    if data.has("10", "yes"):
        score -= 30
        if data.has("10.2", "heavy"):
            score -= 20
    return max(0, score)


def _symptom_score(data: AssessmentData) -> int:
    score = 100
    if data.has("1", "not_good"):
        score -= 20
    for symptom, points in (
        ("headache", 10), ("fatigue", 15), ("nausea", 20),
        ("chest_pain", 30), ("shortness_of_breath", 25),
    ):
        if data.has("1.2", symptom):
            score -= points
    if data.has("7", "yes"):
        score -= 10
        for location, points in (("joint", 10), ("chest", 30), ("headache", 10), ("migraines", 15)):
            if data.has("7.1", location):
                score -= points
    return max(0, score)


_SUB_CATEGORIES = (
    ("Sleep Quality", _sleep_score),
    ("Mental Health", _mental_health_score),
    ("Physical Activity", _activity_score),
    ("Nutrition", _nutrition_score),
    ("Substance Use", _substance_score),
    ("Symptoms", _symptom_score),
)


def get_top_contributing_categories(data: AssessmentData) -> list[dict[str, Any]]:
    """Sub-category scores ordered by distance from the neutral 70 mark."""
    categories = []
    for name, scorer in _SUB_CATEGORIES:
        score = scorer(data)
        categories.append({
            "category": name,
            "score": score,
            "impact": "positive" if score > 70 else "negative",
        })
    return sorted(categories, key=lambda c: abs(c["score"] - 70), reverse=True)
