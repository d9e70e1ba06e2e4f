"""Bucketing of recommendations into daily / weekly / long-term horizons.

``StaticRecommendationPolicy`` returns a fixed set regardless of the data.
``PrioritizedRecommendationPolicy`` draws from the weakest categories and the
detected risk factors first, topping up with the static set.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from nestor.domains.health.domain_logic.insight_models import (
    AnomalyResult,
    InsightCategory,
    RecommendationSet,
    RiskFactor,
)

STATIC_RECOMMENDATIONS = RecommendationSet(
    daily=(
        "Take 5-minute breaks every hour to stretch and move",
        "Stay hydrated with at least 8 glasses of water",
        "Practice deep breathing for 2 minutes when feeling stressed",
    ),
    weekly=(
        "Get at least 150 minutes of moderate activity this week",
        "Try to maintain a consistent sleep schedule",
        "Include at least 5 servings of vegetables daily",
    ),
    long_term=(
        "Work toward reducing resting heart rate through consistent exercise",
        "Build a sustainable stress management routine",
        "Gradually improve sleep quality through consistent habits",
    ),
)

BUCKET_SIZE = 3


class RecommendationPolicy(Protocol):
    name: str

    def recommend(
        self,
        categories: dict[str, InsightCategory],
        anomalies: Sequence[AnomalyResult],
        risk_factors: Sequence[RiskFactor],
    ) -> RecommendationSet: ...


class StaticRecommendationPolicy:
    name = "static"

    def recommend(
        self,
        categories: dict[str, InsightCategory],
        anomalies: Sequence[AnomalyResult],
        risk_factors: Sequence[RiskFactor],
    ) -> RecommendationSet:
        return STATIC_RECOMMENDATIONS


def _fill(primary: list[str], fallback: Sequence[str], size: int = BUCKET_SIZE) -> tuple[str, ...]:
    bucket: list[str] = []
    for item in list(primary) + list(fallback):
        if item not in bucket:
            bucket.append(item)
        if len(bucket) == size:
            break
    return tuple(bucket)


class PrioritizedRecommendationPolicy:
    """Derive recommendations from what the data says needs attention.

    - daily: anomaly follow-ups, then the first recommendation of each
      category below ``threshold`` (weakest first)
    - weekly: remaining recommendations of the weak categories
    - long_term: interventions of the detected risk factors
    """

    name = "prioritized"

    def __init__(self, threshold: int = 70) -> None:
        self.threshold = threshold

    def recommend(
        self,
        categories: dict[str, InsightCategory],
        anomalies: Sequence[AnomalyResult],
        risk_factors: Sequence[RiskFactor],
    ) -> RecommendationSet:
        weak = sorted(
            (c for c in categories.values() if c.score < self.threshold),
            key=lambda c: c.score,
        )

        daily = [a.recommendation for a in anomalies if a.severity != "low"]
        daily += [c.recommendations[0] for c in weak if c.recommendations]
        weekly = [r for c in weak for r in c.recommendations[1:]]
        long_term = [i for r in risk_factors for i in r.interventions]

        return RecommendationSet(
            daily=_fill(daily, STATIC_RECOMMENDATIONS.daily),
            weekly=_fill(weekly, STATIC_RECOMMENDATIONS.weekly),
            long_term=_fill(long_term, STATIC_RECOMMENDATIONS.long_term),
        )


RECOMMENDATION_POLICIES = {
    StaticRecommendationPolicy.name: StaticRecommendationPolicy,
    PrioritizedRecommendationPolicy.name: PrioritizedRecommendationPolicy,
}


def get_recommendation_policy(name: str) -> RecommendationPolicy:
    """Look up a policy by name.

    Raises:
        ValueError: If ``name`` is not a known policy.
    """
    try:
        return RECOMMENDATION_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown recommendation policy {name!r}; expected one of {sorted(RECOMMENDATION_POLICIES)}"
        ) from None
