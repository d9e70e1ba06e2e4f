"""Advanced insights engine: category scores, anomalies, risks and a summary.

Pipeline per call:
    aggregate features -> seven category generators (each isolated)
    -> anomalies -> risk factors -> recommendations -> overall score -> summary

The engine holds only immutable configuration. Everything request-specific,
including the user profile, travels in ``GenerateInsightsOptions``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from nestor.domains.health.domain_logic.category_scoring import (
    CATEGORY_GENERATORS,
    CATEGORY_TEMPLATES,
    CategoryGenerator,
    ScoringContext,
    SeriesFeatures,
    aggregate_features,
    to_trend_timeframe,
)
from nestor.domains.health.domain_logic.insight_models import (
    CATEGORY_KEYS,
    TIME_FRAMES,
    AnomalyResult,
    HealthDataSeries,
    HealthInsightsResult,
    InsightCategory,
    RecommendationSet,
    RiskFactor,
    TimeFrame,
    UserProfile,
    ValidationError,
)
from nestor.domains.health.domain_logic.recommendations import (
    RecommendationPolicy,
    StaticRecommendationPolicy,
)
from nestor.domains.health.domain_logic.risk_rules import detect_anomalies, identify_risk_factors
from nestor.domains.health.domain_logic.timeseries import round_half_up

logger = logging.getLogger(__name__)

CATEGORY_WEIGHTS: dict[str, float] = {
    "sleep": 0.25,
    "activity": 0.20,
    "nutrition": 0.15,
    "stress": 0.15,
    "heartHealth": 0.15,
    "metabolism": 0.05,
    "immunity": 0.05,
}

# Categories named in the summary sentences
PRIMARY_CATEGORIES = ("sleep", "activity", "nutrition", "stress")


class CategoryComputationError(Exception):
    """A single category generator failed; the engine substitutes a fallback."""

    def __init__(self, category: str, cause: BaseException) -> None:
        super().__init__(f"Failed to compute {category} insights: {cause}")
        self.category = category
        self.cause = cause


class InsightsGenerationError(Exception):
    """The insights pipeline failed outside per-category containment."""


@dataclass(frozen=True)
class GenerateInsightsOptions:
    time_frame: TimeFrame = "week"
    include_recommendations: bool = True
    include_trends: bool = True
    include_correlations: bool = True
    include_anomalies: bool = True
    include_risk_factors: bool = True
    user_profile: UserProfile | None = None

    def __post_init__(self) -> None:
        if self.time_frame not in TIME_FRAMES:
            raise ValidationError(
                f"time_frame must be one of: {' | '.join(TIME_FRAMES)} (got {self.time_frame!r})"
            )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None, *, default_time_frame: str = "week") -> GenerateInsightsOptions:
        """Build options from camelCase or snake_case keys; missing keys use defaults."""
        raw = raw or {}

        def _flag(snake: str, camel: str) -> bool:
            value = raw.get(snake, raw.get(camel))
            return True if value is None else bool(value)

        profile = raw.get("user_profile", raw.get("userProfile"))
        return cls(
            time_frame=raw.get("time_frame", raw.get("timeFrame")) or default_time_frame,
            include_recommendations=_flag("include_recommendations", "includeRecommendations"),
            include_trends=_flag("include_trends", "includeTrends"),
            include_correlations=_flag("include_correlations", "includeCorrelations"),
            include_anomalies=_flag("include_anomalies", "includeAnomalies"),
            include_risk_factors=_flag("include_risk_factors", "includeRiskFactors"),
            user_profile=UserProfile.from_dict(profile) if profile is not None else None,
        )


@dataclass(frozen=True)
class EngineConfig:
    weights: Mapping[str, float] = field(default_factory=lambda: dict(CATEGORY_WEIGHTS))
    default_time_frame: TimeFrame = "week"


def calculate_overall_score(
    categories: Mapping[str, InsightCategory],
    weights: Mapping[str, float] = CATEGORY_WEIGHTS,
) -> int:
    """Weighted mean of category scores, rounded half up."""
    total_weight = 0.0
    weighted = 0.0
    for key, weight in weights.items():
        category = categories.get(key)
        if category is None:
            continue
        weighted += category.score * weight
        total_weight += weight
    if total_weight == 0:
        return 0
    return round_half_up(weighted / total_weight)


def generate_summary(
    overall_score: int,
    categories: Mapping[str, InsightCategory],
    anomalies: Sequence[AnomalyResult] = (),
) -> str:
    """Short narrative naming the strongest and weakest primary categories."""
    primary = [(key, categories[key]) for key in PRIMARY_CATEGORIES if key in categories]
    # Stable sort keeps the listed order among ties
    ranked = sorted(primary, key=lambda kv: kv[1].score, reverse=True)
    top = ranked[0][1] if ranked else None
    bottom = ranked[-1][1] if ranked else None

    if overall_score >= 80:
        summary = "Your overall health metrics are excellent. "
        if top:
            summary += f"Your {top.title.lower()} is particularly strong. "
    elif overall_score >= 70:
        summary = "Your health metrics are good overall. "
        if top:
            summary += f"Your {top.title.lower()} is a strength to maintain. "
    elif overall_score >= 60:
        summary = "Your health status is fair with room for improvement. "
        if top:
            summary += f"Your {top.title.lower()} is a positive area. "
    else:
        summary = "There are several opportunities to improve your health metrics. "

    if bottom and bottom.score < 70:
        summary += f"Focus on improving your {bottom.title.lower()} for the greatest overall health impact. "

    if anomalies:
        if any(a.severity == "high" for a in anomalies):
            summary += "We've detected some concerning patterns that should be addressed soon. "
        else:
            summary += "We've noted some minor patterns to keep an eye on. "

    return summary


class AdvancedInsightsEngine:
    """Generates a ``HealthInsightsResult`` from a ``HealthDataSeries``.

    Usage::

        engine = AdvancedInsightsEngine()
        result = engine.generate_insights(HealthDataSeries.from_dict(payload))
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        recommendation_policy: RecommendationPolicy | None = None,
        generators: Mapping[str, CategoryGenerator] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.recommendation_policy = recommendation_policy or StaticRecommendationPolicy()
        self._generators = dict(CATEGORY_GENERATORS)
        if generators:
            self._generators.update(generators)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate_insights(
        self,
        data: HealthDataSeries,
        options: GenerateInsightsOptions | None = None,
    ) -> HealthInsightsResult:
        """Run the full pipeline.

        Raises:
            InsightsGenerationError: If anything outside a category generator fails.
        """
        options = options or GenerateInsightsOptions(time_frame=self.config.default_time_frame)
        try:
            return self._generate(data, options)
        except Exception as exc:
            logger.error("Insights generation failed: %s", exc, exc_info=True)
            raise InsightsGenerationError(f"Failed to generate insights: {exc}") from exc

    def _generate(self, data: HealthDataSeries, options: GenerateInsightsOptions) -> HealthInsightsResult:
        features = aggregate_features(data)
        ctx = ScoringContext(
            profile=options.user_profile or UserProfile(),
            timeframe=to_trend_timeframe(options.time_frame),
            include_trends=options.include_trends,
            include_correlations=options.include_correlations,
        )

        categories = {key: self._category(key, data, features, ctx) for key in CATEGORY_KEYS}

        anomalies: list[AnomalyResult] = detect_anomalies(data) if options.include_anomalies else []
        risk_factors: list[RiskFactor] = identify_risk_factors(data) if options.include_risk_factors else []

        if options.include_recommendations:
            recommendations = self.recommendation_policy.recommend(categories, anomalies, risk_factors)
        else:
            recommendations = RecommendationSet()

        overall = calculate_overall_score(categories, self.config.weights)
        logger.info(
            "Generated insights: overall=%d anomalies=%d risks=%d",
            overall, len(anomalies), len(risk_factors),
        )

        return HealthInsightsResult(
            overall_score=overall,
            summary=generate_summary(overall, categories, anomalies),
            categories=categories,
            timestamp=self._clock(),
            anomalies=tuple(anomalies),
            recommendations=recommendations,
            risk_factors=tuple(risk_factors),
        )

    def _category(
        self,
        key: str,
        data: HealthDataSeries,
        features: SeriesFeatures,
        ctx: ScoringContext,
    ) -> InsightCategory:
        """Run one generator; on failure log and return the fallback category."""
        try:
            return self._generators[key](data, features, ctx)
        except Exception as exc:
            error = CategoryComputationError(key, exc)
            logger.error("%s", error, exc_info=exc)
            return CATEGORY_TEMPLATES[key].fallback()
