"""Per-category health scoring: sleep, activity, nutrition, stress, heart,
metabolism, immunity.

Each generator takes the request data plus aggregated features and returns
an ``InsightCategory`` with a 0-100 score. Scores are deterministic blends of
sub-signals clamped to [0, 1]; a category with no usable data returns its
fixed empty-data score. Generators do not catch their own errors; the engine
isolates them.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

from nestor.domains.health.domain_logic.insight_models import (
    CorrelationResult,
    HealthDataPoint,
    HealthDataSeries,
    InsightCategory,
    TimeFrame,
    TrendResult,
    TrendTimeframe,
    UserProfile,
    ValidationError,
    parse_timestamp,
)
from nestor.domains.health.domain_logic.timeseries import (
    MetricSummary,
    clamp,
    correlation_p_value,
    daily_values,
    mean,
    pearson,
    round_half_up,
    std_dev,
    summarize,
)

# Point series summarized by aggregate_features (attribute names)
POINT_METRICS = ["heart_rate", "hrv", "spo2", "temperature", "steps", "sleep", "activity"]

# Trends/correlations below these thresholds are not reported
STABLE_RATE = 0.05
FLUCTUATING_CV = 0.2
MIN_CORRELATION = 0.3

OPTIMAL_RESTING_HR = 65
NORMAL_TEMP_F = 98.6


@dataclass
class SeriesFeatures:
    """Aggregate features of one request: summaries plus per-day values."""

    summaries: dict[str, MetricSummary] = field(default_factory=dict)
    daily: dict[str, "OrderedDict[date, float]"] = field(default_factory=dict)

    def summary(self, metric: str) -> MetricSummary:
        return self.summaries.get(metric, MetricSummary())

    def days(self, metric: str) -> "OrderedDict[date, float]":
        return self.daily.get(metric, OrderedDict())


@dataclass(frozen=True)
class ScoringContext:
    profile: UserProfile
    timeframe: TrendTimeframe = "week"
    include_trends: bool = True
    include_correlations: bool = True


def to_trend_timeframe(time_frame: TimeFrame) -> TrendTimeframe:
    """Trends report at most monthly granularity."""
    return "month" if time_frame == "year" else time_frame  # type: ignore[return-value]


def _daily(points: Iterable[HealthDataPoint], aggregate: str = "mean") -> "OrderedDict[date, float]":
    return daily_values(((p.day, p.value) for p in points), aggregate=aggregate)


def _nutrition_days(data: HealthDataSeries) -> "OrderedDict[date, float]":
    pairs = []
    for log in data.nutrition:
        try:
            pairs.append((parse_timestamp(log.date).date(), log.calories_consumed))
        except ValidationError:
            continue
    return daily_values(pairs, aggregate="sum")


def aggregate_features(data: HealthDataSeries) -> SeriesFeatures:
    """Summaries and per-day series for every metric; absent metrics are empty."""
    features = SeriesFeatures()
    for metric in POINT_METRICS:
        points = getattr(data, metric)
        features.summaries[metric] = summarize([p.value for p in points])
        features.daily[metric] = _daily(points, aggregate="sum" if metric == "steps" else "mean")
    features.daily["nutrition"] = _nutrition_days(data)
    return features


# ---------------------------------------------------------------------------
# Trend and correlation helpers
# ---------------------------------------------------------------------------

_TREND_PHRASES = {
    "increasing": "trending upward",
    "decreasing": "trending downward",
    "stable": "consistent",
    "fluctuating": "fluctuating",
}


def compute_trend(
    values: list[float], metric: str, timeframe: TrendTimeframe
) -> TrendResult | None:
    """Compare the mean of the recent half against the older half.

    ``rate`` is the relative change between halves. ``significance`` grows
    with the number of observations and shrinks with volatility.
    """
    n = len(values)
    if n < 2:
        return None
    half = n // 2
    older = mean(values[:half])
    recent = mean(values[-half:])
    rate = (recent - older) / older if older else 0.0

    overall = mean(values)
    cv = std_dev(values) / overall if overall > 0 else 0.0

    if abs(rate) < STABLE_RATE:
        direction = "fluctuating" if cv > FLUCTUATING_CV else "stable"
    else:
        direction = "increasing" if rate > 0 else "decreasing"

    significance = clamp(min(1.0, n / 7) * (1.0 - min(cv, 1.0)))
    return TrendResult(
        metric=metric,
        direction=direction,
        rate=round(rate, 3),
        timeframe=timeframe,
        significance=round(significance, 2),
        description=f"Your {metric.lower()} has been {_TREND_PHRASES[direction]} over the past {timeframe}.",
    )


def compute_correlation(
    a: "OrderedDict[date, float]",
    b: "OrderedDict[date, float]",
    metric1: str,
    metric2: str,
) -> CorrelationResult | None:
    """Pearson correlation over the days both series have values."""
    common = [day for day in a if day in b]
    r = pearson([a[d] for d in common], [b[d] for d in common])
    if r is None or abs(r) < MIN_CORRELATION:
        return None
    relation = "higher" if r > 0 else "lower"
    return CorrelationResult(
        metric1=metric1,
        metric2=metric2,
        strength=round(r, 2),
        significance=round(correlation_p_value(r, len(common)), 3),
        description=f"Days with higher {metric1.lower()} tend to show {relation} {metric2.lower()}.",
    )


def _analysis(
    ctx: ScoringContext,
    trends: Iterable[tuple[list[float], str]],
    correlations: Iterable[tuple["OrderedDict[date, float]", "OrderedDict[date, float]", str, str]],
) -> tuple[tuple[TrendResult, ...], tuple[CorrelationResult, ...]]:
    trend_results: list[TrendResult] = []
    if ctx.include_trends:
        for values, metric in trends:
            trend = compute_trend(values, metric, ctx.timeframe)
            if trend is not None:
                trend_results.append(trend)

    corr_results: list[CorrelationResult] = []
    if ctx.include_correlations:
        for a, b, m1, m2 in correlations:
            corr = compute_correlation(a, b, m1, m2)
            if corr is not None:
                corr_results.append(corr)

    return tuple(trend_results), tuple(corr_results)


def _temperature_f(value: float) -> float:
    """Readings below 50 are taken as Celsius."""
    return value * 9 / 5 + 32 if value < 50 else value


def _temperature_signal(features: SeriesFeatures) -> float | None:
    temp = features.summary("temperature")
    if temp.count == 0:
        return None
    return clamp(1.0 - abs(_temperature_f(temp.mean) - NORMAL_TEMP_F) / 2)


def _sleep_duration_signal(features: SeriesFeatures, profile: UserProfile) -> float | None:
    nightly = list(features.days("sleep").values())
    if not nightly:
        return None
    return clamp(1.0 - abs(mean(nightly) - profile.sleep_goal_hours) / 3)


def _score(signal: float) -> int:
    return round_half_up(100 * clamp(signal))


# ---------------------------------------------------------------------------
# Category templates
# ---------------------------------------------------------------------------

CategoryGenerator = Callable[[HealthDataSeries, SeriesFeatures, ScoringContext], InsightCategory]


@dataclass(frozen=True)
class CategoryTemplate:
    key: str
    title: str
    description: str
    empty_score: int
    base_recommendations: tuple[str, ...]
    fallback_recommendation: str

    def category(
        self,
        score: int,
        recommendations: Iterable[str] = (),
        trends: tuple[TrendResult, ...] = (),
        correlations: tuple[CorrelationResult, ...] = (),
    ) -> InsightCategory:
        return InsightCategory(
            title=self.title,
            description=self.description,
            score=score,
            recommendations=tuple(recommendations) + self.base_recommendations,
            trends=trends,
            correlations=correlations,
        )

    def fallback(self) -> InsightCategory:
        """Degraded result used when the generator fails."""
        return InsightCategory(
            title=self.title,
            description=f"Unable to generate complete {self.title.lower()} insights due to an error",
            score=50,
            recommendations=(self.fallback_recommendation,),
        )


CATEGORY_TEMPLATES: dict[str, CategoryTemplate] = {
    "sleep": CategoryTemplate(
        key="sleep",
        title="Sleep Quality",
        description="Analysis of your sleep patterns, quality, and recovery effectiveness",
        empty_score=65,
        base_recommendations=(
            "Try to maintain a consistent sleep schedule, even on weekends",
            "Reduce blue light exposure 1 hour before bedtime",
            "Consider a relaxation routine before sleep to improve sleep quality",
        ),
        fallback_recommendation="Improve sleep tracking to get better insights",
    ),
    "activity": CategoryTemplate(
        key="activity",
        title="Physical Activity",
        description="Analysis of your movement patterns, exercise habits, and fitness trends",
        empty_score=60,
        base_recommendations=(
            "Try to increase daily steps by 1000 steps per day",
            "Add 2-3 strength training sessions per week",
            "Break up extended sitting periods with short movement breaks",
        ),
        fallback_recommendation="Track your activity consistently to get better insights",
    ),
    "nutrition": CategoryTemplate(
        key="nutrition",
        title="Nutrition & Hydration",
        description="Analysis of your nutritional patterns, hydration, and dietary balance",
        empty_score=60,
        base_recommendations=(
            "Increase water intake to at least 8 glasses per day",
            "Try to include more leafy greens and colorful vegetables",
            "Consider logging your meals to identify nutrient gaps",
        ),
        fallback_recommendation="Track your meals and hydration to get personalized insights",
    ),
    "stress": CategoryTemplate(
        key="stress",
        title="Stress & Recovery",
        description="Analysis of your stress patterns, recovery capacity, and mental wellbeing",
        empty_score=55,
        base_recommendations=(
            "Practice 10 minutes of mindfulness meditation daily",
            "Build in regular short breaks during intense work periods",
            "Try deep breathing exercises when feeling stressed",
        ),
        fallback_recommendation="Track your HRV and stress levels for better insights",
    ),
    "heartHealth": CategoryTemplate(
        key="heartHealth",
        title="Heart Health",
        description="Analysis of your cardiovascular health indicators and heart function",
        empty_score=65,
        base_recommendations=(
            "Continue regular cardio exercise to maintain heart health",
            "Monitor your heart rate during different activities",
            "Consider mixing high and low intensity workouts for cardiovascular benefits",
        ),
        fallback_recommendation="Track your heart rate data consistently for better insights",
    ),
    "metabolism": CategoryTemplate(
        key="metabolism",
        title="Metabolism",
        description="Analysis of your metabolic health and energy utilization patterns",
        empty_score=70,
        base_recommendations=(
            "Try to maintain regular meal timing",
            "Consider protein intake with each meal to support metabolism",
            "Stay hydrated to support optimal metabolic function",
        ),
        fallback_recommendation="Track your nutrition and activity to get metabolism insights",
    ),
    "immunity": CategoryTemplate(
        key="immunity",
        title="Immunity & Resilience",
        description="Analysis of factors affecting your immune system function and resilience",
        empty_score=76,
        base_recommendations=(
            "Maintain good sleep hygiene to support immune function",
            "Consider vitamin D supplementation (consult with your doctor)",
            "Include a variety of colorful fruits and vegetables in your diet",
        ),
        fallback_recommendation="Track sleep, stress, and nutrition to get immunity insights",
    ),
}


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

def generate_sleep_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """Duration adequacy against the sleep goal (70%) and night-to-night consistency (30%)."""
    template = CATEGORY_TEMPLATES["sleep"]
    nightly = list(features.days("sleep").values())
    if not nightly:
        return template.category(template.empty_score)

    avg = mean(nightly)
    spread = std_dev(nightly)
    duration = clamp(1.0 - abs(avg - ctx.profile.sleep_goal_hours) / 3)
    consistency = clamp(1.0 - spread / 2)

    extra = []
    if avg < 7:
        extra.append("Aim for at least 7 hours of sleep by moving bedtime 15 minutes earlier")
    if spread > 1:
        extra.append("Keep bed and wake times within 30 minutes of each other")

    trends, correlations = _analysis(
        ctx,
        [(nightly, "Sleep Duration")],
        [(features.days("sleep"), features.days("hrv"), "Sleep Duration", "Heart Rate Variability")],
    )
    return template.category(_score(0.7 * duration + 0.3 * consistency), extra, trends, correlations)


def generate_activity_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """Average daily steps against the goal (70%) and share of active days (30%)."""
    template = CATEGORY_TEMPLATES["activity"]
    daily_steps = list(features.days("steps").values())
    if not daily_steps:
        return template.category(template.empty_score)

    goal = max(ctx.profile.daily_step_goal, 1)
    avg = mean(daily_steps)
    goal_ratio = clamp(avg / goal)
    active_days = sum(1 for s in daily_steps if s >= 0.7 * goal) / len(daily_steps)

    extra = []
    if avg < 0.5 * goal:
        extra.append("Start with a 10-minute walk after each meal")

    trends, correlations = _analysis(
        ctx,
        [(daily_steps, "Daily Steps")],
        [(features.days("steps"), features.days("sleep"), "Daily Steps", "Sleep Duration")],
    )
    return template.category(_score(0.7 * goal_ratio + 0.3 * active_days), extra, trends, correlations)


def _adherence(consumed: float, target: float) -> float:
    if target <= 0:
        return 0.5
    return clamp(1.0 - abs(consumed - target) / target)


def generate_nutrition_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """Calorie adherence (50%), protein sufficiency (30%) and carb/fat balance (20%)."""
    template = CATEGORY_TEMPLATES["nutrition"]
    if not data.nutrition:
        return template.category(template.empty_score)

    day_scores = []
    protein_ratios = []
    calorie_ratios = []
    for log in data.nutrition:
        calories = _adherence(log.calories_consumed, log.calories_target)
        protein = clamp(log.protein_consumed / log.protein_target) if log.protein_target > 0 else 0.5
        macros = mean([
            _adherence(log.carbs_consumed, log.carbs_target),
            _adherence(log.fat_consumed, log.fat_target),
        ])
        day_scores.append(0.5 * calories + 0.3 * protein + 0.2 * macros)
        if log.protein_target > 0:
            protein_ratios.append(log.protein_consumed / log.protein_target)
        if log.calories_target > 0:
            calorie_ratios.append(log.calories_consumed / log.calories_target)

    extra = []
    if protein_ratios and mean(protein_ratios) < 0.8:
        extra.append("Add a protein source to each meal to reach your daily target")
    if calorie_ratios and mean(calorie_ratios) < 0.8:
        extra.append("Your intake is well below target; add a balanced snack between meals")

    trends, correlations = _analysis(
        ctx,
        [(list(features.days("nutrition").values()), "Calorie Intake")],
        [(features.days("nutrition"), features.days("steps"), "Calorie Intake", "Daily Steps")],
    )
    return template.category(_score(mean(day_scores)), extra, trends, correlations)


def generate_stress_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """HRV level (60%) and HRV stability (40%), minus self-reported stress."""
    template = CATEGORY_TEMPLATES["stress"]
    hrv = features.summary("hrv")
    if hrv.count == 0:
        return template.category(template.empty_score)

    level = clamp(hrv.mean / 60)
    stability = clamp(1.0 - hrv.coefficient_of_variation)
    stressed_share = 0.0
    if data.assessments:
        stressed = sum(1 for a in data.assessments if "stressed" in a.selected_options.get("12", []))
        stressed_share = stressed / len(data.assessments)

    extra = []
    if stressed_share >= 0.5:
        extra.append("You reported stress on most recent check-ins; schedule a daily wind-down period")

    trends, correlations = _analysis(
        ctx,
        [(list(features.days("hrv").values()), "HRV")],
        [(features.days("hrv"), features.days("heart_rate"), "HRV", "Heart Rate")],
    )
    signal = 0.6 * level + 0.4 * stability - 0.2 * stressed_share
    return template.category(_score(signal), extra, trends, correlations)


def generate_heart_health_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """Resting heart rate near 65 bpm, blended with SpO2 when available."""
    template = CATEGORY_TEMPLATES["heartHealth"]
    resting = [p.value for p in data.heart_rate if p.value > 0]
    if not resting:
        return template.category(template.empty_score)

    rhr = mean(resting)
    hr_signal = clamp(1.0 - abs(rhr - OPTIMAL_RESTING_HR) / 25)
    spo2 = features.summary("spo2")
    if spo2.count:
        signal = 0.75 * hr_signal + 0.25 * clamp((spo2.mean - 90) / 8)
    else:
        signal = hr_signal

    extra = []
    if rhr > 80:
        extra.append("Discuss your elevated resting heart rate with a healthcare provider if it persists")

    trends, correlations = _analysis(
        ctx,
        [(list(features.days("heart_rate").values()), "Resting Heart Rate")],
        [(features.days("heart_rate"), features.days("steps"), "Resting Heart Rate", "Activity Level")],
    )
    return template.category(_score(signal), extra, trends, correlations)


def generate_metabolism_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """Mean of activity, calorie adherence and temperature signals that are present."""
    template = CATEGORY_TEMPLATES["metabolism"]
    signals = []
    steps = list(features.days("steps").values())
    if steps:
        signals.append(clamp(mean(steps) / max(ctx.profile.daily_step_goal, 1)))
    if data.nutrition:
        signals.append(mean([_adherence(n.calories_consumed, n.calories_target) for n in data.nutrition]))
    temperature = _temperature_signal(features)
    if temperature is not None:
        signals.append(temperature)

    if not signals:
        return template.category(template.empty_score)

    trends, correlations = _analysis(
        ctx,
        [(list(features.days("temperature").values()), "Body Temperature")],
        [],
    )
    return template.category(_score(mean(signals)), (), trends, correlations)


def generate_immunity_insights(
    data: HealthDataSeries, features: SeriesFeatures, ctx: ScoringContext
) -> InsightCategory:
    """Mean of sleep adequacy, HRV level and temperature signals that are present."""
    template = CATEGORY_TEMPLATES["immunity"]
    signals = []
    sleep = _sleep_duration_signal(features, ctx.profile)
    if sleep is not None:
        signals.append(sleep)
    hrv = features.summary("hrv")
    if hrv.count:
        signals.append(clamp(hrv.mean / 60))
    temperature = _temperature_signal(features)
    if temperature is not None:
        signals.append(temperature)

    if not signals:
        return template.category(template.empty_score)

    extra = []
    if temperature is not None and temperature < 0.5:
        extra.append("Your body temperature is outside its usual range; rest and monitor for symptoms")

    trends, correlations = _analysis(
        ctx,
        [(list(features.days("sleep").values()), "Sleep Duration")],
        [(features.days("sleep"), features.days("temperature"), "Sleep Duration", "Body Temperature")],
    )
    return template.category(_score(mean(signals)), extra, trends, correlations)


CATEGORY_GENERATORS: dict[str, CategoryGenerator] = {
    "sleep": generate_sleep_insights,
    "activity": generate_activity_insights,
    "nutrition": generate_nutrition_insights,
    "stress": generate_stress_insights,
    "heartHealth": generate_heart_health_insights,
    "metabolism": generate_metabolism_insights,
    "immunity": generate_immunity_insights,
}
