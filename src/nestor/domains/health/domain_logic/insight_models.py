"""Health insight models: input series, assessments, and insight results.

Attribute names are snake_case. ``to_dict()`` on result types emits the
camelCase field names that dashboard clients render.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal

Severity = Literal["low", "medium", "high"]
TrendDirection = Literal["increasing", "decreasing", "stable", "fluctuating"]
TrendTimeframe = Literal["day", "week", "month"]
TimeFrame = Literal["day", "week", "month", "year"]

TIME_FRAMES = ("day", "week", "month", "year")

# Category keys in result order (wire names)
CATEGORY_KEYS = [
    "sleep",
    "activity",
    "nutrition",
    "stress",
    "heartHealth",
    "metabolism",
    "immunity",
]

# Series keys accepted by HealthDataSeries.from_dict -> attribute name
_SERIES_KEYS = {
    "heartRate": "heart_rate",
    "heart_rate": "heart_rate",
    "hrv": "hrv",
    "spo2": "spo2",
    "temperature": "temperature",
    "steps": "steps",
    "sleep": "sleep",
    "activity": "activity",
}


class ValidationError(ValueError):
    """Raised when input data is missing or malformed."""


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) or pass a datetime through.

    Naive values are assumed to be UTC.

    Raises:
        ValidationError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ValidationError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _num(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be numeric, got {value!r}") from exc
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return number


def _calendar_date(value: Any) -> str:
    """Validate a YYYY-MM-DD date; check-in dates are ordered as strings."""
    text = str(value)
    try:
        parsed = date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"date must be YYYY-MM-DD, got {value!r}") from exc
    if parsed.isoformat() != text:
        raise ValidationError(f"date must be YYYY-MM-DD, got {value!r}")
    return text


def _opt_num(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Input series
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthDataPoint:
    """A single reading from a device or manual entry."""

    type: str
    value: float
    timestamp: datetime
    source: str | None = None
    unit: str | None = None
    confidence: float | None = None

    @property
    def day(self) -> date:
        return self.timestamp.date()

    @classmethod
    def from_dict(cls, raw: dict[str, Any], default_type: str = "") -> HealthDataPoint:
        if not isinstance(raw, dict):
            raise ValidationError(f"Data point must be an object, got {type(raw).__name__}")
        if "value" not in raw:
            raise ValidationError("Data point is missing 'value'")
        if "timestamp" not in raw:
            raise ValidationError("Data point is missing 'timestamp'")
        confidence = raw.get("confidence")
        return cls(
            type=str(raw.get("type") or default_type),
            value=_num(raw["value"], "value"),
            timestamp=parse_timestamp(raw["timestamp"]),
            source=raw.get("source"),
            unit=raw.get("unit"),
            confidence=_num(confidence, "confidence") if confidence is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.source is not None:
            data["source"] = self.source
        if self.unit is not None:
            data["unit"] = self.unit
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data


@dataclass
class NutritionLog:
    """Daily nutrition totals against targets."""

    date: str
    calories_consumed: float = 0.0
    calories_target: float = 0.0
    protein_consumed: float = 0.0
    protein_target: float = 0.0
    carbs_consumed: float = 0.0
    carbs_target: float = 0.0
    fat_consumed: float = 0.0
    fat_target: float = 0.0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> NutritionLog:
        if not isinstance(raw, dict):
            raise ValidationError("Nutrition log must be an object")
        return cls(
            date=str(raw.get("date", "")),
            calories_consumed=_opt_num(raw.get("calories_consumed")),
            calories_target=_opt_num(raw.get("calories_target")),
            protein_consumed=_opt_num(raw.get("protein_consumed")),
            protein_target=_opt_num(raw.get("protein_target")),
            carbs_consumed=_opt_num(raw.get("carbs_consumed")),
            carbs_target=_opt_num(raw.get("carbs_target")),
            fat_consumed=_opt_num(raw.get("fat_consumed")),
            fat_target=_opt_num(raw.get("fat_target")),
        )


@dataclass
class HealthDataSeries:
    """Per-category chronological readings for one insights request."""

    heart_rate: list[HealthDataPoint] = field(default_factory=list)
    hrv: list[HealthDataPoint] = field(default_factory=list)
    spo2: list[HealthDataPoint] = field(default_factory=list)
    temperature: list[HealthDataPoint] = field(default_factory=list)
    steps: list[HealthDataPoint] = field(default_factory=list)
    sleep: list[HealthDataPoint] = field(default_factory=list)
    activity: list[HealthDataPoint] = field(default_factory=list)
    assessments: list[Assessment] = field(default_factory=list)
    nutrition: list[NutritionLog] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> HealthDataSeries:
        """Build a series from a JSON-like dict (camelCase or snake_case keys).

        Raises:
            ValidationError: If a category is not a list or a point is malformed.
        """
        series = cls()
        if not raw:
            return series
        if not isinstance(raw, dict):
            raise ValidationError("Health data must be an object keyed by metric")

        for key, attr in _SERIES_KEYS.items():
            items = raw.get(key)
            if items is None:
                continue
            if not isinstance(items, list):
                raise ValidationError(f"'{key}' must be a list of data points")
            points = [HealthDataPoint.from_dict(item, default_type=attr) for item in items]
            points.sort(key=lambda p: p.timestamp)
            setattr(series, attr, points)

        assessments = raw.get("assessments") or []
        nutrition = raw.get("nutrition") or []
        if not isinstance(assessments, list) or not isinstance(nutrition, list):
            raise ValidationError("'assessments' and 'nutrition' must be lists")
        series.assessments = [Assessment.from_dict(a) for a in assessments]
        series.nutrition = [NutritionLog.from_dict(n) for n in nutrition]
        return series

    def values(self, metric: str) -> list[float]:
        """Plain values of a point series by attribute name."""
        return [p.value for p in getattr(self, metric)]


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------

@dataclass
class AssessmentResponse:
    """A response to a single check-in question."""

    question_id: str
    response: Any
    question_text: str = ""
    response_type: str = "multiple"
    notes: str | None = None

    def options(self) -> list[str]:
        """Selected option values as a list of strings."""
        if self.response is None:
            return []
        if isinstance(self.response, (list, tuple, set)):
            return [str(r) for r in self.response]
        return [str(self.response)]

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AssessmentResponse:
        if not isinstance(raw, dict) or "question_id" not in raw:
            raise ValidationError("Assessment response requires 'question_id'")
        return cls(
            question_id=_question_key(raw["question_id"]),
            response=raw.get("response"),
            question_text=raw.get("question_text", ""),
            response_type=raw.get("response_type", "multiple"),
            notes=raw.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "question_id": self.question_id,
            "question_text": self.question_text,
            "response_type": self.response_type,
            "response": self.response,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        return data


def _question_key(value: Any) -> str:
    """Normalize question ids: 2 -> "2", 2.1 -> "2.1", 4.0 -> "4"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class AssessmentData:
    """Answers of one daily check-in, keyed by question id."""

    selected_options: dict[str, list[str]] = field(default_factory=dict)
    notes: dict[str, str] = field(default_factory=dict)
    custom_inputs: dict[str, dict[str, str]] = field(default_factory=dict)
    timestamp: str = ""

    def selected(self, question_id: str) -> list[str]:
        return self.selected_options.get(question_id) or []

    def has(self, question_id: str, *options: str) -> bool:
        """True if any of ``options`` was selected for ``question_id``."""
        chosen = self.selected(question_id)
        return any(option in chosen for option in options)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AssessmentData:
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ValidationError("Assessment data must be an object")
        selected = raw.get("selected_options", raw.get("selectedOptions", {})) or {}
        if not isinstance(selected, dict):
            raise ValidationError("selected_options must map question ids to options")
        options: dict[str, list[str]] = {}
        for key, value in selected.items():
            if isinstance(value, (list, tuple)):
                options[_question_key(key)] = [str(v) for v in value]
            elif value is not None:
                options[_question_key(key)] = [str(value)]
        return cls(
            selected_options=options,
            notes={_question_key(k): v for k, v in (raw.get("notes") or {}).items()},
            custom_inputs={
                _question_key(k): v
                for k, v in (raw.get("custom_inputs", raw.get("customInputs")) or {}).items()
            },
            timestamp=raw.get("timestamp", ""),
        )


@dataclass
class Assessment:
    """A completed daily check-in."""

    date: str  # YYYY-MM-DD
    responses: list[AssessmentResponse] = field(default_factory=list)
    readiness_score: float | None = None
    completed_at: str = ""

    # Storage fields
    id: str = ""
    user_id: str = ""
    created_at: str = ""
    updated_at: str = ""
    is_synced: bool = False

    @property
    def selected_options(self) -> dict[str, list[str]]:
        return {r.question_id: r.options() for r in self.responses}

    def to_assessment_data(self) -> AssessmentData:
        return AssessmentData(
            selected_options=self.selected_options,
            notes={r.question_id: r.notes for r in self.responses if r.notes},
            timestamp=self.completed_at,
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Assessment:
        """Build from either a ``responses`` list or a ``selected_options`` mapping."""
        if not isinstance(raw, dict) or not raw.get("date"):
            raise ValidationError("Assessment requires a 'date'")

        if "responses" in raw:
            raw_responses = raw.get("responses") or []
            if not isinstance(raw_responses, list):
                raise ValidationError("responses must be a list")
            responses = [AssessmentResponse.from_dict(r) for r in raw_responses]
        else:
            data = AssessmentData.from_dict(raw.get("data", raw))
            responses = [
                AssessmentResponse(question_id=qid, response=opts)
                for qid, opts in data.selected_options.items()
            ]

        score = raw.get("readiness_score", raw.get("readinessScore"))
        return cls(
            date=_calendar_date(raw["date"]),
            responses=responses,
            readiness_score=_num(score, "readiness_score") if score is not None else None,
            completed_at=raw.get("completed_at", raw.get("completedAt", "")),
            id=raw.get("id", ""),
            user_id=raw.get("user_id", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date,
            "responses": [r.to_dict() for r in self.responses],
            "readinessScore": self.readiness_score,
            "completedAt": self.completed_at,
            "isSynced": self.is_synced,
        }


@dataclass
class UserProfile:
    """Per-request personalization. Never stored on the engine."""

    age: int | None = None
    sleep_goal_hours: float = 8.0
    daily_step_goal: int = 10000

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> UserProfile:
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ValidationError("userProfile must be an object")
        age = raw.get("age")
        return cls(
            age=int(_num(age, "age")) if age is not None else None,
            sleep_goal_hours=_opt_num(
                raw.get("sleep_goal_hours", raw.get("sleepGoalHours")), 8.0
            ),
            daily_step_goal=int(
                _opt_num(raw.get("daily_step_goal", raw.get("dailyStepGoal")), 10000)
            ),
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrendResult:
    metric: str
    direction: TrendDirection
    rate: float
    timeframe: TrendTimeframe
    significance: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "direction": self.direction,
            "rate": self.rate,
            "timeframe": self.timeframe,
            "significance": self.significance,
            "description": self.description,
        }


@dataclass(frozen=True)
class CorrelationResult:
    metric1: str
    metric2: str
    strength: float       # -1..1
    significance: float   # p-value, lower = more significant
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric1": self.metric1,
            "metric2": self.metric2,
            "strength": self.strength,
            "significance": self.significance,
            "description": self.description,
        }


@dataclass(frozen=True)
class InsightCategory:
    """Score and guidance for one health domain."""

    title: str
    description: str
    score: int
    recommendations: tuple[str, ...] = ()
    trends: tuple[TrendResult, ...] = ()
    correlations: tuple[CorrelationResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "score": self.score,
            "recommendations": list(self.recommendations),
            "trends": [t.to_dict() for t in self.trends],
            "correlations": [c.to_dict() for c in self.correlations],
        }


@dataclass(frozen=True)
class AnomalyResult:
    metric: str
    severity: Severity
    timestamp: datetime
    value: float
    expected_range: tuple[float, float]
    description: str
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat(),
            "value": self.value,
            "expectedRange": list(self.expected_range),
            "description": self.description,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class RiskFactor:
    name: str
    category: str
    probability: float
    severity: Severity
    improvement_potential: float
    interventions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "probability": self.probability,
            "severity": self.severity,
            "improvementPotential": self.improvement_potential,
            "interventions": list(self.interventions),
        }


@dataclass(frozen=True)
class RecommendationSet:
    daily: tuple[str, ...] = ()
    weekly: tuple[str, ...] = ()
    long_term: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily": list(self.daily),
            "weekly": list(self.weekly),
            "longTerm": list(self.long_term),
        }


@dataclass(frozen=True)
class HealthInsightsResult:
    """Root aggregate returned by the insights engine."""

    overall_score: int
    summary: str
    categories: dict[str, InsightCategory]
    timestamp: datetime
    anomalies: tuple[AnomalyResult, ...] = ()
    recommendations: RecommendationSet = RecommendationSet()
    risk_factors: tuple[RiskFactor, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "summary": self.summary,
            "categories": {key: cat.to_dict() for key, cat in self.categories.items()},
            "timestamp": self.timestamp.isoformat(),
            "anomalies": [a.to_dict() for a in self.anomalies],
            "recommendations": self.recommendations.to_dict(),
            "riskFactors": [r.to_dict() for r in self.risk_factors],
        }
