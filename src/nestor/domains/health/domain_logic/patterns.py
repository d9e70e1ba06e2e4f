"""Recurring-pattern detection over daily check-in history.

Each detector looks at the most recent N check-ins (newest first) and emits
a ``HealthPattern`` when a condition recurs often enough. Pattern ids are
derived from the pattern kind and the newest check-in date, so running
detection twice over the same history yields the same ids and callers can
merge results by id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Literal, Sequence

from nestor.domains.health.domain_logic.insight_models import Assessment, parse_timestamp

RiskLevel = Literal["low", "moderate", "high"]

_PAIN_NAMES = {
    "joint": "Joint pain",
    "muscle": "Muscle pain",
    "headache": "Headaches",
    "abdominal": "Abdominal pain",
    "back": "Back pain",
    "chest": "Chest pain",
    "migraines": "Migraines",
}


@dataclass(frozen=True)
class HealthPattern:
    id: str
    type: str
    description: str
    risk_level: RiskLevel
    recommendation: str
    detected_date: str  # ISO 8601

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "riskLevel": self.risk_level,
            "recommendation": self.recommendation,
            "detectedDate": self.detected_date,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> HealthPattern:
        return cls(
            id=raw["id"],
            type=raw["type"],
            description=raw.get("description", ""),
            risk_level=raw.get("risk_level", raw.get("riskLevel", "low")),
            recommendation=raw.get("recommendation", ""),
            detected_date=raw.get("detected_date", raw.get("detectedDate", "")),
        )


def _newest_first(assessments: Iterable[Assessment]) -> list[Assessment]:
    return sorted(assessments, key=lambda a: a.date, reverse=True)


def _count(assessments: Sequence[Assessment], question: str, *options: str) -> int:
    return sum(
        1 for a in assessments
        if any(opt in a.selected_options.get(question, []) for opt in options)
    )


def _stamp(detected_at: datetime | None) -> str:
    return (detected_at or datetime.now(timezone.utc)).isoformat()


def detect_sleep_patterns(
    recent: Sequence[Assessment], *, detected_at: datetime | None = None
) -> list[HealthPattern]:
    """Poor sleep in the last 3 check-ins, insomnia in the last 5."""
    if len(recent) < 3:
        return []
    anchor = recent[0].date
    patterns: list[HealthPattern] = []

    poor_sleep = _count(recent[:3], "2", "poorly_rested")
    if poor_sleep >= 2:
        patterns.append(HealthPattern(
            id=f"sleep-pattern-{anchor}",
            type="Sleep Disruption",
            description="Multiple days with reported poor sleep quality",
            risk_level="high" if poor_sleep >= 3 else "moderate",
            recommendation="Consider reviewing your sleep habits and environment",
            detected_date=_stamp(detected_at),
        ))

    insomnia = _count(recent[:5], "2.1", "insomnia")
    if insomnia >= 2:
        patterns.append(HealthPattern(
            id=f"insomnia-pattern-{anchor}",
            type="Insomnia Pattern",
            description="Recurring reports of insomnia detected",
            risk_level="high" if insomnia >= 3 else "moderate",
            recommendation="Consider reducing screen time and caffeine before bed",
            detected_date=_stamp(detected_at),
        ))

    return patterns


def detect_lifestyle_patterns(
    recent: Sequence[Assessment], *, detected_at: datetime | None = None
) -> list[HealthPattern]:
    """Inactivity and heavy drinking over the last 7 check-ins."""
    if len(recent) < 3:
        return []
    anchor = recent[0].date
    week = recent[:7]
    patterns: list[HealthPattern] = []

    no_exercise = _count(week, "4", "no")
    if no_exercise >= 5:
        patterns.append(HealthPattern(
            id=f"exercise-pattern-{anchor}",
            type="Low Activity Pattern",
            description="Insufficient physical activity detected",
            risk_level="high" if no_exercise >= 6 else "moderate",
            recommendation="Try to incorporate light exercise into your daily routine",
            detected_date=_stamp(detected_at),
        ))

    heavy_drinking = sum(
        1 for a in week
        if "yes" in a.selected_options.get("9", [])
        and any(opt in a.selected_options.get("9.2", []) for opt in ("more_than_three", "binge"))
    )
    if heavy_drinking >= 2:
        patterns.append(HealthPattern(
            id=f"alcohol-pattern-{anchor}",
            type="Alcohol Consumption",
            description="Frequent high alcohol consumption detected",
            risk_level="high" if heavy_drinking >= 3 else "moderate",
            recommendation="Consider reducing alcohol intake and tracking how it affects your sleep",
            detected_date=_stamp(detected_at),
        ))

    return patterns


def detect_health_patterns(
    recent: Sequence[Assessment], *, detected_at: datetime | None = None
) -> list[HealthPattern]:
    """Recurring pain (last 5 check-ins) and chronic stress (last 7)."""
    if len(recent) < 2:
        return []
    anchor = recent[0].date
    patterns: list[HealthPattern] = []

    pain_counts: dict[str, int] = {}
    for assessment in recent[:5]:
        for pain in assessment.selected_options.get("7.1", []):
            pain_counts[pain] = pain_counts.get(pain, 0) + 1

    for pain, count in pain_counts.items():
        if count < 3:
            continue
        is_chest = pain == "chest"
        patterns.append(HealthPattern(
            id=f"pain-pattern-{pain}-{anchor}",
            type="Recurring Pain",
            description=f"Frequent {_PAIN_NAMES.get(pain, pain)} reported",
            risk_level="high" if is_chest else ("moderate" if count >= 4 else "low"),
            recommendation=(
                "Consider consulting a healthcare provider about chest pain"
                if is_chest
                else "Monitor pain patterns and consider consulting a healthcare provider"
            ),
            detected_date=_stamp(detected_at),
        ))

    stress_days = _count(recent[:7], "12", "stressed")
    if stress_days >= 4:
        patterns.append(HealthPattern(
            id=f"stress-pattern-{anchor}",
            type="Chronic Stress",
            description="Persistent stress or anxiety detected",
            risk_level="high" if stress_days >= 6 else "moderate",
            recommendation="Consider stress management techniques like meditation or physical activity",
            detected_date=_stamp(detected_at),
        ))

    return patterns


def detect_all_patterns(
    assessments: Iterable[Assessment], *, detected_at: datetime | None = None
) -> list[HealthPattern]:
    """Run every detector over the history (any order; sorted newest first)."""
    recent = _newest_first(assessments)
    detected_at = detected_at or datetime.now(timezone.utc)
    return (
        detect_sleep_patterns(recent, detected_at=detected_at)
        + detect_lifestyle_patterns(recent, detected_at=detected_at)
        + detect_health_patterns(recent, detected_at=detected_at)
    )


def merge_patterns(
    existing: Sequence[HealthPattern], new: Iterable[HealthPattern]
) -> list[HealthPattern]:
    """Append patterns whose id is not already present; existing ones are kept as-is."""
    merged = list(existing)
    seen = {p.id for p in merged}
    for pattern in new:
        if pattern.id not in seen:
            merged.append(pattern)
            seen.add(pattern.id)
    return merged


def get_recent_patterns(
    patterns: Iterable[HealthPattern],
    days: int = 7,
    *,
    now: datetime | None = None,
) -> list[HealthPattern]:
    """Patterns detected within the last ``days`` days."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    return [p for p in patterns if parse_timestamp(p.detected_date) >= cutoff]
