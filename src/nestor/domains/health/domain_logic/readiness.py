"""Readiness scoring from daily check-in answers.

The score starts at 100 and subtracts penalty points from three groups:
physiological stability, lifestyle consistency, and self-reported health.
Penalties live in ``READINESS_RULES`` so the weights can be tuned without
touching the scoring code. Unanswered questions contribute nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from nestor.domains.health.domain_logic.insight_models import AssessmentData

PHYSIOLOGICAL = "physiological"
LIFESTYLE = "lifestyle"
SELF_REPORTED = "self_reported"

# Maximum penalty per group used for the contributing-factor percentages
MAX_GROUP_PENALTY = 50


@dataclass(frozen=True)
class ReadinessRule:
    """Penalty applied when any of ``options`` is selected for ``question``.

    ``requires`` and ``unless`` are ``(question, option)`` gates on other
    answers (e.g. exercise intensity only counts when exercise was "yes").
    """

    group: str
    question: str
    options: tuple[str, ...]
    points: int
    requires: tuple[str, str] | None = None
    unless: tuple[str, str] | None = None

    def applies(self, data: AssessmentData) -> bool:
        if self.requires and not data.has(*self.requires):
            return False
        if self.unless and data.has(*self.unless):
            return False
        return data.has(self.question, *self.options)


def _rule(group: str, question: str, option: str | tuple[str, ...], points: int, **gates) -> ReadinessRule:
    options = option if isinstance(option, tuple) else (option,)
    return ReadinessRule(group, question, options, points, **gates)


READINESS_RULES: tuple[ReadinessRule, ...] = (
    # Sleep quality and reasons
    _rule(PHYSIOLOGICAL, "2", "poorly_rested", 5),
    _rule(PHYSIOLOGICAL, "2.1", "insomnia", 5),
    _rule(PHYSIOLOGICAL, "2.1", "nightmares", 3),
    _rule(PHYSIOLOGICAL, "2.1", "sleep_apnea", 7),
    _rule(PHYSIOLOGICAL, "2.1", "restless_leg", 4),
    # General feeling and symptoms
    _rule(PHYSIOLOGICAL, "1", "not_good", 5),
    _rule(PHYSIOLOGICAL, "1.2", "headache", 3),
    _rule(PHYSIOLOGICAL, "1.2", "fatigue", 4),
    _rule(PHYSIOLOGICAL, "1.2", "nausea", 5),
    _rule(PHYSIOLOGICAL, "1.2", "chest_pain", 10),
    _rule(PHYSIOLOGICAL, "1.2", "shortness_of_breath", 8),
    # Urination and bowel movements
    _rule(PHYSIOLOGICAL, "5", ("increased", "decreased"), 3),
    _rule(PHYSIOLOGICAL, "6", "constipation", 3),
    _rule(PHYSIOLOGICAL, "6", "diarrhea", 5),
    _rule(PHYSIOLOGICAL, "6", "bloody", 15),
    # Exercise
    _rule(LIFESTYLE, "4", "no", 5),
    _rule(LIFESTYLE, "4.2", "intense", 2, requires=("4", "yes"), unless=("4", "no")),
    # Caffeine
    _rule(LIFESTYLE, "3.1", "3_plus_cups", 3, requires=("3", "yes")),
    _rule(LIFESTYLE, "3.2", "evening", 5, requires=("3", "yes")),
    # Alcohol
    _rule(LIFESTYLE, "9.2", "more_than_three", 8, requires=("9", "yes")),
    _rule(LIFESTYLE, "9.2", "binge", 15, requires=("9", "yes")),
    # Other substances
    _rule(LIFESTYLE, "10", "yes", 10),
    _rule(LIFESTYLE, "10.2", "heavy", 5, requires=("10", "yes")),
    # Meal quality
    _rule(LIFESTYLE, "11", "poor", 5),
    # Aches and pains
    _rule(SELF_REPORTED, "7", "yes", 3),
    _rule(SELF_REPORTED, "7.1", "joint", 2, requires=("7", "yes")),
    _rule(SELF_REPORTED, "7.1", "chest", 10, requires=("7", "yes")),
    _rule(SELF_REPORTED, "7.1", "headache", 3, requires=("7", "yes")),
    _rule(SELF_REPORTED, "7.1", "migraines", 5, requires=("7", "yes")),
    # Chronic conditions
    _rule(SELF_REPORTED, "8", "yes", 5),
    _rule(SELF_REPORTED, "8.1", "hypertension", 3, requires=("8", "yes")),
    _rule(SELF_REPORTED, "8.1", "diabetes", 4, requires=("8", "yes")),
    _rule(SELF_REPORTED, "8.1", "heart_disease", 7, requires=("8", "yes")),
    _rule(SELF_REPORTED, "8.1", "respiratory", 5, requires=("8", "yes")),
    # Mental health
    _rule(SELF_REPORTED, "12", "stressed", 7),
    _rule(SELF_REPORTED, "12.2", "racing_thoughts", 2, requires=("12", "stressed")),
    _rule(SELF_REPORTED, "12.2", "mood_swings", 3, requires=("12", "stressed")),
    # Noticed changes
    _rule(SELF_REPORTED, "13", "yes", 3),
)


def group_penalty(
    data: AssessmentData,
    group: str,
    rules: Sequence[ReadinessRule] = READINESS_RULES,
) -> int:
    """Sum the penalties of every rule in ``group`` that applies."""
    return sum(rule.points for rule in rules if rule.group == group and rule.applies(data))


def calculate_physiological_stability(
    data: AssessmentData, rules: Sequence[ReadinessRule] = READINESS_RULES
) -> int:
    """Penalty from sleep, symptoms, urination and bowel answers (lower is better)."""
    return group_penalty(data, PHYSIOLOGICAL, rules)


def calculate_lifestyle_consistency(
    data: AssessmentData, rules: Sequence[ReadinessRule] = READINESS_RULES
) -> int:
    """Penalty from exercise, caffeine, alcohol, substances and meals."""
    return group_penalty(data, LIFESTYLE, rules)


def calculate_self_reported_health(
    data: AssessmentData, rules: Sequence[ReadinessRule] = READINESS_RULES
) -> int:
    """Penalty from pain, chronic conditions, mental health and noticed changes."""
    return group_penalty(data, SELF_REPORTED, rules)


def calculate_readiness_score(
    data: AssessmentData, rules: Sequence[ReadinessRule] = READINESS_RULES
) -> int:
    """Readiness score in [0, 100]; higher is better."""
    total = (
        calculate_physiological_stability(data, rules)
        + calculate_lifestyle_consistency(data, rules)
        + calculate_self_reported_health(data, rules)
    )
    return max(0, min(100, 100 - total))


def get_readiness_grade(score: float) -> str:
    if score >= 85:
        return "Optimal"
    if score >= 70:
        return "Good"
    if score >= 50:
        return "Moderate"
    return "Low"


def get_contributing_factors(
    data: AssessmentData, rules: Sequence[ReadinessRule] = READINESS_RULES
) -> list[dict[str, object]]:
    """Remaining percentage per penalty group (100 = no penalty)."""
    groups = [
        ("Physiological Metrics", calculate_physiological_stability(data, rules)),
        ("Lifestyle Consistency", calculate_lifestyle_consistency(data, rules)),
        ("Self-Reported Health", calculate_self_reported_health(data, rules)),
    ]
    return [
        {"name": name, "percentage": round(100 - penalty / MAX_GROUP_PENALTY * 100)}
        for name, penalty in groups
    ]
