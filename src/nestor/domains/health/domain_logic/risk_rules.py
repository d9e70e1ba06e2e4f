"""Anomaly detection and risk-factor identification.

Anomalies are readings at least two population standard deviations from
the series mean (sleep uses a ratio rule instead). Risk factors fire on
threshold breaches of series means. Each rule is a small table entry so
metrics can be added without changing the detection loop.
"""

from __future__ import annotations

from dataclasses import dataclass

from nestor.domains.health.domain_logic.insight_models import (
    AnomalyResult,
    HealthDataSeries,
    RiskFactor,
    Severity,
)
from nestor.domains.health.domain_logic.timeseries import mean, std_dev

OUTLIER_SIGMAS = 2.0
SHORT_SLEEP_RATIO = 0.7


@dataclass(frozen=True)
class DeviationRule:
    """Flags points at least ``OUTLIER_SIGMAS`` deviations from the mean (boundary inclusive)."""

    metric: str          # HealthDataSeries attribute
    name: str            # reported as AnomalyResult.metric
    label: str
    unit: str
    above: Severity
    below: Severity
    high_recommendation: str
    low_recommendation: str

    def detect(self, data: HealthDataSeries) -> list[AnomalyResult]:
        points = getattr(data, self.metric)
        values = [p.value for p in points]
        if len(values) < 2:
            return []
        mu = mean(values)
        sigma = std_dev(values)
        if sigma == 0:
            return []

        anomalies = []
        for point in points:
            if abs(point.value - mu) < OUTLIER_SIGMAS * sigma:
                continue
            is_high = point.value > mu
            anomalies.append(AnomalyResult(
                metric=self.name,
                severity=self.above if is_high else self.below,
                timestamp=point.timestamp,
                value=point.value,
                expected_range=(mu - sigma, mu + sigma),
                description=f"Unusual {self.label} detected ({point.value:g} {self.unit})",
                recommendation=self.high_recommendation if is_high else self.low_recommendation,
            ))
        return anomalies


DEVIATION_RULES: tuple[DeviationRule, ...] = (
    DeviationRule(
        metric="heart_rate",
        name="Heart Rate",
        label="heart rate",
        unit="bpm",
        above="medium",
        below="low",
        high_recommendation="Monitor for symptoms like dizziness or shortness of breath",
        low_recommendation="No immediate action needed, continue monitoring",
    ),
    DeviationRule(
        metric="hrv",
        name="HRV",
        label="heart rate variability",
        unit="ms",
        above="low",
        below="medium",
        high_recommendation="No immediate action needed, continue monitoring",
        low_recommendation="Low HRV can signal strain; consider a lighter training day",
    ),
    DeviationRule(
        metric="spo2",
        name="Blood Oxygen",
        label="blood oxygen",
        unit="%",
        above="low",
        below="high",
        high_recommendation="No immediate action needed, continue monitoring",
        low_recommendation="Recheck your blood oxygen and seek care if it stays low",
    ),
    DeviationRule(
        metric="temperature",
        name="Body Temperature",
        label="body temperature",
        unit="degrees",
        above="medium",
        below="low",
        high_recommendation="Rest, stay hydrated and monitor for signs of illness",
        low_recommendation="No immediate action needed, continue monitoring",
    ),
)


def detect_sleep_anomalies(data: HealthDataSeries) -> list[AnomalyResult]:
    """Nights shorter than 70% of the average sleep duration."""
    values = data.values("sleep")
    if len(values) < 2:
        return []
    avg = mean(values)
    anomalies = []
    for point in data.sleep:
        if point.value < SHORT_SLEEP_RATIO * avg:
            anomalies.append(AnomalyResult(
                metric="Sleep Duration",
                severity="medium",
                timestamp=point.timestamp,
                value=point.value,
                expected_range=(avg * SHORT_SLEEP_RATIO, avg * 1.3),
                description=f"Significantly shorter sleep duration ({point.value:.1f} hours)",
                recommendation="Try to prioritize sleep recovery in the coming days",
            ))
    return anomalies


def detect_anomalies(data: HealthDataSeries) -> list[AnomalyResult]:
    """Run every anomaly rule; results are ordered by timestamp."""
    anomalies: list[AnomalyResult] = []
    for rule in DEVIATION_RULES:
        anomalies.extend(rule.detect(data))
    anomalies.extend(detect_sleep_anomalies(data))
    return sorted(anomalies, key=lambda a: a.timestamp)


# ---------------------------------------------------------------------------
# Risk factors
# ---------------------------------------------------------------------------

def _elevated_resting_heart_rate(data: HealthDataSeries) -> RiskFactor | None:
    resting = [v for v in data.values("heart_rate") if v > 0]
    if not resting:
        return None
    avg = mean(resting)
    if avg <= 80:
        return None
    return RiskFactor(
        name="Elevated Resting Heart Rate",
        category="Cardiovascular",
        probability=0.65,
        severity="medium" if avg > 90 else "low",
        improvement_potential=0.8,
        interventions=(
            "Regular aerobic exercise (30 minutes, 5 days per week)",
            "Stress reduction techniques like meditation",
            "Ensure adequate sleep (7-9 hours)",
            "Consult with a healthcare provider if consistently elevated",
        ),
    )


def _sleep_deprivation(data: HealthDataSeries) -> RiskFactor | None:
    values = data.values("sleep")
    if not values:
        return None
    avg = mean(values)
    if avg >= 7:
        return None
    return RiskFactor(
        name="Sleep Deprivation",
        category="Recovery",
        probability=0.7,
        severity="high" if avg < 6 else "medium",
        improvement_potential=0.9,
        interventions=(
            "Maintain a consistent sleep schedule",
            "Create a relaxing bedtime routine",
            "Limit screen time before bed",
            "Ensure your sleeping environment is dark, quiet, and cool",
        ),
    )


RISK_RULES = (_elevated_resting_heart_rate, _sleep_deprivation)


def identify_risk_factors(data: HealthDataSeries) -> list[RiskFactor]:
    """Evaluate every risk rule and return those that fired."""
    risks = []
    for rule in RISK_RULES:
        risk = rule(data)
        if risk is not None:
            risks.append(risk)
    return risks
