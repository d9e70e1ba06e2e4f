"""Biometric feature extraction for scoring and downstream models.

Turns raw per-metric arrays (heart rate, respiratory rate, SpO2, temperature,
steps, sleep records) into a feature matrix plus per-metric statistics.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from nestor.domains.health.domain_logic.insight_models import ValidationError
from nestor.domains.health.domain_logic.timeseries import mean, std_dev, window_means

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 24
DEFAULT_STEP_SIZE = 12

# (BiometricData attribute, feature prefix) in extraction order
_TIME_SERIES_METRICS = [
    ("heart_rate", "hr"),
    ("respiratory_rate", "rr"),
    ("oxygen_saturation", "spO2"),
    ("temperature", "temp"),
    ("steps", "steps"),
]

_CAMEL_KEYS = {
    "heartRate": "heart_rate",
    "respiratoryRate": "respiratory_rate",
    "oxygenSaturation": "oxygen_saturation",
}


@dataclass
class SleepStages:
    """Minutes spent in each sleep stage."""

    rem: float = 0.0
    light: float = 0.0
    deep: float = 0.0
    awake: float = 0.0

    @property
    def quality_ratio(self) -> float:
        """(deep + REM) / total, 0 when nothing was recorded."""
        total = self.rem + self.light + self.deep + self.awake
        if total == 0:
            return 0.0
        return (self.deep + self.rem) / total


@dataclass
class SleepRecord:
    duration: float  # hours
    quality: float   # 0-100
    stages: SleepStages | None = None


def _number(value: Any, name: str) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"'{name}' must be a number, got {value!r}") from exc


def _sleep_record(raw: Any) -> SleepRecord:
    if not isinstance(raw, dict):
        raise ValidationError("Sleep records must be objects")
    stages = raw.get("stages")
    if stages and not isinstance(stages, dict):
        raise ValidationError("Sleep stages must be an object")
    return SleepRecord(
        duration=_number(raw.get("duration"), "duration"),
        quality=_number(raw.get("quality"), "quality"),
        stages=SleepStages(
            rem=_number(stages.get("rem"), "rem"),
            light=_number(stages.get("light"), "light"),
            deep=_number(stages.get("deep"), "deep"),
            awake=_number(stages.get("awake"), "awake"),
        ) if stages else None,
    )


@dataclass
class BiometricData:
    """Raw biometric arrays; every array is optional except ``timestamps``."""

    timestamps: list[str] = field(default_factory=list)
    heart_rate: list[float] | None = None
    respiratory_rate: list[float] | None = None
    oxygen_saturation: list[float] | None = None
    temperature: list[float] | None = None
    steps: list[float] | None = None
    activity: list[str] | None = None
    sleep: list[SleepRecord] | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> BiometricData:
        """Build from a JSON-like dict using camelCase or snake_case keys."""
        if not isinstance(raw, dict):
            raise ValidationError("Biometric data must be an object")
        data = {_CAMEL_KEYS.get(k, k): v for k, v in raw.items()}

        sleep = None
        if data.get("sleep") is not None:
            if not isinstance(data["sleep"], list):
                raise ValidationError("'sleep' must be a list of records")
            sleep = [_sleep_record(record) for record in data["sleep"]]

        def _floats(key: str) -> list[float] | None:
            values = data.get(key)
            if values is None:
                return None
            if not isinstance(values, list):
                raise ValidationError(f"'{key}' must be a list of numbers")
            try:
                return [float(v) for v in values]
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"'{key}' must contain numbers") from exc

        timestamps = data.get("timestamps") or []
        if not isinstance(timestamps, list):
            raise ValidationError("'timestamps' must be a list")

        return cls(
            timestamps=[str(t) for t in timestamps],
            heart_rate=_floats("heart_rate"),
            respiratory_rate=_floats("respiratory_rate"),
            oxygen_saturation=_floats("oxygen_saturation"),
            temperature=_floats("temperature"),
            steps=_floats("steps"),
            activity=data.get("activity"),
            sleep=sleep,
        )


@dataclass
class FeatureStatistics:
    """Per-prefix descriptive statistics (keys: hr, rr, spO2, temp, steps)."""

    mean: dict[str, float] = field(default_factory=dict)
    std: dict[str, float] = field(default_factory=dict)
    min: dict[str, float] = field(default_factory=dict)
    max: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {"mean": self.mean, "std": self.std, "min": self.min, "max": self.max}


@dataclass
class BiometricFeatures:
    """Extracted features.

    ``features`` is row-major: row ``i`` holds the ``i``-th value of every
    feature, in ``feature_names`` order. Feature arrays have different lengths
    (scalar summaries have one value, window means one per window), so shorter
    arrays are padded with NaN. The unpadded arrays are kept in ``feature_map``.
    """

    features: list[list[float]]
    feature_names: list[str]
    statistics: FeatureStatistics
    feature_map: dict[str, list[float]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        def _json(value: float) -> float | None:
            return None if math.isnan(value) else value

        return {
            "features": [[_json(v) for v in row] for row in self.features],
            "featureNames": list(self.feature_names),
            "statistics": self.statistics.to_dict(),
            "featureMap": self.feature_map,
        }


@dataclass(frozen=True)
class FeatureInfo:
    name: str
    description: str
    type: str
    range: tuple[float, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "range": list(self.range),
        }


FEATURE_CATALOG: tuple[FeatureInfo, ...] = (
    FeatureInfo("hr_mean", "Mean heart rate", "numerical", (40, 200)),
    FeatureInfo("hr_std", "Standard deviation of heart rate", "numerical", (0, 50)),
    FeatureInfo("rr_mean", "Mean respiratory rate", "numerical", (8, 25)),
    FeatureInfo("spO2_mean", "Mean oxygen saturation", "numerical", (85, 100)),
    FeatureInfo("temp_mean", "Mean body temperature", "numerical", (95, 104)),
    FeatureInfo("sleep_duration_mean", "Mean sleep duration in hours", "numerical", (0, 12)),
    FeatureInfo("sleep_quality_mean", "Mean sleep quality score", "numerical", (0, 100)),
    FeatureInfo(
        "sleep_quality_ratio",
        "Ratio of quality sleep (deep + REM) to total sleep",
        "numerical",
        (0, 1),
    ),
)


class BiometricFeatureExtractor:
    """Extracts windowed time-series and sleep features.

    Usage::

        extractor = BiometricFeatureExtractor(window_size=24, step_size=12)
        features = extractor.extract(BiometricData(timestamps=[...], heart_rate=[...]))
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        step_size: int = DEFAULT_STEP_SIZE,
    ) -> None:
        if window_size <= 0 or step_size <= 0:
            raise ValueError("window_size and step_size must be positive")
        self.window_size = window_size
        self.step_size = step_size

    def extract(self, raw_data: BiometricData) -> BiometricFeatures:
        """Extract features from raw biometric data.

        Raises:
            ValidationError: If no timestamps are provided.
        """
        if not raw_data.timestamps:
            raise ValidationError("No timestamp data provided")

        logger.debug("Extracting features from %d timestamps", len(raw_data.timestamps))

        feature_sets: dict[str, list[float]] = {}
        stats = FeatureStatistics()

        for attr, prefix in _TIME_SERIES_METRICS:
            values = getattr(raw_data, attr)
            if not values:
                continue
            feature_sets.update(self._time_series_features(values, prefix))
            stats.mean[prefix] = mean(values)
            stats.std[prefix] = std_dev(values)
            stats.min[prefix] = min(values)
            stats.max[prefix] = max(values)

        if raw_data.sleep:
            feature_sets.update(self._sleep_features(raw_data.sleep))

        feature_names = list(feature_sets)
        return BiometricFeatures(
            features=_pack_rows([feature_sets[name] for name in feature_names]),
            feature_names=feature_names,
            statistics=stats,
            feature_map=feature_sets,
        )

    def _time_series_features(self, data: list[float], prefix: str) -> dict[str, list[float]]:
        features = {
            f"{prefix}_mean": [mean(data)],
            f"{prefix}_std": [std_dev(data)],
            f"{prefix}_min": [min(data)],
            f"{prefix}_max": [max(data)],
        }
        if len(data) >= self.window_size:
            features[f"{prefix}_window_mean"] = window_means(
                data, self.window_size, self.step_size
            )
        return features

    @staticmethod
    def _sleep_features(records: list[SleepRecord]) -> dict[str, list[float]]:
        durations = [r.duration for r in records]
        qualities = [r.quality for r in records]
        features = {
            "sleep_duration_mean": [mean(durations)],
            "sleep_duration_std": [std_dev(durations)],
            "sleep_quality_mean": [mean(qualities)],
            "sleep_quality_std": [std_dev(qualities)],
        }

        # Stage features only when the first record carries a breakdown
        if records[0].stages is not None:
            stages = [r.stages or SleepStages() for r in records]
            features["sleep_rem_mean"] = [mean([s.rem for s in stages])]
            features["sleep_light_mean"] = [mean([s.light for s in stages])]
            features["sleep_deep_mean"] = [mean([s.deep for s in stages])]
            features["sleep_quality_ratio"] = [mean([s.quality_ratio for s in stages])]

        return features

    @staticmethod
    def get_feature_info() -> list[FeatureInfo]:
        """Return the fixed catalog of documented features and plausible ranges."""
        return list(FEATURE_CATALOG)


def _pack_rows(columns: list[list[float]]) -> list[list[float]]:
    """Transpose feature columns into rows, padding short columns with NaN."""
    if not columns:
        return []
    height = max(len(col) for col in columns)
    return [
        [col[i] if i < len(col) else math.nan for col in columns]
        for i in range(height)
    ]
