"""Tests for BiometricFeatureExtractor."""

from __future__ import annotations

import math

import pytest

from nestor.domains.health.domain_logic.feature_extractor import (
    BiometricData,
    BiometricFeatureExtractor,
    SleepRecord,
    SleepStages,
)
from nestor.domains.health.domain_logic.insight_models import ValidationError


def _timestamps(n: int) -> list[str]:
    return [f"2026-03-01T{h % 24:02d}:00:00Z" for h in range(n)]


class TestExtract:
    def test_empty_timestamps_rejected(self):
        with pytest.raises(ValidationError, match="No timestamp data provided"):
            BiometricFeatureExtractor().extract(BiometricData(timestamps=[], heart_rate=[70]))

    def test_invalid_window_rejected(self):
        with pytest.raises(ValueError):
            BiometricFeatureExtractor(window_size=0)

    def test_heart_rate_only(self):
        data = BiometricData(timestamps=_timestamps(4), heart_rate=[60, 70, 80, 70])
        result = BiometricFeatureExtractor().extract(data)

        assert result.feature_names == ["hr_mean", "hr_std", "hr_min", "hr_max"]
        assert result.features == [[70.0, pytest.approx(7.0710678), 60, 80]]
        assert result.statistics.mean == {"hr": 70.0}
        assert result.statistics.min == {"hr": 60}
        assert result.statistics.max == {"hr": 80}

    @pytest.mark.parametrize("value", [0.1, 0.7, 98.6])
    def test_statistics_mean_within_range(self, value):
        data = BiometricData(timestamps=_timestamps(3), temperature=[value] * 3)
        stats = BiometricFeatureExtractor().extract(data).statistics
        assert stats.min["temp"] <= stats.mean["temp"] <= stats.max["temp"]
        assert stats.mean["temp"] == value
        assert stats.std["temp"] == 0.0

    def test_window_features_need_a_full_window(self):
        data = BiometricData(timestamps=_timestamps(5), heart_rate=[70] * 5)
        result = BiometricFeatureExtractor(window_size=6, step_size=3).extract(data)
        assert "hr_window_mean" not in result.feature_names

    def test_window_means_drop_partial_window(self):
        values = [float(v) for v in range(10)]
        data = BiometricData(timestamps=_timestamps(10), heart_rate=values)
        result = BiometricFeatureExtractor(window_size=4, step_size=3).extract(data)
        assert result.feature_map["hr_window_mean"] == [1.5, 4.5, 7.5]

    def test_rows_are_padded_with_nan(self):
        values = [float(v) for v in range(10)]
        data = BiometricData(timestamps=_timestamps(10), heart_rate=values)
        result = BiometricFeatureExtractor(window_size=4, step_size=3).extract(data)

        assert len(result.features) == 3
        assert all(len(row) == len(result.feature_names) for row in result.features)
        mean_col = result.feature_names.index("hr_mean")
        assert math.isnan(result.features[1][mean_col])

    def test_to_dict_replaces_nan_with_none(self):
        values = [float(v) for v in range(10)]
        data = BiometricData(timestamps=_timestamps(10), heart_rate=values)
        payload = BiometricFeatureExtractor(window_size=4, step_size=3).extract(data).to_dict()
        assert payload["features"][1][0] is None
        assert payload["featureNames"][0] == "hr_mean"

    def test_steps_are_extracted(self):
        data = BiometricData(timestamps=_timestamps(2), steps=[1000, 3000])
        result = BiometricFeatureExtractor().extract(data)
        assert "steps_mean" in result.feature_names
        assert result.statistics.mean["steps"] == 2000.0


class TestSleepFeatures:
    def test_sleep_without_stages(self):
        data = BiometricData(
            timestamps=_timestamps(2),
            sleep=[SleepRecord(duration=7, quality=80), SleepRecord(duration=8, quality=90)],
        )
        result = BiometricFeatureExtractor().extract(data)
        assert result.feature_map["sleep_duration_mean"] == [7.5]
        assert result.feature_map["sleep_quality_std"] == [5.0]
        assert "sleep_quality_ratio" not in result.feature_names

    def test_stage_features_when_first_record_has_stages(self):
        data = BiometricData(
            timestamps=_timestamps(1),
            sleep=[SleepRecord(7, 80, SleepStages(rem=90, light=200, deep=100, awake=10))],
        )
        result = BiometricFeatureExtractor().extract(data)
        assert result.feature_map["sleep_rem_mean"] == [90]
        assert result.feature_map["sleep_quality_ratio"] == [pytest.approx(190 / 400)]

    def test_zero_stage_total_gives_zero_ratio(self):
        data = BiometricData(
            timestamps=_timestamps(1),
            sleep=[SleepRecord(7, 80, SleepStages())],
        )
        result = BiometricFeatureExtractor().extract(data)
        assert result.feature_map["sleep_quality_ratio"] == [0.0]


class TestFromDict:
    def test_camel_case_keys(self):
        data = BiometricData.from_dict({
            "timestamps": ["2026-03-01T00:00:00Z"],
            "heartRate": [72],
            "oxygenSaturation": [98],
            "sleep": [{"duration": 7.5, "quality": 85, "stages": {"rem": 90, "deep": 60}}],
        })
        assert data.heart_rate == [72.0]
        assert data.oxygen_saturation == [98.0]
        assert data.sleep[0].stages.rem == 90.0
        assert data.sleep[0].stages.light == 0.0

    def test_non_numeric_values_rejected(self):
        with pytest.raises(ValidationError):
            BiometricData.from_dict({"timestamps": ["x"], "heartRate": ["fast"]})

    @pytest.mark.parametrize("sleep", [
        [{"duration": "long", "quality": 80}],
        [{"duration": 7, "quality": 80, "stages": {"rem": "lots"}}],
        [{"duration": 7, "quality": 80, "stages": [90, 60]}],
        ["7h"],
        {"duration": 7},
    ])
    def test_malformed_sleep_rejected(self, sleep):
        with pytest.raises(ValidationError):
            BiometricData.from_dict({"timestamps": ["x"], "sleep": sleep})

    def test_non_list_metric_rejected(self):
        with pytest.raises(ValidationError):
            BiometricData.from_dict({"timestamps": ["x"], "heartRate": 72})


def test_feature_catalog_is_fixed():
    names = [info.name for info in BiometricFeatureExtractor.get_feature_info()]
    assert names == [
        "hr_mean",
        "hr_std",
        "rr_mean",
        "spO2_mean",
        "temp_mean",
        "sleep_duration_mean",
        "sleep_quality_mean",
        "sleep_quality_ratio",
    ]
