"""Tests for time-series statistics primitives."""

from __future__ import annotations

from datetime import date

import pytest

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
    window_means,
)


class TestMeanAndStd:
    def test_mean_of_empty_is_zero(self):
        assert mean([]) == 0.0

    def test_mean(self):
        assert mean([60, 70, 80]) == pytest.approx(70.0)

    def test_std_of_single_value_is_zero(self):
        assert std_dev([72]) == 0.0

    def test_std_of_empty_is_zero(self):
        assert std_dev([]) == 0.0

    def test_std_uses_population_denominator(self):
        # Sample std would be ~2.138; population std is exactly 2
        assert std_dev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    @pytest.mark.parametrize("x", [0.1, 0.7, 98.6, 1e-9, 72])
    def test_constant_series(self, x):
        assert mean([x, x, x]) == x
        assert std_dev([x, x, x]) == 0.0


class TestSummarize:
    def test_empty_summary_is_all_zero(self):
        summary = summarize([])
        assert summary == MetricSummary()
        assert summary.count == 0
        assert summary.coefficient_of_variation == 0.0

    def test_summary_fields(self):
        summary = summarize([60, 70, 80])
        assert summary.mean == pytest.approx(70.0)
        assert summary.min == 60
        assert summary.max == 80
        assert summary.count == 3
        assert summary.coefficient_of_variation == pytest.approx(summary.std / 70.0)

    @pytest.mark.parametrize("values", [
        [0.1] * 3,
        [0.7] * 3,
        [98.6] * 3,
        [0.1, 0.2, 0.7],
        [36.6, 36.7, 36.8, 36.9],
    ])
    def test_mean_within_range(self, values):
        summary = summarize(values)
        assert summary.min <= summary.mean <= summary.max


class TestWindowMeans:
    def test_drops_trailing_partial_window(self):
        values = list(range(10))
        # windows start at 0, 3, 6 -> [0..3], [3..6], [6..9]
        assert window_means(values, 4, 3) == [1.5, 4.5, 7.5]

    def test_shorter_than_window_gives_nothing(self):
        assert window_means([1, 2, 3], 4, 1) == []

    def test_exact_window(self):
        assert window_means([2, 4], 2, 5) == [3.0]


class TestPearson:
    def test_perfect_positive(self):
        assert pearson([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert pearson([1, 2, 3, 4], [8, 6, 4, 2]) == pytest.approx(-1.0)

    def test_too_few_pairs(self):
        assert pearson([1, 2], [1, 2]) is None

    def test_zero_variance(self):
        assert pearson([5, 5, 5], [1, 2, 3]) is None

    def test_p_value_degenerate_sample(self):
        assert correlation_p_value(0.9, 3) == 1.0

    def test_p_value_shrinks_with_more_samples(self):
        assert correlation_p_value(0.6, 30) < correlation_p_value(0.6, 8)

    def test_p_value_of_zero_correlation_is_one(self):
        assert correlation_p_value(0.0, 20) == pytest.approx(1.0)


class TestDailyValues:
    def test_groups_and_sorts_by_day(self):
        points = [
            (date(2026, 3, 2), 4000),
            (date(2026, 3, 1), 3000),
            (date(2026, 3, 2), 2000),
        ]
        result = daily_values(points, aggregate="sum")
        assert list(result) == [date(2026, 3, 1), date(2026, 3, 2)]
        assert result[date(2026, 3, 2)] == 6000

    def test_mean_aggregate(self):
        result = daily_values([(date(2026, 3, 1), 60), (date(2026, 3, 1), 80)])
        assert result[date(2026, 3, 1)] == pytest.approx(70.0)


class TestRounding:
    def test_clamp(self):
        assert clamp(1.5) == 1.0
        assert clamp(-0.2) == 0.0
        assert clamp(0.4) == 0.4

    @pytest.mark.parametrize("value,expected", [(62.5, 63), (62.4, 62), (0.5, 1), (-0.5, 0)])
    def test_round_half_up_matches_js(self, value, expected):
        assert round_half_up(value) == expected

    def test_round_half_up_differs_from_bankers_rounding(self):
        assert round(62.5) == 62
        assert round_half_up(62.5) == 63
