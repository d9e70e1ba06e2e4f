"""Descriptive statistics over numeric health time series.

All functions are pure and never raise on empty input: degenerate cases
return 0 (or ``None`` for correlations). Standard deviation uses the
population denominator.
"""

from __future__ import annotations

import math
import statistics
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence


@dataclass(frozen=True)
class MetricSummary:
    """Summary statistics of a single metric."""

    mean: float = 0.0
    std: float = 0.0
    min: float = 0.0
    max: float = 0.0
    count: int = 0

    @property
    def coefficient_of_variation(self) -> float:
        return self.std / self.mean if self.mean > 0 else 0.0


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0 for an empty sequence.

    Uses exact arithmetic, so the result is correctly rounded and always lies
    within [min, max].
    """
    if not values:
        return 0.0
    return float(statistics.mean(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for fewer than two values."""
    if len(values) <= 1:
        return 0.0
    return statistics.pstdev(values)


def summarize(values: Sequence[float]) -> MetricSummary:
    """Compute mean, std, min, max and count in one pass over ``values``."""
    if not values:
        return MetricSummary()
    return MetricSummary(
        mean=mean(values),
        std=std_dev(values),
        min=min(values),
        max=max(values),
        count=len(values),
    )


def window_means(values: Sequence[float], window_size: int, step_size: int) -> list[float]:
    """Means of consecutive windows; the trailing partial window is dropped."""
    if window_size <= 0 or step_size <= 0 or len(values) < window_size:
        return []
    return [
        mean(values[start:start + window_size])
        for start in range(0, len(values) - window_size + 1, step_size)
    ]


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float | None:
    """Pearson correlation of two equal-length sequences.

    Returns:
        Coefficient in [-1, 1], or None with fewer than 3 pairs or
        when either side has zero variance.
    """
    n = min(len(xs), len(ys))
    if n < 3:
        return None
    xs, ys = xs[:n], ys[:n]
    mx, my = mean(xs), mean(ys)
    sxx = sum((x - mx) ** 2 for x in xs)
    syy = sum((y - my) ** 2 for y in ys)
    if sxx == 0 or syy == 0:
        return None
    sxy = sum((x - mx) * (y - my) for x, y in zip(xs, ys))
    return max(-1.0, min(1.0, sxy / math.sqrt(sxx * syy)))


def correlation_p_value(r: float, n: int) -> float:
    """Two-sided p-value for a correlation via the Fisher z approximation."""
    if n <= 3 or abs(r) >= 1.0:
        return 1.0 if n <= 3 else 0.0
    z = math.atanh(r) * math.sqrt(n - 3)
    return math.erfc(abs(z) / math.sqrt(2))


def daily_values(
    points: Iterable[tuple[date, float]],
    *,
    aggregate: str = "mean",
) -> "OrderedDict[date, float]":
    """Group ``(day, value)`` pairs by day in chronological order.

    Args:
        points: Pairs of calendar day and value.
        aggregate: ``"mean"`` or ``"sum"`` (steps are summed per day).
    """
    buckets: dict[date, list[float]] = {}
    for day, value in points:
        buckets.setdefault(day, []).append(value)

    result: OrderedDict[date, float] = OrderedDict()
    for day in sorted(buckets):
        vals = buckets[day]
        result[day] = sum(vals) if aggregate == "sum" else mean(vals)
    return result


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def round_half_up(value: float) -> int:
    """Round like JavaScript's ``Math.round`` (halves go up)."""
    return int(math.floor(value + 0.5))
