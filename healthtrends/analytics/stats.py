"""
Statistical helpers shared by the insight engine and the dashboard

Pure functions over plain value sequences; no access to logs or caches.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Protocol

import numpy as np
from sklearn.linear_model import LinearRegression

from .models import MetricType

# 変化なしとみなす傾きの上限（この値ちょうどは変化あり）
STABLE_SLOPE_LIMIT = 0.01

_GOOD_THRESHOLDS: dict[MetricType, float] = {
    MetricType.MOOD: 6.0,
    MetricType.ENERGY_LEVEL: 6.0,
    MetricType.PAIN_LEVEL: 4.0,  # 痛みは低いほど良い
    MetricType.MEDICATION_ADHERENCE: 80.0,
}
_DEFAULT_GOOD_THRESHOLD = 5.0

_METRIC_WEIGHTS: dict[MetricType, float] = {
    MetricType.MOOD: 1.0,
    MetricType.PAIN_LEVEL: 1.0,
    MetricType.ENERGY_LEVEL: 0.8,
    MetricType.MEDICATION_ADHERENCE: 0.9,
}
_DEFAULT_METRIC_WEIGHT = 0.5

WEEKDAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]


class DatedValue(Protocol):
    @property
    def date(self) -> date: ...

    @property
    def value(self) -> float: ...


class TrendDirection(str, Enum):
    """トレンドの方向（痛みは上昇が悪化）"""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendFit:
    slope: float
    r_squared: float

    @property
    def confidence(self) -> float:
        return max(0.0, min(1.0, self.r_squared))


def linear_trend(values: Sequence[float]) -> TrendFit:
    """値を 0..n-1 のインデックスに対して最小二乗回帰"""
    if len(values) < 2:
        return TrendFit(slope=0.0, r_squared=0.0)

    x = np.arange(len(values), dtype=float).reshape(-1, 1)
    y = np.asarray(values, dtype=float)

    model = LinearRegression().fit(x, y)
    return TrendFit(slope=float(model.coef_[0]), r_squared=float(model.score(x, y)))


def classify_trend_direction(slope: float, metric: MetricType) -> TrendDirection:
    """傾きから方向を判定（痛みのみ符号を反転）"""
    if abs(slope) < STABLE_SLOPE_LIMIT:
        return TrendDirection.STABLE

    rising_is_good = metric != MetricType.PAIN_LEVEL
    if (slope > 0) == rising_is_good:
        return TrendDirection.IMPROVING
    return TrendDirection.DECLINING


def pearson_correlation(pairs: Sequence[tuple[float, float]]) -> float:
    """Pearson's r over aligned pairs; 0 when undefined."""
    n = len(pairs)
    if n < 2:
        return 0.0

    xy = np.asarray(pairs, dtype=float)
    x, y = xy[:, 0], xy[:, 1]

    sum_x, sum_y = x.sum(), y.sum()
    numerator = n * (x * y).sum() - sum_x * sum_y
    denominator_sq = (n * (x * x).sum() - sum_x**2) * (n * (y * y).sum() - sum_y**2)

    if denominator_sq <= 0:
        return 0.0
    return float(max(-1.0, min(1.0, numerator / np.sqrt(denominator_sq))))


def align_by_date(
    first: Iterable[DatedValue], second: Iterable[DatedValue]
) -> list[tuple[float, float]]:
    """Pair values recorded on the same calendar day, in ``first`` order."""
    second_by_day: dict[date, float] = {}
    for point in second:
        second_by_day.setdefault(point.date, point.value)

    return [
        (point.value, second_by_day[point.date])
        for point in first
        if point.date in second_by_day
    ]


def good_threshold(metric: MetricType) -> float:
    return _GOOD_THRESHOLDS.get(metric, _DEFAULT_GOOD_THRESHOLD)


def is_good_value(value: float, metric: MetricType) -> bool:
    threshold = good_threshold(metric)
    if metric == MetricType.PAIN_LEVEL:
        return value <= threshold
    return value >= threshold


def current_streak(values: Sequence[float], metric: MetricType) -> int:
    """末尾から連続する「良い日」の数"""
    streak = 0
    for value in reversed(values):
        if not is_good_value(value, metric):
            break
        streak += 1
    return streak


def longest_streak(values: Sequence[float], metric: MetricType) -> int:
    longest = 0
    running = 0
    for value in values:
        if is_good_value(value, metric):
            running += 1
            longest = max(longest, running)
        else:
            running = 0
    return longest


def weekday_number(day: date) -> int:
    """Calendar weekday with Sunday=1 ... Saturday=7"""
    return (day.weekday() + 1) % 7 + 1


def weekday_averages(points: Iterable[DatedValue]) -> dict[int, float]:
    """曜日 (1-7) ごとの平均値。データのない曜日は含まない"""
    buckets: dict[int, list[float]] = {}
    for point in points:
        buckets.setdefault(weekday_number(point.date), []).append(point.value)
    return {day: float(np.mean(values)) for day, values in buckets.items()}


def weekly_pattern(points: Iterable[DatedValue]) -> list[float]:
    """Seven weekday averages, Sunday first, 0 where there is no data."""
    averages = weekday_averages(points)
    return [averages.get(day, 0.0) for day in range(1, 8)]


def weekday_name(weekday: int) -> str:
    return WEEKDAY_NAMES[weekday - 1]


def normalize_metric_score(metric: MetricType, value: float) -> float:
    """平均値を 0-100 のスコアに正規化"""
    if metric == MetricType.PAIN_LEVEL:
        score = (10.0 - value) / 10.0 * 100
    elif metric == MetricType.MEDICATION_ADHERENCE:
        score = value
    else:
        score = value / 10.0 * 100
    return min(100.0, max(0.0, score))


def metric_weight(metric: MetricType) -> float:
    return _METRIC_WEIGHTS.get(metric, _DEFAULT_METRIC_WEIGHT)


def mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else 0.0
