"""
Series extraction

Turns daily logs into period-filtered, aggregated numeric series and caches
them for a fixed time-to-live.
"""

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

import numpy as np

from healthtrends.config import get_settings
from healthtrends.utils.mixins import LoggerMixin
from healthtrends.utils.ttl_cache import TTLCache

from .models import (
    ChartDataPoint,
    ChartStatistics,
    DailyLog,
    ItemDataPoint,
    ItemKind,
    MetricType,
    StatisticsTrend,
    SymptomDataPoint,
)
from .periods import AggregationLevel, TimePeriod
from .sources import LogSource, SymptomSource
from .stats import DatedValue

WEATHER_SCALE: dict[str, float] = {
    "stormy": 1.0,
    "rainy": 2.0,
    "gloomy": 3.0,
    "cloudy": 4.0,
    "snow": 5.0,
    "sunny": 6.0,
}
UNKNOWN_WEATHER_VALUE = 3.5

# 「利用可能なメトリクス」として公開する汎用メトリクス
AVAILABLE_METRIC_CANDIDATES = (
    MetricType.MOOD,
    MetricType.PAIN_LEVEL,
    MetricType.ENERGY_LEVEL,
    MetricType.MEDICATION_ADHERENCE,
    MetricType.WEATHER,
)

STATISTICS_TREND_THRESHOLD = 0.05


class SeriesKind(str, Enum):
    """Kinds of cached series"""

    METRIC = "metric"
    SYMPTOM = "symptom"
    MEDICATION = "medication"
    ACTIVITY = "activity"
    MEAL = "meal"


@dataclass(frozen=True)
class SeriesKey:
    """Cache key: series identifier plus period"""

    kind: SeriesKind
    name: str
    period: TimePeriod


def weather_value(weather: str) -> float:
    """Map a weather description ("Sunny 72°F") onto the 1-6 stormy/sunny scale."""
    words = weather.strip().lower().split()
    if not words:
        return UNKNOWN_WEATHER_VALUE
    return WEATHER_SCALE.get(words[0], UNKNOWN_WEATHER_VALUE)


def metric_value(log: DailyLog, metric: MetricType) -> float | None:
    """Numeric value of ``metric`` for one log, ``None`` when undefined."""
    if metric == MetricType.MOOD:
        return float(log.mood) if log.mood is not None else None
    if metric == MetricType.PAIN_LEVEL:
        return float(log.pain_level) if log.pain_level is not None else None
    if metric == MetricType.ENERGY_LEVEL:
        return float(log.energy_level) if log.energy_level is not None else None
    if metric == MetricType.FLARE_DAY:
        return 1.0 if log.is_flare_day else 0.0
    if metric == MetricType.MEDICATION_ADHERENCE:
        return log.medication_adherence_rate
    if metric == MetricType.ACTIVITY_COUNT:
        return float(len(log.activities))
    if metric == MetricType.MEAL_COUNT:
        return float(len(log.meals))
    if metric == MetricType.WEATHER:
        return weather_value(log.weather) if log.weather is not None else None
    # 個別アイテムは専用の抽出メソッドで扱う
    return None


def item_names(log: DailyLog, kind: ItemKind) -> set[str]:
    """Trimmed names of the items of ``kind`` present in a log."""
    if kind == ItemKind.MEDICATION:
        names = list(log.medications_taken) + [
            m.medication_name for m in log.medication_adherence if m.was_taken
        ]
    elif kind == ItemKind.ACTIVITY:
        names = list(log.activities)
    else:
        names = list(log.meals)
    return {name.strip() for name in names if name.strip()}


def bucket_key(day: date, level: AggregationLevel) -> int:
    """Composite ``year * 100 + sub-period`` grouping key."""
    if level == AggregationLevel.WEEKLY:
        iso = day.isocalendar()
        year, sub_period = iso.year, iso.week
    else:
        year, sub_period = day.year, day.month
    assert 1 <= sub_period < 100, f"bucket sub-period out of range: {sub_period}"
    return year * 100 + sub_period


def aggregate_points(
    points: Sequence[ChartDataPoint], period: TimePeriod
) -> list[ChartDataPoint]:
    """期間の集計レベルに合わせて週・月単位で平均化"""
    level = period.aggregation_level
    if level == AggregationLevel.DAILY or period in (TimePeriod.WEEK, TimePeriod.MONTH):
        return list(points)

    grouped: dict[int, list[ChartDataPoint]] = {}
    for point in points:
        grouped.setdefault(bucket_key(point.date, level), []).append(point)

    aggregated = []
    for group in grouped.values():
        first = min(group, key=lambda p: p.date)
        aggregated.append(
            ChartDataPoint(
                date=first.date,
                value=float(np.mean([p.value for p in group])),
                metric_type=first.metric_type,
                metric_name=first.metric_name,
                category=first.category,
            )
        )

    return sorted(aggregated, key=lambda p: p.date)


class SeriesExtractor(LoggerMixin):
    """ログからチャート用の時系列データを抽出・キャッシュする"""

    def __init__(
        self,
        log_source: LogSource,
        symptom_source: SymptomSource,
        cache_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
    ):
        """
        初期化処理

        Args:
            log_source: 日次ログの取得元
            symptom_source: 症状定義の取得元
            cache_ttl_seconds: キャッシュの有効期間（未指定時は設定値）
            clock: キャッシュの時刻取得関数
            today: 期間計算の基準日を返す関数
        """
        self.log_source = log_source
        self.symptom_source = symptom_source
        self._today = today

        ttl = cache_ttl_seconds
        if ttl is None:
            ttl = get_settings().series_cache_ttl_seconds
        self._cache: TTLCache[SeriesKey, list[Any]] = TTLCache(ttl, clock=clock)

    # Snapshot handling

    def fetch_logs(self) -> list[DailyLog]:
        """Fetch one immutable snapshot of the log history."""
        return list(self.log_source.get_logs())

    def logs_for_period(
        self, period: TimePeriod, logs: list[DailyLog] | None = None
    ) -> list[DailyLog]:
        """Logs inside the period's date range, sorted ascending by date."""
        snapshot = self.fetch_logs() if logs is None else logs
        date_range = period.date_range(self._today())
        if date_range is not None:
            snapshot = [log for log in snapshot if date_range.contains(log.date)]
        return sorted(snapshot, key=lambda log: log.date)

    # Series extraction

    def get_chart_data(
        self,
        metric: MetricType,
        period: TimePeriod,
        logs: list[DailyLog] | None = None,
    ) -> list[ChartDataPoint]:
        """Generic metric series for a period, aggregated to its granularity."""
        key = SeriesKey(SeriesKind.METRIC, metric.value, period)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        points = []
        for log in self.logs_for_period(period, logs):
            value = metric_value(log, metric)
            if value is None:
                continue
            points.append(
                ChartDataPoint(
                    date=log.date,
                    value=value,
                    metric_type=metric,
                    metric_name=metric.display_name,
                    category=metric.category,
                )
            )

        aggregated = aggregate_points(points, period)
        self._cache.put(key, aggregated)
        self.logger.debug(
            "Series computed",
            metric=metric.value,
            period=period.value,
            raw_points=len(points),
            points=len(aggregated),
        )
        return list(aggregated)

    def get_symptom_chart_data(
        self,
        symptom_name: str,
        period: TimePeriod,
        logs: list[DailyLog] | None = None,
    ) -> list[SymptomDataPoint]:
        """Ratings of one symptom; only days with a rating produce a point."""
        key = SeriesKey(SeriesKind.SYMPTOM, symptom_name, period)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        symptom_id = self._tracked_symptom_id(symptom_name)
        points = []
        for log in self.logs_for_period(period, logs):
            rating = log.rating_for(symptom_name, symptom_id)
            if rating is not None:
                points.append(
                    SymptomDataPoint(
                        date=log.date,
                        value=float(rating.rating),
                        symptom_name=symptom_name,
                    )
                )

        self._cache.put(key, points)
        return list(points)

    def get_item_chart_data(
        self,
        kind: ItemKind,
        name: str,
        period: TimePeriod,
        logs: list[DailyLog] | None = None,
    ) -> list[ItemDataPoint]:
        """Presence series for a named item; every log in the period yields a point."""
        item_name = name.strip()
        key = SeriesKey(SeriesKind(kind.value), item_name, period)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        points = [
            ItemDataPoint(
                date=log.date,
                value=1.0 if item_name in item_names(log, kind) else 0.0,
                item_name=item_name,
                item_kind=kind,
            )
            for log in self.logs_for_period(period, logs)
        ]

        self._cache.put(key, points)
        return list(points)

    def get_medication_chart_data(
        self, name: str, period: TimePeriod, logs: list[DailyLog] | None = None
    ) -> list[ItemDataPoint]:
        return self.get_item_chart_data(ItemKind.MEDICATION, name, period, logs)

    def get_activity_chart_data(
        self, name: str, period: TimePeriod, logs: list[DailyLog] | None = None
    ) -> list[ItemDataPoint]:
        return self.get_item_chart_data(ItemKind.ACTIVITY, name, period, logs)

    def get_meal_chart_data(
        self, name: str, period: TimePeriod, logs: list[DailyLog] | None = None
    ) -> list[ItemDataPoint]:
        return self.get_item_chart_data(ItemKind.MEAL, name, period, logs)

    # Availability

    def get_available_metrics(
        self, logs: list[DailyLog] | None = None
    ) -> list[MetricType]:
        """Generic metrics with at least one defined value."""
        snapshot = self.fetch_logs() if logs is None else logs
        return [
            metric
            for metric in AVAILABLE_METRIC_CANDIDATES
            if any(metric_value(log, metric) is not None for log in snapshot)
        ]

    def get_available_symptoms(self, logs: list[DailyLog] | None = None) -> list[str]:
        """Tracked symptoms that have at least one rating."""
        snapshot = self.fetch_logs() if logs is None else logs
        return [
            symptom.name
            for symptom in self.symptom_source.get_tracked_symptoms()
            if any(
                log.rating_for(symptom.name, symptom.id) is not None
                for log in snapshot
            )
        ]

    def _tracked_symptom_id(self, symptom_name: str) -> int | None:
        for symptom in self.symptom_source.get_tracked_symptoms():
            if symptom.name == symptom_name:
                return symptom.id
        return None

    def get_available_items(
        self, kind: ItemKind, logs: list[DailyLog] | None = None
    ) -> list[str]:
        snapshot = self.fetch_logs() if logs is None else logs
        names: set[str] = set()
        for log in snapshot:
            names |= item_names(log, kind)
        return sorted(names)

    def get_available_medications(
        self, logs: list[DailyLog] | None = None
    ) -> list[str]:
        return self.get_available_items(ItemKind.MEDICATION, logs)

    def get_available_activities(
        self, logs: list[DailyLog] | None = None
    ) -> list[str]:
        return self.get_available_items(ItemKind.ACTIVITY, logs)

    def get_available_meals(self, logs: list[DailyLog] | None = None) -> list[str]:
        return self.get_available_items(ItemKind.MEAL, logs)

    # Counts

    def get_data_point_count(
        self,
        metric: MetricType,
        period: TimePeriod = TimePeriod.ALL_TIME,
        logs: list[DailyLog] | None = None,
    ) -> int:
        """Number of logs with a defined value for ``metric`` (before aggregation)."""
        return sum(
            1
            for log in self.logs_for_period(period, logs)
            if metric_value(log, metric) is not None
        )

    def get_symptom_data_point_count(
        self,
        symptom_name: str,
        period: TimePeriod = TimePeriod.ALL_TIME,
        logs: list[DailyLog] | None = None,
    ) -> int:
        symptom_id = self._tracked_symptom_id(symptom_name)
        return sum(
            1
            for log in self.logs_for_period(period, logs)
            if log.rating_for(symptom_name, symptom_id) is not None
        )

    def get_item_data_point_count(
        self,
        kind: ItemKind,
        name: str,
        period: TimePeriod = TimePeriod.ALL_TIME,
        logs: list[DailyLog] | None = None,
    ) -> int:
        """Number of days on which the item was recorded."""
        item_name = name.strip()
        return sum(
            1
            for log in self.logs_for_period(period, logs)
            if item_name in item_names(log, kind)
        )

    # Statistics

    def calculate_statistics(self, points: Sequence[DatedValue]) -> ChartStatistics:
        """Descriptive statistics of a series of dated values."""
        if not points:
            return ChartStatistics.empty()

        ordered = sorted(points, key=lambda p: p.date)
        values = np.asarray([p.value for p in ordered], dtype=float)

        return ChartStatistics(
            mean=float(values.mean()),
            median=float(np.median(values)),
            min=float(values.min()),
            max=float(values.max()),
            count=len(values),
            trend=self._statistics_trend(values),
            change_percentage=self._change_percentage(values),
        )

    @staticmethod
    def _statistics_trend(values: np.ndarray) -> StatisticsTrend:
        """前半と後半の平均を比較（奇数個の場合は中央値を除外）"""
        half = len(values) // 2
        if half == 0:
            return StatisticsTrend.STABLE

        first_average = float(values[:half].mean())
        second_average = float(values[-half:].mean())
        difference = second_average - first_average
        threshold = first_average * STATISTICS_TREND_THRESHOLD

        if difference > threshold:
            return StatisticsTrend.INCREASING
        if difference < -threshold:
            return StatisticsTrend.DECREASING
        return StatisticsTrend.STABLE

    @staticmethod
    def _change_percentage(values: np.ndarray) -> float:
        if len(values) < 2 or values[0] == 0:
            return 0.0
        return float((values[-1] - values[0]) / values[0] * 100)

    # Cache management

    def clear_cache(self) -> None:
        """Drop all cached series and timestamps."""
        self._cache.clear()
        self.logger.info("Series cache cleared")

    def cache_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()
