"""
Dashboard orchestration

Computes the dashboard facets concurrently over one shared log snapshot and
publishes them together as an immutable snapshot.
"""

import asyncio
import time
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from healthtrends.config import get_settings
from healthtrends.utils.error_handler import safe_operation
from healthtrends.utils.mixins import LoggerMixin

from .insights import InsightEngine
from .models import DailyLog, HealthInsight, MetricType
from .periods import TimePeriod
from .series import SeriesExtractor
from .stats import (
    TrendDirection,
    align_by_date,
    current_streak,
    longest_streak,
    mean,
    metric_weight,
    normalize_metric_score,
    pearson_correlation,
    weekly_pattern,
)
from .widgets import DashboardWidget, WidgetLayoutStore

SUMMARY_METRIC_LIMIT = 4
STREAK_METRIC_LIMIT = 3
PATTERN_METRIC_LIMIT = 2
MIN_STREAK_POINTS = 3
STREAK_WINDOW = 30
SUMMARY_STABLE_PERCENT = 5.0
HEALTH_SCORE_STABLE_BAND = 2.0
MIN_CORRELATION_PAIRS = 3
TOP_CORRELATION_THRESHOLD = 0.3

_STREAK_TYPES: dict[MetricType, str] = {
    MetricType.MOOD: "good mood days",
    MetricType.PAIN_LEVEL: "low pain days",
    MetricType.ENERGY_LEVEL: "high energy days",
    MetricType.MEDICATION_ADHERENCE: "adherent days",
}


class SummaryTrend(str, Enum):
    """Week-over-week movement shown on a summary card"""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class MetricSummary(BaseModel):
    """メトリクスの週次サマリー"""

    model_config = ConfigDict(frozen=True)

    metric: MetricType
    current_value: float | None
    previous_value: float | None
    trend: SummaryTrend
    change_percentage: float = Field(ge=0.0)
    icon: str


class StreakData(BaseModel):
    """連続記録"""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    current_streak: int
    longest_streak: int
    is_active: bool
    streak_type: str


class ScoreComponent(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    score: float
    weight: float


class HealthScoreData(BaseModel):
    """総合健康スコア (0-100)"""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(ge=0.0, le=100.0)
    components: list[ScoreComponent]
    trend: TrendDirection
    last_updated: datetime = Field(default_factory=datetime.now)


class TopCorrelation(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_metric: str
    second_metric: str
    correlation: float


class DashboardSnapshot(BaseModel):
    """ダッシュボードの全ファセットをまとめた不変スナップショット"""

    model_config = ConfigDict(frozen=True)

    metric_summaries: list[MetricSummary] = Field(default_factory=list)
    current_streaks: list[StreakData] = Field(default_factory=list)
    health_score: HealthScoreData | None = None
    top_insights: list[HealthInsight] = Field(default_factory=list)
    weekly_patterns: dict[str, list[float]] = Field(default_factory=dict)
    top_correlation: TopCorrelation | None = None
    refreshed_at: datetime | None = None


def summary_trend(change_percentage: float, metric: MetricType) -> SummaryTrend:
    """変化率をカードの矢印に変換（痛みは減少が改善）"""
    if abs(change_percentage) < SUMMARY_STABLE_PERCENT:
        return SummaryTrend.STABLE

    rising = change_percentage > 0
    if metric == MetricType.PAIN_LEVEL:
        rising = not rising
    return SummaryTrend.UP if rising else SummaryTrend.DOWN


def score_trend(current: float, previous: float) -> TrendDirection:
    difference = current - previous
    if abs(difference) < HEALTH_SCORE_STABLE_BAND:
        return TrendDirection.STABLE
    if difference > 0:
        return TrendDirection.IMPROVING
    return TrendDirection.DECLINING


def streak_type(metric: MetricType) -> str:
    return _STREAK_TYPES.get(metric, "good days")


class DashboardOrchestrator(LoggerMixin):
    """ダッシュボードの各ファセットを並行計算して公開する"""

    def __init__(
        self,
        series: SeriesExtractor,
        insights: InsightEngine,
        layout: WidgetLayoutStore | None = None,
        top_insight_count: int | None = None,
    ):
        """
        初期化処理

        Args:
            series: 時系列データの抽出元
            insights: 洞察エンジン
            layout: ウィジェット配置の保存先（任意）
            top_insight_count: 表示する洞察の件数（未指定時は設定値）
        """
        self.series = series
        self.insights = insights
        self.layout = layout
        self.top_insight_count = (
            top_insight_count
            if top_insight_count is not None
            else get_settings().top_insight_count
        )

        self._snapshot = DashboardSnapshot()
        self.last_refresh_time: datetime | None = None

        # 同時に呼ばれた更新は直列化し、前回スナップショットを正しく引き継ぐ
        self._refresh_lock = asyncio.Lock()
        self._pending_refreshes = 0

    # Published state

    @property
    def is_loading(self) -> bool:
        """True while any refresh is running or waiting to run"""
        return self._pending_refreshes > 0

    @property
    def snapshot(self) -> DashboardSnapshot:
        return self._snapshot

    @property
    def metric_summaries(self) -> list[MetricSummary]:
        return self._snapshot.metric_summaries

    @property
    def current_streaks(self) -> list[StreakData]:
        return self._snapshot.current_streaks

    @property
    def health_score(self) -> HealthScoreData | None:
        return self._snapshot.health_score

    @property
    def top_insights(self) -> list[HealthInsight]:
        return self._snapshot.top_insights

    @property
    def weekly_patterns(self) -> dict[str, list[float]]:
        return self._snapshot.weekly_patterns

    @property
    def top_correlation(self) -> TopCorrelation | None:
        return self._snapshot.top_correlation

    def enabled_widgets(self) -> list[DashboardWidget]:
        if self.layout is None:
            return []
        return self.layout.enabled_widgets()

    # Refresh

    async def refresh_dashboard(self) -> DashboardSnapshot:
        """
        全ファセットを並行計算し、スナップショットを一括で差し替える

        Returns:
            DashboardSnapshot: 公開された最新のスナップショット
        """
        self._pending_refreshes += 1
        try:
            async with self._refresh_lock:
                return await self._refresh()
        finally:
            self._pending_refreshes -= 1

    async def _refresh(self) -> DashboardSnapshot:
        started = time.perf_counter()
        logs = self.series.fetch_logs()
        previous = self._snapshot

        (
            summaries,
            streaks,
            health_score,
            top_insights,
            patterns,
            correlation,
        ) = await asyncio.gather(
            asyncio.to_thread(self.compute_metric_summaries, logs),
            asyncio.to_thread(self.compute_streaks, logs),
            asyncio.to_thread(self.compute_health_score, logs, previous),
            self.compute_top_insights(logs),
            asyncio.to_thread(self.compute_weekly_patterns, logs),
            asyncio.to_thread(self.compute_top_correlation, logs),
        )

        # 結果を返せなかったファセットは前回値を維持
        self._snapshot = DashboardSnapshot(
            metric_summaries=(
                summaries if summaries is not None else previous.metric_summaries
            ),
            current_streaks=(
                streaks if streaks is not None else previous.current_streaks
            ),
            health_score=(
                health_score if health_score is not None else previous.health_score
            ),
            top_insights=(
                top_insights if top_insights is not None else previous.top_insights
            ),
            weekly_patterns=(
                patterns if patterns is not None else previous.weekly_patterns
            ),
            top_correlation=(
                correlation
                if correlation is not None
                else previous.top_correlation
            ),
            refreshed_at=datetime.now(),
        )
        self.last_refresh_time = self._snapshot.refreshed_at

        self.logger.info(
            "Dashboard refreshed",
            log_count=len(logs),
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return self._snapshot

    # Facets

    @safe_operation("compute metric summaries")
    def compute_metric_summaries(self, logs: list[DailyLog]) -> list[MetricSummary]:
        summaries = []
        for metric in self.series.get_available_metrics(logs)[:SUMMARY_METRIC_LIMIT]:
            week = self.series.get_chart_data(metric, TimePeriod.WEEK, logs)
            if not week:
                continue
            month = sorted(
                self.series.get_chart_data(metric, TimePeriod.MONTH, logs),
                key=lambda p: p.date,
            )
            week = sorted(week, key=lambda p: p.date)

            current_average = mean([p.value for p in week])
            # 直近 1 週間分を除いた月間データの末尾 7 点を前週とみなす
            previous_week = month[: max(0, len(month) - len(week))][-7:]
            previous_average = (
                mean([p.value for p in previous_week])
                if previous_week
                else current_average
            )

            change = (
                (current_average - previous_average) / previous_average * 100
                if previous_average != 0
                else 0.0
            )
            summaries.append(
                MetricSummary(
                    metric=metric,
                    current_value=week[-1].value,
                    previous_value=previous_average,
                    trend=summary_trend(change, metric),
                    change_percentage=abs(change),
                    icon=metric.icon,
                )
            )
        return summaries

    @safe_operation("compute streaks")
    def compute_streaks(self, logs: list[DailyLog]) -> list[StreakData]:
        streaks = []
        for metric in self.series.get_available_metrics(logs)[:STREAK_METRIC_LIMIT]:
            points = sorted(
                self.series.get_chart_data(metric, TimePeriod.MONTH, logs),
                key=lambda p: p.date,
            )
            if len(points) < MIN_STREAK_POINTS:
                continue

            values = [p.value for p in points][-STREAK_WINDOW:]
            current = current_streak(values, metric)
            longest = longest_streak(values, metric)
            if current > 0 or longest >= 3:
                streaks.append(
                    StreakData(
                        metric_name=metric.display_name,
                        current_streak=current,
                        longest_streak=longest,
                        is_active=current > 0,
                        streak_type=streak_type(metric),
                    )
                )

        return sorted(streaks, key=lambda s: s.current_streak, reverse=True)

    @safe_operation("compute health score")
    def compute_health_score(
        self, logs: list[DailyLog], previous: DashboardSnapshot | None = None
    ) -> HealthScoreData | None:
        metrics = self.series.get_available_metrics(logs)
        if not metrics:
            return None

        components = []
        weighted_total = 0.0
        total_weight = 0.0
        for metric in metrics:
            points = self.series.get_chart_data(metric, TimePeriod.WEEK, logs)
            if not points:
                continue

            score = normalize_metric_score(metric, mean([p.value for p in points]))
            weight = metric_weight(metric)
            components.append(
                ScoreComponent(name=metric.display_name, score=score, weight=weight)
            )
            weighted_total += score * weight
            total_weight += weight

        overall = weighted_total / total_weight if total_weight > 0 else 0.0
        previous_score = (
            previous.health_score.overall_score
            if previous is not None and previous.health_score is not None
            else 0.0
        )
        return HealthScoreData(
            overall_score=overall,
            components=components,
            trend=score_trend(overall, previous_score),
        )

    @safe_operation("compute top insights")
    async def compute_top_insights(self, logs: list[DailyLog]) -> list[HealthInsight]:
        insights = await self.insights.generate_insights(TimePeriod.WEEK, logs)
        return insights[: self.top_insight_count]

    @safe_operation("compute weekly patterns")
    def compute_weekly_patterns(self, logs: list[DailyLog]) -> dict[str, list[float]]:
        patterns = {}
        for metric in self.series.get_available_metrics(logs)[:PATTERN_METRIC_LIMIT]:
            points = self.series.get_chart_data(metric, TimePeriod.MONTH, logs)
            patterns[metric.display_name] = weekly_pattern(points)
        return patterns

    @safe_operation("compute top correlation")
    def compute_top_correlation(self, logs: list[DailyLog]) -> TopCorrelation | None:
        metrics = self.series.get_available_metrics(logs)
        if len(metrics) < 2:
            return None

        best: TopCorrelation | None = None
        for i, first in enumerate(metrics):
            for second in metrics[i + 1 :]:
                correlation = self.correlation_between(first, second, logs)
                if best is None or abs(correlation) > abs(best.correlation):
                    best = TopCorrelation(
                        first_metric=first.display_name,
                        second_metric=second.display_name,
                        correlation=correlation,
                    )

        if best is None or not abs(best.correlation) > TOP_CORRELATION_THRESHOLD:
            return None
        return best

    def correlation_between(
        self, first: MetricType, second: MetricType, logs: list[DailyLog]
    ) -> float:
        pairs = align_by_date(
            self.series.get_chart_data(first, TimePeriod.MONTH, logs),
            self.series.get_chart_data(second, TimePeriod.MONTH, logs),
        )
        if len(pairs) < MIN_CORRELATION_PAIRS:
            return 0.0
        return pearson_correlation(pairs)
