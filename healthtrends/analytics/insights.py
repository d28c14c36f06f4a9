"""
Health insight engine

Runs independent statistical passes over extracted series and produces a
ranked list of human-readable insights.
"""

import asyncio
from datetime import datetime, timedelta

from healthtrends.config import get_settings
from healthtrends.utils.mixins import LoggerMixin

from .models import (
    ChartDataPoint,
    DailyLog,
    DateInterval,
    HealthInsight,
    InsightPriority,
    InsightType,
    MetricType,
)
from .periods import TimePeriod
from .series import SeriesExtractor
from .stats import (
    TrendDirection,
    align_by_date,
    classify_trend_direction,
    current_streak,
    linear_trend,
    pearson_correlation,
    weekday_averages,
    weekday_name,
)

# 分析パラメータ
MIN_TREND_POINTS = 3
TREND_MIN_CONFIDENCE = 0.3
TREND_MIN_MAGNITUDE = 0.05
MIN_ACHIEVEMENT_POINTS = 7
ACHIEVEMENT_WINDOW = 7
MIN_STREAK_DAYS = 3
PERSONAL_BEST_RATIO = 0.95
MIN_PATTERN_POINTS = 14
MIN_PATTERN_WEEKDAYS = 5
PATTERN_SIGNIFICANCE_RATIO = 0.2
MIN_CORRELATION_POINTS = 5
MIN_ALIGNED_PAIRS = 3
CORRELATION_INSIGHT_THRESHOLD = 0.4
STRONG_CORRELATION_THRESHOLD = 0.7
WARNING_WINDOW = 3
MIN_TRACKED_METRICS = 3

CORRELATION_PAIRS: tuple[tuple[MetricType, MetricType], ...] = (
    (MetricType.MOOD, MetricType.ENERGY_LEVEL),
    (MetricType.PAIN_LEVEL, MetricType.MOOD),
    (MetricType.PAIN_LEVEL, MetricType.ENERGY_LEVEL),
)


def _trailing_interval(days: int | None, now: datetime) -> DateInterval:
    if days is None:
        return DateInterval(start=datetime.min, end=now)
    return DateInterval(start=now - timedelta(days=days), end=now)


def build_trend_insight(
    metric: MetricType, values: list[float], period: TimePeriod
) -> HealthInsight | None:
    """回帰トレンドから洞察を作成（有意でなければ None）"""
    if len(values) < MIN_TREND_POINTS:
        return None

    fit = linear_trend(values)
    direction = classify_trend_direction(fit.slope, metric)
    confidence = fit.confidence
    if not (confidence > TREND_MIN_CONFIDENCE and abs(fit.slope) > TREND_MIN_MAGNITUDE):
        return None

    name = metric.display_name
    timeframe = period.timeframe_text
    if direction == TrendDirection.IMPROVING:
        title = f"{name} is improving"
        description = f"Your {name.lower()} has been improving over the {timeframe}."
        priority = InsightPriority.MEDIUM
        actionable_text = "Keep up the great work! Continue your current routine."
    elif direction == TrendDirection.DECLINING:
        title = f"{name} is declining"
        description = f"Your {name.lower()} has been declining over the {timeframe}."
        priority = InsightPriority.HIGH
        actionable_text = (
            "Consider reviewing your recent activities and identifying "
            "potential triggers."
        )
    else:
        title = f"{name} is stable"
        description = f"Your {name.lower()} has remained consistent over the {timeframe}."
        priority = InsightPriority.LOW
        actionable_text = None

    now = datetime.now()
    return HealthInsight(
        type=InsightType.TREND,
        priority=priority,
        title=title,
        description=description,
        actionable_text=actionable_text,
        confidence=confidence,
        relevance_period=_trailing_interval(period.days, now),
        associated_metrics=[name],
        generated_at=now,
        is_actionable=actionable_text is not None,
    )


def build_achievement_insight(
    metric: MetricType, values: list[float]
) -> HealthInsight | None:
    """連続記録または自己ベストを検出"""
    if len(values) < MIN_ACHIEVEMENT_POINTS:
        return None

    recent = values[-ACHIEVEMENT_WINDOW:]
    name = metric.display_name
    now = datetime.now()
    relevance = _trailing_interval(ACHIEVEMENT_WINDOW, now)

    streak = current_streak(recent, metric)
    if streak >= MIN_STREAK_DAYS:
        return HealthInsight(
            type=InsightType.ACHIEVEMENT,
            priority=InsightPriority.MEDIUM,
            title=f"{streak}-day streak!",
            description=(
                f"You've maintained good {name.lower()} levels for {streak} "
                "consecutive days."
            ),
            actionable_text="You're on a roll! Keep up the momentum.",
            confidence=0.9,
            relevance_period=relevance,
            associated_metrics=[name],
            generated_at=now,
            is_actionable=True,
        )

    if max(recent) >= max(values) * PERSONAL_BEST_RATIO:
        return HealthInsight(
            type=InsightType.ACHIEVEMENT,
            priority=InsightPriority.HIGH,
            title=f"Personal best {name.lower()}!",
            description=(
                f"You've reached your highest {name.lower()} level in recent history."
            ),
            actionable_text=(
                "Celebrate this milestone and note what contributed to this success."
            ),
            confidence=0.95,
            relevance_period=relevance,
            associated_metrics=[name],
            generated_at=now,
            is_actionable=True,
        )

    return None


def build_pattern_insight(
    metric: MetricType, points: list[ChartDataPoint]
) -> HealthInsight | None:
    """曜日ごとの平均の偏りを検出"""
    if len(points) < MIN_PATTERN_POINTS:
        return None

    averages = weekday_averages(points)
    if len(averages) < MIN_PATTERN_WEEKDAYS:
        return None

    # 同値の場合は曜日番号の小さい方を優先
    best_day = max(sorted(averages), key=lambda day: averages[day])
    worst_day = min(sorted(averages), key=lambda day: averages[day])
    overall_average = sum(averages.values()) / len(averages)

    if abs(averages[best_day] - averages[worst_day]) <= (
        overall_average * PATTERN_SIGNIFICANCE_RATIO
    ):
        return None

    name = metric.display_name
    best_name = weekday_name(best_day)
    worst_name = weekday_name(worst_day)
    now = datetime.now()
    return HealthInsight(
        type=InsightType.PATTERN,
        priority=InsightPriority.MEDIUM,
        title=f"Weekly {name.lower()} pattern detected",
        description=(
            f"Your {name.lower()} tends to be best on {best_name} and lowest on "
            f"{worst_name}."
        ),
        actionable_text=(
            f"Plan important activities on {best_name} and take extra care on "
            f"{worst_name}."
        ),
        confidence=0.7,
        relevance_period=_trailing_interval(TimePeriod.MONTH.days, now),
        associated_metrics=[name],
        generated_at=now,
        is_actionable=True,
    )


def build_correlation_insight(
    first: MetricType, second: MetricType, correlation: float, period: TimePeriod
) -> HealthInsight | None:
    """相関係数が閾値を超える場合のみ洞察を作成"""
    strength_value = abs(correlation)
    if not strength_value > CORRELATION_INSIGHT_THRESHOLD:
        return None

    direction = "positively" if correlation > 0 else "negatively"
    strength = (
        "strongly" if strength_value > STRONG_CORRELATION_THRESHOLD else "moderately"
    )
    first_name, second_name = first.display_name, second.display_name
    now = datetime.now()
    return HealthInsight(
        type=InsightType.CORRELATION,
        priority=InsightPriority.MEDIUM,
        title=f"{first_name} and {second_name} are connected",
        description=(
            f"Your {first_name.lower()} and {second_name.lower()} are {strength} "
            f"{direction} correlated."
        ),
        actionable_text=(
            f"Focus on improving {first_name.lower()} to potentially benefit "
            f"{second_name.lower()}."
        ),
        confidence=min(1.0, strength_value),
        relevance_period=_trailing_interval(period.days, now),
        associated_metrics=[first_name, second_name],
        generated_at=now,
        is_actionable=True,
    )


def build_warning_insight(
    metric: MetricType, values: list[float]
) -> HealthInsight | None:
    """直近 3 点が単調に悪化している場合に警告"""
    if len(values) < WARNING_WINDOW:
        return None

    first, middle, last = values[-WARNING_WINDOW:]
    is_decreasing = first > middle > last
    is_increasing = first < middle < last

    if metric == MetricType.PAIN_LEVEL:
        if not is_increasing:
            return None
        trend = "increasing"
    else:
        if not is_decreasing:
            return None
        trend = "declining"

    name = metric.display_name
    now = datetime.now()
    return HealthInsight(
        type=InsightType.WARNING,
        priority=InsightPriority.HIGH,
        title=f"{name} has been {trend}",
        description=f"Your {name.lower()} has been {trend} for the past 3 days.",
        actionable_text=(
            "Consider reviewing recent changes in routine, medications, or activities."
        ),
        confidence=0.8,
        relevance_period=_trailing_interval(TimePeriod.WEEK.days, now),
        associated_metrics=[name],
        generated_at=now,
        is_actionable=True,
    )


def build_recommendation_insight(metric_count: int) -> HealthInsight | None:
    if metric_count >= MIN_TRACKED_METRICS:
        return None

    now = datetime.now()
    return HealthInsight(
        type=InsightType.RECOMMENDATION,
        priority=InsightPriority.MEDIUM,
        title="Start tracking more metrics",
        description=(
            f"You're currently tracking {metric_count} metric(s). Tracking more "
            "metrics can provide better insights."
        ),
        actionable_text=(
            "Consider adding mood, pain, or energy tracking to get more "
            "comprehensive insights."
        ),
        confidence=0.9,
        relevance_period=DateInterval(start=now, end=now + timedelta(days=7)),
        associated_metrics=[],
        generated_at=now,
        is_actionable=True,
    )


class InsightEngine(LoggerMixin):
    """健康データ洞察エンジン"""

    def __init__(self, series: SeriesExtractor):
        """
        初期化処理

        Args:
            series: 時系列データの抽出元
        """
        self.series = series
        self.current_insights: list[HealthInsight] = []
        self.is_generating = False
        self.last_generation_time: datetime | None = None

    async def generate_insights(
        self,
        period: TimePeriod | None = None,
        logs: list[DailyLog] | None = None,
    ) -> list[HealthInsight]:
        """
        全分析パスを実行し、優先度順の洞察リストを生成

        Args:
            period: 分析対象期間（未指定時は設定値、既定は 30 日）
            logs: 共有するログのスナップショット（未指定時は取得）

        Returns:
            list[HealthInsight]: 優先度の高い順に並んだ洞察
        """
        if period is None:
            period = TimePeriod(get_settings().default_insight_period)

        self.is_generating = True
        try:
            snapshot = self.series.fetch_logs() if logs is None else logs
            # 統計計算はワーカースレッドで実行
            insights = await asyncio.to_thread(self._run_passes, period, snapshot)

            # 安定ソートのため同じ優先度内ではパスの順序を維持
            ranked = sorted(insights, key=lambda i: i.priority, reverse=True)
            self.current_insights = ranked
            self.last_generation_time = datetime.now()

            self.logger.info(
                "Insights generated",
                period=period.value,
                insights_count=len(ranked),
                log_count=len(snapshot),
            )
        except Exception as e:
            self.logger.error(
                "Failed to generate insights",
                period=period.value,
                error=str(e),
                exc_info=True,
            )
        finally:
            self.is_generating = False

        return list(self.current_insights)

    def get_insights(self, insight_type: InsightType) -> list[HealthInsight]:
        return [i for i in self.current_insights if i.type == insight_type]

    def get_high_priority_insights(self) -> list[HealthInsight]:
        return [
            i for i in self.current_insights if i.priority >= InsightPriority.HIGH
        ]

    def get_actionable_insights(self) -> list[HealthInsight]:
        return [i for i in self.current_insights if i.is_actionable]

    def _run_passes(
        self, period: TimePeriod, logs: list[DailyLog]
    ) -> list[HealthInsight]:
        metrics = self.series.get_available_metrics(logs)

        insights: list[HealthInsight] = []
        insights += self._trend_insights(metrics, period, logs)
        insights += self._achievement_insights(metrics, period, logs)
        insights += self._pattern_insights(metrics, logs)
        insights += self._correlation_insights(metrics, period, logs)
        insights += self._warning_insights(metrics, logs)

        recommendation = build_recommendation_insight(len(metrics))
        if recommendation is not None:
            insights.append(recommendation)

        return insights

    def _values(
        self, metric: MetricType, period: TimePeriod, logs: list[DailyLog]
    ) -> list[float]:
        points = self.series.get_chart_data(metric, period, logs)
        return [p.value for p in sorted(points, key=lambda p: p.date)]

    def _trend_insights(
        self, metrics: list[MetricType], period: TimePeriod, logs: list[DailyLog]
    ) -> list[HealthInsight]:
        insights = []
        for metric in metrics:
            insight = build_trend_insight(
                metric, self._values(metric, period, logs), period
            )
            if insight is not None:
                insights.append(insight)
        return insights

    def _achievement_insights(
        self, metrics: list[MetricType], period: TimePeriod, logs: list[DailyLog]
    ) -> list[HealthInsight]:
        insights = []
        for metric in metrics:
            insight = build_achievement_insight(
                metric, self._values(metric, period, logs)
            )
            if insight is not None:
                insights.append(insight)
        return insights

    def _pattern_insights(
        self, metrics: list[MetricType], logs: list[DailyLog]
    ) -> list[HealthInsight]:
        # 曜日パターンは常に直近 30 日の日次データで判定
        insights = []
        for metric in metrics:
            points = self.series.get_chart_data(metric, TimePeriod.MONTH, logs)
            insight = build_pattern_insight(metric, points)
            if insight is not None:
                insights.append(insight)
        return insights

    def _correlation_insights(
        self, metrics: list[MetricType], period: TimePeriod, logs: list[DailyLog]
    ) -> list[HealthInsight]:
        insights = []
        for first, second in CORRELATION_PAIRS:
            if first not in metrics or second not in metrics:
                continue

            first_points = self.series.get_chart_data(first, period, logs)
            second_points = self.series.get_chart_data(second, period, logs)
            if (
                len(first_points) < MIN_CORRELATION_POINTS
                or len(second_points) < MIN_CORRELATION_POINTS
            ):
                continue

            pairs = align_by_date(first_points, second_points)
            if len(pairs) < MIN_ALIGNED_PAIRS:
                continue

            correlation = pearson_correlation(pairs)
            insight = build_correlation_insight(first, second, correlation, period)
            if insight is not None:
                insights.append(insight)
        return insights

    def _warning_insights(
        self, metrics: list[MetricType], logs: list[DailyLog]
    ) -> list[HealthInsight]:
        insights = []
        for metric in metrics:
            insight = build_warning_insight(
                metric, self._values(metric, TimePeriod.WEEK, logs)
            )
            if insight is not None:
                insights.append(insight)
        return insights
