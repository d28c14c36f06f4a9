"""Tests for the insight engine."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from healthtrends.analytics.insights import (
    InsightEngine,
    build_achievement_insight,
    build_correlation_insight,
    build_pattern_insight,
    build_trend_insight,
    build_warning_insight,
)
from healthtrends.analytics.models import (
    ChartDataPoint,
    InsightPriority,
    InsightType,
    MetricType,
)
from healthtrends.analytics.periods import TimePeriod
from healthtrends.config import override_settings


def _points(today, values, metric=MetricType.MOOD):
    start = today - timedelta(days=len(values) - 1)
    return [
        ChartDataPoint(
            date=start + timedelta(days=i),
            value=float(v),
            metric_type=metric,
            metric_name=metric.display_name,
            category=metric.category,
        )
        for i, v in enumerate(values)
    ]


class TestGenerateInsights:
    @pytest.mark.asyncio
    async def test_improving_mood_scenario(self, mood_logs, make_extractor):
        extractor = make_extractor(mood_logs)
        engine = InsightEngine(extractor)

        insights = await engine.generate_insights(TimePeriod.MONTH)

        assert extractor.get_available_metrics() == [MetricType.MOOD]
        assert [i.type for i in insights] == [
            InsightType.TREND,
            InsightType.ACHIEVEMENT,
            InsightType.RECOMMENDATION,
        ]

        trend = insights[0]
        assert trend.title == "Mood is improving"
        assert trend.description == "Your mood has been improving over the past month."
        assert trend.confidence > 0.3
        assert trend.associated_metrics == ["Mood"]

        achievement = insights[1]
        assert achievement.title == "7-day streak!"
        assert achievement.confidence == 0.9

        assert engine.current_insights == insights
        assert engine.last_generation_time is not None
        assert engine.is_generating is False

    @pytest.mark.asyncio
    async def test_empty_logs_only_recommends_tracking(self, make_extractor):
        engine = InsightEngine(make_extractor([]))

        insights = await engine.generate_insights()

        assert len(insights) == 1
        recommendation = insights[0]
        assert recommendation.type == InsightType.RECOMMENDATION
        assert recommendation.title == "Start tracking more metrics"
        assert "0 metric(s)" in recommendation.description
        assert recommendation.associated_metrics == []

    @pytest.mark.asyncio
    async def test_sorted_by_priority(self, make_logs, make_extractor):
        # 直近 3 日で気分が悪化 → HIGH の警告
        logs = make_logs(mood=[5, 5, 5, 5, 5, 9, 7, 5], energy_level=[5] * 8)
        engine = InsightEngine(make_extractor(logs))

        insights = await engine.generate_insights(TimePeriod.WEEK)

        priorities = [i.priority for i in insights]
        assert priorities == sorted(priorities, reverse=True)
        high_titles = [i.title for i in engine.get_high_priority_insights()]
        assert "Mood has been declining" in high_titles
        assert insights[-1].type == InsightType.RECOMMENDATION

    @pytest.mark.asyncio
    async def test_logs_fetched_once_per_generation(self, mood_logs, make_extractor):
        extractor = make_extractor(mood_logs)
        source = MagicMock(wraps=extractor.log_source)
        extractor.log_source = source

        await InsightEngine(extractor).generate_insights()

        assert source.get_logs.call_count == 1

    @pytest.mark.asyncio
    async def test_passes_run_off_event_loop(self, mood_logs, make_extractor):
        engine = InsightEngine(make_extractor(mood_logs))
        run_passes = engine._run_passes
        threads = []

        def recording(*args):
            threads.append(threading.get_ident())
            return run_passes(*args)

        engine._run_passes = recording

        insights = await engine.generate_insights()

        assert threads and threads[0] != threading.get_ident()
        assert insights == engine.current_insights

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_insights(self, mood_logs, make_extractor):
        extractor = make_extractor(mood_logs)
        engine = InsightEngine(extractor)
        previous = await engine.generate_insights()

        extractor.log_source = MagicMock()
        extractor.log_source.get_logs.side_effect = RuntimeError("db closed")

        result = await engine.generate_insights()

        assert result == previous
        assert engine.is_generating is False

    @pytest.mark.asyncio
    async def test_filters(self, mood_logs, make_extractor):
        engine = InsightEngine(make_extractor(mood_logs))
        await engine.generate_insights()

        assert [i.type for i in engine.get_insights(InsightType.ACHIEVEMENT)] == [
            InsightType.ACHIEVEMENT
        ]
        assert engine.get_high_priority_insights() == []
        assert len(engine.get_actionable_insights()) == 3


class TestTrendPass:
    def test_rising_pain_is_declining(self):
        insight = build_trend_insight(
            MetricType.PAIN_LEVEL, [1, 2, 3, 4, 5], TimePeriod.MONTH
        )

        assert insight is not None
        assert insight.title == "Pain Level is declining"
        assert insight.priority == InsightPriority.HIGH

    def test_rising_energy_is_improving(self):
        insight = build_trend_insight(
            MetricType.ENERGY_LEVEL, [1, 2, 3, 4, 5], TimePeriod.WEEK
        )

        assert insight is not None
        assert insight.title == "Energy Level is improving"
        assert "past week" in insight.description

    def test_requires_three_points(self):
        assert build_trend_insight(MetricType.MOOD, [1, 9], TimePeriod.WEEK) is None

    def test_noisy_series_is_skipped(self):
        values = [5, 1, 9, 2, 8, 3, 7]

        assert build_trend_insight(MetricType.MOOD, values, TimePeriod.WEEK) is None


class TestAchievementPass:
    def test_personal_best(self):
        values = [9, 9, 8, 4, 5, 4, 5, 3, 4, 9, 5]

        insight = build_achievement_insight(MetricType.MOOD, values)

        assert insight is not None
        assert insight.title == "Personal best mood!"
        assert insight.priority == InsightPriority.HIGH

    def test_needs_seven_values(self):
        assert build_achievement_insight(MetricType.MOOD, [8] * 6) is None

    def test_no_achievement(self):
        values = [9, 9, 9, 9, 2, 3, 2, 3, 2, 3, 2]

        assert build_achievement_insight(MetricType.MOOD, values) is None


class TestPatternPass:
    def test_weekly_pattern_detected(self, today):
        # 毎週同じ曜日が高い
        values = [8 if i % 7 == 0 else 3 for i in range(21)]
        points = _points(today, values)

        insight = build_pattern_insight(MetricType.MOOD, points)

        assert insight is not None
        assert insight.title == "Weekly mood pattern detected"
        best_day = points[0].date.strftime("%A")
        assert f"best on {best_day}" in insight.description

    def test_flat_week_has_no_pattern(self, today):
        assert build_pattern_insight(MetricType.MOOD, _points(today, [5] * 21)) is None

    def test_needs_fourteen_points(self, today):
        values = [8 if i % 7 == 0 else 3 for i in range(13)]

        assert build_pattern_insight(MetricType.MOOD, _points(today, values)) is None


class TestCorrelationPass:
    def test_exact_threshold_is_excluded(self):
        insight = build_correlation_insight(
            MetricType.MOOD, MetricType.ENERGY_LEVEL, 0.4, TimePeriod.MONTH
        )

        assert insight is None

    def test_moderate_positive(self):
        insight = build_correlation_insight(
            MetricType.MOOD, MetricType.ENERGY_LEVEL, 0.55, TimePeriod.MONTH
        )

        assert insight is not None
        assert insight.title == "Mood and Energy Level are connected"
        assert "moderately positively correlated" in insight.description
        assert insight.confidence == 0.55

    def test_strong_negative(self):
        insight = build_correlation_insight(
            MetricType.PAIN_LEVEL, MetricType.MOOD, -0.8, TimePeriod.MONTH
        )

        assert insight is not None
        assert "strongly negatively correlated" in insight.description
        assert insight.associated_metrics == ["Pain Level", "Mood"]

    @pytest.mark.asyncio
    async def test_engine_correlates_mood_and_energy(self, make_logs, make_extractor):
        mood = [3, 5, 4, 6, 5, 7, 6]
        logs = make_logs(mood=mood, energy_level=[m - 1 for m in mood])
        engine = InsightEngine(make_extractor(logs))

        insights = await engine.generate_insights(TimePeriod.WEEK)

        correlations = engine.get_insights(InsightType.CORRELATION)
        assert len(correlations) == 1
        assert correlations[0].confidence == pytest.approx(1.0)
        assert correlations[0] in insights


class TestWarningPass:
    def test_pain_increasing(self):
        insight = build_warning_insight(MetricType.PAIN_LEVEL, [1, 2, 3, 4])

        assert insight is not None
        assert insight.title == "Pain Level has been increasing"
        assert insight.description.endswith("for the past 3 days.")

    def test_pain_decreasing_is_fine(self):
        assert build_warning_insight(MetricType.PAIN_LEVEL, [5, 4, 3]) is None

    def test_plateau_is_not_monotonic(self):
        assert build_warning_insight(MetricType.MOOD, [8, 8, 7]) is None


@pytest.mark.asyncio
async def test_default_period_from_settings(mood_logs, make_extractor):
    engine = InsightEngine(make_extractor(mood_logs))

    with override_settings(default_insight_period="7D"):
        insights = await engine.generate_insights()

    trend = engine.get_insights(InsightType.TREND)
    assert trend and "past week" in trend[0].description
    assert insights[0] is trend[0]
