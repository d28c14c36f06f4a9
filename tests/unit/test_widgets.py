"""Tests for dashboard widget layout persistence."""

import json

import pytest

from healthtrends.analytics.widgets import (
    DEFAULT_WIDGET_ORDER,
    WidgetLayoutStore,
    WidgetSize,
    WidgetType,
)


@pytest.fixture
def store(tmp_path):
    return WidgetLayoutStore(tmp_path / "layout" / "widgets.json")


def _types(widgets):
    return [w.type for w in widgets]


class TestWidgetLayoutStore:
    @pytest.mark.asyncio
    async def test_defaults_when_file_missing(self, store):
        widgets = await store.load()

        assert _types(widgets) == list(DEFAULT_WIDGET_ORDER)
        assert [w.position for w in widgets] == list(range(6))
        assert widgets[0].size == WidgetSize.SMALL
        assert all(w.is_enabled for w in widgets)

    @pytest.mark.asyncio
    async def test_defaults_when_file_corrupt(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")

        widgets = await store.load()

        assert _types(widgets) == list(DEFAULT_WIDGET_ORDER)

    @pytest.mark.asyncio
    async def test_save_and_reload(self, store):
        await store.update_widget_size(WidgetType.TREND_OVERVIEW, WidgetSize.MEDIUM)
        await store.toggle_widget(WidgetType.WEEKLY_PATTERN)

        reloaded = WidgetLayoutStore(store.path)
        widgets = await reloaded.load()

        trend = reloaded.find(WidgetType.TREND_OVERVIEW)
        assert trend is not None and trend.size == WidgetSize.MEDIUM
        assert WidgetType.WEEKLY_PATTERN not in _types(reloaded.enabled_widgets())
        assert len(widgets) == 6

        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data[0]["type"] == "health_score"
        # 一時ファイルは残らない
        assert list(store.path.parent.iterdir()) == [store.path]

    @pytest.mark.asyncio
    async def test_load_sorts_by_position(self, store):
        await store.reorder_widgets({0}, 6)
        data = json.loads(store.path.read_text(encoding="utf-8"))
        store.path.write_text(json.dumps(list(reversed(data))), encoding="utf-8")

        widgets = await store.load()

        assert [w.position for w in widgets] == list(range(6))
        assert widgets[-1].type == WidgetType.HEALTH_SCORE

    @pytest.mark.asyncio
    async def test_reorder_moves_before_destination(self, store):
        await store.reorder_widgets({0, 1}, 4)

        assert _types(store.widgets) == [
            WidgetType.RECENT_INSIGHTS,
            WidgetType.TREND_OVERVIEW,
            WidgetType.HEALTH_SCORE,
            WidgetType.STREAK_COUNTER,
            WidgetType.WEEKLY_PATTERN,
            WidgetType.CORRELATION_HIGHLIGHT,
        ]
        assert [w.position for w in store.widgets] == list(range(6))

    @pytest.mark.asyncio
    async def test_reorder_to_front(self, store):
        await store.reorder_widgets({5}, 0)

        assert store.widgets[0].type == WidgetType.CORRELATION_HIGHLIGHT

    @pytest.mark.asyncio
    async def test_reorder_out_of_range_is_noop(self, store):
        before = _types(store.widgets)

        assert await store.reorder_widgets({1, 9}, 0) is False
        assert await store.reorder_widgets({-1}, 3) is False

        assert _types(store.widgets) == before
        assert not store.path.exists()

    @pytest.mark.asyncio
    async def test_remove_and_add(self, store):
        assert await store.remove_widget(WidgetType.STREAK_COUNTER) is True
        assert await store.remove_widget(WidgetType.STREAK_COUNTER) is False
        assert [w.position for w in store.widgets] == list(range(5))

        added = await store.add_widget(WidgetType.STREAK_COUNTER)

        assert added.position == 5
        assert added.size == WidgetSize.SMALL
        assert store.widgets[-1] is added

    @pytest.mark.asyncio
    async def test_add_existing_reenables(self, store):
        await store.toggle_widget(WidgetType.HEALTH_SCORE)

        widget = await store.add_widget(WidgetType.HEALTH_SCORE)

        assert widget.is_enabled is True
        assert len(store.widgets) == 6

    @pytest.mark.asyncio
    async def test_unknown_widget_is_noop(self, store):
        await store.remove_widget(WidgetType.HEALTH_SCORE)

        assert await store.toggle_widget(WidgetType.HEALTH_SCORE) is False
        assert (
            await store.update_widget_size(WidgetType.HEALTH_SCORE, WidgetSize.LARGE)
            is False
        )

    @pytest.mark.asyncio
    async def test_reset_to_defaults(self, store):
        await store.remove_widget(WidgetType.HEALTH_SCORE)

        widgets = await store.reset_to_defaults()

        assert _types(widgets) == list(DEFAULT_WIDGET_ORDER)


def test_widget_type_metadata():
    assert WidgetType.TREND_OVERVIEW.display_name == "Metrics Overview"
    assert WidgetType.TREND_OVERVIEW.default_size == WidgetSize.LARGE
    assert WidgetType.CORRELATION_HIGHLIGHT.display_name == "Top Correlation"
    assert WidgetType.RECENT_INSIGHTS.icon == "lightbulb.fill"


def test_default_path_from_settings(tmp_path):
    assert WidgetLayoutStore().path == tmp_path / "widgets.json"
