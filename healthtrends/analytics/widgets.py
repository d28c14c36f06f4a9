"""
Dashboard widget layout

An ordered, locally persisted list of dashboard widgets.
"""

import asyncio
import json
import os
import tempfile
import uuid
from enum import Enum
from pathlib import Path
from typing import Any

import aiofiles
import structlog
from pydantic import BaseModel, Field, ValidationError

from healthtrends.config import get_settings

logger = structlog.get_logger(__name__)


class WidgetSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class WidgetType(str, Enum):
    """ダッシュボードに配置できるウィジェット"""

    TREND_OVERVIEW = "trend_overview"
    RECENT_INSIGHTS = "recent_insights"
    STREAK_COUNTER = "streak_counter"
    WEEKLY_PATTERN = "weekly_pattern"
    CORRELATION_HIGHLIGHT = "correlation_highlight"
    HEALTH_SCORE = "health_score"

    @property
    def display_name(self) -> str:
        return _WIDGET_INFO[self][0]

    @property
    def icon(self) -> str:
        return _WIDGET_INFO[self][1]

    @property
    def default_size(self) -> WidgetSize:
        return _WIDGET_INFO[self][2]


_WIDGET_INFO: dict[WidgetType, tuple[str, str, WidgetSize]] = {
    WidgetType.TREND_OVERVIEW: ("Metrics Overview", "chart.bar.fill", WidgetSize.LARGE),
    WidgetType.RECENT_INSIGHTS: ("Recent Insights", "lightbulb.fill", WidgetSize.MEDIUM),
    WidgetType.STREAK_COUNTER: ("Streak Counter", "flame.fill", WidgetSize.SMALL),
    WidgetType.WEEKLY_PATTERN: ("Weekly Pattern", "calendar", WidgetSize.MEDIUM),
    WidgetType.CORRELATION_HIGHLIGHT: ("Top Correlation", "link", WidgetSize.SMALL),
    WidgetType.HEALTH_SCORE: ("Health Score", "heart.fill", WidgetSize.SMALL),
}

DEFAULT_WIDGET_ORDER = (
    WidgetType.HEALTH_SCORE,
    WidgetType.STREAK_COUNTER,
    WidgetType.RECENT_INSIGHTS,
    WidgetType.TREND_OVERVIEW,
    WidgetType.WEEKLY_PATTERN,
    WidgetType.CORRELATION_HIGHLIGHT,
)


class DashboardWidget(BaseModel):
    """配置済みウィジェット"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: WidgetType
    size: WidgetSize
    position: int = 0
    is_enabled: bool = True

    @classmethod
    def create(
        cls,
        widget_type: WidgetType,
        size: WidgetSize | None = None,
        position: int = 0,
        is_enabled: bool = True,
    ) -> "DashboardWidget":
        return cls(
            type=widget_type,
            size=size or widget_type.default_size,
            position=position,
            is_enabled=is_enabled,
        )


def default_widgets() -> list[DashboardWidget]:
    return [
        DashboardWidget.create(widget_type, position=index)
        for index, widget_type in enumerate(DEFAULT_WIDGET_ORDER)
    ]


class WidgetLayoutStore:
    """ウィジェット配置を JSON ファイルに保存する"""

    def __init__(self, path: Path | None = None):
        self.path = path or get_settings().widget_layout_path
        self.widgets: list[DashboardWidget] = default_widgets()

    async def load(self) -> list[DashboardWidget]:
        """保存済みの配置を読み込む（ファイルがない・壊れている場合は既定値）"""
        if not self.path.exists():
            self.widgets = default_widgets()
            return list(self.widgets)

        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
            data = json.loads(content)
            widgets = [DashboardWidget.model_validate(item) for item in data]
            self.widgets = sorted(widgets, key=lambda w: w.position)
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.warning(
                "Failed to load widget layout, using defaults",
                path=str(self.path),
                error=str(e),
            )
            self.widgets = default_widgets()

        return list(self.widgets)

    async def save(self) -> None:
        """Write the layout using an atomic file replace."""
        data: list[dict[str, Any]] = [w.model_dump(mode="json") for w in self.widgets]
        serialized = json.dumps(data, indent=2, ensure_ascii=False)

        def _write() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix="widgets_", suffix=".json"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                    tmp_file.write(serialized)
                    tmp_file.flush()
                    os.fsync(tmp_file.fileno())
                os.replace(temp_path, self.path)
            finally:
                if os.path.exists(temp_path):
                    try:
                        os.remove(temp_path)
                    except FileNotFoundError:
                        pass

        await asyncio.to_thread(_write)
        logger.debug("Widget layout saved", path=str(self.path), count=len(data))

    def enabled_widgets(self) -> list[DashboardWidget]:
        return [w for w in sorted(self.widgets, key=lambda w: w.position) if w.is_enabled]

    def find(self, widget_type: WidgetType) -> DashboardWidget | None:
        return next((w for w in self.widgets if w.type == widget_type), None)

    async def toggle_widget(self, widget_type: WidgetType) -> bool:
        widget = self.find(widget_type)
        if widget is None:
            return False
        widget.is_enabled = not widget.is_enabled
        await self.save()
        return True

    async def update_widget_size(self, widget_type: WidgetType, size: WidgetSize) -> bool:
        widget = self.find(widget_type)
        if widget is None:
            return False
        widget.size = size
        await self.save()
        return True

    async def reorder_widgets(self, source_indices: set[int], destination: int) -> bool:
        """
        指定位置のウィジェットをまとめて移動し、位置番号を振り直す

        Args:
            source_indices: 移動するウィジェットの現在のインデックス
            destination: 移動前のリストにおける挿入位置

        Returns:
            範囲外のインデックスを含む場合は何も変更せず False
        """
        if any(i < 0 or i >= len(self.widgets) for i in source_indices):
            return False

        moving = [self.widgets[i] for i in sorted(source_indices)]
        remaining = [w for i, w in enumerate(self.widgets) if i not in source_indices]
        insert_at = destination - sum(1 for i in source_indices if i < destination)
        insert_at = max(0, min(insert_at, len(remaining)))

        self.widgets = remaining[:insert_at] + moving + remaining[insert_at:]
        self._renumber()
        await self.save()
        return True

    async def add_widget(
        self, widget_type: WidgetType, size: WidgetSize | None = None
    ) -> DashboardWidget:
        """ウィジェットを末尾に追加（既にある場合は有効化のみ）"""
        existing = self.find(widget_type)
        if existing is not None:
            existing.is_enabled = True
            await self.save()
            return existing

        widget = DashboardWidget.create(widget_type, size, position=len(self.widgets))
        self.widgets.append(widget)
        await self.save()
        return widget

    async def remove_widget(self, widget_type: WidgetType) -> bool:
        widget = self.find(widget_type)
        if widget is None:
            return False
        self.widgets.remove(widget)
        self._renumber()
        await self.save()
        return True

    async def reset_to_defaults(self) -> list[DashboardWidget]:
        self.widgets = default_widgets()
        await self.save()
        logger.info("Widget layout reset to defaults")
        return list(self.widgets)

    def _renumber(self) -> None:
        for index, widget in enumerate(self.widgets):
            widget.position = index
