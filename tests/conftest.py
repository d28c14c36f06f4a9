"""
共通フィクスチャと収集設定。

- テスト向けの環境変数を毎テスト自動設定（autouse）
- 設定キャッシュを毎テストでリセット
- ルートを `sys.path` に追加して `import healthtrends.*` を解決
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import pytest

# プロジェクトルート（このファイルの親の親）をパスに追加
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from healthtrends.analytics.models import DailyLog  # noqa: E402
from healthtrends.analytics.series import SeriesExtractor  # noqa: E402
from healthtrends.analytics.sources import (  # noqa: E402
    InMemoryLogSource,
    InMemorySymptomSource,
)
from healthtrends.config import clear_settings_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """テスト用の環境変数を毎テストで設定。

    各テスト終了時に `monkeypatch` により自動で復元されます。
    """

    env: dict[str, str] = {
        "ENVIRONMENT": "testing",
        "LOG_TO_FILE": "false",
        "LOG_FORMAT": "console",
        "WIDGET_LAYOUT_PATH": str(tmp_path / "widgets.json"),
    }

    for k, v in env.items():
        monkeypatch.setenv(k, v)

    clear_settings_cache()
    try:
        yield
    finally:
        clear_settings_cache()


@pytest.fixture
def today() -> date:
    return date.today()


@pytest.fixture
def make_logs(today: date) -> Callable[..., list[DailyLog]]:
    """値のリストから、今日で終わる連続した日次ログを作る。

    例: ``make_logs(mood=[3, 4, 5])`` は 2 日前から今日までの 3 件を返す。
    ``None`` を含めるとその日の値は未記録になる。
    """

    def _make(**series: list[Any]) -> list[DailyLog]:
        length = max((len(values) for values in series.values()), default=0)
        logs = []
        for index in range(length):
            fields = {
                name: values[index]
                for name, values in series.items()
                if index < len(values) and values[index] is not None
            }
            day = today - timedelta(days=length - 1 - index)
            logs.append(DailyLog(date=day, **fields))
        return logs

    return _make


@pytest.fixture
def make_extractor(today: date) -> Callable[..., SeriesExtractor]:
    def _make(
        logs: list[DailyLog] | None = None,
        symptoms: list[Any] | None = None,
        **kwargs: Any,
    ) -> SeriesExtractor:
        kwargs.setdefault("today", lambda: today)
        return SeriesExtractor(
            InMemoryLogSource(logs or []),
            InMemorySymptomSource(symptoms or []),
            **kwargs,
        )

    return _make


@pytest.fixture
def mood_logs(make_logs: Callable[..., list[DailyLog]]) -> list[DailyLog]:
    """10 日間で改善していく気分のログ"""
    return make_logs(mood=[3, 3, 3, 7, 7, 7, 8, 8, 8, 9])
