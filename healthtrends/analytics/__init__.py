"""Time-series health analytics"""

from .dashboard import DashboardOrchestrator, DashboardSnapshot
from .insights import InsightEngine
from .models import (
    ChartDataPoint,
    ChartStatistics,
    DailyLog,
    HealthInsight,
    InsightPriority,
    InsightType,
    ItemKind,
    MedicationAdherence,
    MetricType,
    SymptomRating,
    TrackedSymptom,
)
from .periods import TimePeriod
from .series import SeriesExtractor
from .sources import InMemoryLogSource, InMemorySymptomSource
from .widgets import WidgetLayoutStore, WidgetSize, WidgetType

__all__ = [
    "ChartDataPoint",
    "ChartStatistics",
    "DailyLog",
    "DashboardOrchestrator",
    "DashboardSnapshot",
    "HealthInsight",
    "InMemoryLogSource",
    "InMemorySymptomSource",
    "InsightEngine",
    "InsightPriority",
    "InsightType",
    "ItemKind",
    "MedicationAdherence",
    "MetricType",
    "SeriesExtractor",
    "SymptomRating",
    "TimePeriod",
    "TrackedSymptom",
    "WidgetLayoutStore",
    "WidgetSize",
    "WidgetType",
]
