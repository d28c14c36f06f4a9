"""
Health analytics data models

Daily log records consumed from the log repository and the value types
derived from them (chart points, statistics, insights).
"""

import uuid
from datetime import date, datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


# Daily log records


class SymptomRating(BaseModel):
    """Rating of a single tracked symptom on a given day"""

    symptom_id: int | None = None
    symptom_name: str
    rating: int = Field(ge=0, le=10)
    is_binary: bool = False


class MedicationAdherence(BaseModel):
    """Whether a scheduled (or as-needed) medication was taken"""

    medication_id: int | None = None
    medication_name: str
    was_taken: bool = False
    is_as_needed: bool = False
    notes: str | None = None


class DailyLog(BaseModel):
    """One entry per calendar date"""

    date: date
    mood: int | None = Field(default=None, ge=1, le=10)
    pain_level: int | None = Field(default=None, ge=0, le=10)
    energy_level: int | None = Field(default=None, ge=0, le=10)
    meals: list[str] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    medications_taken: list[str] = Field(default_factory=list)
    medication_adherence: list[MedicationAdherence] = Field(default_factory=list)
    notes: str | None = None
    is_flare_day: bool = False
    weather: str | None = None
    symptom_ratings: list[SymptomRating] = Field(default_factory=list)

    @property
    def medication_adherence_rate(self) -> float | None:
        """Percentage of scheduled medications taken.

        As-needed medications are excluded; ``None`` when nothing was scheduled.
        """
        scheduled = [m for m in self.medication_adherence if not m.is_as_needed]
        if not scheduled:
            return None
        taken = sum(1 for m in scheduled if m.was_taken)
        return taken / len(scheduled) * 100.0

    def rating_for(
        self, symptom_name: str, symptom_id: int | None = None
    ) -> SymptomRating | None:
        """Rating of a symptom, matched by id when both sides have one, else by name."""
        for rating in self.symptom_ratings:
            if symptom_id is not None and rating.symptom_id is not None:
                if rating.symptom_id == symptom_id:
                    return rating
            elif rating.symptom_name == symptom_name:
                return rating
        return None


class TrackedSymptom(BaseModel):
    """Symptom definition from the symptom repository"""

    id: int | None = None
    name: str
    is_binary: bool = False
    order: int = 0


# Metric definitions


class MetricCategory(str, Enum):
    """Display grouping for metrics"""

    CORE_HEALTH = "coreHealth"
    SYMPTOMS = "symptoms"
    MEDICATIONS = "medications"
    LIFESTYLE = "lifestyle"
    ENVIRONMENTAL = "environmental"
    ACTIVITIES = "activities"
    MEALS = "meals"

    @property
    def display_name(self) -> str:
        return _CATEGORY_NAMES[self]


_CATEGORY_NAMES = {
    MetricCategory.CORE_HEALTH: "Core Health",
    MetricCategory.SYMPTOMS: "Symptoms",
    MetricCategory.MEDICATIONS: "Medications",
    MetricCategory.LIFESTYLE: "Lifestyle",
    MetricCategory.ENVIRONMENTAL: "Environmental",
    MetricCategory.ACTIVITIES: "Activities",
    MetricCategory.MEALS: "Meals",
}


class MetricType(str, Enum):
    """Metrics that can be extracted from daily logs"""

    MOOD = "mood"
    PAIN_LEVEL = "painLevel"
    ENERGY_LEVEL = "energyLevel"
    FLARE_DAY = "flareDay"
    MEDICATION_ADHERENCE = "medicationAdherence"
    ACTIVITY_COUNT = "activityCount"
    MEAL_COUNT = "mealCount"
    WEATHER = "weather"
    # 個別アイテムのマーカー (専用の抽出メソッドを使う)
    MEDICATION = "medication"
    ACTIVITY = "activity"
    MEAL = "meal"

    @property
    def display_name(self) -> str:
        return _METRIC_INFO[self][0]

    @property
    def description(self) -> str:
        return _METRIC_INFO[self][1]

    @property
    def icon(self) -> str:
        return _METRIC_INFO[self][2]

    @property
    def category(self) -> MetricCategory:
        return _METRIC_INFO[self][3]

    @property
    def is_individual_item(self) -> bool:
        return self in (MetricType.MEDICATION, MetricType.ACTIVITY, MetricType.MEAL)


_METRIC_INFO: dict[MetricType, tuple[str, str, str, MetricCategory]] = {
    MetricType.MOOD: (
        "Mood",
        "1-10 scale tracking daily mood",
        "😊",
        MetricCategory.CORE_HEALTH,
    ),
    MetricType.PAIN_LEVEL: (
        "Pain Level",
        "0-10 scale tracking pain intensity",
        "🔥",
        MetricCategory.CORE_HEALTH,
    ),
    MetricType.ENERGY_LEVEL: (
        "Energy Level",
        "0-10 scale tracking energy levels",
        "⚡",
        MetricCategory.CORE_HEALTH,
    ),
    MetricType.FLARE_DAY: (
        "Flare Days",
        "Frequency of flare-up days",
        "⚠️",
        MetricCategory.CORE_HEALTH,
    ),
    MetricType.MEDICATION_ADHERENCE: (
        "Medication Adherence",
        "Percentage of medications taken as prescribed",
        "💊",
        MetricCategory.MEDICATIONS,
    ),
    MetricType.ACTIVITY_COUNT: (
        "Activity Count",
        "Number of activities logged per day",
        "🏃",
        MetricCategory.LIFESTYLE,
    ),
    MetricType.MEAL_COUNT: (
        "Meal Count",
        "Number of meals logged per day",
        "🍎",
        MetricCategory.LIFESTYLE,
    ),
    MetricType.WEATHER: (
        "Weather",
        "Daily weather conditions (stormy to sunny scale)",
        "🌤️",
        MetricCategory.ENVIRONMENTAL,
    ),
    MetricType.MEDICATION: (
        "Medication",
        "Whether a specific medication was taken",
        "💊",
        MetricCategory.MEDICATIONS,
    ),
    MetricType.ACTIVITY: (
        "Activity",
        "Whether a specific activity was logged",
        "🏃",
        MetricCategory.ACTIVITIES,
    ),
    MetricType.MEAL: (
        "Meal",
        "Whether a specific meal was logged",
        "🍎",
        MetricCategory.MEALS,
    ),
}


class ItemKind(str, Enum):
    """Kinds of individually tracked items"""

    MEDICATION = "medication"
    ACTIVITY = "activity"
    MEAL = "meal"

    @property
    def metric_type(self) -> MetricType:
        return MetricType(self.value)


# Series points


class ChartDataPoint(BaseModel):
    """A single value of a generic metric series"""

    model_config = ConfigDict(frozen=True)

    date: date
    value: float
    metric_type: MetricType
    metric_name: str
    category: MetricCategory

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChartDataPoint):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def _identity(self) -> tuple:
        return (self.date, self.value, self.metric_type, self.metric_name)


class SymptomDataPoint(BaseModel):
    """A single rating of a symptom series"""

    model_config = ConfigDict(frozen=True)

    date: date
    value: float
    symptom_name: str


class ItemDataPoint(BaseModel):
    """Presence (1.0) or absence (0.0) of a named item on a given day"""

    model_config = ConfigDict(frozen=True)

    date: date
    value: float = Field(ge=0.0, le=1.0)
    item_name: str
    item_kind: ItemKind


class StatisticsTrend(str, Enum):
    """Direction reported by descriptive statistics"""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class ChartStatistics(BaseModel):
    """Descriptive statistics of a series"""

    mean: float
    median: float
    min: float
    max: float
    count: int
    trend: StatisticsTrend
    change_percentage: float

    @classmethod
    def empty(cls) -> "ChartStatistics":
        return cls(
            mean=0.0,
            median=0.0,
            min=0.0,
            max=0.0,
            count=0,
            trend=StatisticsTrend.STABLE,
            change_percentage=0.0,
        )


# Insights


class InsightType(str, Enum):
    """洞察の種類"""

    TREND = "trend"
    ACHIEVEMENT = "achievement"
    PATTERN = "pattern"
    CORRELATION = "correlation"
    WARNING = "warning"
    RECOMMENDATION = "recommendation"


class InsightPriority(IntEnum):
    """洞察の優先度（値が大きいほど重要）"""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class DateInterval(BaseModel):
    """Time span an insight refers to"""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class HealthInsight(BaseModel):
    """健康データの洞察"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: InsightType
    priority: InsightPriority
    title: str
    description: str
    actionable_text: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    relevance_period: DateInterval
    associated_metrics: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=datetime.now)
    is_actionable: bool = False
