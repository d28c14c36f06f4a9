"""
Time period definitions

Named analysis windows with their calendar ranges and chart aggregation level.
"""

from datetime import date, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict


class AggregationLevel(str, Enum):
    """Granularity applied to generic metric series"""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class DateRange(BaseModel):
    """Inclusive calendar date range"""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class TimePeriod(str, Enum):
    """Supported analysis windows"""

    WEEK = "7D"
    MONTH = "30D"
    THREE_MONTH = "3M"
    SIX_MONTH = "6M"
    YEAR = "1Y"
    ALL_TIME = "All"

    @property
    def days(self) -> int | None:
        """Window length in days (``None`` for all time)"""
        return _PERIOD_DAYS[self]

    @property
    def display_name(self) -> str:
        return _PERIOD_TEXT[self][0]

    @property
    def short_display_name(self) -> str:
        return self.value

    @property
    def timeframe_text(self) -> str:
        """Phrase used in insight descriptions"""
        return _PERIOD_TEXT[self][1]

    @property
    def aggregation_level(self) -> AggregationLevel:
        if self in (TimePeriod.WEEK, TimePeriod.MONTH):
            return AggregationLevel.DAILY
        if self in (TimePeriod.THREE_MONTH, TimePeriod.SIX_MONTH):
            return AggregationLevel.WEEKLY
        return AggregationLevel.MONTHLY

    def date_range(self, today: date | None = None) -> DateRange | None:
        """Calendar range ending today, ``None`` for all time"""
        days = self.days
        if days is None:
            return None
        end = today or date.today()
        return DateRange(start=end - timedelta(days=days - 1), end=end)

    def previous_period_range(self, today: date | None = None) -> DateRange | None:
        """Same-length window immediately before :meth:`date_range`"""
        current = self.date_range(today)
        if current is None:
            return None
        previous_end = current.start - timedelta(days=1)
        return DateRange(
            start=previous_end - timedelta(days=current.days - 1), end=previous_end
        )

    @classmethod
    def suggested_periods(
        cls, data_start: date | None, today: date | None = None
    ) -> list["TimePeriod"]:
        """Periods already covered by the recorded history, always ending with all time"""
        if data_start is None:
            return list(cls)

        days_since_start = ((today or date.today()) - data_start).days
        suggested = [
            period
            for period in cls
            if period.days is not None and days_since_start >= period.days
        ]
        suggested.append(cls.ALL_TIME)
        return suggested


_PERIOD_DAYS: dict[TimePeriod, int | None] = {
    TimePeriod.WEEK: 7,
    TimePeriod.MONTH: 30,
    TimePeriod.THREE_MONTH: 90,
    TimePeriod.SIX_MONTH: 180,
    TimePeriod.YEAR: 365,
    TimePeriod.ALL_TIME: None,
}

_PERIOD_TEXT: dict[TimePeriod, tuple[str, str]] = {
    TimePeriod.WEEK: ("7 Days", "past week"),
    TimePeriod.MONTH: ("30 Days", "past month"),
    TimePeriod.THREE_MONTH: ("3 Months", "past 3 months"),
    TimePeriod.SIX_MONTH: ("6 Months", "past 6 months"),
    TimePeriod.YEAR: ("1 Year", "past year"),
    TimePeriod.ALL_TIME: ("All Time", "entire tracking period"),
}
