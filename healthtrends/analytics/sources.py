"""
Data source interfaces consumed by the analytics engine.

The engine never persists anything; log and symptom repositories are injected.
"""

from datetime import date
from typing import Protocol

from .models import DailyLog, TrackedSymptom


class LogSource(Protocol):
    """Interface for the daily log repository."""

    def get_logs(self) -> list[DailyLog]:
        """Return the full, unordered log history."""
        ...


class SymptomSource(Protocol):
    """Interface for the tracked symptom repository."""

    def get_tracked_symptoms(self) -> list[TrackedSymptom]:
        """Return the current symptom definitions."""
        ...


class InMemoryLogSource:
    """List-backed log source keyed by date."""

    def __init__(self, logs: list[DailyLog] | None = None):
        self._logs: dict[date, DailyLog] = {}
        for log in logs or []:
            self.upsert(log)

    def get_logs(self) -> list[DailyLog]:
        return list(self._logs.values())

    def upsert(self, log: DailyLog) -> None:
        """Insert or replace the log for ``log.date``."""
        self._logs[log.date] = log

    def remove(self, day: date) -> bool:
        return self._logs.pop(day, None) is not None


class InMemorySymptomSource:
    """List-backed symptom source."""

    def __init__(self, symptoms: list[TrackedSymptom] | None = None):
        self._symptoms = list(symptoms or [])

    def get_tracked_symptoms(self) -> list[TrackedSymptom]:
        return sorted(self._symptoms, key=lambda s: s.order)

    def add(self, symptom: TrackedSymptom) -> None:
        self._symptoms.append(symptom)
