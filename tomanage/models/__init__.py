"""Data models for toManage."""

from tomanage.models.task import (
    Task,
    Priority,
    EnergyLevel,
    ContextType,
    Urgency,
    TaskCategory,
    TaskStatus,
)
from tomanage.models.preferences import (
    UserPreferences,
    WorkHours,
    CurrentContext,
    UserProfile,
    AnalyticsEntry,
    PatternType,
    DayPeriod,
)

__all__ = [
    "Task",
    "Priority",
    "EnergyLevel",
    "ContextType",
    "Urgency",
    "TaskCategory",
    "TaskStatus",
    "UserPreferences",
    "WorkHours",
    "CurrentContext",
    "UserProfile",
    "AnalyticsEntry",
    "PatternType",
    "DayPeriod",
]
