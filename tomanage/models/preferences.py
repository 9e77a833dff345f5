"""User preference, context, pattern and analytics models for toManage."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from tomanage.models.task import EnergyLevel


class PatternType(str, Enum):
    """Kinds of learned behaviour the assistant may record."""
    PRODUCTIVITY_BY_HOUR = "productivity_by_hour"
    TASK_COMPLETION_PATTERNS = "task_completion_patterns"
    ENERGY_PATTERNS = "energy_patterns"
    CONTEXT_PREFERENCES = "context_preferences"
    LEARNED_BEHAVIORS = "learned_behaviors"


class DayPeriod(str, Enum):
    """Time-of-day band used to pick preferred contexts."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class WorkHours(BaseModel):
    """Work-hour window as HH:MM strings."""
    start: str = Field("09:00", description="Start of work day (HH:MM)")
    end: str = Field("17:00", description="End of work day (HH:MM)")


def _default_energy_by_hour() -> Dict[int, EnergyLevel]:
    return {
        9: EnergyLevel.HIGH,
        10: EnergyLevel.HIGH,
        11: EnergyLevel.HIGH,
        12: EnergyLevel.MEDIUM,
        13: EnergyLevel.MEDIUM,
        14: EnergyLevel.HIGH,
        15: EnergyLevel.HIGH,
        16: EnergyLevel.MEDIUM,
        17: EnergyLevel.LOW,
        18: EnergyLevel.LOW,
        19: EnergyLevel.LOW,
        20: EnergyLevel.MEDIUM,
    }


class UserPreferences(BaseModel):
    """Per-user preferences singleton. Replaced wholesale on save."""

    role: str = Field("Software Engineer", description="What the user does")
    focus_areas: List[str] = Field(default_factory=list)
    current_goals: List[str] = Field(default_factory=list)
    work_hours: WorkHours = Field(default_factory=WorkHours)
    peak_focus_times: List[str] = Field(default_factory=lambda: ["09:00-12:00", "14:00-16:00"])
    energy_by_hour: Dict[int, EnergyLevel] = Field(
        default_factory=_default_energy_by_hour,
        description="Hour of day (0-23) to expected energy level",
    )
    preferred_morning_contexts: List[str] = Field(default_factory=lambda: ["frontend", "architecture"])
    preferred_afternoon_contexts: List[str] = Field(default_factory=lambda: ["review", "meeting", "planning"])
    preferred_evening_contexts: List[str] = Field(default_factory=lambda: ["learning", "admin"])
    time_zone: str = Field("UTC", description="IANA time zone used for the user's calendar")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class CurrentContext(BaseModel):
    """Time-derived context. Computed per request, never stored."""

    current_time: str
    current_hour: int
    day_of_week: str
    is_work_hours: bool
    predicted_energy: Optional[EnergyLevel] = None
    recommended_contexts: List[str] = Field(default_factory=list)
    period: DayPeriod

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class UserProfile(BaseModel):
    """Everything the assistant knows about a user right now."""

    user_id: str
    preferences: UserPreferences
    current_context: CurrentContext
    patterns: Optional[Dict[str, Dict[str, Any]]] = None


class AnalyticsEntry(BaseModel):
    """One completed-task observation, appended by the assistant."""

    task_id: str
    completed_at: str = Field(..., description="ISO timestamp")
    time_of_day: str
    day_of_week: str
    energy_level: EnergyLevel
    context_type: str
    estimated_duration: Optional[int] = Field(None, description="Minutes")
    actual_duration: Optional[int] = Field(None, description="Minutes")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
