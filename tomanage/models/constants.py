"""Constants for toManage.

This module centralizes all magic numbers and lookup tables used throughout the application.
"""

from tomanage.models.task import ContextType, EnergyLevel, Priority


# Task defaults
DEFAULT_PRIORITY = Priority.NONE
DEFAULT_FALLBACK_DURATION_MINUTES = 30  # Used only in rationale text when nothing is known

# Urgency thresholds
CRITICAL_WITHIN_HOURS = 4
THIS_WEEK_WITHIN_DAYS = 7

# Recommendation thresholds
QUICK_WIN_MAX_MINUTES = 30
DEEP_WORK_MIN_MINUTES = 60

# Duration estimate in minutes by (context, energy). Encodes how long a
# categorized, energy-rated work item usually takes.
DURATION_TABLE = {
    ContextType.FRONTEND.value: {"high": 120, "medium": 60, "low": 30},
    ContextType.BACKEND.value: {"high": 150, "medium": 90, "low": 45},
    ContextType.INTERVIEW.value: {"high": 90, "medium": 60, "low": 30},
    ContextType.MEETING.value: {"high": 60, "medium": 45, "low": 30},
    ContextType.REVIEW.value: {"high": 60, "medium": 40, "low": 20},
    ContextType.PLANNING.value: {"high": 90, "medium": 60, "low": 30},
    ContextType.LEARNING.value: {"high": 120, "medium": 90, "low": 45},
    ContextType.ADMIN.value: {"high": 45, "medium": 30, "low": 15},
    ContextType.GENERAL.value: {"high": 90, "medium": 60, "low": 30},
    # Only reachable through an explicit context: tag
    ContextType.ARCHITECTURE.value: {"high": 120, "medium": 90, "low": 45},
}

# Sort weights (higher sorts first)
PRIORITY_WEIGHT = {
    Priority.HIGH.value: 3,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 1,
    Priority.NONE.value: 0,
}

# Urgency severity (lower = more severe)
URGENCY_SEVERITY = {
    "overdue": 0,
    "critical": 1,
    "today": 2,
    "tomorrow": 3,
    "this-week": 4,
    "future": 5,
    "none": 6,
}

ENERGY_LEVELS = [EnergyLevel.LOW.value, EnergyLevel.MEDIUM.value, EnergyLevel.HIGH.value]

# TickTick wire constants
TICKTICK_STATUS_ACTIVE = 0
TICKTICK_STATUS_COMPLETED = 2

TICKTICK_PRIORITY_NONE = 0
TICKTICK_PRIORITY_LOW = 1
TICKTICK_PRIORITY_MEDIUM = 3
TICKTICK_PRIORITY_HIGH = 5

# External snapshot staleness
DEFAULT_CACHE_MAX_AGE_SECONDS = 60

# Timeouts (seconds) for external calls
DEFAULT_TICKTICK_TIMEOUT_SEC = 10
DEFAULT_OPENAI_TIMEOUT_SEC = 30

# AI tool loop
MAX_TOOL_ITERATIONS = 10
