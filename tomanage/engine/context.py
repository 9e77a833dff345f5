"""Time-of-day context for recommendations and AI prompts."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tomanage.models.preferences import CurrentContext, DayPeriod, UserPreferences, UserProfile
from tomanage.models.task import enum_to_value
from tomanage.models.timeutil import as_utc, utc_now

logger = logging.getLogger(__name__)

# Indexed by datetime.weekday() (Monday == 0)
DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

MORNING_START_HOUR = 6
AFTERNOON_START_HOUR = 12
EVENING_START_HOUR = 18


def _parse_hour(hhmm: str, default: int) -> int:
    try:
        return int(hhmm.split(":")[0])
    except (AttributeError, ValueError):
        return default


def to_user_time(now: datetime, time_zone: str) -> datetime:
    """Convert an aware instant into the named zone; unknown zones fall back to UTC."""
    if not time_zone or time_zone.upper() == "UTC":
        return now.astimezone(timezone.utc)
    try:
        return now.astimezone(ZoneInfo(time_zone))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone '{time_zone}', using UTC")
        return now.astimezone(timezone.utc)


def get_period(hour: int) -> DayPeriod:
    """Band an hour into morning (6-12), afternoon (12-18) or evening."""
    if MORNING_START_HOUR <= hour < AFTERNOON_START_HOUR:
        return DayPeriod.MORNING
    if AFTERNOON_START_HOUR <= hour < EVENING_START_HOUR:
        return DayPeriod.AFTERNOON
    return DayPeriod.EVENING


def get_current_context(preferences: UserPreferences, now: Optional[datetime] = None) -> CurrentContext:
    """Build the current context from preferences and a clock reading.

    Hours and day names are taken in the user's configured time zone.
    """
    now = to_user_time(as_utc(now) or utc_now(), preferences.time_zone)
    hour = now.hour

    work_start = _parse_hour(preferences.work_hours.start, 9)
    work_end = _parse_hour(preferences.work_hours.end, 17)

    period = get_period(hour)
    if period == DayPeriod.MORNING:
        recommended = preferences.preferred_morning_contexts
    elif period == DayPeriod.AFTERNOON:
        recommended = preferences.preferred_afternoon_contexts
    else:
        recommended = preferences.preferred_evening_contexts

    return CurrentContext(
        current_time=now.strftime("%Y-%m-%d %H:%M:%S"),
        current_hour=hour,
        day_of_week=DAYS_OF_WEEK[now.weekday()],
        is_work_hours=work_start <= hour < work_end,
        predicted_energy=preferences.energy_by_hour.get(hour),
        recommended_contexts=list(recommended),
        period=period,
    )


def get_user_profile(user_id: str, storage, now: Optional[datetime] = None) -> UserProfile:
    """Assemble preferences, current context and learned patterns for a user."""
    preferences = storage.get_preferences(user_id)
    patterns = storage.get_all_patterns(user_id)
    return UserProfile(
        user_id=user_id,
        preferences=preferences,
        current_context=get_current_context(preferences, now),
        patterns=patterns or None,
    )


def format_context_for_prompt(context: CurrentContext) -> str:
    recommended = ", ".join(context.recommended_contexts)
    return "\n".join([
        f"- Time: {context.current_time}",
        f"- Hour: {context.current_hour}",
        f"- Day: {context.day_of_week}",
        f"- Predicted energy: {enum_to_value(context.predicted_energy) or 'unknown'}",
        f"- Work hours: {'Yes' if context.is_work_hours else 'No'}",
        f"- Recommended contexts: {recommended}",
    ])


def format_user_profile_for_prompt(profile: UserProfile) -> str:
    """Render a profile as the markdown block embedded in AI system prompts."""
    preferences = profile.preferences
    lines = [
        "# WHO I AM",
        f"- Role: {preferences.role}",
        f"- Focus areas: {', '.join(preferences.focus_areas)}",
        f"- Current goals: {', '.join(preferences.current_goals)}",
        "",
        "# CURRENT CONTEXT",
        format_context_for_prompt(profile.current_context),
        "",
        "# WORK SCHEDULE",
        f"- Work hours: {preferences.work_hours.start} - {preferences.work_hours.end}",
        f"- Peak focus times: {', '.join(preferences.peak_focus_times)}",
    ]
    prompt = "\n".join(lines)

    if profile.patterns:
        prompt += "\n\n# MY LEARNED PATTERNS\n"
        for pattern_type, data in profile.patterns.items():
            prompt += f"\n## {pattern_type}\n{json.dumps(data, indent=2, default=str)}"

    return prompt
