"""Deterministic enrichment of task attributes.

Fills urgency, energy, context type, duration and category on tasks that
lack them, without ever overwriting an explicit value:

1. Side-channel tags decoded at creation/conversion time win over inference
2. Keyword inference is an ordered first-match (context) or a count
   comparison with a tie going to medium (energy)
3. Urgency is derived from due_date and the current instant on every call

All functions are total: malformed input falls back to defaults, never raises.
"""

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Pattern, Tuple

from tomanage.integrations.ticktick_converter import infer_category
from tomanage.models.constants import (
    CRITICAL_WITHIN_HOURS,
    DURATION_TABLE,
    THIS_WEEK_WITHIN_DAYS,
)
from tomanage.models.task import ContextType, EnergyLevel, Task, Urgency, enum_to_value
from tomanage.models.timeutil import as_utc, utc_now

logger = logging.getLogger(__name__)

# Keyword prefixes; a match must start on a word boundary.
HIGH_ENERGY_PATTERNS = [
    re.compile(p) for p in (
        r"\bimplement", r"\bbuild", r"\bdesign", r"\brefactor",
        r"\barchitect", r"\boptimi[sz]", r"\bcomplex", r"\bmigrat",
    )
]
LOW_ENERGY_PATTERNS = [
    re.compile(p) for p in (
        r"\bread", r"\bcheck", r"\breview", r"\bquick", r"\bsimple", r"\bupdate",
    )
]

# Checked top to bottom; the first category with any match wins.
CONTEXT_PATTERNS: List[Tuple[ContextType, Pattern]] = [
    (ContextType.FRONTEND, re.compile(r"\bfront-?end|\breact|\bui\b|\bcss\b|\bcomponent")),
    (ContextType.BACKEND, re.compile(r"\bback-?end|\bapis?\b|\bserver|\bdatabase")),
    (ContextType.INTERVIEW, re.compile(r"\binterview|\bleetcode|\bcoding\s*challenge")),
    (ContextType.MEETING, re.compile(r"\bmeeting|\bcalls?\b|\bstand-?up")),
    (ContextType.REVIEW, re.compile(r"\breview|\bprs?\b|\bpull\s*request")),
    (ContextType.PLANNING, re.compile(r"\bplan|\borgani[sz]e|\bstrategy")),
    (ContextType.LEARNING, re.compile(r"\blearn|\bstudy|\bcourse|\btutorial")),
    (ContextType.ADMIN, re.compile(r"\badmin|\bemail|\bschedul")),
]

HOURS_PATTERN = re.compile(r"\b(\d+(?:\.\d+)?)\s?h(?:ours?|rs?)?\b")
MINUTES_PATTERN = re.compile(r"\b(\d+)\s?m(?:ins?|inutes?)?\b")


def _task_text(task: Task, include_tags: bool = False) -> str:
    parts = [task.title or "", task.description or ""]
    if include_tags:
        parts.extend(task.tags)
    return " ".join(parts).lower()


def compute_urgency(task: Task, now: Optional[datetime] = None) -> Urgency:
    """Bucket a task by how soon it is due.

    Checked top to bottom, first match wins: overdue, critical (within
    4 whole hours), today, tomorrow, this-week (within 7 whole days), future.
    Day boundaries are taken in now's time zone.
    """
    if not task.due_date:
        return Urgency.NONE

    now = as_utc(now) or utc_now()
    due = as_utc(task.due_date).astimezone(now.tzinfo)

    if due < now:
        return Urgency.OVERDUE

    until_due = due - now
    if int(until_due.total_seconds() // 3600) <= CRITICAL_WITHIN_HOURS:
        return Urgency.CRITICAL

    end_of_today = now.replace(hour=23, minute=59, second=59, microsecond=999999)
    if due < end_of_today:
        return Urgency.TODAY

    end_of_tomorrow = end_of_today + timedelta(days=1)
    if due < end_of_tomorrow:
        return Urgency.TOMORROW

    if until_due.days <= THIS_WEEK_WITHIN_DAYS:
        return Urgency.THIS_WEEK

    return Urgency.FUTURE


def _count_matches(text: str, patterns: Iterable[Pattern]) -> int:
    return sum(1 for pattern in patterns if pattern.search(text))


def infer_energy(task: Task) -> EnergyLevel:
    """Infer required energy from title and description keywords.

    Counts how many high-effort and low-effort keywords occur; a tie
    (including zero/zero) is medium.
    """
    text = _task_text(task)
    high_count = _count_matches(text, HIGH_ENERGY_PATTERNS)
    low_count = _count_matches(text, LOW_ENERGY_PATTERNS)

    if high_count > low_count:
        return EnergyLevel.HIGH
    if low_count > high_count:
        return EnergyLevel.LOW
    return EnergyLevel.MEDIUM


def infer_context(task: Task) -> ContextType:
    """Infer the context type from title, description and tags (ordered first match)."""
    text = _task_text(task, include_tags=True)
    for context_type, pattern in CONTEXT_PATTERNS:
        if pattern.search(text):
            return context_type
    return ContextType.GENERAL


def parse_duration_text(text: Optional[str]) -> Optional[int]:
    """Find an explicit ``Nh``/``Nm`` duration in free text, in minutes.

    Hours win over minutes; hours are converted and rounded half up.
    Returns None when nothing usable is found.
    """
    if not text:
        return None
    lowered = text.lower()

    hours_match = HOURS_PATTERN.search(lowered)
    if hours_match:
        minutes = int(math.floor(float(hours_match.group(1)) * 60 + 0.5))
        if minutes > 0:
            return minutes

    minutes_match = MINUTES_PATTERN.search(lowered)
    if minutes_match:
        minutes = int(minutes_match.group(1))
        if minutes > 0:
            return minutes

    return None


def estimate_duration(
    task: Task,
    energy: Optional[str] = None,
    context_type: Optional[str] = None,
) -> int:
    """Estimate task duration in minutes.

    Order: explicit duration in a tag, then in the description, then the
    (context, energy) lookup table.
    """
    for tag in task.tags:
        minutes = parse_duration_text(tag)
        if minutes is not None:
            return minutes

    minutes = parse_duration_text(task.description)
    if minutes is not None:
        return minutes

    energy = enum_to_value(energy or task.energy_required or infer_energy(task))
    context_type = enum_to_value(context_type or task.context_type or infer_context(task))
    row = DURATION_TABLE.get(context_type, DURATION_TABLE[ContextType.GENERAL.value])
    return row[energy]


def enrich_task(task: Task, now: Optional[datetime] = None) -> Task:
    """Fill missing derived fields and recompute urgency.

    Explicit values are never overwritten, so enrich_task(enrich_task(t)) == enrich_task(t)
    for the same now.
    """
    energy = task.energy_required or enum_to_value(infer_energy(task))
    context_type = task.context_type or enum_to_value(infer_context(task))

    updates = {
        "urgency": enum_to_value(compute_urgency(task, now)),
        "energy_required": energy,
        "context_type": context_type,
    }
    if task.estimated_duration is None:
        updates["estimated_duration"] = estimate_duration(task, energy, context_type)
    if task.category is None:
        updates["category"] = enum_to_value(infer_category(task.title, task.tags))

    enriched = Task(**{**task.model_dump(), **updates})
    logger.debug(
        f"Enriched task {task.id}: urgency={enriched.urgency} energy={enriched.energy_required} "
        f"context={enriched.context_type} duration={enriched.estimated_duration}"
    )
    return enriched


def enrich_tasks(tasks: List[Task], now: Optional[datetime] = None) -> List[Task]:
    """Enrich every task against the same instant."""
    now = now or utc_now()
    return [enrich_task(task, now) for task in tasks]
