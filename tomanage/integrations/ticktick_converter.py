"""Conversion between TickTick task records and toManage tasks.

TickTick records use camelCase keys, numeric priority/status codes and only
plain string tags; energy and duration travel as side-channel pseudo-tags.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tomanage.models.constants import (
    TICKTICK_PRIORITY_HIGH,
    TICKTICK_PRIORITY_LOW,
    TICKTICK_PRIORITY_MEDIUM,
    TICKTICK_PRIORITY_NONE,
    TICKTICK_STATUS_ACTIVE,
    TICKTICK_STATUS_COMPLETED,
)
from tomanage.models.side_channel import (
    CATEGORY_PREFIX,
    encode_side_channel_tags,
)
from tomanage.models.task import Priority, Task, TaskCategory, enum_to_value
from tomanage.models.task_factory import create_task
from tomanage.models.timeutil import as_utc

logger = logging.getLogger(__name__)

TICKTICK_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S+0000"

_PRIORITY_TO_TICKTICK = {
    Priority.NONE.value: TICKTICK_PRIORITY_NONE,
    Priority.LOW.value: TICKTICK_PRIORITY_LOW,
    Priority.MEDIUM.value: TICKTICK_PRIORITY_MEDIUM,
    Priority.HIGH.value: TICKTICK_PRIORITY_HIGH,
}

_CATEGORY_VALUES = [c.value for c in TaskCategory]

# +0000 / -0530 style offsets that fromisoformat may not accept
_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def priority_to_ticktick(priority: Optional[str]) -> int:
    """Map none/low/medium/high to TickTick's 0/1/3/5."""
    return _PRIORITY_TO_TICKTICK.get(enum_to_value(priority), TICKTICK_PRIORITY_NONE)


def _as_code(value: Any) -> Optional[int]:
    """Coerce a numeric TickTick code; None when it is missing or not a number."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric TickTick code: {value!r}")
        return None


def priority_from_ticktick(value: Any) -> Priority:
    """Map TickTick priority codes back; unknown or malformed codes become none."""
    value = _as_code(value)
    if value is None:
        return Priority.NONE
    if value >= TICKTICK_PRIORITY_HIGH:
        return Priority.HIGH
    if value == TICKTICK_PRIORITY_MEDIUM:
        return Priority.MEDIUM
    if value == TICKTICK_PRIORITY_LOW:
        return Priority.LOW
    return Priority.NONE


def status_to_ticktick(completed: bool) -> int:
    return TICKTICK_STATUS_COMPLETED if completed else TICKTICK_STATUS_ACTIVE


def status_from_ticktick(value: Any) -> bool:
    return _as_code(value) == TICKTICK_STATUS_COMPLETED


def parse_ticktick_date(value: Optional[str]) -> Optional[datetime]:
    """Leniently parse an ISO-8601 timestamp.

    Accepts ``Z``, ``+00:00`` and TickTick's ``+0000`` offsets as well as
    plain dates. Returns None for anything unparseable.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _COMPACT_OFFSET.sub(r"\1:\2", text) if "T" in text else text
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.debug(f"Ignoring unparseable TickTick date: {value!r}")
        return None


def format_ticktick_date(value: Optional[datetime]) -> Optional[str]:
    """Format a timestamp the way the TickTick open API expects (UTC, +0000)."""
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc).strftime(TICKTICK_DATE_FORMAT)


def infer_category(title: Optional[str], tags: Optional[List[str]]) -> TaskCategory:
    """Coarse category from title and tags.

    An explicit ``category:`` tag wins; otherwise interview, learning and
    personal keywords are checked in that order and everything else is work.
    """
    lower_title = (title or "").lower()
    lower_tags = [t.strip().lower() for t in tags or []]

    for tag in lower_tags:
        if tag.startswith(CATEGORY_PREFIX):
            tagged = tag[len(CATEGORY_PREFIX):].strip()
            if tagged in _CATEGORY_VALUES:
                return TaskCategory(tagged)
            break

    if "interview" in lower_tags or any(k in lower_title for k in ("interview", "leetcode", "dsa")):
        return TaskCategory.INTERVIEW
    if "learning" in lower_tags or any(k in lower_title for k in ("learn", "study", "course")):
        return TaskCategory.LEARNING
    if "personal" in lower_tags or any(k in lower_title for k in ("home", "family")):
        return TaskCategory.PERSONAL
    return TaskCategory.WORK


def task_from_external(record: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """Build a Task from a TickTick task record.

    The TickTick id becomes both the provisional local id and external_id;
    reconciliation swaps in the existing local id for known tasks.
    """
    raw_tags = [t for t in (record.get("tags") or []) if isinstance(t, str)]
    title = record.get("title") or ""
    completed = status_from_ticktick(record.get("status"))

    partial = {
        "id": record.get("id"),
        "title": title,
        "description": record.get("content") or None,
        "completed": completed,
        "priority": priority_from_ticktick(record.get("priority")).value,
        "tags": raw_tags,
        "due_date": parse_ticktick_date(record.get("dueDate")),
        "created_at": parse_ticktick_date(record.get("createdTime")),
        "completed_at": parse_ticktick_date(record.get("completedTime")) if completed else None,
        "category": infer_category(title, raw_tags).value,
        "external_id": record.get("id"),
        "external_project_id": record.get("projectId"),
        "synced": True,
    }
    return create_task(partial, now=now)


def task_to_external(task: Task) -> Dict[str, Any]:
    """Build a TickTick task payload from a Task.

    Energy and duration are appended as pseudo-tags so they survive the
    round trip; ids are included only when the task is already linked.
    """
    payload: Dict[str, Any] = {
        "title": task.title,
        "content": task.description or "",
        "priority": priority_to_ticktick(task.priority),
        "status": status_to_ticktick(task.completed),
        "tags": encode_side_channel_tags(
            task.tags,
            energy_required=enum_to_value(task.energy_required),
            estimated_duration=task.estimated_duration,
        ),
    }
    if task.external_id:
        payload["id"] = task.external_id
    if task.external_project_id:
        payload["projectId"] = task.external_project_id
    if task.due_date:
        payload["dueDate"] = format_ticktick_date(task.due_date)
    if task.completed and task.completed_at:
        payload["completedTime"] = format_ticktick_date(task.completed_at)
    return payload
