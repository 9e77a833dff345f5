"""Task creation and mutation helpers for toManage.

This module centralizes task creation logic so every entry point (API,
TickTick import, AI extraction) applies the same defaults and enforces the
same field invariants.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from tomanage.errors import ValidationError
from tomanage.models.constants import DEFAULT_PRIORITY
from tomanage.models.side_channel import split_side_channel_tags
from tomanage.models.task import Task
from tomanage.models.timeutil import utc_now

# Fields a side-channel tag may fill
_SIDE_CHANNEL_FIELDS = ("energy_required", "estimated_duration", "category", "context_type")

# Fields fixed at creation time
_IMMUTABLE_FIELDS = ("id", "created_at")

# Fields an update may not clear
_NON_NULLABLE_FIELDS = ("title", "completed", "priority", "tags", "synced")


def _decode_tags(data: Dict[str, Any], overwrite: bool) -> None:
    """Strip side-channel tokens from data['tags'] and fill the structured fields.

    Explicit values supplied alongside the tags always win. With overwrite=True
    (updates), decoded values replace whatever the task held before, unless the
    same update also sets the field.
    """
    regular, decoded = split_side_channel_tags(data.get("tags"))
    data["tags"] = regular
    for field_name in _SIDE_CHANNEL_FIELDS:
        value = getattr(decoded, field_name)
        if value is None:
            continue
        if overwrite and field_name not in data:
            data[field_name] = value
        elif data.get(field_name) is None:
            data[field_name] = value


def _enforce_completion(data: Dict[str, Any], was_completed: bool, now: datetime) -> None:
    """completed_at is set if and only if completed is true."""
    completed = bool(data.get("completed"))
    data["completed"] = completed
    if not completed:
        data["completed_at"] = None
    elif not was_completed or data.get("completed_at") is None:
        data["completed_at"] = data.get("completed_at") or now


def create_task(partial: Optional[Dict[str, Any]] = None, now: Optional[datetime] = None) -> Task:
    """Create a task with defaults, preserving every field in partial.

    Args:
        partial: Any subset of Task fields (side-channel tags allowed)
        now: Creation instant (defaults to current UTC time)

    Returns:
        Task with id, created_at, priority, tags and synced filled
    """
    now = now or utc_now()
    data = dict(partial or {})

    _decode_tags(data, overwrite=False)

    if not data.get("id"):
        data["id"] = str(uuid.uuid4())
    data["created_at"] = data.get("created_at") or now
    data["updated_at"] = data.get("updated_at") or now
    if data.get("priority") is None:
        data["priority"] = DEFAULT_PRIORITY
    if data.get("tags") is None:
        data["tags"] = []
    data["synced"] = bool(data.get("external_id")) or bool(data.get("synced", False))

    # A record that arrives already completed keeps its own timestamp
    _enforce_completion(data, was_completed=False, now=now)

    return Task(**data)


def apply_update(task: Task, updates: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """Shallow-merge updates into task and re-validate.

    Raises:
        ValidationError: If updates try to change id or created_at, clear a
            required field, or produce an invalid task
    """
    now = now or utc_now()
    updates = dict(updates)

    for field_name in _IMMUTABLE_FIELDS:
        if field_name in updates and updates[field_name] != getattr(task, field_name):
            raise ValidationError(f"Task field '{field_name}' cannot be changed")
    for field_name in _NON_NULLABLE_FIELDS:
        if field_name in updates and updates[field_name] is None:
            raise ValidationError(f"Task field '{field_name}' cannot be null")

    if "tags" in updates:
        _decode_tags(updates, overwrite=True)

    merged = {**task.model_dump(), **updates}
    _enforce_completion(merged, was_completed=task.completed, now=now)
    if merged.get("external_id"):
        merged["synced"] = True
    merged["updated_at"] = now

    try:
        return Task(**merged)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid task update: {e.errors()[0].get('msg')}") from e


def toggle_complete(task: Task, now: Optional[datetime] = None) -> Task:
    """Flip the completed flag (and completed_at with it)."""
    return apply_update(task, {"completed": not task.completed}, now=now)
