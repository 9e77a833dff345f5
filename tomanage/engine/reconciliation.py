"""Reconciliation of a fresh TickTick fetch with the local task list.

Policy: external data wins for synced tasks, except the local id which
stays stable. Local-only tasks (never pushed) are always preserved.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from tomanage.models.task import Task

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync cycle."""
    tasks: List[Task] = field(default_factory=list)
    fetched_count: int = 0
    last_sync: Optional[datetime] = None


def merge_tasks(fetched: List[Task], local: List[Task]) -> List[Task]:
    """Merge fetched external tasks into the local list.

    - A fetched task whose external_id matches a local task keeps the local
      id and adopts every fetched field.
    - An unmatched fetched task becomes a new local task (id = external id).
    - Duplicate external ids in the fetch collapse to the first occurrence.
    - Local tasks without an external_id are appended, unchanged, after the
      merged set.
    - Local synced tasks missing from the fetch are dropped.

    Args:
        fetched: Converted (and usually enriched) tasks from TickTick
        local: Current local task list

    Returns:
        Merged task list
    """
    local_by_external: Dict[str, Task] = {}
    for task in local:
        if task.external_id and task.external_id not in local_by_external:
            local_by_external[task.external_id] = task

    merged: List[Task] = []
    seen_external_ids = set()
    for remote in fetched:
        external_id = remote.external_id or remote.id
        if external_id in seen_external_ids:
            logger.debug(f"Skipping duplicate external task {external_id}")
            continue
        seen_external_ids.add(external_id)

        existing = local_by_external.get(external_id)
        local_id = existing.id if existing else external_id
        merged.append(remote.model_copy(update={
            "id": local_id,
            "external_id": external_id,
            "synced": True,
        }))

    dropped = [t.id for t in local if t.external_id and t.external_id not in seen_external_ids]
    if dropped:
        logger.info(f"Dropping {len(dropped)} local task(s) no longer present in TickTick")

    unsynced = [t for t in local if not t.external_id]
    return merged + unsynced
