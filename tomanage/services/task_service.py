"""Local-first task operations with TickTick push and sync.

Mutations are applied to the local store first. Pushing the change to
TickTick is a best-effort side effect: failures are logged and the local
change stays. Sync fetches everything from TickTick before touching local
state, then writes the merged list in one transaction.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from tomanage.database.repository import TaskRepository
from tomanage.engine.context import to_user_time
from tomanage.engine.enrichment import enrich_task, enrich_tasks
from tomanage.engine.reconciliation import SyncResult, merge_tasks
from tomanage.errors import ExternalServiceError, NotConnectedError, NotFoundError
from tomanage.integrations.ticktick import TickTickClient
from tomanage.integrations.ticktick_converter import task_from_external, task_to_external
from tomanage.models.constants import DEFAULT_CACHE_MAX_AGE_SECONDS
from tomanage.models.task import Task
from tomanage.models.task_factory import apply_update, create_task, toggle_complete
from tomanage.models.timeutil import as_utc, utc_now

logger = logging.getLogger(__name__)


class UserLockRegistry:
    """One lock per user id; serialises mutations for a single user."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock


class TaskService:
    """Task store operations for one app instance (shared across users)."""

    def __init__(
        self,
        session_factory,
        storage,
        locks: UserLockRegistry,
        client_factory: Callable[[str], Any] = TickTickClient,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.locks = locks
        self.client_factory = client_factory

    # TickTick client helpers

    def _client(self, user_id: str):
        token = self.storage.get_ticktick_token(user_id)
        return self.client_factory(token) if token else None

    def _require_client(self, user_id: str):
        client = self._client(user_id)
        if client is None:
            raise NotConnectedError("TickTick is not connected")
        return client

    def _push_client(self, user_id: str):
        try:
            return self._client(user_id)
        except RuntimeError as e:
            logger.error(f"TickTick token unavailable for push: {type(e).__name__}")
            return None

    def _user_now(self, user_id: str, now: Optional[datetime] = None) -> datetime:
        """The instant in the user's configured time zone (urgency day boundaries follow it)."""
        return to_user_time(as_utc(now) or utc_now(), self.storage.get_preferences(user_id).time_zone)

    # Reads

    def list_tasks(self, user_id: str, now: Optional[datetime] = None) -> List[Task]:
        """All tasks in list order, with urgency recomputed for now."""
        with self.session_factory() as db:
            tasks = TaskRepository(db).get_all(user_id)
        return enrich_tasks(tasks, self._user_now(user_id, now))

    def get_task(self, user_id: str, task_id: str, now: Optional[datetime] = None) -> Task:
        with self.session_factory() as db:
            task = TaskRepository(db).get(user_id, task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return enrich_task(task, self._user_now(user_id, now))

    # Mutations

    def add_task(self, user_id: str, partial: Dict[str, Any], now: Optional[datetime] = None) -> Task:
        """Create, enrich and store a task, then push it to TickTick."""
        now = now or utc_now()
        local_now = self._user_now(user_id, now)
        task = enrich_task(create_task(partial, now=now), local_now)
        with self.locks.lock_for(user_id):
            with self.session_factory() as db:
                stored = TaskRepository(db).create(user_id, task)
            stored = self._push_new_or_update(user_id, stored)
        logger.info(f"Added task {stored.id} for user {user_id}")
        return enrich_task(stored, local_now)

    def update_task(self, user_id: str, task_id: str, updates: Dict[str, Any], now: Optional[datetime] = None) -> Task:
        """Apply a partial update, then push it to TickTick."""
        now = now or utc_now()
        local_now = self._user_now(user_id, now)
        with self.locks.lock_for(user_id):
            with self.session_factory() as db:
                repo = TaskRepository(db)
                existing = repo.get(user_id, task_id)
                if existing is None:
                    raise NotFoundError(f"Task {task_id} not found")
                updated = enrich_task(apply_update(existing, updates, now=now), local_now)
                stored = repo.update(user_id, updated)
            stored = self._push_change(user_id, existing, stored)
        return enrich_task(stored, local_now)

    def toggle_complete(self, user_id: str, task_id: str, now: Optional[datetime] = None) -> Task:
        """Flip the completed flag, then push it to TickTick."""
        now = now or utc_now()
        local_now = self._user_now(user_id, now)
        with self.locks.lock_for(user_id):
            with self.session_factory() as db:
                repo = TaskRepository(db)
                existing = repo.get(user_id, task_id)
                if existing is None:
                    raise NotFoundError(f"Task {task_id} not found")
                stored = repo.update(user_id, toggle_complete(existing, now=now))
            stored = self._push_change(user_id, existing, stored)
        return enrich_task(stored, local_now)

    def delete_task(self, user_id: str, task_id: str) -> None:
        """Delete locally, then delete in TickTick if the task was linked."""
        with self.locks.lock_for(user_id):
            with self.session_factory() as db:
                repo = TaskRepository(db)
                existing = repo.get(user_id, task_id)
                if existing is None or not repo.delete(user_id, task_id):
                    raise NotFoundError(f"Task {task_id} not found")

            if existing.external_id and existing.external_project_id:
                client = self._push_client(user_id)
                if client is not None:
                    try:
                        client.delete_task(existing.external_project_id, existing.external_id)
                    except ExternalServiceError as e:
                        logger.error(f"Failed to delete task {task_id} in TickTick: {type(e).__name__}")

    # Push helpers (best effort)

    def _push_new_or_update(self, user_id: str, task: Task) -> Task:
        client = self._push_client(user_id)
        if client is None:
            return task
        try:
            if task.external_id:
                client.update_task(task.external_id, task_to_external(task))
                return task
            created = client.create_task(task_to_external(task))
        except ExternalServiceError as e:
            logger.error(f"Failed to push task {task.id} to TickTick: {type(e).__name__}")
            return task

        if not created.get("id"):
            return task
        linked = task.model_copy(update={
            "external_id": created["id"],
            "external_project_id": created.get("projectId"),
            "synced": True,
        })
        with self.session_factory() as db:
            return TaskRepository(db).update(user_id, linked)

    def _push_change(self, user_id: str, before: Task, after: Task) -> Task:
        if not after.external_id:
            return self._push_new_or_update(user_id, after)
        client = self._push_client(user_id)
        if client is None:
            return after
        try:
            if after.completed and not before.completed and after.external_project_id:
                client.complete_task(after.external_project_id, after.external_id)
            else:
                client.update_task(after.external_id, task_to_external(after))
        except ExternalServiceError as e:
            logger.error(f"Failed to push task {after.id} to TickTick: {type(e).__name__}")
        return after

    # Sync

    def sync(self, user_id: str, now: Optional[datetime] = None) -> SyncResult:
        """Fetch all TickTick tasks and merge them into the local list.

        Raises:
            NotConnectedError: If the user has no TickTick token
            ExternalServiceError: If the fetch fails (local state untouched)
        """
        now = now or utc_now()
        client = self._require_client(user_id)
        local_now = self._user_now(user_id, now)
        records = client.list_tasks()
        self.storage.save_task_cache(user_id, records, fetched_at=now)

        fetched = enrich_tasks([task_from_external(record, now=now) for record in records], local_now)
        with self.locks.lock_for(user_id):
            with self.session_factory() as db:
                repo = TaskRepository(db)
                merged = merge_tasks(fetched, repo.get_all(user_id))
                stored = repo.replace_all(user_id, merged)
            self.storage.set_last_sync(user_id, now)

        logger.info(f"Synced {len(records)} TickTick task(s) for user {user_id}")
        return SyncResult(tasks=enrich_tasks(stored, local_now), fetched_count=len(records), last_sync=now)

    def get_external_tasks(
        self,
        user_id: str,
        force_refresh: bool = False,
        max_age_seconds: int = DEFAULT_CACHE_MAX_AGE_SECONDS,
        now: Optional[datetime] = None,
    ) -> List[Task]:
        """TickTick tasks from the cached snapshot, refreshed when stale or forced."""
        now = now or utc_now()
        cache = self.storage.get_task_cache(user_id)
        if force_refresh or cache.is_stale(now, max_age_seconds):
            records = self._require_client(user_id).list_tasks()
            cache = self.storage.save_task_cache(user_id, records, fetched_at=now)
        return enrich_tasks([task_from_external(record, now=now) for record in cache.tasks], self._user_now(user_id, now))
