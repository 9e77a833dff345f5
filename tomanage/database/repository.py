"""Repository layer for task database operations."""

import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from tomanage.models.task import Task
from tomanage.database.models import TaskDB

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for Task database operations."""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, user_id: str, task_id: str) -> Optional[TaskDB]:
        return self.db.query(TaskDB).filter(
            TaskDB.user_id == user_id,
            TaskDB.id == task_id,
        ).first()

    def _next_position(self, user_id: str) -> int:
        current = self.db.query(func.max(TaskDB.position)).filter(TaskDB.user_id == user_id).scalar()
        return 0 if current is None else current + 1

    def create(self, user_id: str, task: Task) -> Task:
        """Append a new task to the user's list."""
        try:
            task_db = TaskDB.from_pydantic(task, user_id=user_id, position=self._next_position(user_id))
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {task.id}: {type(e).__name__}")
            raise

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        """Get task by ID for a specific user."""
        task_db = self._get_row(user_id, task_id)
        return task_db.to_pydantic() if task_db else None

    def get_all(self, user_id: str) -> List[Task]:
        """Get all tasks for a user in list order."""
        tasks_db = self.db.query(TaskDB).filter(
            TaskDB.user_id == user_id,
        ).order_by(TaskDB.position, TaskDB.created_at).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def update(self, user_id: str, task: Task) -> Task:
        """Overwrite an existing task.

        Raises:
            ValueError: If the task does not exist for the user
        """
        task_db = self._get_row(user_id, task.id)
        if not task_db:
            raise ValueError(f"Task {task.id} not found")

        task_db.apply_pydantic(task)
        try:
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Updated task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task {task.id}: {type(e).__name__}")
            raise

    def delete(self, user_id: str, task_id: str) -> bool:
        """Permanently delete a task. Returns False if it did not exist."""
        task_db = self._get_row(user_id, task_id)
        if not task_db:
            return False

        try:
            self.db.delete(task_db)
            self.db.commit()
            logger.debug(f"Deleted task {task_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete task {task_id}: {type(e).__name__}")
            raise

    def replace_all(self, user_id: str, tasks: List[Task]) -> List[Task]:
        """Replace the user's whole task list in one transaction (sync write)."""
        try:
            self.db.query(TaskDB).filter(TaskDB.user_id == user_id).delete(synchronize_session=False)
            for position, task in enumerate(tasks):
                self.db.add(TaskDB.from_pydantic(task, user_id=user_id, position=position))
            self.db.commit()
            logger.debug(f"Replaced task list for user {user_id}: {len(tasks)} task(s)")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to replace tasks for user {user_id}: {type(e).__name__}")
            raise
        return self.get_all(user_id)
