"""SQLAlchemy database models for toManage."""

from datetime import datetime, timezone
from typing import Optional, Type, TypeVar

from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, PrimaryKeyConstraint

from tomanage.database.database import Base
from tomanage.models.task import ContextType, EnergyLevel, Priority, TaskCategory, enum_to_value
from tomanage.models.timeutil import as_utc

T = TypeVar('T')


def value_to_enum(value: Optional[str], enum_class: Type[T], default: Optional[T]) -> Optional[T]:
    """Convert string to enum with fallback to default."""
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


def to_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC (SQLite drops offsets)."""
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc).replace(tzinfo=None)


def db_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskDB(Base):
    """Database model for Task. Urgency is derived and never stored."""

    __tablename__ = "tasks"
    __table_args__ = (
        PrimaryKeyConstraint("user_id", "id", name="pk_tasks"),
    )

    user_id = Column(String, nullable=False, index=True)
    id = Column(String, nullable=False)

    # Display/merge order within the user's list
    position = Column(Integer, nullable=False, default=0)

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    priority = Column(String, nullable=False, default=Priority.NONE.value)
    tags = Column(JSON, nullable=False, default=list)

    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    energy_required = Column(String, nullable=True)
    estimated_duration = Column(Integer, nullable=True)
    context_type = Column(String, nullable=True)
    category = Column(String, nullable=True)

    external_id = Column(String, nullable=True, index=True)
    external_project_id = Column(String, nullable=True)
    synced = Column(Boolean, nullable=False, default=False)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from tomanage.models.task import Task

        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            completed=bool(self.completed),
            priority=value_to_enum(self.priority, Priority, Priority.NONE),
            tags=list(self.tags or []),
            due_date=self.due_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
            energy_required=value_to_enum(self.energy_required, EnergyLevel, None),
            estimated_duration=self.estimated_duration,
            context_type=value_to_enum(self.context_type, ContextType, None),
            category=value_to_enum(self.category, TaskCategory, None),
            external_id=self.external_id,
            external_project_id=self.external_project_id,
            synced=bool(self.synced),
        )

    def apply_pydantic(self, task) -> None:
        """Copy every stored field from a Pydantic task onto this row."""
        # Pydantic with use_enum_values=True returns strings; enum_to_value handles both
        self.title = task.title
        self.description = task.description
        self.completed = task.completed
        self.priority = enum_to_value(task.priority)
        self.tags = list(task.tags)
        self.due_date = to_db_datetime(task.due_date)
        self.created_at = to_db_datetime(task.created_at)
        self.updated_at = to_db_datetime(task.updated_at)
        self.completed_at = to_db_datetime(task.completed_at)
        self.energy_required = enum_to_value(task.energy_required)
        self.estimated_duration = task.estimated_duration
        self.context_type = enum_to_value(task.context_type)
        self.category = enum_to_value(task.category)
        self.external_id = task.external_id
        self.external_project_id = task.external_project_id
        self.synced = task.synced

    @classmethod
    def from_pydantic(cls, task, user_id: str, position: int = 0):
        """Create database model from Pydantic model."""
        row = cls(id=task.id, user_id=user_id, position=position)
        row.apply_pydantic(task)
        return row


class UserStateDB(Base):
    """Per-user JSON documents keyed by name (preferences, patterns, OAuth state, caches)."""

    __tablename__ = "user_state"
    __table_args__ = (
        PrimaryKeyConstraint("user_id", "key", name="pk_user_state"),
    )

    user_id = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=db_now, onupdate=db_now)


class AnalyticsEntryDB(Base):
    """Append-only task completion analytics."""

    __tablename__ = "analytics_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    task_id = Column(String, nullable=False)
    completed_at = Column(String, nullable=False)
    time_of_day = Column(String, nullable=False)
    day_of_week = Column(String, nullable=False)
    energy_level = Column(String, nullable=False)
    context_type = Column(String, nullable=False)
    estimated_duration = Column(Integer, nullable=True)
    actual_duration = Column(Integer, nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=db_now)

    def to_pydantic(self):
        from tomanage.models.preferences import AnalyticsEntry

        return AnalyticsEntry(
            task_id=self.task_id,
            completed_at=self.completed_at,
            time_of_day=self.time_of_day,
            day_of_week=self.day_of_week,
            energy_level=value_to_enum(self.energy_level, EnergyLevel, EnergyLevel.MEDIUM),
            context_type=self.context_type,
            estimated_duration=self.estimated_duration,
            actual_duration=self.actual_duration,
        )

    @classmethod
    def from_pydantic(cls, entry, user_id: str):
        return cls(
            user_id=user_id,
            task_id=entry.task_id,
            completed_at=entry.completed_at,
            time_of_day=entry.time_of_day,
            day_of_week=entry.day_of_week,
            energy_level=enum_to_value(entry.energy_level),
            context_type=entry.context_type,
            estimated_duration=entry.estimated_duration,
            actual_duration=entry.actual_duration,
        )


class TickTickTokenDB(Base):
    """Encrypted TickTick access token per user."""

    __tablename__ = "ticktick_tokens"

    user_id = Column(String, primary_key=True)
    access_token_encrypted = Column(String, nullable=False)
    scopes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=db_now)
    updated_at = Column(DateTime, nullable=False, default=db_now, onupdate=db_now)
