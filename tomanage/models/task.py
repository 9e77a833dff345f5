"""Task data model for toManage."""

from datetime import datetime
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field, field_validator

from tomanage.models.timeutil import as_utc


class Priority(str, Enum):
    """Canonical 4-level priority scale."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EnergyLevel(str, Enum):
    """Energy a task requires (or a person has)."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ContextType(str, Enum):
    """Kind of work a task is."""
    FRONTEND = "frontend"
    BACKEND = "backend"
    INTERVIEW = "interview"
    MEETING = "meeting"
    REVIEW = "review"
    PLANNING = "planning"
    LEARNING = "learning"
    ADMIN = "admin"
    ARCHITECTURE = "architecture"
    GENERAL = "general"


class Urgency(str, Enum):
    """Urgency bucket derived from the due date. Never set by users."""
    OVERDUE = "overdue"
    CRITICAL = "critical"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this-week"
    FUTURE = "future"
    NONE = "none"


class TaskCategory(str, Enum):
    """Coarse life-area category (narrower than ContextType)."""
    WORK = "work"
    PERSONAL = "personal"
    INTERVIEW = "interview"
    LEARNING = "learning"


class TaskStatus(str, Enum):
    """Wire-format view of the completed flag."""
    PENDING = "pending"
    COMPLETED = "completed"


class Task(BaseModel):
    """Canonical Task model."""

    id: str = Field(..., description="Locally-unique task identifier, stable across edits")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    completed: bool = Field(False, description="Whether the task is done")
    priority: Priority = Field(Priority.NONE, description="Task priority")
    tags: List[str] = Field(default_factory=list, description="User-visible tags (side-channel tokens stripped)")
    due_date: Optional[datetime] = Field(None, description="Due timestamp")
    created_at: datetime = Field(..., description="Creation timestamp (never mutated)")
    updated_at: Optional[datetime] = Field(None, description="Last local mutation timestamp")
    completed_at: Optional[datetime] = Field(None, description="Set if and only if completed")

    # Enriched fields
    energy_required: Optional[EnergyLevel] = Field(None, description="Energy the task requires")
    estimated_duration: Optional[int] = Field(None, description="Estimated duration in minutes")
    context_type: Optional[ContextType] = Field(None, description="Kind of work")
    urgency: Optional[Urgency] = Field(None, description="Derived from due_date; recomputed, never persisted")
    category: Optional[TaskCategory] = Field(None, description="Coarse category")

    # TickTick linkage
    external_id: Optional[str] = Field(None, description="TickTick task id")
    external_project_id: Optional[str] = Field(None, description="TickTick project id")
    synced: bool = Field(False, description="True once an external id is known")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True

    @field_validator("due_date", "created_at", "updated_at", "completed_at")
    @classmethod
    def _attach_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def status(self) -> str:
        return TaskStatus.COMPLETED.value if self.completed else TaskStatus.PENDING.value


def enum_to_value(enum_obj) -> Optional[str]:
    """Convert enum to string value (handles both enum and string)."""
    if enum_obj is None:
        return None
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)
