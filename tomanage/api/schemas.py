"""Request and response models for the toManage API."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from tomanage.engine.recommendation import RecommendationMethod
from tomanage.models.task import ContextType, EnergyLevel, Priority, Task, TaskCategory


class TaskCreateRequest(BaseModel):
    """Request model for creating a task. Side-channel tags are accepted."""

    title: str = Field(..., min_length=1, description="Task title (required)")
    description: Optional[str] = None
    completed: bool = False
    priority: Optional[Priority] = None
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    energy_required: Optional[EnergyLevel] = None
    estimated_duration: Optional[int] = Field(None, gt=0, description="Minutes")
    context_type: Optional[ContextType] = None
    category: Optional[TaskCategory] = None

    class Config:
        """Pydantic configuration."""
        extra = "forbid"
        use_enum_values = True


class TaskUpdateRequest(BaseModel):
    """Request model for a partial task update. Only provided fields change."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    energy_required: Optional[EnergyLevel] = None
    estimated_duration: Optional[int] = Field(None, gt=0)
    context_type: Optional[ContextType] = None
    category: Optional[TaskCategory] = None

    @field_validator("title", "completed", "priority", "tags", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be null")
        return value

    class Config:
        """Pydantic configuration."""
        extra = "forbid"
        use_enum_values = True


class TaskListResponse(BaseModel):
    tasks: List[Task]


class SyncResponse(BaseModel):
    """Response for a TickTick sync."""
    fetched_count: int
    last_sync: datetime
    tasks: List[Task]


class RecommendationRequest(BaseModel):
    method: RecommendationMethod = RecommendationMethod.SMART

    class Config:
        """Pydantic configuration."""
        extra = "forbid"
        use_enum_values = True


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)

    class Config:
        """Pydantic configuration."""
        extra = "forbid"


class ChatResponse(BaseModel):
    content: str


class ExtractRequest(BaseModel):
    """Text and/or a base64-encoded image to extract tasks from."""

    text: Optional[str] = None
    image_base64: Optional[str] = None
    save: bool = Field(False, description="Store the extracted tasks")

    class Config:
        """Pydantic configuration."""
        extra = "forbid"


class ExtractResponse(BaseModel):
    tasks: List[Task]
    error: Optional[str] = None


class PatternResponse(BaseModel):
    pattern_type: str
    data: Optional[Dict[str, Any]] = None


class AuthUrlResponse(BaseModel):
    url: str
    state: str


class TokenExchangeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    redirect_uri: str = Field(..., min_length=1)

    class Config:
        """Pydantic configuration."""
        extra = "forbid"


class ConnectionStatusResponse(BaseModel):
    connected: bool
    last_sync: Optional[datetime] = None
