"""Tools the AI reasoning service may call during a conversation.

Tool calls arrive as (name, JSON arguments) pairs. They are parsed into a
discriminated union of typed calls and executed against the storage
service for one user. Unknown tools and invalid arguments are rejected with
ToolExecutionError before anything touches storage.
"""

import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tomanage.engine.context import get_user_profile
from tomanage.errors import ToolExecutionError
from tomanage.models.preferences import AnalyticsEntry, PatternType

logger = logging.getLogger(__name__)

_PATTERN_TYPES = [p.value for p in PatternType]

# OpenAI function-tool definitions
AI_TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "save_pattern",
            "description": (
                "Save a learned pattern about the user. Use this when you discover new patterns "
                "in their behavior, productivity, or preferences."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "pattern_type": {
                        "type": "string",
                        "enum": _PATTERN_TYPES,
                        "description": "The type of pattern being saved",
                    },
                    "data": {"type": "object", "description": "The pattern data as a JSON object"},
                },
                "required": ["pattern_type", "data"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_pattern",
            "description": (
                "Retrieve a previously saved pattern about the user. Use this to check what you "
                "already know before making recommendations."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "pattern_type": {
                        "type": "string",
                        "enum": _PATTERN_TYPES,
                        "description": "The type of pattern to retrieve",
                    },
                },
                "required": ["pattern_type"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_user_profile",
            "description": (
                "Get the complete user profile including preferences, current context, and all patterns."
            ),
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "save_analytics",
            "description": "Save task completion analytics for learning patterns.",
            "parameters": {
                "type": "object",
                "properties": {
                    "entry": {
                        "type": "object",
                        "properties": {
                            "task_id": {"type": "string"},
                            "completed_at": {"type": "string", "description": "ISO date string"},
                            "time_of_day": {"type": "string"},
                            "day_of_week": {"type": "string"},
                            "energy_level": {"type": "string", "enum": ["high", "medium", "low"]},
                            "context_type": {"type": "string"},
                            "estimated_duration": {"type": "number", "description": "in minutes"},
                            "actual_duration": {"type": "number", "description": "in minutes"},
                        },
                        "required": [
                            "task_id", "completed_at", "time_of_day",
                            "day_of_week", "energy_level", "context_type",
                        ],
                    },
                },
                "required": ["entry"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_analytics",
            "description": "Retrieve task completion analytics to learn from past patterns.",
            "parameters": {
                "type": "object",
                "properties": {
                    "limit": {"type": "number", "description": "Number of recent entries to retrieve (optional)"},
                },
                "required": [],
            },
        },
    },
]


class SavePatternCall(BaseModel):
    name: Literal["save_pattern"]
    pattern_type: PatternType
    data: Dict[str, Any]


class GetPatternCall(BaseModel):
    name: Literal["get_pattern"]
    pattern_type: PatternType


class GetUserProfileCall(BaseModel):
    name: Literal["get_user_profile"]


class SaveAnalyticsCall(BaseModel):
    name: Literal["save_analytics"]
    entry: AnalyticsEntry


class GetAnalyticsCall(BaseModel):
    name: Literal["get_analytics"]
    limit: Optional[int] = Field(None, ge=1)


ToolCall = Annotated[
    Union[SavePatternCall, GetPatternCall, GetUserProfileCall, SaveAnalyticsCall, GetAnalyticsCall],
    Field(discriminator="name"),
]

_TOOL_CALL_ADAPTER = TypeAdapter(ToolCall)


def parse_tool_call(name: str, arguments: Union[str, Dict[str, Any], None]) -> ToolCall:
    """Validate a raw tool request into its typed variant.

    Raises:
        ToolExecutionError: Unknown tool name, non-JSON or invalid arguments
    """
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Tool '{name}' arguments are not valid JSON") from e
    arguments = arguments or {}
    if not isinstance(arguments, dict):
        raise ToolExecutionError(f"Tool '{name}' arguments must be a JSON object")

    try:
        return _TOOL_CALL_ADAPTER.validate_python({**arguments, "name": name})
    except PydanticValidationError as e:
        raise ToolExecutionError(f"Invalid call to tool '{name}': {e.error_count()} error(s)") from e


class ToolExecutor:
    """Executes parsed tool calls for one user."""

    def __init__(self, storage, user_id: str):
        self.storage = storage
        self.user_id = user_id

    def run(self, name: str, arguments: Union[str, Dict[str, Any], None]) -> Any:
        """Parse and execute a raw tool request, returning a JSON-serializable result."""
        return self.execute(parse_tool_call(name, arguments))

    def execute(self, call: ToolCall) -> Any:
        logger.info(f"Executing AI tool {call.name} for user {self.user_id}")
        try:
            return self._dispatch(call)
        except ToolExecutionError:
            raise
        except Exception as e:
            logger.error(f"AI tool {call.name} failed: {type(e).__name__}")
            raise ToolExecutionError(f"Tool '{call.name}' failed") from e

    def _dispatch(self, call: ToolCall) -> Any:
        if isinstance(call, SavePatternCall):
            self.storage.save_pattern(self.user_id, call.pattern_type, call.data)
            return {"success": True}
        if isinstance(call, GetPatternCall):
            return self.storage.get_pattern(self.user_id, call.pattern_type)
        if isinstance(call, GetUserProfileCall):
            return get_user_profile(self.user_id, self.storage).model_dump(mode="json")
        if isinstance(call, SaveAnalyticsCall):
            self.storage.save_analytics(self.user_id, call.entry)
            return {"success": True}
        if isinstance(call, GetAnalyticsCall):
            entries = self.storage.get_analytics(self.user_id, limit=call.limit)
            return [entry.model_dump(mode="json") for entry in entries]
        raise ToolExecutionError(f"Unsupported tool call: {type(call).__name__}")
