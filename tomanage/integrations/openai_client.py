"""OpenAI API integration for toManage.

This module provides the AI reasoning service: chat completions with a
function-tool loop (used for recommendations and conversation) and task
extraction from free text or an image.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from openai import OpenAI, APIError
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from dotenv import load_dotenv

from tomanage.engine.enrichment import enrich_task
from tomanage.engine.prompts import build_extraction_prompt
from tomanage.engine.tools import AI_TOOLS
from tomanage.errors import ExternalServiceError, ToolExecutionError
from tomanage.models.constants import DEFAULT_OPENAI_TIMEOUT_SEC, MAX_TOOL_ITERATIONS
from tomanage.models.task import ContextType, EnergyLevel, Priority, Task, TaskCategory
from tomanage.models.task_factory import create_task

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


class ExtractedTask(BaseModel):
    """One task as returned by the extraction prompt."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    category: Optional[TaskCategory] = None
    energy_required: Optional[EnergyLevel] = None
    estimated_duration: Optional[int] = Field(None, gt=0)
    context_type: Optional[ContextType] = None
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


@dataclass
class ExtractionResult:
    """Tasks created from an extraction request (or why there are none)."""
    tasks: List[Task] = field(default_factory=list)
    error: Optional[str] = None


class OpenAIClient:
    """Client for OpenAI API integration."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None, model: Optional[str] = None):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY environment variable.
            timeout: Request timeout in seconds (OPENAI_TIMEOUT_SEC, default 30)
            model: Chat model name (OPENAI_MODEL)

        Note:
            Without an API key the client still initializes; every call then raises
            ExternalServiceError so callers fall back to rule-based behavior.
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.timeout = timeout or float(os.getenv("OPENAI_TIMEOUT_SEC", str(DEFAULT_OPENAI_TIMEOUT_SEC)))
        self.model = model or OPENAI_MODEL
        self.client = None

        if self.api_key:
            self.client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        else:
            logger.warning("OPENAI_API_KEY not found in environment. AI features will not be available.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _complete(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict[str, Any]]] = None, max_tokens: int = 4096):
        if not self.client:
            raise ExternalServiceError("OpenAI client is not configured")

        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages, "max_tokens": max_tokens}
        if tools:
            kwargs["tools"] = tools
        try:
            return self.client.chat.completions.create(**kwargs)
        except APIError as e:
            error_code = getattr(e, 'code', None)
            status_code = getattr(e, 'status_code', None)

            if error_code == 'insufficient_quota':
                logger.warning("OpenAI API quota insufficient. Please check billing/payment method in OpenAI dashboard.")
            elif status_code == 429:
                logger.warning("OpenAI API rate limit exceeded. Please wait before retrying.")
            else:
                logger.error(f"OpenAI API error: {status_code or 'unknown'} ({error_code or 'unknown'})")

            # Don't log full error message as it might contain sensitive info
            raise ExternalServiceError(f"OpenAI request failed: {type(e).__name__}") from e

    def chat(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_executor=None,
        max_tokens: int = 4096,
    ) -> str:
        """Chat with automatic tool execution.

        While the model asks for tools, each call is executed through
        tool_executor and its JSON result is fed back. Without an executor
        no tools are offered.

        Raises:
            ExternalServiceError: API failure or client not configured
            ToolExecutionError: Invalid/failing tool call, or more than
                MAX_TOOL_ITERATIONS round trips
        """
        conversation: List[Dict[str, Any]] = []
        if system_prompt:
            conversation.append({"role": "system", "content": system_prompt})
        conversation.extend(messages)

        if tool_executor is None:
            tools = None
        elif tools is None:
            tools = AI_TOOLS

        for iteration in range(1, MAX_TOOL_ITERATIONS + 1):
            logger.debug(f"OpenAI iteration {iteration}, messages: {len(conversation)}")
            response = self._complete(conversation, tools=tools, max_tokens=max_tokens)
            message = response.choices[0].message
            tool_calls = message.tool_calls or []

            if not tool_calls or tool_executor is None:
                return (message.content or "").strip()

            logger.debug(f"OpenAI requested {len(tool_calls)} tool call(s)")
            conversation.append({
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in tool_calls
                ],
            })
            for call in tool_calls:
                result = tool_executor.run(call.function.name, call.function.arguments)
                conversation.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(result, default=str),
                })

        raise ToolExecutionError("Maximum tool execution iterations reached")

    def simple_chat(self, messages: List[Dict[str, Any]], system_prompt: Optional[str] = None, max_tokens: int = 2048) -> str:
        """Chat without tools."""
        return self.chat(messages, system_prompt=system_prompt, max_tokens=max_tokens)

    def extract_tasks(
        self,
        text: Optional[str] = None,
        image_base64: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExtractionResult:
        """Extract tasks from text and/or an image.

        Returns:
            ExtractionResult with created, enriched tasks. Unparseable model
            output yields no tasks and an error message instead of raising.

        Raises:
            ExternalServiceError: API failure or client not configured
        """
        content: List[Dict[str, Any]] = []
        if text:
            content.append({"type": "text", "text": text})
        if image_base64:
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"},
            })
        if not content:
            return ExtractionResult(error="Nothing to extract from")

        raw = self.chat(
            [{"role": "user", "content": content}],
            system_prompt=build_extraction_prompt(),
            max_tokens=2048,
        )

        try:
            items = json.loads(strip_code_fences(raw))
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse extraction response. Response: {raw[:100]}")
            return ExtractionResult(error="AI response was not valid JSON")
        if not isinstance(items, list):
            return ExtractionResult(error="AI response was not a JSON array")

        tasks: List[Task] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                extracted = ExtractedTask(**item)
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid extracted task: {e.error_count()} error(s)")
                continue
            task = create_task(extracted.model_dump(exclude_none=True), now=now)
            tasks.append(enrich_task(task, now))

        logger.info(f"Extracted {len(tasks)} task(s)")
        return ExtractionResult(tasks=tasks)
