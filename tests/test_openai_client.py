"""Tests for the OpenAI client (API calls mocked)."""

import json
import httpx
import pytest
from unittest.mock import MagicMock
from openai import APIError

from tomanage.errors import ExternalServiceError, ToolExecutionError
from tomanage.integrations.openai_client import OpenAIClient, strip_code_fences
from tomanage.models.constants import MAX_TOOL_ITERATIONS


def _tool_call(call_id, name, arguments):
    call = MagicMock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = arguments
    return call


def _response(content=None, tool_calls=None):
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    return response


@pytest.fixture
def client():
    """OpenAIClient with the SDK client replaced by a mock."""
    openai_client = OpenAIClient(api_key="test-key")
    openai_client.client = MagicMock()
    return openai_client


def test_strip_code_fences():
    assert strip_code_fences("```json\n[1]\n```") == "[1]"
    assert strip_code_fences("```\n{}\n```") == "{}"
    assert strip_code_fences("  [2] ") == "[2]"


class TestConfiguration:

    def test_missing_key_is_not_configured(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        unconfigured = OpenAIClient()

        assert unconfigured.is_configured is False
        with pytest.raises(ExternalServiceError):
            unconfigured.chat([{"role": "user", "content": "hi"}])

    def test_api_error_is_mapped(self, client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client.client.chat.completions.create.side_effect = APIError("boom", request=request, body=None)

        with pytest.raises(ExternalServiceError):
            client.chat([{"role": "user", "content": "hi"}])


class TestChat:

    def test_plain_answer(self, client):
        client.client.chat.completions.create.return_value = _response("  Hello there  ")

        assert client.chat([{"role": "user", "content": "hi"}], system_prompt="Be brief") == "Hello there"

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief"}
        assert "tools" not in kwargs

    def test_tool_loop(self, client):
        arguments = json.dumps({"pattern_type": "energy_patterns", "data": {"peak": "morning"}})
        client.client.chat.completions.create.side_effect = [
            _response(None, [_tool_call("call-1", "save_pattern", arguments)]),
            _response("Saved your pattern."),
        ]
        executor = MagicMock()
        executor.run.return_value = {"success": True}

        answer = client.chat([{"role": "user", "content": "I work best in the morning"}], tool_executor=executor)

        assert answer == "Saved your pattern."
        executor.run.assert_called_once_with("save_pattern", arguments)

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["tools"]
        tool_message = kwargs["messages"][-1]
        assert tool_message["role"] == "tool"
        assert tool_message["tool_call_id"] == "call-1"
        assert json.loads(tool_message["content"]) == {"success": True}
        assert kwargs["messages"][-2]["tool_calls"][0]["function"]["name"] == "save_pattern"

    def test_tool_loop_cap(self, client):
        client.client.chat.completions.create.return_value = _response(
            None, [_tool_call("call-1", "get_user_profile", "{}")]
        )
        executor = MagicMock()
        executor.run.return_value = {}

        with pytest.raises(ToolExecutionError):
            client.chat([{"role": "user", "content": "loop"}], tool_executor=executor)
        assert client.client.chat.completions.create.call_count == MAX_TOOL_ITERATIONS

    def test_tool_failure_propagates(self, client):
        client.client.chat.completions.create.return_value = _response(
            None, [_tool_call("call-1", "get_pattern", "{}")]
        )
        executor = MagicMock()
        executor.run.side_effect = ToolExecutionError("bad call")

        with pytest.raises(ToolExecutionError):
            client.chat([{"role": "user", "content": "hi"}], tool_executor=executor)


class TestExtractTasks:

    def test_extracts_and_enriches(self, client, now):
        items = [
            {"title": "Implement OAuth flow", "priority": "high", "tags": ["auth"]},
            {"title": "Email landlord", "estimated_duration": 10, "due_date": None},
            {"description": "missing title"},
            "not an object",
        ]
        client.client.chat.completions.create.return_value = _response(f"```json\n{json.dumps(items)}\n```")

        result = client.extract_tasks(text="notes from standup", now=now)

        assert result.error is None
        assert [t.title for t in result.tasks] == ["Implement OAuth flow", "Email landlord"]
        first = result.tasks[0]
        assert first.priority == "high"
        assert first.energy_required == "high"
        assert first.estimated_duration == 90
        assert first.created_at == now
        assert result.tasks[1].estimated_duration == 10

    def test_image_is_sent_as_data_url(self, client):
        client.client.chat.completions.create.return_value = _response("[]")

        client.extract_tasks(image_base64="aGVsbG8=")

        messages = client.client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1]["content"][0]["image_url"]["url"] == "data:image/jpeg;base64,aGVsbG8="

    def test_invalid_json(self, client):
        client.client.chat.completions.create.return_value = _response("Sorry, I cannot help")

        result = client.extract_tasks(text="something")

        assert result.tasks == []
        assert result.error

    def test_non_array(self, client):
        client.client.chat.completions.create.return_value = _response('{"title": "x"}')

        assert client.extract_tasks(text="something").error

    def test_nothing_to_extract(self, client):
        result = client.extract_tasks()

        assert result.error
        client.client.chat.completions.create.assert_not_called()
