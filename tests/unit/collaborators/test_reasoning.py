"""Tests for the litellm tool-calling reasoner."""

from __future__ import annotations

import json
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from sharelens.collaborators.reasoning import LiteLLMReasoner, ReasoningProviderConfig
from sharelens.errors import InvalidConfig, WorkflowTimeout


def _response(content: str | None = None, tool_calls: list | None = None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _tool_call(call_id: str, name: str, arguments: str):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.fixture
def toolset():
    ts = MagicMock()
    ts.schemas.return_value = [{"type": "function", "function": {"name": "list_files"}}]
    ts.call.return_value = json.dumps([{"name": "auth.log"}])
    return ts


def test_config_defaults():
    cfg = ReasoningProviderConfig()
    assert cfg.model == "ollama_chat/llama3.1"
    assert cfg.max_steps == 15


def test_invalid_max_steps():
    with pytest.raises(InvalidConfig):
        LiteLLMReasoner(ReasoningProviderConfig(max_steps=0))


def test_direct_answer(toolset):
    with patch(
        "sharelens.collaborators.reasoning.litellm.completion",
        return_value=_response('{"severity": "none"}'),
    ) as mock_completion:
        text = LiteLLMReasoner().analyze("system", "user", toolset)

    assert text == '{"severity": "none"}'
    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == "ollama_chat/llama3.1"
    assert kwargs["tools"] == toolset.schemas.return_value
    assert kwargs["messages"][0] == {"role": "system", "content": "system"}
    assert "api_base" not in kwargs


def test_tool_calls_are_executed_and_fed_back(toolset):
    responses = [
        _response(None, [_tool_call("c1", "list_files", '{"directory": "logs"}')]),
        _response("done"),
    ]
    with patch(
        "sharelens.collaborators.reasoning.litellm.completion", side_effect=responses
    ) as mock_completion:
        text = LiteLLMReasoner(ReasoningProviderConfig(api_base="http://ollama:11434")).analyze(
            "system", "user", toolset
        )

    assert text == "done"
    toolset.call.assert_called_once_with("list_files", {"directory": "logs"})
    second_messages = mock_completion.call_args_list[1].kwargs["messages"]
    assert second_messages[2]["role"] == "assistant"
    assert second_messages[2]["tool_calls"][0]["function"]["name"] == "list_files"
    assert second_messages[3] == {
        "role": "tool",
        "tool_call_id": "c1",
        "content": toolset.call.return_value,
    }
    assert mock_completion.call_args.kwargs["api_base"] == "http://ollama:11434"


def test_tool_errors_are_reported_to_model(toolset):
    toolset.call.side_effect = InvalidConfig("read_file: missing required argument 'path'")
    responses = [
        _response(None, [_tool_call("c1", "read_file", "{}")]),
        _response("gave up"),
    ]
    with patch("sharelens.collaborators.reasoning.litellm.completion", side_effect=responses) as m:
        LiteLLMReasoner().analyze("system", "user", toolset)

    tool_message = m.call_args_list[1].kwargs["messages"][-1]
    assert json.loads(tool_message["content"]) == {
        "error": "read_file: missing required argument 'path'"
    }


def test_invalid_json_arguments_are_reported(toolset):
    responses = [
        _response(None, [_tool_call("c1", "list_files", "{not json")]),
        _response("ok"),
    ]
    with patch("sharelens.collaborators.reasoning.litellm.completion", side_effect=responses) as m:
        LiteLLMReasoner().analyze("system", "user", toolset)

    toolset.call.assert_not_called()
    content = json.loads(m.call_args_list[1].kwargs["messages"][-1]["content"])
    assert "not valid JSON" in content["error"]


def test_step_budget_returns_last_text(toolset):
    looping = _response("still looking", [_tool_call("c", "list_files", '{"directory": "logs"}')])
    with patch(
        "sharelens.collaborators.reasoning.litellm.completion", return_value=looping
    ) as mock_completion:
        text = LiteLLMReasoner(ReasoningProviderConfig(max_steps=3)).analyze("s", "u", toolset)

    assert text == "still looking"
    assert mock_completion.call_count == 3


def test_completion_errors_propagate(toolset):
    with patch(
        "sharelens.collaborators.reasoning.litellm.completion", side_effect=RuntimeError("503")
    ):
        with pytest.raises(RuntimeError):
            LiteLLMReasoner().analyze("s", "u", toolset)


def test_cancelled_before_first_turn_makes_no_call(toolset):
    cancelled = threading.Event()
    cancelled.set()
    with patch("sharelens.collaborators.reasoning.litellm.completion") as mock_completion:
        with pytest.raises(WorkflowTimeout):
            LiteLLMReasoner().analyze("s", "u", toolset, cancelled=cancelled)
    mock_completion.assert_not_called()


def test_cancellation_stops_tool_loop(toolset):
    cancelled = threading.Event()
    looping = _response(None, [_tool_call("c", "list_files", '{"directory": "logs"}')])

    def _complete(**kwargs):
        cancelled.set()
        return looping

    with patch(
        "sharelens.collaborators.reasoning.litellm.completion", side_effect=_complete
    ) as mock_completion:
        with pytest.raises(WorkflowTimeout, match="after 1 step"):
            LiteLLMReasoner().analyze("s", "u", toolset, cancelled=cancelled)
    assert mock_completion.call_count == 1
