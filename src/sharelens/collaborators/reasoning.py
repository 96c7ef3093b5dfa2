"""Reasoning collaborator: a tool-calling loop over ``litellm.completion()``.

The model may call the log tools up to ``max_steps`` times before it has to
answer. Tool failures are reported back to the model as tool messages so it
can correct its call; they never abort the loop.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol

import litellm

from sharelens.collaborators.logtools import LogToolset
from sharelens.errors import InvalidConfig, SharelensError, WorkflowTimeout

_log = logging.getLogger(__name__)

litellm.suppress_debug_info = True


@dataclass(frozen=True)
class ReasoningProviderConfig:
    """Explicit reasoning-model selection.

    Attributes:
        model: LiteLLM chat model string, e.g. ``ollama_chat/llama3.1``.
        api_base: Endpoint override (Ollama / vLLM servers).
        max_steps: Upper bound on model turns (tool rounds + final answer).
        temperature: Sampling temperature.
        num_retries: LiteLLM transport retries per request.
    """

    model: str = "ollama_chat/llama3.1"
    api_base: str | None = None
    max_steps: int = 15
    temperature: float = 0.0
    num_retries: int = 2


class Reasoner(Protocol):
    def analyze(
        self,
        system_prompt: str,
        user_prompt: str,
        toolset: LogToolset,
        cancelled: threading.Event | None = None,
    ) -> str: ...


class LiteLLMReasoner:
    """Reasoner backed by litellm chat completions with function calling."""

    def __init__(self, config: ReasoningProviderConfig | None = None) -> None:
        self._config = config or ReasoningProviderConfig()
        if self._config.max_steps < 1:
            raise InvalidConfig("max_steps must be >= 1")

    def analyze(
        self,
        system_prompt: str,
        user_prompt: str,
        toolset: LogToolset,
        cancelled: threading.Event | None = None,
    ) -> str:
        """Run the conversation until the model answers without tool calls.

        Returns the model's final text (possibly empty). If the step budget
        runs out, the last text the model produced is returned. A set
        ``cancelled`` event stops the loop before the next model turn with
        ``WorkflowTimeout``.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        tools = toolset.schemas()
        last_text = ""

        for step in range(self._config.max_steps):
            if cancelled is not None and cancelled.is_set():
                raise WorkflowTimeout(f"Reasoning cancelled after {step} step(s)")
            message = self._complete(messages, tools)
            content = message.content or ""
            if content:
                last_text = content
            tool_calls = getattr(message, "tool_calls", None) or []
            if not tool_calls:
                return content

            messages.append(
                {
                    "role": "assistant",
                    "content": content,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.function.name,
                                "arguments": call.function.arguments,
                            },
                        }
                        for call in tool_calls
                    ],
                }
            )
            for call in tool_calls:
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": _run_tool(toolset, call.function.name, call.function.arguments),
                    }
                )
            _log.debug("Reasoning step %d: %d tool call(s)", step + 1, len(tool_calls))

        _log.warning("Reasoning stopped after %d steps without a final answer", self._config.max_steps)
        return last_text

    def _complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> Any:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "tools": tools,
            "temperature": self._config.temperature,
            "num_retries": self._config.num_retries,
        }
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base
        response = litellm.completion(**kwargs)
        return response.choices[0].message


def _run_tool(toolset: LogToolset, name: str, raw_arguments: str | dict | None) -> str:
    """Execute one tool call; errors become a JSON error payload for the model."""
    try:
        if isinstance(raw_arguments, dict):
            arguments = raw_arguments
        else:
            arguments = json.loads(raw_arguments or "{}")
        return toolset.call(name, arguments)
    except json.JSONDecodeError as exc:
        return json.dumps({"error": f"Arguments are not valid JSON: {exc}"})
    except (SharelensError, OSError) as exc:
        _log.info("Tool %s rejected: %s", name, exc)
        return json.dumps({"error": str(exc)})
