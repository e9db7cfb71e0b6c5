"""Model-invocation collaborator.

The agent loop speaks a small block-tagged message format::

    {"type": "text", "text": ...}
    {"type": "tool_use", "id": ..., "name": ..., "input": {...}}
    {"type": "tool_result", "tool_use_id": ..., "content": ...}

:class:`LiteLLMModelClient` translates it to and from the OpenAI
function-calling shape accepted by ``litellm``.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import litellm
from skillmesh_core.config import LLMConfig
from skillmesh_core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = get_logger("agent.model")

END_TURN = "end_turn"
TOOL_USE = "tool_use"

_FINISH_REASONS: dict[str, str] = {
    "stop": END_TURN,
    "tool_calls": TOOL_USE,
    "function_call": TOOL_USE,
    "length": "max_tokens",
}


@dataclass(frozen=True, slots=True)
class ModelResponse:
    """One model turn: a stop reason and the content blocks produced."""

    stop_reason: str
    content: list[dict[str, Any]] = field(default_factory=list)

    def text(self) -> str:
        return "\n".join(
            block["text"] for block in self.content if block.get("type") == "text"
        )

    def tool_uses(self) -> list[dict[str, Any]]:
        return [block for block in self.content if block.get("type") == "tool_use"]


@runtime_checkable
class ModelClient(Protocol):
    async def chat(
        self,
        *,
        role: str,
        system: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        messages: list[dict[str, Any]],
    ) -> ModelResponse: ...


class LiteLLMModelClient:
    """:class:`ModelClient` backed by ``litellm.acompletion``.

    ``role_models`` maps a caller role (``"agent"``, ``"observer"``...) to
    a model id; roles not listed use ``config.model``.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        role_models: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config or LLMConfig()
        self._role_models = dict(role_models or {})

    def model_for(self, role: str) -> str:
        return self._role_models.get(role, self._config.model)

    async def chat(
        self,
        *,
        role: str,
        system: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        messages: list[dict[str, Any]],
    ) -> ModelResponse:
        model = self.model_for(role)
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(system, messages),
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
            kwargs["tool_choice"] = "auto"
        if self._config.base_url:
            kwargs["api_base"] = self._config.base_url
        api_key = os.environ.get(self._config.api_key_env)
        if api_key:
            kwargs["api_key"] = api_key

        logger.debug("Model call: role=%s model=%s messages=%d", role, model, len(messages))
        response = await litellm.acompletion(**kwargs)
        return from_openai_choice(response.choices[0])


# ── Format conversion ───────────────────────────────────────────────


def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema") or {"type": "object"},
            },
        }
        for tool in tools
    ]


def to_openai_messages(
    system: list[dict[str, Any]],
    messages: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Flatten system blocks and block-tagged history into chat messages."""
    out: list[dict[str, Any]] = []
    system_text = "\n\n".join(b["text"] for b in system if b.get("type") == "text")
    if system_text:
        out.append({"role": "system", "content": system_text})

    for msg in messages:
        content = msg["content"]
        if isinstance(content, str):
            out.append({"role": msg["role"], "content": content})
            continue

        if msg["role"] == "assistant":
            texts = [b["text"] for b in content if b.get("type") == "text"]
            entry: dict[str, Any] = {
                "role": "assistant",
                "content": "\n".join(texts) or None,
            }
            calls = [
                {
                    "id": b["id"],
                    "type": "function",
                    "function": {
                        "name": b["name"],
                        "arguments": json.dumps(b.get("input") or {}),
                    },
                }
                for b in content
                if b.get("type") == "tool_use"
            ]
            if calls:
                entry["tool_calls"] = calls
            out.append(entry)
            continue

        # Tool results become one "tool" message each; any text follows.
        for block in content:
            if block.get("type") == "tool_result":
                out.append({
                    "role": "tool",
                    "tool_call_id": block["tool_use_id"],
                    "content": str(block.get("content", "")),
                })
        texts = [b["text"] for b in content if b.get("type") == "text"]
        if texts:
            out.append({"role": msg["role"], "content": "\n".join(texts)})

    return out


def from_openai_choice(choice: Any) -> ModelResponse:
    message = choice.message
    content: list[dict[str, Any]] = []
    if message.content:
        content.append({"type": "text", "text": message.content})

    tool_calls = getattr(message, "tool_calls", None) or []
    for call in tool_calls:
        raw_args = call.function.arguments or "{}"
        try:
            arguments = json.loads(raw_args)
        except json.JSONDecodeError:
            logger.warning("Unparseable tool arguments for %s: %s", call.function.name, raw_args)
            arguments = {}
        content.append({
            "type": "tool_use",
            "id": call.id,
            "name": call.function.name,
            "input": arguments if isinstance(arguments, dict) else {},
        })

    if tool_calls:
        stop_reason = TOOL_USE
    else:
        finish = choice.finish_reason or ""
        stop_reason = _FINISH_REASONS.get(finish, finish)
    return ModelResponse(stop_reason=stop_reason, content=content)
