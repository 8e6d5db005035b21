"""Scripted stand-ins for vendor backends and shared test helpers."""

import json
from typing import Any, AsyncIterator

from agent0.credentials import encrypt_credentials
from agent0.models.events import (
    FinishStepEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallEvent,
    Usage,
)
from agent0.models.messages import Message
from agent0.providers.base import GenerationBackend, GenerationOptions, LanguageModel
from agent0.tools import ToolSet

TEST_PASSPHRASE = "correct horse battery staple"


class ScriptedModel(LanguageModel):
    """Replays one scripted list of events per step.

    A script entry that is an exception is raised instead of yielded.
    Every call records the messages and options it was given.
    """

    provider = "fake"

    def __init__(self, steps: list[list[Any]], model_id: str = "fake-model"):
        self.steps = list(steps)
        self.model_id = model_id
        self.calls: list[dict[str, Any]] = []

    async def stream_step(
        self,
        messages: list[Message],
        tools: ToolSet,
        options: GenerationOptions,
    ) -> AsyncIterator[StreamEvent]:
        self.calls.append({"messages": list(messages), "tools": dict(tools), "options": options})
        script = self.steps.pop(0) if self.steps else [FinishStepEvent(finish_reason="stop")]
        for item in script:
            if isinstance(item, BaseException):
                raise item
            yield item


class ScriptedBackend(GenerationBackend):
    vendor = "fake"

    def __init__(self, model: ScriptedModel, config: dict | None = None):
        self.scripted = model
        self.config = config
        self.requested_names: list[str] = []

    def model(self, name: str) -> LanguageModel:
        self.requested_names.append(name)
        self.scripted.model_id = name
        return self.scripted


def text_step(*chunks: str, finish_reason: str = "stop") -> list[StreamEvent]:
    """Events of a step that answers with plain text."""
    events: list[StreamEvent] = [TextStartEvent(id="t0")]
    events.extend(TextDeltaEvent(id="t0", text=chunk) for chunk in chunks)
    events.append(TextEndEvent(id="t0"))
    events.append(
        FinishStepEvent(
            finish_reason=finish_reason,
            usage=Usage(input_tokens=10, output_tokens=len(chunks), total_tokens=10 + len(chunks)),
        )
    )
    return events


def tool_step(tool_call_id: str, tool_name: str, tool_input: Any) -> list[StreamEvent]:
    """Events of a step that only calls one tool."""
    return [
        ToolCallEvent(tool_call_id=tool_call_id, tool_name=tool_name, input=tool_input),
        FinishStepEvent(finish_reason="tool-calls", usage=Usage(input_tokens=5, output_tokens=3, total_tokens=8)),
    ]


def provider_row(public_key: str, provider_id: str = "prov-1", provider_type: str = "fake",
                 config: dict | None = None, workspace_id: str = "ws-1") -> dict:
    return {
        "id": provider_id,
        "workspace_id": workspace_id,
        "type": provider_type,
        "name": "Test provider",
        "encrypted_data": encrypt_credentials(public_key, json.dumps(config or {"apiKey": "sk-test"})),
    }


def version_row(version_id: str = "ver-1", agent_id: str = "agent-1", provider_id: str = "prov-1",
                messages: list[dict] | None = None, **data: Any) -> dict:
    return {
        "id": version_id,
        "agent_id": agent_id,
        "created_at": "2026-01-01T00:00:00+00:00",
        "data": {
            "model": {"provider_id": provider_id, "name": "fake-model"},
            "messages": messages or [
                {"role": "system", "content": "Hello {{name}}"},
                {"role": "user", "content": [{"type": "text", "text": "Say hi"}]},
            ],
            **data,
        },
    }
