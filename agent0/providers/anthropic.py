"""Anthropic backend on the Messages API."""

import json
import logging
from typing import Any, AsyncIterator, Optional

from anthropic import AsyncAnthropic
from pydantic import Field

from agent0.models.events import (
    FinishStepEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallEvent,
    Usage,
)
from agent0.models.messages import (
    AssistantMessage,
    FilePart,
    ImagePart,
    Message,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    UserMessage,
)
from agent0.providers.base import (
    GenerationBackend,
    GenerationOptions,
    LanguageModel,
    VendorSettings,
    map_finish_reason,
    validate_settings,
)
from agent0.tools import ToolSet
from agent0.utils.identifiers import generate_part_id

logger = logging.getLogger(__name__)

# the Messages API requires max_tokens
DEFAULT_MAX_TOKENS = 4096


class AnthropicSettings(VendorSettings):
    api_key: str
    base_url: Optional[str] = Field(default=None, alias="baseURL")
    headers: Optional[dict[str, str]] = None


def _media_source(data: str, media_type: Optional[str]) -> dict:
    if data.startswith(("http://", "https://")):
        return {"type": "url", "url": data}
    if data.startswith("data:"):
        header, _, payload = data.partition(",")
        media_type = header[len("data:"):].split(";")[0] or media_type
        data = payload
    return {"type": "base64", "media_type": media_type or "image/png", "data": data}


def _user_blocks(message: UserMessage) -> list[dict]:
    blocks = []
    for part in message.content:
        if isinstance(part, TextPart):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ImagePart):
            blocks.append({"type": "image", "source": _media_source(part.image, part.media_type)})
        elif isinstance(part, FilePart):
            if part.media_type == "application/pdf":
                blocks.append({"type": "document", "source": _media_source(part.data, part.media_type)})
            else:
                logger.warning(f"Anthropic does not accept {part.media_type} files; part dropped")
    return blocks


def _assistant_blocks(message: AssistantMessage) -> list[dict]:
    blocks = []
    for part in message.content:
        if isinstance(part, TextPart):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ToolCallPart):
            blocks.append({
                "type": "tool_use",
                "id": part.tool_call_id,
                "name": part.tool_name,
                "input": part.input if isinstance(part.input, dict) else {},
            })
        # reasoning from earlier turns is not replayed
    return blocks


def _tool_blocks(message: ToolMessage) -> list[dict]:
    return [
        {
            "type": "tool_result",
            "tool_use_id": part.tool_call_id,
            "content": json.dumps(part.output.value),
            "is_error": part.output.type.startswith("error"),
        }
        for part in message.content
    ]


def to_anthropic_messages(messages: list[Message]) -> tuple[Optional[str], list[dict]]:
    """
    Convert our messages to a Messages API request.

    Returns:
        Tuple of (system prompt, messages). Tool results are sent as user
        turns and consecutive turns of the same role are merged.
    """
    system_parts: list[str] = []
    turns: list[dict] = []

    for message in messages:
        if isinstance(message, SystemMessage):
            system_parts.append(message.content)
            continue
        if isinstance(message, UserMessage):
            role, blocks = "user", _user_blocks(message)
        elif isinstance(message, AssistantMessage):
            role, blocks = "assistant", _assistant_blocks(message)
        else:
            role, blocks = "user", _tool_blocks(message)

        if not blocks:
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"].extend(blocks)
        else:
            turns.append({"role": role, "content": blocks})

    system = "\n\n".join(system_parts) if system_parts else None
    return system, turns


def to_anthropic_tools(tools: ToolSet) -> list[dict]:
    return [
        {"name": tool.name, "description": tool.description, "input_schema": tool.parameters}
        for tool in tools.values()
    ]


class EventTranslator:
    """
    Turns raw Messages API stream events into step events.

    Content blocks are keyed by index; tool-use input arrives as partial
    JSON and is emitted as one ``tool-call`` when its block stops.
    """

    def __init__(self) -> None:
        self._blocks: dict[int, dict[str, Any]] = {}
        self._finish_reason: Optional[str] = None
        self._input_tokens: Optional[int] = None
        self._output_tokens: Optional[int] = None

    def translate(self, event: Any) -> list[StreamEvent]:
        events: list[StreamEvent] = []

        if event.type == "message_start":
            usage = getattr(event.message, "usage", None)
            if usage is not None:
                self._input_tokens = usage.input_tokens

        elif event.type == "content_block_start":
            block = event.content_block
            if block.type == "text":
                part_id = generate_part_id()
                self._blocks[event.index] = {"kind": "text", "id": part_id}
                events.append(TextStartEvent(id=part_id))
                if block.text:
                    events.append(TextDeltaEvent(id=part_id, text=block.text))
            elif block.type == "thinking":
                part_id = generate_part_id()
                self._blocks[event.index] = {"kind": "reasoning", "id": part_id, "signature": None}
                events.append(ReasoningStartEvent(id=part_id))
            elif block.type == "tool_use":
                self._blocks[event.index] = {
                    "kind": "tool",
                    "id": block.id,
                    "name": block.name,
                    "json": "",
                }

        elif event.type == "content_block_delta":
            block = self._blocks.get(event.index)
            delta = event.delta
            if block is None:
                return events
            if delta.type == "text_delta":
                events.append(TextDeltaEvent(id=block["id"], text=delta.text))
            elif delta.type == "thinking_delta":
                events.append(ReasoningDeltaEvent(id=block["id"], text=delta.thinking))
            elif delta.type == "signature_delta":
                block["signature"] = delta.signature
            elif delta.type == "input_json_delta":
                block["json"] += delta.partial_json

        elif event.type == "content_block_stop":
            block = self._blocks.pop(event.index, None)
            if block is None:
                return events
            if block["kind"] == "text":
                events.append(TextEndEvent(id=block["id"]))
            elif block["kind"] == "reasoning":
                events.append(ReasoningEndEvent(id=block["id"]))
            else:
                try:
                    tool_input = json.loads(block["json"]) if block["json"] else {}
                except json.JSONDecodeError:
                    tool_input = block["json"]
                events.append(
                    ToolCallEvent(
                        tool_call_id=block["id"],
                        tool_name=block["name"],
                        input=tool_input,
                    )
                )

        elif event.type == "message_delta":
            if event.delta.stop_reason:
                self._finish_reason = event.delta.stop_reason
            usage = getattr(event, "usage", None)
            if usage is not None:
                self._output_tokens = usage.output_tokens

        return events

    def flush(self) -> list[StreamEvent]:
        total = None
        if self._input_tokens is not None or self._output_tokens is not None:
            total = (self._input_tokens or 0) + (self._output_tokens or 0)
        return [
            FinishStepEvent(
                finish_reason=map_finish_reason(self._finish_reason),
                usage=Usage(
                    input_tokens=self._input_tokens,
                    output_tokens=self._output_tokens,
                    total_tokens=total,
                ),
            )
        ]


class AnthropicChatModel(LanguageModel):
    provider = "anthropic"

    def __init__(self, client: AsyncAnthropic, model_id: str):
        self._client = client
        self.model_id = model_id

    def _build_request(
        self, messages: list[Message], tools: ToolSet, options: GenerationOptions
    ) -> dict[str, Any]:
        system, turns = to_anthropic_messages(messages)
        request_kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": turns,
            "max_tokens": options.max_output_tokens or DEFAULT_MAX_TOKENS,
            "stream": True,
        }
        if system:
            request_kwargs["system"] = system
        if tools:
            request_kwargs["tools"] = to_anthropic_tools(tools)
        if options.temperature is not None:
            request_kwargs["temperature"] = options.temperature

        vendor_options = options.vendor_options("anthropic")
        thinking = vendor_options.get("thinking")
        if isinstance(thinking, dict) and thinking.get("type") == "enabled":
            request_kwargs["thinking"] = {
                "type": "enabled",
                "budget_tokens": thinking.get("budgetTokens", thinking.get("budget_tokens", 1024)),
            }
        return request_kwargs

    async def stream_step(
        self,
        messages: list[Message],
        tools: ToolSet,
        options: GenerationOptions,
    ) -> AsyncIterator[StreamEvent]:
        request_kwargs = self._build_request(messages, tools, options)
        translator = EventTranslator()

        stream = await self._client.messages.create(**request_kwargs, timeout=options.timeout)
        async with stream:
            async for raw_event in stream:
                for event in translator.translate(raw_event):
                    yield event

        for event in translator.flush():
            yield event


class AnthropicBackend(GenerationBackend):
    vendor = "anthropic"

    def __init__(self, settings: AnthropicSettings):
        self._client = AsyncAnthropic(
            api_key=settings.api_key,
            base_url=settings.base_url,
            default_headers=settings.headers,
        )

    @classmethod
    def from_config(cls, config: dict) -> "AnthropicBackend":
        return cls(validate_settings(AnthropicSettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return AnthropicChatModel(self._client, name)
