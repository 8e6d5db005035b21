"""
OpenAI-compatible backends: OpenAI, Azure OpenAI and xAI.

All three speak the Chat Completions protocol through the ``openai``
package; they differ only in how the client is built and which
``providerOptions`` key they read.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

from openai import AsyncAzureOpenAI, AsyncOpenAI
from pydantic import Field, model_validator

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
from agent0.utils.identifiers import generate_part_id, generate_tool_call_id

logger = logging.getLogger(__name__)

XAI_BASE_URL = "https://api.x.ai/v1"

# providerOptions keys (camelCase, as authored) -> request parameters
OPTION_PARAMS = {
    "reasoningEffort": "reasoning_effort",
    "parallelToolCalls": "parallel_tool_calls",
    "serviceTier": "service_tier",
    "user": "user",
    "store": "store",
    "searchParameters": "search_parameters",
}


# --- Settings ---


class OpenAISettings(VendorSettings):
    api_key: str
    base_url: Optional[str] = Field(default=None, alias="baseURL")
    organization: Optional[str] = None
    project: Optional[str] = None
    headers: Optional[dict[str, str]] = None


class AzureSettings(VendorSettings):
    api_key: str
    resource_name: Optional[str] = None
    base_url: Optional[str] = Field(default=None, alias="baseURL")
    api_version: str = "2024-10-21"
    headers: Optional[dict[str, str]] = None

    @model_validator(mode="after")
    def _require_endpoint(self):
        if not self.resource_name and not self.base_url:
            raise ValueError("either resourceName or baseURL is required")
        return self

    @property
    def endpoint(self) -> str:
        if self.base_url:
            return self.base_url
        return f"https://{self.resource_name}.openai.azure.com"


class XaiSettings(VendorSettings):
    api_key: str
    base_url: Optional[str] = Field(default=None, alias="baseURL")
    headers: Optional[dict[str, str]] = None


# --- Request conversion ---


def _data_url(data: str, media_type: Optional[str]) -> str:
    if data.startswith(("http://", "https://", "data:")):
        return data
    return f"data:{media_type or 'application/octet-stream'};base64,{data}"


def to_openai_messages(messages: list[Message]) -> list[dict]:
    """Convert our messages to Chat Completions messages."""
    result: list[dict] = []
    for message in messages:
        if isinstance(message, SystemMessage):
            result.append({"role": "system", "content": message.content})

        elif isinstance(message, UserMessage):
            content = []
            for part in message.content:
                if isinstance(part, TextPart):
                    content.append({"type": "text", "text": part.text})
                elif isinstance(part, ImagePart):
                    content.append({
                        "type": "image_url",
                        "image_url": {"url": _data_url(part.image, part.media_type or "image/png")},
                    })
                elif isinstance(part, FilePart):
                    content.append({
                        "type": "file",
                        "file": {
                            "file_data": _data_url(part.data, part.media_type),
                            "filename": part.file_name or "file",
                        },
                    })
            result.append({"role": "user", "content": content})

        elif isinstance(message, AssistantMessage):
            text = "".join(p.text for p in message.content if isinstance(p, TextPart))
            converted: dict[str, Any] = {"role": "assistant", "content": text or None}
            tool_calls = [
                {
                    "id": p.tool_call_id,
                    "type": "function",
                    "function": {"name": p.tool_name, "arguments": json.dumps(p.input or {})},
                }
                for p in message.content
                if isinstance(p, ToolCallPart)
            ]
            if tool_calls:
                converted["tool_calls"] = tool_calls
            result.append(converted)

        elif isinstance(message, ToolMessage):
            # one chat message per tool result
            for part in message.content:
                result.append({
                    "role": "tool",
                    "tool_call_id": part.tool_call_id,
                    "content": json.dumps(part.output.value),
                })
    return result


def to_openai_tools(tools: ToolSet) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }
        for tool in tools.values()
    ]


def vendor_params(options: dict[str, Any]) -> dict[str, Any]:
    """Map authored providerOptions onto request parameters."""
    params = {}
    for key, value in options.items():
        param = OPTION_PARAMS.get(key)
        if param is None:
            logger.debug(f"Ignoring unsupported provider option: {key}")
            continue
        params[param] = value
    return params


# --- Stream translation ---


class ChunkTranslator:
    """
    Turns Chat Completions stream chunks into step events.

    Text and reasoning arrive as deltas; tool calls arrive as fragments
    keyed by index and are only emitted once the step's stream ends.
    Works for both ``openai`` chunks and LiteLLM's OpenAI-shaped chunks.
    """

    def __init__(self) -> None:
        self._text_id: Optional[str] = None
        self._reasoning_id: Optional[str] = None
        self._tool_calls: dict[int, dict[str, str]] = {}
        self._finish_reason: Optional[str] = None
        self._usage = Usage()

    def _close_text(self) -> list[StreamEvent]:
        if self._text_id is None:
            return []
        events: list[StreamEvent] = [TextEndEvent(id=self._text_id)]
        self._text_id = None
        return events

    def _close_reasoning(self) -> list[StreamEvent]:
        if self._reasoning_id is None:
            return []
        events: list[StreamEvent] = [ReasoningEndEvent(id=self._reasoning_id)]
        self._reasoning_id = None
        return events

    def translate(self, chunk: Any) -> list[StreamEvent]:
        events: list[StreamEvent] = []

        usage = getattr(chunk, "usage", None)
        if usage:
            details = getattr(usage, "completion_tokens_details", None)
            self._usage = Usage(
                input_tokens=getattr(usage, "prompt_tokens", None),
                output_tokens=getattr(usage, "completion_tokens", None),
                total_tokens=getattr(usage, "total_tokens", None),
                reasoning_tokens=getattr(details, "reasoning_tokens", None) if details else None,
            )

        if not getattr(chunk, "choices", None):
            return events

        choice = chunk.choices[0]
        delta = choice.delta
        if choice.finish_reason:
            self._finish_reason = choice.finish_reason
        if delta is None:
            return events

        reasoning = getattr(delta, "reasoning_content", None)
        if reasoning:
            if self._reasoning_id is None:
                events.extend(self._close_text())
                self._reasoning_id = generate_part_id()
                events.append(ReasoningStartEvent(id=self._reasoning_id))
            events.append(ReasoningDeltaEvent(id=self._reasoning_id, text=reasoning))

        if delta.content:
            if self._text_id is None:
                events.extend(self._close_reasoning())
                self._text_id = generate_part_id()
                events.append(TextStartEvent(id=self._text_id))
            events.append(TextDeltaEvent(id=self._text_id, text=delta.content))

        for fragment in getattr(delta, "tool_calls", None) or []:
            call = self._tool_calls.setdefault(
                fragment.index, {"id": "", "name": "", "arguments": ""}
            )
            if fragment.id:
                call["id"] = fragment.id
            function = fragment.function
            if function is not None:
                if function.name:
                    call["name"] += function.name
                if function.arguments:
                    call["arguments"] += function.arguments

        return events

    def flush(self) -> list[StreamEvent]:
        """Close open parts, emit complete tool calls and the finish-step."""
        events = self._close_text() + self._close_reasoning()
        for index in sorted(self._tool_calls):
            call = self._tool_calls[index]
            try:
                tool_input = json.loads(call["arguments"]) if call["arguments"] else {}
            except json.JSONDecodeError:
                # keep the raw text so the tool (or the transcript) can show it
                tool_input = call["arguments"]
            events.append(
                ToolCallEvent(
                    tool_call_id=call["id"] or generate_tool_call_id(),
                    tool_name=call["name"],
                    input=tool_input,
                )
            )
        events.append(
            FinishStepEvent(
                finish_reason=map_finish_reason(self._finish_reason),
                usage=self._usage,
            )
        )
        return events


# --- Models and backends ---


class OpenAIChatModel(LanguageModel):
    """Chat Completions model handle."""

    # newer OpenAI models reject max_tokens
    max_tokens_param = "max_completion_tokens"

    def __init__(self, client: AsyncOpenAI, model_id: str, provider: str, options_key: str):
        self._client = client
        self.model_id = model_id
        self.provider = provider
        self.options_key = options_key

    def _build_request(
        self, messages: list[Message], tools: ToolSet, options: GenerationOptions
    ) -> dict[str, Any]:
        request_kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": to_openai_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            request_kwargs["tools"] = to_openai_tools(tools)
        if options.temperature is not None:
            request_kwargs["temperature"] = options.temperature
        if options.max_output_tokens is not None:
            request_kwargs[self.max_tokens_param] = options.max_output_tokens
        if options.output_format == "json":
            request_kwargs["response_format"] = {"type": "json_object"}
        request_kwargs.update(vendor_params(options.vendor_options(self.options_key)))
        return request_kwargs

    async def stream_step(
        self,
        messages: list[Message],
        tools: ToolSet,
        options: GenerationOptions,
    ) -> AsyncIterator[StreamEvent]:
        request_kwargs = self._build_request(messages, tools, options)
        translator = ChunkTranslator()

        stream = await self._client.chat.completions.create(
            **request_kwargs, timeout=options.timeout
        )
        async with stream:
            async for chunk in stream:
                for event in translator.translate(chunk):
                    yield event

        for event in translator.flush():
            yield event


class OpenAIBackend(GenerationBackend):
    vendor = "openai"

    def __init__(self, settings: OpenAISettings):
        self._client = AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            project=settings.project,
            default_headers=settings.headers,
        )

    @classmethod
    def from_config(cls, config: dict) -> "OpenAIBackend":
        return cls(validate_settings(OpenAISettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return OpenAIChatModel(self._client, name, provider=self.vendor, options_key="openai")


class AzureBackend(GenerationBackend):
    """Azure OpenAI; model names are deployment names."""

    vendor = "azure"

    def __init__(self, settings: AzureSettings):
        self._client = AsyncAzureOpenAI(
            api_key=settings.api_key,
            azure_endpoint=settings.endpoint,
            api_version=settings.api_version,
            default_headers=settings.headers,
        )

    @classmethod
    def from_config(cls, config: dict) -> "AzureBackend":
        return cls(validate_settings(AzureSettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return OpenAIChatModel(self._client, name, provider=self.vendor, options_key="openai")


class XaiBackend(GenerationBackend):
    vendor = "xai"

    def __init__(self, settings: XaiSettings):
        self._client = AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url or XAI_BASE_URL,
            default_headers=settings.headers,
        )

    @classmethod
    def from_config(cls, config: dict) -> "XaiBackend":
        return cls(validate_settings(XaiSettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return OpenAIChatModel(self._client, name, provider=self.vendor, options_key="xai")
