"""Message models for agent prompts and generated transcripts.

Messages are a tagged union on ``role``; content parts are tagged unions
on ``type``. Non-system content is never empty: an emptied sequence removes
the whole message (see ``prune_empty_messages``).
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BeforeValidator, Field, TypeAdapter

from agent0.models.base import WireModel


class TextPart(WireModel):
    type: Literal["text"] = "text"
    text: str
    provider_options: dict[str, Any] | None = None


class ImagePart(WireModel):
    type: Literal["image"] = "image"
    image: str  # URL or base64 data
    media_type: str | None = None
    provider_options: dict[str, Any] | None = None


class FilePart(WireModel):
    type: Literal["file"] = "file"
    data: str
    media_type: str
    file_name: str | None = None
    provider_options: dict[str, Any] | None = None


class ReasoningPart(WireModel):
    type: Literal["reasoning"] = "reasoning"
    text: str
    provider_options: dict[str, Any] | None = None


class ToolCallPart(WireModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None
    provider_options: dict[str, Any] | None = None


class ToolOutput(WireModel):
    """Tool output envelope: ``json`` for results, ``error-json`` for failures."""

    type: Literal["json", "error-json", "text", "error-text"]
    value: Any = None


class ToolResultPart(WireModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: ToolOutput
    is_error: bool | None = None
    provider_options: dict[str, Any] | None = None


UserPart = Annotated[Union[TextPart, ImagePart, FilePart], Field(discriminator="type")]
AssistantPart = Annotated[
    Union[TextPart, ReasoningPart, FilePart, ToolCallPart], Field(discriminator="type")
]


def _text_shorthand(value: Any) -> Any:
    # a bare string is accepted as a single text part
    if isinstance(value, str):
        return [{"type": "text", "text": value}]
    return value


class SystemMessage(WireModel):
    role: Literal["system"] = "system"
    content: str
    provider_options: dict[str, Any] | None = None


class UserMessage(WireModel):
    role: Literal["user"] = "user"
    content: Annotated[list[UserPart], BeforeValidator(_text_shorthand), Field(min_length=1)]
    provider_options: dict[str, Any] | None = None


class AssistantMessage(WireModel):
    role: Literal["assistant"] = "assistant"
    content: Annotated[
        list[AssistantPart], BeforeValidator(_text_shorthand), Field(min_length=1)
    ]
    provider_options: dict[str, Any] | None = None


class ToolMessage(WireModel):
    role: Literal["tool"] = "tool"
    content: list[ToolResultPart] = Field(min_length=1)
    provider_options: dict[str, Any] | None = None


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

MessageListAdapter = TypeAdapter(list[Message])


def parse_messages(raw: list[dict]) -> list[Message]:
    """Validate a list of wire dicts into typed messages."""
    return MessageListAdapter.validate_python(raw)


def dump_messages(messages: list[Message]) -> list[dict]:
    """Dump typed messages into JSON-ready camelCase dicts."""
    return [message.to_wire() for message in messages]


def prune_empty_messages(raw: list[dict]) -> list[dict]:
    """Drop non-system messages whose content sequence is empty."""
    return [
        message
        for message in raw
        if message.get("role") == "system" or message.get("content")
    ]


def message_text(message: Message) -> str:
    """Concatenate the text parts of a message (reasoning excluded)."""
    if isinstance(message, SystemMessage):
        return message.content
    return "".join(
        part.text for part in message.content if isinstance(part, TextPart)
    )
