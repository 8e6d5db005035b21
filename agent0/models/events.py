"""Stream event models.

Events are what a generation emits, in strict order, while it runs. They are
forwarded to streaming callers as SSE frames and fed to the reconstructor;
they are never stored on their own (only the reconstructed steps survive,
inside ``Run.data``).
"""

from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from agent0.models.base import WireModel


class Usage(WireModel):
    """Token usage as reported by the vendor."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    reasoning_tokens: int | None = None

    def __add__(self, other: "Usage") -> "Usage":
        def _sum(a: int | None, b: int | None) -> int | None:
            if a is None and b is None:
                return None
            return (a or 0) + (b or 0)

        return Usage(
            input_tokens=_sum(self.input_tokens, other.input_tokens),
            output_tokens=_sum(self.output_tokens, other.output_tokens),
            total_tokens=_sum(self.total_tokens, other.total_tokens),
            reasoning_tokens=_sum(self.reasoning_tokens, other.reasoning_tokens),
        )


class StartEvent(WireModel):
    type: Literal["start"] = "start"


class StartStepEvent(WireModel):
    type: Literal["start-step"] = "start-step"
    warnings: list[Any] = []


class TextStartEvent(WireModel):
    type: Literal["text-start"] = "text-start"
    id: str
    provider_metadata: dict[str, Any] | None = None


class TextDeltaEvent(WireModel):
    type: Literal["text-delta"] = "text-delta"
    id: str
    text: str


class TextEndEvent(WireModel):
    type: Literal["text-end"] = "text-end"
    id: str


class ReasoningStartEvent(WireModel):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str
    provider_metadata: dict[str, Any] | None = None


class ReasoningDeltaEvent(WireModel):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    text: str


class ReasoningEndEvent(WireModel):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str


class ToolCallEvent(WireModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None
    provider_metadata: dict[str, Any] | None = None


class ToolResultEvent(WireModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    input: Any = None
    output: Any = None
    provider_metadata: dict[str, Any] | None = None


class ToolErrorEvent(WireModel):
    type: Literal["tool-error"] = "tool-error"
    tool_call_id: str
    tool_name: str
    input: Any = None
    error: Any = None
    provider_metadata: dict[str, Any] | None = None


class FinishStepEvent(WireModel):
    type: Literal["finish-step"] = "finish-step"
    finish_reason: str = "unknown"
    usage: Usage = Usage()
    provider_metadata: dict[str, Any] | None = None


class FinishEvent(WireModel):
    type: Literal["finish"] = "finish"
    finish_reason: str = "unknown"
    total_usage: Usage = Usage()


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    error: Any = None


StreamEvent = Annotated[
    Union[
        StartEvent,
        StartStepEvent,
        TextStartEvent,
        TextDeltaEvent,
        TextEndEvent,
        ReasoningStartEvent,
        ReasoningDeltaEvent,
        ReasoningEndEvent,
        ToolCallEvent,
        ToolResultEvent,
        ToolErrorEvent,
        FinishStepEvent,
        FinishEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

StreamEventAdapter = TypeAdapter(StreamEvent)

# events that count as "first token" for run metrics
CONTENT_EVENT_TYPES = {"text-delta", "reasoning-delta", "tool-call"}

TERMINAL_EVENT_TYPES = {"finish", "error"}


def parse_event(data: dict | str | bytes) -> StreamEvent:
    """Validate a wire payload (dict or JSON text) into a typed event."""
    if isinstance(data, (str, bytes)):
        return StreamEventAdapter.validate_json(data)
    return StreamEventAdapter.validate_python(data)
