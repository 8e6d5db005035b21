"""
Stream reconstruction.

Rebuilds structured messages from an ordered event sequence. Each
``start-step`` opens a new assistant message; text and reasoning deltas
accumulate into the last part of that message; tool results and tool errors
become tool messages of their own.

Reconstruction never raises for a misbehaving stream. Problems are collected
as ``issues`` so callers can tell a complete transcript from a truncated one,
and whatever was built so far is always returned.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Iterable, Optional

from pydantic import ValidationError

from agent0.errors import (
    Agent0Error,
    GenerationError,
    IncompleteStream,
    IncompleteToolCall,
    MalformedStream,
)
from agent0.models.events import (
    ErrorEvent,
    FinishEvent,
    FinishStepEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    StartEvent,
    StartStepEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
    Usage,
)
from agent0.models.messages import (
    AssistantMessage,
    Message,
    message_text,
    parse_messages,
    prune_empty_messages,
)
from agent0.models.run import StepRecord

logger = logging.getLogger(__name__)


@dataclass
class ReconstructionResult:
    """Messages rebuilt from a stream, plus everything that went wrong."""

    messages: list[Message] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)
    errors: list[Any] = field(default_factory=list)  # payloads of ``error`` events
    warnings: list[Any] = field(default_factory=list)
    issues: list[Agent0Error] = field(default_factory=list)
    complete: bool = False

    @property
    def text(self) -> str:
        """Text of the last assistant message."""
        for message in reversed(self.messages):
            if isinstance(message, AssistantMessage):
                return message_text(message)
        return ""

    @property
    def ok(self) -> bool:
        return self.complete and not self.issues

    def raise_for_issues(self) -> None:
        """Raise the first issue, if any (a generation error takes precedence)."""
        for issue in self.issues:
            if isinstance(issue, GenerationError):
                raise issue
        if self.issues:
            raise self.issues[0]


def _part_options(metadata: Optional[dict]) -> dict:
    # provider metadata on events becomes providerOptions on parts
    return {"providerOptions": metadata} if metadata else {}


class MessageReconstructor:
    """
    State machine over an in-progress message list.

    Messages are kept as wire dicts while they grow (an assistant message
    starts out empty, which the typed models don't allow) and validated when
    a result is requested.
    """

    def __init__(self) -> None:
        self._messages: list[dict[str, Any]] = []
        self._steps: list[dict[str, Any]] = []
        self._current: Optional[dict[str, Any]] = None  # open assistant message
        self._tool_calls: dict[str, str] = {}  # toolCallId -> toolName
        self._answered: set[str] = set()
        self.errors: list[Any] = []
        self.warnings: list[Any] = []
        self.issues: list[Agent0Error] = []
        self.complete = False
        self.closed = False

    # --- Feeding ---

    def _malformed(self, event: StreamEvent, reason: str) -> None:
        issue = MalformedStream(f"Unexpected {event.type} event: {reason}")
        logger.warning(issue.message)
        self.issues.append(issue)

    def _open_step(self, warnings: list[Any]) -> None:
        self._current = {"role": "assistant", "content": []}
        self._messages.append(self._current)
        self._steps.append({
            "start": len(self._messages) - 1,
            "finish_reason": None,
            "usage": None,
            "warnings": list(warnings),
        })
        self.warnings.extend(warnings)

    def _last_part(self) -> Optional[dict[str, Any]]:
        if self._current is None or not self._current["content"]:
            return None
        return self._current["content"][-1]

    def _push_tool_message(self, event: ToolResultEvent | ToolErrorEvent, output: dict, is_error: bool) -> None:
        part = {
            "type": "tool-result",
            "toolCallId": event.tool_call_id,
            "toolName": event.tool_name,
            "output": output,
            **_part_options(event.provider_metadata),
        }
        if is_error:
            part["isError"] = True
        self._messages.append({"role": "tool", "content": [part]})
        self._answered.add(event.tool_call_id)

    def feed(self, event: StreamEvent) -> None:
        """Apply one event. Events after completion are ignored."""
        if self.closed:
            return

        match event:
            case StartEvent():
                pass

            case StartStepEvent():
                self._open_step(event.warnings)

            case TextStartEvent() | ReasoningStartEvent():
                if self._current is None:
                    self._malformed(event, "no open assistant message")
                    return
                kind = "text" if isinstance(event, TextStartEvent) else "reasoning"
                self._current["content"].append(
                    {"type": kind, "text": "", **_part_options(event.provider_metadata)}
                )

            case TextDeltaEvent() | ReasoningDeltaEvent():
                kind = "text" if isinstance(event, TextDeltaEvent) else "reasoning"
                part = self._last_part()
                if part is None or part["type"] != kind:
                    self._malformed(event, f"last part is not a {kind} part")
                    return
                part["text"] += event.text

            case TextEndEvent() | ReasoningEndEvent():
                pass

            case ToolCallEvent():
                if self._current is None:
                    self._malformed(event, "no open assistant message")
                    return
                self._current["content"].append({
                    "type": "tool-call",
                    "toolCallId": event.tool_call_id,
                    "toolName": event.tool_name,
                    "input": event.input,
                    **_part_options(event.provider_metadata),
                })
                self._tool_calls[event.tool_call_id] = event.tool_name

            case ToolResultEvent():
                self._push_tool_message(event, {"type": "json", "value": event.output}, is_error=False)

            case ToolErrorEvent():
                self._push_tool_message(event, {"type": "error-json", "value": event.error}, is_error=True)

            case ErrorEvent():
                self.errors.append(event.error)
                self.issues.append(_generation_error(event.error))

            case FinishStepEvent():
                if self._steps:
                    self._steps[-1]["finish_reason"] = event.finish_reason
                    self._steps[-1]["usage"] = event.usage

            case FinishEvent():
                self.close(complete=True)

    def close(self, complete: bool = False) -> None:
        """
        End reconstruction.

        Args:
            complete: Whether the stream reached its ``finish`` event. An
                incomplete close flags ``IncompleteStream``.
        """
        if self.closed:
            return
        self.closed = True
        self.complete = complete
        if not complete:
            self.issues.append(IncompleteStream("Stream ended before finish"))

        for tool_call_id, tool_name in self._tool_calls.items():
            if tool_call_id not in self._answered:
                self.issues.append(
                    IncompleteToolCall(
                        f"Tool call {tool_call_id} ({tool_name}) has no result",
                        cause={"toolCallId": tool_call_id, "toolName": tool_name},
                    )
                )

    # --- Results ---

    def _validated(self, raw: list[dict[str, Any]], report: bool = True) -> list[Message]:
        pruned = prune_empty_messages(raw)
        try:
            return parse_messages(pruned)
        except ValidationError:
            # keep every message that validates on its own
            messages: list[Message] = []
            for message in pruned:
                try:
                    messages.extend(parse_messages([message]))
                except ValidationError as e:
                    if report:
                        self.issues.append(
                            MalformedStream(f"Dropped an invalid {message.get('role')} message", cause=str(e))
                        )
            return messages

    @property
    def messages(self) -> list[Message]:
        """Messages built so far, empty assistant messages pruned."""
        return self._validated(self._messages)

    def result(self) -> ReconstructionResult:
        steps = []
        for index, step in enumerate(self._steps):
            end = self._steps[index + 1]["start"] if index + 1 < len(self._steps) else len(self._messages)
            steps.append(
                StepRecord(
                    messages=self._validated(self._messages[step["start"]:end], report=False),
                    finish_reason=step["finish_reason"],
                    usage=step["usage"],
                    warnings=step["warnings"],
                )
            )
        return ReconstructionResult(
            messages=self.messages,
            steps=steps,
            errors=list(self.errors),
            warnings=list(self.warnings),
            issues=list(self.issues),
            complete=self.complete,
        )

    def total_usage(self) -> Usage:
        usage = Usage()
        for step in self._steps:
            if step["usage"] is not None:
                usage = usage + step["usage"]
        return usage


def _generation_error(payload: Any) -> GenerationError:
    if isinstance(payload, dict):
        return GenerationError(
            str(payload.get("message") or payload.get("name") or "Generation failed"),
            cause=payload.get("cause"),
        )
    return GenerationError(str(payload) if payload is not None else "Generation failed")


def reconstruct(events: Iterable[StreamEvent]) -> ReconstructionResult:
    """Reconstruct a finished event sequence."""
    reconstructor = MessageReconstructor()
    for event in events:
        reconstructor.feed(event)
        if reconstructor.closed:
            break
    reconstructor.close(complete=reconstructor.complete)
    return reconstructor.result()


async def areconstruct(events: AsyncIterable[StreamEvent]) -> ReconstructionResult:
    """
    Reconstruct from a live stream.

    A stream that fails mid-way (dropped connection, decoding error) is
    treated like one that ended early: the prefix is returned with
    ``IncompleteStream`` flagged.
    """
    reconstructor = MessageReconstructor()
    try:
        async for event in events:
            reconstructor.feed(event)
            if reconstructor.closed:
                break
    except Exception as e:
        logger.warning(f"Event stream failed during reconstruction: {e}")
    reconstructor.close(complete=reconstructor.complete)
    return reconstructor.result()
