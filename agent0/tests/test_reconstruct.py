"""Tests for rebuilding messages from event sequences."""

import asyncio

import pytest

from agent0.errors import (
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
    ReasoningStartEvent,
    StartEvent,
    StartStepEvent,
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
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolMessage,
)
from agent0.reconstruct import MessageReconstructor, areconstruct, reconstruct


def _issue_types(result):
    return [type(issue) for issue in result.issues]


class TestTextReconstruction:
    def test_deltas_accumulate(self):
        """start-step, text-start, two deltas, finish: one message, one part."""
        result = reconstruct([
            StartStepEvent(),
            TextStartEvent(id="t"),
            TextDeltaEvent(id="t", text="Hi"),
            TextDeltaEvent(id="t", text=" there"),
            FinishEvent(),
        ])

        assert result.complete
        assert result.issues == []
        assert len(result.messages) == 1
        assert result.messages[0].content == [TextPart(text="Hi there")]
        assert result.text == "Hi there"

    def test_reasoning_then_text(self):
        result = reconstruct([
            StartStepEvent(),
            ReasoningStartEvent(id="r"),
            ReasoningDeltaEvent(id="r", text="think"),
            ReasoningDeltaEvent(id="r", text="ing"),
            TextStartEvent(id="t"),
            TextDeltaEvent(id="t", text="done"),
            FinishEvent(),
        ])

        assert result.messages[0].content == [ReasoningPart(text="thinking"), TextPart(text="done")]
        assert result.text == "done"

    def test_delta_without_text_part(self):
        """A text-delta after a reasoning part is flagged and skipped."""
        result = reconstruct([
            StartStepEvent(),
            ReasoningStartEvent(id="r"),
            TextDeltaEvent(id="t", text="lost"),
            ReasoningDeltaEvent(id="r", text="kept"),
            FinishEvent(),
        ])

        assert _issue_types(result) == [MalformedStream]
        assert result.messages[0].content == [ReasoningPart(text="kept")]

    def test_text_before_any_step(self):
        result = reconstruct([TextStartEvent(id="t"), FinishEvent()])

        assert MalformedStream in _issue_types(result)
        assert result.messages == []

    def test_empty_step_pruned(self):
        result = reconstruct([StartEvent(), StartStepEvent(), FinishStepEvent(), FinishEvent()])

        assert result.messages == []
        assert len(result.steps) == 1
        assert result.complete


class TestToolReconstruction:
    def test_matched_tool_calls(self):
        """Each tool-call gets exactly one tool message and no flags."""
        result = reconstruct([
            StartStepEvent(),
            ToolCallEvent(tool_call_id="t1", tool_name="search", input={"q": "a"}),
            ToolCallEvent(tool_call_id="t2", tool_name="search", input={"q": "b"}),
            ToolResultEvent(tool_call_id="t1", tool_name="search", input={"q": "a"}, output=["x"]),
            ToolErrorEvent(tool_call_id="t2", tool_name="search", input={"q": "b"}, error="rate limited"),
            FinishStepEvent(finish_reason="tool-calls"),
            StartStepEvent(),
            TextStartEvent(id="t"),
            TextDeltaEvent(id="t", text="Found x"),
            FinishStepEvent(finish_reason="stop"),
            FinishEvent(finish_reason="stop"),
        ])

        assert result.issues == []
        assert [type(m) for m in result.messages] == [AssistantMessage, ToolMessage, ToolMessage, AssistantMessage]

        ok, failed = result.messages[1].content[0], result.messages[2].content[0]
        assert ok.tool_call_id == "t1"
        assert ok.output.type == "json" and ok.output.value == ["x"]
        assert failed.tool_call_id == "t2"
        assert failed.output.type == "error-json" and failed.output.value == "rate limited"
        assert failed.is_error is True

    def test_unanswered_tool_call(self):
        """A tool-call without a result keeps the message and flags IncompleteToolCall."""
        result = reconstruct([
            StartStepEvent(),
            ToolCallEvent(tool_call_id="t1", tool_name="search", input={}),
            FinishEvent(),
        ])

        assert _issue_types(result) == [IncompleteToolCall]
        assert len(result.messages) == 1
        assert result.messages[0].content == [ToolCallPart(tool_call_id="t1", tool_name="search", input={})]

    def test_steps_split_messages(self):
        result = reconstruct([
            StartStepEvent(warnings=["temperature ignored"]),
            ToolCallEvent(tool_call_id="t1", tool_name="clock", input={}),
            ToolResultEvent(tool_call_id="t1", tool_name="clock", output="noon"),
            FinishStepEvent(finish_reason="tool-calls", usage=Usage(input_tokens=3)),
            StartStepEvent(),
            TextStartEvent(id="t"),
            TextDeltaEvent(id="t", text="It is noon"),
            FinishStepEvent(finish_reason="stop", usage=Usage(input_tokens=5)),
            FinishEvent(),
        ])

        assert len(result.steps) == 2
        assert [m.role for m in result.steps[0].messages] == ["assistant", "tool"]
        assert result.steps[0].finish_reason == "tool-calls"
        assert result.steps[0].warnings == ["temperature ignored"]
        assert result.steps[1].usage.input_tokens == 5
        assert result.warnings == ["temperature ignored"]


class TestIncompleteStreams:
    def test_truncated_before_finish(self):
        """The prefix is kept and IncompleteStream is flagged."""
        result = reconstruct([
            StartStepEvent(),
            TextStartEvent(id="t"),
            TextDeltaEvent(id="t", text="Partial"),
        ])

        assert not result.complete
        assert _issue_types(result) == [IncompleteStream]
        assert result.text == "Partial"

    def test_error_event_does_not_stop(self):
        result = reconstruct([
            StartStepEvent(),
            TextStartEvent(id="t"),
            TextDeltaEvent(id="t", text="Half"),
            ErrorEvent(error={"name": "GenerationError", "message": "overloaded"}),
            TextDeltaEvent(id="t", text=" more"),
        ])

        assert result.errors == [{"name": "GenerationError", "message": "overloaded"}]
        assert _issue_types(result) == [GenerationError, IncompleteStream]
        assert result.text == "Half more"
        with pytest.raises(GenerationError, match="overloaded"):
            result.raise_for_issues()

    def test_events_after_finish_ignored(self):
        reconstructor = MessageReconstructor()
        for event in [StartStepEvent(), TextStartEvent(id="t"), TextDeltaEvent(id="t", text="a"), FinishEvent()]:
            reconstructor.feed(event)
        reconstructor.feed(TextDeltaEvent(id="t", text="b"))

        assert reconstructor.result().text == "a"

    def test_dropped_connection(self):
        """A live stream that fails returns its prefix with IncompleteStream."""

        async def events():
            yield StartStepEvent()
            yield TextStartEvent(id="t")
            yield TextDeltaEvent(id="t", text="Hel")
            raise ConnectionResetError("peer closed connection")

        result = asyncio.run(areconstruct(events()))

        assert result.text == "Hel"
        assert _issue_types(result) == [IncompleteStream]

    def test_text_end_is_optional(self):
        result = reconstruct([
            StartStepEvent(),
            TextStartEvent(id="a"),
            TextDeltaEvent(id="a", text="one"),
            TextEndEvent(id="a"),
            TextStartEvent(id="b"),
            TextDeltaEvent(id="b", text="two"),
            FinishEvent(),
        ])

        assert result.messages[0].content == [TextPart(text="one"), TextPart(text="two")]
        assert result.text == "onetwo"
