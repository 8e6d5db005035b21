"""
Multi-step generation loop.

Drives a model handle step by step: each step streams the model's output,
executes the tool calls it made, and feeds the results back as the next
step's conversation. The loop stops when a step makes no tool calls or when
``max_step_count`` steps have run.

Emitted order per run::

    start
      start-step, <model events>, <tool-result|tool-error>*, finish-step
      ...
    finish            (or a single ``error`` when the vendor fails)
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional

from agent0.errors import GenerationError
from agent0.models.events import (
    ErrorEvent,
    FinishEvent,
    FinishStepEvent,
    StartEvent,
    StartStepEvent,
    StreamEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
    Usage,
)
from agent0.models.messages import Message
from agent0.providers.base import GenerationOptions, LanguageModel
from agent0.reconstruct import MessageReconstructor
from agent0.tools import ToolSet

logger = logging.getLogger(__name__)


async def _with_deadline(
    events: AsyncIterator[StreamEvent], timeout: Optional[float]
) -> AsyncIterator[StreamEvent]:
    """Re-yield a step's events, failing once the step outlives ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout else None
    iterator = events.__aiter__()
    try:
        while True:
            try:
                if deadline is None:
                    event = await iterator.__anext__()
                else:
                    remaining = max(deadline - loop.time(), 0)
                    event = await asyncio.wait_for(iterator.__anext__(), remaining)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError as e:
                raise GenerationError(f"Generation step timed out after {timeout:g}s") from e
            yield event
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def _execute_tool(call: ToolCallEvent, tools: ToolSet) -> StreamEvent:
    tool = tools.get(call.tool_name)
    if tool is None:
        return ToolErrorEvent(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            input=call.input,
            error=f"Tool not available: {call.tool_name}",
        )
    try:
        output = await tool.call(call.input)
    except Exception as e:
        logger.warning(f"Tool {call.tool_name} failed: {e}")
        return ToolErrorEvent(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            input=call.input,
            error=str(e) or type(e).__name__,
        )
    return ToolResultEvent(
        tool_call_id=call.tool_call_id,
        tool_name=call.tool_name,
        input=call.input,
        output=output,
    )


def _vendor_error(error: Exception) -> dict[str, Any]:
    if isinstance(error, GenerationError):
        return error.to_dict()
    # keep the vendor's own error name as the cause
    return GenerationError(str(error) or type(error).__name__, cause=type(error).__name__).to_dict()


async def stream_generation(
    model: LanguageModel,
    messages: list[Message],
    tools: ToolSet,
    options: GenerationOptions,
    max_step_count: int = 1,
) -> AsyncIterator[StreamEvent]:
    """
    Run a generation and yield its events in order.

    Args:
        model: Model handle from a backend
        messages: Prompt messages (already substituted)
        tools: Tools the model may call
        options: Generation options; ``options.timeout`` bounds each step
        max_step_count: Upper bound on model turns

    Yields:
        Events from ``start`` to ``finish``. A vendor failure yields one
        ``error`` event and ends the stream without ``finish``.
    """
    conversation = list(messages)
    total_usage = Usage()
    finish_reason = "unknown"

    yield StartEvent()

    for step in range(max_step_count):
        start_step = StartStepEvent()
        step_transcript = MessageReconstructor()
        step_transcript.feed(start_step)
        yield start_step

        tool_calls: list[ToolCallEvent] = []
        step_finish: Optional[FinishStepEvent] = None
        try:
            step_events = _with_deadline(model.stream_step(conversation, tools, options), options.timeout)
            # closed even when the consumer stops mid-step
            async with aclosing(step_events):
                async for event in step_events:
                    if isinstance(event, FinishStepEvent):
                        # held back until the step's tools have run
                        step_finish = event
                        continue
                    if isinstance(event, ToolCallEvent):
                        tool_calls.append(event)
                    step_transcript.feed(event)
                    yield event
        except Exception as e:
            logger.exception(f"Generation failed in step {step + 1} ({model.provider}/{model.model_id})")
            yield ErrorEvent(error=_vendor_error(e))
            return

        for call in tool_calls:
            result = await _execute_tool(call, tools)
            step_transcript.feed(result)
            yield result

        step_finish = step_finish or FinishStepEvent()
        total_usage = total_usage + step_finish.usage
        finish_reason = step_finish.finish_reason
        yield step_finish

        if not tool_calls:
            break
        conversation.extend(step_transcript.messages)

    yield FinishEvent(finish_reason=finish_reason, total_usage=total_usage)
