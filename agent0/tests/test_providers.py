"""Tests for vendor dispatch and request/stream translation."""

import asyncio
from types import SimpleNamespace as NS

import pytest

from agent0.errors import MalformedConfig
from agent0.models.events import (
    FinishStepEvent,
    ReasoningDeltaEvent,
    ReasoningStartEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallEvent,
)
from agent0.models.messages import parse_messages
from agent0.providers import build_backend, map_finish_reason
from agent0.providers.base import GenerationOptions
from agent0.providers.anthropic import AnthropicBackend, EventTranslator, to_anthropic_messages
from agent0.providers.litellm import BedrockBackend, GoogleBackend, VertexBackend
from agent0.providers.openai import (
    AzureBackend,
    ChunkTranslator,
    OpenAIBackend,
    XaiBackend,
    to_openai_messages,
    vendor_params,
)

TRANSCRIPT = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": [{"type": "text", "text": "Weather in Paris?"}]},
    {
        "role": "assistant",
        "content": [
            {"type": "text", "text": "Checking."},
            {"type": "tool-call", "toolCallId": "call_1", "toolName": "weather", "input": {"city": "Paris"}},
        ],
    },
    {
        "role": "tool",
        "content": [{
            "type": "tool-result",
            "toolCallId": "call_1",
            "toolName": "weather",
            "output": {"type": "json", "value": {"temp": 21}},
        }],
    },
]


class TestDispatch:
    """Test the static vendor table."""

    @pytest.mark.parametrize(
        "provider_type, config, backend_cls",
        [
            ("openai", {"apiKey": "sk"}, OpenAIBackend),
            ("azure", {"apiKey": "k", "resourceName": "acme"}, AzureBackend),
            ("xai", {"apiKey": "xai-k"}, XaiBackend),
            ("anthropic", {"apiKey": "sk-ant"}, AnthropicBackend),
            ("google", {"apiKey": "g"}, GoogleBackend),
            ("google-vertex", {"project": "p", "location": "europe-west4"}, VertexBackend),
            ("bedrock", {"region": "us-east-1", "accessKeyId": "a", "secretAccessKey": "s"}, BedrockBackend),
        ],
    )
    def test_known_vendors(self, provider_type, config, backend_cls):
        backend = build_backend(provider_type, config)

        assert isinstance(backend, backend_cls)
        assert backend.model("some-model").model_id == "some-model"

    def test_unknown_vendor_returns_none(self):
        assert build_backend("unknown-vendor", {"apiKey": "x"}) is None

    def test_missing_settings_field(self):
        with pytest.raises(MalformedConfig) as exc_info:
            build_backend("openai", {"baseURL": "https://example.test"})
        assert "api_key" in str(exc_info.value) or "apiKey" in str(exc_info.value)

    def test_azure_needs_an_endpoint(self):
        with pytest.raises(MalformedConfig):
            build_backend("azure", {"apiKey": "k"})

    def test_finish_reasons(self):
        assert map_finish_reason("tool_calls") == "tool-calls"
        assert map_finish_reason("end_turn") == "stop"
        assert map_finish_reason("max_tokens") == "length"
        assert map_finish_reason(None) == "unknown"
        assert map_finish_reason("something-new") == "other"


class TestOpenAIConversion:
    def test_messages(self):
        converted = to_openai_messages(parse_messages(TRANSCRIPT))

        assert converted[0] == {"role": "system", "content": "Be brief."}
        assert converted[1]["content"] == [{"type": "text", "text": "Weather in Paris?"}]
        assert converted[2]["content"] == "Checking."
        assert converted[2]["tool_calls"][0]["function"] == {
            "name": "weather",
            "arguments": '{"city": "Paris"}',
        }
        assert converted[3] == {"role": "tool", "tool_call_id": "call_1", "content": '{"temp": 21}'}

    def test_base64_image_becomes_data_url(self):
        messages = parse_messages([
            {"role": "user", "content": [{"type": "image", "image": "iVBORw0KGgo=", "mediaType": "image/png"}]}
        ])

        part = to_openai_messages(messages)[0]["content"][0]

        assert part == {"type": "image_url", "image_url": {"url": "data:image/png;base64,iVBORw0KGgo="}}

    def test_vendor_params(self):
        assert vendor_params({"reasoningEffort": "high", "unknownKnob": 1}) == {"reasoning_effort": "high"}


def _chunk(content=None, reasoning=None, tool_calls=None, finish_reason=None, usage=None):
    delta = NS(content=content, reasoning_content=reasoning, tool_calls=tool_calls)
    return NS(choices=[NS(delta=delta, finish_reason=finish_reason)], usage=usage)


def _tool_fragment(index, id=None, name=None, arguments=None):
    return NS(index=index, id=id, function=NS(name=name, arguments=arguments))


class TestChunkTranslator:
    """Test Chat Completions chunk translation."""

    def _run(self, chunks):
        translator = ChunkTranslator()
        events = []
        for chunk in chunks:
            events.extend(translator.translate(chunk))
        events.extend(translator.flush())
        return events

    def test_text(self):
        events = self._run([
            _chunk(content="Hi"),
            _chunk(content=" there"),
            _chunk(finish_reason="stop"),
            NS(choices=[], usage=NS(prompt_tokens=7, completion_tokens=2, total_tokens=9, completion_tokens_details=None)),
        ])

        assert [e.type for e in events] == ["text-start", "text-delta", "text-delta", "text-end", "finish-step"]
        assert events[1].id == events[0].id == events[3].id
        assert events[-1].finish_reason == "stop"
        assert events[-1].usage.total_tokens == 9

    def test_reasoning_then_text(self):
        events = self._run([_chunk(reasoning="Hmm"), _chunk(content="42")])

        assert isinstance(events[0], ReasoningStartEvent)
        assert isinstance(events[1], ReasoningDeltaEvent)
        assert events[2].type == "reasoning-end"
        assert isinstance(events[3], TextStartEvent)

    def test_tool_call_fragments(self):
        """Argument fragments are joined and emitted as one tool-call."""
        events = self._run([
            _chunk(tool_calls=[_tool_fragment(0, id="call_1", name="weather", arguments='{"ci')]),
            _chunk(tool_calls=[_tool_fragment(0, arguments='ty": "Paris"}')]),
            _chunk(finish_reason="tool_calls"),
        ])

        assert events == [
            ToolCallEvent(tool_call_id="call_1", tool_name="weather", input={"city": "Paris"}),
            FinishStepEvent(finish_reason="tool-calls"),
        ]


class TestAnthropic:
    def test_messages(self):
        system, turns = to_anthropic_messages(parse_messages(TRANSCRIPT))

        assert system == "Be brief."
        assert [t["role"] for t in turns] == ["user", "assistant", "user"]
        assert turns[1]["content"][1] == {
            "type": "tool_use", "id": "call_1", "name": "weather", "input": {"city": "Paris"},
        }
        assert turns[2]["content"][0]["type"] == "tool_result"
        assert turns[2]["content"][0]["is_error"] is False

    def test_stream_translation(self):
        translator = EventTranslator()
        raw = [
            NS(type="message_start", message=NS(usage=NS(input_tokens=12))),
            NS(type="content_block_start", index=0, content_block=NS(type="text", text="")),
            NS(type="content_block_delta", index=0, delta=NS(type="text_delta", text="Hello")),
            NS(type="content_block_stop", index=0),
            NS(type="content_block_start", index=1, content_block=NS(type="tool_use", id="toolu_1", name="search")),
            NS(type="content_block_delta", index=1, delta=NS(type="input_json_delta", partial_json='{"q": ')),
            NS(type="content_block_delta", index=1, delta=NS(type="input_json_delta", partial_json='"cats"}')),
            NS(type="content_block_stop", index=1),
            NS(type="message_delta", delta=NS(stop_reason="tool_use"), usage=NS(output_tokens=30)),
        ]
        events = []
        for event in raw:
            events.extend(translator.translate(event))
        events.extend(translator.flush())

        assert [e.type for e in events] == ["text-start", "text-delta", "text-end", "tool-call", "finish-step"]
        assert isinstance(events[1], TextDeltaEvent) and events[1].text == "Hello"
        assert isinstance(events[2], TextEndEvent)
        assert events[3].input == {"q": "cats"}
        assert events[4].finish_reason == "tool-calls"
        assert events[4].usage.total_tokens == 42


class TestLiteLLM:
    """Test the LiteLLM-backed vendors against a stubbed completion call."""

    def test_response_closed_when_step_is_abandoned(self, monkeypatch):
        litellm = pytest.importorskip("litellm")

        class Response:
            def __init__(self):
                self.closed = False

            async def __aiter__(self):
                while True:
                    yield _chunk(content="Hi")

            async def aclose(self):
                self.closed = True

        response = Response()

        async def acompletion(**kwargs):
            return response

        monkeypatch.setattr(litellm, "acompletion", acompletion)
        model = build_backend("google", {"apiKey": "g"}).model("gemini-2.0-flash")

        async def read_one():
            events = model.stream_step(parse_messages(TRANSCRIPT[:2]), {}, GenerationOptions())
            first = await events.__anext__()
            await events.aclose()
            return first

        assert asyncio.run(read_one()).type == "text-start"
        assert response.closed is True
