"""Tests for message, event and version models."""

import pytest
from pydantic import ValidationError

from agent0.models.events import TextDeltaEvent, ToolCallEvent, Usage, parse_event
from agent0.models.messages import (
    TextPart,
    ToolMessage,
    UserMessage,
    parse_messages,
    prune_empty_messages,
)
from agent0.models.run import Metrics
from agent0.models.version import (
    Agent,
    ModelOverride,
    ModelRef,
    Overrides,
    ProviderOptions,
    VersionData,
    apply_overrides,
)


class TestMessages:
    """Test the tagged message unions."""

    def test_text_shorthand(self):
        """A bare string is a single text part."""
        message = parse_messages([{"role": "user", "content": "hello"}])[0]

        assert isinstance(message, UserMessage)
        assert message.content == [TextPart(text="hello")]

    def test_empty_user_content_rejected(self):
        with pytest.raises(ValidationError):
            parse_messages([{"role": "user", "content": []}])

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            parse_messages([{"role": "narrator", "content": "..."}])

    def test_tool_call_not_allowed_in_user_message(self):
        with pytest.raises(ValidationError):
            parse_messages([{
                "role": "user",
                "content": [{"type": "tool-call", "toolCallId": "t1", "toolName": "x", "input": {}}],
            }])

    def test_camel_case_wire_names(self):
        message = parse_messages([{
            "role": "tool",
            "content": [{
                "type": "tool-result",
                "toolCallId": "t1",
                "toolName": "search",
                "output": {"type": "json", "value": {"hits": 3}},
            }],
        }])[0]

        assert isinstance(message, ToolMessage)
        assert message.content[0].tool_call_id == "t1"
        assert message.to_wire()["content"][0]["toolCallId"] == "t1"

    def test_prune_empty_messages(self):
        raw = [
            {"role": "system", "content": ""},
            {"role": "assistant", "content": []},
            {"role": "user", "content": [{"type": "text", "text": "hi"}]},
        ]

        assert [m["role"] for m in prune_empty_messages(raw)] == ["system", "user"]


class TestEvents:
    def test_parse_from_json(self):
        event = parse_event('{"type":"text-delta","id":"a","text":"Hi"}')

        assert event == TextDeltaEvent(id="a", text="Hi")

    def test_wire_form(self):
        event = ToolCallEvent(tool_call_id="t1", tool_name="search", input={})

        assert event.to_wire() == {"type": "tool-call", "toolCallId": "t1", "toolName": "search", "input": {}}

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "telepathy"})

    def test_usage_sums(self):
        total = Usage(input_tokens=1, output_tokens=2) + Usage(input_tokens=3)

        assert total.input_tokens == 4
        assert total.output_tokens == 2
        assert total.total_tokens is None


class TestOverrides:
    """Test field-by-field override merging."""

    def _data(self) -> VersionData:
        return VersionData(
            model=ModelRef(provider_id="prov-a", name="gpt-4o"),
            messages=[],
            temperature=0.2,
            max_output_tokens=500,
            max_step_count=2,
            provider_options=ProviderOptions(openai={"reasoningEffort": "low"}),
        )

    def test_absent_fields_fall_back(self):
        merged = apply_overrides(self._data(), Overrides(temperature=0.9))

        assert merged.temperature == 0.9
        assert merged.max_output_tokens == 500
        assert merged.max_step_count == 2
        assert merged.model.name == "gpt-4o"

    def test_model_merged_per_field(self):
        """Overriding the provider keeps the stored model name."""
        merged = apply_overrides(self._data(), Overrides(model=ModelOverride(provider_id="prov-b")))

        assert merged.model == ModelRef(provider_id="prov-b", name="gpt-4o")

    def test_stored_data_untouched(self):
        data = self._data()

        apply_overrides(data, Overrides(model=ModelOverride(name="gpt-4.1"), temperature=1.0))

        assert data.model.name == "gpt-4o"
        assert data.temperature == 0.2

    def test_no_overrides_is_a_copy(self):
        data = self._data()
        merged = apply_overrides(data, None)

        assert merged == data
        assert merged is not data

    def test_overrides_accept_camel_case(self):
        overrides = Overrides.model_validate({"maxOutputTokens": 10, "model": {"name": "x"}})

        assert overrides.max_output_tokens == 10
        assert overrides.model.name == "x"


class TestAgent:
    def test_deployed_version(self):
        agent = Agent(id="a", workspace_id="w", name="bot", production_version_id="v2")

        assert agent.deployed_version_id("production") == "v2"
        assert agent.deployed_version_id("staging") is None

    def test_unknown_environment(self):
        with pytest.raises(ValueError):
            Agent(id="a", workspace_id="w", name="bot").deployed_version_id("qa")


def test_metrics_default_to_zero():
    assert Metrics().to_wire() == {"preProcessingTime": 0, "firstTokenTime": 0, "responseTime": 0}
