"""
Abstract interfaces for generation backends.

A backend is built from one provider's decrypted settings and hands out
model handles by name. A model handle streams exactly one generation step
as events: ``text-*``, ``reasoning-*``, ``tool-call`` and a closing
``finish-step``. Steps, tool execution and run bookkeeping happen above
this layer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from agent0.errors import MalformedConfig
from agent0.models.events import StreamEvent
from agent0.models.messages import Message
from agent0.models.version import ProviderOptions
from agent0.tools import ToolSet

SettingsT = TypeVar("SettingsT", bound="VendorSettings")


class VendorSettings(BaseModel):
    """Base for vendor settings shapes (camelCase keys, unknown keys ignored)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def validate_settings(settings_cls: type[SettingsT], config: dict, vendor: str) -> SettingsT:
    """Validate decrypted settings against a vendor's shape."""
    try:
        return settings_cls.model_validate(config)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedConfig(
            f"Invalid {vendor} provider settings: {', '.join(fields)}"
        ) from e


@dataclass
class GenerationOptions:
    """Per-call options after overrides have been merged."""

    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    output_format: Optional[Literal["text", "json"]] = None
    provider_options: Optional[ProviderOptions] = None
    timeout: Optional[float] = None

    def vendor_options(self, vendor: str) -> dict[str, Any]:
        if self.provider_options is None:
            return {}
        return self.provider_options.for_vendor(vendor)


class LanguageModel(ABC):
    """A model handle: one vendor, one model name."""

    provider: str
    model_id: str

    @abstractmethod
    def stream_step(
        self,
        messages: list[Message],
        tools: ToolSet,
        options: GenerationOptions,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream one generation step.

        Args:
            messages: Full conversation so far
            tools: Tools the model may call
            options: Generation options

        Yields:
            Step events, ending with a ``finish-step``
        """
        ...


class GenerationBackend(ABC):
    """A vendor client built from decrypted provider settings."""

    vendor: str

    @abstractmethod
    def model(self, name: str) -> LanguageModel:
        """Get a model handle by the vendor's model name."""
        ...


# vendor finish reasons -> the unified set used in events
FINISH_REASONS = {
    "stop": "stop",
    "end_turn": "stop",
    "stop_sequence": "stop",
    "length": "length",
    "max_tokens": "length",
    "tool_calls": "tool-calls",
    "tool_use": "tool-calls",
    "function_call": "tool-calls",
    "content_filter": "content-filter",
    "refusal": "content-filter",
}


def map_finish_reason(reason: Optional[str]) -> str:
    if not reason:
        return "unknown"
    return FINISH_REASONS.get(reason, "other")
