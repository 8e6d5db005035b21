"""Agent and version models.

A Version is an immutable snapshot of an agent's model, messages and
generation options. Editing an agent creates a new Version; runs can replace
some options per call through ``Overrides`` without touching the stored row.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from agent0.models.base import WireModel
from agent0.models.messages import Message


class ModelRef(BaseModel):
    """Which provider credentials and which model name to use."""

    provider_id: str
    name: str  # e.g. "gpt-4o", "gemini-2.5-flash"


class ToolRef(BaseModel):
    """A tool exposed by an MCP server registered in the workspace."""

    mcp_id: str
    name: str


class ProviderOptions(BaseModel):
    """Provider-specific reasoning/thinking options, keyed by vendor."""

    model_config = ConfigDict(extra="allow")

    openai: dict[str, Any] | None = None  # e.g. {"reasoningEffort": "low"}
    xai: dict[str, Any] | None = None
    google: dict[str, Any] | None = None  # e.g. {"thinkingConfig": {...}}
    anthropic: dict[str, Any] | None = None

    def for_vendor(self, vendor: str) -> dict[str, Any]:
        """Options for one vendor key, or an empty dict."""
        return (self.model_dump(exclude_none=True).get(vendor)) or {}


class VersionData(WireModel):
    """The stored body of a version (the ``data`` column)."""

    model: ModelRef
    messages: list[Message] = []
    max_output_tokens: int | None = None
    output_format: Literal["text", "json"] | None = None
    temperature: float | None = None
    max_step_count: int | None = Field(default=None, ge=1)
    tools: list[ToolRef] | None = None
    provider_options: ProviderOptions | None = None


class ModelOverride(BaseModel):
    provider_id: str | None = None
    name: str | None = None


class Overrides(WireModel):
    """Per-run partial replacement of a version's generation options.

    Lets callers implement fallbacks and load balancing across providers
    without creating new versions.
    """

    model: ModelOverride | None = None
    max_output_tokens: int | None = None
    temperature: float | None = None
    max_step_count: int | None = Field(default=None, ge=1)
    provider_options: ProviderOptions | None = None


def apply_overrides(data: VersionData, overrides: Overrides | None) -> VersionData:
    """Merge overrides into version data field by field.

    A present override field replaces the stored value; an absent one falls
    back to it. The model reference is merged per sub-field. The input is
    never mutated.
    """
    if overrides is None:
        return data.model_copy(deep=True)

    model = data.model
    if overrides.model is not None:
        model = ModelRef(
            provider_id=overrides.model.provider_id
            if overrides.model.provider_id is not None
            else data.model.provider_id,
            name=overrides.model.name
            if overrides.model.name is not None
            else data.model.name,
        )

    return data.model_copy(
        deep=True,
        update={
            "model": model,
            "max_output_tokens": overrides.max_output_tokens
            if overrides.max_output_tokens is not None
            else data.max_output_tokens,
            "temperature": overrides.temperature
            if overrides.temperature is not None
            else data.temperature,
            "max_step_count": overrides.max_step_count
            if overrides.max_step_count is not None
            else data.max_step_count,
            "provider_options": overrides.provider_options
            if overrides.provider_options is not None
            else data.provider_options,
        },
    )


class Version(BaseModel):
    """An immutable version row."""

    id: str
    agent_id: str
    data: VersionData
    created_at: str | None = None


class Agent(BaseModel):
    """A named agent and the versions deployed to each environment."""

    id: str
    workspace_id: str
    name: str
    staging_version_id: str | None = None
    production_version_id: str | None = None

    def deployed_version_id(self, environment: str) -> str | None:
        if environment == "staging":
            return self.staging_version_id
        if environment == "production":
            return self.production_version_id
        raise ValueError(f"Unknown environment: {environment}")


ENVIRONMENTS = ("staging", "production")
