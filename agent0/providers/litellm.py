"""
Google, Vertex AI and Bedrock backends through LiteLLM.

LiteLLM returns OpenAI-shaped stream chunks for all three, so requests reuse
the Chat Completions conversion and the same chunk translator.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

from pydantic import Field

from agent0.models.events import StreamEvent
from agent0.models.messages import Message
from agent0.providers.base import (
    GenerationBackend,
    GenerationOptions,
    LanguageModel,
    VendorSettings,
    validate_settings,
)
from agent0.providers.openai import (
    ChunkTranslator,
    to_openai_messages,
    to_openai_tools,
)
from agent0.tools import ToolSet

logger = logging.getLogger(__name__)


class GoogleSettings(VendorSettings):
    api_key: str
    base_url: Optional[str] = Field(default=None, alias="baseURL")


class VertexSettings(VendorSettings):
    project: str
    location: str = "us-central1"
    # service-account JSON, as an object or a JSON string
    google_credentials: Optional[Any] = Field(default=None, alias="googleCredentials")


class BedrockSettings(VendorSettings):
    region: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None


def _google_params(options: dict[str, Any]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    thinking = options.get("thinkingConfig")
    if isinstance(thinking, dict):
        budget = thinking.get("thinkingBudget")
        if budget is not None:
            params["thinking"] = {"type": "enabled", "budget_tokens": budget}
        elif thinking.get("includeThoughts"):
            params["reasoning_effort"] = "low"
    safety = options.get("safetySettings")
    if safety:
        params["safety_settings"] = safety
    return params


class LiteLLMChatModel(LanguageModel):
    def __init__(
        self,
        model_id: str,
        provider: str,
        prefix: str,
        credentials: dict[str, Any],
        options_key: Optional[str] = None,
    ):
        self.model_id = model_id
        self.provider = provider
        self.prefix = prefix
        self.options_key = options_key
        self._credentials = credentials

    def _build_request(
        self, messages: list[Message], tools: ToolSet, options: GenerationOptions
    ) -> dict[str, Any]:
        request_kwargs: dict[str, Any] = {
            "model": f"{self.prefix}/{self.model_id}",
            "messages": to_openai_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
            **self._credentials,
        }
        if tools:
            request_kwargs["tools"] = to_openai_tools(tools)
        if options.temperature is not None:
            request_kwargs["temperature"] = options.temperature
        if options.max_output_tokens is not None:
            request_kwargs["max_tokens"] = options.max_output_tokens
        if options.output_format == "json":
            request_kwargs["response_format"] = {"type": "json_object"}
        if self.options_key == "google":
            request_kwargs.update(_google_params(options.vendor_options("google")))
        return request_kwargs

    async def stream_step(
        self,
        messages: list[Message],
        tools: ToolSet,
        options: GenerationOptions,
    ) -> AsyncIterator[StreamEvent]:
        import litellm

        request_kwargs = self._build_request(messages, tools, options)
        translator = ChunkTranslator()

        response = await litellm.acompletion(**request_kwargs, timeout=options.timeout)
        try:
            async for chunk in response:
                for event in translator.translate(chunk):
                    yield event
        finally:
            aclose = getattr(response, "aclose", None)
            if aclose is not None:
                await aclose()

        for event in translator.flush():
            yield event


class GoogleBackend(GenerationBackend):
    """Gemini API with an API key."""

    vendor = "google"

    def __init__(self, settings: GoogleSettings):
        self._credentials: dict[str, Any] = {"api_key": settings.api_key}
        if settings.base_url:
            self._credentials["api_base"] = settings.base_url

    @classmethod
    def from_config(cls, config: dict) -> "GoogleBackend":
        return cls(validate_settings(GoogleSettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return LiteLLMChatModel(
            name, provider=self.vendor, prefix="gemini",
            credentials=self._credentials, options_key="google",
        )


class VertexBackend(GenerationBackend):
    """Gemini on Vertex AI with a GCP project and service account."""

    vendor = "google-vertex"

    def __init__(self, settings: VertexSettings):
        self._credentials: dict[str, Any] = {
            "vertex_project": settings.project,
            "vertex_location": settings.location,
        }
        if settings.google_credentials is not None:
            credentials = settings.google_credentials
            if not isinstance(credentials, str):
                credentials = json.dumps(credentials)
            self._credentials["vertex_credentials"] = credentials

    @classmethod
    def from_config(cls, config: dict) -> "VertexBackend":
        return cls(validate_settings(VertexSettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return LiteLLMChatModel(
            name, provider=self.vendor, prefix="vertex_ai",
            credentials=self._credentials, options_key="google",
        )


class BedrockBackend(GenerationBackend):
    """Amazon Bedrock; without explicit keys the AWS default chain is used."""

    vendor = "bedrock"

    def __init__(self, settings: BedrockSettings):
        self._credentials: dict[str, Any] = {"aws_region_name": settings.region}
        if settings.access_key_id:
            self._credentials["aws_access_key_id"] = settings.access_key_id
        if settings.secret_access_key:
            self._credentials["aws_secret_access_key"] = settings.secret_access_key
        if settings.session_token:
            self._credentials["aws_session_token"] = settings.session_token

    @classmethod
    def from_config(cls, config: dict) -> "BedrockBackend":
        return cls(validate_settings(BedrockSettings, config, cls.vendor))

    def model(self, name: str) -> LanguageModel:
        return LiteLLMChatModel(
            name, provider=self.vendor, prefix="bedrock", credentials=self._credentials,
        )
