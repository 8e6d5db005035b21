"""Static vendor dispatch table."""

import logging
from typing import Callable, Optional

from agent0.providers.anthropic import AnthropicBackend
from agent0.providers.base import GenerationBackend
from agent0.providers.litellm import BedrockBackend, GoogleBackend, VertexBackend
from agent0.providers.openai import AzureBackend, OpenAIBackend, XaiBackend

logger = logging.getLogger(__name__)

BackendBuilder = Callable[[dict], GenerationBackend]

PROVIDER_BUILDERS: dict[str, BackendBuilder] = {
    "openai": OpenAIBackend.from_config,
    "azure": AzureBackend.from_config,
    "xai": XaiBackend.from_config,
    "anthropic": AnthropicBackend.from_config,
    "google": GoogleBackend.from_config,
    "google-vertex": VertexBackend.from_config,
    "bedrock": BedrockBackend.from_config,
}


def build_backend(provider_type: str, config: dict) -> Optional[GenerationBackend]:
    """
    Build the backend for a vendor kind from its decrypted settings.

    Returns:
        The backend, or None when the vendor kind is not supported

    Raises:
        MalformedConfig: settings don't match the vendor's shape
    """
    builder = PROVIDER_BUILDERS.get(provider_type)
    if builder is None:
        logger.warning(f"No backend for provider type: {provider_type}")
        return None
    return builder(config)
