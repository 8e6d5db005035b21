from agent0.providers.base import (
    GenerationBackend,
    GenerationOptions,
    LanguageModel,
    map_finish_reason,
)
from agent0.providers.registry import PROVIDER_BUILDERS, build_backend

__all__ = [
    "GenerationBackend",
    "GenerationOptions",
    "LanguageModel",
    "map_finish_reason",
    "PROVIDER_BUILDERS",
    "build_backend",
]
