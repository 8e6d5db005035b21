"""agent0 - run versioned LLM agents against any provider, stream them, record them."""

from agent0.credentials import CredentialResolver, decrypt_credentials, encrypt_credentials
from agent0.errors import (
    Agent0Error,
    DecryptionError,
    GenerationError,
    IncompleteStream,
    IncompleteToolCall,
    MalformedConfig,
    MalformedStream,
    NotFound,
    PersistenceError,
    UnsupportedProvider,
)
from agent0.orchestrator import GenerateResult, Orchestrator
from agent0.providers import build_backend
from agent0.reconstruct import MessageReconstructor, ReconstructionResult, areconstruct, reconstruct
from agent0.recorder import RunRecorder
from agent0.store import DataStore, MemoryStore
from agent0.streaming import decode_frames, encode_frame, sse_stream
from agent0.tools import StaticToolResolver, Tool
from agent0.variables import extract_variables, substitute

__all__ = [
    # Errors
    "Agent0Error",
    "DecryptionError",
    "GenerationError",
    "IncompleteStream",
    "IncompleteToolCall",
    "MalformedConfig",
    "MalformedStream",
    "NotFound",
    "PersistenceError",
    "UnsupportedProvider",
    # Pipeline
    "CredentialResolver",
    "decrypt_credentials",
    "encrypt_credentials",
    "substitute",
    "extract_variables",
    "build_backend",
    "Orchestrator",
    "GenerateResult",
    "RunRecorder",
    # Streaming
    "encode_frame",
    "sse_stream",
    "decode_frames",
    "MessageReconstructor",
    "ReconstructionResult",
    "reconstruct",
    "areconstruct",
    # Collaborators
    "DataStore",
    "MemoryStore",
    "Tool",
    "StaticToolResolver",
]
