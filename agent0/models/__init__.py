"""Core data models for the agent0 runner."""

from agent0.models.api import (
    DeployRequest,
    DraftRunOptions,
    ErrorBody,
    GenerateResponse,
    InviteRequest,
    RunOptions,
)
from agent0.models.events import (
    CONTENT_EVENT_TYPES,
    ErrorEvent,
    FinishEvent,
    FinishStepEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    StartEvent,
    StartStepEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
    Usage,
    parse_event,
)
from agent0.models.messages import (
    AssistantMessage,
    FilePart,
    ImagePart,
    Message,
    ReasoningPart,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolOutput,
    ToolResultPart,
    UserMessage,
    dump_messages,
    parse_messages,
)
from agent0.models.provider import Provider, ProviderType
from agent0.models.run import Metrics, Run, RunData, RunError, RunRequest, StepRecord
from agent0.models.version import (
    Agent,
    ModelOverride,
    ModelRef,
    Overrides,
    ProviderOptions,
    ToolRef,
    Version,
    VersionData,
    apply_overrides,
)

__all__ = [
    # Messages
    "AssistantMessage",
    "FilePart",
    "ImagePart",
    "Message",
    "ReasoningPart",
    "SystemMessage",
    "TextPart",
    "ToolCallPart",
    "ToolMessage",
    "ToolOutput",
    "ToolResultPart",
    "UserMessage",
    "dump_messages",
    "parse_messages",
    # Events
    "CONTENT_EVENT_TYPES",
    "ErrorEvent",
    "FinishEvent",
    "FinishStepEvent",
    "ReasoningDeltaEvent",
    "ReasoningEndEvent",
    "ReasoningStartEvent",
    "StartEvent",
    "StartStepEvent",
    "StreamEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "TextStartEvent",
    "ToolCallEvent",
    "ToolErrorEvent",
    "ToolResultEvent",
    "Usage",
    "parse_event",
    # Agents and versions
    "Agent",
    "ModelOverride",
    "ModelRef",
    "Overrides",
    "ProviderOptions",
    "ToolRef",
    "Version",
    "VersionData",
    "apply_overrides",
    # Providers
    "Provider",
    "ProviderType",
    # API
    "DeployRequest",
    "DraftRunOptions",
    "ErrorBody",
    "GenerateResponse",
    "InviteRequest",
    "RunOptions",
    # Runs
    "Metrics",
    "Run",
    "RunData",
    "RunError",
    "RunRequest",
    "StepRecord",
]
