"""Run record models.

A run is written exactly once per attempt, after generation concludes,
and never updated.
"""

from typing import Any

from pydantic import BaseModel

from agent0.models.base import WireModel
from agent0.models.events import Usage
from agent0.models.messages import Message
from agent0.models.version import Overrides, VersionData


class Metrics(WireModel):
    """Latency metrics in milliseconds. Unreached marks stay at 0."""

    pre_processing_time: float = 0
    first_token_time: float = 0
    response_time: float = 0


class RunError(BaseModel):
    name: str
    message: str
    cause: Any = None


class RunRequest(VersionData):
    """What was asked for: the version data plus per-run inputs."""

    stream: bool = False
    overrides: Overrides | None = None
    variables: dict[str, str] | None = None


class StepRecord(WireModel):
    """One assistant turn and the tool results it produced."""

    messages: list[Message] = []
    finish_reason: str | None = None
    usage: Usage | None = None
    warnings: list[Any] = []


class RunData(WireModel):
    request: RunRequest | None = None
    steps: list[StepRecord] = []
    error: RunError | None = None
    metrics: Metrics = Metrics()


class Run(BaseModel):
    """A persisted run row."""

    model_config = {"extra": "forbid"}

    id: str
    workspace_id: str
    version_id: str
    created_at: str
    is_error: bool
    is_test: bool
    data: RunData
