"""Request and response bodies of the runner's HTTP API."""

from typing import Any, Literal

from pydantic import Field

from agent0.models.base import WireModel
from agent0.models.messages import Message
from agent0.models.version import Overrides, VersionData

Environment = Literal["staging", "production"]


class RunOptions(WireModel):
    """Body of ``POST /api/v1/run``."""

    agent_id: str
    environment: Environment = "production"
    variables: dict[str, str] | None = None
    # runtime model overrides for load balancing, fallbacks, etc.
    overrides: Overrides | None = None
    # appended to the agent's prompt as-is (no variable substitution)
    extra_messages: list[Message] | None = None
    stream: bool = False


class DraftRunOptions(WireModel):
    """Body of ``POST /api/v1/test``: unsaved version data from the editor."""

    version_id: str
    data: VersionData
    variables: dict[str, str] | None = None
    overrides: Overrides | None = None
    extra_messages: list[Message] | None = None


class GenerateResponse(WireModel):
    messages: list[Message]
    text: str


class InviteRequest(WireModel):
    email: str = Field(min_length=3)
    workspace_id: str


class DeployRequest(WireModel):
    version_id: str
    environment: Environment


class ErrorBody(WireModel):
    name: str
    message: str
    cause: Any = None
