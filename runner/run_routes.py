"""API routes for running agents.

``/run`` runs the version deployed to an environment (used by the SDK);
``/test`` runs unsaved version data from the dashboard editor and always
streams. Pipeline errors propagate to the app's ``Agent0Error`` handler.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from agent0.errors import NotFound
from agent0.models.api import DraftRunOptions, GenerateResponse, RunOptions
from agent0.models.version import Agent, Version
from agent0.orchestrator import Orchestrator
from agent0.store import DataStore
from agent0.streaming import SSE_HEADERS, sse_stream
from runner.auth import Principal, require_principal, require_workspace_access

logger = logging.getLogger(__name__)

router = APIRouter()


def _store(request: Request) -> DataStore:
    return request.app.state.store


def _orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def load_agent(store: DataStore, agent_id: str) -> Agent:
    row = store.get("agents", agent_id)
    if row is None:
        raise NotFound(f"Agent not found: {agent_id}")
    return Agent.model_validate(row)


def load_version(store: DataStore, version_id: str) -> Version:
    row = store.get("versions", version_id)
    if row is None:
        raise NotFound(f"Version not found: {version_id}")
    return Version.model_validate(row)


def event_stream_response(events) -> StreamingResponse:
    return StreamingResponse(sse_stream(events), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/run")
async def run_agent(
    body: RunOptions,
    request: Request,
    principal: Principal = Depends(require_principal),
):
    """Run the version of an agent deployed to an environment."""
    store = _store(request)
    agent = load_agent(store, body.agent_id)
    require_workspace_access(store, principal, agent.workspace_id)

    version_id = agent.deployed_version_id(body.environment)
    if version_id is None:
        raise NotFound(f"No version of agent {agent.id} is deployed to {body.environment}")
    version = load_version(store, version_id)
    logger.info(f"Run requested for agent {agent.id} ({body.environment}, stream={body.stream})")

    orchestrator = _orchestrator(request)
    if body.stream:
        events = await orchestrator.stream(
            version,
            agent.workspace_id,
            variables=body.variables,
            overrides=body.overrides,
            extra_messages=body.extra_messages,
        )
        return event_stream_response(events)

    result = await orchestrator.generate(
        version,
        agent.workspace_id,
        variables=body.variables,
        overrides=body.overrides,
        extra_messages=body.extra_messages,
    )
    return GenerateResponse(messages=result.messages, text=result.text).to_wire()


@router.post("/test")
async def run_draft(
    body: DraftRunOptions,
    request: Request,
    principal: Principal = Depends(require_principal),
):
    """Stream a run of editor data against an existing version, recorded as a test run."""
    store = _store(request)
    stored = load_version(store, body.version_id)
    agent = load_agent(store, stored.agent_id)
    require_workspace_access(store, principal, agent.workspace_id)

    # the editor's data, attributed to the version it was opened from
    draft = Version(id=stored.id, agent_id=stored.agent_id, data=body.data, created_at=stored.created_at)
    events = await _orchestrator(request).stream(
        draft,
        agent.workspace_id,
        variables=body.variables,
        overrides=body.overrides,
        extra_messages=body.extra_messages,
        is_test=True,
    )
    return event_stream_response(events)
