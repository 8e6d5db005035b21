"""API routes for deploying agent versions to environments."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from agent0.models.api import DeployRequest
from runner.auth import READER_ROLE, Principal, require_principal, require_workspace_access, workspace_role
from runner.run_routes import load_agent, load_version

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/agents/{agent_id}/deploy")
def deploy_version(
    agent_id: str,
    body: DeployRequest,
    request: Request,
    principal: Principal = Depends(require_principal),
):
    """Point an environment at a version.

    Deploying the version an environment already runs changes nothing and
    reports ``deployed: false``.
    """
    store = request.app.state.store
    agent = load_agent(store, agent_id)
    require_workspace_access(store, principal, agent.workspace_id)
    if principal.workspace_id is None and workspace_role(store, principal, agent.workspace_id) == READER_ROLE:
        raise HTTPException(status_code=403, detail="Readers cannot deploy versions")

    version = load_version(store, body.version_id)
    if version.agent_id != agent.id:
        raise HTTPException(
            status_code=400,
            detail=f"Version {version.id} does not belong to agent {agent.id}",
        )

    result = {
        "agent_id": agent.id,
        "environment": body.environment,
        "version_id": version.id,
    }
    if agent.deployed_version_id(body.environment) == version.id:
        return {**result, "deployed": False}

    store.update("agents", agent.id, {f"{body.environment}_version_id": version.id})
    logger.info(f"Deployed version {version.id} of agent {agent.id} to {body.environment}")
    return {**result, "deployed": True}
