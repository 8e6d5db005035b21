"""API route for inviting users to a workspace."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from agent0.models.api import InviteRequest
from agent0.utils.identifiers import utc_timestamp
from runner.auth import ADMIN_ROLE, READER_ROLE, Principal, require_principal, workspace_role

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/invite")
def invite_user(
    body: InviteRequest,
    request: Request,
    principal: Principal = Depends(require_principal),
):
    """Invite a user by email; they join the workspace as a reader."""
    store = request.app.state.store
    if workspace_role(store, principal, body.workspace_id) != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Access denied to this workspace")

    user_id = request.app.state.user_directory.invite_user_by_email(body.email)

    if not store.select("workspace_users", workspace_id=body.workspace_id, user_id=user_id):
        store.insert(
            "workspace_users",
            {
                "workspace_id": body.workspace_id,
                "user_id": user_id,
                "role": READER_ROLE,
                "created_at": utc_timestamp(),
            },
        )
    logger.info(f"User {user_id} invited to workspace {body.workspace_id}")
    return {"message": "User invited successfully"}
