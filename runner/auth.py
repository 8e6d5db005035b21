"""Bearer-token authentication and workspace access checks.

Issuing tokens and sessions is someone else's job: the runner only turns a
bearer token into a ``Principal`` through an ``Authenticator``. The default
authenticator accepts workspace API keys, stored as SHA-256 hashes.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from fastapi import Header, HTTPException, Request

from agent0.store import DataStore
from agent0.utils.identifiers import generate_row_id, utc_timestamp

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
READER_ROLE = "reader"


@dataclass
class Principal:
    """Who is calling.

    ``workspace_id`` is set for API keys, which are scoped to one workspace.
    """

    user_id: str
    workspace_id: Optional[str] = None


class Authenticator(Protocol):
    """Protocol for validating bearer tokens."""

    def authenticate(self, token: str) -> Optional[Principal]:
        ...


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class ApiKeyAuthenticator:
    """Looks API keys up by hash in the ``api_keys`` table."""

    def __init__(self, store: DataStore) -> None:
        self.store = store

    def authenticate(self, token: str) -> Optional[Principal]:
        rows = self.store.select("api_keys", key_hash=hash_api_key(token))
        if not rows:
            return None
        row = rows[0]
        return Principal(user_id=row["user_id"], workspace_id=row["workspace_id"])


class UserDirectory(Protocol):
    """Protocol for the user account service used by invitations."""

    def invite_user_by_email(self, email: str) -> str:
        """Invite a user (creating the account if needed); returns the user id."""
        ...


class StoreUserDirectory:
    """Keeps invited users in the ``users`` table. Sending the email is out of scope."""

    def __init__(self, store: DataStore) -> None:
        self.store = store

    def invite_user_by_email(self, email: str) -> str:
        existing = self.store.select("users", email=email)
        if existing:
            return existing[0]["id"]
        row = self.store.insert(
            "users",
            {"id": generate_row_id(), "email": email, "invited_at": utc_timestamp()},
        )
        logger.info(f"Invited new user {row['id']}")
        return row["id"]


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_principal(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Principal:
    """FastAPI dependency: the authenticated caller, or 401."""
    token = bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="No token provided")
    principal = request.app.state.authenticator.authenticate(token)
    if principal is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return principal


def workspace_role(store: DataStore, principal: Principal, workspace_id: str) -> Optional[str]:
    """The caller's role in a workspace, or None if they aren't a member."""
    rows = store.select("workspace_users", workspace_id=workspace_id, user_id=principal.user_id)
    if rows:
        return rows[0].get("role")
    return None


def require_workspace_access(store: DataStore, principal: Principal, workspace_id: str) -> None:
    """403 unless the caller's key is scoped to the workspace or they are a member."""
    if principal.workspace_id is not None:
        if principal.workspace_id != workspace_id:
            raise HTTPException(status_code=403, detail="Access denied to this workspace")
        return
    if workspace_role(store, principal, workspace_id) is None:
        raise HTTPException(status_code=403, detail="Access denied to this workspace")
