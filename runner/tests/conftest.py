"""Fixtures for runner API tests: an app over a seeded in-memory store."""

import pytest
from fastapi.testclient import TestClient

from agent0.orchestrator import Orchestrator
from agent0.tests.conftest import _fresh_settings, keypair, resolver, scripted, settings, store  # noqa: F401
from agent0.tests.fakes import provider_row, version_row
from runner.app import create_app
from runner.auth import hash_api_key

TOKENS = {
    "admin-token": ("user-admin", None),
    "reader-token": ("user-reader", None),
    "outsider-token": ("user-outsider", None),
    "ws-key": ("user-admin", "ws-1"),  # API key scoped to ws-1
}


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seeded(store, keypair):
    """ws-1 with an admin and a reader; agent-1 runs ver-1 in production."""
    for token, (user_id, workspace_id) in TOKENS.items():
        store.insert("api_keys", {"key_hash": hash_api_key(token), "user_id": user_id, "workspace_id": workspace_id})
    store.insert("workspace_users", {"workspace_id": "ws-1", "user_id": "user-admin", "role": "admin"})
    store.insert("workspace_users", {"workspace_id": "ws-1", "user_id": "user-reader", "role": "reader"})

    store.insert("providers", provider_row(keypair[1]))
    store.insert("agents", {"id": "agent-1", "workspace_id": "ws-1", "name": "greeter", "production_version_id": "ver-1"})
    store.insert("versions", version_row("ver-1"))
    store.insert("versions", version_row("ver-2", messages=[{"role": "system", "content": "Bye {{name}}"}]))
    store.insert("agents", {"id": "agent-2", "workspace_id": "ws-1", "name": "other"})
    store.insert("versions", version_row("ver-other", agent_id="agent-2"))
    return store


@pytest.fixture
def app(seeded, resolver, settings):
    return create_app(store=seeded, orchestrator=Orchestrator(seeded, resolver=resolver, settings=settings))


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
