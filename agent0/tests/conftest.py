"""Shared fixtures for agent0 tests."""

import pytest

from agent0.config import RunnerSettings, reset_settings
from agent0.credentials import CredentialResolver, generate_keypair
from agent0.providers.registry import PROVIDER_BUILDERS
from agent0.store import MemoryStore
from agent0.tests.fakes import TEST_PASSPHRASE, ScriptedBackend, ScriptedModel


@pytest.fixture(scope="session")
def keypair():
    """(private PEM, public PEM); 2048 bits keeps the suite fast."""
    return generate_keypair(TEST_PASSPHRASE, key_size=2048)


@pytest.fixture
def settings(keypair):
    return RunnerSettings(
        CREDENTIALS_PRIVATE_KEY=keypair[0],
        CREDENTIALS_PRIVATE_KEY_PASSPHRASE=TEST_PASSPHRASE,
        GENERATION_TIMEOUT_SECONDS=5,
    )


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def resolver(store, keypair):
    return CredentialResolver(store, private_key_pem=keypair[0], passphrase=TEST_PASSPHRASE)


@pytest.fixture
def scripted(monkeypatch):
    """Registers a "fake" vendor whose model replays ``scripted.steps``."""
    model = ScriptedModel(steps=[])
    backends: list[ScriptedBackend] = []

    def build(config: dict) -> ScriptedBackend:
        backend = ScriptedBackend(model, config)
        backends.append(backend)
        return backend

    monkeypatch.setitem(PROVIDER_BUILDERS, "fake", build)
    model.backends = backends
    return model
