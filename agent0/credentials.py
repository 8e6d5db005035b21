"""Credential vault: provider credentials encrypted at rest.

Provider settings (API keys, endpoints, cloud credentials) are encrypted once
with the service's public key when a provider is configured, and decrypted
here on every run with the matching private key. The private key itself is
passphrase-protected; both live only in the runner's environment.

Ciphertext is hybrid: a fresh AES-256-GCM key encrypts the JSON settings and
is itself wrapped with RSA-OAEP. The result is base64 armored::

    -----BEGIN AGENT0 ENCRYPTED CREDENTIALS-----
    <base64(wrapped key || nonce || ciphertext), 64 columns>
    -----END AGENT0 ENCRYPTED CREDENTIALS-----
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import textwrap
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from agent0.config import runtime_settings
from agent0.errors import DecryptionError, MalformedConfig, NotFound
from agent0.models.provider import Provider
from agent0.store import DataStore

logger = logging.getLogger(__name__)

ARMOR_BEGIN = "-----BEGIN AGENT0 ENCRYPTED CREDENTIALS-----"
ARMOR_END = "-----END AGENT0 ENCRYPTED CREDENTIALS-----"
NONCE_SIZE = 12

_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


def generate_keypair(passphrase: str, key_size: int = 3072) -> tuple[str, str]:
    """Create a passphrase-protected private key and its public key, both PEM."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(passphrase.encode("utf-8")),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode("ascii"), public_pem.decode("ascii")


def encrypt_credentials(public_key_pem: str, plaintext: str) -> str:
    """Encrypt settings with the service's public key and armor the result."""
    public_key = serialization.load_pem_public_key(public_key_pem.encode("ascii"))
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError("Credentials public key must be an RSA key")

    data_key = AESGCM.generate_key(bit_length=256)
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(data_key).encrypt(nonce, plaintext.encode("utf-8"), None)
    wrapped_key = public_key.encrypt(data_key, _OAEP)

    body = base64.b64encode(wrapped_key + nonce + ciphertext).decode("ascii")
    return "\n".join([ARMOR_BEGIN, *textwrap.wrap(body, 64), ARMOR_END]) + "\n"


def _dearmor(armored: str) -> bytes:
    lines = [line.strip() for line in armored.strip().splitlines() if line.strip()]
    if len(lines) < 3 or lines[0] != ARMOR_BEGIN or lines[-1] != ARMOR_END:
        raise DecryptionError("Credentials are not armored ciphertext")
    try:
        return base64.b64decode("".join(lines[1:-1]), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("Credentials armor contains invalid base64") from e


def _load_private_key(private_key_pem: str | None, passphrase: str | None) -> rsa.RSAPrivateKey:
    if not private_key_pem:
        raise DecryptionError("No credentials private key configured")
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.encode("ascii"),
            password=passphrase.encode("utf-8") if passphrase else None,
        )
    except (ValueError, TypeError) as e:
        # wrong passphrase, missing passphrase, or an unreadable key
        raise DecryptionError("Could not load the credentials private key") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise DecryptionError("Credentials private key must be an RSA key")
    return key


def decrypt_credentials(armored: str, private_key_pem: str | None, passphrase: str | None) -> str:
    """Decrypt armored credentials into their plaintext.

    Raises:
        DecryptionError: the key can't be loaded or the ciphertext doesn't
            decrypt with it.
        MalformedConfig: the plaintext isn't UTF-8 text.
    """
    private_key = _load_private_key(private_key_pem, passphrase)
    blob = _dearmor(armored)

    wrapped_size = private_key.key_size // 8
    if len(blob) <= wrapped_size + NONCE_SIZE:
        raise DecryptionError("Credentials ciphertext is truncated")
    wrapped_key = blob[:wrapped_size]
    nonce = blob[wrapped_size : wrapped_size + NONCE_SIZE]
    ciphertext = blob[wrapped_size + NONCE_SIZE :]

    try:
        data_key = private_key.decrypt(wrapped_key, _OAEP)
        plaintext = AESGCM(data_key).decrypt(nonce, ciphertext, None)
    except (ValueError, InvalidTag) as e:
        raise DecryptionError("Credentials were not encrypted for this key") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedConfig("Decrypted credentials are not UTF-8 text") from e


@dataclass
class ResolvedProvider:
    """A provider row with its decrypted settings."""

    provider: Provider
    config: dict[str, Any]

    @property
    def provider_type(self) -> str:
        return self.provider.type


class CredentialResolver:
    """Loads provider rows and decrypts their settings.

    Nothing is cached: every call reads the row and decrypts again, so a
    re-keyed provider takes effect on the next run.
    """

    def __init__(
        self,
        store: DataStore,
        private_key_pem: str | None = None,
        passphrase: str | None = None,
    ) -> None:
        settings = runtime_settings()
        self.store = store
        self._private_key_pem = private_key_pem or settings.CREDENTIALS_PRIVATE_KEY
        self._passphrase = passphrase if passphrase is not None else settings.CREDENTIALS_PRIVATE_KEY_PASSPHRASE

    def resolve(self, provider_id: str) -> ResolvedProvider:
        """Load and decrypt a provider's settings.

        Raises:
            NotFound: no provider row with this id.
            DecryptionError: the ciphertext doesn't decrypt with the deployment key.
            MalformedConfig: the row is invalid or the plaintext isn't a JSON object.
        """
        row = self.store.get("providers", provider_id)
        if row is None:
            raise NotFound(f"Provider not found: {provider_id}")
        try:
            provider = Provider.model_validate(row)
        except ValidationError as e:
            raise MalformedConfig(f"Provider {provider_id} row is invalid", cause=str(e)) from e

        plaintext = decrypt_credentials(
            provider.encrypted_data, self._private_key_pem, self._passphrase
        )
        try:
            config = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise MalformedConfig(
                f"Credentials for provider {provider_id} are not valid JSON"
            ) from e
        if not isinstance(config, dict):
            raise MalformedConfig(
                f"Credentials for provider {provider_id} must be a JSON object"
            )

        logger.debug(f"Decrypted credentials for provider {provider_id} ({provider.type})")
        return ResolvedProvider(provider=provider, config=config)
