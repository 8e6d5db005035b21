"""Provider models: a workspace's encrypted credentials for one vendor."""

from enum import Enum

from pydantic import BaseModel


class ProviderType(str, Enum):
    """Vendor kinds with an entry in the dispatch table."""

    openai = "openai"
    azure = "azure"
    xai = "xai"
    anthropic = "anthropic"
    google = "google"
    google_vertex = "google-vertex"
    bedrock = "bedrock"


class Provider(BaseModel):
    """A provider row.

    ``type`` stays a plain string: rows may name vendors this deployment
    doesn't support, and dispatch is where that gets rejected.
    """

    id: str
    workspace_id: str
    type: str
    encrypted_data: str  # armored ciphertext of the JSON settings
    name: str | None = None
