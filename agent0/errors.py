"""Error taxonomy for the execution pipeline.

Every error carries a ``name`` that is written into ``Run.data.error`` and
into the structured error responses, so callers can branch on it without
knowing Python class names.
"""


class Agent0Error(Exception):
    """Base class for all pipeline errors."""

    name = "Agent0Error"

    def __init__(self, message: str, cause: object | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict:
        data: dict = {"name": self.name, "message": self.message}
        if self.cause is not None:
            data["cause"] = self.cause
        return data


class NotFound(Agent0Error):
    """A provider, agent or version row does not exist."""

    name = "NotFound"


class DecryptionError(Agent0Error):
    """Credential ciphertext could not be decrypted with the deployment key."""

    name = "DecryptionError"


class MalformedConfig(Agent0Error):
    """Decrypted credentials don't parse for the claimed provider type."""

    name = "MalformedConfig"


class UnsupportedProvider(Agent0Error):
    """The provider type has no entry in the dispatch table."""

    name = "UnsupportedProvider"


class GenerationError(Agent0Error):
    """The vendor reported a failure (surfaced through an ``error`` event)."""

    name = "GenerationError"


class MalformedStream(Agent0Error):
    """An event arrived that doesn't fit the current reconstruction state."""

    name = "MalformedStream"


class IncompleteToolCall(Agent0Error):
    """A tool-call never got a matching tool-result or tool-error."""

    name = "IncompleteToolCall"


class IncompleteStream(Agent0Error):
    """The event sequence ended before ``finish``."""

    name = "IncompleteStream"


class PersistenceError(Agent0Error):
    """The data store rejected a write."""

    name = "PersistenceError"


def error_to_dict(error: BaseException) -> dict:
    """Serialize any exception into the ``{name, message, cause?}`` shape."""
    if isinstance(error, Agent0Error):
        return error.to_dict()
    return {"name": type(error).__name__, "message": str(error)}
