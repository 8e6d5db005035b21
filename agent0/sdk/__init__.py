"""SDK for running agents from application code."""

from agent0.sdk.client import Agent0Client, Agent0ClientError

__all__ = [
    "Agent0Client",
    "Agent0ClientError",
]
