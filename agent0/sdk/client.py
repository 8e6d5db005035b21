"""HTTP client for running deployed agents.

So an application can run an agent with one call:
    client = Agent0Client(api_key="...")
    response = client.generate(RunOptions(agent_id="support-bot", variables={"name": "Ada"}))
"""

from __future__ import annotations

from typing import AsyncIterator

import httpx

from agent0.models.api import GenerateResponse, RunOptions
from agent0.models.events import StreamEvent
from agent0.streaming import decode_frames

DEFAULT_BASE_URL = "https://app.agent0.com"


class Agent0ClientError(Exception):
    """Raised when a run request fails."""

    def __init__(self, message: str, status_code: int | None = None, name: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.name = name


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    # pipeline errors use {"error": {...}}; auth failures use FastAPI's {"detail": ...}
    error = body.get("error") or {}
    detail = body.get("detail") if isinstance(body.get("detail"), str) else None
    raise Agent0ClientError(
        error.get("message") or detail or f"Run request failed with status {response.status_code}",
        status_code=response.status_code,
        name=error.get("name"),
    )


class Agent0Client:
    """Runs agents through the runner's ``/api/v1/run`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            api_key: Workspace API key, sent as a bearer token
            base_url: Base URL of the runner
            timeout: HTTP timeout in seconds
            transport: Custom transport for ``generate`` (proxies, testing)
            async_transport: Custom transport for ``stream``
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._async_transport = async_transport

    @property
    def _url(self) -> str:
        return f"{self.base_url}/api/v1/run"

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _body(self, options: RunOptions, stream: bool) -> dict:
        return options.model_copy(update={"stream": stream}).to_wire()

    def generate(self, options: RunOptions) -> GenerateResponse:
        """Run an agent and wait for the full response."""
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self._url, json=self._body(options, False), headers=self._headers)
        except httpx.RequestError as e:
            raise Agent0ClientError(f"Failed to connect to runner at {self.base_url}: {e}") from e

        _raise_for_error(response)
        return GenerateResponse.model_validate(response.json())

    async def stream(self, options: RunOptions) -> AsyncIterator[StreamEvent]:
        """Run an agent and yield its events as they arrive."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._async_transport) as client:
                async with client.stream(
                    "POST", self._url, json=self._body(options, True), headers=self._headers
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        _raise_for_error(response)
                    async for event in decode_frames(response.aiter_bytes()):
                        yield event
        except httpx.RequestError as e:
            raise Agent0ClientError(f"Failed to connect to runner at {self.base_url}: {e}") from e
