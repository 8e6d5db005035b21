"""
Generation orchestrator.

Turns a stored version plus per-run inputs into a generation:

1. merge overrides into the version data
2. resolve and decrypt the provider credentials
3. build the vendor backend and model handle
4. substitute variables, append extra messages
5. run the generation loop, streaming or collected
6. record the run, whatever the outcome
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from agent0.config import RunnerSettings, runtime_settings
from agent0.credentials import CredentialResolver
from agent0.errors import (
    Agent0Error,
    GenerationError,
    IncompleteStream,
    PersistenceError,
    UnsupportedProvider,
)
from agent0.generation import stream_generation
from agent0.models.events import (
    CONTENT_EVENT_TYPES,
    TERMINAL_EVENT_TYPES,
    ErrorEvent,
    StreamEvent,
)
from agent0.models.messages import Message, parse_messages
from agent0.models.run import Metrics, RunData, RunError, RunRequest
from agent0.models.version import Overrides, Version, apply_overrides
from agent0.providers import build_backend
from agent0.providers.base import GenerationOptions, LanguageModel
from agent0.reconstruct import MessageReconstructor, ReconstructionResult, reconstruct
from agent0.recorder import RunRecorder
from agent0.store import DataStore
from agent0.tools import StaticToolResolver, ToolResolver, ToolSet
from agent0.utils.identifiers import monotonic_ms
from agent0.variables import substitute

logger = logging.getLogger(__name__)


class RunTimer:
    """Latency marks for one run, in milliseconds."""

    def __init__(self) -> None:
        self.start_time = time.time()
        self.started = monotonic_ms()
        self.invoked: Optional[float] = None
        self.first_token: Optional[float] = None
        self.finished: Optional[float] = None

    def mark_invoked(self) -> None:
        self.invoked = monotonic_ms()

    def mark_first_token(self) -> None:
        if self.first_token is None:
            self.first_token = monotonic_ms()

    def mark_finished(self) -> None:
        if self.finished is None:
            self.finished = monotonic_ms()

    def metrics(self) -> Metrics:
        if self.invoked is None:
            return Metrics()
        return Metrics(
            pre_processing_time=self.invoked - self.started,
            first_token_time=self.first_token - self.invoked if self.first_token is not None else 0,
            response_time=self.finished - self.invoked if self.finished is not None else 0,
        )


@dataclass
class PreparedRun:
    """Everything the generation loop needs, resolved."""

    model: LanguageModel
    messages: list[Message]
    tools: ToolSet
    options: GenerationOptions
    max_step_count: int


@dataclass
class RunContext:
    """Per-run inputs that end up in the run record."""

    workspace_id: str
    version: Version
    request: RunRequest
    is_test: bool = False
    timer: RunTimer = field(default_factory=RunTimer)


@dataclass
class GenerateResult:
    """Result of a collected (non-streaming) run."""

    messages: list[Message]
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "messages": [message.to_wire() for message in self.messages],
            "text": self.text,
        }


def _run_error(result: ReconstructionResult) -> Optional[RunError]:
    for issue in result.issues:
        if isinstance(issue, GenerationError):
            return RunError(**issue.to_dict())
    if result.issues:
        return RunError(**result.issues[0].to_dict())
    return None


class RunStream:
    """
    Event iterator of a live streaming run.

    Closing it before the first event still records the run once, with
    ``IncompleteStream`` as its error. After that the underlying generator
    records it.
    """

    def __init__(self, orchestrator: "Orchestrator", context: RunContext, events: AsyncIterator[StreamEvent]):
        self._orchestrator = orchestrator
        self._context = context
        self._events = events
        self._started = False
        self._closed = False

    def __aiter__(self) -> "RunStream":
        return self

    async def __anext__(self) -> StreamEvent:
        self._started = True
        return await self._events.__anext__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._events.aclose()
        if not self._started:
            context = self._context
            logger.warning(f"Run for version {context.version.id} closed before the first event")
            error = IncompleteStream("Stream closed before the first event")
            self._orchestrator._record(
                context,
                RunData(request=context.request, error=RunError(**error.to_dict()), metrics=context.timer.metrics()),
            )


class Orchestrator:
    """
    Runs versions.

    Example:
        orchestrator = Orchestrator(store)
        result = await orchestrator.generate(version, workspace_id, variables={"name": "World"})
        async for event in await orchestrator.stream(version, workspace_id):
            ...
    """

    def __init__(
        self,
        store: DataStore,
        resolver: Optional[CredentialResolver] = None,
        tool_resolver: Optional[ToolResolver] = None,
        recorder: Optional[RunRecorder] = None,
        settings: Optional[RunnerSettings] = None,
    ):
        self.store = store
        self.settings = settings or runtime_settings()
        self.resolver = resolver or CredentialResolver(store)
        self.tool_resolver = tool_resolver or StaticToolResolver()
        self.recorder = recorder or RunRecorder(store)

    # --- Preparation ---

    def _context(
        self,
        version: Version,
        workspace_id: str,
        variables: Optional[dict[str, str]],
        overrides: Optional[Overrides],
        stream: bool,
        is_test: bool,
    ) -> RunContext:
        request = RunRequest(
            **version.data.model_dump(),
            stream=stream,
            overrides=overrides,
            variables=variables,
        )
        return RunContext(workspace_id=workspace_id, version=version, request=request, is_test=is_test)

    def prepare(
        self,
        version: Version,
        variables: Optional[dict[str, str]] = None,
        overrides: Optional[Overrides] = None,
        extra_messages: Optional[list[Message | dict]] = None,
    ) -> PreparedRun:
        """
        Resolve everything a generation needs. No vendor call happens here.

        Raises:
            NotFound: The provider doesn't exist
            DecryptionError: The provider's credentials don't decrypt
            MalformedConfig: The decrypted settings don't fit the vendor
            UnsupportedProvider: No backend for the provider type
        """
        data = apply_overrides(version.data, overrides)

        resolved = self.resolver.resolve(data.model.provider_id)
        backend = build_backend(resolved.provider_type, resolved.config)
        if backend is None:
            raise UnsupportedProvider(f"Unsupported provider type: {resolved.provider_type}")

        messages = substitute(data.messages, variables)
        if extra_messages:
            # appended as-is, never substituted
            messages.extend(
                message if not isinstance(message, dict) else parse_messages([message])[0]
                for message in extra_messages
            )

        return PreparedRun(
            model=backend.model(data.model.name),
            messages=messages,
            tools=self.tool_resolver.resolve(data.tools or []),
            options=GenerationOptions(
                max_output_tokens=data.max_output_tokens,
                temperature=data.temperature,
                output_format=data.output_format,
                provider_options=data.provider_options,
                timeout=self.settings.generation_timeout,
            ),
            max_step_count=data.max_step_count or self.settings.DEFAULT_MAX_STEP_COUNT,
        )

    def _prepare_or_record(
        self,
        context: RunContext,
        variables: Optional[dict[str, str]],
        overrides: Optional[Overrides],
        extra_messages: Optional[list[Message | dict]],
    ) -> PreparedRun:
        try:
            return self.prepare(context.version, variables, overrides, extra_messages)
        except Agent0Error as e:
            logger.warning(f"Run preparation failed for version {context.version.id}: {e.name}: {e.message}")
            self._record(context, RunData(request=context.request, error=RunError(**e.to_dict()), metrics=context.timer.metrics()))
            raise
        except Exception as e:
            # e.g. an extra message that doesn't validate
            error = Agent0Error(str(e) or type(e).__name__, cause=type(e).__name__)
            logger.warning(f"Run preparation failed for version {context.version.id}: {type(e).__name__}: {e}")
            self._record(context, RunData(request=context.request, error=RunError(**error.to_dict()), metrics=context.timer.metrics()))
            raise error from e

    # --- Recording ---

    def _record(self, context: RunContext, run_data: RunData) -> None:
        try:
            self.recorder.record(
                workspace_id=context.workspace_id,
                version_id=context.version.id,
                run_data=run_data,
                start_time=context.timer.start_time,
                is_error=run_data.error is not None,
                is_test=context.is_test,
            )
        except PersistenceError as e:
            # the caller still gets their result
            logger.error(f"Failed to record run for version {context.version.id}: {e.message}")

    # --- Generation ---

    async def _events(self, context: RunContext, prepared: PreparedRun) -> AsyncIterator[StreamEvent]:
        timer = context.timer
        reconstructor = MessageReconstructor()

        timer.mark_invoked()
        events = stream_generation(
            prepared.model,
            prepared.messages,
            prepared.tools,
            prepared.options,
            max_step_count=prepared.max_step_count,
        )
        try:
            async for event in events:
                if event.type in CONTENT_EVENT_TYPES:
                    timer.mark_first_token()
                if event.type in TERMINAL_EVENT_TYPES:
                    timer.mark_finished()
                reconstructor.feed(event)
                yield event
        except Exception as e:
            logger.exception(f"Run for version {context.version.id} failed")
            error_event = ErrorEvent(error=GenerationError(str(e) or type(e).__name__).to_dict())
            timer.mark_finished()
            reconstructor.feed(error_event)
            yield error_event
        finally:
            await events.aclose()
            if not reconstructor.complete:
                logger.warning(f"Run for version {context.version.id} ended before finish")
            reconstructor.close(complete=reconstructor.complete)
            result = reconstructor.result()
            self._record(
                context,
                RunData(
                    request=context.request,
                    steps=result.steps,
                    error=_run_error(result),
                    metrics=timer.metrics(),
                ),
            )

    async def stream(
        self,
        version: Version,
        workspace_id: str,
        variables: Optional[dict[str, str]] = None,
        overrides: Optional[Overrides] = None,
        extra_messages: Optional[list[Message | dict]] = None,
        is_test: bool = False,
    ) -> RunStream:
        """
        Start a streaming run.

        Preparation errors are raised here (and recorded). Once this returns,
        the run is live: generation failures arrive as ``error`` events, and
        the run is recorded when the iterator ends or is closed, even if it
        is closed before the first event.
        """
        context = self._context(version, workspace_id, variables, overrides, True, is_test)
        prepared = self._prepare_or_record(context, variables, overrides, extra_messages)
        logger.info(
            f"Streaming run for version {version.id} on {prepared.model.provider}/{prepared.model.model_id}"
        )
        return RunStream(self, context, self._events(context, prepared))

    async def generate(
        self,
        version: Version,
        workspace_id: str,
        variables: Optional[dict[str, str]] = None,
        overrides: Optional[Overrides] = None,
        extra_messages: Optional[list[Message | dict]] = None,
        is_test: bool = False,
    ) -> GenerateResult:
        """
        Run to completion and return the generated messages.

        Raises:
            Agent0Error: Preparation failed
            GenerationError: The vendor failed; no partial content is returned
        """
        context = self._context(version, workspace_id, variables, overrides, False, is_test)
        prepared = self._prepare_or_record(context, variables, overrides, extra_messages)
        logger.info(f"Running version {version.id} on {prepared.model.provider}/{prepared.model.model_id}")

        collected = [event async for event in self._events(context, prepared)]
        result = reconstruct(collected)
        for issue in result.issues:
            if isinstance(issue, GenerationError):
                raise issue
        return GenerateResult(messages=result.messages, text=result.text)
