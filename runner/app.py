"""FastAPI application for running agents."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent0.config import runtime_settings
from agent0.credentials import CredentialResolver
from agent0.errors import (
    Agent0Error,
    DecryptionError,
    GenerationError,
    MalformedConfig,
    NotFound,
    UnsupportedProvider,
)
from agent0.orchestrator import Orchestrator
from agent0.store import DataStore
from agent0.tools import StaticToolResolver, ToolResolver
from runner.agent_routes import router as agent_router
from runner.auth import ApiKeyAuthenticator, Authenticator, StoreUserDirectory, UserDirectory
from runner.db import SQLiteStore
from runner.invite_routes import router as invite_router
from runner.run_routes import router as run_router

load_dotenv()  # load environment variables from .env file

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

# pipeline errors -> HTTP status
ERROR_STATUS = {
    NotFound: 404,
    UnsupportedProvider: 400,
    MalformedConfig: 400,
    DecryptionError: 500,
    GenerationError: 502,
}


def error_status(error: Agent0Error) -> int:
    for error_cls, status in ERROR_STATUS.items():
        if isinstance(error, error_cls):
            return status
    return 500


async def handle_agent0_error(request: Request, exc: Agent0Error) -> JSONResponse:
    """Structured error body: ``{"error": {"name", "message"}}``."""
    status = error_status(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.name}: {exc.message}")
    return JSONResponse(
        status_code=status,
        content={"error": {"name": exc.name, "message": exc.message}},
    )


def create_app(
    store: Optional[DataStore] = None,
    authenticator: Optional[Authenticator] = None,
    user_directory: Optional[UserDirectory] = None,
    tool_resolver: Optional[ToolResolver] = None,
    orchestrator: Optional[Orchestrator] = None,
) -> FastAPI:
    """
    Build the runner app.

    Args:
        store: Data store (defaults to SQLite at ``DB_PATH``)
        authenticator: Bearer-token validator (defaults to workspace API keys)
        user_directory: Account service used by invitations
        tool_resolver: Resolves version tool references to callables
        orchestrator: Pre-built orchestrator (otherwise built from the above)
    """
    settings = runtime_settings()
    store = store if store is not None else SQLiteStore(settings.DB_PATH)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize database tables on startup."""
        init_db = getattr(store, "init_db", None)
        if init_db is not None:
            init_db()
        yield

    app = FastAPI(
        title="agent0 Runner",
        description="Runs deployed agent versions, streams their output and records runs",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.authenticator = authenticator or ApiKeyAuthenticator(store)
    app.state.user_directory = user_directory or StoreUserDirectory(store)
    app.state.orchestrator = orchestrator or Orchestrator(
        store,
        resolver=CredentialResolver(store),
        tool_resolver=tool_resolver or StaticToolResolver(),
        settings=settings,
    )

    # CORS origins - comma-separated CORS_ORIGINS, or "*" for all (development only)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Agent0Error, handle_agent0_error)

    app.include_router(run_router, prefix="/api/v1")
    app.include_router(invite_router, prefix="/api/v1")
    app.include_router(agent_router, prefix="/api/v1")

    @app.get("/")
    def root():
        """Health check endpoint."""
        return {
            "status": "Runner is active",
            "version": VERSION,
            "endpoints": {
                "run": "/api/v1/run",
                "test": "/api/v1/test",
                "invite": "/api/v1/invite",
                "deploy": "/api/v1/agents/{agent_id}/deploy",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=2223)
