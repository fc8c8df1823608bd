"""
Main application entry point for the staging deploy checklist.

This module sets up the FastAPI application, configures logging, and exposes
the checklist orchestrator over HTTP.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .exceptions import (
    AbuseDetectedError,
    AmbiguousStateError,
    AuthenticationError,
    DeployChecklistError,
    InvalidURLError,
    MalformedTicketError,
    NotFoundError,
    RateLimitExceededError,
    TransportFailureError,
)
from .github_client import GitHubClient
from .orchestrator import ChecklistOrchestrator

ERROR_STATUS_CODES: dict[type[DeployChecklistError], int] = {
    NotFoundError: 404,
    AmbiguousStateError: 409,
    MalformedTicketError: 422,
    InvalidURLError: 422,
    RateLimitExceededError: 429,
    AbuseDetectedError: 429,
    AuthenticationError: 502,
    TransportFailureError: 502,
}


class RefreshRequest(BaseModel):
    pull_requests: list[str] = Field(default_factory=list)
    deploy_blockers: list[str] = Field(default_factory=list)
    include_labelled_blockers: bool = Field(
        default=False, description="Also add open issues carrying the deploy blocker label"
    )


class GenerateRequest(BaseModel):
    tag: str
    pull_requests: list[str] = Field(default_factory=list)
    deploy_blockers: list[str] = Field(default_factory=list)


def setup_logging(settings: Settings) -> None:
    """Configure structured logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level), format="%(message)s"
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def status_code_for(error: DeployChecklistError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 500


def create_app(
    settings: Settings | None = None,
    orchestrator: ChecklistOrchestrator | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (loaded from the environment when omitted)
        orchestrator: Pre-built orchestrator, mainly for tests
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        current_settings = settings or get_settings()
        setup_logging(current_settings)
        logger = structlog.get_logger()

        logger.info(
            "Starting staging deploy checklist service",
            repository=current_settings.repository_full_name,
            label=current_settings.staging_deploy_label,
        )

        if orchestrator is None:
            github_client = GitHubClient(current_settings)
            app.state.orchestrator = ChecklistOrchestrator(
                github_client, current_settings
            )
        else:
            app.state.orchestrator = orchestrator

        yield

        logger.info("Shutting down staging deploy checklist service")

    app = FastAPI(
        title="Staging Deploy Checklist",
        description="Maintains the staging deploy tracking issue",
        version="0.1.0",
        lifespan=lifespan,
    )

    if settings is not None and settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(DeployChecklistError)
    async def handle_checklist_error(
        request: Request, exc: DeployChecklistError
    ) -> JSONResponse:
        structlog.get_logger().error(
            "Checklist request failed",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=status_code_for(exc),
            content={"error": exc.code, "message": exc.message},
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/checklist")
    async def get_checklist(request: Request) -> dict:
        """Return the parsed checklist of the active tracking issue."""
        ticket, document = await request.app.state.orchestrator.get_active_checklist()
        return {"issue_number": ticket.number, "url": ticket.url, **document.model_dump()}

    @app.post("/checklist/refresh")
    async def refresh_checklist(payload: RefreshRequest, request: Request) -> dict:
        """Merge new pull requests and blockers into the active tracking issue."""
        current: ChecklistOrchestrator = request.app.state.orchestrator
        deploy_blockers = list(payload.deploy_blockers)
        if payload.include_labelled_blockers:
            deploy_blockers += await current.find_deploy_blockers()

        ticket, rendered = await current.refresh_active_ticket(
            new_pull_requests=payload.pull_requests,
            new_deploy_blockers=deploy_blockers,
        )
        return {"issue_number": ticket.number, "assignees": rendered.assignees}

    @app.post("/checklist", status_code=201)
    async def generate_checklist(payload: GenerateRequest, request: Request) -> dict:
        """Create the tracking issue for a new release."""
        ticket = await request.app.state.orchestrator.generate_ticket(
            payload.tag, payload.pull_requests, payload.deploy_blockers
        )
        return {"issue_number": ticket.number, "url": ticket.url}

    return app


def main() -> None:
    """Main entry point."""
    import uvicorn

    settings = get_settings()
    server = settings.server_config
    setup_logging(settings)
    logger = structlog.get_logger()

    logger.info(
        "Starting server", host=server.host, port=server.port, debug=server.debug
    )

    uvicorn.run(
        create_app(settings),
        host=server.host,
        port=server.port,
        log_config=None,  # We handle logging ourselves
    )


if __name__ == "__main__":
    main()
