"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application: it builds the
GitHub App auth, the LLM engine and the webhook dispatcher once, and mounts
the webhook endpoint on the configured path.

Design Decisions:
- Use lifespan events for startup/shutdown
- Build every shared component from one Settings instance
- Expose a health check endpoint
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from review_relay import __version__
from review_relay.config import DEFAULT_COMMENT_BODY, Settings, get_settings
from review_relay.logging_config import get_logger, setup_logging
from review_relay.services.ai_engine import AIReviewEngine
from review_relay.services.github_auth import GitHubAppAuth, GitHubAuthError
from review_relay.services.github_client import (
    GitHubAPIError,
    GitHubClient,
    get_authenticated_app,
)
from review_relay.webhook.dispatcher import WebhookDispatcher
from review_relay.webhook.handler import github_webhook, register_handlers
from review_relay.webhook.security import DeliveryDeduplicator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Validates the private key, optionally logs which app the credentials
    belong to, and logs where webhooks are expected.
    """
    settings: Settings = app.state.settings

    try:
        settings.get_private_key()
    except ValueError as e:
        logger.error("Configuration validation failed", error=str(e))
        raise

    if settings.log_app_identity:
        try:
            data = await get_authenticated_app(app.state.github_auth)
            logger.info("Authenticated as GitHub App", app_name=data.get("name"))
        except (GitHubAuthError, GitHubAPIError, httpx.HTTPError) as e:
            logger.warning("Could not look up GitHub App identity", error=str(e))

    logger.info(
        "Server is listening for events",
        url=settings.local_webhook_url,
        hint="Press Ctrl + C to quit."
    )

    yield

    logger.info("Shutting down review relay")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit configuration; defaults to the cached settings

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    setup_logging(settings)

    github_auth = GitHubAppAuth(settings)
    ai_engine = AIReviewEngine(settings)
    fallback_body = settings.load_message_template()
    if fallback_body is None:
        logger.warning(
            "Message template missing or empty, using default comment body",
            path=settings.message_template_path
        )
        fallback_body = DEFAULT_COMMENT_BODY

    def client_factory(installation_id: int) -> GitHubClient:
        return GitHubClient(installation_id, auth=github_auth, settings=settings)

    dispatcher = WebhookDispatcher(settings.github_webhook_secret, client_factory)
    register_handlers(dispatcher, ai_engine, fallback_body)

    app = FastAPI(
        title="Review Relay",
        description="Posts LLM reviews on newly opened GitHub pull requests",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.github_auth = github_auth
    app.state.dispatcher = dispatcher
    app.state.deduplicator = DeliveryDeduplicator(settings.delivery_ttl_seconds)

    app.add_api_route(
        settings.webhook_path,
        github_webhook,
        methods=["POST"],
        status_code=status.HTTP_200_OK,
        tags=["webhook"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    @app.get("/health")
    async def health_check():
        """Liveness check for load balancers and monitors."""
        return {
            "status": "healthy",
            "service": "review-relay",
            "version": __version__
        }

    return app
