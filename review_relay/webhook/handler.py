"""
Webhook Handler Module

This module defines the FastAPI endpoint that receives GitHub webhooks and
the event handlers registered on the dispatcher.

Design Decisions:
- Return 200 OK immediately after verification (GitHub timeout handling)
- Offload handler execution to background tasks
- Drop redelivered events by their delivery ID
"""

import json
from typing import Any, Dict

from fastapi import BackgroundTasks, HTTPException, Request, status
from pydantic import ValidationError

from review_relay.logging_config import get_logger
from review_relay.models import PRAction, PullRequestEvent, WebhookDelivery
from review_relay.services.ai_engine import AIReviewEngine
from review_relay.webhook.dispatcher import (
    WebhookAggregateError,
    WebhookContext,
    WebhookDispatcher,
)
from review_relay.webhook.processor import review_pull_request

logger = get_logger(__name__)

PULL_REQUEST_OPENED = f"pull_request.{PRAction.OPENED.value}"


async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks
) -> Dict[str, Any]:
    """
    GitHub webhook endpoint.

    Verifies the signature, drops redeliveries and queues the delivery
    for dispatching. Returns before any handler runs.
    """
    dispatcher: WebhookDispatcher = request.app.state.dispatcher
    deduplicator = request.app.state.deduplicator

    event_name = request.headers.get("X-GitHub-Event")
    delivery_id = request.headers.get("X-GitHub-Delivery")

    logger.info(
        "Received GitHub webhook",
        event_name=event_name,
        delivery_id=delivery_id,
        remote_addr=request.client.host if request.client else "unknown"
    )

    if not event_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header"
        )

    raw_body = await request.body()
    delivery = WebhookDelivery(name=event_name, delivery_id=delivery_id)

    try:
        dispatcher.verify(
            raw_body,
            delivery,
            signature_256=request.headers.get("X-Hub-Signature-256"),
            signature_1=request.headers.get("X-Hub-Signature")
        )
    except WebhookAggregateError as e:
        await dispatcher.report_error(e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    delivery.payload = payload

    if deduplicator.seen(delivery_id):
        logger.info(
            "Ignoring redelivered event",
            event_name=delivery.event_name,
            delivery_id=delivery_id
        )
        return {"status": "duplicate", "delivery_id": delivery_id}

    background_tasks.add_task(dispatcher.receive, delivery)

    return {
        "status": "accepted",
        "event": delivery.event_name,
        "delivery_id": delivery_id
    }


async def log_webhook_error(error: Exception) -> None:
    """Dispatcher-level error handler; logs and never re-raises."""
    if isinstance(error, WebhookAggregateError):
        logger.error(
            "Error processing request",
            event_name=error.event_name,
            delivery_id=error.delivery_id,
            errors=[str(e) for e in error.errors]
        )
    else:
        logger.error(
            "Unexpected webhook error",
            error=repr(error),
            error_type=type(error).__name__
        )


def register_handlers(
    dispatcher: WebhookDispatcher,
    ai_engine: AIReviewEngine,
    fallback_body: str
) -> None:
    """Subscribe the review pipeline to opened pull requests."""

    @dispatcher.on(PULL_REQUEST_OPENED)
    async def on_pull_request_opened(context: WebhookContext) -> None:
        try:
            event = PullRequestEvent.model_validate(context.payload)
        except ValidationError as e:
            logger.error(
                "Invalid pull_request payload",
                delivery_id=context.delivery.delivery_id,
                error=str(e)
            )
            raise

        if context.github is None:
            raise ValueError("pull_request event carries no installation")

        head_ref = event.pull_request.head.ref if event.pull_request.head else None
        logger.info(
            "Received a pull request event",
            repo=event.repository.full_name,
            pr_number=event.pull_request.number,
            head=head_ref,
            delivery_id=context.delivery.delivery_id
        )

        await review_pull_request(
            owner=event.repository.owner.login,
            repo=event.repository.name,
            pull_number=event.pull_request.number,
            github_client=context.github,
            ai_engine=ai_engine,
            fallback_body=fallback_body
        )

    dispatcher.on_error(log_webhook_error)
