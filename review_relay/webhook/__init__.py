"""
Webhook Package

This package contains webhook handling components:
- handler: FastAPI endpoint and registered event handlers
- dispatcher: routing of verified deliveries by event key
- security: webhook signature verification and redelivery guard
- processor: PR review pipeline
"""

from review_relay.webhook.dispatcher import WebhookAggregateError, WebhookDispatcher
from review_relay.webhook.handler import github_webhook, register_handlers

__all__ = [
    "WebhookAggregateError",
    "WebhookDispatcher",
    "github_webhook",
    "register_handlers",
]
