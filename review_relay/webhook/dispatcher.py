"""
Webhook Dispatcher Module

Verifies deliveries and routes them to handlers registered by event key.
A handler registered for ``pull_request.opened`` only ever sees opened
pull requests; one registered for ``pull_request`` sees every action.

Failures while verifying or handling a delivery are reported to the
registered error handlers instead of being raised to the caller.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from review_relay.logging_config import get_logger
from review_relay.models import WebhookDelivery
from review_relay.services.github_client import GitHubClient
from review_relay.webhook.security import WebhookSignatureError, verify_signature

logger = get_logger(__name__)


class WebhookAggregateError(Exception):
    """
    One or more failures raised while processing a single delivery.

    Attributes:
        errors: The underlying exceptions
        event_name: Routing key of the delivery, e.g. ``pull_request.opened``
        delivery_id: Value of the X-GitHub-Delivery header
    """

    def __init__(
        self,
        errors: List[Exception],
        event_name: Optional[str] = None,
        delivery_id: Optional[str] = None
    ):
        self.errors = list(errors)
        self.event_name = event_name
        self.delivery_id = delivery_id
        super().__init__(
            "; ".join(str(error) for error in self.errors) or "Webhook processing failed"
        )


@dataclass
class WebhookContext:
    """What a handler receives: the delivery and a client for its installation."""
    delivery: WebhookDelivery
    github: Optional[GitHubClient]

    @property
    def payload(self) -> dict:
        return self.delivery.payload


WebhookHandler = Callable[[WebhookContext], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]
ClientFactory = Callable[[int], GitHubClient]


class WebhookDispatcher:
    """
    Registry of webhook handlers keyed by event name.

    Usage:
        dispatcher = WebhookDispatcher(secret, client_factory)

        @dispatcher.on("pull_request.opened")
        async def on_opened(context):
            ...

        dispatcher.verify(raw_body, delivery, signature_256=header)
        await dispatcher.receive(delivery)
    """

    def __init__(self, secret: str, client_factory: ClientFactory):
        self._secret = secret
        self._client_factory = client_factory
        self._handlers: Dict[str, List[WebhookHandler]] = {}
        self._error_handlers: List[ErrorHandler] = []

    def on(self, *keys: str) -> Callable[[WebhookHandler], WebhookHandler]:
        """Register a handler for one or more event keys."""
        def decorator(func: WebhookHandler) -> WebhookHandler:
            for key in keys:
                self._handlers.setdefault(key, []).append(func)
            return func
        return decorator

    def on_error(self, func: ErrorHandler) -> ErrorHandler:
        self._error_handlers.append(func)
        return func

    def handlers_for(self, delivery: WebhookDelivery) -> List[WebhookHandler]:
        handlers: List[WebhookHandler] = []
        for key in delivery.keys:
            handlers.extend(self._handlers.get(key, []))
        return handlers

    def verify(
        self,
        raw_body: bytes,
        delivery: WebhookDelivery,
        signature_256: Optional[str],
        signature_1: Optional[str] = None
    ) -> None:
        """
        Check the delivery signature.

        Raises:
            WebhookAggregateError: Wrapping the WebhookSignatureError
        """
        try:
            verify_signature(self._secret, raw_body, signature_256, signature_1)
        except WebhookSignatureError as e:
            raise WebhookAggregateError(
                [e], event_name=delivery.name, delivery_id=delivery.delivery_id
            ) from e

    async def report_error(self, error: Exception) -> None:
        """Pass an error to every error handler; handler failures are logged."""
        for error_handler in self._error_handlers:
            try:
                await error_handler(error)
            except Exception as e:
                logger.error(
                    "Webhook error handler failed",
                    error=str(e),
                    error_type=type(e).__name__
                )

    async def receive(self, delivery: WebhookDelivery) -> int:
        """
        Run every handler registered for the delivery's keys.

        Handler exceptions are collected into one WebhookAggregateError
        and reported to the error handlers; nothing is raised.

        A delivery whose installation cannot be turned into a client is
        reported the same way and no handler runs.

        Returns:
            Number of handlers that were invoked
        """
        handlers = self.handlers_for(delivery)
        if not handlers:
            logger.debug(
                "No handler registered for event",
                event_name=delivery.event_name,
                delivery_id=delivery.delivery_id
            )
            return 0

        errors: List[Exception] = []
        github: Optional[GitHubClient] = None
        try:
            installation_id = delivery.installation_id
            if installation_id is not None:
                github = self._client_factory(installation_id)
        except Exception as e:
            await self.report_error(
                WebhookAggregateError(
                    [e],
                    event_name=delivery.event_name,
                    delivery_id=delivery.delivery_id
                )
            )
            return 0

        for handler in handlers:
            try:
                await handler(WebhookContext(delivery=delivery, github=github))
            except Exception as e:
                errors.append(e)

        if errors:
            await self.report_error(
                WebhookAggregateError(
                    errors,
                    event_name=delivery.event_name,
                    delivery_id=delivery.delivery_id
                )
            )

        return len(handlers)
