"""HTTP server adapter for the webhook receiver.

Serves the GitLab webhook endpoint with aiohttp:

- POST /: translate and forward a webhook call. 202 when the sink
  acknowledged the event, 400 with the error text when the call was
  rejected, 500 when delivery failed so GitLab retries.
- GET /health: liveness probe.

Shutdown stops accepting connections, then lets in-flight requests finish
within a grace period.
"""

import logging

from aiohttp import web

from hookline.adapters.webhook.receiver import WebhookReceiver
from hookline.core.errors import DeliveryError, TranslationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024


class ReceiverHTTPServer:
    """aiohttp server in front of a WebhookReceiver."""

    def __init__(
        self,
        webhook_receiver: WebhookReceiver,
        host: str = "0.0.0.0",
        port: int = 8080,
        shutdown_grace_seconds: float = 10.0,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    ):
        """Initialize the HTTP server.

        Args:
            webhook_receiver: WebhookReceiver instance to handle requests.
            host: Host to listen on (default 0.0.0.0).
            port: Port to listen on (default 8080).
            shutdown_grace_seconds: How long in-flight requests may run
                after shutdown starts.
            max_body_bytes: Largest accepted request body.
        """
        self.webhook_receiver = webhook_receiver
        self.host = host
        self.port = port
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self.max_body_bytes = max_body_bytes
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        """Create the aiohttp application with its routes."""
        app = web.Application(client_max_size=self.max_body_bytes)
        app.router.add_post("/", self._handle_webhook)
        app.router.add_get("/health", self._handle_health)
        return app

    async def start(self) -> None:
        """Start listening."""
        logger.info(f"Starting webhook HTTP server on {self.host}:{self.port}")
        self._runner = web.AppRunner(
            self.build_app(),
            shutdown_timeout=self.shutdown_grace_seconds,
            access_log=None,
        )
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Webhook HTTP server started")

    async def stop(self) -> None:
        """Stop the HTTP server, waiting for in-flight requests."""
        if self._runner is not None:
            logger.info("Webhook HTTP server is shutting down")
            await self._runner.cleanup()
            self._runner = None
        logger.info("Webhook HTTP server stopped")

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        body = await request.read()
        try:
            await self.webhook_receiver.handle_delivery(request.headers, body)
        except TranslationError as e:
            logger.warning(f"Rejected webhook call: {e}")
            return web.Response(status=400, text=f"could not parse the webhook event: {e}")
        except DeliveryError as e:
            logger.error(f"Failed to deliver webhook event: {e}")
            return web.Response(status=500, text=f"error handling the event: {e}")
        return web.Response(status=202)

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})
