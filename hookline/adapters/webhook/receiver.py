"""Webhook receiver for inbound GitLab calls.

Ties the translator to the event sink: every accepted call produces
exactly one send attempt. This class is transport-agnostic; the HTTP
mapping lives in http_server.
"""

import logging
from collections.abc import Mapping

from hookline.core.models import CanonicalEvent
from hookline.core.ports import EventSinkPort
from hookline.core.translator import EventTranslator

logger = logging.getLogger(__name__)


class WebhookReceiver:
    """Translates GitLab webhook calls and forwards them to the sink."""

    def __init__(self, translator: EventTranslator, sink: EventSinkPort):
        """Initialize the webhook receiver.

        Args:
            translator: Validates and converts calls into events.
            sink: Destination of the translated events.
        """
        self.translator = translator
        self.sink = sink

    async def handle_delivery(self, headers: Mapping[str, str], body: bytes) -> CanonicalEvent:
        """Handle one webhook call.

        Returns:
            The event that was sent.

        Raises:
            TranslationError: If the call is rejected. Nothing is sent.
            DeliveryError: If the sink did not acknowledge the event.
        """
        event = self.translator.translate(headers, body)
        await self.sink.send(event)
        logger.info(
            "Webhook call forwarded",
            extra={"event_id": event.id, "event_type": event.type},
        )
        return event
