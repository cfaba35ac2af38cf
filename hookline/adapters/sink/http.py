"""CloudEvents HTTP sink adapter.

Implements EventSinkPort by POSTing events in CloudEvents 1.0 binary
content mode: attributes travel as ce-* headers and the body is the event
data, unmodified. Any 2xx response acknowledges the event.
"""

import logging

import httpx

from hookline.core.errors import DeliveryError
from hookline.core.models import CanonicalEvent
from hookline.core.ports import EventSinkPort

logger = logging.getLogger(__name__)


def binary_headers(event: CanonicalEvent) -> dict[str, str]:
    """Return the HTTP headers carrying an event's attributes."""
    headers = {
        "ce-specversion": event.spec_version,
        "ce-id": event.id,
        "ce-type": event.type,
        "ce-source": event.source,
        "ce-time": event.time.isoformat().replace("+00:00", "Z"),
        "Content-Type": event.data_content_type,
    }
    for name, value in event.extensions.items():
        headers[f"ce-{name}"] = value
    return headers


class HttpEventSink(EventSinkPort):
    """Sends events to a fixed sink URI."""

    def __init__(self, sink_uri: str, timeout: float = 10.0, http: httpx.AsyncClient | None = None):
        """Initialize the sink.

        Args:
            sink_uri: Address events are delivered to.
            timeout: Per-request timeout in seconds.
            http: Optional pre-built client, used by tests.
        """
        self.sink_uri = sink_uri
        self.http = http or httpx.AsyncClient(timeout=timeout)

    async def send(self, event: CanonicalEvent) -> None:
        try:
            response = await self.http.post(
                self.sink_uri, content=event.data, headers=binary_headers(event)
            )
        except httpx.HTTPError as e:
            raise DeliveryError(f"failed to send event {event.id}: {e}") from e

        if not response.is_success:
            raise DeliveryError(
                f"sink rejected event {event.id} with HTTP {response.status_code}"
            )
        logger.debug(
            f"Delivered event {event.id}",
            extra={"type": event.type, "status": response.status_code},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.http.aclose()
