"""Translation of inbound GitLab webhook calls into CloudEvents.

GitLab names the category of a call in the X-Gitlab-Event header, in the
form "<Words> Hook". The category becomes the suffix of the CloudEvent
type; the payload is forwarded byte for byte as the event data.
"""

import hmac
import json
import logging
import re
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone

from .errors import (
    EmptyPayloadError,
    InvalidEventHeaderError,
    InvalidPayloadError,
    MissingEventHeaderError,
    TokenVerificationError,
    UnsupportedEventError,
)
from .models import (
    EVENT_TYPE_BUILD,
    EVENT_TYPE_ISSUE,
    EVENT_TYPE_NOTE,
    CanonicalEvent,
    qualified_event_type,
)

logger = logging.getLogger(__name__)

EVENT_HEADER = "X-Gitlab-Event"
TOKEN_HEADER = "X-Gitlab-Token"

# CloudEvent extension carrying the original X-Gitlab-Event header.
EVENT_EXTENSION = "event"

_HOOK_HEADER = re.compile(r"^([A-Za-z]+(?: [A-Za-z]+)*) Hook$")

# Header tokens that differ from the event type they are emitted as.
_TOKEN_ALIASES = {
    "confidential_issue": EVENT_TYPE_ISSUE,
    "confidential_note": EVENT_TYPE_NOTE,
    "job": EVENT_TYPE_BUILD,
}

# Categories the receiver accepts, by header token.
SUPPORTED_TOKENS = frozenset(
    {
        "push",
        "tag_push",
        "issue",
        "confidential_issue",
        "note",
        "confidential_note",
        "merge_request",
        "wiki_page",
        "pipeline",
        "build",
        "job",
        "deployment",
    }
)


def header_token(header: str) -> str | None:
    """Derive the category token of an X-Gitlab-Event header.

    "Merge Request Hook" becomes "merge_request". Returns None when the
    header does not follow the "<Words> Hook" form.
    """
    match = _HOOK_HEADER.match(header.strip())
    if match is None:
        return None
    return match.group(1).lower().replace(" ", "_")


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class EventTranslator:
    """Validates webhook calls and turns them into canonical events.

    One translator serves one source: the CloudEvent source attribute is
    fixed at construction and never read from the payload.
    """

    def __init__(self, event_source: str, secret_token: str = ""):
        """Initialize the translator.

        Args:
            event_source: Project or group URL used as the event source.
            secret_token: Shared secret expected in X-Gitlab-Token. When
                empty, calls are accepted regardless of that header.
        """
        self.event_source = event_source
        self.secret_token = secret_token

    def verify_token(self, headers: Mapping[str, str]) -> None:
        """Check the shared secret of a call.

        Raises:
            TokenVerificationError: If a secret is configured and the call
                does not carry it.
        """
        if not self.secret_token:
            return
        presented = _header(headers, TOKEN_HEADER) or ""
        # Servers hand undecodable header bytes over as lone surrogates
        try:
            matches = hmac.compare_digest(
                presented.encode("utf-8", "surrogateescape"),
                self.secret_token.encode("utf-8", "surrogateescape"),
            )
        except UnicodeEncodeError as e:
            raise TokenVerificationError() from e
        if not matches:
            raise TokenVerificationError()

    def translate(self, headers: Mapping[str, str], body: bytes) -> CanonicalEvent:
        """Translate one webhook call.

        Checks run in order: token, event header, payload. Nothing is
        parsed before the token has been verified.

        Raises:
            TranslationError: If the call must be rejected.
        """
        self.verify_token(headers)

        header = _header(headers, EVENT_HEADER)
        if header is None or not header.strip():
            raise MissingEventHeaderError()

        token = header_token(header)
        if token is None:
            raise InvalidEventHeaderError(header)
        if token not in SUPPORTED_TOKENS:
            raise UnsupportedEventError(header)

        if not body:
            raise EmptyPayloadError()
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidPayloadError(f"could not parse the webhook payload: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidPayloadError("webhook payload must be a JSON object")

        event = CanonicalEvent(
            id=str(uuid.uuid4()),
            type=qualified_event_type(_TOKEN_ALIASES.get(token, token)),
            source=self.event_source,
            time=datetime.now(timezone.utc),
            data=bytes(body),
            extensions={EVENT_EXTENSION: header},
        )
        logger.debug(f"Translated {header!r} call into event {event.id}")
        return event
