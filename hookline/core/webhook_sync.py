"""Synchronization of the GitLab webhook registration.

The stored webhook ID is only a hint: the registration may have been
edited or deleted out-of-band. Sync adopts it when it still exists and
overwrites it with the full desired field set, or creates a replacement
when the provider no longer knows it.
"""

import logging
from collections.abc import Iterable

from .errors import ProviderNotFoundError
from .models import (
    EVENT_TYPES_BY_WEBHOOK,
    Credentials,
    HookOptions,
    Scope,
    SyncResult,
)
from .ports import WebhookClientFactoryPort

logger = logging.getLogger(__name__)


def build_hook_options(
    event_types: Iterable[str],
    url: str,
    tls_verify: bool,
    token: str,
) -> HookOptions:
    """Build the full field set of a registration.

    Every known webhook category gets an explicit flag so that categories
    removed from the desired set are switched off on edit. Unknown
    categories are ignored.
    """
    events = {category: False for category in EVENT_TYPES_BY_WEBHOOK}
    for category in event_types:
        if category in events:
            events[category] = True
        else:
            logger.debug(f"Ignoring unsupported webhook category {category!r}")

    return HookOptions(
        url=url,
        enable_ssl_verification=tls_verify,
        token=token or "",
        events=events,
    )


def _parse_hook_id(existing_id: str) -> int | None:
    try:
        return int(existing_id)
    except ValueError:
        logger.warning(f"Discarding malformed webhook ID {existing_id!r}")
        return None


class WebhookSynchronizer:
    """Drives a webhook registration toward its desired state."""

    def __init__(self, client_factory: WebhookClientFactoryPort):
        self.client_factory = client_factory

    async def sync(
        self,
        credentials: Credentials,
        scope: Scope,
        event_types: Iterable[str],
        target_url: str,
        tls_verify: bool,
        existing_id: str = "",
    ) -> SyncResult:
        """Create or overwrite the registration pointing at target_url.

        Args:
            credentials: Access token for the API, secret token for the hook.
            scope: Project or group owning the registration.
            event_types: Desired webhook categories.
            target_url: Address of the receiver.
            tls_verify: Whether GitLab verifies TLS when calling the hook.
            existing_id: ID recorded by a previous pass, or empty.

        Returns:
            The registration ID and whether it was newly created.

        Raises:
            ProviderError: If the provider rejects a call. A not-found
                answer on fetch is not an error: it triggers re-creation.
        """
        client = self.client_factory.client_for(scope, credentials.access_token)
        options = build_hook_options(
            event_types, target_url, tls_verify, credentials.secret_token
        )

        hook_id = _parse_hook_id(existing_id) if existing_id else None
        if hook_id is not None:
            try:
                await client.get(hook_id)
            except ProviderNotFoundError:
                logger.warning(
                    f"Webhook {hook_id} no longer exists in {scope.kind.value} "
                    f"{scope.path!r}, creating a replacement"
                )
            else:
                await client.edit(hook_id, options)
                logger.debug(
                    f"Updated webhook {hook_id} in {scope.kind.value} {scope.path!r}"
                )
                return SyncResult(hook_id=existing_id, created=False)

        new_id = await client.add(options)
        logger.info(
            f"Created webhook {new_id} in {scope.kind.value} {scope.path!r}",
            extra={"url": target_url},
        )
        return SyncResult(hook_id=str(new_id), created=True)

    async def delete(self, credentials: Credentials, scope: Scope, hook_id: str) -> None:
        """Delete a registration.

        A malformed ID is treated as already gone.

        Raises:
            ProviderNotFoundError: If the provider does not know the ID.
            ProviderError: For any other failure.
        """
        parsed = _parse_hook_id(hook_id)
        if parsed is None:
            return
        client = self.client_factory.client_for(scope, credentials.access_token)
        await client.delete(parsed)
        logger.info(f"Deleted webhook {parsed} from {scope.kind.value} {scope.path!r}")
