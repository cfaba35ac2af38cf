"""Reconciliation of GitLabSource objects.

This module implements the level-triggered control loop that drives a
source's observed status toward its spec:

1. Resolve the sink address
2. Find or create the receiver service owned by the source
3. Wait for the receiver to be ready and addressable
4. Resolve the GitLab credentials
5. Create or overwrite the GitLab webhook so it targets the receiver
6. Persist the status when it changed

Each step is idempotent, so a failed pass is healed by running the whole
pass again; nothing is rolled back. Outcomes that can only change through
an external event (a receiver becoming ready, a token being replaced) are
recorded as conditions and the pass returns normally. Only failures that
warrant an immediate re-queue are raised, as ReconcileError.
"""

import copy
import logging

from .conditions import ConditionManager
from .credentials import CredentialResolver
from .errors import (
    ApiError,
    ProviderError,
    ProviderNotFoundError,
    ProviderUnauthorizedError,
    ReconcileError,
    SecretNotFoundError,
    SinkNotFoundError,
)
from .models import (
    CONDITION_DEPLOYED,
    CONDITION_SINK_PROVIDED,
    CONDITION_WEBHOOK_CONFIGURED,
    SOURCE_CONDITIONS,
    ConditionSet,
    Credentials,
    Scope,
    Source,
)
from .ports import EventRecorderPort, ReconcilerPort, SinkResolverPort, SourceStorePort
from .receiver import ReceiverLifecycleManager
from .webhook_sync import WebhookSynchronizer

logger = logging.getLogger(__name__)

# Condition reasons
REASON_SINK_NOT_FOUND = "NotFound"
REASON_RECEIVER_CREATION_ERROR = "ReceiveAdapterCreationError"
REASON_RECEIVER_NOT_READY = "ReceiveAdapterNotReady"
REASON_SECRET_NOT_FOUND = "SecretNotFound"
REASON_UNAUTHORIZED = "Unauthorized"
REASON_WEBHOOK_NOT_CONFIGURED = "WebhookNotConfigured"
REASON_WEBHOOK_DELETED = "WebhookDeleted"
REASON_INVALID_SCOPE = "InvalidScope"

# Event reasons
EVENT_WEBHOOK_CREATED = "WebhookCreated"
EVENT_WEBHOOK_DELETED = "WebhookDeleted"
EVENT_WEBHOOK_DELETION_SKIPPED = "WebhookDeletionSkipped"
EVENT_RECEIVER_CREATED = "ReceiveAdapterCreated"
EVENT_SECRET_NOT_FOUND = "SecretNotFound"
EVENT_UNAUTHORIZED = "WebhookUnauthorized"


class ReconciliationEngine(ReconcilerPort):
    """Implements reconciliation and finalization of GitLab sources.

    This engine orchestrates:
    - Sink resolution
    - Receiver discovery and creation
    - Credential resolution (one Secret lookup table per pass)
    - Webhook synchronization
    - Condition bookkeeping and status persistence
    """

    def __init__(
        self,
        sinks: SinkResolverPort,
        receivers: ReceiverLifecycleManager,
        credentials: CredentialResolver,
        webhooks: WebhookSynchronizer,
        recorder: EventRecorderPort,
        store: SourceStorePort,
        condition_set: ConditionSet = SOURCE_CONDITIONS,
    ):
        self.sinks = sinks
        self.receivers = receivers
        self.credentials = credentials
        self.webhooks = webhooks
        self.recorder = recorder
        self.store = store
        self.condition_set = condition_set

    async def reconcile(self, source: Source) -> Source:
        """Run one reconciliation pass and persist the resulting status.

        The status is written back only when it differs from the status
        the pass started with, so repeating a pass with no external change
        performs no write.

        Raises:
            ReconcileError: If the pass should be re-queued.
        """
        before = copy.deepcopy(source.status)
        try:
            await self._reconcile_kind(source)
        except ReconcileError:
            if source.status != before:
                try:
                    await self._persist(source)
                except ReconcileError as e:
                    logger.error(f"Source {source.key}: {e}")
            raise
        if source.status != before:
            await self._persist(source)
        return source

    async def _persist(self, source: Source) -> None:
        try:
            stored = await self.store.update_status(source)
        except ApiError as e:
            raise ReconcileError(
                "StatusUpdateFailed", f"failed to update status of {source.key}: {e}"
            ) from e
        source.resource_version = stored.resource_version

    async def _reconcile_kind(self, source: Source) -> None:
        status = source.status
        conditions = ConditionManager(self.condition_set, status)
        conditions.initialize()
        status.observed_generation = source.generation
        status.event_attributes = source.event_attributes()

        try:
            scope = source.spec.scope()
        except ValueError as e:
            # Admission rejects these; a source that slipped through cannot
            # be fixed by retrying.
            conditions.mark_false(CONDITION_WEBHOOK_CONFIGURED, REASON_INVALID_SCOPE, str(e))
            return

        # Step 1: sink
        try:
            sink_uri = await self.sinks.resolve(source.spec.sink, source.namespace)
        except SinkNotFoundError as e:
            status.sink_uri = ""
            conditions.mark_false(CONDITION_SINK_PROVIDED, REASON_SINK_NOT_FOUND, str(e))
            logger.info(f"Sink of source {source.key} is not resolvable yet: {e}")
            return
        status.sink_uri = sink_uri
        conditions.mark_true(CONDITION_SINK_PROVIDED)

        # Step 2: receiver
        try:
            receiver, created = await self.receivers.ensure(source, sink_uri)
        except ApiError as e:
            conditions.mark_false(CONDITION_DEPLOYED, REASON_RECEIVER_CREATION_ERROR, str(e))
            raise ReconcileError(REASON_RECEIVER_CREATION_ERROR, str(e)) from e
        if created:
            await self.recorder.record(
                source,
                "Normal",
                EVENT_RECEIVER_CREATED,
                f"Created receive adapter service {receiver.name}",
            )

        # Step 3: readiness
        if not receiver.ready:
            conditions.mark_false(
                CONDITION_DEPLOYED,
                REASON_RECEIVER_NOT_READY,
                "Receive adapter Service is not ready",
            )
            return
        conditions.mark_true(CONDITION_DEPLOYED)

        # Step 4: address
        if not receiver.address:
            logger.debug(f"Receiver {receiver.name} has no address yet")
            return

        # Step 5: credentials
        try:
            credentials = await self.credentials.resolve_credentials(source)
        except SecretNotFoundError as e:
            conditions.mark_false(
                CONDITION_WEBHOOK_CONFIGURED, REASON_SECRET_NOT_FOUND, str(e)
            )
            await self.recorder.record(source, "Warning", EVENT_SECRET_NOT_FOUND, str(e))
            raise ReconcileError(REASON_SECRET_NOT_FOUND, str(e)) from e
        except ApiError as e:
            raise ReconcileError(
                "SecretLookupError", f"failed to read secrets of {source.key}: {e}"
            ) from e

        # Step 6: webhook
        await self._sync_webhook(source, conditions, credentials, scope, receiver.address)

    async def _sync_webhook(
        self,
        source: Source,
        conditions: ConditionManager,
        credentials: Credentials,
        scope: Scope,
        target_url: str,
    ) -> None:
        try:
            result = await self.webhooks.sync(
                credentials,
                scope,
                source.spec.event_types,
                target_url,
                source.spec.ssl_verify,
                source.status.webhook_id,
            )
        except ProviderUnauthorizedError as e:
            conditions.mark_false(CONDITION_WEBHOOK_CONFIGURED, REASON_UNAUTHORIZED, str(e))
            await self.recorder.record(source, "Warning", EVENT_UNAUTHORIZED, str(e))
            logger.warning(f"GitLab rejected the access token of {source.key}: {e}")
            return
        except ProviderError as e:
            conditions.mark_false(
                CONDITION_WEBHOOK_CONFIGURED, REASON_WEBHOOK_NOT_CONFIGURED, str(e)
            )
            raise ReconcileError(REASON_WEBHOOK_NOT_CONFIGURED, str(e)) from e

        source.status.webhook_id = result.hook_id
        was_ready = conditions.is_ready()
        conditions.mark_true(CONDITION_WEBHOOK_CONFIGURED)
        if not was_ready and conditions.is_ready():
            logger.info(f"Source {source.key} is ready")
        if result.created:
            await self.recorder.record(
                source,
                "Normal",
                EVENT_WEBHOOK_CREATED,
                f"Created webhook {result.hook_id} targeting {target_url}",
            )

    async def finalize(self, source: Source) -> None:
        """Delete the webhook registration of a source being removed.

        Credential and authorization failures cannot heal by retrying and
        would block deletion forever, so the registration is abandoned with
        a warning event. Other failures are raised for retry.

        Raises:
            ReconcileError: If deletion should be retried.
        """
        status = source.status
        if not status.webhook_id:
            return

        conditions = ConditionManager(self.condition_set, status)
        conditions.initialize()

        try:
            scope = source.spec.scope()
        except ValueError as e:
            await self._abandon(source, conditions, f"invalid scope: {e}")
            return

        try:
            credentials = await self.credentials.resolve_credentials(source)
        except SecretNotFoundError as e:
            await self._abandon(source, conditions, str(e))
            return
        except ApiError as e:
            raise ReconcileError(
                "SecretLookupError", f"failed to read secrets of {source.key}: {e}"
            ) from e

        try:
            await self.webhooks.delete(credentials, scope, status.webhook_id)
        except ProviderNotFoundError:
            logger.info(f"Webhook {status.webhook_id} of {source.key} was already deleted")
        except ProviderUnauthorizedError as e:
            await self._abandon(source, conditions, str(e))
            return
        except ProviderError as e:
            raise ReconcileError(
                "WebhookDeletionFailed",
                f"failed to delete webhook {status.webhook_id}: {e}",
            ) from e
        else:
            await self.recorder.record(
                source,
                "Normal",
                EVENT_WEBHOOK_DELETED,
                f"Deleted webhook {status.webhook_id}",
            )

        status.webhook_id = ""
        conditions.mark_false(
            CONDITION_WEBHOOK_CONFIGURED, REASON_WEBHOOK_DELETED, "Webhook was removed"
        )

    async def _abandon(
        self, source: Source, conditions: ConditionManager, cause: str
    ) -> None:
        hook_id = source.status.webhook_id
        message = f"Abandoning webhook {hook_id}, it must be removed manually: {cause}"
        logger.warning(f"Source {source.key}: {message}")
        await self.recorder.record(source, "Warning", EVENT_WEBHOOK_DELETION_SKIPPED, message)
        source.status.webhook_id = ""
        conditions.mark_false(CONDITION_WEBHOOK_CONFIGURED, REASON_WEBHOOK_DELETED, message)
