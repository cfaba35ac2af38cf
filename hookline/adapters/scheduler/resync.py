"""Resync scheduler adapter.

Implements a long-running asyncio loop that lists every GitLabSource at a
configurable interval and drives each one through the reconciler. A source
that fails is logged and picked up again by the next cycle; there is no
rate-limited work queue.
"""

import asyncio
import logging
import signal
from dataclasses import dataclass

from hookline.core.errors import HooklineError, ReconcileError, SourceValidationError
from hookline.core.models import FINALIZER_NAME, Source
from hookline.core.ports import ReconcilerPort, SourceStorePort
from hookline.core.validation import validate_source

logger = logging.getLogger(__name__)

OUTCOME_RECONCILED = "reconciled"
OUTCOME_FINALIZED = "finalized"
OUTCOME_INVALID = "invalid"
OUTCOME_FAILED = "failed"
OUTCOME_IGNORED = "ignored"


@dataclass(frozen=True)
class ResyncResult:
    """Per-outcome counts of one resync cycle."""

    total: int
    reconciled: int
    finalized: int
    invalid: int
    failed: int


class ResyncScheduler:
    """Asyncio-based scheduler for periodic reconciliation."""

    def __init__(
        self,
        store: SourceStorePort,
        reconciler: ReconcilerPort,
        interval_seconds: float = 30.0,
        reconcile_timeout_seconds: float = 60.0,
    ):
        """Initialize the scheduler.

        Args:
            store: Source of GitLabSource objects.
            reconciler: Reconciler driven for every source.
            interval_seconds: Pause between the end of one cycle and the
                start of the next.
            reconcile_timeout_seconds: Upper bound on one source's pass.
        """
        self.store = store
        self.reconciler = reconciler
        self.interval_seconds = interval_seconds
        self.reconcile_timeout_seconds = reconcile_timeout_seconds
        self.running = False
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Run cycles until stop() is called or a signal arrives."""
        if self.running:
            logger.warning("Resync scheduler already running")
            return

        self.running = True
        self._stopped.clear()
        logger.info(f"Starting resync scheduler with {self.interval_seconds}s interval")
        self._setup_signal_handlers()

        try:
            await self._run_loop()
        except asyncio.CancelledError:
            logger.info("Resync scheduler cancelled")
            raise
        finally:
            self.running = False
            logger.info("Resync scheduler stopped")

    async def stop(self) -> None:
        """Stop after the in-flight cycle, if any."""
        if not self.running:
            return
        logger.info("Stopping resync scheduler...")
        self.running = False
        self._stopped.set()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        try:
            loop = asyncio.get_running_loop()

            def _handle_signal(sig: int) -> None:
                logger.info(f"Received signal {sig}, initiating graceful shutdown...")
                asyncio.create_task(self.stop())

            loop.add_signal_handler(signal.SIGTERM, _handle_signal, signal.SIGTERM)
            loop.add_signal_handler(signal.SIGINT, _handle_signal, signal.SIGINT)
        except NotImplementedError:
            # Signal handlers not available on Windows
            logger.debug("Signal handlers not available on this platform")
        except RuntimeError as e:
            logger.warning(f"Failed to set up signal handlers: {e}")

    async def _run_loop(self) -> None:
        cycle_number = 0
        loop = asyncio.get_running_loop()

        while self.running:
            cycle_number += 1
            start_time = loop.time()
            try:
                result = await self.run_cycle()
            except HooklineError as e:
                logger.error(f"Error in resync cycle #{cycle_number}: {e}")
            else:
                elapsed = loop.time() - start_time
                logger.info(
                    f"Resync cycle #{cycle_number} completed in {elapsed:.2f}s: "
                    f"{result.total} sources, {result.reconciled} reconciled, "
                    f"{result.finalized} finalized, {result.invalid} invalid, "
                    f"{result.failed} failed"
                )

            if self.running:
                try:
                    await asyncio.wait_for(self._stopped.wait(), self.interval_seconds)
                except asyncio.TimeoutError:
                    pass

    async def run_cycle(self) -> ResyncResult:
        """List every source and process them concurrently.

        Raises:
            ApiError: If the sources cannot be listed.
        """
        sources = await self.store.list_sources()
        outcomes = await asyncio.gather(*(self._process_safely(s) for s in sources))
        return ResyncResult(
            total=len(sources),
            reconciled=outcomes.count(OUTCOME_RECONCILED),
            finalized=outcomes.count(OUTCOME_FINALIZED),
            invalid=outcomes.count(OUTCOME_INVALID),
            failed=outcomes.count(OUTCOME_FAILED),
        )

    async def _process_safely(self, source: Source) -> str:
        try:
            return await asyncio.wait_for(
                self.process(source), self.reconcile_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Reconciling {source.key} timed out after "
                f"{self.reconcile_timeout_seconds}s"
            )
        except ReconcileError as e:
            logger.warning(f"Reconciling {source.key} failed, retrying next cycle: {e}")
        except HooklineError as e:
            logger.error(f"Error processing {source.key}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error processing {source.key}: {e}", exc_info=True)
        return OUTCOME_FAILED

    async def process(self, source: Source) -> str:
        """Drive one source: finalize it when deleted, reconcile it otherwise."""
        if source.is_deleting:
            if FINALIZER_NAME not in source.finalizers:
                return OUTCOME_IGNORED
            await self.reconciler.finalize(source)
            remaining = [f for f in source.finalizers if f != FINALIZER_NAME]
            await self.store.set_finalizers(source, remaining)
            logger.info(f"Finalized GitLabSource {source.key}")
            return OUTCOME_FINALIZED

        if FINALIZER_NAME not in source.finalizers:
            source = await self.store.set_finalizers(
                source, [*source.finalizers, FINALIZER_NAME]
            )

        try:
            validate_source(source)
        except SourceValidationError as e:
            logger.warning(f"Skipping invalid GitLabSource {source.key}: {e}")
            return OUTCOME_INVALID

        await self.reconciler.reconcile(source)
        return OUTCOME_RECONCILED
