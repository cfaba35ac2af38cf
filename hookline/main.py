"""Composition root for the hookline GitLab event source.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here, creating a clear entry point for the application.

Module Structure:
- Configuration loading via config module
- Adapter instantiation
- Core service initialization
- Dependency injection
- Entry point selection (controller or receiver)
"""

import asyncio
import json
import logging
import signal
import sys

from pydantic import ValidationError

from hookline.adapters.gitlab.hooks import GitLabClientFactory
from hookline.adapters.kubernetes.client import KubeApiClient
from hookline.adapters.kubernetes.events import KubeEventRecorder
from hookline.adapters.kubernetes.secrets import KubeSecretStore
from hookline.adapters.kubernetes.services import KnativeServicePlatform
from hookline.adapters.kubernetes.sinks import KubeSinkResolver
from hookline.adapters.kubernetes.sources import KubeSourceStore
from hookline.adapters.scheduler.resync import ResyncScheduler
from hookline.adapters.sink.http import HttpEventSink
from hookline.adapters.webhook.http_server import ReceiverHTTPServer
from hookline.adapters.webhook.receiver import WebhookReceiver
from hookline.config import (
    ControllerSettings,
    ReceiverSettings,
    load_controller_settings,
    load_receiver_settings,
    load_settings,
)
from hookline.core.credentials import CredentialResolver
from hookline.core.receiver import ReceiverLifecycleManager
from hookline.core.reconciler import ReconciliationEngine
from hookline.core.translator import EventTranslator
from hookline.core.webhook_sync import WebhookSynchronizer

logger = logging.getLogger(__name__)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including any ``extra`` fields."""

    _RESERVED = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in self._RESERVED:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    logging.basicConfig(level=level, handlers=[handler], force=True)


def build_receiver(settings: ReceiverSettings) -> tuple[ReceiverHTTPServer, HttpEventSink]:
    """Wire the receiver process: translator, sink and HTTP server."""
    translator = EventTranslator(
        event_source=settings.gitlab_event_source,
        secret_token=settings.gitlab_secret_token,
    )
    sink = HttpEventSink(settings.k_sink, timeout=settings.sink_timeout_seconds)
    server = ReceiverHTTPServer(
        webhook_receiver=WebhookReceiver(translator, sink),
        host=settings.host,
        port=settings.port,
        shutdown_grace_seconds=settings.shutdown_grace_seconds,
        max_body_bytes=settings.max_body_bytes,
    )
    return server, sink


def build_controller(
    settings: ControllerSettings, api: KubeApiClient
) -> tuple[ResyncScheduler, GitLabClientFactory]:
    """Wire the controller process: Kubernetes and GitLab adapters into the engine."""
    store = KubeSourceStore(api, namespace=settings.watch_namespace)
    gitlab = GitLabClientFactory(timeout=settings.gitlab_timeout_seconds)

    engine = ReconciliationEngine(
        sinks=KubeSinkResolver(api),
        receivers=ReceiverLifecycleManager(
            KnativeServicePlatform(api),
            image=settings.receive_adapter_image,
            extra_env=settings.receiver_extra_env,
        ),
        credentials=CredentialResolver(KubeSecretStore(api)),
        webhooks=WebhookSynchronizer(gitlab),
        recorder=KubeEventRecorder(api),
        store=store,
    )
    scheduler = ResyncScheduler(
        store=store,
        reconciler=engine,
        interval_seconds=settings.resync_interval_seconds,
        reconcile_timeout_seconds=settings.reconcile_timeout_seconds,
    )
    return scheduler, gitlab


async def _wait_for_shutdown_signal() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Signal handlers not available on Windows
            logger.debug("Signal handlers not available on this platform")
    await stop.wait()
    logger.info("Shutdown signal received")


async def _run_receiver(settings: ReceiverSettings) -> None:
    server, sink = build_receiver(settings)
    await server.start()
    try:
        await _wait_for_shutdown_signal()
    finally:
        await server.stop()
        await sink.close()


async def _run_controller(settings: ControllerSettings) -> None:
    api = await KubeApiClient.connect(
        kubeconfig=settings.kubeconfig, context=settings.kube_context
    )
    scheduler, gitlab = build_controller(settings, api)
    try:
        await scheduler.start()
    finally:
        await gitlab.close()
        await api.close()


async def bootstrap() -> None:
    """Load configuration, wire adapters, and start the application.

    This is the composition root: the single place where all components
    are instantiated and wired together.

    Steps:
    1. Load common configuration from environment
    2. Configure logging
    3. Load the configuration of the selected run mode
    4. Instantiate adapters and core services
    5. Run until a shutdown signal arrives

    Raises:
        ValidationError: If configuration is missing or invalid.
        ApiError: If the controller finds no Kubernetes configuration.
    """
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger.info(f"Starting hookline in {settings.run_mode} mode...")

    if settings.run_mode == "controller":
        await _run_controller(load_controller_settings())
    else:
        await _run_receiver(load_receiver_settings())


def main() -> None:
    """Application entry point.

    Loads configuration, wires adapters and starts the selected run mode.

    Exit codes:
        0: Successful shutdown
        1: Invalid configuration or fatal runtime error
        130: Interrupted by user (SIGINT/KeyboardInterrupt)
    """
    try:
        asyncio.run(bootstrap())
    except ValidationError as e:
        # Logging may not be configured yet
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Shutdown requested by user (SIGINT)")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
