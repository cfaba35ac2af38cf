"""Kubernetes API access through kubernetes_asyncio.

KubeApiClient loads the in-cluster configuration, falling back to a
kubeconfig file, and hands the typed core and custom-object APIs to the
adapters. api_errors() maps library exceptions onto the core ApiError
hierarchy so no other module depends on kubernetes_asyncio exceptions.
"""

import asyncio
import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager

import aiohttp
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.api_client import ApiClient
from kubernetes_asyncio.client.exceptions import ApiException

from hookline.core.errors import ApiConflictError, ApiError, ApiNotFoundError

logger = logging.getLogger(__name__)


def split_api_version(api_version: str) -> tuple[str, str]:
    """Split "group/version" into its parts; core kinds have an empty group."""
    if "/" in api_version:
        group, version = api_version.split("/", 1)
        return group, version
    return "", api_version


def _detail(e: ApiException) -> str:
    # Status objects carry a human-readable message
    if not e.body:
        return e.reason or ""
    try:
        data = json.loads(e.body)
    except (TypeError, ValueError):
        return str(e.body)[:200]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""


def to_api_error(e: ApiException, action: str) -> ApiError:
    """Translate an ApiException by status code."""
    message = f"{action} failed with HTTP {e.status}"
    detail = _detail(e)
    if detail:
        message = f"{message}: {detail}"
    if e.status == 404:
        return ApiNotFoundError(message, 404)
    if e.status == 409:
        return ApiConflictError(message, 409)
    return ApiError(message, e.status)


@contextmanager
def api_errors(action: str) -> Iterator[None]:
    """Re-raise API and transport failures inside the block as ApiError.

    Raises:
        ApiNotFoundError: On HTTP 404.
        ApiConflictError: On HTTP 409.
        ApiError: On any other failure.
    """
    try:
        yield
    except ApiException as e:
        raise to_api_error(e, action) from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ApiError(f"{action} failed: {e}") from e


class KubeApiClient:
    """Typed Kubernetes APIs sharing one connection pool."""

    def __init__(
        self,
        core: client.CoreV1Api,
        custom: client.CustomObjectsApi,
        api_client: ApiClient | None = None,
    ):
        """Initialize the client.

        Args:
            core: core/v1 API (Secrets, Events).
            custom: Custom objects API (GitLabSources, Knative resources).
            api_client: Underlying client, closed by close(). Tests pass
                stand-in APIs and leave it unset.
        """
        self.core = core
        self.custom = custom
        self.api_client = api_client

    @classmethod
    def from_api_client(cls, api_client: ApiClient) -> "KubeApiClient":
        return cls(
            core=client.CoreV1Api(api_client),
            custom=client.CustomObjectsApi(api_client),
            api_client=api_client,
        )

    @classmethod
    async def connect(cls, kubeconfig: str = "", context: str = "") -> "KubeApiClient":
        """Build a client from the in-cluster service account or a kubeconfig.

        Args:
            kubeconfig: Path of the kubeconfig used outside a cluster; empty
                uses $KUBECONFIG or ~/.kube/config.
            context: kubeconfig context; empty uses the current context.

        Raises:
            ApiError: If neither configuration can be loaded.
        """
        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
            logger.info("Using in-cluster Kubernetes configuration")
        except config.ConfigException:
            try:
                await config.load_kube_config(
                    config_file=kubeconfig or None,
                    context=context or None,
                    client_configuration=configuration,
                )
            except (config.ConfigException, OSError) as e:
                raise ApiError(f"no usable Kubernetes configuration: {e}") from e
            logger.info("Using kubeconfig Kubernetes configuration")
        return cls.from_api_client(ApiClient(configuration))

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self.api_client is not None:
            await self.api_client.close()
