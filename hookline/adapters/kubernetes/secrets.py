"""Kubernetes Secret store adapter.

Implements SecretStorePort with CoreV1Api.read_namespaced_secret. The API
returns Secret data base64-encoded; values are decoded here.
"""

import base64
import binascii
import logging
from collections.abc import Mapping

from hookline.core.errors import ApiError, ApiNotFoundError
from hookline.core.ports import SecretStorePort

from .client import KubeApiClient, api_errors

logger = logging.getLogger(__name__)


class KubeSecretStore(SecretStorePort):
    """Reads Secrets from the Kubernetes API."""

    def __init__(self, api: KubeApiClient):
        self.api = api

    async def get_secret(self, namespace: str, name: str) -> Mapping[str, str] | None:
        try:
            with api_errors(f"read secret {namespace}/{name}"):
                secret = await self.api.core.read_namespaced_secret(
                    name=name, namespace=namespace
                )
        except ApiNotFoundError:
            logger.debug(f"Secret {namespace}/{name} not found")
            return None

        data: dict[str, str] = {}
        for key, encoded in (secret.data or {}).items():
            try:
                data[key] = base64.b64decode(encoded, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise ApiError(
                    f"secret {namespace}/{name} key {key!r} is not valid base64 text"
                ) from e
        # stringData is write-only on the server but set on unsaved objects
        data.update(secret.string_data or {})
        return data
