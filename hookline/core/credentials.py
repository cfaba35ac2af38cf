"""Credential resolution for GitLab sources.

The access token and the optional secret token usually live in the same
Secret, so each resolution call keeps a short-lived lookup table keyed by
Secret name. The table is discarded when the call returns: nothing is
cached across reconciliation passes.
"""

import logging
from collections.abc import Mapping

from .errors import SecretNotFoundError
from .models import Credentials, SecretKeyRef, Source
from .ports import SecretStorePort

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Maps secret references to plaintext values."""

    def __init__(self, secrets: SecretStorePort):
        self.secrets = secrets

    async def resolve(
        self, namespace: str, *refs: SecretKeyRef | None
    ) -> list[str]:
        """Resolve each reference to its value.

        Returns exactly one value per input; a None reference resolves
        to an empty string.

        Raises:
            SecretNotFoundError: If a Secret or one of its keys is missing.
        """
        cache: dict[str, Mapping[str, str]] = {}
        values = []

        for ref in refs:
            if ref is None:
                values.append("")
                continue

            data = cache.get(ref.name)
            if data is None:
                data = await self.secrets.get_secret(namespace, ref.name)
                if data is None:
                    raise SecretNotFoundError(ref.name)
                cache[ref.name] = data

            if ref.key not in data:
                raise SecretNotFoundError(ref.name, ref.key)
            values.append(data[ref.key])

        logger.debug(
            f"Resolved {len(values)} secret values from {len(cache)} secrets",
            extra={"namespace": namespace},
        )
        return values

    async def resolve_credentials(self, source: Source) -> Credentials:
        """Resolve the access token and secret token of a source."""
        access_token, secret_token = await self.resolve(
            source.namespace,
            source.spec.access_token,
            source.spec.secret_token,
        )
        return Credentials(access_token=access_token, secret_token=secret_token)
