"""GitLab hooks adapter.

Implements WebhookClientPort against the GitLab REST API v4. Project hooks
live under /api/v4/projects/:id/hooks and group hooks under
/api/v4/groups/:id/hooks; both accept the URL-encoded full path as :id.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from hookline.core.errors import (
    ProviderError,
    ProviderNotFoundError,
    ProviderUnauthorizedError,
)
from hookline.core.models import (
    EVENT_TYPES_BY_WEBHOOK,
    HookOptions,
    Scope,
    ScopeKind,
    WebhookRegistration,
)
from hookline.core.ports import WebhookClientFactoryPort, WebhookClientPort

logger = logging.getLogger(__name__)

_COLLECTIONS = {
    ScopeKind.PROJECT: "projects",
    ScopeKind.GROUP: "groups",
}


def _classify(response: httpx.Response, action: str) -> ProviderError:
    status = response.status_code
    message = f"{action} failed with HTTP {status}: {response.text[:200]}"
    if status == 404:
        return ProviderNotFoundError(message, status)
    if status in (401, 403):
        return ProviderUnauthorizedError(message, status)
    return ProviderError(message, status)


class GitLabHookClient(WebhookClientPort):
    """Hook CRUD for one project or group, authenticated by one token."""

    def __init__(self, http: httpx.AsyncClient, scope: Scope, access_token: str):
        """Initialize the client.

        Args:
            http: Shared HTTP client. Not closed by this object.
            scope: Project or group owning the hooks.
            access_token: Personal or project access token.
        """
        self.http = http
        self.scope = scope
        self.access_token = access_token
        collection = _COLLECTIONS[scope.kind]
        self.hooks_url = (
            f"{scope.base_url}api/v4/{collection}/{quote(scope.path, safe='')}/hooks"
        )

    async def _request(
        self, method: str, url: str, action: str, json: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            response = await self.http.request(
                method,
                url,
                json=json,
                headers={"PRIVATE-TOKEN": self.access_token},
            )
        except httpx.HTTPError as e:
            logger.error(f"GitLab request to {action} failed: {e}")
            raise ProviderError(f"{action} failed: {e}") from e

        if response.is_success:
            return response
        raise _classify(response, action)

    async def get(self, hook_id: int) -> WebhookRegistration:
        """Fetch a hook by ID."""
        action = f"get hook {hook_id}"
        response = await self._request("GET", f"{self.hooks_url}/{hook_id}", action)
        data = self._json(response, action)
        try:
            return self._parse_hook(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"{action} returned a malformed hook: {data!r}") from e

    async def add(self, options: HookOptions) -> int:
        """Create a hook and return its ID."""
        response = await self._request(
            "POST", self.hooks_url, "add hook", json=self._hook_body(options)
        )
        data = self._json(response, "add hook")
        try:
            return int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"add hook returned no usable ID: {data!r}") from e

    async def edit(self, hook_id: int, options: HookOptions) -> None:
        """Overwrite every field of a hook."""
        await self._request(
            "PUT",
            f"{self.hooks_url}/{hook_id}",
            f"edit hook {hook_id}",
            json=self._hook_body(options),
        )

    async def delete(self, hook_id: int) -> None:
        """Delete a hook."""
        await self._request(
            "DELETE", f"{self.hooks_url}/{hook_id}", f"delete hook {hook_id}"
        )

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{action} returned a body that is not JSON: {response.text[:200]}"
            ) from e

    @staticmethod
    def _hook_body(options: HookOptions) -> dict[str, Any]:
        body: dict[str, Any] = {
            "url": options.url,
            "enable_ssl_verification": options.enable_ssl_verification,
            "token": options.token,
        }
        body.update(options.events)
        return body

    @staticmethod
    def _parse_hook(data: dict[str, Any]) -> WebhookRegistration:
        return WebhookRegistration(
            id=int(data["id"]),
            url=data.get("url", ""),
            enable_ssl_verification=bool(data.get("enable_ssl_verification", False)),
            events={
                category: bool(data[category])
                for category in EVENT_TYPES_BY_WEBHOOK
                if category in data
            },
        )


class GitLabClientFactory(WebhookClientFactoryPort):
    """Builds hook clients that share one connection pool."""

    def __init__(self, timeout: float = 15.0, http: httpx.AsyncClient | None = None):
        """Initialize the factory.

        Args:
            timeout: Per-request timeout in seconds.
            http: Optional pre-built client, used by tests to inject a
                mock transport.
        """
        self.http = http or httpx.AsyncClient(timeout=timeout)

    def client_for(self, scope: Scope, access_token: str) -> GitLabHookClient:
        return GitLabHookClient(self.http, scope, access_token)

    async def close(self) -> None:
        """Close the shared HTTP client."""
        await self.http.aclose()
