"""HTTP client for the messaging and notification REST endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import httpx

from inbox.config import Settings
from inbox.schemas.messaging import (
    ConversationSummary,
    MessageRead,
    NotificationRead,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error for REST request failures."""


class ApiAuthError(ApiError):
    """Raised when the backend rejects the bearer token."""


class ApiNotFoundError(ApiError):
    """Raised when the resource does not exist."""


class ApiConnectionError(ApiError):
    """Raised on transport failures and timeouts (transient)."""


class ApiRequestError(ApiError):
    """Raised for any other non-success status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class InboxApiClient:
    """
    Thin async client over the REST surface.

    Idempotent reads (GET) are retried on connection errors and 5xx responses
    with exponential delay; writes are never retried.
    """

    def __init__(
        self,
        settings: Settings,
        token: str,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self._token = token
        self.http = http or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(settings.api_timeout_seconds),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def call(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        retries = self.settings.api_read_retries if method.upper() == "GET" else 0
        attempt = 0
        while True:
            try:
                return await self._call_once(method, path, json=json, params=params)
            except (ApiConnectionError, ApiRequestError) as exc:
                transient = isinstance(exc, ApiConnectionError) or (
                    isinstance(exc, ApiRequestError) and exc.status_code >= 500
                )
                if not transient or attempt >= retries:
                    raise
                delay = self.settings.api_retry_delay_seconds * (2**attempt)
                attempt += 1
                logger.warning(
                    "%s %s failed (%s), retry %d/%d in %.2fs",
                    method,
                    path,
                    exc,
                    attempt,
                    retries,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _call_once(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self.http.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise ApiConnectionError(f"api_timeout: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise ApiConnectionError(f"api_connection_failed: {exc}") from exc

        if response.status_code in {401, 403}:
            raise ApiAuthError("api_auth_failed")
        if response.status_code == 404:
            raise ApiNotFoundError(f"api_not_found: {path}")
        if response.status_code >= 400:
            raise ApiRequestError(
                f"api_error_{response.status_code}", response.status_code
            )
        if not response.content:
            return None
        return response.json()

    # --- messages ---

    async def get_conversations(self) -> List[ConversationSummary]:
        data = await self.call("GET", "/api/messages/conversations")
        return [ConversationSummary.model_validate(c) for c in data or []]

    async def get_messages(self, user_id: str) -> List[MessageRead]:
        data = await self.call("GET", f"/api/messages/{user_id}")
        return [MessageRead.model_validate(m) for m in data or []]

    async def send_message(self, receiver_id: str, content: str) -> MessageRead:
        data = await self.call(
            "POST",
            "/api/messages",
            json={"receiverId": receiver_id, "content": content},
        )
        return MessageRead.model_validate(data)

    async def mark_thread_read(self, user_id: str) -> None:
        await self.call("PUT", f"/api/messages/read/{user_id}", json={})

    # --- notifications ---

    async def get_notifications(self) -> List[NotificationRead]:
        data = await self.call("GET", "/api/notifications")
        return [NotificationRead.model_validate(n) for n in data or []]

    async def mark_notification_read(self, notification_id: str) -> None:
        await self.call("PUT", f"/api/notifications/{notification_id}/read", json={})

    async def mark_all_notifications_read(self) -> None:
        await self.call("PUT", "/api/notifications/read-all", json={})
