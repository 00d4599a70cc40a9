"""Notifier adapters.

Two implementations of the Notifier port:
    - LoggingNotifier: Writes each message to the structured log. Default.
    - WebhookNotifier: POSTs each message as JSON to a delivery service,
      retrying transient failures with exponential backoff.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from account_escrow.domain.exceptions import NotificationFailureError
from account_escrow.logging_config import get_logger

logger = get_logger(__name__)


class LoggingNotifier:
    """Delivers nothing; records every message in the log."""

    def __init__(self) -> None:
        self.sent = 0

    async def send(self, user_id: str, kind: str, context: dict[str, Any]) -> bool:
        self.sent += 1
        logger.info(
            "notification.logged",
            recipient_id=user_id,
            kind=str(kind),
            transaction_id=context.get("id"),
        )
        return True


class WebhookNotifier:
    """Posts notifications to an HTTP endpoint.

    The receiving service is responsible for rendering and routing the
    message to the user (chat bot, e-mail, push).

    Raises:
        NotificationFailureError: After the last attempt fails or the
            endpoint answers with a non-2xx status.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("A webhook URL is required for WebhookNotifier")
        self._url = url
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._client = client

    async def send(self, user_id: str, kind: str, context: dict[str, Any]) -> bool:
        body = json.dumps({"userId": user_id, "kind": str(kind), "context": context}, default=str)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
                reraise=True,
            ):
                with attempt:
                    response = await self._post(body)
        except httpx.HTTPError as exc:
            logger.warning("notification.webhook_unreachable", recipient_id=user_id, error=str(exc))
            raise NotificationFailureError(user_id, str(kind), str(exc)) from exc

        if response.is_success:
            return True
        raise NotificationFailureError(user_id, str(kind), f"HTTP {response.status_code}")

    async def _post(self, body: str) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self._client is not None:
            return await self._client.post(self._url, content=body, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._url, content=body, headers=headers)


def build_notifier(
    kind: str,
    webhook_url: str = "",
    timeout_seconds: float = 10.0,
    max_attempts: int = 3,
) -> LoggingNotifier | WebhookNotifier:
    """Create the notifier named in configuration."""
    if kind == "webhook":
        return WebhookNotifier(
            webhook_url, timeout_seconds=timeout_seconds, max_attempts=max_attempts
        )
    if kind == "log":
        return LoggingNotifier()
    raise ValueError(f"Unknown notifier: '{kind}'. Valid notifiers: ['log', 'webhook']")
