"""
Ticket External Service Integrations
====================================

Delivery of queued notifications to the outside world.

The engine only writes to the notification outbox; this relay forwards
outbox rows to a webhook with:
- Circuit breaker to prevent cascade failures
- Exponential backoff retry
- Timeout handling
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.domain import Notification

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotificationRelay:
    """
    Posts outbox notifications to a webhook.

    ``send`` returns True once the webhook answered 2xx; the caller then
    marks the row delivered. Without a URL nothing is sent.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    @property
    def circuit_state(self) -> str:
        return self._circuit_breaker.state

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    @staticmethod
    def build_payload(notification: Notification) -> Dict[str, Any]:
        return {
            "id": notification.id,
            "user_id": notification.user_id,
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "ticket_id": notification.ticket_id,
            "created_at": notification.created_at.isoformat(),
        }

    async def send(self, notification: Notification) -> bool:
        if not self.webhook_url:
            logger.debug("Notification webhook URL not configured, skipping delivery")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping notification delivery",
                extra={"notification_id": notification.id}
            )
            return False

        payload = self.build_payload(notification)

        for attempt in range(self.max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self.webhook_url, json=payload)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.debug(
                        "Notification delivered",
                        extra={"notification_id": notification.id, "user_id": notification.user_id}
                    )
                    return True

                logger.warning(
                    "Notification webhook returned non-2xx",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Notification delivery failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "notification_id": notification.id
                    }
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
