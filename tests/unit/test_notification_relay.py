"""
Unit tests for outbox delivery.

Tests:
- Webhook payload and success handling (httpx.MockTransport)
- Retry, then circuit breaker after repeated failures
- Engine delivery marks only successfully sent rows
"""

import json

import httpx
import pytest

from servicedesk.config import NotificationType
from servicedesk.tickets.domain import Notification
from servicedesk.tickets.infrastructure import CircuitBreaker, CircuitState, WebhookNotificationRelay
from tests.factories import T0, ticket_payload

WEBHOOK = "https://hooks.example.com/servicedesk"


def _notification(user_id="u-alice") -> Notification:
    return Notification(
        id="n-1",
        user_id=user_id,
        type=NotificationType.ASSIGNED,
        title="Ticket Assigned",
        message='You have been assigned to ticket: "VPN is down"',
        ticket_id="t-1",
        created_at=T0,
    )


def _relay(handler, **kwargs) -> WebhookNotificationRelay:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookNotificationRelay(WEBHOOK, http_client=client, **kwargs)


class TestWebhookNotificationRelay:

    @pytest.mark.asyncio
    async def test_posts_payload_and_reports_success(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((str(request.url), json.loads(request.content)))
            return httpx.Response(202)

        relay = _relay(handler)
        assert await relay.send(_notification()) is True
        await relay.close()

        [(url, payload)] = seen
        assert url == WEBHOOK
        assert payload == {
            "id": "n-1",
            "user_id": "u-alice",
            "type": "assigned",
            "title": "Ticket Assigned",
            "message": 'You have been assigned to ticket: "VPN is down"',
            "ticket_id": "t-1",
            "created_at": T0.isoformat(),
        }

    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        relay = WebhookNotificationRelay(None)

        assert relay.enabled is False
        assert await relay.send(_notification()) is False

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503 if len(calls) == 1 else 200)

        relay = _relay(handler, max_retries=2)

        assert await relay.send(_notification()) is True
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_transport_errors_open_the_circuit(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused")

        relay = _relay(handler, max_retries=1, circuit_breaker=CircuitBreaker(failure_threshold=2))

        assert await relay.send(_notification()) is False
        assert relay.circuit_state == CircuitState.CLOSED
        assert await relay.send(_notification()) is False
        assert relay.circuit_state == CircuitState.OPEN

        assert await relay.send(_notification()) is False
        assert len(calls) == 2


class TestCircuitBreaker:

    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


class TestEngineDelivery:

    @pytest.mark.asyncio
    async def test_only_delivered_rows_are_marked(self, engine, store):
        await engine.create_ticket(ticket_payload(category="Billing"))

        def handler(request):
            payload = json.loads(request.content)
            return httpx.Response(500 if payload["user_id"] == "u-billing-desk" else 200)

        relay = _relay(handler, max_retries=1, circuit_breaker=CircuitBreaker(failure_threshold=100))

        delivered = await engine.deliver_notifications(relay)

        rows = store.notifications
        assert delivered == len([n for n in rows if n.user_id != "u-billing-desk"])
        assert all(n.delivered for n in rows if n.user_id != "u-billing-desk")
        assert not any(n.delivered for n in rows if n.user_id == "u-billing-desk")
        assert all(n.delivered_at is not None for n in rows if n.delivered)

    @pytest.mark.asyncio
    async def test_disabled_relay_delivers_nothing(self, engine, store):
        await engine.create_ticket(ticket_payload())

        assert await engine.deliver_notifications(WebhookNotificationRelay(None)) == 0
        assert not any(n.delivered for n in store.notifications)
