import asyncio
import json

import httpx
import pytest

from compound_liquidity_monitor.amounts import Amount
from compound_liquidity_monitor.errors import DeliveryFailure
from compound_liquidity_monitor.formatting import build_alert_payload
from compound_liquidity_monitor.threshold import evaluate
from compound_liquidity_monitor.types import MarketSnapshot
from compound_liquidity_monitor.webhook_notifier import WebhookDispatcher

WEBHOOK_URL = "https://hooks.example.com/liquidity"


def _decision():
    snapshot = MarketSnapshot(
        market_address="0xc3d688B66703497DAA19211EEdff47f25384cdc3",
        market_symbol="cUSDCv3",
        available_liquidity=Amount(950000000000000000000000),
        total_borrows=Amount(2**100),
        total_reserves=Amount(17),
        observed_at=1730000000,
    )
    return evaluate(snapshot, Amount(10**24))


def test_payload_serializes_quantities_as_strings() -> None:
    payload = build_alert_payload(_decision())

    assert payload == {
        "market_address": "0xc3d688B66703497DAA19211EEdff47f25384cdc3",
        "market_symbol": "cUSDCv3",
        "available_liquidity": "950000000000000000000000",
        "total_borrows": str(2**100),
        "total_reserves": "17",
        "threshold": "1000000000000000000000000",
        "timestamp": 1730000000,
        "message": "Available liquidity (950000000000000000000000) is below threshold (1000000000000000000000000)",
    }


def test_dispatch_posts_json_payload_once() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    dispatcher = WebhookDispatcher(WEBHOOK_URL, transport=httpx.MockTransport(handler))

    async def scenario() -> None:
        await dispatcher.dispatch(_decision())
        await dispatcher.close()

    asyncio.run(scenario())

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert str(requests[0].url) == WEBHOOK_URL
    body = json.loads(requests[0].content)
    assert body["available_liquidity"] == "950000000000000000000000"
    assert body["timestamp"] == 1730000000


def test_non_success_status_raises_delivery_failure_without_retry() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, text="unavailable")

    dispatcher = WebhookDispatcher(WEBHOOK_URL, transport=httpx.MockTransport(handler))

    with pytest.raises(DeliveryFailure) as excinfo:
        asyncio.run(dispatcher.dispatch(_decision()))

    assert excinfo.value.status_code == 503
    assert len(calls) == 1


def test_transport_error_raises_delivery_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    dispatcher = WebhookDispatcher(WEBHOOK_URL, transport=httpx.MockTransport(handler))

    with pytest.raises(DeliveryFailure):
        asyncio.run(dispatcher.dispatch(_decision()))
