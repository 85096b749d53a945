import asyncio
from dataclasses import replace

import httpx
import pytest

from compound_liquidity_monitor import service as service_module
from compound_liquidity_monitor.amounts import Amount
from compound_liquidity_monitor.config import Settings
from compound_liquidity_monitor.errors import ConfigError, RpcFailure
from compound_liquidity_monitor.service import LiquidityMonitor
from compound_liquidity_monitor.types import MarketSnapshot, ThresholdConfig
from compound_liquidity_monitor.webhook_notifier import WebhookDispatcher

MARKET = "0xc3d688B66703497DAA19211EEdff47f25384cdc3"


class DummyReader:
    def __init__(self, results) -> None:
        self.results = list(results)
        self.calls = 0
        self.market_address = MARKET
        self.protocol_label = "V3 (Comet)"

    async def read_snapshot(self) -> MarketSnapshot:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class DummyDispatcher:
    def __init__(self) -> None:
        self.webhook_url = "https://hooks.example.com"
        self.decisions = []

    async def dispatch(self, decision) -> None:
        self.decisions.append(decision)

    async def close(self) -> None:
        return None


def _settings(poll_interval: float = 0.01, notification_enabled: bool = True) -> Settings:
    return Settings(
        rpc_url="https://rpc.example.com",
        market_address=MARKET,
        market_name="cUSDCv3",
        compound_version="v3",
        webhook_url="https://hooks.example.com",
        threshold=ThresholdConfig(
            liquidity_threshold=Amount(1_000),
            poll_interval=poll_interval,
            notification_enabled=notification_enabled,
        ),
        rpc_timeout_seconds=5.0,
        webhook_timeout_seconds=5.0,
        health_log_interval_seconds=1000,
        monitor_address_file="monitor_address.json",
        chain_id=1,
        private_key=None,
        log_level="INFO",
    )


def _snapshot(liquidity: int) -> MarketSnapshot:
    return MarketSnapshot(
        market_address=MARKET,
        market_symbol="cUSDCv3",
        available_liquidity=Amount(liquidity),
        total_borrows=Amount(10),
        total_reserves=Amount(1),
        observed_at=1730000000,
    )


def _service(results, **kwargs) -> LiquidityMonitor:
    service = LiquidityMonitor(_settings(**kwargs))
    service.reader = DummyReader(results)
    service.dispatcher = DummyDispatcher()
    return service


def test_threshold_strictly_less_than_configured_value() -> None:
    service = _service([_snapshot(1_000)])

    async def scenario() -> None:
        await service.run_cycle()
        service.reader.results = [_snapshot(999)]
        await service.run_cycle()

    asyncio.run(scenario())

    assert len(service.dispatcher.decisions) == 1
    assert service.dispatcher.decisions[0].snapshot.available_liquidity == 999


def test_read_failure_does_not_stop_the_loop() -> None:
    service = _service([RpcFailure(MARKET, "getCash()", "timeout"), _snapshot(10)])

    asyncio.run(service.run(max_cycles=2))

    assert service.reader.calls == 2
    assert service.metrics.reads_failed == 1
    assert len(service.dispatcher.decisions) == 1


def test_every_cycle_below_threshold_dispatches() -> None:
    service = _service([_snapshot(10)])

    asyncio.run(service.run(max_cycles=3))

    assert len(service.dispatcher.decisions) == 3
    assert service.metrics.alerts_sent == 3


def test_notifications_disabled_skips_dispatch() -> None:
    service = _service([_snapshot(10)], notification_enabled=False)

    decision = asyncio.run(service.run_cycle())

    assert decision is not None and decision.triggered
    assert service.dispatcher.decisions == []
    assert service.metrics.alerts_skipped == 1


def test_non_success_webhook_is_contained_by_the_poller() -> None:
    service = _service([_snapshot(10)])
    service.dispatcher = WebhookDispatcher(
        "https://hooks.example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    asyncio.run(service.run(max_cycles=2))

    assert service.reader.calls == 2
    assert service.metrics.alerts_failed == 2
    assert service.metrics.alerts_sent == 0


def test_stop_interrupts_sleep() -> None:
    service = _service([_snapshot(5_000)], poll_interval=3600)

    async def scenario() -> None:
        task = asyncio.create_task(service.run())
        while service.metrics.cycles < 1:
            await asyncio.sleep(0.01)
        service.stop()
        await asyncio.wait_for(task, timeout=2.0)

    asyncio.run(scenario())

    assert service.stopped
    assert service.reader.calls == 1


def test_invalid_market_is_rejected_before_clients_are_created(monkeypatch) -> None:
    created = []

    class RecordingClient:
        def __init__(self, *args, **kwargs) -> None:
            created.append(args)

    monkeypatch.setattr(service_module, "ChainClient", RecordingClient)
    monkeypatch.setattr(service_module, "WebhookDispatcher", RecordingClient)

    for overrides in ({"compound_version": "v4"}, {"market_address": "0xnot-an-address"}):
        with pytest.raises(ConfigError):
            LiquidityMonitor(replace(_settings(), **overrides))

    assert created == []
