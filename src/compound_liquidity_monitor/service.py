from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .adapters import MarketReader, adapter_for, checksum_address
from .chain import ChainClient
from .config import Settings, require_monitor_settings
from .errors import DeliveryFailure, RpcFailure
from .formatting import snapshot_time_iso
from .threshold import evaluate
from .types import AlertDecision
from .webhook_notifier import WebhookDispatcher

logger = logging.getLogger(__name__)


@dataclass
class Metrics:
    cycles: int = 0
    reads_failed: int = 0
    threshold_crossings: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0
    alerts_skipped: int = 0


class LiquidityMonitor:
    def __init__(self, settings: Settings) -> None:
        webhook_url, threshold = require_monitor_settings(settings)
        self.settings = settings
        self.threshold = threshold
        self.metrics = Metrics()
        # Validate the market before any client exists.
        adapter_for(settings.compound_version)
        checksum_address(settings.market_address)
        self.chain = ChainClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds)
        self.reader = MarketReader(
            self.chain,
            settings.compound_version,
            settings.market_address,
            settings.market_name,
        )
        self.dispatcher = WebhookDispatcher(webhook_url, timeout=settings.webhook_timeout_seconds)
        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def close(self) -> None:
        await self.dispatcher.close()
        await self.chain.close()

    async def run(self, max_cycles: int | None = None) -> None:
        self._log_startup()
        health_task = asyncio.create_task(self._health_loop())
        try:
            while not self._stop.is_set():
                await self.run_cycle()
                if max_cycles is not None and self.metrics.cycles >= max_cycles:
                    break
                await self._sleep(self.threshold.poll_interval)
        finally:
            health_task.cancel()
            await asyncio.gather(health_task, return_exceptions=True)
            await self.close()
            logger.info("Liquidity monitor stopped after %d cycles", self.metrics.cycles)

    async def run_cycle(self) -> AlertDecision | None:
        self.metrics.cycles += 1

        try:
            snapshot = await self.reader.read_snapshot()
        except RpcFailure as exc:
            self.metrics.reads_failed += 1
            logger.error("Failed to check liquidity (%s %s): %s", exc.method, exc.address, exc.reason)
            return None
        except Exception as exc:
            self.metrics.reads_failed += 1
            logger.exception("Failed to check liquidity for %s: %s", self.reader.market_address, exc)
            return None

        decision = evaluate(snapshot, self.threshold.liquidity_threshold)
        if not decision.triggered:
            logger.debug(decision.message)
            return decision

        self.metrics.threshold_crossings += 1
        logger.warning(
            "Liquidity below threshold! Current: %s, Threshold: %s (market=%s at %s)",
            snapshot.available_liquidity,
            decision.threshold,
            snapshot.market_address,
            snapshot_time_iso(snapshot.observed_at),
        )

        if not self.threshold.notification_enabled:
            self.metrics.alerts_skipped += 1
            logger.info("Notification disabled, skipping alert")
            return decision

        try:
            await self.dispatcher.dispatch(decision)
            self.metrics.alerts_sent += 1
        except DeliveryFailure as exc:
            self.metrics.alerts_failed += 1
            logger.error("Failed to send alert: %s", exc)
        except Exception as exc:
            self.metrics.alerts_failed += 1
            logger.exception("Failed to send alert to %s: %s", self.dispatcher.webhook_url, exc)
        return decision

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _log_startup(self) -> None:
        logger.info("Starting Compound %s liquidity monitor...", self.reader.protocol_label)
        if self.settings.market_name:
            logger.info("Market: %s (%s)", self.settings.market_name, self.reader.market_address)
        else:
            logger.info("Market: %s", self.reader.market_address)
        logger.info("Threshold: %s", self.threshold.liquidity_threshold)
        logger.info("Poll interval: %ss", self.threshold.poll_interval)
        logger.info("Notifications: %s", "enabled" if self.threshold.notification_enabled else "disabled")

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.health_log_interval_seconds)
            logger.info(
                (
                    "health cycles=%d reads_failed=%d crossings=%d "
                    "alerts_sent=%d alerts_failed=%d alerts_skipped=%d"
                ),
                self.metrics.cycles,
                self.metrics.reads_failed,
                self.metrics.threshold_crossings,
                self.metrics.alerts_sent,
                self.metrics.alerts_failed,
                self.metrics.alerts_skipped,
            )
