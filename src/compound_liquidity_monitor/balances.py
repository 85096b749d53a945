from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .errors import MonitorError
from .types import AccountBalances, AddressEntry, BalanceRow

logger = logging.getLogger(__name__)


class BalanceSource(Protocol):
    async def read_account_balances(self, account: str) -> AccountBalances: ...


class BatchBalanceReporter:
    def __init__(self, reader: BalanceSource, concurrency: int = 8) -> None:
        self.reader = reader
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def run(self, entries: list[AddressEntry]) -> list[BalanceRow]:
        if not entries:
            logger.info("No addresses to check")
            return []

        logger.info("Checking balances for %d addresses...", len(entries))
        # gather preserves argument order, so rows line up with entries.
        return list(await asyncio.gather(*(self._lookup(entry) for entry in entries)))

    async def _lookup(self, entry: AddressEntry) -> BalanceRow:
        async with self._semaphore:
            try:
                balances = await self.reader.read_account_balances(entry.address)
            except MonitorError as exc:
                logger.error(
                    "Failed to check balance for %s (%s): %s",
                    entry.display_name or "-",
                    entry.address,
                    exc,
                )
                return BalanceRow(entry=entry, error=str(exc))
            except Exception as exc:
                logger.exception("Unexpected error checking balance for %s: %s", entry.address, exc)
                return BalanceRow(entry=entry, error=f"{type(exc).__name__}: {exc}")
        return BalanceRow(entry=entry, balances=balances)
