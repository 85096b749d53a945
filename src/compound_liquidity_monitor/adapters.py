from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

from eth_utils import to_checksum_address

from .amounts import Amount
from .errors import ConfigError
from .types import AccountBalances, CometRawState, LegacyRawState, MarketSnapshot

logger = logging.getLogger(__name__)

DEFAULT_COMET_SYMBOL = "cUSDCv3"
SECONDS_PER_YEAR = 365.25 * 24 * 60 * 60
RATE_SCALE = 10**18
EXCHANGE_RATE_SCALE = 10**18


class ChainReader(Protocol):
    async def call_single(self, address: str, signature: str, return_type: str, *args: Any) -> Any: ...


def apy_from_rate(rate_per_second: int) -> float:
    # Rates are per second, scaled by 1e18.
    rate = rate_per_second / RATE_SCALE
    return ((1.0 + rate) ** SECONDS_PER_YEAR - 1.0) * 100.0


def utilization_percent(utilization: int) -> float:
    return utilization / 1e16


class MarketAdapter:
    """Reads one contract shape and maps it onto :class:`MarketSnapshot`."""

    protocol_label = "unknown"

    def __init__(
        self,
        chain: ChainReader,
        market_address: str,
        market_name: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.chain = chain
        self.market_address = market_address
        self.market_name = market_name
        self._clock = clock

    async def fetch_raw_state(self) -> Any:
        raise NotImplementedError

    def normalize(self, raw: Any) -> MarketSnapshot:
        raise NotImplementedError

    async def fetch_account_balances(self, account: str) -> AccountBalances:
        raise NotImplementedError

    async def _uint(self, address: str, signature: str, *args: Any) -> Amount:
        return Amount(await self.chain.call_single(address, signature, "uint256", *args))

    async def _token_info(self, token: str) -> tuple[str, int]:
        symbol = await self.chain.call_single(token, "symbol()", "string")
        decimals = await self.chain.call_single(token, "decimals()", "uint8")
        return symbol, int(decimals)

    def _now(self) -> int:
        return int(self._clock())


class LegacyMarketAdapter(MarketAdapter):
    """cToken market; available liquidity is the contract's ``getCash()``."""

    protocol_label = "V2"

    async def fetch_raw_state(self) -> LegacyRawState:
        cash = await self._uint(self.market_address, "getCash()")
        borrows = await self._uint(self.market_address, "totalBorrows()")
        reserves = await self._uint(self.market_address, "totalReserves()")
        symbol = await self.chain.call_single(self.market_address, "symbol()", "string")

        logger.info(
            "Market: %s | Available Liquidity: %s | Borrows: %s | Reserves: %s",
            symbol,
            cash,
            borrows,
            reserves,
        )
        return LegacyRawState(cash=cash, total_borrows=borrows, total_reserves=reserves, symbol=symbol)

    def normalize(self, raw: LegacyRawState) -> MarketSnapshot:
        return MarketSnapshot(
            market_address=self.market_address,
            market_symbol=self.market_name or raw.symbol,
            available_liquidity=raw.cash,
            total_borrows=raw.total_borrows,
            total_reserves=raw.total_reserves,
            observed_at=self._now(),
        )

    async def fetch_account_balances(self, account: str) -> AccountBalances:
        underlying = await self.chain.call_single(self.market_address, "underlying()", "address")
        symbol, decimals = await self._token_info(underlying)
        wallet = await self._uint(underlying, "balanceOf(address)", account)
        ctoken_balance = await self._uint(self.market_address, "balanceOf(address)", account)
        exchange_rate = await self._uint(self.market_address, "exchangeRateStored()")
        supplied = Amount(ctoken_balance * exchange_rate // EXCHANGE_RATE_SCALE)
        return AccountBalances(
            wallet_balance=wallet,
            supplied_balance=supplied,
            token_symbol=symbol,
            token_decimals=decimals,
        )


class CometMarketAdapter(MarketAdapter):
    """Comet market.

    Available liquidity is the base-token balance held by the Comet contract
    itself, i.e. what a borrower could withdraw right now. ``getReserves()``
    is signed on Comet; negative reserves are reported as zero.
    """

    protocol_label = "V3 (Comet)"

    async def fetch_raw_state(self) -> CometRawState:
        base_token = await self.chain.call_single(self.market_address, "baseToken()", "address")
        base_balance = await self._uint(base_token, "balanceOf(address)", self.market_address)
        total_supply = await self._uint(self.market_address, "totalSupply()")
        total_borrow = await self._uint(self.market_address, "totalBorrow()")
        reserves = int(await self.chain.call_single(self.market_address, "getReserves()", "int256"))
        utilization = await self._uint(self.market_address, "getUtilization()")
        supply_rate = int(
            await self.chain.call_single(self.market_address, "getSupplyRate(uint256)", "uint64", utilization)
        )
        borrow_rate = int(
            await self.chain.call_single(self.market_address, "getBorrowRate(uint256)", "uint64", utilization)
        )

        logger.info(
            "Market: %s | Available Liquidity: %s | Total Supply: %s | Total Borrow: %s | Reserves: %s",
            self.market_name or DEFAULT_COMET_SYMBOL,
            base_balance,
            total_supply,
            total_borrow,
            reserves,
        )
        logger.info(
            "Supply APY: %.2f%% | Borrow APY: %.2f%% | Utilization: %.2f%%",
            apy_from_rate(supply_rate),
            apy_from_rate(borrow_rate),
            utilization_percent(utilization),
        )
        return CometRawState(
            base_token=base_token,
            base_balance=base_balance,
            total_supply=total_supply,
            total_borrow=total_borrow,
            reserves=reserves,
            utilization=utilization,
            supply_rate=supply_rate,
            borrow_rate=borrow_rate,
        )

    def normalize(self, raw: CometRawState) -> MarketSnapshot:
        return MarketSnapshot(
            market_address=self.market_address,
            market_symbol=self.market_name or DEFAULT_COMET_SYMBOL,
            available_liquidity=raw.base_balance,
            total_borrows=raw.total_borrow,
            total_reserves=Amount.clamp(raw.reserves),
            observed_at=self._now(),
        )

    async def fetch_account_balances(self, account: str) -> AccountBalances:
        base_token = await self.chain.call_single(self.market_address, "baseToken()", "address")
        symbol, decimals = await self._token_info(base_token)
        wallet = await self._uint(base_token, "balanceOf(address)", account)
        supplied = await self._uint(self.market_address, "balanceOf(address)", account)
        return AccountBalances(
            wallet_balance=wallet,
            supplied_balance=supplied,
            token_symbol=symbol,
            token_decimals=decimals,
        )


ADAPTERS: dict[str, type[MarketAdapter]] = {
    "v2": LegacyMarketAdapter,
    "v3": CometMarketAdapter,
}


def adapter_for(protocol_version: str) -> type[MarketAdapter]:
    adapter_cls = ADAPTERS.get(protocol_version.strip().lower())
    if adapter_cls is None:
        raise ConfigError(f"Unsupported protocol version: {protocol_version!r}")
    return adapter_cls


def checksum_address(address: str) -> str:
    try:
        return to_checksum_address(address.strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid address: {address!r}") from exc


class MarketReader:
    def __init__(
        self,
        chain: ChainReader,
        protocol_version: str,
        market_address: str,
        market_name: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        adapter_cls = adapter_for(protocol_version)
        self.protocol_version = protocol_version.strip().lower()
        self.market_address = checksum_address(market_address)
        self.adapter = adapter_cls(chain, self.market_address, market_name, clock=clock)

    @property
    def protocol_label(self) -> str:
        return self.adapter.protocol_label

    async def read_snapshot(self) -> MarketSnapshot:
        raw = await self.adapter.fetch_raw_state()
        return self.adapter.normalize(raw)

    async def read_account_balances(self, account: str) -> AccountBalances:
        return await self.adapter.fetch_account_balances(checksum_address(account))
