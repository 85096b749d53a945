from __future__ import annotations

from dataclasses import dataclass

from .amounts import Amount


@dataclass(frozen=True)
class MarketSnapshot:
    market_address: str
    market_symbol: str | None
    available_liquidity: Amount
    total_borrows: Amount
    total_reserves: Amount
    observed_at: int


@dataclass(frozen=True)
class ThresholdConfig:
    liquidity_threshold: Amount
    poll_interval: float
    notification_enabled: bool


@dataclass(frozen=True)
class AlertDecision:
    triggered: bool
    snapshot: MarketSnapshot
    threshold: Amount
    message: str


@dataclass(frozen=True)
class AddressEntry:
    address: str
    display_name: str | None = None


@dataclass(frozen=True)
class AccountBalances:
    wallet_balance: Amount
    supplied_balance: Amount
    token_symbol: str
    token_decimals: int


@dataclass(frozen=True)
class BalanceRow:
    entry: AddressEntry
    balances: AccountBalances | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.balances is not None


@dataclass(frozen=True)
class LegacyRawState:
    cash: Amount
    total_borrows: Amount
    total_reserves: Amount
    symbol: str


@dataclass(frozen=True)
class CometRawState:
    base_token: str
    base_balance: Amount
    total_supply: Amount
    total_borrow: Amount
    reserves: int
    utilization: Amount
    supply_rate: int
    borrow_rate: int
