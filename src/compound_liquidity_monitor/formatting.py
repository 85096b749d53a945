from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .amounts import format_units
from .types import AlertDecision, BalanceRow

SEPARATOR = "═" * 51
RULE = "─" * 51


def snapshot_time_iso(observed_at: int) -> str:
    return datetime.fromtimestamp(observed_at, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_alert_payload(decision: AlertDecision) -> dict[str, Any]:
    snapshot = decision.snapshot
    return {
        "market_address": snapshot.market_address,
        "market_symbol": snapshot.market_symbol or "",
        "available_liquidity": str(snapshot.available_liquidity),
        "total_borrows": str(snapshot.total_borrows),
        "total_reserves": str(snapshot.total_reserves),
        "threshold": str(decision.threshold),
        "timestamp": int(snapshot.observed_at),
        "message": decision.message,
    }


def render_balance_row(row: BalanceRow) -> list[str]:
    entry = row.entry
    lines = [SEPARATOR]
    if entry.display_name:
        lines.append(f"Name: {entry.display_name}")
    lines.append(f"Address: {entry.address}")

    if row.balances is None:
        lines.append(f"Error: {row.error}")
        lines.append(SEPARATOR)
        return lines

    balances = row.balances
    symbol = balances.token_symbol
    wallet = format_units(balances.wallet_balance, balances.token_decimals)
    supplied = format_units(balances.supplied_balance, balances.token_decimals)
    lines.extend(
        [
            f"Token: {symbol}",
            f"Decimals: {balances.token_decimals}",
            RULE,
            f"Wallet balance:   {wallet} {symbol} ({balances.wallet_balance})",
            f"Compound balance: {supplied} {symbol} ({balances.supplied_balance})",
            SEPARATOR,
        ]
    )
    return lines


def render_balance_report(rows: list[BalanceRow]) -> list[str]:
    lines: list[str] = []
    for row in rows:
        lines.extend(render_balance_row(row))
        lines.append("")
    return lines
