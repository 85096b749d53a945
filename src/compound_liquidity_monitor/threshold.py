from __future__ import annotations

from .amounts import Amount
from .types import AlertDecision, MarketSnapshot


def evaluate(snapshot: MarketSnapshot, threshold: Amount) -> AlertDecision:
    liquidity = snapshot.available_liquidity
    # Strict: liquidity equal to the threshold is not a crossing.
    triggered = liquidity < threshold
    if triggered:
        message = f"Available liquidity ({liquidity}) is below threshold ({threshold})"
    else:
        message = f"Available liquidity ({liquidity}) is at or above threshold ({threshold})"
    return AlertDecision(triggered=triggered, snapshot=snapshot, threshold=threshold, message=message)
