from __future__ import annotations

from typing import Any


class Amount(int):
    """Non-negative on-chain quantity in the token's base units.

    Backed by Python's arbitrary-precision ``int`` so comparisons and
    arithmetic stay exact far beyond 256 bits.
    """

    def __new__(cls, value: Any = 0) -> "Amount":
        if isinstance(value, (bool, float)):
            raise TypeError(f"Amount requires an integer, got {type(value).__name__}")
        if isinstance(value, str):
            return cls.from_dec_str(value)
        number = int(value)
        if number < 0:
            raise ValueError(f"Amount cannot be negative: {number}")
        return super().__new__(cls, number)

    @classmethod
    def from_dec_str(cls, text: str) -> "Amount":
        raw = text.strip().replace("_", "")
        if not raw.isdigit():
            raise ValueError(f"Not a base-10 unsigned integer: {text!r}")
        return cls(int(raw, 10))

    @classmethod
    def clamp(cls, value: int) -> "Amount":
        return cls(max(int(value), 0))

    def __repr__(self) -> str:
        return f"Amount({int(self)})"

    def __str__(self) -> str:
        return str(int(self))


def format_units(amount: int, decimals: int) -> str:
    if decimals <= 0:
        return str(int(amount))

    divisor = 10**decimals
    whole, remainder = divmod(int(amount), divisor)
    if remainder == 0:
        return str(whole)

    fraction = f"{remainder:0{decimals}d}".rstrip("0")
    return f"{whole}.{fraction}"
