"""
Boundary formatting for currency, percentages and pool reserves.

The engine computes with raw floats; these helpers only render them.
"""

from __future__ import annotations

from typing import Optional


def format_usd(amount: float) -> str:
    """12345.678 -> '$12,345.68'; negatives render as '-$12.00'."""
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"


def format_pct(value: Optional[float], signed: bool = False) -> str:
    """3.2 -> '3.20%'; signed=True renders '+1.30%'. None renders 'n/a'."""
    if value is None:
        return "n/a"
    if signed:
        return f"{value:+.2f}%"
    return f"{value:.2f}%"


def format_reserve(reserve_value: float) -> str:
    """Pool TVL in billions above $1B, else millions."""
    if reserve_value > 1_000_000_000:
        return f"${reserve_value / 1_000_000_000:.2f}B"
    return f"${reserve_value / 1_000_000:.2f}M"
