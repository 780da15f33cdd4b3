"""
Shared test fixtures for the Yield Rebalancer tests.
Provides portfolio/pool builders and a small assessed market snapshot.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from yield_rebalancer.schemas.market import MarketPool, RiskAssessment, RiskLevel
from yield_rebalancer.schemas.portfolio import Portfolio, Position

AS_OF = datetime(2026, 3, 1, tzinfo=timezone.utc)
"""Fixed reference time for every time-dependent test"""


def make_position(
    protocol: str = "lido",
    chain: str = "Ethereum",
    value_usd: float = 5000.0,
    initial_yield: Optional[float] = 4.0,
    current_yield: Optional[float] = None,
    initial_risk_score: float = 2.0,
    symbol: str = "stETH",
    days_held: Optional[int] = 10,
) -> Position:
    """Position entered ``days_held`` days before AS_OF (no entry date if None)."""
    return Position(
        protocol=protocol,
        chain=chain,
        symbol=symbol,
        value_usd=value_usd,
        initial_yield=initial_yield,
        current_yield=current_yield,
        initial_risk_score=initial_risk_score,
        entry_date=AS_OF - timedelta(days=days_held) if days_held is not None else None,
    )


def make_portfolio(
    *positions: Position,
    portfolio_id: str = "pf-1",
    risk_tolerance: Optional[str] = None,
    last_rebalance_days: Optional[int] = None,
) -> Portfolio:
    return Portfolio(
        portfolio_id=portfolio_id,
        positions=list(positions),
        target_risk_tolerance=risk_tolerance,
        last_rebalance_date=(
            AS_OF - timedelta(days=last_rebalance_days)
            if last_rebalance_days is not None else None
        ),
    )


def make_pool(
    protocol: str,
    chain: str = "Ethereum",
    yield_rate: float = 4.0,
    risk_score: Optional[float] = 2.0,
    risk_level: str = "low",
    reserve_value: float = 1_000_000_000,
    symbol: str = "",
) -> MarketPool:
    """Pool with an attached assessment; risk_score=None leaves it unassessed."""
    risk = (
        RiskAssessment(score=risk_score, level=RiskLevel(risk_level))
        if risk_score is not None else None
    )
    return MarketPool(
        protocol=protocol,
        chain=chain,
        symbol=symbol,
        yield_rate=yield_rate,
        reserve_value=reserve_value,
        risk=risk,
    )


# Raw provider-style records (apy / tvl / poolId field names)
SAMPLE_POOL_RECORDS = [
    {"protocol": "lido", "chain": "Ethereum", "symbol": "stETH",
     "apy": 3.5, "tvl": 14_200_000_000, "poolId": "lido-steth"},
    {"protocol": "rocket-pool", "chain": "Ethereum", "symbol": "rETH",
     "apy": 3.8, "tvl": 1_800_000_000, "poolId": "rocket-pool-reth"},
    {"protocol": "frax", "chain": "Ethereum", "symbol": "frxETH",
     "apy": 4.2, "tvl": 450_000_000, "poolId": "frax-frxeth"},
]


# Store-style portfolio record with synonymous field names
SAMPLE_PORTFOLIO_RECORD = {
    "id": "user-42",
    "targetRiskTolerance": "medium",
    "lastRebalanceDate": "2026-02-20T00:00:00",
    "positions": [
        {"protocol": "lido", "chain": "Ethereum", "symbol": "stETH",
         "amountUSD": 6000, "initialAPY": 3.4, "currentAPY": 3.5,
         "initialRiskScore": 1.8, "entryDate": "2026-01-15T00:00:00Z"},
        {"protocol": "frax", "chain": "Ethereum", "symbol": "frxETH",
         "amount_usd": 4000, "initial_apy": 4.1,
         "entry_date": "2026-01-20T00:00:00Z"},
    ],
}


def stable_market() -> list[MarketPool]:
    """
    Lido/Ethereum unchanged at 4.0 / risk 2.0 (matches make_position defaults);
    rocket-pool sits within 30% of the 0.8 risk-adjusted baseline.
    """
    return [
        make_pool("lido", yield_rate=4.0, risk_score=2.0, risk_level="low"),
        make_pool("rocket-pool", yield_rate=4.2, risk_score=5.0, risk_level="medium"),
    ]
