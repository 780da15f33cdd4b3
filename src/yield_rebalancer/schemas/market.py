"""
Market Pool Schema

Read-only snapshot of a staking pool as supplied by the market data
provider, with the risk assessment attached by the risk scorer.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RiskLevel(str, Enum):
    VERY_LOW = "very-low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"


# ---------------------------------------------------------------------------
# Supporting Models
# ---------------------------------------------------------------------------

class RiskFactor(BaseModel):
    """One factor of a heuristic risk assessment."""

    score: float = Field(..., ge=0.0, le=10.0)
    description: str = Field(..., min_length=1)


class RiskAssessment(BaseModel):
    """Numeric score (1 = very low risk, 10 = very high) plus qualitative level."""

    score: float = Field(..., gt=0.0, le=10.0)
    level: RiskLevel
    factors: Dict[str, RiskFactor] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------

class MarketPool(BaseModel):
    """A staking pool on a given chain."""

    protocol: str = Field(..., min_length=1)
    chain: str = Field(..., min_length=1)
    symbol: str = Field("", description="Staked asset symbol, e.g. stETH")
    yield_rate: float = Field(..., ge=0.0, description="Annualized yield, percent")
    reserve_value: float = Field(0.0, ge=0.0, description="Total value locked, USD")
    risk: Optional[RiskAssessment] = None
    pool_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_field_names(cls, data):
        """Accept the provider's field names (apy, tvl, tvlUsd, poolId)."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, canonical in (
            ("apy", "yield_rate"),
            ("tvl", "reserve_value"),
            ("tvlUsd", "reserve_value"),
            ("poolId", "pool_id"),
            ("project", "protocol"),
        ):
            if alias in data and canonical not in data:
                data[canonical] = data.pop(alias)
        return data

    @property
    def key(self) -> tuple[str, str]:
        """Case-insensitive (protocol, chain) identity."""
        return self.protocol.lower(), self.chain.lower()

    def matches(self, protocol: str, chain: str) -> bool:
        return self.key == (protocol.lower(), chain.lower())

    @property
    def risk_adjusted_return(self) -> Optional[float]:
        """Yield per unit of risk score; None when the pool is unassessed."""
        if self.risk is None:
            return None
        return self.yield_rate / self.risk.score
