"""
Portfolio Schema

Canonical Position/Portfolio models. Synonymous field names coming from
the portfolio store are normalised here, and the documented fallback
chains (current yield -> initial yield, current risk -> initial risk -> 5)
are applied exactly once at ingestion.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from yield_rebalancer.config.constants import DEFAULT_RISK_SCORE


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# store field name -> canonical field name
POSITION_FIELD_ALIASES: dict[str, str] = {
    "amount_usd": "value_usd",
    "amountUSD": "value_usd",
    "initial_apy": "initial_yield",
    "initialAPY": "initial_yield",
    "current_apy": "current_yield",
    "currentAPY": "current_yield",
    "initialRiskScore": "initial_risk_score",
    "currentRiskScore": "current_risk_score",
    "entryDate": "entry_date",
    "positionId": "position_id",
    "id": "position_id",
}

PORTFOLIO_FIELD_ALIASES: dict[str, str] = {
    "id": "portfolio_id",
    "portfolioId": "portfolio_id",
    "targetRiskTolerance": "target_risk_tolerance",
    "risk_tolerance": "target_risk_tolerance",
    "last_rebalance": "last_rebalance_date",
    "lastRebalanceDate": "last_rebalance_date",
}


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so elapsed-time arithmetic never mixes kinds."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _apply_aliases(data: dict, aliases: dict[str, str]) -> dict:
    data = dict(data)
    for alias, canonical in aliases.items():
        if alias in data:
            value = data.pop(alias)
            if data.get(canonical) is None:
                data[canonical] = value
    return data


# ---------------------------------------------------------------------------
# Position
# ---------------------------------------------------------------------------

class Position(BaseModel):
    """One held stake in a protocol/chain/asset."""

    protocol: str = Field(..., min_length=1)
    chain: str = Field(..., min_length=1)
    symbol: str = ""
    value_usd: float = Field(..., ge=0.0)
    initial_yield: Optional[float] = Field(None, ge=0.0, description="Yield at entry, percent")
    current_yield: Optional[float] = Field(None, ge=0.0, description="Latest observed yield, percent")
    initial_risk_score: float = Field(DEFAULT_RISK_SCORE, gt=0.0, le=10.0)
    current_risk_score: Optional[float] = Field(None, gt=0.0, le=10.0)
    entry_date: Optional[datetime] = None
    position_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_field_names(cls, data):
        if not isinstance(data, dict):
            return data
        data = _apply_aliases(data, POSITION_FIELD_ALIASES)
        if data.get("initial_risk_score") is None:
            data.pop("initial_risk_score", None)
        return data

    @field_validator("entry_date")
    @classmethod
    def validate_entry_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @model_validator(mode="after")
    def apply_fallbacks(self) -> "Position":
        if self.current_yield is None and self.initial_yield is not None:
            self.current_yield = self.initial_yield
        if self.current_risk_score is None:
            self.current_risk_score = self.initial_risk_score
        return self

    @property
    def key(self) -> tuple[str, str]:
        """Case-insensitive (protocol, chain) identity."""
        return self.protocol.lower(), self.chain.lower()

    @property
    def label(self) -> str:
        return f"{self.protocol}/{self.chain}"


# ---------------------------------------------------------------------------
# Portfolio
# ---------------------------------------------------------------------------

class Portfolio(BaseModel):
    """A user's staking positions plus their risk preference."""

    portfolio_id: str = Field(..., min_length=1)
    positions: List[Position] = Field(default_factory=list)
    target_risk_tolerance: Optional[RiskTolerance] = None
    last_rebalance_date: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_field_names(cls, data):
        if not isinstance(data, dict):
            return data
        return _apply_aliases(data, PORTFOLIO_FIELD_ALIASES)

    @field_validator("last_rebalance_date")
    @classmethod
    def validate_last_rebalance_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def total_value(self) -> float:
        return sum(p.value_usd for p in self.positions)

    @property
    def is_empty(self) -> bool:
        return not self.positions
