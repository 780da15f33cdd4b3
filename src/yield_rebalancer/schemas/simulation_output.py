"""
Rebalance Simulation: Schema

A reallocation plan, the portfolio-level metrics computed before and
after applying it, and the coarse proceed/review recommendation.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, computed_field

from yield_rebalancer.config.constants import DEFAULT_RISK_SCORE
from yield_rebalancer.formatting import format_pct, format_usd
from yield_rebalancer.schemas.portfolio import Portfolio
from yield_rebalancer.schemas.rebalance_output import (
    RebalanceSuggestion,
    SuggestionAction,
)


class SimulationRecommendation(str, Enum):
    PROCEED = "Proceed"
    REVIEW_CAREFULLY = "Review carefully"


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

class PlanSource(BaseModel):
    protocol: str = Field(..., min_length=1)
    chain: str = Field(..., min_length=1)
    symbol: Optional[str] = None


class PlanTarget(BaseModel):
    protocol: str = Field(..., min_length=1)
    chain: str = Field(..., min_length=1)
    symbol: Optional[str] = None
    yield_rate: float = Field(..., ge=0.0)
    risk_score: float = Field(DEFAULT_RISK_SCORE, gt=0.0, le=10.0)


class PlanAction(BaseModel):
    """One step of a reallocation plan. Only rebalance steps change positions."""

    action: SuggestionAction = SuggestionAction.REBALANCE
    source: Optional[PlanSource] = None
    target: Optional[PlanTarget] = None


class RebalancePlan(BaseModel):
    actions: List[PlanAction] = Field(default_factory=list)

    @classmethod
    def from_suggestions(cls, suggestions: Sequence[BaseModel]) -> "RebalancePlan":
        """Turn the rebalance suggestions of an analysis into a simulatable plan."""
        actions = []
        for s in suggestions:
            if not isinstance(s, RebalanceSuggestion):
                continue
            actions.append(PlanAction(
                action=SuggestionAction.REBALANCE,
                source=PlanSource(
                    protocol=s.source.protocol,
                    chain=s.source.chain,
                    symbol=s.source.symbol or None,
                ),
                target=PlanTarget(
                    protocol=s.target.protocol,
                    chain=s.target.chain,
                    symbol=s.target.symbol or None,
                    yield_rate=s.target.yield_rate,
                    risk_score=s.target.risk_score,
                ),
            ))
        return cls(actions=actions)


class PlanApplication(BaseModel):
    """Result of applying a plan to a copy of a portfolio."""

    portfolio: Portfolio
    applied_actions: int = Field(0, ge=0)
    skipped_actions: int = Field(0, ge=0)


# ---------------------------------------------------------------------------
# Metrics & Result
# ---------------------------------------------------------------------------

class PortfolioMetrics(BaseModel):
    """Portfolio-level metrics derived from a snapshot; never stored."""

    total_value: float = Field(..., ge=0.0)
    weighted_yield: float = Field(..., ge=0.0)
    avg_risk_score: float = Field(..., gt=0.0, le=10.0)
    diversification_score: float = Field(..., ge=0.0, le=10.0)
    position_count: int = Field(..., ge=1)

    @computed_field
    @property
    def total_value_display(self) -> str:
        return format_usd(self.total_value)


class SimulationChanges(BaseModel):
    apy_change: float
    risk_change: float
    diversification_change: float

    @computed_field
    @property
    def apy_change_display(self) -> str:
        return format_pct(self.apy_change, signed=True)


class SimulationResult(BaseModel):
    portfolio_id: str
    current: PortfolioMetrics
    projected: PortfolioMetrics
    changes: SimulationChanges
    recommendation: SimulationRecommendation
    applied_actions: int = Field(0, ge=0)
    skipped_actions: int = Field(0, ge=0)
