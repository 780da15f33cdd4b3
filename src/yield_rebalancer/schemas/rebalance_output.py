"""
Rebalancing Decision: Output Schema

Output contract for the rebalancing decision engine: triggered signals,
aggregate severity, rebalance/diversify suggestions and the estimated
impact on annual return.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field, model_validator

from yield_rebalancer.formatting import format_pct, format_reserve, format_usd
from yield_rebalancer.schemas.market import RiskLevel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TriggerType(str, Enum):
    APY_CHANGE = "apy_change"
    RISK_CHANGE = "risk_change"
    TIME_INTERVAL = "time_interval"
    BETTER_OPPORTUNITIES = "better_opportunities"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


class SuggestionAction(str, Enum):
    REBALANCE = "rebalance"
    DIVERSIFY = "diversify"


class ChangeDirection(str, Enum):
    INCREASED = "increased"
    DECREASED = "decreased"


# ---------------------------------------------------------------------------
# Trigger Details
# ---------------------------------------------------------------------------

class YieldChange(BaseModel):
    """A held position whose pool yield drifted past the threshold."""

    protocol: str
    chain: str
    initial_yield: float
    current_yield: float
    change_pct: float = Field(..., ge=0.0)
    direction: ChangeDirection


class RiskChange(BaseModel):
    """A held position whose pool risk score drifted past the threshold."""

    protocol: str
    chain: str
    initial_risk: float
    current_risk: float
    change_amount: float = Field(..., ge=0.0)
    direction: ChangeDirection


class Opportunity(BaseModel):
    """An unheld pool beating the portfolio's risk-adjusted baseline."""

    protocol: str
    chain: str
    yield_rate: float
    risk_level: RiskLevel
    risk_score: float
    improvement_pct: float

    @computed_field
    @property
    def reason(self) -> str:
        return f"{self.improvement_pct:.0f}% better risk-adjusted return"


class YieldChangeDetails(BaseModel):
    kind: Literal["apy_change"] = "apy_change"
    changes: List[YieldChange] = Field(default_factory=list)
    max_change: float = Field(0.0, ge=0.0)
    threshold_pct: float


class RiskChangeDetails(BaseModel):
    kind: Literal["risk_change"] = "risk_change"
    changes: List[RiskChange] = Field(default_factory=list)
    max_change: float = Field(0.0, ge=0.0)
    threshold: float


class TimeIntervalDetails(BaseModel):
    kind: Literal["time_interval"] = "time_interval"
    days_since_last_action: int
    last_action_date: datetime
    threshold_days: int


class OpportunityDetails(BaseModel):
    kind: Literal["better_opportunities"] = "better_opportunities"
    opportunities: List[Opportunity] = Field(default_factory=list)
    opportunity_count: int = Field(0, ge=0)
    score: float = Field(0.0, ge=0.0)
    baseline_risk_adjusted_return: float


TriggerDetails = Annotated[
    Union[YieldChangeDetails, RiskChangeDetails, TimeIntervalDetails, OpportunityDetails],
    Field(discriminator="kind"),
]


class Trigger(BaseModel):
    """One independently-fired rebalancing signal."""

    trigger_type: TriggerType
    severity: Severity
    points: int = Field(..., ge=1, le=3)
    details: TriggerDetails

    @model_validator(mode="after")
    def validate_details_kind(self) -> "Trigger":
        if self.details.kind != self.trigger_type.value:
            raise ValueError(
                f"details kind '{self.details.kind}' does not match "
                f"trigger_type '{self.trigger_type.value}'"
            )
        return self


class TriggerEvaluation(BaseModel):
    """All fired triggers plus the aggregate severity judgment."""

    should_rebalance: bool
    triggers: List[Trigger] = Field(default_factory=list)
    severity: Severity
    severity_score: int = Field(..., ge=0, le=12)

    @model_validator(mode="after")
    def validate_score(self) -> "TriggerEvaluation":
        total = sum(t.points for t in self.triggers)
        if self.severity_score != total:
            raise ValueError(
                f"severity_score={self.severity_score} but triggers sum to {total}"
            )
        if self.should_rebalance != bool(self.triggers):
            raise ValueError(
                f"should_rebalance={self.should_rebalance} but {len(self.triggers)} triggers fired"
            )
        return self


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

class SuggestionSource(BaseModel):
    """The held position a rebalance moves out of."""

    protocol: str
    chain: str
    symbol: str = ""
    current_yield: float
    risk_level: Optional[RiskLevel] = None
    value_usd: float = Field(..., ge=0.0)


class SuggestionTarget(BaseModel):
    """The market pool a rebalance moves into."""

    protocol: str
    chain: str
    symbol: str = ""
    yield_rate: float
    risk_level: RiskLevel
    risk_score: float
    reserve_value: float = Field(0.0, ge=0.0)

    @computed_field
    @property
    def reserve_display(self) -> str:
        return format_reserve(self.reserve_value)


class RebalanceSuggestion(BaseModel):
    """Move one underperforming position into one risk-compatible pool."""

    action: Literal["rebalance"] = "rebalance"
    priority: Priority
    source: SuggestionSource
    target: SuggestionTarget
    yield_delta: float
    annualized_gain: float
    reason: str = Field(..., min_length=1)

    @computed_field
    @property
    def annualized_gain_display(self) -> str:
        return format_usd(self.annualized_gain)


class DiversifySuggestion(BaseModel):
    """Structural recommendation; references no specific instrument."""

    action: Literal["diversify"] = "diversify"
    priority: Priority = Priority.MEDIUM
    reason: str = Field(..., min_length=1)
    recommendation: str = Field(..., min_length=1)
    suggested_allocation: Optional[str] = None
    concentration_pct: Optional[float] = Field(None, ge=0.0, le=100.0)


Suggestion = Annotated[
    Union[RebalanceSuggestion, DiversifySuggestion],
    Field(discriminator="action"),
]


# ---------------------------------------------------------------------------
# Impact & Summary
# ---------------------------------------------------------------------------

class ImpactEstimate(BaseModel):
    """Aggregate annual return before/after applying the rebalance suggestions."""

    current_annual_return: float
    projected_annual_return: float
    additional_return: float
    improvement_pct: Optional[float] = None
    portfolio_value: float = Field(..., ge=0.0)

    @computed_field
    @property
    def display(self) -> dict[str, str]:
        return {
            "current_annual_return": format_usd(self.current_annual_return),
            "projected_annual_return": format_usd(self.projected_annual_return),
            "additional_return": format_usd(self.additional_return),
            "improvement_pct": format_pct(self.improvement_pct),
            "portfolio_value": format_usd(self.portfolio_value),
        }


class PositionAllocation(BaseModel):
    protocol: str
    chain: str
    value_usd: float = Field(..., ge=0.0)
    allocation_pct: float = Field(..., ge=0.0, le=100.0)


class PortfolioSummary(BaseModel):
    total_value: float = Field(..., ge=0.0)
    position_count: int = Field(..., ge=0)
    positions: List[PositionAllocation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Top-level Output
# ---------------------------------------------------------------------------

class RebalanceAnalysis(BaseModel):
    """Top-level output contract for the rebalancing decision engine."""

    portfolio_id: str
    should_rebalance: bool
    triggers: List[Trigger] = Field(default_factory=list)
    severity: Optional[Severity] = None
    severity_score: int = Field(0, ge=0)
    message: Optional[str] = None
    current_portfolio: Optional[PortfolioSummary] = None
    suggestions: List[Suggestion] = Field(default_factory=list)
    estimated_impact: Optional[ImpactEstimate] = None
    next_check_date: datetime
    analysis_date: str = Field(
        ..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD"
    )

    @model_validator(mode="after")
    def validate_verdict(self) -> "RebalanceAnalysis":
        if self.should_rebalance != bool(self.triggers):
            raise ValueError(
                f"should_rebalance={self.should_rebalance} but {len(self.triggers)} triggers fired"
            )
        if self.should_rebalance and self.severity is None:
            raise ValueError("severity is required when should_rebalance is true")
        if not self.should_rebalance and self.suggestions:
            raise ValueError("suggestions must be empty when no trigger fired")
        return self


class RebalanceHistory(BaseModel):
    """Pass-through of stored suggestion records, newest first."""

    portfolio_id: str
    history_count: int = Field(..., ge=0)
    history: List[dict] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_count(self) -> "RebalanceHistory":
        if self.history_count != len(self.history):
            raise ValueError(
                f"history_count={self.history_count} but {len(self.history)} records supplied"
            )
        return self
