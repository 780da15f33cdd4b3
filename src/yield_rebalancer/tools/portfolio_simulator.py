"""
Portfolio Simulator: Metrics & What-if Reallocation

Pure functions for:
- Portfolio-level metrics (value-weighted yield, mean risk, Herfindahl
  diversification score)
- Applying a reallocation plan to an independent copy of a portfolio
- Comparing current vs projected metrics with a proceed/review verdict

The recommendation looks at weighted yield only; risk and diversification
deltas are reported but never change it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from yield_rebalancer.exceptions import (
    EmptyPortfolioError,
    MetricsCalculationError,
    MissingDataError,
)
from yield_rebalancer.schemas.portfolio import Portfolio, Position, ensure_utc
from yield_rebalancer.schemas.rebalance_output import SuggestionAction
from yield_rebalancer.schemas.simulation_output import (
    PlanAction,
    PlanApplication,
    PortfolioMetrics,
    RebalancePlan,
    SimulationChanges,
    SimulationRecommendation,
    SimulationResult,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def _require_positions(portfolio: Portfolio) -> float:
    """Return total value, failing on an empty or zero-value portfolio."""
    if portfolio.is_empty:
        raise EmptyPortfolioError(
            f"Portfolio {portfolio.portfolio_id} has no positions; metrics undefined"
        )
    total = portfolio.total_value
    if total <= 0:
        raise MetricsCalculationError(
            f"Portfolio {portfolio.portfolio_id} has zero total value; value shares undefined"
        )
    return total


def compute_value_shares(portfolio: Portfolio) -> List[float]:
    """Each position's share of total value, in position order. Sums to 1."""
    return _shares(portfolio, _require_positions(portfolio))


def _shares(portfolio: Portfolio, total: float) -> List[float]:
    return [p.value_usd / total for p in portfolio.positions]


def compute_metrics(portfolio: Portfolio) -> PortfolioMetrics:
    """
    Derive portfolio metrics from a snapshot.

    - weighted_yield: value-weighted current yield
    - avg_risk_score: unweighted mean of current risk scores (not value-weighted)
    - diversification_score: (1 - Σ share²) × 10; 0 for a single holding

    Raises:
        EmptyPortfolioError: no positions
        MetricsCalculationError: total value is zero
        MissingDataError: a position has neither current nor initial yield
    """
    total = _require_positions(portfolio)
    shares = _shares(portfolio, total)

    weighted_yield = 0.0
    for position, share in zip(portfolio.positions, shares):
        if position.current_yield is None:
            raise MissingDataError(
                f"Position {position.label} has no current or initial yield"
            )
        weighted_yield += position.current_yield * share

    avg_risk = sum(p.current_risk_score for p in portfolio.positions) / len(portfolio.positions)
    herfindahl = sum(s * s for s in shares)
    diversification = min(10.0, max(0.0, (1 - herfindahl) * 10))

    return PortfolioMetrics(
        total_value=total,
        weighted_yield=weighted_yield,
        avg_risk_score=avg_risk,
        diversification_score=diversification,
        position_count=len(portfolio.positions),
    )


# ---------------------------------------------------------------------------
# Plan Application
# ---------------------------------------------------------------------------

def _find_source_index(positions: List[Position], action: PlanAction) -> Optional[int]:
    wanted = (action.source.protocol.lower(), action.source.chain.lower())
    for i, position in enumerate(positions):
        if position.key == wanted:
            return i
    return None


def apply_plan(
    portfolio: Portfolio,
    plan: RebalancePlan,
    as_of: Optional[datetime] = None,
) -> PlanApplication:
    """
    Apply rebalance actions to a deep copy of ``portfolio``.

    Each rebalance action replaces, in place, the first position matching its
    source (protocol, chain) with one in the target pool, keeping the value.
    Actions whose source is not held are skipped and counted. Diversify
    actions carry no reallocation and are ignored.
    """
    projected = portfolio.model_copy(deep=True)
    applied = 0
    skipped = 0
    entry = ensure_utc(as_of)

    for action in plan.actions:
        if action.action != SuggestionAction.REBALANCE:
            continue
        if action.source is None or action.target is None:
            skipped += 1
            logger.warning("[Simulator] Rebalance action without source or target, skipped")
            continue

        idx = _find_source_index(projected.positions, action)
        if idx is None:
            skipped += 1
            logger.warning(
                f"[Simulator] Source {action.source.protocol}/{action.source.chain} "
                f"not held in {portfolio.portfolio_id}, action skipped"
            )
            continue

        old = projected.positions[idx]
        target = action.target
        projected.positions[idx] = Position(
            protocol=target.protocol,
            chain=target.chain,
            symbol=target.symbol or action.source.symbol or old.symbol,
            value_usd=old.value_usd,
            initial_yield=target.yield_rate,
            current_yield=target.yield_rate,
            initial_risk_score=target.risk_score,
            current_risk_score=target.risk_score,
            entry_date=entry or old.entry_date,
        )
        applied += 1

    return PlanApplication(portfolio=projected, applied_actions=applied, skipped_actions=skipped)


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def simulate_plan(
    portfolio: Portfolio,
    plan: RebalancePlan,
    as_of: Optional[datetime] = None,
) -> SimulationResult:
    """
    Compare metrics before and after ``plan``.

    Recommendation is PROCEED only when projected weighted yield is strictly
    higher than current.
    """
    current = compute_metrics(portfolio)
    application = apply_plan(portfolio, plan, as_of=as_of)
    projected = compute_metrics(application.portfolio)

    changes = SimulationChanges(
        apy_change=projected.weighted_yield - current.weighted_yield,
        risk_change=projected.avg_risk_score - current.avg_risk_score,
        diversification_change=projected.diversification_score - current.diversification_score,
    )
    recommendation = (
        SimulationRecommendation.PROCEED
        if projected.weighted_yield > current.weighted_yield
        else SimulationRecommendation.REVIEW_CAREFULLY
    )

    logger.info(
        f"[Simulator] {portfolio.portfolio_id}: {application.applied_actions} applied, "
        f"{application.skipped_actions} skipped, yield {changes.apy_change_display} "
        f"-> {recommendation.value}"
    )

    return SimulationResult(
        portfolio_id=portfolio.portfolio_id,
        current=current,
        projected=projected,
        changes=changes,
        recommendation=recommendation,
        applied_actions=application.applied_actions,
        skipped_actions=application.skipped_actions,
    )
