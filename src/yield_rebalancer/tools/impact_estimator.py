"""
Impact Estimator: annual return before and after the rebalance suggestions.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel

from yield_rebalancer.exceptions import MissingDataError
from yield_rebalancer.schemas.portfolio import Portfolio
from yield_rebalancer.schemas.rebalance_output import ImpactEstimate, RebalanceSuggestion

logger = logging.getLogger(__name__)


def current_annual_return(portfolio: Portfolio) -> float:
    """
    Σ value × initial yield / 100.

    Raises:
        MissingDataError: a position has no initial yield.
    """
    total = 0.0
    for position in portfolio.positions:
        if position.initial_yield is None:
            raise MissingDataError(
                f"Position {position.label} has no initial yield; cannot estimate annual return"
            )
        total += position.value_usd * position.initial_yield / 100
    return total


def estimate_impact(
    portfolio: Portfolio,
    suggestions: Sequence[BaseModel],
) -> ImpactEstimate:
    """
    Each rebalance suggestion swaps its source yield for the target yield on
    the same value; diversify suggestions carry no return change.
    """
    current = current_annual_return(portfolio)
    projected = current
    for s in suggestions:
        if isinstance(s, RebalanceSuggestion):
            projected += s.source.value_usd * (s.target.yield_rate - s.source.current_yield) / 100

    additional = projected - current
    improvement_pct = additional / current * 100 if current else None

    logger.debug(
        f"[Suggestions] Impact: ${current:,.2f} -> ${projected:,.2f} per year"
    )
    return ImpactEstimate(
        current_annual_return=current,
        projected_annual_return=projected,
        additional_return=additional,
        improvement_pct=improvement_pct,
        portfolio_value=portfolio.total_value,
    )
