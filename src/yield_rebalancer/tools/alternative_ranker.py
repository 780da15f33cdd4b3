"""
Alternative Ranker: risk-filtered candidate pools.

Filters the market by the effective risk tolerance, then orders the
survivors by risk-adjusted return (yield / risk score), best first.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Sequence

from yield_rebalancer.config.constants import MAX_ALTERNATIVES
from yield_rebalancer.schemas.market import MarketPool, RiskLevel
from yield_rebalancer.schemas.portfolio import Portfolio, RiskTolerance

logger = logging.getLogger(__name__)


# Fixed policy: risk tolerance -> admitted qualitative levels.
RISK_TOLERANCE_POLICY: Dict[RiskTolerance, FrozenSet[RiskLevel]] = {
    RiskTolerance.LOW: frozenset({RiskLevel.VERY_LOW, RiskLevel.LOW}),
    RiskTolerance.MEDIUM: frozenset({RiskLevel.LOW, RiskLevel.MEDIUM}),
    RiskTolerance.HIGH: frozenset(RiskLevel),
}


def resolve_risk_tolerance(
    portfolio: Portfolio,
    override: Optional[RiskTolerance] = None,
) -> RiskTolerance:
    """Explicit override, else the portfolio's stored tolerance, else MEDIUM."""
    if override is not None:
        return RiskTolerance(override)
    if portfolio.target_risk_tolerance is not None:
        return portfolio.target_risk_tolerance
    return RiskTolerance.MEDIUM


def find_better_alternatives(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
    risk_tolerance: Optional[RiskTolerance] = None,
    limit: int = MAX_ALTERNATIVES,
) -> List[MarketPool]:
    """
    Rank market pools admissible under the effective risk tolerance.

    Unassessed pools are excluded unconditionally. Ties in risk-adjusted
    return keep market order.

    Returns:
        Up to ``limit`` pools, descending by yield / risk score.
    """
    tolerance = resolve_risk_tolerance(portfolio, risk_tolerance)
    admitted = RISK_TOLERANCE_POLICY[tolerance]

    candidates = [
        pool for pool in pools
        if pool.risk is not None and pool.risk.level in admitted
    ]
    ranked = sorted(candidates, key=lambda p: p.risk_adjusted_return, reverse=True)[:limit]

    logger.debug(
        f"[Suggestions] {len(candidates)}/{len(pools)} pools admitted under "
        f"{tolerance.value} tolerance, {len(ranked)} ranked"
    )
    return ranked
