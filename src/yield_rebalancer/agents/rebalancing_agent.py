"""
Rebalancing Decision Engine

Deterministic pipeline: triggers -> suggestions -> impact. Every call is a
pure function of (portfolio, pools, config, as_of); nothing is stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from yield_rebalancer.config.settings import RebalanceConfig
from yield_rebalancer.schemas.market import MarketPool
from yield_rebalancer.schemas.portfolio import Portfolio, RiskTolerance, ensure_utc
from yield_rebalancer.schemas.rebalance_output import (
    PortfolioSummary,
    PositionAllocation,
    RebalanceAnalysis,
)
from yield_rebalancer.tools.impact_estimator import estimate_impact
from yield_rebalancer.tools.suggestion_builder import generate_suggestions
from yield_rebalancer.tools.trigger_evaluator import evaluate_triggers

logger = logging.getLogger(__name__)

NO_ACTION_MESSAGE = "Portfolio is well-balanced. No rebalancing needed at this time."


def summarize_portfolio(portfolio: Portfolio) -> PortfolioSummary:
    total = portfolio.total_value
    return PortfolioSummary(
        total_value=total,
        position_count=len(portfolio.positions),
        positions=[
            PositionAllocation(
                protocol=p.protocol,
                chain=p.chain,
                value_usd=p.value_usd,
                allocation_pct=p.value_usd / total * 100 if total > 0 else 0.0,
            )
            for p in portfolio.positions
        ],
    )


def next_check_date(as_of: datetime, config: RebalanceConfig) -> datetime:
    return as_of + timedelta(days=config.time_interval_days)


def run_rebalancing_pipeline(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
    config: Optional[RebalanceConfig] = None,
    risk_tolerance: Optional[RiskTolerance] = None,
    as_of: Optional[datetime] = None,
) -> RebalanceAnalysis:
    """
    Decide whether ``portfolio`` should be rebalanced against ``pools``.

    Args:
        portfolio: Portfolio snapshot with at least one position
        pools: Market pools, risk assessments already attached
        config: Thresholds; defaults when omitted
        risk_tolerance: Overrides the portfolio's stored tolerance
        as_of: Reference time; now (UTC) when omitted

    Returns:
        Validated RebalanceAnalysis

    Raises:
        EmptyPortfolioError: the portfolio has no positions
        MissingDataError: a required position field is absent
    """
    config = config or RebalanceConfig()
    as_of = ensure_utc(as_of) if as_of is not None else datetime.now(timezone.utc)
    logger.info(
        f"[Rebalancer] Analyzing {portfolio.portfolio_id}: "
        f"{len(portfolio.positions)} positions, {len(pools)} pools"
    )

    # Step 1: Evaluate triggers
    evaluation = evaluate_triggers(portfolio, pools, config, as_of=as_of)

    if not evaluation.should_rebalance:
        logger.info(f"[Rebalancer] {portfolio.portfolio_id}: no trigger fired")
        return RebalanceAnalysis(
            portfolio_id=portfolio.portfolio_id,
            should_rebalance=False,
            triggers=[],
            severity=evaluation.severity,
            severity_score=0,
            message=NO_ACTION_MESSAGE,
            next_check_date=next_check_date(as_of, config),
            analysis_date=as_of.date().isoformat(),
        )

    # Step 2: Build suggestions
    suggestions = generate_suggestions(portfolio, pools, config, risk_tolerance)

    # Step 3: Estimate impact
    impact = estimate_impact(portfolio, suggestions)

    # Step 4: Assemble output
    analysis = RebalanceAnalysis(
        portfolio_id=portfolio.portfolio_id,
        should_rebalance=True,
        triggers=evaluation.triggers,
        severity=evaluation.severity,
        severity_score=evaluation.severity_score,
        current_portfolio=summarize_portfolio(portfolio),
        suggestions=suggestions,
        estimated_impact=impact,
        next_check_date=next_check_date(as_of, config),
        analysis_date=as_of.date().isoformat(),
    )

    logger.info(
        f"[Rebalancer] {portfolio.portfolio_id}: severity={analysis.severity.value} "
        f"score={analysis.severity_score}, {len(analysis.suggestions)} suggestion(s)"
    )
    return analysis
