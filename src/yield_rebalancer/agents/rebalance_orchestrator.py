"""
Rebalance Orchestrator

Wires the collaborators around the decision engine:
load portfolio -> list pools -> attach risk -> analyze -> persist.
Risk scoring failures are collected as ProcessingError records instead of
aborting the analysis and are kept for the most recent call only;
every other error propagates to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from yield_rebalancer.agents.rebalancing_agent import run_rebalancing_pipeline
from yield_rebalancer.config.settings import RebalanceConfig
from yield_rebalancer.exceptions import ProcessingError, RiskScoringError
from yield_rebalancer.schemas.market import MarketPool
from yield_rebalancer.schemas.portfolio import RiskTolerance
from yield_rebalancer.schemas.rebalance_output import RebalanceAnalysis, RebalanceHistory
from yield_rebalancer.schemas.simulation_output import RebalancePlan, SimulationResult
from yield_rebalancer.tools.market_data import MarketDataProvider
from yield_rebalancer.tools.portfolio_simulator import simulate_plan
from yield_rebalancer.tools.portfolio_store import DEFAULT_HISTORY_LIMIT, PortfolioStore
from yield_rebalancer.tools.risk_scorer import RiskScorer

logger = logging.getLogger(__name__)


def attach_risk_assessments(
    pools: Sequence[MarketPool],
    scorer: RiskScorer,
    errors: Optional[List[ProcessingError]] = None,
) -> List[MarketPool]:
    """
    Return pools with a risk assessment attached.

    Already-assessed pools pass through untouched and each unassessed pool is
    scored exactly once. A RiskScoringError leaves that pool unassessed and,
    when ``errors`` is given, is appended to it.
    """
    assessed: List[MarketPool] = []
    for pool in pools:
        if pool.risk is not None:
            assessed.append(pool)
            continue
        try:
            risk = scorer.assess(pool)
        except RiskScoringError as e:
            logger.warning(f"[Orchestrator] Risk scoring failed for {pool.protocol}/{pool.chain}: {e}")
            if errors is not None:
                errors.append(ProcessingError.from_exception(
                    source=pool.pool_id or f"{pool.protocol}/{pool.chain}",
                    error_type="RISK_SCORING_ERROR",
                    exception=e,
                    context={"protocol": pool.protocol, "chain": pool.chain},
                ))
            assessed.append(pool)
            continue
        assessed.append(pool.model_copy(update={"risk": risk}))
    return assessed


class RebalanceOrchestrator:
    """Runs rebalancing analyses for stored portfolios."""

    def __init__(
        self,
        store: PortfolioStore,
        market_data: MarketDataProvider,
        risk_scorer: RiskScorer,
        config: Optional[RebalanceConfig] = None,
    ):
        self.store = store
        self.market_data = market_data
        self.risk_scorer = risk_scorer
        self.config = config or RebalanceConfig()
        # risk scoring failures from the most recent check_rebalancing call
        self.errors: List[ProcessingError] = []

    def check_rebalancing(
        self,
        portfolio_id: str,
        risk_tolerance: Optional[RiskTolerance] = None,
        as_of: Optional[datetime] = None,
    ) -> RebalanceAnalysis:
        """Analyze one stored portfolio; the result is saved only when rebalancing is advised."""
        logger.info(f"[Orchestrator] Checking rebalancing for {portfolio_id}")

        errors: List[ProcessingError] = []
        self.errors = errors

        portfolio = self.store.get(portfolio_id)
        pools = attach_risk_assessments(
            self.market_data.list_pools(), self.risk_scorer, errors
        )
        if errors:
            logger.warning(f"[Orchestrator] {len(errors)} pool(s) left unassessed for {portfolio_id}")
        analysis = run_rebalancing_pipeline(
            portfolio, pools, self.config, risk_tolerance=risk_tolerance, as_of=as_of
        )

        if analysis.should_rebalance:
            self.store.save_suggestion(portfolio_id, analysis)
            logger.info(f"[Orchestrator] Saved rebalance suggestion for {portfolio_id}")
        return analysis

    def get_rebalance_history(
        self,
        portfolio_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> RebalanceHistory:
        records = self.store.get_history(portfolio_id, limit)
        return RebalanceHistory(
            portfolio_id=portfolio_id,
            history_count=len(records),
            history=records,
        )

    def simulate_rebalancing(
        self,
        portfolio_id: str,
        plan: RebalancePlan,
        as_of: Optional[datetime] = None,
    ) -> SimulationResult:
        portfolio = self.store.get(portfolio_id)
        return simulate_plan(portfolio, plan, as_of=as_of)
