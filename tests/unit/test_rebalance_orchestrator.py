"""
Rebalance Orchestrator: Integration Tests
Tests for risk attachment, persistence, history and simulation across the
default collaborators.
"""

from __future__ import annotations

import json

import pytest

from yield_rebalancer.agents.rebalance_orchestrator import (
    RebalanceOrchestrator,
    attach_risk_assessments,
)
from yield_rebalancer.exceptions import (
    PortfolioNotFoundError,
    ProcessingError,
    RiskScoringError,
)
from yield_rebalancer.schemas.market import MarketPool, RiskAssessment, RiskLevel
from yield_rebalancer.schemas.simulation_output import (
    PlanAction,
    PlanSource,
    PlanTarget,
    RebalancePlan,
    SimulationRecommendation,
)
from yield_rebalancer.tools.market_data import StaticMarketDataProvider
from yield_rebalancer.tools.portfolio_store import InMemoryPortfolioStore
from yield_rebalancer.tools.risk_scorer import HeuristicRiskScorer

from tests.fixtures.conftest import (
    AS_OF,
    SAMPLE_POOL_RECORDS,
    make_portfolio,
    make_position,
    stable_market,
)


class CountingScorer:
    def __init__(self):
        self.calls = []

    def assess(self, pool: MarketPool) -> RiskAssessment:
        self.calls.append(pool.protocol)
        return RiskAssessment(score=3.0, level=RiskLevel.LOW)


class FailingScorer:
    def assess(self, pool: MarketPool) -> RiskAssessment:
        raise RiskScoringError(f"no data for {pool.protocol}")


def _orchestrator(portfolio, market=None, scorer=None):
    return RebalanceOrchestrator(
        store=InMemoryPortfolioStore([portfolio]),
        market_data=market or StaticMarketDataProvider(),
        risk_scorer=scorer or HeuristicRiskScorer(),
    )


# ---------------------------------------------------------------------------
# Risk Attachment
# ---------------------------------------------------------------------------

class TestAttachRiskAssessments:

    @pytest.mark.integration
    def test_scores_each_unassessed_pool_once(self):
        scorer = CountingScorer()
        raw = [MarketPool.model_validate(r) for r in SAMPLE_POOL_RECORDS]
        pools = attach_risk_assessments(raw + stable_market(), scorer)
        assert scorer.calls == ["lido", "rocket-pool", "frax"]
        assert all(p.risk is not None for p in pools)
        assert pools[3].risk.score == 2.0

    @pytest.mark.integration
    def test_input_pools_not_mutated(self):
        raw = [MarketPool.model_validate(r) for r in SAMPLE_POOL_RECORDS]
        attach_risk_assessments(raw, HeuristicRiskScorer())
        assert all(p.risk is None for p in raw)

    @pytest.mark.integration
    def test_scoring_failure_recorded_as_warning(self):
        errors: list[ProcessingError] = []
        raw = [MarketPool.model_validate(SAMPLE_POOL_RECORDS[0])]
        pools = attach_risk_assessments(raw, FailingScorer(), errors)
        assert pools[0].risk is None
        assert len(errors) == 1
        assert errors[0].error_type == "RISK_SCORING_ERROR"
        assert errors[0].error_code == "RiskScoringError"
        assert errors[0].source == "lido-steth"

    @pytest.mark.integration
    def test_error_record_is_json_ready(self):
        errors: list[ProcessingError] = []
        raw = [MarketPool.model_validate(SAMPLE_POOL_RECORDS[0])]
        attach_risk_assessments(raw, FailingScorer(), errors)
        record = errors[0].to_dict()
        assert json.loads(json.dumps(record)) == {
            "source": "lido-steth",
            "error_type": "RISK_SCORING_ERROR",
            "message": "no data for lido",
            "error_code": "RiskScoringError",
            "context": {"protocol": "lido", "chain": "Ethereum"},
        }


# ---------------------------------------------------------------------------
# Check & Persist
# ---------------------------------------------------------------------------

class TestCheckRebalancing:

    @pytest.mark.integration
    def test_rebalance_is_saved(self):
        pf = make_portfolio(make_position("lido", initial_yield=3.5, days_held=40))
        orch = _orchestrator(pf)
        analysis = orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert analysis.should_rebalance is True
        history = orch.get_rebalance_history("pf-1")
        assert history.history_count == 1
        assert history.history[0]["suggestion"]["portfolio_id"] == "pf-1"

    @pytest.mark.integration
    def test_no_rebalance_not_saved(self):
        pf = make_portfolio(make_position(initial_yield=4.0, initial_risk_score=2.0, days_held=10))
        orch = _orchestrator(pf, market=StaticMarketDataProvider(stable_market()))
        analysis = orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert analysis.should_rebalance is False
        assert orch.get_rebalance_history("pf-1").history_count == 0

    @pytest.mark.integration
    def test_scoring_failures_do_not_abort(self):
        pf = make_portfolio(make_position("lido", initial_yield=3.5, days_held=40))
        orch = _orchestrator(pf, scorer=FailingScorer())
        analysis = orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert [t.trigger_type.value for t in analysis.triggers] == ["time_interval"]
        assert len(orch.errors) == 4

    @pytest.mark.integration
    def test_errors_reset_between_calls(self):
        pf = make_portfolio(make_position("lido", initial_yield=3.5, days_held=40))
        orch = _orchestrator(pf, market=StaticMarketDataProvider(SAMPLE_POOL_RECORDS), scorer=FailingScorer())
        orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert len(orch.errors) == 3
        orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert len(orch.errors) == 3

    @pytest.mark.integration
    def test_errors_cleared_after_clean_call(self):
        pf = make_portfolio(make_position("lido", initial_yield=3.5, days_held=40))
        orch = _orchestrator(pf, scorer=FailingScorer())
        orch.check_rebalancing("pf-1", as_of=AS_OF)
        orch.risk_scorer = HeuristicRiskScorer()
        orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert orch.errors == []

    @pytest.mark.integration
    def test_unknown_portfolio(self):
        orch = _orchestrator(make_portfolio(make_position()))
        with pytest.raises(PortfolioNotFoundError):
            orch.check_rebalancing("missing", as_of=AS_OF)

    @pytest.mark.integration
    def test_history_limit(self):
        pf = make_portfolio(make_position("lido", initial_yield=3.5, days_held=40))
        orch = _orchestrator(pf)
        for _ in range(3):
            orch.check_rebalancing("pf-1", as_of=AS_OF)
        assert orch.get_rebalance_history("pf-1", limit=2).history_count == 2


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

class TestSimulateRebalancing:

    @pytest.mark.integration
    def test_simulates_stored_portfolio(self):
        pf = make_portfolio(make_position(
            "OldProtocol", value_usd=5000, initial_yield=5.0, current_yield=3.2,
        ))
        orch = _orchestrator(pf)
        plan = RebalancePlan(actions=[PlanAction(
            source=PlanSource(protocol="OldProtocol", chain="Ethereum"),
            target=PlanTarget(protocol="lido", chain="Ethereum", yield_rate=4.5, risk_score=1.3),
        )])
        result = orch.simulate_rebalancing("pf-1", plan)
        assert result.portfolio_id == "pf-1"
        assert result.changes.apy_change_display == "+1.30%"
        assert result.recommendation == SimulationRecommendation.PROCEED
