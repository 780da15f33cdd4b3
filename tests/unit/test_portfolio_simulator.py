"""
Portfolio Simulator: Unit Tests
Tests for compute_metrics(), compute_value_shares(), apply_plan() and
simulate_plan().
"""

from __future__ import annotations

import pytest

from yield_rebalancer.exceptions import (
    CalculationError,
    EmptyPortfolioError,
    MetricsCalculationError,
)
from yield_rebalancer.schemas.portfolio import Portfolio
from yield_rebalancer.schemas.rebalance_output import SuggestionAction
from yield_rebalancer.schemas.simulation_output import (
    PlanAction,
    PlanSource,
    PlanTarget,
    RebalancePlan,
    SimulationRecommendation,
)
from yield_rebalancer.tools import portfolio_simulator
from yield_rebalancer.tools.portfolio_simulator import (
    apply_plan,
    compute_metrics,
    compute_value_shares,
    simulate_plan,
)

from tests.fixtures.conftest import AS_OF, make_portfolio, make_position


def _move(src: str, dst: str, yield_rate: float, risk_score: float = 2.0,
          src_chain: str = "Ethereum", symbol=None) -> PlanAction:
    return PlanAction(
        source=PlanSource(protocol=src, chain=src_chain),
        target=PlanTarget(protocol=dst, chain="Ethereum", symbol=symbol,
                          yield_rate=yield_rate, risk_score=risk_score),
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class TestComputeMetrics:

    @pytest.mark.behavior
    def test_weighted_yield_and_unweighted_risk(self):
        pf = make_portfolio(
            make_position("a", value_usd=7500, initial_yield=4.0, initial_risk_score=2.0),
            make_position("b", value_usd=2500, initial_yield=8.0, initial_risk_score=6.0),
        )
        metrics = compute_metrics(pf)
        assert metrics.total_value == 10_000
        assert metrics.weighted_yield == pytest.approx(5.0)
        assert metrics.avg_risk_score == pytest.approx(4.0)
        assert metrics.position_count == 2
        assert metrics.total_value_display == "$10,000.00"

    @pytest.mark.behavior
    def test_current_yield_preferred_over_initial(self):
        pf = make_portfolio(make_position(initial_yield=4.0, current_yield=3.0))
        assert compute_metrics(pf).weighted_yield == pytest.approx(3.0)

    @pytest.mark.behavior
    def test_single_holding_scores_zero(self):
        assert compute_metrics(make_portfolio(make_position())).diversification_score == 0

    @pytest.mark.behavior
    def test_even_split_diversification(self):
        pf = make_portfolio(*[make_position(f"p{i}", value_usd=100) for i in range(4)])
        assert compute_metrics(pf).diversification_score == pytest.approx(7.5)

    @pytest.mark.behavior
    def test_diversification_falls_as_concentration_rises(self):
        scores = []
        for top in (5000, 6000, 7000, 8000, 9000, 9900):
            pf = make_portfolio(
                make_position("a", value_usd=top),
                make_position("b", value_usd=10_000 - top),
            )
            score = compute_metrics(pf).diversification_score
            assert 0.0 <= score <= 10.0
            scores.append(score)
        assert all(x > y for x, y in zip(scores, scores[1:]))

    @pytest.mark.behavior
    def test_shares_sum_to_one(self):
        pf = make_portfolio(*[
            make_position(f"p{i}", value_usd=v) for i, v in enumerate([1.1, 333.3, 12_345.67, 0.01])
        ])
        assert sum(compute_value_shares(pf)) == pytest.approx(1.0)

    @pytest.mark.behavior
    def test_empty_portfolio_fails(self):
        with pytest.raises(EmptyPortfolioError):
            compute_metrics(Portfolio(portfolio_id="empty"))

    @pytest.mark.behavior
    def test_zero_value_fails(self):
        pf = make_portfolio(make_position(value_usd=0))
        with pytest.raises(MetricsCalculationError) as exc_info:
            compute_metrics(pf)
        assert isinstance(exc_info.value, CalculationError)

    @pytest.mark.behavior
    def test_total_validated_once(self, monkeypatch):
        calls = []
        real = portfolio_simulator._require_positions

        def counting(portfolio):
            calls.append(portfolio.portfolio_id)
            return real(portfolio)

        monkeypatch.setattr(portfolio_simulator, "_require_positions", counting)
        pf = make_portfolio(make_position("lido", value_usd=7000), make_position("frax", value_usd=3000))
        metrics = compute_metrics(pf)
        assert calls == ["pf-1"]
        assert metrics.diversification_score == pytest.approx(4.2)


# ---------------------------------------------------------------------------
# Plan Application
# ---------------------------------------------------------------------------

class TestApplyPlan:

    @pytest.mark.behavior
    def test_replaces_in_place_preserving_value(self):
        pf = make_portfolio(
            make_position("slowpool", value_usd=6000, initial_yield=2.0, symbol="slETH"),
            make_position("frax", value_usd=4000),
        )
        result = apply_plan(pf, RebalancePlan(actions=[_move("SlowPool", "lido", 4.5)]))
        new = result.portfolio.positions[0]
        assert new.protocol == "lido"
        assert new.value_usd == 6000
        assert new.current_yield == 4.5
        assert new.current_risk_score == 2.0
        assert new.symbol == "slETH"
        assert result.portfolio.positions[1].protocol == "frax"
        assert result.applied_actions == 1

    @pytest.mark.behavior
    def test_input_portfolio_untouched(self):
        pf = make_portfolio(make_position("slowpool", initial_yield=2.0))
        apply_plan(pf, RebalancePlan(actions=[_move("slowpool", "lido", 4.5)]))
        assert pf.positions[0].protocol == "slowpool"

    @pytest.mark.behavior
    def test_target_symbol_wins(self):
        pf = make_portfolio(make_position("slowpool", symbol="slETH"))
        result = apply_plan(pf, RebalancePlan(actions=[_move("slowpool", "lido", 4.5, symbol="stETH")]))
        assert result.portfolio.positions[0].symbol == "stETH"

    @pytest.mark.behavior
    def test_default_target_risk(self):
        pf = make_portfolio(make_position("slowpool"))
        action = PlanAction(
            source=PlanSource(protocol="slowpool", chain="Ethereum"),
            target=PlanTarget(protocol="lido", chain="Ethereum", yield_rate=4.5),
        )
        result = apply_plan(pf, RebalancePlan(actions=[action]))
        assert result.portfolio.positions[0].current_risk_score == 5.0

    @pytest.mark.behavior
    def test_entry_date_set_to_as_of(self):
        pf = make_portfolio(make_position("slowpool", days_held=90))
        result = apply_plan(pf, RebalancePlan(actions=[_move("slowpool", "lido", 4.5)]), as_of=AS_OF)
        assert result.portfolio.positions[0].entry_date == AS_OF

    @pytest.mark.behavior
    def test_unmatched_action_skipped_and_counted(self):
        pf = make_portfolio(make_position("slowpool"))
        plan = RebalancePlan(actions=[
            _move("ghost", "lido", 4.5),
            _move("slowpool", "lido", 4.5, src_chain="Polygon"),
        ])
        result = apply_plan(pf, plan)
        assert result.skipped_actions == 2
        assert result.applied_actions == 0
        assert result.portfolio == pf

    @pytest.mark.behavior
    def test_diversify_actions_ignored(self):
        pf = make_portfolio(make_position("slowpool"))
        plan = RebalancePlan(actions=[PlanAction(action=SuggestionAction.DIVERSIFY)])
        result = apply_plan(pf, plan)
        assert result.applied_actions == 0
        assert result.skipped_actions == 0

    @pytest.mark.behavior
    def test_only_first_match_replaced(self):
        pf = make_portfolio(
            make_position("slowpool", value_usd=100),
            make_position("slowpool", value_usd=200),
        )
        result = apply_plan(pf, RebalancePlan(actions=[_move("slowpool", "lido", 4.5)]))
        assert [p.protocol for p in result.portfolio.positions] == ["lido", "slowpool"]

    @pytest.mark.behavior
    def test_deterministic(self):
        pf = make_portfolio(
            make_position("slowpool", value_usd=6000, initial_yield=2.0),
            make_position("frax", value_usd=4000, initial_yield=4.2),
        )
        plan = RebalancePlan(actions=[_move("slowpool", "lido", 4.5)])
        first = compute_metrics(apply_plan(pf, plan, as_of=AS_OF).portfolio)
        second = compute_metrics(apply_plan(pf, plan, as_of=AS_OF).portfolio)
        assert first == second


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

class TestSimulatePlan:

    @pytest.mark.behavior
    def test_sole_position_upgrade_proceeds(self):
        pf = make_portfolio(make_position(
            "OldProtocol", value_usd=5000, initial_yield=5.0, current_yield=3.2,
            initial_risk_score=5.0,
        ))
        result = simulate_plan(pf, RebalancePlan(actions=[_move("OldProtocol", "Lido", 4.5)]))
        assert result.current.weighted_yield == pytest.approx(3.2)
        assert result.projected.weighted_yield == pytest.approx(4.5)
        assert result.changes.apy_change_display == "+1.30%"
        assert result.changes.risk_change == pytest.approx(-3.0)
        assert result.recommendation == SimulationRecommendation.PROCEED
        assert result.recommendation.value == "Proceed"

    @pytest.mark.behavior
    def test_lower_yield_needs_review(self):
        pf = make_portfolio(make_position("lido", initial_yield=4.0))
        result = simulate_plan(pf, RebalancePlan(actions=[_move("lido", "frax", 3.0, risk_score=1.0)]))
        assert result.recommendation == SimulationRecommendation.REVIEW_CAREFULLY

    @pytest.mark.behavior
    def test_empty_plan_needs_review(self):
        pf = make_portfolio(make_position("lido", initial_yield=4.0))
        result = simulate_plan(pf, RebalancePlan())
        assert result.changes.apy_change == 0
        assert result.recommendation == SimulationRecommendation.REVIEW_CAREFULLY

    @pytest.mark.behavior
    def test_skipped_actions_reported(self):
        pf = make_portfolio(make_position("lido", initial_yield=4.0))
        result = simulate_plan(pf, RebalancePlan(actions=[_move("ghost", "frax", 9.0)]))
        assert result.skipped_actions == 1
