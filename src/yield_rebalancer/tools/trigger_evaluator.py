"""
Trigger Evaluator: 4-Signal Rebalancing Framework

Four independent checks inspect a portfolio against the current market
pools. Each fired check contributes points to one severity score:

1. Yield change: matched pool yield drifted from the yield at entry
2. Risk change: matched pool risk score drifted from the score at entry
3. Time interval: days since the last rebalance / first entry
4. Opportunities: unheld pools beating the portfolio's risk-adjusted baseline

evaluate_triggers() aggregates them into a TriggerEvaluation.
No I/O, no shared state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from yield_rebalancer.config.constants import (
    APY_CHANGE_HIGH_THRESHOLD,
    BASELINE_RISK_SCORE,
    MAX_REPORTED_OPPORTUNITIES,
    OPPORTUNITY_HIGH_SCORE,
    OPPORTUNITY_IMPROVEMENT_MIN_PCT,
    OPPORTUNITY_SCORE_NORMALIZER,
    POINTS_HIGH,
    POINTS_MEDIUM,
    POINTS_TIME_INTERVAL,
    RISK_CHANGE_HIGH_THRESHOLD,
    SEVERITY_HIGH_MIN_SCORE,
    SEVERITY_MEDIUM_MIN_SCORE,
)
from yield_rebalancer.config.settings import RebalanceConfig
from yield_rebalancer.exceptions import EmptyPortfolioError, MissingDataError
from yield_rebalancer.schemas.market import MarketPool
from yield_rebalancer.schemas.portfolio import Portfolio, ensure_utc
from yield_rebalancer.schemas.rebalance_output import (
    ChangeDirection,
    Opportunity,
    OpportunityDetails,
    RiskChange,
    RiskChangeDetails,
    Severity,
    TimeIntervalDetails,
    Trigger,
    TriggerEvaluation,
    TriggerType,
    YieldChange,
    YieldChangeDetails,
)
from yield_rebalancer.tools.pool_matching import (
    build_pool_index,
    find_matching_pool,
    held_keys,
)

logger = logging.getLogger(__name__)


def _direction(current: float, initial: float) -> ChangeDirection:
    return ChangeDirection.INCREASED if current > initial else ChangeDirection.DECREASED


def classify_severity(severity_score: int) -> Severity:
    """Map summed trigger points onto the aggregate severity label."""
    if severity_score >= SEVERITY_HIGH_MIN_SCORE:
        return Severity.HIGH
    if severity_score >= SEVERITY_MEDIUM_MIN_SCORE:
        return Severity.MEDIUM
    return Severity.LOW


# ---------------------------------------------------------------------------
# Check 1: Yield Change
# ---------------------------------------------------------------------------

def check_yield_changes(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
    config: RebalanceConfig,
) -> Optional[Trigger]:
    """
    |pool yield - initial yield| / initial yield * 100 per matched position.
    Fires if any position exceeds config.apy_change_percent.

    Raises:
        MissingDataError: a matched position has no initial yield.
    """
    index = build_pool_index(pools)
    changes: List[YieldChange] = []
    max_change = 0.0

    for position in portfolio.positions:
        pool = find_matching_pool(position, index)
        if pool is None:
            continue
        initial = position.initial_yield
        if initial is None:
            raise MissingDataError(
                f"Position {position.label} has no initial yield; cannot measure yield change"
            )
        if initial == 0:
            logger.warning(f"[Triggers] {position.label}: zero initial yield, yield change undefined, skipped")
            continue

        change_pct = abs((pool.yield_rate - initial) / initial * 100)
        if change_pct > config.apy_change_percent:
            changes.append(YieldChange(
                protocol=position.protocol,
                chain=position.chain,
                initial_yield=initial,
                current_yield=pool.yield_rate,
                change_pct=change_pct,
                direction=_direction(pool.yield_rate, initial),
            ))
            max_change = max(max_change, change_pct)

    if not changes:
        return None

    high = max_change > APY_CHANGE_HIGH_THRESHOLD
    return Trigger(
        trigger_type=TriggerType.APY_CHANGE,
        severity=Severity.HIGH if high else Severity.MEDIUM,
        points=POINTS_HIGH if high else POINTS_MEDIUM,
        details=YieldChangeDetails(
            changes=changes,
            max_change=max_change,
            threshold_pct=config.apy_change_percent,
        ),
    )


# ---------------------------------------------------------------------------
# Check 2: Risk Change
# ---------------------------------------------------------------------------

def check_risk_changes(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
    config: RebalanceConfig,
) -> Optional[Trigger]:
    """
    |pool risk score - initial risk score| per matched, assessed position.
    Fires if any drift exceeds config.risk_score_change.
    """
    index = build_pool_index(pools)
    changes: List[RiskChange] = []
    max_change = 0.0

    for position in portfolio.positions:
        pool = find_matching_pool(position, index)
        if pool is None or pool.risk is None:
            continue
        initial = position.initial_risk_score
        current = pool.risk.score
        change = abs(current - initial)
        if change > config.risk_score_change:
            changes.append(RiskChange(
                protocol=position.protocol,
                chain=position.chain,
                initial_risk=initial,
                current_risk=current,
                change_amount=change,
                direction=_direction(current, initial),
            ))
            max_change = max(max_change, change)

    if not changes:
        return None

    high = max_change > RISK_CHANGE_HIGH_THRESHOLD
    return Trigger(
        trigger_type=TriggerType.RISK_CHANGE,
        severity=Severity.HIGH if high else Severity.MEDIUM,
        points=POINTS_HIGH if high else POINTS_MEDIUM,
        details=RiskChangeDetails(
            changes=changes,
            max_change=max_change,
            threshold=config.risk_score_change,
        ),
    )


# ---------------------------------------------------------------------------
# Check 3: Time Interval
# ---------------------------------------------------------------------------

def last_action_date(portfolio: Portfolio) -> datetime:
    """
    The later of the last rebalance and the earliest position entry.

    Without a last rebalance every position must carry an entry date.

    Raises:
        MissingDataError: no usable timestamp.
    """
    candidates: List[datetime] = []
    if portfolio.last_rebalance_date is not None:
        candidates.append(portfolio.last_rebalance_date)

    entry_dates = [p.entry_date for p in portfolio.positions if p.entry_date is not None]
    if len(entry_dates) == len(portfolio.positions) and entry_dates:
        candidates.append(min(entry_dates))
    elif portfolio.last_rebalance_date is None:
        missing = [p.label for p in portfolio.positions if p.entry_date is None]
        raise MissingDataError(
            f"Portfolio {portfolio.portfolio_id} has no last rebalance date and "
            f"positions without entry date: {', '.join(missing)}"
        )

    return max(candidates)


def check_time_interval(
    portfolio: Portfolio,
    config: RebalanceConfig,
    as_of: datetime,
) -> Optional[Trigger]:
    """Fires once whole days since the last action reach config.time_interval_days."""
    anchor = last_action_date(portfolio)
    days = (as_of - anchor).days

    if days < config.time_interval_days:
        return None

    return Trigger(
        trigger_type=TriggerType.TIME_INTERVAL,
        severity=Severity.LOW,
        points=POINTS_TIME_INTERVAL,
        details=TimeIntervalDetails(
            days_since_last_action=days,
            last_action_date=anchor,
            threshold_days=config.time_interval_days,
        ),
    )


# ---------------------------------------------------------------------------
# Check 4: Better Opportunities
# ---------------------------------------------------------------------------

def portfolio_baseline(portfolio: Portfolio, pools: Sequence[MarketPool]) -> float:
    """
    Unweighted mean current yield (matched pool yield, else initial yield)
    divided by the assumed baseline risk score.

    Raises:
        MissingDataError: an unmatched position has no initial yield.
    """
    index = build_pool_index(pools)
    total = 0.0
    for position in portfolio.positions:
        pool = find_matching_pool(position, index)
        if pool is not None:
            total += pool.yield_rate
        elif position.initial_yield is not None:
            total += position.initial_yield
        else:
            raise MissingDataError(
                f"Position {position.label} has no market match and no initial yield"
            )
    avg_yield = total / len(portfolio.positions)
    return avg_yield / BASELINE_RISK_SCORE


def check_better_opportunities(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
) -> Optional[Trigger]:
    """
    Unheld, assessed pools whose yield/risk beats the baseline by > 30%.
    Each adds improvement_pct / 30 to the opportunity score; the top 3 by
    improvement are reported.
    """
    baseline = portfolio_baseline(portfolio, pools)
    if baseline <= 0:
        logger.warning("[Triggers] Portfolio baseline yield is zero, opportunity check skipped")
        return None

    held = held_keys(portfolio)
    found: List[Opportunity] = []
    score = 0.0

    for pool in pools:
        if pool.key in held or pool.risk is None:
            continue
        improvement = (pool.risk_adjusted_return - baseline) / baseline * 100
        if improvement > OPPORTUNITY_IMPROVEMENT_MIN_PCT:
            found.append(Opportunity(
                protocol=pool.protocol,
                chain=pool.chain,
                yield_rate=pool.yield_rate,
                risk_level=pool.risk.level,
                risk_score=pool.risk.score,
                improvement_pct=improvement,
            ))
            score += improvement / OPPORTUNITY_SCORE_NORMALIZER

    if not found:
        return None

    top = sorted(found, key=lambda o: o.improvement_pct, reverse=True)[:MAX_REPORTED_OPPORTUNITIES]
    high = score > OPPORTUNITY_HIGH_SCORE
    return Trigger(
        trigger_type=TriggerType.BETTER_OPPORTUNITIES,
        severity=Severity.HIGH if high else Severity.MEDIUM,
        points=POINTS_HIGH if high else POINTS_MEDIUM,
        details=OpportunityDetails(
            opportunities=top,
            opportunity_count=len(found),
            score=score,
            baseline_risk_adjusted_return=baseline,
        ),
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def evaluate_triggers(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
    config: Optional[RebalanceConfig] = None,
    as_of: Optional[datetime] = None,
) -> TriggerEvaluation:
    """
    Run all 4 checks and combine them into one severity judgment.

    Args:
        portfolio: Portfolio snapshot (not modified)
        pools: Market pools, risk assessments already attached
        config: Thresholds; defaults when omitted
        as_of: Reference time for the interval check; now (UTC) when omitted

    Returns:
        TriggerEvaluation with triggers in check order

    Raises:
        EmptyPortfolioError: the portfolio has no positions
        MissingDataError: a check needs a field the portfolio lacks
    """
    if portfolio.is_empty:
        raise EmptyPortfolioError(f"Portfolio {portfolio.portfolio_id} has no positions")

    config = config or RebalanceConfig()
    as_of = ensure_utc(as_of) if as_of is not None else datetime.now(timezone.utc)

    checks = [
        check_yield_changes(portfolio, pools, config),
        check_risk_changes(portfolio, pools, config),
        check_time_interval(portfolio, config, as_of),
        check_better_opportunities(portfolio, pools),
    ]
    triggers = [t for t in checks if t is not None]
    severity_score = sum(t.points for t in triggers)

    logger.info(
        f"[Triggers] {portfolio.portfolio_id}: {len(triggers)}/4 fired "
        f"({', '.join(t.trigger_type.value for t in triggers) or 'none'}), score={severity_score}"
    )

    return TriggerEvaluation(
        should_rebalance=bool(triggers),
        triggers=triggers,
        severity=classify_severity(severity_score),
        severity_score=severity_score,
    )
