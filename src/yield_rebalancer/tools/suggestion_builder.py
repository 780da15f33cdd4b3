"""
Suggestion Builder: Underperformers, Pairing, Priority, Diversification

Pure functions for:
- Flagging held positions whose pool yield trails the market average
- Pairing each underperformer with a risk-compatible ranked alternative
- Assigning HIGH / MEDIUM / LOW priority from value and yield delta
- Structural diversification checks (concentration, single protocol)

No I/O. Suggestions come back sorted by priority, stable on ties.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from pydantic import BaseModel

from yield_rebalancer.config.constants import (
    CONCENTRATION_LIMIT_PCT,
    PRIORITY_HIGH_ANY_DELTA,
    PRIORITY_HIGH_LARGE_DELTA,
    PRIORITY_HIGH_LARGE_VALUE,
    PRIORITY_HIGH_MID_DELTA,
    PRIORITY_HIGH_MID_VALUE,
    PRIORITY_MEDIUM_ANY_DELTA,
    PRIORITY_MEDIUM_VALUE,
    PRIORITY_MEDIUM_VALUE_DELTA,
    SUGGESTED_SPLIT,
    UNDERPERFORMER_RATIO,
)
from yield_rebalancer.config.settings import RebalanceConfig
from yield_rebalancer.schemas.market import MarketPool, RiskLevel
from yield_rebalancer.schemas.portfolio import Portfolio, Position, RiskTolerance
from yield_rebalancer.schemas.rebalance_output import (
    DiversifySuggestion,
    Priority,
    RebalanceSuggestion,
    SuggestionSource,
    SuggestionTarget,
)
from yield_rebalancer.tools.alternative_ranker import find_better_alternatives
from yield_rebalancer.tools.pool_matching import build_pool_index, find_matching_pool

logger = logging.getLogger(__name__)


class Underperformer(BaseModel):
    """A held position whose matched pool yields under 70% of the market average."""

    position: Position
    pool: MarketPool
    current_yield: float
    market_avg: float
    reason: str


# ---------------------------------------------------------------------------
# Step 1: Underperformers
# ---------------------------------------------------------------------------

def market_average_yield(pools: Sequence[MarketPool]) -> Optional[float]:
    """Unweighted mean yield of every supplied pool, None for an empty market."""
    if not pools:
        return None
    return sum(p.yield_rate for p in pools) / len(pools)


def identify_underperformers(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
) -> List[Underperformer]:
    market_avg = market_average_yield(pools)
    if not market_avg:
        return []

    index = build_pool_index(pools)
    flagged: List[Underperformer] = []
    for position in portfolio.positions:
        pool = find_matching_pool(position, index)
        if pool is None:
            continue
        if pool.yield_rate < market_avg * UNDERPERFORMER_RATIO:
            gap_pct = (1 - pool.yield_rate / market_avg) * 100
            flagged.append(Underperformer(
                position=position,
                pool=pool,
                current_yield=pool.yield_rate,
                market_avg=market_avg,
                reason=f"APY {pool.yield_rate:.2f}% is {gap_pct:.0f}% below market average",
            ))

    logger.debug(f"[Suggestions] {len(flagged)} underperformer(s), market avg {market_avg:.2f}%")
    return flagged


# ---------------------------------------------------------------------------
# Step 4: Priority
# ---------------------------------------------------------------------------

def calculate_priority(value_usd: float, yield_delta: float) -> Priority:
    """
    Priority of moving ``value_usd`` for a ``yield_delta`` percentage-point gain.

    Monotonic in both arguments.
    """
    if (
        (value_usd > PRIORITY_HIGH_LARGE_VALUE and yield_delta > PRIORITY_HIGH_LARGE_DELTA)
        or (value_usd > PRIORITY_HIGH_MID_VALUE and yield_delta > PRIORITY_HIGH_MID_DELTA)
        or yield_delta > PRIORITY_HIGH_ANY_DELTA
    ):
        return Priority.HIGH
    if (
        (value_usd > PRIORITY_MEDIUM_VALUE and yield_delta > PRIORITY_MEDIUM_VALUE_DELTA)
        or yield_delta > PRIORITY_MEDIUM_ANY_DELTA
    ):
        return Priority.MEDIUM
    return Priority.LOW


# ---------------------------------------------------------------------------
# Step 5: Diversification
# ---------------------------------------------------------------------------

def check_diversification(portfolio: Portfolio) -> Optional[DiversifySuggestion]:
    """
    Structural check, independent of market data.

    1. Largest position > 60% of total value -> split 40-30-30
    2. Otherwise, several positions all in one protocol -> spread across protocols
    """
    if portfolio.is_empty:
        return None

    total = portfolio.total_value
    if total > 0:
        concentration = max(p.value_usd for p in portfolio.positions) / total * 100
        if concentration > CONCENTRATION_LIMIT_PCT:
            return DiversifySuggestion(
                priority=Priority.MEDIUM,
                reason=f"Portfolio too concentrated: {concentration:.0f}% in single position",
                recommendation="Consider splitting into 2-3 positions for better risk management",
                suggested_allocation=SUGGESTED_SPLIT,
                concentration_pct=concentration,
            )

    protocols = {p.protocol.lower() for p in portfolio.positions}
    if len(protocols) == 1 and len(portfolio.positions) > 1:
        return DiversifySuggestion(
            priority=Priority.MEDIUM,
            reason="All positions in same protocol",
            recommendation="Diversify across multiple protocols to reduce protocol risk",
        )
    return None


# ---------------------------------------------------------------------------
# Steps 2-3: Pairing & Assembly
# ---------------------------------------------------------------------------

def _pair_alternative(
    underperformer: Underperformer,
    alternatives: Sequence[MarketPool],
) -> Optional[MarketPool]:
    """First ranked alternative at the underperformer's risk level, never its own pool."""
    wanted = underperformer.pool.risk.level if underperformer.pool.risk else RiskLevel.MEDIUM
    for alt in alternatives:
        if alt.key == underperformer.pool.key:
            continue
        if alt.risk.level == wanted:
            return alt
    return None


def _build_rebalance(underperformer: Underperformer, target: MarketPool) -> RebalanceSuggestion:
    position = underperformer.position
    yield_delta = target.yield_rate - underperformer.current_yield
    return RebalanceSuggestion(
        priority=calculate_priority(position.value_usd, yield_delta),
        source=SuggestionSource(
            protocol=position.protocol,
            chain=position.chain,
            symbol=position.symbol,
            current_yield=underperformer.current_yield,
            risk_level=underperformer.pool.risk.level if underperformer.pool.risk else None,
            value_usd=position.value_usd,
        ),
        target=SuggestionTarget(
            protocol=target.protocol,
            chain=target.chain,
            symbol=target.symbol,
            yield_rate=target.yield_rate,
            risk_level=target.risk.level,
            risk_score=target.risk.score,
            reserve_value=target.reserve_value,
        ),
        yield_delta=yield_delta,
        annualized_gain=position.value_usd * yield_delta / 100,
        reason=underperformer.reason,
    )


def generate_suggestions(
    portfolio: Portfolio,
    pools: Sequence[MarketPool],
    config: Optional[RebalanceConfig] = None,
    risk_tolerance: Optional[RiskTolerance] = None,
) -> List[Union[RebalanceSuggestion, DiversifySuggestion]]:
    """
    Build rebalance and diversify suggestions for a portfolio.

    Underperformers without a risk-compatible alternative are skipped, as are
    positions smaller than config.min_rebalance_amount.

    Returns:
        Suggestions sorted HIGH > MEDIUM > LOW, encounter order on ties.
    """
    config = config or RebalanceConfig()
    underperformers = identify_underperformers(portfolio, pools)
    alternatives = find_better_alternatives(portfolio, pools, risk_tolerance)

    suggestions: List[Union[RebalanceSuggestion, DiversifySuggestion]] = []
    for underperformer in underperformers:
        label = underperformer.position.label
        if underperformer.position.value_usd < config.min_rebalance_amount:
            logger.info(
                f"[Suggestions] {label}: value ${underperformer.position.value_usd:,.2f} "
                f"below minimum ${config.min_rebalance_amount:,.2f}, not suggested"
            )
            continue
        target = _pair_alternative(underperformer, alternatives)
        if target is None:
            logger.info(f"[Suggestions] {label}: no risk-compatible alternative")
            continue
        suggestions.append(_build_rebalance(underperformer, target))

    diversify = check_diversification(portfolio)
    if diversify is not None:
        suggestions.append(diversify)

    suggestions.sort(key=lambda s: s.priority.rank, reverse=True)

    logger.info(
        f"[Suggestions] {portfolio.portfolio_id}: {len(suggestions)} suggestion(s) "
        f"from {len(underperformers)} underperformer(s)"
    )
    return suggestions
