"""
Risk Scorer: Heuristic Pool Risk Assessment

Scores a pool 1-10 (1 = very low risk) from four weighted factors:
- Reserve (TVL) tier: deeper liquidity is safer
- Yield tier: abnormally high yield is riskier
- Protocol reputation: blue-chip / established / other
- Chain security: Ethereum first, then L2s, then alt-L1s

The weighted score maps onto a qualitative RiskLevel. Any object with an
``assess(pool) -> RiskAssessment`` method can stand in for the heuristic.
"""

from __future__ import annotations

import logging
from typing import Protocol

from yield_rebalancer.config.constants import (
    APY_RISK_CEILING,
    APY_RISK_TIERS,
    BLUE_CHIP_PROTOCOLS,
    CHAIN_RISK_OTHER,
    CHAIN_RISK_TIERS,
    ESTABLISHED_PROTOCOLS,
    PROTOCOL_RISK_BLUE_CHIP,
    PROTOCOL_RISK_ESTABLISHED,
    PROTOCOL_RISK_OTHER,
    RISK_FACTOR_WEIGHTS,
    RISK_LEVEL_CUTOFFS,
    TVL_RISK_FLOOR,
    TVL_RISK_TIERS,
)
from yield_rebalancer.formatting import format_reserve
from yield_rebalancer.schemas.market import (
    MarketPool,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
)

logger = logging.getLogger(__name__)


class RiskScorer(Protocol):
    """Collaborator contract. Implementations raise RiskScoringError on failure."""

    def assess(self, pool: MarketPool) -> RiskAssessment:
        ...


# ---------------------------------------------------------------------------
# Factor Scores
# ---------------------------------------------------------------------------

def score_tvl(reserve_value: float) -> int:
    for floor, score in TVL_RISK_TIERS:
        if reserve_value > floor:
            return score
    return TVL_RISK_FLOOR


def score_apy(yield_rate: float) -> int:
    for ceiling, score in APY_RISK_TIERS:
        if yield_rate < ceiling:
            return score
    return APY_RISK_CEILING


def score_protocol(protocol: str) -> int:
    name = protocol.lower()
    if any(p in name for p in BLUE_CHIP_PROTOCOLS):
        return PROTOCOL_RISK_BLUE_CHIP
    if any(p in name for p in ESTABLISHED_PROTOCOLS):
        return PROTOCOL_RISK_ESTABLISHED
    return PROTOCOL_RISK_OTHER


def score_chain(chain: str) -> int:
    name = chain.lower()
    for fragments, score in CHAIN_RISK_TIERS:
        if any(f in name for f in fragments):
            return score
    return CHAIN_RISK_OTHER


def classify_risk_level(score: float) -> RiskLevel:
    """very-low <= 2.5 < low <= 3.5 < medium <= 5 < high <= 7 < very-high"""
    for cutoff, level in RISK_LEVEL_CUTOFFS:
        if score <= cutoff:
            return RiskLevel(level)
    return RiskLevel.VERY_HIGH


# ---------------------------------------------------------------------------
# Factor Descriptions
# ---------------------------------------------------------------------------

def _describe_tvl(reserve_value: float) -> str:
    if reserve_value > 1_000_000_000:
        return f"Very high TVL ({format_reserve(reserve_value)}) - Strong liquidity"
    return f"Medium TVL ({format_reserve(reserve_value)})"


def _describe_apy(yield_rate: float) -> str:
    if yield_rate < 5:
        return f"Sustainable APY ({yield_rate:.2f}%)"
    if yield_rate < 10:
        return f"Good APY ({yield_rate:.2f}%)"
    if yield_rate < 20:
        return f"High APY ({yield_rate:.2f}%) - verify sustainability"
    return f"Very high APY ({yield_rate:.2f}%) - higher risk"


def _describe_protocol(protocol: str, score: int) -> str:
    if score == PROTOCOL_RISK_BLUE_CHIP:
        return f"Battle-tested protocol ({protocol})"
    return f"Established protocol ({protocol})"


def _describe_chain(chain: str) -> str:
    name = chain.lower()
    if "ethereum" in name:
        return "Ethereum - Most secure"
    if "polygon" in name:
        return "Polygon - L2 solution"
    return f"{chain} network"


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class HeuristicRiskScorer:
    """Default RiskScorer: deterministic, offline, no external calls."""

    def __init__(self, weights: dict[str, float] | None = None):
        self.weights = dict(weights or RISK_FACTOR_WEIGHTS)

    def assess(self, pool: MarketPool) -> RiskAssessment:
        tvl = score_tvl(pool.reserve_value)
        apy = score_apy(pool.yield_rate)
        protocol = score_protocol(pool.protocol)
        chain = score_chain(pool.chain)

        total = round(
            tvl * self.weights["tvl"]
            + apy * self.weights["apy"]
            + protocol * self.weights["protocol"]
            + chain * self.weights["chain"],
            2,
        )
        level = classify_risk_level(total)
        logger.debug(f"[RiskScorer] {pool.protocol}/{pool.chain}: {total:.2f} ({level.value})")

        return RiskAssessment(
            score=total,
            level=level,
            factors={
                "tvl": RiskFactor(score=tvl, description=_describe_tvl(pool.reserve_value)),
                "apy": RiskFactor(score=apy, description=_describe_apy(pool.yield_rate)),
                "protocol": RiskFactor(
                    score=protocol, description=_describe_protocol(pool.protocol, protocol)
                ),
                "chain": RiskFactor(score=chain, description=_describe_chain(pool.chain)),
            },
        )
