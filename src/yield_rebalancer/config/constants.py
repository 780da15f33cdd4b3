"""
Centralized constants for the Yield Rebalancer.

This module defines the fixed policy numbers used by the decision engine.
User-tunable thresholds live in ``config.settings.RebalanceConfig``; the
values here are part of the engine's policy and are not configurable.
"""

# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================

DEFAULT_APY_CHANGE_PERCENT = 15.0
"""Yield change (percent of initial yield) that fires the apy_change trigger"""

DEFAULT_RISK_SCORE_CHANGE = 1.5
"""Absolute risk-score drift that fires the risk_change trigger"""

DEFAULT_TIME_INTERVAL_DAYS = 30
"""Days since the last rebalance (or first entry) that fire time_interval"""

DEFAULT_MIN_REBALANCE_AMOUNT = 100.0
"""Positions worth less than this (USD) never receive a rebalance suggestion"""

DEFAULT_SIGNIFICANT_ALLOCATION_CHANGE = 10.0
"""Reserved: allocation shift (percent) considered significant"""

# ============================================================================
# TRIGGER SCORING
# ============================================================================

APY_CHANGE_HIGH_THRESHOLD = 25.0
"""Max yield change above which the apy_change trigger counts as HIGH"""

RISK_CHANGE_HIGH_THRESHOLD = 2.0
"""Max risk drift above which the risk_change trigger counts as HIGH"""

OPPORTUNITY_HIGH_SCORE = 2.0
"""Opportunity score above which better_opportunities counts as HIGH"""

POINTS_HIGH = 3
POINTS_MEDIUM = 2
POINTS_TIME_INTERVAL = 1

SEVERITY_HIGH_MIN_SCORE = 6
"""Summed trigger points for an overall HIGH severity"""

SEVERITY_MEDIUM_MIN_SCORE = 3
"""Summed trigger points for an overall MEDIUM severity"""

# ============================================================================
# OPPORTUNITY DETECTION
# ============================================================================

BASELINE_RISK_SCORE = 5.0
"""Assumed portfolio risk when computing the risk-adjusted baseline"""

OPPORTUNITY_IMPROVEMENT_MIN_PCT = 30.0
"""Risk-adjusted improvement (percent over baseline) that counts as an opportunity"""

OPPORTUNITY_SCORE_NORMALIZER = 30.0
"""Each opportunity adds improvement_pct / this to the opportunity score"""

MAX_REPORTED_OPPORTUNITIES = 3

# ============================================================================
# ALTERNATIVES & SUGGESTIONS
# ============================================================================

MAX_ALTERNATIVES = 5
"""Ranked alternatives returned by the ranker"""

UNDERPERFORMER_RATIO = 0.7
"""A held pool yielding below this fraction of the market average underperforms"""

CONCENTRATION_LIMIT_PCT = 60.0
"""Largest single-position share above which diversification is suggested"""

SUGGESTED_SPLIT = "40-30-30"

DEFAULT_RISK_SCORE = 5.0
"""Risk score assumed when a position or plan target carries none"""

# Priority thresholds (value USD, yield delta in percentage points)
PRIORITY_HIGH_LARGE_VALUE = 5000.0
PRIORITY_HIGH_LARGE_DELTA = 2.0
PRIORITY_HIGH_MID_VALUE = 2000.0
PRIORITY_HIGH_MID_DELTA = 1.5
PRIORITY_HIGH_ANY_DELTA = 3.0
PRIORITY_MEDIUM_VALUE = 1000.0
PRIORITY_MEDIUM_VALUE_DELTA = 1.0
PRIORITY_MEDIUM_ANY_DELTA = 1.5

# ============================================================================
# HEURISTIC RISK SCORING
# ============================================================================

RISK_FACTOR_WEIGHTS = {
    "tvl": 0.30,
    "apy": 0.15,
    "protocol": 0.25,
    "chain": 0.20,
}
"""Factor weights of the heuristic scorer (1 = very low risk, 10 = very high)"""

TVL_RISK_TIERS = [
    (10_000_000_000, 1),
    (5_000_000_000, 2),
    (1_000_000_000, 3),
    (500_000_000, 4),
    (100_000_000, 5),
    (50_000_000, 6),
    (10_000_000, 7),
]
"""(reserve above, score); anything smaller scores TVL_RISK_FLOOR"""

TVL_RISK_FLOOR = 9

APY_RISK_TIERS = [
    (5.0, 2),
    (10.0, 3),
    (20.0, 5),
    (50.0, 7),
]
"""(yield below, score); abnormally high yield scores APY_RISK_CEILING"""

APY_RISK_CEILING = 9

BLUE_CHIP_PROTOCOLS = ["lido", "rocket-pool", "aave", "compound", "makerdao"]
ESTABLISHED_PROTOCOLS = ["frax", "curve", "convex", "yearn", "stakewise"]

PROTOCOL_RISK_BLUE_CHIP = 2
PROTOCOL_RISK_ESTABLISHED = 4
PROTOCOL_RISK_OTHER = 6

CHAIN_RISK_TIERS = [
    (("ethereum",), 1),
    (("polygon", "arbitrum"), 2),
    (("bsc", "avalanche"), 3),
]
"""(chain name fragments, score); other chains score CHAIN_RISK_OTHER"""

CHAIN_RISK_OTHER = 5

RISK_LEVEL_CUTOFFS = [
    (2.5, "very-low"),
    (3.5, "low"),
    (5.0, "medium"),
    (7.0, "high"),
]
"""(score at most, level); above the last cut-off is very-high"""
