"""
Position <-> market pool matching.

Positions match pools by case-insensitive equality of (protocol, chain);
when several pools share a key the first one supplied wins.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from yield_rebalancer.schemas.market import MarketPool
from yield_rebalancer.schemas.portfolio import Portfolio, Position


def build_pool_index(pools: Iterable[MarketPool]) -> Dict[tuple[str, str], MarketPool]:
    index: Dict[tuple[str, str], MarketPool] = {}
    for pool in pools:
        index.setdefault(pool.key, pool)
    return index


def find_matching_pool(
    position: Position,
    pool_index: Dict[tuple[str, str], MarketPool],
) -> Optional[MarketPool]:
    return pool_index.get(position.key)


def held_keys(portfolio: Portfolio) -> set[tuple[str, str]]:
    """(protocol, chain) keys of every held position."""
    return {p.key for p in portfolio.positions}
