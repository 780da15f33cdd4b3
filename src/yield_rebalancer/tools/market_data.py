"""
Market Data Provider

Supplies the MarketPool list the engine runs against. The static provider
serves a fixed list (the built-in Ethereum/Polygon staking snapshot by
default) or one loaded from a JSON file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from yield_rebalancer.exceptions import DataFlowError, SchemaValidationError
from yield_rebalancer.schemas.market import MarketPool

logger = logging.getLogger(__name__)


# Snapshot used when no market file is supplied.
DEFAULT_POOLS: List[dict] = [
    {"protocol": "lido", "chain": "Ethereum", "symbol": "stETH",
     "apy": 3.5, "tvl": 14_200_000_000, "poolId": "lido-steth"},
    {"protocol": "rocket-pool", "chain": "Ethereum", "symbol": "rETH",
     "apy": 3.8, "tvl": 1_800_000_000, "poolId": "rocket-pool-reth"},
    {"protocol": "frax", "chain": "Ethereum", "symbol": "frxETH",
     "apy": 4.2, "tvl": 450_000_000, "poolId": "frax-frxeth"},
    {"protocol": "lido", "chain": "Polygon", "symbol": "stMATIC",
     "apy": 4.8, "tvl": 120_000_000, "poolId": "lido-stmatic"},
]


class MarketDataProvider(Protocol):
    def list_pools(self) -> List[MarketPool]:
        ...


def parse_pools(raw: Union[list, dict], source: str = "<memory>") -> List[MarketPool]:
    """
    Validate raw pool records. Accepts a list or ``{"pools": [...]}``.

    Raises:
        DataFlowError: the payload is not a pool list
        SchemaValidationError: a record fails validation
    """
    if isinstance(raw, dict) and "pools" in raw:
        raw = raw["pools"]
    if not isinstance(raw, list):
        raise DataFlowError(
            f"Market data from {source} must be a list of pools, got {type(raw).__name__}"
        )
    try:
        return [MarketPool.model_validate(item) for item in raw]
    except PydanticValidationError as e:
        raise SchemaValidationError(f"Invalid pool record in {source}: {e}") from e


class StaticMarketDataProvider:
    """Serves a fixed pool list."""

    def __init__(self, pools: Optional[Sequence[Union[MarketPool, dict]]] = None):
        if pools is None:
            pools = DEFAULT_POOLS
        self._pools = [
            p if isinstance(p, MarketPool) else MarketPool.model_validate(p)
            for p in pools
        ]

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "StaticMarketDataProvider":
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        pools = parse_pools(raw, source=str(path))
        logger.info(f"[MarketData] Loaded {len(pools)} pools from {path}")
        return cls(pools)

    def list_pools(self) -> List[MarketPool]:
        return list(self._pools)
