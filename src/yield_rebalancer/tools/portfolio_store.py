"""
Portfolio Store

Source of portfolios and sink for saved rebalance suggestions. The
in-memory store keeps everything in dicts keyed by portfolio id and
returns history newest first.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from pydantic import ValidationError as PydanticValidationError

from yield_rebalancer.exceptions import (
    DataFlowError,
    PortfolioNotFoundError,
    SchemaValidationError,
)
from yield_rebalancer.schemas.portfolio import Portfolio
from yield_rebalancer.schemas.rebalance_output import RebalanceAnalysis

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class PortfolioStore(Protocol):
    def get(self, portfolio_id: str) -> Portfolio:
        ...

    def save_suggestion(self, portfolio_id: str, analysis: RebalanceAnalysis) -> dict:
        ...

    def get_history(self, portfolio_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[dict]:
        ...


def load_portfolio(path: Union[str, Path]) -> Portfolio:
    """
    Read one portfolio from a JSON file.

    Raises:
        DataFlowError: the file does not hold a JSON object
        SchemaValidationError: the object is not a valid portfolio
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise DataFlowError(f"Portfolio file {path} must hold a JSON object")
    try:
        return Portfolio.model_validate(raw)
    except PydanticValidationError as e:
        raise SchemaValidationError(f"Invalid portfolio in {path}: {e}") from e


class InMemoryPortfolioStore:
    """Dict-backed PortfolioStore with an append-only suggestion history."""

    def __init__(self, portfolios: Optional[List[Portfolio]] = None):
        self._portfolios: Dict[str, Portfolio] = {}
        self._history: Dict[str, List[dict]] = {}
        for portfolio in portfolios or []:
            self.add(portfolio)

    def add(self, portfolio: Portfolio) -> None:
        self._portfolios[portfolio.portfolio_id] = portfolio

    def get(self, portfolio_id: str) -> Portfolio:
        try:
            return self._portfolios[portfolio_id]
        except KeyError:
            raise PortfolioNotFoundError(f"Portfolio '{portfolio_id}' not found") from None

    def save_suggestion(self, portfolio_id: str, analysis: RebalanceAnalysis) -> dict:
        """Append a timestamped record of ``analysis`` and return it."""
        if portfolio_id not in self._portfolios:
            raise PortfolioNotFoundError(f"Portfolio '{portfolio_id}' not found")
        record = {
            "portfolio_id": portfolio_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "suggestion": analysis.model_dump(mode="json"),
        }
        self._history.setdefault(portfolio_id, []).append(record)
        logger.debug(f"[Store] Saved suggestion #{len(self._history[portfolio_id])} for {portfolio_id}")
        return record

    def get_history(self, portfolio_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[dict]:
        """Most recent ``limit`` records, newest first."""
        if portfolio_id not in self._portfolios:
            raise PortfolioNotFoundError(f"Portfolio '{portfolio_id}' not found")
        records = self._history.get(portfolio_id, [])
        if limit <= 0:
            return []
        return list(reversed(records[-limit:]))
