"""
Exception hierarchy for the Yield Rebalancer.

This module defines all custom exceptions raised by the rebalancing
engine and its collaborators. Every failure is synchronous and scoped to
a single analysis call; the engine never retries.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ProcessingError:
    """
    A collaborator failure recorded during one analysis instead of aborting it.

    Only failures the engine can work around are recorded this way (a pool
    the risk scorer could not assess stays unassessed); everything else
    propagates as an exception.
    """

    source: str
    """Pool id, or protocol/chain when the pool has no id"""

    error_type: str
    """Category of failure, e.g. RISK_SCORING_ERROR"""

    message: str

    error_code: Optional[str] = None
    """error_code of the underlying RebalancerException, if any"""

    context: dict = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        source: str,
        error_type: str,
        exception: Exception,
        context: Optional[dict] = None,
    ) -> "ProcessingError":
        return cls(
            source=source,
            error_type=error_type,
            message=str(exception),
            error_code=getattr(exception, "error_code", None),
            context=context or {},
        )

    def to_dict(self) -> dict:
        """JSON-ready form written next to the analysis snapshot."""
        return {
            "source": self.source,
            "error_type": self.error_type,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


# ============================================================================
# BASE EXCEPTION CLASSES
# ============================================================================

class RebalancerException(Exception):
    """
    Base exception for all Yield Rebalancer errors.

    Inheriting from this allows catching all engine errors:
        try:
            ...
        except RebalancerException as e:
            ...
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__


class DataProcessingError(RebalancerException):
    """Base class for errors while reading portfolio or market inputs."""
    pass


class ValidationError(RebalancerException):
    """Base class for data validation failures."""
    pass


class ConfigurationError(RebalancerException):
    """
    Raised when engine configuration is invalid.

    Example:
        raise ConfigurationError("REBALANCE_TIME_INTERVAL_DAYS must be > 0, got -3")
    """
    pass


class PipelineError(RebalancerException):
    """Base class for orchestration errors around the engine."""
    pass


# ============================================================================
# MISSING / EMPTY DATA
# ============================================================================

class MissingDataError(DataProcessingError):
    """
    Raised when a computation needs a position field that is absent.

    Only fields without a documented fallback chain raise this
    (initial yield, entry timestamp).

    Example:
        raise MissingDataError("Position Lido/Ethereum has no initial yield")
    """
    pass


class CalculationError(DataProcessingError):
    """
    Raised when mathematical calculations cannot be carried out.

    Example:
        raise CalculationError("Cannot divide by a zero baseline")
    """
    pass


class EmptyPortfolioError(CalculationError):
    """
    Raised when a portfolio-level computation is asked for on zero positions.

    Example:
        raise EmptyPortfolioError("Portfolio p-1 has no positions")
    """
    pass


class MetricsCalculationError(CalculationError):
    """
    Raised when portfolio metrics cannot be calculated.

    Example:
        raise MetricsCalculationError("Total portfolio value is zero")
    """
    pass


class SchemaValidationError(ValidationError):
    """
    Raised when Pydantic schema validation of an input document fails.

    Wraps pydantic's ValidationError for consistency.
    """
    pass


# ============================================================================
# COLLABORATOR / ORCHESTRATION EXCEPTIONS
# ============================================================================

class PortfolioNotFoundError(PipelineError):
    """
    Raised by a portfolio store when the identifier is unknown.

    Example:
        raise PortfolioNotFoundError("Portfolio 'user123_portfolio_1' not found")
    """
    pass


class RiskScoringError(PipelineError):
    """
    Raised by a risk scorer that cannot assess a pool.

    The orchestrator records it and leaves the pool unassessed, which
    excludes the pool from ranking.
    """
    pass


class DataFlowError(PipelineError):
    """
    Raised when a collaborator returns data the engine cannot consume.

    Example:
        raise DataFlowError("Market data provider returned no pools")
    """
    pass
