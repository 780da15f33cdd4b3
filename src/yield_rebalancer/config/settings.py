"""
Engine configuration.

RebalanceConfig is an immutable value passed explicitly into every engine
entry point, so tests can vary thresholds per call without shared state.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from yield_rebalancer.config.constants import (
    DEFAULT_APY_CHANGE_PERCENT,
    DEFAULT_MIN_REBALANCE_AMOUNT,
    DEFAULT_RISK_SCORE_CHANGE,
    DEFAULT_SIGNIFICANT_ALLOCATION_CHANGE,
    DEFAULT_TIME_INTERVAL_DAYS,
)
from yield_rebalancer.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "REBALANCE_"

# field name -> environment variable suffix
_ENV_FIELDS: dict[str, str] = {
    "apy_change_percent": "APY_CHANGE_PERCENT",
    "risk_score_change": "RISK_SCORE_CHANGE",
    "time_interval_days": "TIME_INTERVAL_DAYS",
    "min_rebalance_amount": "MIN_REBALANCE_AMOUNT",
    "significant_allocation_change": "SIGNIFICANT_ALLOCATION_CHANGE",
}


class RebalanceConfig(BaseModel):
    """Thresholds for trigger detection and suggestion filtering."""

    model_config = ConfigDict(frozen=True)

    apy_change_percent: float = Field(DEFAULT_APY_CHANGE_PERCENT, gt=0)
    risk_score_change: float = Field(DEFAULT_RISK_SCORE_CHANGE, gt=0)
    time_interval_days: int = Field(DEFAULT_TIME_INTERVAL_DAYS, gt=0)
    min_rebalance_amount: float = Field(DEFAULT_MIN_REBALANCE_AMOUNT, ge=0)
    # Reserved: carried and validated, not read by any check.
    significant_allocation_change: float = Field(
        DEFAULT_SIGNIFICANT_ALLOCATION_CHANGE, gt=0, le=100
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RebalanceConfig":
        """
        Build a config from REBALANCE_* environment variables.

        Unset variables keep their defaults. Call ``dotenv.load_dotenv()``
        beforehand to pick up a ``.env`` file.

        Raises:
            ConfigurationError: a variable is set to an invalid value.
        """
        env = os.environ if environ is None else environ
        overrides = {
            name: env[ENV_PREFIX + suffix]
            for name, suffix in _ENV_FIELDS.items()
            if env.get(ENV_PREFIX + suffix) not in (None, "")
        }
        try:
            config = cls(**overrides)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid rebalancing configuration: {e}") from e
        if overrides:
            logger.info(f"[Config] Overrides from environment: {sorted(overrides)}")
        return config
