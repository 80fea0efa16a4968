"""
Library settings loaded from environment variables.

All settings have defaults suitable for interactive use and can be
overridden with variables prefixed with ``RATESKIT_``:

- RATESKIT_LOG_LEVEL: logging level used by configure_logging (default WARNING)
- RATESKIT_SOLVER_MAX_ITERATIONS: iteration bound for bootstrap root finding
- RATESKIT_SOLVER_TOLERANCE: absolute tolerance (xtol) for root finding
- RATESKIT_CREDIT_ARBITRAGE_HANDLING: IGNORE, FAIL or ZERO_CLAMP
- RATESKIT_REPORTING_CURRENCY: default reporting currency for measures
- RATESKIT_CMS_CUT_OFF_STRIKE / RATESKIT_CMS_MU: CMS replication defaults

Example:
    export RATESKIT_SOLVER_MAX_ITERATIONS=200
    export RATESKIT_LOG_LEVEL=DEBUG
"""

import logging
import os
from typing import Any, Optional

_ENV_PREFIX = "RATESKIT_"


def _get_env(key: str, default: Any, value_type: type = str) -> Any:
    """
    Read an environment variable with type conversion.

    Args:
        key: Variable name without the prefix
        default: Value returned when unset or unparseable
        value_type: str, int or float

    Returns:
        Converted value or default
    """
    env_value = os.environ.get(f"{_ENV_PREFIX}{key.upper()}")
    if env_value is None or env_value == "":
        return default

    try:
        if value_type == int:
            return int(env_value)
        elif value_type == float:
            return float(env_value)
        return env_value
    except (ValueError, TypeError):
        return default


class Settings:
    """
    Configuration snapshot taken from the environment.

    Attributes:
        log_level: Logging level name
        solver_max_iterations: brentq maxiter for each bootstrap node
        solver_tolerance: brentq xtol for each bootstrap node
        credit_arbitrage_handling: Default arbitrage policy for credit curves
        reporting_currency: Default reporting currency (None = no conversion)
        cms_cut_off_strike: Default SABR extrapolation cut-off strike
        cms_mu: Default SABR extrapolation tail exponent
    """

    def __init__(self) -> None:
        self.log_level: str = _get_env("LOG_LEVEL", "WARNING").upper()
        self.solver_max_iterations: int = _get_env("SOLVER_MAX_ITERATIONS", 100, int)
        self.solver_tolerance: float = _get_env("SOLVER_TOLERANCE", 1e-14, float)
        self.credit_arbitrage_handling: str = _get_env(
            "CREDIT_ARBITRAGE_HANDLING", "FAIL"
        ).upper()
        self.reporting_currency: Optional[str] = _get_env("REPORTING_CURRENCY", None)
        self.cms_cut_off_strike: float = _get_env("CMS_CUT_OFF_STRIKE", 0.10, float)
        self.cms_mu: float = _get_env("CMS_MU", 2.50, float)

    def __repr__(self) -> str:
        return (
            f"Settings(log_level={self.log_level}, "
            f"solver_max_iterations={self.solver_max_iterations}, "
            f"solver_tolerance={self.solver_tolerance}, "
            f"credit_arbitrage_handling={self.credit_arbitrage_handling})"
        )


def get_settings() -> Settings:
    """Read a fresh settings snapshot from the environment."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Attach a basic stream handler to the root logger.

    Args:
        level: Level name; defaults to RATESKIT_LOG_LEVEL
    """
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


settings = Settings()


__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "configure_logging",
]
