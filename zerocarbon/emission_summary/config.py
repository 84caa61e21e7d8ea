# -*- coding: utf-8 -*-
"""
Emission Summary Configuration - Allocation-Aware Emission Aggregation

Centralized configuration for the emission summary engine covering:
- Allocation conservation tolerance and negligible-contribution threshold
- Reporting precision applied by the allocation finalizer
- Strict allocation gating (refuse to compute on invalid allocations)
- Inclusion of assignments imported from other hierarchies
- Concurrent fetching of hierarchy and measurements
- Provenance tracking toggle

All settings can be overridden via environment variables with the
``ZC_EMISSION_SUMMARY_`` prefix (e.g. ``ZC_EMISSION_SUMMARY_STRICT_ALLOCATION``).

Example:
    >>> from zerocarbon.emission_summary.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.allocation_tolerance_pct, cfg.rounding_decimals)

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

from zerocarbon.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "ZC_EMISSION_SUMMARY_"


# ---------------------------------------------------------------------------
# EmissionSummaryConfig
# ---------------------------------------------------------------------------


@dataclass
class EmissionSummaryConfig:
    """Complete configuration for the emission summary engine.

    Attributes:
        allocation_tolerance_pct: Allowed deviation of a shared identifier's
            allocation sum from 100 before it is reported.
        negligible_threshold: Allocated CO2e below this value is dropped.
        rounding_decimals: Decimal places applied to finalized breakdowns.
        strict_allocation: Refuse to compute (error-shaped summary) when the
            allocation index fails validation.
        include_imported: Count assignments imported from other hierarchies.
        parallel_fetch: Fetch hierarchy and measurements concurrently.
        fetch_workers: Thread pool size for concurrent fetching.
        enable_provenance: Record every computation in the provenance log.
    """

    # -- Allocation ----------------------------------------------------------
    allocation_tolerance_pct: float = 0.01
    negligible_threshold: float = 0.0001
    strict_allocation: bool = False
    include_imported: bool = False

    # -- Reporting -----------------------------------------------------------
    rounding_decimals: int = 4

    # -- Fetching ------------------------------------------------------------
    parallel_fetch: bool = True
    fetch_workers: int = 2

    # -- Provenance ----------------------------------------------------------
    enable_provenance: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.rounding_decimals <= 8:
            raise ConfigurationError(
                f"rounding_decimals must be between 0 and 8, got {self.rounding_decimals}",
                config_key="rounding_decimals",
            )
        if self.allocation_tolerance_pct < 0:
            raise ConfigurationError(
                "allocation_tolerance_pct must be non-negative",
                config_key="allocation_tolerance_pct",
            )
        if self.negligible_threshold < 0:
            raise ConfigurationError(
                "negligible_threshold must be non-negative",
                config_key="negligible_threshold",
            )
        if self.fetch_workers < 1:
            raise ConfigurationError(
                "fetch_workers must be at least 1",
                config_key="fetch_workers",
            )

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> EmissionSummaryConfig:
        """Build an EmissionSummaryConfig from environment variables.

        Every field can be overridden via ``ZC_EMISSION_SUMMARY_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).

        Returns:
            Populated EmissionSummaryConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %s",
                    prefix, name, val, default,
                )
                return default

        config = cls(
            allocation_tolerance_pct=_float(
                "ALLOCATION_TOLERANCE_PCT", cls.allocation_tolerance_pct,
            ),
            negligible_threshold=_float(
                "NEGLIGIBLE_THRESHOLD", cls.negligible_threshold,
            ),
            strict_allocation=_bool("STRICT_ALLOCATION", cls.strict_allocation),
            include_imported=_bool("INCLUDE_IMPORTED", cls.include_imported),
            rounding_decimals=_int("ROUNDING_DECIMALS", cls.rounding_decimals),
            parallel_fetch=_bool("PARALLEL_FETCH", cls.parallel_fetch),
            fetch_workers=_int("FETCH_WORKERS", cls.fetch_workers),
            enable_provenance=_bool("ENABLE_PROVENANCE", cls.enable_provenance),
        )

        logger.info(
            "EmissionSummaryConfig loaded: tolerance=%s, negligible=%s, "
            "decimals=%d, strict=%s, parallel_fetch=%s",
            config.allocation_tolerance_pct,
            config.negligible_threshold,
            config.rounding_decimals,
            config.strict_allocation,
            config.parallel_fetch,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[EmissionSummaryConfig] = None
_config_lock = threading.Lock()


def get_config() -> EmissionSummaryConfig:
    """Return the singleton EmissionSummaryConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = EmissionSummaryConfig.from_env()
    return _config_instance


def set_config(config: EmissionSummaryConfig) -> None:
    """Replace the singleton EmissionSummaryConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("EmissionSummaryConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "EmissionSummaryConfig",
    "get_config",
    "set_config",
    "reset_config",
]
