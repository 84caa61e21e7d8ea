# -*- coding: utf-8 -*-
"""
Emission Summary Service Setup - Allocation-Aware Emission Aggregation

Provides ``configure_emission_summary_service(...)`` which wires up the
emission summary SDK (engine, validator, provenance) over the caller's
hierarchy and measurement stores, and ``get_emission_summary_service()``
for programmatic access to the configured ``EmissionSummaryService``
facade.

Usage:
    >>> from zerocarbon.emission_summary.setup import configure_emission_summary_service
    >>> service = configure_emission_summary_service(hierarchy_store, measurement_store)
    >>> summary = service.compute_summary("ZC-001", period, actor_id="analyst_1")

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from zerocarbon.emission_summary.allocation import (
    AllocationIndex,
    AllocationOptions,
    HierarchyLike,
    build_allocation_index,
    get_allocation_summary,
    redistribute_allocation,
)
from zerocarbon.emission_summary.config import EmissionSummaryConfig, get_config
from zerocarbon.emission_summary.engine import EmissionAggregationEngine
from zerocarbon.emission_summary.models import (
    AllocationSummary,
    AllocationValidationResult,
    AutoDistributionResult,
    EmissionSummary,
    FixStrategy,
    PeriodDescriptor,
)
from zerocarbon.emission_summary.periods import calculate_trends, previous_period
from zerocarbon.emission_summary.provenance import ProvenanceTracker
from zerocarbon.emission_summary.stores import HierarchyStore, MeasurementStore
from zerocarbon.emission_summary.validator import AllocationValidator

logger = logging.getLogger(__name__)


# ===================================================================
# EmissionSummaryService facade
# ===================================================================

# Thread-safe singleton lock
_singleton_lock = threading.Lock()
_singleton_instance: Optional["EmissionSummaryService"] = None


class EmissionSummaryService:
    """Unified facade over the emission summary SDK.

    Attributes:
        config: EmissionSummaryConfig instance.
        validator: AllocationValidator instance.
        provenance: ProvenanceTracker instance.
        engine: EmissionAggregationEngine instance.

    Example:
        >>> service = EmissionSummaryService(hierarchy_store, measurement_store)
        >>> result = service.validate_allocations(hierarchy)
        >>> print(result.is_valid)
    """

    def __init__(
        self,
        hierarchy_store: HierarchyStore,
        measurement_store: MeasurementStore,
        config: Optional[EmissionSummaryConfig] = None,
    ) -> None:
        """Initialize the emission summary service facade.

        Args:
            hierarchy_store: Source of active process hierarchies.
            measurement_store: Source of raw emission entries.
            config: Optional config. Uses global config if None.
        """
        self.config = config or get_config()
        self.validator = AllocationValidator(
            tolerance_pct=self.config.allocation_tolerance_pct,
        )
        self.provenance = ProvenanceTracker()
        self.engine = EmissionAggregationEngine(
            hierarchy_store,
            measurement_store,
            config=self.config,
            validator=self.validator,
            provenance=self.provenance if self.config.enable_provenance else None,
        )
        self._started = False

        logger.info("EmissionSummaryService facade created")

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def compute_summary(
        self,
        client_id: str,
        period: PeriodDescriptor,
        actor_id: Optional[str] = None,
    ) -> EmissionSummary:
        """Compute a summary; never raises (see ``metadata.has_errors``)."""
        return self.engine.compute_summary(client_id, period, actor_id)

    def compute_summary_with_trends(
        self,
        client_id: str,
        period: PeriodDescriptor,
        actor_id: Optional[str] = None,
    ) -> EmissionSummary:
        """Compute a summary and compare it with the preceding period.

        ``trends`` stays None for all-time periods and whenever either
        computation reports errors.
        """
        summary = self.engine.compute_summary(client_id, period, actor_id)
        if summary.metadata.has_errors:
            return summary

        prior = previous_period(period)
        if prior is None:
            return summary

        previous = self.engine.compute_summary(client_id, prior, actor_id)
        if previous.metadata.has_errors:
            logger.warning(
                "Previous period summary for client %s failed; trends omitted",
                client_id,
            )
            return summary

        summary.trends = calculate_trends(summary, previous)
        return summary

    # ------------------------------------------------------------------
    # Allocation tooling
    # ------------------------------------------------------------------

    def build_index(
        self,
        hierarchy: HierarchyLike,
        options: Optional[AllocationOptions] = None,
    ) -> AllocationIndex:
        """Build the allocation index with the configured import policy."""
        if options is None:
            options = AllocationOptions(include_imported=self.config.include_imported)
        return build_allocation_index(hierarchy, options)

    def validate_allocations(
        self,
        hierarchy: HierarchyLike,
        options: Optional[AllocationOptions] = None,
    ) -> AllocationValidationResult:
        """Validate shared allocations of ``hierarchy``."""
        return self.validator.validate_index(self.build_index(hierarchy, options))

    def get_allocation_summary(self, index: AllocationIndex) -> AllocationSummary:
        """Summarise an allocation index for display."""
        return get_allocation_summary(index, self.config.allocation_tolerance_pct)

    def auto_distribute(
        self,
        hierarchy: HierarchyLike,
        scope_identifier: str,
        strategy: FixStrategy = FixStrategy.EQUAL,
    ) -> AutoDistributionResult:
        """Rewrite ``scope_identifier`` percentages with ``strategy`` (equal by default)."""
        return redistribute_allocation(hierarchy, scope_identifier, strategy)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """Get emission summary service metrics summary.

        Returns:
            Dictionary with service metric summaries.
        """
        return {
            "started": self._started,
            "strict_allocation": self.config.strict_allocation,
            "provenance_entries": self.provenance.entry_count,
            "provenance_chain_valid": self.provenance.verify_chain(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the emission summary service.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("EmissionSummaryService already started; skipping")
            return

        logger.info("EmissionSummaryService starting up...")
        self._started = True
        logger.info("EmissionSummaryService startup complete")

    def shutdown(self) -> None:
        """Shutdown the emission summary service."""
        if not self._started:
            return

        self._started = False
        logger.info("EmissionSummaryService shut down")


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def configure_emission_summary_service(
    hierarchy_store: HierarchyStore,
    measurement_store: MeasurementStore,
    config: Optional[EmissionSummaryConfig] = None,
) -> EmissionSummaryService:
    """Create, register and start the process-wide EmissionSummaryService.

    Args:
        hierarchy_store: Source of active process hierarchies.
        measurement_store: Source of raw emission entries.
        config: Optional config.

    Returns:
        EmissionSummaryService instance.
    """
    global _singleton_instance

    service = EmissionSummaryService(hierarchy_store, measurement_store, config=config)

    with _singleton_lock:
        previous = _singleton_instance
        _singleton_instance = service
    if previous is not None:
        previous.shutdown()

    service.startup()
    logger.info("Emission summary service configured")
    return service


def get_emission_summary_service() -> EmissionSummaryService:
    """Get the configured EmissionSummaryService.

    Raises:
        RuntimeError: If the service has not been configured.
    """
    service = _singleton_instance
    if service is None:
        raise RuntimeError(
            "Emission summary service not configured. "
            "Call configure_emission_summary_service(...) first."
        )
    return service


def reset_emission_summary_service() -> None:
    """Shut down and forget the configured service. Intended for tests."""
    global _singleton_instance
    with _singleton_lock:
        service = _singleton_instance
        _singleton_instance = None
    if service is not None:
        service.shutdown()


__all__ = [
    "EmissionSummaryService",
    "configure_emission_summary_service",
    "get_emission_summary_service",
    "reset_emission_summary_service",
]
