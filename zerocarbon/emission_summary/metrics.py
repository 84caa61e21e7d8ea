# -*- coding: utf-8 -*-
"""
Prometheus Metrics - Allocation-Aware Emission Aggregation

8 Prometheus metrics for emission summary monitoring.

Metrics:
    1. zc_emission_summary_computations_total (Counter)
    2. zc_emission_summary_computation_duration_seconds (Histogram)
    3. zc_emission_summary_entries_total (Counter)
    4. zc_emission_summary_allocation_validations_total (Counter)
    5. zc_emission_summary_allocation_errors_total (Counter)
    6. zc_emission_summary_shared_scope_identifiers (Histogram)
    7. zc_emission_summary_unallocated_scopes_total (Counter)
    8. zc_emission_summary_auto_distributions_total (Counter)

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Summary computations by period type and outcome
emission_summary_computations_total = Counter(
    "zc_emission_summary_computations_total",
    "Total emission summary computations performed",
    labelnames=["period_type", "result"],
)

# 2. Computation duration
emission_summary_computation_duration_seconds = Histogram(
    "zc_emission_summary_computation_duration_seconds",
    "Emission summary computation duration in seconds",
    labelnames=["period_type"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# 3. Raw entries seen by the engine
emission_summary_entries_total = Counter(
    "zc_emission_summary_entries_total",
    "Raw emission entries processed, by disposition",
    labelnames=["disposition"],
)

# 4. Allocation validations
emission_summary_allocation_validations_total = Counter(
    "zc_emission_summary_allocation_validations_total",
    "Total allocation validations performed",
    labelnames=["result"],
)

# 5. Allocation validation issues
emission_summary_allocation_errors_total = Counter(
    "zc_emission_summary_allocation_errors_total",
    "Allocation validation issues by type",
    labelnames=["issue_type"],
)

# 6. Shared scope identifiers per summary
emission_summary_shared_scope_identifiers = Histogram(
    "zc_emission_summary_shared_scope_identifiers",
    "Number of shared scope identifiers per computed summary",
    buckets=(0, 1, 2, 5, 10, 25, 50, 100),
)

# 7. Scope identifiers finalized with an unallocated remainder
emission_summary_unallocated_scopes_total = Counter(
    "zc_emission_summary_unallocated_scopes_total",
    "Scope identifiers finalized with an unallocated remainder",
)

# 8. Auto-distribution runs
emission_summary_auto_distributions_total = Counter(
    "zc_emission_summary_auto_distributions_total",
    "Auto-distribution requests by outcome",
    labelnames=["result"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_computation(period_type: str, result: str, duration_seconds: float) -> None:
    """Record an emission summary computation.

    Args:
        period_type: Period granularity (daily, weekly, monthly, ...).
        result: "success", "empty" or "error".
        duration_seconds: Computation duration in seconds.
    """
    emission_summary_computations_total.labels(
        period_type=period_type, result=result,
    ).inc()
    emission_summary_computation_duration_seconds.labels(
        period_type=period_type,
    ).observe(duration_seconds)


def record_entries(disposition: str, count: int) -> None:
    """Record raw entries by disposition ("included", "filtered", "empty")."""
    if count > 0:
        emission_summary_entries_total.labels(disposition=disposition).inc(count)


def record_allocation_validation(result: str) -> None:
    """Record an allocation validation ("pass" or "fail")."""
    emission_summary_allocation_validations_total.labels(result=result).inc()


def record_allocation_issue(issue_type: str) -> None:
    """Record one allocation validation issue."""
    emission_summary_allocation_errors_total.labels(issue_type=issue_type).inc()


def record_shared_scope_identifiers(count: int) -> None:
    """Observe the shared scope identifier count of one summary."""
    emission_summary_shared_scope_identifiers.observe(count)


def record_unallocated_scopes(count: int) -> None:
    """Record scope identifiers finalized with an unallocated remainder."""
    if count > 0:
        emission_summary_unallocated_scopes_total.inc(count)


def record_auto_distribution(result: str) -> None:
    """Record an auto-distribution outcome ("distributed" or "skipped")."""
    emission_summary_auto_distributions_total.labels(result=result).inc()


__all__ = [
    # Metric objects
    "emission_summary_computations_total",
    "emission_summary_computation_duration_seconds",
    "emission_summary_entries_total",
    "emission_summary_allocation_validations_total",
    "emission_summary_allocation_errors_total",
    "emission_summary_shared_scope_identifiers",
    "emission_summary_unallocated_scopes_total",
    "emission_summary_auto_distributions_total",
    # Helper functions
    "record_computation",
    "record_entries",
    "record_allocation_validation",
    "record_allocation_issue",
    "record_shared_scope_identifiers",
    "record_unallocated_scopes",
    "record_auto_distribution",
]
