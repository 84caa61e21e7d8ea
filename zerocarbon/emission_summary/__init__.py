# -*- coding: utf-8 -*-
"""
ZeroCarbon Allocation-Aware Emission Aggregation SDK
====================================================

This package computes multi-dimensional, allocation-correct greenhouse-gas
emission summaries for a client's process hierarchy. It supports:

- Allocation index of scope identifiers shared by several process nodes
- Percentage conservation validation of shared scope identifiers
- Normalized extraction of legacy emission value shapes
- Aggregation by scope, category, activity, node, scope identifier,
  department, location, input type and emission factor
- Raw / allocated / unallocated breakdown per scope identifier
- Equal-split auto-distribution for maintenance tooling
- Daily, weekly, monthly, yearly and all-time periods with trends
- SHA-256 provenance hashes and a chain-hashed computation log
- 8 Prometheus metrics for observability
- Thread-safe configuration with ZC_EMISSION_SUMMARY_ env prefix

Key Components:
    - allocation: index builder, allocation application, auto-distribution
    - validator: AllocationValidator for shared-allocation checks
    - extractor: emission value extraction from raw entries
    - engine: EmissionAggregationEngine
    - finalizer: per scope identifier allocation breakdowns
    - periods: period resolution and trend calculation
    - stores: hierarchy / measurement store protocols and implementations
    - provenance: ProvenanceTracker for SHA-256 audit trails
    - config: EmissionSummaryConfig with ZC_EMISSION_SUMMARY_ env prefix
    - metrics: 8 Prometheus metrics
    - setup: EmissionSummaryService facade

Example:
    >>> from zerocarbon.emission_summary import (
    ...     EmissionAggregationEngine, InMemoryHierarchyStore,
    ...     InMemoryMeasurementStore, PeriodDescriptor,
    ... )
    >>> engine = EmissionAggregationEngine(hierarchies, measurements)
    >>> summary = engine.compute_summary(
    ...     "ZC-001", PeriodDescriptor(type="monthly", year=2024, month=3),
    ... )
    >>> print(summary.total_emissions.CO2e)
"""

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from zerocarbon.emission_summary.config import (
    EmissionSummaryConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from zerocarbon.emission_summary.models import (
    ScopeType,
    AssignmentStatus,
    InputType,
    PeriodType,
    ScopeAssignment,
    ProcessNode,
    ProcessHierarchy,
    RawEmissionEntry,
    GasValues,
    AllocationBreakdown,
    AllocationStats,
    AllocationIssue,
    AllocationValidationResult,
    AllocationSummary,
    AutoDistributionResult,
    FixStrategy,
    PeriodDescriptor,
    SummaryPeriod,
    Trends,
    SummaryMetadata,
    EmissionSummary,
    ComputationRecord,
)

# ---------------------------------------------------------------------------
# Core engine components
# ---------------------------------------------------------------------------
from zerocarbon.emission_summary.allocation import (
    AllocationOptions,
    AllocationIndexEntry,
    build_allocation_index,
    apply_allocation,
    get_allocation_summary,
    redistribute_allocation,
    auto_distribute_allocation,
)
from zerocarbon.emission_summary.validator import (
    AllocationValidator,
    format_validation_error,
)
from zerocarbon.emission_summary.extractor import extract_emission_values
from zerocarbon.emission_summary.finalizer import (
    finalize_allocation_breakdowns,
    build_allocation_breakdown,
)
from zerocarbon.emission_summary.periods import (
    build_date_range,
    previous_period,
    calculate_trends,
)
from zerocarbon.emission_summary.stores import (
    HierarchyStore,
    MeasurementStore,
    InMemoryHierarchyStore,
    InMemoryMeasurementStore,
    JsonFileHierarchyStore,
    JsonFileMeasurementStore,
)
from zerocarbon.emission_summary.provenance import ProvenanceTracker
from zerocarbon.emission_summary.engine import EmissionAggregationEngine

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from zerocarbon.emission_summary.setup import (
    EmissionSummaryService,
    configure_emission_summary_service,
    get_emission_summary_service,
    reset_emission_summary_service,
)

__all__ = [
    "__version__",
    # Configuration
    "EmissionSummaryConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Models
    "ScopeType",
    "AssignmentStatus",
    "InputType",
    "PeriodType",
    "ScopeAssignment",
    "ProcessNode",
    "ProcessHierarchy",
    "RawEmissionEntry",
    "GasValues",
    "AllocationBreakdown",
    "AllocationStats",
    "AllocationIssue",
    "AllocationValidationResult",
    "AllocationSummary",
    "AutoDistributionResult",
    "FixStrategy",
    "PeriodDescriptor",
    "SummaryPeriod",
    "Trends",
    "SummaryMetadata",
    "EmissionSummary",
    "ComputationRecord",
    # Core engine components
    "AllocationOptions",
    "AllocationIndexEntry",
    "build_allocation_index",
    "apply_allocation",
    "get_allocation_summary",
    "redistribute_allocation",
    "auto_distribute_allocation",
    "AllocationValidator",
    "format_validation_error",
    "extract_emission_values",
    "finalize_allocation_breakdowns",
    "build_allocation_breakdown",
    "build_date_range",
    "previous_period",
    "calculate_trends",
    "HierarchyStore",
    "MeasurementStore",
    "InMemoryHierarchyStore",
    "InMemoryMeasurementStore",
    "JsonFileHierarchyStore",
    "JsonFileMeasurementStore",
    "ProvenanceTracker",
    "EmissionAggregationEngine",
    # Service setup facade
    "EmissionSummaryService",
    "configure_emission_summary_service",
    "get_emission_summary_service",
    "reset_emission_summary_service",
]
