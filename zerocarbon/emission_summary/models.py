# -*- coding: utf-8 -*-
"""
Emission Summary Data Models - Allocation-Aware Emission Aggregation

Pydantic v2 data models for the emission summary engine.

Models:
    - Enums: ScopeType, AssignmentStatus, FixStrategy, InputType, PeriodType
    - Hierarchy: ScopeAssignment, ProcessNode, ProcessHierarchy
    - Measurements: RawEmissionEntry
    - Accumulators: GasValues, EmissionBucket, CategoryBucket, ActivityBucket,
      NodeScopeLedger, NodeBucket, NodeAllocationLedger,
      ScopeIdentifierBucket, InputTypeBucket, EmissionFactorBucket
    - Allocation breakdown: NodeAllocation, AllocatedEmissions,
      UnallocatedEmissions, AllocationBreakdown, AllocationStats
    - Allocation tooling: AllocationEntryRef, AllocationIssue,
      AllocationValidationResult, AllocationSummaryDetail, AllocationSummary,
      NodeAllocationPct, AutoDistributionResult
    - Summary: PeriodDescriptor, SummaryPeriod, TrendData, Trends,
      SummaryMetadata, EmissionSummary
    - Provenance: ComputationRecord

Hierarchy and measurement models accept the legacy camelCase document
shape (``scopeIdentifier``, ``details.scopeDetails``, ``isDeleted``,
``fromOtherChart``) as well as snake_case keys.

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Enumerations
# =============================================================================


class ScopeType(str, Enum):
    """GHG Protocol scope classification."""
    SCOPE_1 = "Scope 1"
    SCOPE_2 = "Scope 2"
    SCOPE_3 = "Scope 3"


class AssignmentStatus(str, Enum):
    """Lifecycle status of a scope assignment on a process node."""
    ACTIVE = "active"
    DELETED = "deleted"
    IMPORTED = "imported"


# Long-form spelling written by hierarchy exports.
IMPORTED_STATUS_ALIASES = ("imported-from-other-hierarchy", "imported_from_other_hierarchy")


class FixStrategy(str, Enum):
    """How an invalid shared allocation is rewritten."""
    EQUAL = "equal"
    PROPORTIONAL = "proportional"
    FIRST_100 = "first-100"


class InputType(str, Enum):
    """How a raw emission entry was collected."""
    MANUAL = "manual"
    API = "API"
    IOT = "IOT"


class PeriodType(str, Enum):
    """Reporting period granularity."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ALL_TIME = "all-time"


SCOPE_TYPES: List[str] = [s.value for s in ScopeType]
INPUT_TYPES: List[str] = [t.value for t in InputType]


# =============================================================================
# Hierarchy models
# =============================================================================


class ScopeAssignment(BaseModel):
    """One scope identifier attached to a process node."""
    scope_identifier: str = Field(
        ..., alias="scopeIdentifier", description="Measurement point key",
    )
    scope_type: Optional[ScopeType] = Field(
        None, alias="scopeType", description="GHG Protocol scope",
    )
    category_name: Optional[str] = Field(
        None, alias="categoryName", description="Emission category",
    )
    activity: Optional[str] = Field(None, description="Activity name")
    allocation_pct: Optional[float] = Field(
        None, alias="allocationPct", ge=0, le=100,
        description="Share of the identifier's emissions; None means 100",
    )
    status: AssignmentStatus = Field(
        default=AssignmentStatus.ACTIVE, description="Assignment status",
    )

    model_config = {"extra": "ignore", "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _legacy_flags_to_status(cls, data: Any) -> Any:
        """Fold the legacy isDeleted/fromOtherChart booleans into ``status``."""
        if not isinstance(data, dict):
            return data
        status = data.get("status")
        if isinstance(status, str) and status.strip().lower() in IMPORTED_STATUS_ALIASES:
            return {**data, "status": AssignmentStatus.IMPORTED}
        if status is not None:
            return data
        data = dict(data)
        if data.pop("isDeleted", False) or data.pop("is_deleted", False):
            data["status"] = AssignmentStatus.DELETED
        elif data.pop("fromOtherChart", False) or data.pop("from_other_chart", False):
            data["status"] = AssignmentStatus.IMPORTED
        return data

    @field_validator("scope_identifier", mode="before")
    @classmethod
    def _coerce_identifier(cls, v: Any) -> str:
        return "" if v is None else str(v)


class ProcessNode(BaseModel):
    """Organizational node of a client's process hierarchy."""
    id: str = Field(..., description="Node identifier")
    label: str = Field(default="Unknown Node", description="Display label")
    department: str = Field(default="Unknown", description="Owning department")
    location: str = Field(default="Unknown", description="Physical location")
    scope_assignments: List[ScopeAssignment] = Field(
        default_factory=list, alias="scopeAssignments",
        description="Ordered scope assignments",
    )
    is_deleted: bool = Field(default=False, alias="isDeleted")

    model_config = {"extra": "ignore", "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _flatten_details(cls, data: Any) -> Any:
        """Lift ``details.{department,location,scopeDetails}`` to the top level."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        details = data.pop("details", None) or {}
        if isinstance(details, dict):
            data.setdefault("department", details.get("department"))
            data.setdefault("location", details.get("location"))
            if "scopeAssignments" not in data and "scope_assignments" not in data:
                data["scopeAssignments"] = details.get("scopeDetails") or []
        for key, default in (
            ("label", "Unknown Node"),
            ("department", "Unknown"),
            ("location", "Unknown"),
        ):
            if not data.get(key):
                data[key] = default
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)


class ProcessHierarchy(BaseModel):
    """The active process hierarchy document of a client."""
    client_id: Optional[str] = Field(None, alias="clientId")
    nodes: List[ProcessNode] = Field(default_factory=list)

    model_config = {"extra": "ignore", "populate_by_name": True}


# =============================================================================
# Measurement models
# =============================================================================


class RawEmissionEntry(BaseModel):
    """One raw, upstream-calculated emission measurement."""
    id: str = Field(..., alias="_id", description="Entry identifier")
    timestamp: datetime = Field(..., description="Measurement timestamp")
    scope_identifier: Optional[str] = Field(None, alias="scopeIdentifier")
    scope_type: Optional[str] = Field(None, alias="scopeType")
    input_type: Optional[str] = Field(None, alias="inputType")
    emission_factor_id: Optional[str] = Field(None, alias="emissionFactor")
    calculated_emissions: Dict[str, Any] = Field(
        default_factory=dict, alias="calculatedEmissions",
    )
    processing_status: str = Field(default="pending", alias="processingStatus")

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("calculated_emissions", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return v if v is not None else {}

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are stored in UTC."""
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v


# =============================================================================
# Accumulator models
# =============================================================================


class GasValues(BaseModel):
    """Canonical gas tuple (CO2-equivalent, CO2, CH4, N2O, uncertainty)."""
    CO2e: float = 0.0
    CO2: float = 0.0
    CH4: float = 0.0
    N2O: float = 0.0
    uncertainty: float = 0.0

    model_config = {"extra": "forbid"}

    def add(self, other: GasValues) -> None:
        """Add another tuple into this one in place."""
        self.CO2e += other.CO2e
        self.CO2 += other.CO2
        self.CH4 += other.CH4
        self.N2O += other.N2O
        self.uncertainty += other.uncertainty


class EmissionBucket(GasValues):
    """Gas totals with a contribution counter."""
    data_point_count: int = 0


def _empty_scope_buckets() -> Dict[str, EmissionBucket]:
    return {scope: EmissionBucket() for scope in SCOPE_TYPES}


class CategoryBucket(EmissionBucket):
    scope_type: Optional[str] = None
    activities: Dict[str, EmissionBucket] = Field(default_factory=dict)


class ActivityBucket(EmissionBucket):
    scope_type: Optional[str] = None
    category_name: Optional[str] = None


class NodeScopeLedger(BaseModel):
    """Per-node view of one scope identifier."""
    allocation_pct: float
    is_shared: bool
    CO2e: float = 0.0
    data_point_count: int = 0

    model_config = {"extra": "forbid"}


class NodeBucket(EmissionBucket):
    node_label: str
    department: str
    location: str
    scope_identifiers: Dict[str, NodeScopeLedger] = Field(default_factory=dict)
    by_scope: Dict[str, EmissionBucket] = Field(default_factory=_empty_scope_buckets)


class NodeAllocationLedger(BaseModel):
    """Per-identifier view of one node's allocated share."""
    node_label: str
    department: str
    location: str
    allocation_pct: float
    allocated_emissions: GasValues = Field(default_factory=GasValues)
    data_point_count: int = 0

    model_config = {"extra": "forbid"}


class NodeAllocation(BaseModel):
    """Finalized allocation row of a scope identifier breakdown."""
    node_id: str
    node_label: str
    department: str
    location: str
    allocation_pct: float
    allocated_emissions: GasValues
    data_point_count: int = 0

    model_config = {"extra": "forbid"}


class AllocatedEmissions(BaseModel):
    total_allocated_pct: float
    total: GasValues
    allocations: List[NodeAllocation] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class UnallocatedEmissions(BaseModel):
    unallocated_pct: float
    emissions: GasValues
    has_unallocated: bool

    model_config = {"extra": "forbid"}


class AllocationBreakdown(BaseModel):
    """Raw vs allocated vs unallocated emissions of one scope identifier."""
    raw_emissions: GasValues
    allocated_emissions: AllocatedEmissions
    unallocated_emissions: UnallocatedEmissions

    model_config = {"extra": "forbid"}


class ScopeIdentifierBucket(BaseModel):
    """Ledger of one scope identifier across every node that shares it."""
    scope_type: Optional[str] = None
    category_name: Optional[str] = None
    activity: Optional[str] = None
    is_shared: bool = False
    raw_emissions: GasValues = Field(default_factory=GasValues)
    total_co2e: float = 0.0
    total_allocated_pct: float = 0.0
    nodes: Dict[str, NodeAllocationLedger] = Field(default_factory=dict)
    data_point_count: int = 0
    total_emissions: Optional[GasValues] = None
    total_allocated_emissions: Optional[GasValues] = None
    allocation_breakdown: Optional[AllocationBreakdown] = None

    model_config = {"extra": "forbid"}


class InputTypeBucket(BaseModel):
    CO2e: float = 0.0
    data_point_count: int = 0

    model_config = {"extra": "forbid"}


def _empty_input_buckets() -> Dict[str, InputTypeBucket]:
    return {input_type: InputTypeBucket() for input_type in INPUT_TYPES}


class EmissionFactorBucket(EmissionBucket):
    scope_types: Dict[str, int] = Field(
        default_factory=lambda: {scope: 0 for scope in SCOPE_TYPES},
    )


class AllocationStats(BaseModel):
    """Statistics returned by the allocation breakdown finalizer."""
    total_scopes_processed: int = 0
    total_unallocated_scopes: int = 0
    total_fully_allocated_scopes: int = 0
    allocation_coverage_percent: float = 0.0

    model_config = {"extra": "forbid"}


# =============================================================================
# Allocation tooling models
# =============================================================================


class AllocationEntryRef(BaseModel):
    node_id: str
    node_label: str
    allocation_pct: float
    has_explicit_pct: bool = True

    model_config = {"extra": "forbid"}


class AllocationIssue(BaseModel):
    """One validation error or warning for a shared scope identifier."""
    scope_identifier: str
    type: str
    message: str
    current_sum: Optional[float] = None
    expected_sum: Optional[float] = None
    entries: List[AllocationEntryRef] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class AllocationValidationResult(BaseModel):
    is_valid: bool = True
    errors: List[AllocationIssue] = Field(default_factory=list)
    warnings: List[AllocationIssue] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class AllocationSummaryDetail(BaseModel):
    scope_identifier: str
    is_shared: bool
    node_count: int
    total_allocation: float
    is_valid: bool
    nodes: List[AllocationEntryRef] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class AllocationSummary(BaseModel):
    """Read-only overview of an allocation index."""
    total_scope_identifiers: int = 0
    shared_scope_identifiers: int = 0
    unique_scope_identifiers: int = 0
    scopes_missing_allocation: int = Field(
        default=0, description="Assignments whose allocation_pct defaulted to 100",
    )
    details: List[AllocationSummaryDetail] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class NodeAllocationPct(BaseModel):
    node_id: str
    allocation_pct: float

    model_config = {"extra": "forbid"}


class AutoDistributionResult(BaseModel):
    distributed: bool
    strategy: FixStrategy = FixStrategy.EQUAL
    node_count: int = 0
    allocations: List[NodeAllocationPct] = Field(default_factory=list)
    reason: Optional[str] = None

    model_config = {"extra": "forbid"}


# =============================================================================
# Summary models
# =============================================================================


class PeriodDescriptor(BaseModel):
    """Requested reporting period."""
    period_type: PeriodType = Field(..., alias="type")
    year: Optional[int] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    week: Optional[int] = Field(None, ge=1, le=53)
    day: Optional[int] = Field(None, ge=1, le=31)

    model_config = {"extra": "forbid", "populate_by_name": True}

    def cache_key(self, client_id: str) -> str:
        """Upsert key used by the summary materialization collaborator."""
        parts = [client_id, self.period_type.value]
        for value in (self.year, self.month, self.week, self.day):
            parts.append("" if value is None else str(value))
        return ":".join(parts)


class SummaryPeriod(PeriodDescriptor):
    """Period descriptor resolved to a closed date interval."""
    date: Optional[datetime] = None
    from_date: Optional[datetime] = Field(None, alias="from")
    to_date: Optional[datetime] = Field(None, alias="to")


class TrendData(BaseModel):
    value: float
    percentage: float
    direction: str

    model_config = {"extra": "forbid"}


class Trends(BaseModel):
    total_emissions_change: TrendData
    scope_changes: Dict[str, TrendData] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


class SummaryMetadata(BaseModel):
    total_data_points: int = 0
    data_entries_included: List[str] = Field(default_factory=list)
    entries_filtered: int = 0
    last_calculated: Optional[datetime] = None
    calculated_by: Optional[str] = None
    version: int = 1
    is_complete: bool = True
    has_errors: bool = False
    errors: List[str] = Field(default_factory=list)
    retriable: bool = Field(
        default=False, description="The failure was transient; retrying may succeed",
    )
    calculation_duration_ms: float = 0.0
    allocation_applied: bool = True
    shared_scope_identifiers: int = 0
    allocation_warnings: List[str] = Field(default_factory=list)
    allocation_stats: AllocationStats = Field(default_factory=AllocationStats)
    allocation_validation: Optional[AllocationValidationResult] = None
    reason: Optional[str] = None

    model_config = {"extra": "forbid"}


class EmissionSummary(BaseModel):
    """Allocation-correct, multi-dimensional emission summary for one period."""
    client_id: str
    period: SummaryPeriod
    total_emissions: GasValues = Field(default_factory=GasValues)
    by_scope: Dict[str, EmissionBucket] = Field(default_factory=_empty_scope_buckets)
    by_category: Dict[str, CategoryBucket] = Field(default_factory=dict)
    by_activity: Dict[str, ActivityBucket] = Field(default_factory=dict)
    by_node: Dict[str, NodeBucket] = Field(default_factory=dict)
    by_scope_identifier: Dict[str, ScopeIdentifierBucket] = Field(default_factory=dict)
    by_department: Dict[str, EmissionBucket] = Field(default_factory=dict)
    by_location: Dict[str, EmissionBucket] = Field(default_factory=dict)
    by_input_type: Dict[str, InputTypeBucket] = Field(default_factory=_empty_input_buckets)
    by_emission_factor: Dict[str, EmissionFactorBucket] = Field(default_factory=dict)
    trends: Optional[Trends] = None
    metadata: SummaryMetadata = Field(default_factory=SummaryMetadata)
    provenance_hash: str = Field(default="", description="SHA-256 of emission content")

    model_config = {"extra": "forbid"}

    def emission_content(self) -> Dict[str, Any]:
        """Everything that is a function of the inputs; excludes timestamps."""
        return self.model_dump(
            mode="json",
            exclude={
                "trends": True,
                "provenance_hash": True,
                "metadata": {"last_calculated", "calculation_duration_ms", "calculated_by"},
            },
        )


# =============================================================================
# Provenance models
# =============================================================================


class ComputationRecord(BaseModel):
    """Provenance log entry for one summary computation."""
    record_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    client_id: str
    period_key: str
    actor_id: Optional[str] = None
    result: str
    summary_hash: str = ""
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc).replace(microsecond=0),
    )
    provenance_hash: str = ""

    model_config = {"extra": "forbid"}


__all__ = [
    # Enumerations
    "ScopeType",
    "AssignmentStatus",
    "FixStrategy",
    "InputType",
    "PeriodType",
    "SCOPE_TYPES",
    "INPUT_TYPES",
    # Hierarchy
    "ScopeAssignment",
    "ProcessNode",
    "ProcessHierarchy",
    # Measurements
    "RawEmissionEntry",
    # Accumulators
    "GasValues",
    "EmissionBucket",
    "CategoryBucket",
    "ActivityBucket",
    "NodeScopeLedger",
    "NodeBucket",
    "NodeAllocationLedger",
    "NodeAllocation",
    "AllocatedEmissions",
    "UnallocatedEmissions",
    "AllocationBreakdown",
    "ScopeIdentifierBucket",
    "InputTypeBucket",
    "EmissionFactorBucket",
    "AllocationStats",
    # Allocation tooling
    "AllocationEntryRef",
    "AllocationIssue",
    "AllocationValidationResult",
    "AllocationSummaryDetail",
    "AllocationSummary",
    "NodeAllocationPct",
    "AutoDistributionResult",
    # Summary
    "PeriodDescriptor",
    "SummaryPeriod",
    "TrendData",
    "Trends",
    "SummaryMetadata",
    "EmissionSummary",
    # Provenance
    "ComputationRecord",
]
