# -*- coding: utf-8 -*-
"""
Aggregation Engine - Allocation-Aware Emission Aggregation

Computes the multi-dimensional, allocation-correct emission summary of one
client for one reporting period.

Pipeline per invocation:
    1. Fetch the active process hierarchy (absent or empty → zero summary)
    2. Build the allocation index (deleted and, by default, imported
       assignments excluded; empty → zero summary)
    3. Resolve the period to a closed UTC interval
    4. Fetch the raw entries of the interval, keeping processed ones
    5. Per entry: match its scope identifier, extract raw gas values
    6. Per matching node: apply the allocation percentage and accumulate
       every breakdown dimension
    7. Count shared scope identifiers once each
    8. Track included entry ids and included/filtered counts
    then finalize the per-identifier allocation breakdowns.

The hierarchy and entry fetches are independent and are issued concurrently
when ``parallel_fetch`` is enabled; both complete before accumulation.

``compute_summary`` never raises. Failures yield a zero-shaped summary with
``metadata.has_errors`` set; callers inspect metadata instead of catching.

Example:
    >>> engine = EmissionAggregationEngine(hierarchy_store, measurement_store)
    >>> summary = engine.compute_summary(
    ...     "ZC-001", PeriodDescriptor(type="monthly", year=2024, month=3), "analyst_1",
    ... )
    >>> summary.by_scope_identifier["elec-01"].nodes["A"].allocated_emissions.CO2e
    60.0

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Set, Tuple

from zerocarbon.determinism import DeterministicClock
from zerocarbon.exceptions import (
    AllocationValidationError,
    format_exception_chain,
    is_retriable,
)
from zerocarbon.emission_summary.allocation import (
    AllocationIndex,
    AllocationIndexEntry,
    AllocationOptions,
    apply_allocation,
    build_allocation_index,
    normalize_scope_identifier,
)
from zerocarbon.emission_summary.config import EmissionSummaryConfig, get_config
from zerocarbon.emission_summary.extractor import extract_emission_values
from zerocarbon.emission_summary.finalizer import finalize_allocation_breakdowns
from zerocarbon.emission_summary.metrics import (
    record_computation,
    record_entries,
    record_shared_scope_identifiers,
)
from zerocarbon.emission_summary.models import (
    ActivityBucket,
    AllocationValidationResult,
    CategoryBucket,
    EmissionBucket,
    EmissionFactorBucket,
    EmissionSummary,
    GasValues,
    NodeAllocationLedger,
    NodeBucket,
    NodeScopeLedger,
    PeriodDescriptor,
    ProcessHierarchy,
    RawEmissionEntry,
    ScopeIdentifierBucket,
    SummaryMetadata,
    SummaryPeriod,
)
from zerocarbon.emission_summary.periods import build_date_range
from zerocarbon.emission_summary.provenance import ProvenanceTracker, summary_content_hash
from zerocarbon.emission_summary.stores import HierarchyStore, MeasurementStore
from zerocarbon.emission_summary.validator import AllocationValidator

logger = logging.getLogger(__name__)

PROCESSED_STATUS = "processed"

REASON_NO_HIERARCHY = "No active process hierarchy found"
REASON_NO_SCOPES = "No valid scopes in process hierarchy"

UNKNOWN_SCOPE_TYPE = "Unknown"
UNKNOWN_CATEGORY = "Unknown Category"
UNKNOWN_EMISSION_FACTOR = "Unknown"


class _AggregationRun:
    """Accumulators of a single compute_summary invocation."""

    def __init__(self, summary: EmissionSummary, negligible_threshold: float) -> None:
        self.summary = summary
        self.negligible_threshold = negligible_threshold
        self.included = 0
        self.filtered = 0
        self.empty = 0
        self.included_ids: Set[str] = set()
        self.shared_sids: Set[str] = set()

    def add_entry(self, entry: RawEmissionEntry, index: AllocationIndex) -> None:
        sid = normalize_scope_identifier(entry.scope_identifier)
        matches = index.get(sid) if sid else None
        if not matches:
            self.filtered += 1
            return

        raw = extract_emission_values(entry.calculated_emissions)
        if raw.CO2e == 0:
            self.empty += 1
            return

        first = matches[0]
        scope_type = entry.scope_type or first.scope_type or UNKNOWN_SCOPE_TYPE
        is_shared = len(matches) > 1
        if is_shared and sid not in self.shared_sids:
            self.shared_sids.add(sid)
            self.summary.metadata.shared_scope_identifiers += 1

        sid_bucket: Optional[ScopeIdentifierBucket] = None
        for match in matches:
            allocated = apply_allocation(raw, match.allocation_pct)
            if allocated.CO2e < self.negligible_threshold:
                continue
            # Raw emissions are only booked once a node actually receives a share.
            if sid_bucket is None:
                sid_bucket = self._scope_identifier_bucket(sid, scope_type, first, is_shared, raw)
            self.included += 1
            self._accumulate(entry, sid, scope_type, is_shared, match, allocated, sid_bucket)

        if entry.id not in self.included_ids:
            self.included_ids.add(entry.id)
            self.summary.metadata.data_entries_included.append(entry.id)

    def _scope_identifier_bucket(
        self,
        sid: str,
        scope_type: str,
        first: AllocationIndexEntry,
        is_shared: bool,
        raw: GasValues,
    ) -> ScopeIdentifierBucket:
        sid_bucket = self.summary.by_scope_identifier.get(sid)
        if sid_bucket is None:
            sid_bucket = ScopeIdentifierBucket(
                scope_type=scope_type,
                category_name=first.category_name or UNKNOWN_CATEGORY,
                activity=first.activity or sid,
                is_shared=is_shared,
            )
            self.summary.by_scope_identifier[sid] = sid_bucket
        sid_bucket.raw_emissions.add(raw)
        sid_bucket.data_point_count += 1
        return sid_bucket

    def _accumulate(
        self,
        entry: RawEmissionEntry,
        sid: str,
        scope_type: str,
        is_shared: bool,
        match: AllocationIndexEntry,
        allocated: GasValues,
        sid_bucket: ScopeIdentifierBucket,
    ) -> None:
        summary = self.summary
        category_name = match.category_name or UNKNOWN_CATEGORY
        activity = match.activity or sid

        summary.total_emissions.add(allocated)

        scope_bucket = summary.by_scope.get(scope_type)
        if scope_bucket is not None:
            scope_bucket.add(allocated)
            scope_bucket.data_point_count += 1

        category = summary.by_category.get(category_name)
        if category is None:
            category = summary.by_category[category_name] = CategoryBucket(scope_type=scope_type)
        category.add(allocated)
        category.activities.setdefault(activity, EmissionBucket()).add(allocated)

        activity_bucket = summary.by_activity.get(activity)
        if activity_bucket is None:
            activity_bucket = summary.by_activity[activity] = ActivityBucket(
                scope_type=scope_type, category_name=category_name,
            )
        activity_bucket.add(allocated)

        node = summary.by_node.get(match.node_id)
        if node is None:
            node = summary.by_node[match.node_id] = NodeBucket(
                node_label=match.node_label,
                department=match.department,
                location=match.location,
            )
        node.add(allocated)
        node_scope = node.by_scope.get(scope_type)
        if node_scope is not None:
            node_scope.add(allocated)
            node_scope.data_point_count += 1
        node_sid = node.scope_identifiers.get(sid)
        if node_sid is None:
            node_sid = node.scope_identifiers[sid] = NodeScopeLedger(
                allocation_pct=match.allocation_pct, is_shared=is_shared,
            )
        node_sid.CO2e += allocated.CO2e
        node_sid.data_point_count += 1

        ledger = sid_bucket.nodes.get(match.node_id)
        if ledger is None:
            ledger = sid_bucket.nodes[match.node_id] = NodeAllocationLedger(
                node_label=match.node_label,
                department=match.department,
                location=match.location,
                allocation_pct=match.allocation_pct,
            )
        ledger.allocated_emissions.add(allocated)
        ledger.data_point_count += 1
        sid_bucket.total_co2e += allocated.CO2e

        summary.by_department.setdefault(match.department, EmissionBucket()).add(allocated)
        summary.by_location.setdefault(match.location, EmissionBucket()).add(allocated)

        input_bucket = summary.by_input_type.get(entry.input_type or "")
        if input_bucket is not None:
            input_bucket.CO2e += allocated.CO2e
            input_bucket.data_point_count += 1

        factor_key = entry.emission_factor_id or UNKNOWN_EMISSION_FACTOR
        factor = summary.by_emission_factor.get(factor_key)
        if factor is None:
            factor = summary.by_emission_factor[factor_key] = EmissionFactorBucket()
        factor.add(allocated)
        factor.scope_types[scope_type] = factor.scope_types.get(scope_type, 0) + 1


class EmissionAggregationEngine:
    """Computes allocation-correct emission summaries.

    The engine holds no per-computation state; concurrent invocations for
    different clients or periods are independent.

    Attributes:
        hierarchy_store: Source of active process hierarchies.
        measurement_store: Source of raw emission entries.
        config: Engine configuration.
        validator: Allocation validator used for the metadata snapshot and
            strict gating.
        provenance: Computation audit trail, or None when disabled.
    """

    def __init__(
        self,
        hierarchy_store: HierarchyStore,
        measurement_store: MeasurementStore,
        config: Optional[EmissionSummaryConfig] = None,
        validator: Optional[AllocationValidator] = None,
        provenance: Optional[ProvenanceTracker] = None,
    ) -> None:
        self.hierarchy_store = hierarchy_store
        self.measurement_store = measurement_store
        self.config = config or get_config()
        self.validator = validator or AllocationValidator(
            tolerance_pct=self.config.allocation_tolerance_pct,
        )
        if provenance is None and self.config.enable_provenance:
            provenance = ProvenanceTracker()
        self.provenance = provenance

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute_summary(
        self,
        client_id: str,
        period: PeriodDescriptor,
        actor_id: Optional[str] = None,
    ) -> EmissionSummary:
        """Compute the emission summary of ``client_id`` for ``period``.

        Args:
            client_id: Client whose hierarchy and entries are aggregated.
            period: Reporting period descriptor.
            actor_id: Who requested the computation (recorded in metadata).

        Returns:
            EmissionSummary. Never raises; failures are reported through
            ``metadata.has_errors`` and ``metadata.errors``.
        """
        started = time.perf_counter()
        try:
            summary, outcome = self._compute(client_id, period, actor_id, started)
        except Exception as exc:
            logger.error(
                "Emission summary computation failed for client %s (%s):\n%s",
                client_id, period.period_type.value, format_exception_chain(exc),
                exc_info=True,
            )
            summary = self._error_summary(client_id, period, actor_id, exc, started)
            outcome = "error"

        summary.provenance_hash = summary_content_hash(summary)
        record_computation(period.period_type.value, outcome, time.perf_counter() - started)
        if self.provenance is not None:
            self.provenance.record_computation(
                client_id=client_id,
                period_key=period.cache_key(client_id),
                actor_id=actor_id,
                result=outcome,
                summary_hash=summary.provenance_hash,
            )
        return summary

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _compute(
        self,
        client_id: str,
        period: PeriodDescriptor,
        actor_id: Optional[str],
        started: float,
    ) -> Tuple[EmissionSummary, str]:
        date_from, date_to = build_date_range(period)
        hierarchy, entries = self._fetch(client_id, date_from, date_to)

        summary_period = self._summary_period(period, date_from, date_to)

        if hierarchy is None or not hierarchy.nodes:
            logger.info("No active hierarchy for client %s; returning zero summary", client_id)
            return (
                self._empty_summary(client_id, summary_period, actor_id, REASON_NO_HIERARCHY, started),
                "empty",
            )

        index = build_allocation_index(
            hierarchy,
            AllocationOptions(include_imported=self.config.include_imported),
        )
        if not index:
            logger.info("Hierarchy of client %s has no valid scopes; returning zero summary", client_id)
            return (
                self._empty_summary(client_id, summary_period, actor_id, REASON_NO_SCOPES, started),
                "empty",
            )

        validation = self.validator.validate_index(index)
        if self.config.strict_allocation:
            try:
                self.validator.raise_for_result(validation)
            except AllocationValidationError as exc:
                logger.warning(
                    "Strict allocation: refusing to compute summary for client %s: %s",
                    client_id, exc,
                )
                return (
                    self._error_summary(client_id, period, actor_id, exc, started, validation),
                    "error",
                )

        summary = EmissionSummary(
            client_id=client_id,
            period=summary_period,
            metadata=SummaryMetadata(
                calculated_by=actor_id,
                allocation_validation=validation,
            ),
        )
        run = _AggregationRun(summary, self.config.negligible_threshold)

        processed = [e for e in entries if e.processing_status == PROCESSED_STATUS]
        for entry in processed:
            run.add_entry(entry, index)

        metadata = summary.metadata
        metadata.allocation_stats = finalize_allocation_breakdowns(
            summary.by_scope_identifier,
            metadata.allocation_warnings,
            self.config.rounding_decimals,
        )
        metadata.total_data_points = run.included
        metadata.entries_filtered = run.filtered
        metadata.last_calculated = DeterministicClock.utcnow()
        metadata.calculation_duration_ms = (time.perf_counter() - started) * 1000

        record_entries("included", len(run.included_ids))
        record_entries("filtered", run.filtered)
        record_entries("empty", run.empty)
        record_entries("unprocessed", len(entries) - len(processed))
        record_shared_scope_identifiers(metadata.shared_scope_identifiers)

        logger.info(
            "Computed %s summary for client %s: %d contributions, %d filtered, "
            "%d shared scope identifiers, %.4f tCO2e",
            period.period_type.value, client_id, run.included, run.filtered,
            metadata.shared_scope_identifiers, summary.total_emissions.CO2e,
        )
        return summary, "success"

    def _fetch(
        self,
        client_id: str,
        date_from: datetime,
        date_to: datetime,
    ) -> Tuple[Optional[ProcessHierarchy], List[RawEmissionEntry]]:
        if not self.config.parallel_fetch:
            hierarchy = self.hierarchy_store.get_active_hierarchy(client_id)
            entries = self.measurement_store.query_entries(client_id, date_from, date_to)
            return hierarchy, list(entries)

        with ThreadPoolExecutor(max_workers=self.config.fetch_workers) as executor:
            hierarchy_future = executor.submit(
                self.hierarchy_store.get_active_hierarchy, client_id,
            )
            entries_future = executor.submit(
                self.measurement_store.query_entries, client_id, date_from, date_to,
            )
            return hierarchy_future.result(), list(entries_future.result())

    # ------------------------------------------------------------------
    # Summary shapes
    # ------------------------------------------------------------------

    @staticmethod
    def _summary_period(
        period: PeriodDescriptor,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ) -> SummaryPeriod:
        return SummaryPeriod(
            type=period.period_type,
            year=period.year,
            month=period.month,
            week=period.week,
            day=period.day,
            date=date_from,
            from_date=date_from,
            to_date=date_to,
        )

    def _empty_summary(
        self,
        client_id: str,
        period: SummaryPeriod,
        actor_id: Optional[str],
        reason: str,
        started: float,
    ) -> EmissionSummary:
        return EmissionSummary(
            client_id=client_id,
            period=period,
            metadata=SummaryMetadata(
                calculated_by=actor_id,
                last_calculated=DeterministicClock.utcnow(),
                calculation_duration_ms=(time.perf_counter() - started) * 1000,
                reason=reason,
            ),
        )

    def _error_summary(
        self,
        client_id: str,
        period: PeriodDescriptor,
        actor_id: Optional[str],
        exc: Exception,
        started: float,
        validation: Optional[AllocationValidationResult] = None,
    ) -> EmissionSummary:
        return EmissionSummary(
            client_id=client_id,
            period=self._summary_period(period, None, None),
            metadata=SummaryMetadata(
                calculated_by=actor_id,
                last_calculated=DeterministicClock.utcnow(),
                calculation_duration_ms=(time.perf_counter() - started) * 1000,
                is_complete=False,
                has_errors=True,
                errors=[str(exc) or type(exc).__name__],
                retriable=is_retriable(exc),
                allocation_applied=False,
                allocation_validation=validation,
            ),
        )


__all__ = [
    "EmissionAggregationEngine",
    "PROCESSED_STATUS",
    "REASON_NO_HIERARCHY",
    "REASON_NO_SCOPES",
]
