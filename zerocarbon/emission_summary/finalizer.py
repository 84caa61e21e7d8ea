# -*- coding: utf-8 -*-
"""
Allocation Breakdown Finalizer - Allocation-Aware Emission Aggregation

Post-processes the per scope identifier ledgers built by the aggregation
engine into reportable breakdowns: raw emissions, what was allocated to
each node, and the unallocated remainder left when a shared identifier's
percentages sum to less than 100.

This is the only place emission values are rounded. Accumulation runs at
full float precision; rounding to ``decimal_places`` (4 by default) happens
here, on the reportable breakdown values only.

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from zerocarbon.determinism import round_half_up
from zerocarbon.emission_summary.allocation import AllocationIndexEntry, apply_allocation
from zerocarbon.emission_summary.metrics import record_unallocated_scopes
from zerocarbon.emission_summary.models import (
    AllocatedEmissions,
    AllocationBreakdown,
    AllocationStats,
    GasValues,
    NodeAllocation,
    ScopeIdentifierBucket,
    UnallocatedEmissions,
)

logger = logging.getLogger(__name__)

# Unallocated shares at or below this percentage count as fully allocated.
UNALLOCATED_THRESHOLD_PCT = 0.01


def round_gas_values(values: GasValues, decimal_places: int) -> GasValues:
    """Return a copy of ``values`` with every gas rounded half-up."""
    return GasValues(
        CO2e=round_half_up(values.CO2e, decimal_places),
        CO2=round_half_up(values.CO2, decimal_places),
        CH4=round_half_up(values.CH4, decimal_places),
        N2O=round_half_up(values.N2O, decimal_places),
        uncertainty=round_half_up(values.uncertainty, decimal_places),
    )


def _unallocated_warning(sid: str, unallocated_pct: float, emissions: GasValues) -> str:
    return (
        f'ScopeIdentifier "{sid}" has {unallocated_pct:.2f}% unallocated emissions '
        f"(CO2e: {emissions.CO2e:.4f} tCO2e, CO2: {emissions.CO2:.4f}, "
        f"CH4: {emissions.CH4:.4f}, N2O: {emissions.N2O:.4f})"
    )


def finalize_allocation_breakdowns(
    by_scope_identifier: Dict[str, ScopeIdentifierBucket],
    allocation_warnings: List[str],
    decimal_places: int = 4,
) -> AllocationStats:
    """Attach an allocation breakdown to every scope identifier bucket.

    Args:
        by_scope_identifier: Ledgers built during aggregation; updated in place.
        allocation_warnings: Warning list to extend; duplicates are skipped.
        decimal_places: Precision of the reportable gas values.

    Returns:
        AllocationStats over all processed scope identifiers.
    """
    stats = AllocationStats()

    for sid, bucket in by_scope_identifier.items():
        stats.total_scopes_processed += 1

        total_allocated_pct = 0.0
        total_allocated = GasValues()
        allocations: List[NodeAllocation] = []

        for node_id, ledger in bucket.nodes.items():
            total_allocated_pct += ledger.allocation_pct
            total_allocated.add(ledger.allocated_emissions)
            allocations.append(
                NodeAllocation(
                    node_id=node_id,
                    node_label=ledger.node_label,
                    department=ledger.department,
                    location=ledger.location,
                    allocation_pct=ledger.allocation_pct,
                    allocated_emissions=round_gas_values(
                        ledger.allocated_emissions, decimal_places,
                    ),
                    data_point_count=ledger.data_point_count,
                )
            )

        unallocated_pct = max(0.0, 100.0 - total_allocated_pct)
        unallocated = apply_allocation(bucket.raw_emissions, unallocated_pct)
        has_unallocated = unallocated_pct > UNALLOCATED_THRESHOLD_PCT
        rounded_total_allocated = round_gas_values(total_allocated, decimal_places)

        bucket.total_emissions = round_gas_values(bucket.raw_emissions, decimal_places)
        bucket.total_allocated_emissions = rounded_total_allocated
        bucket.total_allocated_pct = round_half_up(total_allocated_pct, 2)
        bucket.allocation_breakdown = AllocationBreakdown(
            raw_emissions=round_gas_values(bucket.raw_emissions, decimal_places),
            allocated_emissions=AllocatedEmissions(
                total_allocated_pct=bucket.total_allocated_pct,
                total=rounded_total_allocated,
                allocations=allocations,
            ),
            unallocated_emissions=UnallocatedEmissions(
                unallocated_pct=round_half_up(unallocated_pct, 2),
                emissions=round_gas_values(unallocated, decimal_places),
                has_unallocated=has_unallocated,
            ),
        )

        if has_unallocated:
            stats.total_unallocated_scopes += 1
            warning = _unallocated_warning(sid, unallocated_pct, unallocated)
            if warning not in allocation_warnings:
                allocation_warnings.append(warning)
        else:
            stats.total_fully_allocated_scopes += 1

    if stats.total_scopes_processed:
        stats.allocation_coverage_percent = round_half_up(
            stats.total_fully_allocated_scopes / stats.total_scopes_processed * 100, 2,
        )

    record_unallocated_scopes(stats.total_unallocated_scopes)
    logger.debug(
        "Finalized %d scope identifiers: %d fully allocated, %d with remainder",
        stats.total_scopes_processed,
        stats.total_fully_allocated_scopes,
        stats.total_unallocated_scopes,
    )
    return stats


def build_allocation_breakdown(
    entries: Sequence[AllocationIndexEntry],
    raw_emissions: GasValues,
    decimal_places: int = 4,
) -> AllocationBreakdown:
    """Preview how ``raw_emissions`` of one identifier would be split.

    Args:
        entries: Allocation index entries of one scope identifier.
        raw_emissions: Emissions measured at that identifier.
        decimal_places: Precision of the reportable gas values.

    Returns:
        AllocationBreakdown with per-node and unallocated shares.
    """
    total_allocated_pct = sum(e.allocation_pct for e in entries)
    allocations = [
        NodeAllocation(
            node_id=e.node_id,
            node_label=e.node_label,
            department=e.department,
            location=e.location,
            allocation_pct=e.allocation_pct,
            allocated_emissions=round_gas_values(
                apply_allocation(raw_emissions, e.allocation_pct), decimal_places,
            ),
        )
        for e in entries
    ]
    total_allocated = apply_allocation(raw_emissions, total_allocated_pct)
    unallocated_pct = max(0.0, 100.0 - total_allocated_pct)

    return AllocationBreakdown(
        raw_emissions=round_gas_values(raw_emissions, decimal_places),
        allocated_emissions=AllocatedEmissions(
            total_allocated_pct=round_half_up(total_allocated_pct, 2),
            total=round_gas_values(total_allocated, decimal_places),
            allocations=allocations,
        ),
        unallocated_emissions=UnallocatedEmissions(
            unallocated_pct=round_half_up(unallocated_pct, 2),
            emissions=round_gas_values(
                apply_allocation(raw_emissions, unallocated_pct), decimal_places,
            ),
            has_unallocated=unallocated_pct > UNALLOCATED_THRESHOLD_PCT,
        ),
    )


__all__ = [
    "UNALLOCATED_THRESHOLD_PCT",
    "round_gas_values",
    "finalize_allocation_breakdowns",
    "build_allocation_breakdown",
]
