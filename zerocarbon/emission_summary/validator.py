# -*- coding: utf-8 -*-
"""
Allocation Validator - Allocation-Aware Emission Aggregation

Checks percentage conservation of shared scope identifiers. A scope
identifier claimed by more than one node must have allocation percentages
summing to 100 (within a small tolerance). Violations are reported, never
corrected.

The validator is advisory: the aggregation engine computes summaries from
imbalanced hierarchies and surfaces the imbalance as an unallocated
remainder. Callers that must gate on it (hierarchy editors, strict mode,
the ``verify-allocations`` CLI) use ``is_valid`` or ``raise_for_result``.

Example:
    >>> from zerocarbon.emission_summary.validator import AllocationValidator
    >>> result = AllocationValidator().validate_allocations(hierarchy)
    >>> print(result.is_valid, [e.scope_identifier for e in result.errors])

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from zerocarbon.exceptions import AllocationValidationError
from zerocarbon.emission_summary.allocation import (
    DEFAULT_ALLOCATION_PCT,
    AllocationIndex,
    AllocationIndexEntry,
    AllocationOptions,
    HierarchyLike,
    build_allocation_index,
)
from zerocarbon.emission_summary.metrics import (
    record_allocation_issue,
    record_allocation_validation,
)
from zerocarbon.emission_summary.models import (
    AllocationEntryRef,
    AllocationIssue,
    AllocationValidationResult,
)

logger = logging.getLogger(__name__)

EXPECTED_SUM = 100.0

ALLOCATION_SUM_MISMATCH = "ALLOCATION_SUM_MISMATCH"
DEFAULT_ALLOCATION_IN_SHARED = "DEFAULT_ALLOCATION_IN_SHARED"


class AllocationValidator:
    """Validates allocation percentages of shared scope identifiers.

    Attributes:
        tolerance_pct: Allowed absolute deviation of a sum from 100.

    Example:
        >>> validator = AllocationValidator(tolerance_pct=0.01)
        >>> result = validator.validate_index(index)
        >>> assert result.is_valid
    """

    def __init__(self, tolerance_pct: float = 0.01) -> None:
        """Initialize AllocationValidator.

        Args:
            tolerance_pct: Allowed deviation from 100 for floating point noise.
        """
        self.tolerance_pct = tolerance_pct

    def validate_allocations(
        self,
        hierarchy: HierarchyLike,
        options: AllocationOptions = AllocationOptions(),
    ) -> AllocationValidationResult:
        """Build the allocation index of ``hierarchy`` and validate it.

        Args:
            hierarchy: Process hierarchy or node list.
            options: Inclusion of deleted and imported assignments.

        Returns:
            AllocationValidationResult with errors and warnings.
        """
        return self.validate_index(build_allocation_index(hierarchy, options))

    def validate_index(self, index: AllocationIndex) -> AllocationValidationResult:
        """Validate an already built allocation index.

        Args:
            index: Scope identifier → allocation entries.

        Returns:
            AllocationValidationResult with errors and warnings.
        """
        result = AllocationValidationResult()

        for sid, entries in index.items():
            if len(entries) <= 1:
                continue

            total_pct = sum(e.allocation_pct for e in entries)
            refs = [self._entry_ref(e) for e in entries]

            if abs(total_pct - EXPECTED_SUM) > self.tolerance_pct:
                result.is_valid = False
                result.errors.append(
                    AllocationIssue(
                        scope_identifier=sid,
                        type=ALLOCATION_SUM_MISMATCH,
                        current_sum=total_pct,
                        expected_sum=EXPECTED_SUM,
                        entries=refs,
                        message=(
                            f'Allocation for "{sid}" sums to {total_pct:.2f}%, '
                            f"expected 100%"
                        ),
                    )
                )
                record_allocation_issue(ALLOCATION_SUM_MISMATCH)

            if any(e.allocation_pct == DEFAULT_ALLOCATION_PCT for e in entries):
                result.warnings.append(
                    AllocationIssue(
                        scope_identifier=sid,
                        type=DEFAULT_ALLOCATION_IN_SHARED,
                        entries=refs,
                        message=(
                            f'Shared scopeIdentifier "{sid}" has default 100% '
                            f"allocation - may cause double counting"
                        ),
                    )
                )
                record_allocation_issue(DEFAULT_ALLOCATION_IN_SHARED)

        record_allocation_validation("pass" if result.is_valid else "fail")
        if not result.is_valid:
            logger.warning(
                "Allocation validation failed for %d scope identifier(s): %s",
                len(result.errors),
                ", ".join(e.scope_identifier for e in result.errors),
            )
        return result

    @staticmethod
    def raise_for_result(result: AllocationValidationResult) -> None:
        """Raise AllocationValidationError when ``result`` is invalid."""
        if result.is_valid:
            return
        raise AllocationValidationError(
            f"{len(result.errors)} shared scope identifier(s) do not sum to 100%",
            errors=[e.model_dump() for e in result.errors],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _entry_ref(entry: AllocationIndexEntry) -> AllocationEntryRef:
        return AllocationEntryRef(
            node_id=entry.node_id,
            node_label=entry.node_label,
            allocation_pct=entry.allocation_pct,
            has_explicit_pct=entry.has_explicit_pct,
        )


def format_validation_error(
    result: AllocationValidationResult,
) -> Optional[Dict[str, Any]]:
    """Format an invalid validation result as an API error payload.

    Returns:
        None when ``result`` is valid, otherwise a dict with code, message,
        counts, per-identifier errors and the warnings.
    """
    if result.is_valid:
        return None

    errors: List[Dict[str, Any]] = [
        {
            "scope_identifier": e.scope_identifier,
            "current_sum": e.current_sum,
            "message": e.message,
            "nodes": [ref.model_dump() for ref in e.entries],
        }
        for e in result.errors
    ]
    return {
        "code": "ALLOCATION_VALIDATION_FAILED",
        "message": "Allocation percentages are invalid",
        "error_count": len(result.errors),
        "warning_count": len(result.warnings),
        "errors": errors,
        "warnings": [w.model_dump() for w in result.warnings],
    }


__all__ = [
    "AllocationValidator",
    "format_validation_error",
    "ALLOCATION_SUM_MISMATCH",
    "DEFAULT_ALLOCATION_IN_SHARED",
]
