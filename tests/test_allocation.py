"""Tests for the allocation index, allocation application and auto-distribution.

Author: ZeroCarbon Platform Team
Date: October 2026
"""

import pytest

from zerocarbon.emission_summary.allocation import (
    DEFAULT_ALLOCATION_PCT,
    AllocationOptions,
    apply_allocation,
    auto_distribute_allocation,
    build_allocation_index,
    effective_allocation_pct,
    get_allocation_summary,
    is_status_included,
    normalize_scope_identifier,
    redistribute_allocation,
)
from zerocarbon.emission_summary.models import (
    AssignmentStatus,
    FixStrategy,
    GasValues,
    ProcessHierarchy,
    ScopeAssignment,
)


# ==============================================================================
# Index builder
# ==============================================================================

class TestBuildAllocationIndex:
    """Tests for build_allocation_index."""

    def test_shared_identifier_lists_every_node(self, shared_hierarchy):
        index = build_allocation_index(shared_hierarchy)

        assert list(index) == ["elec-01"]
        assert [e.node_id for e in index["elec-01"]] == ["A", "B"]
        assert [e.allocation_pct for e in index["elec-01"]] == [60.0, 40.0]

    def test_entry_carries_node_metadata(self, shared_hierarchy):
        entry = build_allocation_index(shared_hierarchy)["elec-01"][1]

        assert entry.node_label == "Node B"
        assert entry.department == "Finance"
        assert entry.location == "HQ"
        assert entry.scope_type == "Scope 2"
        assert entry.category_name == "Purchased Electricity"
        assert entry.activity == "Grid electricity"

    def test_missing_allocation_defaults_to_100(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[make_node("A", [{"scope_identifier": "gas-01"}])])

        index = build_allocation_index(hierarchy)

        assert index["gas-01"][0].allocation_pct == DEFAULT_ALLOCATION_PCT

    def test_explicit_100_is_distinguished_from_default(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [{"scope_identifier": "gas-01", "allocation_pct": 100}]),
            make_node("B", [{"scope_identifier": "gas-01"}]),
        ])

        entries = build_allocation_index(hierarchy)["gas-01"]

        assert [e.allocation_pct for e in entries] == [100.0, 100.0]
        assert [e.has_explicit_pct for e in entries] == [True, False]

    def test_identifiers_are_trimmed_and_empty_skipped(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [
                {"scope_identifier": "  diesel-01 "},
                {"scope_identifier": "   "},
                {"scope_identifier": None},
            ]),
        ])

        index = build_allocation_index(hierarchy)

        assert list(index) == ["diesel-01"]

    def test_deleted_and_imported_excluded_by_default(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [
                {"scope_identifier": "a", "status": "deleted"},
                {"scope_identifier": "b", "status": "imported"},
                {"scope_identifier": "c"},
            ]),
        ])

        assert list(build_allocation_index(hierarchy)) == ["c"]

    def test_options_include_deleted_and_imported(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [
                {"scope_identifier": "a", "status": "deleted"},
                {"scope_identifier": "b", "status": "imported"},
            ]),
        ])

        index = build_allocation_index(
            hierarchy, AllocationOptions(include_imported=True, include_deleted=True),
        )

        assert sorted(index) == ["a", "b"]
        assert index["a"][0].status is AssignmentStatus.DELETED

    def test_deleted_nodes_are_skipped(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [{"scope_identifier": "x"}], is_deleted=True),
            make_node("B", [{"scope_identifier": "x"}]),
        ])

        index = build_allocation_index(hierarchy)

        assert [e.node_id for e in index["x"]] == ["B"]

    def test_accepts_node_list_and_none(self, shared_hierarchy):
        assert build_allocation_index(shared_hierarchy.nodes).keys() == {"elec-01"}
        assert build_allocation_index(None) == {}

    def test_legacy_document_shape(self):
        hierarchy = ProcessHierarchy.model_validate({
            "clientId": "ZC-001",
            "nodes": [
                {
                    "id": 7,
                    "label": "",
                    "details": {
                        "department": "Ops",
                        "scopeDetails": [
                            {"scopeIdentifier": "boiler", "scopeType": "Scope 1",
                             "allocationPct": 50},
                            {"scopeIdentifier": "old", "isDeleted": True},
                            {"scopeIdentifier": "foreign", "fromOtherChart": True},
                        ],
                    },
                },
            ],
        })

        index = build_allocation_index(hierarchy)

        assert list(index) == ["boiler"]
        entry = index["boiler"][0]
        assert entry.node_id == "7"
        assert entry.node_label == "Unknown Node"
        assert entry.department == "Ops"
        assert entry.location == "Unknown"
        assert entry.allocation_pct == 50.0


class TestHelpers:
    """Tests for small allocation helpers."""

    def test_normalize_scope_identifier(self):
        assert normalize_scope_identifier(" a ") == "a"
        assert normalize_scope_identifier(42) == ""
        assert normalize_scope_identifier(None) == ""

    def test_effective_allocation_pct(self):
        assert effective_allocation_pct(None) == 100.0
        assert effective_allocation_pct(ScopeAssignment(scope_identifier="x")) == 100.0
        assert effective_allocation_pct(
            ScopeAssignment(scope_identifier="x", allocation_pct=0),
        ) == 0.0

    @pytest.mark.parametrize("status,options,expected", [
        (AssignmentStatus.ACTIVE, AllocationOptions(), True),
        (AssignmentStatus.DELETED, AllocationOptions(), False),
        (AssignmentStatus.DELETED, AllocationOptions(include_deleted=True), True),
        (AssignmentStatus.IMPORTED, AllocationOptions(), False),
        (AssignmentStatus.IMPORTED, AllocationOptions(include_imported=True), True),
    ])
    def test_is_status_included(self, status, options, expected):
        assert is_status_included(status, options) is expected

    def test_allocation_pct_out_of_range_is_rejected(self):
        with pytest.raises(ValueError):
            ScopeAssignment(scope_identifier="x", allocation_pct=120)

    @pytest.mark.parametrize("status", [
        "imported-from-other-hierarchy",
        "Imported-From-Other-Hierarchy",
        "imported_from_other_hierarchy",
    ])
    def test_long_form_imported_status(self, status, make_node):
        assignment = ScopeAssignment.model_validate({"scopeIdentifier": "x", "status": status})

        assert assignment.status is AssignmentStatus.IMPORTED
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [{"scope_identifier": "x", "status": status}]),
        ])
        assert build_allocation_index(hierarchy) == {}


# ==============================================================================
# Allocation application
# ==============================================================================

class TestApplyAllocation:
    """Tests for apply_allocation."""

    def test_scales_every_gas(self):
        values = GasValues(CO2e=100, CO2=90, CH4=2, N2O=1, uncertainty=5)

        result = apply_allocation(values, 25)

        assert result == GasValues(CO2e=25, CO2=22.5, CH4=0.5, N2O=0.25, uncertainty=1.25)

    def test_none_means_100(self):
        values = GasValues(CO2e=12.3456789)
        assert apply_allocation(values, None).CO2e == 12.3456789

    def test_zero_means_zero(self):
        assert apply_allocation(GasValues(CO2e=50), 0).CO2e == 0.0

    def test_no_rounding(self):
        assert apply_allocation(GasValues(CO2e=1.0), 33.33333).CO2e == pytest.approx(0.3333333)

    def test_input_is_not_mutated(self):
        values = GasValues(CO2e=10)
        apply_allocation(values, 50)
        assert values.CO2e == 10


# ==============================================================================
# Allocation summary
# ==============================================================================

class TestGetAllocationSummary:
    """Tests for get_allocation_summary."""

    def test_counts_shared_and_unique(self, shared_hierarchy, make_node):
        shared_hierarchy.nodes.append(make_node("C", [{"scope_identifier": "gas-01"}]))

        summary = get_allocation_summary(build_allocation_index(shared_hierarchy))

        assert summary.total_scope_identifiers == 2
        assert summary.shared_scope_identifiers == 1
        assert summary.unique_scope_identifiers == 1

    def test_detail_validity(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [{"scope_identifier": "x", "allocation_pct": 50}]),
            make_node("B", [{"scope_identifier": "x", "allocation_pct": 30}]),
        ])

        detail = get_allocation_summary(build_allocation_index(hierarchy)).details[0]

        assert detail.is_shared is True
        assert detail.node_count == 2
        assert detail.total_allocation == 80.0
        assert detail.is_valid is False
        assert [n.node_id for n in detail.nodes] == ["A", "B"]

    def test_counts_assignments_missing_allocation(self, shared_hierarchy, make_node):
        shared_hierarchy.nodes.append(make_node("C", [{"scope_identifier": "gas-01"}]))
        shared_hierarchy.nodes.append(make_node("D", [{"scope_identifier": "oil-01"}]))

        summary = get_allocation_summary(build_allocation_index(shared_hierarchy))

        assert summary.scopes_missing_allocation == 2
        assert summary.details[0].nodes[0].has_explicit_pct is True
        assert summary.details[1].nodes[0].has_explicit_pct is False


# ==============================================================================
# Auto-distribution
# ==============================================================================

class TestAutoDistributeAllocation:
    """Tests for auto_distribute_allocation."""

    def test_three_way_split_sums_to_exactly_100(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node(node_id, [{"scope_identifier": "steam"}])
            for node_id in ("A", "B", "C")
        ])

        result = auto_distribute_allocation(hierarchy, "steam")

        assert result.distributed is True
        assert result.node_count == 3
        assert [a.allocation_pct for a in result.allocations] == [33.33, 33.33, 33.34]
        pcts = [n.scope_assignments[0].allocation_pct for n in hierarchy.nodes]
        assert pcts == [33.33, 33.33, 33.34]
        assert sum(pcts) == pytest.approx(100.0, abs=1e-9)

    def test_seven_way_split(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node(str(i), [{"scope_identifier": "steam"}]) for i in range(7)
        ])

        result = auto_distribute_allocation(hierarchy, "steam")

        pcts = [a.allocation_pct for a in result.allocations]
        assert pcts[:-1] == [14.28] * 6
        assert pcts[-1] == pytest.approx(14.32)

    def test_not_shared_is_noop(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [{"scope_identifier": "solo", "allocation_pct": 70}]),
        ])

        result = auto_distribute_allocation(hierarchy, "solo")

        assert result.distributed is False
        assert result.reason == "Not a shared scopeIdentifier"
        assert hierarchy.nodes[0].scope_assignments[0].allocation_pct == 70

    def test_ignores_deleted_and_imported_assignments(self, make_node):
        hierarchy = ProcessHierarchy(nodes=[
            make_node("A", [{"scope_identifier": "x", "allocation_pct": 10}]),
            make_node("B", [{"scope_identifier": "x", "allocation_pct": 10}]),
            make_node("C", [{"scope_identifier": "x", "status": "imported",
                             "allocation_pct": 10}]),
            make_node("D", [{"scope_identifier": "x"}], is_deleted=True),
        ])

        result = auto_distribute_allocation(hierarchy, "x")

        assert result.node_count == 2
        assert [a.node_id for a in result.allocations] == ["A", "B"]
        assert hierarchy.nodes[2].scope_assignments[0].allocation_pct == 10


class TestRedistributeAllocation:
    """Tests for the equal, proportional and first-100 strategies."""

    @staticmethod
    def _shared(make_node, *pcts):
        return ProcessHierarchy(nodes=[
            make_node(chr(ord("A") + i), [{"scope_identifier": "x", "allocation_pct": pct}])
            for i, pct in enumerate(pcts)
        ])

    def test_proportional_scales_to_100(self, make_node):
        hierarchy = self._shared(make_node, 50, 30)

        result = redistribute_allocation(hierarchy, "x", FixStrategy.PROPORTIONAL)

        assert result.distributed is True
        assert result.strategy is FixStrategy.PROPORTIONAL
        assert [a.allocation_pct for a in result.allocations] == [62.5, 37.5]
        assert [n.scope_assignments[0].allocation_pct for n in hierarchy.nodes] == [62.5, 37.5]

    def test_proportional_rounding_drift_goes_to_last(self, make_node):
        hierarchy = self._shared(make_node, 10, 10, 10)

        result = redistribute_allocation(hierarchy, "x", "proportional")

        assert [a.allocation_pct for a in result.allocations] == [33.33, 33.33, 33.34]

    def test_proportional_with_zero_total_splits_equally(self, make_node):
        hierarchy = self._shared(make_node, 0, 0)

        result = redistribute_allocation(hierarchy, "x", FixStrategy.PROPORTIONAL)

        assert [a.allocation_pct for a in result.allocations] == [50.0, 50.0]

    def test_first_100(self, make_node):
        hierarchy = self._shared(make_node, 70, 70, 70)

        result = redistribute_allocation(hierarchy, "x", FixStrategy.FIRST_100)

        assert [a.allocation_pct for a in result.allocations] == [100.0, 0.0, 0.0]

    def test_equal_is_the_default(self, make_node):
        hierarchy = self._shared(make_node, 70, 70)

        result = redistribute_allocation(hierarchy, "x")

        assert result.strategy is FixStrategy.EQUAL
        assert [a.allocation_pct for a in result.allocations] == [50.0, 50.0]

    def test_unknown_strategy_raises(self, make_node):
        with pytest.raises(ValueError):
            redistribute_allocation(self._shared(make_node, 70, 70), "x", "largest")
