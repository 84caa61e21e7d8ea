# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from zerocarbon.determinism import DeterministicClock
from zerocarbon.emission_summary.config import EmissionSummaryConfig, reset_config
from zerocarbon.emission_summary.engine import EmissionAggregationEngine
from zerocarbon.emission_summary.models import (
    PeriodDescriptor,
    ProcessHierarchy,
    ProcessNode,
    RawEmissionEntry,
)
from zerocarbon.emission_summary.setup import reset_emission_summary_service
from zerocarbon.emission_summary.stores import (
    InMemoryHierarchyStore,
    InMemoryMeasurementStore,
)

CLIENT_ID = "ZC-001"
MARCH_2024 = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_global_state():
    """Reset config, service singleton and clock between tests."""
    reset_config()
    reset_emission_summary_service()
    DeterministicClock.unfreeze()
    yield
    reset_config()
    reset_emission_summary_service()
    DeterministicClock.unfreeze()


@pytest.fixture
def frozen_clock():
    """Freeze the deterministic clock at 2024-04-01T00:00:00Z."""
    frozen_at = datetime(2024, 4, 1, tzinfo=timezone.utc)
    with DeterministicClock.frozen(frozen_at):
        yield frozen_at


@pytest.fixture
def make_node():
    """Factory for process nodes with scope assignments."""

    def _make(
        node_id: str,
        assignments: List[Dict[str, Any]],
        label: Optional[str] = None,
        department: str = "Operations",
        location: str = "Plant 1",
        **extra: Any,
    ) -> ProcessNode:
        return ProcessNode(
            id=node_id,
            label=label or f"Node {node_id}",
            department=department,
            location=location,
            scope_assignments=assignments,
            **extra,
        )

    return _make


@pytest.fixture
def make_entry():
    """Factory for processed raw emission entries."""
    counter = {"n": 0}

    def _make(
        scope_identifier: str,
        co2e: float = 100.0,
        co2: float = 0.0,
        ch4: float = 0.0,
        n2o: float = 0.0,
        timestamp: datetime = MARCH_2024,
        entry_id: Optional[str] = None,
        **extra: Any,
    ) -> RawEmissionEntry:
        counter["n"] += 1
        fields: Dict[str, Any] = {
            "id": entry_id or f"entry-{counter['n']}",
            "timestamp": timestamp,
            "scope_identifier": scope_identifier,
            "scope_type": "Scope 2",
            "input_type": "manual",
            "emission_factor_id": "grid-2024",
            "calculated_emissions": {
                "incoming": {
                    "electricity": {"CO2e": co2e, "CO2": co2, "CH4": ch4, "N2O": n2o},
                },
            },
            "processing_status": "processed",
        }
        fields.update(extra)
        return RawEmissionEntry(**fields)

    return _make


@pytest.fixture
def shared_hierarchy(make_node) -> ProcessHierarchy:
    """Node A holds 60% and node B 40% of elec-01."""
    return ProcessHierarchy(
        client_id=CLIENT_ID,
        nodes=[
            make_node("A", [{
                "scope_identifier": "elec-01",
                "scope_type": "Scope 2",
                "category_name": "Purchased Electricity",
                "activity": "Grid electricity",
                "allocation_pct": 60,
            }]),
            make_node("B", [{
                "scope_identifier": "elec-01",
                "scope_type": "Scope 2",
                "category_name": "Purchased Electricity",
                "activity": "Grid electricity",
                "allocation_pct": 40,
            }], department="Finance", location="HQ"),
        ],
    )


@pytest.fixture
def march_2024() -> PeriodDescriptor:
    return PeriodDescriptor(type="monthly", year=2024, month=3)


@pytest.fixture
def make_engine():
    """Build an engine over in-memory stores for one client."""

    def _make(
        hierarchy: Optional[ProcessHierarchy],
        entries: List[RawEmissionEntry],
        client_id: str = CLIENT_ID,
        **config_overrides: Any,
    ) -> EmissionAggregationEngine:
        hierarchies = InMemoryHierarchyStore()
        hierarchies.put(client_id, hierarchy)
        measurements = InMemoryMeasurementStore({client_id: entries})
        return EmissionAggregationEngine(
            hierarchies,
            measurements,
            config=EmissionSummaryConfig(**config_overrides),
        )

    return _make
