"""Tests for period resolution and trend calculation.

Author: ZeroCarbon Platform Team
Date: October 2026
"""

from datetime import datetime, timezone

import pytest

from zerocarbon.exceptions import InvalidPeriodError
from zerocarbon.emission_summary.models import (
    EmissionSummary,
    GasValues,
    PeriodDescriptor,
    SummaryPeriod,
)
from zerocarbon.emission_summary.periods import (
    ALL_TIME_START,
    build_date_range,
    calculate_trends,
    previous_period,
    trend_data,
)


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _summary(total, scope_2=0.0):
    summary = EmissionSummary(client_id="ZC-001", period=SummaryPeriod(type="monthly"))
    summary.total_emissions = GasValues(CO2e=total)
    summary.by_scope["Scope 2"].CO2e = scope_2
    return summary


# ==============================================================================
# Date ranges
# ==============================================================================

class TestBuildDateRange:
    """Tests for build_date_range."""

    def test_daily(self):
        start, end = build_date_range(PeriodDescriptor(type="daily", year=2024, month=3, day=15))

        assert start == _utc(2024, 3, 15)
        assert end == _utc(2024, 3, 15, 23, 59, 59, 999999)

    def test_weekly_uses_iso_weeks(self):
        # ISO week 1 of 2025 starts on Monday 2024-12-30.
        start, end = build_date_range(PeriodDescriptor(type="weekly", year=2025, week=1))

        assert start == _utc(2024, 12, 30)
        assert end == _utc(2025, 1, 5, 23, 59, 59, 999999)

    def test_monthly_leap_february(self):
        start, end = build_date_range(PeriodDescriptor(type="monthly", year=2024, month=2))

        assert start == _utc(2024, 2, 1)
        assert end == _utc(2024, 2, 29, 23, 59, 59, 999999)

    def test_yearly(self):
        start, end = build_date_range(PeriodDescriptor(type="yearly", year=2023))

        assert start == _utc(2023, 1, 1)
        assert end == _utc(2023, 12, 31, 23, 59, 59, 999999)

    def test_all_time_ends_now(self, frozen_clock):
        start, end = build_date_range(PeriodDescriptor(type="all-time"))

        assert start == ALL_TIME_START
        assert end == frozen_clock

    @pytest.mark.parametrize("period,missing", [
        (PeriodDescriptor(type="daily", year=2024, month=3), "day"),
        (PeriodDescriptor(type="weekly", year=2024), "week"),
        (PeriodDescriptor(type="monthly", month=3), "year"),
        (PeriodDescriptor(type="yearly"), "year"),
    ])
    def test_missing_fields(self, period, missing):
        with pytest.raises(InvalidPeriodError) as excinfo:
            build_date_range(period)

        assert missing in excinfo.value.context["missing_fields"]

    @pytest.mark.parametrize("period", [
        PeriodDescriptor(type="daily", year=2023, month=2, day=29),
        PeriodDescriptor(type="weekly", year=2023, week=53),
    ])
    def test_impossible_dates(self, period):
        with pytest.raises(InvalidPeriodError):
            build_date_range(period)


# ==============================================================================
# Previous period
# ==============================================================================

class TestPreviousPeriod:
    """Tests for previous_period."""

    @pytest.mark.parametrize("period,expected", [
        (PeriodDescriptor(type="daily", year=2024, month=3, day=1),
         PeriodDescriptor(type="daily", year=2024, month=2, day=29)),
        (PeriodDescriptor(type="weekly", year=2025, week=1),
         PeriodDescriptor(type="weekly", year=2024, week=52)),
        (PeriodDescriptor(type="monthly", year=2024, month=1),
         PeriodDescriptor(type="monthly", year=2023, month=12)),
        (PeriodDescriptor(type="yearly", year=2024),
         PeriodDescriptor(type="yearly", year=2023)),
    ])
    def test_preceding_period(self, period, expected):
        assert previous_period(period) == expected

    def test_all_time_has_no_predecessor(self):
        assert previous_period(PeriodDescriptor(type="all-time")) is None


# ==============================================================================
# Trends
# ==============================================================================

class TestTrends:
    """Tests for trend_data and calculate_trends."""

    @pytest.mark.parametrize("current,previous,percentage,direction", [
        (150.0, 100.0, 50.0, "up"),
        (75.0, 100.0, -25.0, "down"),
        (100.0, 100.0, 0.0, "same"),
        (10.0, 0.0, 100.0, "up"),
        (0.0, 0.0, 0.0, "same"),
        (1.0, 3.0, -66.67, "down"),
    ])
    def test_trend_data(self, current, previous, percentage, direction):
        trend = trend_data(current, previous)

        assert trend.value == pytest.approx(current - previous)
        assert trend.percentage == percentage
        assert trend.direction == direction

    def test_calculate_trends(self):
        trends = calculate_trends(_summary(120.0, scope_2=120.0), _summary(100.0, scope_2=80.0))

        assert trends.total_emissions_change.percentage == 20.0
        assert trends.scope_changes["Scope 2"].percentage == 50.0
        assert trends.scope_changes["Scope 1"].direction == "same"
        assert sorted(trends.scope_changes) == ["Scope 1", "Scope 2", "Scope 3"]
