"""Tests for deterministic clock, hashing and rounding helpers.

Author: ZeroCarbon Platform Team
Date: October 2026
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from zerocarbon.determinism import (
    DeterministicClock,
    content_hash,
    floor_to_precision,
    round_half_up,
)


class TestDeterministicClock:

    def test_frozen_context(self):
        moment = datetime(2025, 1, 1, tzinfo=timezone.utc)

        with DeterministicClock.frozen(moment):
            assert DeterministicClock.utcnow() == moment
            assert DeterministicClock.now() == moment

        assert DeterministicClock.utcnow() != moment

    def test_live_clock_is_utc_without_microseconds(self):
        now = DeterministicClock.utcnow()

        assert now.tzinfo == timezone.utc
        assert now.microsecond == 0


class TestContentHash:

    def test_key_order_does_not_matter(self):
        assert content_hash({"a": 1, "b": 2}) == content_hash({"b": 2, "a": 1})

    def test_str_and_bytes_agree(self):
        assert content_hash("abc") == content_hash(b"abc")
        assert len(content_hash("abc")) == 64


class TestRounding:

    @pytest.mark.parametrize("value,places,expected", [
        (33.335, 2, 33.34),
        (0.00005, 4, 0.0001),
        (2.5, 0, 3.0),
        (None, 2, 0.0),
        (Decimal("1.005"), 2, 1.01),
    ])
    def test_round_half_up(self, value, places, expected):
        assert round_half_up(value, places) == expected

    def test_round_half_up_rejects_bad_precision(self):
        with pytest.raises(ValueError):
            round_half_up(1.0, 9)

    def test_floor_to_precision(self):
        assert floor_to_precision(100 / 3, 2) == Decimal("33.33")
        assert floor_to_precision(Decimal("14.2857"), 2) == Decimal("14.28")
