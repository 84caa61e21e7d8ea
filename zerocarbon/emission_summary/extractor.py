# -*- coding: utf-8 -*-
"""
Emission Value Extractor - Allocation-Aware Emission Aggregation

Normalizes the ``calculated_emissions`` structure of a raw entry into one
canonical GasValues tuple.

Only the ``incoming`` bucket is summed. The ``cumulative`` bucket holds
running totals across periods and adding it would double count history.

Each item of the incoming bucket may name its CO2-equivalent value in one
of several legacy ways; they are tried in ``CO2E_FIELD_VARIANTS`` order and
the first one present wins.

Example:
    >>> extract_emission_values({
    ...     "incoming": {"diesel": {"emission": 12.5, "CO2": 12.0}},
    ...     "cumulative": {"diesel": {"CO2e": 500.0}},
    ... }).CO2e
    12.5

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Optional, Tuple

from zerocarbon.emission_summary.models import GasValues

logger = logging.getLogger(__name__)

INCOMING_BUCKET = "incoming"

# Priority order for the CO2-equivalent value of a bucket item.
CO2E_FIELD_VARIANTS: Tuple[str, ...] = (
    "CO2e",
    "emission",
    "CO2eWithUncertainty",
    "emissionWithUncertainty",
)


def _to_number(value: Any) -> float:
    """Coerce a stored value to float; unusable values count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _first_present(item: Mapping, fields: Tuple[str, ...]) -> Optional[Any]:
    for field_name in fields:
        value = item.get(field_name)
        if value is not None:
            return value
    return None


def extract_emission_values(calculated_emissions: Any) -> GasValues:
    """Sum the incoming bucket of ``calculated_emissions`` into a GasValues.

    Args:
        calculated_emissions: Mapping with an ``incoming`` bucket whose items
            are mappings of gas values. Anything else yields zeros.

    Returns:
        GasValues with CO2e, CO2, CH4, N2O and uncertainty totals.
    """
    totals = GasValues()

    if not isinstance(calculated_emissions, Mapping):
        return totals

    bucket = calculated_emissions.get(INCOMING_BUCKET)
    if not isinstance(bucket, Mapping):
        return totals

    for key, item in bucket.items():
        if not isinstance(item, Mapping):
            logger.debug("Skipping non-mapping incoming item %r", key)
            continue

        totals.CO2e += _to_number(_first_present(item, CO2E_FIELD_VARIANTS))
        totals.CO2 += _to_number(item.get("CO2"))
        totals.CH4 += _to_number(item.get("CH4"))
        totals.N2O += _to_number(item.get("N2O"))
        totals.uncertainty += _to_number(item.get("uncertainty"))

    return totals


__all__ = [
    "INCOMING_BUCKET",
    "CO2E_FIELD_VARIANTS",
    "extract_emission_values",
]
