"""
ZeroCarbon - consultancy backend emission aggregation.

The importable surface of interest is ``zerocarbon.emission_summary``, the
allocation-aware emission aggregation engine.
"""

__version__ = "1.0.0"
