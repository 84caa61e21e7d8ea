"""
ZeroCarbon Determinism Module - Utilities for Deterministic Operations

This module provides the small set of helpers the emission summary engine
needs to stay reproducible and auditable:

- Controlled timestamp generation with a freezable clock
- Content-based SHA-256 hashing for provenance
- Half-up decimal rounding for reportable emission values

Author: ZeroCarbon Platform Team
Date: 2026-10-18
"""

import hashlib
import json
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Optional, Union


class DeterministicClock:
    """
    A deterministic clock that can be frozen for testing and auditing.

    Every timestamp written into an emission summary (``last_calculated``,
    provenance log entries) comes from this clock so tests can pin time.
    """

    _instance = None
    _lock = threading.Lock()
    _frozen_time: Optional[datetime] = None

    def __new__(cls):
        """Singleton pattern to ensure single clock instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
            return cls._instance

    @classmethod
    def now(cls, tz=None) -> datetime:
        """
        Get current time, either real or frozen.

        Args:
            tz: Timezone info (defaults to UTC)

        Returns:
            Current datetime
        """
        instance = cls()
        if instance._frozen_time is not None:
            if tz is not None:
                return instance._frozen_time.replace(tzinfo=tz)
            return instance._frozen_time

        return datetime.now(tz or timezone.utc).replace(microsecond=0)

    @classmethod
    def utcnow(cls) -> datetime:
        """Get current UTC time."""
        return cls.now(timezone.utc)

    @classmethod
    def freeze(cls, frozen_time: Optional[datetime] = None):
        """
        Freeze clock at specific time.

        Args:
            frozen_time: Time to freeze at (defaults to current time)
        """
        instance = cls()
        if frozen_time is None:
            frozen_time = datetime.now(timezone.utc).replace(microsecond=0)
        instance._frozen_time = frozen_time

    @classmethod
    def unfreeze(cls):
        """Unfreeze the clock."""
        instance = cls()
        instance._frozen_time = None

    @classmethod
    @contextmanager
    def frozen(cls, frozen_time: Optional[datetime] = None):
        """
        Context manager for temporarily freezing time.

        Usage:
            with DeterministicClock.frozen(datetime(2025, 1, 1, tzinfo=timezone.utc)):
                # All timestamps will be 2025-01-01
                pass
        """
        cls.freeze(frozen_time)
        try:
            yield
        finally:
            cls.unfreeze()


def content_hash(content: Union[str, bytes, dict, list]) -> str:
    """
    Generate SHA-256 hash of content for provenance tracking.

    Dicts and lists are serialized with sorted keys so the hash does not
    depend on insertion order.

    Args:
        content: Content to hash

    Returns:
        Full SHA-256 hash hex string
    """
    if isinstance(content, (dict, list)):
        content = json.dumps(content, sort_keys=True, ensure_ascii=True, default=str)

    if isinstance(content, str):
        content = content.encode('utf-8')

    return hashlib.sha256(content).hexdigest()


def round_half_up(value: Any, decimal_places: int) -> float:
    """
    Round a numeric value half-up to a fixed number of decimal places.

    Converts through ``str`` so that binary float artefacts do not push a
    value across a rounding boundary.

    Args:
        value: Numeric value (int, float, str, Decimal); None counts as 0
        decimal_places: Number of decimal places (0-8)

    Returns:
        Rounded float

    Example:
        >>> round_half_up(0.00005, 4)
        0.0001
        >>> round_half_up(33.335, 2)
        33.34
    """
    if decimal_places < 0 or decimal_places > 8:
        raise ValueError(f"decimal_places must be 0-8, got {decimal_places}")

    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        value_decimal = value
    else:
        value_decimal = Decimal(str(value))

    quantize_str = '0.' + '0' * decimal_places if decimal_places > 0 else '1'
    return float(value_decimal.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP))


def floor_to_precision(value: Any, decimal_places: int) -> Decimal:
    """
    Truncate a non-negative value towards zero at a fixed precision.

    Args:
        value: Numeric value
        decimal_places: Number of decimal places

    Returns:
        Truncated Decimal (exact, suitable for further Decimal arithmetic)

    Example:
        >>> floor_to_precision(100 / 3, 2)
        Decimal('33.33')
    """
    value_decimal = value if isinstance(value, Decimal) else Decimal(str(value))
    quantize_str = '0.' + '0' * decimal_places if decimal_places > 0 else '1'
    return value_decimal.quantize(Decimal(quantize_str), rounding=ROUND_DOWN)
