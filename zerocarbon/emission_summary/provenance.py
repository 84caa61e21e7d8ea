# -*- coding: utf-8 -*-
"""
Emission Summary Provenance Tracker - Allocation-Aware Emission Aggregation

Provides SHA-256 based audit trail tracking for emission summary
computations. Every computation is recorded with the content hash of the
summary it produced; records are chain-hashed for tamper evidence.

Guarantees:
    - Summary content hashes exclude timestamps, so recomputing the same
      inputs yields the same ``summary_hash``
    - Chain hashing links records in sequence
    - JSON export for external audit systems

Example:
    >>> from zerocarbon.emission_summary.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> record_id = tracker.record_computation(
    ...     client_id="client-1",
    ...     period_key="client-1:monthly:2024:3::",
    ...     actor_id="analyst_1",
    ...     result="success",
    ...     summary_hash=summary.provenance_hash,
    ... )

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from zerocarbon.determinism import DeterministicClock, content_hash
from zerocarbon.emission_summary.models import ComputationRecord, EmissionSummary

logger = logging.getLogger(__name__)


def summary_content_hash(summary: EmissionSummary) -> str:
    """SHA-256 of the timestamp-free emission content of ``summary``."""
    return content_hash(summary.emission_content())


class ProvenanceTracker:
    """Tracks summary computations with SHA-256 chain hashing.

    Attributes:
        _records: Ordered list of computation records.
        _last_chain_hash: Most recent chain hash for linking.

    Example:
        >>> tracker = ProvenanceTracker()
        >>> tracker.record_computation("c1", "c1:yearly:2024:::", None, "success", "ab12")
        >>> assert tracker.verify_chain()
    """

    # Initial chain hash (genesis)
    _GENESIS_HASH = hashlib.sha256(b"zerocarbon-emission-summary-genesis").hexdigest()

    def __init__(self) -> None:
        """Initialize ProvenanceTracker."""
        self._records: List[ComputationRecord] = []
        self._last_chain_hash: str = self._GENESIS_HASH
        self._lock = threading.Lock()
        logger.info("ProvenanceTracker initialized")

    def record_computation(
        self,
        client_id: str,
        period_key: str,
        actor_id: Optional[str],
        result: str,
        summary_hash: str,
    ) -> str:
        """Append a computation to the audit trail.

        Args:
            client_id: Client the summary was computed for.
            period_key: Cache key of the summary period.
            actor_id: Who requested the computation.
            result: "success", "empty" or "error".
            summary_hash: Content hash of the produced summary.

        Returns:
            The record_id of the new record.
        """
        record = ComputationRecord(
            client_id=client_id,
            period_key=period_key,
            actor_id=actor_id,
            result=result,
            summary_hash=summary_hash,
            timestamp=DeterministicClock.utcnow(),
        )

        with self._lock:
            record.provenance_hash = self._chain(
                self._last_chain_hash, self._hash_dict(self._record_data(record)),
            )
            self._records.append(record)
            self._last_chain_hash = record.provenance_hash

        logger.debug(
            "Recorded provenance: %s %s %s", client_id, period_key, record.record_id,
        )
        return record.record_id

    def get_audit_trail(
        self,
        client_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[ComputationRecord]:
        """Get the audit trail, newest first, optionally for one client."""
        with self._lock:
            records = list(self._records)

        if client_id is not None:
            records = [r for r in records if r.client_id == client_id]

        records.reverse()
        return records[:limit]

    def verify_chain(self, records: Optional[List[ComputationRecord]] = None) -> bool:
        """Verify the integrity of the provenance chain.

        Recomputes chain hashes from genesis and verifies they match
        the stored hashes in each record.

        Args:
            records: Records to verify. Uses all records if None.

        Returns:
            True if chain is intact, False if tampered.
        """
        with self._lock:
            check_records = list(records if records is not None else self._records)

        current_hash = self._GENESIS_HASH
        for record in check_records:
            expected_hash = self._chain(
                current_hash, self._hash_dict(self._record_data(record)),
            )
            if record.provenance_hash != expected_hash:
                logger.warning(
                    "Chain verification failed at record %s", record.record_id,
                )
                return False
            current_hash = expected_hash

        return True

    def export_json(self) -> str:
        """Export all provenance records as JSON string."""
        with self._lock:
            records = [r.model_dump(mode="json") for r in self._records]
        return json.dumps(records, indent=2, default=str)

    @property
    def entry_count(self) -> int:
        """Return the number of provenance records."""
        return len(self._records)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _record_data(record: ComputationRecord) -> Dict[str, Any]:
        return {
            "client": record.client_id,
            "period": record.period_key,
            "actor": record.actor_id,
            "result": record.result,
            "summary": record.summary_hash,
            "timestamp": record.timestamp.isoformat(),
        }

    @staticmethod
    def _chain(previous_hash: str, entry_hash: str) -> str:
        combined = f"{previous_hash}:{entry_hash}"
        return hashlib.sha256(combined.encode()).hexdigest()

    @staticmethod
    def _hash_dict(data: Dict[str, Any]) -> str:
        serialized = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(serialized.encode()).hexdigest()


__all__ = [
    "ProvenanceTracker",
    "summary_content_hash",
]
