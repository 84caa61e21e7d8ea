# -*- coding: utf-8 -*-
"""
Collaborator Stores - Allocation-Aware Emission Aggregation

The engine reads two things it does not own: the client's active process
hierarchy and the raw emission entries of a date interval. Both are
consumed through the small protocols below so the engine stays free of any
persistence technology.

Implementations:
    - InMemoryHierarchyStore / InMemoryMeasurementStore: dict-backed, used by
      tests and by callers that already hold the documents.
    - JsonFileHierarchyStore / JsonFileMeasurementStore: read exported JSON
      documents (legacy camelCase shape accepted), used by the CLI.

Author: ZeroCarbon Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from pydantic import ValidationError

from zerocarbon.exceptions import DataAccessError, MalformedEntryError
from zerocarbon.emission_summary.models import ProcessHierarchy, RawEmissionEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class HierarchyStore(Protocol):
    """Source of a client's active process hierarchy."""

    def get_active_hierarchy(self, client_id: str) -> Optional[ProcessHierarchy]:
        """Return the active hierarchy, or None when the client has none."""
        ...


class MeasurementStore(Protocol):
    """Source of raw emission entries."""

    def query_entries(
        self, client_id: str, date_from: datetime, date_to: datetime,
    ) -> List[RawEmissionEntry]:
        """Return the client's entries with ``date_from <= timestamp <= date_to``."""
        ...


def _in_range(entry: RawEmissionEntry, date_from: datetime, date_to: datetime) -> bool:
    return date_from <= entry.timestamp <= date_to


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------


class InMemoryHierarchyStore:
    """Dict-backed HierarchyStore."""

    def __init__(self, hierarchies: Optional[Dict[str, ProcessHierarchy]] = None) -> None:
        self._hierarchies: Dict[str, ProcessHierarchy] = dict(hierarchies or {})
        self._lock = threading.Lock()

    def put(self, client_id: str, hierarchy: Optional[ProcessHierarchy]) -> None:
        """Set (or with None, remove) the active hierarchy of ``client_id``."""
        with self._lock:
            if hierarchy is None:
                self._hierarchies.pop(client_id, None)
            else:
                self._hierarchies[client_id] = hierarchy

    def get_active_hierarchy(self, client_id: str) -> Optional[ProcessHierarchy]:
        with self._lock:
            return self._hierarchies.get(client_id)


class InMemoryMeasurementStore:
    """Dict-backed MeasurementStore keyed by client."""

    def __init__(
        self, entries: Optional[Dict[str, Iterable[RawEmissionEntry]]] = None,
    ) -> None:
        self._entries: Dict[str, List[RawEmissionEntry]] = {
            client_id: list(items) for client_id, items in (entries or {}).items()
        }
        self._lock = threading.Lock()

    def add_entries(self, client_id: str, entries: Iterable[RawEmissionEntry]) -> None:
        with self._lock:
            self._entries.setdefault(client_id, []).extend(entries)

    def query_entries(
        self, client_id: str, date_from: datetime, date_to: datetime,
    ) -> List[RawEmissionEntry]:
        with self._lock:
            entries = list(self._entries.get(client_id, []))
        return [e for e in entries if _in_range(e, date_from, date_to)]


# ---------------------------------------------------------------------------
# JSON file stores
# ---------------------------------------------------------------------------


def _read_json(path: Path, operation: str) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise DataAccessError(
            f"File not found: {path}",
            data_source=str(path), operation=operation, cause=exc,
        ) from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise DataAccessError(
            f"Could not read {path}: {exc}",
            data_source=str(path), operation=operation, cause=exc,
        ) from exc


def _as_document_list(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [d for d in data if isinstance(d, dict)]
    return []


class JsonFileHierarchyStore:
    """HierarchyStore over a JSON file of one or several hierarchy documents.

    A document is active unless it carries ``isActive: false``. Documents
    without a client id match any client.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def get_active_hierarchy(self, client_id: str) -> Optional[ProcessHierarchy]:
        documents = _as_document_list(_read_json(self.path, "get_active_hierarchy"))

        for document in documents:
            if document.get("isActive", True) is False:
                continue
            doc_client = document.get("clientId", document.get("client_id"))
            if doc_client not in (None, client_id):
                continue
            try:
                return ProcessHierarchy.model_validate(document)
            except ValidationError as exc:
                raise MalformedEntryError(
                    f"Malformed hierarchy document in {self.path}",
                    context={"errors": exc.errors(include_url=False)},
                ) from exc

        logger.info("No active hierarchy for client %s in %s", client_id, self.path)
        return None


class JsonFileMeasurementStore:
    """MeasurementStore over a JSON list of raw emission entry documents.

    Entries carrying a ``clientId`` must match the requested client; entries
    without one are attributed to every client.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def query_entries(
        self, client_id: str, date_from: datetime, date_to: datetime,
    ) -> List[RawEmissionEntry]:
        documents = _as_document_list(_read_json(self.path, "query_entries"))
        entries: List[RawEmissionEntry] = []

        for document in documents:
            doc_client = document.get("clientId", document.get("client_id"))
            if doc_client not in (None, client_id):
                continue
            try:
                entry = RawEmissionEntry.model_validate(document)
            except ValidationError as exc:
                missing = [
                    ".".join(str(part) for part in err["loc"])
                    for err in exc.errors()
                    if err["type"] == "missing"
                ]
                raise MalformedEntryError(
                    f"Malformed emission entry in {self.path}",
                    entry_id=str(document.get("_id", document.get("id", ""))) or None,
                    missing_fields=missing or None,
                ) from exc
            if _in_range(entry, date_from, date_to):
                entries.append(entry)

        logger.debug(
            "Loaded %d entries for client %s from %s", len(entries), client_id, self.path,
        )
        return entries


__all__ = [
    "HierarchyStore",
    "MeasurementStore",
    "InMemoryHierarchyStore",
    "InMemoryMeasurementStore",
    "JsonFileHierarchyStore",
    "JsonFileMeasurementStore",
]
