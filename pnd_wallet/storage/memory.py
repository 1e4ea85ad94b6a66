"""
In-process document store with optimistic concurrency control.

Each document carries a version number. A unit remembers the version of every
document it reads and stages its writes locally. On commit the store checks,
under its lock, that none of those documents moved on; if one did, the
commit fails with TransientConflictError and nothing is applied.

Used with STORAGE_BACKEND=memory for local development and by the test
suite. State lives only as long as the process.
"""

import asyncio
import copy
import itertools
import logging
from typing import Any, Dict, List, Optional, Tuple

from pnd_wallet.core.exceptions import StorageError, TransientConflictError
from pnd_wallet.storage.base import AtomicUnit, DocumentStore

logger = logging.getLogger(__name__)

DocKey = Tuple[str, str]


class MemoryUnit(AtomicUnit):
    def __init__(self, unit_id: int):
        super().__init__()
        self.unit_id = unit_id
        self.read_versions: Dict[DocKey, int] = {}
        self.field_writes: List[Tuple[DocKey, str, Any]] = []
        self.appends: List[Tuple[DocKey, str, Dict[str, Any]]] = []


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._documents: Dict[DocKey, Dict[str, Any]] = {}
        self._versions: Dict[DocKey, int] = {}
        # subcollection name -> records (each tagged with its parent key)
        self._subcollections: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self._unit_ids = itertools.count(1)
        self._record_ids = itertools.count(1)
        self.commits = 0
        self.conflicts = 0

    def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Seed or replace a document outside any unit."""
        key = (collection, doc_id)
        self._documents[key] = dict(data)
        self._versions[key] = self._versions.get(key, 0) + 1

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of all state, for before/after comparisons."""
        return copy.deepcopy({
            "documents": self._documents,
            "subcollections": self._subcollections,
        })

    async def begin(self) -> MemoryUnit:
        return MemoryUnit(next(self._unit_ids))

    def _check_open(self, unit: MemoryUnit) -> None:
        if unit.closed:
            raise StorageError("Atomic unit already closed", operation="unit_state")

    async def read_document(self, unit: MemoryUnit, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._check_open(unit)
        # Yield so concurrent units interleave the way network round-trips would
        await asyncio.sleep(0)
        key = (collection, doc_id)
        unit.read_versions.setdefault(key, self._versions.get(key, 0))
        doc = self._documents.get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def write_field(self, unit: MemoryUnit, collection: str, doc_id: str, field: str, value: Any) -> None:
        self._check_open(unit)
        key = (collection, doc_id)
        unit.read_versions.setdefault(key, self._versions.get(key, 0))
        unit.field_writes.append((key, field, value))

    async def append_to_subcollection(
        self,
        unit: MemoryUnit,
        collection: str,
        doc_id: str,
        subcollection: str,
        record: Dict[str, Any],
    ) -> None:
        self._check_open(unit)
        unit.appends.append(((collection, doc_id), subcollection, dict(record)))

    async def commit(self, unit: MemoryUnit) -> None:
        self._check_open(unit)
        async with self._lock:
            for key, version in unit.read_versions.items():
                if self._versions.get(key, 0) != version:
                    self.conflicts += 1
                    unit.closed = True
                    logger.debug(f"Unit {unit.unit_id} conflicts on {key[0]}/{key[1]}")
                    raise TransientConflictError()

            for key, field, value in unit.field_writes:
                if key not in self._documents:
                    unit.closed = True
                    raise StorageError(
                        "Cannot update a missing document",
                        operation="write_field",
                        database_error=f"{key[0]}/{key[1]} not found",
                    )

            touched = set()
            for key, field, value in unit.field_writes:
                self._documents[key][field] = value
                touched.add(key)
            for key in touched:
                self._versions[key] += 1

            for (collection, doc_id), subcollection, record in unit.appends:
                stored = dict(record)
                stored["id"] = f"rec{next(self._record_ids)}"
                stored["owner_collection"] = collection
                stored["owner_id"] = doc_id
                self._subcollections.setdefault(subcollection, []).append(stored)

            self.commits += 1
            unit.closed = True

    async def abort(self, unit: MemoryUnit) -> None:
        unit.closed = True

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._documents.get((collection, doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    async def list_subcollection(
        self,
        collection: str,
        doc_id: str,
        subcollection: str,
        order_by: str = "time",
        descending: bool = True,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        records = [
            r for r in self._subcollections.get(subcollection, [])
            if r["owner_collection"] == collection and r["owner_id"] == doc_id
        ]
        records.sort(key=lambda r: r.get(order_by), reverse=descending)
        return copy.deepcopy(records[:limit])

    async def find_in_subcollection(self, subcollection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return copy.deepcopy([
            r for r in self._subcollections.get(subcollection, [])
            if r.get(field) == value
        ])
