"""
Transactional document-store interface used by the wallet engine.

A store hands out `AtomicUnit`s. Reads and writes made through a unit are
applied together on `commit()` or not at all, and `commit()` raises
`TransientConflictError` when another unit changed one of the same documents
in the meantime. The engine holds no locks of its own; isolation is
entirely the store's responsibility.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class AtomicUnit:
    """Handle for one in-flight storage transaction."""

    def __init__(self):
        self.closed = False


class DocumentStore(ABC):
    """Async document store with multi-document atomic units."""

    @abstractmethod
    async def begin(self) -> AtomicUnit:
        ...

    @abstractmethod
    async def read_document(self, unit: AtomicUnit, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a document inside `unit`. Returns None when it does not exist."""

    @abstractmethod
    async def write_field(self, unit: AtomicUnit, collection: str, doc_id: str, field: str, value: Any) -> None:
        ...

    @abstractmethod
    async def append_to_subcollection(
        self,
        unit: AtomicUnit,
        collection: str,
        doc_id: str,
        subcollection: str,
        record: Dict[str, Any],
    ) -> None:
        ...

    @abstractmethod
    async def commit(self, unit: AtomicUnit) -> None:
        """
        Apply everything staged in `unit`.

        Raises:
            TransientConflictError: a concurrent unit touched the same documents
            StorageError: any other storage failure
        """

    @abstractmethod
    async def abort(self, unit: AtomicUnit) -> None:
        """Discard `unit`. Safe to call on a unit that is already closed."""

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_subcollection(
        self,
        collection: str,
        doc_id: str,
        subcollection: str,
        order_by: str = "time",
        descending: bool = True,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """Records under one parent document. Each dict carries its `id`."""

    @abstractmethod
    async def find_in_subcollection(self, subcollection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """
        Records matching `field == value` across all parents. Each dict carries
        `id`, `owner_collection` and `owner_id`.
        """

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass
