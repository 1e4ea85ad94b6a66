"""
MongoDB document store built on Motor client sessions.

Each atomic unit is a multi-document transaction (snapshot read concern,
majority write concern). MongoDB reports a concurrent write to the same
document as an error labelled TransientTransactionError; that is surfaced
as TransientConflictError so the engine can retry from a fresh read.

Party documents are read through the Beanie models registered in
`pnd_wallet.database`; transaction records go to the single `Transactions`
collection keyed by owner.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bson import Decimal128
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from pnd_wallet.core.exceptions import StorageError, TransientConflictError
from pnd_wallet.models import PARTY_MODELS, TransactionEntry
from pnd_wallet.storage.base import AtomicUnit, DocumentStore

logger = logging.getLogger(__name__)

TRANSIENT_LABEL = "TransientTransactionError"
UNKNOWN_COMMIT_LABEL = "UnknownTransactionCommitResult"
MAX_COMMIT_RETRIES = 3


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return Decimal128(value)
    return value


def _decode(doc: Dict[str, Any]) -> Dict[str, Any]:
    decoded = {}
    for key, value in doc.items():
        if key == "_id":
            decoded["id"] = str(value)
        elif isinstance(value, Decimal128):
            decoded[key] = value.to_decimal()
        else:
            decoded[key] = value
    return decoded


def _translate(error: PyMongoError, operation: str) -> Exception:
    if error.has_error_label(TRANSIENT_LABEL):
        return TransientConflictError()
    logger.error(f"MongoDB failure during {operation}", exc_info=error)
    return StorageError(
        "Storage operation failed",
        operation=operation,
        database_error=str(error),
    )


class MongoUnit(AtomicUnit):
    def __init__(self, session: AsyncIOMotorClientSession):
        super().__init__()
        self.session = session


class MongoDocumentStore(DocumentStore):
    def __init__(self, client: AsyncIOMotorClient):
        self.client = client

    @staticmethod
    def _party_model(collection: str):
        try:
            return PARTY_MODELS[collection]
        except KeyError:
            raise StorageError(
                "Unknown party collection",
                operation="resolve_collection",
                database_error=collection,
            )

    @staticmethod
    def _records():
        return TransactionEntry.get_motor_collection()

    async def begin(self) -> MongoUnit:
        try:
            session = await self.client.start_session()
            session.start_transaction(
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
            )
        except PyMongoError as e:
            raise _translate(e, "begin_transaction")
        return MongoUnit(session)

    async def read_document(self, unit: MongoUnit, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        model = self._party_model(collection)
        try:
            raw = await model.get_motor_collection().find_one({"_id": doc_id}, session=unit.session)
        except PyMongoError as e:
            raise _translate(e, "read_document")
        if raw is None:
            return None
        return model.model_validate(_decode(raw)).model_dump()

    async def write_field(self, unit: MongoUnit, collection: str, doc_id: str, field: str, value: Any) -> None:
        model = self._party_model(collection)
        try:
            result = await model.get_motor_collection().update_one(
                {"_id": doc_id},
                {"$set": {field: _encode(value)}},
                session=unit.session,
            )
        except PyMongoError as e:
            raise _translate(e, "write_field")
        if result.matched_count != 1:
            raise StorageError(
                "Cannot update a missing document",
                operation="write_field",
                database_error=f"{collection}/{doc_id} not found",
            )

    async def append_to_subcollection(
        self,
        unit: MongoUnit,
        collection: str,
        doc_id: str,
        subcollection: str,
        record: Dict[str, Any],
    ) -> None:
        if subcollection != TransactionEntry.Settings.name:
            raise StorageError(
                "Unknown subcollection",
                operation="append_to_subcollection",
                database_error=subcollection,
            )
        document = {key: _encode(value) for key, value in record.items()}
        document["owner_collection"] = collection
        document["owner_id"] = doc_id
        try:
            await self._records().insert_one(document, session=unit.session)
        except PyMongoError as e:
            raise _translate(e, "append_to_subcollection")

    async def commit(self, unit: MongoUnit) -> None:
        session = unit.session
        try:
            for attempt in range(1, MAX_COMMIT_RETRIES + 1):
                try:
                    await session.commit_transaction()
                    return
                except PyMongoError as e:
                    if e.has_error_label(UNKNOWN_COMMIT_LABEL) and attempt < MAX_COMMIT_RETRIES:
                        logger.warning(f"Commit outcome unknown, retrying commit ({attempt}/{MAX_COMMIT_RETRIES})")
                        continue
                    if e.has_error_label(UNKNOWN_COMMIT_LABEL):
                        # Re-running the transaction could apply it twice
                        raise StorageError(
                            "Transfer outcome unknown",
                            operation="commit_transaction",
                            database_error=str(e),
                        )
                    raise _translate(e, "commit_transaction")
        finally:
            unit.closed = True
            await session.end_session()

    async def abort(self, unit: MongoUnit) -> None:
        if unit.closed:
            return
        unit.closed = True
        session = unit.session
        try:
            if session.in_transaction:
                await session.abort_transaction()
        except PyMongoError:
            logger.warning("Failed to abort MongoDB transaction", exc_info=True)
        finally:
            await session.end_session()

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        model = self._party_model(collection)
        try:
            party = await model.get(doc_id)
        except PyMongoError as e:
            raise _translate(e, "get_document")
        return party.model_dump() if party is not None else None

    async def list_subcollection(
        self,
        collection: str,
        doc_id: str,
        subcollection: str,
        order_by: str = "time",
        descending: bool = True,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        try:
            cursor = (
                self._records()
                .find({"owner_collection": collection, "owner_id": doc_id})
                .sort(order_by, DESCENDING if descending else ASCENDING)
                .limit(limit)
            )
            return [_decode(raw) async for raw in cursor]
        except PyMongoError as e:
            raise _translate(e, "list_subcollection")

    async def find_in_subcollection(self, subcollection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        try:
            cursor = self._records().find({field: value})
            return [_decode(raw) async for raw in cursor]
        except PyMongoError as e:
            raise _translate(e, "find_in_subcollection")

    async def ping(self) -> bool:
        try:
            await self.client.admin.command("ping")
        except PyMongoError:
            return False
        return True

    async def close(self) -> None:
        self.client.close()
