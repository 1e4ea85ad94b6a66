"""Read-side queries over wallet balances and transaction histories."""

import logging
from decimal import Decimal
from typing import List

from pnd_wallet.core.exceptions import BaseAppError, NotFoundError, PartyNotFoundError, StorageError
from pnd_wallet.schemas.ledger import (
    BALANCE_FIELD,
    PARTY_COLLECTIONS,
    TRANSACTIONS_SUBCOLLECTION,
    PartyRef,
    TransactionRecord,
    to_amount,
)
from pnd_wallet.storage.base import DocumentStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200

_KIND_BY_COLLECTION = {collection: kind for kind, collection in PARTY_COLLECTIONS.items()}


class LedgerService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_balance(self, party: PartyRef) -> Decimal:
        doc = await self._load_party(party)
        return to_amount(doc.get(BALANCE_FIELD))

    async def list_transactions(self, party: PartyRef, limit: int = 50) -> List[TransactionRecord]:
        """A party's history, newest first."""
        await self._load_party(party)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        try:
            docs = await self.store.list_subcollection(
                party.collection,
                party.id,
                TRANSACTIONS_SUBCOLLECTION,
                order_by="time",
                descending=True,
                limit=limit,
            )
            return [TransactionRecord.from_storage(party, doc, doc.get("id")) for doc in docs]
        except BaseAppError:
            raise
        except Exception as e:
            logger.error(f"Failed to load transactions for {party}", exc_info=True)
            raise StorageError(
                "Failed to load transactions",
                operation="list_transactions",
            ) from e

    async def get_transfer(self, reference: str) -> List[TransactionRecord]:
        """Both sides of one transfer, debit first."""
        try:
            docs = await self.store.find_in_subcollection(TRANSACTIONS_SUBCOLLECTION, "trxref", reference)
            records = [
                TransactionRecord.from_storage(
                    PartyRef(kind=_KIND_BY_COLLECTION[doc["owner_collection"]], id=doc["owner_id"]),
                    doc,
                    doc.get("id"),
                )
                for doc in docs
            ]
        except BaseAppError:
            raise
        except Exception as e:
            logger.error(f"Failed to load transfer {reference}", exc_info=True)
            raise StorageError(
                "Failed to load transfer",
                operation="get_transfer",
            ) from e

        if not records:
            raise NotFoundError("Transfer", reference)
        # Debit sorts before Credit
        return sorted(records, key=lambda r: r.direction.value, reverse=True)

    async def _load_party(self, party: PartyRef) -> dict:
        doc = await self.store.get_document(party.collection, party.id)
        if doc is None:
            raise PartyNotFoundError("party", party.id, party.collection)
        return doc
