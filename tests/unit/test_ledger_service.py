from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from pnd_wallet.core.exceptions import NotFoundError, PartyNotFoundError, StorageError
from pnd_wallet.schemas.ledger import PartyKind, PartyRef, TransactionDirection
from pnd_wallet.services.ledger_service import LedgerService
from pnd_wallet.services.transfer_service import TransferService

from tests.conftest import ADMIN_ID, RIDER_ID, USER_ID, FixedClock, make_transfer_request


@pytest.fixture
def ticking_service(store):
    return TransferService(store, retry_wait_max=0, clock=FixedClock(step_seconds=60))


class TestLedgerService:
    @pytest.mark.asyncio
    async def test_balance(self, ledger_service, user_ref):
        assert await ledger_service.get_balance(user_ref) == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_balance_unknown_party(self, ledger_service):
        with pytest.raises(PartyNotFoundError) as exc_info:
            await ledger_service.get_balance(PartyRef(kind="user", id="nobody"))
        assert exc_info.value.who == "party"

    @pytest.mark.asyncio
    async def test_history_newest_first(self, ledger_service, ticking_service, admin_ref):
        first = await ticking_service.transfer(make_transfer_request(amount="10", narration="first"))
        second = await ticking_service.transfer(
            make_transfer_request(recipient=(PartyKind.USER, USER_ID), amount="20", narration="second")
        )

        records = await ledger_service.list_transactions(admin_ref)

        assert [r.reference for r in records] == [second.reference, first.reference]
        assert all(r.direction is TransactionDirection.DEBIT for r in records)
        assert records[0].counterparty_id == USER_ID
        assert records[0].note == "second"
        assert records[0].id is not None

    @pytest.mark.asyncio
    async def test_history_limit(self, ledger_service, ticking_service, rider_ref):
        for amount in ("1", "2", "3"):
            await ticking_service.transfer(make_transfer_request(amount=amount))

        records = await ledger_service.list_transactions(rider_ref, limit=2)

        assert [r.amount for r in records] == [Decimal("3.00"), Decimal("2.00")]

    @pytest.mark.asyncio
    async def test_history_of_unknown_party(self, ledger_service):
        with pytest.raises(PartyNotFoundError):
            await ledger_service.list_transactions(PartyRef(kind="rider", id="ghost"))

    @pytest.mark.asyncio
    async def test_get_transfer_returns_pair(self, ledger_service, ticking_service):
        receipt = await ticking_service.transfer(make_transfer_request())

        debit, credit = await ledger_service.get_transfer(receipt.reference)

        assert debit.direction is TransactionDirection.DEBIT
        assert debit.owner == PartyRef(kind="admin", id=ADMIN_ID)
        assert credit.direction is TransactionDirection.CREDIT
        assert credit.owner == PartyRef(kind="rider", id=RIDER_ID)
        assert debit.timestamp == credit.timestamp

    @pytest.mark.asyncio
    async def test_get_transfer_unknown_reference(self, ledger_service):
        with pytest.raises(NotFoundError):
            await ledger_service.get_transfer("PnD-nobody-0")

    @pytest.mark.asyncio
    async def test_corrupt_record_surfaces_storage_error(self, store, user_ref):
        store._subcollections["Transactions"] = [{
            "id": "bad",
            "owner_collection": "Users",
            "owner_id": USER_ID,
            "amount": 10,
            "status": "settled",
            "transactionType": 0,
            "time": None,
        }]

        with pytest.raises(StorageError) as exc_info:
            await LedgerService(store).list_transactions(user_ref)
        assert exc_info.value.operation == "list_transactions"

    @pytest.mark.asyncio
    async def test_store_failure_is_wrapped(self, user_ref):
        store = AsyncMock()
        store.get_document.return_value = {"walletbalance": Decimal("1")}
        store.list_subcollection.side_effect = RuntimeError("socket closed")

        with pytest.raises(StorageError):
            await LedgerService(store).list_transactions(user_ref)
