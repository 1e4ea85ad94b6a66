from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pnd_wallet.schemas.ledger import (
    PartyKind,
    PartyRef,
    TransactionDirection,
    TransactionRecord,
    TransactionStatus,
    collection_for,
    decode_direction,
    decode_status,
    to_amount,
)
from pnd_wallet.schemas.transfer import TransactRequest, TransferRequest

VALID_TRANSFER = {
    "sender": {"kind": "admin", "id": "adminUID123456"},
    "recipient": {"kind": "rider", "id": "riderUID555000"},
    "amount": "150.00",
    "narration": "bonus",
}


def transfer_payload(**overrides):
    payload = dict(VALID_TRANSFER)
    payload.update(overrides)
    return payload


class TestStatusDecoding:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (0, TransactionStatus.SUCCESSFUL),
            (3, TransactionStatus.REVERSED),
            ("1", TransactionStatus.PENDING),
            ("failed", TransactionStatus.FAILED),
            ("Successful", TransactionStatus.SUCCESSFUL),
            (TransactionStatus.PENDING, TransactionStatus.PENDING),
        ],
    )
    def test_decode_status(self, raw, expected):
        assert decode_status(raw) is expected

    @pytest.mark.parametrize("raw", [4, "-1", "done", None, True])
    def test_unknown_status_rejected(self, raw):
        with pytest.raises(ValueError):
            decode_status(raw)

    def test_decode_direction(self):
        assert decode_direction(0) is TransactionDirection.CREDIT
        assert decode_direction("1") is TransactionDirection.DEBIT
        assert decode_direction("debit") is TransactionDirection.DEBIT
        with pytest.raises(ValueError):
            decode_direction(2)


class TestAmounts:
    def test_float_keeps_displayed_value(self):
        assert to_amount(0.1) == Decimal("0.10")
        assert to_amount(1234.5) == Decimal("1234.50")

    def test_missing_is_zero(self):
        assert to_amount(None) == Decimal("0.00")

    @pytest.mark.parametrize("raw", ["abc", "NaN", "Infinity", object()])
    def test_garbage_rejected(self, raw):
        with pytest.raises(ValueError):
            to_amount(raw)


class TestPartyRef:
    def test_collection_mapping(self):
        assert collection_for(PartyKind.ADMIN) == "Admins"
        assert collection_for("user") == "Users"
        assert PartyRef(kind="rider", id="r1").collection == "Riders"

    def test_identity_includes_kind(self):
        assert PartyRef(kind="user", id="x") == PartyRef(kind="user", id="x")
        assert PartyRef(kind="user", id="x") != PartyRef(kind="rider", id="x")

    def test_blank_id_rejected(self):
        with pytest.raises(ValidationError):
            PartyRef(kind="user", id="   ")

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            PartyRef(kind="vendor", id="v1")


class TestTransactionRecordStorage:
    def test_storage_field_names_and_codes(self):
        record = TransactionRecord(
            owner=PartyRef(kind="admin", id="a1"),
            amount=Decimal("150.00"),
            note="bonus",
            direction=TransactionDirection.DEBIT,
            counterparty_id="r1",
            reference="PnD-a1-1",
            timestamp=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )

        assert record.to_storage() == {
            "amount": Decimal("150.00"),
            "narration": "bonus",
            "status": 0,
            "time": datetime(2025, 1, 15, tzinfo=timezone.utc),
            "transactionType": 1,
            "trxref": "PnD-a1-1",
            "userId": "r1",
        }

    def test_from_legacy_document(self):
        doc = {
            "amount": 2500,
            "narration": "Requested a rider",
            "status": "0",
            "time": datetime(2024, 6, 1, 8, 30),
            "transactionType": 0,
            "trxref": "PnD-abcdef-1717230600000",
            "userId": "abcdef123",
        }

        record = TransactionRecord.from_storage(PartyRef(kind="rider", id="r1"), doc, "txn1")

        assert record.id == "txn1"
        assert record.amount == Decimal("2500.00")
        assert record.status is TransactionStatus.SUCCESSFUL
        assert record.direction is TransactionDirection.CREDIT
        assert record.timestamp.tzinfo is not None

    def test_records_are_immutable(self):
        record = TransactionRecord(
            owner=PartyRef(kind="user", id="u1"),
            amount=Decimal("1"),
            direction=TransactionDirection.CREDIT,
            counterparty_id="a1",
            reference="PnD-a1-1",
            timestamp=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )
        with pytest.raises(ValidationError):
            record.amount = Decimal("2")


@pytest.mark.parametrize(
    "overrides,expected_type",
    [
        ({"amount": "0"}, "greater_than"),
        ({"amount": "-5.00"}, "greater_than"),
        ({"amount": "10.005"}, "decimal_max_places"),
        ({"amount": "10000000.01"}, "less_than_equal"),
        ({"amount": "lots"}, "decimal_parsing"),
        ({"narration": ""}, "string_too_short"),
        ({"narration": "a" * 501}, "string_too_long"),
    ],
)
def test_transfer_request_validation_errors(overrides, expected_type):
    with pytest.raises(ValidationError) as exc_info:
        TransferRequest(**transfer_payload(**overrides))

    assert any(error["type"] == expected_type for error in exc_info.value.errors())


def test_self_transfer_rejected():
    with pytest.raises(ValidationError):
        TransferRequest(**transfer_payload(recipient=VALID_TRANSFER["sender"]))


def test_narration_sanitized():
    request = TransferRequest(**transfer_payload(narration="  <b>Bonus</b> & 'thanks'  "))
    assert request.narration == "bBonus/b  thanks"


def test_narration_of_only_markup_rejected():
    with pytest.raises(ValidationError):
        TransferRequest(**transfer_payload(narration="<>&;"))


class TestTransactRequest:
    def test_credit_sends_from_admin(self):
        request = TransactRequest(
            admin_id="admin1", mode="credit", target={"kind": "user", "id": "u1"},
            amount="20", narration="refund",
        )
        transfer = request.to_transfer()
        assert transfer.sender == PartyRef(kind="admin", id="admin1")
        assert transfer.recipient == PartyRef(kind="user", id="u1")

    def test_debit_takes_to_admin(self):
        request = TransactRequest(
            admin_id="admin1", mode="debit", target={"kind": "rider", "id": "r1"},
            amount="20", narration="penalty",
        )
        transfer = request.to_transfer()
        assert transfer.sender == PartyRef(kind="rider", id="r1")
        assert transfer.recipient == PartyRef(kind="admin", id="admin1")

    def test_admin_target_rejected(self):
        with pytest.raises(ValidationError):
            TransactRequest(
                admin_id="admin1", target={"kind": "admin", "id": "admin2"},
                amount="20", narration="x",
            )
