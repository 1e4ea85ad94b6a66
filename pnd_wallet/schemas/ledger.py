"""
Wallet ledger types shared by the transfer engine, the read service and the
storage layer.

Parties live in one collection per kind, and each party document keeps its
own `Transactions` history. Stored records use the dashboard's historical
field names and integer status codes. This module is the only place that
translates between those and the typed models below.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TRANSACTIONS_SUBCOLLECTION = "Transactions"
BALANCE_FIELD = "walletbalance"

CENTS = Decimal("0.01")


class PartyKind(str, Enum):
    ADMIN = "admin"
    USER = "user"
    RIDER = "rider"


PARTY_COLLECTIONS: Dict[PartyKind, str] = {
    PartyKind.ADMIN: "Admins",
    PartyKind.USER: "Users",
    PartyKind.RIDER: "Riders",
}


def collection_for(kind: PartyKind) -> str:
    """Storage collection holding parties of the given kind."""
    return PARTY_COLLECTIONS[PartyKind(kind)]


class TransactionStatus(str, Enum):
    SUCCESSFUL = "Successful"
    PENDING = "Pending"
    FAILED = "Failed"
    REVERSED = "Reversed"


class TransactionDirection(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"


STATUS_CODES: Dict[TransactionStatus, int] = {
    TransactionStatus.SUCCESSFUL: 0,
    TransactionStatus.PENDING: 1,
    TransactionStatus.FAILED: 2,
    TransactionStatus.REVERSED: 3,
}

DIRECTION_CODES: Dict[TransactionDirection, int] = {
    TransactionDirection.CREDIT: 0,
    TransactionDirection.DEBIT: 1,
}


def _decode_enum(raw: Any, enum_cls, codes: Dict) -> Enum:
    if isinstance(raw, enum_cls):
        return raw
    by_code = {code: member for member, code in codes.items()}
    if isinstance(raw, bool):
        raise ValueError(f"Unknown {enum_cls.__name__} value: {raw!r}")
    if isinstance(raw, int):
        if raw in by_code:
            return by_code[raw]
    elif isinstance(raw, str):
        text = raw.strip()
        if text.isdigit() and int(text) in by_code:
            return by_code[int(text)]
        for member in enum_cls:
            if member.value.lower() == text.lower():
                return member
    raise ValueError(f"Unknown {enum_cls.__name__} value: {raw!r}")


def decode_status(raw: Any) -> TransactionStatus:
    """Decode a stored status (0-3, "0"-"3" or a label) to its enum member."""
    return _decode_enum(raw, TransactionStatus, STATUS_CODES)


def decode_direction(raw: Any) -> TransactionDirection:
    """Decode a stored transactionType (0/1, "0"/"1" or a label)."""
    return _decode_enum(raw, TransactionDirection, DIRECTION_CODES)


def to_amount(raw: Any) -> Decimal:
    """
    Normalize a stored or requested amount to a two-place Decimal.

    Legacy documents carry floats, so floats go through `str()` first to keep
    the value the dashboard displayed. A missing balance reads as zero.
    """
    if raw is None:
        return Decimal("0.00")
    if hasattr(raw, "to_decimal"):
        raw = raw.to_decimal()
    if isinstance(raw, float):
        raw = str(raw)
    try:
        value = Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not a monetary amount: {raw!r}")
    if not value.is_finite():
        raise ValueError(f"Not a monetary amount: {raw!r}")
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class PartyRef(BaseModel):
    """Identity of a wallet holder: its kind plus its id within that kind's collection."""

    model_config = ConfigDict(frozen=True)

    kind: PartyKind
    id: str = Field(..., min_length=1, max_length=128)

    @field_validator("id")
    @classmethod
    def strip_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Party id cannot be blank")
        return v

    @property
    def collection(self) -> str:
        return collection_for(self.kind)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class TransactionRecord(BaseModel):
    """One side of a transfer, as shown in a party's transaction history."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    owner: PartyRef
    amount: Decimal
    note: str = ""
    status: TransactionStatus = TransactionStatus.SUCCESSFUL
    direction: TransactionDirection
    counterparty_id: str
    reference: str
    timestamp: datetime

    def to_storage(self) -> Dict[str, Any]:
        """Document body as written to the owner's Transactions subcollection."""
        return {
            "amount": self.amount,
            "narration": self.note,
            "status": STATUS_CODES[self.status],
            "time": self.timestamp,
            "transactionType": DIRECTION_CODES[self.direction],
            "trxref": self.reference,
            "userId": self.counterparty_id,
        }

    @classmethod
    def from_storage(cls, owner: PartyRef, doc: Dict[str, Any], record_id: Optional[str] = None) -> "TransactionRecord":
        timestamp = doc.get("time")
        if isinstance(timestamp, datetime) and timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            id=record_id,
            owner=owner,
            amount=to_amount(doc.get("amount")),
            note=doc.get("narration") or "",
            status=decode_status(doc.get("status", 0)),
            direction=decode_direction(doc.get("transactionType")),
            counterparty_id=str(doc.get("userId") or ""),
            reference=doc.get("trxref") or "",
            timestamp=timestamp,
        )
