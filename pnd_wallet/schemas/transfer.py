"""
Pydantic schemas for wallet transfer requests.

Shared field rules live on `BaseTransferSchema` so the raw transfer endpoint
and the admin Transact action validate amounts and narrations identically.
"""

from decimal import Decimal
from enum import Enum
import re

from pydantic import BaseModel, Field, field_validator, model_validator

from pnd_wallet.schemas.ledger import PartyKind, PartyRef

MAX_TRANSFER_AMOUNT = Decimal("10000000")


class BaseTransferSchema(BaseModel):
    amount: Decimal = Field(
        ...,
        gt=0,
        le=MAX_TRANSFER_AMOUNT,
        decimal_places=2,
        max_digits=12,
        description="Amount in naira (must be positive, at most 2 decimal places)",
    )

    narration: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Free-text note shown in both parties' histories",
    )

    @field_validator("narration")
    @classmethod
    def sanitize_narration(cls, v):
        """Strip markup characters and surrounding whitespace."""
        v = re.sub(r'[<>"\';&]', "", v).strip()
        if not v:
            raise ValueError("Narration cannot be empty")
        return v


class TransferRequest(BaseTransferSchema):
    """Move `amount` from `sender` to `recipient`."""

    sender: PartyRef
    recipient: PartyRef

    @model_validator(mode="after")
    def distinct_parties(self):
        if self.sender == self.recipient:
            raise ValueError("Sender and recipient must be different parties")
        return self


class TransactMode(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactRequest(BaseTransferSchema):
    """
    The dashboard's Transact action. `credit` sends money from the admin's
    wallet to the target, `debit` takes money from the target back into it.
    """

    admin_id: str = Field(..., min_length=1, max_length=128)
    mode: TransactMode = TransactMode.CREDIT
    target: PartyRef

    @field_validator("target")
    @classmethod
    def target_is_customer_or_rider(cls, v):
        if v.kind not in (PartyKind.USER, PartyKind.RIDER):
            raise ValueError("Transact target must be a user or a rider")
        return v

    def to_transfer(self) -> TransferRequest:
        admin = PartyRef(kind=PartyKind.ADMIN, id=self.admin_id)
        if self.mode == TransactMode.CREDIT:
            sender, recipient = admin, self.target
        else:
            sender, recipient = self.target, admin
        return TransferRequest(
            sender=sender,
            recipient=recipient,
            amount=self.amount,
            narration=self.narration,
        )
