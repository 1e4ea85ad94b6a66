"""
Pydantic response models for the wallet service layer.

Services return these models and FastAPI handles JSON serialization.
"""

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from pnd_wallet.schemas.ledger import PartyRef, TransactionRecord


class ServiceResult(BaseModel):
    """Generic base class for all service responses."""

    success: bool = Field(..., description="Whether the operation was successful")
    message: str = Field(..., description="Human-readable result message")


class TransferReceipt(BaseModel):
    """Outcome of a committed transfer."""

    reference: str = Field(..., description="Correlation id shared by both records")
    timestamp: datetime = Field(..., description="Commit time written to both records")
    amount: Decimal
    sender: PartyRef
    recipient: PartyRef
    sender_balance: Decimal = Field(..., description="Sender balance after the transfer")
    recipient_balance: Decimal = Field(..., description="Recipient balance after the transfer")
    attempts: int = Field(1, description="Atomic units started before the commit succeeded")


class TransferResponse(ServiceResult):
    status: str = Field(..., description="Always 'completed' for a committed transfer")
    receipt: TransferReceipt


class BalanceResponse(ServiceResult):
    party: PartyRef
    balance: Decimal


class TransactionListResponse(ServiceResult):
    party: PartyRef
    count: int
    transactions: List[TransactionRecord]


class TransferRecordsResponse(ServiceResult):
    reference: str
    records: List[TransactionRecord]
