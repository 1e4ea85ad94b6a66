from beanie import Document, Indexed, DecimalAnnotation
from pydantic import ConfigDict, Field
from datetime import datetime, timezone
from typing import Dict, Optional, Type

from pnd_wallet.schemas.ledger import PARTY_COLLECTIONS, PartyKind, TRANSACTIONS_SUBCOLLECTION


# Wallet holders. Profile fields are owned by the dashboard's CRUD screens;
# extra="allow" keeps them intact when a party is loaded here.
class WalletParty(Document):
    """Common shape of every wallet-holding party document"""

    model_config = ConfigDict(extra="allow")

    id: str
    # Legacy documents may hold null; readers normalise through to_amount
    walletbalance: Optional[DecimalAnnotation] = None
    fullname: Optional[str] = None
    email: Optional[str] = None


class Admin(WalletParty):
    class Settings:
        name = PARTY_COLLECTIONS[PartyKind.ADMIN]


class Customer(WalletParty):
    class Settings:
        name = PARTY_COLLECTIONS[PartyKind.USER]


class Rider(WalletParty):
    class Settings:
        name = PARTY_COLLECTIONS[PartyKind.RIDER]


class TransactionEntry(Document):
    """One side of a transfer, stored under its owner's key"""

    owner_collection: Indexed(str)
    owner_id: Indexed(str)
    amount: DecimalAnnotation
    narration: str = ""
    status: int = 0  # 0 Successful, 1 Pending, 2 Failed, 3 Reversed
    transactionType: int  # 0 Credit, 1 Debit
    trxref: Indexed(str)  # Shared by the debit and credit side of one transfer
    userId: str  # Counterparty id
    time: Indexed(datetime) = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = TRANSACTIONS_SUBCOLLECTION


PARTY_MODELS: Dict[str, Type[WalletParty]] = {
    Admin.Settings.name: Admin,
    Customer.Settings.name: Customer,
    Rider.Settings.name: Rider,
}

DOCUMENT_MODELS = [Admin, Customer, Rider, TransactionEntry]
