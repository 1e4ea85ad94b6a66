"""
Wallet transfer engine.

A transfer reads both parties, checks the sender can cover the amount, moves
the balance and appends a Debit record to the sender's history and a Credit
record to the recipient's. All of it runs inside one atomic unit of the
document store, so either every write lands or none does.

The store detects concurrent writes to the same party and fails the commit;
the engine then starts a fresh unit and re-reads current balances. The
reference and timestamp are fixed before the first attempt, so a retried
transfer still produces exactly one reference.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from pnd_wallet.core.exceptions import (
    BaseAppError,
    InsufficientFundsError,
    PartyNotFoundError,
    StorageError,
    TransferError,
    TransferValidationError,
    TransientConflictError,
)
from pnd_wallet.core.monitoring import monitor_errors
from pnd_wallet.schemas.ledger import (
    BALANCE_FIELD,
    TRANSACTIONS_SUBCOLLECTION,
    PartyRef,
    TransactionDirection,
    TransactionRecord,
    TransactionStatus,
    to_amount,
)
from pnd_wallet.schemas.responses import TransferReceipt
from pnd_wallet.schemas.transfer import TransactRequest, TransferRequest
from pnd_wallet.storage.base import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_PREFIX = "PnD"


def generate_reference(sender_id: str, at: datetime, prefix: str = DEFAULT_REFERENCE_PREFIX) -> str:
    """
    Build a transfer reference: `{prefix}-{first 6 chars of sender id}-{epoch millis}`.

    Two transfers from the same sender collide only if they share a millisecond.
    """
    millis = int(at.timestamp() * 1000)
    return f"{prefix}-{sender_id[:6]}-{millis}"


class TransferService:
    """Moves funds between two parties' wallets atomically."""

    def __init__(
        self,
        store: DocumentStore,
        reference_prefix: str = DEFAULT_REFERENCE_PREFIX,
        max_attempts: int = 5,
        retry_wait_max: float = 0.5,
        clock=None,
    ):
        self.store = store
        self.reference_prefix = reference_prefix
        self.max_attempts = max_attempts
        self.retry_wait_max = retry_wait_max
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _retrying(self) -> AsyncRetrying:
        wait = wait_random_exponential(multiplier=0.02, max=self.retry_wait_max)
        return AsyncRetrying(
            retry=retry_if_exception_type(TransientConflictError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait,
            before_sleep=self._log_retry,
            reraise=False,
        )

    @staticmethod
    def _log_retry(retry_state) -> None:
        logger.info(
            f"Write conflict on transfer, retrying (attempt {retry_state.attempt_number} failed)"
        )

    @monitor_errors("wallet_transfer")
    async def transfer(self, request: TransferRequest) -> TransferReceipt:
        """
        Move `request.amount` from the sender's wallet to the recipient's.

        Returns:
            TransferReceipt with the reference and post-transfer balances

        Raises:
            TransferValidationError: non-positive amount or self-transfer
            PartyNotFoundError: sender or recipient does not exist
            InsufficientFundsError: sender balance below amount
            TransientConflictError: still conflicting after max_attempts
            StorageError: any other storage failure
        """
        self._validate_transfer(request)

        amount = to_amount(request.amount)
        timestamp = self._clock()
        reference = generate_reference(request.sender.id, timestamp, self.reference_prefix)
        attempts = 0

        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    sender_balance, recipient_balance = await self._attempt(
                        request, amount, reference, timestamp
                    )
        except RetryError:
            raise TransientConflictError(
                "Transfer could not be completed due to concurrent updates",
                attempts=attempts,
                reference=reference,
            )
        except TransferError as e:
            e.reference = reference
            raise
        except BaseAppError:
            raise
        except Exception as e:
            logger.error(f"Storage failure during transfer {reference}", exc_info=True)
            raise StorageError(
                "Transfer failed",
                operation="transfer",
                database_error=str(e),
                reference=reference,
            ) from e

        logger.info(
            f"Transfer {reference} committed: {amount} from {request.sender} to {request.recipient}"
            f" (attempts={attempts})"
        )
        return TransferReceipt(
            reference=reference,
            timestamp=timestamp,
            amount=amount,
            sender=request.sender,
            recipient=request.recipient,
            sender_balance=sender_balance,
            recipient_balance=recipient_balance,
            attempts=attempts,
        )

    async def transact(self, request: TransactRequest) -> TransferReceipt:
        """Run the dashboard's credit/debit action as a transfer against the admin wallet."""
        return await self.transfer(request.to_transfer())

    async def _attempt(self, request: TransferRequest, amount: Decimal, reference: str, timestamp: datetime):
        sender, recipient = request.sender, request.recipient
        unit = await self.store.begin()
        try:
            sender_doc = await self.store.read_document(unit, sender.collection, sender.id)
            if sender_doc is None:
                raise PartyNotFoundError("sender", sender.id, sender.collection)

            recipient_doc = await self.store.read_document(unit, recipient.collection, recipient.id)
            if recipient_doc is None:
                raise PartyNotFoundError("recipient", recipient.id, recipient.collection)

            sender_balance = to_amount(sender_doc.get(BALANCE_FIELD))
            recipient_balance = to_amount(recipient_doc.get(BALANCE_FIELD))

            if sender_balance < amount:
                raise InsufficientFundsError(sender.id, sender_balance, amount)

            new_sender_balance = sender_balance - amount
            new_recipient_balance = recipient_balance + amount

            await self.store.write_field(unit, sender.collection, sender.id, BALANCE_FIELD, new_sender_balance)
            await self.store.write_field(unit, recipient.collection, recipient.id, BALANCE_FIELD, new_recipient_balance)

            debit, credit = self._build_records(request, amount, reference, timestamp)
            await self.store.append_to_subcollection(
                unit, sender.collection, sender.id, TRANSACTIONS_SUBCOLLECTION, debit.to_storage()
            )
            await self.store.append_to_subcollection(
                unit, recipient.collection, recipient.id, TRANSACTIONS_SUBCOLLECTION, credit.to_storage()
            )

            await self.store.commit(unit)
        except BaseException:
            await self.store.abort(unit)
            raise

        return new_sender_balance, new_recipient_balance

    @staticmethod
    def _build_records(request: TransferRequest, amount: Decimal, reference: str, timestamp: datetime):
        debit = TransactionRecord(
            owner=request.sender,
            amount=amount,
            note=request.narration,
            status=TransactionStatus.SUCCESSFUL,
            direction=TransactionDirection.DEBIT,
            counterparty_id=request.recipient.id,
            reference=reference,
            timestamp=timestamp,
        )
        credit = TransactionRecord(
            owner=request.recipient,
            amount=amount,
            note=request.narration,
            status=TransactionStatus.SUCCESSFUL,
            direction=TransactionDirection.CREDIT,
            counterparty_id=request.sender.id,
            reference=reference,
            timestamp=timestamp,
        )
        return debit, credit

    @staticmethod
    def _validate_transfer(request: TransferRequest) -> None:
        """
        Business rules checked before any storage access. Pydantic enforces
        these on parsed requests; requests built with model_construct() skip
        that, so they are checked again here.

        Raises:
            TransferValidationError: If validation fails
        """
        amount: Optional[Decimal]
        try:
            amount = Decimal(str(request.amount))
        except (InvalidOperation, ValueError):
            amount = None
        if amount is None or not amount.is_finite() or amount <= 0:
            raise TransferValidationError(
                "Transfer amount must be positive",
                "amount",
                request.amount,
            )

        # Cent precision at most; never rounded
        if amount.normalize().as_tuple().exponent < -2:
            raise TransferValidationError(
                "Transfer amount must have at most 2 decimal places",
                "amount",
                request.amount,
            )

        if not isinstance(request.sender, PartyRef) or not isinstance(request.recipient, PartyRef):
            raise TransferValidationError(
                "Sender and recipient must be party references",
                "parties",
            )

        if request.sender == request.recipient:
            raise TransferValidationError(
                "Sender and recipient must be different parties",
                "parties",
            )
