"""
Wallet routes used by the admin dashboard.

Services raise BaseAppError subclasses; the global handler turns those into
JSON error responses, so the handlers here only deal with the happy path.
"""

from fastapi import APIRouter, Depends, Query, Request
from pnd_wallet.core.limiter import api_rate_limit, limiter, transfer_rate_limit
from pnd_wallet.schemas.ledger import PartyKind, PartyRef
from pnd_wallet.schemas.responses import (
    BalanceResponse,
    TransactionListResponse,
    TransferRecordsResponse,
    TransferResponse,
)
from pnd_wallet.schemas.transfer import TransactRequest, TransferRequest
from pnd_wallet.security import verify_admin_key
from pnd_wallet.services.ledger_service import LedgerService, MAX_PAGE_SIZE
from pnd_wallet.services.transfer_service import TransferService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_admin_key)])


def get_transfer_service(request: Request) -> TransferService:
    return request.app.state.transfer_service


def get_ledger_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


@router.post("/transfers", response_model=TransferResponse)
@limiter.limit(transfer_rate_limit)
async def create_transfer(
    request: Request,
    payload: TransferRequest,
    service: TransferService = Depends(get_transfer_service),
):
    """Move funds between any two parties."""
    receipt = await service.transfer(payload)
    return TransferResponse(
        success=True,
        message="Transfer completed successfully",
        status="completed",
        receipt=receipt,
    )


@router.post("/transact", response_model=TransferResponse)
@limiter.limit(transfer_rate_limit)
async def transact(
    request: Request,
    payload: TransactRequest,
    service: TransferService = Depends(get_transfer_service),
):
    """Admin credit (send to) or debit (take from) a user or rider wallet."""
    receipt = await service.transact(payload)
    label = "Credit" if payload.mode.value == "credit" else "Debit"
    return TransferResponse(
        success=True,
        message=f"{label} transaction completed successfully",
        status="completed",
        receipt=receipt,
    )


@router.get("/transfers/{reference}", response_model=TransferRecordsResponse)
@limiter.limit(api_rate_limit)
async def get_transfer(
    request: Request,
    reference: str,
    service: LedgerService = Depends(get_ledger_service),
):
    """Both records of one transfer. 404 via NotFoundError if the reference is unknown."""
    records = await service.get_transfer(reference)
    return TransferRecordsResponse(
        success=True,
        message="Transfer found",
        reference=reference,
        records=records,
    )


@router.get("/parties/{kind}/{party_id}/balance", response_model=BalanceResponse)
@limiter.limit(api_rate_limit)
async def get_balance(
    request: Request,
    kind: PartyKind,
    party_id: str,
    service: LedgerService = Depends(get_ledger_service),
):
    party = PartyRef(kind=kind, id=party_id)
    balance = await service.get_balance(party)
    return BalanceResponse(success=True, message="Balance retrieved", party=party, balance=balance)


@router.get("/parties/{kind}/{party_id}/transactions", response_model=TransactionListResponse)
@limiter.limit(api_rate_limit)
async def list_transactions(
    request: Request,
    kind: PartyKind,
    party_id: str,
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    service: LedgerService = Depends(get_ledger_service),
):
    party = PartyRef(kind=kind, id=party_id)
    records = await service.list_transactions(party, limit=limit)
    logger.info(f"Loaded {len(records)} transactions for {party}")
    return TransactionListResponse(
        success=True,
        message="Transactions retrieved",
        party=party,
        count=len(records),
        transactions=records,
    )
