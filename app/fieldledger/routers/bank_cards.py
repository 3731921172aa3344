from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.fieldledger.core.context import RequestContext
from app.fieldledger.core.deps import require_manager, require_request_context
from app.fieldledger.db.models import BankCard
from app.fieldledger.db.session import get_db
from app.fieldledger.schemas.bank_cards import (
    BankCardCreateRequest,
    BankCardListResponse,
    BankCardResponse,
    BankCardUpdateRequest,
    ManualTransactionRequest,
    RecomputeResponse,
    TransactionListResponse,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
)
from app.fieldledger.services.bank_cards import BankCardService
from app.fieldledger.services.ledger import LedgerService, TransactionView

router = APIRouter()


def _card_response(card: BankCard) -> BankCardResponse:
    return BankCardResponse(
        id=str(card.id),
        card_name=card.card_name,
        bank_name=card.bank_name,
        card_number=card.card_number,
        initial_balance=card.initial_balance,
        current_balance=card.current_balance,
        registration_date=card.registration_date,
        notes=card.notes,
        is_active=card.is_active,
        created_by=card.created_by,
        created_at=card.created_at,
        updated_at=card.updated_at,
    )


def _transaction_response(txn) -> TransactionResponse:
    if isinstance(txn, TransactionView):
        return TransactionResponse(**asdict(txn))
    return TransactionResponse(
        id=str(txn.id),
        bank_card_id=str(txn.bank_card_id),
        transaction_type=txn.transaction_type,
        amount=txn.amount,
        balance_after=txn.balance_after,
        description=txn.description,
        reference_type=txn.reference_type,
        reference_id=txn.reference_id,
        created_by=txn.created_by,
        created_at=txn.created_at,
    )


@router.get("/fieldledger/bank-cards", response_model=BankCardListResponse)
def list_bank_cards(
    active_only: bool = False,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    cards = BankCardService(db).list_cards(active_only=active_only)
    return BankCardListResponse(rows=[_card_response(card) for card in cards])


@router.post("/fieldledger/bank-cards", response_model=BankCardResponse, status_code=201)
def create_bank_card(
    payload: BankCardCreateRequest,
    context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    card = BankCardService(db).create(payload, actor_id=context.user_id)
    return _card_response(card)


@router.post("/fieldledger/bank-cards/recompute-all", response_model=RecomputeResponse)
def recompute_all_cards(
    _context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    balances = LedgerService(db).recompute_all()
    return RecomputeResponse(balances={str(card_id): balance for card_id, balance in balances.items()})


@router.post("/fieldledger/bank-cards/transfers", response_model=TransferResponse, status_code=201)
def transfer_between_cards(
    payload: TransferRequest,
    context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    outgoing, incoming = LedgerService(db).transfer(
        from_card_id=payload.from_card_id,
        to_card_id=payload.to_card_id,
        amount=payload.amount,
        description=payload.description,
        actor_id=context.user_id,
    )
    return TransferResponse(outgoing=_transaction_response(outgoing), incoming=_transaction_response(incoming))


@router.get("/fieldledger/bank-cards/{card_id}", response_model=BankCardResponse)
def get_bank_card(
    card_id: UUID,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return _card_response(BankCardService(db).get(card_id))


@router.patch("/fieldledger/bank-cards/{card_id}", response_model=BankCardResponse)
def update_bank_card(
    card_id: UUID,
    payload: BankCardUpdateRequest,
    _context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    return _card_response(BankCardService(db).update(card_id, payload))


@router.post("/fieldledger/bank-cards/{card_id}/recompute", response_model=RecomputeResponse)
def recompute_card(
    card_id: UUID,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    balance = LedgerService(db).recompute(card_id)
    return RecomputeResponse(balances={str(card_id): balance})


@router.get("/fieldledger/bank-cards/{card_id}/transactions", response_model=TransactionListResponse)
def list_card_transactions(
    card_id: UUID,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    views = LedgerService(db).list_transactions(card_id, limit=limit, offset=offset)
    return TransactionListResponse(rows=[_transaction_response(view) for view in views])


@router.post("/fieldledger/bank-cards/{card_id}/transactions", response_model=TransactionResponse, status_code=201)
def add_card_transaction(
    card_id: UUID,
    payload: ManualTransactionRequest,
    context: RequestContext = Depends(require_manager),
    db=Depends(get_db),
):
    txn = LedgerService(db).add_manual_transaction(
        card_id,
        transaction_type=payload.transaction_type,
        amount=payload.amount,
        description=payload.description,
        actor_id=context.user_id,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
    )
    return _transaction_response(txn)
