from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from molda_ledger.db.core import get_db
from molda_ledger.models.category import TransactionTypeEnum
from molda_ledger.models.transaction import (
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    TransactionFilter,
    TransferCreate,
    TransferResponse,
    ReversalResult,
    TransferReversalResult,
    TransactionStats,
    CategoryExpense,
)
from molda_ledger.crud.crud_transaction import (
    create_db_transaction,
    create_db_transfer,
    read_db_transaction,
    read_db_transactions,
    get_transactions_count,
    update_db_transaction,
    delete_db_transaction,
    delete_db_transfer,
)
from molda_ledger.services.statements import get_transaction_stats, get_expenses_by_category
from molda_ledger.routers.deps import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)


def get_transaction_filter(
    transaction_type: Optional[TransactionTypeEnum] = None,
    account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    tag: Optional[str] = None,
) -> TransactionFilter:
    return TransactionFilter(
        transaction_type=transaction_type,
        account_id=account_id,
        category_id=category_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        tag=tag,
    )


@router.post("/", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: TransactionCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    try:
        return create_db_transaction(db, user_id, transaction)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.post("/transfers", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def create_transfer(
    transfer: TransferCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Move money between two of the current user's accounts. Both legs are
    recorded together and share a transfer reference.
    """
    try:
        return create_db_transfer(db, user_id, transfer)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/transfers/{transfer_reference}", response_model=TransferReversalResult)
def delete_transfer(
    transfer_reference: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    try:
        return delete_db_transfer(db, transfer_reference, user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.get("/", response_model=List[TransactionResponse])
def read_transactions(
    filters: TransactionFilter = Depends(get_transaction_filter),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return read_db_transactions(db, user_id, filters=filters, skip=skip, limit=limit)


@router.get("/count")
def count_transactions(
    filters: TransactionFilter = Depends(get_transaction_filter),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return {"count": get_transactions_count(db, user_id, filters=filters)}


@router.get("/stats", response_model=TransactionStats)
def read_transaction_stats(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return get_transaction_stats(db, user_id, date_from=date_from, date_to=date_to)


@router.get("/by-category", response_model=List[CategoryExpense])
def read_expenses_by_category(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return get_expenses_by_category(db, user_id, date_from=date_from, date_to=date_to)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def read_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    db_transaction = read_db_transaction(db, transaction_id=transaction_id, user_id=user_id)
    if not db_transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return db_transaction


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    transaction: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Edit description, notes, tags, category or date. Amount, type and
    account cannot change.
    """
    try:
        return update_db_transaction(db, transaction_id, user_id, transaction)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e


@router.delete("/{transaction_id}", response_model=ReversalResult)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Delete a transaction and restore its effect on the account balance.
    """
    try:
        return delete_db_transaction(db, transaction_id, user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e) from e
