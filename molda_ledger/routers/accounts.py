from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from molda_ledger.crud import crud_account, crud_transaction
from molda_ledger.models import account as account_models
from molda_ledger.models.transaction import TransactionResponse, AccountStatement
from molda_ledger.services import statements
from molda_ledger.db.core import get_db
from molda_ledger.routers.deps import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
)


@router.post("/", response_model=account_models.AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    account: account_models.AccountCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Create a new account for the current user. No transaction is recorded
    for the initial balance.
    """
    try:
        return crud_account.create_db_account(db=db, user_id=user_id, account_data=account)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[account_models.AccountResponse])
def read_accounts(
    account_status: Optional[account_models.AccountStatusEnum] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Retrieve all accounts for the current user, optionally filtered by status.
    """
    return crud_account.read_db_accounts(db=db, user_id=user_id, status=account_status, skip=skip, limit=limit)


@router.get("/stats", response_model=account_models.AccountStats)
def get_account_statistics(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return crud_account.get_account_stats(db=db, user_id=user_id)


@router.get("/{account_id}", response_model=account_models.AccountResponse)
def read_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    db_account = crud_account.read_db_account(db=db, account_id=account_id, user_id=user_id)
    if db_account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return db_account


@router.get("/{account_id}/balance", response_model=account_models.AccountBalance)
def read_account_balance(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    try:
        balance = crud_account.get_account_balance(db=db, account_id=account_id, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    return account_models.AccountBalance(account_id=account_id, balance=balance)


@router.get("/{account_id}/transactions", response_model=List[TransactionResponse])
def read_account_transactions(
    account_id: int,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    try:
        return crud_transaction.read_db_transactions_by_account(
            db=db, user_id=user_id, account_id=account_id, skip=skip, limit=limit
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.get("/{account_id}/statement", response_model=AccountStatement)
def read_account_statement(
    account_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Opening and closing balance for a period with the period's transactions
    in the order they were applied.
    """
    try:
        return statements.get_account_statement(
            db=db, account_id=account_id, user_id=user_id, date_from=date_from, date_to=date_to
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.put("/{account_id}", response_model=account_models.AccountResponse)
def update_account(
    account_id: int,
    account: account_models.AccountUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Update an account's name, color, icon or status. The balance only moves
    through transactions.
    """
    try:
        return crud_account.update_db_account(
            db=db, account_id=account_id, user_id=user_id, account_updates=account
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.delete("/{account_id}", response_model=account_models.AccountResponse)
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Delete an account. It can only be deleted if it has no transactions.
    """
    db_account = crud_account.read_db_account(db, account_id=account_id, user_id=user_id)
    if db_account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    deleted = account_models.AccountResponse.model_validate(db_account)

    try:
        crud_account.delete_db_account(db=db, account_id=account_id, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)

    return deleted
