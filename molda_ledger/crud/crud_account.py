from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, update
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from molda_ledger.db.core import AccountDB, TransactionDB, AccountStatus, NotFoundError, ConflictError, InsufficientBalanceError
from molda_ledger.models.account import AccountCreate, AccountUpdate, AccountStats, AccountStatusEnum
from molda_ledger.logging_config import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


# ===== DATABASE OPERATIONS =====

def build_db_account(user_id: int, account_data: AccountCreate) -> AccountDB:
    """Build an account row without adding it to a session"""
    now = datetime.utcnow()
    return AccountDB(
        user_id=user_id,
        account_name=account_data.account_name,
        color=account_data.color,
        icon=account_data.icon,
        balance=account_data.balance.quantize(CENT),
        status=AccountStatus.ACTIVE,
        balance_last_updated=now if account_data.balance != 0 else None,
        created_at=now,
        updated_at=now,
    )


def create_db_account(db: Session, user_id: int, account_data: AccountCreate) -> AccountDB:
    """Create a new account for a user"""

    existing_account = get_account_by_name(db, user_id, account_data.account_name)
    if existing_account:
        raise ConflictError(f"Account name '{account_data.account_name}' already exists")

    db_account = build_db_account(user_id, account_data)

    try:
        db.add(db_account)
        db.commit()
        db.refresh(db_account)
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Account creation failed due to database constraint") from e

    logger.info(f"Created account {db_account.id} for user {user_id} with balance {db_account.balance}")
    return db_account


def read_db_account(db: Session, account_id: int, user_id: int) -> Optional[AccountDB]:
    """Read an account by ID, scoped to its owner"""
    return db.query(AccountDB).filter(
        AccountDB.id == account_id,
        AccountDB.user_id == user_id
    ).first()


def read_db_accounts(db: Session, user_id: int, status: Optional[AccountStatusEnum] = None,
                     skip: int = 0, limit: int = 100) -> List[AccountDB]:
    """Read accounts for a user, newest first"""

    query = db.query(AccountDB).filter(AccountDB.user_id == user_id)

    if status:
        query = query.filter(AccountDB.status == AccountStatus(status.value))

    return query.order_by(AccountDB.created_at.desc(), AccountDB.id.desc()).offset(skip).limit(limit).all()


def get_account_by_name(db: Session, user_id: int, account_name: str) -> Optional[AccountDB]:
    return db.query(AccountDB).filter(
        AccountDB.user_id == user_id,
        AccountDB.account_name == account_name
    ).first()


def get_account_balance(db: Session, account_id: int, user_id: int) -> Decimal:
    """Read the current balance straight from the store"""
    balance = db.query(AccountDB.balance).filter(
        AccountDB.id == account_id,
        AccountDB.user_id == user_id
    ).scalar()

    if balance is None:
        raise NotFoundError(f"Account with id {account_id} not found")
    return balance


def apply_balance_delta(db: Session, account_id: int, delta: Decimal, guard_negative: bool = False) -> Decimal:
    """
    Add a signed delta to an account balance and return the new balance.

    This is the only code path that changes a balance. The arithmetic runs
    inside a single UPDATE so the store's row lock serializes concurrent
    writers; nothing is read-then-written from Python. The caller owns the
    surrounding unit of work and must commit or roll back.

    With guard_negative, a negative delta that would take the balance below
    zero matches no row and raises InsufficientBalanceError.
    """
    delta = Decimal(delta).quantize(CENT)
    now = datetime.utcnow()

    stmt = update(AccountDB).where(AccountDB.id == account_id)
    if guard_negative and delta < 0:
        stmt = stmt.where(AccountDB.balance >= -delta)
    stmt = stmt.values(
        balance=AccountDB.balance + delta,
        balance_last_updated=now,
        updated_at=now,
    ).execution_options(synchronize_session=False)

    result = db.execute(stmt)

    if result.rowcount == 0:
        available = db.query(AccountDB.balance).filter(AccountDB.id == account_id).scalar()
        if available is None:
            raise NotFoundError(f"Account with id {account_id} not found")
        raise InsufficientBalanceError(
            f"Insufficient balance. Available: {Decimal(available).quantize(CENT)}, "
            f"required: {(-delta).quantize(CENT)}"
        )

    # Reload so any copy of the account already in the session sees the new balance
    account = db.get(AccountDB, account_id, populate_existing=True)
    return Decimal(account.balance).quantize(CENT)


def update_db_account(db: Session, account_id: int, user_id: int, account_updates: AccountUpdate) -> AccountDB:
    """Update an account's display fields or status"""

    db_account = read_db_account(db, account_id, user_id)
    if not db_account:
        raise NotFoundError(f"Account with id {account_id} not found")

    if account_updates.account_name and account_updates.account_name != db_account.account_name:
        existing_name = db.query(AccountDB).filter(
            AccountDB.user_id == user_id,
            AccountDB.account_name == account_updates.account_name,
            AccountDB.id != account_id
        ).first()
        if existing_name:
            raise ConflictError(f"Account name '{account_updates.account_name}' already exists")

    update_data = account_updates.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if field == 'status' and value:
            setattr(db_account, field, AccountStatus(value.value))
        elif field in ('account_name', 'status') and value is None:
            continue
        else:
            setattr(db_account, field, value)

    db_account.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_account)
        return db_account
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Account update failed due to database constraint") from e


def delete_db_account(db: Session, account_id: int, user_id: int) -> bool:
    """Delete an account (only if it has no transactions)"""

    db_account = db.query(AccountDB).filter(
        AccountDB.id == account_id,
        AccountDB.user_id == user_id
    ).with_for_update().first()

    if not db_account:
        raise NotFoundError(f"Account with id {account_id} not found")

    transaction_count = db.query(func.count(TransactionDB.id)).filter(
        TransactionDB.account_id == account_id
    ).scalar()
    if transaction_count > 0:
        db.rollback()
        raise ConflictError(f"Cannot delete account with {transaction_count} existing transaction(s)")

    try:
        db.delete(db_account)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Cannot delete account with existing transactions") from e

    logger.info(f"Deleted account {account_id} of user {user_id}")
    return True


def get_account_stats(db: Session, user_id: int) -> AccountStats:
    """Get account statistics for a user"""

    accounts = db.query(AccountDB).filter(AccountDB.user_id == user_id).all()

    accounts_by_status = {}
    total_balance = Decimal('0.00')

    for account in accounts:
        status = account.status.value
        accounts_by_status[status] = accounts_by_status.get(status, 0) + 1
        total_balance += account.balance

    return AccountStats(
        total_accounts=len(accounts),
        accounts_by_status=accounts_by_status,
        total_balance=total_balance,
    )
