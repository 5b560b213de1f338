from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func, desc, cast, String
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
import secrets

from molda_ledger.db.core import (
    TransactionDB, AccountDB, TransactionType, TransactionStatus, AccountStatus,
    NotFoundError, BadRequestError, InternalError,
)
from molda_ledger.models.transaction import TransactionCreate, TransactionUpdate, TransactionFilter, TransferCreate
from molda_ledger.crud.crud_account import read_db_account, apply_balance_delta
from molda_ledger.crud.crud_category import get_category_type, read_db_category, find_first_category_of_type
from molda_ledger.logging_config import get_logger

logger = get_logger(__name__)


# ===== BALANCE RULES =====

# Sign applied to the amount when a transaction of each type is recorded
BALANCE_SIGN = {
    TransactionType.INCOME: 1,
    TransactionType.DIVIDEND: 1,
    TransactionType.RESCUE: 1,
    TransactionType.EXPENSE: -1,
    TransactionType.INVESTMENT: -1,
    TransactionType.TRANSFER: 0,
}

# Types that may not take the balance below zero
GUARDED_TYPES = frozenset({TransactionType.EXPENSE, TransactionType.INVESTMENT})

REFERENCE_PREFIX = {
    TransactionType.INCOME: "INC",
    TransactionType.EXPENSE: "EXP",
    TransactionType.INVESTMENT: "INV",
    TransactionType.TRANSFER: "TRF",
    TransactionType.DIVIDEND: "DIV",
    TransactionType.RESCUE: "RES",
}

IMMUTABLE_FIELDS = ('amount', 'transaction_type', 'account_id')


# ===== UTILITY FUNCTIONS =====

def balance_delta(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    """Signed change a transaction applies to its account"""
    return BALANCE_SIGN[transaction_type] * amount


def generate_reference_number(transaction_type: TransactionType, now: Optional[datetime] = None) -> str:
    """Human-readable reference: type prefix, creation timestamp and a random suffix."""
    now = now or datetime.utcnow()
    return f"{REFERENCE_PREFIX[transaction_type]}-{now.strftime('%Y%m%d%H%M%S%f')}-{secrets.token_hex(3)}"


def _require_active_account(db: Session, account_id: int, user_id: int) -> AccountDB:
    account = read_db_account(db, account_id, user_id)
    if not account:
        raise NotFoundError(f"Account with id {account_id} not found")
    if account.status != AccountStatus.ACTIVE:
        raise BadRequestError(f"Account '{account.account_name}' is {account.status.value} and cannot receive transactions")
    return account


def _check_category_matches(db: Session, category_id: int, user_id: int, transaction_type: TransactionType) -> None:
    category_type = get_category_type(db, category_id, user_id)
    if category_type != transaction_type:
        raise BadRequestError(
            f"Transaction type {transaction_type.value} is incompatible with category of type {category_type.value}"
        )


def _load_transaction(db: Session, transaction_id: int) -> TransactionDB:
    return db.query(TransactionDB).options(
        joinedload(TransactionDB.category),
        joinedload(TransactionDB.account)
    ).filter(TransactionDB.id == transaction_id).one()


# ===== DATABASE OPERATIONS =====

def create_db_transaction(db: Session, user_id: int, transaction_data: TransactionCreate) -> TransactionDB:
    """
    Record a transaction and apply it to its account balance.

    Validation happens before anything is written. The balance update and
    the row insert share one commit; if either fails the session is rolled
    back and the account balance is left untouched.
    """
    transaction_type = TransactionType(transaction_data.transaction_type.value)

    _check_category_matches(db, transaction_data.category_id, user_id, transaction_type)
    account = _require_active_account(db, transaction_data.account_id, user_id)

    if transaction_type == TransactionType.TRANSFER:
        raise BadRequestError("Transfers must be created as a linked pair through the transfer endpoint")

    amount = transaction_data.amount
    delta = balance_delta(transaction_type, amount)

    try:
        balance_after = apply_balance_delta(
            db, account.id, delta,
            guard_negative=transaction_type in GUARDED_TYPES
        )
    except BadRequestError as e:
        db.rollback()
        logger.warning(f"Rejected {transaction_type.value} of {amount} on account {account.id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update balance of account {account.id}: {e}")
        raise InternalError("Failed to record transaction") from e

    now = datetime.utcnow()
    db_transaction = TransactionDB(
        reference_number=generate_reference_number(transaction_type, now),
        user_id=user_id,
        account_id=account.id,
        category_id=transaction_data.category_id,
        description=transaction_data.description,
        amount=amount,
        type=transaction_type,
        status=TransactionStatus.COMPLETED,
        transaction_date=transaction_data.transaction_date,
        balance_before=balance_after - delta,
        balance_after=balance_after,
        notes=transaction_data.notes,
        tags=list(transaction_data.tags),
        created_at=now,
        updated_at=now,
    )

    try:
        db.add(db_transaction)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record transaction on account {account.id}: {e}")
        raise InternalError("Failed to record transaction") from e

    logger.info(
        f"Recorded {db_transaction.reference_number} on account {account.id}: "
        f"{db_transaction.balance_before} -> {db_transaction.balance_after}"
    )
    return _load_transaction(db, db_transaction.id)


def create_db_transfer(db: Session, user_id: int, transfer_data: TransferCreate) -> Dict[str, Any]:
    """
    Move money between two of the owner's accounts as a linked pair of
    TRANSFER transactions: a debit leg on the source and a credit leg on the
    destination, sharing one transfer reference and one commit.
    """
    source = _require_active_account(db, transfer_data.from_account_id, user_id)
    destination = _require_active_account(db, transfer_data.to_account_id, user_id)

    if transfer_data.category_id is not None:
        category = read_db_category(db, transfer_data.category_id, user_id)
        if not category:
            raise NotFoundError(f"Category with id {transfer_data.category_id} not found")
        if category.type != TransactionType.TRANSFER:
            raise BadRequestError(
                f"Transaction type {TransactionType.TRANSFER.value} is incompatible with category of type {category.type.value}"
            )
    else:
        category = find_first_category_of_type(db, user_id, TransactionType.TRANSFER)
        if not category:
            raise BadRequestError("No TRANSFER category available; create one or pass category_id")

    amount = transfer_data.amount
    deltas = {source.id: -amount, destination.id: amount}

    # Apply in ascending account id order so concurrent transfers lock rows consistently
    balances_after = {}
    try:
        for account_id in sorted(deltas):
            balances_after[account_id] = apply_balance_delta(
                db, account_id, deltas[account_id],
                guard_negative=account_id == source.id
            )
    except BadRequestError as e:
        db.rollback()
        logger.warning(f"Rejected transfer of {amount} from account {source.id} to {destination.id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update balances for transfer from account {source.id}: {e}")
        raise InternalError("Failed to record transfer") from e

    now = datetime.utcnow()
    transfer_reference = generate_reference_number(TransactionType.TRANSFER, now)
    legs = []
    for account, direction in ((source, "to"), (destination, "from")):
        counterpart = destination if account is source else source
        delta = deltas[account.id]
        legs.append(TransactionDB(
            reference_number=generate_reference_number(TransactionType.TRANSFER, now),
            user_id=user_id,
            account_id=account.id,
            category_id=category.id,
            description=f"{transfer_data.description} ({direction} {counterpart.account_name})",
            amount=amount,
            type=TransactionType.TRANSFER,
            status=TransactionStatus.COMPLETED,
            transaction_date=transfer_data.transaction_date,
            balance_before=balances_after[account.id] - delta,
            balance_after=balances_after[account.id],
            notes=transfer_data.notes,
            tags=list(transfer_data.tags),
            transfer_reference=transfer_reference,
            created_at=now,
            updated_at=now,
        ))

    try:
        db.add_all(legs)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record transfer {transfer_reference}: {e}")
        raise InternalError("Failed to record transfer") from e

    logger.info(f"Recorded transfer {transfer_reference} of {amount} from account {source.id} to {destination.id}")
    return {
        "transfer_reference": transfer_reference,
        "out_transaction": _load_transaction(db, legs[0].id),
        "in_transaction": _load_transaction(db, legs[1].id),
    }


def read_db_transaction(db: Session, transaction_id: int, user_id: int) -> Optional[TransactionDB]:
    """Read a transaction by ID"""
    return db.query(TransactionDB).options(
        joinedload(TransactionDB.category),
        joinedload(TransactionDB.account)
    ).filter(
        TransactionDB.id == transaction_id,
        TransactionDB.user_id == user_id
    ).first()


def _like_pattern(text: str) -> str:
    """Escape LIKE wildcards so user input only matches literally"""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _apply_filters(query, filters: Optional[TransactionFilter]):
    if not filters:
        return query

    if filters.transaction_type:
        query = query.filter(TransactionDB.type == TransactionType(filters.transaction_type.value))

    if filters.account_id:
        query = query.filter(TransactionDB.account_id == filters.account_id)

    if filters.category_id:
        query = query.filter(TransactionDB.category_id == filters.category_id)

    if filters.date_from:
        query = query.filter(TransactionDB.transaction_date >= filters.date_from)

    if filters.date_to:
        query = query.filter(TransactionDB.transaction_date <= filters.date_to)

    if filters.search:
        query = query.filter(TransactionDB.description.ilike(f"%{_like_pattern(filters.search)}%", escape="\\"))

    if filters.tag:
        # Tags are a JSON list; match the quoted element in its text form
        query = query.filter(cast(TransactionDB.tags, String).ilike(f'%"{_like_pattern(filters.tag)}"%', escape="\\"))

    return query


def read_db_transactions(db: Session, user_id: int, filters: Optional[TransactionFilter] = None,
                         skip: int = 0, limit: int = 100) -> List[TransactionDB]:
    """Read transactions with filtering and pagination, most recent first"""

    query = db.query(TransactionDB).filter(TransactionDB.user_id == user_id)
    query = _apply_filters(query, filters)

    return query.options(
        joinedload(TransactionDB.category),
        joinedload(TransactionDB.account)
    ).order_by(
        desc(TransactionDB.transaction_date),
        desc(TransactionDB.created_at),
        desc(TransactionDB.id)
    ).offset(skip).limit(limit).all()


def read_db_transactions_by_category(db: Session, user_id: int, category_id: int,
                                     skip: int = 0, limit: int = 100) -> List[TransactionDB]:
    if not read_db_category(db, category_id, user_id):
        raise NotFoundError(f"Category with id {category_id} not found")
    return read_db_transactions(db, user_id, TransactionFilter(category_id=category_id), skip, limit)


def read_db_transactions_by_account(db: Session, user_id: int, account_id: int,
                                    skip: int = 0, limit: int = 100) -> List[TransactionDB]:
    if not read_db_account(db, account_id, user_id):
        raise NotFoundError(f"Account with id {account_id} not found")
    return read_db_transactions(db, user_id, TransactionFilter(account_id=account_id), skip, limit)


def get_transactions_count(db: Session, user_id: int, filters: Optional[TransactionFilter] = None) -> int:
    """Count transactions matching the same filters as read_db_transactions"""
    query = db.query(func.count(TransactionDB.id)).filter(TransactionDB.user_id == user_id)
    return _apply_filters(query, filters).scalar()


def update_db_transaction(db: Session, transaction_id: int, user_id: int,
                          transaction_updates: TransactionUpdate) -> TransactionDB:
    """
    Update descriptive fields of a transaction.

    Amount, type and account are fixed at creation; a patch that changes any
    of them is rejected. Balances are never recomputed here.
    """
    db_transaction = read_db_transaction(db, transaction_id, user_id)
    if not db_transaction:
        raise NotFoundError(f"Transaction with id {transaction_id} not found")

    update_data = transaction_updates.model_dump(exclude_unset=True)

    stored = {
        'amount': db_transaction.amount,
        'transaction_type': db_transaction.type.value,
        'account_id': db_transaction.account_id,
    }
    for field in IMMUTABLE_FIELDS:
        value = update_data.pop(field, None)
        if value is None:
            continue
        if field == 'transaction_type':
            value = value.value
        if value != stored[field]:
            logger.warning(f"Rejected change of {field} on transaction {transaction_id}")
            raise BadRequestError(
                f"Cannot change {field} of an existing transaction; delete it and create a new one"
            )

    new_category_id = update_data.get('category_id')
    if new_category_id is not None and new_category_id != db_transaction.category_id:
        _check_category_matches(db, new_category_id, user_id, db_transaction.type)

    for field, value in update_data.items():
        if field in ('description', 'category_id', 'transaction_date') and value is None:
            continue
        # tags is a non-null list column; null clears it
        if field == 'tags' and value is None:
            value = []
        setattr(db_transaction, field, value)

    db_transaction.updated_at = datetime.utcnow()

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Failed to update transaction") from e

    return _load_transaction(db, db_transaction.id)


def delete_db_transaction(db: Session, transaction_id: int, user_id: int) -> Dict[str, Any]:
    """
    Reverse a transaction: restore its balance effect and delete the row in
    one commit. Transfer legs can only be removed together.
    """
    db_transaction = db.query(TransactionDB).filter(
        TransactionDB.id == transaction_id,
        TransactionDB.user_id == user_id
    ).first()

    if not db_transaction:
        raise NotFoundError(f"Transaction with id {transaction_id} not found")

    if db_transaction.type == TransactionType.TRANSFER:
        raise BadRequestError(
            f"Transaction {transaction_id} is a transfer leg; delete transfer {db_transaction.transfer_reference} instead"
        )

    account_id = db_transaction.account_id
    reference_number = db_transaction.reference_number
    reversal = -balance_delta(db_transaction.type, db_transaction.amount)

    try:
        new_balance = apply_balance_delta(db, account_id, reversal)
        db.delete(db_transaction)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to reverse transaction {transaction_id}: {e}")
        raise InternalError("Failed to reverse transaction") from e

    logger.info(f"Reversed {reference_number} on account {account_id}: {new_balance - reversal} -> {new_balance}")
    return {
        "message": "Transaction deleted and balance restored",
        "previous_balance": new_balance - reversal,
        "new_balance": new_balance,
    }


def delete_db_transfer(db: Session, transfer_reference: str, user_id: int) -> Dict[str, Any]:
    """Reverse both legs of a transfer in one commit"""

    legs = db.query(TransactionDB).filter(
        TransactionDB.transfer_reference == transfer_reference,
        TransactionDB.user_id == user_id
    ).all()

    if not legs:
        raise NotFoundError(f"Transfer {transfer_reference} not found")

    # Each leg stored its own signed delta in its snapshot
    reversals = {}
    for leg in legs:
        reversals[leg.account_id] = reversals.get(leg.account_id, Decimal("0.00")) - (leg.balance_after - leg.balance_before)

    balances = {}
    try:
        for account_id in sorted(reversals):
            balances[account_id] = apply_balance_delta(db, account_id, reversals[account_id])
        for leg in legs:
            db.delete(leg)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to reverse transfer {transfer_reference}: {e}")
        raise InternalError("Failed to reverse transfer") from e

    logger.info(f"Reversed transfer {transfer_reference} ({len(legs)} legs)")
    return {
        "message": "Transfer deleted and balances restored",
        "balances": balances,
    }
