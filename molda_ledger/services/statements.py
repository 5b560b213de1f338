"""
Statement and Rollup Service

Read-only aggregations over the ledger: per-type totals, expenses broken
down by category against their budgets, category usage counts and
per-account statements rebuilt from the balance snapshots stored on each
transaction.
"""
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, asc
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from molda_ledger.db.core import TransactionDB, CategoryDB, TransactionType, NotFoundError
from molda_ledger.models.transaction import (
    TransactionStats,
    TypeTotal,
    CategoryExpense,
    AccountStatement,
    TransactionResponse,
)
from molda_ledger.models.category import CategoryStatistics, TransactionTypeEnum
from molda_ledger.crud.crud_account import read_db_account, get_account_balance
from molda_ledger.crud.crud_transaction import BALANCE_SIGN

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return (part / whole * 100).quantize(CENT, rounding=ROUND_HALF_UP)


def _in_period(query, date_from: Optional[date], date_to: Optional[date]):
    if date_from:
        query = query.filter(TransactionDB.transaction_date >= date_from)
    if date_to:
        query = query.filter(TransactionDB.transaction_date <= date_to)
    return query


def get_transaction_stats(db: Session, user_id: int,
                          date_from: Optional[date] = None,
                          date_to: Optional[date] = None) -> TransactionStats:
    """
    Totals and counts per bucket for an owner.
    Credit types (income, dividends, rescues) fall in the income bucket;
    transfers only count towards total_transactions.
    """
    query = db.query(
        TransactionDB.type,
        func.coalesce(func.sum(TransactionDB.amount), 0),
        func.count(TransactionDB.id)
    ).filter(TransactionDB.user_id == user_id)
    rows = _in_period(query, date_from, date_to).group_by(TransactionDB.type).all()

    buckets = {
        'income': [ZERO, 0],
        'expenses': [ZERO, 0],
        'investments': [ZERO, 0],
    }
    total_transactions = 0

    for transaction_type, total, count in rows:
        total_transactions += count
        if transaction_type == TransactionType.EXPENSE:
            bucket = 'expenses'
        elif transaction_type == TransactionType.INVESTMENT:
            bucket = 'investments'
        elif BALANCE_SIGN[transaction_type] > 0:
            bucket = 'income'
        else:
            continue
        buckets[bucket][0] += Decimal(total).quantize(CENT)
        buckets[bucket][1] += count

    income, expenses, investments = (buckets[key][0] for key in ('income', 'expenses', 'investments'))

    return TransactionStats(
        income=TypeTotal(total=income, count=buckets['income'][1]),
        expenses=TypeTotal(total=expenses, count=buckets['expenses'][1]),
        investments=TypeTotal(total=investments, count=buckets['investments'][1]),
        balance=income - expenses - investments,
        total_transactions=total_transactions,
    )


def get_expenses_by_category(db: Session, user_id: int,
                             date_from: Optional[date] = None,
                             date_to: Optional[date] = None) -> List[CategoryExpense]:
    """Expense totals per category, largest first, with budget usage."""
    query = db.query(
        CategoryDB,
        func.sum(TransactionDB.amount).label('total_amount')
    ).join(
        TransactionDB, TransactionDB.category_id == CategoryDB.id
    ).filter(
        TransactionDB.user_id == user_id,
        TransactionDB.type == TransactionType.EXPENSE
    )
    rows = _in_period(query, date_from, date_to).group_by(CategoryDB.id).all()

    grand_total = sum((Decimal(total) for _, total in rows), ZERO)

    expenses = []
    for category, total in rows:
        total = Decimal(total).quantize(CENT)
        budget = category.budget
        budget_usage = _percent(total, budget) if budget else None
        expenses.append(CategoryExpense(
            category_id=category.id,
            category_name=category.name,
            category_icon=category.icon,
            category_color=category.color,
            total_amount=total,
            percentage=_percent(total, grand_total) if grand_total > 0 else ZERO,
            budget=budget,
            budget_usage=budget_usage,
            over_budget=budget is not None and total > budget,
        ))

    expenses.sort(key=lambda e: (-e.total_amount, e.category_name))
    return expenses


def get_category_statistics(db: Session, user_id: int) -> List[CategoryStatistics]:
    """How many transactions use each of the owner's categories"""
    rows = db.query(
        CategoryDB,
        func.count(TransactionDB.id)
    ).outerjoin(
        TransactionDB, TransactionDB.category_id == CategoryDB.id
    ).filter(
        CategoryDB.user_id == user_id
    ).group_by(CategoryDB.id).order_by(CategoryDB.name).all()

    return [
        CategoryStatistics(
            id=category.id,
            name=category.name,
            icon=category.icon,
            color=category.color,
            type=TransactionTypeEnum(category.type.value),
            transaction_count=count,
        )
        for category, count in rows
    ]


def get_account_statement(db: Session, account_id: int, user_id: int,
                          date_from: Optional[date] = None,
                          date_to: Optional[date] = None) -> AccountStatement:
    """
    Statement for one account over a business-date period.

    Each row's balance_after - balance_before is the delta it applied, so the
    closing balance is the current balance minus everything dated after the
    period and the opening balance is the closing balance minus the period's
    own deltas. Transactions are listed in the order they were applied.
    """
    if not read_db_account(db, account_id, user_id):
        raise NotFoundError(f"Account with id {account_id} not found")

    current_balance = get_account_balance(db, account_id, user_id)

    later_delta = ZERO
    if date_to:
        later = db.query(
            func.coalesce(func.sum(TransactionDB.balance_after - TransactionDB.balance_before), 0)
        ).filter(
            TransactionDB.account_id == account_id,
            TransactionDB.transaction_date > date_to
        ).scalar()
        later_delta = Decimal(later).quantize(CENT)

    query = db.query(TransactionDB).options(
        joinedload(TransactionDB.category),
        joinedload(TransactionDB.account)
    ).filter(TransactionDB.account_id == account_id)
    transactions = _in_period(query, date_from, date_to).order_by(
        asc(TransactionDB.created_at), asc(TransactionDB.id)
    ).all()

    total_credits = ZERO
    total_debits = ZERO
    for transaction in transactions:
        delta = transaction.balance_after - transaction.balance_before
        if delta > 0:
            total_credits += delta
        else:
            total_debits -= delta

    closing_balance = (current_balance - later_delta).quantize(CENT)
    opening_balance = (closing_balance - total_credits + total_debits).quantize(CENT)

    return AccountStatement(
        account_id=account_id,
        date_from=date_from,
        date_to=date_to,
        opening_balance=opening_balance,
        closing_balance=closing_balance,
        total_credits=total_credits.quantize(CENT),
        total_debits=total_debits.quantize(CENT),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
    )
