from datetime import date
from decimal import Decimal

import pytest

from conftest import make_account, make_category, record
from molda_ledger.crud import crud_transaction
from molda_ledger.crud.crud_category import update_db_category
from molda_ledger.db.core import NotFoundError
from molda_ledger.models.category import CategoryUpdate, TransactionTypeEnum
from molda_ledger.models.transaction import TransferCreate
from molda_ledger.services import statements


@pytest.fixture
def month(ledger, db):
    """March and April activity on the 100.00 account."""
    user, account = ledger["user"], ledger["account"]
    rent = make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Rent")
    dividend = make_category(db, user.id, TransactionTypeEnum.DIVIDEND, "Dividends")
    update_db_category(db, ledger["expense"].id, user.id, CategoryUpdate(budget=Decimal("50.00")))

    record(db, user.id, account.id, ledger["income"].id, TransactionTypeEnum.INCOME, "1000.00",
           transaction_date=date(2026, 3, 1))
    record(db, user.id, account.id, rent.id, TransactionTypeEnum.EXPENSE, "600.00",
           transaction_date=date(2026, 3, 2))
    record(db, user.id, account.id, ledger["expense"].id, TransactionTypeEnum.EXPENSE, "60.00",
           transaction_date=date(2026, 3, 10))
    record(db, user.id, account.id, ledger["investment"].id, TransactionTypeEnum.INVESTMENT, "200.00",
           transaction_date=date(2026, 3, 15))
    record(db, user.id, account.id, dividend.id, TransactionTypeEnum.DIVIDEND, "5.00",
           transaction_date=date(2026, 3, 20))
    record(db, user.id, account.id, ledger["expense"].id, TransactionTypeEnum.EXPENSE, "40.00",
           transaction_date=date(2026, 4, 3))
    return ledger, rent


class TestTransactionStats:
    def test_totals_per_bucket(self, month, db):
        ledger, _ = month

        stats = statements.get_transaction_stats(db, ledger["user"].id)

        assert stats.income.total == Decimal("1005.00")
        assert stats.income.count == 2
        assert stats.expenses.total == Decimal("700.00")
        assert stats.expenses.count == 3
        assert stats.investments.total == Decimal("200.00")
        assert stats.balance == Decimal("105.00")
        assert stats.total_transactions == 6

    def test_period_filter(self, month, db):
        ledger, _ = month

        stats = statements.get_transaction_stats(db, ledger["user"].id, date(2026, 4, 1), date(2026, 4, 30))

        assert stats.expenses.total == Decimal("40.00")
        assert stats.income.count == 0
        assert stats.balance == Decimal("-40.00")

    def test_transfers_only_count_towards_total(self, ledger, db):
        user = ledger["user"]
        savings = make_account(db, user.id, "0.00", name="Savings")
        crud_transaction.create_db_transfer(db, user.id, TransferCreate(
            from_account_id=ledger["account"].id, to_account_id=savings.id,
            amount=Decimal("10.00"), transaction_date=date(2026, 3, 1), description="Save",
        ))

        stats = statements.get_transaction_stats(db, user.id)

        assert stats.total_transactions == 2
        assert stats.balance == Decimal("0.00")

    def test_empty(self, db, user):
        stats = statements.get_transaction_stats(db, user.id)

        assert stats.total_transactions == 0
        assert stats.balance == Decimal("0.00")


class TestExpensesByCategory:
    def test_breakdown_with_budget(self, month, db):
        ledger, rent = month

        rows = statements.get_expenses_by_category(db, ledger["user"].id)

        assert [r.category_name for r in rows] == ["Rent", "Food"]
        rent_row, food_row = rows
        assert rent_row.total_amount == Decimal("600.00")
        assert rent_row.percentage == Decimal("85.71")
        assert rent_row.budget is None
        assert rent_row.budget_usage is None
        assert rent_row.over_budget is False
        assert food_row.total_amount == Decimal("100.00")
        assert food_row.percentage == Decimal("14.29")
        assert food_row.budget == Decimal("50.00")
        assert food_row.budget_usage == Decimal("200.00")
        assert food_row.over_budget is True

    def test_period_filter(self, month, db):
        ledger, _ = month

        rows = statements.get_expenses_by_category(db, ledger["user"].id, date_from=date(2026, 4, 1))

        assert len(rows) == 1
        assert rows[0].total_amount == Decimal("40.00")
        assert rows[0].percentage == Decimal("100.00")
        assert rows[0].over_budget is False


def test_category_statistics(month, db):
    ledger, _ = month

    counts = {s.name: s.transaction_count for s in statements.get_category_statistics(db, ledger["user"].id)}

    assert counts == {"Dividends": 1, "Food": 2, "Rent": 1, "Salary": 1, "Stocks": 1, "Transfer": 0}


class TestAccountStatement:
    def test_whole_history(self, month, db):
        ledger, _ = month

        statement = statements.get_account_statement(db, ledger["account"].id, ledger["user"].id)

        assert statement.opening_balance == Decimal("100.00")
        assert statement.closing_balance == Decimal("205.00")
        assert statement.total_credits == Decimal("1005.00")
        assert statement.total_debits == Decimal("900.00")
        assert len(statement.transactions) == 6

    def test_march_only(self, month, db):
        ledger, _ = month

        statement = statements.get_account_statement(
            db, ledger["account"].id, ledger["user"].id, date(2026, 3, 1), date(2026, 3, 31)
        )

        assert statement.opening_balance == Decimal("100.00")
        assert statement.closing_balance == Decimal("245.00")
        assert [t.amount for t in statement.transactions] == [
            Decimal("1000.00"), Decimal("600.00"), Decimal("60.00"), Decimal("200.00"), Decimal("5.00")
        ]
        # Rows come back in application order with their own snapshots
        for earlier, later in zip(statement.transactions, statement.transactions[1:]):
            assert earlier.balance_after == later.balance_before

    def test_april_opens_where_march_closed(self, month, db):
        ledger, _ = month

        statement = statements.get_account_statement(
            db, ledger["account"].id, ledger["user"].id, date(2026, 4, 1), date(2026, 4, 30)
        )

        assert statement.opening_balance == Decimal("245.00")
        assert statement.closing_balance == Decimal("205.00")

    def test_foreign_account(self, month, db, other_user):
        ledger, _ = month

        with pytest.raises(NotFoundError):
            statements.get_account_statement(db, ledger["account"].id, other_user.id)
