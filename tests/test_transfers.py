from datetime import date
from decimal import Decimal

import pytest

from conftest import make_account, make_category
from molda_ledger.crud import crud_transaction
from molda_ledger.crud.crud_account import get_account_balance
from molda_ledger.db.core import TransactionDB, TransactionType, NotFoundError, BadRequestError, InsufficientBalanceError
from molda_ledger.models.category import TransactionTypeEnum
from molda_ledger.models.transaction import TransferCreate


def transfer(db, user_id, from_id, to_id, amount, category_id=None):
    return crud_transaction.create_db_transfer(db, user_id, TransferCreate(
        from_account_id=from_id,
        to_account_id=to_id,
        amount=Decimal(amount),
        transaction_date=date(2026, 5, 1),
        description="Move money",
        category_id=category_id,
    ))


@pytest.fixture
def savings(ledger, db):
    return make_account(db, ledger["user"].id, "20.00", name="Savings")


def test_transfer_moves_money_with_linked_legs(ledger, savings, db):
    user, checking = ledger["user"], ledger["account"]

    result = transfer(db, user.id, checking.id, savings.id, "35.00")

    out_leg, in_leg = result["out_transaction"], result["in_transaction"]
    assert out_leg.transfer_reference == in_leg.transfer_reference == result["transfer_reference"]
    assert out_leg.reference_number != in_leg.reference_number
    assert out_leg.type == in_leg.type == TransactionType.TRANSFER
    assert (out_leg.balance_before, out_leg.balance_after) == (Decimal("100.00"), Decimal("65.00"))
    assert (in_leg.balance_before, in_leg.balance_after) == (Decimal("20.00"), Decimal("55.00"))
    assert out_leg.category_id == ledger["transfer"].id
    assert get_account_balance(db, checking.id, user.id) == Decimal("65.00")
    assert get_account_balance(db, savings.id, user.id) == Decimal("55.00")


def test_transfer_source_is_guarded(ledger, savings, db):
    user, checking = ledger["user"], ledger["account"]

    with pytest.raises(InsufficientBalanceError):
        transfer(db, user.id, savings.id, checking.id, "20.01")

    assert get_account_balance(db, checking.id, user.id) == Decimal("100.00")
    assert get_account_balance(db, savings.id, user.id) == Decimal("20.00")
    assert db.query(TransactionDB).count() == 0


def test_same_account_rejected():
    with pytest.raises(ValueError):
        TransferCreate(from_account_id=1, to_account_id=1, amount=Decimal("1.00"),
                       transaction_date=date(2026, 5, 1), description="x")


def test_foreign_destination_is_not_found(ledger, db, other_user):
    foreign = make_account(db, other_user.id, "0.00", name="Foreign")

    with pytest.raises(NotFoundError):
        transfer(db, ledger["user"].id, ledger["account"].id, foreign.id, "10.00")

    assert get_account_balance(db, ledger["account"].id, ledger["user"].id) == Decimal("100.00")


def test_category_must_be_a_transfer_category(ledger, savings, db):
    with pytest.raises(BadRequestError):
        transfer(db, ledger["user"].id, ledger["account"].id, savings.id, "10.00", category_id=ledger["expense"].id)


def test_transfer_needs_a_transfer_category(db, user):
    a = make_account(db, user.id, "10.00", name="A")
    b = make_account(db, user.id, "10.00", name="B")

    with pytest.raises(BadRequestError):
        transfer(db, user.id, a.id, b.id, "1.00")


def test_explicit_transfer_category(ledger, savings, db):
    moves = make_category(db, ledger["user"].id, TransactionTypeEnum.TRANSFER, "Moves")

    result = transfer(db, ledger["user"].id, ledger["account"].id, savings.id, "1.00", category_id=moves.id)

    assert result["in_transaction"].category_id == moves.id


def test_single_leg_cannot_be_deleted(ledger, savings, db):
    result = transfer(db, ledger["user"].id, ledger["account"].id, savings.id, "10.00")

    with pytest.raises(BadRequestError):
        crud_transaction.delete_db_transaction(db, result["out_transaction"].id, ledger["user"].id)


def test_delete_transfer_restores_both_accounts(ledger, savings, db):
    user, checking = ledger["user"], ledger["account"]
    result = transfer(db, user.id, checking.id, savings.id, "35.00")

    reversal = crud_transaction.delete_db_transfer(db, result["transfer_reference"], user.id)

    assert reversal["balances"] == {checking.id: Decimal("100.00"), savings.id: Decimal("20.00")}
    assert get_account_balance(db, checking.id, user.id) == Decimal("100.00")
    assert get_account_balance(db, savings.id, user.id) == Decimal("20.00")
    assert db.query(TransactionDB).count() == 0


def test_delete_transfer_is_owner_scoped(ledger, savings, db, other_user):
    result = transfer(db, ledger["user"].id, ledger["account"].id, savings.id, "5.00")

    with pytest.raises(NotFoundError):
        crud_transaction.delete_db_transfer(db, result["transfer_reference"], other_user.id)
    with pytest.raises(NotFoundError):
        crud_transaction.delete_db_transfer(db, "TRF-missing", ledger["user"].id)
