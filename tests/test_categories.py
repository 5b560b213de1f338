from decimal import Decimal

import pytest

from conftest import make_category, record
from molda_ledger.crud import crud_category
from molda_ledger.db.core import CategoryDB, TransactionType, NotFoundError, ConflictError
from molda_ledger.models.category import CategoryUpdate, TransactionTypeEnum


class TestDefaultCatalog:
    def test_catalog_covers_every_core_type(self):
        defaults = crud_category.get_default_categories()

        assert len(defaults) == 17
        types = {d.type for d in defaults}
        assert {TransactionTypeEnum.INCOME, TransactionTypeEnum.EXPENSE,
                TransactionTypeEnum.INVESTMENT, TransactionTypeEnum.TRANSFER} <= types

    def test_catalog_is_stable(self):
        first = [d.name for d in crud_category.get_default_categories()]
        second = [d.name for d in crud_category.get_default_categories()]
        assert first == second

    def test_create_defaults_inserts_full_catalog(self, db, user):
        created = crud_category.create_default_categories(db, user.id)

        assert len(created) == 17
        stored = crud_category.read_db_categories(db, user.id)
        assert {c.name for c in stored} == {d.name for d in crud_category.get_default_categories()}

    def test_second_call_conflicts_and_adds_nothing(self, db, user):
        crud_category.create_default_categories(db, user.id)

        with pytest.raises(ConflictError):
            crud_category.create_default_categories(db, user.id)

        assert db.query(CategoryDB).filter(CategoryDB.user_id == user.id).count() == 17

    def test_any_existing_category_blocks_defaults(self, db, user):
        make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Pets")

        with pytest.raises(ConflictError):
            crud_category.create_default_categories(db, user.id)


def test_create_category_uses_default_color(db, user):
    category = make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Pets")

    assert category.color == "#6366f1"
    assert category.type == TransactionType.EXPENSE


def test_read_categories_filters_by_type(db, user):
    make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Pets")
    make_category(db, user.id, TransactionTypeEnum.INCOME, "Salary")

    expenses = crud_category.read_db_categories(db, user.id, TransactionTypeEnum.EXPENSE)

    assert [c.name for c in expenses] == ["Pets"]


def test_categories_are_owner_scoped(db, user, other_user):
    category = make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Pets")

    assert crud_category.read_db_category(db, category.id, other_user.id) is None
    with pytest.raises(NotFoundError):
        crud_category.get_category_type(db, category.id, other_user.id)
    with pytest.raises(NotFoundError):
        crud_category.delete_db_category(db, category.id, other_user.id)


def test_get_category_type(db, user):
    category = make_category(db, user.id, TransactionTypeEnum.INVESTMENT)

    assert crud_category.get_category_type(db, category.id, user.id) == TransactionType.INVESTMENT


class TestCategoryUpdate:
    def test_cosmetic_fields_always_editable(self, ledger, db):
        user, account, expense = ledger["user"], ledger["account"], ledger["expense"]
        record(db, user.id, account.id, expense.id, TransactionTypeEnum.EXPENSE, "10.00")

        updated = crud_category.update_db_category(db, expense.id, user.id, CategoryUpdate(
            name="Groceries", color="#123456", budget=Decimal("500.00")
        ))

        assert updated.name == "Groceries"
        assert updated.color == "#123456"
        assert updated.budget == Decimal("500.00")

    def test_type_change_allowed_while_unused(self, db, user):
        category = make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Misc")

        updated = crud_category.update_db_category(db, category.id, user.id, CategoryUpdate(
            type=TransactionTypeEnum.INCOME
        ))

        assert updated.type == TransactionType.INCOME

    def test_type_change_blocked_once_used(self, ledger, db):
        user, account, expense = ledger["user"], ledger["account"], ledger["expense"]
        record(db, user.id, account.id, expense.id, TransactionTypeEnum.EXPENSE, "10.00")

        with pytest.raises(ConflictError):
            crud_category.update_db_category(db, expense.id, user.id, CategoryUpdate(
                type=TransactionTypeEnum.INCOME
            ))

        assert crud_category.get_category_type(db, expense.id, user.id) == TransactionType.EXPENSE


class TestCategoryDelete:
    def test_delete_unused_category(self, db, user):
        category = make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Pets")

        assert crud_category.delete_db_category(db, category.id, user.id) is True
        assert crud_category.read_db_category(db, category.id, user.id) is None

    def test_delete_referenced_category_conflicts(self, ledger, db):
        user, account, expense = ledger["user"], ledger["account"], ledger["expense"]
        record(db, user.id, account.id, expense.id, TransactionTypeEnum.EXPENSE, "10.00")

        with pytest.raises(ConflictError):
            crud_category.delete_db_category(db, expense.id, user.id)

        assert crud_category.read_db_category(db, expense.id, user.id) is not None

    def test_delete_missing_category(self, db, user):
        with pytest.raises(NotFoundError):
            crud_category.delete_db_category(db, 9999, user.id)


def test_registry_does_not_import_account_store():
    import molda_ledger.crud.crud_category as category_module
    import molda_ledger.crud.crud_account as account_module

    assert "crud_account" not in vars(category_module)
    assert "crud_category" not in vars(account_module)
    assert not any(getattr(v, "__module__", "") == account_module.__name__ for v in vars(category_module).values())
