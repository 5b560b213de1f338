"""
Pytest configuration and fixtures for the ledger tests.
"""

from datetime import date
from decimal import Decimal
from typing import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from molda_ledger.db.core import Base, UserDB, UserStatus, _enable_sqlite_pragmas
from molda_ledger.crud.crud_account import create_db_account
from molda_ledger.crud.crud_category import create_db_category
from molda_ledger.crud.crud_transaction import create_db_transaction
from molda_ledger.models.account import AccountCreate
from molda_ledger.models.category import CategoryCreate, TransactionTypeEnum
from molda_ledger.models.transaction import TransactionCreate

# Valid CPFs (check digits verified)
CPF_A = "52998224725"
CPF_B = "11144477735"
CPF_C = "39053344705"


def make_engine(url: str = "sqlite+pysqlite:///:memory:"):
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.endswith(":memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_pragmas)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def make_user(db: Session, name: str = "Ana Souza", email: str = "ana@example.com",
              national_id: str = CPF_A, phone: str = "11987654321") -> UserDB:
    user = UserDB(
        name=name,
        email=email,
        national_id=national_id,
        phone=phone,
        status=UserStatus.ACTIVE,
        is_email_verified=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db) -> UserDB:
    return make_user(db)


@pytest.fixture
def other_user(db) -> UserDB:
    return make_user(db, name="Bruno Lima", email="bruno@example.com", national_id=CPF_B, phone="21912345678")


def make_account(db: Session, user_id: int, balance: str = "0.00", name: str = "Checking"):
    return create_db_account(db, user_id, AccountCreate(account_name=name, balance=Decimal(balance)))


def make_category(db: Session, user_id: int, category_type: TransactionTypeEnum, name: str = None):
    return create_db_category(db, user_id, CategoryCreate(name=name or category_type.value.title(), type=category_type))


def record(db: Session, user_id: int, account_id: int, category_id: int,
           transaction_type: TransactionTypeEnum, amount: str, description: str = "Test",
           transaction_date: date = date(2026, 3, 10), tags=None):
    return create_db_transaction(db, user_id, TransactionCreate(
        account_id=account_id,
        category_id=category_id,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        transaction_date=transaction_date,
        description=description,
        tags=tags or [],
    ))


@pytest.fixture
def ledger(db, user):
    """An owner with one 100.00 account and one category per common type."""
    account = make_account(db, user.id, "100.00")
    return {
        "user": user,
        "account": account,
        "income": make_category(db, user.id, TransactionTypeEnum.INCOME, "Salary"),
        "expense": make_category(db, user.id, TransactionTypeEnum.EXPENSE, "Food"),
        "investment": make_category(db, user.id, TransactionTypeEnum.INVESTMENT, "Stocks"),
        "transfer": make_category(db, user.id, TransactionTypeEnum.TRANSFER, "Transfer"),
    }

