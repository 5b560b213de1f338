import sys
import os
import random
from sqlalchemy.orm import Session
from decimal import Decimal
from faker import Faker

# Add the project root to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from molda_ledger.db.core import session_local, Base, engine, UserDB, TransactionType, BadRequestError
from molda_ledger.crud.crud_user import create_db_user, verify_db_user_email
from molda_ledger.crud.crud_account import create_db_account
from molda_ledger.crud.crud_category import read_db_categories
from molda_ledger.crud.crud_transaction import create_db_transaction, create_db_transfer
from molda_ledger.models.user import UserCreate
from molda_ledger.models.account import AccountCreate
from molda_ledger.models.category import TransactionTypeEnum
from molda_ledger.models.transaction import TransactionCreate, TransferCreate
from molda_ledger.services.notifier import LoggingNotifier
from molda_ledger.services.onboarding import onboard_user
from molda_ledger.logging_config import setup_logging

fake = Faker("pt_BR")

AMOUNT_RANGES = {
    TransactionType.INCOME: (1500.0, 6000.0),
    TransactionType.EXPENSE: (10.0, 400.0),
    TransactionType.INVESTMENT: (100.0, 1000.0),
}


def _money(low: float, high: float) -> Decimal:
    return Decimal(str(round(random.uniform(low, high), 2)))


def seed_database(num_users: int = 3, transactions_per_user: int = 60):
    """
    Fills the database with sample owners, accounts and transactions.
    Everything goes through the ledger functions so balances stay consistent.
    """
    Base.metadata.create_all(bind=engine)
    db: Session = session_local()
    notifier = LoggingNotifier()

    try:
        # Check if data exists to prevent duplicate seeding
        if db.query(UserDB).count() > 0:
            print("Database appears to be already seeded. Exiting.")
            return

        print("Seeding database with sample data...")

        for i in range(num_users):
            user = create_db_user(db, UserCreate(
                name=fake.name(),
                email=fake.unique.email(),
                national_id=fake.unique.cpf(),
                phone=f"119{fake.unique.numerify('########')}",
            ), notifier=notifier)
            verify_db_user_email(db, user.verification_token)
            onboarding = onboard_user(db, user.id, notifier=notifier)

            savings = create_db_account(db, user.id, AccountCreate(
                account_name="Savings",
                color=fake.hex_color(),
                balance=_money(500.0, 5000.0),
            ))
            account_ids = [onboarding["account"].id, savings.id]

            categories = {
                category_type: read_db_categories(db, user.id, TransactionTypeEnum(category_type.value))
                for category_type in AMOUNT_RANGES
            }

            created = 0
            rejected = 0
            for _ in range(transactions_per_user):
                category_type = random.choices(
                    list(AMOUNT_RANGES), weights=[2, 10, 1]
                )[0]
                category = random.choice(categories[category_type])
                try:
                    create_db_transaction(db, user.id, TransactionCreate(
                        account_id=random.choice(account_ids),
                        category_id=category.id,
                        transaction_type=TransactionTypeEnum(category_type.value),
                        amount=_money(*AMOUNT_RANGES[category_type]),
                        transaction_date=fake.date_between(start_date="-1y", end_date="today"),
                        description=fake.catch_phrase()[:100],
                        tags=fake.words(nb=random.randint(0, 2)),
                    ))
                    created += 1
                except BadRequestError:
                    rejected += 1

            try:
                create_db_transfer(db, user.id, TransferCreate(
                    from_account_id=savings.id,
                    to_account_id=onboarding["account"].id,
                    amount=Decimal("100.00"),
                    transaction_date=fake.date_between(start_date="-1m", end_date="today"),
                    description="Monthly allowance",
                ))
            except BadRequestError:
                rejected += 1

            print(f"User {i+1} seeded: {created} transactions, {rejected} rejected for insufficient balance.")

        print("Successfully seeded database.")

    except Exception as e:
        print(f"An error occurred: {e}")
        import traceback
        traceback.print_exc()
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging()
    seed_database()
