"""
New-owner onboarding: a zero-balance default account plus the default
category catalog, written in a single commit, followed by a welcome
notification.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from decimal import Decimal
from typing import Optional, Dict, Any

from molda_ledger.db.core import NotFoundError, ConflictError, InternalError
from molda_ledger.models.account import AccountCreate
from molda_ledger.crud.crud_user import read_db_user
from molda_ledger.crud.crud_account import build_db_account, get_account_by_name
from molda_ledger.crud.crud_category import add_default_categories
from molda_ledger.services.notifier import Notifier, get_notifier, notify_quietly, WELCOME
from molda_ledger.config import get_settings
from molda_ledger.logging_config import get_logger

logger = get_logger(__name__)


def onboard_user(db: Session, user_id: int, notifier: Optional[Notifier] = None) -> Dict[str, Any]:
    db_user = read_db_user(db, user_id=user_id)
    if not db_user:
        raise NotFoundError(f"User with id {user_id} not found")

    account_name = get_settings().default_account_name
    if get_account_by_name(db, user_id, account_name):
        raise ConflictError(f"Account name '{account_name}' already exists")

    categories = add_default_categories(db, user_id)
    account = build_db_account(user_id, AccountCreate(account_name=account_name, balance=Decimal('0.00')))
    db.add(account)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to onboard user {user_id}") from e

    db.refresh(account)
    logger.info(f"Onboarded user {user_id}: account {account.id} and {len(categories)} categories")

    notify_quietly(notifier or get_notifier(), db_user.email, WELCOME, {
        "name": db_user.name,
        "account_name": account.account_name,
    })

    return {
        "account": account,
        "categories": categories,
    }
