from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import func
from typing import List, Optional
from datetime import datetime

from molda_ledger.db.core import CategoryDB, TransactionDB, TransactionType, NotFoundError, ConflictError, InternalError
from molda_ledger.models.category import CategoryCreate, CategoryUpdate, DefaultCategory, TransactionTypeEnum
from molda_ledger.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CATEGORY_COLOR = "#6366f1"


# ===== DEFAULT CATALOG =====

_DEFAULT_CATEGORIES = (
    # Income
    ("Salary", "salary", "#10b981", TransactionTypeEnum.INCOME),
    ("Freelance", "freelance", "#3b82f6", TransactionTypeEnum.INCOME),
    ("Investment Income", "investment_income", "#8b5cf6", TransactionTypeEnum.INCOME),
    ("Other Income", "other_income", "#06b6d4", TransactionTypeEnum.INCOME),
    # Expenses
    ("Food", "food", "#ef4444", TransactionTypeEnum.EXPENSE),
    ("Transport", "transport", "#f59e0b", TransactionTypeEnum.EXPENSE),
    ("Housing", "housing", "#ec4899", TransactionTypeEnum.EXPENSE),
    ("Health", "health", "#14b8a6", TransactionTypeEnum.EXPENSE),
    ("Education", "education", "#6366f1", TransactionTypeEnum.EXPENSE),
    ("Entertainment", "entertainment", "#a855f7", TransactionTypeEnum.EXPENSE),
    ("Shopping", "shopping", "#f43f5e", TransactionTypeEnum.EXPENSE),
    ("Bills", "utilities", "#84cc16", TransactionTypeEnum.EXPENSE),
    # Investments
    ("Stocks", "stocks", "#2563eb", TransactionTypeEnum.INVESTMENT),
    ("Fixed Income", "fixed_income", "#059669", TransactionTypeEnum.INVESTMENT),
    ("Funds", "funds", "#7c3aed", TransactionTypeEnum.INVESTMENT),
    ("Crypto", "crypto", "#f97316", TransactionTypeEnum.INVESTMENT),
    # Transfers
    ("Transfer", "transfer", "#6366f1", TransactionTypeEnum.TRANSFER),
)


def get_default_categories() -> List[DefaultCategory]:
    """The fixed onboarding catalog, in display order."""
    return [
        DefaultCategory(name=name, icon=icon, color=color, type=category_type)
        for name, icon, color, category_type in _DEFAULT_CATEGORIES
    ]


def add_default_categories(db: Session, user_id: int) -> List[CategoryDB]:
    """Stage the default catalog for an owner without committing.

    Raises ConflictError if the owner already has any category.
    """
    existing = db.query(func.count(CategoryDB.id)).filter(CategoryDB.user_id == user_id).scalar()
    if existing > 0:
        raise ConflictError(f"User {user_id} already has {existing} categories")

    categories = [
        CategoryDB(
            user_id=user_id,
            name=default.name,
            icon=default.icon,
            color=default.color or DEFAULT_CATEGORY_COLOR,
            type=TransactionType(default.type.value),
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        for default in get_default_categories()
    ]
    db.add_all(categories)
    return categories


def create_default_categories(db: Session, user_id: int) -> List[CategoryDB]:
    """Insert the default catalog for a new owner in one commit"""
    categories = add_default_categories(db, user_id)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to create default categories: {e}") from e

    logger.info(f"Created {len(categories)} default categories for user {user_id}")
    return categories


# ===== DATABASE OPERATIONS =====

def create_db_category(db: Session, user_id: int, category_data: CategoryCreate) -> CategoryDB:
    """Create a custom category for an owner"""

    db_category = CategoryDB(
        user_id=user_id,
        name=category_data.name,
        icon=category_data.icon,
        color=category_data.color or DEFAULT_CATEGORY_COLOR,
        type=TransactionType(category_data.type.value),
        budget=category_data.budget,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )

    try:
        db.add(db_category)
        db.commit()
        db.refresh(db_category)
        return db_category
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Category creation failed due to a database constraint") from e


def read_db_category(db: Session, category_id: int, user_id: int) -> Optional[CategoryDB]:
    """Read a single category owned by the user"""
    return db.query(CategoryDB).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).first()


def read_db_categories(db: Session, user_id: int, category_type: Optional[TransactionTypeEnum] = None) -> List[CategoryDB]:
    """Read an owner's categories, optionally filtered by type"""
    query = db.query(CategoryDB).filter(CategoryDB.user_id == user_id)

    if category_type:
        query = query.filter(CategoryDB.type == TransactionType(category_type.value))

    return query.order_by(CategoryDB.name).all()


def get_category_type(db: Session, category_id: int, user_id: int) -> TransactionType:
    """Look up the transaction type a category accepts"""
    category_type = db.query(CategoryDB.type).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).scalar()

    if category_type is None:
        raise NotFoundError(f"Category with id {category_id} not found")
    return category_type


def find_first_category_of_type(db: Session, user_id: int, category_type: TransactionType) -> Optional[CategoryDB]:
    return db.query(CategoryDB).filter(
        CategoryDB.user_id == user_id,
        CategoryDB.type == category_type
    ).order_by(CategoryDB.id).first()


def _count_category_transactions(db: Session, category_id: int) -> int:
    return db.query(func.count(TransactionDB.id)).filter(TransactionDB.category_id == category_id).scalar()


def update_db_category(db: Session, category_id: int, user_id: int, category_updates: CategoryUpdate) -> CategoryDB:
    """Update a category; its type is frozen once transactions reference it"""

    db_category = db.query(CategoryDB).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).with_for_update().first()

    if not db_category:
        raise NotFoundError(f"Category with id {category_id} not found")

    update_data = category_updates.model_dump(exclude_unset=True)

    new_type = update_data.pop('type', None)
    if new_type is not None and TransactionType(new_type.value) != db_category.type:
        in_use = _count_category_transactions(db, category_id)
        if in_use > 0:
            message = (
                f"Cannot change the type of category '{db_category.name}': "
                f"{in_use} transaction(s) use it"
            )
            db.rollback()
            raise ConflictError(message)
        db_category.type = TransactionType(new_type.value)

    for field, value in update_data.items():
        if field in ('name', 'color') and value is None:
            continue
        setattr(db_category, field, value)

    db_category.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_category)
        return db_category
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Category update failed due to a database constraint") from e


def delete_db_category(db: Session, category_id: int, user_id: int) -> bool:
    """Delete a category that no transaction references"""

    # Lock the row so a concurrent transaction insert can't slip in between count and delete
    db_category = db.query(CategoryDB).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).with_for_update().first()

    if not db_category:
        raise NotFoundError(f"Category with id {category_id} not found")

    in_use = _count_category_transactions(db, category_id)
    if in_use > 0:
        db.rollback()
        raise ConflictError(f"Cannot delete category: {in_use} transaction(s) use it")

    try:
        db.delete(db_category)
        db.commit()
        return True
    except IntegrityError as e:
        # FK RESTRICT fired: a transaction was inserted after the count
        db.rollback()
        raise ConflictError("Cannot delete category as it is currently in use") from e
