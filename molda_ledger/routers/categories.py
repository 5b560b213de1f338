from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.orm import Session
from typing import List, Optional

from molda_ledger.crud import crud_category, crud_transaction
from molda_ledger.models import category as category_models
from molda_ledger.models.transaction import TransactionResponse
from molda_ledger.services import statements
from molda_ledger.db.core import get_db
from molda_ledger.routers.deps import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)


@router.post("/", response_model=category_models.CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category: category_models.CategoryCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Create a custom category. Its type decides which transactions may use it.
    """
    try:
        return crud_category.create_db_category(db=db, user_id=user_id, category_data=category)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[category_models.CategoryResponse])
def read_categories(
    category_type: Optional[category_models.TransactionTypeEnum] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return crud_category.read_db_categories(db=db, user_id=user_id, category_type=category_type)


@router.get("/defaults", response_model=List[category_models.DefaultCategory])
def read_default_categories():
    """
    The catalog every new owner starts with.
    """
    return crud_category.get_default_categories()


@router.post("/defaults", response_model=List[category_models.CategoryResponse], status_code=status.HTTP_201_CREATED)
def create_default_categories(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Instantiate the default catalog for the current user. Fails with 409 if
    the user already has categories.
    """
    try:
        return crud_category.create_default_categories(db=db, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.get("/stats", response_model=List[category_models.CategoryStatistics])
def read_category_statistics(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return statements.get_category_statistics(db=db, user_id=user_id)


@router.get("/{category_id}", response_model=category_models.CategoryResponse)
def read_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    db_category = crud_category.read_db_category(db=db, category_id=category_id, user_id=user_id)
    if db_category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return db_category


@router.get("/{category_id}/transactions", response_model=List[TransactionResponse])
def read_category_transactions(
    category_id: int,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    try:
        return crud_transaction.read_db_transactions_by_category(
            db=db, user_id=user_id, category_id=category_id, skip=skip, limit=limit
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.put("/{category_id}", response_model=category_models.CategoryResponse)
def update_category(
    category_id: int,
    category: category_models.CategoryUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Update a category. Changing its type is refused once any transaction uses it.
    """
    try:
        return crud_category.update_db_category(
            db=db, category_id=category_id, user_id=user_id, category_updates=category
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    try:
        crud_category.delete_db_category(db=db, category_id=category_id, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
