from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing_extensions import Self

from molda_ledger.models.account import AccountSummary
from molda_ledger.models.category import CategoryResponse, TransactionTypeEnum

# ===== TRANSACTION PYDANTIC MODELS =====


class TransactionStatusEnum(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REVERSED = "REVERSED"


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    """Strip, drop blanks and de-duplicate case-insensitively, keeping first spelling."""
    if tags is None:
        return tags
    seen = set()
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            cleaned.append(tag)
    return cleaned


class TransactionCreate(BaseModel):
    account_id: int = Field(..., description="Account the transaction is applied to")
    category_id: int = Field(..., description="Category; its type must match the transaction type")
    transaction_type: TransactionTypeEnum = Field(..., description="Type of transaction")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Strictly positive amount")
    transaction_date: date = Field(..., description="Business date of the transaction")
    description: str = Field(..., min_length=1, max_length=500, description="Transaction description")
    notes: Optional[str] = Field(None, description="Free-text notes")
    tags: List[str] = Field(default_factory=list, description="Tags for the transaction")

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Description cannot be blank')
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class TransferCreate(BaseModel):
    from_account_id: int = Field(..., description="Account debited")
    to_account_id: int = Field(..., description="Account credited")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    transaction_date: date
    description: str = Field(..., min_length=1, max_length=400)
    category_id: Optional[int] = Field(None, description="TRANSFER category; defaults to the owner's first one")
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Description cannot be blank')
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)

    @model_validator(mode="after")
    def check_distinct_accounts(self) -> Self:
        if self.from_account_id == self.to_account_id:
            raise ValueError("Cannot transfer to the same account")
        return self


class TransactionUpdate(BaseModel):
    """Patch for a transaction.

    Only description, notes, tags, category_id and transaction_date are
    mutable. amount, transaction_type and account_id are accepted so that a
    client echoing the stored values does not fail, but a differing value is
    rejected by the engine.
    """
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    category_id: Optional[int] = None
    transaction_date: Optional[date] = None

    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    transaction_type: Optional[TransactionTypeEnum] = None
    account_id: Optional[int] = None

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Description cannot be blank')
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class TransactionResponse(BaseModel):
    """Transaction data returned to client"""
    id: int
    reference_number: str
    account_id: int
    category_id: int
    description: str
    amount: Decimal
    transaction_type: TransactionTypeEnum = Field(validation_alias="type")
    status: TransactionStatusEnum
    transaction_date: date
    balance_before: Decimal
    balance_after: Decimal
    notes: Optional[str]
    tags: List[str]
    transfer_reference: Optional[str]
    category: Optional[CategoryResponse] = None
    account: Optional[AccountSummary] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class TransferResponse(BaseModel):
    transfer_reference: str
    out_transaction: TransactionResponse
    in_transaction: TransactionResponse


class TransactionFilter(BaseModel):
    """Filter parameters for transaction queries"""
    transaction_type: Optional[TransactionTypeEnum] = None
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    tag: Optional[str] = None


class ReversalResult(BaseModel):
    message: str
    previous_balance: Decimal
    new_balance: Decimal


class TransferReversalResult(BaseModel):
    message: str
    balances: Dict[int, Decimal]


class TypeTotal(BaseModel):
    total: Decimal
    count: int


class TransactionStats(BaseModel):
    income: TypeTotal
    expenses: TypeTotal
    investments: TypeTotal
    balance: Decimal
    total_transactions: int


class CategoryExpense(BaseModel):
    category_id: int
    category_name: str
    category_icon: Optional[str]
    category_color: Optional[str]
    total_amount: Decimal
    percentage: Decimal
    budget: Optional[Decimal]
    budget_usage: Optional[Decimal]
    over_budget: bool


class AccountStatement(BaseModel):
    account_id: int
    date_from: Optional[date]
    date_to: Optional[date]
    opening_balance: Decimal
    closing_balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    transactions: List[TransactionResponse]
