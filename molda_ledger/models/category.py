from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

# ===== CATEGORY PYDANTIC MODELS =====


class TransactionTypeEnum(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    INVESTMENT = "INVESTMENT"
    TRANSFER = "TRANSFER"
    DIVIDEND = "DIVIDEND"
    RESCUE = "RESCUE"


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Category name")
    type: TransactionTypeEnum = Field(..., description="Transaction type this category accepts")
    icon: Optional[str] = Field(None, max_length=50, description="Display icon")
    color: Optional[str] = Field(None, pattern=r"^#([A-Fa-f0-9]{6})$", description="Hex display color")
    budget: Optional[Decimal] = Field(None, ge=0, max_digits=17, decimal_places=2, description="Optional spending ceiling")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[TransactionTypeEnum] = None
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, pattern=r"^#([A-Fa-f0-9]{6})$")
    budget: Optional[Decimal] = Field(None, ge=0, max_digits=17, decimal_places=2)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class CategoryResponse(BaseModel):
    id: int
    name: str
    type: TransactionTypeEnum
    icon: Optional[str]
    color: Optional[str]
    budget: Optional[Decimal]
    created_at: datetime

    class Config:
        from_attributes = True


class CategoryStatistics(BaseModel):
    id: int
    name: str
    icon: Optional[str]
    color: Optional[str]
    type: TransactionTypeEnum
    transaction_count: int


class DefaultCategory(BaseModel):
    """One entry of the onboarding catalog"""
    name: str
    icon: str
    color: str
    type: TransactionTypeEnum
