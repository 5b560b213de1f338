from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ===== ACCOUNT PYDANTIC MODELS =====

HEX_COLOR_PATTERN = r"^#([A-Fa-f0-9]{6})$"


class AccountStatusEnum(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


class AccountCreate(BaseModel):
    account_name: str = Field(..., min_length=3, max_length=50, description="Account name")
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN, description="Hex display color (#RRGGBB)")
    icon: Optional[str] = Field(None, max_length=50, description="Display icon")
    balance: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=17, decimal_places=2, description="Initial account balance")

    @field_validator('account_name')
    @classmethod
    def validate_account_name(cls, v: str) -> str:
        return v.strip()


class AccountUpdate(BaseModel):
    """Update account display fields - balance only moves through transactions"""
    account_name: Optional[str] = Field(None, min_length=3, max_length=50)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = Field(None, max_length=50)
    status: Optional[AccountStatusEnum] = None

    @field_validator('account_name')
    @classmethod
    def validate_account_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class AccountResponse(BaseModel):
    """Account data returned to client"""
    id: int
    user_id: int
    account_name: str
    color: Optional[str]
    icon: Optional[str]
    balance: Decimal
    status: AccountStatusEnum
    balance_last_updated: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountSummary(BaseModel):
    """Lightweight account summary for dropdowns/lists"""
    id: int
    account_name: str
    color: Optional[str]
    icon: Optional[str]
    balance: Decimal

    class Config:
        from_attributes = True


class AccountBalance(BaseModel):
    account_id: int
    balance: Decimal


class AccountStats(BaseModel):
    total_accounts: int
    accounts_by_status: Dict[str, int]
    total_balance: Decimal
