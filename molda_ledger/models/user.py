from pydantic import BaseModel, Field, field_validator
from typing import List
from datetime import datetime
from enum import Enum
import re

from molda_ledger.models.account import AccountResponse
from molda_ledger.models.category import CategoryResponse


# ===== USER PYDANTIC MODELS =====

class UserStatusEnum(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255, description="Full name")
    email: str = Field(..., description="User's email address")
    national_id: str = Field(..., description="National id (CPF), 11 digits")
    phone: str = Field(..., description="Phone number, 10-13 digits")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.strip()):
            raise ValueError('Invalid email format')
        return v.lower().strip()

    @field_validator('national_id')
    @classmethod
    def validate_national_id(cls, v: str) -> str:
        digits = re.sub(r'\D', '', v)
        if len(digits) != 11:
            raise ValueError('National id must have 11 digits')
        if digits == digits[0] * 11:
            raise ValueError('Invalid national id')
        # CPF check digits
        for position in (9, 10):
            total = sum(int(digits[i]) * (position + 1 - i) for i in range(position))
            check = (total * 10) % 11 % 10
            if check != int(digits[position]):
                raise ValueError('Invalid national id')
        return digits

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: str) -> str:
        digits = re.sub(r'\D', '', v)
        if not 10 <= len(digits) <= 13:
            raise ValueError('Phone must have between 10 and 13 digits')
        return digits


class UserResponse(BaseModel):
    """User data returned to client - no verification secrets"""
    id: int
    name: str
    email: str
    phone: str
    status: UserStatusEnum
    is_email_verified: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VerifyEmail(BaseModel):
    token: str = Field(..., min_length=1)


class ResendVerification(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return v.lower().strip()


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="Email or national id (CPF)")


class VerifyLoginOtp(BaseModel):
    identifier: str = Field(..., min_length=1, description="Email or national id (CPF)")
    otp_code: str = Field(..., pattern=r"^\d{6}$", description="6-digit code sent by email")


class OnboardingResponse(BaseModel):
    account: AccountResponse
    categories: List[CategoryResponse]
