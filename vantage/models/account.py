from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from vantage.services.currency import normalize_currency


# ===== ACCOUNT PYDANTIC MODELS =====

class AccountTypeEnum(str, Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT = "CREDIT"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"


class AccountCreate(BaseModel):
    account_name: str = Field(..., min_length=2, max_length=255, description="Account name")
    account_type: AccountTypeEnum = Field(..., description="Type of account")
    currency: str = Field(default="USD", min_length=3, max_length=8, description="Native currency code")
    initial_balance: Decimal = Field(default=Decimal('0.00'), description="Opening balance in the account currency")
    color: Optional[str] = Field(None, max_length=7)
    icon: Optional[str] = Field(None, max_length=50)

    @field_validator('account_name')
    @classmethod
    def validate_account_name(cls, v: str) -> str:
        return v.strip()

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        normalized = normalize_currency(v)
        if not normalized or not normalized.isalpha():
            raise ValueError('Currency must be an alphabetic code')
        return normalized

    @field_validator('initial_balance')
    @classmethod
    def validate_initial_balance(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError('Initial balance must be a number')
        return round(v, 2)


class AccountResponse(BaseModel):
    """Account data returned to client"""
    id: int
    user_id: int
    account_name: str
    account_type: AccountTypeEnum
    currency: str
    balance: Decimal
    color: str
    icon: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountBalance(BaseModel):
    """Derived balance of one account, in its native currency"""
    account_id: int
    account_name: str
    account_type: AccountTypeEnum
    currency: str
    color: str
    icon: str
    current_balance: Decimal
