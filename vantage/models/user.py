from pydantic import BaseModel, Field, field_validator
from typing import Optional
from decimal import Decimal
from enum import Enum
from uuid import UUID
import re

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


# ===== USER PYDANTIC MODELS =====

class BaseCurrencyEnum(str, Enum):
    USD = "USD"
    BIRR = "BIRR"


def _validate_email(v: str) -> str:
    if not re.match(EMAIL_PATTERN, v.strip()):
        raise ValueError('Enter a valid email address.')
    return v.lower().strip()


class UserCreate(BaseModel):
    email: str = Field(..., description="User's email address")
    name: Optional[str] = Field(None, max_length=100)
    base_currency: BaseCurrencyEnum = BaseCurrencyEnum.USD

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validate_email(v)


class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validate_email(v)


class CurrencySettingsUpdate(BaseModel):
    base_currency: BaseCurrencyEnum
    # Text so that "1,250.50" is accepted and bad input maps to InvalidExchangeRate
    exchange_rate: str = Field(..., min_length=1)

    @field_validator('exchange_rate', mode='before')
    @classmethod
    def validate_exchange_rate(cls, v):
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class CurrencySettingsResponse(BaseModel):
    base_currency: BaseCurrencyEnum
    exchange_rate: Decimal


class UserResponse(BaseModel):
    db_id: int
    id: UUID
    email: str
    name: Optional[str]
    base_currency: BaseCurrencyEnum
    usd_to_birr_rate: Decimal

    class Config:
        from_attributes = True


class UserSettingsResponse(BaseModel):
    """Profile and currency preferences"""
    id: str
    name: Optional[str]
    email: str
    base_currency: BaseCurrencyEnum
    exchange_rate: Decimal
