from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from uuid import UUID
from enum import Enum
from typing_extensions import Self


# ===== TRANSACTION PYDANTIC MODELS =====

class TransactionTypeEnum(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


def _empty_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class TransactionBase(BaseModel):
    account_id: int = Field(..., description="Account the transaction is recorded against (source for transfers)")
    transaction_type: TransactionTypeEnum = Field(..., description="INCOME, EXPENSE or TRANSFER")
    amount: Decimal = Field(..., gt=0, description="Positive amount in the account currency")
    transaction_date: date = Field(..., description="Date of the transaction")
    category_id: Optional[int] = Field(None, description="Expense category")
    description: Optional[str] = Field(None, max_length=500)
    is_recurring: bool = False

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)

    @field_validator('description', mode='before')
    @classmethod
    def validate_description(cls, v):
        return _empty_to_none(v)


class TransactionCreate(TransactionBase):
    destination_account_id: Optional[int] = Field(None, description="Destination account, transfers only")
    # Kept as text so an unparseable rate is reported as such, not as a payload error
    exchange_rate: Optional[str] = Field(None, description="Per-transfer rate, USD -> BIRR")

    @field_validator('exchange_rate', mode='before')
    @classmethod
    def validate_exchange_rate(cls, v):
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            v = str(v)
        return _empty_to_none(v)

    @model_validator(mode="after")
    def check_transfer_fields(self) -> Self:
        if self.transaction_type == TransactionTypeEnum.TRANSFER:
            if self.destination_account_id is None:
                raise ValueError("Select a destination account.")
            if self.destination_account_id == self.account_id:
                raise ValueError("Destination account must be different.")
            if self.category_id is not None:
                raise ValueError("Transfers cannot have a category.")
        else:
            if self.destination_account_id is not None:
                raise ValueError("Destination account is only for transfers.")
            if self.exchange_rate is not None:
                raise ValueError("Exchange rate is only for transfers.")
            if self.transaction_type != TransactionTypeEnum.EXPENSE and self.category_id is not None:
                raise ValueError("Only expenses can have a category.")
        return self


class TransactionUpdate(BaseModel):
    """Update an income or expense transaction - all fields optional"""
    account_id: Optional[int] = None
    transaction_type: Optional[TransactionTypeEnum] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    transaction_date: Optional[date] = None
    category_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=500)
    is_recurring: Optional[bool] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round(v, 2) if v is not None else v

    @field_validator('transaction_type')
    @classmethod
    def validate_transaction_type(cls, v: Optional[TransactionTypeEnum]) -> Optional[TransactionTypeEnum]:
        if v == TransactionTypeEnum.TRANSFER:
            raise ValueError("A transaction cannot be turned into a transfer.")
        return v


class TransactionFilter(BaseModel):
    account_id: Optional[int] = None
    category_id: Optional[str] = None  # an id, or "uncategorized"
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class TransactionCategory(BaseModel):
    id: int
    name: str
    icon: str
    color: str

    class Config:
        from_attributes = True


class TransactionAccount(BaseModel):
    id: int
    account_name: str
    currency: str

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: UUID
    account_id: int
    category_id: Optional[int]
    transaction_type: TransactionTypeEnum
    amount: Decimal
    transaction_date: date
    description: Optional[str]
    is_recurring: bool
    created_at: datetime
    category: Optional[TransactionCategory] = None
    account: Optional[TransactionAccount] = None

    class Config:
        from_attributes = True


class TransactionRecorded(BaseModel):
    transaction_id: UUID


class TransactionPage(BaseModel):
    items: List[TransactionResponse]
    skip: int
    limit: int
    has_next: bool


def parse_exchange_rate(raw: Optional[str]) -> Optional[Decimal]:
    """Parse a user-supplied rate. Returns None when it is not a positive number."""
    if raw is None:
        return None
    try:
        rate = Decimal(raw.replace(",", ""))
    except (InvalidOperation, ValueError):
        return None
    if not rate.is_finite() or rate <= 0:
        return None
    return rate
