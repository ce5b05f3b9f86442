from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import date
from decimal import Decimal
from typing_extensions import Self

# ===== GOAL PYDANTIC MODELS =====

class GoalUpsert(BaseModel):
    """Create or update a goal. Amounts are entered in the user's base currency."""
    id: Optional[int] = None
    name: str = Field(..., min_length=2, max_length=255)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=Decimal('0.00'), ge=0)
    deadline: Optional[date] = None
    account_id: Optional[int] = Field(None, description="Funding account")
    category_id: Optional[int] = Field(None, description="Expense category used for contributions")
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=7)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def check_funding_account(self) -> Self:
        if self.current_amount > 0 and self.account_id is None:
            raise ValueError("Select an account for the current amount")
        return self


class GoalContribution(BaseModel):
    """Money moved from a funding account into a goal, in the account's currency"""
    account_id: int
    category_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0)
    contribution_date: Optional[date] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class GoalWithAnalytics(BaseModel):
    goal_id: int
    name: str
    currency: str
    target_amount: Decimal
    current_amount: Decimal
    deadline: Optional[date]
    progress_percent: float
    days_remaining: Optional[int]
    required_monthly_saving: Optional[Decimal]
    account_id: Optional[int]
    category_id: Optional[int]
    icon: str
    color: str
