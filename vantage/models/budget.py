from pydantic import BaseModel, Field, field_validator
from typing import List
from decimal import Decimal

# ===== BUDGET PYDANTIC MODELS =====

class BudgetUpsert(BaseModel):
    category_id: int = Field(..., description="Expense category the limit applies to")
    amount: Decimal = Field(..., ge=0, description="Monthly limit in the user's base currency")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class BudgetProgress(BaseModel):
    budget_id: int
    category_id: int
    category_name: str
    category_icon: str
    category_color: str
    limit: Decimal
    spent: Decimal
    percentage: float
    over_budget: bool


class BudgetOverview(BaseModel):
    """Budgets of the current month with totals, in the base currency"""
    currency: str
    month: int
    year: int
    total_budgeted: Decimal
    total_spent: Decimal
    over_budget_count: int
    budgets: List[BudgetProgress]
