from pydantic import BaseModel
from typing import Optional, List
from decimal import Decimal

from vantage.models.transaction import TransactionResponse


# ===== DASHBOARD PYDANTIC MODELS =====

class CategoryBreakdownItem(BaseModel):
    category_id: Optional[int]
    name: str
    icon: str
    color: str
    total: Decimal


class DashboardSummary(BaseModel):
    """Money figures are in the user's base currency"""
    currency: str
    total_balance: Decimal
    monthly_income: Decimal
    monthly_expenses: Decimal
    category_breakdown: List[CategoryBreakdownItem]
    recent_transactions: List[TransactionResponse]
