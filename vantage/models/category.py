from pydantic import BaseModel, Field, field_validator
from typing import Optional
from decimal import Decimal
from enum import Enum

# ===== CATEGORY PYDANTIC MODELS =====

class CategoryTypeEnum(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class CategoryUpsert(BaseModel):
    id: Optional[int] = Field(None, description="Existing category to update; omit to create")
    name: str = Field(..., min_length=2, max_length=100, description="Category name")
    category_type: CategoryTypeEnum = Field(..., description="INCOME or EXPENSE")
    icon: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., min_length=1, max_length=7)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()


class CategoryResponse(BaseModel):
    id: int
    name: str
    category_type: CategoryTypeEnum
    icon: str
    color: str

    class Config:
        from_attributes = True


class CategoryWithStats(CategoryResponse):
    transaction_count: int
    monthly_spend: Decimal
