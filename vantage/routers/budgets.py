from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from vantage.crud import crud_budget
from vantage.models import budget as budget_models
from vantage.models.common import ActionResponse, IdResponse
from vantage.db.core import get_db
from vantage.routers.dependencies import get_current_user_id, get_cache, get_settings
from vantage.services.cache import TaggedCache
from vantage.services.currency import CurrencySettings

router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)


@router.get("/", response_model=ActionResponse[List[budget_models.BudgetProgress]])
def read_budgets(
    account_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    """
    This month's budgets with spending, in the base currency.
    """
    return ActionResponse.ok(crud_budget.get_budgets_with_progress(
        db=db, user_id=user_id, settings=settings, account_id=account_id, cache=cache
    ))


@router.get("/overview", response_model=ActionResponse[budget_models.BudgetOverview])
def read_budget_overview(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    return ActionResponse.ok(crud_budget.get_budget_overview(db=db, user_id=user_id, settings=settings, cache=cache))


@router.put("/", response_model=ActionResponse[IdResponse])
def upsert_budget(
    budget: budget_models.BudgetUpsert,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Set the limit of a category for the current month.
    """
    db_budget = crud_budget.upsert_budget(db=db, user_id=user_id, budget_data=budget, settings=settings, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(db_budget.id)))


@router.delete("/{budget_id}", response_model=ActionResponse[IdResponse])
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    crud_budget.delete_budget(db=db, budget_id=budget_id, user_id=user_id, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(budget_id)))
