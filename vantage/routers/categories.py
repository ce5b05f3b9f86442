from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from vantage.crud import crud_category
from vantage.models import category as category_models
from vantage.models.common import ActionResponse, IdResponse
from vantage.db.core import get_db
from vantage.routers.dependencies import get_current_user_id, get_cache, get_settings
from vantage.services.cache import TaggedCache
from vantage.services.currency import CurrencySettings

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)


@router.get("/", response_model=ActionResponse[List[category_models.CategoryWithStats]])
def read_categories(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Categories with transaction counts and this month's spend.
    """
    return ActionResponse.ok(crud_category.get_categories_with_stats(db=db, user_id=user_id, settings=settings, cache=cache))


@router.put("/", response_model=ActionResponse[IdResponse])
def upsert_category(
    category: category_models.CategoryUpsert,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    db_category = crud_category.upsert_category(db=db, user_id=user_id, category_data=category, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(db_category.id)))


@router.delete("/{category_id}", response_model=ActionResponse[IdResponse])
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Delete a category; its transactions move to "Uncategorized".
    """
    crud_category.delete_category(db=db, category_id=category_id, user_id=user_id, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(category_id)))
