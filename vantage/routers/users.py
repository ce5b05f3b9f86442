from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from vantage.crud import crud_user
from vantage.models import user as user_models
from vantage.models.common import ActionResponse, IdResponse
from vantage.db.core import get_db
from vantage.routers.dependencies import get_current_user_id, get_cache
from vantage.services.cache import TaggedCache

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


@router.post("/", response_model=ActionResponse[user_models.UserResponse], status_code=status.HTTP_201_CREATED)
def create_user(
    user: user_models.UserCreate,
    db: Session = Depends(get_db)
):
    """
    Register the user row for an identity issued by the auth provider.
    """
    db_user = crud_user.create_db_user(db=db, user_data=user)
    return ActionResponse.ok(user_models.UserResponse.model_validate(db_user))


@router.get("/me/settings", response_model=ActionResponse[user_models.UserSettingsResponse])
def read_settings(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    return ActionResponse.ok(user_models.UserSettingsResponse(**crud_user.get_user_settings(db=db, user_id=user_id, cache=cache)))


@router.put("/me/currency", response_model=ActionResponse[user_models.CurrencySettingsResponse])
def update_currency(
    settings_data: user_models.CurrencySettingsUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Change the base currency and the USD -> BIRR rate used for reporting.
    """
    settings = crud_user.update_currency_settings(db=db, user_id=user_id, settings_data=settings_data, cache=cache)
    return ActionResponse.ok(user_models.CurrencySettingsResponse(
        base_currency=settings.base_currency,
        exchange_rate=settings.exchange_rate
    ))


@router.put("/me/profile", response_model=ActionResponse[user_models.UserResponse])
def update_profile(
    profile: user_models.ProfileUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    db_user = crud_user.update_profile(db=db, user_id=user_id, profile=profile, cache=cache)
    return ActionResponse.ok(user_models.UserResponse.model_validate(db_user))


@router.delete("/me", response_model=ActionResponse[IdResponse])
def delete_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Delete the current user and everything they own.
    """
    db_user = crud_user.read_db_user(db=db, user_id=user_id)
    public_id = str(db_user.id)
    crud_user.delete_db_user(db=db, user_id=user_id, cache=cache)
    return ActionResponse.ok(IdResponse(id=public_id))
