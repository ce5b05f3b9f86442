from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from vantage.crud import crud_account
from vantage.models import account as account_models
from vantage.models.common import ActionResponse, IdResponse
from vantage.db.core import get_db
from vantage.errors import NotFoundError
from vantage.routers.dependencies import get_current_user_id, get_cache
from vantage.services.cache import TaggedCache

router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
)


@router.post("/", response_model=ActionResponse[account_models.AccountResponse], status_code=status.HTTP_201_CREATED)
def create_account(
    account: account_models.AccountCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Create a new account for the current user.
    """
    db_account = crud_account.create_db_account(db=db, user_id=user_id, account_data=account, cache=cache)
    return ActionResponse.ok(account_models.AccountResponse.model_validate(db_account))


@router.get("/", response_model=ActionResponse[List[account_models.AccountResponse]])
def read_accounts(
    account_type: Optional[account_models.AccountTypeEnum] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Retrieve all accounts for the current user, with optional filtering by account type.
    """
    accounts = crud_account.read_db_accounts(db=db, user_id=user_id, account_type=account_type)
    return ActionResponse.ok([account_models.AccountResponse.model_validate(a) for a in accounts])


@router.get("/balances", response_model=ActionResponse[List[account_models.AccountBalance]])
def read_balances(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Current balance of every account, each in its own currency.
    """
    return ActionResponse.ok(crud_account.get_balances(db=db, user_id=user_id, cache=cache))


@router.get("/{account_id}", response_model=ActionResponse[account_models.AccountResponse])
def read_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    db_account = crud_account.read_db_account(db=db, account_id=account_id, user_id=user_id)
    if db_account is None:
        raise NotFoundError("Account not found.")
    return ActionResponse.ok(account_models.AccountResponse.model_validate(db_account))


@router.delete("/{account_id}", response_model=ActionResponse[IdResponse])
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Delete an account and the transactions recorded on it.
    """
    crud_account.delete_db_account(db=db, account_id=account_id, user_id=user_id, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(account_id)))
