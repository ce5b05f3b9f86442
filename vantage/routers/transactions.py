from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
from uuid import UUID

from vantage.crud import crud_transaction
from vantage.models import transaction as transaction_models
from vantage.models.common import ActionResponse, IdResponse
from vantage.db.core import get_db
from vantage.errors import NotFoundError
from vantage.routers.dependencies import get_current_user_id, get_cache
from vantage.services.cache import TaggedCache

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)


@router.post("/", response_model=ActionResponse[transaction_models.TransactionRecorded], status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: transaction_models.TransactionCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Record an income, expense or transfer. Transfers move money between two
    of the user's accounts, converting USD <-> BIRR at the supplied rate.
    """
    db_transaction = crud_transaction.record_transaction(db=db, user_id=user_id, transaction_data=transaction, cache=cache)
    return ActionResponse.ok(transaction_models.TransactionRecorded(transaction_id=db_transaction.id))


@router.get("/", response_model=ActionResponse[transaction_models.TransactionPage])
def read_transactions(
    account_id: Optional[int] = None,
    category_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(crud_transaction.DEFAULT_PAGE_SIZE, ge=1, le=500),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Retrieve transactions newest first. ``category_id`` may be "uncategorized".
    """
    filters = transaction_models.TransactionFilter(
        account_id=account_id,
        category_id=category_id,
        date_from=date_from,
        date_to=date_to
    )
    rows, has_next = crud_transaction.read_transaction_page(db=db, user_id=user_id, filters=filters, skip=skip, limit=limit)
    return ActionResponse.ok(transaction_models.TransactionPage(
        items=[transaction_models.TransactionResponse.model_validate(row) for row in rows],
        skip=skip,
        limit=limit,
        has_next=has_next
    ))


@router.get("/{transaction_id}", response_model=ActionResponse[transaction_models.TransactionResponse])
def read_transaction(
    transaction_id: UUID,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    db_transaction = crud_transaction.read_db_transaction(db=db, transaction_id=transaction_id, user_id=user_id)
    if db_transaction is None:
        raise NotFoundError("Transaction not found.")
    return ActionResponse.ok(transaction_models.TransactionResponse.model_validate(db_transaction))


@router.put("/{transaction_id}", response_model=ActionResponse[transaction_models.TransactionResponse])
def update_transaction(
    transaction_id: UUID,
    transaction_updates: transaction_models.TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Update an income or expense. Transfers cannot be edited.
    """
    db_transaction = crud_transaction.update_db_transaction(
        db=db, transaction_id=transaction_id, user_id=user_id, transaction_updates=transaction_updates, cache=cache
    )
    return ActionResponse.ok(transaction_models.TransactionResponse.model_validate(db_transaction))


@router.delete("/{transaction_id}", response_model=ActionResponse[IdResponse])
def delete_transaction(
    transaction_id: UUID,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    deleted_id = crud_transaction.delete_db_transaction(db=db, transaction_id=transaction_id, user_id=user_id, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(deleted_id)))
