from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import desc
from typing import Optional, List, Tuple
from datetime import datetime
from decimal import Decimal
from uuid import uuid4, UUID

from vantage.db.core import TransactionDB, AccountDB, CategoryDB, TransactionType, CategoryType
from vantage.errors import (
    NotFoundError, InvalidPayloadError, UnsupportedCurrencyPairError,
    MissingExchangeRateError, InvalidExchangeRateError, BalanceUpdateFailedError,
)
from vantage.models.transaction import TransactionCreate, TransactionUpdate, TransactionFilter, parse_exchange_rate
from vantage.crud.crud_account import read_db_account, adjust_account_balance
from vantage.services.cache import TaggedCache, account_tag
from vantage.services.currency import USD, BIRR, normalize_currency, quantize_money
from vantage.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
UNCATEGORIZED_FILTER = "uncategorized"


# ===== UTILITY FUNCTIONS =====

def _invalidate(cache: Optional[TaggedCache], *account_ids: int) -> None:
    if cache is None:
        return
    tags = ["transactions", "summary", "accounts", "budgets", "categories"]
    tags.extend(account_tag(account_id) for account_id in account_ids)
    cache.invalidate(*tags)


def _get_owned_account(db: Session, user_id: int, account_id: int) -> AccountDB:
    account = read_db_account(db, account_id, user_id)
    if not account:
        raise NotFoundError("Account not found.")
    return account


def _get_expense_category(db: Session, user_id: int, category_id: int) -> CategoryDB:
    category = db.query(CategoryDB).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).first()
    if not category:
        raise NotFoundError("Category not found.")
    if category.category_type != CategoryType.EXPENSE:
        raise InvalidPayloadError("Only expense categories can be assigned to a transaction.")
    return category


def convert_transfer_amount(amount: Decimal, source_currency: str, destination_currency: str,
                            raw_rate: Optional[str]) -> Decimal:
    """
    Amount credited to the destination of a transfer, in its currency.

    Same-currency transfers are 1:1 and never look at the rate. Otherwise
    only USD <-> BIRR is allowed and the per-transfer rate (BIRR per USD)
    is required.
    """
    source = normalize_currency(source_currency)
    destination = normalize_currency(destination_currency)

    if source == destination:
        return amount

    if {source, destination} != {USD, BIRR}:
        raise UnsupportedCurrencyPairError()

    if raw_rate is None:
        raise MissingExchangeRateError()

    rate = parse_exchange_rate(raw_rate)
    if rate is None:
        raise InvalidExchangeRateError()

    if source == USD:
        return amount * rate
    return amount / rate


# ===== DATABASE OPERATIONS =====

def record_transaction(db: Session, user_id: int, transaction_data: TransactionCreate,
                       cache: Optional[TaggedCache] = None) -> TransactionDB:
    """Record an income, expense or transfer for a user"""

    source = _get_owned_account(db, user_id, transaction_data.account_id)

    if transaction_data.transaction_type.value == TransactionType.TRANSFER.value:
        return _record_transfer(db, user_id, source, transaction_data, cache)

    if transaction_data.category_id is not None:
        _get_expense_category(db, user_id, transaction_data.category_id)

    db_transaction = TransactionDB(
        id=uuid4(),
        user_id=user_id,
        account_id=source.id,
        category_id=transaction_data.category_id,
        transaction_type=TransactionType(transaction_data.transaction_type.value),
        amount=transaction_data.amount,
        transaction_date=transaction_data.transaction_date,
        description=transaction_data.description,
        is_recurring=transaction_data.is_recurring,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_transaction)
        db.commit()
        db.refresh(db_transaction)
    except IntegrityError:
        db.rollback()
        raise InvalidPayloadError("Invalid transaction payload.")

    _invalidate(cache, source.id)
    logger.info(f"Recorded {db_transaction.transaction_type.value} {db_transaction.id} on account {source.id}")
    return db_transaction


def _record_transfer(db: Session, user_id: int, source: AccountDB, transaction_data: TransactionCreate,
                     cache: Optional[TaggedCache]) -> TransactionDB:
    destination = _get_owned_account(db, user_id, transaction_data.destination_account_id)

    amount = transaction_data.amount
    try:
        converted = convert_transfer_amount(
            amount, source.currency, destination.currency, transaction_data.exchange_rate
        )
    except (UnsupportedCurrencyPairError, MissingExchangeRateError, InvalidExchangeRateError) as e:
        logger.warning(f"Rejected transfer {source.id} -> {destination.id} for user {user_id}: {e.message}")
        raise
    converted = quantize_money(converted)

    # Only the source side is written as a row; the destination sees the
    # transfer through its baseline balance.
    db_transaction = TransactionDB(
        id=uuid4(),
        user_id=user_id,
        account_id=source.id,
        category_id=None,
        transaction_type=TransactionType.TRANSFER,
        amount=amount,
        transaction_date=transaction_data.transaction_date,
        description=transaction_data.description,
        is_recurring=transaction_data.is_recurring,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_transaction)
        db.flush()

        if not adjust_account_balance(db, user_id, source.id, -amount):
            raise BalanceUpdateFailedError()
        if not adjust_account_balance(db, user_id, destination.id, converted):
            raise BalanceUpdateFailedError()

        db.commit()
    except BalanceUpdateFailedError:
        db.rollback()
        logger.warning(f"Transfer {source.id} -> {destination.id} rolled back: balance update matched no row")
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Transfer {source.id} -> {destination.id} rolled back")
        raise

    db.refresh(db_transaction)
    _invalidate(cache, source.id, destination.id)
    logger.info(
        f"Transferred {amount} {source.currency} from account {source.id} "
        f"to account {destination.id} as {converted} {destination.currency}"
    )
    return db_transaction


def read_db_transaction(db: Session, transaction_id: UUID, user_id: int) -> Optional[TransactionDB]:
    """Read a transaction by its public ID, scoped to its owner"""
    return db.query(TransactionDB).options(
        joinedload(TransactionDB.category),
        joinedload(TransactionDB.account)
    ).filter(
        TransactionDB.id == transaction_id,
        TransactionDB.user_id == user_id
    ).first()


def read_db_transactions(db: Session, user_id: int, filters: Optional[TransactionFilter] = None,
                         skip: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> List[TransactionDB]:
    """Read transactions for a user, newest first"""

    query = db.query(TransactionDB).options(
        joinedload(TransactionDB.category),
        joinedload(TransactionDB.account)
    ).filter(TransactionDB.user_id == user_id)

    if filters:
        if filters.account_id:
            query = query.filter(TransactionDB.account_id == filters.account_id)

        if filters.category_id:
            if filters.category_id == UNCATEGORIZED_FILTER:
                query = query.filter(TransactionDB.category_id.is_(None))
            elif filters.category_id.isdigit():
                query = query.filter(TransactionDB.category_id == int(filters.category_id))
            else:
                raise InvalidPayloadError("Invalid category filter.")

        if filters.date_from:
            query = query.filter(TransactionDB.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(TransactionDB.transaction_date <= filters.date_to)

    return query.order_by(
        desc(TransactionDB.transaction_date),
        desc(TransactionDB.db_id)
    ).offset(skip).limit(limit).all()


def read_transaction_page(db: Session, user_id: int, filters: Optional[TransactionFilter] = None,
                          skip: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[List[TransactionDB], bool]:
    """One page of transactions plus whether another page follows"""
    if limit <= 0:
        limit = DEFAULT_PAGE_SIZE
    rows = read_db_transactions(db, user_id, filters, skip=skip, limit=limit + 1)
    return rows[:limit], len(rows) > limit


def update_db_transaction(db: Session, transaction_id: UUID, user_id: int, transaction_updates: TransactionUpdate,
                          cache: Optional[TaggedCache] = None) -> TransactionDB:
    """Update an income or expense transaction"""

    db_transaction = read_db_transaction(db, transaction_id, user_id)
    if not db_transaction:
        raise NotFoundError("Transaction not found.")

    if db_transaction.transaction_type == TransactionType.TRANSFER:
        raise InvalidPayloadError("Transfers cannot be edited.")

    update_data = transaction_updates.model_dump(exclude_unset=True)
    previous_account_id = db_transaction.account_id

    new_type = update_data.get("transaction_type")
    if new_type is not None:
        new_type = TransactionType(new_type.value)
        update_data["transaction_type"] = new_type
    final_type = new_type or db_transaction.transaction_type

    if update_data.get("account_id") is not None:
        _get_owned_account(db, user_id, update_data["account_id"])

    if "category_id" in update_data:
        final_category = update_data["category_id"]
    elif final_type != TransactionType.EXPENSE:
        # Income rows never carry a category
        final_category = None
        update_data["category_id"] = None
    else:
        final_category = db_transaction.category_id

    if final_category is not None:
        if final_type != TransactionType.EXPENSE:
            raise InvalidPayloadError("Only expenses can have a category.")
        _get_expense_category(db, user_id, final_category)

    for field, value in update_data.items():
        if value is None and field in ("account_id", "transaction_type", "amount", "transaction_date", "is_recurring"):
            continue
        setattr(db_transaction, field, value)

    db_transaction.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_transaction)
    except IntegrityError:
        db.rollback()
        raise InvalidPayloadError("Transaction update failed due to database constraint")

    _invalidate(cache, previous_account_id, db_transaction.account_id)
    logger.info(f"Updated transaction {db_transaction.id}")
    return db_transaction


def delete_db_transaction(db: Session, transaction_id: UUID, user_id: int,
                          cache: Optional[TaggedCache] = None) -> UUID:
    """
    Delete a transaction.

    Stored balances are left as they are, so deleting a transfer does not
    give the money back to either account.
    """
    db_transaction = read_db_transaction(db, transaction_id, user_id)
    if not db_transaction:
        raise NotFoundError("Transaction not found.")

    account_id = db_transaction.account_id
    deleted_id = db_transaction.id

    db.delete(db_transaction)
    db.commit()

    _invalidate(cache, account_id)
    logger.info(f"Deleted transaction {deleted_id}")
    return deleted_id
