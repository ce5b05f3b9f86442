from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, update
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal

from vantage.db.core import AccountDB, UserDB, GoalDB, TransactionDB, AccountType, TransactionType
from vantage.errors import NotFoundError, DuplicateNameError
from vantage.models.account import AccountCreate, AccountBalance, AccountTypeEnum
from vantage.services.cache import TaggedCache, user_tag, account_tag
from vantage.logging_config import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0.00")


def _invalidate(cache: Optional[TaggedCache], user_id: int, account_id: int) -> None:
    if cache is not None:
        cache.invalidate("accounts", "summary", account_tag(account_id), user_tag(user_id))


# ===== DATABASE OPERATIONS =====

def create_db_account(db: Session, user_id: int, account_data: AccountCreate,
                      cache: Optional[TaggedCache] = None) -> AccountDB:
    """Create a new account for a user"""

    user = db.query(UserDB).filter(UserDB.db_id == user_id).first()
    if not user:
        raise NotFoundError("User not found.")

    existing_account = db.query(AccountDB).filter(
        AccountDB.user_id == user_id,
        AccountDB.account_name == account_data.account_name
    ).first()
    if existing_account:
        raise DuplicateNameError(f"Account name '{account_data.account_name}' already exists.")

    db_account = AccountDB(
        user_id=user_id,
        account_name=account_data.account_name,
        account_type=AccountType(account_data.account_type.value),
        currency=account_data.currency,
        balance=account_data.initial_balance,
        color=account_data.color or "#0ea5e9",
        icon=account_data.icon or "wallet",
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_account)
        db.commit()
        db.refresh(db_account)
    except IntegrityError:
        db.rollback()
        raise DuplicateNameError(f"Account name '{account_data.account_name}' already exists.")

    _invalidate(cache, user_id, db_account.id)
    logger.info(f"Created {db_account.currency} account {db_account.id} for user {user_id}")
    return db_account


def read_db_account(db: Session, account_id: int, user_id: int) -> Optional[AccountDB]:
    """Read an account by ID, scoped to its owner"""
    return db.query(AccountDB).filter(
        AccountDB.id == account_id,
        AccountDB.user_id == user_id
    ).first()


def read_db_accounts(db: Session, user_id: int, account_type: Optional[AccountTypeEnum] = None) -> List[AccountDB]:
    """Read accounts for a user, optionally filtered by account type"""

    query = db.query(AccountDB).filter(AccountDB.user_id == user_id)

    if account_type:
        query = query.filter(AccountDB.account_type == AccountType(account_type.value))

    return query.order_by(AccountDB.account_name).all()


def delete_db_account(db: Session, account_id: int, user_id: int,
                      cache: Optional[TaggedCache] = None) -> AccountDB:
    """Delete an account together with its transactions"""

    db_account = read_db_account(db, account_id, user_id)
    if not db_account:
        raise NotFoundError("Account not found.")

    try:
        db.query(GoalDB).filter(
            GoalDB.user_id == user_id,
            GoalDB.account_id == account_id
        ).update({GoalDB.account_id: None}, synchronize_session=False)
        db.delete(db_account)
        db.commit()
    except Exception:
        db.rollback()
        raise

    _invalidate(cache, user_id, account_id)
    if cache is not None:
        cache.invalidate("transactions", "budgets")
    logger.info(f"Deleted account {account_id} of user {user_id}")
    return db_account


# ===== BALANCE LEDGER =====

def _sum_by_account(db: Session, user_id: int, transaction_type: TransactionType) -> Dict[int, Decimal]:
    rows = db.query(
        TransactionDB.account_id,
        func.coalesce(func.sum(TransactionDB.amount), 0).label("total")
    ).filter(
        TransactionDB.user_id == user_id,
        TransactionDB.transaction_type == transaction_type
    ).group_by(TransactionDB.account_id).all()

    return {row.account_id: Decimal(str(row.total)) for row in rows}


def get_balances(db: Session, user_id: int, cache: Optional[TaggedCache] = None) -> List[AccountBalance]:
    """
    Current balance of every account of a user, in each account's own currency.

    current = baseline balance + income - expense. Transfers are not summed
    here: they have already been applied to the baseline balance column.
    """
    def load() -> List[AccountBalance]:
        accounts = read_db_accounts(db, user_id)
        income = _sum_by_account(db, user_id, TransactionType.INCOME)
        expense = _sum_by_account(db, user_id, TransactionType.EXPENSE)

        balances = []
        for account in accounts:
            baseline = Decimal(str(account.balance)) if account.balance is not None else ZERO
            current = baseline + income.get(account.id, ZERO) - expense.get(account.id, ZERO)
            balances.append(AccountBalance(
                account_id=account.id,
                account_name=account.account_name,
                account_type=account.account_type.value,
                currency=account.currency,
                color=account.color,
                icon=account.icon,
                current_balance=current,
            ))
        return balances

    if cache is None:
        return load()
    return cache.get_or_set(
        ("accounts", user_id),
        ["accounts", "transactions", user_tag(user_id)],
        load,
    )


def update_account_balance(db: Session, user_id: int, account_id: int, new_balance: Decimal) -> bool:
    """
    Overwrite the baseline balance of one account owned by ``user_id``.

    Does not commit. Returns False when no row matched.
    """
    result = db.execute(
        update(AccountDB)
        .where(AccountDB.id == account_id, AccountDB.user_id == user_id)
        .values(balance=round(new_balance, 2), updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def adjust_account_balance(db: Session, user_id: int, account_id: int, delta: Decimal) -> bool:
    """
    Add ``delta`` to the baseline balance of one account owned by ``user_id``.

    The addition happens inside the UPDATE statement, so two concurrent
    adjustments of the same row are both applied. Does not commit.
    Returns False when no row matched.
    """
    result = db.execute(
        update(AccountDB)
        .where(AccountDB.id == account_id, AccountDB.user_id == user_id)
        .values(balance=AccountDB.balance + delta, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0
