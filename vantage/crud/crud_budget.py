from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal
import calendar

from vantage.db.core import BudgetDB, CategoryDB, TransactionDB, AccountDB, TransactionType, CategoryType
from vantage.errors import NotFoundError, InvalidPayloadError
from vantage.models.budget import BudgetUpsert, BudgetProgress, BudgetOverview
from vantage.services.cache import TaggedCache, user_tag
from vantage.services.currency import CurrencySettings, USD, to_base, from_base, quantize_money, quantize_stored_usd
from vantage.logging_config import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")


# ===== UTILITY FUNCTIONS =====

def month_bounds(today: date) -> tuple:
    """First and last day of the calendar month containing ``today``"""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return date(today.year, today.month, 1), date(today.year, today.month, last_day)


def calculate_percentage(spent: Decimal, limit: Decimal) -> float:
    if limit == 0:
        return 0.0
    return float(spent / limit * 100)


def calculate_category_spending(db: Session, user_id: int, category_ids: List[int], start: date, end: date,
                                settings: CurrencySettings, account_id: Optional[int] = None) -> Dict[int, Decimal]:
    """
    Expenses per category between ``start`` and ``end`` in the base currency.

    Rows are grouped by account currency first so every amount is converted
    from the currency it was recorded in.
    """
    if not category_ids:
        return {}

    query = db.query(
        TransactionDB.category_id,
        AccountDB.currency,
        func.coalesce(func.sum(TransactionDB.amount), 0).label("total")
    ).join(
        AccountDB, AccountDB.id == TransactionDB.account_id
    ).filter(
        TransactionDB.user_id == user_id,
        TransactionDB.transaction_type == TransactionType.EXPENSE,
        TransactionDB.category_id.in_(category_ids),
        TransactionDB.transaction_date >= start,
        TransactionDB.transaction_date <= end
    )

    if account_id:
        query = query.filter(TransactionDB.account_id == account_id)

    spending: Dict[int, Decimal] = {}
    for row in query.group_by(TransactionDB.category_id, AccountDB.currency).all():
        amount = to_base(Decimal(str(row.total)), row.currency, settings)
        spending[row.category_id] = spending.get(row.category_id, ZERO) + amount
    return spending


# ===== DATABASE OPERATIONS =====

def get_budgets_with_progress(db: Session, user_id: int, settings: CurrencySettings,
                              today: Optional[date] = None, account_id: Optional[int] = None,
                              cache: Optional[TaggedCache] = None) -> List[BudgetProgress]:
    """Budgets of the month containing ``today`` with what has been spent against them"""

    today = today or date.today()
    start, end = month_bounds(today)

    def load() -> List[BudgetProgress]:
        budgets = db.query(BudgetDB).join(CategoryDB, CategoryDB.id == BudgetDB.category_id).filter(
            BudgetDB.user_id == user_id,
            BudgetDB.month == today.month,
            BudgetDB.year == today.year
        ).order_by(BudgetDB.category_id).all()

        spending = calculate_category_spending(
            db, user_id, [budget.category_id for budget in budgets], start, end, settings, account_id
        )

        progress = []
        for budget in budgets:
            limit = quantize_money(to_base(Decimal(str(budget.amount)), USD, settings))
            spent = quantize_money(spending.get(budget.category_id, ZERO))
            progress.append(BudgetProgress(
                budget_id=budget.id,
                category_id=budget.category_id,
                category_name=budget.category.name,
                category_icon=budget.category.icon,
                category_color=budget.category.color,
                limit=limit,
                spent=spent,
                percentage=calculate_percentage(spent, limit),
                over_budget=spent > limit,
            ))
        return progress

    if cache is None:
        return load()
    return cache.get_or_set(
        ("budgets", user_id, today.year, today.month, account_id, settings),
        ["budgets", "transactions", user_tag(user_id)],
        load,
    )


def get_budget_overview(db: Session, user_id: int, settings: CurrencySettings,
                        today: Optional[date] = None, cache: Optional[TaggedCache] = None) -> BudgetOverview:
    """Totals across the budgets of the month"""

    today = today or date.today()
    budgets = get_budgets_with_progress(db, user_id, settings, today=today, cache=cache)

    return BudgetOverview(
        currency=settings.base_currency,
        month=today.month,
        year=today.year,
        total_budgeted=sum((budget.limit for budget in budgets), Decimal("0.00")),
        total_spent=sum((budget.spent for budget in budgets), Decimal("0.00")),
        over_budget_count=sum(1 for budget in budgets if budget.over_budget),
        budgets=budgets,
    )


def upsert_budget(db: Session, user_id: int, budget_data: BudgetUpsert, settings: CurrencySettings,
                  today: Optional[date] = None, cache: Optional[TaggedCache] = None) -> BudgetDB:
    """
    Create or replace the limit of a category for the month containing ``today``.

    The amount is entered in the base currency and stored in USD.
    """
    today = today or date.today()

    category = db.query(CategoryDB).filter(
        CategoryDB.id == budget_data.category_id,
        CategoryDB.user_id == user_id
    ).first()
    if not category:
        raise NotFoundError("Category not found.")
    if category.category_type != CategoryType.EXPENSE:
        raise InvalidPayloadError("Budgets can only be set on expense categories.")

    stored_amount = quantize_stored_usd(from_base(budget_data.amount, USD, settings))
    now = datetime.utcnow()

    values = {
        "user_id": user_id,
        "category_id": category.id,
        "month": today.month,
        "year": today.year,
        "amount": stored_amount,
        "created_at": now,
        "updated_at": now,
    }

    dialect = db.get_bind().dialect.name
    try:
        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            statement = insert(BudgetDB).values(**values)
            statement = statement.on_conflict_do_update(
                index_elements=["user_id", "category_id", "month", "year"],
                set_={"amount": statement.excluded.amount, "updated_at": statement.excluded.updated_at},
            )
            db.execute(statement)
        else:
            existing = _read_budget_for_month(db, user_id, category.id, today.month, today.year)
            if existing:
                existing.amount = stored_amount
                existing.updated_at = now
            else:
                db.add(BudgetDB(**values))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidPayloadError("Budget update failed due to database constraint")

    db_budget = _read_budget_for_month(db, user_id, category.id, today.month, today.year)
    db.refresh(db_budget)

    if cache is not None:
        cache.invalidate("budgets", "summary")
    logger.info(f"Saved budget {db_budget.id} for category {category.id} ({today.year}-{today.month:02d})")
    return db_budget


def _read_budget_for_month(db: Session, user_id: int, category_id: int, month: int, year: int) -> Optional[BudgetDB]:
    return db.query(BudgetDB).filter(
        BudgetDB.user_id == user_id,
        BudgetDB.category_id == category_id,
        BudgetDB.month == month,
        BudgetDB.year == year
    ).first()


def delete_budget(db: Session, budget_id: int, user_id: int, cache: Optional[TaggedCache] = None) -> int:
    """Delete a budget"""

    db_budget = db.query(BudgetDB).filter(
        BudgetDB.id == budget_id,
        BudgetDB.user_id == user_id
    ).first()
    if not db_budget:
        raise NotFoundError("Budget not found.")

    db.delete(db_budget)
    db.commit()

    if cache is not None:
        cache.invalidate("budgets", "summary")
    logger.info(f"Deleted budget {budget_id}")
    return budget_id
