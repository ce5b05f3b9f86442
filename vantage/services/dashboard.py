from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, List, Dict
from datetime import date
from decimal import Decimal

from vantage.db.core import TransactionDB, AccountDB, CategoryDB, TransactionType
from vantage.models.dashboard import DashboardSummary, CategoryBreakdownItem
from vantage.models.transaction import TransactionResponse
from vantage.crud.crud_account import get_balances
from vantage.crud.crud_budget import month_bounds
from vantage.crud.crud_category import UNCATEGORIZED_NAME, UNCATEGORIZED_ICON, UNCATEGORIZED_COLOR
from vantage.crud.crud_transaction import read_db_transactions
from vantage.services.cache import TaggedCache, user_tag
from vantage.services.currency import CurrencySettings, to_base, quantize_money

ZERO = Decimal("0")
RECENT_TRANSACTION_COUNT = 5


def _monthly_total(db: Session, user_id: int, transaction_type: TransactionType, start: date, end: date,
                   settings: CurrencySettings) -> Decimal:
    rows = db.query(
        AccountDB.currency,
        func.coalesce(func.sum(TransactionDB.amount), 0).label("total")
    ).join(
        AccountDB, AccountDB.id == TransactionDB.account_id
    ).filter(
        TransactionDB.user_id == user_id,
        TransactionDB.transaction_type == transaction_type,
        TransactionDB.transaction_date >= start,
        TransactionDB.transaction_date <= end
    ).group_by(AccountDB.currency).all()

    return sum((to_base(Decimal(str(row.total)), row.currency, settings) for row in rows), ZERO)


def _category_breakdown(db: Session, user_id: int, start: date, end: date,
                        settings: CurrencySettings) -> List[CategoryBreakdownItem]:
    rows = db.query(
        TransactionDB.category_id,
        AccountDB.currency,
        func.coalesce(func.sum(TransactionDB.amount), 0).label("total")
    ).join(
        AccountDB, AccountDB.id == TransactionDB.account_id
    ).filter(
        TransactionDB.user_id == user_id,
        TransactionDB.transaction_type == TransactionType.EXPENSE,
        TransactionDB.transaction_date >= start,
        TransactionDB.transaction_date <= end
    ).group_by(TransactionDB.category_id, AccountDB.currency).all()

    totals: Dict[Optional[int], Decimal] = {}
    for row in rows:
        totals[row.category_id] = totals.get(row.category_id, ZERO) + to_base(Decimal(str(row.total)), row.currency, settings)

    category_ids = [category_id for category_id in totals if category_id is not None]
    categories = {}
    if category_ids:
        categories = {
            category.id: category
            for category in db.query(CategoryDB).filter(
                CategoryDB.user_id == user_id,
                CategoryDB.id.in_(category_ids)
            ).all()
        }

    breakdown = []
    for category_id, total in totals.items():
        category = categories.get(category_id)
        breakdown.append(CategoryBreakdownItem(
            category_id=category_id,
            name=category.name if category else UNCATEGORIZED_NAME,
            icon=category.icon if category else UNCATEGORIZED_ICON,
            color=category.color if category else UNCATEGORIZED_COLOR,
            total=quantize_money(total),
        ))

    breakdown.sort(key=lambda item: item.total, reverse=True)
    return breakdown


def get_dashboard_summary(db: Session, user_id: int, settings: CurrencySettings, today: Optional[date] = None,
                          cache: Optional[TaggedCache] = None) -> DashboardSummary:
    """Balances, this month's cash flow and spending by category, in the base currency"""

    today = today or date.today()
    start, end = month_bounds(today)

    def load() -> DashboardSummary:
        balances = get_balances(db, user_id)
        total_balance = sum(
            (to_base(balance.current_balance, balance.currency, settings) for balance in balances), ZERO
        )

        recent = read_db_transactions(db, user_id, limit=RECENT_TRANSACTION_COUNT)

        return DashboardSummary(
            currency=settings.base_currency,
            total_balance=quantize_money(total_balance),
            monthly_income=quantize_money(_monthly_total(db, user_id, TransactionType.INCOME, start, end, settings)),
            monthly_expenses=quantize_money(_monthly_total(db, user_id, TransactionType.EXPENSE, start, end, settings)),
            category_breakdown=_category_breakdown(db, user_id, start, end, settings),
            recent_transactions=[TransactionResponse.model_validate(row) for row in recent],
        )

    if cache is None:
        return load()
    return cache.get_or_set(
        ("summary", user_id, today.year, today.month, settings),
        ["summary", "transactions", "accounts", user_tag(user_id)],
        load,
    )
