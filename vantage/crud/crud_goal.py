from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import update
from typing import Optional, List, Tuple
from datetime import datetime, date
from decimal import Decimal
from uuid import uuid4

from vantage.db.core import GoalDB, AccountDB, CategoryDB, TransactionDB, TransactionType, CategoryType
from vantage.errors import NotFoundError, InvalidPayloadError
from vantage.models.goal import GoalUpsert, GoalContribution, GoalWithAnalytics
from vantage.crud.crud_account import read_db_account
from vantage.services.cache import TaggedCache, user_tag, account_tag
from vantage.services.currency import CurrencySettings, USD, to_base, from_base, quantize_money, quantize_stored_usd
from vantage.logging_config import get_logger

logger = get_logger(__name__)

# (icon, color) keyed by words that may appear in a goal name, checked in order
GOAL_VISUALS = [
    (("house", "home"), ("home", "#f97316")),
    (("car", "auto"), ("car", "#22c55e")),
    (("trip", "flight"), ("plane", "#8b5cf6")),
    (("target", "goal"), ("target", "#0ea5e9")),
]
DEFAULT_GOAL_VISUAL = ("trophy", "#f59e0b")


# ===== UTILITY FUNCTIONS =====

def select_visual(name: str) -> Tuple[str, str]:
    """Pick an icon and colour for a goal from its name"""
    lower = name.lower()
    for keywords, visual in GOAL_VISUALS:
        if any(keyword in lower for keyword in keywords):
            return visual
    return DEFAULT_GOAL_VISUAL


def calendar_month_difference(later: date, earlier: date) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def calculate_goal_analytics(goal: GoalDB, settings: CurrencySettings, today: date) -> GoalWithAnalytics:
    target = quantize_money(to_base(Decimal(str(goal.target_amount)), USD, settings))
    current = quantize_money(to_base(Decimal(str(goal.current_amount or 0)), USD, settings))

    progress_percent = 0.0 if target == 0 else float(current / target * 100)

    days_remaining = (goal.deadline - today).days if goal.deadline else None

    required_monthly_saving = None
    remaining = target - current
    if goal.deadline and days_remaining > 0 and remaining > 0:
        months_remaining = max(1, calendar_month_difference(goal.deadline, today))
        required_monthly_saving = quantize_money(remaining / months_remaining)

    default_icon, default_color = select_visual(goal.name)

    return GoalWithAnalytics(
        goal_id=goal.id,
        name=goal.name,
        currency=settings.base_currency,
        target_amount=target,
        current_amount=current,
        deadline=goal.deadline,
        progress_percent=progress_percent,
        days_remaining=days_remaining,
        required_monthly_saving=required_monthly_saving,
        account_id=goal.account_id,
        category_id=goal.category_id,
        icon=goal.icon or default_icon,
        color=goal.color or default_color,
    )


def _invalidate(cache: Optional[TaggedCache], user_id: int, account_id: Optional[int] = None) -> None:
    if cache is None:
        return
    tags = ["goals", "transactions", "summary", "accounts", "budgets", user_tag(user_id)]
    if account_id:
        tags.append(account_tag(account_id))
    cache.invalidate(*tags)


def _check_expense_category(db: Session, user_id: int, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    category = db.query(CategoryDB).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).first()
    if not category:
        raise NotFoundError("Category not found.")
    if category.category_type != CategoryType.EXPENSE:
        raise InvalidPayloadError("Goal contributions can only use an expense category.")


def _contribution_transaction(user_id: int, account: AccountDB, category_id: Optional[int], amount: Decimal,
                              goal_name: str, contribution_date: date) -> TransactionDB:
    return TransactionDB(
        id=uuid4(),
        user_id=user_id,
        account_id=account.id,
        category_id=category_id,
        transaction_type=TransactionType.EXPENSE,
        amount=amount,
        transaction_date=contribution_date,
        description=f"Added {amount} to goal {goal_name}",
        is_recurring=False,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )


# ===== DATABASE OPERATIONS =====

def read_db_goal(db: Session, goal_id: int, user_id: int) -> Optional[GoalDB]:
    return db.query(GoalDB).filter(
        GoalDB.id == goal_id,
        GoalDB.user_id == user_id
    ).first()


def get_goals_with_analytics(db: Session, user_id: int, settings: CurrencySettings,
                             today: Optional[date] = None,
                             cache: Optional[TaggedCache] = None) -> List[GoalWithAnalytics]:
    """Goals of a user with progress, time left and the monthly saving needed"""

    today = today or date.today()

    def load() -> List[GoalWithAnalytics]:
        goals = db.query(GoalDB).filter(GoalDB.user_id == user_id).order_by(GoalDB.name).all()
        return [calculate_goal_analytics(goal, settings, today) for goal in goals]

    if cache is None:
        return load()
    return cache.get_or_set(
        ("goals", user_id, today, settings),
        ["goals", user_tag(user_id)],
        load,
    )


def upsert_goal(db: Session, user_id: int, goal_data: GoalUpsert, settings: CurrencySettings,
                today: Optional[date] = None, cache: Optional[TaggedCache] = None) -> GoalDB:
    """
    Create a goal, or update it when ``goal_data.id`` is set.

    Amounts are entered in the base currency and stored in USD. A new goal
    that starts with money in it records that money as an expense on the
    funding account.
    """
    today = today or date.today()

    db_goal = None
    if goal_data.id is not None:
        db_goal = read_db_goal(db, goal_data.id, user_id)
        if not db_goal:
            raise NotFoundError("Goal not found.")

    account = None
    if goal_data.account_id is not None:
        account = read_db_account(db, goal_data.account_id, user_id)
        if not account:
            raise NotFoundError("Account not found.")

    _check_expense_category(db, user_id, goal_data.category_id)

    target_usd = quantize_stored_usd(from_base(goal_data.target_amount, USD, settings))
    current_usd = quantize_stored_usd(from_base(goal_data.current_amount, USD, settings))
    default_icon, default_color = select_visual(goal_data.name)

    is_new = db_goal is None
    if is_new:
        db_goal = GoalDB(
            user_id=user_id,
            created_at=datetime.utcnow(),
        )
        db.add(db_goal)

    db_goal.name = goal_data.name
    db_goal.target_amount = target_usd
    db_goal.current_amount = current_usd
    db_goal.deadline = goal_data.deadline
    db_goal.account_id = goal_data.account_id
    db_goal.category_id = goal_data.category_id
    db_goal.icon = goal_data.icon or default_icon
    db_goal.color = goal_data.color or default_color
    db_goal.updated_at = datetime.utcnow()

    try:
        if is_new and goal_data.current_amount > 0:
            account_amount = quantize_money(from_base(goal_data.current_amount, account.currency, settings))
            db.add(_contribution_transaction(
                user_id, account, goal_data.category_id, account_amount, goal_data.name, today
            ))
        db.commit()
        db.refresh(db_goal)
    except IntegrityError:
        db.rollback()
        raise InvalidPayloadError("Invalid goal payload.")

    _invalidate(cache, user_id, goal_data.account_id)
    logger.info(f"{'Created' if is_new else 'Updated'} goal {db_goal.id} for user {user_id}")
    return db_goal


def contribute_to_goal(db: Session, user_id: int, goal_id: int, contribution: GoalContribution,
                       settings: CurrencySettings, cache: Optional[TaggedCache] = None) -> GoalDB:
    """
    Move money from a funding account into a goal.

    The goal grows by the amount converted to USD and the account gets an
    expense row in its own currency; both are committed together.
    """
    db_goal = read_db_goal(db, goal_id, user_id)
    if not db_goal:
        raise NotFoundError("Goal not found.")

    account = read_db_account(db, contribution.account_id, user_id)
    if not account:
        raise NotFoundError("Account not found.")

    _check_expense_category(db, user_id, contribution.category_id)

    base_amount = to_base(contribution.amount, account.currency, settings)
    usd_amount = quantize_stored_usd(from_base(base_amount, USD, settings))
    goal_name = db_goal.name

    try:
        result = db.execute(
            update(GoalDB)
            .where(GoalDB.id == goal_id, GoalDB.user_id == user_id)
            .values(current_amount=GoalDB.current_amount + usd_amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Goal not found.")

        db.add(_contribution_transaction(
            user_id, account, contribution.category_id, contribution.amount, goal_name,
            contribution.contribution_date or date.today()
        ))
        db.commit()
    except NotFoundError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise InvalidPayloadError("Invalid contribution payload.")

    db.refresh(db_goal)
    _invalidate(cache, user_id, account.id)
    logger.info(f"Contributed {contribution.amount} {account.currency} from account {account.id} to goal {goal_id}")
    return db_goal


def delete_goal(db: Session, goal_id: int, user_id: int, cache: Optional[TaggedCache] = None) -> int:
    """Delete a goal; contributions already recorded stay on their accounts"""

    db_goal = read_db_goal(db, goal_id, user_id)
    if not db_goal:
        raise NotFoundError("Goal not found.")

    db.delete(db_goal)
    db.commit()

    if cache is not None:
        cache.invalidate("goals", "summary")
    logger.info(f"Deleted goal {goal_id}")
    return goal_id
