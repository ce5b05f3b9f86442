from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from vantage.db.core import CategoryDB, TransactionDB, BudgetDB, GoalDB, CategoryType
from vantage.errors import NotFoundError, DuplicateNameError
from vantage.models.category import CategoryUpsert, CategoryWithStats, CategoryTypeEnum
from vantage.crud.crud_budget import calculate_category_spending, month_bounds
from vantage.services.cache import TaggedCache, user_tag
from vantage.services.currency import CurrencySettings, quantize_money
from vantage.logging_config import get_logger

logger = get_logger(__name__)

UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_ICON = "tag"
UNCATEGORIZED_COLOR = "#64748b"


# ===== UTILITY FUNCTIONS =====

def ensure_uncategorized(db: Session, user_id: int) -> CategoryDB:
    """Return the user's "Uncategorized" expense category, creating it if needed. Does not commit."""
    existing = db.query(CategoryDB).filter(
        CategoryDB.user_id == user_id,
        CategoryDB.name == UNCATEGORIZED_NAME
    ).first()
    if existing:
        return existing

    uncategorized = CategoryDB(
        user_id=user_id,
        name=UNCATEGORIZED_NAME,
        category_type=CategoryType.EXPENSE,
        icon=UNCATEGORIZED_ICON,
        color=UNCATEGORIZED_COLOR,
        created_at=datetime.utcnow()
    )
    db.add(uncategorized)
    db.flush()
    return uncategorized


# ===== DATABASE OPERATIONS =====

def read_db_category(db: Session, category_id: int, user_id: int) -> Optional[CategoryDB]:
    return db.query(CategoryDB).filter(
        CategoryDB.id == category_id,
        CategoryDB.user_id == user_id
    ).first()


def read_db_categories(db: Session, user_id: int, category_type: Optional[CategoryTypeEnum] = None) -> List[CategoryDB]:
    """Read categories for a user, ordered by name"""

    query = db.query(CategoryDB).filter(CategoryDB.user_id == user_id)

    if category_type:
        query = query.filter(CategoryDB.category_type == CategoryType(category_type.value))

    return query.order_by(CategoryDB.name).all()


def upsert_category(db: Session, user_id: int, category_data: CategoryUpsert,
                    cache: Optional[TaggedCache] = None) -> CategoryDB:
    """Create a category, or update it when ``category_data.id`` is set"""

    duplicate_query = db.query(CategoryDB).filter(
        CategoryDB.user_id == user_id,
        func.lower(CategoryDB.name) == category_data.name.lower()
    )
    if category_data.id is not None:
        duplicate_query = duplicate_query.filter(CategoryDB.id != category_data.id)
    if duplicate_query.first():
        raise DuplicateNameError("Category name already exists.")

    if category_data.id is not None:
        db_category = read_db_category(db, category_data.id, user_id)
        if not db_category:
            raise NotFoundError("Category not found.")
    else:
        db_category = CategoryDB(user_id=user_id, created_at=datetime.utcnow())
        db.add(db_category)

    db_category.name = category_data.name
    db_category.category_type = CategoryType(category_data.category_type.value)
    db_category.icon = category_data.icon
    db_category.color = category_data.color

    try:
        db.commit()
        db.refresh(db_category)
    except IntegrityError:
        db.rollback()
        raise DuplicateNameError("Category name already exists.")

    if cache is not None:
        cache.invalidate("categories", "budgets", "summary")
    logger.info(f"Saved category {db_category.id} '{db_category.name}' for user {user_id}")
    return db_category


def delete_category(db: Session, category_id: int, user_id: int, cache: Optional[TaggedCache] = None) -> int:
    """
    Delete a category.

    Its transactions move to "Uncategorized", its budgets are removed and
    goals using it lose the reference.
    """
    db_category = read_db_category(db, category_id, user_id)
    if not db_category:
        raise NotFoundError("Category not found.")

    try:
        transaction_count = db.query(TransactionDB).filter(
            TransactionDB.user_id == user_id,
            TransactionDB.category_id == category_id
        ).count()

        if transaction_count > 0:
            if db_category.name == UNCATEGORIZED_NAME:
                replacement_id = None
            else:
                replacement_id = ensure_uncategorized(db, user_id).id
            db.query(TransactionDB).filter(
                TransactionDB.user_id == user_id,
                TransactionDB.category_id == category_id
            ).update({TransactionDB.category_id: replacement_id}, synchronize_session=False)

        db.query(BudgetDB).filter(
            BudgetDB.user_id == user_id,
            BudgetDB.category_id == category_id
        ).delete(synchronize_session=False)

        db.query(GoalDB).filter(
            GoalDB.user_id == user_id,
            GoalDB.category_id == category_id
        ).update({GoalDB.category_id: None}, synchronize_session=False)

        db.delete(db_category)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise

    if cache is not None:
        cache.invalidate("categories", "transactions", "budgets", "goals", "summary")
    logger.info(f"Deleted category {category_id}, moved {transaction_count} transactions")
    return category_id


def get_categories_with_stats(db: Session, user_id: int, settings: CurrencySettings,
                              today: Optional[date] = None,
                              cache: Optional[TaggedCache] = None) -> List[CategoryWithStats]:
    """Categories with their transaction count and this month's spend in the base currency"""

    today = today or date.today()
    start, end = month_bounds(today)

    def load() -> List[CategoryWithStats]:
        categories = read_db_categories(db, user_id)

        counts = dict(db.query(
            TransactionDB.category_id,
            func.count(TransactionDB.db_id)
        ).filter(
            TransactionDB.user_id == user_id,
            TransactionDB.category_id.isnot(None)
        ).group_by(TransactionDB.category_id).all())

        spending = calculate_category_spending(
            db, user_id, [category.id for category in categories], start, end, settings
        )

        return [
            CategoryWithStats(
                id=category.id,
                name=category.name,
                category_type=category.category_type.value,
                icon=category.icon,
                color=category.color,
                transaction_count=counts.get(category.id, 0),
                monthly_spend=quantize_money(spending.get(category.id, Decimal("0"))),
            )
            for category in categories
        ]

    if cache is None:
        return load()
    return cache.get_or_set(
        ("categories", user_id, today.year, today.month, settings),
        ["categories", "transactions", user_tag(user_id)],
        load,
    )
