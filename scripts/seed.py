import sys
import os
import random
from sqlalchemy.orm import Session
from datetime import date, timedelta
from decimal import Decimal
from faker import Faker

# Add the project root to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vantage.db.core import session_local, UserDB
from vantage.crud.crud_user import create_db_user, get_currency_settings
from vantage.crud.crud_account import create_db_account
from vantage.crud.crud_category import upsert_category
from vantage.crud.crud_transaction import record_transaction
from vantage.crud.crud_budget import upsert_budget
from vantage.crud.crud_goal import upsert_goal
from vantage.models.user import UserCreate
from vantage.models.account import AccountCreate
from vantage.models.category import CategoryUpsert
from vantage.models.transaction import TransactionCreate
from vantage.models.budget import BudgetUpsert
from vantage.models.goal import GoalUpsert

fake = Faker()

EXPENSE_CATEGORIES = [
    ("Groceries", "shopping-cart", "#22c55e"),
    ("Rent", "home", "#f97316"),
    ("Transport", "car", "#0ea5e9"),
    ("Restaurants", "utensils", "#ef4444"),
    ("Utilities", "zap", "#eab308"),
    ("Entertainment", "film", "#8b5cf6"),
]
INCOME_CATEGORIES = [
    ("Salary", "briefcase", "#10b981"),
    ("Freelance", "laptop", "#14b8a6"),
]


def _money(low: float, high: float) -> Decimal:
    return Decimal(str(round(random.uniform(low, high), 2)))


def seed_database(user_count: int = 3):
    """
    Fills the database with sample users, each with a USD and a BIRR account,
    a month of transactions, budgets and a savings goal.
    """
    db: Session = session_local()

    try:
        # Check if data exists to prevent duplicate seeding
        if db.query(UserDB).count() > 0:
            print("Database appears to be already seeded. Exiting.")
            return

        print("Seeding database with sample data...")
        today = date.today()

        for i in range(user_count):
            user = create_db_user(db, UserCreate(email=fake.unique.email(), name=fake.name()))
            settings = get_currency_settings(db, user.db_id)

            checking = create_db_account(db, user.db_id, AccountCreate(
                account_name="Main Checking", account_type="CHECKING", currency="USD",
                initial_balance=_money(1500, 6000)
            ))
            birr_savings = create_db_account(db, user.db_id, AccountCreate(
                account_name="Birr Savings", account_type="SAVINGS", currency="BIRR",
                initial_balance=_money(20000, 90000)
            ))

            expense_categories = [
                upsert_category(db, user.db_id, CategoryUpsert(name=name, category_type="EXPENSE", icon=icon, color=color))
                for name, icon, color in EXPENSE_CATEGORIES
            ]
            for name, icon, color in INCOME_CATEGORIES:
                upsert_category(db, user.db_id, CategoryUpsert(name=name, category_type="INCOME", icon=icon, color=color))

            print(f"Creating transactions for {user.email}...")
            record_transaction(db, user.db_id, TransactionCreate(
                account_id=checking.id, transaction_type="INCOME", amount=_money(3000, 5000),
                transaction_date=today.replace(day=1), description="Salary", is_recurring=True
            ))

            for _ in range(random.randint(15, 30)):
                account = random.choice([checking, birr_savings])
                low, high = (5, 150) if account.currency == "USD" else (300, 9000)
                record_transaction(db, user.db_id, TransactionCreate(
                    account_id=account.id,
                    transaction_type="EXPENSE",
                    amount=_money(low, high),
                    transaction_date=today - timedelta(days=random.randint(0, today.day - 1)),
                    category_id=random.choice(expense_categories).id,
                    description=fake.company(),
                ))

            record_transaction(db, user.db_id, TransactionCreate(
                account_id=checking.id,
                transaction_type="TRANSFER",
                destination_account_id=birr_savings.id,
                amount=_money(100, 400),
                transaction_date=today,
                exchange_rate=str(settings.exchange_rate),
                description="Move to savings",
            ))

            for category in random.sample(expense_categories, k=4):
                upsert_budget(db, user.db_id, BudgetUpsert(category_id=category.id, amount=_money(200, 1200)), settings)

            upsert_goal(db, user.db_id, GoalUpsert(
                name=random.choice(["New Car", "Home Deposit", "Summer Trip", "Emergency Fund"]),
                target_amount=_money(5000, 20000),
                current_amount=_money(100, 800),
                deadline=today + timedelta(days=random.randint(90, 720)),
                account_id=checking.id,
            ), settings)

            print(f"User {i+1} and associated data seeded.")

        print("Successfully seeded database.")

    except Exception as e:
        print(f"An error occurred: {e}")
        import traceback
        traceback.print_exc()
        db.rollback()
    finally:
        db.close()

if __name__ == "__main__":
    seed_database()
