import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vantage.db.core import Base, get_db
from vantage.crud.crud_user import create_db_user
from vantage.crud.crud_account import create_db_account
from vantage.crud.crud_category import upsert_category
from vantage.models.user import UserCreate
from vantage.models.account import AccountCreate
from vantage.models.category import CategoryUpsert
from vantage.services.cache import TaggedCache
from vantage.services.currency import CurrencySettings
from vantage.main import app



@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cache():
    return TaggedCache(ttl_seconds=None)


@pytest.fixture
def usd_settings():
    return CurrencySettings(base_currency="USD", exchange_rate=Decimal("120"))


@pytest.fixture
def birr_settings():
    return CurrencySettings(base_currency="BIRR", exchange_rate=Decimal("120"))


@pytest.fixture
def user(db):
    return create_db_user(db, UserCreate(email="abebe@example.com", name="Abebe Kebede"))


@pytest.fixture
def other_user(db):
    return create_db_user(db, UserCreate(email="sara@example.com", name="Sara Tesfaye"))


@pytest.fixture
def make_account(db, user):
    def _make_account(name="Main Checking", currency="USD", balance="0", owner=None, account_type="CHECKING"):
        owner = owner or user
        return create_db_account(db, owner.db_id, AccountCreate(
            account_name=name,
            account_type=account_type,
            currency=currency,
            initial_balance=Decimal(balance),
        ))
    return _make_account


@pytest.fixture
def make_category(db, user):
    def _make_category(name="Groceries", category_type="EXPENSE", owner=None):
        owner = owner or user
        return upsert_category(db, owner.db_id, CategoryUpsert(
            name=name,
            category_type=category_type,
            icon="shopping-cart",
            color="#22c55e",
        ))
    return _make_category


@pytest.fixture
def client(session_factory, user):
    def override_get_db():
        database = session_factory()
        try:
            yield database
        finally:
            database.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.cache = TaggedCache(ttl_seconds=None)
    with TestClient(app) as test_client:
        test_client.headers.update({"X-User-Id": str(user.id)})
        yield test_client
    app.dependency_overrides.clear()
