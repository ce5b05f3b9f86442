from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional, Dict, Any
from uuid import uuid4
from datetime import datetime
from decimal import Decimal

from vantage.db.core import UserDB, BaseCurrency, DEFAULT_BASE_CURRENCY, DEFAULT_USD_TO_BIRR_RATE
from vantage.errors import NotFoundError, DuplicateEmailError, InvalidExchangeRateError, InvalidPayloadError
from vantage.models.user import UserCreate, ProfileUpdate, CurrencySettingsUpdate
from vantage.models.transaction import parse_exchange_rate
from vantage.services.cache import TaggedCache, user_tag
from vantage.services.currency import CurrencySettings
from vantage.logging_config import get_logger

logger = get_logger(__name__)


# ===== CURRENCY SETTINGS =====

def _load_currency_settings(db: Session, user_id: int) -> CurrencySettings:
    user = db.query(UserDB.base_currency, UserDB.usd_to_birr_rate).filter(UserDB.db_id == user_id).first()
    if not user:
        return CurrencySettings(base_currency=DEFAULT_BASE_CURRENCY, exchange_rate=DEFAULT_USD_TO_BIRR_RATE)

    base_currency = user.base_currency.value if user.base_currency else DEFAULT_BASE_CURRENCY
    rate = Decimal(str(user.usd_to_birr_rate)) if user.usd_to_birr_rate else DEFAULT_USD_TO_BIRR_RATE
    return CurrencySettings(base_currency=base_currency, exchange_rate=rate)


def get_currency_settings(db: Session, user_id: int, cache: Optional[TaggedCache] = None) -> CurrencySettings:
    """Resolve a user's base currency and USD->BIRR rate, falling back to USD / 120"""
    if cache is None:
        return _load_currency_settings(db, user_id)

    return cache.get_or_set(
        ("settings", user_id, "currency"),
        ["settings", user_tag(user_id)],
        lambda: _load_currency_settings(db, user_id),
    )


def update_currency_settings(db: Session, user_id: int, settings_data: CurrencySettingsUpdate,
                             cache: Optional[TaggedCache] = None) -> CurrencySettings:
    """Change the base currency and exchange rate of a user"""

    rate = parse_exchange_rate(settings_data.exchange_rate)
    if rate is None:
        raise InvalidExchangeRateError()

    db_user = db.query(UserDB).filter(UserDB.db_id == user_id).first()
    if not db_user:
        raise NotFoundError("User not found.")

    db_user.base_currency = BaseCurrency(settings_data.base_currency.value)
    db_user.usd_to_birr_rate = rate
    db_user.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(db_user)

    if cache is not None:
        cache.invalidate("settings", user_tag(user_id), "summary", "accounts", "budgets", "goals")

    logger.info(f"User {user_id} switched base currency to {settings_data.base_currency.value} at rate {rate}")
    return CurrencySettings(base_currency=db_user.base_currency.value, exchange_rate=rate)


# ===== USER OPERATIONS =====

def create_db_user(db: Session, user_data: UserCreate) -> UserDB:
    """Register a user row for an identity issued by the auth provider"""

    existing_user = db.query(UserDB).filter(UserDB.email == user_data.email).first()
    if existing_user:
        raise DuplicateEmailError()

    db_user = UserDB(
        id=uuid4(),
        email=user_data.email,
        name=user_data.name,
        base_currency=BaseCurrency(user_data.base_currency.value),
        usd_to_birr_rate=DEFAULT_USD_TO_BIRR_RATE,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return db_user
    except IntegrityError:
        db.rollback()
        raise InvalidPayloadError("User creation failed due to database constraint")


def read_db_user(db: Session, user_id: int) -> Optional[UserDB]:
    return db.query(UserDB).filter(UserDB.db_id == user_id).first()


def get_user_settings(db: Session, user_id: int, cache: Optional[TaggedCache] = None) -> Dict[str, Any]:
    """Profile and currency preferences for the settings page"""

    db_user = read_db_user(db, user_id)
    if not db_user:
        raise NotFoundError("User not found.")

    settings = get_currency_settings(db, user_id, cache)
    return {
        "id": str(db_user.id),
        "name": db_user.name,
        "email": db_user.email,
        "base_currency": settings.base_currency,
        "exchange_rate": settings.exchange_rate,
    }


def update_profile(db: Session, user_id: int, profile: ProfileUpdate,
                   cache: Optional[TaggedCache] = None) -> UserDB:
    """Update name and email; the email must not belong to another user"""

    existing = db.query(UserDB).filter(
        UserDB.email == profile.email,
        UserDB.db_id != user_id
    ).first()
    if existing:
        raise DuplicateEmailError()

    db_user = read_db_user(db, user_id)
    if not db_user:
        raise NotFoundError("User not found.")

    db_user.name = profile.name
    db_user.email = profile.email
    db_user.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_user)
    except IntegrityError:
        db.rollback()
        raise DuplicateEmailError()

    if cache is not None:
        cache.invalidate("settings", user_tag(user_id))
    return db_user


def delete_db_user(db: Session, user_id: int, cache: Optional[TaggedCache] = None) -> bool:
    """Delete a user and everything they own"""

    db_user = read_db_user(db, user_id)
    if not db_user:
        raise NotFoundError("User not found.")

    db.delete(db_user)
    db.commit()

    if cache is not None:
        cache.invalidate(user_tag(user_id))
    logger.info(f"Deleted user {user_id}")
    return True
