from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from vantage.db.core import get_db, UserDB
from vantage.errors import UnauthorizedError
from vantage.crud.crud_user import get_currency_settings
from vantage.services.cache import TaggedCache
from vantage.services.currency import CurrencySettings


def get_cache(request: Request) -> TaggedCache:
    return request.app.state.cache


def get_current_user_id(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> int:
    """
    Resolve the authenticated user from the X-User-Id header.

    The header carries the public user id issued by the identity provider.
    """
    if not x_user_id:
        raise UnauthorizedError()

    try:
        public_id = UUID(x_user_id.strip())
    except ValueError:
        raise UnauthorizedError()

    db_id = db.query(UserDB.db_id).filter(UserDB.id == public_id).scalar()
    if db_id is None:
        raise UnauthorizedError()
    return db_id


def get_settings(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
) -> CurrencySettings:
    return get_currency_settings(db, user_id, cache)
