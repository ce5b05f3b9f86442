from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vantage.models.common import ActionResponse
from vantage.models.dashboard import DashboardSummary
from vantage.services.dashboard import get_dashboard_summary
from vantage.db.core import get_db
from vantage.routers.dependencies import get_current_user_id, get_cache, get_settings
from vantage.services.cache import TaggedCache
from vantage.services.currency import CurrencySettings

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
)


@router.get("/", response_model=ActionResponse[DashboardSummary])
def read_dashboard(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    return ActionResponse.ok(get_dashboard_summary(db=db, user_id=user_id, settings=settings, cache=cache))
