from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from vantage.crud import crud_goal
from vantage.models import goal as goal_models
from vantage.models.common import ActionResponse, IdResponse
from vantage.db.core import get_db
from vantage.routers.dependencies import get_current_user_id, get_cache, get_settings
from vantage.services.cache import TaggedCache
from vantage.services.currency import CurrencySettings

router = APIRouter(
    prefix="/goals",
    tags=["goals"],
)


@router.get("/", response_model=ActionResponse[List[goal_models.GoalWithAnalytics]])
def read_goals(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Goals with progress, days remaining and the monthly saving still needed.
    """
    return ActionResponse.ok(crud_goal.get_goals_with_analytics(db=db, user_id=user_id, settings=settings, cache=cache))


@router.put("/", response_model=ActionResponse[IdResponse])
def upsert_goal(
    goal: goal_models.GoalUpsert,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    db_goal = crud_goal.upsert_goal(db=db, user_id=user_id, goal_data=goal, settings=settings, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(db_goal.id)))


@router.post("/{goal_id}/contributions", response_model=ActionResponse[IdResponse])
def contribute_to_goal(
    goal_id: int,
    contribution: goal_models.GoalContribution,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: CurrencySettings = Depends(get_settings),
    cache: TaggedCache = Depends(get_cache)
):
    """
    Add money to a goal from one of the user's accounts.
    """
    crud_goal.contribute_to_goal(
        db=db, user_id=user_id, goal_id=goal_id, contribution=contribution, settings=settings, cache=cache
    )
    return ActionResponse.ok(IdResponse(id=str(goal_id)))


@router.delete("/{goal_id}", response_model=ActionResponse[IdResponse])
def delete_goal(
    goal_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: TaggedCache = Depends(get_cache)
):
    crud_goal.delete_goal(db=db, goal_id=goal_id, user_id=user_id, cache=cache)
    return ActionResponse.ok(IdResponse(id=str(goal_id)))
