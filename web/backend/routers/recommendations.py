from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mandala.exceptions import MandalaError
from mandala.models import Account
from mandala.validators import require_center_goal
from web.backend.dependencies import current_account, get_recommender, raise_http

router = APIRouter()


class SubGoalSuggestionRequest(BaseModel):
    center_goal: str
    existing: List[str] = Field(default_factory=list)


class ActionPlanSuggestionRequest(BaseModel):
    center_goal: str
    sub_goal: str
    existing: List[str] = Field(default_factory=list)


@router.post("/sub-goals")
def suggest_sub_goals(request: SubGoalSuggestionRequest, account: Account = Depends(current_account)):
    try:
        center_goal = require_center_goal(request.center_goal)
    except MandalaError as exc:
        raise_http(exc)
    items = get_recommender().suggest_sub_goals(center_goal, request.existing)
    return {"recommendations": [asdict(i) for i in items]}


@router.post("/action-plans")
def suggest_action_plans(request: ActionPlanSuggestionRequest, account: Account = Depends(current_account)):
    try:
        center_goal = require_center_goal(request.center_goal)
    except MandalaError as exc:
        raise_http(exc)
    items = get_recommender().suggest_action_plans(center_goal, request.sub_goal.strip(), request.existing)
    return {"recommendations": [asdict(i) for i in items]}
