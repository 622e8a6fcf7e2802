"""
Typed record transitions.

Each step's save is expressed as one intent. apply_intent validates the
intent, builds the field payload and hands it to complete_step, so every
write to a PlanRecord goes through a known, checked transition:

    ReflectionSubmitted       -> step 1
    ReflectionNotesSubmitted  -> step 2
    CenterGoalSet             -> step 3
    SubGoalsSet(batch 0 / 1)  -> step 4 / 5
    ActionPlanSet(index)      -> step 6 + index
    ReportGenerated           -> step 14
    ManualEdit                -> no progression change
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

from mandala.config_manager import SystemConfig, config
from mandala.constants import FIRST_ACTION_PLAN_STEP
from mandala.exceptions import ValidationError
from mandala.models import AISummary, PlanRecord, utc_now_iso
from mandala.progression import complete_step
from mandala.validators import (
    require_action_plans,
    require_center_goal,
    require_notes,
    require_reflection,
    require_sub_goal_batch,
    require_sub_goals,
)


@dataclass(frozen=True)
class ReflectionSubmitted:
    theme: str
    answers: Dict[str, str]
    notes: Optional[str] = None

    @property
    def step(self) -> int:
        return 1


@dataclass(frozen=True)
class ReflectionNotesSubmitted:
    notes: str

    @property
    def step(self) -> int:
        return 2


@dataclass(frozen=True)
class CenterGoalSet:
    center_goal: str

    @property
    def step(self) -> int:
        return 3


@dataclass(frozen=True)
class SubGoalsSet:
    batch: int  # 0 -> positions 0-3 (step 4), 1 -> positions 4-7 (step 5)
    goals: List[str]

    @property
    def step(self) -> int:
        return 4 + self.batch


@dataclass(frozen=True)
class ActionPlanSet:
    index: int  # sub-goal index 0-7
    plans: List[str]

    @property
    def step(self) -> int:
        return FIRST_ACTION_PLAN_STEP + self.index


@dataclass(frozen=True)
class ReportGenerated:
    summary: AISummary

    @property
    def step(self) -> int:
        return 14


@dataclass(frozen=True)
class ManualEdit:
    center_goal: Optional[str] = None
    sub_goals: Optional[List[str]] = None
    action_plans: Optional[Dict[str, List[str]]] = field(default=None)

    @property
    def step(self) -> Optional[int]:
        return None


Intent = Union[
    ReflectionSubmitted,
    ReflectionNotesSubmitted,
    CenterGoalSet,
    SubGoalsSet,
    ActionPlanSet,
    ReportGenerated,
    ManualEdit,
]


def _padded_sub_goals(record: PlanRecord, cfg: SystemConfig) -> List[str]:
    goals = list(record.sub_goals)
    if len(goals) < cfg.TOTAL_SUB_GOALS:
        goals.extend([""] * (cfg.TOTAL_SUB_GOALS - len(goals)))
    return goals[:cfg.TOTAL_SUB_GOALS]


def require_summary(summary: Optional[AISummary]) -> AISummary:
    """All four report fields must be present; keywords must be a non-empty list."""
    if summary is None:
        raise ValidationError("AI summary is missing", field="ai_summary")
    for name in ("reflection_summary", "goal_analysis", "insights"):
        value = getattr(summary, name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"AI summary field '{name}' is missing", field=f"ai_summary.{name}")
    if not isinstance(summary.keywords, list) or not summary.keywords:
        raise ValidationError("AI summary field 'keywords' is missing", field="ai_summary.keywords")
    return summary


def build_payload(record: PlanRecord, intent: Intent, cfg: SystemConfig = config) -> Dict:
    """Validate `intent` against `record` and return the fields it writes."""
    if isinstance(intent, ReflectionSubmitted):
        payload = {
            "reflection_theme": intent.theme,
            "reflection_answers": require_reflection(intent.theme, intent.answers, cfg),
        }
        if intent.notes is not None:
            payload["reflection_notes"] = require_notes(intent.notes, cfg)
        return payload

    elif isinstance(intent, ReflectionNotesSubmitted):
        return {"reflection_notes": require_notes(intent.notes, cfg)}

    elif isinstance(intent, CenterGoalSet):
        return {"center_goal": require_center_goal(intent.center_goal, cfg)}

    elif isinstance(intent, SubGoalsSet):
        if intent.batch not in (0, 1):
            raise ValidationError(f"Unknown sub-goal batch: {intent.batch}", field="batch")
        cleaned = require_sub_goal_batch(intent.goals, cfg)
        goals = _padded_sub_goals(record, cfg)
        start = intent.batch * cfg.SUB_GOAL_BATCH_SIZE
        goals[start:start + cfg.SUB_GOAL_BATCH_SIZE] = cleaned
        return {"sub_goals": goals}

    elif isinstance(intent, ActionPlanSet):
        if not 0 <= intent.index < cfg.TOTAL_SUB_GOALS:
            raise ValidationError(f"Sub-goal index out of range: {intent.index}", field="index")
        goals = _padded_sub_goals(record, cfg)
        if not goals[intent.index].strip():
            raise ValidationError(
                f"Sub-goal {intent.index + 1} must be set before its action plans",
                field="sub_goals",
            )
        plans = copy.deepcopy(record.action_plans)
        plans[str(intent.index)] = require_action_plans(intent.plans, cfg=cfg)
        return {"action_plans": plans}

    elif isinstance(intent, ReportGenerated):
        return {"ai_summary": require_summary(intent.summary)}

    raise TypeError(f"Unsupported intent: {type(intent).__name__}")


def apply_manual_edit(record: PlanRecord, edit: ManualEdit, cfg: SystemConfig = config) -> PlanRecord:
    """
    Overwrite goals and plans directly. Progression is left untouched.
    """
    if edit.center_goal is None and edit.sub_goals is None and edit.action_plans is None:
        raise ValidationError("Nothing to update", field="mandala")

    updated = copy.deepcopy(record)
    if edit.center_goal is not None:
        updated.center_goal = require_center_goal(edit.center_goal, cfg)
    if edit.sub_goals is not None:
        updated.sub_goals = require_sub_goals(edit.sub_goals, cfg)
    if edit.action_plans is not None:
        plans = copy.deepcopy(updated.action_plans)
        valid_keys = {str(i) for i in range(cfg.TOTAL_SUB_GOALS)}
        for key, values in edit.action_plans.items():
            key = str(key)
            if key not in valid_keys:
                raise ValidationError(f"Unknown sub-goal index: {key}", field="action_plans")
            plans[key] = require_action_plans(values, field_name=f"action_plans[{key}]", cfg=cfg)
        updated.action_plans = plans
    updated.updated_at = utc_now_iso()
    return updated


def apply_intent(
    record: PlanRecord,
    intent: Intent,
    now: Optional[datetime] = None,
    cfg: SystemConfig = config,
) -> PlanRecord:
    """
    Pure transition: validate `intent` and return the updated record.

    Raises:
        ValidationError: the submitted fields were rejected; record untouched
    """
    if isinstance(intent, ManualEdit):
        return apply_manual_edit(record, intent, cfg)

    payload = build_payload(record, intent, cfg)
    return complete_step(record, intent.step, payload, now=now, cfg=cfg)
