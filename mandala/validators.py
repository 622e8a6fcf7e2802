"""
Field-level validation for step submissions.

validate_* functions are pure predicates. require_* variants raise
ValidationError naming the field and return the trimmed values that will be
stored.
"""
import re
from typing import Dict, List, Optional, Sequence

from mandala.config_manager import SystemConfig, config
from mandala.constants import REFLECTION_THEMES
from mandala.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _within(text: Optional[str], max_length: int) -> bool:
    if not isinstance(text, str):
        return False
    trimmed = text.strip()
    return 0 < len(trimmed) <= max_length


def validate_step(step: object, cfg: SystemConfig = config) -> bool:
    # bool is an int subclass; True must not pass as step 1
    if isinstance(step, bool) or not isinstance(step, int):
        return False
    return 1 <= step <= cfg.TOTAL_STEPS


def validate_center_goal(goal: Optional[str], cfg: SystemConfig = config) -> bool:
    return _within(goal, cfg.CENTER_GOAL_MAX_LENGTH)


def validate_sub_goal(goal: Optional[str], cfg: SystemConfig = config) -> bool:
    return _within(goal, cfg.SUB_GOAL_MAX_LENGTH)


def validate_sub_goals(goals: Sequence[str], cfg: SystemConfig = config) -> bool:
    if len(goals) != cfg.TOTAL_SUB_GOALS:
        return False
    return all(validate_sub_goal(g, cfg) for g in goals)


def validate_sub_goal_batch(goals: Sequence[str], cfg: SystemConfig = config) -> bool:
    if len(goals) != cfg.SUB_GOAL_BATCH_SIZE:
        return False
    return all(validate_sub_goal(g, cfg) for g in goals)


def validate_action_plan(plan: Optional[str], cfg: SystemConfig = config) -> bool:
    return _within(plan, cfg.ACTION_PLAN_MAX_LENGTH)


def validate_action_plans(plans: Sequence[str], cfg: SystemConfig = config) -> bool:
    if len(plans) != cfg.TOTAL_ACTION_PLANS_PER_GOAL:
        return False
    return all(validate_action_plan(p, cfg) for p in plans)


def validate_reflection_answer(answer: Optional[str], cfg: SystemConfig = config) -> bool:
    return _within(answer, cfg.REFLECTION_ANSWER_MAX_LENGTH)


def validate_email(email: Optional[str]) -> bool:
    if not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(email))


def validate_theme(theme: Optional[str]) -> bool:
    return theme in REFLECTION_THEMES


# ---------------------------------------------------------------------------
# Raising variants
# ---------------------------------------------------------------------------

def require_center_goal(goal: Optional[str], cfg: SystemConfig = config) -> str:
    if not validate_center_goal(goal, cfg):
        raise ValidationError(
            f"Center goal must be 1-{cfg.CENTER_GOAL_MAX_LENGTH} characters",
            field="center_goal",
        )
    return goal.strip()


def require_sub_goal_batch(goals: Sequence[str], cfg: SystemConfig = config) -> List[str]:
    if len(goals) != cfg.SUB_GOAL_BATCH_SIZE:
        raise ValidationError(
            f"Expected {cfg.SUB_GOAL_BATCH_SIZE} sub-goals, got {len(goals)}",
            field="sub_goals",
        )
    for i, goal in enumerate(goals):
        if not validate_sub_goal(goal, cfg):
            raise ValidationError(
                f"Sub-goal {i + 1} must be 1-{cfg.SUB_GOAL_MAX_LENGTH} characters",
                field=f"sub_goals[{i}]",
            )
    return [g.strip() for g in goals]


def require_sub_goals(goals: Sequence[str], cfg: SystemConfig = config) -> List[str]:
    if len(goals) != cfg.TOTAL_SUB_GOALS:
        raise ValidationError(
            f"Expected {cfg.TOTAL_SUB_GOALS} sub-goals, got {len(goals)}",
            field="sub_goals",
        )
    for i, goal in enumerate(goals):
        if not validate_sub_goal(goal, cfg):
            raise ValidationError(
                f"Sub-goal {i + 1} must be 1-{cfg.SUB_GOAL_MAX_LENGTH} characters",
                field=f"sub_goals[{i}]",
            )
    return [g.strip() for g in goals]


def require_action_plans(
    plans: Sequence[str],
    field_name: str = "action_plans",
    cfg: SystemConfig = config,
) -> List[str]:
    if len(plans) != cfg.TOTAL_ACTION_PLANS_PER_GOAL:
        raise ValidationError(
            f"Expected {cfg.TOTAL_ACTION_PLANS_PER_GOAL} action plans, got {len(plans)}",
            field=field_name,
        )
    for i, plan in enumerate(plans):
        if not validate_action_plan(plan, cfg):
            raise ValidationError(
                f"Action plan {i + 1} must be 1-{cfg.ACTION_PLAN_MAX_LENGTH} characters",
                field=f"{field_name}[{i}]",
            )
    return [p.strip() for p in plans]


def require_reflection(
    theme: Optional[str],
    answers: Dict[str, str],
    cfg: SystemConfig = config,
) -> Dict[str, str]:
    """
    Validate a reflection submission.

    At least one answer must be non-empty; blank answers are dropped and
    every kept answer must fit REFLECTION_ANSWER_MAX_LENGTH.

    Returns:
        trimmed answers keyed by question index
    """
    if not validate_theme(theme):
        raise ValidationError(f"Unknown reflection theme: {theme!r}", field="reflection_theme")

    cleaned: Dict[str, str] = {}
    for key, answer in (answers or {}).items():
        if not isinstance(answer, str) or not answer.strip():
            continue
        if not validate_reflection_answer(answer, cfg):
            raise ValidationError(
                f"Answer {key} exceeds {cfg.REFLECTION_ANSWER_MAX_LENGTH} characters",
                field=f"reflection_answers[{key}]",
            )
        cleaned[str(key)] = answer.strip()

    if not cleaned:
        raise ValidationError("Answer at least one reflection question", field="reflection_answers")
    return cleaned


def require_notes(notes: Optional[str], cfg: SystemConfig = config) -> str:
    text = (notes or "").strip()
    if len(text) > cfg.REFLECTION_ANSWER_MAX_LENGTH:
        raise ValidationError(
            f"Notes exceed {cfg.REFLECTION_ANSWER_MAX_LENGTH} characters",
            field="reflection_notes",
        )
    return text
