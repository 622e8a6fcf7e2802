from datetime import datetime, timedelta, timezone

import pytest

from mandala.exceptions import ValidationError
from mandala.intents import (
    ActionPlanSet,
    CenterGoalSet,
    ManualEdit,
    ReflectionNotesSubmitted,
    ReflectionSubmitted,
    ReportGenerated,
    SubGoalsSet,
    apply_intent,
)
from mandala.models import AISummary, PlanRecord

START = datetime(2026, 1, 5, 1, 0, tzinfo=timezone.utc)

SUB_GOALS = ["Sleep", "Exercise", "Reading", "Savings", "Family", "Career", "Travel", "Hobby"]

SUMMARY = AISummary(
    reflection_summary="You rested more.",
    goal_analysis="Goals are balanced.",
    keywords=["rest", "focus"],
    insights="Keep the morning routine.",
)


def _record():
    return PlanRecord(id="p1", user_id="u1", year=2026)


def _plans(index):
    return [f"plan {index}-{i}" for i in range(8)]


def test_intent_step_numbers():
    assert ReflectionSubmitted("theme1", {"0": "a"}).step == 1
    assert ReflectionNotesSubmitted("n").step == 2
    assert CenterGoalSet("g").step == 3
    assert SubGoalsSet(0, []).step == 4
    assert SubGoalsSet(1, []).step == 5
    assert ActionPlanSet(0, []).step == 6
    assert ActionPlanSet(7, []).step == 13
    assert ReportGenerated(SUMMARY).step == 14
    assert ManualEdit(center_goal="g").step is None


def test_sub_goal_batches_fill_their_positions():
    record = apply_intent(_record(), SubGoalsSet(1, SUB_GOALS[4:]), now=START)
    assert record.sub_goals == ["", "", "", ""] + SUB_GOALS[4:]

    record = apply_intent(record, SubGoalsSet(0, SUB_GOALS[:4]), now=START)
    assert record.sub_goals == SUB_GOALS


def test_rejected_intent_leaves_record_untouched():
    record = _record()
    with pytest.raises(ValidationError):
        apply_intent(record, SubGoalsSet(0, ["a", "", "c", "d"]), now=START)
    with pytest.raises(ValidationError):
        apply_intent(record, SubGoalsSet(2, SUB_GOALS[:4]), now=START)
    assert record.sub_goals == []
    assert record.completed_steps == []


def test_action_plans_need_their_sub_goal():
    with pytest.raises(ValidationError) as exc:
        apply_intent(_record(), ActionPlanSet(0, _plans(0)), now=START)
    assert exc.value.field == "sub_goals"


def test_action_plans_stored_trimmed():
    record = apply_intent(_record(), SubGoalsSet(0, SUB_GOALS[:4]), now=START)
    padded = [f"  {p} " for p in _plans(2)]
    record = apply_intent(record, ActionPlanSet(2, padded), now=START)
    assert record.action_plans["2"] == _plans(2)
    assert 8 in record.completed_steps


def test_report_requires_all_fields():
    broken = AISummary(reflection_summary="x", goal_analysis="", keywords=["k"], insights="y")
    with pytest.raises(ValidationError):
        apply_intent(_record(), ReportGenerated(broken), now=START)

    no_keywords = AISummary(reflection_summary="x", goal_analysis="y", keywords=[], insights="z")
    with pytest.raises(ValidationError):
        apply_intent(_record(), ReportGenerated(no_keywords), now=START)


def test_manual_edit_keeps_progression():
    record = PlanRecord(id="p1", user_id="u1", year=2026, current_step=7, completed_steps=[1, 2, 3, 4, 5, 6])
    edited = apply_intent(record, ManualEdit(center_goal=" New goal ", sub_goals=SUB_GOALS))
    assert edited.center_goal == "New goal"
    assert edited.sub_goals == SUB_GOALS
    assert edited.current_step == 7
    assert edited.completed_steps == [1, 2, 3, 4, 5, 6]


def test_manual_edit_validation():
    with pytest.raises(ValidationError):
        apply_intent(_record(), ManualEdit())
    with pytest.raises(ValidationError):
        apply_intent(_record(), ManualEdit(sub_goals=SUB_GOALS[:7]))
    with pytest.raises(ValidationError):
        apply_intent(_record(), ManualEdit(action_plans={"8": _plans(0)}))


def test_full_wizard_reaches_terminal_state():
    record = _record()
    now = START
    intents = [
        ReflectionSubmitted("theme5", {"0": "Learned to swim", "2": "Trip to Jeju"}),
        ReflectionNotesSubmitted("More of this"),
        CenterGoalSet("A calmer, healthier year"),
        SubGoalsSet(0, SUB_GOALS[:4]),
        SubGoalsSet(1, SUB_GOALS[4:]),
    ]
    intents += [ActionPlanSet(i, _plans(i)) for i in range(8)]
    intents.append(ReportGenerated(SUMMARY))

    for intent in intents:
        record = apply_intent(record, intent, now=now)
        now += timedelta(days=1)

    assert set(range(1, 15)) <= set(record.completed_steps)
    assert len(record.sub_goals) == 8
    assert sorted(record.action_plans) == [str(i) for i in range(8)]
    assert all(len(v) == 8 for v in record.action_plans.values())
    assert record.ai_summary == SUMMARY
    assert record.current_step == 14
    assert record.is_complete
