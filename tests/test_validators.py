import pytest

from mandala.config_manager import SystemConfig
from mandala.exceptions import ValidationError
from mandala.validators import (
    require_action_plans,
    require_center_goal,
    require_notes,
    require_reflection,
    require_sub_goal_batch,
    validate_center_goal,
    validate_email,
    validate_step,
    validate_sub_goal_batch,
    validate_sub_goals,
)


def test_validate_step_bounds():
    assert validate_step(1)
    assert validate_step(14)
    assert not validate_step(0)
    assert not validate_step(15)
    assert not validate_step(True)
    assert not validate_step("3")


def test_center_goal_length():
    assert validate_center_goal("건강한 한 해")
    assert validate_center_goal("x" * 100)
    assert not validate_center_goal("x" * 101)
    assert not validate_center_goal("   ")
    assert not validate_center_goal(None)
    assert require_center_goal("  Read 30 books  ") == "Read 30 books"


@pytest.mark.parametrize("blank_at", range(4))
def test_sub_goal_batch_rejects_any_blank(blank_at):
    goals = ["Sleep early", "Run", "Read", "Save"]
    goals[blank_at] = "  "
    assert not validate_sub_goal_batch(goals)
    with pytest.raises(ValidationError) as exc:
        require_sub_goal_batch(goals)
    assert exc.value.field == f"sub_goals[{blank_at}]"


def test_sub_goal_batch_accepts_four_within_limit():
    goals = ["a" * 50, " Run ", "Read", "Save"]
    assert validate_sub_goal_batch(goals)
    assert require_sub_goal_batch(goals) == ["a" * 50, "Run", "Read", "Save"]
    assert not validate_sub_goal_batch(goals[:3])
    assert not validate_sub_goal_batch(["a" * 51, "b", "c", "d"])


def test_validate_sub_goals_needs_eight():
    assert validate_sub_goals([f"goal {i}" for i in range(8)])
    assert not validate_sub_goals([f"goal {i}" for i in range(7)])


def test_action_plans_exactly_eight_trimmed():
    plans = [f" plan {i} " for i in range(8)]
    assert require_action_plans(plans) == [f"plan {i}" for i in range(8)]

    with pytest.raises(ValidationError):
        require_action_plans(plans[:7])
    with pytest.raises(ValidationError):
        require_action_plans(plans[:7] + [""])
    with pytest.raises(ValidationError):
        require_action_plans(plans[:7] + ["x" * 51])


def test_reflection_needs_one_answer():
    assert require_reflection("theme3", {"0": " first ", "1": "", "2": "  "}) == {"0": "first"}

    with pytest.raises(ValidationError):
        require_reflection("theme3", {"0": "", "1": " "})
    with pytest.raises(ValidationError):
        require_reflection("theme9", {"0": "answer"})
    with pytest.raises(ValidationError):
        require_reflection("theme1", {"0": "x" * 1001})


def test_notes_may_be_empty_but_bounded():
    assert require_notes(None) == ""
    assert require_notes("  keep going ") == "keep going"
    with pytest.raises(ValidationError):
        require_notes("x" * 1001)


def test_validate_email():
    assert validate_email("a@b.co")
    assert not validate_email("no-at-sign")
    assert not validate_email("a@b")
    assert not validate_email(None)


def test_limits_follow_the_given_config():
    small = SystemConfig(TOTAL_STEPS=3, SUB_GOAL_MAX_LENGTH=3, SUB_GOAL_BATCH_SIZE=2)

    assert validate_step(14)
    assert not validate_step(14, small)
    assert validate_step(3, small)

    assert require_sub_goal_batch(["abc", " de "], small) == ["abc", "de"]
    with pytest.raises(ValidationError):
        require_sub_goal_batch(["abcd", "de"], small)
    with pytest.raises(ValidationError):
        require_center_goal("x" * 11, SystemConfig(CENTER_GOAL_MAX_LENGTH=10))
