import json

import pytest

from mandala.exceptions import LLMAuthError, ReportGenerationError
from mandala.models import PlanRecord
from mandala.report_generator import ReportGenerator, content_hash, is_stale, validate_report
from mandala.utils import parse_llm_json

REPORT = {
    "reflection_summary": "지난 해 당신은 휴식의 가치를 배웠습니다.",
    "goal_analysis": "8개 영역이 건강과 관계에 고르게 분포합니다.",
    "keywords": ["휴식", "균형", "성장"],
    "insights": "아침 루틴을 중심으로 계획을 묶어보세요.",
}


def _record():
    return PlanRecord(
        id="p1",
        user_id="u1",
        year=2026,
        reflection_theme="theme2",
        reflection_answers={"0": "야근 줄이기"},
        center_goal="지치지 않는 한 해",
        sub_goals=[f"영역 {i}" for i in range(8)],
        action_plans={str(i): [f"계획 {i}-{j}" for j in range(8)] for i in range(8)},
    )


def test_generate_parses_fenced_json(fake_llm):
    llm = fake_llm("Here you go:\n```json\n" + json.dumps(REPORT, ensure_ascii=False) + "\n```")
    summary = ReportGenerator(llm=llm).generate(_record())

    assert summary.keywords == ["휴식", "균형", "성장"]
    assert summary.insights == REPORT["insights"]
    assert summary.content_hash == content_hash(_record())

    prompt = llm.prompts[0]
    assert "지치지 않는 한 해" in prompt
    assert "번아웃" in prompt  # theme title
    assert "{center_goal}" not in prompt


@pytest.mark.parametrize("missing", ["reflection_summary", "goal_analysis", "keywords", "insights"])
def test_missing_field_is_a_failure(fake_llm, missing):
    data = dict(REPORT)
    data.pop(missing)
    llm = fake_llm(json.dumps(data, ensure_ascii=False))
    with pytest.raises(ReportGenerationError):
        ReportGenerator(llm=llm).generate(_record())


def test_non_json_and_failed_calls(fake_llm):
    with pytest.raises(ReportGenerationError):
        ReportGenerator(llm=fake_llm("I cannot help with that")).generate(_record())
    with pytest.raises(ReportGenerationError):
        ReportGenerator(llm=fake_llm("", error="upstream down")).generate(_record())


def test_auth_error_propagates(fake_llm):
    llm = fake_llm(exc=LLMAuthError(provider="gemini", model_name="m"))
    with pytest.raises(LLMAuthError):
        ReportGenerator(llm=llm).generate(_record())


def test_validate_report_rejects_blank_keywords():
    data = dict(REPORT, keywords=["", "  "])
    with pytest.raises(ReportGenerationError):
        validate_report(data)


def test_staleness_follows_inputs(fake_llm):
    record = _record()
    assert not is_stale(record)

    record.ai_summary = ReportGenerator(llm=fake_llm(json.dumps(REPORT))).generate(record)
    assert not is_stale(record)

    record.center_goal = "다른 목표"
    assert is_stale(record)


def test_parse_llm_json_variants():
    assert parse_llm_json('```json\n{"key": "value"}\n```') == {"key": "value"}
    assert parse_llm_json('prefix {"a": 1} suffix') == {"a": 1}
    assert parse_llm_json("[1, 2]") is None
    assert parse_llm_json("") is None
    assert parse_llm_json("{broken") is None


def test_rejected_report_is_dumped(fake_llm, monkeypatch, tmp_path):
    monkeypatch.setenv("MANDALA_LOG_DIR", str(tmp_path))
    with pytest.raises(ReportGenerationError):
        ReportGenerator(llm=fake_llm("I cannot help with that")).generate(_record())

    dump = (tmp_path / "report_dump.log").read_text(encoding="utf-8")
    assert "plan p1" in dump
    assert "I cannot help with that" in dump
