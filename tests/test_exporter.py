import copy
import csv

from mandala.exporter import export_progress_csv, mandala_grid, render_plan_pdf, render_report_pdf
from mandala.models import AISummary, PlanRecord

SUB_GOALS = [f"goal {i}" for i in range(8)]


def _record():
    return PlanRecord(
        id="p1",
        user_id="u1",
        year=2026,
        center_goal="핵심 목표",
        sub_goals=list(SUB_GOALS),
        action_plans={str(i): [f"plan {i}-{j}" for j in range(8)] for i in range(8)},
        current_step=14,
        name="김민지",
        email="minji@example.com",
        marketing_consent=True,
        created_at="2026-01-02T03:04:05+00:00",
        updated_at="2026-01-20T03:04:05+00:00",
    )


def test_mandala_grid_layout():
    grid = mandala_grid(_record())
    assert len(grid) == 9 and all(len(row) == 9 for row in grid)

    # center block
    assert grid[4][4] == "핵심 목표"
    assert grid[3][3] == "goal 0"
    assert grid[4][5] == "goal 4"
    assert grid[5][5] == "goal 7"

    # outer blocks carry their sub-goal in the middle
    assert grid[1][1] == "goal 0"
    assert grid[4][7] == "goal 4"   # block 5 -> sub-goal 4
    assert grid[7][7] == "goal 7"   # block 8 -> sub-goal 7

    # action plans wrap around, skipping the middle cell
    assert grid[0][0] == "plan 0-0"
    assert grid[1][0] == "plan 0-3"
    assert grid[1][2] == "plan 0-4"
    assert grid[8][8] == "plan 7-7"


def test_mandala_grid_with_partial_record():
    record = PlanRecord(id="p1", user_id="u1", year=2026, center_goal="only center")
    grid = mandala_grid(record)
    assert grid[4][4] == "only center"
    assert grid[0][0] == ""


def test_render_pdfs(tmp_path):
    record = _record()
    snapshot = copy.deepcopy(record)
    summary = AISummary("요약 <b>", "분석", ["휴식", "성장"], "인사이트 & 다음 단계")

    assert render_plan_pdf(record, tmp_path / "chart.pdf")
    assert render_report_pdf(summary, tmp_path / "out" / "report.pdf")
    assert (tmp_path / "chart.pdf").read_bytes().startswith(b"%PDF")
    assert (tmp_path / "out" / "report.pdf").stat().st_size > 0
    assert record == snapshot


def test_render_failure_returns_false(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert render_plan_pdf(_record(), blocker / "chart.pdf") is False


def test_export_progress_csv(tmp_path):
    target = tmp_path / "users.csv"
    blank = PlanRecord(id="p2", user_id="u2", year=2026)
    assert export_progress_csv([_record(), blank], target)

    raw = target.read_bytes()
    assert raw.startswith(b"\xef\xbb\xbf")

    with open(target, encoding="utf-8-sig", newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["이름", "이메일", "마케팅 동의", "현재 단계", "핵심 목표", "가입일", "최근 활동"]
    assert rows[1] == ["김민지", "minji@example.com", "O", "단계 14", "핵심 목표", "2026-01-02", "2026-01-20"]
    assert rows[2][:5] == ["-", "-", "X", "단계 1", "-"]
