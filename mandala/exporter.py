"""
Document export: report PDF, mandala chart PDF and the admin progress CSV.

Rendering never touches the PlanRecord. Public render functions log failures
and return False so a failed export only aborts that export.
"""
import csv
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Union
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor, white
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from mandala.config_manager import config
from mandala.exceptions import ExportError
from mandala.logger import get_logger
from mandala.models import AISummary, PlanRecord

logger = get_logger("exporter")

PathLike = Union[str, Path]

# ─── Palette ──────────────────────────────────────────────────────────────────
BLUE = HexColor("#3B82F6")
BLUE_L = HexColor("#DBEAFE")
DARK = HexColor("#111827")
GREY = HexColor("#6B7280")
CENTER_BG = HexColor("#DB2777")
SUB_BG = HexColor("#374151")

CSV_HEADERS = ["이름", "이메일", "마케팅 동의", "현재 단계", "핵심 목표", "가입일", "최근 활동"]

_registered_fonts = set()


def _font(name: Optional[str] = None) -> str:
    name = name or config.PDF_FONT_NAME
    if name not in _registered_fonts:
        try:
            pdfmetrics.registerFont(UnicodeCIDFont(name))
        except (KeyError, ValueError) as e:
            raise ExportError(f"Cannot register PDF font {name}: {e}")
        _registered_fonts.add(name)
    return name


def _styles(font: str) -> dict:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("Title", parent=base["Title"], fontName=font,
                                fontSize=22, leading=28, textColor=DARK, alignment=TA_CENTER),
        "caption": ParagraphStyle("Caption", parent=base["Normal"], fontName=font,
                                  fontSize=9, textColor=GREY, alignment=TA_CENTER, spaceAfter=12),
        "h2": ParagraphStyle("H2", parent=base["Heading2"], fontName=font,
                             fontSize=15, leading=20, textColor=DARK, spaceBefore=12, spaceAfter=4),
        "body": ParagraphStyle("Body", parent=base["Normal"], fontName=font,
                               fontSize=10.5, leading=17, textColor=DARK),
        "cell": ParagraphStyle("Cell", parent=base["Normal"], fontName=font,
                               fontSize=7.5, leading=9.5, alignment=TA_CENTER),
        "cell_strong": ParagraphStyle("CellStrong", parent=base["Normal"], fontName=font,
                                      fontSize=8.5, leading=10.5, alignment=TA_CENTER, textColor=white),
    }


def _paragraph(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text or "").replace("\n", "<br/>"), style)


# ─── Report ───────────────────────────────────────────────────────────────────

def build_report_story(summary: AISummary, generated_on: Optional[date] = None, font: Optional[str] = None) -> list:
    font = _font(font)
    styles = _styles(font)
    generated_on = generated_on or date.today()

    story = [
        _paragraph("만다라트 종합 리포트", styles["title"]),
        _paragraph(f"생성일: {generated_on.isoformat()}", styles["caption"]),
    ]

    sections = [
        ("1. 회고 요약", summary.reflection_summary or "회고 요약이 없습니다."),
        ("2. 목표 구조 분석", summary.goal_analysis or "목표 분석이 없습니다."),
    ]
    for heading, text in sections:
        story.append(_paragraph(heading, styles["h2"]))
        story.append(HRFlowable(width="100%", thickness=1.5, color=BLUE, spaceAfter=6))
        story.append(_paragraph(text, styles["body"]))

    story.append(_paragraph("3. 핵심 키워드", styles["h2"]))
    story.append(HRFlowable(width="100%", thickness=1.5, color=BLUE, spaceAfter=6))
    if summary.keywords:
        chips = Table([[_paragraph(k, styles["body"]) for k in summary.keywords]])
        chips.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), BLUE_L),
            ("BOX", (0, 0), (-1, -1), 0.5, white),
            ("INNERGRID", (0, 0), (-1, -1), 4, white),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ]))
        story.append(chips)

    story.append(_paragraph("4. 통합 인사이트", styles["h2"]))
    story.append(HRFlowable(width="100%", thickness=1.5, color=BLUE, spaceAfter=6))
    story.append(_paragraph(summary.insights or "인사이트가 없습니다.", styles["body"]))
    return story


def render_report_pdf(summary: AISummary, path: PathLike, generated_on: Optional[date] = None) -> bool:
    """Write the summary report to `path`. Returns False on failure."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        doc = SimpleDocTemplate(
            str(target), pagesize=A4,
            leftMargin=20 * mm, rightMargin=20 * mm, topMargin=20 * mm, bottomMargin=20 * mm,
            title="Mandala Report",
        )
        doc.build(build_report_story(summary, generated_on))
    except (ExportError, OSError, ValueError) as e:
        logger.error("Failed to render report PDF %s: %s", target, e)
        return False
    logger.info("Report PDF written to %s", target)
    return True


# ─── Mandala chart ────────────────────────────────────────────────────────────

def mandala_grid(record: PlanRecord) -> List[List[str]]:
    """
    Lay the record out as the 9x9 mandala chart.

    Blocks are numbered 0-8 row-major; block 4 is the center block. Outer
    block b holds sub-goal (b if b < 4 else b - 1) in its middle cell and that
    sub-goal's 8 action plans around it. The center block holds the center
    goal surrounded by the 8 sub-goals.
    """
    sub_goals = list(record.sub_goals) + [""] * (8 - len(record.sub_goals))
    grid = [["" for _ in range(9)] for _ in range(9)]

    for block in range(9):
        block_row, block_col = divmod(block, 3)
        if block == 4:
            middle = record.center_goal or ""
            ring = sub_goals[:8]
        else:
            index = block if block < 4 else block - 1
            middle = sub_goals[index]
            plans = list(record.action_plans.get(str(index), []))
            ring = (plans + [""] * 8)[:8]

        for cell in range(9):
            cell_row, cell_col = divmod(cell, 3)
            if cell == 4:
                text = middle
            else:
                text = ring[cell if cell < 4 else cell - 1]
            grid[block_row * 3 + cell_row][block_col * 3 + cell_col] = text
    return grid


def _chart_table(record: PlanRecord, styles: dict) -> Table:
    grid = mandala_grid(record)
    data = []
    for r, row in enumerate(grid):
        cells = []
        for c, text in enumerate(row):
            strong = (r % 3 == 1 and c % 3 == 1) or (3 <= r < 6 and 3 <= c < 6)
            cells.append(_paragraph(text, styles["cell_strong"] if strong else styles["cell"]))
        data.append(cells)

    size = 18 * mm
    table = Table(data, colWidths=[size] * 9, rowHeights=[size] * 9)
    commands = [
        ("GRID", (0, 0), (-1, -1), 0.3, HexColor("#D1D5DB")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
    for br in range(3):
        for bc in range(3):
            r0, c0 = br * 3, bc * 3
            commands.append(("BOX", (c0, r0), (c0 + 2, r0 + 2), 1.2, DARK))
            colour = CENTER_BG if (br, bc) == (1, 1) else SUB_BG
            commands.append(("BACKGROUND", (c0 + 1, r0 + 1), (c0 + 1, r0 + 1), colour))
    # sub-goal cells around the center goal
    for r in range(3, 6):
        for c in range(3, 6):
            if (r, c) != (4, 4):
                commands.append(("BACKGROUND", (c, r), (c, r), SUB_BG))
    table.setStyle(TableStyle(commands))
    return table


def render_plan_pdf(record: PlanRecord, path: PathLike) -> bool:
    """Write the mandala chart for `record` to `path`. Returns False on failure."""
    target = Path(path)
    try:
        font = _font()
        styles = _styles(font)
        target.parent.mkdir(parents=True, exist_ok=True)
        doc = SimpleDocTemplate(
            str(target), pagesize=landscape(A4),
            leftMargin=12 * mm, rightMargin=12 * mm, topMargin=10 * mm, bottomMargin=10 * mm,
            title="Mandala Chart",
        )
        story = [
            _paragraph(f"{record.year} 만다라트", styles["title"]),
            Spacer(1, 4 * mm),
            _chart_table(record, styles),
        ]
        doc.build(story)
    except (ExportError, OSError, ValueError) as e:
        logger.error("Failed to render mandala PDF %s: %s", target, e)
        return False
    logger.info("Mandala PDF for plan %s written to %s", record.id, target)
    return True


# ─── Admin CSV ────────────────────────────────────────────────────────────────

def _day(timestamp: Optional[str]) -> str:
    return (timestamp or "")[:10] or "-"


def progress_rows(records: Iterable[PlanRecord]) -> List[List[str]]:
    rows = []
    for r in records:
        rows.append([
            r.name or "-",
            r.email or "-",
            "O" if r.marketing_consent else "X",
            f"단계 {r.current_step}",
            r.center_goal or "-",
            _day(r.created_at),
            _day(r.updated_at),
        ])
    return rows


def export_progress_csv(records: Iterable[PlanRecord], path: PathLike) -> bool:
    """Write the admin progress sheet (UTF-8 with BOM for spreadsheet apps)."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8-sig", newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL)
            writer.writerow(CSV_HEADERS)
            writer.writerows(progress_rows(records))
    except OSError as e:
        logger.error("Failed to write progress CSV %s: %s", target, e)
        return False
    return True
