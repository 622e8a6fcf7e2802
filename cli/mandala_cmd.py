"""
CLI: mandala
Operator commands for inspecting and exporting plans.
"""
import click
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# make the mandala package importable when run as a script
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from mandala.accounts import resolve_account
from mandala.config_manager import config, settings
from mandala.constants import STEP_TITLES
from mandala.exceptions import MandalaError
from mandala.exporter import export_progress_csv, render_plan_pdf, render_report_pdf
from mandala.logger import setup_logging
from mandala.paths import get_exports_dir
from mandala.plan_service import PlanService
from mandala.plan_store import create_plan_store


def _service() -> PlanService:
    store = create_plan_store(settings.store_url, settings.store_key)
    return PlanService(store)


@click.group()
def mandala():
    """Mandala Planner operator commands"""
    setup_logging()


@mandala.command()
@click.argument("user_id")
@click.option("--year", default=config.DEFAULT_PLAN_YEAR, show_default=True, help="Plan year")
def status(user_id: str, year: int):
    """Show progression for USER_ID."""
    service = _service()
    try:
        record = service.get(user_id, year)
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    if record is None:
        click.echo(f"ℹ️ No {year} plan for {user_id}")
        return

    overview = service.overview(record)
    click.echo(f"📋 Plan {record.id} ({year})")
    click.echo(f"  Step: {overview['current_step']} - {overview['current_title']}")
    click.echo(f"  Done: {overview['completed_count']}/{overview['total_steps']} ({overview['progress_percent']}%)")
    if record.center_goal:
        click.echo(f"  🎯 {record.center_goal}")
    for i, goal in enumerate(record.sub_goals):
        if goal:
            plans = len(record.action_plans.get(str(i), []))
            click.echo(f"    {i + 1}. {goal} ({plans} plans)")
    if overview["is_complete"]:
        click.echo("✅ All steps completed")


@mandala.command()
@click.argument("user_id")
@click.option("--year", default=config.DEFAULT_PLAN_YEAR, show_default=True, help="Plan year")
@click.option("--email", default=None, help="Email used for reviewer lookup")
def countdown(user_id: str, year: int, email: Optional[str]):
    """Show whether USER_ID may open their current step, or how long to wait."""
    service = _service()
    account = resolve_account(user_id, email)
    try:
        record = service.require(user_id, year)
        now = datetime.now(timezone.utc)
        decision = service.enter(account, year, record.current_step, now=now)
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    title = STEP_TITLES.get(decision.step, "")
    if decision.granted:
        click.echo(f"✅ Step {decision.step} ({title}) is open [{decision.reason}]")
    elif decision.wait_until is not None:
        remaining = decision.wait_until - now
        hours, rest = divmod(max(int(remaining.total_seconds()), 0), 3600)
        minutes, seconds = divmod(rest, 60)
        click.echo(f"⏳ Step {decision.step} ({title}) opens in {hours:02d}:{minutes:02d}:{seconds:02d}")
        click.echo(f"   at {decision.wait_until.isoformat()}")
    else:
        click.echo(f"🔒 Step {decision.step} ({title}) is locked [{decision.reason}]")


@mandala.command("export-csv")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Target file (default: data/exports/mandala_users_<date>.csv)")
def export_csv(output: Optional[Path]):
    """Export every plan's progress as CSV."""
    try:
        records = _service().list_all()
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    target = output or get_exports_dir() / f"mandala_users_{datetime.now():%Y%m%d}.csv"
    if not export_progress_csv(records, target):
        click.echo("❌ CSV export failed, see logs/error.log", err=True)
        sys.exit(1)
    click.echo(f"✅ {len(records)} plans written to {target}")


@mandala.command("export-pdf")
@click.argument("user_id")
@click.option("--year", default=config.DEFAULT_PLAN_YEAR, show_default=True, help="Plan year")
@click.option("--out-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Target directory (default: data/exports)")
def export_pdf(user_id: str, year: int, out_dir: Optional[Path]):
    """Render USER_ID's mandala chart and report as PDF."""
    try:
        record = _service().require(user_id, year)
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    out_dir = out_dir or get_exports_dir()
    chart = out_dir / f"{record.id}_mandala.pdf"
    if render_plan_pdf(record, chart):
        click.echo(f"📄 {chart}")
    else:
        click.echo("❌ Mandala PDF failed", err=True)

    if record.ai_summary is None:
        click.echo("ℹ️ No report generated yet")
        return
    report = out_dir / f"{record.id}_report.pdf"
    if render_report_pdf(record.ai_summary, report):
        click.echo(f"📄 {report}")
    else:
        click.echo("❌ Report PDF failed", err=True)


if __name__ == "__main__":
    mandala()
