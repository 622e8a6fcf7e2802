from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from mandala.config_manager import config
from mandala.constants import FIRST_ACTION_PLAN_STEP
from mandala.exceptions import MandalaError
from mandala.exporter import render_plan_pdf, render_report_pdf
from mandala.intents import (
    ActionPlanSet,
    CenterGoalSet,
    ManualEdit,
    ReflectionNotesSubmitted,
    ReflectionSubmitted,
    SubGoalsSet,
)
from mandala.models import Account, record_to_dict
from mandala.paths import get_exports_dir
from mandala.progression import GateResult
from web.backend.dependencies import current_account, get_plan_service, raise_http

router = APIRouter()


class StartRequest(BaseModel):
    year: int = config.DEFAULT_PLAN_YEAR
    marketing_consent: bool = False
    name: Optional[str] = None


class ReflectionRequest(BaseModel):
    theme: str
    answers: Dict[str, str]
    notes: Optional[str] = None


class NotesRequest(BaseModel):
    notes: str


class CenterGoalRequest(BaseModel):
    center_goal: str


class ItemsRequest(BaseModel):
    items: List[str] = Field(default_factory=list)


class ReportRequest(BaseModel):
    force: bool = False


class MandalaEditRequest(BaseModel):
    center_goal: Optional[str] = None
    sub_goals: Optional[List[str]] = None
    action_plans: Optional[Dict[str, List[str]]] = None


def _gate_payload(gate: GateResult, now: Optional[datetime]) -> dict:
    return {
        "passed": gate.passed,
        "wait_until": gate.wait_until.isoformat() if gate.wait_until else None,
        "countdown": gate.format_countdown(now) if gate.wait_until and now else None,
    }


def _submit(account: Account, year: int, intent) -> dict:
    service = get_plan_service()
    try:
        record, gate = service.submit(account, year, intent)
    except (MandalaError, ValueError) as exc:
        raise_http(exc)
    return {"plan": record_to_dict(record), "gate": _gate_payload(gate, service.clock())}


@router.post("")
def start_plan(request: StartRequest, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        record = service.start(
            account.user_id,
            request.year,
            marketing_consent=request.marketing_consent,
            name=request.name,
            email=account.email or None,
        )
    except MandalaError as exc:
        raise_http(exc)
    return {"plan": record_to_dict(record)}


@router.get("/{year}")
def get_plan(year: int, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        record = service.require(account.user_id, year)
    except MandalaError as exc:
        raise_http(exc)
    return {"plan": record_to_dict(record), "role": account.role.value}


@router.get("/{year}/overview")
def get_overview(year: int, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        record = service.require(account.user_id, year)
    except MandalaError as exc:
        raise_http(exc)
    return service.overview(record)


@router.get("/{year}/steps/{step}")
def enter_step(year: int, step: int, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        now = service.clock()
        decision = service.enter(account, year, step, now=now)
    except MandalaError as exc:
        raise_http(exc)

    payload = decision.to_dict()
    payload["countdown"] = None
    if decision.wait_until is not None and now is not None:
        gate = GateResult(passed=False, wait_until=decision.wait_until)
        payload["countdown"] = gate.format_countdown(now)
    return payload


@router.post("/{year}/steps/1")
def submit_reflection(year: int, request: ReflectionRequest, account: Account = Depends(current_account)):
    return _submit(account, year, ReflectionSubmitted(request.theme, request.answers, request.notes))


@router.post("/{year}/steps/2")
def submit_notes(year: int, request: NotesRequest, account: Account = Depends(current_account)):
    return _submit(account, year, ReflectionNotesSubmitted(request.notes))


@router.post("/{year}/steps/3")
def submit_center_goal(year: int, request: CenterGoalRequest, account: Account = Depends(current_account)):
    return _submit(account, year, CenterGoalSet(request.center_goal))


@router.post("/{year}/steps/{step}")
def submit_items(year: int, step: int, request: ItemsRequest, account: Account = Depends(current_account)):
    """Steps 4-5 take four sub-goals; steps 6-13 take eight action plans."""
    if step in (4, 5):
        intent = SubGoalsSet(batch=step - 4, goals=request.items)
    elif FIRST_ACTION_PLAN_STEP <= step < FIRST_ACTION_PLAN_STEP + config.TOTAL_SUB_GOALS:
        intent = ActionPlanSet(index=step - FIRST_ACTION_PLAN_STEP, plans=request.items)
    else:
        raise HTTPException(status_code=422, detail=f"Step {step} does not take a list of items")
    return _submit(account, year, intent)


@router.post("/{year}/report")
def generate_report(year: int, request: ReportRequest, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        record = service.generate_report(account, year, force=request.force)
    except (MandalaError, ValueError) as exc:
        raise_http(exc)
    return {"plan": record_to_dict(record)}


@router.put("/{year}/mandala")
def edit_mandala(year: int, request: MandalaEditRequest, account: Account = Depends(current_account)):
    service = get_plan_service()
    edit = ManualEdit(
        center_goal=request.center_goal,
        sub_goals=request.sub_goals,
        action_plans=request.action_plans,
    )
    try:
        record = service.edit(account, year, edit)
    except (MandalaError, ValueError) as exc:
        raise_http(exc)
    return {"plan": record_to_dict(record)}


@router.get("/{year}/export/report.pdf")
def export_report(year: int, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        record = service.require(account.user_id, year)
    except MandalaError as exc:
        raise_http(exc)
    if record.ai_summary is None:
        raise HTTPException(status_code=404, detail="Report has not been generated yet")

    target = get_exports_dir() / f"{record.id}_report.pdf"
    if not render_report_pdf(record.ai_summary, target):
        raise HTTPException(status_code=500, detail="Failed to render report PDF")
    return FileResponse(str(target), media_type="application/pdf", filename=f"mandala_report_{year}.pdf")


@router.get("/{year}/export/mandala.pdf")
def export_mandala(year: int, account: Account = Depends(current_account)):
    service = get_plan_service()
    try:
        record = service.require(account.user_id, year)
    except MandalaError as exc:
        raise_http(exc)
    if not record.center_goal:
        raise HTTPException(status_code=404, detail="Center goal has not been set yet")

    target = get_exports_dir() / f"{record.id}_mandala.pdf"
    if not render_plan_pdf(record, target):
        raise HTTPException(status_code=500, detail="Failed to render mandala PDF")
    return FileResponse(str(target), media_type="application/pdf", filename=f"mandala_{year}.pdf")
