from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from mandala.exceptions import MandalaError
from mandala.exporter import export_progress_csv
from mandala.models import Account
from mandala.paths import get_exports_dir
from web.backend.dependencies import current_account, get_plan_service, raise_http, require_reviewer

router = APIRouter()


@router.get("/plans")
def list_plans(account: Account = Depends(current_account)):
    require_reviewer(account)
    service = get_plan_service()
    try:
        records = service.list_all()
    except MandalaError as exc:
        raise_http(exc)

    rows = []
    for r in records:
        row = service.overview(r)
        row.update({
            "id": r.id,
            "name": r.name,
            "email": r.email,
            "marketing_consent": r.marketing_consent,
            "center_goal": r.center_goal,
            "created_at": r.created_at,
            "updated_at": r.updated_at,
        })
        rows.append(row)
    return {"plans": rows, "total": len(rows)}


@router.get("/plans.csv")
def export_plans_csv(account: Account = Depends(current_account)):
    require_reviewer(account)
    try:
        records = get_plan_service().list_all()
    except MandalaError as exc:
        raise_http(exc)

    stamp = datetime.now().strftime("%Y%m%d")
    target = get_exports_dir() / f"mandala_users_{stamp}.csv"
    if not export_progress_csv(records, target):
        raise HTTPException(status_code=500, detail="Failed to write CSV export")
    return FileResponse(str(target), media_type="text/csv; charset=utf-8", filename=target.name)
