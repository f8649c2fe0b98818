from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db
from leaddesk.core.deps import get_current_actor, require_roles
from leaddesk.core.rate_limit import limiter
from leaddesk.models.user import UserRole
from leaddesk.schemas.report import ReportGenerateRequest, ReportListResponse, ReportResponse
from leaddesk.services.exports import report_csv, report_filename, report_pdf
from leaddesk.services.reports import delete_report, generate_report, get_report, list_reports, report_payload

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/generate", response_model=ReportResponse)
@limiter.limit("10/minute")
def create_report(
    request: Request,
    payload: ReportGenerateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(UserRole.owner, UserRole.manager)),
):
    return generate_report(db, actor, payload.report_type, payload.period_start, payload.period_end)


@router.get("", response_model=ReportListResponse)
def reports_index(
    report_type: str | None = Query(default=None, alias="type"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    rows, total = list_reports(db, actor, report_type=report_type, limit=limit, offset=offset)
    return ReportListResponse(
        reports=[ReportResponse.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{report_id}", response_model=ReportResponse)
def report_detail(
    report_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return get_report(db, actor, report_id)


@router.delete("/{report_id}")
def remove_report(
    report_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(UserRole.owner, UserRole.manager)),
):
    delete_report(db, actor, report_id)
    return {"success": True}


@router.get("/{report_id}/download")
def download_report(
    report_id: int,
    format: Literal["csv", "json", "pdf"] = Query(default="csv"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    report = get_report(db, actor, report_id)
    filename = report_filename(report.name)

    if format == "json":
        return JSONResponse(
            content=report_payload(report).model_dump(mode="json"),
            headers={"Content-Disposition": f'attachment; filename="{filename}.json"'},
        )
    if format == "pdf":
        return Response(
            content=report_pdf(report),
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}.pdf"'},
        )
    return Response(
        content=report_csv(report).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
    )
