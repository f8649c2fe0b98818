from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db, utcnow
from leaddesk.core.deps import get_current_actor, require_roles
from leaddesk.models.user import UserRole
from leaddesk.schemas.activity import ActivityResponse
from leaddesk.schemas.lead import AgentQueue, CallbackSchedule, LeadNoteCreate, LeadResponse, LeadStatusUpdate
from leaddesk.schemas.lead_import import CsvValidateRequest, CsvValidation, ImportRequest, ImportResult
from leaddesk.services.activity import lead_history
from leaddesk.services.exports import leads_csv
from leaddesk.services.lead_import import import_leads, validate_lead_csv
from leaddesk.services.leads import add_lead_note, agent_queue, schedule_callback, update_lead_status

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("/import/validate", response_model=CsvValidation)
def validate_import(
    payload: CsvValidateRequest,
    _: Actor = Depends(require_roles(UserRole.owner, UserRole.manager)),
):
    return validate_lead_csv(payload.content)


@router.post("/import", response_model=ImportResult)
def run_import(
    payload: ImportRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(UserRole.owner, UserRole.manager)),
):
    return import_leads(
        db,
        actor,
        payload.records,
        payload.campaign_id,
        client_id=payload.client_id,
        assign_to_agent_id=payload.assign_to_agent_id,
    )


@router.get("/export.csv")
def export_leads_csv(
    client_id: int = Query(...),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    csv_data = leads_csv(db, actor, client_id)
    filename = f"leads-export-{utcnow():%Y-%m-%d}.csv"
    return Response(
        content=csv_data.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/queue", response_model=AgentQueue)
def my_queue(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return agent_queue(db, actor, utcnow().date())


@router.patch("/{lead_id}/status", response_model=LeadResponse)
def change_status(
    lead_id: int,
    payload: LeadStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return update_lead_status(db, actor, lead_id, payload.status, payload.notes)


@router.post("/{lead_id}/notes", response_model=ActivityResponse)
def create_note(
    lead_id: int,
    payload: LeadNoteCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return add_lead_note(db, actor, lead_id, payload.content)


@router.post("/{lead_id}/callback", response_model=LeadResponse)
def create_callback(
    lead_id: int,
    payload: CallbackSchedule,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return schedule_callback(db, actor, lead_id, payload.callback_at, payload.notes)


@router.get("/{lead_id}/activities", response_model=list[ActivityResponse])
def activities_for_lead(
    lead_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return lead_history(db, actor, lead_id, limit=limit)
