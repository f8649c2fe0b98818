from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db
from leaddesk.core.deps import get_current_actor
from leaddesk.models.lead import Lead
from leaddesk.schemas.call import CallCreateRequest, CallOutcomeRequest, CallOutcomeResult, CallResponse, CallSidUpdate, PreparedCall
from leaddesk.services.calls import attach_provider_sid, prepare_call, record_call_outcome

router = APIRouter(prefix="/calls", tags=["calls"])


@router.post("", response_model=PreparedCall)
def start_call(
    payload: CallCreateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    call, caller_id = prepare_call(db, actor, payload.phone_number, payload.lead_id)
    return PreparedCall(call=CallResponse.model_validate(call), caller_id=caller_id)


@router.patch("/{call_id}", response_model=CallResponse)
def set_call_sid(
    call_id: int,
    payload: CallSidUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return attach_provider_sid(db, actor, call_id, payload.call_sid)


@router.post("/outcome", response_model=CallOutcomeResult)
def log_outcome(
    payload: CallOutcomeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    call = record_call_outcome(
        db,
        actor,
        payload.lead_id,
        payload.outcome,
        duration_seconds=payload.duration_seconds,
        notes=payload.notes,
        callback_at=payload.callback_at,
    )
    lead = db.get(Lead, payload.lead_id)
    return CallOutcomeResult(
        call=CallResponse.model_validate(call),
        lead_status=lead.status,
        lead_score=lead.score,
    )
