import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.config import get_settings
from leaddesk.core.database import as_naive_utc, utcnow
from leaddesk.core.errors import NotFound, TelephonyFailure, Unauthorized, UpstreamFailure, ValidationError
from leaddesk.models.activity import ActivityType
from leaddesk.models.call import Call, CallDirection, CallOutcome
from leaddesk.models.lead import LeadStatus
from leaddesk.models.user import UserRole
from leaddesk.services.activity import log_activity
from leaddesk.services.lead_import import PHONE_RE
from leaddesk.services.leads import get_lead_for

logger = logging.getLogger(__name__)

# outcome -> (lead status, score or None to keep the current score)
OUTCOME_EFFECTS: dict[CallOutcome, tuple[LeadStatus, int | None]] = {
    CallOutcome.no_answer: (LeadStatus.contacted, None),
    CallOutcome.gatekeeper: (LeadStatus.contacted, None),
    CallOutcome.busy: (LeadStatus.contacted, None),
    CallOutcome.voicemail: (LeadStatus.contacted, None),
    CallOutcome.connected: (LeadStatus.contacted, None),
    CallOutcome.callback: (LeadStatus.contacted, None),
    CallOutcome.wrong_number: (LeadStatus.lost, None),
    CallOutcome.interested: (LeadStatus.interested, 70),
    CallOutcome.qualified: (LeadStatus.qualified, 90),
    CallOutcome.appointment_set: (LeadStatus.qualified, 95),
    CallOutcome.not_interested: (LeadStatus.not_interested, None),
}
FOLLOW_UP_OUTCOMES = (CallOutcome.callback, CallOutcome.appointment_set)


def record_call_outcome(
    db: Session,
    actor: Actor,
    lead_id: int,
    outcome: CallOutcome,
    duration_seconds: int = 0,
    notes: str | None = None,
    callback_at: datetime | None = None,
) -> Call:
    if outcome not in OUTCOME_EFFECTS:
        raise ValidationError(f"Invalid call outcome: {outcome.value}")
    if duration_seconds < 0:
        raise ValidationError("duration_seconds must not be negative")
    lead = get_lead_for(db, actor, lead_id)

    status, score = OUTCOME_EFFECTS[outcome]
    now = utcnow()
    lead.status = status
    if score is not None:
        lead.score = score
    lead.last_contacted_at = now
    lead.updated_at = now
    if outcome in FOLLOW_UP_OUTCOMES and callback_at is not None:
        lead.next_follow_up_at = as_naive_utc(callback_at)

    call = Call(
        organization_id=actor.organization_id,
        lead_id=lead.id,
        agent_id=actor.id,
        phone_number=lead.phone,
        direction=CallDirection.outbound,
        status="completed",
        outcome=outcome,
        duration_seconds=duration_seconds,
        notes=notes,
    )
    try:
        db.add(call)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Recording call outcome for lead %s failed: %s", lead_id, exc)
        raise UpstreamFailure("Failed to record call outcome") from exc

    log_activity(
        db,
        actor,
        ActivityType.call,
        notes or f"Call outcome: {outcome.value}",
        lead_id=lead.id,
        metadata={"outcome": outcome.value, "duration": duration_seconds},
    )
    return call


def prepare_call(db: Session, actor: Actor, phone_number: str, lead_id: int | None = None) -> tuple[Call, str]:
    """Create a pending outbound call row and return it with the caller id to dial from."""
    if actor.role == UserRole.client:
        raise Unauthorized("Clients cannot place calls")
    caller_id = get_settings().TWILIO_PHONE_NUMBER
    if not caller_id:
        raise TelephonyFailure("Telephony is not configured")
    phone_number = (phone_number or "").strip()
    if not PHONE_RE.match(phone_number):
        raise ValidationError("Invalid phone number format")
    if lead_id is not None:
        get_lead_for(db, actor, lead_id)

    call = Call(
        organization_id=actor.organization_id,
        lead_id=lead_id,
        agent_id=actor.id,
        phone_number=phone_number,
        direction=CallDirection.outbound,
        status="pending",
    )
    try:
        db.add(call)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Creating call record failed: %s", exc)
        raise UpstreamFailure("Failed to create call record") from exc
    return call, caller_id


def attach_provider_sid(db: Session, actor: Actor, call_id: int, call_sid: str) -> Call:
    call = db.get(Call, call_id)
    if not call or call.organization_id != actor.organization_id:
        raise NotFound("Call not found")
    if not actor.is_manager and call.agent_id != actor.id:
        raise Unauthorized("Call belongs to another agent")

    call.provider_call_sid = call_sid
    call.status = "initiated"
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("Call sid is already attached to another call") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Attaching sid to call %s failed: %s", call_id, exc)
        raise UpstreamFailure("Failed to update call") from exc
    return call


def apply_status_callback(db: Session, call_sid: str, status: str, duration: int | None = None) -> bool:
    """Apply a provider status update to the call with ``call_sid``. Returns False when no call matches."""
    values = {Call.status: status}
    if duration is not None:
        values[Call.duration_seconds] = duration
    if status == "completed":
        values[Call.outcome] = CallOutcome.completed

    try:
        updated = db.query(Call).filter(Call.provider_call_sid == call_sid).update(values, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Status callback for %s failed: %s", call_sid, exc)
        raise UpstreamFailure("Failed to apply call status") from exc

    if not updated:
        logger.warning("Status callback for unknown call sid %s", call_sid)
    return updated == 1
