import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor, require_same_organization
from leaddesk.core.database import as_naive_utc, utcnow
from leaddesk.core.errors import NotFound, Unauthorized, UpstreamFailure, ValidationError
from leaddesk.models.activity import Activity, ActivityType
from leaddesk.models.lead import TERMINAL_STATUSES, Lead, LeadStatus
from leaddesk.models.user import UserRole
from leaddesk.schemas.lead import AgentQueue, LeadResponse
from leaddesk.services.activity import log_activity, new_activity

logger = logging.getLogger(__name__)


def get_lead_for(db: Session, actor: Actor, lead_id: int) -> Lead:
    """Load a lead the actor may work on: same organization, and assigned to them if they are an agent."""
    lead = db.get(Lead, lead_id)
    if not lead:
        raise NotFound("Lead not found")
    require_same_organization(actor, lead.organization_id, "Unauthorized: Lead belongs to another organization")
    if actor.role == UserRole.client:
        raise Unauthorized("Clients cannot modify leads")
    if actor.role == UserRole.agent and lead.assigned_agent_id != actor.id:
        raise Unauthorized("Lead is not assigned to you")
    return lead


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to %s: %s", what, exc)
        raise UpstreamFailure(f"Failed to {what}") from exc


def update_lead_status(db: Session, actor: Actor, lead_id: int, status: LeadStatus, notes: str | None = None) -> Lead:
    lead = get_lead_for(db, actor, lead_id)
    previous = lead.status
    now = utcnow()
    lead.status = status
    lead.updated_at = now
    if status == LeadStatus.contacted:
        lead.last_contacted_at = now
    _commit(db, "update lead status")

    content = f"Status changed from {previous.value} to {status.value}"
    if notes:
        content = f"{content}: {notes}"
    log_activity(
        db,
        actor,
        ActivityType.status_change,
        content,
        lead_id=lead.id,
        metadata={"previous_status": previous.value, "new_status": status.value},
    )
    return lead


def add_lead_note(db: Session, actor: Actor, lead_id: int, content: str) -> Activity:
    lead = get_lead_for(db, actor, lead_id)
    content = (content or "").strip()
    if not content:
        raise ValidationError("Note content is required")

    note = new_activity(actor, ActivityType.note, content, lead_id=lead.id)
    db.add(note)
    _commit(db, "add note")
    return note


def schedule_callback(db: Session, actor: Actor, lead_id: int, callback_at: datetime, notes: str | None = None) -> Lead:
    lead = get_lead_for(db, actor, lead_id)
    when = as_naive_utc(callback_at)
    lead.next_follow_up_at = when
    lead.status = LeadStatus.contacted
    lead.updated_at = utcnow()
    _commit(db, "schedule callback")

    log_activity(
        db,
        actor,
        ActivityType.note,
        notes or f"Callback scheduled for {when:%d/%m/%Y %H:%M}",
        lead_id=lead.id,
        metadata={"callback_at": when.isoformat()},
    )
    return lead


def agent_queue(db: Session, actor: Actor, today: date) -> AgentQueue:
    """Bucket the agent's open leads for the working day.

    A lead lands in the first bucket it matches: new today, callback due,
    awaiting follow-up, then everything else still open.
    """
    if actor.role == UserRole.client:
        raise Unauthorized("Clients do not have a lead queue")

    leads = (
        db.query(Lead)
        .filter(
            Lead.organization_id == actor.organization_id,
            Lead.assigned_agent_id == actor.id,
            Lead.status.notin_(TERMINAL_STATUSES),
        )
        .order_by(Lead.priority.desc(), Lead.created_at.asc(), Lead.id.asc())
        .all()
    )

    queue = AgentQueue()
    for lead in leads:
        item = LeadResponse.model_validate(lead)
        if lead.status == LeadStatus.new and lead.created_at.date() == today:
            queue.new_today.append(item)
        elif lead.next_follow_up_at is not None and lead.next_follow_up_at.date() <= today:
            queue.callbacks.append(item)
        elif lead.status in (LeadStatus.contacted, LeadStatus.interested) and lead.next_follow_up_at is None:
            queue.follow_ups.append(item)
        else:
            queue.unresponsive.append(item)
    return queue
