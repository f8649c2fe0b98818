import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor, require_manager
from leaddesk.core.config import AuditWritePolicy, get_settings
from leaddesk.core.errors import NotFound, Unauthorized, UpstreamFailure
from leaddesk.metrics import AUDIT_WRITES_DROPPED_COUNTER
from leaddesk.models.activity import Activity, ActivityType
from leaddesk.models.lead import Lead
from leaddesk.models.user import UserRole

logger = logging.getLogger(__name__)


def new_activity(
    actor: Actor,
    type: ActivityType,
    content: str,
    lead_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> Activity:
    return Activity(
        organization_id=actor.organization_id,
        lead_id=lead_id,
        user_id=actor.id,
        type=type,
        content=content,
        meta=metadata or {},
    )


def record_activities(db: Session, entries: list[Activity]) -> bool:
    """Persist activity entries after the primary change has been committed.

    Returns False when the write was dropped under the best-effort policy.
    Under the strict policy a failed write raises ``UpstreamFailure``; the
    primary change is already committed and stays in place either way.
    """
    if not entries:
        return True

    try:
        db.add_all(entries)
        db.commit()
        return True
    except SQLAlchemyError as exc:
        db.rollback()
        policy = get_settings().AUDIT_WRITE_POLICY
        kinds = sorted({e.type.value for e in entries})
        if policy == AuditWritePolicy.strict:
            logger.error("Activity write failed for %d entries (%s): %s", len(entries), ",".join(kinds), exc)
            raise UpstreamFailure("Change saved but the activity log could not be written") from exc

        for kind in kinds:
            AUDIT_WRITES_DROPPED_COUNTER.labels(type=kind).inc(sum(1 for e in entries if e.type.value == kind))
        logger.warning("Dropped %d activity entries (%s): %s", len(entries), ",".join(kinds), exc)
        return False


def log_activity(
    db: Session,
    actor: Actor,
    type: ActivityType,
    content: str,
    lead_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> bool:
    return record_activities(db, [new_activity(actor, type, content, lead_id=lead_id, metadata=metadata)])


def lead_history(db: Session, actor: Actor, lead_id: int, limit: int = 100) -> list[Activity]:
    lead = db.get(Lead, lead_id)
    if not lead or lead.organization_id != actor.organization_id:
        raise NotFound("Lead not found")
    if actor.role == UserRole.client:
        raise Unauthorized("Clients cannot view lead activity")
    if actor.role == UserRole.agent and lead.assigned_agent_id != actor.id:
        raise Unauthorized("Agents can view activity only for assigned leads")

    return (
        db.query(Activity)
        .filter(Activity.lead_id == lead_id, Activity.organization_id == actor.organization_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )


def list_activities(db: Session, actor: Actor, limit: int = 50, type: ActivityType | None = None) -> list[Activity]:
    require_manager(actor)
    query = db.query(Activity).filter(Activity.organization_id == actor.organization_id)
    if type is not None:
        query = query.filter(Activity.type == type)
    return query.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit).all()
