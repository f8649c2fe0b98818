import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor, require_manager, require_same_organization
from leaddesk.core.config import get_settings
from leaddesk.core.database import utcnow
from leaddesk.core.errors import NotFound, UpstreamFailure, ValidationError, cap_errors
from leaddesk.metrics import LEADS_ASSIGNED_COUNTER
from leaddesk.models.activity import ActivityType
from leaddesk.models.campaign import Campaign
from leaddesk.models.lead import Lead
from leaddesk.models.user import Profile, UserRole
from leaddesk.schemas.assignment import AssignmentResult
from leaddesk.services.activity import new_activity, record_activities

logger = logging.getLogger(__name__)


def get_campaign_for(db: Session, actor: Actor, campaign_id: int) -> Campaign:
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise NotFound("Campaign not found")
    require_same_organization(actor, campaign.organization_id, "Unauthorized: Cannot manage leads for other organizations")
    return campaign


def get_valid_agent(db: Session, organization_id: int, agent_id: int, message: str = "Agent not found or invalid") -> Profile:
    agent = (
        db.query(Profile)
        .filter(
            Profile.id == agent_id,
            Profile.organization_id == organization_id,
            Profile.role == UserRole.agent,
            Profile.is_active == True,  # noqa: E712
        )
        .first()
    )
    if not agent:
        raise NotFound(message)
    return agent


def claim_lead(db: Session, lead_id: int, agent_id: int) -> bool:
    """Assign a lead only if it is still unassigned. Returns False when another request got there first."""
    updated = (
        db.query(Lead)
        .filter(Lead.id == lead_id, Lead.assigned_agent_id.is_(None))
        .update({Lead.assigned_agent_id: agent_id, Lead.updated_at: utcnow()}, synchronize_session=False)
    )
    return updated == 1


def _agent_label(agent: Profile) -> str:
    return agent.full_name or agent.email


def batch_assign(db: Session, actor: Actor, campaign_id: int, agent_id: int, count: int | None = None) -> AssignmentResult:
    """Assign the oldest ``count`` unassigned leads of a campaign (all of them when ``count`` is None)."""
    require_manager(actor, "Unauthorized: Only owners and managers can assign leads")
    if count is not None and count < 1:
        raise ValidationError("count must be a positive number")

    campaign = get_campaign_for(db, actor, campaign_id)
    agent = get_valid_agent(db, actor.organization_id, agent_id)

    query = (
        db.query(Lead.id)
        .filter(
            Lead.campaign_id == campaign.id,
            Lead.organization_id == actor.organization_id,
            Lead.assigned_agent_id.is_(None),
        )
        .order_by(Lead.created_at.asc(), Lead.id.asc())
    )
    if count is not None:
        query = query.limit(count)
    candidate_ids = [row.id for row in query.all()]
    if not candidate_ids:
        raise NotFound("No unassigned leads available in this campaign")

    assigned: list[int] = []
    skipped: list[int] = []
    try:
        for lead_id in candidate_ids:
            if claim_lead(db, lead_id, agent.id):
                assigned.append(lead_id)
            else:
                skipped.append(lead_id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Batch assign failed for campaign %s: %s", campaign.id, exc)
        raise UpstreamFailure("Failed to assign leads") from exc

    if skipped:
        logger.info("Batch assign skipped %d leads already claimed in campaign %s", len(skipped), campaign.id)
    if not assigned:
        raise NotFound("No unassigned leads available in this campaign")

    LEADS_ASSIGNED_COUNTER.labels(operation="batch").inc(len(assigned))
    record_activities(
        db,
        [
            new_activity(
                actor,
                ActivityType.assignment,
                "Lead assigned to agent",
                lead_id=lead_id,
                metadata={"agent_id": agent.id, "assigned_by": actor.id},
            )
            for lead_id in assigned
        ],
    )
    return AssignmentResult(
        message=f"Successfully assigned {len(assigned)} lead(s) to agent",
        count=len(assigned),
        lead_ids=assigned,
        skipped=skipped,
    )


def auto_distribute(db: Session, actor: Actor, campaign_id: int) -> AssignmentResult:
    """Round-robin every unassigned lead of a campaign across the organization's agents.

    Leads are taken highest priority first, oldest first within a priority, so
    urgent leads are spread across the pool instead of landing on one agent.
    Each lead is its own write; a failed write is reported and the loop moves on.
    """
    require_manager(actor)
    campaign = get_campaign_for(db, actor, campaign_id)

    agents = (
        db.query(Profile)
        .filter(
            Profile.organization_id == actor.organization_id,
            Profile.role == UserRole.agent,
            Profile.is_active == True,  # noqa: E712
        )
        .order_by(Profile.created_at.asc(), Profile.id.asc())
        .all()
    )
    if not agents:
        raise NotFound("No agents available for distribution")

    lead_ids = [
        row.id
        for row in db.query(Lead.id)
        .filter(
            Lead.campaign_id == campaign.id,
            Lead.organization_id == actor.organization_id,
            Lead.assigned_agent_id.is_(None),
        )
        .order_by(Lead.priority.desc(), Lead.created_at.asc(), Lead.id.asc())
        .all()
    ]
    if not lead_ids:
        raise NotFound("No unassigned leads available")

    assigned: list[int] = []
    skipped: list[int] = []
    errors: list[str] = []
    activities = []
    for lead_id in lead_ids:
        # Index by successful claims so skipped leads don't unbalance the split.
        agent = agents[len(assigned) % len(agents)]
        try:
            claimed = claim_lead(db, lead_id, agent.id)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Auto-distribute failed to assign lead %s: %s", lead_id, exc)
            errors.append(f"Lead {lead_id}: failed to assign")
            continue

        if not claimed:
            skipped.append(lead_id)
            continue
        assigned.append(lead_id)
        activities.append(
            new_activity(
                actor,
                ActivityType.assignment,
                "Lead auto-distributed to agent",
                lead_id=lead_id,
                metadata={"agent_id": agent.id, "assigned_by": actor.id, "distribution_type": "auto"},
            )
        )

    if not assigned and not errors:
        raise NotFound("No unassigned leads available")

    LEADS_ASSIGNED_COUNTER.labels(operation="auto").inc(len(assigned))
    record_activities(db, activities)

    max_errors = get_settings().MAX_REPORTED_ERRORS
    if not assigned:
        return AssignmentResult(
            success=False,
            message="Failed to auto-distribute leads",
            count=0,
            skipped=skipped,
            errors=cap_errors(errors, max_errors),
        )
    return AssignmentResult(
        message=f"Successfully distributed {len(assigned)} leads across {len(agents)} agent(s)",
        count=len(assigned),
        lead_ids=assigned,
        skipped=skipped,
        errors=cap_errors(errors, max_errors),
    )


def reassign_lead(db: Session, actor: Actor, lead_id: int, new_agent_id: int) -> AssignmentResult:
    require_manager(actor)
    lead = db.get(Lead, lead_id)
    if not lead:
        raise NotFound("Lead not found")
    require_same_organization(actor, lead.organization_id, "Unauthorized: Cannot reassign leads of other organizations")
    agent = get_valid_agent(db, actor.organization_id, new_agent_id, message="Agent not found")

    # Compare-and-set on the value we read, so the logged previous agent is the one we replaced.
    previous_agent_id = None
    try:
        for _ in range(3):
            db.refresh(lead)
            previous_agent_id = lead.assigned_agent_id
            current = Lead.assigned_agent_id.is_(None) if previous_agent_id is None else Lead.assigned_agent_id == previous_agent_id
            updated = (
                db.query(Lead)
                .filter(Lead.id == lead.id, current)
                .update({Lead.assigned_agent_id: agent.id, Lead.updated_at: utcnow()}, synchronize_session=False)
            )
            db.commit()
            if updated == 1:
                break
        else:
            raise UpstreamFailure("Lead was modified concurrently, please retry")
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Reassign failed for lead %s: %s", lead_id, exc)
        raise UpstreamFailure("Failed to reassign lead") from exc

    LEADS_ASSIGNED_COUNTER.labels(operation="reassign").inc()
    label = _agent_label(agent)
    record_activities(
        db,
        [
            new_activity(
                actor,
                ActivityType.assignment,
                f"Lead reassigned to {label}",
                lead_id=lead.id,
                metadata={
                    "previous_agent_id": previous_agent_id,
                    "new_agent_id": agent.id,
                    "reassigned_by": actor.id,
                },
            )
        ],
    )
    return AssignmentResult(message=f"Lead reassigned to {label}", count=1, lead_ids=[lead.id])


def bulk_reassign(db: Session, actor: Actor, lead_ids: list[int], new_agent_id: int) -> AssignmentResult:
    require_manager(actor)
    ids = list(dict.fromkeys(lead_ids))
    if not ids:
        raise ValidationError("No leads selected")
    agent = get_valid_agent(db, actor.organization_id, new_agent_id, message="Agent not found")

    leads = db.query(Lead).populate_existing().filter(Lead.id.in_(ids)).all()
    by_id = {lead.id: lead for lead in leads}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFound(f"Leads not found: {', '.join(str(i) for i in missing)}")
    for lead in leads:
        require_same_organization(actor, lead.organization_id, "Unauthorized: Cannot reassign leads of other organizations")

    previous = {lead.id: lead.assigned_agent_id for lead in leads}
    try:
        db.query(Lead).filter(Lead.id.in_(ids), Lead.organization_id == actor.organization_id).update(
            {Lead.assigned_agent_id: agent.id, Lead.updated_at: utcnow()},
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Bulk reassign of %d leads failed: %s", len(ids), exc)
        raise UpstreamFailure("Failed to reassign leads") from exc

    LEADS_ASSIGNED_COUNTER.labels(operation="bulk_reassign").inc(len(ids))
    label = _agent_label(agent)
    record_activities(
        db,
        [
            new_activity(
                actor,
                ActivityType.assignment,
                f"Lead reassigned to {label}",
                lead_id=lead_id,
                metadata={
                    "previous_agent_id": previous[lead_id],
                    "new_agent_id": agent.id,
                    "reassigned_by": actor.id,
                    "bulk": True,
                },
            )
            for lead_id in ids
        ],
    )
    return AssignmentResult(
        message=f"Successfully reassigned {len(ids)} lead(s) to {label}",
        count=len(ids),
        lead_ids=ids,
    )
