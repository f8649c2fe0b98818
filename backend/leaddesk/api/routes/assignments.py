from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db
from leaddesk.core.deps import require_roles
from leaddesk.models.user import UserRole
from leaddesk.schemas.assignment import (
    AssignmentResult,
    AutoDistributeRequest,
    BatchAssignRequest,
    BulkReassignRequest,
    ReassignRequest,
)
from leaddesk.services.assignment import auto_distribute, batch_assign, bulk_reassign, reassign_lead

router = APIRouter(prefix="/assignments", tags=["assignments"])

managers = require_roles(UserRole.owner, UserRole.manager)


@router.post("/batch", response_model=AssignmentResult)
def batch_assign_leads(
    payload: BatchAssignRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(managers),
):
    return batch_assign(db, actor, payload.campaign_id, payload.agent_id, payload.count)


@router.post("/auto-distribute", response_model=AssignmentResult)
def auto_distribute_leads(
    payload: AutoDistributeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(managers),
):
    return auto_distribute(db, actor, payload.campaign_id)


@router.post("/reassign", response_model=AssignmentResult)
def reassign(
    payload: ReassignRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(managers),
):
    return reassign_lead(db, actor, payload.lead_id, payload.new_agent_id)


@router.post("/bulk-reassign", response_model=AssignmentResult)
def reassign_many(
    payload: BulkReassignRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(managers),
):
    return bulk_reassign(db, actor, payload.lead_ids, payload.new_agent_id)
