from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db
from leaddesk.core.deps import require_roles
from leaddesk.models.activity import ActivityType
from leaddesk.models.user import UserRole
from leaddesk.schemas.activity import ActivityResponse
from leaddesk.services.activity import list_activities

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("", response_model=list[ActivityResponse])
def recent_activities(
    limit: int = Query(default=50, ge=1, le=200),
    type: ActivityType | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(UserRole.owner, UserRole.manager)),
):
    return list_activities(db, actor, limit=limit, type=type)
