from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db, utcnow
from leaddesk.core.deps import require_roles
from leaddesk.models.user import UserRole
from leaddesk.schemas.analytics import DashboardKpis
from leaddesk.services.analytics import dashboard_kpis

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardKpis)
def dashboard_metrics(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(UserRole.owner, UserRole.manager)),
):
    return dashboard_kpis(db, actor, utcnow())
