from datetime import datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor, require_manager
from leaddesk.core.errors import UpstreamFailure
from leaddesk.models.call import Call
from leaddesk.models.client import Client
from leaddesk.models.lead import Lead, LeadStatus
from leaddesk.schemas.analytics import DashboardKpis
from leaddesk.services.fanout import run_parallel
from leaddesk.services.reports import conversion_rate


def dashboard_kpis(db: Session, actor: Actor, now: datetime) -> DashboardKpis:
    require_manager(actor, "Forbidden - Manager access required")
    org_id = actor.organization_id
    day_start = datetime.combine(now.date(), time.min)
    week_start = day_start - timedelta(days=7)
    month_start = day_start.replace(day=1)

    def calls_today(s: Session) -> int:
        return (
            s.query(func.count(Call.id))
            .filter(Call.organization_id == org_id, Call.created_at >= day_start)
            .scalar()
            or 0
        )

    def leads_today(s: Session) -> int:
        return (
            s.query(func.count(Lead.id))
            .filter(Lead.organization_id == org_id, Lead.created_at >= day_start)
            .scalar()
            or 0
        )

    def qualified_week(s: Session) -> int:
        return (
            s.query(func.count(Lead.id))
            .filter(
                Lead.organization_id == org_id,
                Lead.status == LeadStatus.qualified,
                Lead.created_at >= week_start,
            )
            .scalar()
            or 0
        )

    def month_leads(s: Session) -> int:
        return (
            s.query(func.count(Lead.id))
            .filter(Lead.organization_id == org_id, Lead.created_at >= month_start)
            .scalar()
            or 0
        )

    def month_won(s: Session) -> tuple[int, float]:
        count, revenue = (
            s.query(func.count(Lead.id), func.coalesce(func.sum(Client.cost_per_lead), 0))
            .select_from(Lead)
            .outerjoin(Client, Lead.client_id == Client.id)
            .filter(
                Lead.organization_id == org_id,
                Lead.status == LeadStatus.closed_won,
                Lead.updated_at >= month_start,
            )
            .one()
        )
        return int(count or 0), float(revenue or 0)

    try:
        r = run_parallel(
            db,
            {
                "calls_today": calls_today,
                "leads_today": leads_today,
                "qualified_week": qualified_week,
                "month_leads": month_leads,
                "month_won": month_won,
            },
        )
    except SQLAlchemyError as exc:
        raise UpstreamFailure("Failed to load dashboard metrics") from exc

    won, revenue = r["month_won"]
    return DashboardKpis(
        calls_today=int(r["calls_today"]),
        leads_today=int(r["leads_today"]),
        qualified_last_7_days=int(r["qualified_week"]),
        month_revenue=revenue,
        month_conversion_rate=conversion_rate(won, int(r["month_leads"])),
    )
