import logging
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from leaddesk.core.actor import Actor, require_manager
from leaddesk.core.errors import NotFound, ReportGenerationFailed, Unauthorized, ValidationError
from leaddesk.metrics import REPORTS_GENERATED_COUNTER
from leaddesk.models.call import Call
from leaddesk.models.campaign import Campaign
from leaddesk.models.lead import QUALIFIED_STATUSES, Lead, LeadStatus
from leaddesk.models.report import Report
from leaddesk.models.user import Profile, UserRole
from leaddesk.schemas.report import AgentRollup, CampaignRollup, DailyBucket, ReportData, ReportSummary
from leaddesk.services.fanout import run_parallel

logger = logging.getLogger(__name__)

MAX_REPORT_DAYS = 366


def round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def conversion_rate(closed_won: int, total_leads: int) -> float:
    if not total_leads:
        return 0.0
    return round_half_up(closed_won / total_leads * 100, 1)


def period_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    return datetime.combine(period_start, time.min), datetime.combine(period_end, time.max)


def report_name(report_type: str, period_start: date, period_end: date) -> str:
    label = report_type[:1].upper() + report_type[1:]
    return (
        f"{label} Report - {period_start.day} {period_start:%b} "
        f"to {period_end.day} {period_end:%b %Y}"
    )


def _report_queries(organization_id: int, start: datetime, end: datetime) -> dict:
    def calls(session: Session):
        return (
            session.query(Call)
            .filter(Call.organization_id == organization_id, Call.created_at >= start, Call.created_at <= end)
            .all()
        )

    def leads(session: Session):
        return (
            session.query(Lead)
            .filter(Lead.organization_id == organization_id, Lead.created_at >= start, Lead.created_at <= end)
            .all()
        )

    def leads_with_status(status: LeadStatus):
        def query(session: Session):
            return (
                session.query(Lead)
                .options(joinedload(Lead.client))
                .filter(
                    Lead.organization_id == organization_id,
                    Lead.status == status,
                    Lead.updated_at >= start,
                    Lead.updated_at <= end,
                )
                .all()
            )

        return query

    def campaigns(session: Session):
        return (
            session.query(Campaign)
            .options(joinedload(Campaign.client), selectinload(Campaign.leads))
            .filter(Campaign.organization_id == organization_id)
            .order_by(Campaign.created_at.asc(), Campaign.id.asc())
            .all()
        )

    def agents(session: Session):
        return (
            session.query(Profile)
            .filter(Profile.organization_id == organization_id, Profile.role == UserRole.agent)
            .order_by(Profile.created_at.asc(), Profile.id.asc())
            .all()
        )

    return {
        "calls": calls,
        "leads": leads,
        "qualified": leads_with_status(LeadStatus.qualified),
        "closed_won": leads_with_status(LeadStatus.closed_won),
        "campaigns": campaigns,
        "agents": agents,
    }


def _in_period(ts: datetime | None, start: datetime, end: datetime) -> bool:
    return ts is not None and start <= ts <= end


def _day_matches(ts: datetime | None, day: str) -> bool:
    return ts is not None and ts.isoformat().startswith(day)


def build_report_data(
    calls: Sequence,
    leads: Sequence,
    qualified: Sequence,
    closed_won: Sequence,
    campaigns: Sequence,
    agents: Sequence,
    period_start: date,
    period_end: date,
) -> ReportData:
    """Aggregate already-fetched rows into a report payload. Pure; no database access."""
    start, end = period_bounds(period_start, period_end)

    revenue = 0.0
    for lead in closed_won:
        if lead.client is not None and lead.client.cost_per_lead:
            revenue += lead.client.cost_per_lead

    summary = ReportSummary(
        total_calls=len(calls),
        total_leads=len(leads),
        qualified_leads=len(qualified),
        closed_won=len(closed_won),
        revenue=revenue,
        conversion_rate=conversion_rate(len(closed_won), len(leads)),
    )

    campaign_rows = []
    for campaign in campaigns:
        in_period = [l for l in campaign.leads if _in_period(l.created_at, start, end)]
        if not in_period:
            continue
        campaign_rows.append(
            CampaignRollup(
                id=campaign.id,
                name=campaign.name,
                client=campaign.client.company_name if campaign.client else "Unknown",
                leads_generated=len(in_period),
                qualified_leads=sum(1 for l in in_period if l.status in QUALIFIED_STATUSES),
                status=campaign.status.value,
            )
        )

    agent_rows = []
    for agent in agents:
        agent_calls = [c for c in calls if c.agent_id == agent.id]
        converted = [l for l in leads if l.assigned_agent_id == agent.id and l.status in QUALIFIED_STATUSES]
        if not agent_calls and not converted:
            continue
        total_duration = sum(c.duration_seconds or 0 for c in agent_calls)
        avg = int(round_half_up(total_duration / len(agent_calls))) if agent_calls else 0
        agent_rows.append(
            AgentRollup(
                id=agent.id,
                name=agent.full_name or "Unknown Agent",
                calls=len(agent_calls),
                leads_converted=len(converted),
                avg_call_duration=avg,
            )
        )

    daily = []
    day = period_start
    while day <= period_end:
        key = day.isoformat()
        daily.append(
            DailyBucket(
                date=key,
                calls=sum(1 for c in calls if _day_matches(c.created_at, key)),
                leads=sum(1 for l in leads if _day_matches(l.created_at, key)),
                qualified=sum(
                    1 for l in leads if _day_matches(l.updated_at, key) and l.status in QUALIFIED_STATUSES
                ),
            )
        )
        day += timedelta(days=1)

    return ReportData(summary=summary, campaigns=campaign_rows, agents=agent_rows, daily_breakdown=daily)


def generate_report_data(db: Session, organization_id: int, period_start: date, period_end: date) -> ReportData:
    start, end = period_bounds(period_start, period_end)
    try:
        rows = run_parallel(db, _report_queries(organization_id, start, end))
    except SQLAlchemyError as exc:
        raise ReportGenerationFailed("Failed to generate report: a data query failed") from exc
    return build_report_data(
        rows["calls"],
        rows["leads"],
        rows["qualified"],
        rows["closed_won"],
        rows["campaigns"],
        rows["agents"],
        period_start,
        period_end,
    )


def generate_report(db: Session, actor: Actor, report_type: str, period_start: date, period_end: date) -> Report:
    require_manager(actor, "Forbidden - Manager access required")
    report_type = (report_type or "").strip()
    if not report_type:
        raise ValidationError("Missing required field: report_type")
    if period_end < period_start:
        raise ValidationError("period_end must not be before period_start")
    if (period_end - period_start).days + 1 > MAX_REPORT_DAYS:
        raise ValidationError(f"Report period cannot exceed {MAX_REPORT_DAYS} days")

    try:
        data = generate_report_data(db, actor.organization_id, period_start, period_end)
    except ReportGenerationFailed:
        REPORTS_GENERATED_COUNTER.labels(result="failed").inc()
        logger.exception("Report generation failed for organization %s", actor.organization_id)
        raise

    report = Report(
        organization_id=actor.organization_id,
        created_by=actor.id,
        name=report_name(report_type, period_start, period_end),
        report_type=report_type,
        period_start=period_start,
        period_end=period_end,
        data=data.model_dump(mode="json"),
    )
    try:
        db.add(report)
        db.commit()
        db.refresh(report)
    except SQLAlchemyError as exc:
        db.rollback()
        REPORTS_GENERATED_COUNTER.labels(result="failed").inc()
        logger.error("Saving report for organization %s failed: %s", actor.organization_id, exc)
        raise ReportGenerationFailed("Failed to save report") from exc

    REPORTS_GENERATED_COUNTER.labels(result="ok").inc()
    logger.info("Generated report %s (%s) for organization %s", report.id, report.name, actor.organization_id)
    return report


def _require_report_reader(actor: Actor) -> None:
    if actor.role == UserRole.client:
        raise Unauthorized("Clients cannot view organization reports")


def list_reports(
    db: Session,
    actor: Actor,
    report_type: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Report], int]:
    _require_report_reader(actor)
    query = db.query(Report).filter(Report.organization_id == actor.organization_id)
    if report_type:
        query = query.filter(Report.report_type == report_type)
    total = query.with_entities(func.count(Report.id)).scalar() or 0
    rows = query.order_by(Report.created_at.desc(), Report.id.desc()).offset(offset).limit(limit).all()
    return rows, int(total)


def get_report(db: Session, actor: Actor, report_id: int) -> Report:
    _require_report_reader(actor)
    report = (
        db.query(Report)
        .filter(Report.id == report_id, Report.organization_id == actor.organization_id)
        .first()
    )
    if not report:
        raise NotFound("Report not found")
    return report


def delete_report(db: Session, actor: Actor, report_id: int) -> None:
    require_manager(actor, "Forbidden - Manager access required")
    report = get_report(db, actor, report_id)
    db.delete(report)
    db.commit()
    logger.info("Deleted report %s for organization %s", report_id, actor.organization_id)


def report_payload(report: Report) -> ReportData:
    return ReportData.model_validate(report.data)
