from io import StringIO, BytesIO
import csv
import re
from datetime import date, datetime

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import utcnow
from leaddesk.core.errors import NotFound, Unauthorized
from leaddesk.models.client import Client
from leaddesk.models.lead import Lead
from leaddesk.models.report import Report
from leaddesk.models.user import UserRole
from leaddesk.services.reports import report_payload


def _uk_date(value: date | datetime | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def _money(value: float) -> str:
    return f"£{value:,.0f}" if float(value).is_integer() else f"£{value:,.2f}"


def leads_csv(db: Session, actor: Actor, client_id: int) -> str:
    if actor.role == UserRole.agent:
        raise Unauthorized("Agents cannot export leads")
    if actor.role == UserRole.client and actor.client_id != client_id:
        raise Unauthorized("Clients can only export their own leads")
    client = db.get(Client, client_id)
    if not client or client.organization_id != actor.organization_id:
        raise NotFound("Client not found")

    rows = (
        db.query(Lead)
        .filter(Lead.client_id == client_id, Lead.organization_id == actor.organization_id)
        .order_by(Lead.created_at.desc(), Lead.id.desc())
        .all()
    )
    out = StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([
        "First Name",
        "Last Name",
        "Email",
        "Phone",
        "Company",
        "Job Title",
        "Status",
        "Created At",
        "Last Contacted",
    ])

    for l in rows:
        writer.writerow([
            l.first_name or "",
            l.last_name or "",
            l.email or "",
            l.phone or "",
            l.company or "",
            l.job_title or "",
            l.status.value,
            _uk_date(l.created_at),
            _uk_date(l.last_contacted_at),
        ])

    return out.getvalue()


def report_csv(report: Report) -> str:
    data = report_payload(report)
    s = data.summary

    out = StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([report.name])
    writer.writerow([f"Generated: {utcnow():%d/%m/%Y %H:%M:%S}"])
    writer.writerow([])

    writer.writerow(["SUMMARY"])
    writer.writerow(["Metric", "Value"])
    writer.writerow(["Total Calls", s.total_calls])
    writer.writerow(["Total Leads", s.total_leads])
    writer.writerow(["Qualified Leads", s.qualified_leads])
    writer.writerow(["Closed Won", s.closed_won])
    writer.writerow(["Revenue", _money(s.revenue)])
    writer.writerow(["Conversion Rate", f"{s.conversion_rate}%"])
    writer.writerow([])

    if data.campaigns:
        writer.writerow(["CAMPAIGN PERFORMANCE"])
        writer.writerow(["Campaign", "Client", "Leads Generated", "Qualified Leads", "Status"])
        for c in data.campaigns:
            writer.writerow([c.name, c.client, c.leads_generated, c.qualified_leads, c.status])
        writer.writerow([])

    if data.agents:
        writer.writerow(["AGENT PERFORMANCE"])
        writer.writerow(["Agent", "Calls Made", "Leads Converted", "Avg Call Duration (sec)"])
        for a in data.agents:
            writer.writerow([a.name, a.calls, a.leads_converted, a.avg_call_duration])
        writer.writerow([])

    if data.daily_breakdown:
        writer.writerow(["DAILY BREAKDOWN"])
        writer.writerow(["Date", "Calls", "Leads", "Qualified"])
        for d in data.daily_breakdown:
            writer.writerow([_uk_date(date.fromisoformat(d.date)), d.calls, d.leads, d.qualified])

    return out.getvalue()


def report_pdf(report: Report) -> bytes:
    data = report_payload(report)
    s = data.summary

    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    y = 790
    p.setFont("Helvetica-Bold", 16)
    p.drawString(50, y, report.name)
    y -= 20
    p.setFont("Helvetica", 9)
    p.drawString(50, y, f"Period: {_uk_date(report.period_start)} - {_uk_date(report.period_end)}")
    y -= 30
    p.setFont("Helvetica", 11)

    lines = [
        f"Total Calls: {s.total_calls}",
        f"Total Leads: {s.total_leads}",
        f"Qualified Leads: {s.qualified_leads}",
        f"Closed Won: {s.closed_won}",
        f"Revenue: {_money(s.revenue)}",
        f"Conversion Rate: {s.conversion_rate}%",
    ]
    for line in lines:
        p.drawString(50, y, line)
        y -= 22

    sections = [
        ("Campaigns", [f"{c.name} ({c.client}): {c.leads_generated} leads, {c.qualified_leads} qualified" for c in data.campaigns]),
        ("Agents", [f"{a.name}: {a.calls} calls, {a.leads_converted} converted, avg {a.avg_call_duration}s" for a in data.agents]),
    ]
    for title, rows in sections:
        if not rows or y < 80:
            continue
        y -= 10
        p.setFont("Helvetica-Bold", 12)
        p.drawString(50, y, title)
        y -= 20
        p.setFont("Helvetica", 10)
        for row in rows:
            if y < 60:
                p.drawString(50, y, "...")
                break
            p.drawString(60, y, row)
            y -= 16

    p.showPage()
    p.save()
    buffer.seek(0)
    return buffer.read()


def report_filename(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\-_ ]", "", name or "")
    return re.sub(r"\s+", "_", cleaned) or "report"
