"""
Tests for CSV and PDF exports.
"""
import csv
from datetime import date, datetime
from io import StringIO

import pytest

from conftest import actor_for, make_campaign, make_client, make_lead, make_profile
from leaddesk.core.errors import NotFound, Unauthorized
from leaddesk.models import LeadStatus, Report, UserRole
from leaddesk.services.exports import leads_csv, report_csv, report_filename, report_pdf


def sample_report(org, manager):
    return Report(
        organization_id=org.id,
        created_by=manager.id,
        name="Monthly Report - 1 Mar to 31 Mar 2026",
        report_type="monthly",
        period_start=date(2026, 3, 1),
        period_end=date(2026, 3, 31),
        data={
            "summary": {
                "total_calls": 40,
                "total_leads": 100,
                "qualified_leads": 20,
                "closed_won": 12,
                "revenue": 1234.0,
                "conversion_rate": 12.0,
            },
            "campaigns": [
                {"id": 1, "name": 'Spring "Blitz"', "client": "Acme", "leads_generated": 100, "qualified_leads": 20, "status": "active"}
            ],
            "agents": [{"id": 2, "name": "Ava", "calls": 40, "leads_converted": 12, "avg_call_duration": 95}],
            "daily_breakdown": [{"date": "2026-03-01", "calls": 3, "leads": 4, "qualified": 1}],
        },
    )


class TestLeadsCsv:
    def test_every_field_quoted_and_quotes_doubled(self, db, org, manager_actor):
        client = make_client(db, org)
        campaign = make_campaign(db, org, client=client)
        make_lead(
            db,
            org,
            campaign,
            first_name="Ann",
            last_name="O'Neil",
            company='The "Best" Co, Ltd',
            created_at=datetime(2026, 3, 4, 9, 0),
            status=LeadStatus.contacted,
        )

        text = leads_csv(db, manager_actor, client.id)

        lines = text.splitlines()
        assert lines[0] == '"First Name","Last Name","Email","Phone","Company","Job Title","Status","Created At","Last Contacted"'
        assert '"The ""Best"" Co, Ltd"' in lines[1]
        row = next(csv.DictReader(StringIO(text)))
        assert row["Company"] == 'The "Best" Co, Ltd'
        assert row["Created At"] == "04/03/2026"
        assert row["Last Contacted"] == ""

    def test_newest_first(self, db, org, manager_actor):
        client = make_client(db, org)
        campaign = make_campaign(db, org, client=client)
        make_lead(db, org, campaign, first_name="Older", created_at=datetime(2026, 3, 1))
        make_lead(db, org, campaign, first_name="Newer", created_at=datetime(2026, 3, 2))

        rows = list(csv.DictReader(StringIO(leads_csv(db, manager_actor, client.id))))

        assert [r["First Name"] for r in rows] == ["Newer", "Older"]

    def test_client_user_limited_to_own_client(self, db, org):
        own = make_client(db, org, company_name="Own")
        other = make_client(db, org, company_name="Other")
        portal_user = make_profile(db, org, role=UserRole.client, client_id=own.id)

        assert leads_csv(db, actor_for(portal_user), own.id).startswith('"First Name"')
        with pytest.raises(Unauthorized):
            leads_csv(db, actor_for(portal_user), other.id)

    def test_client_of_other_organization(self, db, other_org, manager_actor):
        foreign = make_client(db, other_org)
        with pytest.raises(NotFound):
            leads_csv(db, manager_actor, foreign.id)


class TestReportExports:
    def test_report_csv_sections(self, org, manager):
        text = report_csv(sample_report(org, manager))

        assert text.startswith('"Monthly Report - 1 Mar to 31 Mar 2026"')
        for section in ("SUMMARY", "CAMPAIGN PERFORMANCE", "AGENT PERFORMANCE", "DAILY BREAKDOWN"):
            assert f'"{section}"' in text
        assert '"Revenue","£1,234"' in text
        assert '"Conversion Rate","12.0%"' in text
        assert '"Spring ""Blitz""","Acme","100","20","active"' in text
        assert '"01/03/2026","3","4","1"' in text

    def test_report_pdf(self, org, manager):
        pdf = report_pdf(sample_report(org, manager))
        assert pdf.startswith(b"%PDF")

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Monthly Report - 1 Mar to 31 Mar 2026", "Monthly_Report_-_1_Mar_to_31_Mar_2026"),
            ("Q1 / Q2 <draft>", "Q1_Q2_draft"),
            ("***", "report"),
        ],
    )
    def test_report_filename(self, name, expected):
        assert report_filename(name) == expected
