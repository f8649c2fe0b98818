"""
HTTP surface tests: auth, error mapping and a few end-to-end flows.
"""
from datetime import datetime

from jose import jwt
from twilio.request_validator import RequestValidator

from conftest import make_campaign, make_lead, make_profile
from leaddesk.api.routes import telephony
from leaddesk.core.config import get_settings
from leaddesk.core.database import utcnow
from leaddesk.models import Call, CallOutcome, Lead, UserRole


def bearer(profile):
    settings = get_settings()
    token = jwt.encode(
        {"sub": profile.auth_user_id, "aud": settings.JWT_AUDIENCE},
        settings.AUTH_JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


class TestAuthentication:
    def test_missing_token_is_401(self, api):
        r = api.get("/api/v1/activities")
        assert r.status_code == 401
        assert r.json() == {"success": False, "error": "Not authenticated"}

    def test_bad_token_is_401(self, api):
        r = api.get("/api/v1/activities", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 401
        assert r.json()["success"] is False

    def test_valid_token_resolves_profile(self, api, manager):
        r = api.get("/api/v1/activities", headers=bearer(manager))
        assert r.status_code == 200
        assert r.json() == []

    def test_inactive_profile_is_403(self, api, db, org):
        disabled = make_profile(db, org, role=UserRole.manager, is_active=False)
        r = api.get("/api/v1/activities", headers=bearer(disabled))
        assert r.status_code == 403


class TestErrorMapping:
    def test_wrong_role_is_403(self, db, org, as_actor):
        agent = make_profile(db, org)
        r = as_actor(agent).post("/api/v1/assignments/batch", json={"campaign_id": 1, "agent_id": agent.id})
        assert r.status_code == 403
        assert r.json()["success"] is False

    def test_missing_resource_is_404(self, db, org, manager, as_actor):
        agent = make_profile(db, org)
        r = as_actor(manager).post("/api/v1/assignments/reassign", json={"lead_id": 999, "new_agent_id": agent.id})
        assert r.status_code == 404
        assert r.json() == {"success": False, "error": "Lead not found"}

    def test_missing_columns_is_400(self, manager, as_actor):
        r = as_actor(manager).post("/api/v1/leads/import/validate", json={"content": "first_name\nAnn\n"})
        assert r.status_code == 400
        assert r.json()["error"] == "Missing required columns: last_name, phone"

    def test_unparseable_csv_is_400(self, manager, as_actor):
        content = "first_name,last_name,phone,company\nAnn,Smith,07700900001," + "x" * 200000 + "\n"
        r = as_actor(manager).post("/api/v1/leads/import/validate", json={"content": content})
        assert r.status_code == 400
        assert r.json() == {"success": False, "error": "Failed to parse CSV file. Please check the format."}

    def test_malformed_body_is_400(self, manager, as_actor):
        r = as_actor(manager).post("/api/v1/assignments/batch", json={"campaign_id": "x"})
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_telephony_not_configured_is_502(self, db, org, as_actor):
        agent = make_profile(db, org)
        r = as_actor(agent).post("/api/v1/calls", json={"phone_number": "+447700900123"})
        assert r.status_code == 502


class TestFlows:
    def test_batch_assign(self, db, org, manager, as_actor):
        agent = make_profile(db, org)
        campaign = make_campaign(db, org)
        leads = [make_lead(db, org, campaign) for _ in range(3)]

        r = as_actor(manager).post(
            "/api/v1/assignments/batch",
            json={"campaign_id": campaign.id, "agent_id": agent.id, "count": 2},
        )

        assert r.status_code == 200
        body = r.json()
        assert body["count"] == 2
        assert body["lead_ids"] == [leads[0].id, leads[1].id]

    def test_import_then_validate_round_trip(self, db, org, manager, as_actor):
        campaign = make_campaign(db, org)
        client = as_actor(manager)
        csv_text = "first_name,last_name,phone\nAnn,Smith,07700900001\nBob,Jones,07700900002\n"

        checked = client.post("/api/v1/leads/import/validate", json={"content": csv_text}).json()
        r = client.post("/api/v1/leads/import", json={"campaign_id": campaign.id, "records": checked["records"]})

        assert r.status_code == 200
        assert r.json()["imported"] == 2
        assert db.query(Lead).count() == 2

    def test_generate_and_download_report(self, db, org, manager, as_actor):
        make_lead(db, org, created_at=datetime(2026, 3, 3, 10, 0))
        client = as_actor(manager)

        created = client.post(
            "/api/v1/reports/generate",
            json={"report_type": "weekly", "period_start": "2026-03-02", "period_end": "2026-03-08"},
        )
        assert created.status_code == 200
        report = created.json()
        assert report["name"] == "Weekly Report - 2 Mar to 8 Mar 2026"
        assert report["data"]["summary"]["total_leads"] == 1

        listing = client.get("/api/v1/reports").json()
        assert listing["total"] == 1 and listing["limit"] == 20 and listing["offset"] == 0

        as_csv = client.get(f"/api/v1/reports/{report['id']}/download")
        assert as_csv.headers["content-type"].startswith("text/csv")
        assert 'filename="Weekly_Report_-_2_Mar_to_8_Mar_2026.csv"' in as_csv.headers["content-disposition"]
        assert '"SUMMARY"' in as_csv.text

        as_json = client.get(f"/api/v1/reports/{report['id']}/download", params={"format": "json"})
        assert as_json.json()["summary"]["total_leads"] == 1

        as_pdf = client.get(f"/api/v1/reports/{report['id']}/download", params={"format": "pdf"})
        assert as_pdf.content.startswith(b"%PDF")

        assert client.delete(f"/api/v1/reports/{report['id']}").json() == {"success": True}
        assert client.get(f"/api/v1/reports/{report['id']}").status_code == 404

    def test_dashboard(self, db, org, manager, as_actor):
        make_lead(db, org, created_at=utcnow())
        r = as_actor(manager).get("/api/v1/analytics/dashboard")
        assert r.status_code == 200
        assert r.json()["leads_today"] == 1
        assert r.json()["month_conversion_rate"] == 0


class TestTelephonyCallback:
    URL = "https://api.example.com/api/v1/telephony/status"

    def _add_call(self, db, org):
        agent = make_profile(db, org)
        call = Call(organization_id=org.id, agent_id=agent.id, phone_number="+447700900123", provider_call_sid="CA42")
        db.add(call)
        db.commit()
        return call

    def test_unsigned_callback_when_no_token_configured(self, api, db, org):
        call = self._add_call(db, org)

        r = api.post("/api/v1/telephony/status", data={"CallSid": "CA42", "CallStatus": "completed", "CallDuration": "31"})

        assert r.json() == {"success": True, "matched": True}
        db.refresh(call)
        assert call.outcome == CallOutcome.completed
        assert call.duration_seconds == 31

    def test_signature_checked_when_token_configured(self, api, db, org, monkeypatch):
        self._add_call(db, org)
        signed = get_settings().model_copy(update={"TWILIO_AUTH_TOKEN": "twilio-token", "TWILIO_STATUS_CALLBACK_URL": self.URL})
        monkeypatch.setattr(telephony, "get_settings", lambda: signed)
        params = {"CallSid": "CA42", "CallStatus": "ringing"}
        signature = RequestValidator("twilio-token").compute_signature(self.URL, params)

        bad = api.post("/api/v1/telephony/status", data=params, headers={"X-Twilio-Signature": "forged"})
        good = api.post("/api/v1/telephony/status", data=params, headers={"X-Twilio-Signature": signature})

        assert bad.status_code == 403
        assert good.status_code == 200
        assert good.json()["matched"] is True


def test_health_and_metrics(api):
    assert api.get("/health").json() == {"status": "ok"}
    metrics = api.get("/metrics")
    assert metrics.status_code == 200
    assert "reports_generated_total" in metrics.text
