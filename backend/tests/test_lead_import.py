"""
Tests for CSV validation and batched lead import.
"""
import pytest
from sqlalchemy.exc import OperationalError

from conftest import actor_for, make_campaign, make_client, make_profile
from leaddesk.core.config import get_settings
from leaddesk.core.errors import MissingColumns, NotFound, Unauthorized, ValidationError
from leaddesk.models import Activity, ActivityType, Lead, LeadStatus
from leaddesk.schemas.lead_import import LeadImportRecord
from leaddesk.services import lead_import
from leaddesk.services.lead_import import import_leads, validate_lead_csv


def records(n):
    return [LeadImportRecord(first_name=f"First{i}", last_name="Last", phone=f"+44 7700 {i:06d}") for i in range(n)]


class TestValidateLeadCsv:
    """Tests for validate_lead_csv."""

    def test_well_formed_rows_all_validate(self):
        text = "First Name,Last Name,Phone,Email\n" + "\n".join(
            f"Ann{i},Smith,+44 (0) 7700-900{i:03d},ann{i}@example.com" for i in range(25)
        )

        result = validate_lead_csv(text)

        assert len(result.records) == 25
        assert result.errors == []
        assert result.records[0].email == "ann0@example.com"

    def test_missing_required_column_rejects_file(self):
        with pytest.raises(MissingColumns) as excinfo:
            validate_lead_csv("first_name,email\nAnn,ann@example.com\n")

        assert excinfo.value.missing == ["last_name", "phone"]
        assert "Missing required columns: last_name, phone" in excinfo.value.message

    def test_header_aliases(self):
        text = "FirstName,Surname,Mobile,Organisation,Position\nBo,Jones,07700900123,Initech,CTO\n"

        record = validate_lead_csv(text).records[0]

        assert (record.first_name, record.last_name, record.phone) == ("Bo", "Jones", "07700900123")
        assert record.company == "Initech"
        assert record.job_title == "CTO"

    def test_row_errors_use_physical_line_numbers(self):
        text = (
            "first_name,last_name,phone\n"
            "Ann,Smith,07700900001\n"
            "Bob,,07700900002\n"
            "Cat,Jones,call me maybe\n"
            "Dan,Brown,+447700900004\n"
        )

        result = validate_lead_csv(text)

        assert result.errors == ["Row 3: Missing required fields", "Row 4: Invalid phone number format"]
        assert [r.first_name for r in result.records] == ["Ann", "Dan"]

    def test_defaults_priority_and_tags(self):
        text = (
            "first_name,last_name,phone,priority,tags,source\n"
            "Ann,Smith,07700900001,3, vip | | warm ,\n"
            "Bob,Jones,07700900002,high,,webinar\n"
        )

        ann, bob = validate_lead_csv(text).records

        assert ann.priority == 3
        assert ann.tags == ["vip", "warm"]
        assert ann.source == "csv_import"
        assert ann.email is None and ann.company is None
        assert bob.priority == 0
        assert bob.tags == []
        assert bob.source == "webinar"

    def test_quoted_fields_may_contain_commas(self):
        text = 'first_name,last_name,phone,company\nAnn,Smith,07700900001,"Smith, Jones & Co"\n'
        assert validate_lead_csv(text).records[0].company == "Smith, Jones & Co"

    @pytest.mark.parametrize("raw,expected", [("5.0", 5), ("3 stars", 3), (" 7", 7), ("-2", -2), ("high", 0), ("", 0)])
    def test_priority_uses_leading_integer(self, raw, expected):
        text = f'first_name,last_name,phone,priority\nAnn,Smith,07700900001,"{raw}"\n'
        assert validate_lead_csv(text).records[0].priority == expected

    def test_non_ascii_digits_are_not_a_phone_number(self):
        text = "first_name,last_name,phone\nAnn,Smith,٠٧٧٠٠٩٠٠٠٠١\nBob,Jones,07700900002\n"

        result = validate_lead_csv(text)

        assert result.errors == ["Row 2: Invalid phone number format"]
        assert [r.first_name for r in result.records] == ["Bob"]

    def test_oversized_field_is_a_validation_error(self):
        text = "first_name,last_name,phone,company\nAnn,Smith,07700900001," + "x" * 200000 + "\n"
        with pytest.raises(ValidationError, match="Failed to parse CSV file"):
            validate_lead_csv(text)

    def test_nul_byte_never_escapes_as_csv_error(self):
        text = "first_name,last_name,phone\nAnn,Sm\x00ith,07700900001\n"
        try:
            result = validate_lead_csv(text)
        except ValidationError as exc:
            assert str(exc) == "Failed to parse CSV file. Please check the format."
        else:
            assert len(result.records) == 1

    @pytest.mark.parametrize("text", ["", "\n\n", "first_name,last_name,phone\n", "first_name,last_name,phone\n\n  \n"])
    def test_empty_file(self, text):
        with pytest.raises(ValidationError, match="empty or missing data"):
            validate_lead_csv(text)


class TestImportLeads:
    """Tests for import_leads batching."""

    def test_failed_batch_is_reported_and_others_commit(self, db, org, manager_actor, monkeypatch):
        """250 leads in batches of 100 where batch 2 fails leaves 150 imported."""
        campaign = make_campaign(db, org)
        real_insert = lead_import.insert_batch
        calls = {"n": 0}

        def flaky_insert(session, leads):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("INSERT INTO leads", {}, Exception("deadlock detected"))
            real_insert(session, leads)

        monkeypatch.setattr(lead_import, "insert_batch", flaky_insert)

        result = import_leads(db, manager_actor, records(250), campaign.id)

        assert result.success is True
        assert result.imported == 150
        assert result.total == 250
        assert result.errors == ["Batch 2: deadlock detected"]
        assert db.query(Lead).count() == 150

    def test_all_batches_failing(self, db, org, manager_actor, monkeypatch):
        campaign = make_campaign(db, org)

        def always_fails(session, leads):
            raise OperationalError("INSERT INTO leads", {}, Exception("read-only"))

        monkeypatch.setattr(lead_import, "insert_batch", always_fails)

        result = import_leads(db, manager_actor, records(3), campaign.id)

        assert result.success is False
        assert result.imported == 0
        assert result.message.startswith("Import failed")
        # The import is still recorded.
        entry = db.query(Activity).filter(Activity.type == ActivityType.import_).one()
        assert entry.meta["successful"] == 0

    def test_imported_leads_take_campaign_client_and_defaults(self, db, org, manager_actor):
        client = make_client(db, org)
        campaign = make_campaign(db, org, client=client)
        agent = make_profile(db, org)

        result = import_leads(db, manager_actor, records(2), campaign.id, assign_to_agent_id=agent.id)

        assert result.success is True
        assert result.message == "Successfully imported 2 leads"
        for lead in db.query(Lead).all():
            assert lead.client_id == client.id
            assert lead.assigned_agent_id == agent.id
            assert lead.status == LeadStatus.new
            assert lead.score == 0
            assert lead.created_at == lead.updated_at

        entry = db.query(Activity).filter(Activity.type == ActivityType.import_).one()
        assert entry.meta == {
            "campaign_id": campaign.id,
            "client_id": client.id,
            "total_leads": 2,
            "successful": 2,
            "errors": [],
        }

    def test_batch_size_follows_settings(self, db, org, manager_actor, monkeypatch):
        campaign = make_campaign(db, org)
        small = get_settings().model_copy(update={"IMPORT_BATCH_SIZE": 2})
        monkeypatch.setattr(lead_import, "get_settings", lambda: small)
        sizes = []
        real_insert = lead_import.insert_batch

        def recording_insert(session, leads):
            sizes.append(len(leads))
            real_insert(session, leads)

        monkeypatch.setattr(lead_import, "insert_batch", recording_insert)

        import_leads(db, manager_actor, records(5), campaign.id)

        assert sizes == [2, 2, 1]

    def test_agents_cannot_import(self, db, org):
        agent = make_profile(db, org)
        campaign = make_campaign(db, org)
        with pytest.raises(Unauthorized):
            import_leads(db, actor_for(agent), records(1), campaign.id)

    def test_unknown_campaign(self, db, manager_actor):
        with pytest.raises(NotFound):
            import_leads(db, manager_actor, records(1), 404)

    def test_foreign_campaign(self, db, other_org, manager_actor):
        campaign = make_campaign(db, other_org)
        with pytest.raises(Unauthorized):
            import_leads(db, manager_actor, records(1), campaign.id)
        assert db.query(Lead).count() == 0
