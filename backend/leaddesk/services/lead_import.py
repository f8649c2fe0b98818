import csv
import logging
import re
from io import StringIO

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor, require_manager, require_same_organization
from leaddesk.core.config import get_settings
from leaddesk.core.database import utcnow
from leaddesk.core.errors import MissingColumns, NotFound, ValidationError, cap_errors
from leaddesk.metrics import IMPORT_BATCHES_COUNTER
from leaddesk.models.activity import ActivityType
from leaddesk.models.client import Client
from leaddesk.models.lead import Lead, LeadStatus
from leaddesk.schemas.lead_import import CsvValidation, ImportResult, LeadImportRecord
from leaddesk.services.activity import log_activity
from leaddesk.services.assignment import get_campaign_for, get_valid_agent

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "first_name": ("first_name", "firstname", "first name"),
    "last_name": ("last_name", "lastname", "last name", "surname"),
    "phone": ("phone", "phone_number", "telephone", "mobile"),
    "email": ("email", "email_address"),
    "company": ("company", "organization", "organisation"),
    "job_title": ("job_title", "title", "position"),
    "source": ("source",),
    "priority": ("priority",),
    "tags": ("tags",),
}
REQUIRED_COLUMNS = ("first_name", "last_name", "phone")
PHONE_RE = re.compile(r"^\+?[0-9\s\-()]+$", re.ASCII)
PRIORITY_RE = re.compile(r"\s*([+-]?[0-9]+)")
EMPTY_MESSAGE = "CSV file is empty or missing data"
PARSE_FAILED_MESSAGE = "Failed to parse CSV file. Please check the format."


def _map_header(header: list[str]) -> dict[str, int]:
    positions: dict[str, int] = {}
    for index, raw in enumerate(header):
        name = raw.strip().lstrip("\ufeff").lower()
        for field, aliases in COLUMN_ALIASES.items():
            if name in aliases and field not in positions:
                positions[field] = index
                break
    return positions


def _cell(row: list[str], positions: dict[str, int], field: str) -> str:
    index = positions.get(field)
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def _parse_priority(value: str) -> int:
    match = PRIORITY_RE.match(value)
    return int(match.group(1)) if match else 0


def _parse_tags(value: str) -> list[str]:
    return [t.strip() for t in value.split("|") if t.strip()]


def validate_lead_csv(text: str) -> CsvValidation:
    """Parse CSV text into import records.

    Raises ``MissingColumns`` when a required column has no alias in the
    header and ``ValidationError`` when there is no header or no data row.
    Row-level problems are collected as ``"Row N: ..."`` messages, where the
    header is row 1, and the offending rows are left out of ``records``.
    Text the csv module cannot parse is a ``ValidationError``.
    """
    reader = csv.reader(StringIO(text or ""))
    try:
        rows = [(reader.line_num, row) for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as exc:
        logger.info("Rejected unparseable CSV: %s", exc)
        raise ValidationError(PARSE_FAILED_MESSAGE) from exc
    if not rows:
        raise ValidationError(EMPTY_MESSAGE)

    _, header = rows[0]
    positions = _map_header(header)
    missing = [c for c in REQUIRED_COLUMNS if c not in positions]
    if missing:
        raise MissingColumns(missing)
    if len(rows) < 2:
        raise ValidationError(EMPTY_MESSAGE)

    records: list[LeadImportRecord] = []
    errors: list[str] = []
    for line, row in rows[1:]:
        values = {field: _cell(row, positions, field) for field in COLUMN_ALIASES}
        if not all(values[c] for c in REQUIRED_COLUMNS):
            errors.append(f"Row {line}: Missing required fields")
            continue
        if not PHONE_RE.match(values["phone"]):
            errors.append(f"Row {line}: Invalid phone number format")
            continue

        records.append(
            LeadImportRecord(
                first_name=values["first_name"],
                last_name=values["last_name"],
                phone=values["phone"],
                email=values["email"] or None,
                company=values["company"] or None,
                job_title=values["job_title"] or None,
                source=values["source"] or "csv_import",
                priority=_parse_priority(values["priority"]),
                tags=_parse_tags(values["tags"]),
            )
        )

    return CsvValidation(records=records, errors=errors)


def insert_batch(db: Session, leads: list[Lead]) -> None:
    db.add_all(leads)
    db.commit()


def _failure_reason(exc: SQLAlchemyError) -> str:
    reason = str(getattr(exc, "orig", None) or exc)
    return reason.splitlines()[0] if reason else exc.__class__.__name__


def import_leads(
    db: Session,
    actor: Actor,
    records: list[LeadImportRecord],
    campaign_id: int,
    client_id: int | None = None,
    assign_to_agent_id: int | None = None,
) -> ImportResult:
    require_manager(actor, "Unauthorized: Only owners and managers can import leads")
    if not records:
        raise ValidationError("No leads to import")

    campaign = get_campaign_for(db, actor, campaign_id)
    if client_id is None:
        client_id = campaign.client_id
    if client_id is not None:
        client = db.get(Client, client_id)
        if not client:
            raise NotFound("Client not found")
        require_same_organization(actor, client.organization_id, "Unauthorized: Cannot import leads for other organizations")
    if assign_to_agent_id is not None:
        get_valid_agent(db, actor.organization_id, assign_to_agent_id)

    settings = get_settings()
    batch_size = settings.IMPORT_BATCH_SIZE
    total = len(records)
    imported = 0
    errors: list[str] = []

    for start in range(0, total, batch_size):
        batch_no = start // batch_size + 1
        now = utcnow()
        leads = [
            Lead(
                organization_id=actor.organization_id,
                campaign_id=campaign.id,
                client_id=client_id,
                assigned_agent_id=assign_to_agent_id,
                first_name=r.first_name,
                last_name=r.last_name,
                phone=r.phone,
                email=r.email,
                company=r.company,
                job_title=r.job_title,
                source=r.source,
                priority=r.priority,
                tags=list(r.tags),
                status=LeadStatus.new,
                score=0,
                created_at=now,
                updated_at=now,
            )
            for r in records[start : start + batch_size]
        ]
        try:
            insert_batch(db, leads)
        except SQLAlchemyError as exc:
            db.rollback()
            IMPORT_BATCHES_COUNTER.labels(result="failed").inc()
            logger.warning("Import batch %d for campaign %s failed: %s", batch_no, campaign.id, exc)
            errors.append(f"Batch {batch_no}: {_failure_reason(exc)}")
            continue
        IMPORT_BATCHES_COUNTER.labels(result="ok").inc()
        imported += len(leads)

    errors = cap_errors(errors, settings.MAX_REPORTED_ERRORS)
    log_activity(
        db,
        actor,
        ActivityType.import_,
        f"Imported {imported} of {total} leads from CSV",
        metadata={
            "campaign_id": campaign.id,
            "client_id": client_id,
            "total_leads": total,
            "successful": imported,
            "errors": errors,
        },
    )
    logger.info("Imported %d/%d leads into campaign %s", imported, total, campaign.id)

    if imported == 0:
        return ImportResult(
            success=False,
            imported=0,
            total=total,
            errors=errors,
            message=f"Import failed: {errors[0] if errors else 'no leads were imported'}",
        )
    if errors:
        return ImportResult(
            success=True,
            imported=imported,
            total=total,
            errors=errors,
            message=f"Imported {imported} of {total} leads with {len(errors)} failed batch(es)",
        )
    return ImportResult(
        success=True,
        imported=imported,
        total=total,
        message=f"Successfully imported {imported} leads",
    )
