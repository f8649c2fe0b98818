import os

# Settings are read at import time; point them at throwaway values before the app loads.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ALLOWED_HOSTS"] = '["*"]'
os.environ["AUTH_JWT_SECRET"] = "test-secret-test-secret-test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["TWILIO_PHONE_NUMBER"] = ""

from datetime import datetime, timedelta
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from leaddesk.core.actor import Actor
from leaddesk.core.database import Base, make_engine
from leaddesk.core.database import get_db
from leaddesk.core.deps import get_current_actor
from leaddesk.core.rate_limit import limiter
from leaddesk.main import app
from leaddesk.models import Campaign, CampaignStatus, Client, Lead, LeadStatus, Organization, Profile, UserRole

_seq = count(1)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads in the report fan-out see committed rows."""
    eng = make_engine(f"sqlite:///{tmp_path / 'leaddesk.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def org(db):
    item = Organization(name="Northwind Outreach")
    db.add(item)
    db.commit()
    return item


@pytest.fixture
def other_org(db):
    item = Organization(name="Rival Dialers")
    db.add(item)
    db.commit()
    return item


def make_profile(db, org, role=UserRole.agent, full_name=None, created_at=None, **kwargs):
    n = next(_seq)
    profile = Profile(
        auth_user_id=f"user-{n}",
        organization_id=org.id,
        email=f"user{n}@example.com",
        full_name=full_name if full_name is not None else f"User {n}",
        role=role,
        created_at=created_at or datetime(2026, 1, 1) + timedelta(minutes=n),
        **kwargs,
    )
    db.add(profile)
    db.commit()
    return profile


def make_client(db, org, company_name="Acme Ltd", cost_per_lead=None):
    client = Client(organization_id=org.id, company_name=company_name, cost_per_lead=cost_per_lead)
    db.add(client)
    db.commit()
    return client


def make_campaign(db, org, client=None, name="Spring Outreach", status=CampaignStatus.active):
    campaign = Campaign(
        organization_id=org.id,
        client_id=client.id if client else None,
        name=name,
        status=status,
    )
    db.add(campaign)
    db.commit()
    return campaign


def make_lead(db, org, campaign=None, created_at=None, commit=True, **kwargs):
    n = next(_seq)
    created = created_at or datetime(2026, 3, 1, 9, 0) + timedelta(seconds=n)
    values = {
        "first_name": f"Lead{n}",
        "last_name": "Example",
        "phone": f"+44 7700 900{n:03d}",
        "status": LeadStatus.new,
        "created_at": created,
        "updated_at": created,
    }
    values.update(kwargs)
    lead = Lead(
        organization_id=org.id,
        campaign_id=campaign.id if campaign else None,
        client_id=campaign.client_id if campaign else None,
        **values,
    )
    db.add(lead)
    if commit:
        db.commit()
    return lead


def actor_for(profile) -> Actor:
    return Actor(
        id=profile.id,
        role=profile.role,
        organization_id=profile.organization_id,
        client_id=profile.client_id,
    )


@pytest.fixture
def manager(db, org):
    return make_profile(db, org, role=UserRole.manager, full_name="Mia Manager")


@pytest.fixture
def manager_actor(manager):
    return actor_for(manager)


@pytest.fixture
def api(db):
    """TestClient bound to the test database, with rate limiting off."""

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def as_actor(api):
    """Return a helper that signs the API client in as the given profile."""

    def sign_in(profile):
        actor = actor_for(profile)
        app.dependency_overrides[get_current_actor] = lambda: actor
        return api

    return sign_in
