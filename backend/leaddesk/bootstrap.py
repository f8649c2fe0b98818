import logging
import os

from leaddesk.core.database import Base, SessionLocal, engine
from leaddesk.core.logging import configure_logging
from leaddesk.models.organization import Organization
from leaddesk.models.user import Profile, UserRole

logger = logging.getLogger(__name__)


def create_owner(organization_name: str, auth_user_id: str, email: str, full_name: str) -> None:
    db = SessionLocal()
    try:
        existing = db.query(Profile).filter(Profile.auth_user_id == auth_user_id).first()
        if existing:
            logger.info("Profile already exists: %s", email)
            return

        org = Organization(name=organization_name)
        db.add(org)
        db.flush()
        db.add(
            Profile(
                auth_user_id=auth_user_id,
                organization_id=org.id,
                email=email,
                full_name=full_name,
                role=UserRole.owner,
                is_active=True,
            )
        )
        db.commit()
        logger.info("Created owner %s for organization %s", email, organization_name)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    Base.metadata.create_all(bind=engine)
    # Profiles link to identity-provider users by subject id; nothing is hardcoded here.
    owner_sub = os.getenv("BOOTSTRAP_OWNER_SUB")
    owner_email = os.getenv("BOOTSTRAP_OWNER_EMAIL")
    if owner_sub and owner_email:
        create_owner(
            os.getenv("BOOTSTRAP_ORGANIZATION", "LeadDesk Agency"),
            owner_sub,
            owner_email,
            os.getenv("BOOTSTRAP_OWNER_NAME", "Agency Owner"),
        )
    else:
        logger.info("Bootstrap skipped. Set BOOTSTRAP_OWNER_SUB and BOOTSTRAP_OWNER_EMAIL to create an owner.")
