from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from leaddesk.core.actor import Actor
from leaddesk.core.database import get_db
from leaddesk.core.errors import Unauthenticated, Unauthorized
from leaddesk.core.security import decode_token
from leaddesk.models.user import Profile, UserRole

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_profile(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Profile:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authenticated")
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise Unauthenticated("Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated("Could not validate credentials")

    profile = db.query(Profile).filter(Profile.auth_user_id == str(subject)).first()
    if not profile:
        raise Unauthenticated("Profile not found")
    if not profile.is_active:
        raise Unauthorized("User inactive")
    return profile


def get_current_actor(profile: Profile = Depends(get_current_profile)) -> Actor:
    return Actor(
        id=profile.id,
        role=profile.role,
        organization_id=profile.organization_id,
        client_id=profile.client_id,
    )


def require_roles(*roles: UserRole):
    def role_dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise Unauthorized("Insufficient permissions")
        return actor

    return role_dependency
